import unittest

import upnpigd as upnp


class TestErrors(unittest.TestCase):
    desc = upnp.errors.ERR_CODE_DESCRIPTIONS

    def test_existing_err(self):
        for key, value in self.desc._descriptions.items():
            self.assertEqual(self.desc[key], value)

    def test_non_integer(self):
        try:
            self.desc["a string"]
            raise Exception("Should have raised KeyError.")
        except KeyError as exc:
            self.assertEqual(str(exc), "\"'key' must be an integer\"")

    def test_unknown(self):
        with self.assertRaises(KeyError):
            self.desc[999]
        self.assertEqual(self.desc.get(999, "default"), "default")

    def test_reserved(self):
        for i in range(606, 612 + 1):  # 606-612
            self.assertEqual(
                self.desc[i], "These ErrorCodes are reserved for UPnP DeviceSecurity."
            )

    def test_common_action(self):
        for i in range(613, 699 + 1):
            self.assertEqual(
                self.desc[i],
                "Common action errors. Defined by UPnP Forum Technical Committee.",
            )

    def test_action_specific_committee(self):
        """
        IGD codes have their own names, the rest of 7xx falls back to the range.
        """
        self.assertEqual(self.desc[714], "NoSuchEntryInArray")
        self.assertEqual(self.desc[718], "ConflictInMappingEntry")
        for i in (700, 712, 717, 730, 799):
            self.assertEqual(
                self.desc[i],
                "Action-specific errors defined by UPnP Forum working committee.",
            )

    def test_action_specific_vendor(self):
        for i in range(800, 899 + 1):
            self.assertEqual(
                self.desc[i],
                "Action-specific errors for non-standard actions. Defined by UPnP vendor.",
            )

    def test_upnp_action_error_message(self):
        exc = upnp.UPnPActionError(714, "NoSuchEntryInArray")
        self.assertEqual(str(exc), "UPnP error 714: NoSuchEntryInArray")
        self.assertEqual(exc.fault_string, "UPnPError")
        self.assertIsInstance(exc, upnp.SOAPError)
        self.assertIsInstance(exc, upnp.UPNPError)

    def test_unexpected_response_keeps_body(self):
        exc = upnp.UnexpectedResponse("Service Unavailable: try later", status=503)
        self.assertEqual(str(exc), "Service Unavailable: try later")
        self.assertEqual(exc.status, 503)
