class UPNPError(Exception):
    """
    Base class for every error raised by this package.
    """

    pass


class TransportError(UPNPError):
    """
    The HTTP request or socket operation itself failed.
    """

    pass


class UnexpectedResponse(UPNPError):
    """
    Got a response we didn't expect. Non-200 responses carry their body text
    verbatim as the message, since routers often put a diagnostic there.
    """

    def __init__(self, message, status=None):
        super(UnexpectedResponse, self).__init__(message)
        self.status = status


class InvalidResponseBody(UPNPError):
    """
    The response arrived but could not be decoded.
    """

    pass


class SOAPError(UPNPError):
    """
    The device answered with a SOAP Fault.
    """

    def __init__(self, fault_string, fault_code=None):
        super(SOAPError, self).__init__("SOAP fault: %s" % fault_string)
        self.fault_string = fault_string
        self.fault_code = fault_code


class UPnPActionError(SOAPError):
    """
    SOAP Fault carrying a UPnPError detail (errorCode + errorDescription).
    """

    def __init__(self, code, description, fault_string="UPnPError", fault_code=None):
        super(UPnPActionError, self).__init__(fault_string, fault_code=fault_code)
        self.code = code
        self.description = description
        self.args = ("UPnP error %d: %s" % (code, description),)


class InvalidActionException(UPNPError):
    """
    Action doesn't exist.
    """

    pass


class ValidationError(UPNPError):
    """
    Given value didn't validate with the given data type.
    """

    def __init__(self, reasons):
        super(ValidationError, self).__init__(reasons)
        self.reasons = reasons


class SSDPError(UPNPError):
    pass


class GatewayNotFound(UPNPError):
    pass


class MultipleGatewaysFound(UPNPError):
    pass


class NoLocalAddress(UPNPError):
    """
    No local interface shares a subnet with the device.
    """

    pass


class ErrorCodeDescriptions(object):
    """
    Lookup of UPnP error codes. Unlisted codes inside a reserved range resolve
    to the description of that range.
    """

    _descriptions = {
        401: "Invalid Action",
        402: "Invalid Args",
        404: "Invalid Var",
        501: "Action Failed",
        600: "Argument Value Invalid",
        601: "Argument Value Out of Range",
        602: "Optional Action Not Implemented",
        603: "Out of Memory",
        604: "Human Intervention Required",
        605: "String Argument Too Long",
        # WANIPConnection / WANPPPConnection
        713: "SpecifiedArrayIndexInvalid",
        714: "NoSuchEntryInArray",
        715: "WildCardNotPermittedInSrcIP",
        716: "WildCardNotPermittedInExtPort",
        718: "ConflictInMappingEntry",
        724: "SamePortValuesRequired",
        725: "OnlyPermanentLeasesSupported",
        726: "RemoteHostOnlySupportsWildcard",
        727: "ExternalPortOnlySupportsWildcard",
        728: "NoPortMapsAvailable",
        729: "ConflictWithOtherMechanisms",
    }

    _ranges = [
        ((606, 612), "These ErrorCodes are reserved for UPnP DeviceSecurity."),
        ((613, 699), "Common action errors. Defined by UPnP Forum Technical Committee."),
        ((700, 799), "Action-specific errors defined by UPnP Forum working committee."),
        ((800, 899), "Action-specific errors for non-standard actions. Defined by UPnP vendor."),
    ]

    def __getitem__(self, key):
        if not isinstance(key, int):
            raise KeyError("'key' must be an integer")
        try:
            return self._descriptions[key]
        except KeyError:
            pass
        for (low, high), description in self._ranges:
            if low <= key <= high:
                return description
        raise KeyError(key)

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default


ERR_CODE_DESCRIPTIONS = ErrorCodeDescriptions()
NO_SUCH_ENTRY_IN_ARRAY = 714
