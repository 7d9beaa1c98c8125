from collections import OrderedDict, namedtuple

from .const import HTTP_TIMEOUT
from .errors import InvalidActionException, UPNPError, ValidationError
from .marshal import BOOL_FALSE, BOOL_TRUE, unmarshal_value
from .soap import SOAP
from .util import _getLogger


def _statevar(datatype, allowed_values=()):
    return dict(datatype=datatype, allowed_values=set(allowed_values))


ActionDef = namedtuple("ActionDef", ["name", "argsdef_in", "argsdef_out"])

_REMOTE_HOST = ("NewRemoteHost", _statevar("string"))
_EXTERNAL_PORT = ("NewExternalPort", _statevar("ui2"))
_PROTOCOL = ("NewProtocol", _statevar("string", ("TCP", "UDP")))

GET_SPECIFIC_PORT_MAPPING_ENTRY = ActionDef(
    "GetSpecificPortMappingEntry",
    [_REMOTE_HOST, _EXTERNAL_PORT, _PROTOCOL],
    [
        ("NewInternalPort", _statevar("ui2")),
        ("NewInternalClient", _statevar("string")),
        ("NewEnabled", _statevar("boolean")),
        ("NewPortMappingDescription", _statevar("string")),
        # Kept as text; routers send anything from "0" to nothing at all.
        ("NewLeaseDuration", _statevar("string")),
    ],
)
ADD_PORT_MAPPING = ActionDef(
    "AddPortMapping",
    [
        _REMOTE_HOST,
        _EXTERNAL_PORT,
        _PROTOCOL,
        ("NewInternalPort", _statevar("ui2")),
        ("NewInternalClient", _statevar("string")),
        ("NewEnabled", _statevar("boolean")),
        ("NewPortMappingDescription", _statevar("string")),
        ("NewLeaseDuration", _statevar("ui4")),
    ],
    None,
)
DELETE_PORT_MAPPING = ActionDef(
    "DeletePortMapping", [_REMOTE_HOST, _EXTERNAL_PORT, _PROTOCOL], None)
GET_EXTERNAL_IP_ADDRESS = ActionDef(
    "GetExternalIPAddress", [], [("NewExternalIPAddress", _statevar("string"))])

IGD_ACTIONS = (
    GET_SPECIFIC_PORT_MAPPING_ENTRY,
    ADD_PORT_MAPPING,
    DELETE_PORT_MAPPING,
    GET_EXTERNAL_IP_ADDRESS,
)


class CallActionMixin(object):
    def __call__(self, action_name, **kwargs):
        """
        Convenience method for quickly finding and calling an Action. Must
        have implemented a `find_action(action_name)` method.
        """
        action = self.find_action(action_name)
        if action is not None:
            return action(**kwargs)
        raise InvalidActionException(
            "Action with name %r does not exist." % action_name
        )


class Action(object):
    def __init__(
        self,
        url,
        service_type,
        name,
        argsdef_in=None,
        argsdef_out=None,
        timeout=HTTP_TIMEOUT,
        session=None,
    ):
        if argsdef_in is None:
            argsdef_in = []
        self.url = url
        self.service_type = service_type
        self.name = name
        self.argsdef_in = argsdef_in
        # None means the action has no output worth decoding.
        self.argsdef_out = argsdef_out
        self.timeout = timeout
        self.session = session
        self._log = _getLogger("Action")

    def __repr__(self):
        return "<Action '%s'>" % (self.name)

    def __call__(self, **kwargs):
        soap_client, call_kwargs = self._prepare_request(**kwargs)
        soap_response = soap_client.call(
            self.name,
            call_kwargs,
            self._datatypes_out(),
            timeout=self.timeout,
            session=self.session,
        )
        self._log.debug("<< %s (%s): %s", self.name, kwargs, soap_response)
        return soap_response

    def _datatypes_out(self):
        if self.argsdef_out is None:
            return None
        return [(name, statevar["datatype"]) for name, statevar in self.argsdef_out]

    def _prepare_request(self, **kwargs):
        """
        Validate arguments and return a SOAP instance with the wire values.
        """
        arg_reasons = {}
        call_kwargs = OrderedDict()

        # Every declared argument is always sent
        for name, statevar in self.argsdef_in:
            if name not in kwargs:
                raise UPNPError("Missing required param '%s'" % (name))
            valid, reasons = self.validate_arg(kwargs[name], statevar)
            if not valid:
                arg_reasons[name] = reasons
            # Preserve the order of call args, as listed in the action definition
            call_kwargs[name] = kwargs[name]

        if arg_reasons:
            raise ValidationError(arg_reasons)

        for name, statevar in self.argsdef_in:
            call_kwargs[name] = unmarshal_value(statevar["datatype"], call_kwargs[name])

        self._log.debug(">> %s (%s)", self.name, call_kwargs)
        return SOAP(self.url, self.service_type), call_kwargs

    @staticmethod
    def validate_arg(arg, argdef):
        """
        Validate an argument according to its UPnP datatype.
        """
        datatype = argdef["datatype"]
        reasons = set()
        ranges = {
            "ui1": (int, 0, 255),
            "ui2": (int, 0, 65535),
            "ui4": (int, 0, 4294967295),
            "i1": (int, -128, 127),
            "i2": (int, -32768, 32767),
            "i4": (int, -2147483648, 2147483647),
        }
        try:
            if datatype in ranges:
                v_type, v_min, v_max = ranges[datatype]
                if isinstance(arg, bool) or not v_min <= v_type(arg) <= v_max:
                    reasons.add(
                        "%r datatype must be a number in the range %s to %s"
                        % (datatype, v_min, v_max)
                    )

            elif datatype == "string":
                if arg is not None and not isinstance(arg, str):
                    reasons.add("%r datatype must be a string, got %r" % (datatype, arg))
                elif argdef.get("allowed_values") and arg not in argdef["allowed_values"]:
                    reasons.add("Value %r not in allowed values list" % arg)

            elif datatype == "boolean":
                valid = BOOL_TRUE | BOOL_FALSE
                if not isinstance(arg, bool) and str(arg).lower() not in valid:
                    reasons.add(
                        "%r datatype must be one of %s" % (datatype, ",".join(sorted(valid)))
                    )

            else:
                reasons.add("%r datatype is unrecognised." % datatype)

        except (TypeError, ValueError) as exc:
            reasons.add(str(exc))

        return not bool(len(reasons)), reasons


class AsyncAction(Action):
    async def __call__(self, **kwargs):
        soap_client, call_kwargs = self._prepare_request(**kwargs)
        soap_response = await soap_client.async_call(
            self.name,
            call_kwargs,
            self._datatypes_out(),
            timeout=self.timeout,
            session=self.session,
        )
        self._log.debug("<< %s (%s): %s", self.name, kwargs, soap_response)
        return soap_response


class IGDClient(CallActionMixin):
    """
    The WAN connection service of an Internet Gateway Device, addressed by a
    ControlEndpoint. With `use_async` every action method returns an
    awaitable instead of the result.

    Example:

    >>> client = IGDClient(endpoint)
    >>> client.get_external_ip_address()
    {'NewExternalIPAddress': '203.0.113.7'}
    """

    def __init__(self, endpoint, use_async=False, session=None, timeout=HTTP_TIMEOUT):
        self.endpoint = endpoint
        self.session = session
        self._use_async = use_async
        action_class = AsyncAction if use_async else Action
        self.actions = []
        self.action_map = {}
        for definition in IGD_ACTIONS:
            action = action_class(
                endpoint.control_url,
                endpoint.service_type,
                definition.name,
                definition.argsdef_in,
                definition.argsdef_out,
                timeout=timeout,
                session=session,
            )
            self.actions.append(action)
            self.action_map[action.name] = action

    def __repr__(self):
        return "<IGDClient '%s' at '%s'>" % (self.service_type, self.control_url)

    @property
    def service_type(self):
        return self.endpoint.service_type

    @property
    def control_url(self):
        return self.endpoint.control_url

    def location(self):
        """
        URL of the description document this client was resolved from.
        """
        return self.endpoint.location

    def find_action(self, action_name):
        try:
            return self.action_map[action_name]
        except KeyError:
            pass

    def get_specific_port_mapping_entry(self, external_port, protocol, remote_host=""):
        return self(
            GET_SPECIFIC_PORT_MAPPING_ENTRY.name,
            NewRemoteHost=remote_host,
            NewExternalPort=external_port,
            NewProtocol=protocol,
        )

    def add_port_mapping(
        self,
        external_port,
        protocol,
        internal_port,
        internal_client,
        description="",
        enabled=True,
        lease_duration=0,
        remote_host="",
    ):
        return self(
            ADD_PORT_MAPPING.name,
            NewRemoteHost=remote_host,
            NewExternalPort=external_port,
            NewProtocol=protocol,
            NewInternalPort=internal_port,
            NewInternalClient=internal_client,
            NewEnabled=enabled,
            NewPortMappingDescription=description,
            NewLeaseDuration=lease_duration,
        )

    def delete_port_mapping(self, external_port, protocol, remote_host=""):
        return self(
            DELETE_PORT_MAPPING.name,
            NewRemoteHost=remote_host,
            NewExternalPort=external_port,
            NewProtocol=protocol,
        )

    def get_external_ip_address(self):
        return self(GET_EXTERNAL_IP_ADDRESS.name)
