from decimal import Decimal

INT_TYPES = {"ui1", "ui2", "ui4", "i1", "i2", "i4", "int"}
FLOAT_TYPES = {"r4", "r8", "number", "float", "fixed.14.4"}
STRING_TYPES = {"string", "char", "uri", "uuid"}
BOOL_TRUE = {"1", "true", "yes"}
BOOL_FALSE = {"0", "false", "no"}


def parse_bool(value):
    value = value.strip().lower()
    if value in BOOL_TRUE:
        return True
    if value in BOOL_FALSE:
        return False
    raise ValueError("%r is not a valid boolean" % value)


MARSHAL_FUNCTIONS = (
    (INT_TYPES, int),
    (FLOAT_TYPES, Decimal),
    (STRING_TYPES, str),
    ({"boolean"}, parse_bool),
)


def marshal_value(datatype, value):
    """
    Marshal a given string into a relevant Python type given the uPnP datatype.
    Assumes that the value has been pre-validated, so performs no checks.
    Returns a tuple pair of a boolean to say whether the value was marshalled
    and the (un)marshalled value.
    """
    for types, func in MARSHAL_FUNCTIONS:
        if datatype in types:
            return True, func(value)
    return False, value


def unmarshal_value(datatype, value):
    """
    Turn a Python value into the string sent on the wire for `datatype`.
    """
    if value is None:
        return ""
    if datatype == "boolean":
        if isinstance(value, str):
            return "1" if parse_bool(value) else "0"
        return "1" if value else "0"
    return str(value)


def zero_value(datatype):
    """
    The value an output argument takes when the device leaves it out or
    sends it empty.
    """
    if datatype in INT_TYPES:
        return 0
    if datatype in FLOAT_TYPES:
        return Decimal(0)
    if datatype == "boolean":
        return False
    return ""
