# wsdl_soap/naming.py
import re

_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def snakecase(name: str) -> str:
    """VerifyAddress -> verify_address, getHTTPStatus -> get_http_status"""
    return _BOUNDARY.sub("_", name).replace("-", "_").replace(".", "_").lower()


def camelcase(name: str) -> str:
    """verify_address -> VerifyAddress"""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def lower_camelcase(name: str) -> str:
    """verify_address -> verifyAddress"""
    converted = camelcase(name)
    return converted[:1].lower() + converted[1:]


KEY_CONVERTERS = {
    "none": lambda key: key,
    "lower_camelcase": lower_camelcase,
    "camelcase": camelcase,
    "upcase": lambda key: key.upper(),
}
