# wsdl_soap/exceptions.py
from typing import Any, Iterable, Optional


class SoapError(Exception):
    """Base class for every error raised by wsdl_soap."""


class ArgumentError(SoapError, TypeError):
    """Raised when an operation name is not a valid identifier."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(
            "Expected the first parameter (the name of the operation to call) "
            f"to be an identifier like 'verify_address', got {value!r} ({type(value).__name__})"
        )


class UnknownOperationError(SoapError, LookupError):
    """Raised when the WSDL does not declare the requested operation."""

    def __init__(self, operation_name: str, available: Iterable[str] = ()):
        self.operation_name = operation_name
        self.available = sorted(available)
        message = f"Unable to find SOAP operation: {operation_name!r}"
        if self.available:
            message += f"\nOperations provided by your service: {', '.join(self.available)}"
        super().__init__(message)


class MessageError(SoapError, ValueError):
    """Raised when message or header data cannot be serialized into the envelope."""


class ConfigurationError(SoapError):
    """Raised when neither the options nor the WSDL provide a required value."""


class SchemaError(SoapError):
    """Raised when a WSDL or XSD document cannot be parsed or resolved."""

    def __init__(self, message: str, location: Optional[str] = None):
        self.location = location
        if location:
            message = f"{message} (in {location})"
        super().__init__(message)


class HTTPError(SoapError):
    """Raised on transport failures and HTTP status codes >= 400.

    ``response`` is the original ``requests.Response`` when one was received.
    """

    def __init__(self, message: str, response: Any = None):
        self.response = response
        super().__init__(message)

    @property
    def status_code(self) -> Optional[int]:
        return getattr(self.response, "status_code", None)

    def to_dict(self) -> dict:
        if self.response is None:
            return {"code": None, "headers": {}, "body": None}
        return {
            "code": self.response.status_code,
            "headers": dict(self.response.headers),
            "body": self.response.text,
        }


class SOAPFault(SoapError):
    """Raised when the response body carries a SOAP Fault."""

    def __init__(self, faultcode: Optional[str], faultstring: Optional[str],
                 response: Any = None, detail: Any = None):
        self.faultcode = faultcode
        self.faultstring = faultstring
        self.detail = detail
        self.response = response
        super().__init__(f"({faultcode}) {faultstring}")


class DecodeError(SoapError):
    """Raised when a multipart response cannot be split into parts."""
