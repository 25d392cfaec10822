# wsdl_soap/config.py
import os
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

# --- Namespaces ---
SOAP_ENVELOPE_NAMESPACES = {
    1: "http://schemas.xmlsoap.org/soap/envelope/",
    2: "http://www.w3.org/2003/05/soap-envelope",
}
SOAP_CONTENT_TYPES = {
    1: "text/xml",
    2: "application/soap+xml",
}
XSD_NS = "http://www.w3.org/2001/XMLSchema"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
SOAP_ENCODING_NS = "http://schemas.xmlsoap.org/soap/encoding/"
WSDL_NS = "http://schemas.xmlsoap.org/wsdl/"
WSDL_SOAP11_NS = "http://schemas.xmlsoap.org/wsdl/soap/"
WSDL_SOAP12_NS = "http://schemas.xmlsoap.org/wsdl/soap12/"


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("1", "true", "yes")


class GlobalOptions(BaseModel):
    """Options shared by every call made through a client.

    Defaults for the connection settings can be supplied through the
    SOAP_ENDPOINT, SOAP_NAMESPACE, SOAP_VERSION, SOAP_OPEN_TIMEOUT,
    SOAP_READ_TIMEOUT and SOAP_LOG environment variables.
    """
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    endpoint: Optional[str] = Field(default_factory=lambda: os.getenv("SOAP_ENDPOINT"))
    namespace: Optional[str] = Field(default_factory=lambda: os.getenv("SOAP_NAMESPACE"))
    namespace_identifier: str = "tns"
    env_namespace: str = "env"
    soap_version: Optional[Literal[1, 2]] = Field(default_factory=lambda: _env_int("SOAP_VERSION"))
    soap_header: Optional[Dict[str, Any]] = None
    message_tag: Optional[str] = None
    element_form_default: Optional[Literal["qualified", "unqualified"]] = None
    convert_request_keys_to: Literal["none", "lower_camelcase", "camelcase", "upcase"] = "lower_camelcase"
    convert_response_tags_to: Literal["snakecase", "none"] = "snakecase"
    headers: Dict[str, str] = Field(default_factory=dict)
    open_timeout: Optional[float] = Field(default_factory=lambda: _env_float("SOAP_OPEN_TIMEOUT"))
    read_timeout: Optional[float] = Field(default_factory=lambda: _env_float("SOAP_READ_TIMEOUT"))
    basic_auth: Optional[Tuple[str, str]] = None
    ssl_verify: Union[bool, str] = True
    raise_errors: bool = True
    log: bool = Field(default_factory=lambda: _env_flag("SOAP_LOG"))
    log_level: Literal["debug", "info", "warning", "error"] = "debug"
    pretty_print_xml: bool = False
    filters: List[str] = Field(default_factory=list)

    @property
    def timeout(self) -> Optional[Tuple[Optional[float], Optional[float]]]:
        if self.open_timeout is None and self.read_timeout is None:
            return None
        return (self.open_timeout, self.read_timeout)


class AttachmentInput(BaseModel):
    filename: str
    content: Union[bytes, str]
    content_type: Optional[str] = None


class LocalOptions(BaseModel):
    """Options for a single call.

    ``soap_action`` distinguishes "not given" from an explicit ``None``: use
    ``"soap_action" in options.model_fields_set`` to tell them apart.
    """
    model_config = ConfigDict(extra="forbid")

    message: Any = None
    soap_action: Optional[str] = None
    soap_header: Optional[Dict[str, Any]] = None
    message_tag: Optional[str] = None
    endpoint: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    cookies: Dict[str, str] = Field(default_factory=dict)
    attachments: List[AttachmentInput] = Field(default_factory=list)

    @property
    def has_soap_action(self) -> bool:
        return "soap_action" in self.model_fields_set
