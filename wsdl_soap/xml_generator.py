# wsdl_soap/xml_generator.py
import base64
import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

from lxml import etree
from pydantic import BaseModel, ConfigDict

from .config import SOAP_ENVELOPE_NAMESPACES, XSD_NS, XSI_NS, GlobalOptions
from .exceptions import MessageError
from .naming import KEY_CONVERTERS

if TYPE_CHECKING:
    from .operation import ResolvedOperation

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


# --- Message values ---

class Scalar(BaseModel):
    """Text content; ``None`` is serialized as xsi:nil."""
    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None


class Sequence(BaseModel):
    """Repeats the enclosing element once per item."""
    model_config = ConfigDict(frozen=True)

    items: Tuple["Value", ...] = ()


class Mapping(BaseModel):
    """Child elements in the exact order given, plus attributes from '@' keys."""
    model_config = ConfigDict(frozen=True)

    entries: Tuple[Tuple[str, "Value"], ...] = ()
    attributes: Tuple[Tuple[str, str], ...] = ()


Value = Union[Scalar, Sequence, Mapping]
Sequence.model_rebuild()
Mapping.model_rebuild()


def format_scalar(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def to_value(data: Any) -> Value:
    """Normalizes nested dicts/lists/scalars into the Scalar|Sequence|Mapping tree."""
    if isinstance(data, (Scalar, Sequence, Mapping)):
        return data
    if isinstance(data, dict):
        entries, attributes = [], []
        for key, value in data.items():
            key = str(key)
            if key.startswith("@"):
                attributes.append((key[1:], format_scalar(value) or ""))
            else:
                entries.append((key, to_value(value)))
        return Mapping(entries=tuple(entries), attributes=tuple(attributes))
    if isinstance(data, (list, tuple)):
        return Sequence(items=tuple(to_value(item) for item in data))
    return Scalar(text=format_scalar(data))


# --- Envelope ---

class Builder:
    """Serializes one SOAP request envelope."""

    def __init__(self, operation: "ResolvedOperation", options: GlobalOptions,
                 message: Any = None, header: Optional[Dict[str, Any]] = None):
        self.operation = operation
        self.options = options
        self.message = message
        self.header = header if header is not None else options.soap_header
        self._convert_key = KEY_CONVERTERS[options.convert_request_keys_to]

    @property
    def env_namespace(self) -> str:
        return SOAP_ENVELOPE_NAMESPACES[self.operation.soap_version]

    def to_element(self) -> etree._Element:
        op = self.operation
        nsmap = {
            "xsd": XSD_NS,
            "xsi": XSI_NS,
            self.options.namespace_identifier: op.namespace,
            self.options.env_namespace: self.env_namespace,
        }
        envelope = etree.Element(etree.QName(self.env_namespace, "Envelope"), nsmap=nsmap)
        if self.header:
            header = etree.SubElement(envelope, etree.QName(self.env_namespace, "Header"))
            # Header blocks carry their own namespaces, never the service's.
            self._append_content(header, self.header, qualified=False)
        body = etree.SubElement(envelope, etree.QName(self.env_namespace, "Body"))
        operation_element = etree.SubElement(body, etree.QName(op.namespace, op.input_tag))
        self._append_content(operation_element, self.message, qualified=op.element_form == "qualified")
        return envelope

    def to_s(self) -> str:
        return XML_DECLARATION + etree.tostring(self.to_element(), encoding="unicode")

    def to_bytes(self) -> bytes:
        return self.to_s().encode("utf-8")

    def __str__(self) -> str:
        return self.to_s()

    def _append_content(self, parent, message: Any, qualified: bool):
        if isinstance(message, str):
            self._append_raw(parent, message)
        elif message is not None:
            value = to_value(message)
            if isinstance(value, Mapping):
                self._append_mapping(parent, value, qualified)
            elif isinstance(value, Scalar):
                parent.text = value.text
            else:
                raise MessageError(
                    f"Cannot serialize a list directly inside <{etree.QName(parent).localname}>; "
                    "wrap it in a mapping such as {'item': [...]}"
                )
        if len(parent) == 0 and parent.text is None:
            parent.text = ""

    def _append_raw(self, parent, fragment: str):
        # Raw XML is inserted as given; the envelope prefixes are in scope.
        wrapper = etree.Element("wrapper", nsmap={prefix: uri for prefix, uri in parent.nsmap.items() if prefix})
        prefixes = etree.tostring(wrapper, encoding="unicode")[:-2]
        try:
            wrapper = etree.fromstring(f"{prefixes}>{fragment}</wrapper>")
        except etree.XMLSyntaxError as e:
            raise MessageError(f"Invalid raw XML: {e}") from e
        parent.text = wrapper.text
        for child in wrapper:
            parent.append(child)

    def _tag(self, parent, key: str, qualified: bool) -> str:
        """Element name for a message key.

        ``{namespace}local`` and ``prefix:local`` keys are explicit XML names
        and skip the key converter; the prefix must be declared on the
        envelope. Other keys are converted and take the operation namespace
        when ``qualified``.
        """
        namespace, local = None, key
        if key.startswith("{"):
            namespace, _, local = key[1:].partition("}")
        elif ":" in key:
            prefix, _, local = key.partition(":")
            namespace = parent.nsmap.get(prefix)
            if namespace is None:
                raise MessageError(f"Unknown namespace prefix {prefix!r} in key {key!r}")
        else:
            local = self._convert_key(key)
            if qualified:
                namespace = self.operation.namespace
        try:
            return etree.QName(namespace or None, local).text
        except ValueError as e:
            raise MessageError(f"Key {key!r} is not a valid XML element name") from e

    def _append_mapping(self, parent, mapping: Mapping, qualified: bool):
        for name, value in mapping.attributes:
            try:
                parent.set(name, value)
            except ValueError as e:
                raise MessageError(f"Key '@{name}' is not a valid XML attribute name") from e
        for key, value in mapping.entries:
            self._append_element(parent, self._tag(parent, key, qualified), value, qualified)

    def _append_element(self, parent, tag: str, value: Value, qualified: bool):
        if isinstance(value, Sequence):
            for item in value.items:
                self._append_element(parent, tag, item, qualified)
            return
        child = etree.SubElement(parent, tag)
        if isinstance(value, Mapping):
            self._append_mapping(child, value, qualified)
            if len(child) == 0:
                child.text = ""
        elif value.text is None:
            child.set(etree.QName(XSI_NS, "nil"), "true")
        else:
            child.text = value.text


def build_envelope(operation: "ResolvedOperation", message: Any, options: GlobalOptions,
                   header: Optional[Dict[str, Any]] = None) -> str:
    return Builder(operation, options, message, header).to_s()
