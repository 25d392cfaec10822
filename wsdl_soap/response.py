# wsdl_soap/response.py
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from lxml import etree
from pydantic import BaseModel, ConfigDict

from .config import SOAP_ENVELOPE_NAMESPACES, XSI_NS, GlobalOptions
from .exceptions import DecodeError, HTTPError, SOAPFault
from .mime import decode_parts, is_multipart
from .naming import snakecase

logger = logging.getLogger(__name__)

SOAP11_NS = SOAP_ENVELOPE_NAMESPACES[1]
SOAP12_NS = SOAP_ENVELOPE_NAMESPACES[2]

TAG_CONVERTERS: Dict[str, Callable[[str], str]] = {
    "snakecase": snakecase,
    "none": lambda tag: tag,
}


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_id: str
    content: bytes
    content_type: str = "application/octet-stream"


def xml_to_data(element, convert_tag: Callable[[str], str] = snakecase) -> Any:
    """Converts an element to nested dicts, lists and strings.

    Namespace prefixes are dropped, repeated siblings become lists and
    attributes are kept under '@'-prefixed keys.
    """
    children = [child for child in element if isinstance(child.tag, str)]
    if not children:
        if element.get(f"{{{XSI_NS}}}nil") == "true":
            return None
        text = element.text
        return text if text and text.strip() else None

    data: Dict[str, Any] = {}
    for name, value in element.attrib.items():
        if etree.QName(name).namespace != XSI_NS:
            data["@" + convert_tag(etree.QName(name).localname)] = value
    repeated = set()
    for child in children:
        key = convert_tag(etree.QName(child).localname)
        value = xml_to_data(child, convert_tag)
        if key not in data:
            data[key] = value
        elif key in repeated:
            data[key].append(value)
        else:
            data[key] = [data[key], value]
            repeated.add(key)
    return data


def _parse_envelope(content: bytes):
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    try:
        return etree.fromstring(content, parser=parser) if content.strip() else None
    except etree.XMLSyntaxError as e:
        logger.debug(f"Response body is not XML: {e}")
        return None


class Response:
    """Decoded SOAP response: header, body and attachments.

    ``multipart`` is true exactly when the response carried attachments.
    """

    def __init__(self, envelope: bytes, attachments: Tuple[Attachment, ...] = (),
                 http: Any = None, options: Optional[GlobalOptions] = None):
        self.raw = envelope
        self.attachments = tuple(attachments)
        self.http = http
        self._convert_tag = TAG_CONVERTERS[(options or GlobalOptions()).convert_response_tags_to]
        self.doc = _parse_envelope(envelope)

    @property
    def xml(self) -> str:
        return self.raw.decode("utf-8", errors="replace")

    @property
    def multipart(self) -> bool:
        return bool(self.attachments)

    def _section(self, name: str):
        if self.doc is None or etree.QName(self.doc).localname != "Envelope":
            return None
        for child in self.doc:
            if isinstance(child.tag, str) and etree.QName(child).localname == name:
                return child
        return None

    @property
    def header(self) -> Any:
        section = self._section("Header")
        return xml_to_data(section, self._convert_tag) if section is not None else None

    @property
    def body(self) -> Any:
        section = self._section("Body")
        return xml_to_data(section, self._convert_tag) if section is not None else None

    def to_dict(self) -> Any:
        if self.doc is None:
            return None
        return {self._convert_tag(etree.QName(self.doc).localname): xml_to_data(self.doc, self._convert_tag)}

    def find(self, *path: str) -> Any:
        """Walks the body data: response.find("verify_address_response", "result")."""
        data = self.body
        for key in path:
            if not isinstance(data, dict) or key not in data:
                return None
            data = data[key]
        return data

    def xpath(self, path: str, namespaces: Optional[Dict[str, str]] = None) -> List:
        if self.doc is None:
            return []
        if namespaces is None:
            namespaces = {prefix: uri for prefix, uri in self.doc.nsmap.items() if prefix}
        return self.doc.xpath(path, namespaces=namespaces)

    # --- Errors ---

    def _fault_element(self):
        body = self._section("Body")
        if body is None:
            return None
        for namespace in (SOAP11_NS, SOAP12_NS):
            fault = body.find(f"{{{namespace}}}Fault")
            if fault is not None:
                return fault
        return None

    @property
    def soap_fault(self) -> bool:
        return self._fault_element() is not None

    @property
    def http_error(self) -> bool:
        return getattr(self.http, "status_code", 200) >= 400

    @property
    def success(self) -> bool:
        return not (self.soap_fault or self.http_error)

    def fault(self) -> Optional[SOAPFault]:
        element = self._fault_element()
        if element is None:
            return None
        if element.tag == f"{{{SOAP12_NS}}}Fault":
            code = element.findtext(f"{{{SOAP12_NS}}}Code/{{{SOAP12_NS}}}Value")
            reason = element.findtext(f"{{{SOAP12_NS}}}Reason/{{{SOAP12_NS}}}Text")
            detail = element.find(f"{{{SOAP12_NS}}}Detail")
        else:
            code = element.findtext("faultcode")
            reason = element.findtext("faultstring")
            detail = element.find("detail")
        detail_data = xml_to_data(detail, self._convert_tag) if detail is not None else None
        return SOAPFault(code, reason, response=self.http, detail=detail_data)

    def raise_for_errors(self) -> None:
        """Raises SOAPFault for a fault body, otherwise HTTPError for status >= 400."""
        fault = self.fault()
        if fault is not None:
            raise fault
        if self.http_error:
            raise HTTPError(f"HTTP error ({self.http.status_code})", self.http)

    def __repr__(self) -> str:
        return f"<Response multipart={self.multipart} attachments={len(self.attachments)}>"


def decode(content_type: Optional[str], raw_body: bytes, http: Any = None,
           options: Optional[GlobalOptions] = None) -> Response:
    """Decodes a single-part or multipart/related SOAP response.

    The first part of a multipart body is the envelope; every other part
    becomes an Attachment keyed by its Content-ID.
    """
    if not is_multipart(content_type):
        return Response(raw_body, (), http, options)

    parts = decode_parts(content_type, raw_body)
    attachments = []
    seen = set()
    for index, part in enumerate(parts[1:], start=1):
        content_id = part.content_id or part.headers.get("Content-Location") or f"part{index}"
        if content_id in seen:
            raise DecodeError(f"Duplicate Content-ID in multipart response: {content_id}")
        seen.add(content_id)
        attachments.append(Attachment(content_id=content_id, content=part.content, content_type=part.content_type))
    logger.debug(f"Decoded multipart response with {len(attachments)} attachments")
    return Response(parts[0].content, tuple(attachments), http, options)
