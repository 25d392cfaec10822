# wsdl_soap/loader.py
import logging
import os
from typing import Optional, Tuple, Union
from urllib.parse import urljoin, urlparse
from urllib.request import url2pathname

import requests
from lxml import etree

from .exceptions import HTTPError, SchemaError

logger = logging.getLogger(__name__)


def is_inline_xml(source: Union[str, bytes]) -> bool:
    """True when ``source`` is an XML document rather than a location."""
    if isinstance(source, bytes):
        return source.lstrip()[:1] == b"<"
    return source.lstrip().startswith("<")


def is_url(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def join_location(base: Optional[str], location: str) -> str:
    """Resolves a schemaLocation/import location against the importing document."""
    if not base or is_url(location) or os.path.isabs(location) or location.startswith("file:"):
        return location
    if is_url(base) or base.startswith("file:"):
        return urljoin(base, location)
    return os.path.normpath(os.path.join(os.path.dirname(base), location))


def parse_xml(content: bytes, location: Optional[str] = None) -> etree._Element:
    """Parses a document without recovery; syntax errors become SchemaError."""
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    try:
        return etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError as e:
        raise SchemaError(f"Unable to parse XML: {e}", location) from e


class DocumentLoader:
    """Fetches WSDL and XSD documents by URL, local path or inline content."""

    def __init__(self, session: Optional[requests.Session] = None, timeout=None,
                 verify: Union[bool, str] = True):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify = verify

    def load(self, source: Union[str, bytes], base: Optional[str] = None) -> Tuple[bytes, Optional[str]]:
        """Returns the raw document and the location it was read from.

        Inline documents have no location, so relative imports inside them
        can only be resolved against ``base``.
        """
        if is_inline_xml(source):
            content = source if isinstance(source, bytes) else source.encode("utf-8")
            return content, base

        location = join_location(base, source)
        if is_url(location):
            return self._fetch(location), location
        return self._read(location), location

    def load_xml(self, source: Union[str, bytes], base: Optional[str] = None) -> Tuple[etree._Element, Optional[str]]:
        content, location = self.load(source, base)
        return parse_xml(content, location), location

    def _fetch(self, url: str) -> bytes:
        logger.debug(f"Fetching document: {url}")
        try:
            response = self.session.get(url, timeout=self.timeout, verify=self.verify)
        except requests.RequestException as e:
            raise HTTPError(f"Unable to fetch {url}: {e}") from e
        if response.status_code >= 400:
            raise HTTPError(f"Error: {response.status_code} while fetching {url}", response)
        return response.content

    def _read(self, location: str) -> bytes:
        path = url2pathname(urlparse(location).path) if location.startswith("file:") else location
        logger.debug(f"Reading document: {path}")
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise SchemaError(f"Unable to read document: {e}", location) from e


class InlineDocumentLoader(DocumentLoader):
    """Accepts inline documents only; imports of files or URLs are refused.

    Used for untrusted uploads so that a document cannot make the server
    read local files or fetch arbitrary URLs.
    """

    def load(self, source: Union[str, bytes], base: Optional[str] = None) -> Tuple[bytes, Optional[str]]:
        if not is_inline_xml(source):
            location = source.decode("utf-8", "replace") if isinstance(source, bytes) else source
            raise SchemaError(f"Refusing to load external document: {location}", base)
        return super().load(source, base)
