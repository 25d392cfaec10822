# wsdl_soap/log_message.py
import logging
from typing import Iterable, Mapping, Union

from lxml import etree

from .config import GlobalOptions

FILTERED = "***FILTERED***"


class LogMessage:
    """XML prepared for logging: sensitive element values masked, optionally pretty printed."""

    def __init__(self, message: Union[str, bytes], filters: Iterable[str] = (), pretty_print: bool = False):
        self.message = message.decode("utf-8", errors="replace") if isinstance(message, bytes) else message
        self.filters = set(filters)
        self.pretty_print = pretty_print

    def to_s(self) -> str:
        if not self.filters and not self.pretty_print:
            return self.message
        parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False)
        try:
            document = etree.fromstring(self.message.encode("utf-8"), parser=parser)
        except etree.XMLSyntaxError:
            # Not XML (an HTML error page, a multipart body): log it as it is.
            return self.message
        for element in document.iter():
            if isinstance(element.tag, str) and etree.QName(element).localname in self.filters:
                element.text = FILTERED
        return etree.tostring(document, encoding="unicode", pretty_print=self.pretty_print)

    def __str__(self) -> str:
        return self.to_s()


def _level(options: GlobalOptions) -> int:
    return getattr(logging, options.log_level.upper())


def log_request(logger: logging.Logger, options: GlobalOptions, url: str,
                headers: Mapping[str, str], body: bytes) -> None:
    if not options.log:
        return
    level = _level(options)
    logger.log(level, f"SOAP request: {url}")
    logger.log(level, ", ".join(f"{name}: {value}" for name, value in headers.items()))
    logger.log(level, LogMessage(body, options.filters, options.pretty_print_xml).to_s())


def log_response(logger: logging.Logger, options: GlobalOptions, status_code: int, body: bytes) -> None:
    if not options.log:
        return
    level = _level(options)
    logger.log(level, f"SOAP response (status {status_code})")
    logger.log(level, LogMessage(body, options.filters, options.pretty_print_xml).to_s())
