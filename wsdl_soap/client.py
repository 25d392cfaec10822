# wsdl_soap/client.py
import logging
from typing import List, Optional, Union

import requests

from .cache import DocumentCache
from .config import GlobalOptions
from .exceptions import ConfigurationError
from .loader import DocumentLoader
from .operation import Operation, validate_name
from .response import Response
from .transport import HTTPRequest, Transport
from .wsdl_parser import WsdlDocument, load_wsdl

logger = logging.getLogger(__name__)


class Client:
    """Entry point: Client(wsdl=...) or Client(endpoint=..., namespace=...).

    The WSDL is loaded on first use and kept in ``cache``. Pass a shared
    DocumentCache to reuse parsed documents across clients.
    """

    def __init__(self, wsdl: Optional[Union[str, bytes]] = None, cache: Optional[DocumentCache] = None,
                 loader: Optional[DocumentLoader] = None, session: Optional[requests.Session] = None,
                 **options):
        self.options = GlobalOptions(**options)
        self.wsdl_source = wsdl
        self.cache = cache if cache is not None else DocumentCache()
        self.session = session or requests.Session()
        self.loader = loader or DocumentLoader(self.session, self.options.timeout, self.options.ssl_verify)
        self.transport = Transport(self.options, self.session)

    @property
    def wsdl(self) -> Optional[WsdlDocument]:
        if self.wsdl_source is None:
            return None
        return self.cache.get(self.wsdl_source, lambda: load_wsdl(self.wsdl_source, self.loader))

    def _require_wsdl(self) -> WsdlDocument:
        wsdl = self.wsdl
        if wsdl is None:
            raise ConfigurationError("Unable to inspect the service without a WSDL document")
        return wsdl

    @property
    def operations(self) -> List[str]:
        return sorted(self._require_wsdl().operation_names())

    @property
    def service_name(self) -> Optional[str]:
        return self._require_wsdl().service_name

    def operation(self, name: str) -> Operation:
        # Reject bad names before the WSDL is fetched.
        validate_name(name)
        return Operation.create(name, self.wsdl, self.options, self.transport)

    def request(self, name: str, **local_options) -> HTTPRequest:
        return self.operation(name).request(**local_options)

    def call(self, name: str, **local_options) -> Response:
        logger.debug(f"Calling SOAP operation {name!r}")
        return self.operation(name).call(**local_options)
