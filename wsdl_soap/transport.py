# wsdl_soap/transport.py
import logging
from typing import Dict, Optional

import requests
from pydantic import BaseModel

from .config import GlobalOptions
from .exceptions import HTTPError

logger = logging.getLogger(__name__)


class HTTPRequest(BaseModel):
    """A request ready to be sent; Operation.request() returns one without sending it."""
    url: str
    headers: Dict[str, str] = {}
    body: bytes = b""

    @property
    def soap_action(self) -> Optional[str]:
        return self.headers.get("SOAPAction")


class Transport:
    """Sends SOAP requests with requests. No retries: one failure, one HTTPError."""

    def __init__(self, options: GlobalOptions, session: Optional[requests.Session] = None):
        self.options = options
        self.session = session or requests.Session()

    def post(self, request: HTTPRequest) -> requests.Response:
        try:
            return self.session.post(
                request.url,
                data=request.body,
                headers=request.headers,
                timeout=self.options.timeout,
                auth=self.options.basic_auth,
                verify=self.options.ssl_verify,
            )
        except requests.RequestException as e:
            logger.error(f"SOAP request to {request.url} failed: {e}")
            raise HTTPError(f"Unable to reach {request.url}: {e}") from e
