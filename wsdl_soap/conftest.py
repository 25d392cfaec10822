# wsdl_soap/conftest.py
import os
from unittest.mock import Mock

import pytest
import requests

from .wsdl_parser import load_wsdl

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


def fixture_path(*parts: str) -> str:
    return os.path.join(FIXTURES, *parts)


def make_response(body, status_code: int = 200, content_type: str = "text/xml;charset=UTF-8",
                  headers=None) -> requests.Response:
    """A real requests.Response with the given body, as a session would return it."""
    response = requests.Response()
    response.status_code = status_code
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.headers["Content-Type"] = content_type
    response.headers.update(headers or {})
    response.encoding = "utf-8"
    return response


def soap11_envelope(body: str, header: str = "") -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">'
        f'<soap:Header>{header}</soap:Header>'
        f'<soap:Body>{body}</soap:Body>'
        '</soap:Envelope>'
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("SOAP_ENDPOINT", "SOAP_NAMESPACE", "SOAP_VERSION",
                 "SOAP_OPEN_TIMEOUT", "SOAP_READ_TIMEOUT", "SOAP_LOG"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def taxcloud_path() -> str:
    return fixture_path("taxcloud.wsdl")


@pytest.fixture
def taxcloud(taxcloud_path):
    return load_wsdl(taxcloud_path)


@pytest.fixture
def no_namespace():
    return load_wsdl(fixture_path("no_namespace.wsdl"))


@pytest.fixture
def orders():
    return load_wsdl(fixture_path("orders.wsdl"))


@pytest.fixture
def session() -> Mock:
    """A requests.Session stub answering every post with an empty SOAP 1.1 body."""
    session = Mock(spec=requests.Session)
    session.post.return_value = make_response(soap11_envelope(""))
    return session
