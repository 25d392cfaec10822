"""
SOAP client toolkit: WSDL/XSD parsing, envelope building and response decoding.
"""
from .cache import DocumentCache
from .client import Client
from .config import GlobalOptions, LocalOptions
from .exceptions import (
    ArgumentError,
    ConfigurationError,
    DecodeError,
    HTTPError,
    MessageError,
    SchemaError,
    SOAPFault,
    SoapError,
    UnknownOperationError,
)
from .loader import DocumentLoader
from .operation import Operation, ResolvedOperation, resolve
from .response import Attachment, Response, decode
from .schema_parser import SchemaParser, TypeRegistry
from .wsdl_parser import WsdlDocument, load_wsdl, parse_wsdl
from .xml_generator import Builder, build_envelope

__all__ = [
    'Client', 'DocumentCache', 'DocumentLoader', 'GlobalOptions', 'LocalOptions',
    'Operation', 'ResolvedOperation', 'resolve', 'Response', 'Attachment', 'decode',
    'SchemaParser', 'TypeRegistry', 'WsdlDocument', 'load_wsdl', 'parse_wsdl',
    'Builder', 'build_envelope',
    'SoapError', 'ArgumentError', 'ConfigurationError', 'DecodeError', 'HTTPError', 'MessageError',
    'SchemaError', 'SOAPFault', 'UnknownOperationError',
]
