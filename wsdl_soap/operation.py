# wsdl_soap/operation.py
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .config import SOAP_CONTENT_TYPES, GlobalOptions, LocalOptions
from .exceptions import ArgumentError, ConfigurationError, DecodeError, HTTPError, UnknownOperationError
from .log_message import log_request, log_response
from .mime import encode_related
from .naming import camelcase, lower_camelcase
from .response import Response, decode
from .transport import HTTPRequest, Transport
from .wsdl_parser import WsdlDocument
from .xml_generator import Builder

logger = logging.getLogger(__name__)


class ResolvedOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    input_tag: str
    namespace: str
    endpoint: str
    soap_action: Optional[str] = None
    soap_version: int = 1
    style: str = "document"
    element_form: str = "qualified"


def validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.isidentifier():
        raise ArgumentError(name)
    return name


def resolve(name: Any, wsdl: Optional[WsdlDocument], options: GlobalOptions,
            local_options: Optional[LocalOptions] = None) -> ResolvedOperation:
    """Works out what a call to ``name`` needs, before anything touches the network.

    SOAP action: call-time option, then the WSDL, then the lowerCamelCase
    operation name. Endpoint: call-time or global option, then the WSDL.
    Without a WSDL any identifier is accepted.
    """
    validate_name(name)
    local_options = local_options or LocalOptions()

    if wsdl is not None and name not in wsdl.operation_names():
        raise UnknownOperationError(name, wsdl.operation_names())

    if local_options.has_soap_action:
        soap_action = local_options.soap_action
    elif wsdl is not None and wsdl.soap_action(name) is not None:
        soap_action = wsdl.soap_action(name)
    else:
        soap_action = lower_camelcase(name)

    endpoint = local_options.endpoint or options.endpoint or (wsdl.endpoint_for(name) if wsdl else None)
    if not endpoint:
        raise ConfigurationError(
            f"Unable to determine the endpoint for {name!r}: "
            "set the endpoint option or use a WSDL that declares a service address"
        )

    namespace = options.namespace or (wsdl.namespace_for(name) if wsdl else None)
    if not namespace:
        raise ConfigurationError(
            f"Unable to determine the namespace for {name!r}: "
            "set the namespace option or use a WSDL with a targetNamespace"
        )

    input_tag = (local_options.message_tag or options.message_tag
                 or (wsdl.input_tag(name) if wsdl else camelcase(name)))

    return ResolvedOperation(
        name=name,
        input_tag=input_tag,
        namespace=namespace,
        endpoint=endpoint,
        soap_action=soap_action,
        soap_version=options.soap_version or (wsdl.soap_version(name) if wsdl else 1),
        style=wsdl.operation(name).style if wsdl else "document",
        element_form=(options.element_form_default
                      or (wsdl.element_form_default(name) if wsdl else None)
                      or "qualified"),
    )


class Operation:
    """A callable SOAP operation: build, request (dry run) and call."""

    def __init__(self, name: str, wsdl: Optional[WsdlDocument], options: GlobalOptions,
                 transport: Optional[Transport] = None):
        self.name = name
        self.wsdl = wsdl
        self.options = options
        self.transport = transport or Transport(options)

    @classmethod
    def create(cls, name: Any, wsdl: Optional[WsdlDocument], options: GlobalOptions,
               transport: Optional[Transport] = None) -> "Operation":
        resolve(name, wsdl, options)
        return cls(name, wsdl, options, transport)

    def resolve(self, **local_options) -> ResolvedOperation:
        return resolve(self.name, self.wsdl, self.options, LocalOptions(**local_options))

    def build(self, **local_options) -> Builder:
        local = LocalOptions(**local_options)
        operation = resolve(self.name, self.wsdl, self.options, local)
        return Builder(operation, self.options, local.message, local.soap_header)

    def request(self, **local_options) -> HTTPRequest:
        local = LocalOptions(**local_options)
        operation = resolve(self.name, self.wsdl, self.options, local)
        body = Builder(operation, self.options, local.message, local.soap_header).to_bytes()

        soap_content_type = SOAP_CONTENT_TYPES[operation.soap_version]
        content_type = f"{soap_content_type};charset=UTF-8"
        if operation.soap_version == 2 and operation.soap_action is not None:
            content_type += f';action="{operation.soap_action}"'
        if local.attachments:
            content_type, body = encode_related(body, soap_content_type, local.attachments)

        headers = {"Content-Type": content_type}
        if operation.soap_action is not None:
            headers["SOAPAction"] = f'"{operation.soap_action}"'
        headers.update(self.options.headers)
        headers.update(local.headers)
        if local.cookies:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in local.cookies.items())
        headers["Content-Length"] = str(len(body))

        return HTTPRequest(url=operation.endpoint, headers=headers, body=body)

    def call(self, **local_options) -> Response:
        request = self.request(**local_options)
        log_request(logger, self.options, request.url, request.headers, request.body)

        http = self.transport.post(request)
        log_response(logger, self.options, http.status_code, http.content)

        try:
            response = decode(http.headers.get("Content-Type"), http.content, http, self.options)
        except DecodeError as e:
            if http.status_code >= 400:
                raise HTTPError(f"HTTP error ({http.status_code})", http) from e
            raise

        if self.options.raise_errors:
            response.raise_for_errors()
        return response
