# wsdl_soap/wsdl_parser.py
import logging
from typing import Dict, List, Optional, Set, Tuple, Union

from lxml import etree
from pydantic import BaseModel, ConfigDict

from .config import WSDL_NS, WSDL_SOAP11_NS, WSDL_SOAP12_NS, XSD_NS
from .exceptions import SchemaError, UnknownOperationError
from .loader import DocumentLoader, join_location
from .naming import snakecase
from .schema_parser import ComplexType, SchemaParser, SimpleType, TypeRegistry, resolve_qname

logger = logging.getLogger(__name__)

NAMESPACES = {
    'wsdl': WSDL_NS,
    'soap': WSDL_SOAP11_NS,
    'soap12': WSDL_SOAP12_NS,
    'xsd': XSD_NS,
}


class Part(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    element: Optional[str] = None
    type: Optional[str] = None


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    parts: Tuple[Part, ...] = ()


class PortTypeOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    input: Optional[str] = None
    output: Optional[str] = None


class PortType(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    operations: Tuple[PortTypeOperation, ...] = ()


class BindingOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    soap_action: Optional[str] = None
    style: Optional[str] = None
    input_namespace: Optional[str] = None


class Binding(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    port_type: Optional[str] = None
    style: str = "document"
    soap_version: Optional[int] = None
    operations: Dict[str, BindingOperation] = {}


class Port(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    binding: Optional[str] = None
    address: str


class Service(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    ports: Tuple[Port, ...] = ()


class WsdlOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    input: Optional[str] = None
    output: Optional[str] = None
    soap_action: Optional[str] = None
    style: str = "document"
    binding: Optional[str] = None
    port_type: Optional[str] = None
    input_namespace: Optional[str] = None
    soap_version: int = 1


class WsdlDocument(BaseModel):
    """Operation catalog of a parsed WSDL, keyed by snake_case identifier."""
    model_config = ConfigDict(frozen=True)

    location: Optional[str] = None
    target_namespace: Optional[str] = None
    service_name: Optional[str] = None
    messages: Dict[str, Message] = {}
    port_types: Dict[str, PortType] = {}
    bindings: Dict[str, Binding] = {}
    services: Tuple[Service, ...] = ()
    operations: Dict[str, WsdlOperation] = {}
    type_registry: TypeRegistry = TypeRegistry()

    @property
    def namespace(self) -> Optional[str]:
        return self.target_namespace

    @property
    def endpoint(self) -> Optional[str]:
        """Address of the first service port in document order."""
        for service in self.services:
            for port in service.ports:
                return port.address
        return None

    def operation_names(self) -> Set[str]:
        return set(self.operations)

    def operation(self, name: str) -> WsdlOperation:
        try:
            return self.operations[name]
        except KeyError:
            raise UnknownOperationError(name, self.operations) from None

    def soap_action(self, name: str) -> Optional[str]:
        return self.operation(name).soap_action

    def soap_version(self, name: str) -> int:
        return self.operation(name).soap_version

    def endpoint_for(self, name: str) -> Optional[str]:
        binding = self.operation(name).binding
        for service in self.services:
            for port in service.ports:
                if port.binding == binding:
                    return port.address
        return self.endpoint

    def message(self, name: str) -> Message:
        message = self.messages.get(name)
        if message is None:
            matches = [m for qname, m in self.messages.items() if etree.QName(qname).localname == name]
            if not matches:
                raise SchemaError(f"Unknown message {name!r}", self.location)
            message = matches[0]
        return message

    def element_for(self, message: str, part: str) -> Optional[Union[ComplexType, SimpleType]]:
        """Returns the type of a message part, or None for a built-in primitive."""
        for candidate in self.message(message).parts:
            if candidate.name != part:
                continue
            if candidate.element:
                element = self.type_registry.get_element(candidate.element)
                if element is None:
                    raise SchemaError(f"Unknown element {candidate.element} in message {message!r}", self.location)
                return self.type_registry.type_of(element)
            return self.type_registry.get_type(candidate.type)
        raise SchemaError(f"Message {message!r} has no part {part!r}", self.location)

    def _input_element(self, name: str) -> Optional[str]:
        operation = self.operation(name)
        if operation.style != "document" or not operation.input or operation.input not in self.messages:
            return None
        for part in self.messages[operation.input].parts:
            if part.element:
                return part.element
        return None

    def input_tag(self, name: str) -> str:
        element = self._input_element(name)
        return etree.QName(element).localname if element else self.operation(name).name

    def namespace_for(self, name: str) -> Optional[str]:
        element = self._input_element(name)
        if element and etree.QName(element).namespace:
            return etree.QName(element).namespace
        return self.operation(name).input_namespace or self.target_namespace

    def element_form_default(self, name: str) -> str:
        return self.type_registry.element_form(self.namespace_for(name))


# --- Parsing ---

class _Definitions:
    """Collects definitions from a WSDL and its wsdl:imports; first one wins."""

    def __init__(self, loader: DocumentLoader):
        self.loader = loader
        self.target_namespace: Optional[str] = None
        self.service_name: Optional[str] = None
        self.messages: Dict[str, Message] = {}
        self.port_types: Dict[str, PortType] = {}
        self.bindings: Dict[str, Binding] = {}
        self.services: List[Service] = []
        self.schema_documents: List[Tuple[etree._Element, Optional[str]]] = []
        self.visited: Set[str] = set()

    def add(self, root, location: Optional[str]):
        if location:
            self.visited.add(location)
        if root.tag == f"{{{XSD_NS}}}schema":
            self.schema_documents.append((root, location))
            return
        if root.tag != f"{{{WSDL_NS}}}definitions":
            raise SchemaError(f"Expected a WSDL definitions element, got {root.tag}", location)

        namespace = root.get('targetNamespace')
        if self.target_namespace is None:
            self.target_namespace = namespace

        for imported in root.findall('wsdl:import', NAMESPACES):
            self._import(imported.get('location'), location)

        self.schema_documents.append((root, location))

        for message in root.findall('wsdl:message', NAMESPACES):
            qname = _qname(namespace, message.get('name'))
            parts = tuple(
                Part(
                    name=part.get('name'),
                    element=resolve_qname(part, part.get('element'), location),
                    type=resolve_qname(part, part.get('type'), location),
                )
                for part in message.findall('wsdl:part', NAMESPACES)
            )
            self.messages.setdefault(qname, Message(name=message.get('name'), parts=parts))

        for port_type in root.findall('wsdl:portType', NAMESPACES):
            operations = []
            for op in port_type.findall('wsdl:operation', NAMESPACES):
                input_tag = op.find('wsdl:input', NAMESPACES)
                output_tag = op.find('wsdl:output', NAMESPACES)
                operations.append(PortTypeOperation(
                    name=op.get('name'),
                    input=resolve_qname(input_tag, input_tag.get('message'), location) if input_tag is not None else None,
                    output=resolve_qname(output_tag, output_tag.get('message'), location) if output_tag is not None else None,
                ))
            qname = _qname(namespace, port_type.get('name'))
            self.port_types.setdefault(qname, PortType(name=port_type.get('name'), operations=tuple(operations)))

        for binding in root.findall('wsdl:binding', NAMESPACES):
            qname = _qname(namespace, binding.get('name'))
            self.bindings.setdefault(qname, _parse_binding(binding, location))

        for service in root.findall('wsdl:service', NAMESPACES):
            if self.service_name is None:
                self.service_name = service.get('name')
            ports = []
            for port in service.findall('wsdl:port', NAMESPACES):
                soap_address = port.find('soap:address', NAMESPACES)
                if soap_address is None:
                    soap_address = port.find('soap12:address', NAMESPACES)
                if soap_address is None or not soap_address.get('location'):
                    continue
                ports.append(Port(
                    name=port.get('name'),
                    binding=resolve_qname(port, port.get('binding'), location),
                    address=soap_address.get('location'),
                ))
            self.services.append(Service(name=service.get('name'), ports=tuple(ports)))

    def _import(self, import_location: Optional[str], base: Optional[str]):
        if not import_location:
            return
        key = join_location(base, import_location)
        if key in self.visited:
            return
        logger.debug(f"Resolving WSDL import: {key}")
        root, location = self.loader.load_xml(import_location, base)
        self.add(root, location or key)


def _qname(namespace: Optional[str], name: Optional[str]) -> str:
    if not name:
        raise SchemaError("WSDL definition without a name attribute")
    return etree.QName(namespace, name).text if namespace else name


def _parse_binding(binding, location: Optional[str]) -> Binding:
    soap_version, style = None, "document"
    soap_binding = binding.find('soap:binding', NAMESPACES)
    if soap_binding is not None:
        soap_version = 1
    else:
        soap_binding = binding.find('soap12:binding', NAMESPACES)
        if soap_binding is not None:
            soap_version = 2
    if soap_binding is not None:
        style = soap_binding.get('style', 'document')

    prefix = 'soap' if soap_version != 2 else 'soap12'
    operations = {}
    for op in binding.findall('wsdl:operation', NAMESPACES):
        soap_op = op.find(f'{prefix}:operation', NAMESPACES)
        body = op.find(f'wsdl:input/{prefix}:body', NAMESPACES)
        operations[op.get('name')] = BindingOperation(
            name=op.get('name'),
            soap_action=soap_op.get('soapAction') if soap_op is not None else None,
            style=soap_op.get('style') if soap_op is not None else None,
            input_namespace=body.get('namespace') if body is not None else None,
        )

    return Binding(
        name=binding.get('name'),
        port_type=resolve_qname(binding, binding.get('type'), location),
        style=style,
        soap_version=soap_version,
        operations=operations,
    )


def _match(qname: Optional[str], definitions: Dict) -> Optional[str]:
    """Finds the definition a reference points to.

    Unprefixed references in documents without a default namespace carry no
    namespace; they fall back to a unique definition with the same local name.
    """
    if qname is None or qname in definitions:
        return qname
    localname = etree.QName(qname).localname
    matches = [key for key in definitions if etree.QName(key).localname == localname]
    return matches[0] if len(matches) == 1 else qname


def _build_catalog(definitions: _Definitions) -> Dict[str, WsdlOperation]:
    catalog: Dict[str, WsdlOperation] = {}
    bindings = sorted(definitions.bindings.items(), key=lambda item: item[1].soap_version is None)

    for port_type_qname, port_type in definitions.port_types.items():
        for op in port_type.operations:
            identifier = snakecase(op.name)
            if identifier in catalog:
                if catalog[identifier].name != op.name:
                    logger.warning(
                        f"Operation {op.name!r} is unreachable: its identifier {identifier!r} "
                        f"already names {catalog[identifier].name!r}"
                    )
                continue
            binding_qname, binding, binding_op = None, None, None
            for qname, candidate in bindings:
                if _match(candidate.port_type, definitions.port_types) == port_type_qname and op.name in candidate.operations:
                    binding_qname, binding, binding_op = qname, candidate, candidate.operations[op.name]
                    break
            catalog[identifier] = WsdlOperation(
                name=op.name,
                input=_match(op.input, definitions.messages),
                output=_match(op.output, definitions.messages),
                soap_action=binding_op.soap_action if binding_op else None,
                style=(binding_op.style if binding_op and binding_op.style else None) or (binding.style if binding else "document"),
                binding=binding_qname,
                port_type=port_type_qname,
                input_namespace=binding_op.input_namespace if binding_op else None,
                soap_version=(binding.soap_version if binding and binding.soap_version else 1),
            )
    return catalog


def parse_wsdl(root, loader: Optional[DocumentLoader] = None, location: Optional[str] = None) -> WsdlDocument:
    """Parses a WSDL document, its wsdl:imports and its schemas."""
    loader = loader or DocumentLoader()
    definitions = _Definitions(loader)
    definitions.add(root, location)

    type_registry = SchemaParser(loader).parse(definitions.schema_documents)
    operations = _build_catalog(definitions)
    services = tuple(
        service.model_copy(update={"ports": tuple(
            port.model_copy(update={"binding": _match(port.binding, definitions.bindings)})
            for port in service.ports
        )})
        for service in definitions.services
    )
    logger.debug(f"Parsed WSDL {location or '<inline>'}: {len(operations)} operations")

    return WsdlDocument(
        location=location,
        target_namespace=definitions.target_namespace,
        service_name=definitions.service_name,
        messages=definitions.messages,
        port_types=definitions.port_types,
        bindings=definitions.bindings,
        services=services,
        operations=operations,
        type_registry=type_registry,
    )


def load_wsdl(source, loader: Optional[DocumentLoader] = None) -> WsdlDocument:
    """Loads and parses a WSDL from a URL, a local path or inline XML."""
    loader = loader or DocumentLoader()
    root, location = loader.load_xml(source)
    return parse_wsdl(root, loader, location)
