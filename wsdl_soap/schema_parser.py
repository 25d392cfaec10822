# wsdl_soap/schema_parser.py
import logging
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple, Union

from lxml import etree
from pydantic import BaseModel, ConfigDict

from .config import SOAP_ENCODING_NS, XSD_NS
from .exceptions import SchemaError
from .loader import DocumentLoader, join_location

logger = logging.getLogger(__name__)

XML_NS = "http://www.w3.org/XML/1998/namespace"
BUILTIN_NAMESPACES = {XSD_NS, SOAP_ENCODING_NS, XML_NS}

# Unprefixed references to these names in schemas without a default
# namespace still mean the XSD built-ins.
XSD_BUILTINS = {
    "anyType", "anySimpleType", "string", "normalizedString", "token", "language",
    "Name", "NCName", "ID", "IDREF", "IDREFS", "ENTITY", "ENTITIES", "NMTOKEN",
    "NMTOKENS", "QName", "NOTATION", "anyURI", "boolean", "base64Binary",
    "hexBinary", "decimal", "integer", "nonPositiveInteger", "negativeInteger",
    "long", "int", "short", "byte", "nonNegativeInteger", "unsignedLong",
    "unsignedInt", "unsignedShort", "unsignedByte", "positiveInteger", "float",
    "double", "duration", "dateTime", "time", "date", "gYearMonth", "gYear",
    "gMonthDay", "gDay", "gMonth",
}

ANY_TYPE = etree.QName(XSD_NS, "anyType").text


def resolve_qname(node, value: Optional[str], location: Optional[str] = None) -> Optional[str]:
    """Turns a prefixed attribute value like ``tns:Foo`` into Clark notation."""
    if not value:
        return None
    prefix, _, local = value.strip().rpartition(":")
    namespace = node.nsmap.get(prefix or None)
    if prefix and namespace is None:
        raise SchemaError(f"Undeclared namespace prefix {prefix!r} in {value!r}", location)
    return etree.QName(namespace, local).text if namespace else local


def is_builtin(qname: Optional[str]) -> bool:
    if not qname:
        return False
    name = etree.QName(qname)
    if name.namespace is None:
        return name.localname in XSD_BUILTINS
    return name.namespace in BUILTIN_NAMESPACES


# --- Schema Models ---

class Attribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: Optional[str] = None
    use: str = "optional"


class SimpleType(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    namespace: Optional[str] = None
    base: Optional[str] = None
    variety: str = "atomic"
    enumeration: Tuple[str, ...] = ()
    member_types: Tuple[str, ...] = ()

    @property
    def qname(self) -> Optional[str]:
        return _clark(self.namespace, self.name) if self.name else None


class GroupRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    ref: str


class Element(BaseModel):
    """An element declaration. ``type`` is looked up in the registry on demand."""
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: Optional[str] = None
    type: Optional[str] = None
    ref: Optional[str] = None
    min_occurs: int = 1
    max_occurs: Union[int, str] = 1
    nillable: bool = False
    form: str = "unqualified"
    complex_type: Optional["ComplexType"] = None
    simple_type: Optional[SimpleType] = None

    @property
    def qname(self) -> str:
        return _clark(self.namespace, self.name)

    @property
    def repeated(self) -> bool:
        return self.max_occurs == "unbounded" or self.max_occurs > 1


class ComplexType(BaseModel):
    """A complex type.

    ``elements`` holds what the type itself declares, ``children`` the
    effective sequence once base types and groups are resolved.
    """
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    namespace: Optional[str] = None
    base: Optional[str] = None
    derivation: Optional[str] = None
    content: str = "complex"
    elements: Tuple[Union[Element, GroupRef], ...] = ()
    attributes: Tuple[Attribute, ...] = ()
    attribute_groups: Tuple[str, ...] = ()
    children: Tuple[Element, ...] = ()
    abstract: bool = False
    mixed: bool = False

    @property
    def qname(self) -> Optional[str]:
        return _clark(self.namespace, self.name) if self.name else None


class Group(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: Optional[str] = None
    elements: Tuple[Union[Element, GroupRef], ...] = ()


class AttributeGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: Optional[str] = None
    attributes: Tuple[Attribute, ...] = ()
    attribute_groups: Tuple[str, ...] = ()


Element.model_rebuild()


class TypeRegistry(BaseModel):
    """Flat, namespace-qualified view over every parsed schema document."""
    model_config = ConfigDict(frozen=True)

    complex_types: Dict[str, ComplexType] = {}
    simple_types: Dict[str, SimpleType] = {}
    elements: Dict[str, Element] = {}
    element_forms: Dict[str, str] = {}

    @property
    def types(self) -> Dict[str, Union[ComplexType, SimpleType]]:
        return {**self.simple_types, **self.complex_types}

    def get_type(self, qname: Optional[str]) -> Optional[Union[ComplexType, SimpleType]]:
        if qname is None:
            return None
        return self.complex_types.get(qname) or self.simple_types.get(qname)

    def get_element(self, qname: str) -> Optional[Element]:
        return self.elements.get(qname)

    def type_of(self, element: Element) -> Optional[Union[ComplexType, SimpleType]]:
        """Returns the element's type, or None when it is a built-in primitive."""
        if element.ref:
            target = self.elements.get(element.ref)
            return self.type_of(target) if target else None
        if element.complex_type is not None:
            return element.complex_type
        if element.simple_type is not None:
            return element.simple_type
        return self.get_type(element.type)

    def children_of(self, element: Element) -> Tuple[Element, ...]:
        type_ = self.type_of(element)
        return type_.children if isinstance(type_, ComplexType) else ()

    def is_builtin(self, qname: Optional[str]) -> bool:
        return is_builtin(qname)

    def element_form(self, namespace: Optional[str]) -> str:
        return self.element_forms.get(namespace or "", "unqualified")


# --- Parsing ---

def _clark(namespace: Optional[str], name: str) -> str:
    return etree.QName(namespace, name).text if namespace else name


def _localname(node) -> str:
    return etree.QName(node).localname


def _xsd_children(node):
    for child in node:
        if isinstance(child.tag, str) and etree.QName(child).namespace == XSD_NS:
            yield child


def _is_schema(node) -> bool:
    return isinstance(node.tag, str) and node.tag == f"{{{XSD_NS}}}schema"


def _max_occurs(value: Optional[str]) -> Union[int, str]:
    if value is None:
        return 1
    return "unbounded" if value == "unbounded" else int(value)


class _Scope(NamedTuple):
    namespace: Optional[str]
    location: Optional[str]
    element_form: str
    chameleon: bool = False


class SchemaParser:
    """Parses <xsd:schema> blocks, and everything they import, into a TypeRegistry."""

    def __init__(self, loader: Optional[DocumentLoader] = None):
        self.loader = loader or DocumentLoader()

    def parse(self, documents: Iterable) -> TypeRegistry:
        """Parses documents in order.

        Each item is an lxml root, or a ``(root, location)`` pair so that
        relative schemaLocations can be resolved. Roots may be schemas or
        documents containing them (a WSDL).
        """
        self._reset()
        items = [doc if isinstance(doc, tuple) else (doc, None) for doc in documents]
        for _, location in items:
            if location:
                self._visited.add(location)
        for root, location in items:
            for schema in self._schemas_in(root):
                self._parse_schema(schema, location)
        return self._resolve()

    def _reset(self):
        self._complex: Dict[str, ComplexType] = {}
        self._simple: Dict[str, SimpleType] = {}
        self._elements: Dict[str, Element] = {}
        self._groups: Dict[str, Group] = {}
        self._attribute_groups: Dict[str, AttributeGroup] = {}
        self._element_forms: Dict[str, str] = {}
        self._visited: Set[str] = set()
        self._resolved: Dict[str, ComplexType] = {}
        self._resolving: Set[str] = set()

    @staticmethod
    def _schemas_in(root) -> List:
        if _is_schema(root):
            return [root]
        return list(root.iterfind(f".//{{{XSD_NS}}}schema"))

    def _qname(self, node, value: Optional[str], scope: _Scope) -> Optional[str]:
        qname = resolve_qname(node, value, scope.location)
        if qname and scope.chameleon and not qname.startswith("{") and qname not in XSD_BUILTINS:
            return _clark(scope.namespace, qname)
        return qname

    def _register(self, registry: dict, qname: str, definition) -> None:
        # First definition wins; re-imports of a namespace are common.
        if qname in registry:
            logger.debug(f"Ignoring duplicate schema definition: {qname}")
            return
        registry[qname] = definition

    def _parse_schema(self, schema, location: Optional[str], chameleon_ns: Optional[str] = None):
        namespace = schema.get("targetNamespace") or chameleon_ns
        element_form = schema.get("elementFormDefault", "unqualified")
        scope = _Scope(namespace, location, element_form, chameleon=chameleon_ns is not None and not schema.get("targetNamespace"))
        self._element_forms.setdefault(namespace or "", element_form)

        for child in _xsd_children(schema):
            tag = _localname(child)
            if tag == "import":
                if child.get("schemaLocation"):
                    self._load(child.get("schemaLocation"), location)
            elif tag in ("include", "redefine"):
                if child.get("schemaLocation"):
                    self._load(child.get("schemaLocation"), location, chameleon_ns=namespace)
            elif tag == "complexType":
                ct = self._parse_complex_type(child, scope, name=child.get("name"))
                self._register(self._complex, ct.qname, ct)
            elif tag == "simpleType":
                st = self._parse_simple_type(child, scope, name=child.get("name"))
                self._register(self._simple, st.qname, st)
            elif tag == "element":
                element = self._parse_element(child, scope, top_level=True)
                self._register(self._elements, element.qname, element)
            elif tag == "group":
                group = Group(name=child.get("name"), namespace=namespace,
                              elements=tuple(self._parse_content(child, scope)))
                self._register(self._groups, _clark(namespace, group.name), group)
            elif tag == "attributeGroup":
                attributes, refs = self._parse_attributes(child, scope)
                group = AttributeGroup(name=child.get("name"), namespace=namespace,
                                       attributes=tuple(attributes), attribute_groups=tuple(refs))
                self._register(self._attribute_groups, _clark(namespace, group.name), group)

    def _load(self, schema_location: str, base: Optional[str], chameleon_ns: Optional[str] = None):
        key = join_location(base, schema_location)
        if key in self._visited:
            return
        self._visited.add(key)
        logger.debug(f"Resolving schema import: {key}")
        root, location = self.loader.load_xml(schema_location, base)
        for schema in self._schemas_in(root):
            self._parse_schema(schema, location, chameleon_ns=chameleon_ns)

    def _parse_particle(self, node, scope: _Scope) -> List[Union[Element, GroupRef]]:
        """Flattens a sequence/choice/all/group particle in declaration order.

        ``all`` is recorded like ``sequence``: its any-order semantic is not kept.
        """
        tag = _localname(node)
        if tag == "element":
            return [self._parse_element(node, scope, top_level=False)]
        if tag == "group" and node.get("ref"):
            return [GroupRef(ref=self._qname(node, node.get("ref"), scope))]
        if tag in ("sequence", "choice", "all", "group"):
            return self._parse_content(node, scope)
        return []

    def _parse_content(self, node, scope: _Scope) -> List[Union[Element, GroupRef]]:
        particles: List[Union[Element, GroupRef]] = []
        for child in _xsd_children(node):
            particles.extend(self._parse_particle(child, scope))
        return particles

    def _parse_attributes(self, node, scope: _Scope) -> Tuple[List[Attribute], List[str]]:
        attributes, groups = [], []
        for child in _xsd_children(node):
            tag = _localname(child)
            if tag == "attribute":
                ref = self._qname(child, child.get("ref"), scope)
                name = child.get("name") or (etree.QName(ref).localname if ref else None)
                if not name:
                    continue
                attributes.append(Attribute(name=name, type=self._qname(child, child.get("type"), scope),
                                            use=child.get("use", "optional")))
            elif tag == "attributeGroup" and child.get("ref"):
                groups.append(self._qname(child, child.get("ref"), scope))
        return attributes, groups

    def _parse_complex_type(self, node, scope: _Scope, name: Optional[str] = None) -> ComplexType:
        base = derivation = None
        content = "complex"
        particles: List[Union[Element, GroupRef]] = []
        attributes, attribute_groups = self._parse_attributes(node, scope)

        for child in _xsd_children(node):
            tag = _localname(child)
            if tag in ("sequence", "choice", "all", "group"):
                particles.extend(self._parse_particle(child, scope))
            elif tag in ("complexContent", "simpleContent"):
                if tag == "simpleContent":
                    content = "simple"
                for derived in _xsd_children(child):
                    if _localname(derived) not in ("extension", "restriction"):
                        continue
                    derivation = _localname(derived)
                    base = self._qname(derived, derived.get("base"), scope)
                    particles.extend(self._parse_content(derived, scope))
                    more_attributes, more_groups = self._parse_attributes(derived, scope)
                    attributes.extend(more_attributes)
                    attribute_groups.extend(more_groups)

        return ComplexType(
            name=name,
            namespace=scope.namespace,
            base=base,
            derivation=derivation,
            content=content,
            elements=tuple(particles),
            attributes=tuple(attributes),
            attribute_groups=tuple(attribute_groups),
            abstract=node.get("abstract") == "true",
            mixed=node.get("mixed") == "true",
        )

    def _parse_simple_type(self, node, scope: _Scope, name: Optional[str] = None) -> SimpleType:
        base, variety, enumeration, members = None, "atomic", [], []
        for child in _xsd_children(node):
            tag = _localname(child)
            if tag == "restriction":
                base = self._qname(child, child.get("base"), scope)
                enumeration = [e.get("value") for e in _xsd_children(child) if _localname(e) == "enumeration"]
            elif tag == "list":
                variety = "list"
                base = self._qname(child, child.get("itemType"), scope)
            elif tag == "union":
                variety = "union"
                members = [self._qname(child, m, scope) for m in (child.get("memberTypes") or "").split()]
        return SimpleType(name=name, namespace=scope.namespace, base=base, variety=variety,
                          enumeration=tuple(enumeration), member_types=tuple(members))

    def _parse_element(self, node, scope: _Scope, top_level: bool) -> Element:
        occurs = {
            "min_occurs": int(node.get("minOccurs", "1")),
            "max_occurs": _max_occurs(node.get("maxOccurs")),
        }
        ref = self._qname(node, node.get("ref"), scope)
        if ref:
            ref_name = etree.QName(ref)
            return Element(name=ref_name.localname, namespace=ref_name.namespace, ref=ref,
                           form="qualified", **occurs)

        complex_type = simple_type = None
        for child in _xsd_children(node):
            if _localname(child) == "complexType":
                complex_type = self._parse_complex_type(child, scope)
            elif _localname(child) == "simpleType":
                simple_type = self._parse_simple_type(child, scope)

        type_ = self._qname(node, node.get("type"), scope)
        if type_ is None and complex_type is None and simple_type is None:
            type_ = ANY_TYPE

        return Element(
            name=node.get("name"),
            namespace=scope.namespace,
            type=type_,
            nillable=node.get("nillable") == "true",
            form="qualified" if top_level else node.get("form", scope.element_form),
            complex_type=complex_type,
            simple_type=simple_type,
            **occurs,
        )

    # --- Resolution ---

    def _resolve(self) -> TypeRegistry:
        complex_types = {qname: self._resolve_complex(qname) for qname in self._complex}
        for simple in self._simple.values():
            self._check_simple(simple)
        elements = {qname: self._resolve_element(element) for qname, element in self._elements.items()}
        logger.debug(
            f"Parsed schema: {len(complex_types)} complex types, "
            f"{len(self._simple)} simple types, {len(elements)} elements"
        )
        return TypeRegistry(
            complex_types=complex_types,
            simple_types=dict(self._simple),
            elements=elements,
            element_forms=dict(self._element_forms),
        )

    def _resolve_complex(self, qname: str) -> ComplexType:
        if qname in self._resolved:
            return self._resolved[qname]
        if qname in self._resolving:
            raise SchemaError(f"Cyclic type derivation involving {qname}")
        self._resolving.add(qname)
        resolved = self._resolve_body(self._complex[qname])
        self._resolving.discard(qname)
        self._resolved[qname] = resolved
        return resolved

    def _resolve_body(self, complex_type: ComplexType) -> ComplexType:
        own = self._expand(complex_type.elements, frozenset())
        attributes = list(complex_type.attributes) + self._expand_attributes(complex_type.attribute_groups, frozenset())
        children = own
        base = complex_type.base

        if base and base in self._complex:
            base_type = self._resolve_complex(base)
            if complex_type.derivation == "extension":
                children = list(base_type.children) + own
                attributes = list(base_type.attributes) + attributes
        elif base and not (base in self._simple or is_builtin(base)):
            raise SchemaError(f"Unable to resolve base type {base} of {complex_type.qname or 'anonymous type'}")

        for attribute in attributes:
            self._check_type(attribute.type)

        return complex_type.model_copy(update={
            "elements": tuple(own),
            "children": tuple(children),
            "attributes": tuple(attributes),
        })

    def _expand(self, particles, seen: frozenset) -> List[Element]:
        elements: List[Element] = []
        for particle in particles:
            if isinstance(particle, GroupRef):
                if particle.ref in seen:
                    raise SchemaError(f"Cyclic group reference: {particle.ref}")
                group = self._groups.get(particle.ref)
                if group is None:
                    raise SchemaError(f"Unable to resolve group {particle.ref}")
                elements.extend(self._expand(group.elements, seen | {particle.ref}))
            else:
                elements.append(self._resolve_element(particle))
        return elements

    def _expand_attributes(self, refs, seen: frozenset) -> List[Attribute]:
        attributes: List[Attribute] = []
        for ref in refs:
            if ref in seen:
                raise SchemaError(f"Cyclic attributeGroup reference: {ref}")
            group = self._attribute_groups.get(ref)
            if group is None:
                raise SchemaError(f"Unable to resolve attributeGroup {ref}")
            attributes.extend(group.attributes)
            attributes.extend(self._expand_attributes(group.attribute_groups, seen | {ref}))
        return attributes

    def _resolve_element(self, element: Element) -> Element:
        if element.ref:
            target = self._elements.get(element.ref)
            if target is None:
                raise SchemaError(f"Unable to resolve element {element.ref}")
            # Keep the ref: the target's type is looked up lazily, which
            # allows elements that (indirectly) contain themselves.
            return element.model_copy(update={"type": target.type, "nillable": element.nillable or target.nillable})

        update = {}
        if element.complex_type is not None:
            update["complex_type"] = self._resolve_body(element.complex_type)
        if element.simple_type is not None:
            self._check_simple(element.simple_type)
        self._check_type(element.type)
        return element.model_copy(update=update) if update else element

    def _check_simple(self, simple: SimpleType):
        for qname in (simple.base, *simple.member_types):
            if qname and not (qname in self._simple or is_builtin(qname)):
                raise SchemaError(f"Unable to resolve base type {qname} of {simple.qname or 'anonymous type'}")

    def _check_type(self, qname: Optional[str]):
        if qname and not (qname in self._complex or qname in self._simple or is_builtin(qname)):
            raise SchemaError(f"Unable to resolve type {qname}")
