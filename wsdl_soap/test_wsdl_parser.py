# wsdl_soap/test_wsdl_parser.py
from unittest.mock import Mock

import pytest
import requests

from .conftest import make_response
from .exceptions import HTTPError, SchemaError, UnknownOperationError
from .loader import DocumentLoader
from .schema_parser import ComplexType
from .wsdl_parser import load_wsdl

SERVICE_WSDL = """<definitions xmlns="http://schemas.xmlsoap.org/wsdl/"
     xmlns:soap="http://schemas.xmlsoap.org/wsdl/soap/"
     xmlns:tns="http://www.example.com/calculator"
     name="CalculatorService"
     targetNamespace="http://www.example.com/calculator">
    <import namespace="http://www.example.com/calculator" location="messages.wsdl"/>
    <portType name="CalculatorPortType">
        <operation name="add">
            <input message="tns:AddRequest"/>
            <output message="tns:AddResponse"/>
        </operation>
    </portType>
    <binding name="CalculatorBinding" type="tns:CalculatorPortType">
        <soap:binding style="rpc" transport="http://schemas.xmlsoap.org/soap/http"/>
        <operation name="add">
            <soap:operation soapAction="add"/>
            <input><soap:body use="literal" namespace="http://www.example.com/calculator"/></input>
            <output><soap:body use="literal" namespace="http://www.example.com/calculator"/></output>
        </operation>
    </binding>
    <service name="CalculatorService">
        <port name="CalculatorPort" binding="tns:CalculatorBinding">
            <soap:address location="http://www.example.com/calculator"/>
        </port>
    </service>
</definitions>
"""

MESSAGES_WSDL = """<definitions xmlns="http://schemas.xmlsoap.org/wsdl/"
     xmlns:xsd="http://www.w3.org/2001/XMLSchema"
     targetNamespace="http://www.example.com/calculator">
    <message name="AddRequest">
        <part name="a" type="xsd:int"/>
        <part name="b" type="xsd:int"/>
    </message>
    <message name="AddResponse">
        <part name="result" type="xsd:int"/>
    </message>
</definitions>
"""


class TestOperationCatalog:

    def test_operation_names_match_the_port_type(self, taxcloud):
        assert taxcloud.operation_names() == {"verify_address", "lookup", "ping", "get_ti_cs"}

    def test_operations_keep_the_wsdl_name(self, taxcloud):
        assert taxcloud.operations["get_ti_cs"].name == "GetTICs"
        assert taxcloud.input_tag("get_ti_cs") == "GetTICs"

    def test_soap_action(self, taxcloud):
        assert taxcloud.soap_action("verify_address") == "http://taxcloud.net/VerifyAddress"

    def test_soap_11_binding_is_preferred(self, taxcloud):
        operation = taxcloud.operation("verify_address")
        assert operation.binding == "{http://taxcloud.net}TaxCloudSoap"
        assert taxcloud.soap_version("verify_address") == 1

    def test_unknown_operation(self, taxcloud):
        with pytest.raises(UnknownOperationError) as exc_info:
            taxcloud.operation("no_such_operation")
        assert exc_info.value.operation_name == "no_such_operation"

    def test_parsing_is_idempotent(self, taxcloud, taxcloud_path):
        again = load_wsdl(taxcloud_path)
        assert again.operations == taxcloud.operations
        assert again.type_registry == taxcloud.type_registry

    def test_colliding_identifiers_are_logged(self, caplog):
        wsdl = load_wsdl("""<definitions xmlns="http://schemas.xmlsoap.org/wsdl/"
             xmlns:tns="urn:users" targetNamespace="urn:users">
            <portType name="UserPortType">
                <operation name="GetUser"/>
                <operation name="getUser"/>
            </portType>
        </definitions>""")

        assert wsdl.operations["get_user"].name == "GetUser"
        assert "Operation 'getUser' is unreachable" in caplog.text


class TestServiceMetadata:

    def test_endpoint_is_the_first_port(self, taxcloud):
        assert taxcloud.endpoint == "https://api.taxcloud.net/1.0/TaxCloud.asmx"
        assert taxcloud.endpoint_for("lookup") == "https://api.taxcloud.net/1.0/TaxCloud.asmx"

    def test_namespace_and_service_name(self, taxcloud):
        assert taxcloud.namespace == "http://taxcloud.net"
        assert taxcloud.service_name == "TaxCloud"

    def test_element_form_default(self, taxcloud):
        assert taxcloud.element_form_default("verify_address") == "qualified"

    def test_soap_12_binding(self, orders):
        assert orders.soap_version("place_order") == 2
        assert orders.soap_action("place_order") is None
        assert orders.endpoint == "http://orders.example.com/soap"
        assert orders.namespace_for("place_order") == "urn:orders"


class TestMessages:

    def test_element_for_returns_the_part_type(self, taxcloud):
        response = taxcloud.element_for("VerifyAddressSoapOut", "parameters")
        result = response.children[0]
        assert result.name == "VerifyAddressResult"

        verified = taxcloud.type_registry.type_of(result)
        assert isinstance(verified, ComplexType)
        assert [e.name for e in verified.children] == [
            "Address1", "Address2", "City", "State", "Zip5", "Zip4", "ErrNumber", "ErrDescription",
        ]

    def test_element_for_builtin_part_is_none(self, no_namespace):
        assert no_namespace.element_for("GetUserLoginById", "id") is None

    def test_element_for_unknown_part(self, taxcloud):
        with pytest.raises(SchemaError, match="no part"):
            taxcloud.element_for("VerifyAddressSoapIn", "missing")

    def test_imported_schema_types_are_available(self, orders):
        request = orders.element_for("PlaceOrderRequest", "parameters")
        assert [e.name for e in request.children] == ["Customer", "Order"]


class TestRpcWithoutNamespace:

    def test_unprefixed_references_are_resolved(self, no_namespace):
        operation = no_namespace.operation("get_user_login_by_id")
        assert operation.style == "rpc"
        assert operation.input == "{urn:ActionWebService}GetUserLoginById"
        assert operation.binding == "{urn:ActionWebService}ApiApiBinding"

    def test_rpc_input_uses_the_operation_name_and_body_namespace(self, no_namespace):
        assert no_namespace.input_tag("get_user_login_by_id") == "GetUserLoginById"
        assert no_namespace.namespace_for("get_user_login_by_id") == "urn:ActionWebService"
        assert no_namespace.soap_action("get_user_login_by_id") == "/api/api/GetUserLoginById"
        assert no_namespace.endpoint_for("get_user_login_by_id") == "http://example.com/api/api"


class TestImports:

    def test_wsdl_import_is_merged(self, tmp_path):
        (tmp_path / "service.wsdl").write_text(SERVICE_WSDL)
        (tmp_path / "messages.wsdl").write_text(MESSAGES_WSDL)

        wsdl = load_wsdl(str(tmp_path / "service.wsdl"))

        assert wsdl.operation_names() == {"add"}
        assert [p.name for p in wsdl.message("AddRequest").parts] == ["a", "b"]
        assert wsdl.soap_action("add") == "add"
        assert wsdl.service_name == "CalculatorService"

    def test_missing_wsdl_import(self, tmp_path):
        (tmp_path / "service.wsdl").write_text(SERVICE_WSDL)
        with pytest.raises(SchemaError, match="Unable to read document"):
            load_wsdl(str(tmp_path / "service.wsdl"))

    def test_remote_wsdl_error_status(self):
        session = Mock(spec=requests.Session)
        session.get.return_value = make_response("Not Found", status_code=404, content_type="text/plain")
        with pytest.raises(HTTPError) as exc_info:
            load_wsdl("http://example.com/service?wsdl", DocumentLoader(session))
        assert exc_info.value.status_code == 404


class TestInvalidDocuments:

    def test_not_a_wsdl(self):
        with pytest.raises(SchemaError, match="Expected a WSDL definitions element"):
            load_wsdl("<html><body>Not here</body></html>")

    def test_malformed_wsdl(self):
        with pytest.raises(SchemaError, match="Unable to parse XML"):
            load_wsdl(b'<definitions xmlns="http://schemas.xmlsoap.org/wsdl/"><message name="Broken">')
