# wsdl_soap/test_xml_generator.py
import datetime
from decimal import Decimal

import pytest
from lxml import etree

from .config import SOAP_ENVELOPE_NAMESPACES, GlobalOptions
from .exceptions import MessageError, SoapError
from .operation import ResolvedOperation, resolve
from .xml_generator import Builder, Mapping, Scalar, Sequence, build_envelope, format_scalar, to_value

TNS = "http://v1.example.com/"
ENV = SOAP_ENVELOPE_NAMESPACES[1]


def operation(**overrides) -> ResolvedOperation:
    values = dict(name="authenticate", input_tag="Authenticate", namespace=TNS,
                  endpoint="http://example.com/auth", soap_action="authenticate")
    values.update(overrides)
    return ResolvedOperation(**values)


def envelope(message=None, header=None, **options) -> str:
    return build_envelope(operation(), message, GlobalOptions(**options), header)


class TestEnvelope:

    def test_verify_address_envelope(self, taxcloud):
        options = GlobalOptions()
        resolved = resolve("verify_address", taxcloud, options)
        xml = build_envelope(resolved, {"test": "message"}, options)
        assert "<tns:VerifyAddress><tns:test>message</tns:test></tns:VerifyAddress>" in xml

    def test_xml_declaration_and_prefixes(self):
        xml = envelope({"user": "admin"})
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?><env:Envelope')
        assert 'xmlns:env="http://schemas.xmlsoap.org/soap/envelope/"' in xml
        assert f'xmlns:tns="{TNS}"' in xml
        assert 'xmlns:xsd="http://www.w3.org/2001/XMLSchema"' in xml
        assert 'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"' in xml
        assert xml.count("xmlns:tns=") == 1

    def test_empty_operation_element(self):
        assert "<env:Body><tns:Authenticate></tns:Authenticate></env:Body>" in envelope()

    def test_header_only_when_given(self):
        assert "Header" not in envelope()
        xml = envelope(header={"auth_token": "secret"})
        assert "<env:Header><authToken>secret</authToken></env:Header>" in xml

    def test_global_soap_header(self):
        xml = envelope(soap_header={"token": "abc"})
        assert "<env:Header><token>abc</token></env:Header>" in xml

    def test_header_blocks_keep_their_own_namespace(self):
        wsse = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
        xml = envelope({"user": "admin"}, header={f"{{{wsse}}}Security": {f"{{{wsse}}}UsernameToken": {"user": "admin"}}})

        security = etree.fromstring(xml.encode("utf-8")).find(f"{{{ENV}}}Header/{{{wsse}}}Security")
        assert security is not None
        assert security.find(f"{{{wsse}}}UsernameToken/user").text == "admin"
        assert "<tns:Authenticate><tns:user>admin</tns:user></tns:Authenticate>" in xml

    def test_prefixed_keys_use_the_envelope_declarations(self):
        xml = envelope({"xsd:string": "text", "tns:RawName": "kept"}, header={"tns:SessionId": "abc"})
        assert "<env:Header><tns:SessionId>abc</tns:SessionId></env:Header>" in xml
        assert "<xsd:string>text</xsd:string><tns:RawName>kept</tns:RawName>" in xml

    def test_undeclared_prefix(self):
        with pytest.raises(MessageError, match="Unknown namespace prefix 'wsse'"):
            envelope(header={"wsse:Security": {"token": "abc"}})

    def test_soap_12_envelope_namespace(self):
        xml = build_envelope(operation(soap_version=2), None, GlobalOptions())
        assert 'xmlns:env="http://www.w3.org/2003/05/soap-envelope"' in xml

    def test_custom_prefixes(self):
        xml = envelope({"user": "admin"}, namespace_identifier="auth", env_namespace="soapenv")
        assert "<soapenv:Envelope" in xml
        assert "<auth:Authenticate><auth:user>admin</auth:user></auth:Authenticate>" in xml

    def test_unqualified_children(self):
        xml = build_envelope(operation(element_form="unqualified"), {"user": "admin"}, GlobalOptions())
        assert "<tns:Authenticate><user>admin</user></tns:Authenticate>" in xml


class TestMessageValues:

    def test_keys_keep_their_order(self):
        xml = envelope({"zip_code": "71270", "city": "Ruston", "address1": "1 Main"})
        assert ("<tns:zipCode>71270</tns:zipCode><tns:city>Ruston</tns:city>"
                "<tns:address1>1 Main</tns:address1>") in xml

    @pytest.mark.parametrize("convert, tag", [
        ("none", "zip_code"),
        ("lower_camelcase", "zipCode"),
        ("camelcase", "ZipCode"),
        ("upcase", "ZIP_CODE"),
    ])
    def test_key_conversion(self, convert, tag):
        xml = envelope({"zip_code": "71270"}, convert_request_keys_to=convert)
        assert f"<tns:{tag}>71270</tns:{tag}>" in xml

    def test_scalars(self):
        xml = envelope({
            "active": True,
            "since": datetime.date(2024, 1, 2),
            "blob": b"hi",
            "amount": Decimal("10.50"),
            "count": 3,
        })
        assert "<tns:active>true</tns:active>" in xml
        assert "<tns:since>2024-01-02</tns:since>" in xml
        assert "<tns:blob>aGk=</tns:blob>" in xml
        assert "<tns:amount>10.50</tns:amount>" in xml
        assert "<tns:count>3</tns:count>" in xml

    def test_none_is_nil(self):
        assert '<tns:note xsi:nil="true"/>' in envelope({"note": None})

    def test_lists_repeat_the_element(self):
        xml = envelope({"item": [{"sku": "A"}, {"sku": "B"}]})
        assert "<tns:item><tns:sku>A</tns:sku></tns:item><tns:item><tns:sku>B</tns:sku></tns:item>" in xml

    def test_attributes(self):
        xml = envelope({"address": {"@id": 7, "city": "Ruston"}})
        assert '<tns:address id="7"><tns:city>Ruston</tns:city></tns:address>' in xml

    def test_nested_empty_mapping(self):
        assert "<tns:options></tns:options>" in envelope({"options": {}})

    def test_escaping(self):
        assert "<tns:name>Smith &amp; Sons &lt;Ltd&gt;</tns:name>" in envelope({"name": "Smith & Sons <Ltd>"})

    def test_raw_xml_message(self):
        xml = envelope("<tns:user>admin</tns:user><tns:password>secret</tns:password>")
        assert "<tns:Authenticate><tns:user>admin</tns:user><tns:password>secret</tns:password></tns:Authenticate>" in xml

    def test_raw_xml_with_special_characters_in_the_namespace(self):
        op = operation(namespace="http://example.com/auth?v=1&mode=strict")
        xml = build_envelope(op, "<tns:user>admin</tns:user>", GlobalOptions())
        assert "<tns:Authenticate><tns:user>admin</tns:user></tns:Authenticate>" in xml

    def test_malformed_raw_xml(self):
        with pytest.raises(MessageError, match="Invalid raw XML"):
            envelope("<tns:user>admin")


class TestInvalidMessages:

    def test_top_level_list_is_rejected(self):
        with pytest.raises(MessageError, match="Cannot serialize a list directly inside <Authenticate>"):
            envelope([{"a": 1}, {"b": 2}])

    @pytest.mark.parametrize("message", [
        {"bad key": 1},
        {"user": {"1st": "admin"}},
        {"{urn:x}bad key": 1},
    ])
    def test_invalid_element_names(self, message):
        with pytest.raises(MessageError, match="is not a valid XML element name"):
            envelope(message)

    def test_invalid_attribute_name(self):
        with pytest.raises(MessageError, match="not a valid XML attribute name"):
            envelope({"user": {"@bad name": "x"}})

    def test_errors_are_soap_errors(self):
        with pytest.raises(SoapError):
            envelope({"bad key": 1})


class TestValueTree:

    def test_to_value_normalizes_nested_data(self):
        value = to_value({"a": [1, None], "@lang": "en", "b": {"c": False}})
        assert value == Mapping(
            entries=(
                ("a", Sequence(items=(Scalar(text="1"), Scalar(text=None)))),
                ("b", Mapping(entries=(("c", Scalar(text="false")),))),
            ),
            attributes=(("lang", "en"),),
        )

    def test_format_scalar(self):
        assert format_scalar(None) is None
        assert format_scalar(False) == "false"
        assert format_scalar(datetime.datetime(2024, 5, 6, 7, 8, 9)) == "2024-05-06T07:08:09"
        assert format_scalar(Decimal("1E+2")) == "100"

    def test_builder_to_bytes_is_utf8(self):
        builder = Builder(operation(), GlobalOptions(), {"city": "Zürich"})
        assert "Zürich".encode("utf-8") in builder.to_bytes()
        assert str(builder) == builder.to_s()
