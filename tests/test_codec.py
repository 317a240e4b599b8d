"""
Tests for the document codec.

Covers value-to-markup mapping, type-driven deserialization, parsing and
the errors raised for values or markup that cannot be mapped.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from lxml import etree

from sample_models import Address, Customer, Invoice, Payload, Status
from xmlseal.codec import (
    deserialize,
    detach_prolog,
    load_document,
    parse_markup,
    root_tag_for,
    serialize,
    to_tree,
)
from xmlseal.error_handling import ArgumentError, MalformedDocumentError, MappingError, StorageError
from xmlseal.signature import sign_document


class TestSerialize:
    """Values are mapped onto child elements."""

    def test_mapping_payload(self):
        assert serialize({"id": 1, "name": "a"}) == "<Root><id>1</id><name>a</name></Root>"

    def test_dataclass_uses_class_name(self):
        assert serialize(Payload(1, "a")) == "<Payload><id>1</id><name>a</name></Payload>"

    def test_explicit_root_tag(self):
        assert serialize(Payload(1, "a"), root_tag="Root").startswith("<Root>")

    def test_xml_root_attribute(self):
        assert root_tag_for(Invoice) == "invoice"

    def test_none_fields_are_omitted(self):
        customer = Customer(1, "a", Address("Main", "Town"))
        root = to_tree(customer).getroot()

        assert root.find("email") is None
        assert root.find("address/city").text == "Town"
        assert len(root.find("tags")) == 0

    def test_scalar_formats(self):
        root = to_tree(
            {
                "flag": True,
                "off": False,
                "ratio": 0.5,
                "amount": Decimal("10.25"),
                "day": date(2024, 1, 2),
                "raw": b"\x00\x01",
                "status": Status.ACTIVE,
            }
        ).getroot()

        assert root.find("flag").text == "true"
        assert root.find("off").text == "false"
        assert root.find("ratio").text == "0.5"
        assert root.find("amount").text == "10.25"
        assert root.find("day").text == "2024-01-02"
        assert root.find("raw").text == "AAE="
        assert root.find("status").text == "ACTIVE"

    def test_list_items(self):
        root = to_tree({"values": [1, 2], "places": [Address("a", "b")]}).getroot()

        assert [child.tag for child in root.find("values")] == ["item", "item"]
        assert [child.tag for child in root.find("places")] == ["Address"]

    def test_plain_objects(self):
        class Thing:
            def __init__(self):
                self.size = 3
                self._hidden = "x"

        assert serialize(Thing()) == "<Thing><size>3</size></Thing>"

    def test_invalid_element_name(self):
        with pytest.raises(MappingError, match="element name"):
            serialize({"not valid": 1})

    def test_numeric_key(self):
        with pytest.raises(MappingError):
            serialize({1: "a"})

    def test_unsupported_value(self):
        with pytest.raises(MappingError):
            serialize({"value": object()})

    def test_none_value(self):
        with pytest.raises(ArgumentError):
            to_tree(None)


class TestDeserialize:
    """Markup is mapped back onto typed values."""

    def test_dataclass_round_trip(self):
        customer = Customer(7, "Ann", Address("Main", "Town"), tags=["x", "y"], email="a@b.c")
        assert deserialize(serialize(customer), Customer) == customer

    def test_rich_dataclass_round_trip(self):
        invoice = Invoice(
            number="INV-1",
            issued=date(2024, 5, 1),
            created_at=datetime(2024, 5, 1, 12, 30, 15),
            total=Decimal("99.90"),
            paid=False,
            status=Status.CLOSED,
            attachment=b"%PDF",
            lines=[Address("a", "b"), Address("c", "d")],
            totals={"net": 80, "tax": 19},
            point=(3, 4),
        )
        assert deserialize(serialize(invoice), Invoice) == invoice

    def test_mapping_target(self):
        assert deserialize("<Root><id>1</id><name>a</name></Root>", dict) == {"id": "1", "name": "a"}

    def test_typed_mapping_target(self):
        assert deserialize("<Root><a>1</a><b>2</b></Root>", Dict[str, int]) == {"a": 1, "b": 2}

    def test_any_target_nests_and_groups(self):
        result = deserialize("<Root><a><b>1</b></a><c>x</c><c>y</c></Root>", Any)
        assert result == {"a": {"b": "1"}, "c": ["x", "y"]}

    def test_containers(self):
        assert deserialize("<Root><item>1</item><item>2</item></Root>", List[int]) == [1, 2]
        assert deserialize("<Root><item>1</item><item>1</item></Root>", Set[int]) == {1}
        assert deserialize("<Root><item>1</item><item>a</item></Root>", Tuple[int, str]) == (1, "a")

    def test_unknown_elements_are_ignored(self):
        markup = "<Payload><id>1</id><extra>x</extra><name>a</name></Payload>"
        assert deserialize(markup, Payload) == Payload(1, "a")

    def test_signature_is_ignored(self, rsa_key):
        tree = to_tree({"id": 1, "name": "a"})
        sign_document(tree, rsa_key)

        assert deserialize(tree, dict) == {"id": "1", "name": "a"}
        assert deserialize(tree, Payload, root_tag="Root") == Payload(1, "a")

    def test_defaults_and_optionals(self):
        markup = "<Customer><id>1</id><name>a</name><address><street>s</street><city>c</city></address></Customer>"
        customer = deserialize(markup, Customer)

        assert customer.tags == []
        assert customer.email is None

    def test_empty_optional_element(self):
        @dataclass
        class Note:
            text: Optional[str]

        assert deserialize("<Note><text/></Note>", Note) == Note(None)
        assert deserialize("<Note/>", Note) == Note(None)

    def test_accepts_tree_and_element(self):
        tree = parse_markup("<Payload><id>1</id><name>a</name></Payload>")
        assert deserialize(tree, Payload) == deserialize(tree.getroot(), Payload)


class TestDeserializeErrors:
    """Shape mismatches are mapping errors."""

    def test_missing_required_field(self):
        with pytest.raises(MappingError, match="Missing element <name>"):
            deserialize("<Payload><id>1</id></Payload>", Payload)

    def test_bad_integer(self):
        with pytest.raises(MappingError, match="as int"):
            deserialize("<Payload><id>one</id><name>a</name></Payload>", Payload)

    def test_bad_boolean(self):
        with pytest.raises(MappingError):
            deserialize("<Root>maybe</Root>", bool)

    def test_unexpected_root(self):
        with pytest.raises(MappingError, match="was not expected"):
            deserialize("<Other><id>1</id><name>a</name></Other>", Payload)

    def test_nested_element_for_scalar(self):
        with pytest.raises(MappingError):
            deserialize("<Payload><id><x/></id><name>a</name></Payload>", Payload)

    def test_tuple_length_mismatch(self):
        with pytest.raises(MappingError):
            deserialize("<Root><item>1</item></Root>", Tuple[int, int])

    def test_malformed_markup(self):
        with pytest.raises(MalformedDocumentError):
            deserialize("<Payload><id>1</id>", Payload)

    def test_missing_target_type(self):
        with pytest.raises(ArgumentError):
            deserialize("<Root/>", None)


class TestParsing:
    """Markup text, bytes and files are parsed into trees."""

    def test_text_with_declaration(self):
        tree = parse_markup('<?xml version="1.0" encoding="utf-16"?><Root><a>ä</a></Root>')
        assert tree.getroot().find("a").text == "ä"

    def test_bytes_with_bom(self):
        tree = parse_markup(b"\xef\xbb\xbf<Root><a>1</a></Root>")
        assert tree.getroot().tag == "Root"

    def test_whitespace_is_preserved(self):
        tree = parse_markup("<Root>\n  <a>1</a>\n</Root>")
        assert tree.getroot().text == "\n  "

    def test_entities_are_not_resolved(self, tmp_path):
        secret = tmp_path / "secret.txt"
        secret.write_text("classified")
        markup = (
            f'<!DOCTYPE Root [<!ENTITY x SYSTEM "{secret.as_uri()}">]>'
            "<Root><a>&x;</a></Root>"
        )
        tree = parse_markup(markup)

        assert "classified" not in etree.tostring(tree, encoding="unicode")

    @pytest.mark.parametrize("markup", ["", "<Root>", "not markup"])
    def test_unparsable(self, markup):
        with pytest.raises(MalformedDocumentError):
            parse_markup(markup)

    def test_none(self):
        with pytest.raises(ArgumentError):
            parse_markup(None)

    def test_load_document(self, tmp_path):
        path = tmp_path / "doc.xml"
        path.write_bytes(b"<Root><a>1</a></Root>")
        assert load_document(path).getroot().find("a").text == "1"

    def test_load_missing_document(self, tmp_path):
        with pytest.raises(StorageError):
            load_document(tmp_path / "missing.xml")

    def test_detach_prolog(self):
        tree = parse_markup("<?xml version='1.0'?><?app keep?><!-- c --><Root><a/></Root>")
        detached = detach_prolog(tree)

        assert etree.tostring(detached, encoding="unicode") == "<Root><a/></Root>"
        assert "<?app keep?>" in etree.tostring(tree, encoding="unicode")
