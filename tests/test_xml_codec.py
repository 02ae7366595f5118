"""Tests for the XML codec and the generated creation documents."""

from __future__ import annotations

import pytest

from adapters.adt_api.objects import CLASS_ENDPOINT, PROGRAM_ENDPOINT
from adapters.adt_api.packages import build_package_document, parse_package
from adapters.xml_codec import escape_xml, find_all, node_attr, node_text, parse_document, xml_array, xml_node
from core.domain.models import ObjectType, ResourceDescriptor

ADVERSARIAL = "Tom & Jerry <b>\"quoted\"</b> 'single' &amp;"


# =============================================================================
# Codec
# =============================================================================


class TestEscape:
    def test_escapes_all_five_metacharacters(self) -> None:
        assert escape_xml("& < > \" '") == "&amp; &lt; &gt; &quot; &apos;"

    def test_empty_and_none(self) -> None:
        assert escape_xml("") == ""
        assert escape_xml(None) == ""


class TestParseDocument:
    def test_strips_namespace_prefixes(self) -> None:
        tree = parse_document(
            '<a:root xmlns:a="urn:a" xmlns:b="urn:b" a:name="X"><b:child b:id="1">text</b:child></a:root>'
        )
        root = tree["root"]
        assert node_attr(root, "name") == "X"
        assert node_attr(root["child"], "id") == "1"
        assert node_text(root["child"]) == "text"

    def test_text_only_leaf_collapses(self) -> None:
        tree = parse_document("<r><v>42</v></r>")
        assert tree["r"]["v"] == "42"

    def test_repeated_children_become_lists(self) -> None:
        tree = parse_document("<r><i>1</i><i>2</i><o>x</o></r>")
        assert xml_array(tree, "r", "i") == ["1", "2"]
        assert xml_array(tree, "r", "o") == ["x"]
        assert xml_array(tree, "r", "missing") == []

    def test_xml_node_takes_first_of_list(self) -> None:
        tree = parse_document('<r><i n="a"/><i n="b"/></r>')
        assert node_attr(xml_node(tree, "r", "i"), "n") == "a"

    def test_find_all_collects_nested_matches(self) -> None:
        tree = parse_document("<r><g><m>1</m></g><m>2</m><g><m>3</m><m>4</m></g></r>")
        assert sorted(find_all(tree, "m")) == ["1", "2", "3", "4"]

    def test_empty_body(self) -> None:
        assert parse_document("") == {}
        assert parse_document(None) == {}

    def test_entities_are_decoded(self) -> None:
        tree = parse_document('<r a="&quot;x&quot; &amp; y">&lt;tag&gt;</r>')
        assert node_attr(tree["r"], "a") == '"x" & y'
        assert node_text(tree["r"]) == "<tag>"


# =============================================================================
# Generated documents: escaping round trip
# =============================================================================


def _package(**overrides) -> ResourceDescriptor:
    values = dict(
        object_type=ObjectType.PACKAGE,
        name="ZDEMO",
        description="Demo",
        software_component="HOME",
        transport_layer="ZDEV",
        parent="ZPARENT",
    )
    values.update(overrides)
    return ResourceDescriptor(**values)


class TestPackageDocument:
    def test_adversarial_text_is_escaped(self) -> None:
        doc = build_package_document(_package(description=ADVERSARIAL), responsible="o'neil & <co>")
        assert ADVERSARIAL not in doc
        assert "<b>" not in doc
        for entity in ("&amp;", "&lt;", "&gt;", "&quot;", "&apos;"):
            assert entity in doc

    @pytest.mark.parametrize("field", ["description", "name", "parent", "software_component", "transport_layer"])
    def test_round_trip_recovers_original_text(self, field: str) -> None:
        value = ADVERSARIAL if field == "description" else "Z&<>\"'X"
        doc = build_package_document(_package(**{field: value}), responsible="DEVELOPER")
        pkg = parse_document(doc)["package"]
        recovered = {
            "description": node_attr(pkg, "description"),
            "name": node_attr(pkg, "name"),
            "parent": node_attr(pkg["superPackage"], "name"),
            "software_component": node_attr(pkg["transport"]["softwareComponent"], "name"),
            "transport_layer": node_attr(pkg["transport"]["transportLayer"], "name"),
        }[field]
        expected = value if field in ("description", "software_component", "transport_layer") else value.upper()
        assert recovered == expected

    def test_responsible_round_trip(self) -> None:
        doc = build_package_document(_package(), responsible="o'neil & <co>")
        assert node_attr(parse_document(doc)["package"], "responsible") == "O'NEIL & <CO>"

    def test_attribute_bearing_shape(self) -> None:
        pkg = parse_document(build_package_document(_package(application_component="BC"), responsible="DEV"))[
            "package"
        ]
        assert node_attr(pkg, "type") == "DEVC/K"
        assert node_attr(pkg, "version") == "active"
        assert node_attr(pkg["packageRef"], "name") == "ZDEMO"
        assert node_attr(pkg["attributes"], "packageType") == "development"
        assert node_attr(pkg["applicationComponent"], "name") == "BC"
        for child in ("translation", "useAccesses", "packageInterfaces", "subPackages"):
            assert child in pkg

    def test_transport_children_attribute_prefixes(self) -> None:
        doc = build_package_document(_package(), responsible="DEV")
        assert '<pak:softwareComponent adtcore:name="HOME"/>' in doc
        assert '<pak:transportLayer pak:name="ZDEV"/>' in doc

    def test_local_package_uses_tmp_transport_layer(self) -> None:
        pkg = parse_document(build_package_document(_package(transport_layer="  "), responsible="DEV"))["package"]
        assert node_attr(pkg["transport"]["transportLayer"], "name") == "$TMP"

    def test_parse_package_reads_generated_document(self) -> None:
        parsed = parse_package(build_package_document(_package(description=ADVERSARIAL), responsible="DEV"))
        assert parsed.name == "ZDEMO"
        assert parsed.description == ADVERSARIAL
        assert parsed.software_component == "HOME"
        assert parsed.transport_layer == "ZDEV"
        assert parsed.package_name == "ZPARENT"


class TestSourceObjectDocuments:
    @pytest.mark.parametrize(
        ("endpoint", "root", "object_type"),
        [(PROGRAM_ENDPOINT, "abapProgram", ObjectType.PROGRAM), (CLASS_ENDPOINT, "abapClass", ObjectType.CLASS)],
    )
    def test_round_trip(self, endpoint, root: str, object_type: ObjectType) -> None:
        descriptor = ResourceDescriptor(object_type=object_type, name="ZOBJ", description=ADVERSARIAL, parent="Z&P")
        doc = endpoint.build_document(descriptor, responsible="a<b>")
        assert ADVERSARIAL not in doc
        node = parse_document(doc)[root]
        assert node_attr(node, "description") == ADVERSARIAL
        assert node_attr(node, "responsible") == "A<B>"
        assert node_attr(node, "type") == object_type.value
        assert node_attr(node["packageRef"], "name") == "Z&P"
