#!/usr/bin/env python3
"""Tests for the document tree and the path selector."""

import pytest
from lxml import etree

from xmlgraph_api.services.domain.xml.errors import InvalidPathExpression, MalformedDocument
from xmlgraph_api.services.domain.xml.events import ElementEnd, ElementStart, ProcessingInstruction, Text
from xmlgraph_api.services.domain.xml.parser import iter_events, parse_events
from xmlgraph_api.services.domain.xml.path_selector import compile_path, select
from xmlgraph_api.services.domain.xml.record_builder import build_record
from xmlgraph_api.services.domain.xml.tree import build_tree, replay_events

COMPUTER_BOOKS = ["bk101", "bk110", "bk111", "bk112"]

NAMESPACED = '<r xmlns:x="urn:x"><x:a id="1"><x:b/></x:a><a id="2"/></r>'


@pytest.fixture
def books(xml_fixture):
    """Document tree of the books catalog"""
    with open(xml_fixture("books.xml"), "rb") as f:
        return build_tree(iter_events(f))


def ids(elements):
    return [element.get("id") for element in elements]


@pytest.mark.unit
class TestSelect:
    """Test suite for path evaluation"""

    def test_attribute_predicate_then_child(self, books):
        """Test selecting the author of one book by id"""
        result = select(books, '/catalog/book[@id="bk102"]/author')

        assert len(result) == 1
        assert result[0].text == "Ralls, Kim"

    def test_child_value_predicate(self, books):
        """Test selecting books by the text of a child element"""
        result = select(books, '/catalog/book[genre="Computer"]')

        assert ids(result) == COMPUTER_BOOKS

    def test_child_value_predicate_then_step(self, books):
        """Test selecting the genre of the book with a given title"""
        result = select(books, '/catalog/book[title="Maeve Ascendant"]/genre')

        assert [element.text for element in result] == ["Fantasy"]

    def test_self_step(self, books):
        """Test that '.' keeps the current element"""
        result = select(books, '/catalog/book[title="Maeve Ascendant"]/.')

        assert ids(result) == ["bk103"]

    @pytest.mark.parametrize("expression", ["", "/", "  ", None])
    def test_root_selection(self, books, expression):
        """Test that empty and '/' paths select the root element"""
        result = select(books, expression)

        assert [element.tag for element in result] == ["catalog"]

    def test_relative_path_starts_at_document(self, books):
        """Test that a relative path is evaluated like an absolute one"""
        assert ids(select(books, "catalog/book")) == ids(select(books, "/catalog/book"))
        assert len(select(books, "catalog/book")) == 12

    def test_descendant_axis(self, books):
        """Test that '//' finds elements at any depth"""
        result = select(books, "//author")

        assert len(result) == 13
        assert result[0].text == "Gambardella, Matthew"

    def test_parent_step_deduplicates(self, books):
        """Test that several matches with the same parent yield it once, in order"""
        result = select(books, "//author/..")

        assert ids(result) == [f"bk1{n:02d}" for n in range(1, 13)]

    def test_position_predicate(self, books):
        """Test positional selection among matching siblings"""
        assert ids(select(books, "/catalog/book[3]")) == ["bk103"]
        assert ids(select(books, "/catalog/book[position() > 10]")) == ["bk111", "bk112"]
        assert ids(select(books, "/catalog/book[last()]")) == ["bk112"]
        assert select(books, "/catalog/book[99]") == []

    def test_position_is_per_context(self, books):
        """Test that a position counts within each parent separately"""
        result = select(books, "/catalog/book/author[2]")

        assert [element.text for element in result] == ["Arciniegas, Fabio"]

    def test_wildcard_with_attribute_predicate(self, books):
        """Test '*' combined with an attribute existence predicate"""
        assert len(select(books, "/catalog/*[@id]")) == 12

    def test_self_value_predicate(self, books):
        """Test the string-value predicate on the current element"""
        result = select(books, '//title[.="Midnight Rain"]/..')

        assert ids(result) == ["bk102"]

    def test_any_child_value_predicate(self, books):
        """Test '[*="v"]' matching any child with that text"""
        result = select(books, '/catalog/book[*="Ralls, Kim"]')

        assert ids(result) == ["bk102"]

    def test_functions_in_predicates(self, books):
        """Test XPath functions beyond plain comparisons"""
        result = select(books, '/catalog/book[contains(title, "Oberon")]')

        assert ids(result) == ["bk104"]
        assert len(select(books, "/catalog/book[number(price) > 40]")) == 2

    def test_union(self, books):
        """Test that a union yields both sets in document order"""
        result = select(books, '/catalog/book[@id="bk102"] | /catalog/book[@id="bk101"]')

        assert ids(result) == ["bk101", "bk102"]

    def test_no_match(self, books):
        """Test that a path matching nothing yields an empty list"""
        assert select(books, "/catalog/magazine") == []
        assert select(books, "/library/book") == []

    def test_results_are_deterministic(self, books):
        """Test that evaluating the same path twice gives identical results"""
        first = select(books, '/catalog/book[genre="Computer"]/title')
        second = select(books, '/catalog/book[genre="Computer"]/title')

        assert first == second

    @pytest.mark.parametrize("expression", ["/catalog/book/@id", "//title/text()", "count(//book)", "1 = 1"])
    def test_non_element_results_are_rejected(self, books, expression):
        """Test that attributes, text and scalar results are not selections"""
        with pytest.raises(InvalidPathExpression) as exc_info:
            select(books, expression)

        assert "does not select elements" in exc_info.value.reason

    def test_undeclared_prefix(self, books):
        """Test that a prefix the document never declares is reported"""
        with pytest.raises(InvalidPathExpression):
            select(books, "/q:catalog")


@pytest.mark.unit
class TestNamespaces:
    """Test suite for prefixed names in paths"""

    def test_document_prefix_selects(self):
        """Test addressing elements with a prefix declared by the document"""
        tree = build_tree(parse_events(NAMESPACED))

        assert ids(select(tree, "/r/x:a")) == ["1"]
        assert ids(select(tree, "/r/a")) == ["2"]

    def test_prefix_declared_below_root(self):
        """Test that prefixes declared on descendants are usable too"""
        tree = build_tree(parse_events('<r><y:a xmlns:y="urn:y" id="1"/></r>'))

        assert ids(select(tree, "//y:a")) == ["1"]

    def test_default_namespace_is_not_addressable(self):
        """Test that unprefixed steps only match elements in no namespace"""
        tree = build_tree(parse_events('<r xmlns="urn:d"><a/></r>'))

        assert select(tree, "/r") == []
        assert [etree.QName(element).localname for element in select(tree, "//*")] == ["r", "a"]

    def test_selected_records_keep_prefixed_names(self):
        """Test that records of selected elements use the names written in the document"""
        tree = build_tree(parse_events(NAMESPACED))
        element = select(tree, "/r/x:a")[0]

        assert build_record(replay_events(element)) == {
            "_type": "x:a",
            "id": "1",
            "_children": [{"_type": "x:b"}],
        }


@pytest.mark.unit
class TestCompilePath:
    """Test suite for path compilation"""

    @pytest.mark.parametrize("expression", [
        "/catalog/book[",
        "/catalog//",
        "/catalog/book[@]",
        '/catalog/book[@id="bk101]',
        "catalog book",
        "/catalog/book[position(]",
    ])
    def test_invalid_expressions(self, expression):
        """Test that expressions that are not XPath are rejected"""
        with pytest.raises(InvalidPathExpression) as exc_info:
            compile_path(expression)

        assert exc_info.value.expression == expression.strip()

    def test_compiled_paths_are_cached(self):
        """Test that compiling the same expression twice returns the same object"""
        assert compile_path("//book[1]") is compile_path("//book[1]")

    @pytest.mark.parametrize("expression,compiled", [
        ("catalog/book", "/catalog/book"),
        ("/catalog/book", "/catalog/book"),
        ("(//book)[1]", "(//book)[1]"),
        ("child::catalog", "/child::catalog"),
        ("text()", "/text()"),
        ("count(//book)", "count(//book)"),
        ("/", "/"),
        ("", "/"),
    ])
    def test_relative_paths_are_anchored(self, expression, compiled):
        """Test that relative paths are evaluated from the document node"""
        assert compile_path(expression).expression == compiled


@pytest.mark.unit
class TestDocumentTree:
    """Test suite for tree building and subtree replay"""

    def test_subtree_replay_rebuilds_same_record(self, books):
        """Test that replaying a selected subtree gives the same record as parsing it alone"""
        book = select(books, '/catalog/book[@id="bk103"]')[0]

        record = build_record(replay_events(book))

        assert record["_type"] == "book"
        assert record["id"] == "bk103"
        assert record["_children"][5] == {
            "_type": "description",
            "_text": "After the collapse of a nanotechnology society in England, "
                     "the young survivors lay the foundation for a new society.",
        }

    @pytest.mark.parametrize("name", ["books.xml", "databases.xml", "mixedcontent.xml", "letter.tei.xml"])
    def test_root_replay_matches_direct_build(self, xml_fixture, name):
        """Test that a document replayed from its tree gives the same record as the parse events"""
        with open(xml_fixture(name), "rb") as f:
            events = list(iter_events(f))

        assert build_record(replay_events(build_tree(events).getroot())) == build_record(events)

    def test_skipped_entities_survive_replay(self, xml_fixture):
        """Test that an absence marker is kept in the tree and replayed"""
        with open(xml_fixture("missingExternalDTD.xml"), "rb") as f:
            tree = build_tree(iter_events(f))

        assert isinstance(tree.getroot()[0], etree._Entity)
        assert build_record(replay_events(tree.getroot()), simple_mode=True) == {
            "_type": "document",
            "_document": [None, {"_type": "title", "_text": "dtd 404"}],
        }

    def test_processing_instructions_are_replayed(self):
        """Test that processing instructions inside the root element are kept in place"""
        tree = build_tree(parse_events("<?top level?><a><?pi data?><b/></a>"))

        assert list(replay_events(tree.getroot())) == [
            ElementStart("a", {}, is_self_closing=False),
            ProcessingInstruction("pi", "data"),
            ElementStart("b", {}, is_self_closing=True),
            ElementEnd("b"),
            ElementEnd("a"),
        ]

    def test_unbound_prefix(self):
        """Test that an element with an undeclared prefix is malformed"""
        with pytest.raises(MalformedDocument):
            build_tree(parse_events("<p:a/>"))

    def test_unbalanced_events(self):
        """Test that unclosed elements are reported"""
        with pytest.raises(MalformedDocument):
            build_tree([ElementStart("a"), Text("x")])

    def test_second_root(self):
        """Test that a second root element is reported"""
        events = [ElementStart("a"), ElementEnd("a"), ElementStart("b"), ElementEnd("b")]

        with pytest.raises(MalformedDocument):
            build_tree(events)
