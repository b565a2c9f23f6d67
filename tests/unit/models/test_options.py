#!/usr/bin/env python3
"""Tests for request option models."""

import pytest
from pydantic import ValidationError

from xmlgraph_api.models.models import ImportOptions, LoadOptions, XmlLoadRequest


@pytest.mark.unit
class TestLoadOptions:
    """Test suite for record loading options"""

    def test_defaults(self):
        options = LoadOptions()

        assert options.fail_on_error is True
        assert options.simple_mode is False
        assert options.allow_dtd is False
        assert options.forbid_dtd is False
        assert options.headers == {}

    def test_camel_case_aliases(self):
        options = LoadOptions.model_validate({"failOnError": False, "simpleMode": True, "allowDtd": True})

        assert options.fail_on_error is False
        assert options.simple_mode is True
        assert options.allow_dtd is True

    def test_field_names_accepted(self):
        assert LoadOptions(simple_mode=True).simple_mode is True

    def test_group_by_child_tag_mode(self):
        assert LoadOptions.model_validate({"simpleMode": "child"}).simple_mode == "child"

    @pytest.mark.parametrize("mode", ["owner", "children", 2])
    def test_unknown_simple_mode_rejected(self, mode):
        with pytest.raises(ValidationError):
            LoadOptions.model_validate({"simpleMode": mode})

    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            LoadOptions.model_validate({"simplemode": True})

    def test_request_defaults(self):
        request = XmlLoadRequest(locator="books.xml")

        assert request.path is None
        assert request.options == LoadOptions()


@pytest.mark.unit
class TestImportOptions:
    """Test suite for graph import options"""

    def test_defaults(self):
        options = ImportOptions()

        assert options.connect_characters is False
        assert options.create_next_word_relationships is False
        assert options.filter_leading_whitespace is False
        assert options.characters_rel_type == "NE"
        assert options.delimiter is None

    def test_tokenization_modes_are_exclusive(self):
        with pytest.raises(ValidationError, match="set only one"):
            ImportOptions(connectCharacters=True, createNextWordRelationships=True)

    @pytest.mark.parametrize("rel_type", ["NEXT CHAR", "1ST", "A-B", ""])
    def test_characters_rel_type_must_be_identifier(self, rel_type):
        with pytest.raises(ValidationError):
            ImportOptions(charactersRelType=rel_type)

    @pytest.mark.parametrize("delimiter", [r"[\s,;]+", "\\|", "-"])
    def test_valid_delimiters(self, delimiter):
        assert ImportOptions(delimiter=delimiter).delimiter == delimiter

    @pytest.mark.parametrize("delimiter", ["[unclosed", "(a", "*", "a{2,1}"])
    def test_invalid_delimiter_is_rejected(self, delimiter):
        """Test that a delimiter which is not a regular expression fails validation"""
        with pytest.raises(ValidationError, match="invalid delimiter pattern"):
            ImportOptions(delimiter=delimiter)
