"""Unit tests for identifier derivation and document serialisation."""

import json

import pytest

from recipe_rag.src.utils.text_utils import clean_text, content_fields, derive_document_id, serialize_documents, serialize_for_embedding


class TestDeriveDocumentId:
    """Test cases for derive_document_id."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Tomato Soup", "tomatosoup"),
            ("  Pad  Thai\t", "padthai"),
            ("BANANA BREAD", "bananabread"),
            ("salad", "salad"),
        ],
    )
    def test_lowercases_and_strips_whitespace(self, name, expected):
        """Test the identifier is the lower-cased name without whitespace."""
        assert derive_document_id(name) == expected

    def test_identical_names_give_identical_ids(self):
        """Test derivation is deterministic."""
        assert derive_document_id("Green Salad") == derive_document_id("Green Salad")

    @pytest.mark.parametrize("name", [None, "", "   ", 42, ["Tomato Soup"]])
    def test_unusable_names_give_none(self, name):
        """Test blank or non-string names cannot be identified."""
        assert derive_document_id(name) is None


class TestSerialisation:
    """Test cases for the JSON serialisers."""

    def test_internal_fields_are_removed(self):
        """Test _id and embedding never reach embedding input or prompt."""
        document = {"_id": "tomatosoup", "name": "Tomato Soup", "embedding": [0.1, 0.2]}

        assert content_fields(document) == {"name": "Tomato Soup"}
        assert "embedding" not in serialize_for_embedding(document)
        assert json.loads(serialize_documents([document])[0]) == {"name": "Tomato Soup"}

    def test_embedding_input_ignores_key_order(self):
        """Test identical content yields an identical embedding request."""
        a = {"name": "Tomato Soup", "ingredients": ["tomatoes"]}
        b = {"ingredients": ["tomatoes"], "name": "Tomato Soup"}

        assert serialize_for_embedding(a) == serialize_for_embedding(b)

    def test_documents_keep_rank_order(self):
        """Test one JSON line per document, in the given order."""
        lines = serialize_documents([{"name": "A"}, {"name": "B"}])

        assert [json.loads(line)["name"] for line in lines] == ["A", "B"]


class TestCleanText:
    """Test cases for clean_text."""

    def test_collapses_whitespace_and_strips_control_chars(self):
        """Test horizontal whitespace collapses and zero-width chars vanish."""
        assert clean_text("  Tomato\u200b   Soup \t\n  slow  simmer ") == "Tomato Soup\nslow simmer"
