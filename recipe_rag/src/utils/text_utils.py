"""
RecipeRAG - Text Utilities
===========================
Helpers for document identifiers, text normalisation, and the JSON
serialisation used both for embedding input and for the prompt context.

These utilities are stateless and side-effect-free.
"""

from __future__ import annotations

import json
import re
import unicodedata
from collections.abc import Iterable, Mapping

# Fields that never take part in embedding input or prompt context.
_INTERNAL_FIELDS = frozenset({"_id", "embedding"})

# Control characters, BOM, zero-width characters and soft hyphens.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """
    Normalise a raw text field from a recipe file.

    NFC-normalises, strips non-printable characters, collapses runs of
    horizontal whitespace (newlines are kept) and trims every line.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(lines).strip()


def derive_document_id(name: object) -> str | None:
    """
    Derive the stable document identifier from a recipe name.

    The name is lower-cased and every whitespace character removed::

        "Tomato Soup"     → "tomatosoup"
        "  Pad  Thai\\t"  → "padthai"

    Returns ``None`` when *name* is not a string or is blank, so the
    caller can decide how to report the unidentifiable document.
    """
    if not isinstance(name, str):
        return None
    identifier = _WHITESPACE_RE.sub("", name).lower()
    return identifier or None


def content_fields(document: Mapping[str, object]) -> dict[str, object]:
    """Return *document* without the store-internal fields."""
    return {key: value for key, value in document.items() if key not in _INTERNAL_FIELDS}


def serialize_for_embedding(document: Mapping[str, object]) -> str:
    """
    Canonical JSON of a document's content fields.

    Keys are sorted so identical content always yields an identical
    embedding request.
    """
    return json.dumps(content_fields(document), sort_keys=True, ensure_ascii=False, default=str)


def serialize_documents(documents: Iterable[Mapping[str, object]]) -> list[str]:
    """Serialise each retrieved document to one JSON line for the prompt context."""
    return [json.dumps(content_fields(doc), ensure_ascii=False, default=str) for doc in documents]
