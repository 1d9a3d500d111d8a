"""
RecipeRAG - Pipeline Exceptions
================================
Every failure the pipeline reports carries the name of the operation
that failed plus the underlying message, so callers (and the CLI) can
print something diagnosable without inspecting the chained cause.

Propagation
-----------
- ``InvalidDocument``, ``EmbeddingUnavailable`` and ``EmbeddingMalformed``
  are isolated per document during ingestion.
- Everything else propagates to the immediate caller.
"""

from __future__ import annotations


class RecipeRAGError(Exception):
    """Base class for all pipeline failures."""

    operation: str = "recipe_rag"

    def __init__(self, message: str, operation: str | None = None) -> None:
        self.message = message
        if operation is not None:
            self.operation = operation
        super().__init__(f"{self.operation}: {message}")


class InvalidDocument(RecipeRAGError):
    """The document cannot be identified (missing or blank ``name``)."""

    operation = "ingest"


class EmbeddingUnavailable(RecipeRAGError):
    """The embedding provider kept failing until retries ran out."""

    operation = "embed"


class EmbeddingMalformed(RecipeRAGError):
    """The embedding provider answered, but without a usable vector."""

    operation = "embed"


class IndexCreationFailed(RecipeRAGError):
    """The store rejected the vector index definition."""

    operation = "ensure_index"


class SearchUnavailable(RecipeRAGError):
    """The vector search query failed inside the store."""

    operation = "search"


class CompletionUnavailable(RecipeRAGError):
    """The generation model call failed."""

    operation = "answer"


class StoreUnavailable(RecipeRAGError):
    """A non-search read from the store failed (pending documents, counts)."""

    operation = "store"
