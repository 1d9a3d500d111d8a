"""
RecipeRAG - RetrievalEngine
============================
Top-k similarity retrieval for a query vector.

The engine depends only on the ``VectorSearcher`` seam, so the store
behind it (and its query language) can be swapped freely.  It owns the
configured ``k`` and guarantees that raw embeddings never leave the
retrieval step: the generation model must not receive vectors.

Store failures surface as ``SearchUnavailable`` and are not retried
here; callers decide whether to retry a whole query.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from recipe_rag.config.settings import settings
from recipe_rag.src.database.vector_store import EMBEDDING_FIELD, Document, VectorSearcher
from recipe_rag.src.utils.logger import get_logger

logger = get_logger(__name__)

SearchResult = list[Document]


class RetrievalEngine:
    """
    Parameters
    ----------
    searcher
        Any ``VectorSearcher`` (normally ``RecipeVectorStore``).
    k
        Maximum results per search.  Defaults to ``settings.MAX_VECTOR_SEARCH_RESULTS``.
    """

    __slots__ = ("_searcher", "_k")

    def __init__(self, searcher: VectorSearcher, k: int | None = None) -> None:
        k = k or settings.MAX_VECTOR_SEARCH_RESULTS
        if k < 1:
            raise ValueError(f"k must be a positive integer, got {k}")
        self._searcher = searcher
        self._k = k

    @property
    def k(self) -> int:
        return self._k


    async def search(self, query_vector: Sequence[float], k: int | None = None) -> SearchResult:
        """
        Return at most *k* documents ranked by descending similarity.

        *k* defaults to the configured bound and may only lower it.
        """
        k = self._k if k is None else k
        if not 1 <= k <= self._k:
            raise ValueError(f"k must be between 1 and {self._k}, got {k}")

        t_search = time.perf_counter()
        documents = await self._searcher.vector_search(query_vector, k)

        # The store projects embeddings out; drop any that slip through.
        results: SearchResult = [{key: value for key, value in doc.items() if key != EMBEDDING_FIELD} for doc in documents[:k]]

        search_ms = (time.perf_counter() - t_search) * 1000
        logger.info("[SEARCH] %d result(s) for k=%d in %.1fms.", len(results), k, search_ms)
        return results
