"""
RecipeRAG - RecipeVectorStore
==============================
Async wrapper around the recipe collection in a MongoDB-compatible
store with native vector search (Azure Cosmos DB for MongoDB vCore,
``cosmosSearch``).  It provides:
  • Idempotent vector index creation (``ensure_index``)
  • Atomic per-document upserts keyed by identifier
  • Top-k vector search with the ``embedding`` field projected out
  • Lookups used by the operator CLI (pending documents, counts)

Design decisions:
  • **Singleton client** — ``_get_mongo_client()`` caches one
    ``AsyncIOMotorClient`` per process.
  • **Dependency Injection** — the collection can be injected, which
    keeps the store testable against an in-memory double.
  • **Narrow search seam** — the aggregation pipeline is private to
    ``vector_search``; retrieval code only sees ``VectorSearcher``.
  • The ANN index belongs to the store; nothing here ranks vectors.

Collection schema::

    {
        "_id": str,                 # derived from name, e.g. "tomatosoup"
        "name": str,
        ...free-form recipe fields...,
        "embedding": [float, ...]   # absent until vectorized
    }

Usage:
    from recipe_rag.src.database.vector_store import RecipeVectorStore
    store = RecipeVectorStore()
    await store.ensure_index(settings.VECTOR_INDEX_NAME, "cosine", 1536)
    docs = await store.vector_search(query_vector, k=3)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import motor.motor_asyncio
from pymongo.errors import PyMongoError

from recipe_rag.config.settings import settings
from recipe_rag.src.core.exceptions import IndexCreationFailed, SearchUnavailable, StoreUnavailable
from recipe_rag.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
Document = dict[str, object]

# ── Constants ──────────────────────────────────────────────────────────
EMBEDDING_FIELD = "embedding"

# Metric names accepted by ensure_index → cosmosSearch similarity codes
_SIMILARITY_CODES: dict[str, str] = {
    "cosine": "COS",
    "euclidean": "L2",
    "inner_product": "IP",
}


# ── Retrieval seam ─────────────────────────────────────────────────────

@runtime_checkable
class VectorSearcher(Protocol):
    """Structural type for any store that can answer a top-k vector query."""

    async def vector_search(self, vector: Sequence[float], k: int) -> list[Document]: ...


# ══════════════════════════════════════════════════════════════════════
#  MONGODB SINGLETON CLIENT
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def _get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


class RecipeVectorStore:
    """
    High-level abstraction over the recipe collection.

    Parameters
    ----------
    collection
        Optional ``AsyncIOMotorCollection`` (or a compatible double).
        Defaults to ``settings.MONGO_COLLECTION_NAME`` in
        ``settings.MONGO_DB_NAME`` on the singleton client.
    """

    __slots__ = ("_collection",)

    def __init__(self, collection: motor.motor_asyncio.AsyncIOMotorCollection | None = None) -> None:
        if collection is None:
            db = _get_mongo_client()[settings.MONGO_DB_NAME]
            collection = db[settings.MONGO_COLLECTION_NAME]
        self._collection = collection

    @property
    def collection_name(self) -> str:
        return self._collection.name

    # ══════════════════════════════════════════════════════════════════
    #  VECTOR INDEX MANAGEMENT
    # ══════════════════════════════════════════════════════════════════

    async def list_index_names(self) -> list[str]:
        """Return the names of all indexes on the collection."""
        indexes = await self._collection.list_indexes().to_list(length=None)
        return [ix["name"] for ix in indexes]


    async def ensure_index(self, name: str, metric: str = "cosine", dimensions: int | None = None) -> bool:
        """
        Create the vector index *name* unless it already exists.

        Parameters
        ----------
        name
            Index name, e.g. ``settings.VECTOR_INDEX_NAME``.
        metric
            Similarity metric; ``"cosine"`` for the embedding client's vectors.
        dimensions
            Vector length.  Defaults to ``settings.EMBEDDING_DIMENSIONS``.

        Returns
        -------
        bool
            ``True`` if the index was created, ``False`` if it already existed.

        Raises
        ------
        IndexCreationFailed
            Unknown metric, a non-ok reply, or a driver error.  Not retried:
            these point at configuration, not at a transient condition.
        """
        similarity = _SIMILARITY_CODES.get(metric.lower())
        if similarity is None:
            raise IndexCreationFailed(f"unsupported similarity metric '{metric}'")
        dimensions = dimensions or settings.EMBEDDING_DIMENSIONS

        try:
            existing = await self.list_index_names()
        except PyMongoError as exc:
            logger.error("[INDEX] Could not list indexes on '%s': %s", self.collection_name, exc)
            raise IndexCreationFailed(f"could not list indexes on '{self.collection_name}': {exc}") from exc

        if name in existing:
            logger.info("[INDEX] Vector index '%s' already exists on '%s'.", name, self.collection_name)
            return False

        command = {
            "createIndexes": self.collection_name,
            "indexes": [
                {
                    "name": name,
                    "key": {EMBEDDING_FIELD: "cosmosSearch"},
                    "cosmosSearchOptions": {
                        "kind": settings.VECTOR_INDEX_KIND,
                        "numLists": settings.VECTOR_INDEX_NUM_LISTS,
                        "similarity": similarity,
                        "dimensions": dimensions,
                    },
                }
            ],
        }

        logger.info("[INDEX] Creating vector index '%s' (%s, %d dims) on '%s'.", name, similarity, dimensions, self.collection_name)
        try:
            result = await self._collection.database.command(command)
        except PyMongoError as exc:
            logger.error("[INDEX] Store rejected index '%s': %s", name, exc)
            raise IndexCreationFailed(f"store rejected index '{name}': {exc}") from exc

        if result.get("ok") != 1:
            logger.error("[INDEX] Index '%s' creation returned non-ok status: %s", name, result)
            raise IndexCreationFailed(f"index '{name}' creation returned status {result.get('ok')}: {result.get('errmsg', 'no error message')}")

        logger.info("[INDEX] Vector index '%s' created.", name)
        return True

    # ══════════════════════════════════════════════════════════════════
    #  WRITES
    # ══════════════════════════════════════════════════════════════════

    async def upsert(self, document_id: str, document: Document) -> None:
        """
        Replace-or-insert *document* under ``_id == document_id``.

        ``replace_one`` swaps the whole document in one operation, so
        readers never observe a partially written recipe.
        """
        body = {**document, "_id": document_id}
        await self._collection.replace_one({"_id": document_id}, body, upsert=True)
        logger.debug("[STORE] Upserted '%s'.", document_id)

    # ══════════════════════════════════════════════════════════════════
    #  READS
    # ══════════════════════════════════════════════════════════════════

    async def vector_search(self, vector: Sequence[float], k: int) -> list[Document]:
        """
        Return the *k* documents closest to *vector*, best match first.

        The ``embedding`` field is excluded from the projection.

        Raises
        ------
        SearchUnavailable
            The store raised a data-access error.
        """
        pipeline = [
            {"$search": {"cosmosSearch": {"vector": list(vector), "path": EMBEDDING_FIELD, "k": k}, "returnStoredSource": True}},
            {"$project": {EMBEDDING_FIELD: 0}},
        ]
        try:
            return await self._collection.aggregate(pipeline).to_list(length=k)
        except PyMongoError as exc:
            logger.error("[SEARCH] Vector search on '%s' failed: %s", self.collection_name, exc)
            raise SearchUnavailable(f"vector search on '{self.collection_name}' failed: {exc}") from exc


    async def find_documents_to_vectorize(self, limit: int = 0) -> list[Document]:
        """Return stored documents that have no embedding yet."""
        cursor = self._collection.find({EMBEDDING_FIELD: {"$exists": False}})
        if limit:
            cursor = cursor.limit(limit)
        try:
            return await cursor.to_list(length=None)
        except PyMongoError as exc:
            logger.error("[STORE] Listing pending documents in '%s' failed: %s", self.collection_name, exc)
            raise StoreUnavailable(f"listing pending documents in '{self.collection_name}' failed: {exc}", operation="vectorize") from exc


    async def count(self) -> int:
        """Return the total number of documents in the collection."""
        return await self._count({})


    async def count_vectorized(self) -> int:
        """Return the number of documents that carry an embedding."""
        return await self._count({EMBEDDING_FIELD: {"$exists": True}})


    async def _count(self, query: dict[str, object]) -> int:
        try:
            return await self._collection.count_documents(query)
        except PyMongoError as exc:
            logger.error("[STORE] Counting documents in '%s' failed: %s", self.collection_name, exc)
            raise StoreUnavailable(f"counting documents in '{self.collection_name}' failed: {exc}", operation="count") from exc


    def __repr__(self) -> str:
        return f"RecipeVectorStore(collection='{self.collection_name}')"
