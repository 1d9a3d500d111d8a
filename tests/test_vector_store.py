"""
Test suite for RecipeVectorStore against the in-memory collection.

Covers idempotent index creation, keyed upserts, vector search
projection/ordering, and the operator lookups.
"""

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from fakes import DIMS, bag_of_words, cosine
from recipe_rag.src.core.exceptions import IndexCreationFailed, SearchUnavailable, StoreUnavailable
from recipe_rag.src.database.vector_store import RecipeVectorStore, VectorSearcher


class TestEnsureIndex:
    """Test suite for RecipeVectorStore.ensure_index()."""

    @pytest.mark.asyncio
    async def test_creates_cosine_index_when_absent(self, store, fake_collection):
        """Test a missing index is created with COS similarity and the given dimensions."""
        created = await store.ensure_index("vectorSearchIndex", "cosine", 1536)

        assert created is True
        command = fake_collection.database.commands[0]
        index = command["indexes"][0]
        assert command["createIndexes"] == "recipes"
        assert index["name"] == "vectorSearchIndex"
        assert index["key"] == {"embedding": "cosmosSearch"}
        assert index["cosmosSearchOptions"]["similarity"] == "COS"
        assert index["cosmosSearchOptions"]["dimensions"] == 1536

    @pytest.mark.asyncio
    async def test_second_call_does_not_create_again(self, store, fake_collection):
        """Test ensure_index twice performs the creation call at most once."""
        first = await store.ensure_index("vectorSearchIndex", "cosine", DIMS)
        second = await store.ensure_index("vectorSearchIndex", "cosine", DIMS)

        assert (first, second) == (True, False)
        assert len(fake_collection.database.commands) == 1

    @pytest.mark.asyncio
    async def test_non_ok_reply_raises(self, store, fake_collection):
        """Test a rejected create request raises IndexCreationFailed."""
        fake_collection.database.reply = {"ok": 0, "errmsg": "dimensions out of range"}

        with pytest.raises(IndexCreationFailed, match="dimensions out of range"):
            await store.ensure_index("vectorSearchIndex", "cosine", DIMS)

    @pytest.mark.asyncio
    async def test_driver_error_raises_without_retry(self, store, fake_collection):
        """Test a driver error is reported once, not retried."""
        fake_collection.database.error = OperationFailure("not authorized")

        with pytest.raises(IndexCreationFailed) as exc_info:
            await store.ensure_index("vectorSearchIndex", "cosine", DIMS)

        assert len(fake_collection.database.commands) == 1
        assert exc_info.value.operation == "ensure_index"

    @pytest.mark.asyncio
    async def test_unknown_metric_is_rejected_before_store_call(self, store, fake_collection):
        """Test an unsupported metric never reaches the store."""
        with pytest.raises(IndexCreationFailed):
            await store.ensure_index("vectorSearchIndex", "manhattan", DIMS)

        assert fake_collection.database.commands == []


class TestUpsert:
    """Test suite for RecipeVectorStore.upsert()."""

    @pytest.mark.asyncio
    async def test_upsert_replaces_whole_document(self, store, fake_collection):
        """Test a second upsert replaces the first one under the same _id."""
        await store.upsert("tomatosoup", {"name": "Tomato Soup", "embedding": [1.0] * DIMS})
        await store.upsert("tomatosoup", {"name": "Tomato Soup", "description": "v2"})

        assert fake_collection.docs == {"tomatosoup": {"_id": "tomatosoup", "name": "Tomato Soup", "description": "v2"}}


class TestVectorSearch:
    """Test suite for RecipeVectorStore.vector_search()."""

    async def _seed(self, store, recipes):
        for recipe in recipes:
            await store.upsert(recipe["name"].lower().replace(" ", ""), {**recipe, "embedding": bag_of_words(str(recipe))})

    @pytest.mark.asyncio
    async def test_results_are_bounded_projected_and_ranked(self, store, fake_collection, recipes):
        """Test at most k results, no embedding field, non-increasing similarity."""
        await self._seed(store, recipes)
        query = bag_of_words("noodles with peanuts and eggs")

        results = await store.vector_search(query, k=3)

        assert len(results) == 3
        assert all("embedding" not in doc for doc in results)
        scores = [cosine(query, fake_collection.docs[doc["_id"]]["embedding"]) for doc in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_pipeline_excludes_embedding(self, store, fake_collection):
        """Test the aggregation pipeline projects the embedding out."""
        await store.vector_search([0.0] * DIMS, k=2)

        pipeline = fake_collection.pipelines[0]
        assert pipeline[0]["$search"]["cosmosSearch"]["k"] == 2
        assert pipeline[0]["$search"]["cosmosSearch"]["path"] == "embedding"
        assert pipeline[-1] == {"$project": {"embedding": 0}}

    @pytest.mark.asyncio
    async def test_empty_store_returns_empty_list(self, store):
        """Test search over zero documents returns nothing."""
        assert await store.vector_search([1.0] * DIMS, k=3) == []

    @pytest.mark.asyncio
    async def test_store_error_becomes_search_unavailable(self, store, fake_collection):
        """Test data-access errors surface as SearchUnavailable."""
        fake_collection.search_error = OperationFailure("cosmosSearch not enabled")

        with pytest.raises(SearchUnavailable, match="cosmosSearch not enabled"):
            await store.vector_search([1.0] * DIMS, k=3)

    def test_store_satisfies_searcher_protocol(self, store):
        """Test RecipeVectorStore plugs into the retrieval seam."""
        assert isinstance(store, VectorSearcher)


class TestLookups:
    """Test suite for the operator lookups."""

    @pytest.mark.asyncio
    async def test_pending_and_counts(self, store):
        """Test documents without embeddings are reported as pending."""
        await store.upsert("tomatosoup", {"name": "Tomato Soup"})
        await store.upsert("padthai", {"name": "Pad Thai", "embedding": [1.0] * DIMS})

        pending = await store.find_documents_to_vectorize()

        assert [doc["_id"] for doc in pending] == ["tomatosoup"]
        assert await store.count() == 2
        assert await store.count_vectorized() == 1

    @pytest.mark.asyncio
    async def test_pending_lookup_failure_is_store_unavailable(self, store, fake_collection):
        """Test an unreachable store surfaces as a domain error, not a driver error."""
        fake_collection.read_error = ServerSelectionTimeoutError("no primary available")

        with pytest.raises(StoreUnavailable, match="no primary available") as exc_info:
            await store.find_documents_to_vectorize()

        assert exc_info.value.operation == "vectorize"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["count", "count_vectorized"])
    async def test_count_failure_is_store_unavailable(self, store, fake_collection, method):
        """Test count lookups map driver errors onto StoreUnavailable."""
        fake_collection.read_error = ServerSelectionTimeoutError("no primary available")

        with pytest.raises(StoreUnavailable) as exc_info:
            await getattr(store, method)()

        assert exc_info.value.operation == "count"
        assert str(exc_info.value).startswith("count: ")

    def test_repr_names_collection(self, fake_collection):
        """Test repr mentions the collection."""
        assert repr(RecipeVectorStore(collection=fake_collection)) == "RecipeVectorStore(collection='recipes')"
