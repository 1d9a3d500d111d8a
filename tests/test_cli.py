"""
Test suite for the operator CLI actions.

Actions are awaited directly against the in-memory store; the menu
loop itself (stdin) is not exercised.
"""

from types import SimpleNamespace

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from fakes import DIMS
from recipe_rag.scripts.cli import _build_rag, _vectorize
from recipe_rag.src.core.exceptions import RecipeRAGError, StoreUnavailable

_CONFIG = SimpleNamespace(VECTOR_INDEX_NAME="vectorSearchIndex", EMBEDDING_DIMENSIONS=DIMS)


class TestAsk:
    """Test cases for preparing the question-answering pipeline."""

    @pytest.mark.asyncio
    async def test_index_is_ensured_before_first_question(self, embedding_client, store, fake_collection, chat_model, pipeline, recipes):
        """Test asking on a fresh store creates the index and then answers."""
        await pipeline.ingest(recipes[:1])

        rag = await _build_rag(embedding_client, store, _CONFIG, llm=chat_model)
        result = await rag.answer("how do I make tomato soup")

        assert [command["indexes"][0]["name"] for command in fake_collection.database.commands] == ["vectorSearchIndex"]
        assert result.text.startswith("Tomato Soup")

    @pytest.mark.asyncio
    async def test_existing_index_is_not_recreated(self, embedding_client, store, fake_collection, chat_model):
        """Test preparing twice issues a single create request."""
        await _build_rag(embedding_client, store, _CONFIG, llm=chat_model)
        await _build_rag(embedding_client, store, _CONFIG, llm=chat_model)

        assert len(fake_collection.database.commands) == 1


class TestVectorize:
    """Test cases for the vectorize action."""

    @pytest.mark.asyncio
    async def test_vectorizes_pending_documents_and_builds_index(self, pipeline, store, fake_collection, recipes):
        """Test uploaded recipes end up embedded and indexed."""
        await pipeline.upload_documents(recipes)

        await _vectorize(pipeline, store, _CONFIG)

        assert await store.count_vectorized() == len(recipes)
        assert fake_collection.database.commands[0]["indexes"][0]["name"] == "vectorSearchIndex"

    @pytest.mark.asyncio
    async def test_unreachable_store_raises_domain_error(self, pipeline, store, fake_collection):
        """Test a driver failure reaches the menu loop as a RecipeRAGError."""
        fake_collection.read_error = ServerSelectionTimeoutError("no primary available")

        with pytest.raises(StoreUnavailable) as exc_info:
            await _vectorize(pipeline, store, _CONFIG)

        assert isinstance(exc_info.value, RecipeRAGError)
        assert str(exc_info.value).startswith("vectorize: ")
