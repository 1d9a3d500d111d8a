"""
Shared test fixtures and configuration for the entire test suite.

Provides: required environment variables, in-memory store, fake
embedding client, recipe documents
Dependencies: pytest, pytest-asyncio
System role: Test infrastructure and fixture management
"""

import os

# Settings are instantiated at import time; required secrets must exist first.
os.environ.setdefault("GOOGLE_API_KEY", "test-google-api-key")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("EMBEDDING_RETRY_BASE_DELAY", "0")

import pytest

from fakes import DIMS, FakeCollection, FakeEmbeddingProvider, FakeRecipeChatModel
from recipe_rag.src.core.embedding_client import EmbeddingClient
from recipe_rag.src.core.ingestor import IngestionPipeline
from recipe_rag.src.core.rag_engine import RAGManager
from recipe_rag.src.core.retriever import RetrievalEngine
from recipe_rag.src.database.vector_store import RecipeVectorStore


@pytest.fixture
def fake_collection() -> FakeCollection:
    """Provide an empty in-memory recipe collection."""
    return FakeCollection()


@pytest.fixture
def store(fake_collection: FakeCollection) -> RecipeVectorStore:
    """Provide a RecipeVectorStore bound to the in-memory collection."""
    return RecipeVectorStore(collection=fake_collection)


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    """Provide the deterministic bag-of-words provider."""
    return FakeEmbeddingProvider()


@pytest.fixture
def embedding_client(embedding_provider: FakeEmbeddingProvider) -> EmbeddingClient:
    """Provide an EmbeddingClient that never sleeps between retries."""
    return EmbeddingClient(embedding_provider, dimensions=DIMS, max_attempts=3, base_delay=0)


@pytest.fixture
def pipeline(store: RecipeVectorStore, embedding_client: EmbeddingClient) -> IngestionPipeline:
    """Provide an IngestionPipeline over the in-memory store."""
    return IngestionPipeline(store, embedding_client, max_workers=2)


@pytest.fixture
def chat_model() -> FakeRecipeChatModel:
    """Provide a chat model that follows the recipe instruction."""
    return FakeRecipeChatModel()


@pytest.fixture
def rag(embedding_client: EmbeddingClient, store: RecipeVectorStore, chat_model: FakeRecipeChatModel) -> RAGManager:
    """Provide a RAGManager wired to fakes only."""
    return RAGManager(embedding_client, RetrievalEngine(store, k=3), llm=chat_model)


@pytest.fixture
def recipes() -> list[dict]:
    """Provide a small recipe corpus."""
    return [
        {
            "name": "Tomato Soup",
            "description": "A smooth tomato soup with basil.",
            "ingredients": ["tomatoes", "onion", "garlic", "basil", "vegetable stock"],
            "instructions": ["Soften onion and garlic.", "Add tomatoes and stock.", "Simmer, blend, season with basil."],
        },
        {
            "name": "Pad Thai",
            "description": "Stir-fried rice noodles with tamarind and peanuts.",
            "ingredients": ["rice noodles", "tamarind paste", "eggs", "peanuts", "bean sprouts"],
            "instructions": ["Soak noodles.", "Stir-fry with sauce and eggs.", "Top with peanuts."],
        },
        {
            "name": "Banana Bread",
            "description": "Moist loaf made with ripe bananas.",
            "ingredients": ["bananas", "flour", "butter", "sugar", "eggs"],
            "instructions": ["Mash bananas.", "Mix with remaining ingredients.", "Bake for one hour."],
        },
        {
            "name": "Green Salad",
            "description": "Crisp leaves with a lemon dressing.",
            "ingredients": ["lettuce", "cucumber", "lemon", "olive oil"],
            "instructions": ["Wash leaves.", "Whisk dressing.", "Toss together."],
        },
    ]
