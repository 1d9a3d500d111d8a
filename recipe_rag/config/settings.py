"""
RecipeRAG - Centralized Configuration
======================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``.
  The raw value is never exposed in repr, logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` — connection strings contain
  credentials and must never leak into logs.

Embedding endpoints
-------------------
``EMBEDDING_PROVIDER`` selects the endpoint variant used by the
``EmbeddingClient``:
  • ``"gemini"`` → vendor-hosted Google Generative AI embeddings.
  • ``"ollama"`` → self-hosted Ollama server at ``OLLAMA_BASE_URL``.
Both variants must produce vectors of ``EMBEDDING_DIMENSIONS`` floats,
since the vector index is created with that dimensionality.

Concurrency
-----------
``MAX_WORKERS`` bounds how many documents the ingestion pipeline embeds
and upserts at the same time (default 4).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Used when MAX_COMPLETION_TOKENS is unset or cannot be parsed.
DEFAULT_MAX_COMPLETION_TOKENS = 8191


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
    MONGO_URI : SecretStr
        MongoDB connection string of the recipe store.  **Required.**
    MONGO_DB_NAME, MONGO_COLLECTION_NAME : str
        Database and collection holding the recipe documents.
    VECTOR_INDEX_NAME : str
        Name of the vector index created over the ``embedding`` field.
    VECTOR_INDEX_KIND, VECTOR_INDEX_NUM_LISTS
        ``cosmosSearchOptions`` passed when the index is created.
    EMBEDDING_PROVIDER : Literal["gemini", "ollama"]
        Endpoint variant for the embedding client.
    EMBEDDING_DIMENSIONS : int
        Fixed vector dimensionality for documents and queries.
    EMBEDDING_MAX_ATTEMPTS, EMBEDDING_RETRY_BASE_DELAY
        Retry policy for embedding calls (attempts, seconds).
    LLM_MODEL : str
        Model identifier for answer generation.
    MAX_COMPLETION_TOKENS : int
        Maximum output tokens for one answer.
    MAX_CONTEXT_CHARS : int
        Upper bound for the serialized document context.
    MAX_VECTOR_SEARCH_RESULTS : int
        Top-k for retrieval.
    MAX_WORKERS : int
        Concurrent documents during ingestion.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_RAW_DIR: Path = BASE_DIR / "data" / "recipes"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── MongoDB (REQUIRED — no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "recipe_rag"
    MONGO_COLLECTION_NAME: str = "recipes"

    # ── Vector Index ───────────────────────────────────────────────────
    VECTOR_INDEX_NAME: str = "vectorSearchIndex"
    VECTOR_INDEX_KIND: str = "vector-ivf"
    VECTOR_INDEX_NUM_LISTS: int = 1

    # ── Embedding Configuration ────────────────────────────────────────
    EMBEDDING_PROVIDER: Literal["gemini", "ollama"] = "gemini"
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_EMBEDDING_MODEL: str = "nomic-embed-text"
    EMBEDDING_DIMENSIONS: int = 1536
    EMBEDDING_MAX_ATTEMPTS: int = 10
    EMBEDDING_RETRY_BASE_DELAY: float = 2.0

    # ── Generation Configuration ───────────────────────────────────────
    LLM_MODEL: str = "gemini-2.0-flash"
    MAX_COMPLETION_TOKENS: int = DEFAULT_MAX_COMPLETION_TOKENS
    MAX_CONTEXT_CHARS: int = 24_000

    # ── Retrieval ──────────────────────────────────────────────────────
    MAX_VECTOR_SEARCH_RESULTS: int = 3

    # ── Concurrency ────────────────────────────────────────────────────
    MAX_WORKERS: int = 4

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("MAX_COMPLETION_TOKENS", mode="before")
    @classmethod
    def _completion_tokens_fallback(cls, v: object) -> int:
        try:
            parsed = int(str(v).strip())
        except (TypeError, ValueError):
            return DEFAULT_MAX_COMPLETION_TOKENS
        return parsed if parsed > 0 else DEFAULT_MAX_COMPLETION_TOKENS


    @field_validator("MAX_VECTOR_SEARCH_RESULTS")
    @classmethod
    def _top_k_range(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError(f"MAX_VECTOR_SEARCH_RESULTS must be 1–10, got {v}")
        return v


    @field_validator("EMBEDDING_DIMENSIONS", "EMBEDDING_MAX_ATTEMPTS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be ≥ 1, got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 16:
            raise ValueError(f"MAX_WORKERS must be 1–16, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from recipe_rag.config.settings import settings
settings = Settings()
