"""
RecipeRAG - EmbeddingClient
============================
Turns arbitrary text into a fixed-length embedding vector.

Architecture (OOP)
------------------
``EmbeddingProvider``
    Structural type for a raw endpoint call: ``embed_raw(text)`` returns
    the list of vectors found in the provider response.  Two variants:

    • ``GeminiEmbeddingProvider`` — vendor-hosted Google Generative AI
      embeddings through ``langchain_google_genai``.
    • ``OllamaEmbeddingProvider`` — self-hosted Ollama server through
      ``ollama.AsyncClient``.

    The variant only changes request routing.  Dimensionality and the
    retry policy are owned by the client, never by the provider.

``with_backoff``
    ``tenacity`` decorator factory: exponential backoff starting at
    ``base_delay`` seconds (2, 4, 8, … by default), at most
    ``max_attempts`` calls.  Only transient provider errors are retried
    (see ``is_transient``); permanent ones and malformed responses fail
    on the first call, and cancellation is never intercepted.

``EmbeddingClient``
    Wraps one provider with ``with_backoff`` at construction, so every
    embedding call (ingestion and query time alike) goes through the
    same policy.  Maps failures onto ``EmbeddingUnavailable`` /
    ``EmbeddingMalformed``.

Usage:
    from recipe_rag.src.core.embedding_client import build_embedding_client
    client = build_embedding_client()
    vector = await client.embed("how do I make tomato soup")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar, runtime_checkable

import httpx
import ollama
from google.api_core import exceptions as google_exceptions
from tenacity import RetryCallState, retry, retry_if_exception, stop_after_attempt, wait_exponential

from recipe_rag.config.settings import Settings, settings
from recipe_rag.src.core.exceptions import EmbeddingMalformed, EmbeddingUnavailable
from recipe_rag.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
EmbeddingVector = tuple[float, ...]

F = TypeVar("F", bound=Callable[..., Awaitable[list[float]]])


# ══════════════════════════════════════════════════════════════════════
#  PROVIDERS
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can answer a single embedding request."""

    name: str

    async def embed_raw(self, text: str) -> list[list[float]]: ...


class GeminiEmbeddingProvider:
    """Vendor-hosted endpoint: Google Generative AI embeddings."""

    __slots__ = ("name", "_embedder", "_dimensions")

    def __init__(self, model: str, api_key: str, dimensions: int) -> None:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        self.name = f"gemini:{model}"
        self._embedder = GoogleGenerativeAIEmbeddings(model=model, google_api_key=api_key)
        self._dimensions = dimensions


    async def embed_raw(self, text: str) -> list[list[float]]:
        vector = await self._embedder.aembed_query(text, output_dimensionality=self._dimensions)
        return [list(vector)] if vector else []


class OllamaEmbeddingProvider:
    """Self-hosted endpoint: an Ollama server."""

    __slots__ = ("name", "_client", "_model")

    def __init__(self, model: str, host: str) -> None:
        self.name = f"ollama:{model}"
        self._client = ollama.AsyncClient(host=host)
        self._model = model


    async def embed_raw(self, text: str) -> list[list[float]]:
        response = await self._client.embed(model=self._model, input=text)
        return [list(vec) for vec in (response.get("embeddings") or [])]


# ══════════════════════════════════════════════════════════════════════
#  RETRY POLICY
# ══════════════════════════════════════════════════════════════════════


_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    httpx.TransportError,
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
)


def is_transient(exc: BaseException) -> bool:
    """
    Whether *exc* (or an error it wraps) is worth another attempt.

    Network failures, timeouts, rate limits and 5xx replies are transient.
    Everything else (bad key, bad request, unknown model, cancellation)
    is permanent.  ``langchain_google_genai`` re-raises SDK errors as
    ``GoogleGenerativeAIError``, so the ``__cause__`` chain is searched.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if not isinstance(current, Exception) or isinstance(current, EmbeddingMalformed):
            return False
        if isinstance(current, _TRANSIENT_ERRORS):
            return True
        if isinstance(current, ollama.ResponseError):
            return current.status_code == 429 or current.status_code >= 500
        current = current.__cause__
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning("[EMBED] Attempt %d failed (%s), retrying in %.1fs.", retry_state.attempt_number, exc, wait)


def with_backoff(max_attempts: int, base_delay: float) -> Callable[[F], F]:
    """
    Build the retry decorator shared by every embedding call.

    Waits ``base_delay * 2 ** (attempt - 1)`` seconds between attempts
    and gives up after ``max_attempts`` calls, re-raising the last error.
    Errors that are not ``is_transient`` are raised on the first call.
    """
    return retry(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2),
        before_sleep=_log_retry,
        reraise=True,
    )


# ══════════════════════════════════════════════════════════════════════
#  EMBEDDING CLIENT
# ══════════════════════════════════════════════════════════════════════


class EmbeddingClient:
    """
    Embeds text through one provider with retries and validation.

    Parameters
    ----------
    provider
        An ``EmbeddingProvider`` (vendor-hosted or self-hosted).
    dimensions
        Required vector length.  Defaults to ``settings.EMBEDDING_DIMENSIONS``.
    max_attempts
        Total provider calls per ``embed``.  Defaults to ``settings.EMBEDDING_MAX_ATTEMPTS``.
    base_delay
        First backoff wait in seconds.  Defaults to ``settings.EMBEDDING_RETRY_BASE_DELAY``.
    """

    __slots__ = ("_provider", "_dimensions", "_max_attempts", "_call")

    def __init__(self, provider: EmbeddingProvider, dimensions: int | None = None, max_attempts: int | None = None, base_delay: float | None = None) -> None:
        self._provider = provider
        self._dimensions = dimensions or settings.EMBEDDING_DIMENSIONS
        self._max_attempts = max_attempts or settings.EMBEDDING_MAX_ATTEMPTS
        delay = settings.EMBEDDING_RETRY_BASE_DELAY if base_delay is None else base_delay
        self._call = with_backoff(self._max_attempts, delay)(self._request)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def max_attempts(self) -> int:
        return self._max_attempts


    async def _request(self, text: str) -> list[float]:
        """One provider round-trip plus response validation."""
        vectors = await self._provider.embed_raw(text)
        if not vectors:
            raise EmbeddingMalformed(f"{self._provider.name} returned zero vectors")

        vector = vectors[0]
        if not vector:
            raise EmbeddingMalformed(f"{self._provider.name} returned an empty vector")
        if len(vector) != self._dimensions:
            raise EmbeddingMalformed(f"{self._provider.name} returned {len(vector)} dimensions, expected {self._dimensions}")
        return vector


    async def embed(self, text: str) -> EmbeddingVector:
        """
        Embed *text* and return an immutable vector.

        Raises
        ------
        EmbeddingUnavailable
            The provider failed on every one of ``max_attempts`` calls,
            or rejected the request with a permanent error.
        EmbeddingMalformed
            The provider answered without a usable vector.
        """
        try:
            vector = await self._call(text)
        except EmbeddingMalformed as exc:
            logger.error("[EMBED] %s", exc)
            raise
        except Exception as exc:
            if not is_transient(exc):
                logger.error("[EMBED] %s rejected the request: %s", self._provider.name, exc)
                raise EmbeddingUnavailable(f"{self._provider.name} rejected the request: {exc}") from exc
            logger.error("[EMBED] %s unavailable after %d attempt(s): %s", self._provider.name, self._max_attempts, exc)
            raise EmbeddingUnavailable(f"{self._provider.name} failed after {self._max_attempts} attempt(s): {exc}") from exc

        logger.debug("[EMBED] %d-dim vector for %d chars of text.", len(vector), len(text))
        return tuple(float(x) for x in vector)


    def __repr__(self) -> str:
        return f"EmbeddingClient(provider='{self._provider.name}', dimensions={self._dimensions}, max_attempts={self._max_attempts})"


def build_embedding_client(config: Settings | None = None) -> EmbeddingClient:
    """Assemble the client for the endpoint variant selected in configuration."""
    config = config or settings
    if config.EMBEDDING_PROVIDER == "ollama":
        provider: EmbeddingProvider = OllamaEmbeddingProvider(model=config.OLLAMA_EMBEDDING_MODEL, host=config.OLLAMA_BASE_URL)
    else:
        provider = GeminiEmbeddingProvider(model=config.EMBEDDING_MODEL, api_key=config.GOOGLE_API_KEY.get_secret_value(), dimensions=config.EMBEDDING_DIMENSIONS)

    logger.info("[EMBED] Provider: %s (%d dimensions).", provider.name, config.EMBEDDING_DIMENSIONS)
    return EmbeddingClient(provider, dimensions=config.EMBEDDING_DIMENSIONS, max_attempts=config.EMBEDDING_MAX_ATTEMPTS, base_delay=config.EMBEDDING_RETRY_BASE_DELAY)
