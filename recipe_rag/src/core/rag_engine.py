"""
RecipeRAG - RAG Engine
=======================
Answers a user question from the recipe corpus.

Architecture (OOP)
------------------
``CompletionResult``
    Immutable answer text plus prompt / response token counters.

``RAGManager``
    Stateless pipeline orchestrator.  Flow:
        1. Embed the question          → ``EmbeddingClient``
        2. Retrieve top-k recipes      → ``RetrievalEngine``
        3. Build the prompt            → fixed system instruction + JSON documents
        4. Call the chat model (async) → fixed sampling parameters
        5. Parse text + usage          → ``CompletionResult``

    Embedding and search failures propagate unchanged.  A generation
    failure becomes ``CompletionUnavailable``.  Nothing is retried here:
    the embedding client already owns a retry policy, and stacking a
    second one would compound backoff delays.

    Zero retrieved documents is not an error: the model receives an
    empty context and its instructions tell it to say no recipe matched.

Usage:
    from recipe_rag.src.core.rag_engine import RAGManager, build_chat_model
    rag = RAGManager(embedding_client, RetrievalEngine(store), build_chat_model())
    result = await rag.answer("how do I make tomato soup")
"""

from __future__ import annotations

import time

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict

from recipe_rag.config.prompt_templates import DOCUMENTS_HEADER, NO_DOCUMENTS_PLACEHOLDER, SYSTEM_PROMPT
from recipe_rag.config.settings import Settings, settings
from recipe_rag.src.core.embedding_client import EmbeddingClient
from recipe_rag.src.core.exceptions import CompletionUnavailable
from recipe_rag.src.core.retriever import RetrievalEngine, SearchResult
from recipe_rag.src.utils.logger import get_logger
from recipe_rag.src.utils.text_utils import serialize_documents

logger = get_logger(__name__)

# ── Fixed sampling parameters ──────────────────────────────────────────
TEMPERATURE = 0.5
TOP_P = 0.95


class CompletionResult(BaseModel):
    """Generated answer with usage accounting.  Never persisted."""

    model_config = ConfigDict(frozen=True)

    text: str
    prompt_tokens: int
    response_tokens: int


def build_chat_model(config: Settings | None = None) -> BaseChatModel:
    """
    Create the Gemini chat model with the fixed sampling parameters.

    No frequency or presence penalty is configured.
    """
    from langchain_google_genai import ChatGoogleGenerativeAI

    config = config or settings
    llm = ChatGoogleGenerativeAI(model=config.LLM_MODEL, temperature=TEMPERATURE, top_p=TOP_P, max_output_tokens=config.MAX_COMPLETION_TOKENS, google_api_key=config.GOOGLE_API_KEY.get_secret_value())
    logger.info("LLM initialised: %s (temperature=%.2f, top_p=%.2f, max_output_tokens=%d)", config.LLM_MODEL, TEMPERATURE, TOP_P, config.MAX_COMPLETION_TOKENS)
    return llm


class RAGManager:
    """
    Orchestrates embed → retrieve → generate for one question.

    Parameters
    ----------
    embedding_client
        Shared ``EmbeddingClient`` used for the question.
    retriever
        ``RetrievalEngine`` bound to the recipe store.
    llm
        LangChain chat model.  Defaults to ``build_chat_model()``.
    system_prompt
        The fixed instruction placed before the documents.
    max_context_chars
        Budget for the serialized documents.  Defaults to ``settings.MAX_CONTEXT_CHARS``.
    """

    __slots__ = ("_embedder", "_retriever", "_llm", "_system_prompt", "_max_context_chars")

    def __init__(self, embedding_client: EmbeddingClient, retriever: RetrievalEngine, llm: BaseChatModel | None = None, system_prompt: str = SYSTEM_PROMPT, max_context_chars: int | None = None) -> None:
        self._embedder = embedding_client
        self._retriever = retriever
        self._llm = llm or build_chat_model()
        self._system_prompt = system_prompt
        self._max_context_chars = max_context_chars or settings.MAX_CONTEXT_CHARS

    @property
    def system_prompt(self) -> str:
        return self._system_prompt


    async def answer(self, user_query: str) -> CompletionResult:
        """
        Answer *user_query* from the retrieved recipes.

        Raises
        ------
        EmbeddingUnavailable / EmbeddingMalformed
            Propagated from the embedding client.
        SearchUnavailable
            Propagated from the retrieval engine.
        CompletionUnavailable
            The chat model call failed.
        """
        t_start = time.perf_counter()

        # ── 1. Embed ──────────────────────────────────────────────────
        t_embed = time.perf_counter()
        query_vector = await self._embedder.embed(user_query)
        embed_ms = (time.perf_counter() - t_embed) * 1000

        # ── 2. Retrieve ───────────────────────────────────────────────
        t_search = time.perf_counter()
        documents = await self._retriever.search(query_vector)
        search_ms = (time.perf_counter() - t_search) * 1000
        if not documents:
            logger.warning("[RAG] No recipes retrieved — passing an empty context to the model.")

        # ── 3. Build prompt ───────────────────────────────────────────
        messages = self.build_messages(user_query, documents)

        # ── 4. Generate ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        try:
            response = await self._llm.ainvoke(messages)
        except Exception as exc:
            logger.exception("[RAG] LLM call failed.")
            raise CompletionUnavailable(f"generation model call failed: {exc}") from exc
        llm_ms = (time.perf_counter() - t_llm) * 1000

        # ── 5. Parse ──────────────────────────────────────────────────
        result = self._parse_response(response)

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Pipeline total: %.1fms (embed=%.1f, search=%.1f, llm=%.1f) — tokens: prompt=%d, response=%d", total_ms, embed_ms, search_ms, llm_ms, result.prompt_tokens, result.response_tokens)
        return result

    # ══════════════════════════════════════════════════════════════════
    #  PROMPT FORMATTING
    # ══════════════════════════════════════════════════════════════════

    def build_messages(self, user_query: str, documents: SearchResult) -> list[BaseMessage]:
        """System instruction + documents as context, the verbatim question as prompt."""
        context = self._format_context(documents)
        system_content = f"{self._system_prompt}\n\n{DOCUMENTS_HEADER}\n{context}"
        return [SystemMessage(content=system_content), HumanMessage(content=user_query)]


    def _format_context(self, documents: SearchResult) -> str:
        """
        Serialize documents within the ``max_context_chars`` budget.

        Documents are kept whole, best match first; the top document is
        always included, lower-ranked ones are dropped once the budget
        would be exceeded.
        """
        if not documents:
            return NO_DOCUMENTS_PLACEHOLDER

        lines = serialize_documents(documents)
        kept: list[str] = [lines[0]]
        used = len(lines[0])

        for line in lines[1:]:
            if used + 1 + len(line) > self._max_context_chars:
                break
            kept.append(line)
            used += 1 + len(line)

        if len(kept) < len(lines):
            logger.warning("[RAG] Context budget (%d chars) reached — dropped %d of %d document(s).", self._max_context_chars, len(lines) - len(kept), len(lines))
        return "\n".join(kept)

    # ══════════════════════════════════════════════════════════════════
    #  RESPONSE PARSING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _parse_response(response: BaseMessage) -> CompletionResult:
        """Extract the answer text and usage counters from a chat model reply."""
        content = response.content
        if isinstance(content, list):
            text = "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)
        else:
            text = str(content)

        usage = getattr(response, "usage_metadata", None) or {}
        prompt_tokens = usage.get("input_tokens")
        response_tokens = usage.get("output_tokens")

        # Providers that only report OpenAI-style counters
        if prompt_tokens is None or response_tokens is None:
            token_usage = response.response_metadata.get("token_usage") or {}
            prompt_tokens = token_usage.get("prompt_tokens", 0)
            response_tokens = token_usage.get("completion_tokens", 0)

        return CompletionResult(text=text.strip(), prompt_tokens=int(prompt_tokens), response_tokens=int(response_tokens))
