"""
RecipeRAG - IngestionPipeline
==============================
Loads recipe documents into the store and vectorizes them.

Two entry points, matching the operator menu:

``upload_documents``
    Upsert raw recipes (no embedding) keyed by their derived identifier.
    This is the pre-ingestion state of a document.

``ingest``
    For every document: derive its identifier, embed its content through
    the ``EmbeddingClient``, and upsert document + embedding.

Key design decisions:
    • **Dependency Injection** – receives the store and embedding client.
    • **Best-effort batches** – an unidentifiable or non-object record
      (``InvalidDocument``), an embedding failure, a failed write, or any
      other error skips that one document and is reported; the run always
      completes and no task outlives ``ingest``.
    • **Bounded concurrency** – documents are processed concurrently,
      at most ``MAX_WORKERS`` at a time, via an ``asyncio.Semaphore``.
      No ordering between documents is guaranteed.
    • **Idempotent** – identifiers and embedding input are both derived
      deterministically, and every write is a keyed upsert.

Usage:
    from recipe_rag.src.core.ingestor import IngestionPipeline, load_recipe_files
    pipeline = IngestionPipeline(store, embedding_client)
    await pipeline.upload_documents(load_recipe_files(settings.DATA_RAW_DIR))
    report = await pipeline.ingest(await store.find_documents_to_vectorize())
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from recipe_rag.config.settings import settings
from recipe_rag.src.core.embedding_client import EmbeddingClient
from recipe_rag.src.core.exceptions import EmbeddingMalformed, EmbeddingUnavailable, InvalidDocument
from recipe_rag.src.database.vector_store import EMBEDDING_FIELD, Document, RecipeVectorStore
from recipe_rag.src.utils.logger import get_logger
from recipe_rag.src.utils.text_utils import clean_text, content_fields, derive_document_id, serialize_for_embedding

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = {".json"}


class IngestionReport(BaseModel):
    """Outcome of one best-effort ingestion run."""

    total: int = 0
    upserted: int = 0
    skipped: list[tuple[str, str]] = Field(default_factory=list)
    elapsed_seconds: float = 0.0


# ══════════════════════════════════════════════════════════════════════
#  INGESTION SOURCE
# ══════════════════════════════════════════════════════════════════════


def load_recipe_files(source_dir: Path | None = None) -> list[Document]:
    """
    Read every ``*.json`` recipe file under *source_dir*.

    A file may hold a single recipe object or a list of them.  String
    fields are normalised with ``clean_text``.  Unreadable files are
    logged and skipped.
    """
    source = Path(source_dir or settings.DATA_RAW_DIR)
    if not source.exists():
        logger.warning("[INGEST] Source directory does not exist: %s", source)
        return []

    files = sorted(f for f in source.iterdir() if f.is_file() and f.suffix.lower() in _SUPPORTED_EXTENSIONS)
    logger.info("[INGEST] %d recipe file(s) found in %s", len(files), source)

    documents: list[Document] = []
    for filepath in files:
        try:
            payload = json.loads(filepath.read_text(encoding="utf-8-sig"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error("[INGEST] Skipping unreadable file %s: %s", filepath.name, exc)
            continue

        records = payload if isinstance(payload, list) else [payload]
        for record in records:
            if not isinstance(record, dict):
                logger.warning("[INGEST] Skipping non-object entry in %s.", filepath.name)
                continue
            documents.append({key: clean_text(value) if isinstance(value, str) else value for key, value in record.items()})

    return documents


# ══════════════════════════════════════════════════════════════════════
#  PIPELINE
# ══════════════════════════════════════════════════════════════════════


class IngestionPipeline:
    """
    Parameters
    ----------
    vector_store
        An initialised ``RecipeVectorStore`` (injected).
    embedding_client
        The shared ``EmbeddingClient`` — the same instance (and therefore
        the same retry policy) used at query time.
    max_workers
        Concurrent documents.  Defaults to ``settings.MAX_WORKERS``.
    """

    __slots__ = ("_store", "_embedder", "_max_workers")

    def __init__(self, vector_store: RecipeVectorStore, embedding_client: EmbeddingClient, max_workers: int | None = None) -> None:
        self._store = vector_store
        self._embedder = embedding_client
        self._max_workers = max_workers or settings.MAX_WORKERS


    @staticmethod
    def document_id(document: Mapping[str, object]) -> str:
        """Derive the identifier for *document* or raise ``InvalidDocument``."""
        if not isinstance(document, Mapping):
            raise InvalidDocument(f"expected a recipe object, got {type(document).__name__}")
        identifier = derive_document_id(document.get("name"))
        if identifier is None:
            raise InvalidDocument("document has no usable 'name' to derive an identifier from")
        return identifier

    # ══════════════════════════════════════════════════════════════════
    #  UPLOAD (no embeddings)
    # ══════════════════════════════════════════════════════════════════

    async def upload_documents(self, documents: Iterable[Mapping[str, object]]) -> IngestionReport:
        """Upsert raw recipes without embeddings."""
        t_start = time.perf_counter()
        report = IngestionReport()

        for document in documents:
            report.total += 1
            try:
                identifier = self.document_id(document)
                await self._store.upsert(identifier, content_fields(document))
            except InvalidDocument as exc:
                logger.warning("[INGEST] Upload skipped document #%d: %s", report.total, exc)
                report.skipped.append((f"#{report.total}", str(exc)))
                continue
            except PyMongoError as exc:
                logger.error("[INGEST] Upload of '%s' failed: %s", identifier, exc)
                report.skipped.append((identifier, f"store write failed: {exc}"))
                continue
            report.upserted += 1

        report.elapsed_seconds = round(time.perf_counter() - t_start, 2)
        logger.info("[INGEST] Uploaded %d/%d document(s) in %.2fs.", report.upserted, report.total, report.elapsed_seconds)
        return report

    # ══════════════════════════════════════════════════════════════════
    #  INGEST (embed + upsert)
    # ══════════════════════════════════════════════════════════════════

    async def ingest(self, documents: Iterable[Mapping[str, object]]) -> IngestionReport:
        """
        Embed and upsert every document, best-effort.

        Returns
        -------
        IngestionReport
            ``upserted`` is the number of documents written; ``skipped``
            lists ``(identifier-or-position, reason)`` for the rest.
        """
        t_start = time.perf_counter()
        batch = list(documents)
        report = IngestionReport(total=len(batch))

        if not batch:
            logger.info("[INGEST] Nothing to ingest.")
            return report

        logger.info("[INGEST] Starting ingestion — %d document(s), %d worker(s).", len(batch), self._max_workers)
        semaphore = asyncio.Semaphore(self._max_workers)

        async def _bounded(position: int, document: Mapping[str, object]) -> None:
            async with semaphore:
                label = f"#{position}"
                try:
                    label = self.document_id(document)
                    await self._ingest_one(label, document)
                except (InvalidDocument, EmbeddingUnavailable, EmbeddingMalformed) as exc:
                    logger.warning("[INGEST] Skipped %s: %s", label, exc)
                    report.skipped.append((label, str(exc)))
                except PyMongoError as exc:
                    logger.error("[INGEST] Store write for %s failed: %s", label, exc)
                    report.skipped.append((label, f"store write failed: {exc}"))
                except Exception as exc:
                    logger.exception("[INGEST] Unexpected error while ingesting %s.", label)
                    report.skipped.append((label, f"unexpected error: {exc}"))
                else:
                    report.upserted += 1

        await asyncio.gather(*(_bounded(i, doc) for i, doc in enumerate(batch, 1)))

        report.elapsed_seconds = round(time.perf_counter() - t_start, 2)
        logger.info("[INGEST] Ingestion complete — %d upserted, %d skipped in %.2fs.", report.upserted, len(report.skipped), report.elapsed_seconds)
        return report


    async def _ingest_one(self, identifier: str, document: Mapping[str, object]) -> None:
        """Embed one document and upsert it with its embedding."""
        t_doc = time.perf_counter()
        content = content_fields(document)
        vector = await self._embedder.embed(serialize_for_embedding(content))

        await self._store.upsert(identifier, {**content, EMBEDDING_FIELD: list(vector)})
        logger.debug("[INGEST] '%s' vectorized and stored in %.1fms.", identifier, (time.perf_counter() - t_doc) * 1000)
