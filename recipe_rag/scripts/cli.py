"""
RecipeRAG - Operator CLI
=========================
Interactive menu over the pipeline:
    1. Upload recipe documents from ``DATA_RAW_DIR`` (no embeddings).
    2. Vectorize pending documents and ensure the vector index exists.
    3. Ask a question about the recipes.
    4. Exit.

Every action runs on one event loop (the motor client is bound to it).
A failing action prints ``operation: message`` and returns to the menu.

Usage:
    python -m recipe_rag.scripts.cli                         # Interactive menu
    python -m recipe_rag.scripts.cli --query "tomato soup?"  # One question, then exit
    python -m recipe_rag.scripts.cli --source ./my_recipes   # Upload from another directory
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


_MENU = """
  1. Upload recipe documents
  2. Vectorize recipes and build the vector index
  3. Ask the recipe assistant
  4. Exit
"""


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="recipe_rag", description="RecipeRAG — upload, vectorize and query a recipe collection.")
    parser.add_argument("--query", default=None, help="Ask a single question and exit.")
    parser.add_argument("--source", type=Path, default=None, help="Directory of recipe JSON files for the upload action.")
    return parser.parse_args()


# ── Main Orchestration ─────────────────────────────────────────────────

def main() -> None:
    args = _parse_args()

    # ── 0. Load settings + .env ────────────────────────────────────────
    try:
        from recipe_rag.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)

    _print_header(settings)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("\nInterrupted.")


async def _run(args: argparse.Namespace) -> None:
    from recipe_rag.config.settings import settings
    from recipe_rag.src.core.embedding_client import build_embedding_client
    from recipe_rag.src.core.exceptions import RecipeRAGError
    from recipe_rag.src.core.ingestor import IngestionPipeline
    from recipe_rag.src.core.rag_engine import RAGManager
    from recipe_rag.src.database.vector_store import RecipeVectorStore
    from recipe_rag.src.utils.logger import get_logger

    logger = get_logger(__name__)

    embedding_client = build_embedding_client(settings)
    store = RecipeVectorStore()
    pipeline = IngestionPipeline(store, embedding_client)
    rag: RAGManager | None = None

    async def _ask(question: str) -> None:
        nonlocal rag
        if rag is None:
            rag = await _build_rag(embedding_client, store, settings)
        result = await rag.answer(question)
        print()
        print(result.text)
        print()
        print(f"  [tokens] prompt: {result.prompt_tokens}, response: {result.response_tokens}")

    if args.query:
        try:
            await _ask(args.query)
        except RecipeRAGError as exc:
            print(f"\n[ERROR] {exc}")
            sys.exit(1)
        return

    actions = {
        "1": lambda: _upload(pipeline, args.source or settings.DATA_RAW_DIR),
        "2": lambda: _vectorize(pipeline, store, settings),
        "3": lambda: _prompt_and_ask(_ask),
    }

    while True:
        print(_MENU)
        choice = (await asyncio.to_thread(input, "  Select an option: ")).strip()
        if choice == "4":
            print("Bye.")
            return
        action = actions.get(choice)
        if action is None:
            print(f"  Unknown option '{choice}'.")
            continue
        try:
            await action()
        except RecipeRAGError as exc:
            logger.error("Action %s failed: %s", choice, exc)
            print(f"\n[ERROR] {exc}")


async def _build_rag(embedding_client: object, store: object, settings: object, llm: object = None) -> object:
    """Make sure the vector index exists, then wire the answer pipeline."""
    from recipe_rag.src.core.rag_engine import RAGManager
    from recipe_rag.src.core.retriever import RetrievalEngine

    created = await store.ensure_index(settings.VECTOR_INDEX_NAME, "cosine", settings.EMBEDDING_DIMENSIONS)  # type: ignore[attr-defined]
    if created:
        print(f"  Vector index '{settings.VECTOR_INDEX_NAME}' created.")  # type: ignore[attr-defined]
    return RAGManager(embedding_client, RetrievalEngine(store), llm=llm)  # type: ignore[arg-type]


async def _upload(pipeline: object, source: Path) -> None:
    from recipe_rag.src.core.ingestor import load_recipe_files

    t_start = time.perf_counter()
    documents = load_recipe_files(source)
    report = await pipeline.upload_documents(documents)  # type: ignore[attr-defined]
    _print_report("UPLOAD", report, time.perf_counter() - t_start)


async def _vectorize(pipeline: object, store: object, settings: object) -> None:
    t_start = time.perf_counter()
    pending = await store.find_documents_to_vectorize()  # type: ignore[attr-defined]
    print(f"\n  {len(pending)} document(s) waiting for an embedding.")
    report = await pipeline.ingest(pending)  # type: ignore[attr-defined]

    created = await store.ensure_index(settings.VECTOR_INDEX_NAME, "cosine", settings.EMBEDDING_DIMENSIONS)  # type: ignore[attr-defined]
    print(f"  Vector index '{settings.VECTOR_INDEX_NAME}': {'created' if created else 'already present'}.")  # type: ignore[attr-defined]
    vectorized = await store.count_vectorized()  # type: ignore[attr-defined]
    total = await store.count()  # type: ignore[attr-defined]
    print(f"  Vectorized documents: {vectorized}/{total}")
    _print_report("VECTORIZE", report, time.perf_counter() - t_start)


async def _prompt_and_ask(ask: object) -> None:
    question = (await asyncio.to_thread(input, "\n  Your question: ")).strip()
    if not question:
        print("  Empty question — nothing to ask.")
        return
    await ask(question)  # type: ignore[operator]


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object) -> None:
    mongo_uri_val = settings.MONGO_URI.get_secret_value()  # type: ignore[attr-defined]
    mongo_masked = mongo_uri_val.split("@")[-1] if "@" in mongo_uri_val else mongo_uri_val

    print()
    print("=" * 60)
    print("  RECIPE RAG — Recipe Assistant")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                    # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_PROVIDER} ({settings.EMBEDDING_DIMENSIONS} dims)")  # type: ignore[attr-defined]
    print(f"  LLM          : {settings.LLM_MODEL}")                              # type: ignore[attr-defined]
    print(f"  MongoDB      : {mongo_masked} (db: {settings.MONGO_DB_NAME}, collection: {settings.MONGO_COLLECTION_NAME})")  # type: ignore[attr-defined]
    print(f"  Top-k        : {settings.MAX_VECTOR_SEARCH_RESULTS}")              # type: ignore[attr-defined]
    print(f"  Workers      : {settings.MAX_WORKERS}")                            # type: ignore[attr-defined]
    print("=" * 60)


def _print_report(title: str, report: object, elapsed: float) -> None:
    print()
    print("-" * 60)
    print(f"  {title} SUMMARY")
    print("-" * 60)
    print(f"  Documents seen     : {report.total}")      # type: ignore[attr-defined]
    print(f"  Documents upserted : {report.upserted}")   # type: ignore[attr-defined]
    print(f"  Documents skipped  : {len(report.skipped)}")  # type: ignore[attr-defined]
    for label, reason in report.skipped:  # type: ignore[attr-defined]
        print(f"    - {label}: {reason}")
    print(f"  Elapsed            : {elapsed:>8.2f}s")
    print("-" * 60)


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
