"""
RecipeRAG - Logging
====================
Named loggers for the recipe pipeline.  Messages carry a bracketed stage
tag so one run of the CLI reads as a trace of the pipeline:

  [EMBED]   embedding requests and retries
  [INDEX]   vector index checks and creation
  [STORE]   document writes and operator lookups
  [SEARCH]  vector queries
  [INGEST]  upload / vectorize batches
  [RAG]     question answering timings and token usage

Verbosity follows ``settings.ENV`` (``"dev"`` → DEBUG, ``"prod"`` → WARNING).
The HTTP and driver libraries underneath the providers and the store are
held at WARNING so their per-request chatter does not bury the stage tags.

Usage:
    from recipe_rag.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[INGEST] %d document(s) queued", n)
"""

import logging
import sys

from recipe_rag.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CHATTY_LIBRARIES = ("httpx", "httpcore", "pymongo", "langchain_google_genai")

for _library in _CHATTY_LIBRARIES:
    logging.getLogger(_library).setLevel(logging.WARNING)


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a pipeline logger writing to stdout.

    Args:
        name:  Usually ``__name__`` of the calling module.
        level: Explicit level override; defaults to the ``ENV`` level.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved_level = level if level is not None else _DEFAULT_LEVEL
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))

    logger.setLevel(resolved_level)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
