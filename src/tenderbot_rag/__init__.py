"""tenderbot_rag

Retrieval support layer for the tender document knowledge base.

This package contains the building blocks that sit between raw tender
documents and answer generation: structure-aware chunking, embedding
providers with a batching client, hybrid rank fusion with filtering and
deduplication, reranking, configuration and a composition root.

Attributes
----------
__version__ : str
    Package version string. Defaults to ``"0.0.0-dev"`` when package metadata is
    unavailable.

Modules
-------
config
    Global configuration loader and cached accessors.
app
    Application container and composition root for wiring components.
pipelines
    Query-time retrieval orchestration (fusion → dedupe → rerank).
retrieval
    Chunking, embedding, fusion and reranking.
common
    Shared schemas and utilities (e.g., chunks and retrieval results).

Exports
-------
GlobalConfig
    Global configuration loader and accessor.
TenderbotContainer
    Cached runtime component container for applications.
build_container
    Factory function to construct a configured :class:`~tenderbot_rag.app.container.TenderbotContainer`.
RetrievalPipeline
    Hybrid retrieval post-processing pipeline.
Chunk
    Chunk draft schema produced by the chunker.
RetrievalResult
    Ranked candidate schema.
"""

import logging
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tenderbot-rag")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from .config import GlobalConfig
from .app.container import TenderbotContainer, build_container
from .pipelines.retrieval_pipeline import RetrievalPipeline
from .common import Chunk, RetrievalResult

__all__ = [
    "__version__",
    "GlobalConfig",
    "TenderbotContainer",
    "build_container",
    "RetrievalPipeline",
    "Chunk",
    "RetrievalResult",
]
