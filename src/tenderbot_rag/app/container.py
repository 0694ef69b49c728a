"""tenderbot_rag.app.container

Composition root for the tender retrieval layer.

This module is the single place where concrete implementations are wired
together from configuration (token counter, chunker, embedding provider and
client, rerank provider and reranker, and the retrieval pipeline). Components
are constructed lazily and cached on first access to avoid repeated expensive
initialisation.

Notes
-----
- Keep this module importable with minimal side effects:
  - do not perform network calls at import time
  - do not read files at import time
  - construct expensive objects lazily (cached on first access)

- Provider clients are explicit objects owned by the container; there are no
  module-level singletons. Tests and callers can build components directly
  instead.

Examples
--------
>>> from tenderbot_rag.config import GlobalConfig
>>> from tenderbot_rag.app.container import build_container
>>> cfg = GlobalConfig.load("config.yaml")
>>> c = build_container(cfg)
>>> chunks = c.chunker.chunk(text, document_id="doc-1")
>>> results = await c.pipeline.run(query, vector_results, keyword_results)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Mapping, Optional

from tenderbot_rag.common.tokenisation import HeuristicTokenCounter, TiktokenTokenCounter
from tenderbot_rag.retrieval.embedder import _as_bool

PACKAGE_LOGGER = "tenderbot_rag"

@dataclass(frozen=True)
class TenderbotContainer:
    """Holds the configured, cached runtime components for the application.

    This dataclass acts as the composition root container: it wires together
    concrete implementations of token counters, the chunker, embedding and
    rerank providers and the retrieval pipeline. Properties are cached to avoid
    repeated expensive construction.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`tenderbot_rag.config.GlobalConfig`).
    """

    config: Any

    @cached_property
    def token_counter(self):
        """Return the token counter used for chunk sizing.

        Configuration is read from ``config.tokenization``. If the section is
        missing, a :class:`tenderbot_rag.common.tokenisation.HeuristicTokenCounter`
        is used by default.

        Returns
        -------
        Any
            A token counter implementation (heuristic or ``tiktoken``).

        Raises
        ------
        ValueError
            If an unknown tokenization type is configured.
        """
        cfg = _as_mapping(getattr(self.config, "tokenization", {}))
        kind = (cfg.get("type") or "heuristic").lower().replace("-", "_")

        if kind in {"heuristic", "char", "chars"}:
            cpt = cfg.get("chars_per_token", 4)
            try:
                cpt = int(cpt)
            except (TypeError, ValueError):
                cpt = 4
            return HeuristicTokenCounter(chars_per_token=cpt)

        if kind in {"tiktoken", "openai", "openai_like"}:
            enc = cfg.get("encoding") or "cl100k_base"
            return TiktokenTokenCounter.from_encoding_name(str(enc))

        raise ValueError(f"Unknown tokenization type: {kind!r}")

    @cached_property
    def chunking_config(self) -> Any:
        """Return the validated chunking configuration."""
        from tenderbot_rag.retrieval.text_splitter import ChunkingConfig

        section = _as_mapping(getattr(self.config, "chunking", {}))
        return ChunkingConfig.from_mapping(section)

    @cached_property
    def chunker(self) -> Any:
        """Return the chunker bound to the configured strategy and token counter.

        Returns
        -------
        Any
            A :class:`tenderbot_rag.retrieval.text_splitter.Chunker` instance.
        """
        from tenderbot_rag.retrieval.text_splitter import Chunker

        return Chunker(self.chunking_config, token_counter=self.token_counter)

    @cached_property
    def embedder(self) -> Any:
        """Return the embedding provider.

        Returns
        -------
        Any
            Configured embedder instance used to embed documents and queries.
        """
        from tenderbot_rag.retrieval.embedder import create_embedder

        section = _as_mapping(self.config.embedder)
        return create_embedder(section)

    @cached_property
    def embedding_client(self) -> Any:
        """Return the batching embedding client over :attr:`embedder`.

        ``embedder.batch_size`` and ``embedder.batch_delay`` tune batching.

        Returns
        -------
        Any
            A :class:`tenderbot_rag.retrieval.embedder.EmbeddingClient` instance.
        """
        from tenderbot_rag.retrieval.embedder import (
            DEFAULT_BATCH_DELAY,
            DEFAULT_BATCH_SIZE,
            EmbeddingClient,
        )

        section = _as_mapping(self.config.embedder)
        return EmbeddingClient(
            self.embedder,
            batch_size=int(section.get("batch_size", DEFAULT_BATCH_SIZE)),
            batch_delay=float(section.get("batch_delay", DEFAULT_BATCH_DELAY)),
        )

    @cached_property
    def rerank_provider(self) -> Optional[Any]:
        """Return the rerank provider, or ``None`` when reranking is disabled.

        Reranking is disabled when the ``reranker`` section is empty, its
        ``type`` is ``"none"``, or ``enabled`` is false.
        """
        from tenderbot_rag.retrieval.reranker import create_rerank_provider

        section = _as_mapping(getattr(self.config, "reranker", {}))
        if not section or not _as_bool(section.get("enabled"), True):
            return None
        return create_rerank_provider(section)

    @cached_property
    def reranker(self) -> Optional[Any]:
        """Return the reranker, or ``None`` when reranking is disabled.

        Returns
        -------
        Any or None
            A :class:`tenderbot_rag.retrieval.reranker.Reranker` instance.
        """
        from tenderbot_rag.retrieval.reranker import (
            DEFAULT_MAX_CHARS,
            DEFAULT_RERANK_DELAY,
            Reranker,
        )

        provider = self.rerank_provider
        if provider is None:
            return None

        section = _as_mapping(self.config.reranker)
        return Reranker(
            provider,
            max_chars=int(section.get("max_chars", DEFAULT_MAX_CHARS)),
            batch_delay=float(section.get("batch_delay", DEFAULT_RERANK_DELAY)),
        )

    @cached_property
    def retrieval_config(self) -> Any:
        """Return the hybrid retrieval configuration."""
        from tenderbot_rag.retrieval.retriever import RetrievalConfig

        section = _as_mapping(getattr(self.config, "retriever", {}))
        return RetrievalConfig.from_mapping(section)

    @cached_property
    def pipeline(self) -> Any:
        """Return the fully wired retrieval pipeline.

        Returns
        -------
        Any
            A :class:`tenderbot_rag.pipelines.retrieval_pipeline.RetrievalPipeline` instance.
        """
        from tenderbot_rag.pipelines.retrieval_pipeline import RetrievalPipeline
        from tenderbot_rag.retrieval.retriever import DEFAULT_DEDUP_THRESHOLD

        section = _as_mapping(getattr(self.config, "retriever", {}))
        return RetrievalPipeline(
            reranker=self.reranker,
            retrieval_config=self.retrieval_config,
            dedup_threshold=float(section.get("dedup_threshold", DEFAULT_DEDUP_THRESHOLD)),
        )


def build_container(config: Any) -> TenderbotContainer:
    """Create a :class:`~tenderbot_rag.app.container.TenderbotContainer`.

    This function is the single entry point for ingestion jobs, query
    handlers and tests. It also applies ``logging.level`` from the
    configuration to the package logger.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`tenderbot_rag.config.GlobalConfig`).

    Returns
    -------
    TenderbotContainer
        Container instance with cached component accessors.
    """
    level = getattr(config, "log_level", None)
    if level is not None:
        logging.getLogger(PACKAGE_LOGGER).setLevel(level)

    return TenderbotContainer(config=config)

def _as_mapping(obj: Any) -> Mapping[str, Any]:
    """Coerce an object into a mapping.

    Parameters
    ----------
    obj : Any
        Object to interpret as a mapping. If ``obj`` is already a mapping it is
        returned as-is. If it has a ``__dict__``, that dictionary is returned.
        ``None`` is treated as an empty mapping.

    Returns
    -------
    Mapping[str, Any]
        A dictionary-like view of ``obj``.

    Raises
    ------
    TypeError
        If ``obj`` cannot be interpreted as a mapping.
    """
    if obj is None:
        return {}

    if isinstance(obj, Mapping):
        return obj

    if hasattr(obj, "__dict__"):
        return dict(vars(obj))

    raise TypeError(f"Expected mapping type but got {type(obj)}")


__all__ = ["TenderbotContainer", "build_container"]
