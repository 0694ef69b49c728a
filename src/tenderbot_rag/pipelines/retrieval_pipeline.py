"""tenderbot_rag.pipelines.retrieval_pipeline

Query-time retrieval orchestration.

This module defines the :class:`RetrievalPipeline`, which takes the ranked
candidate lists produced by the external vector and keyword indexes for a
query and turns them into the final context list handed to answer
generation.

Classes
-------
RetrievalPipeline
    Orchestrates fusion → filtering → deduplication → expansion → reranking.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional, Sequence

from tenderbot_rag.common import RetrievalResult
from tenderbot_rag.retrieval.reranker import Reranker
from tenderbot_rag.retrieval.retriever import (
    DEFAULT_DEDUP_THRESHOLD,
    RetrievalConfig,
    deduplicate,
    expand_context,
    filter_by_metadata,
    hybrid_search,
)

logger = logging.getLogger(__name__)


class RetrievalPipeline:
    """Hybrid retrieval post-processing orchestrator.

    This class wires together:
    - weighted Reciprocal Rank Fusion of the vector and keyword lists
    - metadata filtering
    - near-duplicate removal and context expansion
    - an optional reranker

    The pipeline is lightweight and stateless beyond its configured
    components, so it can be reused across requests.

    Parameters
    ----------
    reranker : Reranker or None, optional
        Second-stage reranker. When ``None`` the fused order is kept.
    retrieval_config : RetrievalConfig or None, optional
        Fusion configuration. Its ``filters`` are applied to every query.
    dedup_threshold : float, optional
        Jaccard threshold for :func:`deduplicate`. Defaults to ``0.95``.
    """

    def __init__(
            self,
            reranker: Optional[Reranker] = None,
            retrieval_config: Optional[RetrievalConfig] = None,
            dedup_threshold: float = DEFAULT_DEDUP_THRESHOLD,
        ):
        self.reranker = reranker
        self.retrieval_config = retrieval_config or RetrievalConfig()
        self.dedup_threshold = float(dedup_threshold)

    async def run(
            self,
            query: str,
            vector_results: Sequence[RetrievalResult],
            keyword_results: Sequence[RetrievalResult],
            *,
            filters: Optional[Mapping[str, Any]] = None,
            top_k: Optional[int] = None,
        ) -> list[RetrievalResult]:
        """Execute the pipeline for a single query.

        The execution order is:
        1. Fuse ``vector_results`` and ``keyword_results`` with weighted RRF,
           keeping every fused candidate above ``min_score``.
        2. Keep results matching the configured and per-call metadata filters.
        3. Drop near-duplicates and collapse repeated chunks.
        4. Rerank the survivors, then cut to ``top_k``.

        Parameters
        ----------
        query : str
            User's natural language question.
        vector_results : Sequence[RetrievalResult]
            Ranked results from the vector index.
        keyword_results : Sequence[RetrievalResult]
            Ranked results from the keyword index.
        filters : Mapping[str, Any] or None, optional
            Per-call metadata filters, merged over the configured ones.
        top_k : int or None, optional
            Number of results to return. Defaults to the configured ``top_k``.

        Returns
        -------
        list[RetrievalResult]
            Final ranked context list.
        """
        cfg = self.retrieval_config
        if top_k is not None:
            cfg = replace(cfg, top_k=int(top_k))

        # Fuse without a cut so that filtering sees the whole candidate pool.
        pool_size = len(vector_results) + len(keyword_results)
        fused = hybrid_search(vector_results, keyword_results, replace(cfg, top_k=pool_size))

        merged_filters = {**(cfg.filters or {}), **(filters or {})}
        filtered = filter_by_metadata(fused, merged_filters)
        unique = expand_context(deduplicate(filtered, self.dedup_threshold))

        logger.debug(
            "Query fused %d/%d candidates into %d, %d after filtering, %d after deduplication.",
            len(vector_results), len(keyword_results), len(fused), len(filtered), len(unique),
        )

        if self.reranker is None:
            return unique[: cfg.top_k]
        reranked = await self.reranker.rerank(query, unique, cfg.top_k)
        return reranked[: cfg.top_k]

    async def __call__(self, *args: Any, **kwargs: Any) -> list[RetrievalResult]:
        """Alias for :meth:`run`."""
        return await self.run(*args, **kwargs)
