"""tenderbot_rag.retrieval.retriever

Ranking and filtering operations over retrieval results.

The vector index and keyword index are external; each supplies an
independently ranked list of :class:`~tenderbot_rag.common.schemas.RetrievalResult`
for a query. This module fuses those lists with weighted Reciprocal Rank
Fusion (RRF), filters by metadata and removes near-duplicates. All operations
are pure and never mutate their inputs.

Classes
-------
RetrievalConfig
    Fusion weights, cut-offs and filters.

Functions
---------
hybrid_search
    Fuse vector and keyword result lists with weighted RRF.
filter_by_metadata
    Keep results whose metadata matches every filter pair.
deduplicate
    Drop results whose word set is too similar to an earlier result.
text_similarity
    Jaccard similarity of lowercase whitespace word sets.
expand_context
    Keep the first occurrence of each chunk, in order.
results_from_nodes
    Convert LlamaIndex ``NodeWithScore`` items into retrieval results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from llama_index.core.schema import NodeWithScore

from tenderbot_rag.common import RetrievalResult

logger = logging.getLogger(__name__)

DEFAULT_RRF_K = 60
DEFAULT_DEDUP_THRESHOLD = 0.95


@dataclass(frozen=True)
class RetrievalConfig:
    """Hybrid retrieval configuration.

    Attributes
    ----------
    vector_weight : float
        Weight applied to RRF contributions from the vector list. Defaults to ``0.7``.
    keyword_weight : float
        Weight applied to RRF contributions from the keyword list. Defaults to ``0.3``.
    top_k : int
        Number of fused results to return. Defaults to ``10``.
    min_score : float
        Minimum fused score kept. Defaults to ``0.0``.
    rrf_k : int
        RRF smoothing constant. Defaults to ``60``.
    filters : Mapping[str, Any] or None
        Metadata filters applied by callers such as
        :class:`~tenderbot_rag.pipelines.retrieval_pipeline.RetrievalPipeline`.
    """

    vector_weight: float = 0.7
    keyword_weight: float = 0.3
    top_k: int = 10
    min_score: float = 0.0
    rrf_k: int = DEFAULT_RRF_K
    filters: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if int(self.rrf_k) <= 0:
            raise ValueError("'retriever.rrf_k' must be a positive integer.")
        if int(self.top_k) < 0:
            raise ValueError("'retriever.top_k' must be a non-negative integer.")

    @classmethod
    def from_mapping(cls, config: Optional[Mapping[str, Any]]) -> "RetrievalConfig":
        """Build a config from a ``retriever`` configuration section."""
        cfg = dict(config or {})
        return cls(
            vector_weight=float(cfg.get("vector_weight", 0.7)),
            keyword_weight=float(cfg.get("keyword_weight", 0.3)),
            top_k=int(cfg.get("top_k", 10)),
            min_score=float(cfg.get("min_score", 0.0)),
            rrf_k=int(cfg.get("rrf_k", DEFAULT_RRF_K)),
            filters=cfg.get("filters") or None,
        )


def _accumulate_rrf(
        fused: Dict[str, RetrievalResult],
        results: Sequence[RetrievalResult],
        weight: float,
        rrf_k: int,
    ) -> None:
    """Add ``weight / (rank + rrf_k)`` for each result into ``fused``."""
    for rank, result in enumerate(results):
        contribution = weight / (rank + rrf_k)
        existing = fused.get(result.chunk_id)
        if existing is None:
            fused[result.chunk_id] = replace(result, score=contribution)
        else:
            fused[result.chunk_id] = replace(existing, score=existing.score + contribution)


def hybrid_search(
        vector_results: Sequence[RetrievalResult],
        keyword_results: Sequence[RetrievalResult],
        config: Optional[RetrievalConfig] = None,
    ) -> list[RetrievalResult]:
    """Fuse vector and keyword results with weighted Reciprocal Rank Fusion.

    The item at 0-based rank ``i`` of a list contributes ``weight / (i + k)``.
    Contributions for the same ``chunk_id`` are summed; a result keeps the
    fields of its first occurrence (vector list first) with ``score`` replaced
    by the fused score. Results below ``min_score`` are dropped, the rest are
    sorted by score descending (ties by ``chunk_id``) and cut to ``top_k``.

    RRF only looks at rank positions, so the incompatible score scales of the
    two input lists do not matter.

    Parameters
    ----------
    vector_results : Sequence[RetrievalResult]
        Ranked results from the vector index.
    keyword_results : Sequence[RetrievalResult]
        Ranked results from the keyword index.
    config : RetrievalConfig or None, optional
        Fusion configuration. Defaults to :class:`RetrievalConfig` defaults.

    Returns
    -------
    list[RetrievalResult]
        Fused ranking.
    """
    cfg = config or RetrievalConfig()
    rrf_k = int(cfg.rrf_k)

    fused: Dict[str, RetrievalResult] = {}
    _accumulate_rrf(fused, vector_results, float(cfg.vector_weight), rrf_k)
    _accumulate_rrf(fused, keyword_results, float(cfg.keyword_weight), rrf_k)

    ranked = sorted(
        (result for result in fused.values() if result.score >= cfg.min_score),
        key=lambda result: (-result.score, result.chunk_id),
    )
    return ranked[: int(cfg.top_k)]


def filter_by_metadata(
        results: Iterable[RetrievalResult],
        filters: Optional[Mapping[str, Any]],
    ) -> list[RetrievalResult]:
    """Keep results whose metadata contains every ``filters`` pair.

    Values are compared with ``==``. When any filter is supplied, results
    without metadata are dropped. Empty or ``None`` filters keep everything.
    """
    if not filters:
        return list(results)

    kept: list[RetrievalResult] = []
    for result in results:
        if not result.metadata:
            continue
        if all(key in result.metadata and result.metadata[key] == value for key, value in filters.items()):
            kept.append(result)
    return kept


def text_similarity(a: str, b: str) -> float:
    """Return the Jaccard similarity of the lowercase whitespace word sets.

    Two texts without any words are treated as identical (``1.0``).
    """
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())

    union = words_a | words_b
    if not union:
        return 1.0
    return len(words_a & words_b) / len(union)


def deduplicate(
        results: Iterable[RetrievalResult],
        similarity_threshold: float = DEFAULT_DEDUP_THRESHOLD,
    ) -> list[RetrievalResult]:
    """Remove near-duplicate results in a single forward pass.

    A result is dropped when its :func:`text_similarity` to any already
    accepted result is ``>= similarity_threshold``, so the earliest member of
    each near-duplicate cluster survives. This is a cheap, embedding-free
    approximation of semantic deduplication.

    Parameters
    ----------
    results : Iterable[RetrievalResult]
        Results in ranked order.
    similarity_threshold : float, optional
        Jaccard threshold. Defaults to ``0.95``.

    Returns
    -------
    list[RetrievalResult]
        Accepted results in input order.
    """
    accepted: list[RetrievalResult] = []
    for result in results:
        if any(text_similarity(kept.text, result.text) >= similarity_threshold for kept in accepted):
            logger.debug("Dropping near-duplicate chunk %s.", result.chunk_id)
            continue
        accepted.append(result)
    return accepted


def expand_context(results: Iterable[RetrievalResult]) -> list[RetrievalResult]:
    """Return each chunk once, in first-seen order.

    This is the hook for pulling sequence-adjacent chunks around each accepted
    result. Neighbour expansion is not performed; only repeated ``chunk_id``
    values are collapsed.
    """
    # TODO: add sequence-adjacent neighbours once the window contract
    # (window size, cross-document boundaries, scoring of neighbours) is agreed.
    seen: set[str] = set()
    expanded: list[RetrievalResult] = []
    for result in results:
        if result.chunk_id in seen:
            continue
        seen.add(result.chunk_id)
        expanded.append(result)
    return expanded


def _node_id(node: Any) -> str:
    """Extract a stable identifier for a node."""
    for attr in ("id_", "node_id", "id"):
        value = getattr(node, attr, None)
        if isinstance(value, str) and value:
            return value
    return f"<anon-node:{id(node)}>"


def _node_document_id(node: Any) -> str:
    """Extract the owning document id from a node."""
    ref_doc_id = getattr(node, "ref_doc_id", None)
    if isinstance(ref_doc_id, str) and ref_doc_id:
        return ref_doc_id
    metadata = getattr(node, "metadata", None) or {}
    return str(metadata.get("document_id", ""))


def results_from_nodes(nodes: Iterable[Any]) -> list[RetrievalResult]:
    """Convert ranked LlamaIndex nodes into retrieval results.

    Parameters
    ----------
    nodes : Iterable[Any]
        ``NodeWithScore`` items (or bare nodes) in ranked order, as returned
        by a LlamaIndex vector or BM25 retriever.

    Returns
    -------
    list[RetrievalResult]
        Results in the same order. A missing score becomes ``0.0``.
    """
    results: list[RetrievalResult] = []
    for item in nodes:
        if isinstance(item, NodeWithScore):
            node, score = item.node, item.score
        else:
            node, score = getattr(item, "node", item), getattr(item, "score", None)

        text = node.get_content() if hasattr(node, "get_content") else getattr(node, "text", "")
        metadata = getattr(node, "metadata", None)
        results.append(
            RetrievalResult(
                document_id=_node_document_id(node),
                chunk_id=_node_id(node),
                text=text or "",
                score=float(score) if score is not None else 0.0,
                metadata=dict(metadata) if metadata else None,
            )
        )
    return results


__all__ = [
    "RetrievalConfig",
    "hybrid_search",
    "filter_by_metadata",
    "deduplicate",
    "text_similarity",
    "expand_context",
    "results_from_nodes",
]
