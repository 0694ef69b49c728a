"""tenderbot_rag.retrieval.reranker

Second-stage reranking of fused retrieval candidates.

This module defines:
- an abstract rerank provider interface with two implementations (a local
  sentence-transformers cross-encoder and an HTTP rerank endpoint)
- a small provider factory for configuration-driven construction
- :class:`Reranker`, which truncates candidates to the provider budget, calls
  the provider and maps relevance scores back onto the original results

A provider failure never propagates out of :meth:`Reranker.rerank`: the
original ordering is returned instead.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

import requests

from tenderbot_rag.common import RankedDocument, RetrievalResult
from tenderbot_rag.retrieval.types import RerankProvider

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 4000
DEFAULT_RERANK_DELAY = 0.5
SENTENCE_CUT_RATIO = 0.8
ELLIPSIS = "..."


def truncate_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Truncate ``text`` to roughly ``max_chars`` characters.

    The cut is made after the last period beyond 80% of the budget; if there
    is none, the text is hard-cut at the budget and ``"..."`` is appended.
    """
    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    last_period = truncated.rfind(".")
    if last_period > max_chars * SENTENCE_CUT_RATIO:
        return truncated[: last_period + 1]
    return truncated + ELLIPSIS


class BaseRerankProvider(ABC):
    """Abstract interface for rerank backends."""

    @abstractmethod
    def rerank(
            self,
            query: str,
            documents: Sequence[str],
            *,
            top_n: int,
        ) -> list[RankedDocument]:
        """Return up to ``top_n`` document indices ordered by relevance."""
        raise NotImplementedError

    async def arerank(
            self,
            query: str,
            documents: Sequence[str],
            *,
            top_n: int,
        ) -> list[RankedDocument]:
        """Run :meth:`rerank` in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: self.rerank(query, list(documents), top_n=top_n)
        )


class CrossEncoderRerankProvider(BaseRerankProvider):
    """Local cross-encoder reranker backed by ``sentence-transformers``.

    Parameters
    ----------
    model_name : str, optional
        Cross-encoder model name or path. Defaults to ``"BAAI/bge-reranker-base"``.
    device : str, optional
        Device identifier. Defaults to ``"cpu"``.
    batch_size : int, optional
        Prediction batch size. Defaults to ``32``.
    """

    def __init__(
            self,
            model_name: str = "BAAI/bge-reranker-base",
            *,
            device: str = "cpu",
            batch_size: int = 32,
        ):
        from sentence_transformers import CrossEncoder

        self.model_name = model_name
        self.batch_size = int(batch_size)
        self.model = CrossEncoder(model_name, device=device)

    def rerank(
            self,
            query: str,
            documents: Sequence[str],
            *,
            top_n: int,
        ) -> list[RankedDocument]:
        if not documents:
            return []

        pairs = [(query, doc) for doc in documents]
        scores = self.model.predict(pairs, batch_size=self.batch_size, show_progress_bar=False)
        ranked = sorted(
            (RankedDocument(index=i, relevance_score=float(s)) for i, s in enumerate(scores)),
            key=lambda item: item.relevance_score,
            reverse=True,
        )
        return ranked[:top_n]


class HTTPRerankProvider(BaseRerankProvider):
    """Reranker calling a hosted ``/rerank`` endpoint.

    The request body is ``{"model", "query", "documents", "top_n"}`` and the
    response is expected to carry ``results`` items with an ``index`` and a
    ``relevance_score`` (``relevanceScore`` and ``score`` are also accepted).
    This matches the Cohere, Jina and text-embeddings-inference rerank APIs.

    Parameters
    ----------
    model_name : str
        Rerank model identifier.
    api_base : str
        Base URL of the rerank API (``/rerank`` is appended).
    api_key : str or None, optional
        Bearer token sent in the ``Authorization`` header.
    timeout : float, optional
        Request timeout in seconds. Defaults to ``60``.
    session : requests.Session or None, optional
        Session to reuse across calls.
    """

    def __init__(
            self,
            model_name: str,
            *,
            api_base: str,
            api_key: Optional[str] = None,
            timeout: float = 60.0,
            session: Optional[requests.Session] = None,
        ):
        self.model_name = model_name
        self.url = api_base.rstrip("/") + "/rerank"
        self.api_key = api_key
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    def rerank(
            self,
            query: str,
            documents: Sequence[str],
            *,
            top_n: int,
        ) -> list[RankedDocument]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        response = self.session.post(
            self.url,
            json={
                "model": self.model_name,
                "query": query,
                "documents": list(documents),
                "top_n": int(top_n),
                "return_documents": False,
            },
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return self._parse_results(response.json())

    @staticmethod
    def _parse_results(payload: Mapping[str, Any]) -> list[RankedDocument]:
        """Parse a rerank response body into :class:`RankedDocument` items."""
        ranked: list[RankedDocument] = []
        for item in payload.get("results", []):
            score = item.get("relevance_score", item.get("relevanceScore", item.get("score")))
            if score is None:
                raise ValueError(f"Rerank result without a relevance score: {item!r}")
            ranked.append(RankedDocument(index=int(item["index"]), relevance_score=float(score)))
        return ranked


def create_rerank_provider(config: Optional[Mapping[str, Any]]) -> Optional[BaseRerankProvider]:
    """Create a rerank provider from configuration.

    Parameters
    ----------
    config : Mapping[str, Any] or None
        ``reranker`` configuration section. ``type`` selects the provider:
        ``"cross_encoder"`` or ``"http"``; ``"none"`` (the default) disables
        reranking.

    Returns
    -------
    BaseRerankProvider or None
        The provider, or ``None`` when reranking is disabled.

    Raises
    ------
    ValueError
        If ``type`` names an unsupported provider.
    KeyError
        If a required key for the selected provider is missing.
    """
    cfg = dict(config or {})
    kind = str(cfg.get("type", "none")).lower().strip().replace("-", "_")

    if kind in ("none", "", "null"):
        return None

    if kind in ("cross_encoder", "crossencoder", "sentence_transformers"):
        return CrossEncoderRerankProvider(
            model_name=str(cfg.get("model_name", "BAAI/bge-reranker-base")),
            device=str(cfg.get("device", "cpu")),
            batch_size=int(cfg.get("batch_size", 32)),
        )

    if kind in ("http", "cohere", "jina", "tei"):
        return HTTPRerankProvider(
            model_name=str(cfg["model_name"]),
            api_base=str(cfg["api_base"]),
            api_key=cfg.get("api_key"),
            timeout=float(cfg.get("timeout", 60.0)),
        )

    raise ValueError(
        f"Unsupported reranker type {kind!r}. Supported rerankers: ['cross_encoder', 'http', 'none']."
    )


class Reranker:
    """Reorder retrieval results with a rerank provider.

    Parameters
    ----------
    provider : RerankProvider
        Rerank backend (any object with an async ``arerank``).
    max_chars : int, optional
        Per-document character budget sent to the provider. Defaults to ``4000``.
    batch_delay : float, optional
        Seconds to wait between pairs in :meth:`rerank_batch`. Defaults to ``0.5``.
    sleep : Callable[[float], Awaitable[Any]], optional
        Coroutine used to wait between pairs. Defaults to ``asyncio.sleep``.
    """

    def __init__(
            self,
            provider: RerankProvider,
            *,
            max_chars: int = DEFAULT_MAX_CHARS,
            batch_delay: float = DEFAULT_RERANK_DELAY,
            sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        ):
        self.provider = provider
        self.max_chars = int(max_chars)
        self.batch_delay = float(batch_delay)
        self._sleep = sleep

    async def rerank(
            self,
            query: str,
            results: Sequence[RetrievalResult],
            top_k: Optional[int] = None,
        ) -> list[RetrievalResult]:
        """Rerank ``results`` for ``query``.

        Parameters
        ----------
        query : str
            Natural-language query string.
        results : Sequence[RetrievalResult]
            Candidates, typically fused and deduplicated.
        top_k : int or None, optional
            Number of results requested from the provider. Defaults to all.

        Returns
        -------
        list[RetrievalResult]
            Results in descending relevance with ``score`` replaced by the
            provider's relevance score; all other fields, including the full
            untruncated text, are unchanged. If the provider fails, the input
            results are returned as they were.
        """
        if not results:
            return []

        documents = [truncate_text(result.text, self.max_chars) for result in results]
        top_n = top_k if top_k is not None else len(results)

        try:
            ranked = await self.provider.arerank(query, documents, top_n=top_n)
            ordered = sorted(ranked, key=lambda item: item.relevance_score, reverse=True)
            for item in ordered:
                if not 0 <= item.index < len(results):
                    raise IndexError(
                        f"Rerank provider returned index {item.index} for {len(results)} documents."
                    )
            return [replace(results[item.index], score=item.relevance_score) for item in ordered]
        except Exception:
            logger.exception("Error reranking %d results; keeping the original order.", len(results))
            return list(results)

    async def rerank_batch(
            self,
            queries: Sequence[str],
            result_sets: Sequence[Sequence[RetrievalResult]],
            top_k: Optional[int] = None,
        ) -> list[list[RetrievalResult]]:
        """Rerank several ``(query, results)`` pairs sequentially.

        The reranker waits ``batch_delay`` seconds between pairs.

        Raises
        ------
        ValueError
            If ``queries`` and ``result_sets`` differ in length.
        """
        if len(queries) != len(result_sets):
            raise ValueError(
                f"Got {len(queries)} queries but {len(result_sets)} result sets."
            )

        reranked: list[list[RetrievalResult]] = []
        for i, (query, results) in enumerate(zip(queries, result_sets)):
            reranked.append(await self.rerank(query, results, top_k))
            if i < len(queries) - 1:
                await self._sleep(self.batch_delay)
        return reranked


__all__ = [
    "BaseRerankProvider",
    "CrossEncoderRerankProvider",
    "HTTPRerankProvider",
    "Reranker",
    "create_rerank_provider",
    "truncate_text",
]
