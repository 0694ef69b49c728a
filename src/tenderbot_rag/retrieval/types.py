"""tenderbot_rag.retrieval.types

Shared type definitions for the retrieval layer.

This module defines the protocols the retrieval core expects from its external
collaborators. Embedding and rerank providers are passed in as explicit client
objects, so any object with the right shape (including test doubles) can be
used.

Classes
-------
InputType
    Provider-side encoding mode for embeddings.
EmbeddingProvider
    Protocol for an asynchronous embedding backend.
RerankProvider
    Protocol for an asynchronous rerank backend.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Protocol, Sequence

from tenderbot_rag.common.schemas import RankedDocument


class InputType(str, Enum):
    """Asymmetric encoding mode requested from the embedding provider."""

    SEARCH_DOCUMENT = "search_document"
    SEARCH_QUERY = "search_query"


class EmbeddingProvider(Protocol):
    """Protocol defining the embedding backend interface.

    Methods
    -------
    aembed
        Embed a list of texts, returning one vector per text in order.
    """

    async def aembed(
            self,
            texts: Sequence[str],
            input_type: InputType,
        ) -> List[List[float]]:
        """Embed ``texts`` with the given ``input_type``.

        Parameters
        ----------
        texts : Sequence[str]
            Texts to embed.
        input_type : InputType
            Whether the texts are documents or queries.

        Returns
        -------
        list[list[float]]
            One vector per input text, same order.
        """
        ...


class RerankProvider(Protocol):
    """Protocol defining the rerank backend interface.

    Methods
    -------
    arerank
        Score documents against a query and return the best ``top_n`` indices.
    """

    async def arerank(
            self,
            query: str,
            documents: Sequence[str],
            *,
            top_n: int,
        ) -> List[RankedDocument]:
        """Rerank ``documents`` for ``query``.

        Parameters
        ----------
        query : str
            Natural-language query string.
        documents : Sequence[str]
            Candidate texts, already truncated to the provider budget.
        top_n : int
            Maximum number of ranked items to return.

        Returns
        -------
        list[RankedDocument]
            Ranked indices into ``documents`` with relevance scores.
        """
        ...
