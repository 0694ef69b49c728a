"""tenderbot_rag.common.schemas

Core data schemas shared across the retrieval layer.

These lightweight dataclasses describe the canonical shapes for chunk drafts
produced from tender documents and for the ranked results passed between the
fusion, deduplication and reranking stages.

Classes
-------
ChunkMetadata
    Optional positional and structural metadata attached to a chunk draft.
Chunk
    A bounded span of document text, prior to persistence.
RetrievalResult
    A single ranked candidate returned by a search or ranking stage.
RankedDocument
    One item of a rerank provider response.

Notes
-----
``RetrievalResult.metadata`` is intentionally untyped (``dict[str, Any]``) to
allow arbitrary key/value pairs used for filtering (e.g., document type,
lot number, buyer). Downstream code must not assume any key is present.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ChunkMetadata:
    """Positional and structural metadata for a chunk draft.

    Attributes
    ----------
    page : int or None
        Page number taken from an explicit ``[Page N]`` marker.
    section : str or None
        Section label taken from a leading markdown heading.
    start_offset : int or None
        Start offset of the chunk in the source (word index for fixed chunks).
    end_offset : int or None
        End offset (exclusive) of the chunk in the source.
    """

    page: Optional[int] = None
    section: Optional[str] = None
    start_offset: Optional[int] = None
    end_offset: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the populated fields only."""
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class Chunk:
    """A chunk draft emitted by the chunker.

    ``embedding_id`` and persistence timestamps are assigned by external
    storage once the draft is written; they are not part of this type.

    Attributes
    ----------
    document_id : str
        Identifier of the owning document.
    sequence : int
        0-based position of the chunk within its document. Sequences for one
        document are contiguous in emission order.
    text : str
        Chunk text, non-empty after trimming.
    tokens : int
        Estimated token count of ``text``.
    metadata : ChunkMetadata
        Optional page/section/offset metadata.
    """

    document_id: str
    sequence: int
    text: str
    tokens: int
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)

    def to_dict(self) -> Dict[str, Any]:
        """Render the draft as a plain mapping for hand-off to storage.

        Returns
        -------
        dict[str, Any]
            Mapping with ``document_id``, ``sequence``, ``text``, ``tokens`` and
            a ``metadata`` mapping containing only the populated fields.
        """
        return {
            "document_id": self.document_id,
            "sequence": self.sequence,
            "text": self.text,
            "tokens": self.tokens,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class RetrievalResult:
    """A ranked retrieval candidate.

    Attributes
    ----------
    document_id : str
        Identifier of the document the chunk belongs to.
    chunk_id : str
        Identifier of the chunk. Used as identity for fusion and deduplication.
    text : str
        Chunk text.
    score : float
        Stage-dependent score: similarity, fused RRF score, or rerank relevance.
    metadata : Dict[str, Any] or None
        Arbitrary metadata used for filtering. ``None`` when the source
        supplied none.
    """

    document_id: str
    chunk_id: str
    text: str
    score: float = 0.0
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class RankedDocument:
    """A single rerank provider result.

    Attributes
    ----------
    index : int
        Position of the document in the submitted list.
    relevance_score : float
        Relevance assigned by the rerank model.
    """

    index: int
    relevance_score: float


__all__ = [
    "ChunkMetadata",
    "Chunk",
    "RetrievalResult",
    "RankedDocument",
]
