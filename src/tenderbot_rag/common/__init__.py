"""
Common building blocks shared across the retrieval stack.

This package provides small, widely-used primitives (chunk and result schemas,
ID aliases and token counting) intended to be imported by multiple layers of
the system.

Classes
-------
Chunk
    Chunk draft produced by the chunker.
ChunkMetadata
    Optional page/section/offset metadata for a chunk draft.
RetrievalResult
    Ranked candidate passed between fusion, deduplication and reranking.
RankedDocument
    Single rerank provider result.

Attributes
----------
DocId : TypeAlias
    Type alias for document identifiers.
ChunkId : TypeAlias
    Type alias for chunk identifiers.
Vector : TypeAlias
    Type alias for a dense embedding vector.

See Also
--------
tenderbot_rag.common.schemas
    Defines the dataclasses re-exported here.
tenderbot_rag.common.tokenisation
    Token counting utilities used to size chunks.
"""
from __future__ import annotations
from typing import List, TypeAlias

from .schemas import (
    Chunk,
    ChunkMetadata,
    RankedDocument,
    RetrievalResult,
)

DocId: TypeAlias = str
ChunkId: TypeAlias = str
Vector: TypeAlias = List[float]

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "RankedDocument",
    "RetrievalResult",
    "DocId",
    "ChunkId",
    "Vector",
]
