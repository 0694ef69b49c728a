"""
Retrieval layer of the tender knowledge base.

This package covers everything needed to turn raw document text into
retrievable units and to rank candidates for a query. It includes the
structure-aware chunker, embedding providers with a batching client, hybrid
rank fusion with filtering and deduplication, and second-stage rerankers.
The vector and keyword indexes themselves are external.

Submodules
----------
types
    Protocols for the embedding and rerank providers.
text_splitter
    Functions/classes for chunking documents into token-bounded drafts.
embedder
    Embedding providers and the batching embedding client.
retriever
    Reciprocal Rank Fusion, metadata filtering and deduplication.
reranker
    Rerank providers and the result reranker.

Re-exports
----------
Chunker
    Primary interface for splitting documents into chunks.
EmbeddingClient
    Batching client over an embedding provider.
RetrievalConfig
    Fusion weights, cut-offs and filters.
Reranker
    Second-stage ranker.
"""

from .types import EmbeddingProvider, InputType, RerankProvider
from .text_splitter import (
    Chunker,
    ChunkingConfig,
    ChunkingStrategy,
    chunk_documents,
    chunk_text,
)
from .embedder import (
    EmbeddingClient,
    EmbeddingError,
    VectorLengthMismatchError,
    cosine_similarity,
    create_embedder,
)
from .retriever import (
    RetrievalConfig,
    deduplicate,
    expand_context,
    filter_by_metadata,
    hybrid_search,
    results_from_nodes,
)
from .reranker import Reranker, create_rerank_provider, truncate_text

__all__ = [
    "EmbeddingProvider",
    "InputType",
    "RerankProvider",
    "Chunker",
    "ChunkingConfig",
    "ChunkingStrategy",
    "chunk_documents",
    "chunk_text",
    "EmbeddingClient",
    "EmbeddingError",
    "VectorLengthMismatchError",
    "cosine_similarity",
    "create_embedder",
    "RetrievalConfig",
    "deduplicate",
    "expand_context",
    "filter_by_metadata",
    "hybrid_search",
    "results_from_nodes",
    "Reranker",
    "create_rerank_provider",
    "truncate_text",
]
