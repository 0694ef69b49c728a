"""tenderbot_rag.pipelines

Pipeline orchestration components for the tender retrieval layer.

This package contains high-level pipeline abstractions that coordinate
fusion, filtering, deduplication and reranking. Pipelines are lightweight and
stateless beyond their configured components, making them safe to reuse
across requests and execution contexts.

Modules
-------
retrieval_pipeline
    Query-time hybrid retrieval pipeline.
"""

from .retrieval_pipeline import RetrievalPipeline

__all__ = ["RetrievalPipeline"]
