import asyncio

from tenderbot_rag.common import RankedDocument, RetrievalResult
from tenderbot_rag.pipelines.retrieval_pipeline import RetrievalPipeline
from tenderbot_rag.retrieval.reranker import Reranker
from tenderbot_rag.retrieval.retriever import RetrievalConfig


class ReverseRerankProvider:
    """Async provider double that ranks documents in reverse order."""

    def __init__(self):
        self.calls = []

    async def arerank(self, query, documents, *, top_n):
        self.calls.append((query, list(documents), top_n))
        n = len(documents)
        return [RankedDocument(index=n - 1 - i, relevance_score=float(n - i)) for i in range(n)][:top_n]


def _result(chunk_id, text, metadata=None):
    return RetrievalResult("doc-1", chunk_id, text, 0.0, metadata)


VECTOR = [
    _result("a", "Bid bond of five percent is required", {"lot": 1}),
    _result("b", "Bid bond of five percent is required", {"lot": 1}),
    _result("c", "Site visit on the third of March", {"lot": 2}),
]
KEYWORD = [
    _result("c", "Site visit on the third of March", {"lot": 2}),
    _result("d", "Tenders must be submitted electronically", {"lot": 1}),
]


def test_pipeline_without_reranker_fuses_dedupes_and_cuts():
    """
    c appears in both lists so it ranks first; b duplicates a and is dropped.
    """
    pipeline = RetrievalPipeline()

    results = asyncio.run(pipeline.run("bid bond", VECTOR, KEYWORD))

    assert [r.chunk_id for r in results] == ["c", "a", "d"]
    assert results[0].score > results[1].score > results[2].score

    top = asyncio.run(pipeline.run("bid bond", VECTOR, KEYWORD, top_k=2))
    assert [r.chunk_id for r in top] == ["c", "a"]


def test_pipeline_merges_configured_and_call_filters():
    pipeline = RetrievalPipeline(retrieval_config=RetrievalConfig(filters={"lot": 1}))

    configured = asyncio.run(pipeline.run("q", VECTOR, KEYWORD))
    overridden = asyncio.run(pipeline(query="q", vector_results=VECTOR, keyword_results=KEYWORD, filters={"lot": 2}))

    assert [r.chunk_id for r in configured] == ["a", "d"]
    assert [r.chunk_id for r in overridden] == ["c"]


def test_pipeline_reranks_deduplicated_candidates():
    provider = ReverseRerankProvider()
    pipeline = RetrievalPipeline(reranker=Reranker(provider), dedup_threshold=0.95)

    results = asyncio.run(pipeline.run("bid bond", VECTOR, KEYWORD))

    query, documents, top_n = provider.calls[0]
    assert query == "bid bond"
    assert documents == [
        "Site visit on the third of March",
        "Bid bond of five percent is required",
        "Tenders must be submitted electronically",
    ]
    assert top_n == 10
    assert [r.chunk_id for r in results] == ["d", "a", "c"]
    assert [r.score for r in results] == [3.0, 2.0, 1.0]


def test_pipeline_with_no_candidates():
    provider = ReverseRerankProvider()
    pipeline = RetrievalPipeline(reranker=Reranker(provider))

    assert asyncio.run(pipeline.run("q", [], [])) == []
    assert provider.calls == []


def test_pipeline_filters_before_cutting_to_top_k():
    """
    The only lot 1 chunk ranks eleventh after fusion, below the default
    top_k of 10, and must still survive the filter.
    """
    vector = [_result(f"lot2-{i}", f"Clause {i} of the lot two schedule", {"lot": 2}) for i in range(10)]
    vector.append(_result("wanted", "Lot one delivery address", {"lot": 1}))
    pipeline = RetrievalPipeline(retrieval_config=RetrievalConfig(filters={"lot": 1}))

    results = asyncio.run(pipeline.run("delivery", vector, []))

    assert [r.chunk_id for r in results] == ["wanted"]


def test_pipeline_cuts_reranked_results_to_top_k():
    provider = ReverseRerankProvider()
    pipeline = RetrievalPipeline(reranker=Reranker(provider))

    results = asyncio.run(pipeline.run("bid bond", VECTOR, KEYWORD, top_k=2))

    _, documents, top_n = provider.calls[0]
    assert len(documents) == 3
    assert top_n == 2
    assert [r.chunk_id for r in results] == ["d", "a"]
