import logging

import pytest

from tenderbot_rag.common.tokenisation import HeuristicTokenCounter, estimate_tokens
from tenderbot_rag.retrieval.text_splitter import (
    Chunker,
    ChunkingConfig,
    ChunkingStrategy,
    chunk_documents,
    chunk_text,
    effective_strategy,
    extract_page_number,
    extract_section,
)


class WordTokenCounter:
    """Counts one token per whitespace-separated word, for readable budgets."""

    def count(self, text: str) -> int:
        return len(text.split())


SAMPLE_TEXT = (
    "# Scope of Works\n"
    "[Page 3]\n"
    "The contractor shall supply and install all mechanical plant. "
    "All equipment must comply with the current building regulations.\n\n"
    "## Evaluation Criteria\n"
    "Tenders will be assessed on price and quality. "
    "Quality carries sixty percent of the total weighting. "
    "Price carries the remaining forty percent.\n\n"
    "Submissions received after the deadline will not be considered."
)


def _words(chunks):
    return [word for chunk in chunks for word in chunk.text.split()]


@pytest.mark.parametrize("strategy", ["recursive", "semantic"])
@pytest.mark.parametrize("max_tokens", [5, 12, 40, 512])
def test_recursive_and_semantic_reproduce_all_words(strategy, max_tokens):
    """
    Concatenating the emitted chunk texts must reproduce every word of the
    input, in order, with nothing dropped or duplicated.
    """
    config = ChunkingConfig(strategy=strategy, max_tokens=max_tokens)
    chunks = chunk_text(SAMPLE_TEXT, "doc-1", config, token_counter=WordTokenCounter())

    assert _words(chunks) == SAMPLE_TEXT.split()


@pytest.mark.parametrize("preserve_structure", [True, False])
def test_recursive_chunks_respect_token_budget(preserve_structure):
    """
    Every recursive chunk fits the budget unless it is a single atomic word
    that is longer than the budget on its own.
    """
    counter = HeuristicTokenCounter()
    text = SAMPLE_TEXT + " " + "x" * 200
    config = ChunkingConfig(max_tokens=20, preserve_structure=preserve_structure)

    chunks = chunk_text(text, "doc-1", config)

    assert chunks
    for chunk in chunks:
        if counter.count(chunk.text) > config.max_tokens:
            assert len(chunk.text.split()) == 1
        assert chunk.tokens == counter.count(chunk.text)


def test_oversized_atomic_segment_is_its_own_chunk():
    text = "short words here " + "y" * 100 + " and more words"
    chunks = chunk_text(text, "doc-1", ChunkingConfig(max_tokens=10))

    assert "y" * 100 in [chunk.text for chunk in chunks]
    assert _words(chunks) == text.split()


def test_sequences_are_contiguous_from_zero():
    chunks = chunk_text(SAMPLE_TEXT, "doc-7", ChunkingConfig(max_tokens=8), token_counter=WordTokenCounter())

    assert len(chunks) > 1
    assert [chunk.sequence for chunk in chunks] == list(range(len(chunks)))
    assert all(chunk.document_id == "doc-7" for chunk in chunks)
    assert all(chunk.text and chunk.text == chunk.text.strip() for chunk in chunks)
    assert all(chunk.tokens > 0 for chunk in chunks)


@pytest.mark.parametrize("text", ["", "   ", "\n\n\t \n"])
@pytest.mark.parametrize("strategy", list(ChunkingStrategy))
def test_empty_or_whitespace_text_yields_no_chunks(text, strategy):
    assert chunk_text(text, "doc-1", ChunkingConfig(strategy=strategy)) == []


def test_recursive_fits_whole_document_in_one_chunk():
    chunks = chunk_text(SAMPLE_TEXT, "doc-1")

    assert len(chunks) == 1
    assert chunks[0].text == SAMPLE_TEXT.strip()
    assert chunks[0].tokens == estimate_tokens(SAMPLE_TEXT.strip())


def test_recursive_keeps_periods_with_their_sentence():
    text = "First sentence here. Second sentence here. Third sentence here."
    chunks = chunk_text(text, "doc-1", ChunkingConfig(max_tokens=4), token_counter=WordTokenCounter())

    assert [chunk.text for chunk in chunks] == [
        "First sentence here.",
        "Second sentence here.",
        "Third sentence here.",
    ]


def test_fixed_windows_and_word_offsets():
    """
    With max_tokens=4 the window is floor(4 * 0.75) = 3 words; an overlap of
    2 tokens is floor(2 * 0.75) = 1 word, so the step is 2 words.
    """
    text = "w0 w1 w2 w3 w4 w5 w6"
    config = ChunkingConfig(strategy="fixed", max_tokens=4, overlap=2)

    chunks = chunk_text(text, "doc-1", config)

    assert [chunk.text for chunk in chunks] == [
        "w0 w1 w2",
        "w2 w3 w4",
        "w4 w5 w6",
        "w6",
    ]
    assert [(c.metadata.start_offset, c.metadata.end_offset) for c in chunks] == [
        (0, 3),
        (2, 5),
        (4, 7),
        (6, 7),
    ]


def test_fixed_without_overlap_reproduces_all_words():
    text = " ".join(f"word{i}" for i in range(50))
    chunks = chunk_text(text, "doc-1", ChunkingConfig(strategy="fixed", max_tokens=8, overlap=0))

    assert _words(chunks) == text.split()
    assert all(len(chunk.text.split()) <= 6 for chunk in chunks)


def test_fixed_clamps_degenerate_window_and_step():
    """
    A tiny budget with a large overlap must still make progress.
    """
    text = "alpha beta gamma"
    chunks = chunk_text(text, "doc-1", ChunkingConfig(strategy="fixed", max_tokens=1, overlap=100))

    assert [chunk.text for chunk in chunks] == ["alpha", "beta", "gamma"]


def test_semantic_delegates_to_recursive(monkeypatch, caplog):
    """
    The semantic strategy is an explicit fallback: it logs and runs the
    recursive handler.
    """
    calls = []
    original = Chunker._recursive_chunk

    def spy(self, text, document_id):
        calls.append(document_id)
        return original(self, text, document_id)

    monkeypatch.setattr(Chunker, "_recursive_chunk", spy)

    with caplog.at_level(logging.INFO, logger="tenderbot_rag.retrieval.text_splitter"):
        semantic = chunk_text(SAMPLE_TEXT, "doc-s", ChunkingConfig(strategy="semantic", max_tokens=20))

    assert calls == ["doc-s"]
    assert "not implemented" in caplog.text
    recursive = chunk_text(SAMPLE_TEXT, "doc-s", ChunkingConfig(strategy="recursive", max_tokens=20))
    assert semantic == recursive


def test_effective_strategy():
    assert effective_strategy("semantic") is ChunkingStrategy.RECURSIVE
    assert effective_strategy(ChunkingStrategy.FIXED) is ChunkingStrategy.FIXED
    assert effective_strategy("RECURSIVE") is ChunkingStrategy.RECURSIVE


def test_structure_metadata_is_extracted_per_chunk():
    text = (
        "# Pricing Schedule\n"
        "[Page 4]\n"
        "Rates are fixed for the contract term.\n\n"
        "# Insurance\n"
        "[page 9]\n"
        "Public liability cover of ten million is required."
    )
    chunks = chunk_text(text, "doc-1", ChunkingConfig(max_tokens=14), token_counter=WordTokenCounter())

    assert len(chunks) == 2
    assert (chunks[0].metadata.section, chunks[0].metadata.page) == ("Pricing Schedule", 4)
    assert (chunks[1].metadata.section, chunks[1].metadata.page) == ("Insurance", 9)
    assert chunks[0].text.startswith("# Pricing Schedule\n[Page 4]\n")


def test_heading_is_carried_as_the_section_label_only():
    text = "## Scope of Works\n[Page 2]\nSupply and install the pumping station."

    metadata = chunk_text(text, "doc-1")[0].metadata

    assert metadata.to_dict() == {"page": 2, "section": "Scope of Works"}


def test_structure_metadata_is_skipped_when_disabled():
    config = ChunkingConfig(preserve_structure=False)
    chunks = chunk_text(SAMPLE_TEXT, "doc-1", config)

    assert chunks[0].metadata.page is None
    assert chunks[0].metadata.section is None
    assert chunks[0].text == " ".join(SAMPLE_TEXT.split("\n\n"))


def test_chunk_to_dict_omits_unset_metadata():
    chunk = chunk_text("Plain text without markers.", "doc-1")[0]

    assert chunk.to_dict() == {
        "document_id": "doc-1",
        "sequence": 0,
        "text": "Plain text without markers.",
        "tokens": 7,
        "metadata": {},
    }


def test_extract_helpers():
    assert extract_page_number("see [Page 12] below") == 12
    assert extract_page_number("see [PAGE 2]") == 2
    assert extract_page_number("page 12") is None
    assert extract_section("intro\n## Method Statement\nbody") == "Method Statement"
    assert extract_section("#no space heading") is None


def test_chunk_documents_restarts_sequence_per_document():
    chunks = chunk_documents(
        [("doc-a", SAMPLE_TEXT), ("doc-b", ""), ("doc-c", "One more sentence.")],
        ChunkingConfig(max_tokens=12),
        token_counter=WordTokenCounter(),
    )

    doc_a = [c for c in chunks if c.document_id == "doc-a"]
    doc_c = [c for c in chunks if c.document_id == "doc-c"]
    assert [c.sequence for c in doc_a] == list(range(len(doc_a)))
    assert [c.sequence for c in doc_c] == [0]
    assert not [c for c in chunks if c.document_id == "doc-b"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_tokens": 0},
        {"overlap": -1},
        {"strategy": "paragraph"},
    ],
)
def test_invalid_chunking_config_raises(kwargs):
    with pytest.raises(ValueError):
        ChunkingConfig(**kwargs)


def test_chunking_config_from_mapping():
    config = ChunkingConfig.from_mapping({"strategy": "Fixed", "max_tokens": "256", "overlap": 10})

    assert config.strategy is ChunkingStrategy.FIXED
    assert config.max_tokens == 256
    assert config.overlap == 10
    assert config.preserve_structure is True
    assert ChunkingConfig.from_mapping(None) == ChunkingConfig()
