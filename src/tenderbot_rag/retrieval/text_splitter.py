"""tenderbot_rag.retrieval.text_splitter

Text splitting and chunking utilities for the retrieval layer.

This module converts raw document text into ordered, token-bounded
:class:`~tenderbot_rag.common.schemas.Chunk` drafts suitable for embedding and
retrieval. Three strategies are available:

- ``fixed``: sliding word windows with overlap
- ``recursive`` (default): structure-aware splitting on paragraph, line,
  sentence and word boundaries, followed by greedy packing
- ``semantic``: not yet implemented, delegates to ``recursive``

Token counts are estimated through a
:class:`~tenderbot_rag.common.tokenisation.TokenCounter`, by default
``ceil(len(text) / 4)``.

Classes
-------
ChunkingStrategy
    Tagged chunking strategy.
ChunkingConfig
    Validated chunking configuration.
Chunker
    Reusable chunker bound to a configuration and token counter.

Functions
---------
chunk_text
    Chunk a single document's text.
chunk_documents
    Chunk several documents, preserving input order.
effective_strategy
    Return the strategy whose handler actually runs for a configured strategy.
extract_page_number
    Extract an explicit ``[Page N]`` marker.
extract_section
    Extract a leading markdown heading.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Pattern, Tuple

from tenderbot_rag.common import Chunk, ChunkMetadata
from tenderbot_rag.common.tokenisation import DEFAULT_TOKEN_COUNTER, TokenCounter

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 512
DEFAULT_OVERLAP = 50
WORDS_PER_TOKEN = 0.75

# (pattern, joiner) pairs from coarsest to finest. The sentence pattern keeps
# the period attached to the sentence it closes.
RECURSIVE_SEPARATORS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"\n\n"), "\n\n"),
    (re.compile(r"\n"), "\n"),
    (re.compile(r"(?<=\.) "), " "),
    (re.compile(r"\s+"), " "),
)

_PAGE_MARKER = re.compile(r"\[Page (\d+)\]", re.IGNORECASE)
_MARKDOWN_HEADING = re.compile(r"^#+ (.+)", re.MULTILINE)


class ChunkingStrategy(str, Enum):
    """Chunking strategy tag."""

    FIXED = "fixed"
    SEMANTIC = "semantic"
    RECURSIVE = "recursive"

    @classmethod
    def parse(cls, value: Any) -> "ChunkingStrategy":
        """Coerce a strategy name or member into a :class:`ChunkingStrategy`.

        Raises
        ------
        ValueError
            If ``value`` does not name a known strategy.
        """
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Unknown chunking strategy {value!r}. "
                f"Supported strategies: {[s.value for s in cls]}."
            ) from None


def effective_strategy(strategy: ChunkingStrategy | str) -> ChunkingStrategy:
    """Return the strategy whose handler runs for ``strategy``.

    ``semantic`` is not implemented (it needs sentence embeddings) and is
    served by the ``recursive`` handler.
    """
    strategy = ChunkingStrategy.parse(strategy)
    if strategy is ChunkingStrategy.SEMANTIC:
        return ChunkingStrategy.RECURSIVE
    return strategy


@dataclass(frozen=True)
class ChunkingConfig:
    """Chunking configuration.

    Attributes
    ----------
    strategy : ChunkingStrategy
        Chunking strategy. Strings are coerced. Defaults to ``recursive``.
    max_tokens : int
        Token budget per chunk. Defaults to ``512``.
    overlap : int
        Overlap in tokens between adjacent windows; only used by ``fixed``.
        Defaults to ``50``.
    preserve_structure : bool
        Keep line/paragraph breaks between packed segments and record page and
        section labels in chunk metadata. Defaults to ``True``.
    """

    strategy: ChunkingStrategy = ChunkingStrategy.RECURSIVE
    max_tokens: int = DEFAULT_MAX_TOKENS
    overlap: int = DEFAULT_OVERLAP
    preserve_structure: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategy", ChunkingStrategy.parse(self.strategy))
        object.__setattr__(self, "max_tokens", int(self.max_tokens))
        object.__setattr__(self, "overlap", int(self.overlap))
        if self.max_tokens <= 0:
            raise ValueError("'chunking.max_tokens' must be a positive integer.")
        if self.overlap < 0:
            raise ValueError("'chunking.overlap' must be a non-negative integer.")

    @classmethod
    def from_mapping(cls, config: Optional[Mapping[str, Any]]) -> "ChunkingConfig":
        """Build a config from a ``chunking`` configuration section.

        Parameters
        ----------
        config : Mapping[str, Any] or None
            Mapping with optional ``strategy``, ``max_tokens``, ``overlap`` and
            ``preserve_structure`` keys. Missing keys take the defaults.

        Returns
        -------
        ChunkingConfig
            Validated configuration.
        """
        cfg = dict(config or {})
        return cls(
            strategy=cfg.get("strategy", ChunkingStrategy.RECURSIVE),
            max_tokens=cfg.get("max_tokens", DEFAULT_MAX_TOKENS),
            overlap=cfg.get("overlap", DEFAULT_OVERLAP),
            preserve_structure=bool(cfg.get("preserve_structure", True)),
        )


def extract_page_number(text: str) -> Optional[int]:
    """Return the page number from a ``[Page N]`` marker, or ``None``."""
    match = _PAGE_MARKER.search(text or "")
    return int(match.group(1)) if match else None


def extract_section(text: str) -> Optional[str]:
    """Return the text of the first markdown heading line, or ``None``."""
    match = _MARKDOWN_HEADING.search(text or "")
    return match.group(1).strip() if match else None


class Chunker:
    """Split document text into ordered, token-bounded chunk drafts.

    Parameters
    ----------
    config : ChunkingConfig or None, optional
        Chunking configuration. Defaults to :class:`ChunkingConfig` defaults.
    token_counter : TokenCounter or None, optional
        Token counter used to measure chunk size. Defaults to the
        ``ceil(len / 4)`` heuristic.
    """

    _HANDLERS = {
        ChunkingStrategy.FIXED: "_fixed_chunk",
        ChunkingStrategy.SEMANTIC: "_semantic_chunk",
        ChunkingStrategy.RECURSIVE: "_recursive_chunk",
    }

    def __init__(
        self,
        config: Optional[ChunkingConfig] = None,
        *,
        token_counter: Optional[TokenCounter] = None,
    ) -> None:
        self.config = config or ChunkingConfig()
        self.token_counter = token_counter or DEFAULT_TOKEN_COUNTER

    def _num_tokens(self, text: str) -> int:
        """Return the token count for ``text``."""
        return int(self.token_counter.count(text))

    def chunk(self, text: str, document_id: str) -> list[Chunk]:
        """Chunk ``text`` with the configured strategy.

        Parameters
        ----------
        text : str
            Raw document text.
        document_id : str
            Identifier of the owning document.

        Returns
        -------
        list[Chunk]
            Chunk drafts in document order with contiguous ``sequence`` values
            starting at 0. Empty or whitespace-only text yields no chunks.
        """
        if not text or not text.strip():
            return []

        handler = getattr(self, self._HANDLERS[self.config.strategy])
        return handler(text, document_id)

    def _build_chunk(
        self,
        document_id: str,
        sequence: int,
        text: str,
        *,
        start_offset: Optional[int] = None,
        end_offset: Optional[int] = None,
    ) -> Chunk:
        """Build a chunk draft, attaching page/section labels when enabled."""
        text = text.strip()
        page = section = None
        if self.config.preserve_structure:
            page = extract_page_number(text)
            section = extract_section(text)

        return Chunk(
            document_id=document_id,
            sequence=sequence,
            text=text,
            tokens=max(1, self._num_tokens(text)),
            metadata=ChunkMetadata(
                page=page,
                section=section,
                start_offset=start_offset,
                end_offset=end_offset,
            ),
        )

    def _fixed_chunk(self, text: str, document_id: str) -> list[Chunk]:
        """Slide a word window over the text.

        Window and step are derived from the token settings with a 0.75
        words-per-token ratio. Offsets are word indices.
        """
        words = text.split()
        window = max(1, math.floor(self.config.max_tokens * WORDS_PER_TOKEN))
        step = max(1, window - math.floor(self.config.overlap * WORDS_PER_TOKEN))

        chunks: list[Chunk] = []
        for start in range(0, len(words), step):
            window_words = words[start : start + window]
            chunks.append(
                self._build_chunk(
                    document_id,
                    len(chunks),
                    " ".join(window_words),
                    start_offset=start,
                    end_offset=start + len(window_words),
                )
            )
        return chunks

    def _split_segments(
        self,
        text: str,
        separators: Tuple[Tuple[Pattern[str], str], ...],
        joiner: str,
    ) -> list[tuple[str, str]]:
        """Split ``text`` until every segment fits or no separator is left.

        Returns ``(segment, joiner)`` pairs, where ``joiner`` is the separator
        that stood between the segment and its predecessor.
        """
        if not separators:
            return [(text, joiner)]

        (pattern, sep_joiner), finer = separators[0], separators[1:]
        segments: list[tuple[str, str]] = []
        for i, part in enumerate(pattern.split(text)):
            part_joiner = joiner if i == 0 else sep_joiner
            if self._num_tokens(part) <= self.config.max_tokens:
                segments.append((part, part_joiner))
            else:
                segments.extend(self._split_segments(part, finer, part_joiner))
        return segments

    def _recursive_chunk(self, text: str, document_id: str) -> list[Chunk]:
        """Split on progressively finer separators, then pack greedily.

        A segment that cannot be split further and still exceeds the budget is
        emitted as its own oversized chunk.
        """
        segments = self._split_segments(text, RECURSIVE_SEPARATORS, " ")

        chunks: list[Chunk] = []
        current = ""
        for segment, joiner in segments:
            segment = segment.strip()
            if not segment:
                continue

            if not self.config.preserve_structure:
                joiner = " "
            candidate = f"{current}{joiner}{segment}" if current else segment
            if self._num_tokens(candidate) <= self.config.max_tokens:
                current = candidate
                continue

            if current:
                chunks.append(self._build_chunk(document_id, len(chunks), current))
            current = segment

        if current:
            chunks.append(self._build_chunk(document_id, len(chunks), current))

        return chunks

    def _semantic_chunk(self, text: str, document_id: str) -> list[Chunk]:
        """Semantic chunking placeholder.

        Sentence-embedding segmentation is not implemented yet; this handler
        delegates to :meth:`_recursive_chunk`.
        """
        logger.info(
            "Semantic chunking is not implemented; using the recursive strategy for document %s.",
            document_id,
        )
        return self._recursive_chunk(text, document_id)


def chunk_text(
        text: str,
        document_id: str,
        config: Optional[ChunkingConfig] = None,
        *,
        token_counter: Optional[TokenCounter] = None,
    ) -> list[Chunk]:
    """Chunk a single document's text.

    Parameters
    ----------
    text : str
        Raw document text.
    document_id : str
        Identifier of the owning document.
    config : ChunkingConfig or None, optional
        Chunking configuration. Defaults to recursive, 512 tokens.
    token_counter : TokenCounter or None, optional
        Token counter used to measure chunk size.

    Returns
    -------
    list[Chunk]
        Chunk drafts in document order.
    """
    return Chunker(config, token_counter=token_counter).chunk(text, document_id)


def chunk_documents(
        documents: Iterable[Tuple[str, str]],
        config: Optional[ChunkingConfig] = None,
        *,
        token_counter: Optional[TokenCounter] = None,
    ) -> list[Chunk]:
    """Chunk several documents with one chunker.

    Parameters
    ----------
    documents : Iterable[tuple[str, str]]
        ``(document_id, text)`` pairs.
    config : ChunkingConfig or None, optional
        Chunking configuration shared by all documents.
    token_counter : TokenCounter or None, optional
        Token counter used to measure chunk size.

    Returns
    -------
    list[Chunk]
        All chunks across all documents, in input order. Sequences restart at
        0 for each document.
    """
    chunker = Chunker(config, token_counter=token_counter)
    docs = list(documents)

    all_chunks: List[Chunk] = []
    for i, (document_id, text) in enumerate(docs, start=1):
        chunks = chunker.chunk(text, document_id)
        logger.debug(
            "Chunked document %s (%d/%d) into %d chunks.",
            document_id, i, len(docs), len(chunks),
        )
        all_chunks.extend(chunks)

    return all_chunks


__all__ = [
    "ChunkingStrategy",
    "ChunkingConfig",
    "Chunker",
    "chunk_text",
    "chunk_documents",
    "effective_strategy",
    "extract_page_number",
    "extract_section",
]
