"""tenderbot_rag.common.tokenisation

Token counting utilities.

This module provides a small abstraction used by the chunker to size chunks
by *token count* without coupling it to any particular LLM provider or
tokenizer library.

The default is a character-ratio estimate. It is an approximation, not a
real tokenizer, and callers must not assume exact counts.

Classes
-------
TokenCounter
    Minimal protocol defining the token-counting interface.
HeuristicTokenCounter
    Dependency-free estimate, ``ceil(len(text) / chars_per_token)``.
TiktokenTokenCounter
    Exact token counter backed by the ``tiktoken`` library.

Functions
---------
estimate_tokens
    Estimate tokens with the default heuristic.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Protocol


class TokenCounter(Protocol):
    """A minimal interface for token-based sizing."""

    def count(self, text: str) -> int:
        """Return the number of tokens in ``text``."""


@dataclass(frozen=True)
class HeuristicTokenCounter:
    """Dependency-free, approximate token counter.

    Counts are rounded up, so any non-empty string is at least one token.

    Attributes
    ----------
    chars_per_token : int
        Approximate number of characters per token. Defaults to ``4``.
    """

    chars_per_token: int = 4

    def count(self, text: str) -> int:
        if not text:
            return 0
        cpt = max(1, int(self.chars_per_token))
        return math.ceil(len(text) / cpt)


@dataclass(frozen=True)
class TiktokenTokenCounter:
    """Token counter backed by the ``tiktoken`` library.

    Attributes
    ----------
    encoding_name : str
        Name of the ``tiktoken`` encoding.
    _enc : Any
        Internal ``tiktoken`` encoding object.
    """

    encoding_name: str
    _enc: Any

    @classmethod
    def from_encoding_name(cls, encoding_name: str) -> "TiktokenTokenCounter":
        """Construct a token counter from an encoding name.

        Parameters
        ----------
        encoding_name : str
            Name of the ``tiktoken`` encoding to load (e.g. ``"cl100k_base"``).

        Returns
        -------
        TiktokenTokenCounter
            A token counter initialised with the requested encoding.
        """
        import tiktoken # type: ignore

        return cls(encoding_name=encoding_name, _enc=tiktoken.get_encoding(encoding_name))

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._enc.encode(text))


DEFAULT_TOKEN_COUNTER = HeuristicTokenCounter()


def estimate_tokens(text: str) -> int:
    """Estimate the token count of ``text`` as ``ceil(len(text) / 4)``."""
    return DEFAULT_TOKEN_COUNTER.count(text)


__all__ = [
    "TokenCounter",
    "HeuristicTokenCounter",
    "TiktokenTokenCounter",
    "DEFAULT_TOKEN_COUNTER",
    "estimate_tokens",
]
