"""tenderbot_rag.retrieval.embedder

Embedding providers and the batching embedding client.

This module defines a small provider-agnostic interface for producing vector
embeddings from text, concrete providers backed by LlamaIndex embedding
wrappers, and :class:`EmbeddingClient`, which batches and rate-limits calls to
a provider on behalf of ingestion and query code.

Classes
-------
EmbeddingError
    Raised when the embedding provider call fails.
VectorLengthMismatchError
    Raised when comparing vectors of different dimensionality.
BaseEmbedder
    Abstract provider wrapping a LlamaIndex embedding model.
HuggingFaceEmbedder
    Provider backed by a Hugging Face SentenceTransformer via LlamaIndex.
OpenAILikeEmbedder
    Provider backed by an OpenAI-compatible HTTP API via LlamaIndex.
MockEmbedder
    Provider backed by LlamaIndex's constant-vector mock, for offline use.
EmbeddingClient
    Batching, rate-limited client over any embedding provider.

Functions
---------
create_embedder
    Create an embedding provider from a configuration mapping.
cosine_similarity
    Cosine similarity between two vectors.
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

import yaml
from llama_index.core.base.embeddings.base import BaseEmbedding as LlamaIndexBaseEmbedding

from tenderbot_rag.retrieval.types import EmbeddingProvider, InputType

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 96
DEFAULT_BATCH_DELAY = 1.0


class EmbeddingError(RuntimeError):
    """The embedding provider failed to produce vectors."""


class VectorLengthMismatchError(ValueError):
    """Two vectors of different dimensionality were compared."""


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return bool(value)


class BaseEmbedder(ABC):
    """Abstract embedding provider over a LlamaIndex embedding model.

    Document texts are encoded with ``get_text_embedding_batch`` and query
    texts with ``get_query_embedding``, which is where LlamaIndex applies any
    model-specific query/text asymmetry (instructions, prefixes).
    """

    @abstractmethod
    def get_embedder(self) -> LlamaIndexBaseEmbedding:
        """
        Return the LlamaIndex embedding instance.

        Returns
        -------
        LlamaIndexBaseEmbedding
            The underlying LlamaIndex embedding.
        """
        pass

    @classmethod
    def from_config(cls, config_path: str) -> "BaseEmbedder":
        """Create a provider from a YAML configuration file.

        Parameters
        ----------
        config_path : str
            Path to the YAML configuration file.

        Returns
        -------
        BaseEmbedder
            An initialised provider.
        """
        with open(config_path, "r") as f:
            cfg = yaml.safe_load(f)
        return cls.from_config_dict(cfg)

    @classmethod
    @abstractmethod
    def from_config_dict(cls, config: Dict[str, Any]) -> "BaseEmbedder":
        """Create a provider from a configuration mapping.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration mapping.

        Returns
        -------
        BaseEmbedder
            An initialised provider.

        Raises
        ------
        KeyError
            If required configuration keys are missing.
        """
        pass

    def embed(
            self,
            texts: Sequence[str],
            input_type: InputType = InputType.SEARCH_DOCUMENT,
        ) -> list[list[float]]:
        """Embed texts synchronously.

        Parameters
        ----------
        texts : Sequence[str]
            Texts to embed.
        input_type : InputType, optional
            ``search_document`` for indexed content, ``search_query`` for
            queries. Defaults to ``search_document``.

        Returns
        -------
        list[list[float]]
            One vector per text, same order.
        """
        embedder = self.get_embedder()
        texts = list(texts)
        if InputType(input_type) is InputType.SEARCH_QUERY:
            return [embedder.get_query_embedding(text) for text in texts]
        return embedder.get_text_embedding_batch(texts)

    async def aembed(
            self,
            texts: Sequence[str],
            input_type: InputType = InputType.SEARCH_DOCUMENT,
        ) -> list[list[float]]:
        """Asynchronously embed texts.

        The blocking model/HTTP call is run in a thread pool via
        ``run_in_executor``.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.embed, list(texts), input_type)


class HuggingFaceEmbedder(BaseEmbedder):
    """Provider backed by a Hugging Face SentenceTransformer via LlamaIndex.

    Parameters
    ----------
    model_name : str
        Name or path of the embedding model.
    device : str, optional
        Device identifier (e.g., ``"cuda"``, ``"cpu"``, ``"mps"``).
    trust_remote_code : bool, optional
        Whether to allow custom model code from the Hugging Face Hub.
    query_instruction : str or None, optional
        Instruction prepended to ``search_query`` texts.
    text_instruction : str or None, optional
        Instruction prepended to ``search_document`` texts.
    model_kwargs : dict[str, Any] or None, optional
        Additional keyword arguments forwarded to the underlying model.
    """

    def __init__(
            self,
            model_name: str,
            *,
            device: str = "cpu",
            trust_remote_code: bool = False,
            query_instruction: Optional[str] = None,
            text_instruction: Optional[str] = None,
            model_kwargs: dict[str, Any] = None,
        ):
        from llama_index.embeddings.huggingface import HuggingFaceEmbedding

        self.embedder = HuggingFaceEmbedding(
            model_name=model_name,
            device=device,
            trust_remote_code=trust_remote_code,
            query_instruction=query_instruction,
            text_instruction=text_instruction,
            model_kwargs=model_kwargs or {},
        )

    def get_embedder(self) -> LlamaIndexBaseEmbedding:
        return self.embedder

    @classmethod
    def from_config_dict(cls, config: Dict[str, Any]) -> "HuggingFaceEmbedder":
        """Create a Hugging Face provider from a configuration mapping.

        Notes
        -----
        ``model_name`` is required; ``device``, ``trust_remote_code``,
        ``query_instruction``, ``text_instruction`` and ``model_kwargs`` are
        optional.
        """
        return cls(
            model_name=config["model_name"],
            device=config.get("device", "cpu"),
            trust_remote_code=_as_bool(config.get("trust_remote_code"), False),
            query_instruction=config.get("query_instruction"),
            text_instruction=config.get("text_instruction"),
            model_kwargs=config.get("model_kwargs", {}),
        )


class OpenAILikeEmbedder(BaseEmbedder):
    """Provider backed by an OpenAI-compatible embedding API via LlamaIndex.

    Parameters
    ----------
    model_name : str
        Model identifier for the embedding endpoint.
    api_base : str
        Base URL for the OpenAI-compatible embedding API endpoint.
    api_key : str or None, optional
        API key sent with each request.
    model_kwargs : dict[str, Any] or None, optional
        Additional request parameters forwarded to the endpoint.
    timeout : float, optional
        Request timeout in seconds. Owned by the HTTP client, not this layer.
    max_retries : int, optional
        Transport-level retries performed by the OpenAI client.
    embed_batch_size : int, optional
        Texts per HTTP request inside one provider call.
    """

    def __init__(
            self,
            model_name: str,
            *,
            api_base: str,
            api_key: str = None,
            model_kwargs: dict[str, Any] = None,
            timeout: float = 60.0,
            max_retries: int = 0,
            embed_batch_size: int = 96,
            reuse_client: bool = True,
        ):
        from llama_index.embeddings.openai_like import OpenAILikeEmbedding

        self.embedder = OpenAILikeEmbedding(
            model_name=model_name,
            api_base=api_base,
            api_key=api_key,
            additional_kwargs=model_kwargs or {},
            timeout=timeout,
            max_retries=max_retries,
            embed_batch_size=embed_batch_size,
            reuse_client=reuse_client,
        )

    def get_embedder(self) -> LlamaIndexBaseEmbedding:
        return self.embedder

    @classmethod
    def from_config_dict(cls, config: Dict[str, Any]) -> "OpenAILikeEmbedder":
        """Create an OpenAI-compatible provider from a configuration mapping.

        Raises
        ------
        KeyError
            If ``model_name`` or ``api_base`` is missing.
        """
        return cls(
            model_name=config["model_name"],
            api_base=config["api_base"],
            api_key=config.get("api_key"),
            model_kwargs=config.get("model_kwargs", {}),
            timeout=float(config.get("timeout", config.get("request_timeout", 60.0))),
            max_retries=int(config.get("max_retries", 0)),
            embed_batch_size=int(config.get("embed_batch_size", DEFAULT_BATCH_SIZE)),
            reuse_client=_as_bool(config.get("reuse_client"), True),
        )


class MockEmbedder(BaseEmbedder):
    """Provider returning constant vectors from LlamaIndex's ``MockEmbedding``.

    Useful for offline runs of the ingestion path and for tests.

    Parameters
    ----------
    embed_dim : int, optional
        Vector dimensionality. Defaults to ``8``.
    """

    def __init__(self, embed_dim: int = 8):
        from llama_index.core.embeddings import MockEmbedding

        self.embedder = MockEmbedding(embed_dim=int(embed_dim))

    def get_embedder(self) -> LlamaIndexBaseEmbedding:
        return self.embedder

    @classmethod
    def from_config_dict(cls, config: Dict[str, Any]) -> "MockEmbedder":
        return cls(embed_dim=int(config.get("embed_dim", 8)))


# ----------------- Factory helpers -----------------

def _get_embedder_kind(cfg: Mapping[str, Any]) -> str:
    """Return the first non-empty ``kind``/``type``/``provider`` value, or ``""``."""
    for key in ("kind", "type", "provider"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_embedder_kind(kind: str) -> str:
    """Normalise a provider discriminator (e.g. ``"OpenAI-Like"`` -> ``"openai_like"``)."""
    k = kind.strip().lower().replace("-", "_").replace(" ", "_")
    while "__" in k:
        k = k.replace("__", "_")
    return k.replace("openailike", "openai_like").replace("open_ai_like", "openai_like")


_EMBEDDER_REGISTRY: Dict[str, type[BaseEmbedder]] = {
    "huggingface": HuggingFaceEmbedder,
    "hf": HuggingFaceEmbedder,
    "openai_like": OpenAILikeEmbedder,
    "openai": OpenAILikeEmbedder,
    "mock": MockEmbedder,
}


def create_embedder(config: Mapping[str, Any]) -> BaseEmbedder:
    """Create an embedding provider from a configuration mapping.

    The implementation is selected by ``kind``, ``type`` or ``provider``. If no
    discriminator is given, :class:`HuggingFaceEmbedder` is used.

    Parameters
    ----------
    config : Mapping[str, Any]
        Configuration mapping used to construct the provider.

    Returns
    -------
    BaseEmbedder
        An initialised provider.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator selects an unsupported implementation.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_embedder expected a mapping/dict, got {type(config)}")

    kind_raw = _get_embedder_kind(config)
    kind = _normalize_embedder_kind(kind_raw)
    cls = _EMBEDDER_REGISTRY.get(kind) if kind else HuggingFaceEmbedder

    if cls is None:
        raise ValueError(
            f"Unknown embedder kind '{kind_raw}' (normalized to '{kind}'). "
            f"Supported kinds: {sorted(_EMBEDDER_REGISTRY)}."
        )

    return cls.from_config_dict(dict(config))


class EmbeddingClient:
    """Batching, rate-limited embedding client.

    The client performs no retries; a failed provider call surfaces as
    :class:`EmbeddingError` and retry policy is left to the caller.

    Parameters
    ----------
    provider : EmbeddingProvider
        Embedding backend (any object with an async ``aembed``).
    batch_size : int, optional
        Default batch size for :meth:`embed_batch`. Defaults to ``96``.
    batch_delay : float, optional
        Seconds to wait between consecutive batches. Defaults to ``1.0``.
    sleep : Callable[[float], Awaitable[Any]], optional
        Coroutine used to wait between batches. Defaults to ``asyncio.sleep``.
    """

    def __init__(
            self,
            provider: EmbeddingProvider,
            *,
            batch_size: int = DEFAULT_BATCH_SIZE,
            batch_delay: float = DEFAULT_BATCH_DELAY,
            sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        ):
        if int(batch_size) <= 0:
            raise ValueError("'batch_size' must be a positive integer.")
        self.provider = provider
        self.batch_size = int(batch_size)
        self.batch_delay = float(batch_delay)
        self._sleep = sleep

    async def embed(
            self,
            texts: Sequence[str],
            input_type: InputType = InputType.SEARCH_DOCUMENT,
        ) -> list[list[float]]:
        """Embed texts with a single provider call.

        Parameters
        ----------
        texts : Sequence[str]
            Texts to embed.
        input_type : InputType, optional
            Provider-side encoding mode. Defaults to ``search_document``.

        Returns
        -------
        list[list[float]]
            One vector per text, same order.

        Raises
        ------
        EmbeddingError
            If the provider call fails or returns a different number of
            vectors than texts.
        """
        texts = list(texts)
        if not texts:
            return []

        vectors = await self._call_provider(texts, InputType(input_type))
        return _check_count(vectors, len(texts))

    async def embed_one(
            self,
            text: str,
            input_type: InputType = InputType.SEARCH_DOCUMENT,
        ) -> list[float]:
        """Embed a single text, returning ``[]`` if the provider returns nothing."""
        vectors = await self._call_provider([text], InputType(input_type))
        if not vectors:
            return []
        return _check_count(vectors, 1)[0]

    async def _call_provider(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        try:
            vectors = await self.provider.aembed(texts, input_type)
        except Exception as exc:
            logger.exception("Error generating embeddings for %d texts", len(texts))
            raise EmbeddingError(f"Failed to generate embeddings: {exc}") from exc
        return [list(vector) for vector in (vectors or [])]

    async def embed_batch(
            self,
            texts: Sequence[str],
            batch_size: Optional[int] = None,
            input_type: InputType = InputType.SEARCH_DOCUMENT,
        ) -> list[list[float]]:
        """Embed texts in sequential, fixed-size batches.

        The client waits ``batch_delay`` seconds between batches (not after the
        last one) to respect provider rate limits.

        Parameters
        ----------
        texts : Sequence[str]
            Texts to embed.
        batch_size : int or None, optional
            Texts per provider call. Defaults to the client's ``batch_size``.
        input_type : InputType, optional
            Provider-side encoding mode. Defaults to ``search_document``.

        Returns
        -------
        list[list[float]]
            Vectors concatenated in batch order.

        Raises
        ------
        ValueError
            If ``batch_size`` is not positive.
        EmbeddingError
            If any provider call fails. Earlier batches are discarded.
        """
        size = self.batch_size if batch_size is None else int(batch_size)
        if size <= 0:
            raise ValueError("'batch_size' must be a positive integer.")

        texts = list(texts)
        total_batches = math.ceil(len(texts) / size)
        results: list[list[float]] = []

        for batch_index, start in enumerate(range(0, len(texts), size), start=1):
            batch = texts[start : start + size]
            results.extend(await self.embed(batch, input_type))
            logger.debug("Embedded batch %d/%d (%d texts).", batch_index, total_batches, len(batch))

            if start + size < len(texts):
                await self._sleep(self.batch_delay)

        return results


def _check_count(vectors: list[list[float]], expected: int) -> list[list[float]]:
    if len(vectors) != expected:
        logger.error("Embedding provider returned %d vectors for %d texts.", len(vectors), expected)
        raise EmbeddingError(f"Expected {expected} embeddings but the provider returned {len(vectors)}.")
    return vectors


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity ``(a . b) / (|a| * |b|)``.

    A zero vector has no direction; its similarity to anything is ``0.0``.

    Raises
    ------
    VectorLengthMismatchError
        If ``a`` and ``b`` have different lengths.
    """
    if len(a) != len(b):
        raise VectorLengthMismatchError(
            f"Vectors must have the same length (got {len(a)} and {len(b)})."
        )

    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


__all__ = [
    "EmbeddingError",
    "VectorLengthMismatchError",
    "BaseEmbedder",
    "HuggingFaceEmbedder",
    "OpenAILikeEmbedder",
    "MockEmbedder",
    "EmbeddingClient",
    "create_embedder",
    "cosine_similarity",
]
