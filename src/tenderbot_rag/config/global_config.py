"""tenderbot_rag.config.global_config

Global configuration loader and accessors.

This module defines a lightweight wrapper around a raw YAML configuration
dictionary, providing validated, cached access to the configuration sections
used by the retrieval layer.

Environment variables of the form ``${VAR}`` are expanded recursively in all
string values at load time.

Classes
-------
GlobalConfig
    Loader and accessor for global project configuration.
"""

import logging
import os
import yaml
from pathlib import Path
from functools import cached_property

def _expand_env(obj):
    """Recursively expand environment variables in a nested structure.

    This function walks nested dictionaries and lists and applies
    :func:`os.path.expandvars` to any string values, expanding patterns of the
    form ``${VAR}`` using the current process environment.

    Parameters
    ----------
    obj : Any
        Object to expand. Supported types are dictionaries, lists, and strings.
        Other types are returned unchanged.

    Returns
    -------
    Any
        A structure of the same shape as ``obj`` with environment variables
        expanded in all string values.
    """
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        return os.path.expandvars(obj)
    return obj

def _optional_section(raw: dict, name: str) -> dict:
    """Return an optional mapping section, ``{}`` when absent."""
    section = raw.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise TypeError(f"'{name}' must be a mapping, got {type(section)}.")
    return section

class GlobalConfig:
    """Loader and accessor for global project configuration.

    This class wraps a raw configuration dictionary (typically loaded from YAML)
    and exposes validated, cached accessors for the chunking, tokenization,
    embedder, reranker, retriever and logging sections.

    Parameters
    ----------
    raw : dict
        Raw configuration data as loaded from a YAML file.
    config_path : Path or None, optional
        Absolute path of the loaded file, if any.
    """

    def __init__(
            self,
            raw: dict | None,
            config_path: Path | None = None,
        ):
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise TypeError(f"Configuration root must be a mapping, got {type(raw)}.")
        self.raw = raw
        self.config_path = config_path

    @classmethod
    def load(
            cls,
            path: str | Path,
        ) -> "GlobalConfig":
        """Load configuration from a YAML file.

        Parameters
        ----------
        path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        GlobalConfig
            An instance initialised with the loaded and environment-expanded data.

        Notes
        -----
        All string values in the loaded YAML are processed with recursive
        environment-variable expansion (``${VAR}``) via :func:`os.path.expandvars`.
        """
        cfg_path = Path(path).expanduser().resolve()
        with cfg_path.open("r") as f:
            data = yaml.safe_load(f)
        data = _expand_env(data)
        return cls(data, config_path=cfg_path)

    @cached_property
    def chunking(self) -> dict:
        """Return the chunking configuration section.

        Returns
        -------
        dict
            The ``chunking`` section (``strategy``, ``max_tokens``, ``overlap``,
            ``preserve_structure``), or an empty dict if not present.

        Raises
        ------
        TypeError
            If ``chunking`` is not a mapping.
        """
        return _optional_section(self.raw, "chunking")

    @cached_property
    def tokenization(self) -> dict:
        """Return the tokenization configuration section.

        Returns
        -------
        dict
            The ``tokenization`` section, or an empty dict if not present.
        """
        return _optional_section(self.raw, "tokenization")

    @cached_property
    def embedder(self) -> dict:
        """Return the embedder configuration section.

        Returns
        -------
        dict
            The ``embedder`` section of the configuration.

        Raises
        ------
        KeyError
            If ``embedder`` is missing from the configuration.
        TypeError
            If ``embedder`` is not a mapping.
        """
        section = self.raw.get("embedder")
        if section is None:
            raise KeyError("Missing 'embedder' section in configuration.")
        if not isinstance(section, dict):
            raise TypeError(f"'embedder' must be a mapping, got {type(section)}.")
        return section

    @cached_property
    def reranker(self) -> dict:
        """Return the reranker configuration section.

        Returns
        -------
        dict
            The ``reranker`` section, or an empty dict (reranking disabled) if
            not present.
        """
        return _optional_section(self.raw, "reranker")

    @cached_property
    def retriever(self) -> dict:
        """Return the retriever configuration section.

        Returns
        -------
        dict
            The ``retriever`` section (fusion weights, ``top_k``, ``min_score``,
            ``rrf_k``, ``filters``, ``dedup_threshold``), or an empty dict if
            not present.
        """
        return _optional_section(self.raw, "retriever")

    @cached_property
    def logging(self) -> dict:
        """Return the logging configuration section.

        Returns
        -------
        dict
            The ``logging`` section, or an empty dict if not present.
        """
        return _optional_section(self.raw, "logging")

    @cached_property
    def log_level(self) -> int | None:
        """Return the configured package log level.

        Returns
        -------
        int or None
            Numeric level from ``logging.level`` (name or number), or ``None``
            if not configured.

        Raises
        ------
        ValueError
            If ``logging.level`` is not a known level name.
        """
        level = self.logging.get("level")
        if level is None:
            return None
        if isinstance(level, int):
            return level

        numeric = logging.getLevelName(str(level).strip().upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level in 'logging.level': {level!r}")
        return numeric
