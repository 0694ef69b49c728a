import logging

import pytest

from tenderbot_rag.config import GlobalConfig


CONFIG_YAML = """
chunking:
  strategy: fixed
  max_tokens: 256
  overlap: 32
embedder:
  kind: openai_like
  model_name: bge-m3
  api_base: ${EMBED_API_BASE}
  api_key: ${EMBED_API_KEY}
reranker:
  type: http
  model_name: rerank-v3
  api_base: http://rerank:8080
retriever:
  top_k: 5
  filters:
    lot: 2
logging:
  level: debug
"""


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("EMBED_API_BASE", "http://embed:8000/v1")
    monkeypatch.setenv("EMBED_API_KEY", "token-123")
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


def test_load_expands_environment_variables(config_file):
    cfg = GlobalConfig.load(config_file)

    assert cfg.config_path == config_file.resolve()
    assert cfg.embedder["api_base"] == "http://embed:8000/v1"
    assert cfg.embedder["api_key"] == "token-123"


def test_section_accessors(config_file):
    cfg = GlobalConfig.load(config_file)

    assert cfg.chunking == {"strategy": "fixed", "max_tokens": 256, "overlap": 32}
    assert cfg.reranker["type"] == "http"
    assert cfg.retriever["filters"] == {"lot": 2}
    assert cfg.tokenization == {}
    assert cfg.log_level == logging.DEBUG


def test_optional_sections_default_to_empty():
    cfg = GlobalConfig({"embedder": {"kind": "mock"}})

    assert cfg.chunking == {}
    assert cfg.reranker == {}
    assert cfg.retriever == {}
    assert cfg.logging == {}
    assert cfg.log_level is None


def test_missing_embedder_raises_key_error():
    with pytest.raises(KeyError):
        GlobalConfig({}).embedder


def test_wrong_section_shapes_raise_type_error():
    with pytest.raises(TypeError):
        GlobalConfig({"embedder": "mock"}).embedder

    with pytest.raises(TypeError):
        GlobalConfig({"retriever": [1, 2]}).retriever

    with pytest.raises(TypeError):
        GlobalConfig(["not", "a", "mapping"])


def test_log_level_accepts_numbers_and_rejects_unknown_names():
    assert GlobalConfig({"logging": {"level": 30}}).log_level == logging.WARNING

    with pytest.raises(ValueError):
        GlobalConfig({"logging": {"level": "chatty"}}).log_level


def test_empty_file_loads_as_empty_config(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert GlobalConfig.load(path).raw == {}
