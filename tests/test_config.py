from pathlib import Path

import pytest

from common.config import ROOT_DIR, get_secrets, load_yaml_config, resolve_path
from common.errors import ConfigurationError

ENV = {
    "ASTRA_DB_API_ENDPOINT": "https://db.apps.astra.datastax.com",
    "ASTRA_DB_APPLICATION_TOKEN": "AstraCS:token",
    "ASTRA_DB_NAMESPACE": "default_keyspace",
    "ASTRA_DB_COLLECTION": "football",
}


@pytest.fixture(autouse=True)
def fresh_secrets(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in [*ENV, "OPENAI_API_KEY", "OPEN_API_KEY", "CRON_SECRET", "EMBEDDING_DIMENSIONS"]:
        monkeypatch.delenv(name, raising=False)
    get_secrets.cache_clear()
    yield
    get_secrets.cache_clear()


def test_bundled_config_loads():
    cfg = load_yaml_config()
    assert cfg.chunking.profiles["stats"].parent_size == 1500
    assert cfg.chunking.profiles["default"].parent_size == 800
    assert cfg.embedding.batch_size == 100
    assert cfg.writer.batch_size == 20
    assert cfg.retry.max_attempts == 3
    assert cfg.vectorstore.dimension == 1000


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_yaml_config(tmp_path / "missing.yaml")


def test_partial_config_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("retrieval:\n  k: 4\n")
    cfg = load_yaml_config(path)
    assert cfg.retrieval.k == 4
    assert cfg.writer.batch_size == 20


def test_relative_paths_resolve_against_repo_root(tmp_path):
    assert resolve_path(tmp_path) == tmp_path
    assert resolve_path(Path("config/sources.yaml")) == ROOT_DIR / "config" / "sources.yaml"


def test_missing_secrets_are_a_configuration_error(monkeypatch):
    for k, v in ENV.items():
        monkeypatch.setenv(k, v)
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        get_secrets()


def test_secrets_accept_legacy_openai_variable(monkeypatch):
    for k, v in ENV.items():
        monkeypatch.setenv(k, v)
    monkeypatch.setenv("OPEN_API_KEY", "sk-legacy")
    monkeypatch.setenv("EMBEDDING_DIMENSIONS", "1536")
    secrets = get_secrets()
    assert secrets.openai_api_key == "sk-legacy"
    assert secrets.embedding_dimensions == 1536
    assert secrets.cron_secret is None
