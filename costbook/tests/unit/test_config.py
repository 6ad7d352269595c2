"""Tests for configuration management."""

from pathlib import Path

import pytest

from costbook.utils import config as config_module
from costbook.utils.config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in (
        "COSTBOOK_ENV",
        "COSTBOOK_DATABASE_PATH",
        "COSTBOOK_TX_MAX_ATTEMPTS",
        "COSTBOOK_TX_BACKOFF_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestConfig:
    def test_explicit_database_path(self, tmp_path):
        config = Config("development", database_path=tmp_path / "ledger.db")

        assert config.database_path == tmp_path / "ledger.db"
        assert config.database_url == f"sqlite:///{tmp_path}/ledger.db"
        assert config.is_development
        assert not config.is_production

    def test_database_path_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("COSTBOOK_DATABASE_PATH", str(tmp_path / "env.db"))

        assert Config().database_path == tmp_path / "env.db"

    def test_production_uses_home_directory(self):
        config = Config("production")
        assert config.database_path.parent == Path.home() / ".costbook"

    def test_retry_defaults(self):
        config = Config("development")
        assert config.transaction_max_attempts == 5
        assert config.transaction_backoff_seconds >= 0

    def test_retry_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("COSTBOOK_TX_MAX_ATTEMPTS", "8")
        monkeypatch.setenv("COSTBOOK_TX_BACKOFF_SECONDS", "0.5")

        config = Config("development")

        assert config.transaction_max_attempts == 8
        assert config.transaction_backoff_seconds == 0.5

    def test_invalid_retry_setting_falls_back_to_default(self, monkeypatch):
        monkeypatch.setenv("COSTBOOK_TX_MAX_ATTEMPTS", "lots")
        assert Config("development").transaction_max_attempts == 5

    def test_ensure_directories(self, tmp_path):
        config = Config("development", database_path=tmp_path / "nested" / "ledger.db")
        config.ensure_directories()
        assert (tmp_path / "nested").is_dir()


class TestGetConfig:
    def test_singleton(self):
        assert get_config() is get_config()

    def test_environment_variable(self, monkeypatch):
        monkeypatch.setenv("COSTBOOK_ENV", "development")
        assert get_config().is_development

    def test_reset(self):
        first = get_config()
        reset_config()
        assert config_module._config_instance is None
        assert get_config() is not first
