"""Tests for environment-driven settings."""

import pytest

from fxsync.config import DEFAULT_DB_URL, Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.db_url == DEFAULT_DB_URL
        assert settings.pool_size == 4
        assert settings.app_id is None
        assert settings.http_timeout == 10.0
        assert settings.http_retries == 3

    def test_overrides(self):
        settings = Settings.from_env(
            {
                "FXSYNC_DB_URL": "postgresql://u:p@localhost/rates",
                "FXSYNC_POOL_SIZE": "2",
                "OPEN_EXCHANGE_RATES_APP_ID": "abc123",
                "FXSYNC_HTTP_TIMEOUT": "2.5",
                "FXSYNC_HTTP_RETRIES": "5",
            }
        )
        assert settings.db_url == "postgresql://u:p@localhost/rates"
        assert settings.pool_size == 2
        assert settings.app_id == "abc123"
        assert settings.http_timeout == 2.5
        assert settings.http_retries == 5

    def test_blank_values_use_defaults(self):
        settings = Settings.from_env({"OPEN_EXCHANGE_RATES_APP_ID": "", "FXSYNC_POOL_SIZE": " "})
        assert settings.app_id is None
        assert settings.pool_size == 4

    def test_malformed_number(self):
        with pytest.raises(ValueError, match="FXSYNC_POOL_SIZE"):
            Settings.from_env({"FXSYNC_POOL_SIZE": "four"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("FXSYNC_DB_URL", "sqlite:///elsewhere.db")
        assert Settings.from_env().db_url == "sqlite:///elsewhere.db"
