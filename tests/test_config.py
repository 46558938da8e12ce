"""Tests for engine settings."""

import pytest

from itemdeck.config import Settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.definition_filename == "collection.json"
        assert settings.max_concurrent_fetches == 8

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ITEMDECK_MAX_CONCURRENT_FETCHES", "2")
        monkeypatch.setenv("ITEMDECK_USER_AGENT", "collection-checker/2.0")
        settings = Settings(_env_file=None)
        assert settings.max_concurrent_fetches == 2
        assert settings.user_agent == "collection-checker/2.0"

    def test_only_engine_settings(self) -> None:
        assert set(Settings.model_fields) == {
            "request_timeout",
            "user_agent",
            "max_concurrent_fetches",
            "definition_filename",
            "legacy_items_filename",
            "legacy_categories_filename",
        }
