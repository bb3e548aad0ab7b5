"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from itemicons.config import IconSettings, get_settings


class TestIconSettings:
    """Tests for settings loading."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        """Defaults should target XIVAPI at 20 requests per second."""
        monkeypatch.delenv("ITEMICONS_API_BASE_URL", raising=False)
        settings = IconSettings(_env_file=None)

        assert settings.api_base_url == "https://xivapi.com"
        assert settings.rate_limit_per_second == 20
        assert settings.rate_limit_safety_margin == 1
        assert settings.priority_concurrency == 5

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch):
        """Environment variables should use the ITEMICONS_ prefix."""
        monkeypatch.setenv("ITEMICONS_RATE_LIMIT_PER_SECOND", "10")
        monkeypatch.setenv("ITEMICONS_API_BASE_URL", "https://mirror.test")

        settings = IconSettings(_env_file=None)

        assert settings.rate_limit_per_second == 10
        assert settings.api_base_url == "https://mirror.test"

    def test_rejects_invalid_values(self):
        with pytest.raises(ValidationError):
            IconSettings(_env_file=None, request_timeout=0)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()
