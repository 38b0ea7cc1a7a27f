"""
Unit tests for core/config.py

Tests cover:
- Settings defaults
- load(): defaults, JSON file, missing file, environment overrides
- validate(): every rule reported at once
"""

import json
import logging

import pytest

from hype_arb.core.config import (
    DEFAULT_BOROS_API_URL,
    DEFAULT_HYPERLIQUID_API_URL,
    DEFAULT_HYPERLIQUID_WS_URL,
    Settings,
)


class TestDefaults:
    """Test dataclass defaults."""

    def test_defaults(self):
        """Defaults point at the public endpoints and validate cleanly."""
        settings = Settings()
        assert settings.hyperliquid_api_url == DEFAULT_HYPERLIQUID_API_URL
        assert settings.hyperliquid_ws_url == DEFAULT_HYPERLIQUID_WS_URL
        assert settings.boros_api_url == DEFAULT_BOROS_API_URL
        assert settings.reconnect_delay == 5.0
        assert settings.primary_symbol == "HYPE"
        assert settings.validate() == []


class TestLoad:
    """Test layered settings resolution."""

    def test_load_without_file_or_env_uses_defaults(self):
        """No file and an empty environment give plain defaults."""
        settings = Settings.load(None, environ={})
        assert settings == Settings()

    def test_load_config_file_not_found(self, tmp_path):
        """A config path that does not exist raises instead of falling back."""
        with pytest.raises(FileNotFoundError):
            Settings.load(tmp_path / "typo_config.json", environ={})

    def test_load_json_file(self, tmp_path):
        """File values override defaults; unknown keys are ignored."""
        config_file = tmp_path / "market_overview_config.json"
        with open(config_file, "w") as f:
            json.dump({
                "boros_api_url": "https://rates.test/v1",
                "funding_assets": ["BTC", "ETH", "SOL"],
                "request_timeout": 2.5,
                "unknown_key": "ignored",
            }, f)

        settings = Settings.load(config_file, environ={})

        assert settings.boros_api_url == "https://rates.test/v1"
        assert settings.funding_assets == ("BTC", "ETH", "SOL")
        assert settings.request_timeout == 2.5
        assert settings.hyperliquid_api_url == DEFAULT_HYPERLIQUID_API_URL

    def test_env_overrides_file(self, tmp_path):
        """Non-empty environment variables win over the file."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"hyperliquid_api_url": "https://file.test/info"}))

        settings = Settings.load(config_file, environ={
            "HYPERLIQUID_API_URL": "https://env.test/info",
            "HYPE_ARB_RECONNECT_DELAY": "1.5",
            "HYPE_ARB_LOG_LEVEL": "debug",
            "BOROS_API_URL": "",
        })

        assert settings.hyperliquid_api_url == "https://env.test/info"
        assert settings.reconnect_delay == 1.5
        assert settings.log_level_value == logging.DEBUG
        # empty values do not override
        assert settings.boros_api_url == DEFAULT_BOROS_API_URL


class TestValidate:
    """Test settings validation."""

    def test_validate_reports_every_problem(self):
        """Each broken field yields its own error string."""
        settings = Settings(
            hyperliquid_api_url="ftp://venue",
            hyperliquid_ws_url="https://venue/ws",
            request_timeout=0,
            reconnect_delay=-1,
            primary_symbol="",
            log_level="LOUD",
        )

        errors = settings.validate()

        assert len(errors) == 6
        assert any("hyperliquid_ws_url" in e for e in errors)
        assert any("reconnect_delay" in e for e in errors)
