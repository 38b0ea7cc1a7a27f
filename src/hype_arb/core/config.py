"""
Runtime settings for the market-data core.

Values are resolved in three layers, later ones winning:

1. dataclass defaults (public Hyperliquid / Boros endpoints),
2. an optional JSON config file (``config/market_overview_config.json``),
3. environment variables (see ``ENV_OVERRIDES``).

No credentials are needed for any endpoint used here.
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

DEFAULT_HYPERLIQUID_API_URL = "https://api.hyperliquid.xyz/info"
DEFAULT_HYPERLIQUID_WS_URL = "wss://api.hyperliquid.xyz/ws"
DEFAULT_BOROS_API_URL = "https://api.pendle.finance/core/v1"

# env var -> (field name, type)
ENV_OVERRIDES = {
    "HYPERLIQUID_API_URL": ("hyperliquid_api_url", str),
    "HYPERLIQUID_WS_URL": ("hyperliquid_ws_url", str),
    "BOROS_API_URL": ("boros_api_url", str),
    "HYPE_ARB_REQUEST_TIMEOUT": ("request_timeout", float),
    "HYPE_ARB_RECONNECT_DELAY": ("reconnect_delay", float),
    "HYPE_ARB_PRIMARY_SYMBOL": ("primary_symbol", str),
    "HYPE_ARB_LOG_LEVEL": ("log_level", str),
    "HYPE_ARB_LOG_PATH": ("log_path", str),
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    hyperliquid_api_url: str = DEFAULT_HYPERLIQUID_API_URL
    hyperliquid_ws_url: str = DEFAULT_HYPERLIQUID_WS_URL
    boros_api_url: str = DEFAULT_BOROS_API_URL

    request_timeout: float = 10.0  # seconds, applied to every REST call
    reconnect_delay: float = 5.0   # seconds between WebSocket close and reconnect

    primary_symbol: str = "HYPE"
    funding_assets: tuple[str, ...] = ("BTC", "ETH")

    log_level: str = "INFO"
    log_path: str = "logs/market_overview.log"

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Build settings from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if "funding_assets" in kwargs:
            kwargs["funding_assets"] = tuple(kwargs["funding_assets"])
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: str | Path) -> "Settings":
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def load(cls, config_path: Optional[str | Path] = None, environ: Optional[dict] = None) -> "Settings":
        """Resolve settings from defaults, an optional JSON file and the environment.

        Raises ``FileNotFoundError`` when ``config_path`` is given but missing.
        """
        if config_path is not None:
            settings = cls.from_json(config_path)
        else:
            settings = cls()
        settings.apply_env(os.environ if environ is None else environ)
        return settings

    def apply_env(self, environ) -> None:
        for var, (name, cast) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw:
                setattr(self, name, cast(raw))

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def validate(self) -> list[str]:
        """
        Validate settings.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for name in ("hyperliquid_api_url", "boros_api_url"):
            if not getattr(self, name).startswith(("http://", "https://")):
                errors.append(f"{name} must be an http(s) URL")

        if not self.hyperliquid_ws_url.startswith(("ws://", "wss://")):
            errors.append("hyperliquid_ws_url must be a ws(s) URL")

        if self.request_timeout <= 0:
            errors.append("request_timeout must be > 0")

        if self.reconnect_delay <= 0:
            errors.append("reconnect_delay must be > 0")

        if not self.primary_symbol:
            errors.append("primary_symbol must not be empty")

        if self.log_level.upper() not in _LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(_LOG_LEVELS)}")

        return errors
