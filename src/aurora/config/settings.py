"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import sys
import tomllib
from pathlib import Path
from typing import Any

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    directory = _find_config_dir(config_dir)
    default_path = directory / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = directory / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        polymarket: dict[str, Any] | None = None,
        enrichment: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
        sync: dict[str, Any] | None = None,
        storage: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.polymarket = polymarket or {}
        self.enrichment = enrichment or {}
        self.cache = cache or {}
        self.sync = sync or {}
        self.storage = storage or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            polymarket=raw.get("polymarket"),
            enrichment=raw.get("enrichment"),
            cache=raw.get("cache"),
            sync=raw.get("sync"),
            storage=raw.get("storage"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def gamma_api_base(self) -> str:
        return self.polymarket.get("gamma_api_base", "https://gamma-api.polymarket.com")

    @property
    def clob_api_base(self) -> str:
        return self.polymarket.get("clob_api_base", "https://clob.polymarket.com")

    @property
    def data_api_base(self) -> str:
        return self.polymarket.get("data_api_base", "https://data-api.polymarket.com")

    @property
    def clob_ws_url(self) -> str:
        return self.polymarket.get(
            "clob_ws_url", "wss://ws-subscriptions-clob.polymarket.com/ws/market"
        )

    @property
    def http_timeout_sec(self) -> float:
        return float(self.polymarket.get("http_timeout_sec", 15.0))

    @property
    def enrichment_enabled(self) -> bool:
        return bool(self.enrichment.get("enabled", True))

    @property
    def enrichment_timeout_sec(self) -> float:
        return float(self.enrichment.get("timeout_sec", 8.0))

    @property
    def enrichment_ping_interval_sec(self) -> float:
        return float(self.enrichment.get("ping_interval_sec", 10.0))

    @property
    def markets_ttl_sec(self) -> int:
        return int(self.cache.get("markets_ttl_sec", 60))

    @property
    def price_history_ttl_sec(self) -> int:
        return int(self.cache.get("price_history_ttl_sec", 300))

    @property
    def orderbook_ttl_sec(self) -> int:
        return int(self.cache.get("orderbook_ttl_sec", 5))

    @property
    def cache_max_entries(self) -> int:
        return int(self.cache.get("max_entries", 10_000))

    @property
    def sync_cron(self) -> str:
        return str(self.sync.get("cron", "*/5 * * * *"))

    @property
    def sync_startup_delay_sec(self) -> float:
        return float(self.sync.get("startup_delay_sec", 3))

    @property
    def sync_per_view_limit(self) -> int:
        return int(self.sync.get("per_view_limit", 500))

    @property
    def sync_enrich_prices(self) -> bool:
        return bool(self.sync.get("enrich_prices", True))

    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/aurora.duckdb")

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at process entry.

    Logs go to stderr so CLI listings on stdout stay pipeable.
    """
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )
