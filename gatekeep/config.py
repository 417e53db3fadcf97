"""
gatekeep.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for **soft** settings (bot prefix, primary guild,
metrics cache and refresh tuning).  Secrets such as ``DATABASE_URL`` and
``DISCORD_TOKEN`` stay in the environment (``.env``).

Usage::

    from gatekeep.config import load_config

    cfg = load_config()                   # reads ./config.yaml by default
    print(cfg.metrics_cache_ttl_seconds)  # 300.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_METRICS_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_METRICS_REFRESH_MINUTES = 15


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GatekeepConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str

    # Optional primary guild snowflake (dev scoping)
    guild_id: int | None = None

    # Metrics
    metrics_cache_ttl_seconds: float = DEFAULT_METRICS_CACHE_TTL_SECONDS
    metrics_refresh_minutes: int = DEFAULT_METRICS_REFRESH_MINUTES


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> GatekeepConfig:
    """Read *path* and return a :class:`GatekeepConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a tuning value is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    ttl = float(raw.get("metrics_cache_ttl_seconds", DEFAULT_METRICS_CACHE_TTL_SECONDS))
    refresh = int(raw.get("metrics_refresh_minutes", DEFAULT_METRICS_REFRESH_MINUTES))
    if ttl < 0:
        raise ValueError("metrics_cache_ttl_seconds must be >= 0")
    if refresh < 1:
        raise ValueError("metrics_refresh_minutes must be >= 1")

    return GatekeepConfig(
        bot_prefix=raw["bot_prefix"],
        guild_id=int(raw["guild_id"]) if raw.get("guild_id") else None,
        metrics_cache_ttl_seconds=ttl,
        metrics_refresh_minutes=refresh,
    )
