"""
summit.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for **infrastructure-only** settings (identity, API
port, time-zone default, realtime bridge, reconciliation cadence).  Gameplay
tuning (points per action, leaderboard size) lives in the ``settings``
database table and is read through :class:`~summit.engine.cache.CatalogCache`.

Usage::

    from summit.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Top 1% Club"
    print(cfg.default_timezone)  # "UTC"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SummitConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str
    community_motto: str

    # API
    api_port: int

    # Zone used when a member has none on record
    default_timezone: str = "UTC"

    # Forward change events between processes over PG LISTEN/NOTIFY
    realtime_pg_notify: bool = False

    # Ledger/counter reconciliation cadence; 0 disables the background job
    reconcile_interval_minutes: int = 1440


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> SummitConfig:
    """Read *path* and return a :class:`SummitConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return SummitConfig(
        community_name=raw["community_name"],
        community_motto=raw["community_motto"],
        api_port=int(raw["api_port"]),
        default_timezone=str(raw.get("default_timezone") or "UTC"),
        realtime_pg_notify=bool(raw.get("realtime_pg_notify", False)),
        reconcile_interval_minutes=int(raw.get("reconcile_interval_minutes", 1440)),
    )
