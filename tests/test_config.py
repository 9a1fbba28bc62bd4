"""
tests/test_config.py — YAML Configuration Loader Tests
=======================================================
"""

from __future__ import annotations

import pytest

from summit.config import SummitConfig, load_config


def _write(tmp_path, body: str):
    path = tmp_path / "config.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_loads_required_and_defaults(tmp_path):
    path = _write(tmp_path, (
        "community_name: Top 1% Club\n"
        "community_motto: Show up every day.\n"
        "api_port: 8080\n"
    ))
    cfg = load_config(path)
    assert cfg == SummitConfig(
        community_name="Top 1% Club",
        community_motto="Show up every day.",
        api_port=8080,
    )
    assert cfg.default_timezone == "UTC"
    assert cfg.realtime_pg_notify is False
    assert cfg.reconcile_interval_minutes == 1440


def test_optional_keys(tmp_path):
    path = _write(tmp_path, (
        "community_name: C\n"
        "community_motto: M\n"
        "api_port: '9000'\n"
        "default_timezone: Europe/Berlin\n"
        "realtime_pg_notify: true\n"
        "reconcile_interval_minutes: 0\n"
    ))
    cfg = load_config(path)
    assert cfg.api_port == 9000
    assert cfg.default_timezone == "Europe/Berlin"
    assert cfg.realtime_pg_notify is True
    assert cfg.reconcile_interval_minutes == 0


def test_missing_file_has_hint(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.yaml.example"):
        load_config(tmp_path / "nope.yaml")


def test_missing_required_key(tmp_path):
    path = _write(tmp_path, "community_name: C\napi_port: 8000\n")
    with pytest.raises(KeyError):
        load_config(path)


def test_config_is_frozen(tmp_path):
    path = _write(tmp_path, "community_name: C\ncommunity_motto: M\napi_port: 1\n")
    cfg = load_config(path)
    with pytest.raises(AttributeError):
        cfg.api_port = 2
