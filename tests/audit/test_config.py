from __future__ import annotations

from pathlib import Path

import pytest

from audit import AuditConfig, AuditConfigError
from audit.config import DEFAULT_LOG_DIR


def test_defaults_when_env_empty() -> None:
    config = AuditConfig.from_env({})

    assert config.log_path == DEFAULT_LOG_DIR / "flow-log.jsonl"
    assert config.flush_threshold == 100
    assert config.flush_interval_seconds == 5.0
    assert config.poll_interval_seconds == 2.0
    assert config.max_recent_lines == 500


def test_overrides_from_env(tmp_path: Path) -> None:
    config = AuditConfig.from_env(
        {
            "FLOWWARDEN_LOG_DIR": str(tmp_path),
            "FLOWWARDEN_LOG_FILE": "audit.jsonl",
            "FLOWWARDEN_FLUSH_THRESHOLD": "25",
            "FLOWWARDEN_FLUSH_INTERVAL": "0.5",
            "FLOWWARDEN_POLL_INTERVAL": "1",
            "FLOWWARDEN_MAX_RECENT_LINES": "50",
        }
    )

    assert config.log_path == tmp_path / "audit.jsonl"
    assert config.flush_threshold == 25
    assert config.flush_interval_seconds == 0.5
    assert config.as_dict()["max_recent_lines"] == 50


@pytest.mark.parametrize(
    "env",
    [
        {"FLOWWARDEN_FLUSH_THRESHOLD": "0"},
        {"FLOWWARDEN_FLUSH_THRESHOLD": "many"},
        {"FLOWWARDEN_FLUSH_INTERVAL": "-1"},
        {"FLOWWARDEN_LOG_FILE": "../escape.jsonl"},
    ],
)
def test_invalid_values_raise(env: dict[str, str]) -> None:
    with pytest.raises(AuditConfigError):
        AuditConfig.from_env(env)
