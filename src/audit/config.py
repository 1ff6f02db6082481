"""Audit trail configuration surface."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, MutableMapping

DEFAULT_LOG_DIR = Path.home() / ".flowwarden"
DEFAULT_LOG_FILE = "flow-log.jsonl"


class AuditConfigError(ValueError):
    """Raised when an audit setting is missing or invalid."""


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise AuditConfigError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise AuditConfigError(f"{key} must be positive, got {value}")
    return value


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise AuditConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise AuditConfigError(f"{key} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class AuditConfig:
    log_dir: Path = DEFAULT_LOG_DIR
    log_file_name: str = DEFAULT_LOG_FILE
    flush_threshold: int = 100
    flush_interval_seconds: float = 5.0
    poll_interval_seconds: float = 2.0
    max_recent_lines: int = 500

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.log_file_name

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AuditConfig":
        source = os.environ if env is None else env
        log_dir = source.get("FLOWWARDEN_LOG_DIR")
        log_file = (source.get("FLOWWARDEN_LOG_FILE") or "").strip()
        if "/" in log_file or log_file in {".", ".."}:
            raise AuditConfigError(f"FLOWWARDEN_LOG_FILE must be a bare file name, got {log_file!r}")
        return cls(
            log_dir=Path(log_dir).expanduser() if log_dir else DEFAULT_LOG_DIR,
            log_file_name=log_file or DEFAULT_LOG_FILE,
            flush_threshold=_get_int(source, "FLOWWARDEN_FLUSH_THRESHOLD", 100),
            flush_interval_seconds=_get_float(source, "FLOWWARDEN_FLUSH_INTERVAL", 5.0),
            poll_interval_seconds=_get_float(source, "FLOWWARDEN_POLL_INTERVAL", 2.0),
            max_recent_lines=_get_int(source, "FLOWWARDEN_MAX_RECENT_LINES", 500),
        )

    def as_dict(self) -> MutableMapping[str, object]:
        return {
            "log_path": str(self.log_path),
            "flush_threshold": self.flush_threshold,
            "flush_interval_seconds": self.flush_interval_seconds,
            "poll_interval_seconds": self.poll_interval_seconds,
            "max_recent_lines": self.max_recent_lines,
        }


__all__ = ["AuditConfig", "AuditConfigError", "DEFAULT_LOG_DIR", "DEFAULT_LOG_FILE"]
