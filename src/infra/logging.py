"""Diagnostic logging for the filter and viewer processes.

Each process writes human-readable lines to stderr and structured JSON lines
to ``<LOG_DIR>/flowwarden-<component>.log``, rotated at midnight. This log is
separate from the flow audit trail written by ``audit.LogWriter``.
"""

from __future__ import annotations

import logging
import logging.config
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

from pythonjsonlogger import jsonlogger

_CONFIGURED = False
DEFAULT_LOG_DIR = Path("storage/logs")

CONSOLE_FORMATS = {
    "text": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    "short": "[%(levelname)s] %(message)s",
}

# Third-party loggers that are chatty at INFO.
QUIET_LOGGERS = ("apscheduler",)


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps every line with the emitting process."""

    def __init__(self, run_id: str | None, environment: str | None, component: str) -> None:
        super().__init__(timestamp=True)
        self._static = {"component": component, "run_id": run_id, "environment": environment}

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        for key, value in self._static.items():
            log_record.setdefault(key, value)
        log_record.setdefault("logger", record.name)
        log_record.setdefault("level", record.levelname)


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    log_dir: Path = DEFAULT_LOG_DIR
    retention_days: int = 7
    console_format: str = "text"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "LoggingSettings":
        source = os.environ if env is None else env
        level = (source.get("LOG_LEVEL") or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {level!r}")
        console_format = (source.get("LOG_FORMAT") or "text").strip().lower()
        if console_format not in CONSOLE_FORMATS:
            raise ValueError(f"LOG_FORMAT must be one of {sorted(CONSOLE_FORMATS)}, got {console_format!r}")
        raw_retention = source.get("LOG_RETENTION_DAYS") or "7"
        try:
            retention_days = int(raw_retention)
        except ValueError as exc:
            raise ValueError(f"LOG_RETENTION_DAYS must be an integer, got {raw_retention!r}") from exc
        return cls(
            level=level,
            log_dir=Path(source.get("LOG_DIR") or DEFAULT_LOG_DIR),
            retention_days=max(retention_days, 0),
            console_format=console_format,
        )

    def log_path(self, component: str) -> Path:
        return self.log_dir / f"flowwarden-{component}.log"


def build_logging_config(
    settings: LoggingSettings,
    *,
    component: str,
    run_id: str | None = None,
    environment: str | None = None,
) -> Dict[str, Any]:
    """Return the ``dictConfig`` mapping for one process without applying it."""

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": ServiceJsonFormatter,
                "run_id": run_id,
                "environment": environment,
                "component": component,
            },
            "console": {
                "format": CONSOLE_FORMATS[settings.console_format],
                "datefmt": "%H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "level": settings.level,
                "formatter": "console",
            },
            "file": {
                "class": "logging.handlers.TimedRotatingFileHandler",
                "level": settings.level,
                "when": "midnight",
                "backupCount": settings.retention_days,
                "filename": str(settings.log_path(component)),
                "encoding": "utf-8",
                "formatter": "json",
            },
        },
        "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        "root": {
            "level": settings.level,
            "handlers": ["console", "file"],
        },
    }


def configure_logging(
    *,
    component: str = "filter",
    run_id: str | None = None,
    environment: str | None = None,
    settings: LoggingSettings | None = None,
) -> None:
    """Apply the process logging config once; later calls are ignored."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    settings = settings or LoggingSettings.from_env()
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(
        build_logging_config(settings, component=component, run_id=run_id, environment=environment)
    )
    _CONFIGURED = True


__all__ = [
    "LoggingSettings",
    "ServiceJsonFormatter",
    "build_logging_config",
    "configure_logging",
]
