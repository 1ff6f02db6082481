"""Buffered JSONL audit trail for flow verdicts, plus its tailing reader."""

from .buffer import LogBuffer
from .config import AuditConfig, AuditConfigError
from .record import AuditRecord, AuditRecordError
from .tailer import LogTailer, TailerService
from .writer import LogWriter

__all__ = [
    "AuditConfig",
    "AuditConfigError",
    "AuditRecord",
    "AuditRecordError",
    "LogBuffer",
    "LogTailer",
    "LogWriter",
    "TailerService",
]
