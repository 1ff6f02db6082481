"""Append-only JSONL writer for the shared flow log."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from infra.metrics import MetricSink

from .record import AuditRecord, AuditRecordError

DIR_MODE = 0o700
FILE_MODE = 0o600


class LogWriter:
    """Appends batches of audit records to one JSON Lines file.

    The directory and file are created owner-only on first write. Write
    failures are logged and reported through the metric sink, never raised:
    the audit trail is best-effort and must not affect flow verdicts.
    """

    def __init__(self, path: str | Path, *, metric_sink: MetricSink | None = None) -> None:
        self._path = Path(path)
        self._metric_sink = metric_sink
        self._failures = 0
        self.logger = logging.getLogger("flowwarden.audit.writer")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def failures(self) -> int:
        """Flush cycles abandoned because the file could not be written."""

        return self._failures

    def encode(self, records: Iterable[AuditRecord]) -> bytes:
        """Serialize records, dropping any that fail to encode."""

        lines: list[bytes] = []
        dropped = 0
        for record in records:
            try:
                lines.append(record.to_json_line())
            except AuditRecordError as exc:
                dropped += 1
                self.logger.warning("dropping unencodable audit record: %s", exc)
        if dropped:
            self._record_metric("audit_records_dropped", float(dropped), {"reason": "encode"})
        return b"".join(lines)

    def write(self, records: Iterable[AuditRecord]) -> int:
        """Append ``records`` and return the number of lines written."""

        payload = self.encode(records)
        if not payload:
            return 0
        line_count = payload.count(b"\n")
        try:
            self._path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, FILE_MODE)
            with os.fdopen(fd, "ab") as handle:
                handle.write(payload)
        except OSError as exc:
            self.logger.warning(
                "flow log unavailable, discarding %s records: %s",
                line_count,
                exc,
                extra={"path": str(self._path)},
            )
            self._failures += 1
            self._record_metric("audit_flush_error", 1.0)
            self._record_metric("audit_records_dropped", float(line_count), {"reason": "io"})
            return 0
        self._record_metric("audit_records_written", float(line_count))
        return line_count

    def _record_metric(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        if self._metric_sink:
            self._metric_sink(name, value, tags)


__all__ = ["LogWriter", "DIR_MODE", "FILE_MODE"]
