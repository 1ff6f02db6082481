"""Offset-based reader that surfaces new flow log lines."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import timezone
from pathlib import Path
from typing import Any, Callable, Deque, List, Mapping, Sequence

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from infra.metrics import MetricSink

POLL_JOB_ID = "flow_log_poll"

LinesHandler = Callable[[Sequence[str]], None]


class LogTailer:
    """Incrementally reads a JSONL file from a remembered byte offset.

    Only complete (newline-terminated) lines are consumed; a partially written
    trailing line stays on disk until a later poll sees its line feed.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        max_lines: int = 500,
        metric_sink: MetricSink | None = None,
    ) -> None:
        if max_lines <= 0:
            raise ValueError("max_lines must be positive")
        self.logger = logging.getLogger("flowwarden.audit.tailer")
        self._path = Path(path)
        self._metric_sink = metric_sink
        self._offset = 0
        self._recent: Deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def offset(self) -> int:
        with self._lock:
            return self._offset

    @property
    def max_lines(self) -> int:
        return self._recent.maxlen or 0

    def recent_lines(self, limit: int | None = None) -> List[str]:
        """Oldest-first copy of the retained lines."""

        with self._lock:
            lines = list(self._recent)
        if limit is not None:
            return lines[-limit:] if limit > 0 else []
        return lines

    def poll(self) -> List[str]:
        """Read bytes appended since the last poll and return the new lines."""

        with self._lock:
            try:
                with self._path.open("rb") as handle:
                    size = handle.seek(0, 2)
                    if size < self._offset:
                        self.logger.warning(
                            "flow log shrank from %s to %s bytes; rereading from start",
                            self._offset,
                            size,
                        )
                        self._offset = 0
                        self._recent.clear()
                    handle.seek(self._offset)
                    chunk = handle.read()
            except FileNotFoundError:
                return []

            end = chunk.rfind(b"\n")
            if end < 0:
                return []
            consumed = chunk[: end + 1]
            try:
                text = consumed.decode("utf-8")
            except UnicodeDecodeError as exc:
                self.logger.warning("undecodable flow log bytes at offset %s: %s", self._offset, exc)
                return []

            new_lines = [line for line in text.split("\n") if line]
            self._recent.extend(new_lines)
            self._offset += len(consumed)

        if new_lines and self._metric_sink:
            self._metric_sink("tailer_lines", float(len(new_lines)), None)
        return new_lines


class TailerService:
    """Drives :meth:`LogTailer.poll` on a fixed interval."""

    def __init__(
        self,
        tailer: LogTailer,
        *,
        poll_interval_seconds: float = 2.0,
        on_lines: LinesHandler | None = None,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        self.logger = logging.getLogger("flowwarden.audit.tailer")
        self._tailer = tailer
        self._interval = poll_interval_seconds
        self._on_lines = on_lines
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self._running = False

    @property
    def tailer(self) -> LogTailer:
        return self._tailer

    @property
    def running(self) -> bool:
        return self._running

    def tick(self) -> List[str]:
        lines = self._tailer.poll()
        if lines and self._on_lines:
            self._on_lines(lines)
        return lines

    def start(self) -> None:
        if self._running:
            return
        self.tick()
        self._scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self._interval),
            id=POLL_JOB_ID,
            name=POLL_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if self._owns_scheduler:
            self._scheduler.start()
        self._running = True
        self.logger.info("tailing %s every %ss", self._tailer.path, self._interval)

    def stop(self) -> None:
        if not self._running:
            return
        if self._owns_scheduler:
            self._scheduler.shutdown(wait=True)
        else:
            self._scheduler.remove_job(POLL_JOB_ID)
        self._running = False
        self.logger.info("tailer stopped")

    def health(self) -> Mapping[str, Any]:
        return {
            "path": str(self._tailer.path),
            "offset": self._tailer.offset,
            "lines": len(self._tailer.recent_lines()),
            "max_lines": self._tailer.max_lines,
            "poll_interval_seconds": self._interval,
            "running": self._running,
        }


__all__ = ["LogTailer", "TailerService", "POLL_JOB_ID"]
