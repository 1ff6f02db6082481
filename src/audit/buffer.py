"""In-memory audit buffer flushed by size threshold or interval timer."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, List, Mapping, MutableMapping, Tuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from infra.metrics import MetricSink

from .record import AuditRecord
from .writer import LogWriter

FLUSH_JOB_ID = "audit_flush"

Batch = Tuple[List[AuditRecord], str]


class LogBuffer:
    """Batches audit records in front of a :class:`LogWriter`.

    Two locks with distinct jobs:

    * ``_lock`` guards the queue and the hand-off list. It is only ever held
      for list bookkeeping, never across I/O, so ``append`` does not wait on
      the disk.
    * ``_flush_lock`` serializes writer access. Batches are written strictly in
      hand-off order and no two flushes overlap.

    A full queue is swapped out under ``_lock`` and handed to a background
    worker; the appending thread returns immediately.
    """

    def __init__(
        self,
        writer: LogWriter,
        *,
        flush_threshold: int = 100,
        flush_interval_seconds: float = 5.0,
        scheduler: BaseScheduler | None = None,
        metric_sink: MetricSink | None = None,
    ) -> None:
        if flush_threshold <= 0:
            raise ValueError("flush_threshold must be positive")
        if flush_interval_seconds <= 0:
            raise ValueError("flush_interval_seconds must be positive")
        self.logger = logging.getLogger("flowwarden.audit.buffer")
        self._writer = writer
        self._flush_threshold = flush_threshold
        self._flush_interval = flush_interval_seconds
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)
        self._metric_sink = metric_sink
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._flush_lock = threading.Lock()
        self._queue: List[AuditRecord] = []
        self._handoff: Deque[Batch] = deque()
        self._in_flight = 0
        self._wakeup = threading.Event()
        self._closing = threading.Event()
        self._worker: threading.Thread | None = None
        self._running = False
        self._flush_count = 0
        self._written = 0
        self._last_flush: MutableMapping[str, Any] | None = None

    @property
    def writer(self) -> LogWriter:
        return self._writer

    @property
    def flush_threshold(self) -> int:
        return self._flush_threshold

    @property
    def flush_count(self) -> int:
        with self._lock:
            return self._flush_count

    def pending(self) -> int:
        """Records accepted but not yet handed to the writer."""

        with self._lock:
            return self._pending_locked()

    def append(self, record: AuditRecord) -> None:
        handed_off = False
        with self._lock:
            self._queue.append(record)
            if len(self._queue) >= self._flush_threshold:
                self._handoff_locked("threshold")
                self._ensure_worker_locked()
                handed_off = True
            pending = self._pending_locked()
        if handed_off:
            self._wakeup.set()
        self._record_metric("audit_buffer_pending", float(pending))

    def flush(self, trigger: str = "manual") -> int:
        """Write everything queued so far; returns the number of lines written.

        Runs in the calling thread. Batches already handed to the worker are
        written first so the file keeps arrival order.
        """

        with self._lock:
            self._handoff_locked(trigger)
        return self._drain()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every handed-off batch has been written."""

        with self._idle:
            return self._idle.wait_for(
                lambda: not self._handoff and self._in_flight == 0, timeout
            )

    def start(self) -> None:
        if self._running:
            return
        with self._lock:
            self._ensure_worker_locked()
        self._scheduler.add_job(
            self.flush,
            IntervalTrigger(seconds=self._flush_interval),
            kwargs={"trigger": "interval"},
            id=FLUSH_JOB_ID,
            name=FLUSH_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if self._owns_scheduler:
            self._scheduler.start()
        self._running = True
        self.logger.info("audit buffer started (interval %ss)", self._flush_interval)

    def stop(self) -> int:
        """Cancel the timer and worker, then flush whatever is queued right now."""

        if self._running:
            if self._owns_scheduler:
                self._scheduler.shutdown(wait=True)
            else:
                self._scheduler.remove_job(FLUSH_JOB_ID)
            self._running = False
        worker = self._worker
        if worker is not None:
            self._closing.set()
            self._wakeup.set()
            worker.join(timeout=5)
            self._worker = None
        written = self.flush("shutdown")
        self.logger.info("audit buffer stopped", extra={"final_flush_records": written})
        return written

    def stats(self) -> Mapping[str, Any]:
        with self._lock:
            return {
                "pending": self._pending_locked(),
                "flush_threshold": self._flush_threshold,
                "flush_interval_seconds": self._flush_interval,
                "flush_count": self._flush_count,
                "records_written": self._written,
                "flush_failures": self._writer.failures,
                "last_flush": dict(self._last_flush) if self._last_flush else None,
                "running": self._running,
                "path": str(self._writer.path),
            }

    def _pending_locked(self) -> int:
        return len(self._queue) + sum(len(batch) for batch, _ in self._handoff)

    def _handoff_locked(self, trigger: str) -> None:
        if self._queue:
            self._handoff.append((self._queue, trigger))
            self._queue = []

    def _ensure_worker_locked(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._closing.clear()
        self._worker = threading.Thread(target=self._run_worker, name="AuditLogBuffer", daemon=True)
        self._worker.start()

    def _run_worker(self) -> None:
        while not self._closing.is_set():
            self._wakeup.wait()
            self._wakeup.clear()
            self._drain()

    def _drain(self) -> int:
        written = 0
        with self._flush_lock:
            while True:
                with self._lock:
                    if not self._handoff:
                        self._idle.notify_all()
                        return written
                    batch, trigger = self._handoff.popleft()
                    self._in_flight += 1
                try:
                    written += self._write_batch(batch, trigger)
                finally:
                    with self._lock:
                        self._in_flight -= 1
                        self._idle.notify_all()

    def _write_batch(self, batch: List[AuditRecord], trigger: str) -> int:
        try:
            written = self._writer.write(batch)
        except Exception:
            self.logger.exception("audit flush failed; %s records discarded", len(batch))
            written = 0
        with self._lock:
            self._flush_count += 1
            self._written += written
            self._last_flush = {
                "trigger": trigger,
                "records": len(batch),
                "written": written,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        self._record_metric("audit_flush", 1.0, {"trigger": trigger})
        self.logger.debug(
            "audit buffer flushed",
            extra={"trigger": trigger, "records": len(batch), "written": written},
        )
        return written

    def _record_metric(self, name: str, value: float, tags: Mapping[str, Any] | None = None) -> None:
        if self._metric_sink:
            self._metric_sink(name, value, tags)


__all__ = ["LogBuffer", "FLUSH_JOB_ID"]
