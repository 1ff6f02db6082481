"""Flow filter tying the policy engine to the buffered audit trail."""

from __future__ import annotations

import logging
import os
from typing import Iterable, Mapping

from dotenv import load_dotenv

from audit import AuditConfig, AuditRecord, LogBuffer, LogWriter
from infra.metrics import MetricSink, PrometheusMetricSink, ensure_metrics_server
from observability.state import ObservabilityState, get_observability_state
from policy import PolicyEngine, UserRule, Verdict

from .events import FlowEvent


class FlowFilter:
    """Per-flow entrypoint used by the interception layer.

    ``handle_flow`` returns the engine's verdict synchronously. Audit records
    are handed to the buffer afterwards; audit failures are logged and never
    change the verdict.
    """

    def __init__(
        self,
        *,
        engine: PolicyEngine,
        buffer: LogBuffer,
        metric_sink: MetricSink | None = None,
        observability_state: ObservabilityState | None = None,
    ) -> None:
        self.logger = logging.getLogger("flowwarden.filter")
        self.engine = engine
        self.buffer = buffer
        self.metric_sink = metric_sink
        self._state = observability_state
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self.buffer.start()
        self._started = True
        self.logger.info("flow filter started with %s user rules", len(self.engine))

    def stop(self) -> None:
        was_started = self._started
        self.buffer.stop()
        self._started = False
        self._sync_state()
        if was_started:
            self.logger.info("flow filter stopped")

    def handle_flow(self, event: FlowEvent) -> Verdict:
        verdict = self.engine.evaluate(event.uid, event.hostname)
        self.logger.info(
            "flow uid=%s process=%s host=%s verdict=%s",
            event.uid,
            event.process_name or "unknown",
            event.hostname or "unknown",
            verdict.value,
            extra={
                "uid": event.uid,
                "process_name": event.process_name,
                "remote_host": event.hostname,
                "verdict": verdict.value,
            },
        )
        if self.metric_sink:
            self.metric_sink("flow_verdict", 1.0, {"verdict": verdict.value})
        if self._state:
            self._state.record_verdict(
                verdict.value,
                uid=event.uid,
                hostname=event.hostname,
                process_name=event.process_name,
            )
        record = AuditRecord(
            uid=event.uid,
            verdict=verdict,
            process_name=event.process_name,
            remote_host=event.hostname,
        )
        try:
            self.buffer.append(record)
        except Exception:
            self.logger.exception("failed to buffer audit record")
            if self._state:
                self._state.record_append_failure()
        return verdict

    def health(self) -> Mapping[str, object]:
        self._sync_state()
        return {
            "started": self._started,
            "rules": len(self.engine),
            "uids": self.engine.uids(),
            "audit": self.buffer.stats(),
            "observability": self._state.snapshot() if self._state else {},
        }

    def _sync_state(self) -> None:
        if self._state:
            stats = self.buffer.stats()
            self._state.record_audit_stats(
                {
                    "flush_count": stats["flush_count"],
                    "records_written": stats["records_written"],
                    "flush_failures": stats["flush_failures"],
                    "last_flush": stats["last_flush"],
                }
            )


def build_filter_from_env(
    rules: Iterable[UserRule] = (),
    *,
    load_env: bool = True,
    config: AuditConfig | None = None,
) -> FlowFilter:
    """Build a filter wired to the configured flow log and Prometheus."""

    if load_env:
        load_dotenv()
    config = config or AuditConfig.from_env()
    metric_sink = PrometheusMetricSink()
    metrics_port = os.environ.get("PROMETHEUS_METRICS_PORT")
    if metrics_port:
        ensure_metrics_server(int(metrics_port))
    writer = LogWriter(config.log_path, metric_sink=metric_sink)
    buffer = LogBuffer(
        writer,
        flush_threshold=config.flush_threshold,
        flush_interval_seconds=config.flush_interval_seconds,
        metric_sink=metric_sink,
    )
    return FlowFilter(
        engine=PolicyEngine(rules),
        buffer=buffer,
        metric_sink=metric_sink,
        observability_state=get_observability_state(),
    )


__all__ = ["FlowFilter", "build_filter_from_env"]
