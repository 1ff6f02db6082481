"""Prometheus metric sink helpers."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from prometheus_client import Counter, Gauge, start_http_server

MetricSink = Callable[[str, float, Mapping[str, Any] | None], None]

_FLOW_VERDICTS = Counter(
    "flowwarden_flow_verdicts_total",
    "Flows evaluated, by verdict",
    ["verdict"],
)
_RECORDS_WRITTEN = Counter(
    "flowwarden_audit_records_written_total",
    "Audit records appended to the flow log",
)
_RECORDS_DROPPED = Counter(
    "flowwarden_audit_records_dropped_total",
    "Audit records that never reached the flow log",
    ["reason"],
)
_FLUSHES = Counter(
    "flowwarden_audit_flush_total",
    "Non-empty audit buffer flushes",
    ["trigger"],
)
_FLUSH_ERRORS = Counter(
    "flowwarden_audit_flush_errors_total",
    "Flush cycles abandoned because the flow log could not be written",
)
_BUFFER_PENDING = Gauge(
    "flowwarden_audit_buffer_pending",
    "Audit records queued and not yet flushed",
)
_TAILER_LINES = Counter(
    "flowwarden_tailer_lines_total",
    "Lines surfaced by the flow log tailer",
)
_SERVER_STARTED = False


class PrometheusMetricSink:
    """Callable metric sink that forwards named samples to Prometheus."""

    def __call__(self, name: str, value: float, tags: Mapping[str, Any] | None = None) -> None:
        tags = tags or {}
        if name == "flow_verdict":
            _FLOW_VERDICTS.labels(verdict=str(tags.get("verdict", "unknown"))).inc(value)
        elif name == "audit_records_written":
            _RECORDS_WRITTEN.inc(value)
        elif name == "audit_records_dropped":
            _RECORDS_DROPPED.labels(reason=str(tags.get("reason", "unknown"))).inc(value)
        elif name == "audit_flush":
            _FLUSHES.labels(trigger=str(tags.get("trigger", "manual"))).inc(value)
        elif name == "audit_flush_error":
            _FLUSH_ERRORS.inc(value)
        elif name == "audit_buffer_pending":
            _BUFFER_PENDING.set(value)
        elif name == "tailer_lines":
            _TAILER_LINES.inc(value)


def ensure_metrics_server(port: int = 9464) -> None:
    """Start the Prometheus scrape endpoint if it is not already running."""

    global _SERVER_STARTED
    if _SERVER_STARTED:
        return
    start_http_server(port)
    _SERVER_STARTED = True


__all__ = ["MetricSink", "PrometheusMetricSink", "ensure_metrics_server"]
