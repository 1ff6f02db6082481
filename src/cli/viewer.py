"""CLI viewer that tails the shared flow log."""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Sequence

import typer
from dotenv import load_dotenv

from audit import AuditConfig, AuditRecord, AuditRecordError, LogTailer, TailerService
from infra.logging import configure_logging
from infra.metrics import PrometheusMetricSink, ensure_metrics_server

app = typer.Typer(help="flowwarden flow log viewer")


def _configure_environment() -> None:
    load_dotenv()
    run_id = os.environ.get("RUN_ID")
    if not run_id:
        run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        os.environ["RUN_ID"] = run_id
    configure_logging(component="viewer", run_id=run_id, environment=os.environ.get("ENVIRONMENT"))


def _load_config() -> AuditConfig:
    return AuditConfig.from_env()


def format_line(line: str) -> str:
    """Render one flow log line for humans; undecodable lines pass through."""

    try:
        record = AuditRecord.from_json_line(line)
    except AuditRecordError:
        return line
    timestamp = record.timestamp.isoformat(timespec="seconds")
    process = record.process_name or "-"
    host = record.remote_host or "-"
    return f"{timestamp}  uid={record.uid:<10} {process:<24} {host:<40} {record.verdict.value.upper()}"


def _echo_lines(lines: Sequence[str], raw: bool) -> None:
    for line in lines:
        typer.echo(line if raw else format_line(line))


@app.command()
def show(
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Lines to print"),
    raw: bool = typer.Option(False, "--raw", help="Print JSON lines unformatted"),
) -> None:
    """Print the most recent flow log entries and exit."""

    _configure_environment()
    config = _load_config()
    tailer = LogTailer(config.log_path, max_lines=config.max_recent_lines)
    tailer.poll()
    lines = tailer.recent_lines(limit)
    if not lines:
        typer.echo(f"No flow log entries at {config.log_path}", err=True)
        return
    _echo_lines(lines, raw)


@app.command()
def tail(raw: bool = typer.Option(False, "--raw", help="Print JSON lines unformatted")) -> None:
    """Follow the flow log until interrupted."""

    _configure_environment()
    config = _load_config()
    metrics_port = os.environ.get("PROMETHEUS_METRICS_PORT")
    if metrics_port:
        ensure_metrics_server(int(metrics_port))
    tailer = LogTailer(
        config.log_path,
        max_lines=config.max_recent_lines,
        metric_sink=PrometheusMetricSink(),
    )
    service = TailerService(
        tailer,
        poll_interval_seconds=config.poll_interval_seconds,
        on_lines=lambda lines: _echo_lines(lines, raw),
    )
    service.start()
    typer.echo(f"Tailing {config.log_path} (Ctrl+C to stop)", err=True)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        typer.echo("Stopping viewer...", err=True)
    finally:
        service.stop()


if __name__ == "__main__":
    app()
