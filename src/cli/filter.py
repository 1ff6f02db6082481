"""CLI for the flow filter host process."""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, List, Optional

import typer
from dotenv import load_dotenv

from flows import FlowEvent, FlowFilter, build_filter_from_env
from infra.logging import configure_logging
from policy import DefaultPolicy, PolicyEngine, UserRule

app = typer.Typer(help="flowwarden flow filter")

RULE_HELP = "UID:allow|deny[:PATTERN,...]; patterns are the allowlist under deny, the blocklist under allow"


def _configure_environment() -> None:
    load_dotenv()
    run_id = os.environ.get("RUN_ID")
    if not run_id:
        run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        os.environ["RUN_ID"] = run_id
    configure_logging(component="filter", run_id=run_id, environment=os.environ.get("ENVIRONMENT"))


def parse_rule(spec: str) -> UserRule:
    parts = spec.split(":", 2)
    if len(parts) < 2:
        raise typer.BadParameter(f"Invalid rule '{spec}'. Expected {RULE_HELP}")
    raw_uid, raw_policy = parts[0].strip(), parts[1].strip().lower()
    if not raw_uid.isdigit():
        raise typer.BadParameter(f"Invalid uid in rule '{spec}'")
    try:
        policy = DefaultPolicy(raw_policy)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid default policy '{raw_policy}' in rule '{spec}'") from exc
    patterns = [token.strip() for token in parts[2].split(",")] if len(parts) == 3 else []
    patterns = [token for token in patterns if token]
    if policy is DefaultPolicy.DENY:
        return UserRule(uid=int(raw_uid), default_policy=policy, allowlist=patterns)
    return UserRule(uid=int(raw_uid), default_policy=policy, blocklist=patterns)


def _parse_rules(specs: Optional[List[str]]) -> List[UserRule]:
    return [parse_rule(spec) for spec in specs or []]


def _build_filter(rules: List[UserRule]) -> FlowFilter:
    return build_filter_from_env(rules, load_env=False)


def _read_events(stream: IO[str]):
    for line in stream:
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            typer.echo(f"skipping malformed flow: {line}", err=True)
            continue
        if not isinstance(payload, dict):
            typer.echo(f"skipping malformed flow: {line}", err=True)
            continue
        yield FlowEvent.from_mapping(payload)


@app.command()
def run(
    rule: Optional[List[str]] = typer.Option(None, "--rule", "-r", help=RULE_HELP),
    input_path: Optional[Path] = typer.Option(
        None, "--input", "-i", help="JSON lines of flows (default: stdin)"
    ),
) -> None:
    """Evaluate flows read as JSON lines, printing one verdict per flow."""

    _configure_environment()
    flow_filter = _build_filter(_parse_rules(rule))
    flow_filter.start()
    try:
        if input_path is not None:
            with input_path.open("r", encoding="utf-8") as handle:
                for event in _read_events(handle):
                    typer.echo(flow_filter.handle_flow(event).value)
        else:
            for event in _read_events(sys.stdin):
                typer.echo(flow_filter.handle_flow(event).value)
    except KeyboardInterrupt:
        typer.echo("Stopping filter...", err=True)
    finally:
        flow_filter.stop()


@app.command()
def check(
    uid: int = typer.Option(..., "--uid", min=0, help="Initiating user id"),
    host: Optional[str] = typer.Option(None, "--host", help="Destination hostname"),
    rule: Optional[List[str]] = typer.Option(None, "--rule", "-r", help=RULE_HELP),
) -> None:
    """Evaluate one flow without writing an audit record."""

    engine = PolicyEngine(_parse_rules(rule))
    typer.echo(engine.evaluate(uid, host).value)


@app.command()
def health(
    rule: Optional[List[str]] = typer.Option(None, "--rule", "-r", help=RULE_HELP),
    pretty: bool = typer.Option(True, "--pretty/--raw", help="Pretty-print JSON"),
) -> None:
    """Show the filter's rules and audit pipeline settings."""

    _configure_environment()
    flow_filter = _build_filter(_parse_rules(rule))
    typer.echo(json.dumps(flow_filter.health(), indent=2 if pretty else None, default=str))


if __name__ == "__main__":
    app()
