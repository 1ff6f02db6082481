"""Helper script to push a deterministic batch of flows through the filter.

This bypasses the OS interception layer by feeding synthetic FlowEvents so we
can produce a sample flow log for the viewer.
"""

from __future__ import annotations

from pathlib import Path

from audit import LogBuffer, LogWriter
from flows import UNKNOWN_UID, FlowEvent, FlowFilter
from policy import DefaultPolicy, PolicyEngine, UserRule

SAMPLE_RULES = [
    UserRule(uid=501, default_policy=DefaultPolicy.DENY, allowlist={"work.example.com", "*.github.com"}),
    UserRule(uid=502, default_policy=DefaultPolicy.ALLOW, blocklist={"games.example.com", "*.tiktok.com"}),
]

SAMPLE_FLOWS = [
    FlowEvent(uid=501, hostname="api.github.com", process_name="git"),
    FlowEvent(uid=501, hostname="github.com", process_name="git"),
    FlowEvent(uid=501, hostname="news.example.org", process_name="Safari"),
    FlowEvent(uid=502, hostname="www.tiktok.com", process_name="Chrome"),
    FlowEvent(uid=502, hostname="docs.python.org", process_name="Chrome"),
    FlowEvent(uid=503, hostname="anything.example.net", process_name="curl"),
    FlowEvent(uid=UNKNOWN_UID, hostname=None, process_name=None),
]


def run_simulation(log_path: Path = Path("storage/flow-log.jsonl")) -> None:
    flow_filter = FlowFilter(
        engine=PolicyEngine(SAMPLE_RULES),
        buffer=LogBuffer(LogWriter(log_path)),
    )
    flow_filter.start()
    try:
        for event in SAMPLE_FLOWS:
            verdict = flow_filter.handle_flow(event)
            print(f"uid={event.uid} host={event.hostname} -> {verdict.value}")
    finally:
        flow_filter.stop()
    print(f"Flow log written to {log_path}")


if __name__ == "__main__":
    run_simulation()
