from __future__ import annotations

import json
import stat
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from audit import AuditRecord, LogWriter
from policy import Verdict


class RecordingSink:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, float, Dict[str, Any]]] = []

    def __call__(self, name: str, value: float, tags: Mapping[str, Any] | None = None) -> None:
        self.calls.append((name, value, dict(tags or {})))

    def total(self, name: str) -> float:
        return sum(value for metric, value, _ in self.calls if metric == name)


def _records(count: int, verdict: Verdict = Verdict.ALLOW) -> List[AuditRecord]:
    return [AuditRecord(uid=500 + idx, verdict=verdict, remote_host=f"h{idx}.com") for idx in range(count)]


def _read_lines(path: Path) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_creates_private_directory_and_file(tmp_path: Path) -> None:
    path = tmp_path / "private" / "flow-log.jsonl"
    writer = LogWriter(path)

    written = writer.write(_records(2))

    assert written == 2
    assert stat.S_IMODE(path.parent.stat().st_mode) == 0o700
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert [line["uid"] for line in _read_lines(path)] == [500, 501]


def test_appends_to_existing_file(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    writer = LogWriter(path)

    writer.write(_records(2))
    writer.write(_records(1, Verdict.DENY))

    lines = _read_lines(path)
    assert len(lines) == 3
    assert lines[-1]["verdict"] == "deny"
    assert path.read_bytes().endswith(b"\n")


def test_empty_batch_does_not_create_file(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"

    assert LogWriter(path).write([]) == 0
    assert not path.exists()


def test_unencodable_record_is_dropped_from_batch(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    sink = RecordingSink()
    writer = LogWriter(path, metric_sink=sink)
    batch = _records(1) + [AuditRecord(uid=-5, verdict=Verdict.DENY)] + _records(1)

    written = writer.write(batch)

    assert written == 2
    assert len(_read_lines(path)) == 2
    assert sink.total("audit_records_dropped") == 1
    assert sink.total("audit_records_written") == 2


def test_unwritable_location_is_inert(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")
    sink = RecordingSink()
    writer = LogWriter(blocker / "flow-log.jsonl", metric_sink=sink)

    written = writer.write(_records(3))

    assert written == 0
    assert sink.total("audit_flush_error") == 1
    assert sink.total("audit_records_dropped") == 3
    assert blocker.read_text(encoding="utf-8") == "occupied"


def test_record_with_bad_timestamp_does_not_sink_the_batch(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    sink = RecordingSink()
    writer = LogWriter(path, metric_sink=sink)
    bad = AuditRecord(uid=777, verdict=Verdict.DENY, timestamp=1700000000)  # type: ignore[arg-type]
    batch = _records(1) + [bad] + [AuditRecord(uid=600, verdict=Verdict.ALLOW, timestamp="2024-01-01T00:00:00Z")]  # type: ignore[arg-type]

    written = writer.write(batch)

    lines = _read_lines(path)
    assert written == 2
    assert [line["uid"] for line in lines] == [500, 600]
    assert lines[1]["timestamp"] == "2024-01-01T00:00:00Z"
    assert sink.total("audit_records_dropped") == 1


def test_failures_are_counted(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")
    writer = LogWriter(blocker / "flow-log.jsonl")

    writer.write(_records(1))
    writer.write(_records(1))

    assert writer.failures == 2
