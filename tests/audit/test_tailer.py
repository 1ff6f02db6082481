from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import pytest

from audit import LogTailer, TailerService
from audit.tailer import POLL_JOB_ID


def _append(path: Path, data: bytes) -> None:
    with path.open("ab") as handle:
        handle.write(data)


def test_missing_file_is_ignored(tmp_path: Path) -> None:
    tailer = LogTailer(tmp_path / "missing.jsonl")

    assert tailer.poll() == []
    assert tailer.offset == 0
    assert tailer.recent_lines() == []


def test_reads_only_new_lines(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    _append(path, b'{"n": 1}\n{"n": 2}\n')
    tailer = LogTailer(path)

    assert tailer.poll() == ['{"n": 1}', '{"n": 2}']
    _append(path, b'{"n": 3}\n')
    assert tailer.poll() == ['{"n": 3}']
    assert tailer.recent_lines() == ['{"n": 1}', '{"n": 2}', '{"n": 3}']
    assert tailer.offset == path.stat().st_size


def test_poll_without_new_bytes_is_idempotent(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    _append(path, b'{"n": 1}\n')
    tailer = LogTailer(path)
    tailer.poll()
    offset, lines = tailer.offset, tailer.recent_lines()

    assert tailer.poll() == []
    assert tailer.poll() == []
    assert tailer.offset == offset
    assert tailer.recent_lines() == lines


def test_empty_segments_are_dropped(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    _append(path, b'\n{"n": 1}\n\n\n{"n": 2}\n')
    tailer = LogTailer(path)

    assert tailer.poll() == ['{"n": 1}', '{"n": 2}']
    assert tailer.offset == path.stat().st_size


def test_history_is_capped(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    _append(path, b"".join(f"line-{idx}\n".encode() for idx in range(620)))
    tailer = LogTailer(path)

    tailer.poll()

    lines = tailer.recent_lines()
    assert len(lines) == 500
    assert lines[0] == "line-120"
    assert lines[-1] == "line-619"
    assert tailer.recent_lines(3) == ["line-617", "line-618", "line-619"]


def test_unterminated_line_waits_for_line_feed(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    _append(path, b'{"n": 1}\n{"n": ')
    tailer = LogTailer(path)

    assert tailer.poll() == ['{"n": 1}']
    assert tailer.offset == len(b'{"n": 1}\n')
    assert tailer.poll() == []

    _append(path, b"2}\n")
    assert tailer.poll() == ['{"n": 2}']
    assert tailer.offset == path.stat().st_size


def test_undecodable_bytes_do_not_advance_offset(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    _append(path, b'{"n": 1}\n')
    tailer = LogTailer(path)
    tailer.poll()
    offset = tailer.offset

    _append(path, b"\xff\xfe broken\n")

    assert tailer.poll() == []
    assert tailer.offset == offset
    assert tailer.recent_lines() == ['{"n": 1}']


def test_truncated_file_is_reread_from_start(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    _append(path, b'{"n": 1}\n{"n": 2}\n')
    tailer = LogTailer(path)
    tailer.poll()

    path.write_bytes(b'{"n": 9}\n')

    assert tailer.poll() == ['{"n": 9}']
    assert tailer.recent_lines() == ['{"n": 9}']


def test_invalid_cap_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        LogTailer(tmp_path / "flow-log.jsonl", max_lines=0)


def test_service_forwards_new_lines(tmp_path: Path) -> None:
    path = tmp_path / "flow-log.jsonl"
    received: List[str] = []

    def on_lines(lines: Sequence[str]) -> None:
        received.extend(lines)

    service = TailerService(LogTailer(path), on_lines=on_lines)

    assert service.tick() == []
    _append(path, b'{"n": 1}\n')
    service.tick()
    service.tick()

    assert received == ['{"n": 1}']


def test_service_lifecycle_with_shared_scheduler(tmp_path: Path) -> None:
    class FakeScheduler:
        def __init__(self) -> None:
            self.jobs: dict[str, dict] = {}

        def add_job(self, func, trigger, **kwargs) -> None:
            self.jobs[kwargs["id"]] = {"func": func, "trigger": trigger, **kwargs}

        def remove_job(self, job_id: str) -> None:
            self.jobs.pop(job_id)

    path = tmp_path / "flow-log.jsonl"
    _append(path, b'{"n": 1}\n')
    scheduler = FakeScheduler()
    service = TailerService(LogTailer(path), poll_interval_seconds=2, scheduler=scheduler)  # type: ignore[arg-type]

    service.start()

    job = scheduler.jobs[POLL_JOB_ID]
    assert job["max_instances"] == 1
    assert job["trigger"].interval.total_seconds() == 2
    assert service.health()["lines"] == 1
    assert service.running

    service.stop()
    assert POLL_JOB_ID not in scheduler.jobs
    assert not service.running
