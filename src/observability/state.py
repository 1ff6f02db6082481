"""Shared in-memory observability state for health snapshots."""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Mapping, MutableMapping


class ObservabilityState:
    """Thread-safe store aggregating verdict and audit pipeline counters."""

    def __init__(self, *, recent_denials: int = 50) -> None:
        self._lock = threading.RLock()
        self._verdicts: Dict[str, int] = {"allow": 0, "deny": 0}
        self._recent_denials: Deque[Mapping[str, Any]] = deque(maxlen=recent_denials)
        self._audit: Dict[str, Any] = {"append_failures": 0}
        self._last_updated: str | None = None

    def record_verdict(
        self,
        verdict: str,
        *,
        uid: int,
        hostname: str | None = None,
        process_name: str | None = None,
    ) -> None:
        with self._lock:
            self._verdicts[verdict] = int(self._verdicts.get(verdict, 0)) + 1
            if verdict == "deny":
                self._recent_denials.appendleft(
                    {
                        "uid": uid,
                        "hostname": hostname,
                        "process_name": process_name,
                        "timestamp": datetime.now(timezone.utc).isoformat(),
                    }
                )
            self._touch()

    def record_append_failure(self) -> None:
        with self._lock:
            self._audit["append_failures"] = int(self._audit.get("append_failures", 0)) + 1
            self._touch()

    def record_audit_stats(self, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self._audit.update(payload)
            self._touch()

    def snapshot(self) -> MutableMapping[str, Any]:
        with self._lock:
            return {
                "verdicts": dict(self._verdicts),
                "recent_denials": list(self._recent_denials),
                "audit": dict(self._audit),
                "last_updated": self._last_updated,
            }

    def _touch(self) -> None:
        self._last_updated = datetime.now(timezone.utc).isoformat()


_STATE = ObservabilityState()


def get_observability_state() -> ObservabilityState:
    return _STATE


__all__ = ["ObservabilityState", "get_observability_state"]
