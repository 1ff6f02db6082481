"""Audit record for one evaluated flow and its JSON line encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, MutableMapping

from policy.rules import Verdict

UID_MAX = 0xFFFFFFFF


class AuditRecordError(ValueError):
    """Raised when a record cannot be encoded or decoded."""


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _parse_timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str):
        raise AuditRecordError(f"timestamp must be a string, got {raw!r}")
    normalized = raw.replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise AuditRecordError(f"invalid timestamp {raw!r}") from exc


def _format_timestamp(value: Any) -> str:
    """UTC, whole seconds, `Z` suffix: `2025-03-01T12:30:45Z`."""

    if isinstance(value, str):
        value = _parse_timestamp(value)
    if not isinstance(value, datetime):
        raise AuditRecordError(f"timestamp must be a datetime, got {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None or isinstance(value, str):
        return value
    raise AuditRecordError(f"{key} must be a string or null, got {value!r}")


@dataclass(frozen=True, slots=True)
class AuditRecord:
    uid: int
    verdict: Verdict
    process_name: str | None = None
    remote_host: str | None = None
    timestamp: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        # Normalize loosely typed input; anything still invalid is rejected at encode time.
        if isinstance(self.timestamp, str):
            try:
                object.__setattr__(self, "timestamp", _parse_timestamp(self.timestamp))
            except AuditRecordError:
                pass
        if isinstance(self.verdict, str) and not isinstance(self.verdict, Verdict):
            try:
                object.__setattr__(self, "verdict", Verdict(self.verdict))
            except ValueError:
                pass

    def as_dict(self) -> MutableMapping[str, Any]:
        """Wire form; key names are shared with the viewer."""

        if isinstance(self.uid, bool) or not isinstance(self.uid, int):
            raise AuditRecordError(f"uid must be an integer, got {self.uid!r}")
        if not 0 <= self.uid <= UID_MAX:
            raise AuditRecordError(f"uid out of range: {self.uid}")
        return {
            "timestamp": _format_timestamp(self.timestamp),
            "uid": self.uid,
            "processName": self.process_name,
            "remoteHost": self.remote_host,
            "verdict": Verdict(self.verdict).value,
        }

    def to_json_line(self) -> bytes:
        """Encode as one newline-terminated UTF-8 JSON line."""

        try:
            line = json.dumps(self.as_dict(), ensure_ascii=False)
            return f"{line}\n".encode("utf-8")
        except AuditRecordError:
            raise
        except (AttributeError, TypeError, ValueError) as exc:
            raise AuditRecordError(f"cannot encode record for uid {self.uid!r}: {exc}") from exc

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AuditRecord":
        uid = payload.get("uid")
        if isinstance(uid, bool) or not isinstance(uid, int) or not 0 <= uid <= UID_MAX:
            raise AuditRecordError(f"invalid uid {uid!r}")
        try:
            verdict = Verdict(payload.get("verdict"))
        except ValueError as exc:
            raise AuditRecordError(f"invalid verdict {payload.get('verdict')!r}") from exc
        return cls(
            uid=uid,
            verdict=verdict,
            process_name=_optional_str(payload, "processName"),
            remote_host=_optional_str(payload, "remoteHost"),
            timestamp=_parse_timestamp(payload.get("timestamp")),
        )

    @classmethod
    def from_json_line(cls, line: str | bytes) -> "AuditRecord":
        try:
            payload = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise AuditRecordError(f"malformed audit line: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise AuditRecordError("audit line is not a JSON object")
        return cls.from_dict(payload)


__all__ = ["AuditRecord", "AuditRecordError", "UID_MAX"]
