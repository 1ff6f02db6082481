"""Flow descriptions handed over by the interception layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

UNKNOWN_UID = 0xFFFFFFFF


def _coerce_uid(raw: Any) -> int:
    if isinstance(raw, bool):
        return UNKNOWN_UID
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw.strip())
    if isinstance(raw, int) and 0 <= raw <= UNKNOWN_UID:
        return raw
    return UNKNOWN_UID


def _optional_text(raw: Any) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


@dataclass(frozen=True, slots=True)
class FlowEvent:
    """One outbound flow: who started it, from which process, to where.

    ``uid`` is best-effort; :data:`UNKNOWN_UID` means identity extraction failed.
    """

    uid: int = UNKNOWN_UID
    hostname: str | None = None
    process_name: str | None = None

    @property
    def identified(self) -> bool:
        return self.uid != UNKNOWN_UID

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "FlowEvent":
        hostname = payload.get("hostname", payload.get("remoteHost"))
        process_name = payload.get("process_name", payload.get("processName"))
        return cls(
            uid=_coerce_uid(payload.get("uid")),
            hostname=_optional_text(hostname),
            process_name=_optional_text(process_name),
        )


__all__ = ["FlowEvent", "UNKNOWN_UID"]
