"""Rule and verdict types shared by the engine and the audit trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable


class Verdict(str, Enum):
    """Decision applied to a single flow."""

    ALLOW = "allow"
    DENY = "deny"


class DefaultPolicy(str, Enum):
    """What happens when no list entry matches."""

    ALLOW = "allow"
    DENY = "deny"


def _patterns(values: Iterable[str] | None) -> FrozenSet[str]:
    return frozenset(values or ())


@dataclass(frozen=True, slots=True)
class UserRule:
    """Default policy plus domain overrides for one uid.

    ``allowlist`` is only consulted under a deny default and ``blocklist`` only
    under an allow default. Entries are exact domains or ``*.suffix`` wildcards.
    """

    uid: int
    default_policy: DefaultPolicy = DefaultPolicy.ALLOW
    allowlist: FrozenSet[str] = field(default_factory=frozenset)
    blocklist: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        # Accept any iterable of patterns; store them frozen.
        object.__setattr__(self, "default_policy", DefaultPolicy(self.default_policy))
        object.__setattr__(self, "allowlist", _patterns(self.allowlist))
        object.__setattr__(self, "blocklist", _patterns(self.blocklist))

    def as_dict(self) -> dict[str, object]:
        return {
            "uid": self.uid,
            "default_policy": self.default_policy.value,
            "allowlist": sorted(self.allowlist),
            "blocklist": sorted(self.blocklist),
        }


__all__ = ["DefaultPolicy", "UserRule", "Verdict"]
