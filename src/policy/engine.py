"""Pure verdict evaluation over an immutable per-user rule store."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping

from .rules import DefaultPolicy, UserRule, Verdict

WILDCARD_PREFIX = "*."


def matches_domain(hostname: str, patterns: Iterable[str]) -> bool:
    """Return True if ``hostname`` matches any exact or ``*.`` wildcard pattern.

    Comparison is case-insensitive. A wildcard only matches strict subdomains:
    ``*.example.com`` matches ``api.example.com`` but not ``example.com``.
    """

    host = hostname.lower()
    for pattern in patterns:
        candidate = pattern.lower()
        if candidate.startswith(WILDCARD_PREFIX):
            suffix = candidate[1:]  # ".example.com"
            if host.endswith(suffix) and host != suffix[1:]:
                return True
        elif host == candidate:
            return True
    return False


class PolicyStore(Mapping[int, UserRule]):
    """Read-only uid -> UserRule mapping, built once.

    Later rules for the same uid replace earlier ones.
    """

    def __init__(self, rules: Iterable[UserRule] = ()) -> None:
        by_uid: Dict[int, UserRule] = {}
        for rule in rules:
            by_uid[rule.uid] = rule
        self._rules: Mapping[int, UserRule] = MappingProxyType(by_uid)

    def __getitem__(self, uid: int) -> UserRule:
        return self._rules[uid]

    def __iter__(self) -> Iterator[int]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"PolicyStore(uids={sorted(self._rules)})"


class PolicyEngine:
    """Maps ``(uid, hostname)`` to a verdict.

    Unknown uids are allowed (fail-open). The store is never mutated after
    construction, so ``evaluate`` needs no locking.
    """

    def __init__(self, rules: Iterable[UserRule] = ()) -> None:
        self._store = PolicyStore(rules)

    @property
    def store(self) -> PolicyStore:
        return self._store

    def __len__(self) -> int:
        return len(self._store)

    def uids(self) -> list[int]:
        return sorted(self._store)

    def rule_for(self, uid: int) -> UserRule | None:
        return self._store.get(uid)

    def evaluate(self, uid: int, hostname: str | None = None) -> Verdict:
        rule = self._store.get(uid)
        if rule is None:
            return Verdict.ALLOW

        host = hostname or None
        if rule.default_policy is DefaultPolicy.DENY:
            if host is not None and matches_domain(host, rule.allowlist):
                return Verdict.ALLOW
            return Verdict.DENY

        if host is not None and matches_domain(host, rule.blocklist):
            return Verdict.DENY
        return Verdict.ALLOW


__all__ = ["PolicyEngine", "PolicyStore", "matches_domain"]
