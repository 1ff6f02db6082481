"""Per-user network policy evaluation."""

from .engine import PolicyEngine, PolicyStore, matches_domain
from .rules import DefaultPolicy, UserRule, Verdict

__all__ = [
    "DefaultPolicy",
    "PolicyEngine",
    "PolicyStore",
    "UserRule",
    "Verdict",
    "matches_domain",
]
