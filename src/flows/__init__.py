"""Boundary between the flow interception layer and the policy core."""

from .events import UNKNOWN_UID, FlowEvent
from .filter import FlowFilter, build_filter_from_env

__all__ = ["FlowEvent", "FlowFilter", "UNKNOWN_UID", "build_filter_from_env"]
