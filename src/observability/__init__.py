"""Observability utilities (health state, telemetry)."""

from .state import ObservabilityState, get_observability_state

__all__ = ["ObservabilityState", "get_observability_state"]
