"""Policy services."""

from .policy_engine import PolicyEngine, calculate_risk_score

__all__ = ["PolicyEngine", "calculate_risk_score"]
