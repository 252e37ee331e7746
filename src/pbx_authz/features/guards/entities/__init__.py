"""Guard entities."""

from .requirements import RouteRequirements, RouteRegistry
from .guard import PipelineState, GuardRequest, GuardDecision

__all__ = [
    "RouteRequirements",
    "RouteRegistry",
    "PipelineState",
    "GuardRequest",
    "GuardDecision",
]
