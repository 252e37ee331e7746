"""Guard feature for pbx-authz.

Composes identity, roles, rate limiting, policies and audit into the
per-request authorization pipeline.
"""

from .entities import (
    RouteRequirements,
    RouteRegistry,
    PipelineState,
    GuardRequest,
    GuardDecision,
)
from .services import ContextBuilder, GuardPipeline

__all__ = [
    # Entities
    "RouteRequirements",
    "RouteRegistry",
    "PipelineState",
    "GuardRequest",
    "GuardDecision",
    # Services
    "ContextBuilder",
    "GuardPipeline",
]
