"""Route requirements and the registry that holds them."""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from ...rate_limit.entities import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteRequirements:
    """Access requirements declared for one route at registration time.

    Roles are any-of, permissions are all-of, and every named policy must be
    applicable to the request.
    """

    roles: FrozenSet[str] = field(default_factory=frozenset)
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    policies: Tuple[str, ...] = ()
    sensitive: bool = False
    rate_limit: Optional[RateLimitConfig] = None
    public: bool = False
    skip_rate_limit: bool = False
    resource_type: Optional[str] = None
    operation_class: Optional[str] = None
    action: Optional[str] = None
    require_explicit_policy: bool = False

    def __post_init__(self):
        for name in ("roles", "permissions"):
            value = getattr(self, name)
            if isinstance(value, str):
                value = (value,)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value or ()))
        policies = (self.policies,) if isinstance(self.policies, str) else self.policies
        object.__setattr__(self, "policies", tuple(policies or ()))

    @classmethod
    def public_route(cls) -> "RouteRequirements":
        return cls(public=True)


class RouteRegistry:
    """Static map of ``(METHOD, route path)`` to requirements."""

    def __init__(self, default: Optional[RouteRequirements] = None):
        self._routes: Dict[Tuple[str, str], RouteRequirements] = {}
        self._default = default or RouteRequirements()

    def register(self, method: str, path: str, requirements: RouteRequirements) -> RouteRequirements:
        key = (method.upper(), path)
        if key in self._routes:
            logger.warning(f"Overriding requirements for {method.upper()} {path}")
        self._routes[key] = requirements
        return requirements

    def lookup(self, method: str, path: str) -> RouteRequirements:
        """Requirements for a route; unknown routes get the registry default."""
        return self._routes.get((method.upper(), path), self._default)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        method, path = key
        return (method.upper(), path) in self._routes

    def __len__(self) -> int:
        return len(self._routes)
