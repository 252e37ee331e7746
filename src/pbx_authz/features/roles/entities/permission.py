"""Permission value objects for the roles feature.

A permission is a ``resource:action`` pair. The resource is everything before
the first colon and the action is the remainder, so ``config:sync:force`` is
the ``sync:force`` action on ``config``.
"""

from dataclasses import dataclass
from typing import Optional

from ....core.exceptions import PbxAuthzError

MANAGE_ACTION = "manage"
WILDCARD = "*"


@dataclass(frozen=True)
class PermissionCode:
    """Immutable value object for a ``resource:action`` permission string."""

    value: str

    def __post_init__(self):
        """Validate permission code format: resource:action or ``*``."""
        if self.value == WILDCARD:
            return
        if not self.value or ":" not in self.value:
            raise PbxAuthzError(f"Permission code must be in format 'resource:action', got: {self.value}")

        resource, action = self.value.split(":", 1)
        if not resource or not action:
            raise PbxAuthzError(f"Both resource and action must be non-empty, got: {self.value}")

    @classmethod
    def try_parse(cls, value: str) -> Optional["PermissionCode"]:
        """Parse a permission string, returning None if it is not a resource:action pair."""
        try:
            return cls(value)
        except PbxAuthzError:
            return None

    @property
    def resource(self) -> str:
        """Extract resource part from permission code."""
        if self.value == WILDCARD:
            return WILDCARD
        return self.value.split(":", 1)[0]

    @property
    def action(self) -> str:
        """Extract action part from permission code."""
        if self.value == WILDCARD:
            return WILDCARD
        return self.value.split(":", 1)[1]

    def grants(self, required: "PermissionCode") -> bool:
        """Check whether holding this permission satisfies ``required``.

        ``*`` and ``*:<any>`` grant everything; ``resource:manage`` and
        ``resource:*`` grant every action on that resource.
        """
        if self.value == required.value:
            return True
        if self.resource == WILDCARD:
            return True
        if self.resource != required.resource:
            return False
        return self.action in (MANAGE_ACTION, WILDCARD)

    def __str__(self) -> str:
        return self.value


def permission_grants(granted: str, required: str) -> bool:
    """String-level form of ``PermissionCode.grants``.

    Strings that are not resource:action pairs (e.g. bare ``read``) only match
    exactly.
    """
    if granted == required:
        return True
    granted_code = PermissionCode.try_parse(granted)
    required_code = PermissionCode.try_parse(required)
    if granted_code is None or required_code is None:
        return False
    return granted_code.grants(required_code)


@dataclass(frozen=True)
class Permission:
    """Reference permission definition with its category."""

    code: PermissionCode
    category: str = "general"
    description: Optional[str] = None

    @classmethod
    def of(cls, value: str, category: str = "general", description: Optional[str] = None) -> "Permission":
        return cls(code=PermissionCode(value), category=category, description=description)

    @property
    def resource(self) -> str:
        return self.code.resource

    @property
    def action(self) -> str:
        return self.code.action

    def __str__(self) -> str:
        return f"Permission({self.code})"
