"""Role hierarchy resolution and role/permission requirement checks.

The hierarchy table maps each role to the roles it implicitly includes. It is
validated once at construction and its transitive closure is precomputed, so
per-request expansion is a dictionary lookup.

Permissions are granted through two independent channels:

1. permissions attached to the principal's effective roles (plus the
   permission strings carried on the principal itself), with
   ``resource:manage`` and ``*`` wildcards;
2. the static permission-to-roles table in ``config.constants``.

A permission is granted when either channel grants it. The two channels are
maintained separately and can drift apart.
"""

import asyncio
import logging
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ....config.constants import PERMISSION_MAPPINGS, ROLE_HIERARCHY
from ....core.exceptions import AuthorizationCheckFailed, Forbidden, RoleHierarchyError
from ...identity.entities import Principal
from ..entities import EffectiveAccess, Role, RoleStore, permission_grants

logger = logging.getLogger(__name__)


def compute_closure(hierarchy: Mapping[str, Iterable[str]]) -> Dict[str, FrozenSet[str]]:
    """Compute every role's transitively included roles.

    Raises:
        RoleHierarchyError: if the table contains a cycle
    """
    graph = {role: tuple(children) for role, children in hierarchy.items()}
    closure: Dict[str, FrozenSet[str]] = {}
    visiting: Set[str] = set()

    def visit(role: str, path: Tuple[str, ...]) -> FrozenSet[str]:
        if role in closure:
            return closure[role]
        if role in visiting:
            cycle = " -> ".join(path + (role,))
            raise RoleHierarchyError(f"Role hierarchy contains a cycle: {cycle}")
        visiting.add(role)
        included: Set[str] = set()
        for child in graph.get(role, ()):
            included.add(child)
            included.update(visit(child, path + (role,)))
        visiting.discard(role)
        closure[role] = frozenset(included)
        return closure[role]

    for role in graph:
        visit(role, ())
    return closure


def validate_role_parents(roles: Sequence[Role]) -> None:
    """Ensure ``parent_name`` links form a forest.

    Raises:
        RoleHierarchyError: on a cycle or a dangling parent reference
    """
    by_name = {role.name: role for role in roles}
    for role in roles:
        seen = {role.name}
        parent = role.parent_name
        while parent is not None:
            if parent not in by_name:
                raise RoleHierarchyError(f"Role '{role.name}' references unknown parent '{parent}'")
            if parent in seen:
                raise RoleHierarchyError(f"Role parent links contain a cycle through '{parent}'")
            seen.add(parent)
            parent = by_name[parent].parent_name


class RoleHierarchyResolver:
    """Expands assigned roles and checks role/permission requirements."""

    def __init__(
        self,
        role_store: Optional[RoleStore] = None,
        hierarchy: Optional[Mapping[str, Iterable[str]]] = None,
        permission_mappings: Optional[Mapping[str, Iterable[str]]] = None,
        bypass_role: Optional[str] = "superadmin",
        store_timeout: float = 2.0,
    ):
        self._role_store = role_store
        self._closure = compute_closure(hierarchy if hierarchy is not None else ROLE_HIERARCHY)
        mappings = permission_mappings if permission_mappings is not None else PERMISSION_MAPPINGS
        self._permission_mappings: Dict[str, FrozenSet[str]] = {
            permission: frozenset(roles) for permission, roles in mappings.items()
        }
        self._bypass_role = bypass_role
        self._store_timeout = store_timeout

        # Loaded role definitions and per-(role, domain) effective permissions
        self._definitions: Optional[Dict[str, List[Role]]] = None
        self._permission_cache: Dict[Tuple[str, Optional[str]], FrozenSet[str]] = {}
        self._load_lock = asyncio.Lock()

    @property
    def bypass_role(self) -> Optional[str]:
        return self._bypass_role

    def expand_roles(self, assigned: Iterable[str]) -> FrozenSet[str]:
        """Return the assigned roles plus every role they include."""
        effective: Set[str] = set()
        for role in assigned:
            effective.add(role)
            effective.update(self._closure.get(role, ()))
        return frozenset(effective)

    def invalidate(self) -> None:
        """Drop cached role definitions; they are reloaded on next use."""
        self._definitions = None
        self._permission_cache.clear()
        logger.info("Role permission cache invalidated")

    async def _ensure_definitions(self) -> Dict[str, List[Role]]:
        if self._definitions is not None:
            return self._definitions

        async with self._load_lock:
            if self._definitions is not None:
                return self._definitions

            roles: List[Role] = []
            if self._role_store is not None:
                roles = await asyncio.wait_for(self._role_store.list_roles(), timeout=self._store_timeout)
            validate_role_parents(roles)

            definitions: Dict[str, List[Role]] = {}
            for role in roles:
                if role.is_active:
                    definitions.setdefault(role.name, []).append(role)
            self._definitions = definitions
            self._permission_cache.clear()
            logger.debug(f"Loaded {len(roles)} role definitions")
            return definitions

    def _role_permissions(
        self, role_name: str, domain_id: Optional[str], definitions: Dict[str, List[Role]]
    ) -> FrozenSet[str]:
        key = (role_name, domain_id)
        cached = self._permission_cache.get(key)
        if cached is not None:
            return cached

        granted: Set[str] = set()
        for name in (role_name, *self._closure.get(role_name, ())):
            for definition in definitions.get(name, ()):
                if definition.applies_to_domain(domain_id):
                    granted.update(definition.permissions)
        result = frozenset(granted)
        self._permission_cache[key] = result
        return result

    async def resolve(self, principal: Principal) -> EffectiveAccess:
        """Compute the principal's effective roles and permissions.

        Raises:
            AuthorizationCheckFailed: if role definitions cannot be loaded
        """
        try:
            definitions = await self._ensure_definitions()
        except RoleHierarchyError as e:
            logger.error(f"Invalid role definitions: {e.message}")
            raise AuthorizationCheckFailed("role_resolution", e) from e
        except Exception as e:
            logger.error(f"Failed to load role definitions: {e}")
            raise AuthorizationCheckFailed("role_resolution", e) from e

        roles = self.expand_roles(principal.roles)
        permissions: Set[str] = set(principal.permissions)
        for role in roles:
            permissions.update(self._role_permissions(role, principal.domain_id, definitions))

        return EffectiveAccess(
            assigned_roles=frozenset(principal.roles),
            roles=roles,
            permissions=frozenset(permissions),
            is_bypass=self._bypass_role is not None and self._bypass_role in roles,
        )

    def has_permission(self, access: EffectiveAccess, required: str) -> bool:
        """Check one permission across both granting channels."""
        if any(permission_grants(granted, required) for granted in access.permissions):
            return True
        allowed_roles = self._permission_mappings.get(required)
        return bool(allowed_roles and allowed_roles & access.roles)

    def missing_permissions(self, access: EffectiveAccess, required: Iterable[str]) -> List[str]:
        return [permission for permission in required if not self.has_permission(access, permission)]

    def check(
        self,
        access: EffectiveAccess,
        required_roles: Sequence[str] = (),
        required_permissions: Sequence[str] = (),
    ) -> None:
        """Enforce route requirements.

        Roles are any-of, permissions are all-of. The bypass role passes
        unconditionally.

        Raises:
            Forbidden: with the unmet requirements
        """
        if access.is_bypass:
            logger.debug(f"Bypass role '{self._bypass_role}' present, skipping role checks")
            return

        missing_roles: List[str] = []
        if required_roles and not access.has_any_role(*required_roles):
            missing_roles = list(required_roles)

        missing_permissions = self.missing_permissions(access, required_permissions)

        if missing_roles or missing_permissions:
            raise Forbidden(missing_roles=missing_roles, missing_permissions=missing_permissions)

    def check_domain_access(self, principal: Principal, access: EffectiveAccess, domain_id: Optional[str]) -> None:
        """Enforce that the requested domain is one the principal belongs to.

        A request with no domain stays in the principal's own domain. The
        bypass role may address any domain.

        Raises:
            Forbidden: if the domain is neither the principal's own nor listed in ``principal.domains``
        """
        if not domain_id or access.is_bypass:
            return
        if domain_id == principal.domain_id or domain_id in principal.domains:
            return
        logger.info(f"Principal {principal.id} from domain {principal.domain_id} requested domain {domain_id}")
        raise Forbidden(
            "Insufficient domain access",
            details={"requested_domain": domain_id, "domain_id": principal.domain_id},
        )
