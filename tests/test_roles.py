"""Tests for role hierarchy resolution and permission checks."""

from unittest.mock import AsyncMock

import pytest

from pbx_authz.core.exceptions import (
    AuthorizationCheckFailed,
    Forbidden,
    PbxAuthzError,
    RoleHierarchyError,
)
from pbx_authz.features.identity import Principal
from pbx_authz.features.roles import (
    InMemoryRoleStore,
    PermissionCode,
    Role,
    RoleHierarchyResolver,
    compute_closure,
    permission_grants,
)


def principal(*roles, domain_id="acme", permissions=(), domains=()):
    return Principal(
        id="u-1", username="alice", domain_id=domain_id, domains=set(domains),
        roles=set(roles), permissions=set(permissions),
    )


class TestPermissionCode:
    """Test permission parsing and wildcard semantics."""

    def test_resource_and_action_split_on_first_colon(self):
        code = PermissionCode("config:sync:force")

        assert code.resource == "config"
        assert code.action == "sync:force"

    def test_invalid_format_rejected(self):
        with pytest.raises(PbxAuthzError):
            PermissionCode("nocolon")
        with pytest.raises(PbxAuthzError):
            PermissionCode(":read")

    def test_manage_grants_every_action_on_resource(self):
        assert permission_grants("users:manage", "users:delete")
        assert permission_grants("users:*", "users:read")
        assert not permission_grants("users:manage", "billing:read")

    def test_global_wildcards(self):
        assert permission_grants("*", "billing:read")
        assert permission_grants("*:read", "security:encryption")

    def test_plain_permission_is_exact(self):
        assert permission_grants("users:read", "users:read")
        assert not permission_grants("users:read", "users:delete")
        assert not permission_grants("read", "users:read")


class TestComputeClosure:
    """Test hierarchy closure computation."""

    def test_default_table_closure(self):
        closure = compute_closure({
            "superadmin": ["admin"],
            "admin": ["operator"],
            "operator": ["viewer"],
            "viewer": [],
        })

        assert closure["superadmin"] == frozenset({"admin", "operator", "viewer"})
        assert closure["operator"] == frozenset({"viewer"})
        assert closure["viewer"] == frozenset()

    def test_cycle_rejected(self):
        with pytest.raises(RoleHierarchyError):
            compute_closure({"a": ["b"], "b": ["c"], "c": ["a"]})

    def test_resolver_rejects_cyclic_table(self):
        with pytest.raises(RoleHierarchyError):
            RoleHierarchyResolver(hierarchy={"admin": ["operator"], "operator": ["admin"]})


class TestRoleHierarchyResolver:
    """Test effective access resolution and requirement checks."""

    @pytest.fixture
    def resolver(self, role_store):
        return RoleHierarchyResolver(role_store=role_store)

    @pytest.mark.asyncio
    async def test_inherited_permissions_are_granted(self, resolver):
        access = await resolver.resolve(principal("operator"))

        assert access.roles == frozenset({"operator", "viewer"})
        assert access.inherited_roles == frozenset({"viewer"})
        # viewer's permissions flow up to operator
        assert {"extensions:read", "cdr:read", "extensions:update"} <= access.permissions

    @pytest.mark.asyncio
    async def test_inheritance_is_monotonic(self, resolver):
        viewer = await resolver.resolve(principal("viewer"))
        admin = await resolver.resolve(principal("admin"))

        assert viewer.permissions <= admin.permissions

    @pytest.mark.asyncio
    async def test_viewer_cannot_delete_users(self, resolver):
        access = await resolver.resolve(principal("viewer"))

        with pytest.raises(Forbidden) as exc_info:
            resolver.check(access, required_permissions=["users:delete"])

        assert exc_info.value.missing_permissions == ["users:delete"]
        assert exc_info.value.details["missing_roles"] == []

    @pytest.mark.asyncio
    async def test_manage_permission_satisfies_action(self, resolver):
        access = await resolver.resolve(principal("admin"))

        resolver.check(access, required_permissions=["users:delete", "users:update"])

    @pytest.mark.asyncio
    async def test_permissions_are_all_of(self, resolver):
        access = await resolver.resolve(principal("operator"))

        with pytest.raises(Forbidden) as exc_info:
            resolver.check(access, required_permissions=["extensions:update", "recordings:read"])

        assert exc_info.value.missing_permissions == ["recordings:read"]

    @pytest.mark.asyncio
    async def test_roles_are_any_of_including_inherited(self, resolver):
        access = await resolver.resolve(principal("operator"))

        resolver.check(access, required_roles=["admin", "viewer"])
        with pytest.raises(Forbidden) as exc_info:
            resolver.check(access, required_roles=["admin", "superadmin"])

        assert exc_info.value.missing_roles == ["admin", "superadmin"]

    @pytest.mark.asyncio
    async def test_static_mapping_channel(self):
        resolver = RoleHierarchyResolver(role_store=InMemoryRoleStore())

        operator = await resolver.resolve(principal("operator"))
        viewer = await resolver.resolve(principal("viewer"))

        assert resolver.has_permission(operator, "config:sync")
        assert resolver.has_permission(viewer, "config:read")
        assert not resolver.has_permission(viewer, "config:sync")

    @pytest.mark.asyncio
    async def test_bypass_role_skips_checks(self, resolver):
        access = await resolver.resolve(principal("superadmin"))

        assert access.is_bypass
        resolver.check(access, required_roles=["nonexistent"], required_permissions=["anything:at_all"])

    @pytest.mark.asyncio
    async def test_bypass_can_be_disabled(self, role_store):
        resolver = RoleHierarchyResolver(role_store=InMemoryRoleStore(), bypass_role=None)
        access = await resolver.resolve(principal("superadmin"))

        assert not access.is_bypass
        with pytest.raises(Forbidden):
            resolver.check(access, required_roles=["auditor"])

    @pytest.mark.asyncio
    async def test_principal_permissions_are_included(self, resolver):
        access = await resolver.resolve(principal("viewer", permissions={"billing:read"}))

        assert resolver.has_permission(access, "billing:read")

    @pytest.mark.asyncio
    async def test_domain_scoped_role_definitions(self):
        store = InMemoryRoleStore([Role(name="operator", permissions={"billing:read"}, domain_id="acme")])
        resolver = RoleHierarchyResolver(role_store=store)

        in_domain = await resolver.resolve(principal("operator", domain_id="acme"))
        other_domain = await resolver.resolve(principal("operator", domain_id="globex"))

        assert "billing:read" in in_domain.permissions
        assert "billing:read" not in other_domain.permissions

    @pytest.mark.asyncio
    async def test_cache_refreshes_after_invalidate(self, role_store, resolver):
        before = await resolver.resolve(principal("viewer"))
        role_store.upsert(Role(name="viewer", permissions={"reports:read"}))

        cached = await resolver.resolve(principal("viewer"))
        resolver.invalidate()
        refreshed = await resolver.resolve(principal("viewer"))

        assert "reports:read" not in before.permissions
        assert "reports:read" not in cached.permissions
        assert "reports:read" in refreshed.permissions
        assert "cdr:read" not in refreshed.permissions

    @pytest.mark.asyncio
    async def test_store_failure_is_check_failure(self):
        store = AsyncMock()
        store.list_roles.side_effect = RuntimeError("database unavailable")
        resolver = RoleHierarchyResolver(role_store=store)

        with pytest.raises(AuthorizationCheckFailed) as exc_info:
            await resolver.resolve(principal("viewer"))

        assert exc_info.value.stage == "role_resolution"

    @pytest.mark.asyncio
    async def test_cyclic_parent_links_rejected(self):
        store = InMemoryRoleStore([
            Role(name="a", parent_name="b"),
            Role(name="b", parent_name="a"),
        ])
        resolver = RoleHierarchyResolver(role_store=store)

        with pytest.raises(AuthorizationCheckFailed):
            await resolver.resolve(principal("a"))

    @pytest.mark.asyncio
    async def test_inactive_role_definitions_ignored(self):
        store = InMemoryRoleStore([Role(name="viewer", permissions={"cdr:read"}, is_active=False)])
        resolver = RoleHierarchyResolver(role_store=store)

        access = await resolver.resolve(principal("viewer"))

        assert "cdr:read" not in access.permissions


class TestDomainAccess:
    """Test which domains a principal may address."""

    @pytest.fixture
    def resolver(self, role_store):
        return RoleHierarchyResolver(role_store=role_store)

    @pytest.mark.asyncio
    async def test_own_domain_and_no_domain_allowed(self, resolver):
        user = principal("operator")
        access = await resolver.resolve(user)

        resolver.check_domain_access(user, access, "acme")
        resolver.check_domain_access(user, access, None)

    @pytest.mark.asyncio
    async def test_foreign_domain_forbidden(self, resolver):
        user = principal("admin")
        access = await resolver.resolve(user)

        with pytest.raises(Forbidden) as exc_info:
            resolver.check_domain_access(user, access, "globex")

        assert exc_info.value.message == "Insufficient domain access"
        assert exc_info.value.details["requested_domain"] == "globex"

    @pytest.mark.asyncio
    async def test_listed_domain_allowed(self, resolver):
        user = principal("operator", domains={"globex"})
        access = await resolver.resolve(user)

        resolver.check_domain_access(user, access, "globex")
        with pytest.raises(Forbidden):
            resolver.check_domain_access(user, access, "initech")

    @pytest.mark.asyncio
    async def test_bypass_role_addresses_any_domain(self, resolver):
        user = principal("superadmin")
        access = await resolver.resolve(user)

        resolver.check_domain_access(user, access, "globex")
