"""Pytest configuration and fixtures for pbx-authz tests."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from pbx_authz.config.settings import AuthzSettings
from pbx_authz.factory import AuthzRuntime
from pbx_authz.features.identity import InMemorySessionStore, InMemoryUserStore, UserRecord
from pbx_authz.features.policies import (
    EnvironmentAttributes,
    InMemoryAttributeStore,
    InMemoryPolicyStore,
    PolicyEvaluationContext,
    ResourceAttributes,
    UserAttributes,
)
from pbx_authz.features.roles import InMemoryRoleStore, Role

JWT_SECRET = "test-secret-key-with-enough-length-for-hs256"

# Wednesday, inside business hours
BUSINESS_HOURS_NOW = datetime(2024, 3, 6, 10, 30, tzinfo=timezone.utc)
# Wednesday night
AFTER_HOURS_NOW = datetime(2024, 3, 6, 22, 15, tzinfo=timezone.utc)


class FakeMonotonicClock:
    """Manually advanced replacement for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MutableClock:
    """Wall clock returning a settable datetime."""

    def __init__(self, now: datetime = BUSINESS_HOURS_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_token(
    subject: str = "u-operator",
    username: str = "operator",
    expires_in: int = 3600,
    secret: str = JWT_SECRET,
    **claims,
) -> str:
    """Sign a bearer token; expiry is relative to the real current time."""
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "username": username,
        "iat": issued,
        "exp": issued + timedelta(seconds=expires_in),
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def make_context(
    roles=("operator",),
    permissions=(),
    resource_type: str = "extensions",
    action: str = "read",
    domain_id: str = "acme",
    now: datetime = BUSINESS_HOURS_NOW,
    client_ip: str = "10.0.0.5",
    user_attributes=None,
    **environment,
) -> PolicyEvaluationContext:
    """Build a policy evaluation context with sensible defaults."""
    environment.setdefault("is_business_hours", now.weekday() < 5 and 9 <= now.hour < 18)
    return PolicyEvaluationContext(
        user=UserAttributes(
            id="u-1",
            username="alice",
            domain_id=domain_id,
            roles=frozenset(roles),
            permissions=frozenset(permissions),
            attributes=dict(user_attributes or {}),
        ),
        resource=ResourceAttributes(type=resource_type, domain_id=domain_id),
        environment=EnvironmentAttributes(current_time=now, client_ip=client_ip, **environment),
        action=action,
    )


@pytest.fixture
def users():
    """One active user per built-in role plus an inactive one."""
    return [
        UserRecord(id="u-viewer", username="viewer", domain_id="acme", roles={"viewer"}),
        UserRecord(id="u-operator", username="operator", domain_id="acme", roles={"operator"}),
        UserRecord(id="u-admin", username="admin", domain_id="acme", roles={"admin"}),
        UserRecord(id="u-root", username="root", domain_id="acme", roles={"superadmin"}),
        UserRecord(id="u-gone", username="gone", domain_id="acme", roles={"operator"}, is_active=False),
    ]


@pytest.fixture
def user_store(users):
    return InMemoryUserStore(users)


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def role_store():
    return InMemoryRoleStore([
        Role(name="viewer", permissions={"extensions:read", "cdr:read"}),
        Role(name="operator", permissions={"extensions:update", "calls:manage"}),
        Role(name="admin", permissions={"users:manage", "recordings:read"}),
        Role(name="superadmin", permissions={"*"}),
    ])


@pytest.fixture
def policy_store():
    return InMemoryPolicyStore()


@pytest.fixture
def attribute_store():
    return InMemoryAttributeStore()


@pytest.fixture
def wall_clock():
    return MutableClock()


@pytest.fixture
def monotonic_clock():
    return FakeMonotonicClock()


@pytest.fixture
def settings():
    """Settings independent of the environment and any .env file."""
    return AuthzSettings(_env_file=None, jwt_secret=JWT_SECRET)


@pytest.fixture
def runtime(settings, user_store, session_store, role_store, policy_store, attribute_store,
            wall_clock, monotonic_clock):
    """Runtime wired with in-memory stores and controllable clocks."""
    return AuthzRuntime.in_memory(
        settings=settings,
        user_store=user_store,
        session_store=session_store,
        role_store=role_store,
        policy_store=policy_store,
        attribute_store=attribute_store,
        clock=wall_clock,
        monotonic_clock=monotonic_clock,
    )
