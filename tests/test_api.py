"""Tests for the FastAPI integration."""

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from pbx_authz.api import get_client_ip, register_exception_handlers
from pbx_authz.core.exceptions import Forbidden, RateLimitExceeded
from pbx_authz.features.guards import GuardDecision, RouteRequirements
from pbx_authz.features.identity import SessionRecord
from pbx_authz.features.policies import Policy, PolicyEffect
from pbx_authz.features.rate_limit import RateLimitConfig

from .conftest import BUSINESS_HOURS_NOW, make_token


def bearer(subject, username):
    return {"Authorization": f"Bearer {make_token(subject, username)}"}


@pytest.fixture
def app(runtime):
    app = FastAPI(lifespan=runtime.lifespan)
    register_exception_handlers(app)

    @app.get("/health", dependencies=[Depends(runtime.require(RouteRequirements.public_route()))])
    async def health():
        return {"status": "ok"}

    @app.get("/extensions")
    async def list_extensions(
        request: Request,
        decision: GuardDecision = Depends(runtime.require(RouteRequirements(permissions="extensions:read"))),
    ):
        return {"user": decision.principal.id, "client_ip": get_client_ip(request)}

    @app.delete("/users/{user_id}", dependencies=[
        Depends(runtime.require(RouteRequirements(permissions="users:delete"))),
    ])
    async def delete_user(user_id: str):
        return {"deleted": user_id}

    @app.post("/config/sync", dependencies=[
        Depends(runtime.require(RouteRequirements(rate_limit=RateLimitConfig(60_000, 1, "sync")))),
    ])
    async def sync_config():
        return {"queued": True}

    @app.get("/domains/{domain_id}/extensions")
    async def domain_extensions(
        domain_id: str,
        decision: GuardDecision = Depends(runtime.require(RouteRequirements(policies=("DomainIsolation",)))),
    ):
        return {"domain": domain_id, "policy": decision.policy_result.deciding_policy}

    @app.post("/security/keys", dependencies=[Depends(runtime.require(RouteRequirements(sensitive=True)))])
    async def rotate_keys():
        return {"rotated": True}

    @app.get("/raise/forbidden")
    async def raise_forbidden():
        raise Forbidden(missing_permissions=["billing:read"])

    @app.get("/raise/rate-limited")
    async def raise_rate_limited():
        raise RateLimitExceeded(retry_after=42, limit=5, window_ms=300_000)

    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


class TestRouteDependencies:
    """Test routes guarded through the dependency factory."""

    def test_public_route(self, client):
        response = client.get("/health")

        assert response.status_code == 200

    def test_missing_credentials(self, client):
        response = client.get("/extensions")

        assert response.status_code == 401
        assert response.json() == {
            "detail": {
                "code": "UNAUTHENTICATED",
                "message": "Authentication required",
                "type": "Unauthenticated",
            }
        }

    def test_non_bearer_authorization_is_unauthenticated(self, client):
        response = client.get("/extensions", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.status_code == 401

    def test_bearer_token(self, client):
        response = client.get("/extensions", headers=bearer("u-viewer", "viewer"))

        assert response.status_code == 200
        assert response.json()["user"] == "u-viewer"

    def test_forbidden_body_is_generic(self, client):
        response = client.delete("/users/7", headers=bearer("u-viewer", "viewer"))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "FORBIDDEN"
        assert response.json()["detail"]["message"] == "Insufficient permissions"
        assert "users:delete" not in response.text

    def test_manage_permission_allows_delete(self, client):
        response = client.delete("/users/7", headers=bearer("u-admin", "admin"))

        assert response.status_code == 200
        assert response.json() == {"deleted": "7"}

    def test_rate_limited(self, client):
        headers = bearer("u-viewer", "viewer")

        first = client.post("/config/sync", headers=headers)
        second = client.post("/config/sync", headers=headers)

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.headers["Retry-After"] == "60"
        assert second.headers["X-RateLimit-Limit"] == "1"
        assert second.headers["X-RateLimit-Remaining"] == "0"
        assert second.json()["detail"]["retry_after"] == 60

    def test_session_header(self, client, session_store):
        session_store.add("handle-1", SessionRecord(
            session_id="s-1", user_id="u-viewer", created_at=BUSINESS_HOURS_NOW,
        ))

        response = client.get("/extensions", headers={"X-Session-Id": "handle-1"})

        assert response.status_code == 200
        assert response.json()["user"] == "u-viewer"

    def test_session_cookie(self, client, session_store):
        session_store.add("handle-2", SessionRecord(
            session_id="s-2", user_id="u-viewer", created_at=BUSINESS_HOURS_NOW,
        ))
        client.cookies.set("pbx_session", "handle-2")

        response = client.get("/extensions")

        assert response.status_code == 200

    def test_forwarded_headers_ignored_from_untrusted_peer(self, client):
        headers = bearer("u-viewer", "viewer")
        headers["X-Forwarded-For"] = "198.51.100.7, 10.0.0.1"
        headers["X-Real-IP"] = "198.51.100.8"

        response = client.get("/extensions", headers=headers)

        assert response.json()["client_ip"] == "testclient"

    def test_spoofed_forwarded_for_does_not_pass_ip_allow_list(self, client, policy_store, attribute_store):
        policy_store.add(Policy(name="admins", effect=PolicyEffect.ALLOW, condition="hasRole('admin')"))
        attribute_store.set("u-admin", "allowed_ip_ranges", ["10.0.0.0/8"])
        headers = bearer("u-admin", "admin")
        headers["X-Forwarded-For"] = "10.1.2.3"

        response = client.post("/security/keys", headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "POLICY_DENIED"

    def test_foreign_domain_path_parameter_is_forbidden(self, client, policy_store):
        policy_store.add(Policy(name="DomainIsolation", effect=PolicyEffect.ALLOW))
        headers = bearer("u-viewer", "viewer")

        own = client.get("/domains/acme/extensions", headers=headers)
        other = client.get("/domains/globex/extensions", headers=headers)

        assert own.status_code == 200
        assert own.json()["policy"] == "DomainIsolation"
        assert other.status_code == 403
        assert other.json()["detail"]["code"] == "FORBIDDEN"

    def test_domain_policy_cannot_be_escaped_through_path(self, client, policy_store):
        policy_store.add(Policy.for_domain(
            "acme-lock", domain_id="acme", condition="true", resources=["*"], actions=["*"],
            effect=PolicyEffect.DENY,
        ))
        policy_store.add(Policy(name="DomainIsolation", effect=PolicyEffect.ALLOW))
        headers = bearer("u-operator", "operator")

        own = client.get("/domains/acme/extensions", headers=headers)
        other = client.get("/domains/globex/extensions", headers=headers)

        assert own.status_code == 403
        assert own.json()["detail"]["code"] == "POLICY_DENIED"
        assert other.status_code == 403

    def test_rate_limit_headers_on_success(self, client):
        response = client.post("/config/sync", headers=bearer("u-viewer", "viewer"))

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Limit"] == "1"
        assert response.headers["X-RateLimit-Remaining"] == "0"


class TestExceptionHandlers:
    """Test errors raised directly from handlers."""

    def test_forbidden(self, client):
        response = client.get("/raise/forbidden")

        assert response.status_code == 403
        assert response.json() == {
            "error": {"code": "FORBIDDEN", "message": "Insufficient permissions", "type": "Forbidden"}
        }

    def test_rate_limited(self, client):
        response = client.get("/raise/rate-limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "42"
        assert response.json()["error"]["retry_after"] == 42


def raw_request(peer, headers=()):
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(name.lower().encode(), value.encode()) for name, value in headers],
        "client": (peer, 5000),
    })


class TestClientIp:
    """Test client address extraction behind proxies."""

    def test_forwarded_for_from_trusted_proxy(self):
        request = raw_request("10.0.0.2", [("X-Forwarded-For", "198.51.100.7, 10.0.0.1")])

        assert get_client_ip(request, trusted_proxies=["10.0.0.0/8"]) == "198.51.100.7"

    def test_real_ip_from_trusted_proxy(self):
        request = raw_request("10.0.0.2", [("X-Real-IP", "198.51.100.8")])

        assert get_client_ip(request, trusted_proxies=["10.0.0.2"]) == "198.51.100.8"

    def test_forwarded_for_from_untrusted_peer(self):
        request = raw_request("8.8.8.8", [("X-Forwarded-For", "10.1.2.3")])

        assert get_client_ip(request, trusted_proxies=["10.0.0.0/8"]) == "8.8.8.8"

    def test_no_trusted_proxies_uses_peer(self):
        request = raw_request("10.0.0.2", [("X-Forwarded-For", "198.51.100.7")])

        assert get_client_ip(request) == "10.0.0.2"

    def test_trusted_proxy_without_headers_uses_peer(self):
        assert get_client_ip(raw_request("10.0.0.2"), trusted_proxies=["10.0.0.0/8"]) == "10.0.0.2"
