# Enforcement middleware and the decision service

import logging

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from warden.audit import AuditLevel, TrailAuditor
from warden.config import EnforcerSettings
from warden.http import EnforcementMiddleware, create_app
from warden.policy import (
    Enforcer,
    new_policy,
    policy_allow,
    policy_deny,
    policy_name,
    set_actions,
    set_resources,
    with_condition,
    with_role,
)
from warden.role import Role
from warden.storage import InMemoryPolicyManager, StorageBackend, StorageSettings


# =============================================================================
# Middleware
# =============================================================================

def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture
async def guarded_app():
    manager = InMemoryPolicyManager()
    await manager.create(new_policy(
        policy_name("read-reports"),
        with_role(Role(id="analyst")),
        set_actions("GET"),
        set_resources("/reports/*"),
        policy_allow(),
    ))
    await manager.create(new_policy(
        policy_name("no-secret"),
        with_role(Role(id="analyst")),
        set_resources("/reports/secret"),
        policy_deny(),
    ))
    await manager.create(new_policy(
        policy_name("from-partner"),
        with_role(Role(id="partner")),
        set_actions("GET"),
        with_condition(name="user_agent", type="subject_equals"),
        policy_allow(),
    ))

    app = FastAPI()
    app.add_middleware(EnforcementMiddleware, enforcer=Enforcer(manager))

    @app.get("/reports/{name}")
    async def report(name: str, request: Request):
        return {"name": name, "policies": list(request.state.warden_decision.policy_ids)}

    return app


async def test_middleware_allows_matching_request(guarded_app):
    async with _client(guarded_app) as client:
        response = await client.get("/reports/q1", headers={"X-Warden-Roles": "analyst"})

    assert response.status_code == 200
    assert response.json() == {"name": "q1", "policies": ["read-reports"]}


async def test_middleware_denies_without_roles(guarded_app):
    async with _client(guarded_app) as client:
        response = await client.get("/reports/q1")

    assert response.status_code == 403
    assert response.json() == {
        "detail": "request denied because no matching policy was found",
        "status": "Forbidden",
    }


async def test_middleware_explicit_deny_wins(guarded_app):
    async with _client(guarded_app) as client:
        response = await client.get(
            "/reports/secret", headers={"X-Warden-Roles": "analyst,viewer"}
        )

    assert response.status_code == 403
    assert response.json()["detail"] == "request denied because a policy explicitly forbids it"


async def test_middleware_exposes_request_metadata(guarded_app):
    headers = {"X-Warden-Subject": "acme-bot", "X-Warden-Roles": "partner"}
    async with _client(guarded_app) as client:
        ok = await client.get("/reports/q1", headers={**headers, "User-Agent": "acme-bot"})
        denied = await client.get("/reports/q1", headers={**headers, "User-Agent": "curl"})

    assert ok.status_code == 200
    assert denied.status_code == 403


def test_header_subject_fallback_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="warden.http.middleware"):
        EnforcementMiddleware(FastAPI(), enforcer=Enforcer(InMemoryPolicyManager()))
    assert "trusted proxy" in caplog.text

    caplog.clear()
    with caplog.at_level(logging.WARNING, logger="warden.http.middleware"):
        EnforcementMiddleware(
            FastAPI(),
            enforcer=Enforcer(InMemoryPolicyManager()),
            subject_resolver=lambda request: "svc",
        )
    assert "trusted proxy" not in caplog.text


async def test_custom_resolvers():
    manager = InMemoryPolicyManager()
    await manager.create(new_policy(
        policy_name("tenant"),
        with_role(Role(id="svc")),
        with_condition(name="client_ip", type="bool"),
        policy_allow(),
    ))
    seen = []

    async def scope_resolver(request):
        seen.append(request.url.path)
        return "tenant-1"

    trail = TrailAuditor(AuditLevel.ALL)
    app = FastAPI()
    app.add_middleware(
        EnforcementMiddleware,
        enforcer=Enforcer(manager, auditor=trail),
        subject_resolver=lambda request: "svc",
        scope_resolver=scope_resolver,
    )

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    async with _client(app) as client:
        response = await client.get("/ping")

    # client_ip is a string, so the bool condition never meets
    assert response.status_code == 403
    assert seen == ["/ping"]
    assert trail.events()[0].scope == "tenant-1"
    assert trail.events()[0].roles == ["svc"]


# =============================================================================
# Decision service
# =============================================================================

@pytest.fixture
def client(tmp_path):
    app = create_app(
        settings=EnforcerSettings(audit_level=AuditLevel.NONE),
        storage_settings=StorageSettings(backend=StorageBackend.FILE, storage_path=str(tmp_path)),
    )
    with TestClient(app) as client:
        yield client


POLICY = {
    "name": "read-docs",
    "description": "viewers read docs",
    "roles": [{"id": "viewer"}],
    "resources": ["docs/*"],
    "actions": ["read"],
    "conditions": [{"name": "client_ip", "type": "ip_allow", "options": {"networks": ["10.0.0.0/8"]}}],
    "effect": "allow",
}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["default_effect"] == "deny"


def test_policy_lifecycle(client):
    created = client.post("/v1/policies", json=POLICY)
    assert created.status_code == 201
    assert created.json()["conditions"][0]["type"] == "ip_allow"

    assert client.post("/v1/policies", json=POLICY).status_code == 409
    assert client.get("/v1/policies/read-docs").json()["description"] == "viewers read docs"
    assert [p["name"] for p in client.get("/v1/policies").json()] == ["read-docs"]
    assert client.get("/v1/policies", params={"offset": 1}).json() == []

    assert client.delete("/v1/policies/read-docs").status_code == 204
    assert client.get("/v1/policies/read-docs").status_code == 404
    assert client.delete("/v1/policies/read-docs").status_code == 404


def test_enforce_endpoint(client):
    client.post("/v1/policies", json=POLICY)
    body = {"resource": "docs/a", "action": "read", "subject": "u1", "roles": ["viewer"]}

    allowed = client.post("/v1/enforce", json={**body, "metadata": {"client_ip": "10.1.1.1"}})
    assert allowed.status_code == 200
    assert allowed.json()["allowed"] is True
    assert allowed.json()["policy_ids"] == ["read-docs"]

    denied = client.post("/v1/enforce", json={**body, "metadata": {"client_ip": "8.8.8.8"}})
    assert denied.json()["allowed"] is False
    assert denied.json()["status_code"] == 403


def test_invalid_policy_rejected(client):
    assert client.post("/v1/policies", json={**POLICY, "name": ""}).status_code == 422
    bad_options = {**POLICY, "conditions": [{"name": "x", "type": "bool", "options": {"nope": 1}}]}
    assert client.post("/v1/policies", json=bad_options).status_code == 422
