"""
Warden Decision Service

FastAPI application exposing the enforcer and the policy store over HTTP.

Routes:
- GET /health: Service status and effective settings
- POST /v1/enforce: Evaluate a request, returns the decision
- GET /v1/policies: List stored policies (limit/offset)
- POST /v1/policies: Store a policy from its JSON shape
- GET /v1/policies/{policy_id}: Get one policy
- DELETE /v1/policies/{policy_id}: Remove one policy

Decisions are returned with status 200 whatever their effect; the body
carries the effect, reason and status code.

Configuration is read from the environment (see warden.config and
warden.storage.factory). Environment variables can be loaded from a .env
file in the working directory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request as HTTPRequest, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

from warden import __version__
from warden.audit import Auditor
from warden.condition import ConditionRegistry
from warden.conditions import NETWORK_CONDITIONS
from warden.config import EnforcerSettings, configure_logging, enforcer_settings_from_env
from warden.errors import (
    ConditionError,
    DuplicateIdError,
    NotFoundError,
    PolicyError,
    WardenError,
)
from warden.http.middleware import ANONYMOUS_SUBJECT
from warden.policy.engine import Enforcer
from warden.policy.model import Policy, PolicyOptions
from warden.request import Subject, new_request
from warden.role import Role
from warden.storage import StorageSettings, create_storage, settings_from_env

logger = logging.getLogger(__name__)


class EnforceBody(BaseModel):
    """Request to evaluate."""
    resource: str
    action: str
    subject: str = Field(default="", description="Subject id")
    roles: list[str] = Field(default_factory=list, description="Role ids held by the subject")
    scope: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


def _error_status(exc: WardenError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, DuplicateIdError):
        return 409
    if isinstance(exc, (PolicyError, ConditionError)):
        return 422
    return 500


def create_app(
    settings: EnforcerSettings | None = None,
    storage_settings: StorageSettings | None = None,
    registry: ConditionRegistry | None = None,
    auditor: Auditor | None = None,
) -> FastAPI:
    """
    Build the decision service.

    Args:
        settings: Enforcer settings (default: from environment)
        storage_settings: Storage settings (default: from environment)
        registry: Condition registry (default: built-ins plus network conditions)
        auditor: Auditor (default: console auditor at settings.audit_level)
    """
    settings = settings or enforcer_settings_from_env(load_env_file=False)
    registry = registry if registry is not None else ConditionRegistry(NETWORK_CONDITIONS)
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Creates storage and the enforcer, closes storage on shutdown.
        """
        logger.info("Starting Warden...")

        store_settings = storage_settings or settings_from_env(load_env_file=False)
        if settings.strict_conditions:
            store_settings = replace(store_settings, strict_conditions=True)
        storage = await create_storage(store_settings, registry)

        app.state.storage = storage
        app.state.enforcer = Enforcer.from_settings(storage.policies, settings, auditor)
        logger.info(
            f"Warden started: matcher={settings.matcher} "
            f"default_effect={settings.default_effect.value}"
        )

        yield

        logger.info("Shutting down Warden...")
        await storage.close()
        logger.info("Warden stopped")

    app = FastAPI(
        title="Warden",
        description="Policy enforcement decision service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry

    @app.exception_handler(WardenError)
    async def warden_error_handler(request: HTTPRequest, exc: WardenError):
        status_code = _error_status(exc)
        if status_code == 500:
            logger.error(f"Unhandled warden error on {request.url.path}: {exc}")
        return JSONResponse({"detail": str(exc)}, status_code=status_code)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "matcher": settings.matcher,
            "default_effect": settings.default_effect.value,
            "audit_level": settings.audit_level.name.lower(),
        }

    @app.post("/v1/enforce")
    async def enforce(body: EnforceBody, request: HTTPRequest):
        """Evaluate a request against the stored policies."""
        subject = Subject(id=body.subject or ANONYMOUS_SUBJECT)
        subject.add_roles(*(Role(id=r) for r in body.roles))
        decision = await request.app.state.enforcer.enforce(
            new_request(body.resource, body.action, subject, body.scope, body.metadata)
        )
        return decision.to_dict()

    @app.get("/v1/policies")
    async def list_policies(
        request: HTTPRequest,
        limit: int = Query(100, ge=0),
        offset: int = Query(0, ge=0),
    ):
        """List stored policies ascending by id."""
        policies = await request.app.state.storage.policies.all(limit, offset)
        return [p.to_dict() for p in policies]

    @app.post("/v1/policies", status_code=201)
    async def create_policy(body: PolicyOptions, request: HTTPRequest):
        """Store a new policy."""
        if not body.name:
            raise PolicyError("policy name is required")
        policy = Policy.from_options(body, registry, settings.strict_conditions)
        await request.app.state.storage.policies.create(policy)
        logger.info(f"Created policy {policy.id}")
        return policy.to_dict()

    @app.get("/v1/policies/{policy_id}")
    async def get_policy(policy_id: str, request: HTTPRequest):
        """Get a stored policy."""
        policy = await request.app.state.storage.policies.get(policy_id)
        return policy.to_dict()

    @app.delete("/v1/policies/{policy_id}", status_code=204)
    async def delete_policy(policy_id: str, request: HTTPRequest):
        """Remove a stored policy."""
        await request.app.state.storage.policies.delete(policy_id)
        logger.info(f"Deleted policy {policy_id}")
        return Response(status_code=204)

    return app
