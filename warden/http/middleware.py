"""
Enforcement Middleware

Starlette/FastAPI middleware that evaluates every HTTP request against an
Enforcer before the wrapped application sees it.

Request mapping:
- resource: URL path
- action: HTTP method
- subject: subject_resolver(request), or the X-Warden-Subject header with
  comma-separated role ids in X-Warden-Roles
- scope: scope_resolver(request), or ""
- metadata: referer, user_agent, url, headers, cookies, client_ip

Denials short-circuit with a 403 JSON body; allowed requests pass through.
The decision is exposed to handlers as request.state.warden_decision.

subject_from_headers trusts whatever the caller sends, so any client can
claim any role. Use it only behind a proxy that authenticates the caller
and overwrites both headers; otherwise pass a subject_resolver that reads
an authenticated identity. The middleware logs a warning when it falls
back to the headers.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as HTTPRequest
from starlette.responses import JSONResponse, Response

from warden.policy.engine import Enforcer
from warden.request import Request, Subject, new_request
from warden.role import Role

logger = logging.getLogger(__name__)

SUBJECT_HEADER = "x-warden-subject"
ROLES_HEADER = "x-warden-roles"
ANONYMOUS_SUBJECT = "anonymous"

SubjectResolver = Callable[[HTTPRequest], "Subject | str | Awaitable[Subject | str]"]
ScopeResolver = Callable[[HTTPRequest], "str | Awaitable[str]"]


def subject_from_headers(request: HTTPRequest) -> Subject:
    """
    Default subject: X-Warden-Subject id with X-Warden-Roles role ids.

    The headers are not authenticated; only safe behind a trusted proxy.
    """
    subject = Subject(id=request.headers.get(SUBJECT_HEADER, "").strip() or ANONYMOUS_SUBJECT)
    roles = request.headers.get(ROLES_HEADER, "")
    subject.add_roles(*(Role(id=r.strip()) for r in roles.split(",") if r.strip()))
    return subject


def request_metadata(request: HTTPRequest) -> dict[str, Any]:
    """Metadata exposed to conditions, keyed by condition name."""
    return {
        "referer": request.headers.get("referer", ""),
        "user_agent": request.headers.get("user-agent", ""),
        "url": str(request.url),
        "headers": dict(request.headers),
        "cookies": dict(request.cookies),
        "client_ip": request.client.host if request.client else "",
    }


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


class EnforcementMiddleware(BaseHTTPMiddleware):
    """
    Enforce policies on every request.

    Args:
        app: Wrapped ASGI application
        enforcer: Enforcer evaluating the requests
        subject_resolver: Maps an HTTP request to a Subject or role string
        scope_resolver: Maps an HTTP request to a scope
    """

    def __init__(
        self,
        app,
        enforcer: Enforcer,
        subject_resolver: SubjectResolver | None = None,
        scope_resolver: ScopeResolver | None = None,
    ):
        super().__init__(app)
        self._enforcer = enforcer
        if subject_resolver is None:
            logger.warning(
                "No subject_resolver given: roles are read from the unauthenticated "
                f"{ROLES_HEADER} header, deploy behind a trusted proxy"
            )
            subject_resolver = subject_from_headers
        self._subject_resolver = subject_resolver
        self._scope_resolver = scope_resolver

    async def build_request(self, request: HTTPRequest) -> Request:
        subject = await _resolve(self._subject_resolver(request))
        scope = ""
        if self._scope_resolver is not None:
            scope = await _resolve(self._scope_resolver(request))

        return new_request(
            request.url.path,
            request.method,
            subject,
            scope,
            request_metadata(request),
        )

    async def dispatch(self, request: HTTPRequest, call_next: Callable) -> Response:
        decision = await self._enforcer.enforce(await self.build_request(request))

        if not decision.is_allowed:
            logger.info(f"Denied {request.method} {request.url.path}: {decision.reason}")
            return JSONResponse(
                {"detail": decision.reason, "status": decision.status},
                status_code=decision.status_code,
            )

        request.state.warden_decision = decision
        return await call_next(request)
