# HTTP Adapter
# Starlette middleware and a FastAPI decision service

from warden.http.middleware import (
    EnforcementMiddleware,
    subject_from_headers,
    request_metadata,
)
from warden.http.app import create_app

__all__ = [
    "EnforcementMiddleware",
    "subject_from_headers",
    "request_metadata",
    "create_app",
]
