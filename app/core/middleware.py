"""
Request middleware — request id + access log.
Also holds the helper that pulls the role profile id out of an authenticated user.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core.errors import ProfileNotFound

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Paths that are not worth an access log line
QUIET_PATHS = {"/api/health", "/docs", "/redoc", "/openapi.json"}


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        if request.url.path not in QUIET_PATHS and request.method != "OPTIONS":
            logger.info(
                "%s %s -> %s (%.1f ms) [%s]",
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - started) * 1000,
                request_id,
            )
        return response


def get_profile_id(user: dict) -> str:
    """
    Extract the role profile id (students.id / teachers.id / parents.id)
    from an authenticated user. Accounts without a profile row cannot use
    role endpoints.
    """
    profile_id = user.get("profile_id")
    if not profile_id:
        role = user.get("role", "user")
        raise ProfileNotFound(f"No {role} profile found for this account")
    return profile_id
