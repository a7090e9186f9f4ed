import logging
import secrets

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from edpsych_tenancy.config import settings

logger = logging.getLogger("edpsych-tenancy")


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"message": message})


# Paths under /api that don't require a session
PUBLIC_PATHS = {
    "/api/invitations/accept",
}


def _is_public(path: str) -> bool:
    if path in PUBLIC_PATHS:
        return True
    # Plan catalogue is readable before sign-in
    return path.startswith(f"{settings.subscriptions_api_base}/plans")


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """Require the session cookie on protected /api endpoints."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        if not path.startswith("/api/") or _is_public(path):
            return await call_next(request)

        token = request.cookies.get(settings.session_cookie_name, "")
        if not token:
            return _error(401, "Not authenticated")

        if settings.sandbox_session_token and not secrets.compare_digest(token, settings.sandbox_session_token):
            logger.warning("Rejected session cookie on %s %s", request.method, path)
            return _error(401, "Invalid session")

        request.state.session_token = token
        return await call_next(request)
