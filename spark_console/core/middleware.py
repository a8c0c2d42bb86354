import secrets
import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, RedirectResponse

from spark_console.config import settings
from spark_console.core.exceptions import AuthenticationError

logger = structlog.get_logger()

SESSION_COOKIE = "session_token"

# Paths that skip authentication
PUBLIC_PATHS = {"/", "/login", "/api/v1/health", "/api/v1/auth/login", "/docs", "/openapi.json", "/redoc"}
PUBLIC_PREFIXES = ("/pkg/", "/assets/")


def extract_bearer(header: str) -> str | None:
    if not header.startswith("Bearer "):
        return None
    return header.removeprefix("Bearer ").strip() or None


def token_matches(provided: str | None, expected: str) -> bool:
    return bool(provided) and secrets.compare_digest(provided, expected)


class TokenAuthMiddleware(BaseHTTPMiddleware):
    """Shared-token access control.

    When SPARK_AUTH_TOKEN is not set (LAN-only mode), this middleware is a no-op.
    When set, API requests need a matching Bearer token or session cookie, and
    page requests without a valid session cookie are redirected to /login.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        expected = settings.spark_auth_token
        if not expected:
            return await call_next(request)

        path = request.url.path
        if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
            return await call_next(request)

        cookie_token = request.cookies.get(SESSION_COOKIE)

        if path.startswith("/api/"):
            bearer = extract_bearer(request.headers.get("authorization", ""))
            provided = bearer if bearer is not None else cookie_token
            if not token_matches(provided, expected):
                logger.warning("auth_denied", path=path)
                error = AuthenticationError()
                return JSONResponse(status_code=error.status, content=error.to_dict())
            return await call_next(request)

        if not token_matches(cookie_token, expected):
            return RedirectResponse("/login", status_code=303)
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request as structured JSON."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = round((time.perf_counter() - start) * 1000, 1)

        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            latency_ms=latency_ms,
        )
        return response
