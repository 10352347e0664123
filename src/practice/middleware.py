"""Custom middleware for request handling."""

import time
import uuid
from typing import Awaitable, Callable, Dict, List

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from practice.auth import decode_session_token
from practice.config import get_settings


class SessionMiddleware(BaseHTTPMiddleware):
    """Attach the session id named by the session cookie to request state.

    A missing or invalid cookie leaves the request anonymous; routes that
    need a context reject it through the ``get_current_context`` dependency.
    """

    def __init__(self, app):
        super().__init__(app)
        self.settings = get_settings()

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        token = request.cookies.get(self.settings.session_cookie_name)
        if token:
            session_id = decode_session_token(token)
            if session_id:
                request.state.session_id = session_id
        return await call_next(request)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request and its log lines."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Simple in-memory rate limiting middleware."""

    def __init__(self, app):
        super().__init__(app)
        self.requests: Dict[str, List[float]] = {}
        self.settings = get_settings()

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path == "/health":
            return await call_next(request)

        # Session id from SessionMiddleware, else the client address
        client_key = getattr(request.state, "session_id", None) or (
            request.client.host if request.client else "anonymous"
        )

        current_time = time.time()
        window_start = current_time - self.settings.rate_limit_window

        recent = [ts for ts in self.requests.get(client_key, []) if ts > window_start]
        if len(recent) >= self.settings.rate_limit_requests:
            self.requests[client_key] = recent
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": "Too many requests",
                        "details": {"retry_after": self.settings.rate_limit_window},
                    }
                },
            )

        recent.append(current_time)
        self.requests[client_key] = recent

        return await call_next(request)
