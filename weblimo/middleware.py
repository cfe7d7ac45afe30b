"""Stock middlewares.

Pipeline middlewares are called with ``(request, response)``; a truthy
result means the middleware answered the request itself and the pipeline
stops. :class:`RequestLoggerMiddleware` wraps the ASGI application instead,
so it can observe the final status.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterable

from .http import Request, Response

Scope = Dict[str, Any]
Receive = Callable[[], Awaitable[Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]
ASGIApp = Callable[[Scope, Receive, Send], Awaitable[None]]


class CORSMiddleware:
    """Configure Cross-Origin Resource Sharing headers.

    Preflight ``OPTIONS`` requests are answered with ``204`` directly.
    """

    def __init__(
        self,
        allow_origin: str = "*",
        allow_methods: str = "*",
        allow_headers: str = "*",
        allow_credentials: bool = False,
        max_age: int = 600,
    ) -> None:
        self.allow_origin = allow_origin
        self.allow_methods = allow_methods
        self.allow_headers = allow_headers
        self.allow_credentials = allow_credentials
        self.max_age = max_age

    def __call__(self, request: Request, response: Response) -> bool:
        if "origin" not in request.headers:
            return False
        response.set_header("access-control-allow-origin", self.allow_origin)
        if self.allow_credentials:
            response.set_header("access-control-allow-credentials", "true")
        if (
            request.method == "OPTIONS"
            and "access-control-request-method" in request.headers
        ):
            response.set_header("access-control-allow-methods", self.allow_methods)
            response.set_header("access-control-allow-headers", self.allow_headers)
            response.set_header("access-control-max-age", str(self.max_age))
            response.status_code = 204
            response.end()
            return True
        return False


class TrustedHostMiddleware:
    """Permit only configured host names; ``*.example.com`` matches subdomains."""

    def __init__(self, allowed_hosts: Iterable[str]) -> None:
        self.allowed = set(allowed_hosts)

    def _is_allowed(self, host: str) -> bool:
        if "*" in self.allowed or host in self.allowed:
            return True
        return any(
            pattern.startswith("*.") and host.endswith(pattern[1:])
            for pattern in self.allowed
        )

    def __call__(self, request: Request, response: Response) -> bool:
        host = request.headers.get("host", "").rsplit(":", 1)[0].lower()
        if self._is_allowed(host):
            return False
        response.status_code = 400
        response.set_header("content-type", "text/plain; charset=utf-8")
        response.end("Invalid host header")
        return True


class SecurityHeadersMiddleware:
    """Set common HTTP security headers."""

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self.headers = headers or {
            "x-content-type-options": "nosniff",
            "x-frame-options": "DENY",
            "x-xss-protection": "1; mode=block",
            "referrer-policy": "same-origin",
        }

    def __call__(self, request: Request, response: Response) -> bool:
        for key, value in self.headers.items():
            if response.get_header(key) is None:
                response.set_header(key, value)
        return False


class RequestLoggerMiddleware:
    """ASGI middleware emitting one structured log line per request."""

    def __init__(
        self,
        app: ASGIApp,
        logger: logging.Logger | None = None,
        *,
        level: int = logging.INFO,
    ) -> None:
        self.app = app
        self.logger = logger or logging.getLogger("weblimo.request")
        self.level = level

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        request_id = _request_id(scope)
        status = 500
        start = time.perf_counter()

        async def send_wrapper(message: Dict[str, Any]) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            payload = self._payload(scope, request_id, start)
            payload["status"] = 500
            payload["error"] = f"{exc.__class__.__name__}: {exc}"
            self.logger.error(json.dumps(payload, separators=(",", ":")), exc_info=True)
            raise
        payload = self._payload(scope, request_id, start)
        payload["status"] = status
        self.logger.log(self.level, json.dumps(payload, separators=(",", ":")))

    @staticmethod
    def _payload(scope: Scope, request_id: str, start: float) -> dict[str, Any]:
        duration_ms = (time.perf_counter() - start) * 1000
        return {
            "event": "request",
            "method": str(scope.get("method", "")).upper(),
            "path": scope.get("path", ""),
            "request_id": request_id,
            "duration_ms": round(duration_ms, 3),
        }


def _request_id(scope: Scope) -> str:
    for key, value in scope.get("headers", []):
        if key.lower() == b"x-request-id":
            return value.decode("latin-1")
    return uuid.uuid4().hex


__all__ = [
    "CORSMiddleware",
    "RequestLoggerMiddleware",
    "SecurityHeadersMiddleware",
    "TrustedHostMiddleware",
]
