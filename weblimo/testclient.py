"""Simple in-memory HTTP client driving an ASGI application."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Sequence
from urllib.parse import quote, urlencode

ASGIApp = Callable[..., Awaitable[None]]


@dataclass
class Response:
    """Container for HTTP response data."""

    status_code: int
    text: str
    headers: Mapping[str, str]
    content: bytes
    cookies: list[str]

    def json(self) -> Any:
        """Return the body parsed as JSON."""
        return json.loads(self.text)


class TestClient:
    """Execute requests against an ASGI application without a server."""

    __test__ = False  # prevent Pytest from treating this as a test case

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        body: bytes | str | None = None,
        form: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        cookies: Mapping[str, str] | None = None,
        chunks: Sequence[bytes] | None = None,
        disconnect: bool = False,
    ) -> Response:
        """Send an HTTP request and return the response.

        ``chunks`` sends the body in several ``http.request`` messages;
        ``disconnect`` makes the client go away after the last chunk.
        """

        if sum(x is not None for x in (json_body, body, form, chunks)) > 1:
            raise ValueError("provide only one of json_body, body, form or chunks")
        send_headers = {k.lower(): v for k, v in (headers or {}).items()}
        if json_body is not None:
            body = json.dumps(json_body).encode()
            send_headers.setdefault("content-type", "application/json")
        elif form is not None:
            body = urlencode(form, doseq=True).encode()
            send_headers.setdefault("content-type", "application/x-www-form-urlencoded")
        if isinstance(body, str):
            body = body.encode()
        if cookies:
            send_headers["cookie"] = "; ".join(
                f"{quote(k)}={quote(v)}" for k, v in cookies.items()
            )
        if chunks is None:
            chunks = [body or b""]
            if body:
                send_headers.setdefault("content-length", str(len(body)))
        return asyncio.run(
            self._send(method.upper(), path, params, send_headers, list(chunks), disconnect)
        )

    async def _send(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str],
        chunks: list[bytes],
        disconnect: bool,
    ) -> Response:
        path, _, query = path.partition("?")
        if params:
            extra = urlencode(params, doseq=True)
            query = f"{query}&{extra}" if query else extra
        headers = {"host": "testserver", **headers}
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "query_string": query.encode(),
            "headers": [(k.encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()],
            "client": ("testclient", 50000),
            "server": ("testserver", 80),
        }
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1 or disconnect}
            for i, chunk in enumerate(chunks)
        ]
        if disconnect:
            messages.append({"type": "http.disconnect"})
        sent: list[dict[str, Any]] = []

        async def receive() -> dict[str, Any]:
            if messages:
                return messages.pop(0)
            return {"type": "http.disconnect"}

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await self.app(scope, receive, send)

        start = next(m for m in sent if m["type"] == "http.response.start")
        content = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
        resp_headers: dict[str, str] = {}
        set_cookies: list[str] = []
        for key, value in start.get("headers", []):
            name, text = key.decode("latin-1").lower(), value.decode("latin-1")
            if name == "set-cookie":
                set_cookies.append(text)
            else:
                resp_headers[name] = text
        return Response(
            start["status"], content.decode("utf-8", "replace"), resp_headers, content, set_cookies
        )

    def get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send a GET request."""
        return self.request("GET", path, params=params, headers=headers)

    def post(
        self,
        path: str,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send a POST request."""
        return self.request(
            "POST", path, json_body=json_body, params=params, headers=headers
        )

    def put(
        self,
        path: str,
        json_body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send a PUT request."""
        return self.request(
            "PUT", path, json_body=json_body, params=params, headers=headers
        )

    def delete(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send a DELETE request."""
        return self.request("DELETE", path, params=params, headers=headers)

    def head(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Response:
        """Send a HEAD request."""
        return self.request("HEAD", path, params=params, headers=headers)


__all__ = ["Response", "TestClient"]
