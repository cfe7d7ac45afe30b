"""Raw request and response objects handed to middlewares and handlers."""

from __future__ import annotations

from http.cookies import SimpleCookie
from types import SimpleNamespace
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Mapping

Scope = Mapping[str, Any]
Receive = Callable[[], Awaitable[dict[str, Any]]]


class ClientDisconnect(Exception):
    """The client went away before the request body was complete."""


class Request:
    """Represent an incoming HTTP request.

    The body is pulled lazily from the ASGI ``receive`` callable; a request
    built without one serves the ``body`` passed to the constructor.
    """

    def __init__(
        self,
        method: str = "GET",
        url: str = "/",
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        body: bytes = b"",
        receive: Receive | None = None,
        client: tuple[str, int] | None = None,
        scope: Scope | None = None,
    ) -> None:
        self.method = method.upper()
        self.url = url
        path, _, query = url.partition("?")
        self.path = path or "/"
        self.query_string = query
        self.headers = _normalize_headers(headers)
        self.client = client
        self.scope = scope or {}
        self.state: SimpleNamespace = SimpleNamespace()
        self._receive = receive
        self._body: bytes | None = None if receive is not None else body
        self._stream_consumed = False

    @classmethod
    def from_scope(cls, scope: Scope, receive: Receive) -> "Request":
        """Build a request from an ASGI ``http`` scope."""

        path = scope.get("raw_path") or scope.get("path", "/")
        if isinstance(path, bytes):
            path = path.decode("latin-1")
        query = scope.get("query_string", b"")
        if isinstance(query, bytes):
            query = query.decode("latin-1")
        url = f"{path}?{query}" if query else path
        headers = [
            (key.decode("latin-1"), value.decode("latin-1"))
            for key, value in scope.get("headers", [])
        ]
        return cls(
            method=str(scope.get("method", "GET")),
            url=url,
            headers=headers,
            receive=receive,
            client=scope.get("client"),
            scope=scope,
        )

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield the body as it arrives from the client."""

        if self._body is not None:
            if self._body:
                yield self._body
            return
        if self._stream_consumed:
            raise RuntimeError("request body stream already consumed")
        if self._receive is None:
            raise RuntimeError("request has neither a body nor a receive channel")
        self._stream_consumed = True
        while True:
            message = await self._receive()
            if message.get("type") == "http.disconnect":
                raise ClientDisconnect()
            chunk = message.get("body", b"")
            if chunk:
                yield chunk
            if not message.get("more_body", False):
                return

    async def body(self) -> bytes:
        """Return the complete request body."""

        if self._body is None:
            self._body = b"".join([chunk async for chunk in self.stream()])
        return self._body


class Response:
    """Buffered response writer.

    Middlewares and response handlers set the status and headers, write
    chunks and call :meth:`end`; the application sends the result once the
    pipeline is over.
    """

    def __init__(self) -> None:
        self.status_code = 200
        self.headers: dict[str, str] = {}
        self._cookies: SimpleCookie = SimpleCookie()
        self._chunks: list[bytes] = []
        self.finished = False

    def set_header(self, key: str, value: str) -> None:
        """Set or replace a header."""
        self.headers[key.lower()] = value

    def get_header(self, key: str) -> str | None:
        return self.headers.get(key.lower())

    def remove_header(self, key: str) -> None:
        self.headers.pop(key.lower(), None)

    def set_cookie(self, key: str, value: str, **params: Any) -> None:
        """Attach a cookie to the response."""
        self._cookies[key] = value
        for k, v in params.items():
            self._cookies[key][k.replace("_", "-")] = str(v)

    def write(self, chunk: bytes | str) -> None:
        if self.finished:
            raise RuntimeError("response already finished")
        if isinstance(chunk, str):
            chunk = chunk.encode()
        self._chunks.append(chunk)

    def end(self, body: bytes | str | None = None) -> None:
        """Write an optional last chunk and mark the response complete."""
        if body is not None:
            self.write(body)
        self.finished = True

    def reset(self) -> None:
        """Drop everything written so far, including headers and cookies."""
        self.status_code = 200
        self.headers.clear()
        self._cookies = SimpleCookie()
        self._chunks.clear()
        self.finished = False

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def serialize(self) -> tuple[int, bytes, list[tuple[bytes, bytes]]]:
        """Return ``(status_code, body, raw_headers)`` for transmission."""
        body = self.body
        headers = dict(self.headers)
        headers.setdefault("content-length", str(len(body)))
        raw = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]
        for morsel in self._cookies.values():
            raw.append((b"set-cookie", morsel.OutputString().encode("latin-1")))
        return self.status_code, body, raw


def _normalize_headers(
    headers: Mapping[str, str] | Iterable[tuple[str, str]] | None,
) -> dict[str, str]:
    items = headers.items() if isinstance(headers, Mapping) else headers or ()
    result: dict[str, str] = {}
    for key, value in items:
        key = key.lower()
        if key in result:
            sep = "; " if key == "cookie" else ", "
            result[key] = f"{result[key]}{sep}{value}"
        else:
            result[key] = value
    return result


__all__ = ["ClientDisconnect", "Request", "Response"]
