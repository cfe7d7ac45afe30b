"""Request body and cookie parsing."""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict
from urllib.parse import parse_qs, unquote

from .http import ClientDisconnect, Request
from .responses import (
    HTTP_400_BAD_REQUEST,
    HTTP_413_CONTENT_TOO_LARGE,
    HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    HTTPException,
)
from .rules import MISSING
from .utils import parse_size

_LOGGER = logging.getLogger("weblimo.body")

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
BODY_TYPES = ("json", "urlencoded", "multipart", "text", "raw", "stream")

_MEDIA_TYPES = {
    "application/json": "json",
    "application/x-www-form-urlencoded": "urlencoded",
    "multipart/form-data": "multipart",
}

Cookies = Dict[str, "str | list[str]"]


@dataclass(frozen=True)
class UploadedFile:
    """File received in a ``multipart/form-data`` body."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class BodyOptions:
    """Per-mode size limits; ``"100kb"``-style strings or byte counts."""

    json: int | str | None = None
    urlencoded: int | str | None = None
    multipart: int | str | None = None
    text: int | str | None = None
    raw: int | str | None = None
    max_file_size: int | str | None = None

    def limit_for(self, body_type: str) -> int | None:
        return parse_size(getattr(self, body_type, None))


def parse_query(text: str) -> dict[str, str | list[str]]:
    """Parse a query string into a flat map; repeated names become lists."""

    return {
        key: values[0] if len(values) == 1 else values
        for key, values in parse_qs(text, keep_blank_values=True).items()
    }


@dataclass(frozen=True)
class Parsers:
    """Text decoders used for ``json`` and ``urlencoded`` bodies and queries."""

    json: Callable[[str], Any] = field(default=json.loads)
    qs: Callable[[str], Any] = field(default=parse_query)


def parse_header(line: str) -> tuple[str, dict[str, str]]:
    """Split a ``Content-Type``/``Content-Disposition`` style header."""

    parts = [p.strip() for p in line.split(";") if p.strip()]
    value = parts[0].lower() if parts else ""
    params: dict[str, str] = {}
    for item in parts[1:]:
        if "=" in item:
            k, v = item.split("=", 1)
            params[k.strip().lower()] = v.strip().strip('"')
    return value, params


async def read_body(request: Request, limit: int | None = None) -> bytes:
    """Read the whole body, enforcing *limit* and the declared length."""

    declared = request.headers.get("content-length")
    expected: int | None = None
    if declared:
        try:
            expected = int(declared)
        except ValueError as exc:
            raise HTTPException(HTTP_400_BAD_REQUEST, "invalid content-length", exc)
    if limit is not None and expected is not None and expected > limit:
        raise HTTPException(HTTP_413_CONTENT_TOO_LARGE, "request entity too large")

    chunks: list[bytes] = []
    received = 0
    try:
        async for chunk in request.stream():
            received += len(chunk)
            if limit is not None and received > limit:
                raise HTTPException(
                    HTTP_413_CONTENT_TOO_LARGE, "request entity too large"
                )
            chunks.append(chunk)
    except ClientDisconnect as exc:
        raise HTTPException(HTTP_400_BAD_REQUEST, "request aborted", exc)
    if expected is not None and received != expected:
        raise HTTPException(
            HTTP_400_BAD_REQUEST, "request size did not match content length"
        )
    return b"".join(chunks)


def _decode(raw: bytes, charset: str) -> str:
    try:
        codecs.lookup(charset)
    except LookupError as exc:
        raise HTTPException(
            HTTP_415_UNSUPPORTED_MEDIA_TYPE, f'unsupported charset "{charset}"', exc
        )
    try:
        return raw.decode(charset)
    except UnicodeDecodeError as exc:
        raise HTTPException(HTTP_400_BAD_REQUEST, "invalid body encoding", exc)


def _declares_body(request: Request) -> bool:
    length = request.headers.get("content-length", "").strip()
    return (length not in ("", "0")) or "transfer-encoding" in request.headers


def _add_field(fields: dict[str, Any], name: str, value: Any) -> None:
    if name not in fields:
        fields[name] = value
    elif isinstance(fields[name], list):
        fields[name].append(value)
    else:
        fields[name] = [fields[name], value]


def parse_multipart(
    data: bytes,
    boundary: str,
    charset: str = "utf-8",
    max_file_size: int | None = None,
) -> dict[str, Any]:
    """Parse a buffered ``multipart/form-data`` body into fields and files."""

    delimiter = b"--" + boundary.encode("latin-1")
    if delimiter not in data:
        raise HTTPException(HTTP_400_BAD_REQUEST, "malformed multipart body")
    fields: dict[str, Any] = {}
    for part in data.split(delimiter)[1:-1]:
        part = part.removeprefix(b"\r\n")
        if b"\r\n\r\n" not in part:
            raise HTTPException(HTTP_400_BAD_REQUEST, "malformed multipart body")
        header_block, content = part.split(b"\r\n\r\n", 1)
        content = content.removesuffix(b"\r\n")
        headers: dict[str, str] = {}
        for line in header_block.decode("latin-1").split("\r\n"):
            if ":" in line:
                key, value = line.split(":", 1)
                headers[key.strip().lower()] = value.strip()
        _, disposition = parse_header(headers.get("content-disposition", ""))
        name = disposition.get("name")
        if not name:
            continue
        filename = disposition.get("filename")
        if filename is None:
            _add_field(fields, name, _decode(content, charset))
            continue
        if max_file_size is not None and len(content) > max_file_size:
            raise HTTPException(HTTP_413_CONTENT_TOO_LARGE, "file too large")
        mime = headers.get("content-type", "application/octet-stream").lower()
        _add_field(fields, name, UploadedFile(filename, mime, content))
    return fields


async def parse_body(
    request: Request,
    body_type: str = "json",
    parsers: Parsers | None = None,
    options: BodyOptions | None = None,
) -> Any:
    """Acquire the request body according to *body_type*.

    Returns :data:`~weblimo.rules.MISSING` when the request carries no body,
    so a JSON ``null`` stays distinguishable. ``stream`` mode returns an
    async iterator over the raw chunks without reading them.
    """

    if request.method not in BODY_METHODS:
        return MISSING
    if body_type not in BODY_TYPES:
        raise ValueError(f"unknown body type: {body_type!r}")
    parsers = parsers or Parsers()
    options = options or BodyOptions()

    content_type = request.headers.get("content-type")
    if not content_type:
        if request.method == "DELETE" and not _declares_body(request):
            return MISSING
        raise HTTPException(HTTP_400_BAD_REQUEST, "missing content-type")
    media, params = parse_header(content_type)
    charset = params.get("charset", "utf-8")

    if body_type == "stream":
        stream: AsyncIterator[bytes] = request.stream()
        return stream
    if body_type in _MEDIA_TYPES.values() and _MEDIA_TYPES.get(media) != body_type:
        raise HTTPException(
            HTTP_400_BAD_REQUEST, f"unexpected content-type {media!r} for {body_type} body"
        )
    if body_type == "text" and not media.startswith("text/"):
        raise HTTPException(
            HTTP_400_BAD_REQUEST, f"unexpected content-type {media!r} for text body"
        )

    raw = await read_body(request, options.limit_for(body_type))
    _LOGGER.debug("read %d byte(s) of %s body", len(raw), body_type)

    if body_type == "raw":
        return raw
    if body_type == "multipart":
        boundary = params.get("boundary")
        if not boundary:
            raise HTTPException(HTTP_400_BAD_REQUEST, "missing multipart boundary")
        return parse_multipart(
            raw, boundary, charset, parse_size(options.max_file_size)
        )
    text = _decode(raw, charset)
    if body_type == "text":
        return text
    if body_type == "urlencoded":
        return parsers.qs(text)
    try:
        return parsers.json(text)
    except ValueError as exc:
        raise HTTPException(HTTP_400_BAD_REQUEST, "invalid JSON body", exc)


def parse_cookie(header: str | None) -> Cookies:
    """Parse a ``Cookie`` header; repeated names collect into a list."""

    cookies: Cookies = {}
    if not header:
        return cookies
    for item in header.split(";"):
        item = item.strip()
        if not item:
            continue
        name, _, value = item.partition("=")
        name = unquote(name.strip())
        value = unquote(value.strip())
        current = cookies.get(name)
        if current is None:
            cookies[name] = value
        elif isinstance(current, list):
            current.append(value)
        else:
            cookies[name] = [current, value]
    return cookies


__all__ = [
    "BODY_METHODS",
    "BODY_TYPES",
    "BodyOptions",
    "Cookies",
    "Parsers",
    "UploadedFile",
    "parse_body",
    "parse_cookie",
    "parse_header",
    "parse_multipart",
    "parse_query",
    "read_body",
]
