"""HTTP errors, status constants and the stock response handlers."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Mapping

from .http import Response
from .validator import ValidationError

ResponseHandler = Callable[[Response, "BaseException | None", Any], "Awaitable[None] | None"]

HTTP_200_OK = 200
HTTP_201_CREATED = 201
HTTP_204_NO_CONTENT = 204
HTTP_400_BAD_REQUEST = 400
HTTP_401_UNAUTHORIZED = 401
HTTP_403_FORBIDDEN = 403
HTTP_404_NOT_FOUND = 404
HTTP_413_CONTENT_TOO_LARGE = 413
HTTP_415_UNSUPPORTED_MEDIA_TYPE = 415
HTTP_500_INTERNAL_SERVER_ERROR = 500


class HTTPException(Exception):
    """Error carrying an HTTP status code, a message and its cause."""

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        cause: BaseException | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if message is None:
            message = str(cause) if cause is not None else _phrase(status_code)
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.cause = cause
        self.headers = dict(headers or {})
        if cause is not None:
            self.__cause__ = cause


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_status(error: BaseException) -> int:
    """Return the status code an error maps to."""

    if isinstance(error, HTTPException):
        return error.status_code
    if isinstance(error, ValidationError):
        return HTTP_400_BAD_REQUEST
    return HTTP_500_INTERNAL_SERVER_ERROR


def _write_body(response: Response, body: Any) -> None:
    if body is None:
        response.end()
    elif isinstance(body, (bytes, bytearray)):
        response.end(bytes(body))
    elif isinstance(body, str):
        if response.get_header("content-type") is None:
            response.set_header("content-type", "text/plain; charset=utf-8")
        response.end(body)
    else:
        if response.get_header("content-type") is None:
            response.set_header("content-type", "application/json")
        response.end(json.dumps(body, default=str))


def default_response_handler(
    response: Response, error: BaseException | None, body: Any
) -> None:
    """Write the error message on failure, otherwise the body as is.

    Mappings and lists are JSON-encoded. An error replaces whatever the
    endpoint already wrote.
    """

    if error is not None:
        if response.finished:
            response.reset()
        response.status_code = error_status(error)
        for key, value in getattr(error, "headers", {}).items():
            response.set_header(key, value)
        response.set_header("content-type", "text/plain; charset=utf-8")
        response.end(str(error))
        return
    if not response.finished:
        _write_body(response, body)


def json_response_handler(
    response: Response, error: BaseException | None, body: Any
) -> None:
    """Answer with JSON, wrapping failures in an ``{"error": ...}`` envelope."""

    if error is None:
        if not response.finished:
            response.set_header("content-type", "application/json")
            response.end(json.dumps(body, default=str))
        return
    if response.finished:
        response.reset()
    status = error_status(error)
    payload: dict[str, Any] = {"status": status, "message": str(error)}
    cause = error.cause if isinstance(error, HTTPException) else error
    if isinstance(cause, ValidationError):
        payload["path"] = cause.property_path
    if status >= HTTP_500_INTERNAL_SERVER_ERROR:
        payload["message"] = _phrase(status)
    response.status_code = status
    for key, value in getattr(error, "headers", {}).items():
        response.set_header(key, value)
    response.set_header("content-type", "application/json")
    response.end(json.dumps({"error": payload}))


__all__ = [
    "HTTPException",
    "HTTP_200_OK",
    "HTTP_201_CREATED",
    "HTTP_204_NO_CONTENT",
    "HTTP_400_BAD_REQUEST",
    "HTTP_401_UNAUTHORIZED",
    "HTTP_403_FORBIDDEN",
    "HTTP_404_NOT_FOUND",
    "HTTP_413_CONTENT_TOO_LARGE",
    "HTTP_415_UNSUPPORTED_MEDIA_TYPE",
    "HTTP_500_INTERNAL_SERVER_ERROR",
    "ResponseHandler",
    "default_response_handler",
    "error_status",
    "json_response_handler",
]
