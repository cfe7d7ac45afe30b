"""Verify request/response primitives and the stock response handlers."""

import asyncio
import json

import pytest

from weblimo.http import Request, Response
from weblimo.responses import (
    HTTPException,
    default_response_handler,
    error_status,
    json_response_handler,
)
from weblimo.validator import ValidationError


def test_request_from_scope() -> None:
    async def receive() -> dict:
        return {"type": "http.request", "body": b"hi", "more_body": False}

    scope = {
        "type": "http",
        "method": "post",
        "path": "/a",
        "query_string": b"x=1",
        "headers": [(b"Content-Type", b"text/plain"), (b"Cookie", b"a=1"), (b"cookie", b"b=2")],
    }
    request = Request.from_scope(scope, receive)
    assert request.method == "POST"
    assert request.path == "/a"
    assert request.query_string == "x=1"
    assert request.headers["content-type"] == "text/plain"
    assert request.headers["cookie"] == "a=1; b=2"
    assert asyncio.run(request.body()) == b"hi"


def test_stream_is_single_use() -> None:
    async def receive() -> dict:
        return {"type": "http.request", "body": b"x", "more_body": False}

    request = Request(method="POST", receive=receive)

    async def consume_twice() -> None:
        async for _ in request.stream():
            pass
        async for _ in request.stream():
            pass

    with pytest.raises(RuntimeError):
        asyncio.run(consume_twice())


def test_stream_without_body_or_receive_fails() -> None:
    request = Request(method="POST", body=None)

    with pytest.raises(RuntimeError, match="receive channel"):
        asyncio.run(request.body())


def test_response_serialize_with_cookies() -> None:
    response = Response()
    response.set_header("X-Trace", "1")
    response.set_cookie("session", "abc", max_age=60, httponly=True)
    response.end("body")
    status, body, headers = response.serialize()
    assert status == 200
    assert body == b"body"
    assert (b"x-trace", b"1") in headers
    assert (b"content-length", b"4") in headers
    cookie = dict(headers)[b"set-cookie"].decode()
    assert cookie.startswith("session=abc")
    assert "Max-Age=60" in cookie
    with pytest.raises(RuntimeError):
        response.write("more")


def test_http_exception_defaults() -> None:
    assert str(HTTPException(404)) == "Not Found"
    cause = ValidationError("query.a", "x", None)
    error = HTTPException(400, cause=cause)
    assert str(error) == str(cause)
    assert error.__cause__ is cause
    assert error_status(cause) == 400
    assert error_status(KeyError("x")) == 500


def test_default_response_handler() -> None:
    response = Response()
    default_response_handler(response, None, {"a": 1})
    assert response.get_header("content-type") == "application/json"
    assert json.loads(response.body) == {"a": 1}

    response = Response()
    default_response_handler(response, None, b"\x00")
    assert response.body == b"\x00"

    response = Response()
    default_response_handler(response, HTTPException(413, "too large"), None)
    assert response.status_code == 413
    assert response.body == b"too large"


def test_response_handlers_leave_finished_responses_alone() -> None:
    response = Response()
    response.end("done")
    default_response_handler(response, None, {"ignored": True})
    json_response_handler(response, None, {"ignored": True})
    assert response.status_code == 200
    assert response.body == b"done"


def test_errors_replace_finished_responses() -> None:
    response = Response()
    response.set_header("x-partial", "1")
    response.end("done")
    default_response_handler(response, HTTPException(403, "forbidden"), None)
    assert response.status_code == 403
    assert response.body == b"forbidden"
    assert response.get_header("x-partial") is None

    response = Response()
    response.end("done")
    json_response_handler(response, RuntimeError("late"), None)
    assert response.status_code == 500
    assert json.loads(response.body) == {
        "error": {"status": 500, "message": "Internal Server Error"}
    }
