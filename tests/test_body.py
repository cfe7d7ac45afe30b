"""Verify body acquisition modes, limits and cookie parsing."""

import asyncio

import pytest

from weblimo.body import BodyOptions, UploadedFile, parse_body, parse_cookie
from weblimo.http import Request
from weblimo.responses import HTTPException
from weblimo.rules import MISSING


def run(coro):
    """Synchronously execute an async coroutine."""

    return asyncio.run(coro)


def make_request(body: bytes = b"", method: str = "POST", **headers: str) -> Request:
    return Request(
        method=method,
        url="/",
        headers={k.replace("_", "-"): v for k, v in headers.items()},
        body=body,
    )


def receiving(messages: list) -> Request:
    async def receive() -> dict:
        return messages.pop(0)

    return Request(
        method="POST",
        url="/",
        headers={"content-type": "application/json"},
        receive=receive,
    )


def status_of(coro) -> int:
    with pytest.raises(HTTPException) as info:
        run(coro)
    return info.value.status_code


def test_methods_without_body_return_missing() -> None:
    request = make_request(b'{"a": 1}', method="GET", content_type="application/json")
    assert run(parse_body(request, "json")) is MISSING


def test_delete_without_body_returns_missing() -> None:
    assert run(parse_body(make_request(method="DELETE"), "json")) is MISSING


def test_missing_content_type_is_bad_request() -> None:
    assert status_of(parse_body(make_request(b"{}"), "json")) == 400


def test_content_type_must_match_mode() -> None:
    request = make_request(b"a=1", content_type="application/x-www-form-urlencoded")
    assert status_of(parse_body(request, "json")) == 400
    request = make_request(b"{}", content_type="application/json")
    assert status_of(parse_body(request, "text")) == 400


def test_json_body() -> None:
    request = make_request(b'{"a": [1, 2]}', content_type="application/json; charset=utf-8")
    assert run(parse_body(request, "json")) == {"a": [1, 2]}


def test_json_null_is_a_body() -> None:
    request = make_request(b"null", content_type="application/json")
    assert run(parse_body(request, "json")) is None


def test_malformed_json_is_bad_request() -> None:
    request = make_request(b'{"a": ', content_type="application/json")
    assert status_of(parse_body(request, "json")) == 400


def test_unknown_charset_is_unsupported() -> None:
    request = make_request(b"{}", content_type="application/json; charset=klingon")
    assert status_of(parse_body(request, "json")) == 415


def test_declared_length_over_limit() -> None:
    body = b'{"name": "long enough"}'
    request = make_request(body, content_type="application/json", content_length=str(len(body)))
    assert status_of(parse_body(request, "json", options=BodyOptions(json="10b"))) == 413


def test_streamed_body_over_limit() -> None:
    request = receiving(
        [
            {"type": "http.request", "body": b'{"a": ', "more_body": True},
            {"type": "http.request", "body": b'"0123456789"}', "more_body": False},
        ]
    )
    assert status_of(parse_body(request, "json", options=BodyOptions(json=10))) == 413


def test_length_mismatch_is_bad_request() -> None:
    request = make_request(b"{}", content_type="application/json", content_length="10")
    assert status_of(parse_body(request, "json")) == 400


def test_client_disconnect_is_bad_request() -> None:
    request = receiving(
        [
            {"type": "http.request", "body": b"{", "more_body": True},
            {"type": "http.disconnect"},
        ]
    )
    assert status_of(parse_body(request, "json")) == 400


def test_urlencoded_body() -> None:
    request = make_request(b"a=1&a=2&b=", content_type="application/x-www-form-urlencoded")
    assert run(parse_body(request, "urlencoded")) == {"a": ["1", "2"], "b": ""}


def test_text_and_raw_bodies() -> None:
    request = make_request("héllo".encode(), content_type="text/plain; charset=utf-8")
    assert run(parse_body(request, "text")) == "héllo"
    request = make_request(b"\x00\x01", content_type="application/octet-stream")
    assert run(parse_body(request, "raw")) == b"\x00\x01"


def test_stream_body_is_not_read() -> None:
    request = make_request(b"chunk", content_type="application/octet-stream")

    async def collect() -> bytes:
        stream = await parse_body(request, "stream")
        return b"".join([chunk async for chunk in stream])

    assert run(collect()) == b"chunk"


def test_multipart_body() -> None:
    boundary = "boundary"
    body = (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="field"\r\n\r\n'
        "value\r\n"
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="field"\r\n\r\n'
        "other\r\n"
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="file"; '
        'filename="test.txt"\r\n'
        "Content-Type: text/plain\r\n\r\n"
        "hello\r\n"
        f"--{boundary}--\r\n"
    ).encode()
    request = make_request(body, content_type=f"multipart/form-data; boundary={boundary}")
    data = run(parse_body(request, "multipart"))
    assert data["field"] == ["value", "other"]
    assert data["file"] == UploadedFile("test.txt", "text/plain", b"hello")


def test_multipart_file_size_limit() -> None:
    body = (
        "--b\r\n"
        'Content-Disposition: form-data; name="file"; filename="a.bin"\r\n\r\n'
        "0123456789\r\n"
        "--b--\r\n"
    ).encode()
    request = make_request(body, content_type="multipart/form-data; boundary=b")
    options = BodyOptions(max_file_size=4)
    assert status_of(parse_body(request, "multipart", options=options)) == 413


def test_parse_cookie() -> None:
    assert parse_cookie("a=1; b=x%20y; a=2") == {"a": ["1", "2"], "b": "x y"}
    assert parse_cookie("") == {}
    assert parse_cookie(None) == {}
    assert parse_cookie("empty=; flag") == {"empty": "", "flag": ""}
