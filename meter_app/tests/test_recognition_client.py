import asyncio
import logging
import time

import httpx
import pytest

from meter_app.models.recognition import Recognized, RemoteFailure, TimedOut, Unreadable
from meter_app.services.recognition_client import RecognitionClient, parse_reading

URL = "https://ocr.test/api/read-meter"
MARKERS = ["FUNCTION_INVOCATION_TIMEOUT", "timeout"]


def make_client(handler, timeout=1.0):
    return RecognitionClient(URL, timeout=timeout, timeout_markers=MARKERS, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_success_payload_is_recognized():
    seen = {}

    async def handler(request):
        body = await request.aread()
        seen["method"] = request.method
        seen["accept"] = request.headers.get("accept")
        seen["content_type"] = request.headers.get("content-type", "")
        seen["has_image"] = b"JPEGDATA" in body and b'name="file"' in body
        return httpx.Response(200, json={"success": True, "result": "123.45"})

    outcome = await make_client(handler).recognize(b"JPEGDATA", filename="m.jpg", content_type="image/jpeg")

    assert outcome == Recognized(value=123.45, raw="123.45")
    assert seen["method"] == "POST"
    assert seen["accept"] == "application/json"
    assert seen["content_type"].startswith("multipart/form-data")
    assert seen["has_image"]


@pytest.mark.asyncio
async def test_numeric_result_is_accepted():
    outcome = await make_client(lambda r: httpx.Response(200, json={"success": True, "result": 88})).recognize(b"x")
    assert outcome == Recognized(value=88.0, raw="88")


@pytest.mark.asyncio
async def test_html_body_is_unreadable():
    html = "<!DOCTYPE html><html><body>Service Unavailable</body></html>"
    handler = lambda r: httpx.Response(200, text=html, headers={"content-type": "text/html"})
    outcome = await make_client(handler).recognize(b"x")
    assert isinstance(outcome, Unreadable)
    assert outcome.raw_body == html


@pytest.mark.asyncio
async def test_non_json_body_is_logged_under_module_logger(caplog):
    handler = lambda r: httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})

    with caplog.at_level(logging.WARNING, logger="meter_app.services.recognition_client"):
        await make_client(handler).recognize(b"x")

    assert {r.name for r in caplog.records if r.levelno >= logging.WARNING} == {"meter_app.services.recognition_client"}
    assert "Non-JSON OCR response" in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"success": False, "result": "12"},
        {"success": True},
        {"success": True, "result": ""},
        {"success": True, "result": "12,5 m3"},
        {"success": True, "result": "NaN"},
        {"success": True, "result": True},
        ["123"],
    ],
)
async def test_unusable_json_is_unreadable(payload):
    outcome = await make_client(lambda r: httpx.Response(200, json=payload)).recognize(b"x")
    assert isinstance(outcome, Unreadable)


@pytest.mark.asyncio
async def test_broken_json_is_unreadable():
    handler = lambda r: httpx.Response(200, content=b"{not json", headers={"content-type": "application/json"})
    outcome = await make_client(handler).recognize(b"x")
    assert isinstance(outcome, Unreadable)


@pytest.mark.asyncio
async def test_error_status_without_marker():
    outcome = await make_client(lambda r: httpx.Response(500, text="Internal Server Error")).recognize(b"x")
    assert outcome == RemoteFailure(status_code=500, body="Internal Server Error", server_timeout=False)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["FUNCTION_INVOCATION_TIMEOUT", "upstream request timeout", "Gateway Timeout"])
async def test_error_status_with_timeout_marker(body):
    outcome = await make_client(lambda r: httpx.Response(504, text=body)).recognize(b"x")
    assert isinstance(outcome, RemoteFailure)
    assert outcome.server_timeout is True


@pytest.mark.asyncio
async def test_slow_endpoint_times_out_within_deadline():
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json={"success": True, "result": "1"})

    started = time.monotonic()
    outcome = await make_client(handler, timeout=0.2).recognize(b"x")
    elapsed = time.monotonic() - started

    assert isinstance(outcome, TimedOut)
    assert elapsed < 0.2 + 1.0


@pytest.mark.asyncio
async def test_httpx_timeout_is_timed_out():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    outcome = await make_client(handler).recognize(b"x")
    assert isinstance(outcome, TimedOut)


@pytest.mark.asyncio
async def test_connection_error_is_remote_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    outcome = await make_client(handler).recognize(b"x")
    assert isinstance(outcome, RemoteFailure)
    assert outcome.status_code is None
    assert outcome.server_timeout is False
    assert "connection refused" in outcome.body


def test_parse_reading():
    assert parse_reading("123.45") == 123.45
    assert parse_reading(" 7 ") == 7.0
    assert parse_reading("abc") is None
    assert parse_reading("inf") is None
