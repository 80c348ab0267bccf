"""SSE 인코딩 테스트."""

from __future__ import annotations

import json

import pytest

from staysearch.schemas.stream_schema import StreamUpdate
from staysearch.services.sse import encode_stream, encode_update


def test_text_single_line():
    assert encode_update(StreamUpdate.text_update("Hello")) == "data: Hello\n\n"


def test_text_multi_line_uses_data_per_line():
    assert encode_update(StreamUpdate.text_update("a\nb")) == "data: a\ndata: b\n\n"


def test_status_event():
    assert encode_update(StreamUpdate.status_update("Searching...")) == "event: status\ndata: Searching...\n\n"


def test_results_event_is_json():
    frame = encode_update(StreamUpdate.results_update({"kind": "single", "listings": []}))

    assert frame.startswith("event: results\ndata: ")
    assert frame.endswith("\n\n")
    body = frame[len("event: results\ndata: "):].strip()
    assert json.loads(body) == {"kind": "single", "listings": []}


def test_error_event_with_retry_after():
    frame = encode_update(StreamUpdate.error_update("Too many requests", retry_after=42))

    assert frame.startswith("event: server-error\n")
    body = json.loads(frame.split("data: ", 1)[1])
    assert body == {"error": "Too many requests", "retryAfter": 42}


def test_error_event_without_retry_after():
    body = json.loads(encode_update(StreamUpdate.error_update("boom")).split("data: ", 1)[1])

    assert body == {"error": "boom"}


def test_done_marker():
    assert encode_update(StreamUpdate.done()) == "data: [DONE]\n\n"


@pytest.mark.asyncio
async def test_encode_stream_preserves_order():
    async def updates():
        yield StreamUpdate.status_update("one")
        yield StreamUpdate.done()

    frames = [frame async for frame in encode_stream(updates())]

    assert frames == ["event: status\ndata: one\n\n", "data: [DONE]\n\n"]
