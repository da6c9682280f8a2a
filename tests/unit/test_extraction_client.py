"""Unit tests for the vision extraction client: httpx.MockTransport, no network."""

from __future__ import annotations

import base64
import json
from collections.abc import Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from inbox_ocr.pipeline.errors import ExtractionContentError, ExtractionTransportError
from inbox_ocr.pipeline.extraction.client import (
    RequestSpec,
    VisionExtractionClient,
    backoff_delay,
    build_payload,
)
from inbox_ocr.pipeline.types import ResultShape, SegmentedResult

API_URL = "https://vision.test/v1/responses"


def _model_reply(obj: dict) -> dict:
    return {"output": [{"type": "message", "content": [{"type": "output_text", "text": json.dumps(obj)}]}]}


_GOOD = _model_reply({"blocks": [{"label": "other", "text": "Hello there friend"}]})


def _client(handler: Callable[[httpx.Request], httpx.Response], *,
            shape: ResultShape = ResultShape.SEGMENTED) -> VisionExtractionClient:
    return VisionExtractionClient(
        api_key="sk-test",
        api_url=API_URL,
        model="test-model",
        shape=shape,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        backoff_step_seconds=0.0,
    )


class TestBackoff:
    def test_linear_schedule(self):
        assert [backoff_delay(a) for a in (1, 2)] == [0.5, 1.0]


class TestRequestSpec:
    def test_each_build_is_a_fresh_request(self):
        spec = RequestSpec(method="POST", url=API_URL, headers=(("X-A", "1"),), content=b"{}")
        r1, r2 = spec.build(), spec.build()
        assert r1 is not r2
        assert r1.read() == r2.read() == b"{}"
        assert r1.headers["X-A"] == "1"

    def test_payload_embeds_base64_image(self):
        payload = build_payload(model="m", shape=ResultShape.FLAT, data=b"\x01\x02", mime_type="image/png")
        image = payload["input"][1]["content"][1]
        assert image["type"] == "input_image"
        assert image["image_url"] == "data:image/png;base64," + base64.b64encode(b"\x01\x02").decode()
        assert payload["temperature"] == 0
        assert payload["model"] == "m"


class TestExtract:
    async def test_success(self):
        seen: list[httpx.Request] = []

        def handler(req: httpx.Request) -> httpx.Response:
            seen.append(req)
            return httpx.Response(200, json=_GOOD)

        async with _client(handler) as client:
            result = await client.extract(data=b"img", mime_type="image/png")

        assert isinstance(result, SegmentedResult)
        assert result.segments[0].text == "Hello there friend"
        assert len(seen) == 1
        assert seen[0].headers["Authorization"] == "Bearer sk-test"
        assert seen[0].method == "POST"
        assert str(seen[0].url) == API_URL

    async def test_transport_failure_every_attempt(self):
        """Exactly 3 attempts, final status and body in the error."""
        calls = 0

        def handler(req: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503, text=f"overloaded #{calls}")

        async with _client(handler) as client:
            with pytest.raises(ExtractionTransportError) as ei:
                await client.extract(data=b"img", mime_type="image/png")

        assert calls == 3
        assert ei.value.status_code == 503
        assert ei.value.body == "overloaded #3"
        assert ei.value.attempts == 3
        assert "503" in str(ei.value)

    async def test_recovers_after_transient_failure(self):
        statuses = iter([500, 200])
        bodies: list[bytes] = []

        def handler(req: httpx.Request) -> httpx.Response:
            bodies.append(req.read())
            status = next(statuses)
            if status != 200:
                return httpx.Response(status, text="oops")
            return httpx.Response(200, json=_GOOD)

        async with _client(handler) as client:
            result = await client.extract(data=b"img", mime_type="image/png")

        assert result.segments[0].label == "other"
        # the request body is re-sent in full on the retry
        assert len(bodies) == 2
        assert bodies[0] == bodies[1]
        assert bodies[0]

    async def test_backoff_sleeps_linearly(self):
        def handler(req: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        client = VisionExtractionClient(
            api_key="sk-test",
            api_url=API_URL,
            model="test-model",
            shape=ResultShape.SEGMENTED,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        with patch("inbox_ocr.pipeline.extraction.client.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(ExtractionTransportError):
                await client.extract(data=b"img", mime_type="image/png")

        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    async def test_connection_errors_are_retried(self):
        calls = 0

        def handler(req: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("refused", request=req)

        async with _client(handler) as client:
            with pytest.raises(ExtractionTransportError) as ei:
                await client.extract(data=b"img", mime_type="image/png")

        assert calls == 3
        assert ei.value.status_code is None
        assert "ConnectError" in ei.value.body

    async def test_bad_content_fails_without_retry(self):
        calls = 0

        def handler(req: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=_model_reply({"blocks": []}))

        async with _client(handler) as client:
            with pytest.raises(ExtractionContentError):
                await client.extract(data=b"img", mime_type="image/png")

        assert calls == 1

    async def test_non_json_success_body_is_content_error(self):
        def handler(req: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with _client(handler) as client:
            with pytest.raises(ExtractionContentError, match="non-JSON"):
                await client.extract(data=b"img", mime_type="image/png")

    async def test_flat_shape(self):
        def handler(req: httpx.Request) -> httpx.Response:
            sent = json.loads(req.read())
            assert '"text"' in sent["input"][1]["content"][0]["text"]
            return httpx.Response(200, json={"output_text": json.dumps({"text": "plain words"})})

        async with _client(handler, shape=ResultShape.FLAT) as client:
            result = await client.extract(data=b"img", mime_type="image/jpeg")

        assert result.text == "plain words"
