"""HTTP client for the vision text-extraction service (OpenAI Responses API)."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from inbox_ocr.pipeline.errors import ExtractionContentError, ExtractionTransportError
from inbox_ocr.pipeline.extraction.base import ExtractionClient
from inbox_ocr.pipeline.extraction.shapes import (
    SYSTEM_INSTRUCTION,
    extract_output_text,
    instruction_for,
    parse_result,
)
from inbox_ocr.pipeline.types import ExtractionResult, ResultShape

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_STEP_SECONDS = 0.5
_ERROR_BODY_LIMIT = 1000


def backoff_delay(attempt: int, step: float = BACKOFF_STEP_SECONDS) -> float:
    """Linear backoff: wait ``attempt * step`` before attempt ``attempt + 1``."""
    return attempt * step


@dataclass(frozen=True)
class RequestSpec:
    """Everything needed to send one request; a fresh transport request is built per attempt."""

    method: str
    url: str
    headers: tuple[tuple[str, str], ...]
    content: bytes

    def build(self) -> httpx.Request:
        return httpx.Request(
            self.method, self.url, headers=list(self.headers), content=self.content
        )


def build_payload(*, model: str, shape: ResultShape, data: bytes, mime_type: str) -> dict[str, Any]:
    b64 = base64.b64encode(data).decode("ascii")
    return {
        "model": model,
        "temperature": 0,
        "input": [
            {
                "role": "system",
                "content": [{"type": "input_text", "text": SYSTEM_INSTRUCTION}],
            },
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": instruction_for(shape)},
                    {"type": "input_image", "image_url": f"data:{mime_type};base64,{b64}"},
                ],
            },
        ],
    }


class VisionExtractionClient(ExtractionClient):
    """Sends one image per call, with bounded retry on transport failures.

    Non-success statuses and connection-level errors are retried up to
    ``max_attempts`` total with linear backoff. A success response that does
    not parse into the requested shape fails at once: retrying a stable
    connection does not fix bad structured output.
    """

    def __init__(
        self,
        *,
        api_key: str,
        api_url: str,
        model: str,
        shape: ResultShape,
        timeout_seconds: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_step_seconds: float = BACKOFF_STEP_SECONDS,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._model = model
        self._shape = shape
        self._max_attempts = max(1, max_attempts)
        self._backoff_step = backoff_step_seconds
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    @property
    def shape(self) -> ResultShape:
        return self._shape

    def request_spec(self, *, data: bytes, mime_type: str) -> RequestSpec:
        payload = build_payload(model=self._model, shape=self._shape, data=data, mime_type=mime_type)
        return RequestSpec(
            method="POST",
            url=self._api_url,
            headers=(
                ("Authorization", f"Bearer {self._api_key}"),
                ("Content-Type", "application/json"),
            ),
            content=json.dumps(payload).encode("utf-8"),
        )

    async def extract(self, *, data: bytes, mime_type: str) -> ExtractionResult:
        spec = self.request_spec(data=data, mime_type=mime_type)

        last_status: int | None = None
        last_body = ""
        for attempt in range(1, self._max_attempts + 1):
            try:
                resp = await self._http.send(spec.build())
            except httpx.TransportError as e:
                last_status, last_body = None, f"{type(e).__name__}: {e}"
                logger.warning(
                    "Extraction request failed (attempt %d/%d): %s",
                    attempt,
                    self._max_attempts,
                    last_body,
                )
            else:
                if resp.is_success:
                    return self._parse_response(resp)
                last_status, last_body = resp.status_code, resp.text
                logger.warning(
                    "Extraction service returned HTTP %d (attempt %d/%d)",
                    resp.status_code,
                    attempt,
                    self._max_attempts,
                )

            if attempt >= self._max_attempts:
                break
            await asyncio.sleep(backoff_delay(attempt, self._backoff_step))

        raise ExtractionTransportError(
            status_code=last_status,
            body=last_body[:_ERROR_BODY_LIMIT],
            attempts=self._max_attempts,
        )

    def _parse_response(self, resp: httpx.Response) -> ExtractionResult:
        try:
            body = resp.json()
        except ValueError as e:
            raise ExtractionContentError(f"Extraction service returned non-JSON body: {e}") from e
        return parse_result(extract_output_text(body), self._shape)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> VisionExtractionClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()
