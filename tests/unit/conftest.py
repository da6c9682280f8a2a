"""Unit test conftest: no network, temp directories only."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from inbox_ocr.pipeline.config import StageLayout
from inbox_ocr.pipeline.extraction.base import ExtractionClient
from inbox_ocr.pipeline.types import ExtractionResult, SegmentedResult, TextSegment

# 8-byte PNG signature is enough; the fake extractor never decodes images.
FAKE_IMAGE_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class FakeExtractor(ExtractionClient):
    """Returns canned results (or raises) per file, keyed by the image bytes."""

    def __init__(self, outcomes: dict[bytes, ExtractionResult | Exception] | None = None,
                 default: ExtractionResult | Exception | None = None) -> None:
        self.outcomes = outcomes or {}
        self.default = default
        self.calls: list[tuple[bytes, str]] = []

    async def extract(self, *, data: bytes, mime_type: str) -> ExtractionResult:
        self.calls.append((data, mime_type))
        outcome = self.outcomes.get(data, self.default)
        if outcome is None:
            raise AssertionError("no canned outcome for these bytes")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def segmented(*pairs: tuple[str, str], notes: tuple[str, ...] = ()) -> SegmentedResult:
    return SegmentedResult(
        segments=tuple(TextSegment(label=label, text=text) for label, text in pairs),
        notes=notes,
    )


@pytest.fixture
def good_result() -> SegmentedResult:
    """Two labeled blocks, 40 alphanumeric characters in total."""
    return segmented(
        ("return_address", "Jane Roe\n12 Elm St"),  # 14
        ("recipient_address", "John Doe\n4021 Main Street Apt 7B"),  # 26
    )


@pytest.fixture
def drop_file(layout: StageLayout) -> Callable[..., Path]:
    """Create a file in the inbox and return its path."""

    def _drop(name: str, data: bytes = FAKE_IMAGE_BYTES) -> Path:
        p = layout.inbox / name
        p.write_bytes(data)
        return p

    return _drop
