"""Shared test fixtures for the inbox-ocr test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from inbox_ocr.pipeline.config import StageLayout


@pytest.fixture
def layout(tmp_path: Path) -> StageLayout:
    """All five stage directories under a fresh temp root."""
    lay = StageLayout.under(tmp_path)
    lay.ensure()
    return lay


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "OPENAI_API_KEY",
        "INBOX_OCR_API_KEY",
        "INBOX_OCR_SETTINGS",
        "INBOX_OCR_RESULT_SHAPE",
        "INBOX_OCR_LOG_JSON",
    ):
        monkeypatch.delenv(var, raising=False)
