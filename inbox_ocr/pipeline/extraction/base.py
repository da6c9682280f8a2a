from __future__ import annotations

from abc import ABC, abstractmethod

from inbox_ocr.pipeline.types import ExtractionResult


class ExtractionClient(ABC):
    """Turns image bytes into structured text. Must not touch the filesystem."""

    @abstractmethod
    async def extract(self, *, data: bytes, mime_type: str) -> ExtractionResult: ...

    async def aclose(self) -> None:
        return None
