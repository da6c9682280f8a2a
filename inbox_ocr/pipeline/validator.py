from __future__ import annotations

from inbox_ocr.pipeline.errors import ValidationFailure
from inbox_ocr.pipeline.types import ExtractionResult

MIN_ALNUM_CHARS = 15


def count_alnum(text: str) -> int:
    return sum(1 for ch in text if ch.isalnum())


def validate_result(result: ExtractionResult, *, minimum: int = MIN_ALNUM_CHARS) -> int:
    """Cheap corruption/empty-result guard. Returns the alphanumeric count."""
    n = count_alnum(result.combined_text())
    if n < minimum:
        raise ValidationFailure(n, minimum)
    return n
