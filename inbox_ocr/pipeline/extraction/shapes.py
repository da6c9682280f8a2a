"""Result shapes the vision model is asked for, and how its output is parsed.

``segmented`` keeps regions of a scan together as labeled blocks (return
address, recipient address, everything else); ``flat`` asks for one run of
text. Both may carry free-text notes such as "illegible section".
"""

from __future__ import annotations

import json
from typing import Any

from inbox_ocr.pipeline.errors import ExtractionContentError
from inbox_ocr.pipeline.types import (
    ExtractionResult,
    FlatTextResult,
    ResultShape,
    SegmentedResult,
    TextSegment,
)

SYSTEM_INSTRUCTION = (
    "You are an OCR engine. You only output valid JSON, no markdown, no extra commentary."
)

_SEGMENTED_INSTRUCTION = """\
Extract all readable text from this photo of a mailed envelope (handwritten likely).
Group text into blocks so the return address stays together and the recipient address stays together.
Return ONLY JSON in this exact shape:
{
  "blocks": [
    {"label":"return_address","text":"..."},
    {"label":"recipient_address","text":"..."},
    {"label":"other","text":"..."}
  ],
  "notes": ["...optional warnings..."]
}

Rules:
- Preserve line breaks inside each block.
- Do not invent text. If unclear, leave it out and add a note like "illegible section".
- Keep stamps/postmarks/tracking numbers in "other" if readable.
"""

_FLAT_INSTRUCTION = """\
Extract all readable text from this scanned image, top to bottom, left to right.
Return ONLY JSON in this exact shape:
{
  "text": "...",
  "notes": ["...optional warnings..."]
}

Rules:
- Preserve line breaks.
- Do not invent text. If unclear, leave it out and add a note like "illegible section".
"""


def instruction_for(shape: ResultShape) -> str:
    if shape is ResultShape.FLAT:
        return _FLAT_INSTRUCTION
    return _SEGMENTED_INSTRUCTION


def extract_output_text(body: Any) -> str:
    """Pull the model's text out of a Responses API body.

    Prefers a top-level ``output_text``; otherwise the first
    ``output[].content[]`` item of type ``output_text``.
    """
    if not isinstance(body, dict):
        return ""

    direct = body.get("output_text")
    if isinstance(direct, str):
        return direct

    output = body.get("output")
    if isinstance(output, list):
        for item in output:
            content = item.get("content") if isinstance(item, dict) else None
            if not isinstance(content, list):
                continue
            for c in content:
                if (
                    isinstance(c, dict)
                    and c.get("type") == "output_text"
                    and isinstance(c.get("text"), str)
                ):
                    return c["text"]
    return ""


def _strip_code_fence(text: str) -> str:
    t = text.strip()
    if t.startswith("```"):
        t = t.split("\n", 1)[1] if "\n" in t else ""
        if t.rstrip().endswith("```"):
            t = t.rstrip()[:-3]
    return t.strip()


def _lower_keys(obj: dict[str, Any]) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in obj.items()}


def _parse_notes(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ExtractionContentError("Model returned invalid 'notes' (expected a list)")
    return tuple(str(n) for n in raw if n is not None and str(n).strip())


def parse_result(text: str, shape: ResultShape) -> ExtractionResult:
    """Parse the model's JSON text into the requested result shape."""
    if not text or not text.strip():
        raise ExtractionContentError("No output_text returned from model.")

    try:
        obj = json.loads(_strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ExtractionContentError(f"Model returned invalid/empty JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ExtractionContentError("Model returned invalid/empty JSON.")

    obj = _lower_keys(obj)
    notes = _parse_notes(obj.get("notes"))

    if shape is ResultShape.FLAT:
        flat = obj.get("text")
        if not isinstance(flat, str):
            raise ExtractionContentError("Model returned invalid/empty JSON: missing 'text'")
        return FlatTextResult(text=flat, notes=notes)

    blocks = obj.get("blocks")
    if not isinstance(blocks, list) or not blocks:
        raise ExtractionContentError("Model returned invalid/empty JSON: no 'blocks'")

    segments: list[TextSegment] = []
    for b in blocks:
        if not isinstance(b, dict):
            raise ExtractionContentError("Model returned invalid block (expected an object)")
        b = _lower_keys(b)
        text = b.get("text")
        if not isinstance(text, str):
            raise ExtractionContentError("Model returned invalid block: missing 'text'")
        segments.append(TextSegment(label=str(b.get("label") or ""), text=text))
    return SegmentedResult(segments=tuple(segments), notes=notes)
