from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class ResultShape(str, Enum):
    SEGMENTED = "segmented"
    FLAT = "flat"


class WorkStatus(str, Enum):
    CLAIMED = "claimed"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass
class WorkItem:
    id: str
    file_name: str
    current_path: Path  # whichever stage directory holds the file right now
    status: WorkStatus = WorkStatus.CLAIMED
    error: str | None = None


@dataclass(frozen=True)
class TextSegment:
    label: str
    text: str


@dataclass(frozen=True)
class SegmentedResult:
    """Labeled text blocks, e.g. return address / recipient address / other."""

    segments: tuple[TextSegment, ...]
    notes: tuple[str, ...] = ()

    shape = ResultShape.SEGMENTED

    def combined_text(self) -> str:
        return "\n\n".join(s.text for s in self.segments)

    def render_body(self) -> list[str]:
        lines: list[str] = []
        for s in self.segments:
            lines.append(f"[{s.label}]")
            lines.append(s.text.strip())
            lines.append("")
        return lines

    def batch_sections(self) -> list[dict[str, str]]:
        # each block stays together as one section
        return [{"content": s.text.strip()} for s in self.segments]


@dataclass(frozen=True)
class FlatTextResult:
    """A single run of text for the whole image."""

    text: str
    notes: tuple[str, ...] = ()

    shape = ResultShape.FLAT

    def combined_text(self) -> str:
        return self.text

    def render_body(self) -> list[str]:
        return [self.text.strip(), ""]

    def batch_sections(self) -> list[dict[str, str]]:
        return [{"content": self.text.strip()}]


ExtractionResult = SegmentedResult | FlatTextResult


@dataclass(frozen=True)
class ManifestEntry:
    id: str
    file_name: str
    work_path: str
    status: WorkStatus
    processed_utc: datetime
    output_path: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "fileName": self.file_name,
            "workPath": self.work_path,
        }
        if self.output_path is not None:
            out["outputPath"] = self.output_path
        out["status"] = self.status.value
        if self.error is not None:
            out["error"] = self.error
        out["processedUtc"] = self.processed_utc.isoformat()
        return out

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False) + "\n"


@dataclass
class BatchRecord:
    files: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"files": list(self.files)}


@dataclass(frozen=True)
class ProcessResult:
    item: WorkItem
    status: str  # processed|failed|skipped
    output_path: Path | None
    error_message: str | None
