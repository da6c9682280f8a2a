from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path

from inbox_ocr.pipeline.types import BatchRecord, ExtractionResult

_SEPARATOR = "-" * 40


def output_path_for(output_dir: Path, file_name: str) -> Path:
    return output_dir / f"{Path(file_name).stem}.txt"


def compose_text_artifact(
    result: ExtractionResult, *, file_name: str, processed_at: datetime
) -> str:
    lines = [
        f"Source: {file_name}",
        f"ProcessedUtc: {processed_at.isoformat()}",
        _SEPARATOR,
    ]
    lines.extend(result.render_body())

    if result.notes:
        lines.append("[notes]")
        lines.extend(f"- {n}" for n in result.notes)

    return "\n".join(lines) + "\n"


def write_text_artifact(
    output_dir: Path, file_name: str, result: ExtractionResult, *, processed_at: datetime
) -> Path:
    """Write ``output/<stem>.txt``, replacing any earlier artifact."""
    out = output_path_for(output_dir, file_name)
    out.write_text(
        compose_text_artifact(result, file_name=file_name, processed_at=processed_at),
        encoding="utf-8",
    )
    return out


def _write_json_atomic(path: Path, payload: object) -> None:
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


class BatchWriter:
    """Accumulates batch entries for one run and rewrites the whole document each time.

    The document on disk is always complete JSON covering every file added
    so far, so an interrupted run leaves a valid partial batch.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._record = BatchRecord()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def record(self) -> BatchRecord:
        return self._record

    def add(self, file_name: str, result: ExtractionResult) -> None:
        entry = {"name": file_name, "sections": result.batch_sections()}
        candidate = BatchRecord(files=[*self._record.files, entry])
        _write_json_atomic(self._path, candidate.to_dict())
        self._record = candidate

    def discard(self, file_name: str) -> None:
        """Rewrite the document without ``file_name``'s entry."""
        remaining = [f for f in self._record.files if f["name"] != file_name]
        if len(remaining) == len(self._record.files):
            return
        candidate = BatchRecord(files=remaining)
        _write_json_atomic(self._path, candidate.to_dict())
        self._record = candidate
