from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from inbox_ocr.pipeline.types import ManifestEntry

logger = logging.getLogger(__name__)


class ManifestLog:
    """Append-only JSONL ledger, one line per claimed file.

    Each append is flushed and fsynced before returning, so the line is on
    disk before the caller moves the file to its final stage directory.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: ManifestEntry) -> None:
        line = entry.to_json_line()
        with self._path.open("a", encoding="utf-8") as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())

    def read(self) -> list[dict[str, Any]]:
        return list(iter_manifest(self._path))


def iter_manifest(path: Path) -> Iterator[dict[str, Any]]:
    """Yield manifest records; a torn trailing line from a killed run is skipped."""
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as f:
        for lineno, raw in enumerate(f, 1):
            raw = raw.strip()
            if not raw:
                continue
            try:
                yield json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Skipping unreadable manifest line %s:%d", path, lineno)
