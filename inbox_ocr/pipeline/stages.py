"""Claim/move state machine over the stage directories.

A rename within one filesystem is atomic, so two runs racing on the same
inbox file see exactly one successful claim; the loser finds the source
gone. That rename is the only coordination between runs.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from inbox_ocr.pipeline.config import StageLayout
from inbox_ocr.pipeline.errors import ClaimConflict
from inbox_ocr.pipeline.types import WorkItem, WorkStatus

logger = logging.getLogger(__name__)


def claim(layout: StageLayout, file_name: str, *, work_id: str) -> WorkItem:
    """Move ``inbox/<file_name>`` into ``processing``.

    Never replaces a file already in ``processing`` (an orphan from an
    earlier crash stays put for the operator). Raises ClaimConflict on any
    failure.
    """
    src = layout.inbox / file_name
    dst = layout.processing / file_name

    if dst.exists():
        raise ClaimConflict(file_name, f"already present in {layout.processing}")

    try:
        os.rename(src, dst)
    except FileNotFoundError:
        raise ClaimConflict(file_name, "source vanished (claimed by another run?)") from None
    except OSError as e:
        raise ClaimConflict(file_name, str(e)) from e

    return WorkItem(id=work_id, file_name=file_name, current_path=dst)


def finalize_success(layout: StageLayout, item: WorkItem) -> Path:
    """``processing -> processed``; a stale file of the same name is replaced."""
    dst = layout.processed / item.file_name
    os.replace(item.current_path, dst)
    item.current_path = dst
    item.status = WorkStatus.PROCESSED
    return dst


def finalize_failure(layout: StageLayout, item: WorkItem, error: str) -> Path | None:
    """``processing -> failed``, best effort.

    Returns the new path, or None when the move itself failed and the file
    is left orphaned in ``processing``.
    """
    item.status = WorkStatus.FAILED
    item.error = error
    dst = layout.failed / item.file_name
    try:
        os.replace(item.current_path, dst)
    except OSError as e:
        logger.error(
            "Could not move %s to %s; left in %s for manual recovery :: %s",
            item.file_name,
            layout.failed,
            layout.processing,
            e,
        )
        return None
    item.current_path = dst
    return dst
