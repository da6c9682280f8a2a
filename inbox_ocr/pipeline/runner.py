from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

from inbox_ocr.logging_config import generate_work_id
from inbox_ocr.pipeline.config import StageLayout
from inbox_ocr.pipeline.errors import ClaimConflict
from inbox_ocr.pipeline.extraction.base import ExtractionClient
from inbox_ocr.pipeline.manifest import ManifestLog
from inbox_ocr.pipeline.scanner import mime_type_for, scan_inbox
from inbox_ocr.pipeline.stages import claim, finalize_failure, finalize_success
from inbox_ocr.pipeline.types import ManifestEntry, ProcessResult, WorkItem, WorkStatus
from inbox_ocr.pipeline.validator import validate_result
from inbox_ocr.pipeline.writer import BatchWriter, write_text_artifact

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove partial artifact %s: %s", path, e)


class PipelineRunner:
    """Processes one inbox snapshot, strictly one file at a time."""

    def __init__(
        self,
        *,
        layout: StageLayout,
        extractor: ExtractionClient,
        batch_path: Path | None = None,
    ) -> None:
        self._layout = layout
        self._extractor = extractor
        self._manifest = ManifestLog(layout.manifest_path)
        self._batch = BatchWriter(batch_path) if batch_path is not None else None

    async def run(self, *, max_files: int = 0, dry_run: bool = False) -> dict[str, int]:
        names = await asyncio.to_thread(scan_inbox, self._layout.inbox, max_files=max_files)
        logger.info("Discovered %d candidate files in %s", len(names), self._layout.inbox)

        if dry_run:
            for n in names:
                logger.info("[DRY-RUN] %s", n)
            return {"total": len(names), "processed": 0, "failed": 0, "skipped": 0}

        totals = {"total": len(names), "processed": 0, "failed": 0, "skipped": 0}
        for name in names:
            try:
                item = await asyncio.to_thread(
                    claim, self._layout, name, work_id=generate_work_id()
                )
            except ClaimConflict as e:
                logger.warning("Skip (could not move to processing): %s :: %s", name, e.reason)
                totals["skipped"] += 1
                continue

            res = await self._process_item(item)
            totals[res.status] += 1

        return totals

    async def _process_item(self, item: WorkItem) -> ProcessResult:
        work_path = str(item.current_path)
        out_path: Path | None = None
        batched = False
        try:
            data = await asyncio.to_thread(item.current_path.read_bytes)
            result = await self._extractor.extract(
                data=data, mime_type=mime_type_for(item.file_name)
            )
            validate_result(result)

            out_path = await asyncio.to_thread(
                write_text_artifact,
                self._layout.output,
                item.file_name,
                result,
                processed_at=_now(),
            )
            if self._batch is not None:
                await asyncio.to_thread(self._batch.add, item.file_name, result)
                batched = True

            await asyncio.to_thread(
                self._manifest.append,
                ManifestEntry(
                    id=item.id,
                    file_name=item.file_name,
                    work_path=work_path,
                    output_path=str(out_path),
                    status=WorkStatus.PROCESSED,
                    processed_utc=_now(),
                ),
            )
        except Exception as e:
            if out_path is not None:
                # no text artifact for a file that ends up in failed/
                await asyncio.to_thread(_discard, out_path)
            if batched:
                await asyncio.to_thread(self._unbatch, item.file_name)
            return await self._fail_item(item, work_path, str(e) or type(e).__name__)

        try:
            await asyncio.to_thread(finalize_success, self._layout, item)
        except OSError as e:
            # manifest already says processed; the file stays in processing
            logger.error(
                "Processed %s but could not move it to %s; left in %s :: %s",
                item.file_name,
                self._layout.processed,
                self._layout.processing,
                e,
            )
        logger.info("OK: %s", item.file_name)
        return ProcessResult(item=item, status="processed", output_path=out_path, error_message=None)

    def _unbatch(self, file_name: str) -> None:
        assert self._batch is not None
        try:
            self._batch.discard(file_name)
        except OSError as e:
            logger.error("Could not remove %s from batch %s :: %s", file_name, self._batch.path, e)

    async def _fail_item(self, item: WorkItem, work_path: str, error: str) -> ProcessResult:
        logger.error("FAIL: %s :: %s", item.file_name, error)
        try:
            await asyncio.to_thread(
                self._manifest.append,
                ManifestEntry(
                    id=item.id,
                    file_name=item.file_name,
                    work_path=work_path,
                    status=WorkStatus.FAILED,
                    error=error,
                    processed_utc=_now(),
                ),
            )
        except OSError:
            logger.exception("Could not append failure for %s to %s", item.file_name, self._manifest.path)

        await asyncio.to_thread(finalize_failure, self._layout, item, error)
        return ProcessResult(item=item, status="failed", output_path=None, error_message=error)
