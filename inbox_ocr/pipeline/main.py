from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Sequence

from inbox_ocr.logging_config import setup_logging
from inbox_ocr.pipeline.cli import build_parser
from inbox_ocr.pipeline.config import PipelineConfig
from inbox_ocr.pipeline.errors import ConfigError
from inbox_ocr.pipeline.extraction.client import VisionExtractionClient
from inbox_ocr.pipeline.runner import PipelineRunner
from inbox_ocr.pipeline.types import ResultShape


async def _amain(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level.upper())
    logger = logging.getLogger("inbox_ocr.pipeline")

    # Nothing on disk is touched until configuration is known to be usable.
    try:
        cfg = PipelineConfig.from_sources(settings_path=args.settings)
        if args.shape:
            cfg = dataclasses.replace(cfg, result_shape=ResultShape(args.shape))
        cfg.validate()
    except ConfigError as e:
        logger.error("ERROR: %s", e)
        return 1

    cfg.layout.ensure()

    batch_path = args.emit_json
    if batch_path is not None:
        batch_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("JSON mode enabled. Will write: %s", batch_path)

    assert cfg.api_key is not None
    async with VisionExtractionClient(
        api_key=cfg.api_key,
        api_url=cfg.api_url,
        model=cfg.model,
        shape=cfg.result_shape,
        timeout_seconds=cfg.http_timeout_seconds,
    ) as client:
        runner = PipelineRunner(layout=cfg.layout, extractor=client, batch_path=batch_path)
        totals = await runner.run(max_files=int(args.max_files or 0), dry_run=bool(args.dry_run))

    logger.info("DONE totals=%s", totals)
    return 0 if totals["failed"] == 0 else 2


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
