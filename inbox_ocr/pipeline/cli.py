from __future__ import annotations

import argparse
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="inbox-ocr",
        description="Move scanned images through inbox/processing/processed|failed and extract their text",
    )

    p.add_argument(
        "--emit-json",
        dest="emit_json",
        type=Path,
        default=None,
        metavar="PATH",
        help="Also write a batch JSON document of all processed files to PATH",
    )
    p.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="JSON settings file (default: ./inbox-ocr.json or env INBOX_OCR_SETTINGS)",
    )
    p.add_argument(
        "--shape",
        choices=["segmented", "flat"],
        default=None,
        help="Override INBOX_OCR_RESULT_SHAPE",
    )
    p.add_argument("--max-files", type=int, default=0, help="Max files per run (0 = no cap)")
    p.add_argument("--dry-run", action="store_true", help="List the inbox snapshot and exit (nothing is moved)")
    p.add_argument("--log-level", default="INFO", help="Python logging level (INFO, DEBUG, ...)")
    return p
