"""Operator logging for the inbox pipeline.

Plain text on a terminal. With ``INBOX_OCR_LOG_JSON`` set, one JSON object
per record (python-json-logger) carrying ``severity`` and ``logger`` keys.
"""

from __future__ import annotations

import logging
import os
import uuid

from pythonjsonlogger.json import JsonFormatter

_PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d  %(message)s"


def _json_enabled() -> bool:
    raw = os.getenv("INBOX_OCR_LOG_JSON")
    if raw is None:
        return False
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def build_formatter(*, json_output: bool) -> logging.Formatter:
    if json_output:
        return JsonFormatter(
            fmt="%(levelname)s %(message)s %(name)s %(funcName)s %(lineno)d",
            rename_fields={"levelname": "severity", "name": "logger"},
        )
    return logging.Formatter(_PLAIN_FORMAT, datefmt="%H:%M:%S")


def setup_logging(*, level: str = "INFO", json_output: bool | None = None) -> None:
    use_json = _json_enabled() if json_output is None else json_output

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(json_output=use_json))
    root.addHandler(handler)


def generate_work_id() -> str:
    """Opaque id tying one file's log lines to its manifest entry."""
    return uuid.uuid4().hex
