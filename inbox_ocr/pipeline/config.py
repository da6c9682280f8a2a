from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from inbox_ocr.pipeline.errors import ConfigError
from inbox_ocr.pipeline.types import ResultShape

DEFAULT_SETTINGS_FILE = "inbox-ocr.json"
DEFAULT_API_URL = "https://api.openai.com/v1/responses"
DEFAULT_MODEL = "gpt-4.1-mini"
MANIFEST_FILE_NAME = "manifest.jsonl"

# settings-file key -> environment variable
_ENV_KEYS: dict[str, str] = {
    "api_url": "INBOX_OCR_API_URL",
    "model": "INBOX_OCR_MODEL",
    "result_shape": "INBOX_OCR_RESULT_SHAPE",
    "http_timeout_seconds": "INBOX_OCR_HTTP_TIMEOUT_SECONDS",
    "inbox": "INBOX_OCR_INBOX",
    "processing": "INBOX_OCR_PROCESSING",
    "processed": "INBOX_OCR_PROCESSED",
    "failed": "INBOX_OCR_FAILED",
    "output": "INBOX_OCR_OUTPUT",
}

_DEFAULTS: dict[str, Any] = {
    "api_key": None,
    "api_url": DEFAULT_API_URL,
    "model": DEFAULT_MODEL,
    "result_shape": ResultShape.SEGMENTED.value,
    "http_timeout_seconds": 120.0,
    "inbox": "inbox",
    "processing": "processing",
    "processed": "processed",
    "failed": "failed",
    "output": "output",
}


def _load_settings_file(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Settings file {path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")

    # Accept {"paths": {...}} nesting alongside flat keys
    flat = {k: v for k, v in raw.items() if k != "paths"}
    paths = raw.get("paths") or {}
    if not isinstance(paths, dict):
        raise ConfigError(f"Settings file {path}: 'paths' must be an object")
    flat.update(paths)
    return flat


@dataclass(frozen=True)
class StageLayout:
    inbox: Path
    processing: Path
    processed: Path
    failed: Path
    output: Path

    @property
    def manifest_path(self) -> Path:
        return self.output / MANIFEST_FILE_NAME

    def all_dirs(self) -> tuple[Path, ...]:
        return (self.inbox, self.processing, self.processed, self.failed, self.output)

    def ensure(self) -> None:
        for d in self.all_dirs():
            d.mkdir(parents=True, exist_ok=True)

    @classmethod
    def under(cls, root: Path) -> StageLayout:
        return cls(
            inbox=root / "inbox",
            processing=root / "processing",
            processed=root / "processed",
            failed=root / "failed",
            output=root / "output",
        )


@dataclass(frozen=True)
class PipelineConfig:
    # Extraction service
    api_key: str | None
    api_url: str
    model: str
    result_shape: ResultShape
    http_timeout_seconds: float

    # Stage directories
    layout: StageLayout

    @classmethod
    def from_sources(
        cls,
        *,
        settings_path: Path | None = None,
        environ: dict[str, str] | None = None,
    ) -> PipelineConfig:
        """Defaults, then the JSON settings file (if any), then the environment."""
        env = dict(os.environ) if environ is None else environ
        values = dict(_DEFAULTS)

        if settings_path is None and env.get("INBOX_OCR_SETTINGS"):
            settings_path = Path(env["INBOX_OCR_SETTINGS"])
        if settings_path is not None:
            if not settings_path.is_file():
                raise ConfigError(f"Settings file not found: {settings_path}")
            values.update(_load_settings_file(settings_path))
        else:
            default_file = Path.cwd() / DEFAULT_SETTINGS_FILE
            if default_file.is_file():
                values.update(_load_settings_file(default_file))

        for key, var in _ENV_KEYS.items():
            v = env.get(var)
            if v is not None and v.strip():
                values[key] = v.strip()

        api_key = env.get("INBOX_OCR_API_KEY") or env.get("OPENAI_API_KEY") or values["api_key"]

        shape_raw = str(values["result_shape"]).strip().lower()
        try:
            shape = ResultShape(shape_raw)
        except ValueError:
            raise ConfigError(
                f"Unknown result shape {shape_raw!r} (expected 'segmented' or 'flat')"
            ) from None

        try:
            timeout = float(values["http_timeout_seconds"])
        except (TypeError, ValueError):
            raise ConfigError(
                f"INBOX_OCR_HTTP_TIMEOUT_SECONDS must be a number, got {values['http_timeout_seconds']!r}"
            ) from None

        return cls(
            api_key=api_key.strip() if isinstance(api_key, str) else None,
            api_url=str(values["api_url"]),
            model=str(values["model"]),
            result_shape=shape,
            http_timeout_seconds=timeout,
            layout=StageLayout(
                inbox=Path(values["inbox"]),
                processing=Path(values["processing"]),
                processed=Path(values["processed"]),
                failed=Path(values["failed"]),
                output=Path(values["output"]),
            ),
        )

    def validate(self) -> None:
        if not self.api_key:
            raise ConfigError(
                "OpenAI API key not configured (set OPENAI_API_KEY or 'api_key' in the settings file)"
            )
        if self.http_timeout_seconds <= 0:
            raise ConfigError("INBOX_OCR_HTTP_TIMEOUT_SECONDS must be > 0")
        if not self.api_url:
            raise ConfigError("INBOX_OCR_API_URL must not be empty")
