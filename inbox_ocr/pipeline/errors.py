from __future__ import annotations


class InboxOcrError(Exception):
    """Base class for pipeline errors."""


class ConfigError(InboxOcrError, ValueError):
    """Startup configuration is missing or invalid. Fatal for the run."""


class ClaimConflict(InboxOcrError):
    """A file could not be moved into ``processing`` (vanished or already claimed)."""

    def __init__(self, file_name: str, reason: str) -> None:
        super().__init__(f"{file_name}: {reason}")
        self.file_name = file_name
        self.reason = reason


class ExtractionError(InboxOcrError, RuntimeError):
    """The extraction service did not yield a usable result."""


class ExtractionTransportError(ExtractionError):
    """Every attempt against the extraction service failed at the transport level."""

    def __init__(self, *, status_code: int | None, body: str, attempts: int) -> None:
        status = status_code if status_code is not None else "no response"
        super().__init__(f"API error after {attempts} attempts: {status} :: {body}")
        self.status_code = status_code
        self.body = body
        self.attempts = attempts


class ExtractionContentError(ExtractionError):
    """A successful response whose payload is not a usable structured result."""


class ValidationFailure(InboxOcrError, ValueError):
    """Extraction result too short to be plausible."""

    def __init__(self, alnum_count: int, minimum: int) -> None:
        super().__init__(
            f"OCR result too short / empty: {alnum_count} alphanumeric characters "
            f"(minimum {minimum})"
        )
        self.alnum_count = alnum_count
        self.minimum = minimum
