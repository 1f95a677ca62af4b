"""Shared types for the extraction pipeline.

Defines the per-call options, the outcome value, the classified error used by
every leaf operation, and the PDF image candidate produced by the image
recoverer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from doctext.config.settings import ExtractionSettings


class ErrorKind(Enum):
    """Classification of an extraction failure, used for retry decisions."""

    CONFIGURATION = "configuration"
    DOWNLOAD = "download"
    PROVIDER_TERMINAL = "provider_terminal"
    PROVIDER_TRANSIENT = "provider_transient"
    UNKNOWN = "unknown"


class DocumentKind(Enum):
    """Extraction strategy chosen for a document reference."""

    IMAGE = "image"
    PDF = "pdf"


class ExtractionError(Exception):
    """A classified extraction failure.

    Attributes:
        kind: Error classification driving the retry decision.
        message: Human-readable description.
        status_code: HTTP-style status where one applies, else None.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, status_code={self.status_code!r})"
        )


class RetryExhaustedError(ExtractionError):
    """Raised once every attempt of a retried operation has failed."""

    def __init__(self, attempts: int, last_error: ExtractionError) -> None:
        super().__init__(
            ErrorKind.UNKNOWN,
            f"Failed after {attempts} attempts: {last_error.message}",
            status_code=500,
        )
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class ExtractionOptions:
    """Per-call extraction options.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        retry_delay_base_ms: Base delay; attempt i waits base * (i + 1) ms.
        prefer_full_text_annotation: Use the provider's full-document text
            annotation over the first token annotation when both exist.
    """

    max_retries: int = 3
    retry_delay_base_ms: int = 1000
    prefer_full_text_annotation: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay_base_ms < 0:
            raise ValueError(
                f"retry_delay_base_ms must be >= 0, got {self.retry_delay_base_ms}"
            )

    @classmethod
    def from_settings(cls, settings: ExtractionSettings) -> ExtractionOptions:
        return cls(
            max_retries=settings.max_retries,
            retry_delay_base_ms=settings.retry_delay_base_ms,
            prefer_full_text_annotation=settings.prefer_full_text_annotation,
        )


@dataclass(frozen=True)
class ExtractionOutcome:
    """Text recovered from one document. Empty string means nothing was recovered."""

    text: str = ""


# Filter names in declaration (encoding) order, without the leading slash
DecodeFilterChain = tuple[str, ...]


@dataclass(frozen=True)
class PdfImageCandidate:
    """A JPEG-family image stream recovered from a PDF Image XObject."""

    filter_chain: DecodeFilterChain
    raw_bytes: bytes
    xref: int = 0
