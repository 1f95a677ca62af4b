"""Per-document text extraction service with embedded-image OCR fallback.

Handles a single document reference end to end:

1. **Images** -- fetch, base64-encode, Vision OCR; the whole attempt is
   retried by the retry orchestrator.
2. **PDFs** -- fetch (retried), then the text layer via PyMuPDF (retried).
   If the text layer is shorter than ``fallback_min_chars`` the embedded
   JPEG-family images are recovered and OCR'd concurrently (no retry); the
   fallback text wins only if it is strictly longer than the text layer.

Single-document calls surface classified ExtractionErrors to the caller.
Failures on the fallback leg never do: they are logged and the text-layer
result is returned.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from types import ModuleType

import httpx

from doctext.config.settings import DownloadSettings
from doctext.downloader.service import fetch_bytes
from doctext.extractor.pdf_images import recover_jpeg_images
from doctext.extractor.pdf_text import extract_text_layer
from doctext.extractor.retry import attempt_with_retry
from doctext.ocr.client import VisionClient
from doctext.types import (
    ErrorKind,
    ExtractionError,
    ExtractionOptions,
    ExtractionOutcome,
)

logger = logging.getLogger(__name__)

__all__ = ["DocumentTextService", "DEFAULT_FALLBACK_MIN_CHARS"]

DEFAULT_FALLBACK_MIN_CHARS = 50
FALLBACK_SEPARATOR = "\n\n"


class DocumentTextService:
    """Extract text from one image or PDF reference.

    All collaborators are fixed at construction and only read afterwards, so
    one instance serves any number of concurrent extractions.

    Args:
        vision_client: OCR provider client.
        http_client: Shared ``httpx.AsyncClient`` owned by the caller.
        download_settings: Fetch timeout and size limits.
        pdf_backend: Resolved PyMuPDF module, or None when unavailable.
        default_options: Options used when a call passes none.
        fallback_min_chars: Text-layer length below which OCR fallback runs.
        log: Logger for fallback diagnostics (defaults to the module logger).
    """

    def __init__(
        self,
        vision_client: VisionClient,
        http_client: httpx.AsyncClient,
        download_settings: DownloadSettings,
        pdf_backend: ModuleType | None,
        default_options: ExtractionOptions | None = None,
        fallback_min_chars: int = DEFAULT_FALLBACK_MIN_CHARS,
        log: logging.Logger | None = None,
    ) -> None:
        self._vision = vision_client
        self._http = http_client
        self._download_settings = download_settings
        self._pdf_backend = pdf_backend
        self.default_options = default_options or ExtractionOptions()
        self._fallback_min_chars = fallback_min_chars
        self._log = log or logger

    def is_pdf_available(self) -> bool:
        return self._pdf_backend is not None

    def is_ocr_configured(self) -> bool:
        return self._vision.is_configured()

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def extract_image_text(
        self,
        reference: str,
        options: ExtractionOptions | None = None,
    ) -> ExtractionOutcome:
        """Fetch the image at *reference* and OCR it, with retry.

        Raises:
            ExtractionError: CONFIGURATION immediately when OCR is not
                configured; otherwise the terminal error or
                RetryExhaustedError from the retry orchestrator.
        """
        options = options or self.default_options
        if not self._vision.is_configured():
            raise ExtractionError(
                ErrorKind.CONFIGURATION,
                "Google Vision API is not configured",
                status_code=503,
            )

        async def _attempt() -> ExtractionOutcome:
            image_bytes = await fetch_bytes(reference, self._http, self._download_settings)
            image_base64 = base64.b64encode(image_bytes).decode("ascii")
            return await self._vision.recognize(image_base64, options)

        return await attempt_with_retry(_attempt, options)

    # ------------------------------------------------------------------
    # PDFs
    # ------------------------------------------------------------------

    async def extract_pdf_from_reference(
        self,
        reference: str,
        options: ExtractionOptions | None = None,
    ) -> ExtractionOutcome:
        """Fetch the PDF at *reference* and extract its text.

        The PDF capability is checked before anything is downloaded.
        """
        options = options or self.default_options
        if self._pdf_backend is None:
            raise ExtractionError(
                ErrorKind.CONFIGURATION,
                "PDF extraction is not available. Please install pymupdf",
                status_code=503,
            )

        pdf_bytes = await attempt_with_retry(
            lambda: fetch_bytes(reference, self._http, self._download_settings),
            options,
            abort_on_unavailable=True,
        )
        return await self.extract_pdf_text(pdf_bytes, options)

    async def extract_pdf_text(
        self,
        pdf_bytes: bytes,
        options: ExtractionOptions | None = None,
    ) -> ExtractionOutcome:
        """Extract text from PDF bytes, falling back to embedded-image OCR.

        Args:
            pdf_bytes: Raw PDF content.
            options: Retry and OCR options.

        Returns:
            The text-layer result, or the fallback OCR text when the text
            layer is shorter than the threshold and the fallback recovered
            strictly more text.

        Raises:
            ExtractionError: From the text-layer step only.
        """
        options = options or self.default_options

        outcome = await attempt_with_retry(
            lambda: asyncio.to_thread(extract_text_layer, pdf_bytes, self._pdf_backend),
            options,
            abort_on_unavailable=True,
        )

        text_length = len(outcome.text.strip())
        if text_length >= self._fallback_min_chars:
            return outcome

        self._log.info(
            "Text layer yielded %d chars (< %d), trying embedded-image OCR",
            text_length,
            self._fallback_min_chars,
        )

        try:
            fallback_text = await self._ocr_embedded_images(pdf_bytes, options)
        except Exception as exc:
            self._log.warning("Embedded-image OCR fallback unavailable: %s", exc)
            return outcome

        if len(fallback_text) > len(outcome.text):
            self._log.info(
                "Using embedded-image OCR text (%d chars > %d chars)",
                len(fallback_text),
                len(outcome.text),
            )
            return ExtractionOutcome(text=fallback_text)

        return outcome

    async def _ocr_embedded_images(
        self,
        pdf_bytes: bytes,
        options: ExtractionOptions,
    ) -> str:
        """OCR every recovered JPEG-family image and join the non-empty texts."""
        candidates = await asyncio.to_thread(
            recover_jpeg_images, pdf_bytes, self._pdf_backend
        )
        if not candidates:
            self._log.info("No JPEG-family images found for OCR fallback")
            return ""

        # Every OCR call settles before a failure is reported
        outcomes = await asyncio.gather(
            *(
                self._vision.recognize(
                    base64.b64encode(candidate.raw_bytes).decode("ascii"), options
                )
                for candidate in candidates
            ),
            return_exceptions=True,
        )
        failures = [item for item in outcomes if isinstance(item, BaseException)]
        if failures:
            raise failures[0]

        texts = [item.text for item in outcomes if item.text]
        return FALLBACK_SEPARATOR.join(texts)
