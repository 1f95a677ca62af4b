"""Batch extraction dispatcher with per-document failure isolation.

Classifies a list of document references as images or PDFs, runs both
sub-pipelines concurrently through DocumentTextService, and reassembles the
results in input order.  One document's failure does not fail the batch --
it is logged and replaced by an empty string, so a batch of N references
always returns exactly N strings.  No retries happen here; retry belongs to
the per-document calls.

Public API:
    classify_reference(reference) -> DocumentKind
    filter_empty(results) -> list[str]
    TextExtractionPipeline.extract_from_references(refs, options) -> list[str]
    TextExtractionPipeline.extract_from_references_filtered(refs, options) -> list[str]
    build_pipeline(http_client, ...) -> TextExtractionPipeline
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Sequence

import httpx

from doctext.config.settings import DownloadSettings, ExtractionSettings, VisionSettings
from doctext.extractor.capabilities import load_pdf_backend
from doctext.extractor.service import DocumentTextService
from doctext.ocr.client import VisionClient
from doctext.types import DocumentKind, ExtractionOptions, ExtractionOutcome

logger = logging.getLogger(__name__)

__all__ = [
    "TextExtractionPipeline",
    "build_pipeline",
    "classify_reference",
    "filter_empty",
]

ExtractFn = Callable[[str, ExtractionOptions], Awaitable[ExtractionOutcome]]


def classify_reference(reference: str) -> DocumentKind:
    """Classify a reference as PDF or image by its extension.

    A reference is a PDF when its last dot-separated segment is ``pdf`` or
    when ``.pdf`` appears anywhere in it (e.g. signed URLs with a query
    string), compared case-insensitively. Everything else is an image.
    """
    lowered = reference.lower()
    extension = lowered.rsplit(".", 1)[-1]
    if extension == "pdf" or ".pdf" in lowered:
        return DocumentKind.PDF
    return DocumentKind.IMAGE


def filter_empty(results: Sequence[str]) -> list[str]:
    """Drop empty (failed or blank) extractions from a batch result."""
    return [text for text in results if text.strip()]


class TextExtractionPipeline:
    """Concurrent, order-preserving batch extraction over mixed documents.

    Args:
        service: Per-document extraction service.
        max_concurrency: Cap on in-flight documents per batch; 0 = unbounded.
        log: Logger receiving per-item failures (defaults to the module logger).
    """

    def __init__(
        self,
        service: DocumentTextService,
        max_concurrency: int = 0,
        log: logging.Logger | None = None,
    ) -> None:
        self.service = service
        self._max_concurrency = max_concurrency
        self._log = log or logger

    def _limiter(self) -> asyncio.Semaphore | None:
        if self._max_concurrency > 0:
            return asyncio.Semaphore(self._max_concurrency)
        return None

    async def _extract_isolated(
        self,
        index: int,
        reference: str,
        extract: ExtractFn,
        options: ExtractionOptions,
        limiter: asyncio.Semaphore | None,
        label: str,
    ) -> str:
        try:
            async with limiter if limiter is not None else contextlib.nullcontext():
                outcome = await extract(reference, options)
            return outcome.text
        except Exception as exc:
            self._log.error(
                "Failed to extract text from %s %d (%s): %s",
                label,
                index + 1,
                reference,
                exc,
            )
            return ""

    async def _run_batch(
        self,
        references: Sequence[str],
        extract: ExtractFn,
        options: ExtractionOptions,
        limiter: asyncio.Semaphore | None,
        label: str,
    ) -> list[str]:
        if not references:
            return []
        return list(
            await asyncio.gather(
                *(
                    self._extract_isolated(idx, ref, extract, options, limiter, label)
                    for idx, ref in enumerate(references)
                )
            )
        )

    # ------------------------------------------------------------------
    # Single-class batches
    # ------------------------------------------------------------------

    async def extract_from_images(
        self,
        references: Sequence[str],
        options: ExtractionOptions | None = None,
    ) -> list[str]:
        """OCR every image reference; failures become empty strings."""
        options = options or self.service.default_options
        return await self._run_batch(
            references, self.service.extract_image_text, options, self._limiter(), "image"
        )

    async def extract_from_images_filtered(
        self,
        references: Sequence[str],
        options: ExtractionOptions | None = None,
    ) -> list[str]:
        return filter_empty(await self.extract_from_images(references, options))

    async def extract_from_pdfs(
        self,
        references: Sequence[str],
        options: ExtractionOptions | None = None,
    ) -> list[str]:
        """Extract text from every PDF reference; failures become empty strings."""
        options = options or self.service.default_options
        return await self._run_batch(
            references,
            self.service.extract_pdf_from_reference,
            options,
            self._limiter(),
            "PDF",
        )

    # ------------------------------------------------------------------
    # Mixed batches
    # ------------------------------------------------------------------

    async def extract_from_references(
        self,
        references: Sequence[str],
        options: ExtractionOptions | None = None,
    ) -> list[str]:
        """Extract text from a mixed list of image and PDF references.

        Both classes run concurrently (sharing one concurrency limit) and the
        output is rebuilt in input order: for each reference, the next unused
        result of its class is taken.

        Returns:
            Exactly ``len(references)`` strings; ``""`` marks a failed or
            empty extraction.
        """
        if not references:
            return []

        options = options or self.service.default_options
        kinds = [classify_reference(ref) for ref in references]
        image_refs = [ref for ref, kind in zip(references, kinds) if kind is DocumentKind.IMAGE]
        pdf_refs = [ref for ref, kind in zip(references, kinds) if kind is DocumentKind.PDF]

        self._log.info(
            "Extracting %d reference(s): %d image(s), %d PDF(s)",
            len(references),
            len(image_refs),
            len(pdf_refs),
        )

        limiter = self._limiter()
        image_results, pdf_results = await asyncio.gather(
            self._run_batch(
                image_refs, self.service.extract_image_text, options, limiter, "image"
            ),
            self._run_batch(
                pdf_refs, self.service.extract_pdf_from_reference, options, limiter, "PDF"
            ),
        )

        queues = {
            DocumentKind.IMAGE: deque(image_results),
            DocumentKind.PDF: deque(pdf_results),
        }
        results = [
            queues[kind].popleft() if queues[kind] else "" for kind in kinds
        ]

        self._log.info(
            "Extraction complete: %d/%d reference(s) produced text",
            sum(1 for text in results if text),
            len(results),
        )
        return results

    async def extract_from_references_filtered(
        self,
        references: Sequence[str],
        options: ExtractionOptions | None = None,
    ) -> list[str]:
        """Like extract_from_references, without the empty entries."""
        return filter_empty(await self.extract_from_references(references, options))


def build_pipeline(
    http_client: httpx.AsyncClient,
    vision_settings: VisionSettings | None = None,
    extraction_settings: ExtractionSettings | None = None,
    download_settings: DownloadSettings | None = None,
    log: logging.Logger | None = None,
) -> TextExtractionPipeline:
    """Wire a pipeline from settings, resolving the PDF backend once."""
    vision_settings = vision_settings or VisionSettings()
    extraction_settings = extraction_settings or ExtractionSettings()
    download_settings = download_settings or DownloadSettings()

    service = DocumentTextService(
        vision_client=VisionClient(vision_settings, http_client),
        http_client=http_client,
        download_settings=download_settings,
        pdf_backend=load_pdf_backend(),
        default_options=ExtractionOptions.from_settings(extraction_settings),
        fallback_min_chars=extraction_settings.fallback_min_chars,
        log=log,
    )
    return TextExtractionPipeline(
        service,
        max_concurrency=extraction_settings.max_concurrency,
        log=log,
    )
