"""PDF text-layer extraction using PyMuPDF.

Recovers the embedded, machine-readable text of a PDF held in memory. This
is the primary strategy for PDFs; scanned documents yield little or no text
here and are handed to the embedded-image OCR fallback by the service.
"""

from __future__ import annotations

import logging
from types import ModuleType

from doctext.types import ErrorKind, ExtractionError, ExtractionOutcome

logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = 503


def extract_text_layer(pdf_bytes: bytes, backend: ModuleType | None) -> ExtractionOutcome:
    """Extract the text layer of every page of *pdf_bytes*.

    Pages are joined with newlines and the result is trimmed.

    Args:
        pdf_bytes: Raw PDF file content.
        backend: The resolved PyMuPDF module, or None when unavailable.

    Raises:
        ExtractionError: CONFIGURATION (status 503) when the backend is
            missing; UNKNOWN for any error raised by the library, which the
            retry orchestrator treats as retryable.
    """
    if backend is None:
        raise ExtractionError(
            ErrorKind.CONFIGURATION,
            "PDF extraction is not available. Please install pymupdf",
            status_code=SERVICE_UNAVAILABLE,
        )

    try:
        with backend.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.needs_pass:
                raise ExtractionError(ErrorKind.UNKNOWN, "PDF is encrypted")
            page_texts = [page.get_text() for page in doc]
    except ExtractionError:
        raise
    except Exception as exc:
        logger.warning("PDF text-layer extraction failed: %s", exc)
        raise ExtractionError(
            ErrorKind.UNKNOWN, f"PDF extraction error: {exc}"
        ) from exc

    text = "\n".join(page_texts).strip()
    logger.info(
        "Text layer extracted %d chars from %d pages", len(text), len(page_texts)
    )
    return ExtractionOutcome(text=text)
