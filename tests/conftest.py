"""
Root conftest.py -- shared fixtures for the extraction test suite.

Fixture overview:
  bytes           : jpeg_bytes, flate_wrapped_jpeg, text_pdf_bytes (factory)
  helpers         : assemble_pdf, image_object, pdf_with_images
  settings        : fast_options, download_settings, vision_settings
  collaborators   : mock_vision, make_service (factory)
  http            : mock_http_client (factory over httpx.MockTransport)

Strategy:
  - No test touches the network; HTTP goes through httpx.MockTransport.
  - PDFs are assembled byte-by-byte (with a correct xref table) so that the
    object graph and filter chains are exactly what each test needs.
  - Retry delays are zero unless a test is specifically about backoff.
"""

from __future__ import annotations

import zlib
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from doctext.config.settings import DownloadSettings, VisionSettings
from doctext.extractor.service import DocumentTextService
from doctext.ocr.client import VisionClient
from doctext.types import ExtractionOptions, ExtractionOutcome

# Smallest byte sequence that looks like a JPEG (SOI ... EOI)
FAKE_JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


# ─────────────────────────────────────────────────────────────────────────────
# PDF assembly
# ─────────────────────────────────────────────────────────────────────────────

def assemble_pdf(objects: list[bytes]) -> bytes:
    """Assemble a PDF from object bodies numbered 1..n.

    Object 1 must be the catalog. Offsets in the xref table are computed
    from the assembled bytes, so the result opens without repair.
    """
    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


def image_object(data: bytes, filters: bytes, subtype: bytes = b"/Image") -> bytes:
    """Body of an image XObject stream with the given /Filter entry."""
    header = (
        b"<< /Type /XObject /Subtype " + subtype +
        b" /Width 1 /Height 1 /ColorSpace /DeviceGray /BitsPerComponent 8"
        b" /Filter " + filters +
        b" /Length %d >>\nstream\n" % len(data)
    )
    return header + data + b"\nendstream"


def pdf_with_images(*images: bytes) -> bytes:
    """One-page PDF whose objects 4.. are the given image XObject bodies."""
    xobject_refs = b" ".join(
        b"/Im%d %d 0 R" % (idx, idx + 4) for idx in range(len(images))
    )
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792]"
        b" /Resources << /XObject << " + xobject_refs + b" >> >> >>",
        *images,
    ]
    return assemble_pdf(objects)


@pytest.fixture
def jpeg_bytes() -> bytes:
    return FAKE_JPEG


@pytest.fixture
def flate_wrapped_jpeg() -> bytes:
    """JPEG bytes losslessly recompressed, as stored under [/FlateDecode /DCTDecode]."""
    return zlib.compress(FAKE_JPEG)


@pytest.fixture
def text_pdf_bytes():
    """Factory: a real PDF with one page per text, built with PyMuPDF."""
    import pymupdf

    def _build(*texts: str) -> bytes:
        doc = pymupdf.open()
        for text in texts:
            page = doc.new_page()
            page.insert_text((72, 72), text)
        data = doc.tobytes()
        doc.close()
        return data

    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Settings and options
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def fast_options() -> ExtractionOptions:
    """Options with the default retry budget but no backoff delay."""
    return ExtractionOptions(max_retries=3, retry_delay_base_ms=0)


@pytest.fixture
def download_settings() -> DownloadSettings:
    return DownloadSettings(timeout_seconds=5.0, max_document_bytes=1024)


@pytest.fixture
def vision_settings() -> VisionSettings:
    return VisionSettings(
        api_key="test-key",
        endpoint="https://vision.test/v1/images:annotate",
        timeout_seconds=5.0,
    )


# ─────────────────────────────────────────────────────────────────────────────
# HTTP
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_http_client():
    """Factory: an httpx.AsyncClient whose requests go to *handler*.

    Usage:
        client = mock_http_client(lambda request: httpx.Response(200, json={...}))
    """
    def _build(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Collaborators
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_vision():
    """Configured VisionClient double; recognize() returns empty text by default."""
    vision = MagicMock(spec=VisionClient)
    vision.is_configured.return_value = True
    vision.recognize = AsyncMock(return_value=ExtractionOutcome(text=""))
    return vision


@pytest.fixture
def make_service(mock_vision, download_settings, fast_options):
    """Factory: a DocumentTextService with a mocked Vision client.

    ``pdf_backend`` defaults to a sentinel object so the capability counts as
    available; the PyMuPDF-dependent steps are patched per test.
    """

    def _build(
        pdf_backend=object(),
        options: ExtractionOptions | None = None,
        fallback_min_chars: int = 50,
        log=None,
    ) -> DocumentTextService:
        return DocumentTextService(
            vision_client=mock_vision,
            http_client=MagicMock(spec=httpx.AsyncClient),
            download_settings=download_settings,
            pdf_backend=pdf_backend,
            default_options=options or fast_options,
            fallback_min_chars=fallback_min_chars,
            log=log,
        )

    return _build
