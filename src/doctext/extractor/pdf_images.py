"""Recover embedded JPEG-family images from a PDF's object graph.

Walks every indirect object in the cross-reference table, keeps the Image
XObject streams whose decode-filter chain contains a JPEG-family codec (DCT
or JPEG2000), and returns their bytes ready to send to OCR.

Only one multi-filter pattern is resolved: a Flate wrapper around an
already JPEG-encoded stream (``[/FlateDecode /DCTDecode]``), which is how
most producers losslessly recompress JPEG data. The raw stream is inflated
and the result is the JPEG byte stream itself. Any other wrapper leaves the
candidate unusable and it is skipped.

Public API:
    parse_filter_chain(kind, value) -> DecodeFilterChain
    decode_candidate(filter_chain, raw, xref) -> PdfImageCandidate | None
    recover_jpeg_images(pdf_bytes, backend) -> list[PdfImageCandidate]
"""

from __future__ import annotations

import logging
import re
import zlib
from types import ModuleType

from doctext.types import DecodeFilterChain, PdfImageCandidate

logger = logging.getLogger(__name__)

JPEG_FAMILY_FILTERS = frozenset({"DCTDecode", "DCT", "JPXDecode"})
FLATE_FILTERS = frozenset({"FlateDecode", "Fl"})

# A PDF name token: slash followed by regular characters
_NAME_PATTERN = re.compile(r"/([^\s/\[\]<>(){}%]+)")


def parse_filter_chain(kind: str, value: str) -> DecodeFilterChain:
    """Parse a ``/Filter`` entry as reported by ``Document.xref_get_key``.

    Args:
        kind: Value type reported by PyMuPDF (``"name"``, ``"array"``, ...).
        value: The PDF source of the value, e.g. ``"/DCTDecode"`` or
            ``"[/FlateDecode /DCTDecode]"``.

    Returns:
        Filter names in declaration order, without slashes. Empty when the
        entry is missing or not a name/array.
    """
    if kind not in ("name", "array"):
        return ()
    return tuple(_NAME_PATTERN.findall(value))


def is_jpeg_family(filter_chain: DecodeFilterChain) -> bool:
    return any(name in JPEG_FAMILY_FILTERS for name in filter_chain)


def decode_candidate(
    filter_chain: DecodeFilterChain,
    raw: bytes,
    xref: int = 0,
) -> PdfImageCandidate | None:
    """Turn a raw image stream into a JPEG-family candidate, or None.

    Raises:
        zlib.error: If a Flate-wrapped stream cannot be inflated.
    """
    if not is_jpeg_family(filter_chain):
        return None

    wrappers = [
        name for name in filter_chain if name not in JPEG_FAMILY_FILTERS
    ]
    if any(name not in FLATE_FILTERS for name in wrappers):
        logger.debug(
            "Skipping image xref %d: unsupported filter chain %s", xref, filter_chain
        )
        return None

    data = zlib.decompress(raw) if wrappers else raw
    if not data:
        return None
    return PdfImageCandidate(filter_chain=filter_chain, raw_bytes=data, xref=xref)


def _name_value(doc, xref: int, key: str) -> str | None:
    kind, value = doc.xref_get_key(xref, key)
    return value if kind == "name" else None


def recover_jpeg_images(
    pdf_bytes: bytes,
    backend: ModuleType | None,
) -> list[PdfImageCandidate]:
    """Return every JPEG-family Image XObject in *pdf_bytes*, in xref order.

    Never raises: an unavailable backend or an unreadable PDF yields an empty
    list, and a candidate whose classification or decompression fails is
    skipped. Duplicates are kept.
    """
    if backend is None:
        logger.warning("PDF object-graph capability unavailable; no images recovered")
        return []

    candidates: list[PdfImageCandidate] = []
    try:
        with backend.open(stream=pdf_bytes, filetype="pdf") as doc:
            for xref in range(1, doc.xref_length()):
                try:
                    if not doc.xref_is_stream(xref):
                        continue
                    if _name_value(doc, xref, "Type") != "/XObject":
                        continue
                    if _name_value(doc, xref, "Subtype") != "/Image":
                        continue

                    filter_chain = parse_filter_chain(*doc.xref_get_key(xref, "Filter"))
                    if not is_jpeg_family(filter_chain):
                        continue

                    candidate = decode_candidate(
                        filter_chain, doc.xref_stream_raw(xref), xref
                    )
                except Exception as exc:
                    logger.warning("Skipping image xref %d: %s", xref, exc)
                    continue

                if candidate is not None:
                    candidates.append(candidate)
    except Exception as exc:
        logger.warning("Embedded image recovery failed: %s", exc)
        return []

    logger.info("Recovered %d JPEG-family image(s) from PDF", len(candidates))
    return candidates
