"""Optional PDF capability resolution.

PDF introspection (text layer and object graph) is provided by PyMuPDF. The
module is resolved once, when the pipeline is constructed, into either the
imported module or ``None``; downstream code checks for presence instead of
handling an import failure on every call.
"""

from __future__ import annotations

import importlib
import logging
from types import ModuleType

logger = logging.getLogger(__name__)

PDF_BACKEND_MODULE = "pymupdf"


def load_pdf_backend(module_name: str = PDF_BACKEND_MODULE) -> ModuleType | None:
    """Import the PDF backend, returning ``None`` if it is not installed."""
    try:
        backend = importlib.import_module(module_name)
    except ImportError as exc:
        logger.warning(
            "PDF extraction is not available (%s could not be imported: %s)",
            module_name,
            exc,
        )
        return None

    logger.debug(
        "PDF backend loaded: %s %s",
        module_name,
        getattr(backend, "VersionBind", "unknown version"),
    )
    return backend
