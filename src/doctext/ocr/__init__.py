"""OCR package -- Google Cloud Vision text detection client."""

from .client import VisionClient, build_annotate_request, parse_annotate_response

__all__ = ["VisionClient", "build_annotate_request", "parse_annotate_response"]
