"""Google Cloud Vision OCR client.

Sends base64-encoded image content to the ``images:annotate`` endpoint with
a single TEXT_DETECTION feature and turns the response into plain text.
Failures are classified for the retry orchestrator:

- Missing API key -> CONFIGURATION (raised before any request).
- HTTP status < 500 -> PROVIDER_TERMINAL; >= 500 -> PROVIDER_TRANSIENT.
- Transport errors, unparseable bodies, an empty ``responses`` list, a
  response-level ``error`` object or annotations of the wrong shape ->
  PROVIDER_TRANSIENT.

The client performs exactly one request per call; retry is the caller's job.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from doctext.config.settings import VisionSettings
from doctext.types import (
    ErrorKind,
    ExtractionError,
    ExtractionOptions,
    ExtractionOutcome,
)

logger = logging.getLogger(__name__)

BAD_GATEWAY = 502
SERVICE_UNAVAILABLE = 503


def build_annotate_request(image_base64: str) -> dict[str, Any]:
    """Build the images:annotate request body for one image."""
    return {
        "requests": [
            {
                "image": {"content": image_base64},
                "features": [{"type": "TEXT_DETECTION", "maxResults": 1}],
            }
        ]
    }


def parse_annotate_response(
    payload: Any,
    prefer_full_text_annotation: bool = True,
) -> ExtractionOutcome:
    """Extract the recognised text from an images:annotate response body.

    Prefers ``fullTextAnnotation.text`` when requested and present, then the
    first ``textAnnotations`` entry (which holds the whole-image text), then
    an empty string.

    Raises:
        ExtractionError: PROVIDER_TRANSIENT for malformed payloads or a
            response-level error object.
    """
    responses = payload.get("responses") if isinstance(payload, dict) else None
    if not isinstance(responses, list) or not responses:
        raise ExtractionError(
            ErrorKind.PROVIDER_TRANSIENT,
            "Invalid response from Google Vision API",
            status_code=BAD_GATEWAY,
        )

    annotation = responses[0] if isinstance(responses[0], dict) else {}
    error = annotation.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise ExtractionError(
            ErrorKind.PROVIDER_TRANSIENT,
            f"Google Vision API error: {message or 'unknown error'}",
            status_code=BAD_GATEWAY,
        )

    full_annotation = annotation.get("fullTextAnnotation") or {}
    token_annotations = annotation.get("textAnnotations") or []
    if not isinstance(full_annotation, dict) or not isinstance(token_annotations, list):
        raise _malformed("unexpected annotation shape")

    text = ""
    full_text = full_annotation.get("text")
    if prefer_full_text_annotation and full_text:
        text = full_text
    elif token_annotations:
        first = token_annotations[0]
        if not isinstance(first, dict):
            raise _malformed("unexpected text annotation entry")
        text = first.get("description") or ""

    if not isinstance(text, str):
        raise _malformed("annotation text is not a string")
    return ExtractionOutcome(text=text.strip())


def _malformed(detail: str) -> ExtractionError:
    return ExtractionError(
        ErrorKind.PROVIDER_TRANSIENT,
        f"Invalid response from Google Vision API: {detail}",
        status_code=BAD_GATEWAY,
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message", "")
    return ""


class VisionClient:
    """Thin async client for the Google Cloud Vision annotate endpoint.

    The settings and HTTP client are read-only after construction and are
    shared by every concurrent recognition call.
    """

    def __init__(self, settings: VisionSettings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._http = http_client
        if not self.is_configured():
            logger.warning(
                "VISION_API_KEY not configured. OCR features will be disabled."
            )

    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self._settings.api_key)

    async def recognize(
        self,
        image_base64: str,
        options: ExtractionOptions | None = None,
    ) -> ExtractionOutcome:
        """Run text detection on one base64-encoded image.

        Args:
            image_base64: Base64-encoded image bytes.
            options: Only ``prefer_full_text_annotation`` is consulted.

        Returns:
            ExtractionOutcome with trimmed text (possibly empty).

        Raises:
            ExtractionError: Classified as described in the module docstring.
        """
        if not self.is_configured():
            raise ExtractionError(
                ErrorKind.CONFIGURATION,
                "Google Vision API is not configured",
                status_code=SERVICE_UNAVAILABLE,
            )

        options = options or ExtractionOptions()

        try:
            response = await self._http.post(
                self._settings.endpoint,
                params={"key": self._settings.api_key},
                json=build_annotate_request(image_base64),
                timeout=self._settings.timeout_seconds,
            )
        except httpx.TransportError as exc:
            raise ExtractionError(
                ErrorKind.PROVIDER_TRANSIENT,
                f"Google Vision API request failed: {exc}",
            ) from exc

        if not response.is_success:
            kind = (
                ErrorKind.PROVIDER_TERMINAL
                if response.status_code < 500
                else ErrorKind.PROVIDER_TRANSIENT
            )
            raise ExtractionError(
                kind,
                f"Google Vision API error: {response.status_code} "
                f"{response.reason_phrase}. {_error_detail(response)}".strip(),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ExtractionError(
                ErrorKind.PROVIDER_TRANSIENT,
                "Unparseable response from Google Vision API",
                status_code=BAD_GATEWAY,
            ) from exc

        outcome = parse_annotate_response(payload, options.prefer_full_text_annotation)
        logger.debug("Vision OCR returned %d chars", len(outcome.text))
        return outcome
