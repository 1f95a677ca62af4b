"""Document fetch service: stream a referenced document into memory.

Fetches the raw bytes behind a document reference with a streaming GET,
enforcing a size limit both on the declared Content-Length and while
streaming. Every failure is surfaced as a DOWNLOAD-kind ExtractionError:

- Non-success HTTP status -> status code carried on the error, so the retry
  orchestrator can treat client-class failures (< 500) as terminal.
- Transport errors (DNS, connect, read timeout) -> no status, retryable.
- Oversized documents -> status 413, terminal.

Retry is not performed here; callers wrap fetches in attempt_with_retry.
"""

from __future__ import annotations

import logging

import httpx

from doctext.config.settings import DownloadSettings
from doctext.types import ErrorKind, ExtractionError

logger = logging.getLogger(__name__)

PAYLOAD_TOO_LARGE = 413


def _too_large(url: str, size: int, limit: int) -> ExtractionError:
    return ExtractionError(
        ErrorKind.DOWNLOAD,
        f"Document exceeds max size limit ({size} bytes > {limit} bytes): {url}",
        status_code=PAYLOAD_TOO_LARGE,
    )


async def fetch_bytes(
    url: str,
    http_client: httpx.AsyncClient,
    settings: DownloadSettings,
) -> bytes:
    """Fetch the document at *url* and return its raw bytes.

    Parameters
    ----------
    url:
        Location of the document (image or PDF).
    http_client:
        An ``httpx.AsyncClient`` whose lifecycle is managed by the caller.
    settings:
        Download configuration (timeout, size limit, user agent).

    Raises
    ------
    ExtractionError
        With kind DOWNLOAD on any failure.
    """
    logger.debug("Fetching %s", url)

    try:
        async with http_client.stream(
            "GET",
            url,
            timeout=settings.timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        ) as response:
            if not response.is_success:
                raise ExtractionError(
                    ErrorKind.DOWNLOAD,
                    f"Failed to download file: {response.status_code} "
                    f"{response.reason_phrase} ({url})",
                    status_code=response.status_code,
                )

            # --- Content-Length pre-check ---
            content_length = response.headers.get("content-length")
            if content_length is not None:
                try:
                    declared_size = int(content_length)
                except ValueError:
                    declared_size = 0
                if declared_size > settings.max_document_bytes:
                    raise _too_large(url, declared_size, settings.max_document_bytes)

            # --- Streaming read with runtime size guard ---
            chunks: list[bytes] = []
            bytes_read = 0
            async for chunk in response.aiter_bytes():
                bytes_read += len(chunk)
                if bytes_read > settings.max_document_bytes:
                    raise _too_large(url, bytes_read, settings.max_document_bytes)
                chunks.append(chunk)

    except httpx.TransportError as exc:
        raise ExtractionError(
            ErrorKind.DOWNLOAD, f"Failed to download file: {exc} ({url})"
        ) from exc

    logger.info("Downloaded %s (%d bytes)", url, bytes_read)
    return b"".join(chunks)
