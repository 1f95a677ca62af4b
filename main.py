"""doctext -- application entry point.

Startup sequence:
    1. Load pipeline configuration (needed for log_dir and rotation settings)
    2. Setup logging (must happen before any code that logs)
    3. Load remaining configuration (vision, extraction, download)
    4. Build the extraction pipeline around one shared HTTP client
    5. Extract every reference given on the command line and print the
       results as a JSON array on stdout

Usage:
    python main.py [--filtered] REF [REF ...]
"""

import argparse
import asyncio
import json
import logging
import sys

import httpx

from doctext.config import (
    DownloadSettings,
    ExtractionSettings,
    PipelineSettings,
    VisionSettings,
)
from doctext.extractor import build_pipeline
from doctext.logging import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract plain text from image and PDF URLs."
    )
    parser.add_argument("references", nargs="+", help="Image or PDF URLs")
    parser.add_argument(
        "--filtered",
        action="store_true",
        help="Drop empty results instead of keeping one entry per reference",
    )
    return parser.parse_args(argv)


async def _run(
    references: list[str],
    filtered: bool,
    vision: VisionSettings,
    extraction: ExtractionSettings,
    download: DownloadSettings,
) -> list[str]:
    async with httpx.AsyncClient() as http_client:
        pipeline = build_pipeline(http_client, vision, extraction, download)
        if filtered:
            return await pipeline.extract_from_references_filtered(references)
        return await pipeline.extract_from_references(references)


def main(argv: list[str] | None = None) -> int:
    """Run the extraction pipeline over the references on the command line."""
    args = _parse_args(argv)

    # 1. Load pipeline config first -- needed for logging
    pipeline = PipelineSettings()

    # 2. Setup logging BEFORE anything else logs
    setup_logging(
        log_dir=pipeline.log_dir,
        max_bytes=pipeline.log_max_bytes,
        backup_count=pipeline.log_backup_count,
    )

    logger.info("doctext starting")

    # 3. Load remaining configuration (never log the API key)
    vision = VisionSettings()
    extraction = ExtractionSettings()
    download = DownloadSettings()

    logger.info(
        "Config loaded -- vision: endpoint=%s, configured=%s",
        vision.endpoint,
        bool(vision.api_key),
    )
    logger.info(
        "Config loaded -- extraction: max_retries=%s, retry_delay_base_ms=%s, "
        "fallback_min_chars=%s, max_concurrency=%s",
        extraction.max_retries,
        extraction.retry_delay_base_ms,
        extraction.fallback_min_chars,
        extraction.max_concurrency,
    )

    # 4-5. Build the pipeline and extract
    results = asyncio.run(
        _run(args.references, args.filtered, vision, extraction, download)
    )

    print(json.dumps(results, ensure_ascii=False, indent=2))
    logger.info("Run complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
