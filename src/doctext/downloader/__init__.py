"""Downloader package -- fetch referenced documents into memory."""

from .service import fetch_bytes

__all__ = ["fetch_bytes"]
