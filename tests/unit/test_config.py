"""
Unit Tests -- Settings, options and logging setup
═════════════════════════════════════════════════
"""

from __future__ import annotations

import io
import json
import logging

import pytest

from doctext.config import load_all_settings
from doctext.config.settings import (
    DownloadSettings,
    ExtractionSettings,
    PipelineSettings,
    VisionSettings,
)
from doctext.logging import setup_logging
from doctext.types import ExtractionOptions


@pytest.mark.unit
class TestSettings:

    def test_extraction_defaults(self, monkeypatch):
        for name in (
            "EXTRACTION_MAX_RETRIES",
            "EXTRACTION_RETRY_DELAY_BASE_MS",
            "EXTRACTION_FALLBACK_MIN_CHARS",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = ExtractionSettings()

        assert settings.max_retries == 3
        assert settings.retry_delay_base_ms == 1000
        assert settings.fallback_min_chars == 50

    def test_environment_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("EXTRACTION_MAX_RETRIES", "7")
        monkeypatch.setenv("DOWNLOAD_TIMEOUT_SECONDS", "12.5")

        assert ExtractionSettings().max_retries == 7
        assert DownloadSettings().timeout_seconds == 12.5

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("VISION_API_KEY", "from-env")

        assert VisionSettings().api_key == "from-env"

    def test_load_all_settings(self):
        vision, extraction, download, pipeline = load_all_settings()

        assert isinstance(vision, VisionSettings)
        assert isinstance(extraction, ExtractionSettings)
        assert isinstance(download, DownloadSettings)
        assert isinstance(pipeline, PipelineSettings)


@pytest.mark.unit
class TestExtractionOptions:

    def test_defaults(self):
        options = ExtractionOptions()

        assert options.max_retries == 3
        assert options.retry_delay_base_ms == 1000
        assert options.prefer_full_text_annotation is True

    @pytest.mark.parametrize(
        "kwargs", [{"max_retries": -1}, {"retry_delay_base_ms": -5}]
    )
    def test_negative_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ExtractionOptions(**kwargs)

    def test_from_settings(self):
        settings = ExtractionSettings(
            max_retries=0, retry_delay_base_ms=250, prefer_full_text_annotation=False
        )

        assert ExtractionOptions.from_settings(settings) == ExtractionOptions(
            max_retries=0, retry_delay_base_ms=250, prefer_full_text_annotation=False
        )


@pytest.fixture
def restore_root_logger():
    """Put the root logger's handlers and level back after a setup test."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.mark.unit
class TestLoggingSetup:

    def test_writes_json_file_log(self, tmp_path, restore_root_logger):
        log_path = setup_logging(log_dir=str(tmp_path / "logs"), console_stream=io.StringIO())
        logging.getLogger("doctext.test").info("hello %s", "world")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert log_path == tmp_path / "logs" / "extraction.log"
        record = json.loads(log_path.read_text().splitlines()[-1])
        assert record["message"] == "hello world"
        assert record["level"] == "INFO"
        assert record["component"] == "doctext.test"
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_console_respects_its_own_level(self, tmp_path, restore_root_logger):
        console = io.StringIO()
        setup_logging(log_dir=str(tmp_path), console_stream=console)

        logging.getLogger("doctext.test").debug("file only")
        logging.getLogger("doctext.test").warning("on the console")

        assert "on the console" in console.getvalue()
        assert "file only" not in console.getvalue()

    def test_repeated_setup_replaces_handlers(self, tmp_path, restore_root_logger):
        setup_logging(log_dir=str(tmp_path), console_stream=io.StringIO())
        setup_logging(log_dir=str(tmp_path), console_stream=io.StringIO())

        assert len(restore_root_logger.handlers) == 2
