"""Configuration package -- typed, validated settings from YAML + .env."""

from .settings import (
    DownloadSettings,
    ExtractionSettings,
    PipelineSettings,
    VisionSettings,
)

__all__ = [
    "DownloadSettings",
    "ExtractionSettings",
    "PipelineSettings",
    "VisionSettings",
    "load_all_settings",
]


def load_all_settings() -> tuple[
    VisionSettings, ExtractionSettings, DownloadSettings, PipelineSettings
]:
    """Load and return all configuration objects.

    Returns a tuple of (VisionSettings, ExtractionSettings, DownloadSettings,
    PipelineSettings), each populated from its own YAML file with environment
    variable overrides.
    """
    return VisionSettings(), ExtractionSettings(), DownloadSettings(), PipelineSettings()
