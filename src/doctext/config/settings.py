"""Pydantic settings models for doctext configuration.

Four settings classes load from separate YAML config files with environment
variable override support. Source priority (highest to lowest):

    1. Environment variables (with prefix, e.g., EXTRACTION_MAX_RETRIES)
    2. .env file (for secrets, e.g., VISION_API_KEY)
    3. YAML config file (e.g., config/extraction.yaml)
    4. Default values defined here

Config paths are resolved relative to PROJECT_ROOT so the application works
regardless of the current working directory.
"""

from pathlib import Path

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Resolve project root: settings.py -> config/ -> doctext/ -> src/ -> repo root
PROJECT_ROOT = Path(__file__).resolve().parents[3]

_CONFIG_DIR = PROJECT_ROOT / "config"
_ENV_FILE = PROJECT_ROOT / ".env"


class _YamlSettings(BaseSettings):
    """Base class wiring the YAML source below env and .env overrides."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


class VisionSettings(_YamlSettings):
    """OCR provider connection: Google Cloud Vision endpoint and API key.

    The API key is a secret and comes from .env or the environment only
    (VISION_API_KEY) -- it must NEVER appear in YAML files. An empty key
    disables OCR; calls then fail with a configuration error.
    """

    api_key: str = ""
    endpoint: str = "https://vision.googleapis.com/v1/images:annotate"
    timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "vision.yaml"),
        env_file=str(_ENV_FILE),
        env_prefix="VISION_",
        extra="ignore",
    )


class ExtractionSettings(_YamlSettings):
    """Extraction behaviour: retry budget, fallback threshold, fan-out cap."""

    max_retries: int = 3
    retry_delay_base_ms: int = 1000
    prefer_full_text_annotation: bool = True

    # Text-layer results shorter than this trigger the embedded-image OCR fallback
    fallback_min_chars: int = 50

    # Upper bound on in-flight documents per batch; 0 = unbounded
    max_concurrency: int = 0

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "extraction.yaml"),
        env_prefix="EXTRACTION_",
    )


class DownloadSettings(_YamlSettings):
    """Document fetching: timeouts, size guard, user agent."""

    timeout_seconds: float = 60.0
    max_document_bytes: int = 52_428_800  # 50MB
    user_agent: str = "doctext/1.0"

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "download.yaml"),
        env_prefix="DOWNLOAD_",
    )


class PipelineSettings(_YamlSettings):
    """Process-level operations: log location and rotation."""

    log_dir: str = "logs"
    log_max_bytes: int = 10_485_760  # 10MB
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "pipeline.yaml"),
        env_prefix="PIPELINE_",
    )
