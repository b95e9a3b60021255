"""Centralized application configuration.

Settings come from three layers, later layers winning:

1. built-in defaults
2. a JSON config file (explicit path, ``REELCUT_CONFIG_PATH``,
   ``~/.reelcut/config.json`` or ``/etc/reelcut/config.json``)
3. environment variables
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Environment variable for each overridable setting
ENV_OVERRIDES = {
    "database_url": "DATABASE_URL",
    "openai_api_key": "OPENAI_API_KEY",
    "generation_model": "GENERATION_MODEL",
    "max_tokens_per_chunk": "MAX_TOKENS_PER_CHUNK",
    "reserved_tokens": "RESERVED_TOKENS",
    "rolling_context_limit": "ROLLING_CONTEXT_LIMIT",
    "upload_root": "UPLOADS_DIR",
    "temp_root": "TEMP_DIR",
    "merge_timeout_seconds": "MERGE_TIMEOUT_SECONDS",
    "max_concurrent_merges": "MAX_CONCURRENT_MERGES",
    "s3_bucket": "S3_BUCKET",
    "s3_region": "AWS_REGION",
    "s3_public_base_url": "S3_PUBLIC_BASE_URL",
    "storage_key_prefix": "STORAGE_KEY_PREFIX",
    "ffmpeg_bin": "FFMPEG_BIN",
    "ffprobe_bin": "FFPROBE_BIN",
}


class Settings(BaseModel):
    """Runtime settings for clip selection and merging."""

    database_url: str = "sqlite:///./data/reelcut.db"

    openai_api_key: str | None = None
    generation_model: str = "gpt-4o-mini-2024-07-18"
    max_tokens_per_chunk: int = Field(40000, gt=0)
    reserved_tokens: int = Field(5000, ge=0)
    rolling_context_limit: int = Field(30, ge=0)

    upload_root: str = "/app/backend/uploads"
    legacy_prefixes: list[str] = Field(
        default_factory=lambda: ["uploads/", "backend/uploads/"]
    )
    temp_root: str = Field(default_factory=lambda: str(Path("./tmp").resolve()))
    merge_timeout_seconds: float = Field(30 * 60, gt=0)
    max_concurrent_merges: int = Field(2, ge=1)

    s3_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_public_base_url: str | None = None
    storage_key_prefix: str = "merged-videos"

    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"


class ConfigLoader:
    """Loads settings from a config file and the environment."""

    def __init__(self, environ: dict | None = None):
        self.environ = os.environ if environ is None else environ

    def load(self, config_path: str | None = None) -> Settings:
        """Build settings from defaults, file values and env overrides."""
        values = self._load_config_file(config_path)
        values.update(self._env_overrides())
        return Settings(**values)

    def _load_config_file(self, config_path: str | None = None) -> dict:
        """Load configuration from JSON file."""
        if config_path is None:
            # Try multiple locations in order
            possible_paths = [
                self.environ.get("REELCUT_CONFIG_PATH"),
                str(Path.home() / ".reelcut" / "config.json"),
                "/etc/reelcut/config.json",
            ]

            for path in possible_paths:
                if path and Path(path).exists():
                    config_path = path
                    break

        if config_path:
            config_file = Path(config_path)
            if config_file.exists():
                try:
                    with open(config_file) as f:
                        data = json.load(f)
                    if isinstance(data, dict):
                        logger.info(f"Loaded configuration from {config_file}")
                        return data
                    logger.warning(f"Ignoring non-object config file {config_file}")
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Could not read config file {config_file}: {e}")

        return {}

    def _env_overrides(self) -> dict:
        """Collect settings provided through environment variables."""
        overrides = {}
        for field_name, env_name in ENV_OVERRIDES.items():
            value = self.environ.get(env_name)
            if value not in (None, ""):
                overrides[field_name] = value
        return overrides


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = ConfigLoader().load()
    return _settings


def configure(config_path: str | None = None) -> Settings:
    """Reload the process-wide settings, optionally from a specific file."""
    global _settings
    _settings = ConfigLoader().load(config_path)
    return _settings
