"""
Sony Liveview Configuration
===========================

This module handles configuration loading for the liveview client.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    LIVEVIEW_URL                    -> camera.url
    LIVEVIEW_CONTROL_TIMEOUT        -> camera.control_timeout_seconds
    LIVEVIEW_VALIDATE_RESPONSES     -> camera.validate_responses
    LIVEVIEW_CONNECT_TIMEOUT        -> stream.connect_timeout_seconds
    LIVEVIEW_READ_TIMEOUT           -> stream.read_timeout_seconds
    LIVEVIEW_RECONNECT_BACKOFF_MS   -> reconnect.backoff_ms
    LIVEVIEW_MAX_BACKOFF_MS         -> reconnect.max_backoff_ms
    LIVEVIEW_MAX_RECONNECT_ATTEMPTS -> reconnect.max_attempts
    LIVEVIEW_LOG_LEVEL              -> logging.level

Example:
    from sony_liveview.config import settings

    print(settings.camera.url)
    print(settings.reconnect.max_attempts)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class CameraConfig(BaseModel):
    """Camera control endpoint configuration."""

    url: str = Field(
        default="http://192.168.122.1:8080",
        description="Base URL of the camera API",
    )
    control_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single control command",
    )
    validate_responses: bool = Field(
        default=False,
        description="Reject control responses that carry an error member",
    )


class StreamConfig(BaseModel):
    """Liveview stream connection configuration."""

    connect_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for opening the stream connection",
    )
    read_timeout_seconds: Optional[float] = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single read on the stream (null = no timeout)",
    )


class ReconnectConfig(BaseModel):
    """Reconnect policy for the fetch loop."""

    backoff_ms: int = Field(
        default=500,
        ge=0,
        description="Delay before the first reconnect attempt",
    )
    max_backoff_ms: int = Field(
        default=10_000,
        ge=0,
        description="Upper bound on the delay between reconnect attempts",
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Backoff growth factor between consecutive attempts",
    )
    max_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum consecutive reconnect attempts (0 = unlimited)",
    )

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "ReconnectConfig":
        if self.max_backoff_ms < self.backoff_ms:
            raise ValueError(
                f"max_backoff_ms ({self.max_backoff_ms}) must be >= backoff_ms ({self.backoff_ms})"
            )
        return self


class ViewerConfig(BaseModel):
    """Viewer window configuration."""

    window_title: str = Field(default="Liveview stream", description="Window title")
    poll_interval_ms: int = Field(
        default=10,
        ge=1,
        description="Key polling interval of the display loop",
    )
    placeholder_width: int = Field(
        default=640,
        ge=1,
        description="Width of the blank image shown before the first frame",
    )
    placeholder_height: int = Field(
        default=424,
        ge=1,
        description="Height of the blank image shown before the first frame",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the liveview client.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    camera: CameraConfig = Field(default_factory=CameraConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    viewer: ViewerConfig = Field(default_factory=ViewerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Camera settings
    if env_url := os.environ.get("LIVEVIEW_URL"):
        config_data.setdefault("camera", {})["url"] = env_url
    if env_timeout := os.environ.get("LIVEVIEW_CONTROL_TIMEOUT"):
        config_data.setdefault("camera", {})["control_timeout_seconds"] = float(env_timeout)
    if env_validate := os.environ.get("LIVEVIEW_VALIDATE_RESPONSES"):
        config_data.setdefault("camera", {})["validate_responses"] = (
            env_validate.strip().lower() in ("1", "true", "yes", "on")
        )

    # Stream settings
    if env_connect := os.environ.get("LIVEVIEW_CONNECT_TIMEOUT"):
        config_data.setdefault("stream", {})["connect_timeout_seconds"] = float(env_connect)
    if env_read := os.environ.get("LIVEVIEW_READ_TIMEOUT"):
        config_data.setdefault("stream", {})["read_timeout_seconds"] = float(env_read)

    # Reconnect settings
    if env_backoff := os.environ.get("LIVEVIEW_RECONNECT_BACKOFF_MS"):
        config_data.setdefault("reconnect", {})["backoff_ms"] = int(env_backoff)
    if env_max_backoff := os.environ.get("LIVEVIEW_MAX_BACKOFF_MS"):
        config_data.setdefault("reconnect", {})["max_backoff_ms"] = int(env_max_backoff)
    if env_attempts := os.environ.get("LIVEVIEW_MAX_RECONNECT_ATTEMPTS"):
        config_data.setdefault("reconnect", {})["max_attempts"] = int(env_attempts)

    # Logging settings
    if env_log := os.environ.get("LIVEVIEW_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import. Invalid configuration is
# reported again by load_config() at the entry point.
try:
    settings = load_config()
except ValidationError as e:
    logger.error(f"Invalid configuration, using defaults: {e}")
    settings = Settings()
