"""Configuration loading and Pydantic models for b2vfs."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class B2Config(BaseModel):
    """B2 account credentials."""

    application_key_id: str = ""
    application_key: str = ""
    realm: str = "production"


class AdapterConfig(BaseModel):
    """Adapter settings.

    An empty ``bucket_id`` and a ``None`` prefix are filled from the
    application key restriction when the adapter is created.
    """

    bucket_id: str = ""
    prefix: str | None = None
    stream_reads: bool = True
    mime_detection: bool = True


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"


class MetricsConfig(BaseModel):
    enabled: bool = False


class B2VfsConfig(BaseModel):
    """Top-level b2vfs configuration."""

    b2: B2Config = Field(default_factory=B2Config)
    adapter: AdapterConfig = Field(default_factory=AdapterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def _parse_b2(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the b2 section, falling back to B2_* environment variables."""
    data = data or {}
    return {
        "application_key_id": data.get("application_key_id")
        or os.environ.get("B2_APPLICATION_KEY_ID", ""),
        "application_key": data.get("application_key")
        or os.environ.get("B2_APPLICATION_KEY", ""),
        "realm": data.get("realm", "production"),
    }


def _parse_adapter(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the adapter section from YAML data."""
    if data is None:
        return {}
    return {
        "bucket_id": data.get("bucket_id") or "",
        "prefix": data.get("prefix"),
        "stream_reads": data.get("stream_reads", True),
        "mime_detection": data.get("mime_detection", True),
    }


def _parse_logging(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the logging section from YAML data."""
    if data is None:
        return {}
    return {
        "level": data.get("level", "INFO"),
        "format": data.get("format", "text"),
    }


def _parse_metrics(data: dict[str, Any] | None) -> dict[str, Any]:
    """Parse the metrics section from YAML data."""
    if data is None:
        return {}
    return {"enabled": data.get("enabled", False)}


def load_config(path: Path) -> B2VfsConfig:
    """Load a B2VfsConfig from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        A fully populated B2VfsConfig validated by Pydantic.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, "r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    return B2VfsConfig(
        b2=B2Config(**_parse_b2(raw.get("b2"))),
        adapter=AdapterConfig(**_parse_adapter(raw.get("adapter"))),
        logging=LoggingConfig(**_parse_logging(raw.get("logging"))),
        metrics=MetricsConfig(**_parse_metrics(raw.get("metrics"))),
    )
