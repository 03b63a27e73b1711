"""Configuration management for the image classifier."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeviceConfig(BaseModel):
    """Device configuration."""

    name: str = "imageclassifier"
    mode: Literal["production", "development"] = "development"
    log_level: str = "INFO"


class CameraConfig(BaseModel):
    """Camera configuration."""

    backend: Literal["mock", "file", "picamera"] = "mock"
    preview_width: int = Field(default=640, gt=0)
    preview_height: int = Field(default=480, gt=0)
    image_path: str | None = None


class PreprocessConfig(BaseModel):
    """Image preprocessing configuration."""

    target_size: int = Field(default=224, gt=0)
    sensor_orientation: int = 0
    save_preview: bool = False
    preview_path: str = "tensorflow_preview.png"


class ClassifierConfig(BaseModel):
    """Classifier configuration."""

    engine: Literal["mock", "tflite"] = "mock"
    model_file: str = "mobilenet_quant_v1_224.tflite"
    labels_file: str = "labels.txt"
    results_to_show: int = Field(default=3, ge=0)


class Config(BaseSettings):
    """Main configuration for the image classifier."""

    model_config = SettingsConfigDict(
        env_prefix="IMAGECLASSIFIER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    preprocess: PreprocessConfig = Field(default_factory=PreprocessConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)

    # Mock mode for development
    mock_mode: bool = False

    @classmethod
    def from_yaml(cls, path: Path | str) -> Config:
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)


def load_config(
    config_path: Path | str | None = None,
    env_override: bool = True,
) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file. If None, searches standard locations.
        env_override: Whether to allow environment variables to override config.

    Returns:
        Loaded configuration.
    """
    search_paths = [
        Path("/etc/imageclassifier/config.yaml"),
        Path.home() / ".config" / "imageclassifier" / "config.yaml",
        Path("config.yaml"),
    ]

    if config_path:
        search_paths.insert(0, Path(config_path))

    config_file: Path | None = None
    for path in search_paths:
        if path.exists():
            config_file = path
            break

    if config_file:
        config = Config.from_yaml(config_file)
    else:
        config = Config()

    if env_override:
        if os.environ.get("IMAGECLASSIFIER_MOCK_MODE", "").lower() in ("1", "true", "yes"):
            config.mock_mode = True

    return config


def get_default_config() -> dict[str, Any]:
    """Get default configuration as dictionary."""
    return Config().model_dump()
