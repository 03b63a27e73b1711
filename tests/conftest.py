"""Pytest configuration and fixtures for image classifier tests."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from imageclassifier.config import Config, load_config
from imageclassifier.preprocess import ImagePreprocessor, RawFrame


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--hil",
        action="store_true",
        default=False,
        help="Run hardware-in-the-loop tests (requires a real camera)",
    )
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="Run slow tests",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure test markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "hil: Hardware-in-the-loop tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Modify test collection based on options."""
    if not config.getoption("--hil"):
        skip_hil = pytest.mark.skip(reason="Need --hil option to run")
        for item in items:
            if "hil" in item.keywords:
                item.add_marker(skip_hil)

    if not config.getoption("--slow"):
        skip_slow = pytest.mark.skip(reason="Need --slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture
def config() -> Config:
    """Get configuration from the standard locations."""
    return load_config()


@pytest.fixture
def mock_config(tmp_path: Path) -> Config:
    """Get mock configuration writing nothing outside tmp_path."""
    cfg = Config()
    cfg.mock_mode = True
    cfg.device.mode = "development"
    cfg.device.log_level = "DEBUG"
    cfg.preprocess.preview_path = str(tmp_path / "preview.png")
    cfg.classifier.labels_file = str(tmp_path / "labels.txt")
    return cfg


@pytest.fixture
def labels_file(tmp_path: Path) -> Path:
    """Write a small label catalog."""
    path = tmp_path / "labels.txt"
    path.write_text("background\ncat\ndog\nfox\n", encoding="utf-8")
    return path


@pytest.fixture
def preprocessor() -> ImagePreprocessor:
    """Preprocessor for 640x480 frames producing 224x224 images."""
    return ImagePreprocessor(640, 480, target_size=224)


def encode_image(pixels: np.ndarray, format: str = "PNG") -> bytes:
    """Encode an HxWx3 uint8 array."""
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture
def make_frame() -> Callable[..., RawFrame]:
    """Factory building encoded frames from pixel arrays."""

    def _make(pixels: np.ndarray, format: str = "png") -> RawFrame:
        height, width = pixels.shape[:2]
        return RawFrame(
            width=width,
            height=height,
            data=encode_image(pixels, format.upper()),
            format=format,
        )

    return _make


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
