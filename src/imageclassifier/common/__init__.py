"""Common utilities for the image classifier."""

from imageclassifier.common.logging import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
]
