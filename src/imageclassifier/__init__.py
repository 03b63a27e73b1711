"""imageclassifier - capture, classify and announce what the camera sees."""

__version__ = "0.1.0"

from imageclassifier.config import Config, load_config

__all__ = ["Config", "load_config", "__version__"]
