"""Label catalog loading."""

from __future__ import annotations

from pathlib import Path

from imageclassifier.common.logging import get_logger
from imageclassifier.errors import LabelsError

logger = get_logger("labels")


def read_labels(path: Path | str) -> list[str]:
    """Load labels from a text file, one label per line.

    Line order defines the class index. A trailing newline does not add an
    empty label.

    Raises:
        LabelsError: If the file cannot be read.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            labels = [line.rstrip("\r\n") for line in f]
    except (OSError, UnicodeDecodeError) as e:
        raise LabelsError(f"Cannot read labels from {path}") from e

    logger.debug("labels_loaded", path=str(path), count=len(labels))
    return labels
