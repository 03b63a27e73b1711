"""Top-K selection over per-class confidence bytes."""

from __future__ import annotations

import heapq
from typing import Sequence, Union

import numpy as np

from imageclassifier.classifier.recognition import Recognition
from imageclassifier.common.logging import get_logger
from imageclassifier.errors import LengthMismatch

logger = get_logger("ranking")

RESULTS_TO_SHOW = 3

ConfidenceVector = Union[bytes, bytearray, memoryview, Sequence[int], np.ndarray]


def to_unsigned(confidences: ConfidenceVector) -> np.ndarray:
    """Read a confidence vector as unsigned bytes (0-255).

    Signed values are reinterpreted, so -1 becomes 255. A batched
    ``(1, n)`` model output is flattened.
    """
    if isinstance(confidences, (bytes, bytearray, memoryview)):
        return np.frombuffer(confidences, dtype=np.uint8)

    values = np.asarray(confidences)
    if values.dtype == np.uint8:
        return values.reshape(-1)
    if not np.issubdtype(values.dtype, np.integer):
        raise TypeError(f"Confidences must be integer bytes, got {values.dtype}")
    return (values.astype(np.int64) & 0xFF).astype(np.uint8).reshape(-1)


def get_best_results(
    confidences: ConfidenceVector,
    labels: Sequence[str],
    k: int = RESULTS_TO_SHOW,
) -> list[Recognition]:
    """Find the ``k`` most confident labels.

    Args:
        confidences: One confidence byte per label.
        labels: Label catalog, index-aligned with ``confidences``.
        k: Maximum number of results.

    Returns:
        Up to ``k`` recognitions, highest confidence first. Equal
        confidences keep label order.

    Raises:
        LengthMismatch: If confidences and labels differ in length.
        ValueError: If ``k`` is negative.
    """
    values = to_unsigned(confidences)
    if len(values) != len(labels):
        raise LengthMismatch(len(values), len(labels))
    if k < 0:
        raise ValueError(f"k must be non-negative, got {k}")
    if k == 0:
        return []

    # Min-heap on (confidence, -index): the head is the weakest entry and,
    # among ties, the latest label.
    heap: list[tuple[float, int, Recognition]] = []
    for i, title in enumerate(labels):
        confidence = int(values[i]) / 255.0
        recognition = Recognition(id=str(i), title=title, confidence=confidence)
        if confidence > 0:
            logger.debug("recognition", result=str(recognition))

        entry = (confidence, -i, recognition)
        if len(heap) < k:
            heapq.heappush(heap, entry)
        else:
            heapq.heappushpop(heap, entry)

    results = [heapq.heappop(heap)[2] for _ in range(len(heap))]
    results.reverse()
    return results
