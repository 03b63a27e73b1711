"""Exceptions raised by the image classifier."""

from __future__ import annotations


class ClassifierError(Exception):
    """Base class for image classifier errors."""


class DimensionMismatch(ClassifierError, ValueError):
    """Frame size does not match the configured preview size."""

    def __init__(self, expected: tuple[int, int], actual: tuple[int, int]) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invalid frame size {actual[0]}x{actual[1]}, "
            f"expected {expected[0]}x{expected[1]}"
        )


class DecodeFailure(ClassifierError):
    """Frame payload could not be decoded into pixels."""


class PersistFailure(ClassifierError):
    """Debug preview image could not be written."""


class LengthMismatch(ClassifierError, ValueError):
    """Confidence vector and label catalog disagree in length."""

    def __init__(self, confidences: int, labels: int) -> None:
        self.confidences = confidences
        self.labels = labels
        super().__init__(
            f"Got {confidences} confidences for {labels} labels"
        )


class LabelsError(ClassifierError):
    """Label catalog could not be read."""


class CameraStateError(ClassifierError):
    """Camera operation not allowed in the current state."""


class EngineUnavailable(ClassifierError, RuntimeError):
    """Inference engine is not loaded or its runtime is missing."""
