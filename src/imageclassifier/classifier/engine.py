"""Inference engines mapping an image tensor to per-class confidence bytes."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from imageclassifier.classifier.ranking import to_unsigned
from imageclassifier.common.logging import get_logger
from imageclassifier.errors import EngineUnavailable


def image_to_tensor(image: np.ndarray, out: np.ndarray | None = None) -> np.ndarray:
    """Pack an HxWx3 uint8 image into a (1, H, W, 3) model input tensor.

    Pixels are laid out row-major as R, G, B bytes. ``out`` is reused when
    given.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an HxWx3 image, got shape {image.shape}")

    if out is None:
        out = np.empty((1, *image.shape), dtype=np.uint8)
    np.copyto(out[0], image)
    return out


class InferenceEngine:
    """Abstract inference engine."""

    async def setup(self) -> None:
        """Load the model."""
        pass

    async def teardown(self) -> None:
        """Release the model."""
        pass

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        """Run the model on a (1, H, W, 3) tensor and return uint8 confidences."""
        raise NotImplementedError

    def get_status(self) -> dict:
        """Get engine status."""
        raise NotImplementedError


class MockInferenceEngine(InferenceEngine):
    """Deterministic engine for testing.

    The strongest class is picked from the mean image intensity, so
    different images give different, reproducible answers.
    """

    SCORES = (255, 180, 90)

    def __init__(self, num_classes: int) -> None:
        if num_classes <= 0:
            raise ValueError("Mock engine needs at least one class")
        self.num_classes = num_classes
        self._frame_count = 0

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        """Mock inference."""
        self._frame_count += 1

        confidences = np.zeros(self.num_classes, dtype=np.uint8)
        start = int(tensor.mean())
        for rank, score in enumerate(self.SCORES[: self.num_classes]):
            confidences[(start + rank) % self.num_classes] = score
        return confidences

    def get_status(self) -> dict:
        """Get mock status."""
        return {
            "available": True,
            "backend": "mock",
            "num_classes": self.num_classes,
            "total_frames_processed": self._frame_count,
        }


class TFLiteInferenceEngine(InferenceEngine):
    """Engine running a TensorFlow Lite model through tflite_runtime."""

    def __init__(self, model_path: Path | str, num_threads: int | None = None) -> None:
        self.model_path = Path(model_path)
        self.num_threads = num_threads
        self._interpreter = None
        self._input_details: dict | None = None
        self._output_details: dict | None = None
        self._frame_count = 0
        self.logger = get_logger("tflite_engine")

    @property
    def available(self) -> bool:
        return self._interpreter is not None

    async def setup(self) -> None:
        """Load the model into a TFLite interpreter."""
        try:
            from tflite_runtime.interpreter import Interpreter
        except ImportError:
            self.logger.warning("tflite_runtime_not_available")
            return

        if not self.model_path.exists():
            self.logger.error("tflite_model_not_found", model=str(self.model_path))
            return

        try:
            interpreter = Interpreter(
                model_path=str(self.model_path),
                num_threads=self.num_threads,
            )
            interpreter.allocate_tensors()
        except (ValueError, RuntimeError) as e:
            self.logger.exception("tflite_model_load_failed", error=str(e))
            return

        self._interpreter = interpreter
        self._input_details = interpreter.get_input_details()[0]
        self._output_details = interpreter.get_output_details()[0]
        self.logger.info(
            "tflite_model_loaded",
            model=str(self.model_path),
            input_shape=list(self._input_details["shape"]),
            input_dtype=str(np.dtype(self._input_details["dtype"])),
        )

    async def teardown(self) -> None:
        """Drop the interpreter."""
        self._interpreter = None
        self._input_details = None
        self._output_details = None

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        """Run the TFLite model."""
        if self._interpreter is None:
            raise EngineUnavailable(f"TFLite model {self.model_path} is not loaded")

        input_data = tensor
        # Float models expect pixels normalized to [0, 1]
        if self._input_details["dtype"] == np.float32:
            input_data = tensor.astype(np.float32) / 255.0

        self._interpreter.set_tensor(self._input_details["index"], input_data)
        self._interpreter.invoke()
        self._frame_count += 1

        output = self._interpreter.get_tensor(self._output_details["index"]).reshape(-1)
        if np.issubdtype(output.dtype, np.floating):
            return np.clip(np.rint(output * 255.0), 0, 255).astype(np.uint8)
        return to_unsigned(output)

    def get_status(self) -> dict:
        """Get TFLite status."""
        return {
            "available": self.available,
            "backend": "tflite",
            "model": str(self.model_path),
            "total_frames_processed": self._frame_count,
        }
