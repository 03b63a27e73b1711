"""Image classifier: square image in, ranked recognitions out."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Sequence

import numpy as np

from imageclassifier.classifier.engine import (
    InferenceEngine,
    MockInferenceEngine,
    TFLiteInferenceEngine,
    image_to_tensor,
)
from imageclassifier.classifier.labels import read_labels
from imageclassifier.classifier.ranking import RESULTS_TO_SHOW, get_best_results
from imageclassifier.classifier.recognition import Recognition
from imageclassifier.common.logging import get_logger
from imageclassifier.config import Config

MOCK_LABELS = [
    "background",
    "cat",
    "dog",
    "fox",
    "laptop",
    "coffee mug",
    "banana",
    "sunglasses",
]


class ImageClassifier:
    """Runs an inference engine on preprocessed images and ranks the labels."""

    def __init__(
        self,
        engine: InferenceEngine,
        labels: Sequence[str],
        input_size: int = 224,
        results_to_show: int = RESULTS_TO_SHOW,
    ) -> None:
        """Initialize the classifier.

        Args:
            engine: Model backend producing one confidence byte per label.
            labels: Label catalog.
            input_size: Side length of the square input image.
            results_to_show: Number of top results returned.
        """
        self.engine = engine
        self.labels = list(labels)
        self.input_size = input_size
        self.results_to_show = results_to_show
        self.logger = get_logger("classifier")

        self._input = np.zeros((1, input_size, input_size, 3), dtype=np.uint8)

    @classmethod
    def from_config(cls, config: Config, mock_mode: bool = False) -> ImageClassifier:
        """Create a classifier from configuration.

        With the mock engine a missing labels file falls back to a small
        built-in catalog.
        """
        settings = config.classifier
        use_mock = mock_mode or config.mock_mode or settings.engine == "mock"

        if use_mock and not Path(settings.labels_file).exists():
            labels = list(MOCK_LABELS)
        else:
            labels = read_labels(settings.labels_file)

        engine: InferenceEngine
        if use_mock:
            engine = MockInferenceEngine(len(labels))
        else:
            engine = TFLiteInferenceEngine(settings.model_file)

        return cls(
            engine,
            labels,
            input_size=config.preprocess.target_size,
            results_to_show=settings.results_to_show,
        )

    async def setup(self) -> None:
        """Load the model."""
        await self.engine.setup()
        self.logger.info("classifier_ready", num_labels=len(self.labels))

    async def close(self) -> None:
        """Release the model."""
        await self.engine.teardown()

    def recognize(self, image: np.ndarray) -> list[Recognition]:
        """Classify a preprocessed square image.

        Args:
            image: ``input_size x input_size x 3`` uint8 image.

        Returns:
            Best recognitions, highest confidence first.
        """
        expected = (self.input_size, self.input_size, 3)
        if image.shape != expected:
            raise ValueError(f"Expected image of shape {expected}, got {image.shape}")

        image_to_tensor(image, self._input)

        start_time = time.perf_counter()
        confidences = self.engine.infer(self._input)
        inference_time_ms = (time.perf_counter() - start_time) * 1000

        results = get_best_results(confidences, self.labels, self.results_to_show)
        self.logger.debug(
            "inference_complete",
            inference_time_ms=round(inference_time_ms, 2),
            results=[str(r) for r in results],
        )
        return results

    def get_status(self) -> dict:
        """Get classifier status."""
        status = self.engine.get_status()
        status["num_labels"] = len(self.labels)
        return status
