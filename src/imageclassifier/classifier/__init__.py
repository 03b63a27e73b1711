"""Image classification: engines, label catalog and top-K ranking."""

from imageclassifier.classifier.classifier import ImageClassifier
from imageclassifier.classifier.engine import (
    InferenceEngine,
    MockInferenceEngine,
    TFLiteInferenceEngine,
    image_to_tensor,
)
from imageclassifier.classifier.labels import read_labels
from imageclassifier.classifier.ranking import RESULTS_TO_SHOW, get_best_results, to_unsigned
from imageclassifier.classifier.recognition import Recognition

__all__ = [
    "ImageClassifier",
    "InferenceEngine",
    "MockInferenceEngine",
    "TFLiteInferenceEngine",
    "image_to_tensor",
    "read_labels",
    "RESULTS_TO_SHOW",
    "get_best_results",
    "to_unsigned",
    "Recognition",
]
