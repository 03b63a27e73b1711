"""Classifier application: capture, classify and announce on demand."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from imageclassifier.camera import CameraHandler
from imageclassifier.classifier import ImageClassifier, Recognition
from imageclassifier.common.logging import get_logger, setup_logging
from imageclassifier.config import Config, load_config
from imageclassifier.errors import ClassifierError, DimensionMismatch
from imageclassifier.preprocess import ImagePreprocessor, RawFrame
from imageclassifier.speech import ResultSpeaker, format_results


@dataclass
class CaptureResult:
    """Result of one capture and classification."""

    frame_id: str
    recognitions: list[Recognition]
    text: str
    latency_ms: dict[str, int] = field(default_factory=dict)


class ClassifierApp:
    """Wires camera, preprocessor, classifier and speaker together.

    A capture is only accepted while the app is ready. Work for a capture
    runs on one serialized path, so the preprocessor's reusable buffers are
    never touched by two captures at once.

    Example:
        async with ClassifierApp(mock_mode=True) as app:
            result = await app.start_image_capture()
            print(result.text)
    """

    def __init__(
        self,
        config: Config | None = None,
        mock_mode: bool = False,
        camera: CameraHandler | None = None,
        preprocessor: ImagePreprocessor | None = None,
        classifier: ImageClassifier | None = None,
        speaker: ResultSpeaker | None = None,
    ) -> None:
        """Initialize the app.

        Args:
            config: Configuration (loaded from env/file if None).
            mock_mode: Use mock camera and inference engine.
            camera: Frame source (built from config if None).
            preprocessor: Frame preprocessor (built from config if None).
            classifier: Image classifier (built from config on start if None).
            speaker: Result speaker (logs utterances if None).
        """
        self.config = config or load_config()
        self.mock_mode = mock_mode or self.config.mock_mode

        setup_logging(
            level=self.config.device.log_level,
            json_output=self.config.device.mode == "production",
            service_name=self.config.device.name,
        )
        self.logger = get_logger("classifier_app")

        self.camera = camera or CameraHandler.from_config(self.config, self.mock_mode)
        self.preprocessor = preprocessor or ImagePreprocessor.from_config(self.config)
        self.speaker = speaker or ResultSpeaker()
        self._classifier = classifier

        self._ready = False
        self._started = False
        self._lock = asyncio.Lock()
        self._last_result: CaptureResult | None = None

    @property
    def classifier(self) -> ImageClassifier:
        """Get the image classifier."""
        if not self._classifier:
            raise RuntimeError("App not started. Call await app.start() first.")
        return self._classifier

    @property
    def ready(self) -> bool:
        """Whether a new capture can be started."""
        return self._ready

    @property
    def last_result(self) -> CaptureResult | None:
        return self._last_result

    def set_ready(self, ready: bool) -> None:
        """Mark the app as ready (or not) for a new capture."""
        if ready != self._ready:
            self.logger.debug("ready_changed", ready=ready)
        self._ready = ready

    async def start(self) -> None:
        """Load the model, open the camera and become ready."""
        if self._started:
            return

        self.logger.info("app_starting", mock_mode=self.mock_mode)

        if self._classifier is None:
            self._classifier = ImageClassifier.from_config(self.config, self.mock_mode)
        await self._classifier.setup()

        if not await self.camera.initialize():
            self.logger.warning("camera_unavailable")

        self._started = True
        await self.speaker.speak_ready()
        self.set_ready(True)
        self.logger.info("app_started")

    async def stop(self) -> None:
        """Close the camera and release the model."""
        if not self._started:
            return

        self.logger.info("app_stopping")
        self.set_ready(False)

        try:
            await self.camera.shutdown()
        except Exception as e:
            self.logger.exception("camera_shutdown_failed", error=str(e))

        try:
            await self.classifier.close()
        except Exception as e:
            self.logger.exception("classifier_close_failed", error=str(e))

        self._started = False
        self.logger.info("app_stopped")

    async def __aenter__(self) -> ClassifierApp:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    async def start_image_capture(self) -> CaptureResult | None:
        """Capture a frame, classify it and announce the result.

        Returns:
            The capture result, or None if the app was busy or the frame was
            skipped.
        """
        if not self._ready:
            self.logger.info("capture_rejected", reason="processing has not finished")
            return None

        self.set_ready(False)
        try:
            start_time = time.time()
            await self.speaker.speak_shutter_sound()
            frame = await self.camera.take_picture()
            capture_ms = int((time.time() - start_time) * 1000)

            result = await self.classify_frame(frame)
            if result is not None:
                result.latency_ms["capture"] = capture_ms
            return result
        finally:
            self.set_ready(True)

    async def classify_frame(self, frame: RawFrame | None) -> CaptureResult | None:
        """Preprocess, classify and announce a single frame.

        Returns:
            The capture result, or None if the frame was skipped.
        """
        async with self._lock:
            timings: dict[str, int] = {}

            start_time = time.time()
            try:
                image = self.preprocessor.preprocess(frame)
            except DimensionMismatch as e:
                self.logger.warning("frame_skipped", error=str(e))
                return None
            timings["preprocess"] = int((time.time() - start_time) * 1000)

            if image is None:
                self.logger.info("frame_skipped", reason="no image")
                return None

            classify_start = time.time()
            try:
                recognitions = self.classifier.recognize(image)
            except ClassifierError as e:
                self.logger.exception(
                    "classification_failed",
                    frame_id=frame.frame_id,
                    error=str(e),
                )
                return None
            timings["classify"] = int((time.time() - classify_start) * 1000)

            text = format_results(recognitions)
            self.logger.info(
                "recognition_results",
                frame_id=frame.frame_id,
                text=text,
                results=[r.to_dict() for r in recognitions],
            )

            speak_start = time.time()
            await self.speaker.speak_results(recognitions)
            timings["speak"] = int((time.time() - speak_start) * 1000)

            self._last_result = CaptureResult(
                frame_id=frame.frame_id,
                recognitions=recognitions,
                text=text,
                latency_ms=timings,
            )
            return self._last_result

    def get_status(self) -> dict:
        """Get app status."""
        status = {
            "ready": self._ready,
            "started": self._started,
            "camera": self.camera.describe_formats(),
        }
        if self._classifier:
            status["classifier"] = self._classifier.get_status()
        return status
