"""Camera handling: a still-capture state machine over pluggable backends."""

from __future__ import annotations

import io
from enum import Enum
from pathlib import Path

from PIL import Image

from imageclassifier.common.logging import get_logger
from imageclassifier.config import Config
from imageclassifier.errors import CameraStateError
from imageclassifier.preprocess import RawFrame


class CameraState(Enum):
    """Camera state enum."""

    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    SESSION_CONFIGURING = "session_configuring"
    CAPTURING = "capturing"
    CLOSING = "closing"


class CameraBackend:
    """Abstract camera backend."""

    async def open(self, width: int, height: int) -> bool:
        """Open the camera for stills of the given size.

        Returns:
            True if a camera is available.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release the camera."""
        pass

    async def capture(self) -> RawFrame:
        """Capture a single still frame."""
        raise NotImplementedError

    def describe_formats(self) -> dict:
        """Describe supported output formats and sizes."""
        raise NotImplementedError


class MockCameraBackend(CameraBackend):
    """Mock camera producing solid color JPEG frames."""

    def __init__(self, color: tuple[int, int, int] = (73, 109, 137), quality: int = 85) -> None:
        self.color = color
        self.quality = quality
        self._size: tuple[int, int] | None = None
        self._frame_count = 0

    async def open(self, width: int, height: int) -> bool:
        self._size = (width, height)
        return True

    async def close(self) -> None:
        self._size = None

    async def capture(self) -> RawFrame:
        """Capture a mock frame."""
        if self._size is None:
            raise RuntimeError("Mock camera not open")
        self._frame_count += 1

        img = Image.new("RGB", self._size, color=self.color)
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=self.quality)

        return RawFrame(
            width=self._size[0],
            height=self._size[1],
            data=buffer.getvalue(),
            format="jpeg",
        )

    def describe_formats(self) -> dict:
        return {
            "backend": "mock",
            "formats": {"jpeg": [list(self._size)] if self._size else []},
            "frames_captured": self._frame_count,
        }


class FileCameraBackend(CameraBackend):
    """Camera stand-in that returns an image file from disk on every capture."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.logger = get_logger("file_camera_backend")

    async def open(self, width: int, height: int) -> bool:
        if not self.path.is_file():
            self.logger.warning("image_file_not_found", path=str(self.path))
            return False
        return True

    async def capture(self) -> RawFrame:
        """Read the image file as an encoded frame."""
        data = self.path.read_bytes()
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            image_format = (img.format or "jpeg").lower()

        return RawFrame(width=width, height=height, data=data, format=image_format)

    def describe_formats(self) -> dict:
        return {"backend": "file", "path": str(self.path)}


class PiCameraBackend(CameraBackend):
    """Raspberry Pi camera backend using picamera2."""

    def __init__(self) -> None:
        self._camera = None
        self.logger = get_logger("pi_camera_backend")

    async def open(self, width: int, height: int) -> bool:
        try:
            from picamera2 import Picamera2
        except ImportError:
            self.logger.warning("picamera2_not_available")
            return False

        camera = Picamera2()
        still_config = camera.create_still_configuration(
            main={"size": (width, height), "format": "RGB888"}
        )
        camera.configure(still_config)
        camera.start()

        self._camera = camera
        self.logger.info("pi_camera_initialized", width=width, height=height)
        return True

    async def close(self) -> None:
        if self._camera:
            self._camera.stop()
            self._camera.close()
            self._camera = None

    async def capture(self) -> RawFrame:
        """Capture a raw RGB frame."""
        if not self._camera:
            raise RuntimeError("Camera not initialized")
        return RawFrame.from_array(self._camera.capture_array())

    def describe_formats(self) -> dict:
        if not self._camera:
            return {"backend": "picamera", "formats": {}}
        return {
            "backend": "picamera",
            "sensor_modes": [
                {"size": list(mode.get("size", ())), "format": str(mode.get("format"))}
                for mode in self._camera.sensor_modes
            ],
        }


class CameraHandler:
    """Drives a camera backend through open, capture and close.

    States move CLOSED -> OPENING -> OPEN, each capture goes
    OPEN -> SESSION_CONFIGURING -> CAPTURING -> OPEN, and shutdown goes
    through CLOSING back to CLOSED.
    """

    def __init__(self, backend: CameraBackend, preview_width: int, preview_height: int) -> None:
        self.backend = backend
        self.preview_width = preview_width
        self.preview_height = preview_height
        self.logger = get_logger("camera")
        self._state = CameraState.CLOSED

    @classmethod
    def from_config(cls, config: Config, mock_mode: bool = False) -> CameraHandler:
        """Create a camera handler for the configured backend."""
        settings = config.camera
        backend: CameraBackend
        if mock_mode or config.mock_mode or settings.backend == "mock":
            backend = MockCameraBackend()
        elif settings.backend == "file":
            if not settings.image_path:
                raise ValueError("camera.image_path is required for the file backend")
            backend = FileCameraBackend(settings.image_path)
        else:
            backend = PiCameraBackend()

        return cls(backend, settings.preview_width, settings.preview_height)

    @property
    def state(self) -> CameraState:
        """Get current camera state."""
        return self._state

    def _set_state(self, state: CameraState) -> None:
        self.logger.debug("camera_state", old=self._state.value, new=state.value)
        self._state = state

    async def initialize(self) -> bool:
        """Open the camera.

        Returns:
            True if the camera is open and ready to capture.

        Raises:
            CameraStateError: If the camera is already initialized or initializing.
        """
        if self._state != CameraState.CLOSED:
            raise CameraStateError("Camera is already initialized or is initializing")

        self._set_state(CameraState.OPENING)
        try:
            opened = await self.backend.open(self.preview_width, self.preview_height)
        except Exception:
            self._set_state(CameraState.CLOSED)
            raise

        if not opened:
            self.logger.warning("no_camera_found")
            self._set_state(CameraState.CLOSED)
            return False

        self._set_state(CameraState.OPEN)
        self.logger.info(
            "camera_opened",
            width=self.preview_width,
            height=self.preview_height,
        )
        return True

    async def take_picture(self) -> RawFrame | None:
        """Capture a still image.

        Returns:
            The captured frame, or None if the camera is not open or the
            capture failed.
        """
        if self._state != CameraState.OPEN:
            self.logger.warning("camera_not_ready", state=self._state.value)
            return None

        self._set_state(CameraState.SESSION_CONFIGURING)
        try:
            self._set_state(CameraState.CAPTURING)
            frame = await self.backend.capture()
        except (OSError, RuntimeError) as e:
            self.logger.exception("capture_failed", error=str(e))
            return None
        finally:
            if self._state == CameraState.CAPTURING:
                self._set_state(CameraState.OPEN)

        self.logger.debug("capture_complete", frame_id=frame.frame_id)
        return frame

    async def shutdown(self) -> None:
        """Close the camera."""
        if self._state == CameraState.CLOSED:
            return

        self._set_state(CameraState.CLOSING)
        try:
            await self.backend.close()
        finally:
            self._set_state(CameraState.CLOSED)

    def describe_formats(self) -> dict:
        """Describe what the camera backend can deliver."""
        info = self.backend.describe_formats()
        info["state"] = self._state.value
        return info
