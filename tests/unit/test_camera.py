"""Tests for the camera state machine and backends."""

import numpy as np
import pytest
from PIL import Image

from imageclassifier.camera import (
    CameraBackend,
    CameraHandler,
    CameraState,
    FileCameraBackend,
    MockCameraBackend,
    PiCameraBackend,
)
from imageclassifier.errors import CameraStateError
from imageclassifier.preprocess import RawFrame


class RecordingBackend(CameraBackend):
    """Backend recording the handler state seen at each call."""

    def __init__(self, handler_ref, fail_capture=None, open_result=True):
        self.handler_ref = handler_ref
        self.fail_capture = fail_capture
        self.open_result = open_result
        self.states = []

    async def open(self, width, height):
        self.states.append(("open", self.handler_ref[0].state))
        return self.open_result

    async def close(self):
        self.states.append(("close", self.handler_ref[0].state))

    async def capture(self):
        self.states.append(("capture", self.handler_ref[0].state))
        if self.fail_capture:
            raise self.fail_capture
        return RawFrame(width=4, height=4, data=bytes(48), format="rgb")

    def describe_formats(self):
        return {"backend": "recording"}


def make_handler(**kwargs):
    ref = []
    backend = RecordingBackend(ref, **kwargs)
    handler = CameraHandler(backend, 4, 4)
    ref.append(handler)
    return handler, backend


class TestCameraHandler:
    """Tests for CameraHandler."""

    @pytest.mark.asyncio
    async def test_lifecycle(self):
        handler, backend = make_handler()
        assert handler.state == CameraState.CLOSED

        assert await handler.initialize() is True
        assert handler.state == CameraState.OPEN

        frame = await handler.take_picture()
        assert frame is not None
        assert handler.state == CameraState.OPEN

        await handler.shutdown()
        assert handler.state == CameraState.CLOSED

        assert backend.states == [
            ("open", CameraState.OPENING),
            ("capture", CameraState.CAPTURING),
            ("close", CameraState.CLOSING),
        ]

    @pytest.mark.asyncio
    async def test_double_initialize(self):
        handler, _ = make_handler()
        await handler.initialize()

        with pytest.raises(CameraStateError):
            await handler.initialize()

    @pytest.mark.asyncio
    async def test_no_camera_found(self):
        handler, _ = make_handler(open_result=False)

        assert await handler.initialize() is False
        assert handler.state == CameraState.CLOSED

    @pytest.mark.asyncio
    async def test_capture_before_open(self):
        handler, backend = make_handler()

        assert await handler.take_picture() is None
        assert backend.states == []

    @pytest.mark.asyncio
    async def test_capture_failure_returns_to_open(self):
        handler, _ = make_handler(fail_capture=OSError("sensor timeout"))
        await handler.initialize()

        assert await handler.take_picture() is None
        assert handler.state == CameraState.OPEN

    @pytest.mark.asyncio
    async def test_shutdown_when_closed_is_noop(self):
        handler, backend = make_handler()

        await handler.shutdown()

        assert backend.states == []
        assert handler.state == CameraState.CLOSED

    @pytest.mark.asyncio
    async def test_reopen_after_shutdown(self):
        handler, _ = make_handler()
        await handler.initialize()
        await handler.shutdown()

        assert await handler.initialize() is True

    def test_describe_formats_includes_state(self):
        handler, _ = make_handler()

        info = handler.describe_formats()

        assert info == {"backend": "recording", "state": "closed"}

    def test_from_config_mock(self, mock_config):
        handler = CameraHandler.from_config(mock_config)

        assert isinstance(handler.backend, MockCameraBackend)
        assert (handler.preview_width, handler.preview_height) == (640, 480)

    def test_from_config_file_requires_path(self, mock_config):
        mock_config.mock_mode = False
        mock_config.camera.backend = "file"

        with pytest.raises(ValueError):
            CameraHandler.from_config(mock_config)

    def test_from_config_picamera(self, mock_config):
        mock_config.mock_mode = False
        mock_config.camera.backend = "picamera"

        handler = CameraHandler.from_config(mock_config)

        assert isinstance(handler.backend, PiCameraBackend)


class TestMockCameraBackend:
    """Tests for MockCameraBackend."""

    @pytest.mark.asyncio
    async def test_capture(self):
        backend = MockCameraBackend()
        await backend.open(320, 240)

        frame = await backend.capture()

        assert (frame.width, frame.height) == (320, 240)
        assert frame.format == "jpeg"
        assert frame.data[:2] == b"\xff\xd8"

    @pytest.mark.asyncio
    async def test_capture_when_closed(self):
        with pytest.raises(RuntimeError):
            await MockCameraBackend().capture()


class TestFileCameraBackend:
    """Tests for FileCameraBackend."""

    @pytest.mark.asyncio
    async def test_reads_image_file(self, tmp_path):
        path = tmp_path / "photo.png"
        Image.fromarray(np.zeros((30, 40, 3), dtype=np.uint8)).save(path)
        backend = FileCameraBackend(path)

        assert await backend.open(40, 30) is True
        frame = await backend.capture()

        assert (frame.width, frame.height) == (40, 30)
        assert frame.format == "png"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        backend = FileCameraBackend(tmp_path / "missing.jpg")

        assert await backend.open(640, 480) is False
