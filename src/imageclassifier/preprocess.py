"""Camera frame preprocessing.

Turns a camera frame of fixed preview size into the square image the
classification model expects:

- decode the frame payload (encoded JPEG/PNG or raw interleaved RGB)
- keep only the centered square of the frame
- rescale it to ``target_size x target_size``
- rotate it by the sensor orientation around the image center

The output array is owned by the preprocessor and overwritten on every call,
so a single instance must not be shared between concurrent callers.
"""

from __future__ import annotations

import io
import tempfile
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

from imageclassifier.common.logging import get_logger
from imageclassifier.errors import DecodeFailure, DimensionMismatch, PersistFailure

if TYPE_CHECKING:
    from imageclassifier.config import Config

logger = get_logger("preprocess")

# Formats carrying row-major interleaved 8-bit RGB samples
RAW_FORMATS = ("rgb", "raw")

PREVIEW_FILENAME = "tensorflow_preview.png"


@dataclass(frozen=True)
class RawFrame:
    """Camera frame as delivered by a frame source."""

    width: int
    height: int
    data: bytes
    format: str = "jpeg"
    frame_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_array(cls, array: np.ndarray, frame_id: str | None = None) -> RawFrame:
        """Wrap an HxWxC uint8 array as a raw RGB frame.

        Extra channels (e.g. the X of XRGB camera buffers) are dropped.
        """
        pixels = np.ascontiguousarray(array[..., :3], dtype=np.uint8)
        height, width = pixels.shape[:2]
        return cls(
            width=width,
            height=height,
            data=pixels.tobytes(),
            format="rgb",
            frame_id=frame_id or str(uuid.uuid4()),
        )


def center_crop_box(width: int, height: int) -> tuple[int, int, int, int]:
    """Return the (left, top, right, bottom) box of the centered square."""
    min_dim = min(width, height)
    left = max(0, (width - min_dim) // 2)
    top = max(0, (height - min_dim) // 2)
    return left, top, left + min_dim, top + min_dim


def crop_and_rescale(
    src: np.ndarray,
    dst: np.ndarray,
    sensor_orientation: int = 0,
) -> np.ndarray:
    """Crop the center square of ``src`` and draw it scaled into ``dst``.

    Args:
        src: HxWx3 uint8 source image.
        dst: Square SxSx3 uint8 array, overwritten in place.
        sensor_orientation: Clockwise rotation in degrees, applied after
            cropping and scaling, around the center of ``dst``.

    Returns:
        ``dst``.

    Raises:
        ValueError: If ``dst`` is not square or ``src`` is empty.
    """
    if dst.ndim != 3 or dst.shape[0] != dst.shape[1]:
        raise ValueError(f"Destination must be square, got shape {dst.shape}")

    height, width = src.shape[:2]
    if width == 0 or height == 0:
        raise ValueError(f"Cannot crop an empty image of size {width}x{height}")

    size = dst.shape[0]
    image = Image.fromarray(src[..., :3]).crop(center_crop_box(width, height))

    if image.size != (size, size):
        image = image.resize((size, size), Image.Resampling.BILINEAR)

    # PIL rotates counter-clockwise; right angles on a square are exact transposes
    if sensor_orientation % 360:
        image = image.rotate(-sensor_orientation, resample=Image.Resampling.BILINEAR)

    np.copyto(dst, np.asarray(image))
    return dst


def save_preview(image: np.ndarray, path: Path | str) -> Path:
    """Save an image to disk as PNG for offline inspection.

    Raises:
        PersistFailure: If the file could not be written.
    """
    path = Path(path)
    logger.debug(
        "saving_preview",
        width=image.shape[1],
        height=image.shape[0],
        path=str(path),
    )

    try:
        path.unlink(missing_ok=True)
        Image.fromarray(image).save(path, format="PNG")
    except (OSError, ValueError) as e:
        raise PersistFailure(f"Could not save preview to {path}: {e}") from e

    return path


class ImagePreprocessor:
    """Extracts a model-ready square image from fixed-size camera frames."""

    def __init__(
        self,
        preview_width: int,
        preview_height: int,
        target_size: int = 224,
        sensor_orientation: int = 0,
        save_preview: bool = False,
        preview_path: Path | str | None = None,
    ) -> None:
        """Initialize the preprocessor.

        Args:
            preview_width: Width every incoming frame must have.
            preview_height: Height every incoming frame must have.
            target_size: Side length of the square output image.
            sensor_orientation: Clockwise rotation in degrees.
            save_preview: Write every output image to ``preview_path``.
            preview_path: Debug image location (temp dir if None).
        """
        if preview_width <= 0 or preview_height <= 0:
            raise ValueError(
                f"Invalid preview size {preview_width}x{preview_height}"
            )
        if target_size <= 0:
            raise ValueError(f"Invalid target size {target_size}")

        self.preview_width = preview_width
        self.preview_height = preview_height
        self.target_size = target_size
        self.sensor_orientation = sensor_orientation
        self.save_preview = save_preview
        self.preview_path = Path(
            preview_path or Path(tempfile.gettempdir()) / PREVIEW_FILENAME
        )

        self._frame_buffer = np.zeros((preview_height, preview_width, 3), dtype=np.uint8)
        self._output = np.zeros((target_size, target_size, 3), dtype=np.uint8)

    @classmethod
    def from_config(cls, config: Config) -> ImagePreprocessor:
        """Create a preprocessor from the camera and preprocess sections."""
        return cls(
            preview_width=config.camera.preview_width,
            preview_height=config.camera.preview_height,
            target_size=config.preprocess.target_size,
            sensor_orientation=config.preprocess.sensor_orientation,
            save_preview=config.preprocess.save_preview,
            preview_path=config.preprocess.preview_path,
        )

    @property
    def preview_size(self) -> tuple[int, int]:
        """Expected (width, height) of incoming frames."""
        return self.preview_width, self.preview_height

    @property
    def output(self) -> np.ndarray:
        """The reusable output image."""
        return self._output

    def preprocess(self, frame: RawFrame | None) -> np.ndarray | None:
        """Convert a camera frame into the square model input image.

        Args:
            frame: Frame of exactly the configured preview size.

        Returns:
            The preprocessor's output array (valid until the next call), or
            None if there is no frame or it could not be decoded.

        Raises:
            DimensionMismatch: If the frame size differs from the preview size.
        """
        if frame is None:
            return None

        if (frame.width, frame.height) != self.preview_size:
            raise DimensionMismatch(self.preview_size, (frame.width, frame.height))

        try:
            self._decode_into_buffer(frame)
        except DecodeFailure as e:
            logger.warning("frame_decode_failed", frame_id=frame.frame_id, error=str(e))
            return None

        crop_and_rescale(self._frame_buffer, self._output, self.sensor_orientation)

        if self.save_preview:
            try:
                save_preview(self._output, self.preview_path)
            except PersistFailure as e:
                logger.warning("preview_save_failed", error=str(e))

        return self._output

    def _decode_into_buffer(self, frame: RawFrame) -> None:
        """Decode the frame payload into the full-frame buffer."""
        if frame.format.lower() in RAW_FORMATS:
            expected = frame.width * frame.height * 3
            if len(frame.data) != expected:
                raise DecodeFailure(
                    f"Raw frame has {len(frame.data)} bytes, expected {expected}"
                )
            pixels = np.frombuffer(frame.data, dtype=np.uint8).reshape(
                frame.height, frame.width, 3
            )
        else:
            try:
                with Image.open(io.BytesIO(frame.data)) as img:
                    # Header size is checked before any pixel data is decoded
                    if img.size != (frame.width, frame.height):
                        raise DecodeFailure(
                            f"Encoded size {img.size[0]}x{img.size[1]} does not "
                            f"match frame size {frame.width}x{frame.height}"
                        )
                    decoded = img.convert("RGB")
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                raise DecodeFailure(f"Cannot decode {frame.format} frame: {e}") from e

            pixels = np.asarray(decoded)

        np.copyto(self._frame_buffer, pixels)
