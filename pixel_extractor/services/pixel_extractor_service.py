from __future__ import annotations
from typing import Union
import logging
import os
import numpy as np
from PIL import Image as PILImage
from dotenv import load_dotenv

from ..models.errors import AllocationError, DecodeError, InvalidImageError
from ..models.pixel_buffer import CHANNELS, PixelBuffer
from ..models.source_image import SourceImage
from ..repositories.raster_repository import RasterRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Pillow's decompression-bomb ceiling (2 * Image.MAX_IMAGE_PIXELS).
DEFAULT_MAX_PIXELS = 178956970

ImageLike = Union[SourceImage, PILImage.Image, np.ndarray]


class PixelExtractor:
    """
    Turns a decoded image into an owned, immutable RGBA PixelBuffer.

    The extractor owns the buffer it produced last (``buffer``) until
    ``release()`` is called or the ``with`` block exits.  Consumers that
    keep pixels longer must copy them (PixelBuffer.tobytes / to_numpy).
    """

    def __init__(self, max_pixels: int | None = None, raster_repository: RasterRepository | None = None):
        if max_pixels is None:
            max_pixels = int(os.getenv("PIXEL_EXTRACTOR_MAX_PIXELS", str(DEFAULT_MAX_PIXELS)))
        self.max_pixels = max_pixels
        self.raster_repository = raster_repository or RasterRepository()
        self._buffer: PixelBuffer | None = None

    @classmethod
    def from_image(cls, image: ImageLike, **kwargs) -> "PixelExtractor":
        """Create an extractor and parse ``image`` in one step."""
        extractor = cls(**kwargs)
        extractor.extract(image)
        return extractor

    # ─── read-only view of the owned buffer ──────────────────────────
    @property
    def buffer(self) -> PixelBuffer | None:
        return self._buffer

    @property
    def width(self) -> int:
        return self._buffer.width if self._buffer is not None else 0

    @property
    def height(self) -> int:
        return self._buffer.height if self._buffer is not None else 0

    @property
    def data(self) -> memoryview | None:
        return self._buffer.data if self._buffer is not None else None

    def release(self) -> None:
        self._buffer = None

    def __enter__(self) -> "PixelExtractor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    # ─── extraction ──────────────────────────────────────────────────
    @staticmethod
    def _as_source(image) -> SourceImage:
        if image is None:
            raise InvalidImageError("No image given")
        if isinstance(image, SourceImage):
            source = image
        elif isinstance(image, (PILImage.Image, np.ndarray)):
            source = SourceImage(image)
        else:
            raise InvalidImageError(f"Unsupported image type: {type(image).__name__}")
        if source.image is None:
            raise InvalidImageError("SourceImage has no image")
        return source

    def _check_limit(self, width: int, height: int) -> None:
        pixel_count = width * height
        if pixel_count > self.max_pixels:
            raise AllocationError(
                f"{width}x{height} image has {pixel_count} pixels, limit is {self.max_pixels}"
            )

    def extract(self, image: ImageLike) -> PixelBuffer:
        """
        Args:
            image: SourceImage, PIL image or numpy array.

        Returns:
            PixelBuffer: width/height of the upright image, RGBA rows top to bottom.

        Raises:
            InvalidImageError, AllocationError, DecodeError
        """
        self.release()
        source = self._as_source(image)

        # Read dimensions as displayed
        width, height = self.raster_repository.retrieve_size(source)
        if width <= 0 or height <= 0:
            raise InvalidImageError(f"Image has no pixels: {width}x{height}")

        # Refuse oversized images before rasterizing anything
        self._check_limit(width, height)

        rgba = self.raster_repository.retrieve_rgba(source)
        expected = (height, width, CHANNELS)
        if rgba.shape != expected or rgba.dtype != np.uint8 or not rgba.flags["C_CONTIGUOUS"]:
            raise DecodeError(
                f"Rasterized {rgba.dtype} {rgba.shape} does not match expected contiguous uint8 {expected}"
            )

        # Engine output becomes the storage; only non-bytes arrays are copied
        try:
            buffer = PixelBuffer(width=width, height=height, pixels=rgba)
        except MemoryError as err:
            raise AllocationError(
                f"Cannot allocate {width * height * CHANNELS} bytes for {width}x{height} RGBA"
            ) from err
        self._buffer = buffer
        logger.debug(f"Extracted {width}x{height} RGBA ({buffer.nbytes} bytes)"
                     + (f" from {source.path}" if source.path else ""))
        return buffer
