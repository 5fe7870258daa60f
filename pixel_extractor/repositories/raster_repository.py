# repositories/raster_repository.py
from __future__ import annotations
from typing import List, Sequence, Tuple
import logging
import cv2
import numpy as np
from PIL import Image as PILImage

from ..models.errors import AllocationError, DecodeError, InvalidImageError
from ..models.raster_engine import ArrayRasterEngine, PillowRasterEngine, RasterEngine
from ..models.source_image import SourceImage

logger = logging.getLogger(__name__)

# Library failures that mean "the pixels can't be read".
_DECODE_FAILURES = (OSError, SyntaxError, ValueError, cv2.error)


class RasterRepository:
    """
    One-image rasterization.

    • Picks the engine that understands the source.
    • Turns library failures into DecodeError / AllocationError.
    """

    def __init__(self, engines: Sequence[RasterEngine] | None = None) -> None:
        self.engines: List[RasterEngine] = list(engines or (PillowRasterEngine(), ArrayRasterEngine()))

    # ---------- private helpers ----------
    def _engine_for(self, source: SourceImage) -> RasterEngine:
        for engine in self.engines:
            if engine.accepts(source):
                return engine
        raise InvalidImageError(f"No raster engine for {type(source.image).__name__}")

    # ---------- public API ----------
    def retrieve_size(self, source: SourceImage) -> Tuple[int, int]:
        """
        Returns (width, height) after orientation is applied.
        """
        engine = self._engine_for(source)
        engine.validate(source)
        try:
            return engine.oriented_size(source)
        except _DECODE_FAILURES as err:
            raise DecodeError(f"Image metadata could not be read: {err}") from err

    def retrieve_rgba(self, source: SourceImage) -> np.ndarray:
        """
        Returns (H, W, 4) uint8 straight RGBA.
        """
        engine = self._engine_for(source)
        try:
            rgba = engine.decode_and_normalize(source)
        except (MemoryError, PILImage.DecompressionBombError) as err:
            raise AllocationError(f"Not enough memory to rasterize image: {err}") from err
        except _DECODE_FAILURES as err:
            raise DecodeError(f"Image data could not be rasterized: {err}") from err
        logger.debug(f"{type(engine).__name__} rasterized {rgba.shape[1]}x{rgba.shape[0]}")
        return rgba
