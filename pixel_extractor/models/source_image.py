from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union
import numpy as np
from PIL import Image as PILImage

# Channel layouts accepted for raw numpy sources.
CHANNEL_ORDERS = {
    "L": 1,
    "LA": 2,
    "RGB": 3,
    "BGR": 3,
    "RGBA": 4,
    "BGRA": 4,
    "ARGB": 4,
    "ABGR": 4,
}
DEFAULT_ORDER_BY_CHANNELS = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}

# EXIF orientation values 1..8.
ORIENTATIONS = range(1, 9)


@dataclass(frozen=True, eq=False)
class SourceImage:
    """
    Opaque handle to an already-decoded bitmap.

    image is either a PIL image (any mode) or a numpy array laid out as
    (H, W) or (H, W, C).  The extra fields describe what a bare array
    cannot: its channel order, whether alpha is premultiplied and the
    EXIF orientation it should be displayed with.
    Read-only input: nothing in this package mutates it.
    """
    image: Union[PILImage.Image, np.ndarray]
    channel_order: str | None = None  # Arrays only. Inferred from channel count when None.
    premultiplied: bool = False  # Arrays only. PIL carries this in its mode (RGBa, La).
    orientation: int | None = None  # None: PIL images read it from EXIF, arrays are upright.
    path: Path | None = None  # Source of the image, bookkeeping only.

    @property
    def is_array(self) -> bool:
        return isinstance(self.image, np.ndarray)

    @property
    def raw_size(self) -> Tuple[int, int]:
        """(width, height) of the stored pixels, before orientation is applied."""
        if self.is_array:
            return int(self.image.shape[1]), int(self.image.shape[0])
        return self.image.size
