# models/raster_engine.py
"""
Rasterizers behind one capability: decode_and_normalize(source) -> RGBA.

• PillowRasterEngine  – PIL images of any mode, EXIF orientation.
• ArrayRasterEngine   – raw numpy arrays (OpenCV BGR/BGRA, gray, ...).

Both return a (H, W, 4) uint8 array of straight RGBA whose row 0 is the
visual top row.  Engines hold no per-call state.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Dict, Tuple
import cv2
import numpy as np
from PIL import ExifTags, Image as PILImage

from .errors import InvalidImageError
from .pixel_buffer import CHANNELS
from .source_image import (
    CHANNEL_ORDERS,
    DEFAULT_ORDER_BY_CHANNELS,
    ORIENTATIONS,
    SourceImage,
)

# Orientations 5..8 swap width and height.
_SWAPS_AXES = {5, 6, 7, 8}

_PIL_TRANSPOSE = {
    2: PILImage.Transpose.FLIP_LEFT_RIGHT,
    3: PILImage.Transpose.ROTATE_180,
    4: PILImage.Transpose.FLIP_TOP_BOTTOM,
    5: PILImage.Transpose.TRANSPOSE,
    6: PILImage.Transpose.ROTATE_270,
    7: PILImage.Transpose.TRANSVERSE,
    8: PILImage.Transpose.ROTATE_90,
}

# Same transforms on (H, W, C) arrays.  np.rot90 turns counter-clockwise.
_ARRAY_TRANSFORMS: Dict[int, Callable[[np.ndarray], np.ndarray]] = {
    2: lambda a: a[:, ::-1],
    3: lambda a: a[::-1, ::-1],
    4: lambda a: a[::-1],
    5: lambda a: a.transpose(1, 0, 2),
    6: lambda a: np.rot90(a, -1),
    7: lambda a: np.rot90(a, 2).transpose(1, 0, 2),
    8: lambda a: np.rot90(a, 1),
}

# PIL modes Image.convert("RGBA") handles directly.
_DIRECT_RGBA_MODES = {"1", "L", "LA", "P", "PA", "RGB", "RGBA", "RGBa", "CMYK"}
# PIL modes whose samples are wider than 8 bits.
_WIDE_MODES = {"I", "F"}


def oriented_size(width: int, height: int, orientation: int) -> Tuple[int, int]:
    return (height, width) if orientation in _SWAPS_AXES else (width, height)


def check_orientation(orientation) -> int:
    try:
        value = int(orientation)
    except (TypeError, ValueError):
        raise InvalidImageError(f"Orientation must be an EXIF value 1-8, got {orientation!r}")
    if value not in ORIENTATIONS:
        raise InvalidImageError(f"Orientation must be an EXIF value 1-8, got {value}")
    return value


def to_uint8(arr: np.ndarray) -> np.ndarray:
    """
    Scale samples into 0..255.

    uint8 passes through, bool maps to 0/255 and 16-bit unsigned samples are
    shifted down by 8.  Other integer types already hold 8-bit values and are
    clipped to 0..255, as Pillow does for mode I.  Floats are treated as [0, 1].
    """
    if arr.dtype == np.uint8:
        return arr
    if arr.dtype == np.bool_:
        return arr.astype(np.uint8) * 255
    if arr.dtype.kind == "u" and arr.dtype.itemsize == 2:
        return (arr.astype(np.uint16) >> 8).astype(np.uint8)
    if arr.dtype.kind == "u":
        return np.minimum(arr, 255).astype(np.uint8)
    if np.issubdtype(arr.dtype, np.integer):
        return np.clip(arr.astype(np.int64), 0, 255).astype(np.uint8)
    if np.issubdtype(arr.dtype, np.floating):
        scaled = np.rint(np.clip(np.nan_to_num(arr.astype(np.float64)), 0.0, 1.0) * 255.0)
        return scaled.astype(np.uint8)
    raise InvalidImageError(f"Unsupported pixel dtype: {arr.dtype}")


def unpremultiply(rgba: np.ndarray) -> np.ndarray:
    """Divide colour by alpha (rounded). Fully transparent pixels become (0, 0, 0, 0)."""
    alpha = rgba[..., 3:4].astype(np.uint32)
    color = rgba[..., :3].astype(np.uint32)
    straight = (color * 255 + alpha // 2) // np.maximum(alpha, 1)
    straight = np.where(alpha > 0, np.minimum(straight, 255), 0)
    out = np.empty_like(rgba)
    out[..., :3] = straight.astype(np.uint8)
    out[..., 3] = rgba[..., 3]
    return out


class RasterEngine(ABC):
    """
    decode-and-normalize capability.  One instance per engine class.
    """
    _instance: "RasterEngine" | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @abstractmethod
    def accepts(self, source: SourceImage) -> bool:
        ...

    @abstractmethod
    def orientation(self, source: SourceImage) -> int:
        ...

    def validate(self, source: SourceImage) -> None:
        """Raise InvalidImageError if the source layout can't be read at all."""

    def oriented_size(self, source: SourceImage) -> Tuple[int, int]:
        """(width, height) as a viewer sees the image."""
        width, height = source.raw_size
        return oriented_size(width, height, self.orientation(source))

    @abstractmethod
    def decode_and_normalize(self, source: SourceImage) -> np.ndarray:
        """
        Returns
        -------
        rgba : np.ndarray  (H, W, 4)  uint8  straight RGBA, visual top row first
        """


class PillowRasterEngine(RasterEngine):

    def accepts(self, source: SourceImage) -> bool:
        return isinstance(source.image, PILImage.Image)

    def orientation(self, source: SourceImage) -> int:
        if source.orientation is not None:
            return check_orientation(source.orientation)
        value = source.image.getexif().get(ExifTags.Base.Orientation, 1)
        # Unknown EXIF values are treated as upright, like ImageOps.exif_transpose.
        try:
            value = int(value)
        except (TypeError, ValueError):
            return 1
        return value if value in ORIENTATIONS else 1

    # --------------------------------------------------
    @staticmethod
    def _wide_to_rgba(img: PILImage.Image) -> np.ndarray:
        # I;16 is shifted, I is clipped, F is scaled from [0, 1].
        gray = to_uint8(np.asarray(img))
        return cv2.cvtColor(np.ascontiguousarray(gray), cv2.COLOR_GRAY2RGBA)

    @staticmethod
    def _to_rgba(img: PILImage.Image) -> np.ndarray:
        mode = img.mode
        if mode.startswith("I;16") or mode in _WIDE_MODES:
            return PillowRasterEngine._wide_to_rgba(img)
        if mode == "La":
            img = img.convert("LA")
        elif mode not in _DIRECT_RGBA_MODES:
            # RGBX, YCbCr, LAB, HSV, ...
            img = img.convert("RGB")
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        # tobytes() is the only full-size copy; PixelBuffer keeps it as is.
        return np.frombuffer(img.tobytes(), dtype=np.uint8).reshape((img.height, img.width, CHANNELS))

    def decode_and_normalize(self, source: SourceImage) -> np.ndarray:
        img: PILImage.Image = source.image
        img.load()  # Rasterize now so corrupt data fails here, not mid-copy.
        method = _PIL_TRANSPOSE.get(self.orientation(source))
        if method is not None:
            img = img.transpose(method)
        return self._to_rgba(img)


class ArrayRasterEngine(RasterEngine):
    """
    numpy sources, converted with OpenCV where it has a colour code.
    """
    _CV_CODES = {
        "L": cv2.COLOR_GRAY2RGBA,
        "RGB": cv2.COLOR_RGB2RGBA,
        "BGR": cv2.COLOR_BGR2RGBA,
        "BGRA": cv2.COLOR_BGRA2RGBA,
    }
    _REORDER = {
        "RGBA": [0, 1, 2, 3],
        "ARGB": [1, 2, 3, 0],
        "ABGR": [3, 2, 1, 0],
        "LA": [0, 0, 0, 1],
    }

    def accepts(self, source: SourceImage) -> bool:
        return isinstance(source.image, np.ndarray)

    def orientation(self, source: SourceImage) -> int:
        if source.orientation is None:
            return 1
        return check_orientation(source.orientation)

    def channel_order(self, source: SourceImage) -> str:
        arr: np.ndarray = source.image
        if arr.ndim not in (2, 3):
            raise InvalidImageError(f"Expected an (H, W) or (H, W, C) array, got shape {arr.shape}")
        channels = 1 if arr.ndim == 2 else arr.shape[2]
        order = source.channel_order
        if order is None:
            order = DEFAULT_ORDER_BY_CHANNELS.get(channels)
            if order is None:
                raise InvalidImageError(f"Cannot infer a channel order for {channels} channels")
            return order
        order = order.upper()
        if order not in CHANNEL_ORDERS:
            raise InvalidImageError(f"Unknown channel order {source.channel_order!r}")
        if CHANNEL_ORDERS[order] != channels:
            raise InvalidImageError(
                f"Channel order {order} needs {CHANNEL_ORDERS[order]} channels, array has {channels}"
            )
        return order

    def validate(self, source: SourceImage) -> None:
        self.channel_order(source)
        dtype = source.image.dtype
        if not (np.issubdtype(dtype, np.integer) or np.issubdtype(dtype, np.floating) or dtype == np.bool_):
            raise InvalidImageError(f"Unsupported pixel dtype: {dtype}")

    def decode_and_normalize(self, source: SourceImage) -> np.ndarray:
        order = self.channel_order(source)
        arr = to_uint8(np.asarray(source.image))
        if arr.ndim == 3 and arr.shape[2] == 1:
            arr = arr[:, :, 0]

        code = self._CV_CODES.get(order)
        if code is not None:
            rgba = cv2.cvtColor(np.ascontiguousarray(arr), code)
        else:
            rgba = arr[..., self._REORDER[order]]

        if source.premultiplied and "A" in order:
            rgba = unpremultiply(rgba)

        transform = _ARRAY_TRANSFORMS.get(self.orientation(source))
        if transform is not None:
            rgba = transform(rgba)
        return np.ascontiguousarray(rgba, dtype=np.uint8)
