from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import numpy as np

CHANNELS = 4  # R, G, B, A


def _bytes_backed(arr: np.ndarray) -> bool:
    base = arr
    while isinstance(base, np.ndarray):
        base = base.base
    if isinstance(base, memoryview):
        base = base.obj
    return isinstance(base, bytes)


def _frozen_copy(arr: np.ndarray) -> np.ndarray:
    """Copy into an immutable bytes object; the result can never be made writeable."""
    return np.frombuffer(arr.tobytes(), dtype=np.uint8).reshape(arr.shape)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    Immutable RGBA pixel buffer.

    pixels is a read-only (H, W, 4) uint8 array, row 0 = visual top row.
    Its memory is an immutable bytes object: arrays backed by anything else
    are copied once on construction.
    Consumers that need the bytes after the owner is gone must copy them
    with tobytes() or to_numpy().
    """
    width: int
    height: int
    pixels: np.ndarray  # Shape (H, W, 4), dtype uint8, straight RGBA.

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"PixelBuffer needs positive dimensions, got {self.width}x{self.height}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"PixelBuffer pixels must be uint8, got {self.pixels.dtype}")
        expected = (self.height, self.width, CHANNELS)
        if self.pixels.shape != expected:
            raise ValueError(f"PixelBuffer pixels shape {self.pixels.shape} != {expected}")
        if not self.pixels.flags["C_CONTIGUOUS"]:
            raise ValueError("PixelBuffer pixels must be C-contiguous")
        if not _bytes_backed(self.pixels):
            object.__setattr__(self, "pixels", _frozen_copy(self.pixels))

    @property
    def nbytes(self) -> int:
        return self.width * self.height * CHANNELS

    @property
    def data(self) -> memoryview:
        """Read-only, row-major view of exactly width * height * 4 bytes."""
        return self.pixels.reshape(-1).data

    def __len__(self) -> int:
        return self.nbytes

    def _check_row(self, y: int) -> None:
        if not 0 <= y < self.height:
            raise IndexError(f"row {y} outside 0..{self.height - 1}")

    def pixel_at(self, x: int, y: int) -> Tuple[int, int, int, int]:
        self._check_row(y)
        if not 0 <= x < self.width:
            raise IndexError(f"column {x} outside 0..{self.width - 1}")
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def row(self, y: int) -> memoryview:
        """Read-only view of the width * 4 bytes of row y."""
        self._check_row(y)
        return self.pixels[y].reshape(-1).data

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_numpy(self) -> np.ndarray:
        """Writeable copy, safe to keep after the buffer is released."""
        return self.pixels.copy()
