from __future__ import annotations
from pathlib import Path
from typing import Iterable, List, Union, Iterator
import numpy as np
from PIL import Image as PILImage

from ..models.pixel_buffer import PixelBuffer
from ..models.source_image import SourceImage
from ..repositories.image_repository import ImageRepository


class ImageService:
    """I/O helpers around SourceImage.  No pixel conversion happens here."""
    def __init__(self):
        self.image_repository = ImageRepository()

    def load(self, path: Union[str, Path], *, use_opencv: bool = False) -> SourceImage:
        """Load a single image from disk into a SourceImage."""
        if use_opencv:
            return self.image_repository.load_array(path)
        return self.image_repository.load(path)

    def load_bytes(self, data: bytes) -> SourceImage:
        return self.image_repository.load_bytes(data)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[SourceImage]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def list_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> List[Path]:
        return list(self.image_repository.iter_paths(folder, recursive=recursive, exts=exts))

    @staticmethod
    def to_pil_image(buffer: PixelBuffer) -> PILImage.Image:
        """
        Copy a PixelBuffer into a new RGBA PIL image (e.g. for previews).
        """
        return PILImage.fromarray(buffer.to_numpy())

    @staticmethod
    def save_raw(buffer: PixelBuffer, path: Union[str, Path]) -> Path:
        """
        Write the buffer's bytes verbatim: width * height * 4, RGBA, top row first.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(buffer.tobytes())
        return path

    @staticmethod
    def load_raw(path: Union[str, Path], width: int, height: int) -> np.ndarray:
        """
        Read a raw RGBA dump back as a (H, W, 4) uint8 array.
        """
        raw = np.fromfile(str(path), dtype=np.uint8)
        expected = width * height * 4
        if raw.size != expected:
            raise ValueError(f"{path} holds {raw.size} bytes, {width}x{height} RGBA needs {expected}")
        return raw.reshape((height, width, 4))
