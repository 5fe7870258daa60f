from __future__ import annotations
from io import BytesIO
from pathlib import Path
from typing import Union, Iterable, Iterator
import logging
import os
import cv2
import numpy as np
from PIL import ExifTags, Image as PILImage
from dotenv import load_dotenv

from ..models.errors import AllocationError, DecodeError, PixelExtractionError
from ..models.source_image import ORIENTATIONS, SourceImage

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_EXTENSIONS = ".png,.jpg,.jpeg,.bmp,.gif,.tif,.tiff,.webp"

# cv2.imread(IMREAD_UNCHANGED) channel count -> layout
_CV_ORDERS = {1: "L", 3: "BGR", 4: "BGRA"}


class ImageRepository:
    """
    Handles file I/O for SourceImage entities.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS") or DEFAULT_IMAGE_EXTENSIONS
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def load(path: Union[str, Path]) -> SourceImage:
        """
        Open with Pillow.  Pixels are decoded lazily by the extractor,
        EXIF orientation stays attached to the image.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found: {path}")
        return SourceImage(ImageRepository._open(path, str(path)), path=path)

    @staticmethod
    def load_bytes(data: bytes, path: Union[str, Path] = None) -> SourceImage:
        img = ImageRepository._open(BytesIO(data), "image stream")
        return SourceImage(img, path=Path(path) if path is not None else None)

    @staticmethod
    def _open(fp, name: str) -> PILImage.Image:
        """
        PILImage.open with its failures mapped: oversized images raise
        AllocationError, unidentified or unreadable ones DecodeError.
        """
        try:
            return PILImage.open(fp)
        except PILImage.DecompressionBombError as err:
            raise AllocationError(f"Image too large to open: {name}: {err}") from err
        except FileNotFoundError:
            raise
        except OSError as err:
            raise DecodeError(f"Not a readable image: {name}: {err}") from err

    @staticmethod
    def load_array(path: Union[str, Path]) -> SourceImage:
        """
        Decode with OpenCV.  The array keeps OpenCV's BGR(A) layout and bit
        depth.  IMREAD_UNCHANGED ignores EXIF, so orientation is read from
        the file header with Pillow.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found: {path}")
        arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise DecodeError(f"Image unreadable by OpenCV: {path}")
        channels = 1 if arr.ndim == 2 else arr.shape[2]
        order = _CV_ORDERS.get(channels)
        if order is None:
            raise DecodeError(f"Unexpected channel count {channels} from OpenCV: {path}")
        return SourceImage(
            np.ascontiguousarray(arr),
            channel_order=order,
            orientation=ImageRepository._read_orientation(path),
            path=path,
        )

    @staticmethod
    def _read_orientation(path: Path) -> int:
        try:
            with PILImage.open(path) as img:
                value = img.getexif().get(ExifTags.Base.Orientation, 1)
        except (OSError, SyntaxError, ValueError, PILImage.DecompressionBombError):
            return 1
        return value if value in ORIENTATIONS else 1

    def iter_paths(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Path]:
        """
        Yield image file paths in name order, filtered by extension.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if not p.is_file():
                continue
            if p.suffix.lower() not in allowed:
                logger.debug(f"Skipping due to extension: {p}")
                continue
            yield p

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[SourceImage]:
        """
        Yield SourceImage objects one at a time.  Nothing accumulates in memory.
        """
        for p in self.iter_paths(folder, recursive=recursive, exts=exts):
            try:
                yield self.load(p)
            except PixelExtractionError as err:
                logger.warning(f"Skipping {p.name}: {err}")

