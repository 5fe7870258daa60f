from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple
import logging

from ..models.errors import PixelExtractionError
from ..models.pixel_buffer import PixelBuffer
from ..models.source_image import SourceImage
from ..services.image_service import ImageService
from ..services.pixel_extractor_service import PixelExtractor

logger = logging.getLogger(__name__)


@dataclass
class GalleryResult:
    """Buffers that were extracted, and the sources that failed with their errors."""
    extracted: List[Tuple[SourceImage, PixelBuffer]] = field(default_factory=list)
    failed: List[Tuple[SourceImage, PixelExtractionError]] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)


def _raw_name(source: SourceImage, index: int) -> str:
    stem = source.path.stem if source.path is not None else f"image_{index:04d}"
    return f"{stem}.rgba"


def extract_gallery(
    gallery: Iterable[SourceImage],
    raw_dir: str | Path | None = None,
    extractor: PixelExtractor | None = None,
    image_service: ImageService | None = None,
) -> GalleryResult:
    """
    Extract every image of a gallery.  Failures are logged and collected,
    the rest of the gallery still runs.

    Args:
        gallery: SourceImages, typically ImageService.stream_gallery(...).
        raw_dir: When given, each buffer is written there as <stem>.rgba.
    """
    extractor = extractor or PixelExtractor()
    image_service = image_service or ImageService()
    result = GalleryResult()

    for index, source in enumerate(gallery):
        name = source.path.name if source.path is not None else f"#{index}"
        try:
            buffer = extractor.extract(source)
        except PixelExtractionError as err:
            logger.error(f"{name}: {type(err).__name__}: {err}")
            result.failed.append((source, err))
            continue
        finally:
            extractor.release()

        logger.info(f"{name}: {buffer.width}x{buffer.height}")
        result.extracted.append((source, buffer))

        if raw_dir is not None:
            out = image_service.save_raw(buffer, Path(raw_dir) / _raw_name(source, index))
            result.written.append(out)

    return result
