from .models.errors import (
    PixelExtractionError,
    InvalidImageError,
    AllocationError,
    DecodeError,
)
from .models.pixel_buffer import PixelBuffer
from .models.source_image import SourceImage
from .services.pixel_extractor_service import PixelExtractor

__all__ = [
    "PixelExtractor",
    "PixelBuffer",
    "SourceImage",
    "PixelExtractionError",
    "InvalidImageError",
    "AllocationError",
    "DecodeError",
]
