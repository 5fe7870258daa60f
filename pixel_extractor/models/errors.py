class PixelExtractionError(Exception):
    """Base class for every failure raised while turning an image into a PixelBuffer."""


class InvalidImageError(PixelExtractionError):
    """The input is missing, empty, or not an image layout we can read."""


class AllocationError(PixelExtractionError):
    """The RGBA buffer could not be allocated (too many pixels or out of memory)."""


class DecodeError(PixelExtractionError):
    """The source image's backing data could not be rasterized."""
