#!/usr/bin/env python3
"""
pixel-extract: turn image files into raw RGBA buffers.

    pixel-extract photo.jpg                 # prints "photo.jpg 640x480"
    pixel-extract shots/ --raw-dir out/     # writes out/<stem>.rgba per image
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List
from dotenv import load_dotenv

from ..models.errors import PixelExtractionError
from ..pipeline.extract_gallery import extract_gallery
from ..services.image_service import ImageService
from ..services.pixel_extractor_service import PixelExtractor

# Load environment variables first
load_dotenv()

logger = logging.getLogger(__name__)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pixel-extract", description=__doc__.strip().splitlines()[0])
    parser.add_argument("inputs", nargs="+", type=Path, help="image files or folders")
    parser.add_argument("--raw-dir", type=Path, default=os.getenv("RAW_OUTPUT_DIR"),
                        help="write <stem>.rgba dumps here (default: $RAW_OUTPUT_DIR)")
    parser.add_argument("--recursive", action="store_true", help="descend into sub-folders")
    parser.add_argument("--opencv", action="store_true", help="decode files with OpenCV instead of Pillow")
    parser.add_argument("--max-pixels", type=int, default=None,
                        help="refuse images above this pixel count (default: $PIXEL_EXTRACTOR_MAX_PIXELS)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def _collect_paths(image_service: ImageService, inputs, recursive: bool) -> List[Path]:
    paths = []
    for path in inputs:
        if path.is_dir():
            paths.extend(image_service.list_gallery(path, recursive=recursive))
        else:
            paths.append(path)
    return paths


def _load_all(image_service: ImageService, paths, use_opencv: bool):
    gallery, load_failures = [], 0
    for path in paths:
        try:
            gallery.append(image_service.load(path, use_opencv=use_opencv))
        except (OSError, PixelExtractionError) as err:
            logger.error(f"{path}: {err}")
            load_failures += 1
    return gallery, load_failures


def main(argv=None) -> int:
    args = _parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    image_service = ImageService()
    extractor = PixelExtractor(max_pixels=args.max_pixels)
    paths = _collect_paths(image_service, args.inputs, args.recursive)
    gallery, load_failures = _load_all(image_service, paths, args.opencv)

    result = extract_gallery(gallery, raw_dir=args.raw_dir, extractor=extractor, image_service=image_service)

    for source, buffer in result.extracted:
        print(f"{source.path.name} {buffer.width}x{buffer.height}")
    for out in result.written:
        logger.info(f"Wrote {out}")

    failures = load_failures + len(result.failed)
    if failures:
        logger.error(f"{failures} image(s) failed to extract")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
