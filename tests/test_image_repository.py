import cv2
import numpy as np
import pytest
from PIL import Image

from pixel_extractor import AllocationError, DecodeError, PixelExtractor, SourceImage
from pixel_extractor.repositories.image_repository import ImageRepository
from pixel_extractor.services.image_service import ImageService


@pytest.fixture
def gallery_dir(tmp_path, quad_image, noise_png):
    quad_image.save(tmp_path / "quad.png")
    Image.new("RGBA", (3, 2), (1, 2, 3, 4)).save(tmp_path / "alpha.png")
    (tmp_path / "notes.txt").write_text("not an image")
    (tmp_path / "garbage.png").write_bytes(b"definitely not a png")
    (tmp_path / "nested").mkdir()
    Image.new("L", (4, 4), 9).save(tmp_path / "nested" / "gray.bmp")
    return tmp_path


def test_load_keeps_path(gallery_dir):
    source = ImageRepository.load(gallery_dir / "quad.png")
    assert isinstance(source, SourceImage)
    assert source.path == gallery_dir / "quad.png"
    assert source.raw_size == (2, 2)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ImageRepository.load(tmp_path / "nope.png")


def test_load_garbage_is_decode_error(gallery_dir):
    with pytest.raises(DecodeError):
        ImageRepository.load(gallery_dir / "garbage.png")


def test_oversized_file_is_allocation_error(monkeypatch, gallery_dir, to_png, quad_image):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1)
    with pytest.raises(AllocationError):
        ImageRepository.load(gallery_dir / "alpha.png")
    with pytest.raises(AllocationError):
        ImageRepository.load_bytes(to_png(quad_image))


def test_unreadable_file_is_decode_error(monkeypatch, gallery_dir):
    def _denied(fp, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(fp))

    monkeypatch.setattr(Image, "open", _denied)
    with pytest.raises(DecodeError):
        ImageRepository.load(gallery_dir / "quad.png")


def test_load_bytes(to_png, quad_image):
    source = ImageService().load_bytes(to_png(quad_image))
    assert source.path is None
    assert PixelExtractor().extract(source).pixel_at(1, 0) == (0, 255, 0, 255)


def test_load_array_matches_pillow(gallery_dir):
    via_cv = ImageRepository.load_array(gallery_dir / "alpha.png")
    via_pil = ImageRepository.load(gallery_dir / "alpha.png")
    assert via_cv.channel_order == "BGRA"
    assert via_cv.orientation == 1
    assert PixelExtractor().extract(via_cv).tobytes() == PixelExtractor().extract(via_pil).tobytes()


def test_load_array_reads_exif_orientation(tmp_path, wide_array):
    exif = Image.Exif()
    exif[0x0112] = 6
    Image.fromarray(wide_array).save(tmp_path / "rotated.png", exif=exif)
    source = ImageRepository.load_array(tmp_path / "rotated.png")
    assert source.orientation == 6
    buf = PixelExtractor().extract(source)
    assert (buf.width, buf.height) == (2, 3)
    assert buf.pixel_at(0, 0) == (255, 255, 255, 255)


def test_load_array_unreadable(gallery_dir):
    with pytest.raises(DecodeError):
        ImageRepository.load_array(gallery_dir / "garbage.png")


def test_iter_dir_filters_and_skips(gallery_dir):
    names = [s.path.name for s in ImageRepository().iter_dir(gallery_dir)]
    assert names == ["alpha.png", "quad.png"]


def test_iter_dir_skips_oversized_files(monkeypatch, gallery_dir):
    # 2x2 quad.png stays under the 4-pixel bomb ceiling, 3x2 alpha.png does not
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 2)
    names = [s.path.name for s in ImageRepository().iter_dir(gallery_dir)]
    assert names == ["quad.png"]


def test_iter_dir_recursive(gallery_dir):
    names = [s.path.name for s in ImageRepository().iter_dir(gallery_dir, recursive=True)]
    assert names == ["alpha.png", "gray.bmp", "quad.png"]


def test_extensions_from_environment(monkeypatch, gallery_dir):
    monkeypatch.setenv("VALID_IMAGE_EXTENSIONS", ".BMP")
    names = [p.name for p in ImageRepository().iter_paths(gallery_dir, recursive=True)]
    assert names == ["gray.bmp"]


def test_iter_dir_needs_directory(gallery_dir):
    with pytest.raises(NotADirectoryError):
        list(ImageRepository().iter_dir(gallery_dir / "quad.png"))


def test_raw_round_trip(tmp_path, quad_image):
    service = ImageService()
    buf = PixelExtractor().extract(quad_image)
    out = service.save_raw(buf, tmp_path / "raw" / "quad.rgba")
    assert out.stat().st_size == 16
    assert (service.load_raw(out, 2, 2) == buf.pixels).all()
    with pytest.raises(ValueError):
        service.load_raw(out, 3, 2)


def test_to_pil_image(quad_image):
    buf = PixelExtractor().extract(quad_image)
    img = ImageService.to_pil_image(buf)
    assert img.mode == "RGBA"
    assert img.getpixel((0, 1)) == (0, 0, 255, 255)


def test_service_opencv_switch(gallery_dir):
    source = ImageService().load(gallery_dir / "quad.png", use_opencv=True)
    assert source.channel_order == "BGR"
    assert isinstance(source.image, np.ndarray)
    assert source.image[0, 0].tolist() == [0, 0, 255]
    assert cv2.cvtColor(source.image, cv2.COLOR_BGR2RGB)[0, 0].tolist() == [255, 0, 0]
