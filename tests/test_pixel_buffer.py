import dataclasses
import numpy as np
import pytest

from pixel_extractor.models.pixel_buffer import PixelBuffer


def make_buffer(width=3, height=2):
    pixels = np.arange(width * height * 4, dtype=np.uint8).reshape((height, width, 4))
    return PixelBuffer(width=width, height=height, pixels=pixels)


def test_length_is_explicit():
    buf = make_buffer(3, 2)
    assert buf.nbytes == 24
    assert len(buf) == 24
    assert len(buf.data) == 24
    assert buf.data.readonly


def test_data_is_row_major_rgba():
    buf = make_buffer(3, 2)
    assert list(buf.data) == list(range(24))
    assert buf.pixel_at(0, 0) == (0, 1, 2, 3)
    assert buf.pixel_at(2, 1) == (20, 21, 22, 23)
    assert bytes(buf.row(1)) == bytes(range(12, 24))


def test_rejects_writes():
    buf = make_buffer()
    with pytest.raises(ValueError):
        buf.pixels[0, 0, 0] = 9
    with pytest.raises(TypeError):
        buf.data[0] = 9
    with pytest.raises(dataclasses.FrozenInstanceError):
        buf.width = 10


def test_writeable_flag_cannot_be_restored():
    buf = make_buffer()
    with pytest.raises(ValueError):
        buf.pixels.flags.writeable = True
    assert not buf.pixels.flags.writeable


def test_caller_array_is_not_shared():
    pixels = np.arange(24, dtype=np.uint8).reshape((2, 3, 4))
    buf = PixelBuffer(width=3, height=2, pixels=pixels)
    pixels[0, 0, 0] = 200
    assert pixels.flags.writeable
    assert buf.pixel_at(0, 0)[0] == 0
    assert not np.shares_memory(buf.pixels, pixels)


def test_bytes_backed_pixels_are_kept():
    pixels = np.frombuffer(bytes(range(24)), dtype=np.uint8).reshape((2, 3, 4))
    buf = PixelBuffer(width=3, height=2, pixels=pixels)
    assert buf.pixels is pixels


def test_accessors_are_bounds_checked():
    buf = make_buffer(3, 2)
    with pytest.raises(IndexError):
        buf.pixel_at(3, 0)
    with pytest.raises(IndexError):
        buf.pixel_at(0, 2)
    with pytest.raises(IndexError):
        buf.pixel_at(-1, 0)
    with pytest.raises(IndexError):
        buf.row(2)


def test_copies_are_independent():
    buf = make_buffer()
    copy = buf.to_numpy()
    copy[0, 0, 0] = 200
    assert buf.pixel_at(0, 0)[0] == 0
    assert buf.tobytes() == bytes(range(24))


@pytest.mark.parametrize("width, height, shape, dtype", [
    (3, 2, (2, 3, 3), np.uint8),    # missing alpha channel
    (3, 2, (3, 2, 4), np.uint8),    # width/height swapped
    (3, 2, (2, 3, 4), np.uint16),   # wrong sample type
    (0, 2, (2, 0, 4), np.uint8),    # empty
])
def test_construction_validates_layout(width, height, shape, dtype):
    with pytest.raises(ValueError):
        PixelBuffer(width=width, height=height, pixels=np.zeros(shape, dtype=dtype))


def test_non_contiguous_pixels_rejected():
    pixels = np.zeros((3, 2, 4), dtype=np.uint8).transpose(1, 0, 2)
    with pytest.raises(ValueError):
        PixelBuffer(width=3, height=2, pixels=pixels)
