from io import BytesIO
import numpy as np
import pytest
from PIL import Image

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
YELLOW = (255, 255, 0)


def _png_bytes(img: Image.Image, **save_kwargs) -> bytes:
    out = BytesIO()
    img.save(out, format="PNG", **save_kwargs)
    return out.getvalue()


@pytest.fixture
def to_png():
    return _png_bytes


@pytest.fixture
def quad_image():
    """2x2 RGB: [red, green; blue, white]."""
    img = Image.new("RGB", (2, 2))
    img.putpixel((0, 0), RED)
    img.putpixel((1, 0), GREEN)
    img.putpixel((0, 1), BLUE)
    img.putpixel((1, 1), WHITE)
    return img


@pytest.fixture
def wide_array():
    """2 rows x 3 columns RGB: [red, green, blue; white, black, yellow]."""
    return np.array(
        [[RED, GREEN, BLUE],
         [WHITE, BLACK, YELLOW]],
        dtype=np.uint8,
    )


@pytest.fixture
def noise_png():
    rng = np.random.default_rng(0)
    arr = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
    return _png_bytes(Image.fromarray(arr))
