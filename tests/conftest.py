"""Shared fixtures for the e-ink bitmap tests."""
import io

import pytest
from PIL import Image


def checkerboard(width, height, dark=(0, 0, 0), light=(255, 255, 255)):
    img = Image.new("RGB", (width, height), light)
    for y in range(height):
        for x in range(width):
            if (x + y) % 2 == 0:
                img.putpixel((x, y), dark)
    return img


def encode(img, fmt="PNG"):
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def write_image(tmp_path):
    """Save a Pillow image under tmp_path and return its path."""

    def _write(img, name="source.png", fmt="PNG"):
        path = tmp_path / name
        path.write_bytes(encode(img, fmt))
        return path

    return _write


@pytest.fixture
def make_checkerboard():
    return checkerboard


@pytest.fixture
def encode_image():
    return encode
