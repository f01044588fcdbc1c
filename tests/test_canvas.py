"""Tests for decoding and nearest-neighbour resizing."""
import io

import numpy as np
import pytest
from PIL import Image

from canvas import (
    BLACK,
    MAX_VALUE,
    WHITE,
    composite_over,
    decode_image,
    load_image,
    nearest_indices,
    new_canvas,
    resize_nearest,
)
from epd_errors import DecodeError, InputError


@pytest.mark.parametrize("fmt", ["PNG", "JPEG", "BMP", "WEBP"])
def test_decode_supported_formats(fmt, encode_image):
    img = Image.new("RGB", (7, 5), (255, 255, 255))
    canvas = decode_image(io.BytesIO(encode_image(img, fmt)))
    assert canvas.shape == (5, 7, 4)
    assert canvas.dtype == np.uint16
    assert canvas[..., 3].min() == MAX_VALUE


def test_decode_widens_to_16_bit(encode_image):
    img = Image.new("RGBA", (2, 1), (255, 128, 0, 255))
    canvas = decode_image(io.BytesIO(encode_image(img)))
    assert canvas[0, 0].tolist() == [65535, 128 * 257, 0, 65535]


def test_format_is_sniffed_not_taken_from_name(write_image):
    path = write_image(Image.new("RGB", (4, 4)), name="actually-a-png.jpg", fmt="PNG")
    assert load_image(path).shape == (4, 4, 4)


def test_decode_rejects_garbage():
    with pytest.raises(DecodeError, match="unsupported image format"):
        decode_image(io.BytesIO(b"definitely not an image"))


def test_decode_rejects_unsupported_container(encode_image):
    gif = encode_image(Image.new("P", (4, 4)), "GIF")
    with pytest.raises(DecodeError):
        decode_image(io.BytesIO(gif))


def test_decode_rejects_truncated_stream(encode_image):
    rng = np.random.default_rng(0)
    noise = Image.fromarray(rng.integers(0, 256, size=(50, 50, 3), dtype=np.uint8))
    data = encode_image(noise)
    with pytest.raises(DecodeError):
        decode_image(io.BytesIO(data[: len(data) // 2]), "half.png")


def test_load_missing_file(tmp_path):
    with pytest.raises(InputError, match="opening"):
        load_image(tmp_path / "missing.png")


def test_nearest_indices_sample_pixel_centres():
    assert nearest_indices(2, 4).tolist() == [0, 0, 1, 1]
    assert nearest_indices(4, 2).tolist() == [1, 3]
    assert nearest_indices(120, 120).tolist() == list(range(120))


@pytest.mark.parametrize(
    "src, dst",
    [
        ((10, 10), (246, 128)),
        ((300, 200), (120, 128)),
        ((1, 1), (5, 3)),
        ((50, 500), (246, 128)),
    ],
)
def test_resize_yields_exact_target(src, dst):
    canvas = new_canvas(*src)
    out = resize_nearest(canvas, *dst)
    assert out.shape == (dst[1], dst[0], 4)


def test_resize_does_not_blend():
    red = (MAX_VALUE, 0, 0, MAX_VALUE)
    blue = (0, 0, MAX_VALUE, MAX_VALUE)
    canvas = new_canvas(2, 1)
    canvas[0, 0] = red
    canvas[0, 1] = blue

    out = resize_nearest(canvas, 4, 2)
    assert [tuple(p) for p in out[0]] == [red, red, blue, blue]
    assert (out[0] == out[1]).all()


def test_composite_over_backdrop():
    canvas = new_canvas(3, 1)
    canvas[0, 0] = (MAX_VALUE, MAX_VALUE, MAX_VALUE, 0)
    canvas[0, 1] = (MAX_VALUE, 0, 0, MAX_VALUE)
    canvas[0, 2] = (MAX_VALUE, MAX_VALUE, MAX_VALUE, MAX_VALUE // 2)

    over_black = composite_over(canvas, BLACK)
    assert tuple(over_black[0, 0]) == BLACK
    assert tuple(over_black[0, 1]) == (MAX_VALUE, 0, 0, MAX_VALUE)
    assert over_black[0, 2, 0] == MAX_VALUE // 2

    over_white = composite_over(canvas, WHITE)
    assert tuple(over_white[0, 0]) == WHITE
    assert (over_white[..., 3] == MAX_VALUE).all()


def test_decode_keeps_16_bit_grayscale(encode_image):
    img = Image.fromarray(np.full((4, 4), 32768, dtype=np.uint16))
    canvas = decode_image(io.BytesIO(encode_image(img)), "gray16.png")
    assert canvas.shape == (4, 4, 4)
    assert 32000 < canvas[0, 0, 0] < 33500
    assert canvas[0, 0, 0] == canvas[0, 0, 1] == canvas[0, 0, 2]
    assert canvas[0, 0, 3] == MAX_VALUE


def test_decode_rejects_oversized_image(monkeypatch, encode_image):
    data = encode_image(Image.new("RGB", (100, 100)))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(DecodeError, match="big.png"):
        decode_image(io.BytesIO(data), "big.png")
