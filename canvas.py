"""
Pixel canvas: decoding and nearest-neighbour resizing.

A canvas is a numpy array of shape (height, width, 4) holding RGBA with
16 bits per channel (0..65535), the range the rest of the pipeline works in.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from epd_errors import DecodeError, InputError

LOGGER = logging.getLogger(__name__)

MAX_VALUE = 0xFFFF

# containers we accept; detection is by magic bytes, never by file name
FORMATS = ("PNG", "JPEG", "BMP", "WEBP")

Color = Tuple[int, int, int, int]

BLACK: Color = (0, 0, 0, MAX_VALUE)
WHITE: Color = (MAX_VALUE, MAX_VALUE, MAX_VALUE, MAX_VALUE)


# single-channel modes Pillow uses for 16-bit grayscale (PNG Gray16 opens as one of these)
GRAY16_MODES = ("I;16", "I;16B", "I;16L", "I;16N", "I")


def from_image(img: Image.Image) -> np.ndarray:
    """Widen a Pillow image to a 16-bit RGBA canvas.

    8-bit data is scaled by 257. 16-bit grayscale keeps its values; a plain
    ``convert("RGBA")`` would clip them to 255.
    """
    if img.mode in GRAY16_MODES:
        gray = np.clip(np.asarray(img).astype(np.int64), 0, MAX_VALUE).astype(np.uint16)
        canvas = np.empty(gray.shape + (4,), dtype=np.uint16)
        canvas[..., :3] = gray[..., None]
        canvas[..., 3] = MAX_VALUE
        return canvas

    data = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    return data.astype(np.uint16) * 257


def new_canvas(width: int, height: int, color: Color = WHITE) -> np.ndarray:
    canvas = np.empty((height, width, 4), dtype=np.uint16)
    canvas[...] = color
    return canvas


def decode_image(stream: BinaryIO, name: str = "<stream>") -> np.ndarray:
    try:
        with Image.open(stream, formats=FORMATS) as img:
            img.load()
            LOGGER.debug("Decoded %s: %s %dx%d %s", name, img.format, img.width, img.height, img.mode)
            return from_image(img)
    except UnidentifiedImageError as exc:
        raise DecodeError(f"decoding {name}: unsupported image format") from exc
    except (Image.DecompressionBombError, OSError, EOFError, SyntaxError, ValueError) as exc:
        raise DecodeError(f"decoding {name}: {exc}") from exc


def load_image(path) -> np.ndarray:
    path = Path(path)
    try:
        f = path.open("rb")
    except OSError as exc:
        raise InputError(f"opening {path}: {exc.strerror or exc}") from exc
    with f:
        return decode_image(f, str(path))


def composite_over(canvas: np.ndarray, backdrop: Color = BLACK) -> np.ndarray:
    """
    Draw ``canvas`` over an opaque ``backdrop``.

    The result is fully opaque whatever the source alpha was. A black
    backdrop gives the same colours as drawing onto a zeroed destination.
    """
    alpha = canvas[..., 3:4].astype(np.float64) / MAX_VALUE
    back = np.asarray(backdrop[:3], dtype=np.float64)

    out = np.empty_like(canvas, dtype=np.uint16)
    rgb = canvas[..., :3].astype(np.float64) * alpha + back * (1.0 - alpha)
    out[..., :3] = np.clip(np.rint(rgb), 0, MAX_VALUE).astype(np.uint16)
    out[..., 3] = MAX_VALUE
    return out


def nearest_indices(src_len: int, dst_len: int) -> np.ndarray:
    # sample at the centre of each destination pixel
    dst = np.arange(dst_len, dtype=np.int64)
    return ((2 * dst + 1) * src_len) // (2 * dst_len)


def resize_nearest(canvas: np.ndarray, width: int, height: int, backdrop: Color = BLACK) -> np.ndarray:
    """
    Scale ``canvas`` to exactly ``width`` x ``height`` with nearest-neighbour
    sampling (no blending) and flatten it over ``backdrop``.

    Up- and downscaling work independently per axis. Zero-sized targets are
    not supported.
    """
    src_h, src_w = canvas.shape[:2]
    ys = nearest_indices(src_h, height)
    xs = nearest_indices(src_w, width)

    scaled = canvas[ys[:, None], xs[None, :]]
    LOGGER.debug("Resized %dx%d -> %dx%d", src_w, src_h, width, height)
    return composite_over(scaled, backdrop)
