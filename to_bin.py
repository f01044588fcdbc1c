"""
1bpp packing for the badge's e-ink panel.

The panel is refreshed column by column, top to bottom inside each column,
so the bit for pixel (x, y) sits at index ``x * height + y``. Bits are
packed MSB first; black is 1, white is 0.
"""
import logging

import numpy as np

LOGGER = logging.getLogger(__name__)


def pixel_bit_index(x, y, height):
    """Bit position of pixel (x, y) in column-major scan order.

    Works on ints as well as numpy arrays of coordinates.
    """
    return x * height + y


def packed_size(width: int, height: int) -> int:
    return (width * height + 7) // 8


def black_mask(canvas: np.ndarray) -> np.ndarray:
    # black after dithering == R+G+B summing to exactly zero
    return canvas[..., :3].astype(np.uint32).sum(axis=2) == 0


def pack_bits(canvas: np.ndarray) -> bytes:
    """Pack a dithered (height, width, 4) canvas into ceil(W*H/8) bytes.

    Padding bits after the last pixel are zero.
    """
    height, width = canvas.shape[:2]

    bits = np.zeros(width * height, dtype=np.uint8)
    ys, xs = np.nonzero(black_mask(canvas))
    bits[pixel_bit_index(xs, ys, height)] = 1

    packed = np.packbits(bits, bitorder="big").tobytes()
    LOGGER.info("bin generated: %d bytes (%dx%d)", len(packed), width, height)
    return packed
