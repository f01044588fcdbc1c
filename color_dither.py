from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from canvas import BLACK, MAX_VALUE, WHITE, Color

LOGGER = logging.getLogger(__name__)

# 2色パレット（黒, 白）
PAL_BW = (BLACK, WHITE)

# Floyd–Steinberg:
#          x   7
#      3   5   1      (/16)
FS_KERNEL = (
    (1, 0, 7.0 / 16.0),
    (-1, 1, 3.0 / 16.0),
    (0, 1, 5.0 / 16.0),
    (1, 1, 1.0 / 16.0),
)


@dataclass(frozen=True)
class Dithered:
    """Dithering produced a new canvas."""

    canvas: np.ndarray


@dataclass(frozen=True)
class MutatedInPlace:
    """Dithering overwrote the source canvas."""


DitherResult = Union[Dithered, MutatedInPlace]


def resolve_dithered(result: DitherResult, source: np.ndarray) -> np.ndarray:
    """Return the dithered canvas whichever way the ditherer produced it."""
    if isinstance(result, Dithered):
        return result.canvas
    return source


def srgb_to_linear(values: np.ndarray) -> np.ndarray:
    # values in [0, 1]
    return np.where(values <= 0.04045, values / 12.92, ((values + 0.055) / 1.055) ** 2.4)


def nearest_from_palette(pixel: np.ndarray, pal: np.ndarray) -> int:
    # pixel: shape (3,)
    # pal: shape (N,3)
    d = np.sum((pal - pixel) ** 2, axis=1)
    return int(np.argmin(d))


def floyd_steinberg_diffuse(data: np.ndarray, x: int, y: int, err: np.ndarray) -> None:
    h, w, _ = data.shape
    for dx, dy, wgt in FS_KERNEL:
        nx, ny = x + dx, y + dy
        if 0 <= nx < w and 0 <= ny < h:
            data[ny, nx] += err * wgt


def dither(
    canvas: np.ndarray,
    palette: Sequence[Color] = PAL_BW,
    linear: bool = True,
    in_place: bool = False,
) -> DitherResult:
    """
    Reduce ``canvas`` to the two colours of ``palette`` with Floyd–Steinberg
    error diffusion.

    Pixels are visited left to right, top to bottom. Each one is snapped to
    the nearest palette colour and the quantisation error is pushed to the
    unvisited neighbours. With ``linear`` the comparison and the error are
    computed on linear RGB rather than gamma-encoded values.

    With ``in_place`` the source canvas is overwritten and ``MutatedInPlace``
    is returned; otherwise the result is a fresh canvas in ``Dithered``.
    Alpha is ignored; callers flatten the canvas first.
    """
    if len(palette) != 2:
        raise ValueError(f"palette must have exactly 2 colours, got {len(palette)}")

    pal16 = np.asarray(palette, dtype=np.uint16)
    pal = pal16[:, :3].astype(np.float64) / MAX_VALUE
    data = canvas[..., :3].astype(np.float64) / MAX_VALUE
    if linear:
        pal = srgb_to_linear(pal)
        data = srgb_to_linear(data)

    height, width, _ = data.shape
    chosen = np.empty((height, width), dtype=np.intp)

    for y in range(height):
        for x in range(width):
            # 拡散で値がはみ出してるので、量子化前にクリップ
            old_pixel = np.clip(data[y, x], 0.0, 1.0)

            idx = nearest_from_palette(old_pixel, pal)
            chosen[y, x] = idx

            err = old_pixel - pal[idx]
            floyd_steinberg_diffuse(data, x, y, err)

    LOGGER.debug("Dithered %dx%d, %d pixels -> palette[0]", width, height, int(np.count_nonzero(chosen == 0)))

    if in_place:
        canvas[...] = pal16[chosen]
        return MutatedInPlace()
    return Dithered(pal16[chosen])
