#!/usr/bin/env python3
"""
Convert an image into a 1bpp bitmap for the badge's e-ink display.

Usage: epd-bitmap <profile | splash> <infile.png>

Writes ``<profile>-generated.go`` and ``<profile>.bin`` and prints the
bitmap as base64 on stdout.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from canvas import BLACK, WHITE, Color, load_image, resize_nearest
from color_dither import PAL_BW, dither, resolve_dithered
from emit import artifact_paths, encode_to_string, write_bin_file, write_go_file
from epd_errors import ConversionError, InputError, OutputError
from to_bin import pack_bits

LOGGER = logging.getLogger("epd_bitmap")

PROG = "epd-bitmap"

# profile image is 120x128, splash image is 246x128 (width x height)
PROFILES = {
    "profile": (120, 128),
    "splash": (246, 128),
}

BACKDROPS = {
    "black": BLACK,
    "white": WHITE,
}


def get_profile(name: str) -> tuple[int, int]:
    try:
        return PROFILES[name]
    except KeyError:
        raise InputError(f"unknown profile {name!r} (expected one of {', '.join(sorted(PROFILES))})") from None


def image_to_bytes(
    source: np.ndarray,
    width: int,
    height: int,
    backdrop: Color = BLACK,
    linear: bool = True,
) -> bytes:
    """Resize ``source`` to width x height, dither it to black/white and pack it."""
    dst = resize_nearest(source, width, height, backdrop)
    result = dither(dst, PAL_BW, linear=linear, in_place=True)
    return pack_bits(resolve_dithered(result, dst))


def convert_file(
    profile: str,
    infile,
    out_dir=".",
    generator: str = PROG,
    package: str = "main",
    backdrop: Color = BLACK,
    linear: bool = True,
) -> bytes:
    """Run the whole conversion for ``profile`` and write both output files.

    Returns the packed bitmap. Nothing is written unless every step before
    the output stage succeeded.
    """
    width, height = get_profile(profile)

    infile = Path(infile)
    if not infile.exists():
        raise InputError(f"could not stat {infile}: no such file")

    source = load_image(infile)
    LOGGER.info("Converting %s (%dx%d) to %s %dx%d", infile, source.shape[1], source.shape[0], profile, width, height)
    data = image_to_bytes(source, width, height, backdrop=backdrop, linear=linear)

    out_dir = Path(out_dir)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputError(f"creating {out_dir}: {exc.strerror or exc}") from exc

    go_path, bin_path = artifact_paths(out_dir, profile)
    write_go_file(go_path, profile, data, generator, package)
    write_bin_file(bin_path, data)
    LOGGER.info("Wrote %s and %s", go_path, bin_path)
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Convert an image to a 1bpp e-ink bitmap (.bin, Go source and base64).",
    )
    parser.add_argument("profile", choices=sorted(PROFILES), help="Target size preset.")
    parser.add_argument("infile", help="Source image (PNG, JPEG, BMP or WebP).")
    parser.add_argument("--out-dir", default=".", help="Directory for the generated files (default: current directory).")
    parser.add_argument("--package", default="main", help="Go package name for the generated source.")
    parser.add_argument(
        "--backdrop",
        choices=sorted(BACKDROPS),
        default="black",
        help="Colour transparent pixels are flattened onto.",
    )
    parser.add_argument(
        "--no-linear",
        dest="linear",
        action="store_false",
        help="Dither on gamma-encoded values instead of linear RGB.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        data = convert_file(
            args.profile,
            args.infile,
            out_dir=args.out_dir,
            generator=parser.prog,
            package=args.package,
            backdrop=BACKDROPS[args.backdrop],
            linear=args.linear,
        )
    except ConversionError as exc:
        LOGGER.error("%s", exc)
        return 1

    print(encode_to_string(data))
    return 0


if __name__ == "__main__":
    sys.exit(main())
