"""
Output artifacts for a packed bitmap: a raw ``.bin`` for embedding at
compile time, a Go source file with the bytes as a ``[]byte`` literal, and
a base64 string for copy-paste.
"""
from __future__ import annotations

import base64
import logging
from pathlib import Path

from epd_errors import OutputError

LOGGER = logging.getLogger(__name__)

BYTES_PER_LINE = 32


def encode_to_string(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def go_source(data: bytes, variable: str, generator: str, package: str = "main") -> str:
    """Render ``data`` as a Go file declaring ``var <variable> = []byte{...}``."""
    parts = [f"// Code generated by {generator} DO NOT EDIT.\n\npackage {package}\n\nvar {variable} = []byte{{"]
    for i, b in enumerate(data):
        if i % BYTES_PER_LINE == 0:
            parts.append("\n\t")
        parts.append(f"0x{b:02X}, ")
    parts.append("\n}\n")
    return "".join(parts)


def _write(path: Path, payload: bytes) -> None:
    try:
        with open(path, "wb") as f:
            f.write(payload)
    except OSError as exc:
        raise OutputError(f"writing {path}: {exc.strerror or exc}") from exc
    LOGGER.debug("Wrote %s (%d bytes)", path, len(payload))


def write_bin_file(path, data: bytes) -> None:
    _write(Path(path), data)


def write_go_file(path, variable: str, data: bytes, generator: str, package: str = "main") -> None:
    _write(Path(path), go_source(data, variable, generator, package).encode("utf-8"))


def artifact_paths(out_dir, name: str) -> tuple[Path, Path]:
    """(go source, bin) paths for artifact ``name`` inside ``out_dir``."""
    out_dir = Path(out_dir)
    return out_dir / f"{name}-generated.go", out_dir / f"{name}.bin"
