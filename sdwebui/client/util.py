"""Utility functions for image encoding and file I/O."""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sdwebui.config import ValidationOptions

logger = logging.getLogger(__name__)

# (mime type, magic prefixes)
_SIGNATURES: tuple[tuple[str, tuple[bytes, ...]], ...] = (
    ("image/png", (b"\x89PNG\r\n\x1a\n",)),
    ("image/jpeg", (b"\xff\xd8\xff",)),
    ("image/gif", (b"GIF87a", b"GIF89a")),
    ("image/webp", (b"RIFF",)),
    ("image/bmp", (b"BM",)),
)
_MIN_SIGNATURE_BYTES = 12


def detect_image_format(data: bytes) -> str | None:
    """Return the MIME type from magic bytes, or None if unrecognised."""
    if len(data) < _MIN_SIGNATURE_BYTES:
        return None
    for mime, prefixes in _SIGNATURES:
        if any(data.startswith(p) for p in prefixes):
            if mime == "image/webp" and data[8:12] != b"WEBP":
                continue
            return mime
    return None


def strip_data_uri(value: str) -> str:
    """Drop a ``data:<mime>;base64,`` prefix if present."""
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def to_b64(image: str | bytes | Path) -> str:
    """Convert a file path, raw bytes, or base64 string to base64."""
    if isinstance(image, (str, Path)):
        path = Path(image)
        try:
            is_file = path.is_file()
        except OSError:
            # base64 payloads can be longer than the OS allows for a path
            is_file = False
        if is_file:
            logger.debug("encoding file: %s", path)
            return base64.b64encode(path.read_bytes()).decode()
        return str(image)
    if isinstance(image, bytes):
        return base64.b64encode(image).decode()
    raise TypeError(f"unsupported image type: {type(image)}")


def image_to_data_uri(path: str | Path, validation: ValidationOptions | None = None) -> str:
    """Read an image file into a ``data:`` URI after size and format checks."""
    file = Path(path)
    if not file.is_file():
        raise FileNotFoundError(f"file not found: {file}")

    if validation is not None:
        size = file.stat().st_size
        if size > validation.max_image_file_size:
            raise ValueError(
                f"file size ({size} bytes) exceeds maximum allowed size ({validation.max_image_file_size} bytes)"
            )

    data = file.read_bytes()
    mime = detect_image_format(data)
    if mime is None:
        raise ValueError("file is not a valid image format. Supported formats: PNG, JPEG, GIF, WebP, BMP")
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


def decode_image(value: str) -> bytes:
    """Decode a base64 string (optionally a data URI) and check it is an image."""
    try:
        data = base64.b64decode(strip_data_uri(value), validate=True)
    except binascii.Error as e:
        raise ValueError("invalid base64 string format") from e
    if detect_image_format(data) is None:
        raise ValueError("base64 data does not contain a valid image. Supported formats: PNG, JPEG, GIF, WebP, BMP")
    return data


def save_images(
    images: list[bytes],
    output_dir: str | Path = ".",
    prefix: str = "output",
) -> list[Path]:
    """Write raw PNG bytes to numbered files. Returns saved paths."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    paths = []
    for i, data in enumerate(images):
        path = out / f"{prefix}_{i:04d}.png"
        path.write_bytes(data)
        logger.info("saved: %s", path)
        paths.append(path)
    return paths
