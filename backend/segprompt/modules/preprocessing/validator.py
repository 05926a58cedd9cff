# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Upload Validator
Screens uploaded image bytes before they reach the encoder.

The pixel dimensions are read from the file header first, so an
oversized image is rejected before anything is decoded. Decoded images
keep their layout (grayscale, RGB or RGBA); the tensor codec accepts
all three and the alpha channel never reaches the encoder.

Raises InvalidImageError (subclass of ValueError) on any failure
so the API error handler maps it cleanly to HTTP 422.
"""

from pathlib import Path

import numpy as np
from PIL import Image

from segprompt.api.middleware.error_handler import InvalidImageError
from segprompt.config import Settings, get_settings
from segprompt.utils.image_utils import decode_image_bytes, probe_size
from segprompt.utils.logger import get_logger

log = get_logger(__name__)

# (format, offset, signature); WebP also needs "WEBP" at offset 8
_SIGNATURES: tuple[tuple[str, int, bytes], ...] = (
    ("jpeg", 0, b"\xff\xd8\xff"),
    ("png",  0, b"\x89PNG\r\n\x1a\n"),
    ("webp", 8, b"WEBP"),
    ("bmp",  0, b"BM"),
)

SUPPORTED_FORMATS = tuple(name for name, _, _ in _SIGNATURES)


def detect_format(data: bytes) -> str | None:
    """Return the image format named by the file signature, or None."""
    for name, offset, signature in _SIGNATURES:
        if data[offset:offset + len(signature)] != signature:
            continue
        if name == "webp" and not data.startswith(b"RIFF"):
            continue
        return name
    return None


def _check_dimensions(width: int, height: int, label: str, max_side: int) -> None:
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"The {label} has zero width or height.")
    if max(width, height) > max_side:
        raise InvalidImageError(
            f"The {label} is {width}×{height}px; the longest side may be at "
            f"most {max_side}px. Please downscale it before uploading."
        )


def validate_image_bytes(
    data: bytes,
    label: str = "image",
    settings: Settings | None = None,
) -> np.ndarray:
    """
    Validate raw upload bytes and return the decoded image.

    Returns:
        uint8 array: grayscale (H×W), RGB (H×W×3) or RGBA (H×W×4).

    Raises:
        InvalidImageError: empty, oversize, unsupported, corrupted or
                           out-of-range resolution.
    """
    settings = settings or get_settings()

    if not data:
        raise InvalidImageError(f"The {label} file is empty.")

    if len(data) > settings.upload_max_bytes:
        raise InvalidImageError(
            f"The {label} file is {len(data) / (1024 * 1024):.1f} MB; "
            f"uploads are limited to {settings.upload_max_mb} MB."
        )

    fmt = detect_format(data)
    if fmt is None:
        raise InvalidImageError(
            f"The {label} file format is not supported. "
            f"Supported formats: {', '.join(SUPPORTED_FORMATS)}."
        )

    try:
        header_size = probe_size(data)
    except Image.DecompressionBombError as e:
        raise InvalidImageError(f"The {label} has too many pixels to process.") from e
    if header_size is not None:
        _check_dimensions(*header_size, label, settings.upload_max_side_px)

    try:
        img = decode_image_bytes(data)
    except ValueError as e:
        raise InvalidImageError(
            f"The {label} file could not be decoded. "
            "The file may be corrupted or truncated."
        ) from e

    height, width = img.shape[:2]
    _check_dimensions(width, height, label, settings.upload_max_side_px)

    log.debug(
        "image_validated",
        label=label,
        format=fmt,
        shape=img.shape,
        size_bytes=len(data),
    )
    return img


def validate_image_file(
    path: Path,
    label: str = "image",
    settings: Settings | None = None,
) -> np.ndarray:
    """Read a file from disk and validate it like an upload."""
    if not path.is_file():
        raise InvalidImageError(f"The {label} file was not found at path: {path}")
    return validate_image_bytes(path.read_bytes(), label=label, settings=settings)
