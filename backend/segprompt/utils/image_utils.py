# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Image I/O and Conversion Utilities
Helpers for the upload validator and the PNG responses.
Pipeline arrays are RGB (model convention); OpenCV I/O is BGR, so
conversion happens only at the encode/decode boundary here.
"""

from __future__ import annotations

import io

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError


# ─── Decode ──────────────────────────────────────────────────────────────────

def probe_size(data: bytes) -> tuple[int, int] | None:
    """
    (width, height) from the image header without decoding pixels.
    Returns None if Pillow cannot identify the data. Raises
    Image.DecompressionBombError for implausibly large pixel counts.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError):
        return None


def decode_image_bytes(data: bytes) -> np.ndarray:
    """
    Decode raw image bytes keeping their layout.
    Returns uint8 grayscale (H×W), RGB (H×W×3) or RGBA (H×W×4).
    16-bit sources are narrowed to 8 bits.
    Raises ValueError if the bytes cannot be decoded.
    """
    arr = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError("Could not decode uploaded image bytes.")

    if img.dtype == np.uint16:
        img = (img >> 8).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = cv2.normalize(img, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)

    if img.ndim == 2:
        return img
    if img.shape[2] == 1:
        return img[:, :, 0]
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    return bgr_to_rgb(img)


# ─── Encode ──────────────────────────────────────────────────────────────────

def mask_to_png_bytes(mask: np.ndarray) -> bytes:
    """Encode a single-channel 0/255 mask as a lossless grayscale PNG."""
    success, buf = cv2.imencode(".png", np.ascontiguousarray(mask, dtype=np.uint8))
    if not success:
        raise RuntimeError("Failed to encode mask to PNG bytes.")
    return buf.tobytes()


def rgba_to_png_bytes(img: np.ndarray) -> bytes:
    """Encode an RGBA uint8 overlay as PNG, preserving the alpha channel."""
    buf = io.BytesIO()
    rgba_to_pil(img).save(buf, format="PNG")
    return buf.getvalue()


# ─── Color Space ─────────────────────────────────────────────────────────────

def bgr_to_rgb(img: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


# ─── PIL Bridge ──────────────────────────────────────────────────────────────

def rgba_to_pil(img: np.ndarray) -> Image.Image:
    """Convert an RGBA uint8 numpy array to a PIL Image (RGBA mode)."""
    return Image.fromarray(np.ascontiguousarray(img, dtype=np.uint8))
