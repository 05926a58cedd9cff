# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Tensor Codec
Converts source images and prompts into the encoder's fixed coordinate
space.

Image: independent per-axis resize to size×size (aspect ratio is NOT
preserved), alpha dropped, planar RGB float32 in [-1, 1].

Prompt: every coordinate is scaled by size / source_dim on its own axis,
matching the image resize exactly. A box becomes two corner points
with SAM labels 2 / 3, placed before any clicked points.
"""

from __future__ import annotations

import cv2
import numpy as np

from segprompt.api.middleware.error_handler import (
    EmptyPromptError,
    InvalidImageError,
    MalformedBoxError,
    MalformedPointError,
)
from segprompt.core.model_contract import BOX_BOTTOM_RIGHT_LABEL, BOX_TOP_LEFT_LABEL
from segprompt.models.prompt import Box, Prompt

DEFAULT_INPUT_SIZE = 1024


def _as_rgb(image: np.ndarray) -> np.ndarray:
    """Return an H×W×3 uint8 view of a grayscale, RGB or RGBA image."""
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.ndim == 3 and image.shape[2] == 4:
        return np.ascontiguousarray(image[:, :, :3])
    if image.ndim == 3 and image.shape[2] == 3:
        return image
    raise InvalidImageError(f"Unsupported image layout with shape {image.shape}.")


def image_size(image: np.ndarray) -> tuple[int, int]:
    """Return (width, height) of an image array."""
    h, w = image.shape[:2]
    return w, h


def encode_image(image: np.ndarray, size: int = DEFAULT_INPUT_SIZE) -> np.ndarray:
    """
    Build the encoder input tensor.

    Args:
        image: uint8 RGB (H×W×3), RGBA (H×W×4) or grayscale (H×W) array.
        size:  Encoder input side.

    Returns:
        float32 array of shape (1, 3, size, size), channel-major, values in [-1, 1].

    Raises:
        InvalidImageError: zero width/height or unsupported layout.
    """
    if image.ndim < 2 or image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidImageError(
            f"Image must have non-zero width and height, got shape {image.shape}."
        )
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    rgb = _as_rgb(image)
    resized = cv2.resize(rgb, (size, size), interpolation=cv2.INTER_LINEAR)

    tensor = resized.astype(np.float32) / 255.0 * 2.0 - 1.0
    # HWC → CHW, then add batch axis
    return np.ascontiguousarray(tensor.transpose(2, 0, 1)[np.newaxis])


def scale_point(
    x: float, y: float,
    source_size: tuple[int, int],
    size: int = DEFAULT_INPUT_SIZE,
) -> tuple[float, float]:
    """Map a source-pixel coordinate into the encoder's size×size space."""
    src_w, src_h = source_size
    return x * (size / src_w), y * (size / src_h)


def validate_box(box: Box) -> Box:
    """Normalise corner order; reject non-finite or zero-area boxes."""
    if not box.is_finite:
        raise MalformedBoxError(f"Box has non-finite coordinates: {box}.")
    norm = box.normalized()
    if norm.is_degenerate:
        raise MalformedBoxError(
            f"Box has zero width or height after normalisation: {norm}."
        )
    return norm


def scale_box(
    box: Box,
    source_size: tuple[int, int],
    size: int = DEFAULT_INPUT_SIZE,
) -> tuple[tuple[float, float], tuple[float, float]]:
    """Return the (top-left, bottom-right) corners of a box in encoder space."""
    norm = validate_box(box)
    return (
        scale_point(norm.x1, norm.y1, source_size, size),
        scale_point(norm.x2, norm.y2, source_size, size),
    )


def encode_prompt(
    prompt: Prompt,
    source_size: tuple[int, int],
    size: int = DEFAULT_INPUT_SIZE,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Build the decoder's point_coords / point_labels tensors.

    Args:
        prompt:      Points and/or box in source-image pixels.
        source_size: (width, height) of the source image.
        size:        Encoder input side.

    Returns:
        (coords, labels)
        coords: float32 (1, N, 2) — x, y per prompt point
        labels: float32 (1, N)

    Raises:
        EmptyPromptError:  no points and no box.
        MalformedBoxError: degenerate or non-finite box.
        MalformedPointError: point with a NaN or infinite coordinate.
        InvalidImageError: zero-sized source.
    """
    if prompt.is_empty:
        raise EmptyPromptError("A prompt needs at least one point or a box.")
    src_w, src_h = source_size
    if src_w <= 0 or src_h <= 0:
        raise InvalidImageError(f"Source size must be positive, got {source_size}.")

    coords: list[tuple[float, float]] = []
    labels: list[float] = []

    if prompt.box is not None:
        top_left, bottom_right = scale_box(prompt.box, source_size, size)
        coords.extend([top_left, bottom_right])
        labels.extend([BOX_TOP_LEFT_LABEL, BOX_BOTTOM_RIGHT_LABEL])

    for p in prompt.points:
        if not p.is_finite:
            raise MalformedPointError(f"Point has non-finite coordinates: x={p.x}, y={p.y}.")
        coords.append(scale_point(p.x, p.y, source_size, size))
        labels.append(float(int(p.label)))

    coords_arr = np.asarray(coords, dtype=np.float32).reshape(1, -1, 2)
    labels_arr = np.asarray(labels, dtype=np.float32).reshape(1, -1)
    return coords_arr, labels_arr
