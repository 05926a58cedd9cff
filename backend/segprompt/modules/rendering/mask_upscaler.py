# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Mask Upscaler
Turns the decoder's coarse logit grid (256×256) into a binary mask at
source resolution.

  1. Intensity   logits → grayscale strength in [0, 255]
  2. Resample    bilinear up to dw×dh; above two_stage_ratio the grid is
                 first resampled to intermediate_factor × source, then to
                 the destination, to avoid blocking at extreme ratios
  3. Binarise    > threshold → 255, else 0

Resampling the intensity grid (not the binary mask) and thresholding
afterwards is what gives smooth edges at high zoom.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import cv2
import numpy as np

from segprompt.config import Settings, get_settings

IntensityMode = Literal["binary", "proportional"]


@dataclass(frozen=True)
class UpscalePolicy:
    intermediate_factor: int = 4
    two_stage_ratio: float = 4.0
    threshold: int = 127
    intensity_mode: IntensityMode = "binary"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "UpscalePolicy":
        settings = settings or get_settings()
        return cls(
            intermediate_factor=settings.upscale_intermediate_factor,
            two_stage_ratio=settings.upscale_two_stage_ratio,
            threshold=settings.mask_threshold,
            intensity_mode=settings.mask_intensity_mode,
        )


def mask_to_intensity(logits: np.ndarray, mode: IntensityMode = "binary") -> np.ndarray:
    """
    Map coarse confidences to float32 intensities in [0, 255].
    binary:       v > 0 → 255, else 0
    proportional: clip(v * 255, 0, 255)
    """
    values = np.asarray(logits, dtype=np.float32)
    if mode == "proportional":
        return np.clip(values * 255.0, 0.0, 255.0)
    return np.where(values > 0, 255.0, 0.0).astype(np.float32)


def needs_two_stage(
    src_size: tuple[int, int],
    dst_size: tuple[int, int],
    policy: UpscalePolicy,
) -> bool:
    """True when the larger per-axis scale ratio exceeds the policy limit."""
    sw, sh = src_size
    dw, dh = dst_size
    ratio = max(dw / sw, dh / sh)
    return policy.intermediate_factor > 1 and ratio > policy.two_stage_ratio


def resample_intensity(
    grid: np.ndarray,
    dw: int,
    dh: int,
    policy: UpscalePolicy | None = None,
) -> np.ndarray:
    """Bilinear resample of a float32 intensity grid to dw×dh."""
    policy = policy or UpscalePolicy()
    sh, sw = grid.shape[:2]
    grid = np.ascontiguousarray(grid, dtype=np.float32)

    if (sw, sh) == (dw, dh):
        return grid.copy()

    if needs_two_stage((sw, sh), (dw, dh), policy):
        # Intermediate never overshoots the destination on either axis
        iw = min(sw * policy.intermediate_factor, dw)
        ih = min(sh * policy.intermediate_factor, dh)
        grid = cv2.resize(grid, (iw, ih), interpolation=cv2.INTER_LINEAR)

    return cv2.resize(grid, (dw, dh), interpolation=cv2.INTER_LINEAR)


def binarize(grid: np.ndarray, threshold: int = 127) -> np.ndarray:
    """Return a uint8 mask: 255 where grid > threshold, else 0."""
    return np.where(grid > threshold, 255, 0).astype(np.uint8)


def upscale_mask(
    logits: np.ndarray,
    dw: int,
    dh: int,
    policy: UpscalePolicy | None = None,
) -> np.ndarray:
    """
    Full upscale pipeline for one coarse mask.

    Args:
        logits: float (sh × sw) decoder confidences.
        dw, dh: Destination width and height.

    Returns:
        uint8 (dh × dw) mask of 0 / 255.
    """
    if dw <= 0 or dh <= 0:
        raise ValueError(f"Destination size must be positive, got {dw}×{dh}.")
    policy = policy or UpscalePolicy()
    intensity = mask_to_intensity(logits, policy.intensity_mode)
    smoothed = resample_intensity(intensity, dw, dh, policy)
    return binarize(smoothed, policy.threshold)
