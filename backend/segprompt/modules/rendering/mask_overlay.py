# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Mask Overlay Renderer
Draws a binary mask as a transparent RGBA overlay:
  - Included pixels      base colour at partial opacity
  - Boundary + ring      highlight colour at full opacity
  - Excluded pixels      fully transparent

A boundary pixel is an included pixel with at least one excluded
8-neighbour. Pixels outside the canvas count as excluded, so a mask
touching the image edge is outlined along that edge.
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from segprompt.config import Settings, get_settings

_NEIGHBOURHOOD = np.ones((3, 3), dtype=np.uint8)


@dataclass(frozen=True)
class OverlayStyle:
    base_colour: tuple[int, int, int] = (99, 102, 241)    # indigo
    base_alpha: int = 180
    edge_colour: tuple[int, int, int] = (255, 255, 255)   # white
    edge_width: int = 1

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "OverlayStyle":
        settings = settings or get_settings()
        return cls(
            base_colour=tuple(settings.overlay_base_colour),
            base_alpha=settings.overlay_base_alpha,
            edge_colour=tuple(settings.overlay_edge_colour),
            edge_width=settings.overlay_edge_width,
        )


def compute_boundary(mask: np.ndarray) -> np.ndarray:
    """
    Boolean (H × W) map of boundary pixels of a 0 / non-zero mask.
    Erosion with a zero constant border removes every included pixel
    that touches an excluded neighbour or the canvas edge.
    """
    included = (np.asarray(mask) > 0).astype(np.uint8)
    if included.size == 0:
        return included.astype(bool)
    eroded = cv2.erode(
        included,
        _NEIGHBOURHOOD,
        borderType=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
    return (included == 1) & (eroded == 0)


def edge_ring(boundary: np.ndarray, width: int) -> np.ndarray:
    """Boundary pixels grown by `width` pixels in every direction (Chebyshev)."""
    if width <= 0 or not boundary.any():
        return boundary.copy()
    kernel = np.ones((2 * width + 1, 2 * width + 1), dtype=np.uint8)
    grown = cv2.dilate(boundary.astype(np.uint8), kernel)
    return grown.astype(bool)


def render_overlay(mask: np.ndarray, style: OverlayStyle | None = None) -> np.ndarray:
    """
    Render a binary mask as an RGBA uint8 overlay of the same size.
    An all-zero mask yields a fully transparent overlay.
    """
    style = style or OverlayStyle()
    h, w = mask.shape[:2]
    overlay = np.zeros((h, w, 4), dtype=np.uint8)

    included = np.asarray(mask) > 0
    if not included.any():
        return overlay

    overlay[included, :3] = style.base_colour
    overlay[included, 3] = style.base_alpha

    ring = edge_ring(compute_boundary(mask), style.edge_width)
    overlay[ring, :3] = style.edge_colour
    overlay[ring, 3] = 255
    return overlay

