# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Rendering Module
Public API for mask upscaling and overlay rendering.
"""

from segprompt.modules.rendering.mask_overlay import (
    OverlayStyle,
    compute_boundary,
    edge_ring,
    render_overlay,
)
from segprompt.modules.rendering.mask_upscaler import (
    UpscalePolicy,
    binarize,
    mask_to_intensity,
    needs_two_stage,
    resample_intensity,
    upscale_mask,
)

__all__ = [
    # Upscaler
    "UpscalePolicy",
    "mask_to_intensity",
    "needs_two_stage",
    "resample_intensity",
    "binarize",
    "upscale_mask",
    # Overlay
    "OverlayStyle",
    "compute_boundary",
    "edge_ring",
    "render_overlay",
]
