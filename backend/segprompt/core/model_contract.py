# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Encoder / Decoder Tensor Contract
Input and output names shared by the SAM2 ONNX exports.

Different exporters name the same tensor differently, so outputs are
looked up by role through an ordered alias tuple rather than one name.
"""

from __future__ import annotations

from typing import Mapping, Optional

import numpy as np

# ─── Encoder ─────────────────────────────────────────────────────────────────
ENCODER_IMAGE_INPUT = "image"
IMAGE_EMBEDDING_ALIASES: tuple[str, ...] = ("image_embed", "image_embeddings")

# ─── Decoder inputs ──────────────────────────────────────────────────────────
DECODER_EMBEDDING_INPUT = "image_embed"
POINT_COORDS_INPUT = "point_coords"
POINT_LABELS_INPUT = "point_labels"
MASK_INPUT = "mask_input"
HAS_MASK_INPUT = "has_mask_input"

# ─── Decoder outputs ─────────────────────────────────────────────────────────
MASK_OUTPUT_ALIASES: tuple[str, ...] = ("masks", "low_res_masks")
SCORE_OUTPUT_ALIASES: tuple[str, ...] = ("iou_predictions", "iou_scores")

# SAM corner labels for a box prompt
BOX_TOP_LEFT_LABEL = 2
BOX_BOTTOM_RIGHT_LABEL = 3


def find_output(
    outputs: Mapping[str, Optional[np.ndarray]],
    aliases: tuple[str, ...],
) -> Optional[np.ndarray]:
    """Return the first tensor present under any alias, in alias order."""
    for name in aliases:
        tensor = outputs.get(name)
        if tensor is not None:
            return tensor
    return None
