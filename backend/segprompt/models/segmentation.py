# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Segmentation Data Models
EmbeddingBundle holds the encoder outputs for one image.
SegmentationResult is the full-resolution output of one decode call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class EmbeddingBundle:
    """
    Encoder outputs for a single source image, treated as a unit.
    high_res_feats is ordered the way the decoder consumes it; missing
    encoder outputs are already zero-filled to their documented shape.
    """
    image_embed: np.ndarray
    high_res_feats: dict[str, np.ndarray] = field(default_factory=dict)


class SegmentationResult(BaseModel):
    """Best mask of one decode call, upscaled to source resolution."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # uint8 (height × width), 0 = excluded, 255 = included
    mask: Any = Field(..., description="np.ndarray uint8 binary mask (0 or 255)")
    score: float = Field(..., description="Decoder's predicted quality score")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    candidate_index: int = Field(0, ge=0, description="Index of the selected candidate")

    @property
    def area(self) -> int:
        """Number of included pixels."""
        return int(np.count_nonzero(self.mask))

    def summary(self) -> dict:
        return {
            "score": self.score,
            "width": self.width,
            "height": self.height,
            "candidate_index": self.candidate_index,
            "area": self.area,
        }


class ImageInfo(BaseModel):
    """Response body for POST /image."""
    width: int
    height: int
    message: str = "Image embedded. Submit prompts to /segment."
