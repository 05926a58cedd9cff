# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Prompt Data Models
Spatial hints supplied by the caller, in source-image pixel coordinates.
Prompts are frozen: the caller accumulates points and submits the full
current set on every decode.
"""

from __future__ import annotations

import math
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PointLabel(IntEnum):
    EXCLUDE = 0
    INCLUDE = 1


class PromptPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="Column in source-image pixels")
    y: float = Field(..., description="Row in source-image pixels")
    label: PointLabel = Field(PointLabel.INCLUDE, description="0=exclude 1=include")

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


class Box(BaseModel):
    """Axis-aligned box. Corners may arrive in any order; see normalized()."""
    model_config = ConfigDict(frozen=True)

    x1: float
    y1: float
    x2: float
    y2: float

    def normalized(self) -> "Box":
        """Return the same box with x1 < x2 and y1 < y2."""
        return Box(
            x1=min(self.x1, self.x2),
            y1=min(self.y1, self.y2),
            x2=max(self.x1, self.x2),
            y2=max(self.y1, self.y2),
        )

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x1, self.y1, self.x2, self.y2))

    @property
    def is_degenerate(self) -> bool:
        """True when the box has zero width or height."""
        return self.x1 == self.x2 or self.y1 == self.y2


class Prompt(BaseModel):
    """
    The complete prompt for one decode call.
    Points and box may be combined; at least one must be present.
    """
    model_config = ConfigDict(frozen=True)

    points: tuple[PromptPoint, ...] = Field(default_factory=tuple)
    box: Optional[Box] = None

    @property
    def is_empty(self) -> bool:
        return not self.points and self.box is None
