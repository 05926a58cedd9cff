# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Session State Models
Lifecycle of the two inference sessions (encoder, decoder) and the
status snapshot returned to pollers.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SessionRole(str, Enum):
    ENCODER = "encoder"
    DECODER = "decoder"


class SessionState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ModelStatus(BaseModel):
    """Snapshot served by GET /models/status."""
    encoder: SessionState = SessionState.UNLOADED
    decoder: SessionState = SessionState.UNLOADED
    loading: bool = False
    progress: int = Field(0, ge=0, le=100)
    error: Optional[str] = None
    image_ready: bool = False

    @property
    def ready(self) -> bool:
        return self.encoder == SessionState.READY and self.decoder == SessionState.READY


class LoadResponse(BaseModel):
    """Response body for POST /models/load."""
    status: ModelStatus
    message: str = "Model loading started. Poll /models/status for progress."
