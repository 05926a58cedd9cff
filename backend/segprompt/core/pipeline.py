# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Segmentation Pipeline
Caller-owned facade over the session manager, embedding cache and
decoder adapter. Construct one per independent workspace; nothing is
shared between instances.

Execution order:
  1. load_models()  encoder + decoder sessions (byte cache → network)
  2. set_image()    encoder pass, result cached
  3. decode()       decoder pass per prompt, best mask upscaled

The caller serialises set_image() and decode(): at most one of them may
be in flight per pipeline. Blocking inference runs in worker threads.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

import numpy as np

from segprompt.config import Settings, get_settings
from segprompt.models.prompt import Prompt
from segprompt.models.segmentation import SegmentationResult
from segprompt.models.session import ModelStatus
from segprompt.modules.inference.byte_cache import ByteCache, make_byte_cache
from segprompt.modules.inference.embedding_cache import EmbeddingCache
from segprompt.modules.inference.engine import (
    InferenceEngine,
    InferenceSession,
    OnnxInferenceEngine,
)
from segprompt.modules.inference.model_fetcher import HttpModelFetcher, ModelFetcher
from segprompt.modules.inference.prompt_decoder import PromptDecoderAdapter
from segprompt.modules.inference.session_manager import (
    ModelSessionManager,
    ProgressCallback,
)
from segprompt.modules.rendering.mask_overlay import OverlayStyle, render_overlay
from segprompt.modules.rendering.mask_upscaler import UpscalePolicy
from segprompt.utils.logger import get_logger

log = get_logger(__name__)


class SegmentationPipeline:
    """
    Prompt-driven segmentation over one image at a time.
    Collaborators default to the configured production backends and can
    be injected individually (tests pass fakes).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        byte_cache: ByteCache | None = None,
        fetcher: ModelFetcher | None = None,
        engine: InferenceEngine | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        if engine is None:
            # onnxruntime is only imported once a session is actually built
            engine = _LazyEngine(lambda: OnnxInferenceEngine(self.settings))
        self.sessions = ModelSessionManager.from_settings(
            byte_cache=byte_cache or make_byte_cache(self.settings),
            fetcher=fetcher or HttpModelFetcher(timeout=self.settings.fetch_timeout_seconds),
            engine=engine,
            settings=self.settings,
        )
        self.embeddings = EmbeddingCache(self.sessions, self.settings)
        self.decoder = PromptDecoderAdapter(
            self.sessions,
            self.embeddings,
            policy=UpscalePolicy.from_settings(self.settings),
            settings=self.settings,
        )
        self.overlay_style = OverlayStyle.from_settings(self.settings)

    # ── Models ───────────────────────────────────────────────────────────────

    async def load_models(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Load encoder and decoder. Raises ModelLoadError on failure."""
        await self.sessions.load(on_progress)

    @property
    def is_ready(self) -> bool:
        return self.sessions.is_ready

    def status(self) -> ModelStatus:
        status = self.sessions.status()
        return status.model_copy(update={"image_ready": self.embeddings.has_image})

    # ── Image ────────────────────────────────────────────────────────────────

    async def set_image(self, image: np.ndarray) -> tuple[int, int]:
        """Embed a new image, replacing the cached one. Returns (width, height)."""
        return await asyncio.to_thread(self.embeddings.set_image, image)

    def reset_image(self) -> None:
        self.embeddings.clear()

    # ── Prompt decoding ──────────────────────────────────────────────────────

    async def decode(self, prompt: Prompt) -> SegmentationResult:
        """Decode the full current prompt against the cached embedding."""
        return await asyncio.to_thread(self.decoder.decode, prompt)

    def render_overlay(
        self,
        result: SegmentationResult,
        style: OverlayStyle | None = None,
    ) -> np.ndarray:
        """RGBA overlay of a result's mask (boundary highlighted)."""
        return render_overlay(result.mask, style or self.overlay_style)

    async def aclose(self) -> None:
        self.embeddings.clear()
        await self.sessions.aclose()
        log.info("pipeline_closed")


class _LazyEngine(InferenceEngine):
    """Builds the wrapped engine on the first session request."""

    def __init__(self, factory: Callable[[], InferenceEngine]) -> None:
        self._factory = factory
        self._engine: InferenceEngine | None = None

    def create_session(self, model_bytes: bytes, role: str) -> InferenceSession:
        if self._engine is None:
            self._engine = self._factory()
        return self._engine.create_session(model_bytes, role)
