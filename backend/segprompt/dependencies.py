# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — FastAPI Dependencies
Providers for the per-app SegmentationPipeline and its inference lock.
Both are created once in the lifespan event in main.py and stored on
app.state, so two app instances never share a pipeline.
Route handlers access them via FastAPI's Depends() injection.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import Depends, Request

from segprompt.config import Settings
from segprompt.core.pipeline import SegmentationPipeline
from segprompt.modules.inference.byte_cache import ByteCache
from segprompt.modules.inference.engine import InferenceEngine
from segprompt.modules.inference.model_fetcher import ModelFetcher
from segprompt.utils.logger import get_logger

log = get_logger(__name__)


# ─── Pipeline ────────────────────────────────────────────────────────────────

def init_pipeline(
    app,
    settings: Settings,
    byte_cache: ByteCache | None = None,
    fetcher: ModelFetcher | None = None,
    engine: InferenceEngine | None = None,
) -> SegmentationPipeline:
    """
    Build the pipeline and its inference lock on app.state.
    Called once during application lifespan startup. Collaborators left
    as None fall back to the configured production backends.
    """
    pipeline = SegmentationPipeline(
        settings=settings,
        byte_cache=byte_cache,
        fetcher=fetcher,
        engine=engine,
    )
    app.state.pipeline = pipeline
    app.state.inference_lock = asyncio.Lock()
    log.info("init_pipeline", cache_backend=settings.model_cache_backend)
    return pipeline


def get_pipeline(request: Request) -> SegmentationPipeline:
    """
    FastAPI dependency: inject the app's pipeline into route handlers.

    Usage in a route:
        @router.post("/segment")
        async def segment(prompt: Prompt, pipeline: PipelineDep):
            result = await pipeline.decode(prompt)
            ...
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise RuntimeError(
            "Pipeline has not been initialised. "
            "Ensure init_pipeline() is called during app lifespan startup."
        )
    return pipeline


def get_inference_lock(request: Request) -> asyncio.Lock:
    """Lock serialising embed and decode calls (one in flight per pipeline)."""
    return request.app.state.inference_lock


# Annotated type aliases for clean route signatures
PipelineDep = Annotated[SegmentationPipeline, Depends(get_pipeline)]
InferenceLockDep = Annotated[asyncio.Lock, Depends(get_inference_lock)]
