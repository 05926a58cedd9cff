# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Phase 4 embedding cache tests.
Tests the single encoder pass per image, output-name aliases,
zero-filling of auxiliary features, and atomic replacement.
"""

import numpy as np
import pytest

from segprompt.api.middleware.error_handler import (
    EncoderNotReadyError,
    EncoderOutputMissingError,
    InvalidImageError,
    NoImageSetError,
)
from segprompt.core.pipeline import SegmentationPipeline
from segprompt.modules.inference.byte_cache import InMemoryByteCache

from fakes import FakeEngine, FakeFetcher


async def _ready_pipeline(settings, engine) -> SegmentationPipeline:
    pipeline = SegmentationPipeline(settings, InMemoryByteCache(), FakeFetcher(), engine)
    await pipeline.load_models()
    return pipeline


# ─── Happy Path ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_set_image_runs_encoder_once(settings, engine, rgb_image):
    pipeline = await _ready_pipeline(settings, engine)

    size = await pipeline.set_image(rgb_image)

    assert size == (200, 100)
    assert pipeline.embeddings.has_image
    calls = engine.sessions["encoder"].calls
    assert len(calls) == 1
    assert calls[0]["image"].shape == (1, 3, 64, 64)
    assert calls[0]["image"].dtype == np.float32


@pytest.mark.asyncio
async def test_bundle_contents(settings, engine, rgb_image):
    pipeline = await _ready_pipeline(settings, engine)
    await pipeline.set_image(rgb_image)

    bundle, original = pipeline.embeddings.get()
    assert original == (200, 100)
    assert bundle.image_embed.shape == settings.image_embed_shape
    assert list(bundle.high_res_feats) == ["high_res_feats_0", "high_res_feats_1"]
    assert np.allclose(bundle.high_res_feats["high_res_feats_0"], 0.5)


@pytest.mark.asyncio
async def test_alternate_embedding_name_accepted(settings, rgb_image):
    engine = FakeEngine(
        settings,
        encoder_outputs=("image_embeddings", "high_res_feats_0", "high_res_feats_1"),
    )
    pipeline = await _ready_pipeline(settings, engine)
    await pipeline.set_image(rgb_image)

    bundle, _ = pipeline.embeddings.get()
    assert bundle.image_embed.shape == settings.image_embed_shape


@pytest.mark.asyncio
async def test_missing_features_zero_filled(settings, rgb_image):
    engine = FakeEngine(settings, encoder_outputs=("image_embed",))
    pipeline = await _ready_pipeline(settings, engine)
    await pipeline.set_image(rgb_image)

    bundle, _ = pipeline.embeddings.get()
    feats0 = bundle.high_res_feats["high_res_feats_0"]
    feats1 = bundle.high_res_feats["high_res_feats_1"]
    assert feats0.shape == (1, 32, 16, 16)
    assert feats1.shape == (1, 64, 8, 8)
    assert feats0.dtype == np.float32
    assert not feats0.any() and not feats1.any()


# ─── Replacement ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_new_image_replaces_previous(settings, engine, rgb_image):
    pipeline = await _ready_pipeline(settings, engine)
    await pipeline.set_image(rgb_image)

    square = np.zeros((50, 50, 3), dtype=np.uint8)
    assert await pipeline.set_image(square) == (50, 50)
    _, original = pipeline.embeddings.get()
    assert original == (50, 50)


@pytest.mark.asyncio
async def test_failed_embed_keeps_previous_entry(settings, engine, rgb_image):
    pipeline = await _ready_pipeline(settings, engine)
    await pipeline.set_image(rgb_image)
    before, _ = pipeline.embeddings.get()

    engine.encoder_outputs = ("high_res_feats_0",)
    with pytest.raises(EncoderOutputMissingError) as exc_info:
        await pipeline.set_image(np.zeros((10, 10, 3), dtype=np.uint8))

    assert exc_info.value.role == "encoder"
    assert "image_embed" in str(exc_info.value)
    after, original = pipeline.embeddings.get()
    assert after is before
    assert original == (200, 100)


@pytest.mark.asyncio
async def test_zero_size_image_rejected(settings, engine, rgb_image):
    pipeline = await _ready_pipeline(settings, engine)
    await pipeline.set_image(rgb_image)

    with pytest.raises(InvalidImageError):
        await pipeline.set_image(np.zeros((0, 0, 3), dtype=np.uint8))

    assert pipeline.embeddings.get()[1] == (200, 100)
    assert len(engine.sessions["encoder"].calls) == 1


# ─── Readiness ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_set_image_before_load(settings, engine, rgb_image):
    pipeline = SegmentationPipeline(settings, InMemoryByteCache(), FakeFetcher(), engine)
    with pytest.raises(EncoderNotReadyError) as exc_info:
        await pipeline.set_image(rgb_image)
    assert exc_info.value.state == "unloaded"
    assert not pipeline.embeddings.has_image


@pytest.mark.asyncio
async def test_get_before_set_image(settings, engine):
    pipeline = await _ready_pipeline(settings, engine)
    with pytest.raises(NoImageSetError):
        pipeline.embeddings.get()


@pytest.mark.asyncio
async def test_reset_image_clears_entry(settings, engine, rgb_image):
    pipeline = await _ready_pipeline(settings, engine)
    await pipeline.set_image(rgb_image)
    assert pipeline.status().image_ready

    pipeline.reset_image()

    assert not pipeline.status().image_ready
    with pytest.raises(NoImageSetError):
        pipeline.embeddings.get()
