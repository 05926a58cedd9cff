# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — POST /segment (+ mask.png, overlay.png)
Decodes the full current prompt against the cached image embedding.
The caller resends every accumulated point on each request.
"""

from __future__ import annotations

from fastapi import APIRouter, Response

from segprompt.core.pipeline import SegmentationPipeline
from segprompt.dependencies import InferenceLockDep, PipelineDep
from segprompt.models.prompt import Prompt
from segprompt.models.segmentation import SegmentationResult
from segprompt.utils.image_utils import mask_to_png_bytes, rgba_to_png_bytes
from segprompt.utils.logger import get_logger

router = APIRouter(prefix="/segment", tags=["segment"])
log = get_logger(__name__)

_PNG = "image/png"


async def _decode(prompt: Prompt, pipeline: SegmentationPipeline, lock) -> SegmentationResult:
    async with lock:
        result = await pipeline.decode(prompt)
    log.debug(
        "segment_request",
        points=len(prompt.points),
        box=prompt.box is not None,
        score=round(result.score, 4),
    )
    return result


def _score_headers(result: SegmentationResult) -> dict[str, str]:
    return {
        "X-Mask-Score": f"{result.score:.6f}",
        "X-Mask-Candidate": str(result.candidate_index),
    }


@router.post(
    "",
    summary="Segment with a prompt",
    description=(
        "Returns the score, size, selected candidate and included-pixel area "
        "of the best mask. Points and box are in source-image pixels."
    ),
)
async def segment(prompt: Prompt, pipeline: PipelineDep, lock: InferenceLockDep) -> dict:
    result = await _decode(prompt, pipeline, lock)
    return result.summary()


@router.post(
    "/mask.png",
    response_class=Response,
    summary="Segment and return the binary mask as PNG",
)
async def segment_mask_png(prompt: Prompt, pipeline: PipelineDep, lock: InferenceLockDep) -> Response:
    result = await _decode(prompt, pipeline, lock)
    return Response(
        content=mask_to_png_bytes(result.mask),
        media_type=_PNG,
        headers=_score_headers(result),
    )


@router.post(
    "/overlay.png",
    response_class=Response,
    summary="Segment and return the highlighted RGBA overlay as PNG",
)
async def segment_overlay_png(prompt: Prompt, pipeline: PipelineDep, lock: InferenceLockDep) -> Response:
    result = await _decode(prompt, pipeline, lock)
    overlay = pipeline.render_overlay(result)
    return Response(
        content=rgba_to_png_bytes(overlay),
        media_type=_PNG,
        headers=_score_headers(result),
    )
