# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — POST /models/load + GET /models/status
Starts encoder/decoder loading as a FastAPI background task and exposes
per-session state and overall progress for frontend polling.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, status

from segprompt.api.middleware.error_handler import ModelLoadError
from segprompt.core.pipeline import SegmentationPipeline
from segprompt.dependencies import PipelineDep
from segprompt.models.session import LoadResponse, ModelStatus
from segprompt.utils.logger import get_logger

router = APIRouter(prefix="/models", tags=["models"])
log = get_logger(__name__)


async def _load_in_background(pipeline: SegmentationPipeline) -> None:
    # Failures are recorded on the session state and surface via /models/status
    try:
        await pipeline.load_models()
    except ModelLoadError as e:
        log.error(
            "background_model_load_failed",
            role=e.role,
            host=e.host,
            status_code=e.status_code,
            error=str(e),
        )


@router.post(
    "/load",
    response_model=LoadResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Load encoder and decoder",
    description=(
        "Fetches both models (byte cache first, then network) and builds "
        "inference sessions. Returns immediately; poll GET /models/status."
    ),
)
async def load_models(pipeline: PipelineDep, background_tasks: BackgroundTasks) -> LoadResponse:
    current = pipeline.status()
    if current.ready:
        return LoadResponse(status=current, message="Models already loaded.")
    if current.loading:
        return LoadResponse(status=current, message="Model loading already in progress.")

    background_tasks.add_task(_load_in_background, pipeline)
    log.info("model_load_requested")
    return LoadResponse(status=current)


@router.get(
    "/status",
    response_model=ModelStatus,
    summary="Poll model loading progress",
    description=(
        "Returns the state of each session, overall progress (0–100) and "
        "the last load error, if any. Poll every 1–2 seconds while loading."
    ),
)
async def get_model_status(pipeline: PipelineDep) -> ModelStatus:
    current = pipeline.status()
    log.debug("model_status_polled", progress=current.progress, loading=current.loading)
    return current
