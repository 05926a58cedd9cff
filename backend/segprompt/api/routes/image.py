# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — POST /image + DELETE /image
Validates an uploaded image and runs the encoder once; every following
/segment call decodes against the cached embedding.
"""

from __future__ import annotations

from fastapi import APIRouter, UploadFile

from segprompt.dependencies import InferenceLockDep, PipelineDep
from segprompt.models.segmentation import ImageInfo
from segprompt.modules.preprocessing.validator import validate_image_bytes
from segprompt.utils.logger import get_logger

router = APIRouter(tags=["image"])
log = get_logger(__name__)


@router.post(
    "/image",
    response_model=ImageInfo,
    summary="Set the image to segment",
    description=(
        "Upload a JPEG, PNG, WebP or BMP image. The encoder runs once and its "
        "embedding replaces any previously cached image. Requires loaded models."
    ),
)
async def set_image(
    image: UploadFile,
    pipeline: PipelineDep,
    lock: InferenceLockDep,
) -> ImageInfo:
    data = await image.read()
    img = validate_image_bytes(
        data, label=image.filename or "image", settings=pipeline.settings
    )

    async with lock:
        width, height = await pipeline.set_image(img)

    log.info("image_set", filename=image.filename, width=width, height=height)
    return ImageInfo(width=width, height=height)


@router.delete(
    "/image",
    summary="Discard the cached image embedding",
)
async def clear_image(pipeline: PipelineDep, lock: InferenceLockDep) -> dict:
    async with lock:
        pipeline.reset_image()
    log.info("image_cleared")
    return {"image_ready": False}
