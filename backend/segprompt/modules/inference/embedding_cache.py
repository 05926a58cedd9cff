# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Embedding Cache
Holds the encoder outputs for the most recent image. The expensive
encoder pass runs once per image; every decode call reuses its result.

Lifecycle:
  - Empty until the first successful set_image()
  - Replaced wholesale (never merged) by the next set_image()
  - A failed set_image() leaves the previous entry untouched
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from segprompt.api.middleware.error_handler import (
    EncoderNotReadyError,
    EncoderOutputMissingError,
    NoImageSetError,
)
from segprompt.config import Settings, get_settings
from segprompt.core.model_contract import (
    ENCODER_IMAGE_INPUT,
    IMAGE_EMBEDDING_ALIASES,
    find_output,
)
from segprompt.models.segmentation import EmbeddingBundle
from segprompt.models.session import SessionRole, SessionState
from segprompt.modules.inference.session_manager import ModelSessionManager
from segprompt.modules.preprocessing.tensor_codec import encode_image, image_size
from segprompt.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class _Entry:
    bundle: EmbeddingBundle
    original_size: tuple[int, int]  # (width, height)


class EmbeddingCache:
    """Single-slot cache of the current image's embedding bundle."""

    def __init__(
        self,
        sessions: ModelSessionManager,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._sessions = sessions
        self._input_size = settings.encoder_input_size
        self._feature_shapes = settings.high_res_feature_shapes
        self._entry: Optional[_Entry] = None

    @property
    def has_image(self) -> bool:
        return self._entry is not None

    def set_image(self, image: np.ndarray) -> tuple[int, int]:
        """
        Embed an image and make it the current one.

        Args:
            image: uint8 RGB / RGBA / grayscale array.

        Returns:
            (width, height) of the source image.

        Raises:
            EncoderNotReadyError:      encoder session is not READY.
            InvalidImageError:         zero-sized or unsupported image.
            EncoderOutputMissingError: encoder emitted no primary embedding.
        """
        state = self._sessions.state(SessionRole.ENCODER)
        if state != SessionState.READY:
            raise EncoderNotReadyError(state.value)

        tensor = encode_image(image, self._input_size)
        outputs = self._sessions.run(SessionRole.ENCODER, {ENCODER_IMAGE_INPUT: tensor})

        embed = find_output(outputs, IMAGE_EMBEDDING_ALIASES)
        if embed is None:
            raise EncoderOutputMissingError(IMAGE_EMBEDDING_ALIASES, sorted(outputs))

        feats: dict[str, np.ndarray] = {}
        for name, shape in self._feature_shapes.items():
            tensor_out = outputs.get(name)
            if tensor_out is None:
                log.debug("encoder_feature_zero_filled", name=name, shape=shape)
                tensor_out = np.zeros(shape, dtype=np.float32)
            feats[name] = tensor_out

        size = image_size(image)
        self._entry = _Entry(
            bundle=EmbeddingBundle(image_embed=embed, high_res_feats=feats),
            original_size=size,
        )
        log.info(
            "image_embedded",
            width=size[0],
            height=size[1],
            embed_shape=tuple(embed.shape),
        )
        return size

    def get(self) -> tuple[EmbeddingBundle, tuple[int, int]]:
        """Return (bundle, (width, height)). Raises NoImageSetError if empty."""
        entry = self._entry
        if entry is None:
            raise NoImageSetError("No image has been embedded yet. Call set_image first.")
        return entry.bundle, entry.original_size

    def clear(self) -> None:
        self._entry = None
        log.debug("embedding_cache_cleared")
