# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Prompt Decoder Adapter
Turns a prompt plus the cached embedding into one full-resolution mask.

Every decode is prompted from the full current point/box set: the
low-res mask input is always zeros and has_mask_input is always 0, so
no mask state is carried between calls.

Of the K candidates the decoder returns, the one with the highest
predicted quality score wins; the lowest index wins a tie.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from segprompt.api.middleware.error_handler import (
    DecoderOutputMissingError,
    SessionNotReadyError,
)
from segprompt.config import Settings, get_settings
from segprompt.core.model_contract import (
    DECODER_EMBEDDING_INPUT,
    HAS_MASK_INPUT,
    MASK_INPUT,
    MASK_OUTPUT_ALIASES,
    POINT_COORDS_INPUT,
    POINT_LABELS_INPUT,
    SCORE_OUTPUT_ALIASES,
    find_output,
)
from segprompt.models.prompt import Prompt
from segprompt.models.segmentation import EmbeddingBundle, SegmentationResult
from segprompt.models.session import SessionRole, SessionState
from segprompt.modules.inference.embedding_cache import EmbeddingCache
from segprompt.modules.inference.session_manager import ModelSessionManager
from segprompt.modules.preprocessing.tensor_codec import encode_prompt
from segprompt.modules.rendering.mask_upscaler import UpscalePolicy, upscale_mask
from segprompt.utils.logger import get_logger

log = get_logger(__name__)


def select_best_candidate(scores: Sequence[float] | np.ndarray) -> int:
    """
    Index of the highest score; the first one wins ties.
    NaN scores never win. Raises ValueError on an empty sequence.
    """
    arr = np.asarray(scores, dtype=np.float64).ravel()
    if arr.size == 0:
        raise ValueError("Cannot select a candidate from zero scores.")
    best = 0
    for i in range(1, arr.size):
        if arr[i] > arr[best] or (np.isnan(arr[best]) and not np.isnan(arr[i])):
            best = i
    return best


class PromptDecoderAdapter:
    """Runs the decoder against the cached embedding."""

    def __init__(
        self,
        sessions: ModelSessionManager,
        embeddings: EmbeddingCache,
        policy: UpscalePolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._sessions = sessions
        self._embeddings = embeddings
        self._policy = policy or UpscalePolicy.from_settings(settings)
        self._input_size = settings.encoder_input_size
        self._mask_input_size = settings.mask_input_size

    def build_inputs(
        self,
        prompt: Prompt,
        bundle: EmbeddingBundle,
        original_size: tuple[int, int],
    ) -> dict[str, np.ndarray]:
        """Assemble the decoder's full, fixed input set."""
        coords, labels = encode_prompt(prompt, original_size, self._input_size)
        side = self._mask_input_size

        inputs: dict[str, np.ndarray] = {
            DECODER_EMBEDDING_INPUT: bundle.image_embed,
            POINT_COORDS_INPUT: coords,
            POINT_LABELS_INPUT: labels,
            MASK_INPUT: np.zeros((1, 1, side, side), dtype=np.float32),
            HAS_MASK_INPUT: np.zeros((1,), dtype=np.float32),
        }
        inputs.update(bundle.high_res_feats)
        return inputs

    def decode(self, prompt: Prompt) -> SegmentationResult:
        """
        Decode one prompt into a full-resolution binary mask.

        Raises:
            SessionNotReadyError:      decoder session is not READY.
            NoImageSetError:           no image embedded yet.
            EmptyPromptError / MalformedBoxError: invalid prompt.
            DecoderOutputMissingError: decoder broke the output contract.
        """
        state = self._sessions.state(SessionRole.DECODER)
        if state != SessionState.READY:
            raise SessionNotReadyError(SessionRole.DECODER.value, state.value)
        bundle, (width, height) = self._embeddings.get()
        inputs = self.build_inputs(prompt, bundle, (width, height))

        outputs = self._sessions.run(SessionRole.DECODER, inputs)

        masks = find_output(outputs, MASK_OUTPUT_ALIASES)
        scores = find_output(outputs, SCORE_OUTPUT_ALIASES)
        if masks is None or scores is None:
            raise DecoderOutputMissingError(
                MASK_OUTPUT_ALIASES + SCORE_OUTPUT_ALIASES, sorted(outputs)
            )

        mask_h, mask_w = masks.shape[-2:]
        candidates = np.asarray(masks).reshape(-1, mask_h, mask_w)
        flat_scores = np.asarray(scores).ravel()
        if candidates.shape[0] == 0 or candidates.shape[0] != flat_scores.size:
            raise DecoderOutputMissingError(
                MASK_OUTPUT_ALIASES + SCORE_OUTPUT_ALIASES,
                [f"{k}{tuple(np.shape(v))}" for k, v in sorted(outputs.items())],
            )

        best = select_best_candidate(flat_scores)
        full_mask = upscale_mask(candidates[best], width, height, self._policy)

        result = SegmentationResult(
            mask=full_mask,
            score=float(flat_scores[best]),
            width=width,
            height=height,
            candidate_index=best,
        )
        log.info(
            "mask_decoded",
            n_points=len(prompt.points),
            has_box=prompt.box is not None,
            n_candidates=int(flat_scores.size),
            candidate_index=best,
            score=round(result.score, 4),
            area=result.area,
        )
        return result
