# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Inference Module
Public API for model loading, the embedding cache and prompt decoding.
"""

from segprompt.modules.inference.byte_cache import (
    ByteCache,
    DiskByteCache,
    InMemoryByteCache,
    RedisByteCache,
    make_byte_cache,
)
from segprompt.modules.inference.embedding_cache import EmbeddingCache
from segprompt.modules.inference.engine import (
    InferenceEngine,
    InferenceSession,
    OnnxInferenceEngine,
)
from segprompt.modules.inference.model_fetcher import HttpModelFetcher, ModelFetcher
from segprompt.modules.inference.prompt_decoder import (
    PromptDecoderAdapter,
    select_best_candidate,
)
from segprompt.modules.inference.session_manager import (
    ModelSessionManager,
    ModelSource,
    default_sources,
)

__all__ = [
    # Byte cache
    "ByteCache",
    "InMemoryByteCache",
    "DiskByteCache",
    "RedisByteCache",
    "make_byte_cache",
    # Fetcher / engine
    "ModelFetcher",
    "HttpModelFetcher",
    "InferenceEngine",
    "InferenceSession",
    "OnnxInferenceEngine",
    # Sessions
    "ModelSessionManager",
    "ModelSource",
    "default_sources",
    # Embedding + decoding
    "EmbeddingCache",
    "PromptDecoderAdapter",
    "select_best_candidate",
]
