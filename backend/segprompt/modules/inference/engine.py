# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Inference Engine
Builds inference sessions from raw model bytes and runs them on named
numpy tensors. OnnxInferenceEngine wraps onnxruntime; tests inject a
fake engine with the same interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

import numpy as np

from segprompt.config import Settings, get_settings
from segprompt.utils.logger import get_logger

log = get_logger(__name__)


class InferenceSession(ABC):
    """A loaded model. run() is blocking and thread-safe."""

    @property
    @abstractmethod
    def input_names(self) -> list[str]:
        ...

    @property
    @abstractmethod
    def output_names(self) -> list[str]:
        ...

    @abstractmethod
    def run(self, inputs: Mapping[str, np.ndarray]) -> dict[str, np.ndarray]:
        """Run the model and return every output by name."""


class InferenceEngine(ABC):

    @abstractmethod
    def create_session(self, model_bytes: bytes, role: str) -> InferenceSession:
        """Build a session from serialized model bytes. Blocking."""


# ─── ONNX Runtime ────────────────────────────────────────────────────────────

class OnnxSession(InferenceSession):

    def __init__(self, session) -> None:
        self._session = session
        self._inputs = [i.name for i in session.get_inputs()]
        self._outputs = [o.name for o in session.get_outputs()]

    @property
    def input_names(self) -> list[str]:
        return list(self._inputs)

    @property
    def output_names(self) -> list[str]:
        return list(self._outputs)

    def run(self, inputs: Mapping[str, np.ndarray]) -> dict[str, np.ndarray]:
        # Decoder exports differ in which optional inputs they declare
        feed = {name: inputs[name] for name in self._inputs if name in inputs}
        values = self._session.run(None, feed)
        return dict(zip(self._outputs, values))


class OnnxInferenceEngine(InferenceEngine):
    """
    onnxruntime-backed engine.
    Requested execution providers are filtered to those the installed
    runtime supports, falling back to CPU.
    """

    _OPT_LEVELS = {
        "disabled": "ORT_DISABLE_ALL",
        "basic": "ORT_ENABLE_BASIC",
        "extended": "ORT_ENABLE_EXTENDED",
        "all": "ORT_ENABLE_ALL",
    }

    def __init__(self, settings: Settings | None = None) -> None:
        try:
            import onnxruntime as ort
        except ImportError as e:
            raise ImportError(
                "onnxruntime package not found. "
                "Run: pip install onnxruntime"
            ) from e

        self._ort = ort
        settings = settings or get_settings()

        available = set(ort.get_available_providers())
        providers = [p for p in settings.ort_execution_providers if p in available]
        self._providers = providers or ["CPUExecutionProvider"]
        self._opt_level = getattr(
            ort.GraphOptimizationLevel,
            self._OPT_LEVELS[settings.ort_graph_optimization],
        )
        log.info(
            "onnx_engine_ready",
            providers=self._providers,
            graph_optimization=settings.ort_graph_optimization,
            ort_version=ort.__version__,
        )

    @property
    def providers(self) -> list[str]:
        return list(self._providers)

    def create_session(self, model_bytes: bytes, role: str) -> InferenceSession:
        options = self._ort.SessionOptions()
        options.graph_optimization_level = self._opt_level
        session = self._ort.InferenceSession(
            model_bytes,
            sess_options=options,
            providers=self._providers,
        )
        wrapped = OnnxSession(session)
        log.info(
            "onnx_session_created",
            role=role,
            inputs=wrapped.input_names,
            outputs=wrapped.output_names,
        )
        return wrapped
