# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Model Session Manager
Owns the lifecycle of the encoder and decoder inference sessions.

Per model, in order:
  1. Look up raw bytes in the byte cache (key = model URL)
  2. On a miss, fetch over HTTP, then best-effort write back to the cache
  3. Build the inference session from the bytes (worker thread)

State machine per session:
  unloaded → loading → ready
             loading → failed      (terminal for this attempt; load() retries)

Progress is an integer in [0, 100]. Each model owns a sub-range
(encoder [0, 60], decoder [60, 100] by default) and progress never moves
backwards within one load() call, including on cache hits.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import numpy as np

from segprompt.api.middleware.error_handler import ModelLoadError, SessionNotReadyError
from segprompt.config import Settings, get_settings
from segprompt.models.session import ModelStatus, SessionRole, SessionState
from segprompt.modules.inference.byte_cache import ByteCache
from segprompt.modules.inference.engine import InferenceEngine, InferenceSession
from segprompt.modules.inference.model_fetcher import ModelFetcher
from segprompt.utils.logger import get_logger

log = get_logger(__name__)

ProgressCallback = Callable[[int], None]

# Share of a model's progress range reached once its bytes are in hand;
# session construction covers the rest
_BYTES_READY_FRACTION = 0.8


@dataclass(frozen=True)
class ModelSource:
    role: SessionRole
    url: str
    progress_start: int
    progress_end: int


def default_sources(settings: Settings) -> list[ModelSource]:
    split = settings.encoder_progress_share
    return [
        ModelSource(SessionRole.ENCODER, settings.encoder_model_url, 0, split),
        ModelSource(SessionRole.DECODER, settings.decoder_model_url, split, 100),
    ]


class _ProgressReporter:
    """Forwards integer progress, dropping any value that would go backwards."""

    def __init__(self, sink: Callable[[int], None]) -> None:
        self._sink = sink
        self._last = -1

    def report(self, value: float) -> None:
        pct = int(max(0.0, min(100.0, value)))
        if pct <= self._last:
            return
        self._last = pct
        self._sink(pct)


class ModelSessionManager:
    """
    Loads and runs the two inference sessions.
    One instance per pipeline; nothing is shared between instances.
    """

    def __init__(
        self,
        sources: list[ModelSource],
        byte_cache: ByteCache,
        fetcher: ModelFetcher,
        engine: InferenceEngine,
    ) -> None:
        self._sources = sorted(sources, key=lambda s: s.progress_start)
        self._cache = byte_cache
        self._fetcher = fetcher
        self._engine = engine

        self._states: dict[SessionRole, SessionState] = {
            s.role: SessionState.UNLOADED for s in self._sources
        }
        self._sessions: dict[SessionRole, InferenceSession] = {}
        self._lock = asyncio.Lock()
        self._progress = 0
        self._last_error: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        byte_cache: ByteCache,
        fetcher: ModelFetcher,
        engine: InferenceEngine,
        settings: Settings | None = None,
    ) -> "ModelSessionManager":
        settings = settings or get_settings()
        return cls(default_sources(settings), byte_cache, fetcher, engine)

    # ── State ────────────────────────────────────────────────────────────────

    def state(self, role: SessionRole) -> SessionState:
        return self._states[role]

    @property
    def is_ready(self) -> bool:
        return all(s == SessionState.READY for s in self._states.values())

    @property
    def is_loading(self) -> bool:
        return any(s == SessionState.LOADING for s in self._states.values())

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def status(self) -> ModelStatus:
        return ModelStatus(
            encoder=self._states.get(SessionRole.ENCODER, SessionState.UNLOADED),
            decoder=self._states.get(SessionRole.DECODER, SessionState.UNLOADED),
            loading=self.is_loading,
            progress=self._progress,
            error=self._last_error,
        )

    def reset(self) -> None:
        """Drop all sessions back to UNLOADED."""
        self._sessions.clear()
        for role in self._states:
            self._states[role] = SessionState.UNLOADED
        self._progress = 0
        self._last_error = None
        log.info("model_sessions_reset")

    # ── Loading ──────────────────────────────────────────────────────────────

    async def load(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Load every session that is not already READY.
        No-op (reporting 100) when all sessions are ready.
        Raises ModelLoadError on the first failure; later models are not attempted.
        """
        async with self._lock:
            def sink(pct: int) -> None:
                self._progress = pct
                if on_progress is not None:
                    on_progress(pct)

            reporter = _ProgressReporter(sink)

            if self.is_ready:
                log.debug("models_already_loaded")
                reporter.report(100)
                return

            self._progress = 0
            self._last_error = None

            for source in self._sources:
                if self._states[source.role] == SessionState.READY:
                    reporter.report(source.progress_end)
                    continue
                await self._load_one(source, reporter)

            log.info("models_ready", roles=[s.role.value for s in self._sources])

    async def _load_one(self, source: ModelSource, reporter: _ProgressReporter) -> None:
        role = source.role
        start, end = source.progress_start, source.progress_end
        span = end - start
        bytes_ready = start + span * _BYTES_READY_FRACTION

        self._states[role] = SessionState.LOADING
        self._sessions.pop(role, None)
        reporter.report(start)
        log.info("model_load_start", role=role.value, url=source.url)

        try:
            data = await asyncio.to_thread(self._cache.get, source.url)
            if data is None:
                log.info("model_cache_miss", role=role.value, url=source.url)
                data = await self._fetcher.fetch(
                    source.url,
                    on_progress=lambda f: reporter.report(start + span * _BYTES_READY_FRACTION * f),
                )
                reporter.report(bytes_ready)
                await self._write_cache(source.url, data)
            else:
                log.info("model_cache_hit", role=role.value, size_bytes=len(data))
                reporter.report(bytes_ready)

            session = await asyncio.to_thread(self._engine.create_session, data, role.value)

        except asyncio.CancelledError:
            self._mark_failed(role, f"Loading the {role.value} model was cancelled.")
            raise
        except ModelLoadError as exc:
            error = ModelLoadError(
                f"Failed to load {role.value} model: {exc}",
                role=role.value,
                url=exc.url or source.url,
                status_code=exc.status_code,
            )
            self._mark_failed(role, str(error))
            raise error from exc
        except Exception as exc:
            error = ModelLoadError(
                f"Failed to load {role.value} model from {source.url}: "
                f"{type(exc).__name__}: {exc}",
                role=role.value,
                url=source.url,
            )
            self._mark_failed(role, str(error))
            raise error from exc

        self._sessions[role] = session
        self._states[role] = SessionState.READY
        reporter.report(end)
        log.info("model_load_complete", role=role.value)

    async def _write_cache(self, key: str, data: bytes) -> None:
        """Best-effort write-back; a failure never fails the load."""
        try:
            await asyncio.to_thread(self._cache.put, key, data)
        except Exception as exc:
            log.warning("model_cache_write_failed", url=key, error=str(exc))
            return
        log.info("model_cache_write", url=key, size_bytes=len(data))

    def _mark_failed(self, role: SessionRole, message: str) -> None:
        self._states[role] = SessionState.FAILED
        self._sessions.pop(role, None)
        self._last_error = message
        log.error("model_load_failed", role=role.value, error=message)

    # ── Inference ────────────────────────────────────────────────────────────

    def run(self, role: SessionRole, inputs: Mapping[str, np.ndarray]) -> dict[str, np.ndarray]:
        """Run a READY session. Blocking. Raises SessionNotReadyError otherwise."""
        session = self._sessions.get(role)
        state = self._states.get(role, SessionState.UNLOADED)
        if state != SessionState.READY or session is None:
            raise SessionNotReadyError(role.value, state.value)
        return session.run(inputs)

    async def aclose(self) -> None:
        await self._fetcher.aclose()
