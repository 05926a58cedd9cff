# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — FastAPI Application Entry Point
Creates the app, registers lifespan events, CORS, routers,
and global error handlers.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from segprompt.api.middleware.error_handler import ModelLoadError, register_error_handlers
from segprompt.api.routes import image, models, segment
from segprompt.config import Settings, get_settings
from segprompt.dependencies import init_pipeline
from segprompt.modules.inference.byte_cache import ByteCache
from segprompt.modules.inference.engine import InferenceEngine
from segprompt.modules.inference.model_fetcher import ModelFetcher
from segprompt.utils.logger import configure_logging, get_logger

log = get_logger(__name__)

VERSION = "1.0.0"


def create_app(
    settings: Settings | None = None,
    byte_cache: ByteCache | None = None,
    fetcher: ModelFetcher | None = None,
    engine: InferenceEngine | None = None,
) -> FastAPI:
    """
    Build the application. Collaborators are optional; production runs
    with the configured byte cache, HTTP fetcher and onnxruntime engine.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.
        Startup: configure logging, build the pipeline, optionally preload models.
        Shutdown: close the fetcher's HTTP client.
        """
        # ── Startup ──────────────────────────────────────────────────────────
        configure_logging(settings)

        log.info(
            "segprompt_startup",
            version=VERSION,
            encoder_url=settings.encoder_model_url,
            decoder_url=settings.decoder_model_url,
            input_size=settings.encoder_input_size,
            cache_backend=settings.model_cache_backend,
            providers=settings.ort_execution_providers,
        )

        pipeline = init_pipeline(
            app,
            settings,
            byte_cache=byte_cache,
            fetcher=fetcher,
            engine=engine,
        )

        # Optional warm-up; otherwise models load on POST /models/load
        if settings.preload_models:
            try:
                await pipeline.load_models()
                log.info("model_warmup_complete")
            except ModelLoadError as e:
                log.warning(
                    "model_warmup_failed",
                    role=e.role,
                    host=e.host,
                    error=str(e),
                    advice="Run python scripts/download_models.py to pre-warm the model cache.",
                )

        log.info("segprompt_ready")
        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await pipeline.aclose()
        log.info("segprompt_shutdown")

    app = FastAPI(
        title="SegPrompt",
        summary="Prompt-driven image segmentation with SAM2 on onnxruntime.",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",   # Vite dev server
            "http://localhost:3000",   # Alternative dev port
            "http://localhost:80",     # Docker nginx
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Mask-Score", "X-Mask-Candidate"],
    )

    # ── Error Handlers ───────────────────────────────────────────────────────
    register_error_handlers(app)

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(models.router)
    app.include_router(image.router)
    app.include_router(segment.router)

    # ── Health Check ─────────────────────────────────────────────────────────
    @app.get("/health", tags=["health"], summary="Health check")
    async def health() -> dict:
        pipeline = getattr(app.state, "pipeline", None)
        return {
            "status": "ok",
            "service": "segprompt",
            "version": VERSION,
            "models_ready": bool(pipeline and pipeline.is_ready),
            "cache_backend": settings.model_cache_backend,
        }

    return app


# Module-level app instance for uvicorn
app = create_app()
