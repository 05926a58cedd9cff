# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Error Taxonomy and Global Error Handler
Defines every exception the inference pipeline raises and converts them
into structured JSON error responses. Registered on the FastAPI app in main.py.

  ModelLoadError           network or session-construction failure      → 502
  NotReadyError            session / embedding not available yet         → 409
  InvalidInputError        zero-sized image, empty prompt, bad box/point → 422
  ModelOutputMissingError  model artifact broke the tensor contract      → 500
"""

from __future__ import annotations

import traceback
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from segprompt.utils.logger import get_logger

log = get_logger(__name__)


# ─── Model Loading ───────────────────────────────────────────────────────────

class ModelLoadError(RuntimeError):
    """Raised when a model cannot be fetched or its session cannot be built."""

    def __init__(
        self,
        message: str,
        *,
        role: Optional[str] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.role = role
        self.url = url
        self.host = urlparse(url).netloc if url else None
        self.status_code = status_code
        super().__init__(message)


class ModelFetchError(ModelLoadError):
    """Raised by a fetcher on a non-2xx response or a transport failure."""

    def __init__(
        self,
        url: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        if status_code is not None:
            message = f"Failed to fetch model from {url} (HTTP {status_code})"
        else:
            message = f"Failed to fetch model from {url}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, url=url, status_code=status_code)


# ─── Readiness ───────────────────────────────────────────────────────────────

class NotReadyError(RuntimeError):
    """Raised when an embed or decode is attempted before its inputs exist."""


class SessionNotReadyError(NotReadyError):
    """Raised when an inference session is not in the READY state."""

    def __init__(self, role: str, state: str) -> None:
        self.role = role
        self.state = state
        super().__init__(f"The {role} session is not ready (state={state}).")


class EncoderNotReadyError(SessionNotReadyError):
    """Raised by set_image when the encoder session is not ready."""

    def __init__(self, state: str) -> None:
        super().__init__("encoder", state)


class NoImageSetError(NotReadyError):
    """Raised when decoding before any image has been embedded."""


# ─── Invalid Input ───────────────────────────────────────────────────────────

class InvalidInputError(ValueError):
    """Base class for caller-supplied input that cannot be processed."""


class InvalidImageError(InvalidInputError):
    """Raised for zero-sized, undecodable or oversize images."""


class EmptyPromptError(InvalidInputError):
    """Raised when a prompt carries neither points nor a box."""


class MalformedBoxError(InvalidInputError):
    """Raised when a box collapses to zero width/height or is not finite."""


class MalformedPointError(InvalidInputError):
    """Raised when a prompt point has a NaN or infinite coordinate."""


# ─── Model Contract ──────────────────────────────────────────────────────────

class ModelOutputMissingError(RuntimeError):
    """Raised when a model's outputs lack a tensor the pipeline depends on."""

    def __init__(self, role: str, expected: tuple[str, ...], found: list[str]) -> None:
        self.role = role
        self.expected = expected
        self.found = found
        super().__init__(
            f"The {role} produced none of {list(expected)}; outputs were {found}."
        )


class EncoderOutputMissingError(ModelOutputMissingError):
    """Raised when the encoder emits no primary image embedding."""

    def __init__(self, expected: tuple[str, ...], found: list[str]) -> None:
        super().__init__("encoder", expected, found)


class DecoderOutputMissingError(ModelOutputMissingError):
    """Raised when the decoder emits no masks / scores, or mismatched counts."""

    def __init__(self, expected: tuple[str, ...], found: list[str]) -> None:
        super().__init__("decoder", expected, found)


def _error_body(code: str, message: str, detail: str | None = None) -> dict:
    body = {"error": {"code": code, "message": message}}
    if detail:
        body["error"]["detail"] = detail
    return body


def register_error_handlers(app: FastAPI) -> None:
    """
    Register all global exception handlers on the FastAPI application.
    Call this in main.py after creating the app instance.
    """

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(
        req: Request, exc: InvalidInputError
    ) -> JSONResponse:
        log.warning("invalid_input", path=str(req.url), error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                code="INVALID_INPUT",
                message=str(exc),
                detail=type(exc).__name__,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        req: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Malformed request bodies share the INVALID_INPUT shape
        problems = [
            "{}: {}".format(".".join(str(part) for part in err["loc"]), err["msg"])
            for err in exc.errors()
        ]
        log.warning("request_validation_failed", path=str(req.url), errors=problems)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                code="INVALID_INPUT",
                message="; ".join(problems) or "Request body is invalid.",
                detail=type(exc).__name__,
            ),
        )

    @app.exception_handler(NotReadyError)
    async def not_ready_handler(
        req: Request, exc: NotReadyError
    ) -> JSONResponse:
        log.warning("not_ready", path=str(req.url), error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=_error_body(
                code="NOT_READY",
                message=str(exc),
                detail=type(exc).__name__,
            ),
        )

    @app.exception_handler(ModelLoadError)
    async def model_load_handler(
        req: Request, exc: ModelLoadError
    ) -> JSONResponse:
        log.error(
            "model_load_error",
            path=str(req.url),
            error=str(exc),
            role=exc.role,
            host=exc.host,
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=_error_body(
                code="MODEL_LOAD_FAILED",
                message=str(exc),
            ),
        )

    @app.exception_handler(ModelOutputMissingError)
    async def model_output_handler(
        req: Request, exc: ModelOutputMissingError
    ) -> JSONResponse:
        log.error("model_output_missing", path=str(req.url), error=str(exc), role=exc.role)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                code="MODEL_OUTPUT_MISSING",
                message=str(exc),
            ),
        )

    @app.exception_handler(Exception)
    async def generic_handler(req: Request, exc: Exception) -> JSONResponse:
        tb = traceback.format_exc()
        log.error(
            "unhandled_exception",
            path=str(req.url),
            error=str(exc),
            exc_type=type(exc).__name__,
            traceback=tb,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                code="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred.",
            ),
        )
