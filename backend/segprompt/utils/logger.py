# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Structured Logging
JSON-formatted logs via structlog. Inference events carry the session
role and tensor shapes so slow or failing stages are easy to trace.

numpy values are flattened before rendering: scalars become Python
numbers and arrays are summarised as "float32[1, 256, 64, 64]", so a
stray tensor in an event never dumps megabytes into the log.
"""

import logging
import sys
from typing import Any

import numpy as np
import structlog
from structlog.types import EventDict, Processor

from segprompt.config import Settings, get_settings

# Libraries whose per-request chatter duplicates our own fetch events
_QUIET_LOGGERS = ("httpx", "httpcore")


def _add_app_info(
    logger: Any, method: str, event_dict: EventDict
) -> EventDict:
    event_dict["app"] = "segprompt"
    return event_dict


def _drop_color_message_key(
    logger: Any, method: str, event_dict: EventDict
) -> EventDict:
    """Remove uvicorn's color_message to keep logs clean."""
    event_dict.pop("color_message", None)
    return event_dict


def _to_native(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return f"{value.dtype}{list(value.shape)}"
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (tuple, list)):
        return [_to_native(v) for v in value]
    return value


def _flatten_numpy(
    logger: Any, method: str, event_dict: EventDict
) -> EventDict:
    for key, value in event_dict.items():
        event_dict[key] = _to_native(value)
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog for JSON output in production and
    human-readable console output in development (DEBUG level).
    Called once at application startup.
    """
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _add_app_info,
        _drop_color_message_key,
        _flatten_numpy,
    ]

    if settings.log_level == "DEBUG":
        renderers: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        renderers = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stdout),
        cache_logger_on_first_use=True,
    )

    # stdlib passthrough for uvicorn; httpx only above INFO
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str = "segprompt") -> structlog.BoundLogger:
    """
    Return a structlog bound logger.

    Usage:
        log = get_logger(__name__)
        log.info("mask_decoded", score=0.93, candidate_index=1)
    """
    return structlog.get_logger(name)
