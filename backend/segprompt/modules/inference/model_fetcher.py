# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Model Fetcher
Downloads raw model bytes over HTTP(S).
Streams the body so download progress can drive the load progress bar.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

import httpx

from segprompt.api.middleware.error_handler import ModelFetchError
from segprompt.utils.logger import get_logger

log = get_logger(__name__)

# Called with the downloaded fraction in [0, 1]
FetchProgress = Callable[[float], None]


class ModelFetcher(ABC):

    @abstractmethod
    async def fetch(self, url: str, on_progress: Optional[FetchProgress] = None) -> bytes:
        """Return the body at url. Raises ModelFetchError on any failure."""

    async def aclose(self) -> None:
        """Release network resources. Default: nothing to release."""


class HttpModelFetcher(ModelFetcher):
    """
    httpx-based fetcher.
    Owns its AsyncClient unless one is injected (tests use MockTransport).
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    async def fetch(self, url: str, on_progress: Optional[FetchProgress] = None) -> bytes:
        log.info("model_fetch_start", url=url)
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise ModelFetchError(url, status_code=response.status_code)

                total = int(response.headers.get("content-length") or 0)
                chunks: list[bytes] = []
                received = 0
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
                    received += len(chunk)
                    if on_progress is not None and total > 0:
                        on_progress(min(received / total, 1.0))
        except httpx.HTTPError as exc:
            raise ModelFetchError(url, reason=str(exc) or type(exc).__name__) from exc

        log.info("model_fetch_complete", url=url, size_bytes=received)
        return b"".join(chunks)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
