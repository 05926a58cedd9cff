# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Phase 1 infrastructure smoke tests.
Tests config loading, model byte caches, the HTTP model fetcher,
and the API skeleton with fake inference collaborators.
No models, no GPU, no network required.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import numpy as np
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from fakes import (
    DECODER_BYTES,
    DECODER_URL,
    ENCODER_BYTES,
    ENCODER_URL,
    FakeEngine,
    FakeFetcher,
    make_settings,
)

# ─── Config ──────────────────────────────────────────────────────────────────

def test_settings_load_defaults():
    from segprompt.config import Settings
    # Construct with explicit log level so CI environment variables
    # do not interfere with the values being asserted.
    s = Settings(_env_file=None, log_level="INFO")
    assert s.encoder_input_size == 1024
    assert s.encoder_progress_share == 60
    assert s.model_cache_backend == "disk"
    assert s.mask_threshold == 127
    assert s.mask_intensity_mode == "binary"
    assert s.overlay_base_colour == (99, 102, 241)
    assert s.overlay_base_alpha == 180
    assert s.fetch_timeout_seconds is None
    assert s.encoder_model_url.endswith("sam2_hiera_tiny.encoder.ort")


def test_settings_env_override(monkeypatch):
    from segprompt.config import Settings
    monkeypatch.setenv("MODEL_CACHE_BACKEND", "memory")
    monkeypatch.setenv("MASK_THRESHOLD", "64")
    s = Settings(_env_file=None)
    assert s.model_cache_backend == "memory"
    assert s.mask_threshold == 64


def test_settings_upload_max_bytes():
    from segprompt.config import Settings
    s = Settings(_env_file=None, upload_max_mb=10)
    assert s.upload_max_bytes == 10 * 1024 * 1024


def test_settings_derived_shapes():
    from segprompt.config import Settings
    s = Settings(_env_file=None)
    assert s.image_embed_shape == (1, 256, 64, 64)
    assert s.mask_input_size == 256
    assert s.high_res_feature_shapes == {
        "high_res_feats_0": (1, 32, 256, 256),
        "high_res_feats_1": (1, 64, 128, 128),
    }


def test_settings_model_cache_dir():
    from segprompt.config import Settings
    s = Settings(_env_file=None, storage_root=Path("/tmp/sp"))
    assert s.model_cache_dir == Path("/tmp/sp/models")


# ─── Byte Caches ─────────────────────────────────────────────────────────────

def test_memory_byte_cache_roundtrip():
    from segprompt.modules.inference.byte_cache import InMemoryByteCache

    cache = InMemoryByteCache()
    assert cache.get("a") is None
    cache.put("a", b"xyz")
    assert cache.get("a") == b"xyz"
    assert cache.contains("a")
    assert cache.count() == 1
    cache.delete("a")
    cache.delete("a")   # missing key is fine
    assert cache.get("a") is None


def test_disk_byte_cache_roundtrip(tmp_path):
    from segprompt.modules.inference.byte_cache import DiskByteCache

    cache = DiskByteCache(tmp_path / "models")
    assert cache.get(ENCODER_URL) is None

    cache.put(ENCODER_URL, ENCODER_BYTES)
    assert cache.get(ENCODER_URL) == ENCODER_BYTES
    assert cache.path_for(ENCODER_URL).parent == tmp_path / "models"
    assert cache.path_for(ENCODER_URL) != cache.path_for(DECODER_URL)
    # No temp files left behind
    assert [p.suffix for p in (tmp_path / "models").iterdir()] == [".bin"]

    cache.delete(ENCODER_URL)
    assert not cache.contains(ENCODER_URL)


def test_disk_byte_cache_overwrite(tmp_path):
    from segprompt.modules.inference.byte_cache import DiskByteCache

    cache = DiskByteCache(tmp_path)
    cache.put("k", b"old")
    cache.put("k", b"new")
    assert cache.get("k") == b"new"


def _load_download_script():
    import importlib.util
    path = Path(__file__).parents[2] / "scripts" / "download_models.py"
    spec = importlib.util.spec_from_file_location("download_models", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.asyncio
async def test_download_script_skips_cached_model_without_reading(tmp_path, monkeypatch):
    from segprompt.modules.inference.byte_cache import DiskByteCache

    script = _load_download_script()
    cache = DiskByteCache(tmp_path)
    cache.put(ENCODER_URL, ENCODER_BYTES)

    def _no_read(key):
        raise AssertionError("cached model bytes should not be loaded")

    monkeypatch.setattr(cache, "get", _no_read)
    fetcher = FakeFetcher()
    await script.download_model(fetcher, cache, ENCODER_URL)
    assert fetcher.requested == []

    await script.download_model(fetcher, cache, DECODER_URL)
    assert fetcher.requested == [DECODER_URL]
    assert cache.path_for(DECODER_URL).read_bytes() == DECODER_BYTES


def test_make_byte_cache_selects_backend(tmp_path):
    from segprompt.modules.inference.byte_cache import (
        DiskByteCache,
        InMemoryByteCache,
        make_byte_cache,
    )

    assert isinstance(make_byte_cache(make_settings()), InMemoryByteCache)
    disk = make_byte_cache(make_settings(model_cache_backend="disk", storage_root=tmp_path))
    assert isinstance(disk, DiskByteCache)
    assert disk.root == tmp_path / "models"


# ─── HTTP Model Fetcher ──────────────────────────────────────────────────────

def _mock_fetcher(handler):
    from segprompt.modules.inference.model_fetcher import HttpModelFetcher
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpModelFetcher(client=client), client


@pytest.mark.asyncio
async def test_http_fetcher_returns_body_and_progress():
    payload = b"\x00\x01" * 5000

    def handler(request):
        return httpx.Response(200, content=payload)

    fetcher, client = _mock_fetcher(handler)
    seen: list[float] = []
    try:
        data = await fetcher.fetch(ENCODER_URL, seen.append)
    finally:
        await client.aclose()

    assert data == payload
    assert seen and seen[-1] == pytest.approx(1.0)
    assert seen == sorted(seen)


@pytest.mark.asyncio
async def test_http_fetcher_non_success_status():
    from segprompt.api.middleware.error_handler import ModelFetchError

    fetcher, client = _mock_fetcher(lambda request: httpx.Response(404))
    try:
        with pytest.raises(ModelFetchError) as exc_info:
            await fetcher.fetch(DECODER_URL)
    finally:
        await client.aclose()

    assert exc_info.value.status_code == 404
    assert exc_info.value.url == DECODER_URL
    assert exc_info.value.host == "models.test"
    assert "404" in str(exc_info.value)


@pytest.mark.asyncio
async def test_http_fetcher_transport_error():
    from segprompt.api.middleware.error_handler import ModelFetchError

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher, client = _mock_fetcher(handler)
    try:
        with pytest.raises(ModelFetchError) as exc_info:
            await fetcher.fetch(ENCODER_URL)
    finally:
        await client.aclose()

    assert exc_info.value.status_code is None
    assert ENCODER_URL in str(exc_info.value)


# ─── API Smoke Tests ─────────────────────────────────────────────────────────
# Use ASGITransport and asgi_lifespan so the FastAPI lifespan runs
# (which builds the pipeline on app.state).

@asynccontextmanager
async def lifespan_client(fetcher=None, engine=None, **overrides):
    """
    Spin up the full FastAPI app including its lifespan (startup/shutdown)
    with fake inference collaborators, then yield an AsyncClient.
    """
    from segprompt.main import create_app

    settings = make_settings(**overrides)
    test_app = create_app(
        settings=settings,
        fetcher=fetcher or FakeFetcher(),
        engine=engine or FakeEngine(settings),
    )

    async with LifespanManager(test_app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


async def _wait_for_models(client, attempts: int = 50) -> dict:
    body = {}
    for _ in range(attempts):
        body = (await client.get("/models/status")).json()
        if not body["loading"] and (body["error"] or body["decoder"] == "ready"):
            break
        await asyncio.sleep(0.01)
    return body


def _png_bytes(width: int = 200, height: int = 100) -> bytes:
    from fakes import png_bytes
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, : width // 2] = (200, 30, 30)
    return png_bytes(img)


@pytest.mark.asyncio
async def test_health_endpoint():
    async with lifespan_client() as c:
        resp = await c.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["service"] == "segprompt"
    assert data["models_ready"] is False


@pytest.mark.asyncio
async def test_docs_available():
    async with lifespan_client() as c:
        resp = await c.get("/docs")
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_models_status_initially_unloaded():
    async with lifespan_client() as c:
        resp = await c.get("/models/status")
    assert resp.status_code == 200
    body = resp.json()
    assert body["encoder"] == "unloaded"
    assert body["decoder"] == "unloaded"
    assert body["progress"] == 0
    assert body["image_ready"] is False


@pytest.mark.asyncio
async def test_segment_before_load_is_not_ready():
    async with lifespan_client() as c:
        resp = await c.post("/segment", json={"points": [{"x": 10, "y": 10}]})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "NOT_READY"


@pytest.mark.asyncio
async def test_image_before_load_is_not_ready():
    async with lifespan_client() as c:
        resp = await c.post("/image", files={"image": ("a.png", _png_bytes(), "image/png")})
    assert resp.status_code == 409
    assert resp.json()["error"]["detail"] == "EncoderNotReadyError"


@pytest.mark.asyncio
async def test_full_segmentation_flow():
    async with lifespan_client() as c:
        resp = await c.post("/models/load")
        assert resp.status_code == 202

        status = await _wait_for_models(c)
        assert status["encoder"] == "ready"
        assert status["decoder"] == "ready"
        assert status["progress"] == 100

        resp = await c.post("/image", files={"image": ("a.png", _png_bytes(), "image/png")})
        assert resp.status_code == 200
        assert resp.json()["width"] == 200
        assert resp.json()["height"] == 100

        prompt = {"points": [{"x": 100, "y": 50, "label": 1}]}
        resp = await c.post("/segment", json=prompt)
        assert resp.status_code == 200
        body = resp.json()
        assert body["candidate_index"] == 1
        assert body["score"] == pytest.approx(0.9)
        assert (body["width"], body["height"]) == (200, 100)
        assert 0 < body["area"] < 200 * 100

        resp = await c.post("/segment/mask.png", json=prompt)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.content[:4] == b"\x89PNG"
        assert resp.headers["x-mask-candidate"] == "1"

        resp = await c.post("/segment/overlay.png", json=prompt)
        assert resp.status_code == 200
        assert resp.content[:4] == b"\x89PNG"

        resp = await c.delete("/image")
        assert resp.status_code == 200
        resp = await c.post("/segment", json=prompt)
        assert resp.status_code == 409


@pytest.mark.asyncio
async def test_invalid_upload_rejected():
    async with lifespan_client() as c:
        await c.post("/models/load")
        await _wait_for_models(c)
        resp = await c.post("/image", files={"image": ("a.png", b"not an image", "image/png")})
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_empty_prompt_rejected():
    async with lifespan_client() as c:
        await c.post("/models/load")
        await _wait_for_models(c)
        await c.post("/image", files={"image": ("a.png", _png_bytes(), "image/png")})
        resp = await c.post("/segment", json={"points": []})
    assert resp.status_code == 422
    assert resp.json()["error"]["detail"] == "EmptyPromptError"


@pytest.mark.asyncio
async def test_non_finite_point_rejected():
    async with lifespan_client() as c:
        await c.post("/models/load")
        await _wait_for_models(c)
        await c.post("/image", files={"image": ("a.png", _png_bytes(), "image/png")})
        # Python's json module accepts the NaN / Infinity literals
        resp = await c.post(
            "/segment",
            content=b'{"points": [{"x": NaN, "y": Infinity, "label": 1}]}',
            headers={"content-type": "application/json"},
        )
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "INVALID_INPUT"
    assert error["detail"] == "MalformedPointError"


@pytest.mark.asyncio
async def test_malformed_prompt_body_uses_error_shape():
    async with lifespan_client() as c:
        resp = await c.post("/segment", json={"points": [{"x": 1, "y": 2, "label": 5}]})
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "INVALID_INPUT"
    assert error["detail"] == "RequestValidationError"
    assert "label" in error["message"]


@pytest.mark.asyncio
async def test_failed_load_reported_in_status():
    fetcher = FakeFetcher({ENCODER_URL: 503})
    async with lifespan_client(fetcher=fetcher) as c:
        resp = await c.post("/models/load")
        assert resp.status_code == 202
        status = await _wait_for_models(c)
    assert status["encoder"] == "failed"
    assert status["decoder"] == "unloaded"
    assert "503" in status["error"]
    assert ENCODER_URL in status["error"]


@pytest.mark.asyncio
async def test_preload_models_on_startup():
    async with lifespan_client(preload_models=True) as c:
        resp = await c.get("/health")
    assert resp.json()["models_ready"] is True
