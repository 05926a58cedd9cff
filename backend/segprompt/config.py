# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
SegPrompt — Application Configuration
All settings are loaded from environment variables with defaults tuned
for the SAM2 Hiera-Tiny ONNX export. Override via backend/.env or environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

_MODEL_BASE_URL = "https://storage.googleapis.com/lb-artifacts-testing-public/sam2"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─── Model Sources ───────────────────────────────────────────────────────
    encoder_model_url: str = f"{_MODEL_BASE_URL}/sam2_hiera_tiny.encoder.ort"
    decoder_model_url: str = f"{_MODEL_BASE_URL}/sam2_hiera_tiny.decoder.onnx"

    # ─── Model Contract ──────────────────────────────────────────────────────
    # Square side of the encoder input; every other tensor shape derives from it
    encoder_input_size: int = 1024

    # ─── ONNX Runtime ────────────────────────────────────────────────────────
    ort_execution_providers: list[str] = ["CPUExecutionProvider"]
    ort_graph_optimization: Literal["disabled", "basic", "extended", "all"] = "all"

    # ─── Load Progress ───────────────────────────────────────────────────────
    # Encoder owns [0, split], decoder owns [split, 100]
    encoder_progress_share: int = 60

    # ─── Model Byte Cache ────────────────────────────────────────────────────
    model_cache_backend: Literal["memory", "disk", "redis"] = "disk"
    storage_root: Path = Path("./storage")
    redis_url: str = "redis://localhost:6379/0"
    model_cache_ttl_seconds: int = 0  # 0 = never expire

    # ─── Network ─────────────────────────────────────────────────────────────
    # None = no implicit timeout; model downloads can be large
    fetch_timeout_seconds: Optional[float] = None

    # ─── Mask Upscaling ──────────────────────────────────────────────────────
    upscale_intermediate_factor: int = 4
    upscale_two_stage_ratio: float = 4.0
    mask_threshold: int = 127
    mask_intensity_mode: Literal["binary", "proportional"] = "binary"

    # ─── Overlay Rendering (RGB) ─────────────────────────────────────────────
    overlay_base_colour: tuple[int, int, int] = (99, 102, 241)
    overlay_base_alpha: int = 180
    overlay_edge_colour: tuple[int, int, int] = (255, 255, 255)
    overlay_edge_width: int = 1

    # ─── Uploads ─────────────────────────────────────────────────────────────
    upload_max_mb: int = 50
    # Full-resolution masks and overlays are allocated at source size
    upload_max_side_px: int = 16_000

    # ─── Startup ─────────────────────────────────────────────────────────────
    preload_models: bool = False

    # ─── Logging ─────────────────────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ─── Server ──────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    # ─── Derived helpers ─────────────────────────────────────────────────────
    @property
    def upload_max_bytes(self) -> int:
        return self.upload_max_mb * 1024 * 1024

    @property
    def model_cache_dir(self) -> Path:
        return self.storage_root / "models"

    @property
    def mask_input_size(self) -> int:
        """Side of the decoder's low-res mask grid (256 for a 1024 input)."""
        return self.encoder_input_size // 4

    @property
    def image_embed_shape(self) -> tuple[int, int, int, int]:
        side = self.encoder_input_size // 16
        return (1, 256, side, side)

    @property
    def high_res_feature_shapes(self) -> dict[str, tuple[int, int, int, int]]:
        """Auxiliary encoder features, in the order the decoder consumes them."""
        s = self.encoder_input_size
        return {
            "high_res_feats_0": (1, 32, s // 4, s // 4),
            "high_res_feats_1": (1, 64, s // 8, s // 8),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached singleton Settings instance."""
    return Settings()
