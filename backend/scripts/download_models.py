"""
SegPrompt — Model Download Script
Downloads the SAM2 encoder and decoder into the disk model cache
(backend/storage/models/ by default) so the first load needs no network.
Run once before first launch: python scripts/download_models.py
"""

import asyncio
import sys
from pathlib import Path

# ─── Paths ───────────────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).parent
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR))

from segprompt.api.middleware.error_handler import ModelLoadError  # noqa: E402
from segprompt.config import get_settings  # noqa: E402
from segprompt.modules.inference.byte_cache import DiskByteCache  # noqa: E402
from segprompt.modules.inference.model_fetcher import HttpModelFetcher  # noqa: E402
from segprompt.modules.inference.session_manager import default_sources  # noqa: E402


def _progress_hook(fraction: float) -> None:
    pct = min(int(fraction * 100), 100)
    bar = "#" * (pct // 2) + "-" * (50 - pct // 2)
    sys.stdout.write(f"\r  [{bar}] {pct}%")
    sys.stdout.flush()


async def download_model(fetcher: HttpModelFetcher, cache: DiskByteCache, url: str) -> None:
    filename = url.rsplit("/", 1)[-1]

    if cache.path_for(url).is_file():
        print(f"  ✓ {filename} already cached — skipping download.")
        return

    print(f"  Downloading {filename}")
    data = await fetcher.fetch(url, _progress_hook)
    print()
    cache.put(url, data)
    print(f"  ✓ {filename} cached at {cache.path_for(url)} ({len(data) / 1e6:.1f} MB)")


async def run() -> int:
    settings = get_settings()
    cache = DiskByteCache(settings.model_cache_dir)
    fetcher = HttpModelFetcher(timeout=settings.fetch_timeout_seconds)
    print(f"Model cache directory: {cache.root}\n")

    try:
        for source in default_sources(settings):
            print(f"[ SAM2 {source.role.value} ]")
            try:
                await download_model(fetcher, cache, source.url)
            except ModelLoadError as e:
                print(f"\n  ✗ {e}")
                return 1
            print()
    finally:
        await fetcher.aclose()
    return 0


def main() -> None:
    print("\n✂️  SegPrompt — Model Download\n" + "─" * 40)

    code = asyncio.run(run())
    if code:
        sys.exit(code)

    print("─" * 40)
    print("✅ All models ready. You can now start SegPrompt.\n")


if __name__ == "__main__":
    main()
