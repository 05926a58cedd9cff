# Copyright (c) 2026 Harsh Dwivedi
# Licensed under the Harsh Non-Commercial Attribution License (HNCAL) v1.0
# Commercial use requires written permission. See LICENSE for details.

"""
Shared fixtures built on the fakes in fakes.py.
"""

import numpy as np
import pytest

from fakes import FakeEngine, FakeFetcher, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def engine(settings) -> FakeEngine:
    return FakeEngine(settings)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def rgb_image() -> np.ndarray:
    """200 × 100 RGB test image (width 200, height 100)."""
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(100, 200, 3), dtype=np.uint8)
