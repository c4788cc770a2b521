"""Pytest configuration for terrain tests."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the flat modules importable without installing the project.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import ChunkParameters, NoiseParameters, TerrainConfig  # noqa: E402


@pytest.fixture
def small_config() -> TerrainConfig:
    # Coarse chunks keep noise evaluation cheap.
    return TerrainConfig(
        n=5,
        sea_level=10.0,
        chunk=ChunkParameters(size=100.0, segments=4),
        noise=NoiseParameters(octaves=3, height=120.0, scale=200.0, exponentiation=1.0, seed=7),
    )
