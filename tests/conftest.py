"""Pytest configuration and shared fixtures for raytra tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import numpy as np
import pytest


# Add project root to path so imports work
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config: pytest.Config) -> None:
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s [%(levelname)s] %(message)s",
    )


@pytest.fixture
def arena():
    """Empty scene arena."""
    from render_engine.arena import SceneArena

    return SceneArena()


@pytest.fixture
def rng() -> np.random.Generator:
    """Deterministic generator for sampled lights."""
    return np.random.default_rng(123543)


@pytest.fixture
def white_phong():
    """Matte white Phong material with no specular or mirror term."""
    from render_engine.materials import PhongMaterial

    return PhongMaterial(diffuse=(1.0, 1.0, 1.0), ambient=(0.5, 0.5, 0.5))
