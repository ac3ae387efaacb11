"""Tests for render configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from render_engine.constants import (
    RenderConfig,
    config_from_dict,
    default_config,
    hash_array,
    load_config,
)

_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default_config.yaml"


class TestLoadConfig:

    def test_shipped_config_matches_defaults(self) -> None:
        assert load_config(_CONFIG_PATH) == default_config()

    def test_defaults(self) -> None:
        config = default_config()
        assert config.raytracer.epsilon == 1e-8
        assert config.raytracer.epsilon2 == 1e-14
        assert config.raytracer.max_ray_depth == 5
        assert config.sampling.samples_per_pixel == 1
        assert config.parallel.executor == "process"

    def test_partial_file_falls_back(self, tmp_path: Path) -> None:
        path = tmp_path / "partial.yaml"
        path.write_text("sampling:\n  samples_per_pixel: 16\nparallel:\n  workers: 4\n")
        config = load_config(path)
        assert config.sampling.samples_per_pixel == 16
        assert config.parallel.workers == 4
        assert config.sampling.seed == RenderConfig().sampling.seed
        assert config.raytracer == RenderConfig().raytracer

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == RenderConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_frozen(self) -> None:
        config = default_config()
        with pytest.raises(AttributeError):
            config.raytracer.max_ray_depth = 3


class TestValidation:

    @pytest.mark.parametrize(
        "raw, message",
        [
            ({"raytracer": {"epsilon": 0}}, "epsilon must be positive"),
            ({"raytracer": {"epsilon2": -1}}, "epsilon2 must be positive"),
            ({"raytracer": {"max_ray_depth": 0}}, "ray depth"),
            ({"sampling": {"samples_per_pixel": 0}}, "Samples per pixel"),
            ({"sampling": {"shadow_samples": 0}}, "Shadow samples"),
            ({"parallel": {"executor": "gpu"}}, "Executor"),
            ({"parallel": {"tile_size": 0}}, "Tile size"),
            ({"output": {"gamma": 0}}, "Gamma"),
        ],
    )
    def test_out_of_range(self, raw: dict, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            config_from_dict(raw)


class TestHashArray:

    def test_stable_and_sensitive(self) -> None:
        a = np.arange(12, dtype=np.float64).reshape(3, 4)
        assert hash_array(a) == hash_array(a.copy())
        b = a.copy()
        b[1, 1] += 1e-12
        assert hash_array(a) != hash_array(b)
