"""Numeric tolerances, render configuration, and configuration loader.

Render settings are loaded from YAML configuration files into frozen
dataclasses. The tolerances below are the compile-time defaults used by
the geometric kernels; the values from the loaded configuration are
passed down explicitly at render time.

Tolerances
----------
- ``K_EPSILON`` (1e-8): self-intersection offset for secondary and shadow
  rays, parallel-ray test in the triangle solver.
- ``K_EPSILON2`` (1e-14): floor for squared distances so that the
  inverse-square falloff never divides by zero.
"""

from __future__ import annotations

import hashlib
import logging
import platform
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numba
import numpy as np
import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tolerances
# ---------------------------------------------------------------------------

K_EPSILON: float = 1e-8
K_EPSILON2: float = 1e-14
K_PI: float = float(np.pi)
K_2PI: float = 2.0 * float(np.pi)

_EXECUTORS = ("process", "thread")

# ---------------------------------------------------------------------------
# Configuration Data Classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RaytracerConfig:
    """Core ray tracing tolerances and recursion limit.

    Attributes
    ----------
    epsilon : float
        Minimum parametric distance for secondary and shadow rays.
    epsilon2 : float
        Floor applied to squared light distances.
    max_ray_depth : int
        Maximum recursion depth for reflected / refracted rays.
    """

    epsilon: float = K_EPSILON
    epsilon2: float = K_EPSILON2
    max_ray_depth: int = 5


@dataclass(frozen=True)
class SamplingConfig:
    """Pixel and light sampling settings.

    Attributes
    ----------
    samples_per_pixel : int
        Camera rays per pixel (1 = pixel center, no jitter).
    shadow_samples : int
        Requested samples per area light.
    seed : int
        Base seed for the per-tile random generators.
    """

    samples_per_pixel: int = 1
    shadow_samples: int = 1
    seed: int = 123543


@dataclass(frozen=True)
class ParallelConfig:
    """Tile scheduling settings.

    Attributes
    ----------
    workers : int
        Number of workers (<= 1 renders in the calling process).
    executor : str
        Pool type, ``'process'`` or ``'thread'``.
    tile_size : int
        Edge length of the square render tiles [pixels].
    """

    workers: int = 1
    executor: str = "process"
    tile_size: int = 16


@dataclass(frozen=True)
class OutputConfig:
    """Image output settings.

    Attributes
    ----------
    gamma : float
        Display gamma (1.0 = none). Not applied to float output.
    save_metadata : bool
        Write a JSON sidecar next to the image.
    preview : bool
        Also write a matplotlib preview figure.
    """

    gamma: float = 2.0
    save_metadata: bool = True
    preview: bool = False


@dataclass(frozen=True)
class RenderConfig:
    """Top-level render configuration loaded from YAML."""

    raytracer: RaytracerConfig = field(default_factory=RaytracerConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Configuration Loader
# ---------------------------------------------------------------------------


def default_config() -> RenderConfig:
    """Return the built-in configuration (identical to ``default_config.yaml``)."""
    config = RenderConfig()
    validate_config(config)
    return config


def load_config(config_path: str | Path) -> RenderConfig:
    """Load and validate a render configuration from a YAML file.

    Sections or keys missing from the file fall back to the built-in
    defaults.

    Parameters
    ----------
    config_path : str or Path
        Path to the YAML configuration file.

    Returns
    -------
    RenderConfig
        Fully populated, typed configuration object.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist.
    ValueError
        If a value is out of range or the file is not a mapping.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw: dict[str, Any] | None = yaml.safe_load(f)

    logger.info("Loading configuration from: %s", config_path)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration root must be a mapping, got {type(raw).__name__}")

    config = config_from_dict(raw)
    logger.info("Configuration loaded successfully.")
    return config


def config_from_dict(raw: dict[str, Any]) -> RenderConfig:
    """Build a validated :class:`RenderConfig` from a parsed YAML mapping."""
    defaults = RenderConfig()

    # --- Parse raytracer section ---
    rt = raw.get("raytracer") or {}
    raytracer = RaytracerConfig(
        epsilon=float(rt.get("epsilon", defaults.raytracer.epsilon)),
        epsilon2=float(rt.get("epsilon2", defaults.raytracer.epsilon2)),
        max_ray_depth=int(rt.get("max_ray_depth", defaults.raytracer.max_ray_depth)),
    )

    # --- Parse sampling section ---
    smp = raw.get("sampling") or {}
    sampling = SamplingConfig(
        samples_per_pixel=int(smp.get("samples_per_pixel", defaults.sampling.samples_per_pixel)),
        shadow_samples=int(smp.get("shadow_samples", defaults.sampling.shadow_samples)),
        seed=int(smp.get("seed", defaults.sampling.seed)),
    )

    # --- Parse parallel section ---
    par = raw.get("parallel") or {}
    parallel = ParallelConfig(
        workers=int(par.get("workers", defaults.parallel.workers)),
        executor=str(par.get("executor", defaults.parallel.executor)),
        tile_size=int(par.get("tile_size", defaults.parallel.tile_size)),
    )

    # --- Parse output section ---
    out = raw.get("output") or {}
    output = OutputConfig(
        gamma=float(out.get("gamma", defaults.output.gamma)),
        save_metadata=bool(out.get("save_metadata", defaults.output.save_metadata)),
        preview=bool(out.get("preview", defaults.output.preview)),
    )

    config = RenderConfig(
        raytracer=raytracer,
        sampling=sampling,
        parallel=parallel,
        output=output,
    )
    validate_config(config)
    return config


def validate_config(config: RenderConfig) -> None:
    """Validate ranges of configuration values.

    Parameters
    ----------
    config : RenderConfig
        Configuration to validate.

    Raises
    ------
    ValueError
        If any value is out of range.
    """
    if config.raytracer.epsilon <= 0:
        raise ValueError(f"Raytracer epsilon must be positive, got {config.raytracer.epsilon}")
    if config.raytracer.epsilon2 <= 0:
        raise ValueError(f"Raytracer epsilon2 must be positive, got {config.raytracer.epsilon2}")
    if config.raytracer.max_ray_depth < 1:
        raise ValueError(
            f"Maximum ray depth must be >= 1, got {config.raytracer.max_ray_depth}"
        )
    if config.sampling.samples_per_pixel < 1:
        raise ValueError(
            f"Samples per pixel must be >= 1, got {config.sampling.samples_per_pixel}"
        )
    if config.sampling.shadow_samples < 1:
        raise ValueError(f"Shadow samples must be >= 1, got {config.sampling.shadow_samples}")
    if config.parallel.executor not in _EXECUTORS:
        raise ValueError(
            f"Executor must be one of {_EXECUTORS}, got '{config.parallel.executor}'"
        )
    if config.parallel.tile_size < 1:
        raise ValueError(f"Tile size must be >= 1, got {config.parallel.tile_size}")
    if config.output.gamma <= 0:
        raise ValueError(f"Gamma must be positive, got {config.output.gamma}")

    logger.debug("Configuration validation passed.")


def log_platform_info() -> None:
    """Log platform and library version information for reproducibility."""
    logger.info("=" * 70)
    logger.info("PLATFORM INFORMATION (for reproducibility)")
    logger.info("=" * 70)
    logger.info("  Python:    %s", sys.version)
    logger.info("  Platform:  %s", platform.platform())
    logger.info("  Processor: %s", platform.processor())
    logger.info("  NumPy:     %s", np.__version__)
    logger.info("  Numba:     %s", numba.__version__)
    logger.info("  Float64 eps: %e", np.finfo(np.float64).eps)
    logger.info("=" * 70)


def hash_array(arr: np.ndarray) -> str:
    """Compute SHA-256 hash of a NumPy array for reproducibility verification.

    Parameters
    ----------
    arr : np.ndarray
        Array to hash.

    Returns
    -------
    str
        Hex digest of the SHA-256 hash.
    """
    return hashlib.sha256(np.ascontiguousarray(arr).tobytes()).hexdigest()
