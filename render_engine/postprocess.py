"""Image buffer post-processing: gamma correction and quantization.

Pure, stateless transforms over (H, W, 3) float64 linear-RGB buffers,
compiled with Numba and parallelized over rows.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange


@njit(cache=True, parallel=True, fastmath=False)
def _gamma_kernel(image: np.ndarray, inv_gamma: float) -> np.ndarray:
    out = np.empty_like(image)
    rows, cols, channels = image.shape
    for y in prange(rows):
        for x in range(cols):
            for c in range(channels):
                value = image[y, x, c]
                if value > 0.0:
                    out[y, x, c] = value ** inv_gamma
                else:
                    out[y, x, c] = 0.0
    return out


@njit(cache=True, parallel=True, fastmath=False)
def _quantize_kernel(image: np.ndarray) -> np.ndarray:
    out = np.empty(image.shape, dtype=np.uint8)
    rows, cols, channels = image.shape
    for y in prange(rows):
        for x in range(cols):
            for c in range(channels):
                value = image[y, x, c] * 255.0 + 0.5
                if value < 0.0:
                    value = 0.0
                elif value > 255.0:
                    value = 255.0
                out[y, x, c] = np.uint8(value)
    return out


def gamma_correct(image: np.ndarray, gamma: float) -> np.ndarray:
    """Apply ``c ** (1 / gamma)`` per channel; negative values clamp to 0.

    Parameters
    ----------
    image : np.ndarray
        Linear RGB. Shape: (H, W, 3).
    gamma : float
        Display gamma. ``1.0`` returns an unmodified copy.

    Returns
    -------
    np.ndarray
        Gamma-encoded float64 image.
    """
    if gamma <= 0.0:
        raise ValueError(f"Gamma must be positive, got {gamma}")
    image = np.ascontiguousarray(image, dtype=np.float64)
    if gamma == 1.0:
        return image.copy()
    return _gamma_kernel(image, 1.0 / gamma)


def to_uint8(image: np.ndarray) -> np.ndarray:
    """Quantize with ``clamp(c * 255 + 0.5, 0, 255)``."""
    return _quantize_kernel(np.ascontiguousarray(image, dtype=np.float64))


def to_float32(image: np.ndarray) -> np.ndarray:
    """High dynamic range copy, no tone mapping."""
    return np.asarray(image, dtype=np.float32).copy()
