"""Textures: constant bias, solid color, and lazily loaded image textures.

A texture maps a surface parameterization ``uv`` (and optionally the
world-space hit point) to an RGB triple, scaled by ``gain`` and offset by
``bias``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Iterable

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def as_rgb(value: Any) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.ndim == 0:
        arr = np.full(3, float(arr))
    return arr.reshape(3)


class Texture:
    """Base texture: every lookup returns ``bias``."""

    def __init__(self, gain: Any = 1.0, bias: Any = 0.0, name: str = ""):
        self.name = name or type(self).__name__
        self.gain = as_rgb(gain)
        self.bias = as_rgb(bias)

    def value(self, uv: np.ndarray, point: np.ndarray | None = None) -> np.ndarray:
        return self.bias.copy()


class SolidTexture(Texture):
    """Constant color: ``color * gain + bias``."""

    def __init__(self, color: Any = (0.0, 0.0, 0.0), gain: Any = 1.0, bias: Any = 0.0, name: str = ""):
        super().__init__(gain, bias, name)
        self.color = as_rgb(color)

    def value(self, uv: np.ndarray, point: np.ndarray | None = None) -> np.ndarray:
        return self.color * self.gain + self.bias


class ImageTexture(Texture):
    """Bilinearly sampled 8-bit RGB image.

    The image is decoded on first lookup and again after every call to
    :meth:`set_image_path`. Loading is guarded by a lock so concurrent
    lookups from render threads decode the file at most once. A file that
    cannot be decoded is logged and every lookup returns ``bias``.

    Parameters
    ----------
    image_path : str or Path, optional
        Image file readable by Pillow.
    flipx, flipy : bool
        Mirror the image horizontally / vertically after loading.
    """

    def __init__(
        self,
        image_path: str | Path | None = None,
        flipx: bool = False,
        flipy: bool = False,
        gain: Any = 1.0,
        bias: Any = 0.0,
        name: str = "",
    ):
        super().__init__(gain, bias, name)
        self._lock = threading.Lock()
        self._needs_reload = threading.Event()
        self._pixels: np.ndarray | None = None
        self.image_path: Path | None = None
        self.flipx = False
        self.flipy = False
        if image_path is not None:
            self.set_image_path(image_path, flipx, flipy)

    def set_image_path(self, image_path: str | Path, flipx: bool = False, flipy: bool = False) -> None:
        with self._lock:
            self.image_path = Path(image_path)
            self.flipx = bool(flipx)
            self.flipy = bool(flipy)
            self._needs_reload.set()

    def _load_if_needed(self) -> None:
        with self._lock:
            if not self._needs_reload.is_set():
                return
            self._pixels = self._read_image()
            self._needs_reload.clear()

    def _read_image(self) -> np.ndarray | None:
        try:
            with Image.open(self.image_path) as img:
                pixels = np.asarray(img.convert("RGB"), dtype=np.float64)
        except (OSError, ValueError) as exc:
            logger.error("ImageTexture: failed to read image %s (%s)", self.image_path, exc)
            return None

        if self.flipx:
            pixels = pixels[:, ::-1]
        if self.flipy:
            pixels = pixels[::-1, :]

        logger.info(
            "ImageTexture: read image %s (%dx%d)", self.image_path, pixels.shape[1], pixels.shape[0]
        )
        return np.ascontiguousarray(pixels)

    def value(self, uv: np.ndarray, point: np.ndarray | None = None) -> np.ndarray:
        if self._needs_reload.is_set():
            self._load_if_needed()

        pixels = self._pixels
        if pixels is None or pixels.shape[0] < 2 or pixels.shape[1] < 2:
            return self.bias.copy()

        rows, cols = pixels.shape[:2]
        u = min(max(float(uv[0]), 0.0), 1.0)
        v = min(max(float(uv[1]), 0.0), 1.0)
        x = u * (cols - 1)
        y = v * (rows - 1)

        x0 = min(int(x), cols - 2)
        y0 = min(int(y), rows - 2)
        fx = x - x0
        fy = y - y0

        top = (1.0 - fx) * pixels[y0, x0] + fx * pixels[y0, x0 + 1]
        bottom = (1.0 - fx) * pixels[y0 + 1, x0] + fx * pixels[y0 + 1, x0 + 1]
        color = ((1.0 - fy) * top + fy * bottom) / 255.0
        return self.gain * color + self.bias

    # Locks do not pickle; workers reload the image lazily.
    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        del state["_lock"]
        del state["_needs_reload"]
        state["_pixels"] = None
        return state

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.__dict__.update(state)
        self._lock = threading.Lock()
        self._needs_reload = threading.Event()
        if self.image_path is not None:
            self._needs_reload.set()


def as_texture(value: Texture | Iterable[float]) -> Texture:
    """Wrap a bare color in a :class:`SolidTexture`."""
    if isinstance(value, Texture):
        return value
    return SolidTexture(value)
