"""Image output: encode rendered buffers and persist render metadata.

Output formats, chosen by file extension:
    .exr            float32 linear RGB, no gamma, written with imageio
    .npy            float32 linear RGB, no gamma, NumPy array file
    .png/.jpg/...   gamma corrected, 8-bit, written with Pillow

``save_render`` additionally writes ``<stem>.json`` next to the image with
render settings, timing and a SHA-256 hash of the float buffer.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path

import imageio.v3 as iio
import numpy as np
from PIL import Image

from render_engine.constants import hash_array
from render_engine.postprocess import gamma_correct, to_float32, to_uint8

logger = logging.getLogger(__name__)

HDR_EXTENSIONS = (".exr", ".npy")


def write_image(path: Path | str, image: np.ndarray, gamma: float = 1.0) -> Path:
    """Write a linear-RGB buffer to disk.

    Parameters
    ----------
    path : Path or str
        Output file; the extension selects the format.
    image : np.ndarray
        Linear RGB, top-down. Shape: (H, W, 3).
    gamma : float
        Display gamma for 8-bit formats (1.0 = none).

    Returns
    -------
    Path
        The written file.

    Raises
    ------
    ValueError
        If the buffer is not (H, W, 3) or the extension is unsupported.
    OSError
        If no imageio backend can encode OpenEXR.
    """
    path = Path(path)
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")
    path.parent.mkdir(parents=True, exist_ok=True)

    suffix = path.suffix.lower()
    if suffix == ".exr":
        try:
            iio.imwrite(path, to_float32(image))
        except (OSError, RuntimeError, ValueError) as exc:
            raise OSError(f"Could not write OpenEXR image {path}: {exc}") from exc
        logger.info("Saved float image: %s (%d x %d)", path, image.shape[1], image.shape[0])
        return path
    if suffix in HDR_EXTENSIONS:
        np.save(path, to_float32(image))
        logger.info("Saved float image: %s (%d x %d)", path, image.shape[1], image.shape[0])
        return path

    pixels = to_uint8(gamma_correct(image, gamma))
    try:
        Image.fromarray(pixels).save(path)
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported image format '{path.suffix}' for {path}") from exc
    logger.info("Saved image: %s (%d x %d, gamma %.2f)", path, image.shape[1], image.shape[0], gamma)
    return path


def save_render(
    output_path: Path | str,
    image: np.ndarray,
    gamma: float = 1.0,
    metadata: dict | None = None,
) -> list[Path]:
    """Write the image and a JSON metadata sidecar.

    Returns
    -------
    list[Path]
        Paths to all saved files.
    """
    output_path = Path(output_path)
    saved = [write_image(output_path, image, gamma)]

    meta = dict(metadata or {})
    meta.update(
        {
            "image_file": output_path.name,
            "gamma": gamma if output_path.suffix.lower() not in HDR_EXTENSIONS else 1.0,
            "shape": list(image.shape),
            "sha256": hash_array(np.asarray(image, dtype=np.float64)),
        }
    )
    meta_path = output_path.with_suffix(".json")
    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump(_sanitize_for_json(meta), f, indent=2, ensure_ascii=False)
    saved.append(meta_path)
    logger.debug("Saved metadata: %s", meta_path)
    return saved


def _sanitize_for_json(obj: object) -> object:
    """Recursively convert NumPy types and non-finite floats to JSON natives."""
    if isinstance(obj, dict):
        return {str(k): _sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize_for_json(v) for v in obj]
    if isinstance(obj, np.ndarray):
        return _sanitize_for_json(obj.tolist())
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, (float, np.floating)):
        value = float(obj)
        return value if math.isfinite(value) else None
    if isinstance(obj, Path):
        return str(obj)
    return obj
