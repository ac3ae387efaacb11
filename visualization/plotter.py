"""Diagnostic figures for rendered radiance buffers.

Generates a two-panel matplotlib figure:
- The gamma-encoded image as it would be written to an 8-bit file
- Per-channel histograms of the linear radiance, with the clipping
  threshold marked
"""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend for headless rendering

import matplotlib.pyplot as plt
import numpy as np

from render_engine.postprocess import gamma_correct

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------

_CHANNEL_COLORS = ("#e74c3c", "#2ecc71", "#3498db")
_CHANNEL_NAMES = ("R", "G", "B")
_FACE_COLOR = "#1a1a2e"
_HIST_BINS = 64
_DPI = 150


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def plot_render_preview(
    image: np.ndarray,
    output_path: Path | str | None = None,
    gamma: float = 2.0,
    title: str = "Render Preview",
    dpi: int = _DPI,
) -> plt.Figure:
    """Plot a rendered buffer next to its radiance histograms.

    Parameters
    ----------
    image : np.ndarray
        Linear RGB, top-down. Shape: (H, W, 3).
    output_path : Path or str, optional
        If provided, save figure to this path.
    gamma : float
        Display gamma applied to the image panel.
    title : str
        Figure title.
    dpi : int
        Figure resolution.

    Returns
    -------
    matplotlib.figure.Figure
        The generated figure.
    """
    image = np.asarray(image, dtype=np.float64)
    display = np.clip(gamma_correct(image, gamma), 0.0, 1.0)

    fig, (ax_img, ax_hist) = plt.subplots(
        1, 2, figsize=(12, 5), facecolor=_FACE_COLOR,
        gridspec_kw={"width_ratios": [3, 2]},
    )

    ax_img.imshow(display, origin="upper", interpolation="nearest")
    ax_img.set_title(
        f"{image.shape[1]} x {image.shape[0]}, gamma {gamma:g}", color="white", fontsize=11
    )
    ax_img.set_axis_off()

    ax_hist.set_facecolor(_FACE_COLOR)
    finite = image[np.isfinite(image).all(axis=2)]
    upper = max(1.0, float(finite.max())) if finite.size else 1.0
    bins = np.linspace(0.0, upper, _HIST_BINS + 1)
    for c in range(3):
        ax_hist.hist(
            finite[:, c] if finite.size else np.zeros(0),
            bins=bins,
            histtype="step",
            color=_CHANNEL_COLORS[c],
            label=_CHANNEL_NAMES[c],
            linewidth=1.2,
        )
    ax_hist.axvline(1.0, color="white", linestyle="--", linewidth=0.8, alpha=0.7)
    ax_hist.set_yscale("log")
    ax_hist.set_xlabel("Linear radiance", color="white")
    ax_hist.set_ylabel("Pixel count", color="white")
    ax_hist.tick_params(colors="white")
    ax_hist.legend(facecolor=_FACE_COLOR, labelcolor="white", edgecolor="#444")
    for spine in ax_hist.spines.values():
        spine.set_edgecolor("#444")

    clipped = float(np.mean(image > 1.0)) * 100.0 if image.size else 0.0
    fig.suptitle(
        f"{title} ({clipped:.1f}% of samples above 1.0)",
        fontsize=14, fontweight="bold", color="white",
    )
    fig.tight_layout()

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, facecolor=fig.get_facecolor())
        logger.info("Render preview saved: %s", output_path)

    plt.close(fig)
    return fig
