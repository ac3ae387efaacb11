"""Tests for the render preview figure."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from visualization.plotter import plot_render_preview


class TestRenderPreview:

    def test_writes_png(self, tmp_path: Path) -> None:
        gen = np.random.default_rng(0)
        image = gen.uniform(0.0, 1.5, (12, 16, 3))
        out = tmp_path / "preview" / "render_preview.png"

        fig = plot_render_preview(image, out, gamma=2.2, title="random", dpi=40)
        assert out.exists()
        assert out.stat().st_size > 0
        assert len(fig.axes) == 2

    def test_black_image_without_output(self) -> None:
        fig = plot_render_preview(np.zeros((4, 4, 3)), dpi=40)
        assert fig is not None

    def test_non_finite_pixels_ignored(self, tmp_path: Path) -> None:
        image = np.full((4, 4, 3), 0.5)
        image[0, 0] = np.inf
        image[1, 1] = np.nan
        out = tmp_path / "nonfinite.png"
        plot_render_preview(image, out, dpi=40)
        assert out.exists()
