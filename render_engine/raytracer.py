"""Recursive Whitted-style ray tracer with tiled, optionally parallel rendering.

Pipeline
--------
1. The image (``width = round(aspect * height)``) is cut into square tiles.
2. Each tile gets its own ``numpy.random.Generator`` seeded with
   ``(seed, tile_index)``, so the output does not depend on the number of
   workers or the order in which tiles finish.
3. Per pixel, one ray through the pixel center (1 sample) or N jittered
   rays (N > 1) are traced with :meth:`RayTracer.ray_color` and averaged.
4. Pixel row ``y`` (counted bottom-up) is written to buffer row
   ``height - 1 - y`` so the buffer is stored top-down.

Shading
-------
- Dielectric: ``attenuation * (R * L_reflect + (1 - R) * L_refract)``.
- Phong: sum of all lights plus ``mirror * L_reflect`` on front faces.
- No hit, no material, or depth exhausted: black (no background term).
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

import numpy as np

from render_engine.constants import RenderConfig, default_config
from render_engine.materials import PhongDielectric, PhongMaterial
from render_engine.ray import HitRecord, Ray

if TYPE_CHECKING:
    from render_engine.camera import Camera
    from render_engine.lights import Light
    from render_engine.surfaces import Surface

logger = logging.getLogger(__name__)

_BLACK = np.zeros(3, dtype=np.float64)


# ===================================================================
# TILING
# ===================================================================


@dataclass(frozen=True)
class Tile:
    """Rectangular pixel block ``[x0, x1) x [y0, y1)`` (y counted bottom-up)."""

    index: int
    x0: int
    x1: int
    y0: int
    y1: int


def make_tiles(width: int, height: int, tile_size: int) -> list[Tile]:
    """Cover a ``width x height`` image with row-major square tiles."""
    tiles: list[Tile] = []
    for y0 in range(0, height, tile_size):
        for x0 in range(0, width, tile_size):
            tiles.append(
                Tile(
                    index=len(tiles),
                    x0=x0,
                    x1=min(x0 + tile_size, width),
                    y0=y0,
                    y1=min(y0 + tile_size, height),
                )
            )
    return tiles


# ===================================================================
# RAY TRACER
# ===================================================================


class RayTracer:
    """Renders a scene into a linear-RGB float64 buffer.

    Parameters
    ----------
    image_height : int
        Output height [pixels]; the width follows from the camera aspect.
    config : RenderConfig, optional
        Tolerances, sampling and scheduling settings.
    """

    def __init__(self, image_height: int = 480, config: RenderConfig | None = None):
        self.image_height = int(image_height)
        self.config = config if config is not None else default_config()
        self.image: np.ndarray | None = None
        self.render_time_s: float = 0.0
        self._warned_surfaces: set[int] = set()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def max_depth(self) -> int:
        return self.config.raytracer.max_ray_depth

    @property
    def samples_per_pixel(self) -> int:
        return self.config.sampling.samples_per_pixel

    def image_width(self, camera: Camera) -> int:
        return int(camera.aspect * self.image_height + 0.5)

    # ------------------------------------------------------------------
    # Radiance
    # ------------------------------------------------------------------

    def ray_color(
        self,
        ray: Ray,
        scene: Surface,
        lights: Sequence[Light],
        depth: int,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """Radiance arriving along ``ray`` (recursive).

        Parameters
        ----------
        ray : Ray
            Ray to trace.
        scene : Surface
            Scene root, usually a BVH node.
        lights : sequence of Light
            Lights evaluated at every opaque hit.
        depth : int
            Current recursion depth (0 for camera rays).
        rng : np.random.Generator
            Jitter source for area lights.

        Returns
        -------
        np.ndarray
            RGB radiance. Shape: (3,).
        """
        if depth >= self.max_depth:
            return _BLACK.copy()

        rt_cfg = self.config.raytracer
        hit_record = HitRecord()
        if not scene.hit(ray, rt_cfg.epsilon, np.inf, hit_record):
            return _BLACK.copy()

        material = hit_record.material
        if material is None:
            self._warn_once(hit_record.surface, "has no material")
            return _BLACK.copy()

        if isinstance(material, PhongDielectric):
            scatter = material.scatter(hit_record, ray)
            color = scatter.reflectance * self.ray_color(
                scatter.reflect_ray, scene, lights, depth + 1, rng
            )
            if scatter.refract_ray is not None:
                color = color + (1.0 - scatter.reflectance) * self.ray_color(
                    scatter.refract_ray, scene, lights, depth + 1, rng
                )
            return scatter.attenuation * color

        if isinstance(material, PhongMaterial):
            view_vec = -ray.unit_direction()
            color = np.zeros(3, dtype=np.float64)
            for light in lights:
                color += light.illuminate(
                    hit_record, view_vec, scene, rng, rt_cfg.epsilon, rt_cfg.epsilon2
                )
            if hit_record.front_face and material.has_mirror():
                reflect_ray = Ray.reflect(ray, hit_record.point, hit_record.normal)
                color += material.mirror * self.ray_color(
                    reflect_ray, scene, lights, depth + 1, rng
                )
            return color

        self._warn_once(hit_record.surface, f"has unsupported material {type(material).__name__}")
        return _BLACK.copy()

    def _warn_once(self, surface: Any, message: str) -> None:
        key = getattr(surface, "node_id", id(surface))
        if key in self._warned_surfaces:
            return
        self._warned_surfaces.add(key)
        logger.warning("Surface %r %s; rendering it black.", getattr(surface, "name", surface), message)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_tile(
        self,
        tile: Tile,
        scene: Surface,
        lights: Sequence[Light],
        camera: Camera,
        width: int,
        height: int,
    ) -> np.ndarray:
        """Render one tile; rows are returned top-down like the full buffer."""
        rng = np.random.default_rng([self.config.sampling.seed, tile.index])
        spp = self.samples_per_pixel
        block = np.zeros((tile.y1 - tile.y0, tile.x1 - tile.x0, 3), dtype=np.float64)

        for y in range(tile.y0, tile.y1):
            row = tile.y1 - 1 - y
            for x in range(tile.x0, tile.x1):
                if spp == 1:
                    ray = camera.get_ray((x + 0.5) / width, (y + 0.5) / height)
                    color = self.ray_color(ray, scene, lights, 0, rng)
                else:
                    color = np.zeros(3, dtype=np.float64)
                    for _ in range(spp):
                        s = (x + rng.random()) / width
                        t = (y + rng.random()) / height
                        color += self.ray_color(camera.get_ray(s, t), scene, lights, 0, rng)
                    color /= spp
                block[row, x - tile.x0] = color
        return block

    def render(self, scene: Surface, lights: Sequence[Light], camera: Camera) -> np.ndarray:
        """Render the full image.

        Parameters
        ----------
        scene : Surface
            Scene root.
        lights : sequence of Light
            Scene lights.
        camera : Camera
            Viewing camera; its aspect ratio sets the image width.

        Returns
        -------
        np.ndarray
            Linear RGB, top-down. Shape: (height, width, 3), float64.

        Raises
        ------
        ValueError
            If the scene or camera is missing or the image size is not
            positive.
        """
        if scene is None:
            raise ValueError("Cannot render: no scene")
        if camera is None:
            raise ValueError("Cannot render: no camera")

        height = self.image_height
        width = self.image_width(camera)
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid image size {width} x {height}")

        par = self.config.parallel
        tiles = make_tiles(width, height, par.tile_size)
        image = np.zeros((height, width, 3), dtype=np.float64)

        logger.info(
            "Rendering %d x %d, %d spp, max depth %d, %d tiles, %d worker(s) [%s]",
            width, height, self.samples_per_pixel, self.max_depth,
            len(tiles), max(1, par.workers), par.executor if par.workers > 1 else "serial",
        )
        t_start = time.perf_counter()

        for done, (tile, block) in enumerate(
            self._iter_tiles(tiles, scene, lights, camera, width, height), 1
        ):
            image[height - tile.y1:height - tile.y0, tile.x0:tile.x1] = block
            if done % max(1, len(tiles) // 10) == 0 or done == len(tiles):
                logger.info("  Progress: %d/%d tiles (%.0f%%)", done, len(tiles), 100.0 * done / len(tiles))

        self.render_time_s = time.perf_counter() - t_start
        logger.info("Render finished in %.2f s", self.render_time_s)
        self.image = image
        return image

    def _iter_tiles(self, tiles, scene, lights, camera, width, height):
        par = self.config.parallel
        if par.workers <= 1 or len(tiles) == 1:
            for tile in tiles:
                yield tile, self.render_tile(tile, scene, lights, camera, width, height)
            return

        if par.executor == "thread":
            with ThreadPoolExecutor(max_workers=par.workers) as pool:
                futures = {
                    pool.submit(self.render_tile, tile, scene, lights, camera, width, height): tile
                    for tile in tiles
                }
                for future in as_completed(futures):
                    yield futures[future], future.result()
            return

        with ProcessPoolExecutor(
            max_workers=par.workers,
            initializer=_init_worker,
            initargs=(self, scene, lights, camera, width, height),
        ) as pool:
            futures = {pool.submit(_render_tile_worker, tile): tile for tile in tiles}
            for future in as_completed(futures):
                yield futures[future], future.result()

    def metadata(self) -> dict[str, Any]:
        """Render settings and timing for the output sidecar."""
        cfg = self.config
        height, width = (0, 0) if self.image is None else self.image.shape[:2]
        return {
            "image_width": width,
            "image_height": height,
            "samples_per_pixel": cfg.sampling.samples_per_pixel,
            "shadow_samples": cfg.sampling.shadow_samples,
            "seed": cfg.sampling.seed,
            "max_ray_depth": cfg.raytracer.max_ray_depth,
            "epsilon": cfg.raytracer.epsilon,
            "workers": cfg.parallel.workers,
            "executor": cfg.parallel.executor,
            "tile_size": cfg.parallel.tile_size,
            "render_time_s": self.render_time_s,
        }


# ===================================================================
# PROCESS-POOL WORKERS
# ===================================================================

_WORKER_CONTEXT: dict[str, Any] = {}


def _init_worker(tracer, scene, lights, camera, width, height) -> None:
    """Receive the scene once per worker process."""
    _WORKER_CONTEXT.update(
        tracer=tracer, scene=scene, lights=lights, camera=camera, width=width, height=height
    )


def _render_tile_worker(tile: Tile) -> np.ndarray:
    ctx = _WORKER_CONTEXT
    return ctx["tracer"].render_tile(
        tile, ctx["scene"], ctx["lights"], ctx["camera"], ctx["width"], ctx["height"]
    )
