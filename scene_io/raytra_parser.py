"""Parser for the line-based ``raytra`` scene format.

One command per line; lines starting with ``/`` are comments.

======  ==========================================================
Cmd     Arguments
======  ==========================================================
``s``   ``x y z r`` — sphere
``t``   ``ax ay az bx by bz cx cy cz`` — triangle
``w``   ``path`` — OBJ mesh (relative to the scene file)
``c``   ``x y z vx vy vz focal vw vh pw ph`` — camera
``m``   ``dr dg db sr sg sb shininess ir ig ib`` — Phong material
``n``   ``id`` + ``m`` arguments — Phong material with image texture
``d``   ``ior ar ag ab`` — dielectric material
``i``   ``id flipx flipy path`` — image texture
``l p`` ``x y z r g b`` — point light
``l a`` ``r g b`` — ambient light
``l s`` ``x y z nx ny nz ux uy uz len r g b`` — square area light
======  ==========================================================

Surfaces take the most recently declared material. Unknown commands are
skipped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from render_engine.arena import SceneArena
from render_engine.bvh import build_bvh
from render_engine.camera import Camera
from render_engine.constants import K_EPSILON
from render_engine.lights import AmbientLight, AreaLight, Light, PointLight
from render_engine.materials import Material, PhongDielectric, PhongMaterial
from render_engine.surfaces import Sphere, Surface, SurfaceList, Triangle
from render_engine.texture import ImageTexture
from scene_io.obj_loader import load_obj

logger = logging.getLogger(__name__)

_MIN_AMBIENT = 0.01
_MAX_VIEWPORT_ASPECT = 20000.0


class SceneParseError(ValueError):
    """Raised for scene files that are syntactically or semantically invalid."""


@dataclass
class SceneDescription:
    """Everything a scene file declares.

    Attributes
    ----------
    arena : SceneArena
        Owner of all surfaces.
    surfaces : list[int]
        Handles of the top-level surfaces in file order.
    lights : list[Light]
        Lights in file order.
    camera : Camera
        The single scene camera.
    image_size : tuple[int, int]
        Requested (width, height) in pixels.
    material_count : int
        Number of materials declared.
    """

    arena: SceneArena
    surfaces: list[int]
    lights: list[Light]
    camera: Camera
    image_size: tuple[int, int]
    material_count: int = 0
    textures: dict[int, ImageTexture] = field(default_factory=dict)

    def build_bvh(self) -> Surface:
        """Build a BVH over the top-level surfaces and return its root."""
        handles = list(self.surfaces)
        root = build_bvh(self.arena, handles, name="scene")
        return self.arena[root]

    def surface_list(self) -> Surface:
        """Wrap the top-level surfaces in an unaccelerated list."""
        handle = self.arena.add(SurfaceList(self.arena, self.surfaces, name="scene"))
        return self.arena[handle]


class _SceneBuilder:
    """Accumulates state while walking the scene file."""

    def __init__(self, source: str, base_dir: Path, shadow_samples: int):
        self.source = source
        self.base_dir = base_dir
        self.shadow_samples = shadow_samples
        self.arena = SceneArena()
        self.surfaces: list[int] = []
        self.lights: list[Light] = []
        self.textures: dict[int, ImageTexture] = {}
        self.camera: Camera | None = None
        self.image_size = (0, 0)
        self.current_material: Material | None = None
        self.camera_count = 0
        self.ambient_count = 0
        self.material_count = 0
        self.line_no = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def error(self, message: str) -> SceneParseError:
        return SceneParseError(f"{self.source}:{self.line_no}: {message}")

    def floats(self, args: list[str], count: int, what: str) -> list[float]:
        if len(args) < count:
            raise self.error(f"{what} needs {count} values, got {len(args)}")
        try:
            return [float(a) for a in args[:count]]
        except ValueError as exc:
            raise self.error(f"bad number in {what}: {exc}") from exc

    def add_surface(self, surface: Surface, line: str) -> None:
        if self.current_material is None:
            raise self.error(f"cannot find matching material for surface: {line}")
        surface.material = self.current_material
        self.surfaces.append(self.arena.add(surface))

    def phong(self, values: list[float]) -> PhongMaterial:
        diffuse = np.array(values[0:3])
        self.material_count += 1
        return PhongMaterial(
            diffuse=diffuse,
            specular=values[3:6],
            shininess=values[6],
            mirror=values[7:10],
            ambient=np.maximum(_MIN_AMBIENT, diffuse),
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def sphere(self, args: list[str], line: str) -> None:
        x, y, z, r = self.floats(args, 4, "sphere")
        self.add_surface(Sphere((x, y, z), r), line)

    def triangle(self, args: list[str], line: str) -> None:
        v = self.floats(args, 9, "triangle")
        self.add_surface(Triangle(np.reshape(v, (3, 3))), line)

    def mesh(self, args: list[str], line: str) -> None:
        if not args:
            raise self.error("mesh command needs a file path")
        if self.current_material is None:
            raise self.error(f"cannot find matching material for surface: {line}")
        path = self.base_dir / args[0]
        try:
            mesh = load_obj(path)
        except (OSError, ValueError) as exc:
            raise self.error(f"cannot read mesh from path {args[0]} ({exc})") from exc
        self.add_surface(mesh, line)
        mesh.build_bvh(self.arena)

    def camera_cmd(self, args: list[str]) -> None:
        (x, y, z, vx, vy, vz, focal, vp_w, vp_h, px_w, px_h) = self.floats(args, 11, "camera")
        eye = np.array([x, y, z])
        view = np.array([vx, vy, vz])
        view_norm = np.linalg.norm(view)
        if view_norm == 0.0:
            raise self.error("camera view direction is zero")
        view = view / view_norm

        up = np.array([0.0, 1.0, 0.0])
        if np.allclose(view, up):
            up = np.array([0.0, 0.0, 1.0])

        fovy = math.degrees(2.0 * math.atan2(vp_h * 0.5, focal))
        viewport_aspect = vp_w / vp_h if vp_h != 0.0 else math.inf
        if not math.isfinite(viewport_aspect) or viewport_aspect <= 0.0:
            raise self.error(f"camera has bad viewport aspect ratio: {viewport_aspect}")
        if viewport_aspect > _MAX_VIEWPORT_ASPECT:
            logger.warning("Camera has very large viewport aspect ratio: %g", viewport_aspect)
        if px_h > 0 and abs(viewport_aspect - px_w / px_h) > K_EPSILON:
            logger.warning(
                "Camera viewport aspect %.6g differs from image aspect %.6g; "
                "output width follows the viewport.",
                viewport_aspect, px_w / px_h,
            )

        try:
            self.camera = Camera(eye, eye + view, up, fovy, viewport_aspect)
        except ValueError as exc:
            raise self.error(str(exc)) from exc
        self.image_size = (int(px_w), int(px_h))
        self.camera_count += 1

    def texture(self, args: list[str]) -> None:
        if len(args) < 4:
            raise self.error("image texture needs: id flipx flipy path")
        try:
            tid, flipx, flipy = int(args[0]), bool(int(args[1])), bool(int(args[2]))
        except ValueError as exc:
            raise self.error(f"bad image texture header: {exc}") from exc
        self.textures[tid] = ImageTexture(self.base_dir / args[3], flipx, flipy)

    def textured_material(self, args: list[str]) -> None:
        if not args:
            raise self.error("textured material needs a texture id")
        try:
            tid = int(args[0])
        except ValueError as exc:
            raise self.error(f"bad texture id: {exc}") from exc
        if tid not in self.textures:
            raise self.error(f"cannot find matching image for texture id {tid}")
        material = self.phong(self.floats(args[1:], 10, "material"))
        material.diffuse = self.textures[tid]
        self.current_material = material

    def light(self, args: list[str]) -> None:
        if not args:
            raise self.error("light command needs a type")
        kind, rest = args[0], args[1:]
        if kind == "p":
            v = self.floats(rest, 6, "point light")
            self.lights.append(PointLight(v[0:3], v[3:6]))
        elif kind == "a":
            v = self.floats(rest, 3, "ambient light")
            self.lights.append(AmbientLight(v))
            self.ambient_count += 1
        elif kind == "s":
            v = self.floats(rest, 13, "area light")
            try:
                area = AreaLight(
                    center=v[0:3], direction=v[3:6], u=v[6:9], length=v[9], rgb=v[10:13],
                    samples=self.shadow_samples,
                )
            except ValueError as exc:
                raise self.error(str(exc)) from exc
            self.lights.append(area)
        else:
            logger.warning("%s:%d: unknown light type '%s' skipped", self.source, self.line_no, kind)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def feed(self, line_no: int, raw_line: str) -> None:
        self.line_no = line_no
        line = raw_line.strip()
        if not line or line.startswith("/"):
            return
        cmd, *args = line.split()

        if cmd == "s":
            self.sphere(args, line)
        elif cmd == "t":
            self.triangle(args, line)
        elif cmd == "w":
            self.mesh(args, line)
        elif cmd == "c":
            self.camera_cmd(args)
        elif cmd == "m":
            self.current_material = self.phong(self.floats(args, 10, "material"))
        elif cmd == "n":
            self.textured_material(args)
        elif cmd == "d":
            ior, r, g, b = self.floats(args, 4, "dielectric")
            try:
                self.current_material = PhongDielectric(ior, (r, g, b))
            except ValueError as exc:
                raise self.error(str(exc)) from exc
            self.material_count += 1
        elif cmd == "i":
            self.texture(args)
        elif cmd == "l":
            self.light(args)
        else:
            logger.debug("%s:%d: unknown command '%s' skipped", self.source, line_no, cmd)

    def finish(self) -> SceneDescription:
        if self.camera_count != 1:
            raise SceneParseError(
                f"{self.source}: scene file must contain exactly one camera, found {self.camera_count}"
            )
        if self.ambient_count > 1:
            raise SceneParseError(
                f"{self.source}: scene file must contain at most one ambient light, "
                f"found {self.ambient_count}"
            )
        if not self.surfaces:
            logger.warning("Scene file %s does not contain any surfaces", self.source)

        logger.info(
            "Read %d surface(s), %d material(s), %d light(s) from %s",
            len(self.surfaces), self.material_count, len(self.lights), self.source,
        )
        return SceneDescription(
            arena=self.arena,
            surfaces=self.surfaces,
            lights=self.lights,
            camera=self.camera,
            image_size=self.image_size,
            material_count=self.material_count,
            textures=self.textures,
        )


def parse_scene_text(
    text: str,
    base_dir: str | Path = ".",
    shadow_samples: int = 1,
    source: str = "<string>",
) -> SceneDescription:
    """Parse scene commands from a string.

    Parameters
    ----------
    text : str
        Scene file contents.
    base_dir : str or Path
        Directory that mesh and image paths are relative to.
    shadow_samples : int
        Sample count given to every area light.
    source : str
        Name used in error messages.

    Returns
    -------
    SceneDescription
        Parsed scene.

    Raises
    ------
    SceneParseError
        If the scene is invalid.
    """
    builder = _SceneBuilder(source, Path(base_dir), shadow_samples)
    for line_no, raw_line in enumerate(text.splitlines(), 1):
        builder.feed(line_no, raw_line)
    return builder.finish()


def parse_scene(path: str | Path, shadow_samples: int = 1) -> SceneDescription:
    """Parse a scene file from disk.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    SceneParseError
        If the scene is invalid.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"Scene file not found: {path}")

    logger.info("Parsing scene file: %s", path)
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return parse_scene_text(text, base_dir=path.parent, shadow_samples=shadow_samples, source=path.name)
