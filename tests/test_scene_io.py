"""Tests for the scene file parser and the OBJ mesh loader."""

from __future__ import annotations

import textwrap
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from render_engine.lights import AmbientLight, AreaLight, PointLight
from render_engine.materials import PhongDielectric, PhongMaterial
from render_engine.mesh import TriMesh, compute_face_normals
from render_engine.ray import HitRecord, Ray
from render_engine.surfaces import Sphere, Triangle
from render_engine.texture import ImageTexture
from scene_io.obj_loader import load_obj
from scene_io.raytra_parser import SceneParseError, parse_scene, parse_scene_text


_CAMERA = "c 0 0 5 0 0 -1 1 2 2 100 100"
_MATERIAL = "m 0.8 0.2 0.2 0.5 0.5 0.5 20 0 0 0"

_QUAD_OBJ = textwrap.dedent(
    """\
    # unit quad
    o quad
    v 0 0 0
    v 1 0 0
    v 1 1 0
    v 0 1 0
    vt 0 0
    vt 1 0
    vt 1 1
    vt 0 1
    vn 0 0 1
    f 1/1/1 2/2/1 3/3/1 4/4/1
    """
)


def _scene(*lines: str) -> str:
    return "\n".join(lines) + "\n"


# ===================================================================
# SCENE PARSER
# ===================================================================


class TestSceneParser:

    def test_full_scene(self) -> None:
        text = _scene(
            "/ a comment line",
            _CAMERA,
            _MATERIAL,
            "s 0 0 0 1",
            "t 0 0 0 1 0 0 0 1 0",
            "d 1.5 1 0.9 0.8",
            "s 2 0 0 0.5",
            "l p 0 5 0 10 10 10",
            "l a 0.1 0.1 0.1",
            "l s 0 5 0 0 -1 0 1 0 0 2 5 5 5",
        )
        scene = parse_scene_text(text, shadow_samples=9)

        assert scene.image_size == (100, 100)
        assert scene.material_count == 2
        kinds = [type(scene.arena[h]) for h in scene.surfaces]
        assert kinds == [Sphere, Triangle, Sphere]

        first, tri, second = (scene.arena[h] for h in scene.surfaces)
        assert first.material is tri.material
        assert isinstance(first.material, PhongMaterial)
        assert isinstance(second.material, PhongDielectric)
        assert second.material.ior == pytest.approx(1.5)
        np.testing.assert_allclose(first.material.ambient, [0.8, 0.2, 0.2])
        assert first.material.shininess == pytest.approx(20.0)

        assert [type(light) for light in scene.lights] == [PointLight, AmbientLight, AreaLight]
        area = scene.lights[2]
        assert area.samples == 9
        assert area.length == pytest.approx(2.0)

    def test_camera_from_viewport(self) -> None:
        scene = parse_scene_text(_scene(_CAMERA))
        camera = scene.camera
        assert camera.fovy == pytest.approx(90.0)
        assert camera.aspect == pytest.approx(1.0)
        np.testing.assert_allclose(camera.eye, [0.0, 0.0, 5.0])
        ray = camera.get_ray(0.5, 0.5)
        np.testing.assert_allclose(ray.unit_direction(), [0.0, 0.0, -1.0], atol=1e-12)

    def test_camera_looking_straight_up(self) -> None:
        scene = parse_scene_text(_scene("c 0 0 0 0 1 0 1 2 2 10 10"))
        np.testing.assert_allclose(scene.camera.get_ray(0.5, 0.5).unit_direction(), [0, 1, 0], atol=1e-12)

    def test_ambient_floor(self) -> None:
        scene = parse_scene_text(_scene(_CAMERA, "m 0 0.5 0 0 0 0 1 0 0 0", "s 0 0 0 1"))
        material = scene.arena[scene.surfaces[0]].material
        np.testing.assert_allclose(material.ambient, [0.01, 0.5, 0.01])

    def test_scene_bvh_and_list_agree(self) -> None:
        text = _scene(_CAMERA, _MATERIAL, "s 0 0 0 1", "s 0 0 -4 1", "s 3 0 0 1")
        scene = parse_scene_text(text)
        root = scene.build_bvh()
        flat = scene.surface_list()
        ray = Ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
        r1, r2 = HitRecord(), HitRecord()
        assert root.hit(ray, 1e-8, np.inf, r1)
        assert flat.hit(ray, 1e-8, np.inf, r2)
        assert r1.t == pytest.approx(4.0)
        assert r1.surface is r2.surface

    def test_unknown_command_skipped(self) -> None:
        scene = parse_scene_text(_scene(_CAMERA, "x 1 2 3", _MATERIAL, "s 0 0 0 1"))
        assert len(scene.surfaces) == 1

    def test_surface_without_material(self) -> None:
        with pytest.raises(SceneParseError, match=r"<string>:2: cannot find matching material"):
            parse_scene_text(_scene(_CAMERA, "s 0 0 0 1"))

    def test_bad_number_reports_line(self) -> None:
        with pytest.raises(SceneParseError, match=r":3: bad number in sphere"):
            parse_scene_text(_scene(_CAMERA, _MATERIAL, "s 0 0 x 1"))

    def test_too_few_values(self) -> None:
        with pytest.raises(SceneParseError, match="triangle needs 9 values"):
            parse_scene_text(_scene(_CAMERA, _MATERIAL, "t 0 0 0 1 0 0"))

    @pytest.mark.parametrize("cameras", [0, 2])
    def test_exactly_one_camera(self, cameras: int) -> None:
        with pytest.raises(SceneParseError, match="exactly one camera"):
            parse_scene_text(_scene(*([_CAMERA] * cameras), _MATERIAL, "s 0 0 0 1"))

    def test_at_most_one_ambient(self) -> None:
        with pytest.raises(SceneParseError, match="at most one ambient"):
            parse_scene_text(_scene(_CAMERA, "l a 0.1 0.1 0.1", "l a 0.2 0.2 0.2"))

    def test_unknown_texture_id(self) -> None:
        with pytest.raises(SceneParseError, match="texture id 3"):
            parse_scene_text(_scene(_CAMERA, "n 3 1 1 1 0 0 0 1 0 0 0"))

    def test_bad_dielectric(self) -> None:
        with pytest.raises(SceneParseError, match="positive"):
            parse_scene_text(_scene(_CAMERA, "d 0 1 1 1"))

    def test_parse_error_is_value_error(self) -> None:
        assert issubclass(SceneParseError, ValueError)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            parse_scene(tmp_path / "nope.scn")

    def test_mesh_and_texture_paths_relative_to_scene(self, tmp_path: Path) -> None:
        (tmp_path / "quad.obj").write_text(_QUAD_OBJ)
        Image.fromarray(np.full((4, 4, 3), 255, dtype=np.uint8)).save(tmp_path / "white.png")
        scene_file = tmp_path / "scene.scn"
        scene_file.write_text(
            _scene(_CAMERA, "i 1 0 1 white.png", "n 1 0 0 0 0 0 0 1 0 0 0", "w quad.obj")
        )

        scene = parse_scene(scene_file)
        mesh = scene.arena[scene.surfaces[0]]
        assert isinstance(mesh, TriMesh)
        assert mesh.bvh_root is not None
        assert isinstance(mesh.material.diffuse, ImageTexture)
        assert scene.textures[1].flipy
        assert scene.arena.count_by_kind()["MeshFace"] == 2

        root = scene.build_bvh()
        record = HitRecord()
        assert root.hit(Ray((0.4, 0.4, 1.0), (0.0, 0.0, -1.0)), 1e-8, np.inf, record)
        assert record.surface is mesh
        np.testing.assert_allclose(mesh.material.diffuse.value(record.face_geouv.global_uv), 1.0)

    def test_unreadable_mesh(self, tmp_path: Path) -> None:
        scene_file = tmp_path / "scene.scn"
        scene_file.write_text(_scene(_CAMERA, _MATERIAL, "w missing.obj"))
        with pytest.raises(SceneParseError, match="cannot read mesh"):
            parse_scene(scene_file)


# ===================================================================
# OBJ LOADER
# ===================================================================


class TestObjLoader:

    def test_quad_triangulated(self, tmp_path: Path) -> None:
        path = tmp_path / "quad.obj"
        path.write_text(_QUAD_OBJ)
        mesh = load_obj(path)

        assert mesh.name == "quad"
        assert mesh.num_faces == 2
        assert len(mesh.vertices) == 4
        # Each corner keeps the texture coordinate it was paired with.
        np.testing.assert_allclose(mesh.texcoords, mesh.vertices[:, :2])
        np.testing.assert_allclose(mesh.vertex_normals, np.tile([0.0, 0.0, 1.0], (4, 1)))
        np.testing.assert_allclose(
            compute_face_normals(mesh.vertices, mesh.faces), np.tile([0.0, 0.0, 1.0], (2, 1))
        )

    def test_shared_corners_not_duplicated(self, tmp_path: Path) -> None:
        path = tmp_path / "tris.obj"
        path.write_text("v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\nf 1 2 3\nf 1 3 4\n")
        mesh = load_obj(path)
        assert len(mesh.vertices) == 4
        np.testing.assert_array_equal(mesh.faces, [[0, 1, 2], [0, 2, 3]])
        assert not mesh.has_texcoords

    def test_corners_split_on_differing_texcoords(self, tmp_path: Path) -> None:
        path = tmp_path / "seam.obj"
        path.write_text(
            "v 0 0 0\nv 1 0 0\nv 0 1 0\nvt 0 0\nvt 1 0\nvt 0 1\nvt 0.5 0.5\n"
            "f 1/1 2/2 3/3\nf 1/4 3/3 2/2\n"
        )
        mesh = load_obj(path)
        assert len(mesh.vertices) == 4
        assert mesh.has_texcoords

    def test_negative_indices(self, tmp_path: Path) -> None:
        path = tmp_path / "neg.obj"
        path.write_text("v 0 0 0\nv 1 0 0\nv 0 1 0\nf -3 -2 -1\n")
        mesh = load_obj(path, name="neg")
        assert mesh.name == "neg"
        np.testing.assert_array_equal(mesh.face_vertices(0), [[0, 0, 0], [1, 0, 0], [0, 1, 0]])

    def test_partial_texcoords_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "mixed.obj"
        path.write_text("v 0 0 0\nv 1 0 0\nv 0 1 0\nv 1 1 0\nvt 0 0\nf 1/1 2/1 3/1\nf 2 4 3\n")
        assert not load_obj(path).has_texcoords

    def test_normals_computed_when_absent(self, tmp_path: Path) -> None:
        path = tmp_path / "tri.obj"
        path.write_text("v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n")
        np.testing.assert_allclose(load_obj(path).vertex_normals, np.tile([0, 0, 1.0], (3, 1)))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_obj(tmp_path / "absent.obj")

    def test_no_faces(self, tmp_path: Path) -> None:
        path = tmp_path / "points.obj"
        path.write_text("v 0 0 0\nv 1 0 0\n")
        with pytest.raises(ValueError, match="no faces"):
            load_obj(path)

    def test_face_index_out_of_range(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.obj"
        path.write_text("v 0 0 0\nv 1 0 0\nf 1 2 3\n")
        with pytest.raises(ValueError, match="Malformed"):
            load_obj(path)
