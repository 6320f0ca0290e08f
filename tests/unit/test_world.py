from pathlib import Path

import numpy as np
import pytest

from partsnap.core.connectors import Connector
from partsnap.core.queries import Layers, OverlapQuery, Ray, RayQuery
from partsnap.core.shapes import ShapeDescriptor
from partsnap.core.templates import PartTemplate, TemplateLibrary
from partsnap.core.transform import Transform
from partsnap.core.world import EnvironmentMesh, GridIndex, SceneWorld

LAYERS = Layers()


def _world(**kwargs) -> SceneWorld:
    lib = TemplateLibrary([
        PartTemplate("cube", ShapeDescriptor.box((0.5, 0.5, 0.5)), (Connector.named("+Z", (0.0, 0.0, 0.5)),)),
        PartTemplate("ball", ShapeDescriptor.sphere(0.5)),
    ])
    return SceneWorld(lib, **kwargs)


def _cast(world: SceneWorld, origin, direction, mask=LAYERS.targeting_mask, exclude=()):
    ray = Ray(origin=np.asarray(origin, dtype=float), direction=np.asarray(direction, dtype=float))
    return world.cast_ray(RayQuery(ray=ray, max_distance=100.0, layer_mask=mask, exclude=frozenset(exclude)))


def _write_plane(path: Path, z: float) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write("ply\nformat ascii 1.0\nelement vertex 4\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        f.write("element face 2\nproperty list uchar int vertex_indices\nend_header\n")
        for x, y in [(-5, -5), (5, -5), (5, 5), (-5, 5)]:
            f.write(f"{x} {y} {z}\n")
        f.write("3 0 1 2\n3 0 2 3\n")


def test_ray_hits_ground_plane() -> None:
    hit = _cast(_world(), (1.0, 2.0, 5.0), (0.0, 0.0, -1.0))
    assert hit is not None
    assert hit.hit_ref is None
    assert np.allclose(hit.position, [1.0, 2.0, 0.0])
    assert np.allclose(hit.normal, [0.0, 0.0, 1.0])
    assert np.isclose(hit.distance, 5.0)


def test_ray_hits_box_face_with_outward_normal() -> None:
    world = _world()
    ref = world.place(0, Transform.identity((0.0, 0.0, 0.5)))
    hit = _cast(world, (5.0, 0.0, 0.5), (-1.0, 0.0, 0.0))
    assert hit is not None and hit.hit_ref == ref
    assert np.allclose(hit.position, [0.5, 0.0, 0.5])
    assert np.allclose(hit.normal, [1.0, 0.0, 0.0])


def test_ray_hits_sphere() -> None:
    world = _world()
    ref = world.place(1, Transform.identity((0.0, 0.0, 3.0)))
    hit = _cast(world, (0.0, 0.0, 10.0), (0.0, 0.0, -1.0))
    assert hit is not None and hit.hit_ref == ref
    assert np.allclose(hit.position, [0.0, 0.0, 3.5])
    assert np.allclose(hit.normal, [0.0, 0.0, 1.0])


def test_ray_respects_exclusion_and_layer_mask() -> None:
    world = _world()
    ref = world.place(0, Transform.identity((0.0, 0.0, 0.5)))
    assert _cast(world, (5.0, 0.0, 0.5), (-1.0, 0.0, 0.0), exclude=[ref]) is None
    hit = _cast(world, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0), mask=LAYERS.environment)
    assert hit is not None and hit.hit_ref is None
    assert np.allclose(hit.position, [0.0, 0.0, 0.0])


def test_preview_objects_are_not_hit_until_attached() -> None:
    world = _world()
    preview = world.instantiate(0)
    world.set_transform(preview, Transform.identity((0.0, 0.0, 0.5)))
    hit = _cast(world, (0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
    assert hit is not None and hit.hit_ref is None
    assert world.as_placed_part(preview) is None
    assert world.transform_of(preview) is not None


def test_sphere_overlap_returns_only_nearby_parts() -> None:
    world = _world(cell_size=1.0)
    near = world.place(0, Transform.identity((0.0, 0.0, 0.5)))
    world.place(0, Transform.identity((50.0, 0.0, 0.5)))
    found = world.query_sphere_overlap(OverlapQuery(center=np.zeros(3), radius=1.0, layer_mask=LAYERS.placed_parts))
    assert found == {near}
    none = world.query_sphere_overlap(OverlapQuery(center=np.zeros(3), radius=1.0, layer_mask=LAYERS.environment))
    assert none == set()


def test_destroyed_handles_resolve_to_nothing() -> None:
    world = _world()
    ref = world.place(0, Transform.identity((0.0, 0.0, 0.5)))
    world.destroy(ref)
    assert world.as_placed_part(ref) is None
    assert world.transform_of(ref) is None
    assert world.placed_parts() == []
    assert world.instantiate(0) != ref
    with pytest.raises(KeyError):
        world.set_visible(ref, True)


def test_placed_part_world_connectors() -> None:
    world = _world()
    ref = world.place(0, Transform.identity((2.0, 0.0, 0.5)))
    part = world.as_placed_part(ref)
    assert part is not None
    [(conn, pos)] = part.world_connectors()
    assert conn.owner == ref
    assert np.allclose(pos, [2.0, 0.0, 1.0])


def test_environment_mesh_from_ascii_ply(tmp_path: Path) -> None:
    ply = tmp_path / "plane.ply"
    _write_plane(ply, z=2.0)
    mesh = EnvironmentMesh.from_ascii_ply(ply)
    assert mesh.faces.shape == (2, 3)
    world = _world(ground_height=None, meshes=[mesh])
    hit = _cast(world, (1.0, 2.0, 5.0), (0.0, 0.0, -1.0))
    assert hit is not None
    assert np.allclose(hit.position, [1.0, 2.0, 2.0])
    assert np.allclose(hit.normal, [0.0, 0.0, 1.0])
    assert _cast(world, (9.0, 9.0, 5.0), (0.0, 0.0, -1.0)) is None


def test_grid_index_tracks_moves() -> None:
    grid = GridIndex(cell_size=1.0)
    grid.insert(3, (np.array([0.1, 0.1, 0.1]), np.array([0.2, 0.2, 0.2])))
    assert grid.candidates((np.zeros(3), np.full(3, 0.5))) == {3}
    grid.insert(3, (np.array([10.1, 0.1, 0.1]), np.array([10.2, 0.2, 0.2])))
    assert grid.candidates((np.zeros(3), np.full(3, 0.5))) == set()
    grid.remove(3)
    assert grid.candidates((np.full(3, 10.0), np.full(3, 11.0))) == set()


def test_grid_wide_query_walks_occupied_cells_only(monkeypatch) -> None:
    grid = GridIndex(cell_size=0.5)
    grid.insert(3, (np.array([0.1, 0.1, 0.1]), np.array([0.2, 0.2, 0.2])))
    grid.insert(4, (np.array([30.1, 0.1, 0.1]), np.array([30.2, 0.2, 0.2])))

    def _no_enumeration(bounds):
        raise AssertionError("wide query enumerated every cell in range")

    monkeypatch.setattr(grid, "_cell_keys", _no_enumeration)
    assert grid.candidates((np.full(3, -40.0), np.full(3, 40.0))) == {3, 4}
    assert grid.candidates((np.full(3, -1.0e6), np.full(3, 1.0))) == {3}
    assert GridIndex(cell_size=0.5).candidates((np.full(3, -40.0), np.full(3, 40.0))) == set()
