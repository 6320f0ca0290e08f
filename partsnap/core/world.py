"""In-memory reference implementation of the physics and scene-host collaborators.

``SceneWorld`` keeps every object in an append-only arena addressed by integer
handles. Slots of destroyed objects become ``None`` and are never reused, so a
stale handle resolves to nothing instead of to a different object. Placed parts
are indexed in a uniform grid so neighbourhood queries only touch nearby cells.
"""
from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
import numpy as np

from .parts import PlacedPart
from .queries import Layers, OverlapQuery, Ray, RayHit, RayQuery, ShapeQuery
from .shapes import Bounds, ShapeDescriptor, shapes_overlap
from .templates import TemplateLibrary
from .transform import Transform
from .utils import get_logger

_log = get_logger()


class EnvironmentMesh:
    """Static triangle geometry on the environment layer."""

    def __init__(self, vertices: np.ndarray, faces: np.ndarray, epsilon: float = 1e-9) -> None:
        self.vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
        self.faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        self.epsilon = float(epsilon)

    @classmethod
    def from_ascii_ply(cls, path: str | Path) -> "EnvironmentMesh":
        with open(path, "r", encoding="utf-8") as f:
            header: list[str] = []
            while True:
                line = f.readline()
                if not line:
                    raise RuntimeError("Unexpected EOF while reading PLY header.")
                line = line.strip()
                header.append(line)
                if line == "end_header":
                    break

            if header[0] != "ply":
                raise RuntimeError("Only ASCII PLY files are supported.")
            if "format ascii" not in header[1]:
                raise RuntimeError("Only ASCII PLY format is supported.")

            n_vertices = 0
            n_faces = 0
            for line in header[2:]:
                parts = line.split()
                if len(parts) >= 3 and parts[0] == "element":
                    if parts[1] == "vertex":
                        n_vertices = int(parts[2])
                    elif parts[1] == "face":
                        n_faces = int(parts[2])

            vertices = []
            for _ in range(n_vertices):
                parts = f.readline().strip().split()
                if len(parts) < 3:
                    raise RuntimeError("Vertex line must contain at least xyz.")
                vertices.append(tuple(map(float, parts[:3])))

            faces = []
            for _ in range(n_faces):
                parts = f.readline().strip().split()
                if not parts:
                    continue
                if int(parts[0]) != 3:
                    raise RuntimeError("Only triangular faces are supported.")
                faces.append(tuple(int(v) for v in parts[1:4]))

        return cls(np.asarray(vertices, dtype=np.float64), np.asarray(faces, dtype=np.int64))

    def intersect(self, ray: Ray, max_distance: float) -> Optional[Tuple[float, np.ndarray]]:
        """Nearest Möller–Trumbore hit as ``(t, normal)``; normal faces the ray."""
        if len(self.faces) == 0:
            return None
        tris = self.vertices[self.faces]
        v0, v1, v2 = tris[:, 0], tris[:, 1], tris[:, 2]
        edge1 = v1 - v0
        edge2 = v2 - v0
        d = ray.direction
        pvec = np.cross(d, edge2)
        det = np.einsum("ij,ij->i", edge1, pvec)
        ok = np.abs(det) > self.epsilon
        inv_det = np.where(ok, 1.0 / np.where(ok, det, 1.0), 0.0)
        tvec = ray.origin - v0
        u = np.einsum("ij,ij->i", tvec, pvec) * inv_det
        qvec = np.cross(tvec, edge1)
        v = (qvec @ d) * inv_det
        t = np.einsum("ij,ij->i", edge2, qvec) * inv_det
        ok &= (u >= 0.0) & (u <= 1.0) & (v >= 0.0) & (u + v <= 1.0) & (t >= 0.0) & (t <= max_distance)
        if not np.any(ok):
            return None
        idx = int(np.argmin(np.where(ok, t, np.inf)))
        normal = np.cross(edge1[idx], edge2[idx])
        normal /= np.linalg.norm(normal)
        if np.dot(normal, d) > 0:
            normal = -normal
        return float(t[idx]), normal


class GridIndex:
    """Uniform spatial hash of object bounds."""

    def __init__(self, cell_size: float = 2.0) -> None:
        if cell_size <= 0:
            raise ValueError("cell_size must be positive")
        self.cell_size = float(cell_size)
        self._cells: Dict[Tuple[int, int, int], Set[int]] = defaultdict(set)
        self._keys: Dict[int, List[Tuple[int, int, int]]] = {}

    def _cell_range(self, bounds: Bounds) -> Tuple[np.ndarray, np.ndarray]:
        lo = np.floor(bounds[0] / self.cell_size).astype(int)
        hi = np.floor(bounds[1] / self.cell_size).astype(int)
        return lo, hi

    def _cell_keys(self, bounds: Bounds) -> List[Tuple[int, int, int]]:
        lo, hi = self._cell_range(bounds)
        return [
            (i, j, k)
            for i in range(lo[0], hi[0] + 1)
            for j in range(lo[1], hi[1] + 1)
            for k in range(lo[2], hi[2] + 1)
        ]

    def insert(self, ref: int, bounds: Bounds) -> None:
        self.remove(ref)
        keys = self._cell_keys(bounds)
        for key in keys:
            self._cells[key].add(ref)
        self._keys[ref] = keys

    def remove(self, ref: int) -> None:
        for key in self._keys.pop(ref, []):
            cell = self._cells.get(key)
            if cell is not None:
                cell.discard(ref)
                if not cell:
                    del self._cells[key]

    def candidates(self, bounds: Bounds) -> Set[int]:
        lo, hi = self._cell_range(bounds)
        found: Set[int] = set()
        # wide queries walk the occupied cells instead of the whole range
        span = [int(b) - int(a) + 1 for a, b in zip(lo, hi)]
        if span[0] * span[1] * span[2] > len(self._cells):
            for key, refs in self._cells.items():
                if all(lo[a] <= key[a] <= hi[a] for a in range(3)):
                    found |= refs
            return found
        for key in self._cell_keys(bounds):
            found |= self._cells.get(key, set())
        return found


@dataclass
class _Body:
    template_index: int
    transform: Transform
    layer: int
    visible: bool = True
    attached: bool = False


def _ray_aabb(ray: Ray, lo: np.ndarray, hi: np.ndarray, max_distance: float) -> Optional[Tuple[float, np.ndarray]]:
    t_near, t_far = 0.0, max_distance
    normal = np.zeros(3)
    for axis in range(3):
        o, d = ray.origin[axis], ray.direction[axis]
        if abs(d) < 1e-12:
            if o < lo[axis] or o > hi[axis]:
                return None
            continue
        t1 = (lo[axis] - o) / d
        t2 = (hi[axis] - o) / d
        sign = -1.0
        if t1 > t2:
            t1, t2 = t2, t1
            sign = 1.0
        if t1 > t_near:
            t_near = t1
            normal = np.zeros(3)
            normal[axis] = sign
        t_far = min(t_far, t2)
        if t_near > t_far:
            return None
    if not normal.any():
        # origin inside the box
        normal = -ray.direction
    return t_near, normal


def _ray_sphere(ray: Ray, center: np.ndarray, radius: float, max_distance: float) -> Optional[Tuple[float, np.ndarray]]:
    oc = ray.origin - center
    b = float(np.dot(oc, ray.direction))
    c = float(np.dot(oc, oc)) - radius * radius
    disc = b * b - c
    if disc < 0:
        return None
    sq = np.sqrt(disc)
    t = -b - sq
    if t < 0:
        t = -b + sq
    if t < 0 or t > max_distance:
        return None
    point = ray.origin + ray.direction * t
    return float(t), (point - center) / radius


class SceneWorld:
    """Physics backend + scene host over an in-memory arena."""

    def __init__(
        self,
        library: TemplateLibrary,
        layers: Optional[Layers] = None,
        ground_height: Optional[float] = 0.0,
        meshes: Sequence[EnvironmentMesh] = (),
        cell_size: float = 2.0,
        contact_tolerance: float = 1e-4,
    ) -> None:
        self.library = library
        self.layers = layers or Layers()
        self.ground_height = ground_height
        self.meshes = list(meshes)
        self.contact_tolerance = float(contact_tolerance)
        self._arena: List[Optional[_Body]] = []
        self._index = GridIndex(cell_size)

    # -- scene host --
    def instantiate(self, template_index: int) -> int:
        self.library[template_index]  # raises IndexError on bad handles
        self._arena.append(_Body(template_index, Transform.identity(), layer=self.layers.preview))
        return len(self._arena) - 1

    def destroy(self, ref: int) -> None:
        if self._body(ref) is None:
            return
        self._index.remove(ref)
        self._arena[ref] = None

    def set_transform(self, ref: int, transform: Transform) -> None:
        body = self._require(ref)
        body.transform = transform
        if body.attached:
            self._reindex(ref, body)

    def set_visible(self, ref: int, visible: bool) -> None:
        self._require(ref).visible = bool(visible)

    def is_visible(self, ref: int) -> bool:
        return self._require(ref).visible

    def attach_to_world(self, ref: int) -> None:
        body = self._require(ref)
        body.attached = True
        body.layer = self.layers.placed_parts
        body.visible = True
        self._reindex(ref, body)

    def place(self, template_index: int, transform: Transform) -> int:
        """Instantiate, position and attach in one step (world setup helper)."""
        ref = self.instantiate(template_index)
        self.set_transform(ref, transform)
        self.attach_to_world(ref)
        return ref

    # -- capability queries --
    def as_placed_part(self, ref: int) -> Optional[PlacedPart]:
        body = self._body(ref)
        if body is None or not body.attached or body.layer != self.layers.placed_parts:
            return None
        return PlacedPart(ref, body.template_index, self.library[body.template_index], body.transform)

    def transform_of(self, ref: int) -> Optional[Transform]:
        body = self._body(ref)
        return None if body is None else body.transform

    def placed_parts(self) -> List[PlacedPart]:
        parts = (self.as_placed_part(i) for i in range(len(self._arena)))
        return [p for p in parts if p is not None]

    # -- physics --
    def cast_ray(self, query: RayQuery) -> Optional[RayHit]:
        ray = query.ray
        best: Optional[RayHit] = None

        def consider(t: float, normal: np.ndarray, ref: Optional[int]) -> None:
            nonlocal best
            if best is None or t < best.distance:
                best = RayHit(ray.origin + ray.direction * t, normal, ref, t)

        if query.layer_mask & self.layers.environment:
            if self.ground_height is not None and abs(ray.direction[2]) > 1e-12:
                t = (self.ground_height - ray.origin[2]) / ray.direction[2]
                if 0.0 <= t <= query.max_distance:
                    consider(float(t), np.array([0.0, 0.0, 1.0 if ray.direction[2] < 0 else -1.0]), None)
            for mesh in self.meshes:
                hit = mesh.intersect(ray, query.max_distance)
                if hit is not None:
                    consider(hit[0], hit[1], None)

        for ref, body, shape in self._bodies(query.layer_mask, query.exclude):
            if shape.kind == "sphere":
                hit = _ray_sphere(ray, shape.world_center(body.transform), shape.radius, query.max_distance)
            else:
                lo, hi = shape.world_bounds(body.transform)
                hit = _ray_aabb(ray, lo, hi, query.max_distance)
            if hit is not None:
                consider(hit[0], hit[1], ref)
        return best

    def query_sphere_overlap(self, query: OverlapQuery) -> Set[int]:
        sphere = ShapeDescriptor.sphere(query.radius, query.center)
        return self._overlapping(sphere, Transform.identity(), query.layer_mask, query.exclude, tolerance=0.0)

    def query_shape_overlap(self, query: ShapeQuery) -> Set[int]:
        return self._overlapping(query.shape, query.transform, query.layer_mask, query.exclude,
                                 tolerance=self.contact_tolerance)

    # -- internals --
    def _overlapping(self, shape: ShapeDescriptor, transform: Transform, layer_mask: int,
                     exclude: Iterable[int], tolerance: float) -> Set[int]:
        excluded = set(exclude)
        found: Set[int] = set()
        for ref in self._index.candidates(shape.world_bounds(transform)):
            if ref in excluded:
                continue
            body = self._body(ref)
            if body is None or not (body.layer & layer_mask):
                continue
            other = self.library[body.template_index].shape
            if other is None or not other.is_well_formed():
                continue
            if shapes_overlap(shape, transform, other, body.transform, tolerance):
                found.add(ref)
        return found

    def _bodies(self, layer_mask: int, exclude: Iterable[int]):
        excluded = set(exclude)
        for ref, body in enumerate(self._arena):
            if body is None or ref in excluded or not body.attached or not (body.layer & layer_mask):
                continue
            shape = self.library[body.template_index].shape
            if shape is None or not shape.is_well_formed():
                continue
            yield ref, body, shape

    def _reindex(self, ref: int, body: _Body) -> None:
        shape = self.library[body.template_index].shape
        if shape is None or not shape.is_well_formed():
            _log.warning("Object %d has no usable collision shape; it will not be indexed.", ref)
            self._index.remove(ref)
            return
        self._index.insert(ref, shape.world_bounds(body.transform))

    def _body(self, ref: int) -> Optional[_Body]:
        if ref < 0 or ref >= len(self._arena):
            return None
        return self._arena[ref]

    def _require(self, ref: int) -> _Body:
        body = self._body(ref)
        if body is None:
            raise KeyError(f"Unknown or destroyed object {ref}")
        return body
