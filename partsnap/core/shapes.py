"""Collision shape descriptors and the overlap tests used by the reference world."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Literal, Tuple
import numpy as np

from .transform import Transform
from .utils import as_vec3

Bounds = Tuple[np.ndarray, np.ndarray]


@dataclass(frozen=True, eq=False)
class ShapeDescriptor:
    kind: Literal["box", "sphere"]
    half_extents: np.ndarray = field(default_factory=lambda: np.full(3, 0.5))
    radius: float = 0.5
    center: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        object.__setattr__(self, "half_extents", np.asarray(self.half_extents, dtype=np.float64).reshape(-1))
        object.__setattr__(self, "center", as_vec3(self.center))

    @staticmethod
    def box(half_extents, center=(0.0, 0.0, 0.0)) -> "ShapeDescriptor":
        return ShapeDescriptor(kind="box", half_extents=np.asarray(half_extents, dtype=float),
                               center=np.asarray(center, dtype=float))

    @staticmethod
    def sphere(radius: float, center=(0.0, 0.0, 0.0)) -> "ShapeDescriptor":
        return ShapeDescriptor(kind="sphere", radius=float(radius), center=np.asarray(center, dtype=float))

    def is_well_formed(self) -> bool:
        if self.kind == "box":
            h = self.half_extents
            return h.shape == (3,) and bool(np.all(np.isfinite(h))) and bool(np.all(h > 0))
        if self.kind == "sphere":
            return bool(np.isfinite(self.radius)) and self.radius > 0
        return False

    def world_center(self, transform: Transform) -> np.ndarray:
        return transform.apply(self.center)

    def world_bounds(self, transform: Transform) -> Bounds:
        """Axis-aligned world bounds. Rotated boxes get their enclosing AABB."""
        c = self.world_center(transform)
        if self.kind == "sphere":
            r = np.full(3, self.radius)
        else:
            r = np.abs(transform.R) @ self.half_extents
        return c - r, c + r


def _box_sphere_penetration(lo: np.ndarray, hi: np.ndarray, center: np.ndarray, radius: float) -> float:
    closest = np.clip(center, lo, hi)
    d = float(np.linalg.norm(center - closest))
    if d == 0.0:
        # centre inside the box: depth to the nearest face plus the radius
        return float(min(np.min(center - lo), np.min(hi - center))) + radius
    return radius - d


def shapes_overlap(
    a: ShapeDescriptor, ta: Transform,
    b: ShapeDescriptor, tb: Transform,
    tolerance: float = 0.0,
) -> bool:
    """Penetration test; shapes that merely touch within ``tolerance`` do not overlap."""
    if a.kind == "sphere" and b.kind == "sphere":
        d = float(np.linalg.norm(a.world_center(ta) - b.world_center(tb)))
        return a.radius + b.radius - d > tolerance
    if a.kind == "sphere":
        a, ta, b, tb = b, tb, a, ta
    lo_a, hi_a = a.world_bounds(ta)
    if b.kind == "sphere":
        return _box_sphere_penetration(lo_a, hi_a, b.world_center(tb), b.radius) > tolerance
    lo_b, hi_b = b.world_bounds(tb)
    depth = np.minimum(hi_a, hi_b) - np.maximum(lo_a, lo_b)
    return bool(np.all(depth > tolerance))
