"""Per-call query parameters and results exchanged with the physics collaborator.

Every query is an immutable value built fresh for the call; nothing is shared
between ticks.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, FrozenSet, Optional, Protocol, Set
import numpy as np

from .shapes import ShapeDescriptor
from .transform import Transform
from .utils import as_vec3, ensure_unit_vector

if TYPE_CHECKING:
    from .parts import PlacedPart


@dataclass(frozen=True)
class Layers:
    environment: int = 1
    placed_parts: int = 2
    preview: int = 4

    @property
    def targeting_mask(self) -> int:
        return self.environment | self.placed_parts


@dataclass(frozen=True, eq=False)
class Ray:
    origin: np.ndarray
    direction: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin", as_vec3(self.origin))
        object.__setattr__(self, "direction", ensure_unit_vector(self.direction))


@dataclass(frozen=True)
class RayQuery:
    ray: Ray
    max_distance: float
    layer_mask: int
    exclude: FrozenSet[int] = frozenset()


@dataclass(frozen=True, eq=False)
class OverlapQuery:
    center: np.ndarray
    radius: float
    layer_mask: int
    exclude: FrozenSet[int] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "center", as_vec3(self.center))


@dataclass(frozen=True)
class ShapeQuery:
    shape: ShapeDescriptor
    transform: Transform
    layer_mask: int
    exclude: FrozenSet[int] = frozenset()


@dataclass(frozen=True, eq=False)
class RayHit:
    position: np.ndarray
    normal: np.ndarray
    hit_ref: Optional[int]        # None for environment geometry without an object handle
    distance: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", as_vec3(self.position))
        object.__setattr__(self, "normal", as_vec3(self.normal))


class PhysicsBackend(Protocol):
    def cast_ray(self, query: RayQuery) -> Optional[RayHit]: ...
    def query_sphere_overlap(self, query: OverlapQuery) -> Set[int]: ...
    def query_shape_overlap(self, query: ShapeQuery) -> Set[int]: ...
    def as_placed_part(self, ref: int) -> Optional["PlacedPart"]: ...
    def transform_of(self, ref: int) -> Optional[Transform]: ...


class SceneHost(Protocol):
    def instantiate(self, template_index: int) -> int: ...
    def destroy(self, ref: int) -> None: ...
    def set_transform(self, ref: int, transform: Transform) -> None: ...
    def set_visible(self, ref: int, visible: bool) -> None: ...
    def attach_to_world(self, ref: int) -> None: ...
