from __future__ import annotations
from typing import Iterable, List, Optional

from .parts import PlacedPart
from .queries import OverlapQuery, PhysicsBackend, Ray, RayHit, RayQuery
from .utils import get_logger

_log = get_logger()


class Targeting:
    """Resolves the pointer ray to a surface hit on environment or placed parts."""

    def __init__(self, physics: PhysicsBackend, layer_mask: int, max_distance: float = 100.0) -> None:
        self.physics = physics
        self.layer_mask = int(layer_mask)
        self.max_distance = float(max_distance)

    def resolve(self, ray: Ray, exclude: Iterable[int] = ()) -> Optional[RayHit]:
        query = RayQuery(ray=ray, max_distance=self.max_distance,
                         layer_mask=self.layer_mask, exclude=frozenset(exclude))
        return self.physics.cast_ray(query)


class ProximityQuery:
    """Gathers placed parts near a point through the physics broad phase."""

    def __init__(self, physics: PhysicsBackend, layer_mask: int, radius: float = 2.0) -> None:
        self.physics = physics
        self.layer_mask = int(layer_mask)
        self.radius = float(radius)

    def candidates(self, point, exclude: Iterable[int] = ()) -> List[PlacedPart]:
        query = OverlapQuery(center=point, radius=self.radius,
                             layer_mask=self.layer_mask, exclude=frozenset(exclude))
        parts: List[PlacedPart] = []
        for ref in sorted(self.physics.query_sphere_overlap(query)):
            part = self.physics.as_placed_part(ref)
            if part is None:
                _log.debug("Proximity result %d is not a placed part, skipping.", ref)
                continue
            parts.append(part)
        return parts
