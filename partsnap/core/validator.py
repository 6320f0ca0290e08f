from __future__ import annotations
from typing import Iterable, Optional

from .queries import PhysicsBackend, ShapeQuery
from .shapes import ShapeDescriptor
from .transform import Transform
from .utils import get_logger

_log = get_logger()


class OverlapValidator:
    """Decides whether a placement transform is free of placed-part geometry."""

    def __init__(self, physics: PhysicsBackend, layer_mask: int) -> None:
        self.physics = physics
        self.layer_mask = int(layer_mask)

    def is_valid(
        self,
        shape: Optional[ShapeDescriptor],
        transform: Transform,
        preview_ref: int,
        snap_target: Optional[int] = None,
        extra_exclude: Iterable[int] = (),
    ) -> bool:
        """``True`` iff the shape at ``transform`` overlaps nothing.

        The preview is always excluded, and so is the snap target when there is
        one since a snapped part is expected to abut it. A missing or malformed
        shape counts as overlapping.
        """
        if shape is None or not shape.is_well_formed():
            _log.warning("Preview object %d has no usable collision shape; placement rejected.", preview_ref)
            return False
        exclude = {preview_ref, *extra_exclude}
        if snap_target is not None:
            exclude.add(snap_target)
        query = ShapeQuery(shape=shape, transform=transform,
                           layer_mask=self.layer_mask, exclude=frozenset(exclude))
        return not self.physics.query_shape_overlap(query)
