"""Axis-tagged connectors and the snap compatibility rule."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import numpy as np

from .utils import as_vec3


class AxisTag(str, Enum):
    POS_X = "+X"
    NEG_X = "-X"
    POS_Y = "+Y"
    NEG_Y = "-Y"
    POS_Z = "+Z"
    NEG_Z = "-Z"

    @property
    def opposite(self) -> "AxisTag":
        return _OPPOSITES[self]

    @classmethod
    def parse(cls, name: str) -> Optional["AxisTag"]:
        """Read the axis prefix of a connector name (``"-Y_top"`` → ``-Y``).

        Names without one of the six prefixes are unprefixed markers and
        return ``None``. Prefixes are case-insensitive.
        """
        head = name[:2].upper()
        for tag in cls:
            if tag.value == head:
                return tag
        return None


_OPPOSITES = {
    AxisTag.POS_X: AxisTag.NEG_X, AxisTag.NEG_X: AxisTag.POS_X,
    AxisTag.POS_Y: AxisTag.NEG_Y, AxisTag.NEG_Y: AxisTag.POS_Y,
    AxisTag.POS_Z: AxisTag.NEG_Z, AxisTag.NEG_Z: AxisTag.POS_Z,
}


@dataclass(frozen=True, eq=False)
class Connector:
    name: str
    axis: Optional[AxisTag]
    local_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    owner: Optional[int] = None     # arena index of the owning object

    def __post_init__(self) -> None:
        object.__setattr__(self, "local_position", as_vec3(self.local_position))

    @staticmethod
    def named(name: str, position=(0.0, 0.0, 0.0), axis: Optional[AxisTag] = None) -> "Connector":
        return Connector(name=name, axis=axis if axis is not None else AxisTag.parse(name),
                         local_position=np.asarray(position, dtype=float))

    def offset_by(self, offset: np.ndarray) -> "Connector":
        return Connector(self.name, self.axis, self.local_position + offset, self.owner)

    def owned_by(self, owner: Optional[int]) -> "Connector":
        return Connector(self.name, self.axis, self.local_position, owner)


def compatible(a: Optional[AxisTag], b: Optional[AxisTag]) -> bool:
    """True iff the tags are exact opposites on the same axis."""
    if a is None or b is None:
        return False
    return a.opposite is b
