from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import numpy as np

from .connectors import Connector
from .templates import PartTemplate
from .transform import Transform


@dataclass(frozen=True)
class PlacedPart:
    """Committed instance in the world. Read-only once created."""
    ref: int
    template_index: int
    template: PartTemplate
    transform: Transform

    def world_connectors(self) -> Tuple[Tuple[Connector, np.ndarray], ...]:
        """Each connector (owned by this part) paired with its world position."""
        return tuple(
            (c.owned_by(self.ref), self.transform.apply(c.local_position))
            for c in self.template.all_connectors()
        )


@dataclass
class PreviewObject:
    """The single transient, non-colliding stand-in for the selected template."""
    ref: int
    template_index: int
    template: PartTemplate
    connectors: Tuple[Connector, ...]
