from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple
import numpy as np

from .connectors import Connector
from .shapes import ShapeDescriptor
from .utils import as_vec3


@dataclass(frozen=True)
class SubPart:
    """Nested child of a template with its own connectors, offset from its parent."""
    offset: np.ndarray = field(default_factory=lambda: np.zeros(3))
    connectors: Tuple[Connector, ...] = ()
    children: Tuple["SubPart", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "offset", as_vec3(self.offset))


def _collect(connectors: Sequence[Connector], children: Sequence[SubPart], offset: np.ndarray) -> Iterator[Connector]:
    for c in connectors:
        yield c.offset_by(offset)
    for child in children:
        yield from _collect(child.connectors, child.children, offset + child.offset)


@dataclass(frozen=True)
class PartTemplate:
    """Immutable blueprint for a placeable part."""
    name: str
    shape: Optional[ShapeDescriptor] = None
    connectors: Tuple[Connector, ...] = ()
    children: Tuple[SubPart, ...] = ()

    def all_connectors(self) -> Tuple[Connector, ...]:
        """Connectors of the template and every nested child, in the template frame."""
        return tuple(_collect(self.connectors, self.children, np.zeros(3)))

    def has_valid_shape(self) -> bool:
        return self.shape is not None and self.shape.is_well_formed()


class TemplateLibrary:
    """Ordered template list addressed by index, loaded once at startup."""

    def __init__(self, templates: Sequence[PartTemplate]) -> None:
        self._templates: Tuple[PartTemplate, ...] = tuple(templates)
        self._connector_cache: List[Tuple[Connector, ...]] = [t.all_connectors() for t in self._templates]

    def __len__(self) -> int:
        return len(self._templates)

    def __getitem__(self, index: int) -> PartTemplate:
        return self._templates[index]

    def __iter__(self) -> Iterator[PartTemplate]:
        return iter(self._templates)

    def connectors(self, index: int) -> Tuple[Connector, ...]:
        return self._connector_cache[index]

    def index_of(self, name: str) -> int:
        for i, t in enumerate(self._templates):
            if t.name == name:
                return i
        raise KeyError(f"Unknown template '{name}'")

    def next_index(self, index: Optional[int]) -> int:
        if index is None:
            return 0
        return (index + 1) % len(self._templates)

    def previous_index(self, index: Optional[int]) -> int:
        if index is None:
            return len(self._templates) - 1
        return (index - 1) % len(self._templates)
