from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional
import numpy as np

from .commands import Command
from .errors import ConfigurationError
from .parts import PreviewObject
from .queries import Layers, PhysicsBackend, Ray, RayHit, SceneHost
from .snapping import SnapResolver, SnapResult
from .targeting import ProximityQuery, Targeting
from .templates import TemplateLibrary
from .transform import Transform
from .utils import get_logger
from .validator import OverlapValidator

_log = get_logger()


class PlacementState(str, Enum):
    NO_SELECTION = "no_selection"
    PREVIEW_IDLE = "preview_idle"
    PREVIEW_VALID = "preview_valid"
    PREVIEW_INVALID = "preview_invalid"


@dataclass
class PlacementSettings:
    activation_distance: float = 0.5
    proximity_radius: float = 2.0
    max_ray_distance: float = 100.0
    snap_offset: float = 0.005        # along the hit normal, snapped placements
    surface_offset: float = 0.01      # along the hit normal, free placements

    def __post_init__(self) -> None:
        if self.activation_distance <= 0:
            raise ConfigurationError("activation_distance must be positive")
        if self.proximity_radius < self.activation_distance:
            raise ConfigurationError("proximity_radius must be at least activation_distance")
        if self.max_ray_distance <= 0:
            raise ConfigurationError("max_ray_distance must be positive")


@dataclass(frozen=True)
class PlacementCandidate:
    transform: Transform
    valid: bool
    snapped: bool
    snap_target: Optional[int]
    hit: RayHit


@dataclass(frozen=True)
class CommitEvent:
    template_index: int
    template_name: str
    transform: Transform
    ref: int
    snapped: bool
    snap_target: Optional[int]


@dataclass(frozen=True)
class PreviewFeedback:
    state: PlacementState
    transform: Optional[Transform]
    valid: bool
    snapped: bool


def validate_layers(layers: Layers) -> None:
    masks = {"environment": layers.environment, "placed_parts": layers.placed_parts, "preview": layers.preview}
    for name, mask in masks.items():
        if mask <= 0 or mask & (mask - 1):
            raise ConfigurationError(f"Layer '{name}' must be a single non-zero bit, got {mask}")
    if len(set(masks.values())) != len(masks):
        raise ConfigurationError(f"Layer masks must be distinct, got {masks}")


class PlacementController:
    """Tick-driven placement state machine.

    Each :meth:`tick` runs targeting, proximity gathering, snap resolution and
    overlap validation in that order and publishes the resulting
    :class:`PlacementCandidate`. Commands change the selection or commit the
    current candidate.
    """

    def __init__(
        self,
        library: TemplateLibrary,
        physics: Optional[PhysicsBackend],
        host: Optional[SceneHost],
        settings: Optional[PlacementSettings] = None,
        layers: Optional[Layers] = None,
    ) -> None:
        if library is None or len(library) == 0:
            raise ConfigurationError("No part templates configured; placement cannot activate.")
        if physics is None:
            raise ConfigurationError("No targeting source (physics backend) configured.")
        if host is None:
            raise ConfigurationError("No scene host configured.")
        self.layers = layers or Layers()
        validate_layers(self.layers)
        self.settings = settings or PlacementSettings()

        self.library = library
        self.physics = physics
        self.host = host
        self.targeting = Targeting(physics, self.layers.targeting_mask, self.settings.max_ray_distance)
        self.proximity = ProximityQuery(physics, self.layers.placed_parts, self.settings.proximity_radius)
        self.resolver = SnapResolver(self.settings.activation_distance)
        self.validator = OverlapValidator(physics, self.layers.placed_parts)

        self.state = PlacementState.NO_SELECTION
        self.preview: Optional[PreviewObject] = None
        self.candidate: Optional[PlacementCandidate] = None
        self._listeners: List[Callable[[CommitEvent], None]] = []

    # -- selection --
    @property
    def selected_index(self) -> Optional[int]:
        return None if self.preview is None else self.preview.template_index

    def select(self, index: int) -> None:
        if not 0 <= index < len(self.library):
            raise IndexError(f"Template index {index} out of range (0..{len(self.library) - 1})")
        if self.preview is not None and self.preview.template_index == index:
            return
        self._replace_preview(index)
        self._set_state(PlacementState.PREVIEW_IDLE)

    def select_next(self) -> None:
        self.select(self.library.next_index(self.selected_index))

    def select_previous(self) -> None:
        self.select(self.library.previous_index(self.selected_index))

    def deselect(self) -> None:
        self._discard_preview()
        self._set_state(PlacementState.NO_SELECTION)

    def dispatch(self, command: Command) -> Optional[CommitEvent]:
        if command is Command.SELECT_NEXT:
            self.select_next()
        elif command is Command.SELECT_PREVIOUS:
            self.select_previous()
        elif command is Command.CONFIRM_PLACEMENT:
            return self.confirm()
        else:
            raise ValueError(f"Unsupported command: {command}")
        return None

    def on_commit(self, callback: Callable[[CommitEvent], None]) -> None:
        self._listeners.append(callback)

    # -- per tick --
    def tick(self, ray: Optional[Ray]) -> Optional[PlacementCandidate]:
        self.candidate = None
        preview = self.preview
        if preview is None:
            return None

        hit = self.targeting.resolve(ray, exclude=(preview.ref,)) if ray is not None else None
        if hit is None:
            self.host.set_visible(preview.ref, False)
            self._set_state(PlacementState.PREVIEW_IDLE)
            return None

        normal = hit.normal
        if hit.hit_ref is not None and self.physics.transform_of(hit.hit_ref) is None:
            _log.warning("Hit object %s has no retrievable transform; placement rejected this tick.", hit.hit_ref)
            transform = Transform.identity(hit.position + normal * self.settings.surface_offset)
            return self._publish(preview, hit, transform, valid=False, snap=None)

        neighbours = self.proximity.candidates(hit.position, exclude=(preview.ref,))
        snap = self.resolver.resolve(hit.position, preview.connectors, neighbours)
        if snap is not None:
            transform = snap.transform.translated(normal * self.settings.snap_offset)
        else:
            transform = Transform.identity(hit.position + normal * self.settings.surface_offset)

        valid = self.validator.is_valid(
            preview.template.shape, transform, preview.ref,
            snap_target=snap.target if snap is not None else None,
        )
        return self._publish(preview, hit, transform, valid=valid, snap=snap)

    def confirm(self) -> Optional[CommitEvent]:
        if self.state is not PlacementState.PREVIEW_VALID or self.candidate is None or self.preview is None:
            return None
        candidate = self.candidate
        index = self.preview.template_index
        ref = self.host.instantiate(index)
        self.host.set_transform(ref, candidate.transform)
        self.host.attach_to_world(ref)
        event = CommitEvent(
            template_index=index,
            template_name=self.library[index].name,
            transform=candidate.transform,
            ref=ref,
            snapped=candidate.snapped,
            snap_target=candidate.snap_target,
        )
        _log.info("Placed '%s' at %s%s.", event.template_name, np.round(candidate.transform.origin, 4).tolist(),
                  f" snapped to {candidate.snap_target}" if candidate.snapped else "")

        self._replace_preview(index)
        self._set_state(PlacementState.PREVIEW_IDLE)
        for callback in list(self._listeners):
            callback(event)
        return event

    def feedback(self) -> PreviewFeedback:
        c = self.candidate
        return PreviewFeedback(
            state=self.state,
            transform=None if c is None else c.transform,
            valid=c is not None and c.valid,
            snapped=c is not None and c.snapped,
        )

    # -- internals --
    def _publish(self, preview: PreviewObject, hit: RayHit, transform: Transform,
                 valid: bool, snap: Optional[SnapResult]) -> PlacementCandidate:
        self.host.set_transform(preview.ref, transform)
        self.host.set_visible(preview.ref, True)
        self.candidate = PlacementCandidate(
            transform=transform,
            valid=valid,
            snapped=snap is not None,
            snap_target=None if snap is None else snap.target,
            hit=hit,
        )
        self._set_state(PlacementState.PREVIEW_VALID if valid else PlacementState.PREVIEW_INVALID)
        return self.candidate

    def _replace_preview(self, index: int) -> None:
        self._discard_preview()
        ref = self.host.instantiate(index)
        self.host.set_visible(ref, False)
        self.preview = PreviewObject(ref, index, self.library[index], self.library.connectors(index))

    def _discard_preview(self) -> None:
        if self.preview is not None:
            self.host.destroy(self.preview.ref)
        self.preview = None
        self.candidate = None

    def _set_state(self, state: PlacementState) -> None:
        if state is not self.state:
            _log.debug("Placement state %s -> %s", self.state.value, state.value)
            self.state = state
