"""partsnap: connector-snapping part placement engine.

Per-tick pipeline, each stage in its own module:
- Targeting & ProximityQuery (core.targeting)
- SnapResolver (core.snapping)
- OverlapValidator (core.validator)
- PlacementController state machine (core.placement)

``core.world.SceneWorld`` is an in-memory physics/scene-host collaborator used
by the CLI, the SDK and the tests; a game engine can supply its own by
implementing the protocols in ``core.queries``.
"""

from .core.connectors import AxisTag, Connector, compatible
from .core.errors import ConfigurationError, PartsnapError
from .core.shapes import ShapeDescriptor
from .core.templates import PartTemplate, SubPart, TemplateLibrary
from .core.transform import Transform
from .core.parts import PlacedPart, PreviewObject
from .core.queries import Layers, Ray, RayHit, PhysicsBackend, SceneHost
from .core.targeting import Targeting, ProximityQuery
from .core.snapping import SnapResolver, SnapResult
from .core.validator import OverlapValidator
from .core.commands import Command, EdgeTrigger
from .core.placement import (
    PlacementController, PlacementSettings, PlacementState,
    PlacementCandidate, CommitEvent, PreviewFeedback,
)
from .core.world import SceneWorld, EnvironmentMesh, GridIndex
