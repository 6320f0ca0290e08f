from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from ..config import ScenarioConfig
from ..config.schema import ConnectorConfig, RayConfig, ShapeConfig, SubPartConfig, TemplateConfig
from ..core.connectors import AxisTag, Connector
from ..core.errors import ConfigurationError
from ..core.placement import PlacementController, PlacementSettings, validate_layers
from ..core.queries import Layers, Ray
from ..core.shapes import ShapeDescriptor
from ..core.templates import PartTemplate, SubPart, TemplateLibrary
from ..core.transform import Transform
from ..core.utils import get_logger
from ..core.world import EnvironmentMesh, SceneWorld

_log = get_logger()


def build_shape(shape_cfg: Optional[ShapeConfig]) -> Optional[ShapeDescriptor]:
    if shape_cfg is None:
        return None
    if shape_cfg.kind == "box":
        return ShapeDescriptor.box(shape_cfg.half_extents, shape_cfg.center)
    if shape_cfg.kind == "sphere":
        return ShapeDescriptor.sphere(shape_cfg.radius, shape_cfg.center)
    raise ValueError(f"Unsupported shape kind: {shape_cfg.kind}")


def build_connectors(conn_cfgs: Sequence[ConnectorConfig]) -> tuple[Connector, ...]:
    return tuple(
        Connector.named(c.name, c.position, AxisTag(c.axis) if c.axis is not None else None)
        for c in conn_cfgs
    )


def build_subpart(cfg: SubPartConfig) -> SubPart:
    return SubPart(
        offset=np.asarray(cfg.offset, dtype=np.float64),
        connectors=build_connectors(cfg.connectors),
        children=tuple(build_subpart(c) for c in cfg.children),
    )


def build_template(cfg: TemplateConfig) -> PartTemplate:
    template = PartTemplate(
        name=cfg.name,
        shape=build_shape(cfg.shape),
        connectors=build_connectors(cfg.connectors),
        children=tuple(build_subpart(c) for c in cfg.children),
    )
    if not template.has_valid_shape():
        _log.warning("Template '%s' has no usable collision shape; it can never be placed.", cfg.name)
    return template


def build_library(cfg: ScenarioConfig) -> TemplateLibrary:
    if not cfg.templates:
        raise ConfigurationError("Scenario defines no part templates.")
    return TemplateLibrary([build_template(t) for t in cfg.templates])


def build_layers(cfg: ScenarioConfig) -> Layers:
    layers = Layers(
        environment=cfg.layers.environment,
        placed_parts=cfg.layers.placed_parts,
        preview=cfg.layers.preview,
    )
    validate_layers(layers)
    return layers


def build_settings(cfg: ScenarioConfig) -> PlacementSettings:
    p = cfg.placement
    return PlacementSettings(
        activation_distance=p.activation_distance,
        proximity_radius=p.proximity_radius,
        max_ray_distance=p.max_ray_distance,
        snap_offset=p.snap_offset,
        surface_offset=p.surface_offset,
    )


def build_world(cfg: ScenarioConfig, library: TemplateLibrary, layers: Layers) -> SceneWorld:
    meshes: List[EnvironmentMesh] = []
    for path in cfg.environment.meshes:
        meshes.append(EnvironmentMesh.from_ascii_ply(path))
        _log.debug("Loaded environment mesh %s (%d triangles)", path, len(meshes[-1].faces))
    world = SceneWorld(
        library,
        layers=layers,
        ground_height=cfg.environment.ground_height,
        meshes=meshes,
        cell_size=cfg.placement.grid_cell_size,
        contact_tolerance=cfg.placement.contact_tolerance,
    )
    for part in cfg.parts:
        world.place(library.index_of(part.template), Transform.from_xyz_rpy(part.xyz, part.rpy_deg))
    return world


def build_controller(cfg: ScenarioConfig, world: SceneWorld) -> PlacementController:
    controller = PlacementController(
        world.library, world, world,
        settings=build_settings(cfg),
        layers=world.layers,
    )
    if cfg.initial_template is not None:
        controller.select(world.library.index_of(cfg.initial_template))
    return controller


def build_ray(ray_cfg: Optional[RayConfig]) -> Optional[Ray]:
    if ray_cfg is None:
        return None
    return Ray(origin=np.asarray(ray_cfg.origin, dtype=np.float64),
               direction=np.asarray(ray_cfg.direction, dtype=np.float64))
