from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Optional, Union, List

import yaml
from pydantic import BaseModel, Field, model_validator

from ..core.commands import Command


class BoxShapeConfig(BaseModel):
    kind: Literal["box"]
    half_extents: tuple[float, float, float]
    center: tuple[float, float, float] = (0.0, 0.0, 0.0)


class SphereShapeConfig(BaseModel):
    kind: Literal["sphere"]
    radius: float
    center: tuple[float, float, float] = (0.0, 0.0, 0.0)


ShapeConfig = Annotated[
    Union[BoxShapeConfig, SphereShapeConfig],
    Field(discriminator="kind"),
]


class ConnectorConfig(BaseModel):
    name: str
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    axis: Optional[Literal["+X", "-X", "+Y", "-Y", "+Z", "-Z"]] = None


class SubPartConfig(BaseModel):
    offset: tuple[float, float, float] = (0.0, 0.0, 0.0)
    connectors: List[ConnectorConfig] = Field(default_factory=list)
    children: List["SubPartConfig"] = Field(default_factory=list)


class TemplateConfig(BaseModel):
    name: str
    shape: Optional[ShapeConfig] = None
    connectors: List[ConnectorConfig] = Field(default_factory=list)
    children: List[SubPartConfig] = Field(default_factory=list)


class PlacementConfigModel(BaseModel):
    activation_distance: float = Field(0.5, gt=0)
    proximity_radius: float = Field(2.0, gt=0)
    max_ray_distance: float = Field(100.0, gt=0)
    snap_offset: float = 0.005
    surface_offset: float = 0.01
    contact_tolerance: float = Field(1e-4, ge=0)
    grid_cell_size: float = Field(2.0, gt=0)

    @model_validator(mode="after")
    def _check_radii(self) -> "PlacementConfigModel":
        if self.proximity_radius < self.activation_distance:
            raise ValueError("proximity_radius must be >= activation_distance")
        return self


class LayersConfig(BaseModel):
    environment: int = 1
    placed_parts: int = 2
    preview: int = 4


class EnvironmentConfig(BaseModel):
    ground_height: Optional[float] = 0.0
    meshes: List[Path] = Field(default_factory=list)


class PlacedPartConfig(BaseModel):
    template: str
    xyz: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rpy_deg: tuple[float, float, float] = (0.0, 0.0, 0.0)


class RayConfig(BaseModel):
    origin: tuple[float, float, float]
    direction: tuple[float, float, float]

    @model_validator(mode="after")
    def _nonzero_direction(self) -> "RayConfig":
        if all(c == 0.0 for c in self.direction):
            raise ValueError("ray direction must be non-zero")
        return self


class TickConfig(BaseModel):
    ray: Optional[RayConfig] = None
    commands: List[Command] = Field(default_factory=list)
    repeat: int = Field(1, ge=1)


class ScenarioConfig(BaseModel):
    placement: PlacementConfigModel = PlacementConfigModel()
    layers: LayersConfig = LayersConfig()
    environment: EnvironmentConfig = EnvironmentConfig()
    templates: List[TemplateConfig]
    parts: List[PlacedPartConfig] = Field(default_factory=list)
    initial_template: Optional[str] = None
    script: List[TickConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self) -> "ScenarioConfig":
        names = [t.name for t in self.templates]
        if len(set(names)) != len(names):
            raise ValueError("Template names must be unique")
        for part in self.parts:
            if part.template not in names:
                raise ValueError(f"Placed part references unknown template '{part.template}'")
        if self.initial_template is not None and self.initial_template not in names:
            raise ValueError(f"initial_template '{self.initial_template}' is not a known template")
        return self


def load_config(path: str | Path) -> ScenarioConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = ScenarioConfig.model_validate(data)
    cfg.environment.meshes = [
        m if m.is_absolute() else (path.parent / m).resolve()
        for m in cfg.environment.meshes
    ]
    return cfg
