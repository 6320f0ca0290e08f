"""Configuration loading utilities for partsnap."""

from .schema import (
    ScenarioConfig,
    load_config,
)

__all__ = ["ScenarioConfig", "load_config"]
