from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from ..config import ScenarioConfig, load_config
from ..core.commands import EdgeTrigger
from ..core.placement import CommitEvent, PlacementState
from ..runtime.builders import (
    build_controller,
    build_layers,
    build_library,
    build_ray,
    build_world,
)


@dataclass(frozen=True)
class TickRecord:
    """What the controller published for one scripted tick."""

    index: int
    state: PlacementState
    selected: Optional[str]
    origin: Optional[np.ndarray]
    valid: bool
    snapped: bool
    snap_target: Optional[int]
    committed: bool = False


@dataclass(frozen=True)
class SessionResult:
    """Summary of a scripted placement session."""

    ticks: List[TickRecord]
    commits: List[CommitEvent]
    placed_count: int
    config: ScenarioConfig


def run_script(config: Union[str, Path, ScenarioConfig]) -> SessionResult:
    """Play the scripted ticks of a scenario against the in-memory world.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~partsnap.config.schema.ScenarioConfig`.

    Returns
    -------
    SessionResult
        Per-tick records, the commit events in order, the final number of
        placed parts and the configuration object used for the run.

    Each scripted tick first evaluates its ray and records the result, then
    dispatches its commands in order, so a ``confirm_placement`` acts on the
    candidate computed in the same tick. The commands of a step count as
    buttons held for all of its ``repeat`` ticks and released afterwards, so
    each one fires once per step.
    """

    cfg = load_config(config) if not isinstance(config, ScenarioConfig) else config.model_copy(deep=True)

    library = build_library(cfg)
    layers = build_layers(cfg)
    world = build_world(cfg, library, layers)
    controller = build_controller(cfg, world)

    commits: List[CommitEvent] = []
    controller.on_commit(commits.append)

    ticks: List[TickRecord] = []
    for step in cfg.script:
        ray = build_ray(step.ray)
        trigger = EdgeTrigger()
        levels = {command: True for command in step.commands}
        for _ in range(step.repeat):
            candidate = controller.tick(ray)
            feedback = controller.feedback()
            index = controller.selected_index
            committed = False
            pressed = set(trigger.update(levels))
            for command in dict.fromkeys(step.commands):
                if command not in pressed:
                    continue
                committed = controller.dispatch(command) is not None or committed
            ticks.append(TickRecord(
                index=len(ticks),
                state=feedback.state,
                selected=None if index is None else library[index].name,
                origin=None if feedback.transform is None else feedback.transform.origin.copy(),
                valid=feedback.valid,
                snapped=feedback.snapped,
                snap_target=None if candidate is None else candidate.snap_target,
                committed=committed,
            ))

    return SessionResult(
        ticks=ticks,
        commits=commits,
        placed_count=len(world.placed_parts()),
        config=cfg,
    )
