from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from partsnap.config import ScenarioConfig, load_config
from partsnap.core.placement import PlacementState
from partsnap.examples.synthetic import demo_scenario, write_demo
from partsnap.sdk import run_script


@pytest.mark.parametrize("with_mesh", [False, True])
def test_run_script_stacks_cubes(tmp_path: Path, with_mesh: bool) -> None:
    cfg_path = write_demo(tmp_path / "demo.yaml", with_mesh=with_mesh)

    result = run_script(cfg_path)

    assert [t.state for t in result.ticks] == [
        PlacementState.PREVIEW_VALID,
        PlacementState.PREVIEW_VALID,
        PlacementState.PREVIEW_IDLE,
    ]
    assert [t.committed for t in result.ticks] == [True, True, False]
    assert len(result.commits) == 2
    first, second = result.commits
    assert first.snapped and first.snap_target == 0
    assert np.allclose(first.transform.origin, [0.0, 0.0, 1.005])
    assert not second.snapped
    # free placements rest on the ground instead of sinking into it
    assert np.allclose(second.transform.origin, [4.0, 4.0, 0.01])
    assert result.placed_count == 3


def test_repeated_step_presses_confirm_once(tmp_path: Path) -> None:
    cfg_path = write_demo(tmp_path / "demo.yaml")
    cfg = load_config(cfg_path)
    cfg.script = cfg.script[:1]
    cfg.script[0].repeat = 3

    result = run_script(cfg)

    # the held button commits on the first tick only; later ticks snap onto the new top cube
    assert [t.committed for t in result.ticks] == [True, False, False]
    assert all(t.state is PlacementState.PREVIEW_VALID for t in result.ticks)
    assert np.allclose(result.ticks[1].origin, [0.0, 0.0, 2.01])
    assert [c.transform.origin[2] for c in result.commits] == pytest.approx([1.005])
    assert result.placed_count == 2


def test_repeated_step_selects_next_once() -> None:
    box = {"kind": "box", "half_extents": [0.5, 0.5, 0.5]}
    cfg = ScenarioConfig.model_validate({
        "templates": [{"name": name, "shape": box} for name in "abcd"],
        "initial_template": "a",
        "script": [
            {"ray": None, "commands": ["select_next"], "repeat": 3},
            {"ray": None},
            {"ray": None, "commands": ["select_next", "select_next"]},
            {"ray": None},
        ],
    })

    result = run_script(cfg)

    assert [t.selected for t in result.ticks] == ["a", "b", "b", "b", "b", "c"]
    assert all(t.state is PlacementState.PREVIEW_IDLE for t in result.ticks)


def test_demo_scenario_is_plain_data() -> None:
    data = demo_scenario(size=2.0)
    assert data["templates"][0]["shape"]["half_extents"] == [1.0, 1.0, 1.0]
    assert data["templates"][0]["shape"]["center"] == [0.0, 0.0, 1.0]
    assert data["initial_template"] == "cube"
