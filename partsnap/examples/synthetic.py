from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml


def _cube_connectors(half: float) -> List[Dict[str, Any]]:
    return [
        {"name": "+X", "position": [half, 0.0, half]},
        {"name": "-X", "position": [-half, 0.0, half]},
        {"name": "+Y", "position": [0.0, half, half]},
        {"name": "-Y", "position": [0.0, -half, half]},
        {"name": "+Z", "position": [0.0, 0.0, 2.0 * half]},
        {"name": "-Z", "position": [0.0, 0.0, 0.0]},
    ]


def _beam(length: float, thickness: float) -> Dict[str, Any]:
    hl, ht = length / 2.0, thickness / 2.0
    return {
        "name": "beam",
        "shape": {"kind": "box", "half_extents": [hl, ht, ht], "center": [0.0, 0.0, ht]},
        "connectors": [
            {"name": "+X_end", "position": [hl, 0.0, ht]},
            {"name": "-X_end", "position": [-hl, 0.0, ht]},
        ],
        # mid-span sockets live on a nested sub-part
        "children": [
            {"offset": [0.0, 0.0, 2.0 * ht], "connectors": [{"name": "+Z_mid", "position": [0.0, 0.0, 0.0]}]},
        ],
    }


def _ground_plane_ply(path: Path, size: float, z: float) -> None:
    h = size / 2.0
    vertices: List[Tuple[float, float, float]] = [(-h, -h, z), (h, -h, z), (h, h, z), (-h, h, z)]
    faces = [(0, 1, 2), (0, 2, 3)]
    with open(path, "w", encoding="utf-8") as f:
        f.write("ply\n")
        f.write("format ascii 1.0\n")
        f.write(f"element vertex {len(vertices)}\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        f.write(f"element face {len(faces)}\n")
        f.write("property list uchar int vertex_indices\n")
        f.write("end_header\n")
        for v in vertices:
            f.write(f"{v[0]} {v[1]} {v[2]}\n")
        for face in faces:
            f.write(f"3 {face[0]} {face[1]} {face[2]}\n")


def demo_scenario(size: float = 1.0) -> Dict[str, Any]:
    """A cube on the ground and a script that stacks a second cube on top of it.

    Every part origin sits at the bottom centre of its shape, so a free
    placement rests on the surface it was aimed at. Cubes have edge ``size``
    and a connector at the centre of every face. The script aims at the top
    face of the first cube (snap onto its ``+Z``), then at open ground, then
    at nothing.
    """
    half = size / 2.0
    return {
        "placement": {"activation_distance": 0.5 * size, "proximity_radius": 2.0 * size},
        "environment": {"ground_height": 0.0},
        "templates": [
            {"name": "cube", "shape": {"kind": "box", "half_extents": [half, half, half], "center": [0.0, 0.0, half]},
             "connectors": _cube_connectors(half)},
            _beam(4.0 * size, 0.5 * size),
            {"name": "ball", "shape": {"kind": "sphere", "radius": half, "center": [0.0, 0.0, half]},
             "connectors": [{"name": "-Z", "position": [0.0, 0.0, 0.0]}]},
        ],
        "parts": [{"template": "cube", "xyz": [0.0, 0.0, 0.0]}],
        "initial_template": "cube",
        "script": [
            {"ray": {"origin": [0.0, 0.1, 5.0 * size], "direction": [0.0, 0.0, -1.0]},
             "commands": ["confirm_placement"]},
            {"ray": {"origin": [4.0 * size, 4.0 * size, 5.0 * size], "direction": [0.0, 0.0, -1.0]},
             "commands": ["confirm_placement"]},
            {"ray": {"origin": [0.0, 0.0, 5.0 * size], "direction": [0.0, 0.0, 1.0]},
             "commands": ["confirm_placement", "select_next"]},
        ],
    }


def write_demo(path: Path, size: float = 1.0, with_mesh: bool = False) -> Path:
    """Write the demo scenario YAML (and optionally a ground mesh beside it)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    scenario = demo_scenario(size)
    if with_mesh:
        mesh_path = path.with_suffix(".ground.ply")
        _ground_plane_ply(mesh_path, size=40.0 * size, z=0.0)
        scenario["environment"] = {"ground_height": None, "meshes": [mesh_path.name]}
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(scenario, f, sort_keys=False)
    return path
