from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import numpy as np
import typer
from pydantic import ValidationError

from ..config import load_config
from ..core.connectors import AxisTag, compatible
from ..core.errors import ConfigurationError
from ..examples.synthetic import write_demo
from ..runtime.builders import build_library
from ..sdk.run import run_script

app = typer.Typer(help="partsnap placement utilities")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("partsnap").setLevel(numeric)


def _fmt_vec(v: Optional[np.ndarray]) -> str:
    if v is None:
        return "-"
    return "(" + ", ".join(f"{x:.3f}" for x in v) + ")"


def _load_or_exit(config: Path):
    try:
        return load_config(config)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"Invalid configuration {config}: {exc}", err=True)
        raise typer.Exit(code=1)


@app.command("run")
def run(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML scenario file."),
    as_json: bool = typer.Option(False, "--json", help="Print a JSON summary instead of the tick table."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Play the scripted ticks of a scenario and report what was placed."""

    _configure_logging(log_level)
    cfg = _load_or_exit(config)
    try:
        result = run_script(cfg)
    except ConfigurationError as exc:
        typer.echo(f"Placement engine refused to activate: {exc}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        summary = {
            "ticks": [
                {
                    "state": t.state.value,
                    "selected": t.selected,
                    "origin": None if t.origin is None else [float(x) for x in t.origin],
                    "valid": t.valid,
                    "snapped": t.snapped,
                    "committed": t.committed,
                }
                for t in result.ticks
            ],
            "commits": [
                {
                    "template": c.template_name,
                    "origin": [float(x) for x in c.transform.origin],
                    "snapped": c.snapped,
                    "snap_target": c.snap_target,
                }
                for c in result.commits
            ],
            "placed_count": result.placed_count,
        }
        typer.echo(json.dumps(summary, indent=2))
        return

    for t in result.ticks:
        flags = []
        if t.snapped:
            flags.append(f"snapped→{t.snap_target}")
        if t.committed:
            flags.append("committed")
        typer.echo(f"tick {t.index:3d}  {t.state.value:16s} {t.selected or '-':12s} {_fmt_vec(t.origin)}  {' '.join(flags)}")
    typer.echo(f"Committed {len(result.commits)} parts; {result.placed_count} parts in the world.")


@app.command("templates")
def templates(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML scenario file."),
) -> None:
    """List the templates of a scenario with their connectors."""

    cfg = _load_or_exit(config)
    try:
        library = build_library(cfg)
    except ConfigurationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    for i, template in enumerate(library):
        shape = template.shape.kind if template.has_valid_shape() else "MISSING"
        conns = library.connectors(i)
        tags = ", ".join(f"{c.name}[{c.axis.value if c.axis else '?'}]" for c in conns)
        typer.echo(f"{i:2d} {template.name:16s} shape={shape:7s} connectors={len(conns)} {tags}")


@app.command("compat")
def compat() -> None:
    """Print the connector axis compatibility table."""

    tags = list(AxisTag)
    typer.echo("     " + " ".join(f"{t.value:>3s}" for t in tags))
    for a in tags:
        row = " ".join(f"{'x' if compatible(a, b) else '.':>3s}" for b in tags)
        typer.echo(f"{a.value:>3s}  {row}")


@app.command("demo")
def demo(
    output: Path = typer.Argument(..., help="Output scenario path (.yaml)."),
    size: float = typer.Option(1.0, "--size", help="Edge length of the demo cube."),
    mesh: bool = typer.Option(False, "--mesh", help="Use a PLY ground mesh instead of the ground plane."),
) -> None:
    """Write a demo scenario that stacks cubes."""

    out = write_demo(output.resolve(), size=size, with_mesh=mesh)
    typer.echo(f"Wrote demo scenario to {out}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
