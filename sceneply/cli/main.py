from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from ..config import load_config
from ..core.exporter import (
    ExportOptions,
    PlyExporter,
    aggregate_schema,
    format_header,
    write_ply,
)
from ..core.geometry import MalformedGeometry
from ..core.loader import load_scene
from ..core.scene import SceneNode
from ..examples.synthetic import build_scene
from ..runtime.builders import build_options, build_scene as build_scene_from_config

app = typer.Typer(help="Scene graph to PLY export utilities")
scene_app = typer.Typer(help="Synthetic scene helpers")
app.add_typer(scene_app, name="scene")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("sceneply").setLevel(numeric)


def _options(exclude: Optional[List[str]], binary: bool = False) -> ExportOptions:
    try:
        return ExportOptions.from_iterable(exclude, binary=binary)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--exclude") from exc


def _check_output(output: Path) -> Path:
    if output.suffix.lower() != ".ply":
        raise typer.BadParameter("Output must end with .ply", param_hint="--output")
    return output.resolve()


def _export_to(scene: SceneNode, options: ExportOptions, output: Path) -> None:
    try:
        result = PlyExporter().export(scene, options)
    except (MalformedGeometry, NotImplementedError) as exc:
        typer.echo(f"Export failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    write_ply(output, result.document)
    schema = result.schema
    faces = schema.face_count if schema.include_indices else 0
    typer.echo(f"Wrote {schema.vertex_count} vertices and {faces} faces from {schema.mesh_count} meshes → {output}")


@app.command("export")
def export(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML configuration file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override output path (.ply)."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Override excluded properties (normal, uv, color, index)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Export a scene described by a YAML config."""

    _configure_logging(log_level)
    cfg = load_config(config)
    if output is not None:
        cfg.output.path = _check_output(output)
    try:
        options = build_options(cfg, exclude_override=exclude or None)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--exclude") from exc
    scene = build_scene_from_config(cfg)
    _export_to(scene, options, cfg.output.path)


@app.command("convert")
def convert(
    input: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, help="Mesh or scene file readable by trimesh."),
    output: Path = typer.Option(..., "--output", "-o", help="Output PLY path."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Properties to leave out (normal, uv, color, index)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Merge every mesh in a file into one ASCII PLY."""

    _configure_logging(log_level)
    options = _options(exclude)
    out = _check_output(output)
    _export_to(load_scene(input.resolve()), options, out)


@app.command("inspect")
def inspect(
    input: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, help="Mesh or scene file readable by trimesh."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Properties to leave out (normal, uv, color, index)."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Print the PLY header an export would produce."""

    _configure_logging(log_level)
    options = _options(exclude)
    try:
        schema = aggregate_schema(load_scene(input.resolve()), options)
    except MalformedGeometry as exc:
        typer.echo(f"Export failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(format_header(schema), nl=False)


@scene_app.command("generate")
def scene_generate(
    output: Path = typer.Argument(..., help="Output PLY path."),
    preset: str = typer.Option("demo", "--preset", help="Synthetic scene preset (demo, plane, ramp)."),
    size: float = typer.Option(10.0, "--size", help="Scene extent scaling factor."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Properties to leave out (normal, uv, color, index)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Export a synthetic scene graph useful for demos."""

    _configure_logging(log_level)
    options = _options(exclude)
    out = _check_output(output)
    try:
        scene = build_scene(preset=preset, size=size)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--preset") from exc
    _export_to(scene, options, out)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
