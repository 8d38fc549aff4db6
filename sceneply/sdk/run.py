from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from ..config import ExportConfig, load_config
from ..core.exporter import PlyExporter, write_ply
from ..runtime.builders import build_options, build_scene


@dataclass(frozen=True)
class ExportRunResult:
    """Summary of an export driven by a configuration file."""

    stats: Dict[str, int]
    output_path: Path
    config: ExportConfig


def export_from_config(
    config: Union[str, Path, ExportConfig],
    *,
    output: Optional[Path] = None,
    exclude_properties: Optional[Sequence[str]] = None,
) -> ExportRunResult:
    """Export the scene described by a configuration file or object to PLY.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~sceneply.config.schema.ExportConfig`.
    output:
        Optional override for the PLY file produced by the run. Must end in ``.ply``.
    exclude_properties:
        Optional names drawn from ``normal``, ``uv``, ``color`` and ``index``.
        When omitted the configuration's list is used as-is.

    Returns
    -------
    ExportRunResult
        Includes basic statistics (meshes, vertices, faces), the resolved
        output path, and the resolved configuration object used for the run.

    Raises
    ------
    MalformedGeometry
        When triangle indices are requested but some mesh cannot be
        expressed as triangles. Nothing is written in that case.
    """

    cfg = load_config(config) if not isinstance(config, ExportConfig) else config.model_copy(deep=True)

    if exclude_properties is not None:
        cfg.exclude_properties = sorted(set(exclude_properties))

    if output is not None:
        out_path = Path(output).resolve()
        if out_path.suffix.lower() != ".ply":
            raise ValueError(f"Unsupported output extension '{out_path.suffix.lower()}'")
        cfg.output.path = out_path
    else:
        cfg.output.path = Path(cfg.output.path).resolve()

    scene = build_scene(cfg)
    options = build_options(cfg)
    result = PlyExporter().export(scene, options)
    write_ply(cfg.output.path, result.document)

    schema = result.schema
    stats = {
        "meshes": schema.mesh_count,
        "vertices": schema.vertex_count,
        "faces": schema.face_count if schema.include_indices else 0,
    }
    return ExportRunResult(stats=stats, output_path=Path(cfg.output.path), config=cfg)
