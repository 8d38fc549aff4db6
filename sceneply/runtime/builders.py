from __future__ import annotations

from typing import Iterable, Optional

from ..config import ExportConfig
from ..core.exporter import ExportOptions
from ..core.loader import load_scene
from ..core.scene import SceneNode
from ..examples.synthetic import build_scene as build_synthetic_scene


def build_scene(cfg: ExportConfig) -> SceneNode:
    scene_cfg = cfg.scene
    if scene_cfg.path is not None:
        return load_scene(scene_cfg.path)
    if scene_cfg.preset is not None:
        return build_synthetic_scene(scene_cfg.preset, size=scene_cfg.size)
    raise ValueError("Scene configuration requires a path or a preset")


def build_options(cfg: ExportConfig, exclude_override: Optional[Iterable[str]] = None) -> ExportOptions:
    exclude = cfg.exclude_properties if exclude_override is None else list(exclude_override)
    return ExportOptions.from_iterable(exclude, binary=cfg.output.binary)
