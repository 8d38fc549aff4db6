from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


ExcludableProperty = Literal["normal", "uv", "color", "index"]
ScenePreset = Literal["demo", "plane", "ramp"]


class SceneConfig(BaseModel):
    path: Optional[Path] = None
    preset: Optional[ScenePreset] = None
    size: float = Field(default=10.0, gt=0.0)

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "SceneConfig":
        if (self.path is None) == (self.preset is None):
            raise ValueError("scene requires exactly one of 'path' or 'preset'")
        return self


class OutputConfig(BaseModel):
    path: Path
    binary: bool = False


class ExportConfig(BaseModel):
    scene: SceneConfig
    output: OutputConfig
    exclude_properties: List[ExcludableProperty] = Field(default_factory=list)

    @model_validator(mode="after")
    def _dedupe_excludes(self) -> "ExportConfig":
        self.exclude_properties = sorted(set(self.exclude_properties))
        return self


def load_config(path: str | Path) -> ExportConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = ExportConfig.model_validate(data)
    cfg.output.path = (path.parent / cfg.output.path).resolve()
    if cfg.scene.path is not None and not cfg.scene.path.is_absolute():
        cfg.scene.path = (path.parent / cfg.scene.path).resolve()
    return cfg
