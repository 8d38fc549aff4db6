"""Configuration loading utilities for sceneply."""

from .schema import (
    ExportConfig,
    load_config,
)

__all__ = ["ExportConfig", "load_config"]
