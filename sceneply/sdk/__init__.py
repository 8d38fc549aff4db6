"""Programmatic entry points."""

from .run import ExportRunResult, export_from_config

__all__ = ["ExportRunResult", "export_from_config"]
