"""sceneply – scene graph → merged PLY exporter.

This package contains:
- SceneNode / Group / MeshNode tree (core.scene)
- BufferGeometry & LegacyGeometry attribute containers (core.geometry)
- Point / normal transform helpers (core.transform)
- Two-pass PLY exporter: schema aggregation, header, body (core.exporter)
- trimesh-backed scene loading (core.loader)

The exporter is a pure function of (scene graph, options); writing the
document to disk is left to callers (see write_ply, the CLI and the SDK).
"""

from .core.scene import SceneNode, Group, MeshNode
from .core.geometry import AttributeView, BufferGeometry, LegacyGeometry, MalformedGeometry
from .core.transform import (
    compose_matrix, apply_point_transform, derive_normal_matrix, apply_direction_transform
)
from .core.exporter import (
    ExportOptions, AggregatedSchema, ExportResult, PlyExporter,
    aggregate_schema, index_byte_width, format_header, export_ply, write_ply
)
from .core.loader import load_scene
