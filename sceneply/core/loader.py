from __future__ import annotations
from pathlib import Path
from typing import Optional

import numpy as np
import trimesh

from .geometry import BufferGeometry
from .scene import Group, MeshNode
from .utils import get_logger

_log = get_logger()


def geometry_from_trimesh(geom: "trimesh.parent.Geometry") -> Optional[BufferGeometry]:
    """Buffer geometry for a trimesh mesh or point cloud; None for other kinds."""
    if isinstance(geom, trimesh.Trimesh):
        colors = None
        uvs = None
        visual = geom.visual
        if visual is not None and visual.kind == "vertex":
            colors = np.asarray(visual.vertex_colors[:, :3], dtype=np.float32) / 255.0
        elif visual is not None and visual.kind == "texture" and getattr(visual, "uv", None) is not None:
            uvs = np.asarray(visual.uv, dtype=np.float32)
        return BufferGeometry(
            positions=np.asarray(geom.vertices, dtype=np.float32),
            normals=np.asarray(geom.vertex_normals, dtype=np.float32) if len(geom.faces) else None,
            uvs=uvs,
            colors=colors,
            indices=np.asarray(geom.faces, dtype=np.int64).reshape(-1),
        )
    if isinstance(geom, trimesh.PointCloud):
        colors = None
        if geom.colors is not None and len(geom.colors) == len(geom.vertices):
            colors = np.asarray(geom.colors[:, :3], dtype=np.float32) / 255.0
        return BufferGeometry(
            positions=np.asarray(geom.vertices, dtype=np.float32),
            colors=colors,
        )
    return None


def load_scene(path: str | Path) -> Group:
    """Load a mesh or scene file with trimesh into a scene graph.

    Each geometry instance in the trimesh graph becomes one MeshNode whose
    matrix is the instance's world transform.
    """
    path = Path(path)
    scene = trimesh.load(str(path), force="scene")
    root = Group(name=path.stem)
    converted = {}
    for node_name in scene.graph.nodes_geometry:
        matrix, geom_name = scene.graph[node_name]
        if geom_name not in converted:
            converted[geom_name] = geometry_from_trimesh(scene.geometry[geom_name])
        geometry = converted[geom_name]
        if geometry is None:
            _log.warning("Skipping unsupported geometry '%s' (%s).", geom_name, type(scene.geometry[geom_name]).__name__)
            continue
        root.add(MeshNode(geometry, name=str(node_name), matrix=np.asarray(matrix, dtype=np.float64)))
    _log.info("Loaded %s (%d mesh nodes)", path.name, len(root.children))
    return root
