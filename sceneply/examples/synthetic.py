from __future__ import annotations

from typing import Tuple

import numpy as np

from ..core.geometry import BufferGeometry, LegacyGeometry
from ..core.scene import Group, MeshNode
from ..core.transform import compose_matrix


def _grid_plane(size: float, divisions: int, color: Tuple[int, int, int]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    lin = np.linspace(-size / 2.0, size / 2.0, divisions + 1, dtype=np.float32)
    xv, yv = np.meshgrid(lin, lin, indexing="ij")
    vertices = np.column_stack([xv.ravel(), yv.ravel(), np.zeros_like(xv.ravel())])

    faces = []
    for i in range(divisions):
        for j in range(divisions):
            idx0 = i * (divisions + 1) + j
            idx1 = idx0 + 1
            idx2 = idx0 + (divisions + 1)
            idx3 = idx2 + 1
            faces.append([idx0, idx1, idx3])
            faces.append([idx0, idx3, idx2])
    faces_arr = np.asarray(faces, dtype=np.int64)
    colors = np.tile(np.asarray(color, dtype=np.uint8), (vertices.shape[0], 1))
    return vertices.astype(np.float32), faces_arr, colors


def _box(size: Tuple[float, float, float], color: Tuple[int, int, int]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    hx, hy, hz = size[0] / 2.0, size[1] / 2.0, size[2] / 2.0
    vertices = np.array([
        [-hx, -hy, -hz],
        [hx, -hy, -hz],
        [hx, hy, -hz],
        [-hx, hy, -hz],
        [-hx, -hy, hz],
        [hx, -hy, hz],
        [hx, hy, hz],
        [-hx, hy, hz],
    ], dtype=np.float32)

    faces = np.array([
        [0, 2, 1], [0, 3, 2],  # bottom
        [4, 5, 6], [4, 6, 7],  # top
        [0, 1, 5], [0, 5, 4],  # front
        [1, 2, 6], [1, 6, 5],  # right
        [2, 3, 7], [2, 7, 6],  # back
        [3, 0, 4], [3, 4, 7],  # left
    ], dtype=np.int64)
    colors = np.tile(np.asarray(color, dtype=np.uint8), (vertices.shape[0], 1))
    return vertices, faces, colors


def _ramp(length: float, width: float, height: float, color: Tuple[int, int, int]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    lx, wy, hz = length / 2.0, width / 2.0, height
    vertices = np.array([
        [-lx, -wy, 0.0],
        [lx, -wy, 0.0],
        [lx, wy, 0.0],
        [-lx, wy, 0.0],
        [-lx, wy, hz],
        [lx, wy, hz],
    ], dtype=np.float32)
    faces = np.array([
        [0, 2, 1], [0, 3, 2],  # base (downward facing)
        [3, 5, 2], [3, 4, 5],  # back wall
        [0, 4, 3],             # left wall
        [1, 2, 5],             # right wall
        [0, 1, 5], [0, 5, 4],  # sloped deck
    ], dtype=np.int64)
    colors = np.tile(np.asarray(color, dtype=np.uint8), (vertices.shape[0], 1))
    return vertices, faces, colors


def _compute_vertex_normals(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    normals = np.zeros_like(vertices, dtype=np.float32)
    tris = vertices[faces]
    face_normals = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    lens = np.linalg.norm(face_normals, axis=1, keepdims=True)
    face_normals = np.divide(face_normals, np.clip(lens, 1e-8, None), out=np.zeros_like(face_normals), where=lens > 0)
    for idx, tri in enumerate(faces):
        normals[tri] += face_normals[idx]
    lens = np.linalg.norm(normals, axis=1, keepdims=True)
    normals = np.divide(normals, np.clip(lens, 1e-8, None), out=np.zeros_like(normals), where=lens > 0)
    return normals.astype(np.float32, copy=False)


def _buffer_mesh(part: Tuple[np.ndarray, np.ndarray, np.ndarray], name: str, **transform) -> MeshNode:
    vertices, faces, colors = part
    geometry = BufferGeometry(
        positions=vertices,
        normals=_compute_vertex_normals(vertices, faces),
        colors=colors.astype(np.float32) / 255.0,
        indices=faces.reshape(-1),
    )
    return MeshNode(geometry, name=name, matrix=compose_matrix(**transform))


def _legacy_mesh(part: Tuple[np.ndarray, np.ndarray, np.ndarray]) -> LegacyGeometry:
    vertices, faces, colors = part
    return LegacyGeometry(
        vertices=vertices,
        faces=faces,
        vertex_normals=_compute_vertex_normals(vertices, faces),
        vertex_colors=colors.astype(np.float32) / 255.0,
    )


def build_scene(preset: str = "demo", size: float = 10.0) -> Group:
    """Small scene graphs with nested transforms for demos and tests."""
    preset = preset.lower()
    root = Group(name=preset)
    if preset == "plane":
        root.add(_buffer_mesh(_grid_plane(size=size, divisions=8, color=(180, 200, 180)), "ground"))
        return root

    if preset == "ramp":
        ground = _buffer_mesh(_grid_plane(size=size, divisions=6, color=(200, 200, 200)), "ground")
        ramp = _buffer_mesh(
            _ramp(length=size * 0.8, width=size * 0.4, height=size * 0.2, color=(200, 160, 120)),
            "ramp",
            translation=(0.0, -size * 0.1, 0.0),
        )
        root.add(ground, ramp)
        return root

    if preset == "demo":
        ground = _buffer_mesh(_grid_plane(size=size, divisions=8, color=(180, 200, 180)), "ground")
        ramp = _buffer_mesh(
            _ramp(length=size * 0.9, width=size * 0.4, height=size * 0.3, color=(200, 160, 120)),
            "ramp",
            translation=(0.0, -size * 0.15, 0.0),
        )
        buildings = Group(name="buildings", matrix=compose_matrix(translation=(0.0, 0.0, 0.0), rpy_deg=(0.0, 0.0, 15.0)))
        tower = _buffer_mesh(
            _box(size=(size * 0.3, size * 0.3, size * 0.5), color=(180, 180, 240)),
            "tower",
            translation=(size * 0.15, size * 0.2, size * 0.25),
        )
        wall = _buffer_mesh(
            _box(size=(1.0, 1.0, 1.0), color=(200, 200, 220)),
            "wall",
            translation=(0.0, -size * 0.35, size * 0.25),
            scale=(size * 0.9, size * 0.05, size * 0.5),
        )
        # One legacy geometry instanced twice.
        crate = _legacy_mesh(_box(size=(size * 0.1, size * 0.1, size * 0.1), color=(240, 180, 180)))
        crates = Group(name="crates", matrix=compose_matrix(translation=(-size * 0.3, -size * 0.1, size * 0.05)))
        crates.add(
            MeshNode(crate, name="crate_a"),
            MeshNode(crate, name="crate_b", matrix=compose_matrix(translation=(0.0, size * 0.15, 0.0), rpy_deg=(0.0, 0.0, 45.0))),
        )
        buildings.add(tower, wall)
        root.add(ground, ramp, buildings, crates)
        return root

    raise ValueError(f"Unknown synthetic scene preset '{preset}'.")
