from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union
import numpy as np


class MalformedGeometry(ValueError):
    """Geometry that cannot be expressed as a valid PLY document."""


ATTRIBUTE_WIDTHS = {"position": 3, "normal": 3, "uv": 2, "color": 3}


class AttributeView:
    """Read-only reader over one attribute array (or the index list)."""

    def __init__(self, array: np.ndarray) -> None:
        self._array = array

    @property
    def array(self) -> np.ndarray:
        return self._array

    @property
    def count(self) -> int:
        return int(self._array.shape[0])

    @property
    def item_size(self) -> int:
        return 1 if self._array.ndim == 1 else int(self._array.shape[1])

    def _component(self, i: int, c: int) -> float:
        if self._array.ndim == 1:
            if c != 0:
                raise IndexError("Scalar attribute has a single component.")
            return self._array[i].item()
        return self._array[i, c].item()

    def get_x(self, i: int) -> float:
        return self._component(i, 0)

    def get_y(self, i: int) -> float:
        return self._component(i, 1)

    def get_z(self, i: int) -> float:
        return self._component(i, 2)


def _as_attribute(name: str, values, dtype=np.float32) -> Optional[np.ndarray]:
    if values is None:
        return None
    arr = np.asarray(values, dtype=dtype)
    width = ATTRIBUTE_WIDTHS[name]
    if arr.size == 0:
        arr = arr.reshape(0, width)
    if arr.ndim != 2 or arr.shape[1] != width:
        raise MalformedGeometry(f"Attribute '{name}' must have shape (N, {width}), got {arr.shape}")
    return arr


def _as_indices(values, vertex_count: int) -> Optional[np.ndarray]:
    if values is None:
        return None
    raw = np.asarray(values).reshape(-1)
    if raw.size and not np.issubdtype(raw.dtype, np.integer):
        if not np.all(np.isfinite(raw)) or not np.all(raw == np.floor(raw)):
            raise MalformedGeometry("Index values must be integers.")
    idx = raw.astype(np.int64)
    if idx.size and (idx.min() < 0 or idx.max() >= vertex_count):
        raise MalformedGeometry(
            f"Index values must lie in [0, {vertex_count}); got [{idx.min()}, {idx.max()}]"
        )
    return idx


@dataclass
class BufferGeometry:
    """Per-vertex attribute buffers with an optional triangle index list.

    positions (N,3) float32; normals (N,3); uvs (N,2); colors (N,3) in [0,1];
    indices (M,) referencing positions. Without indices, consecutive vertex
    triples form the triangles.
    """
    positions: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None
    indices: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.positions = _as_attribute("position", self.positions)
        self.normals = _as_attribute("normal", self.normals)
        self.uvs = _as_attribute("uv", self.uvs)
        self.colors = _as_attribute("color", self.colors)

        # Geometry without positions is never exported, so its other buffers go unchecked.
        if self.positions is None:
            if self.indices is not None:
                self.indices = np.asarray(self.indices).reshape(-1)
            return

        n = len(self.positions)
        for name, arr in (("normal", self.normals), ("uv", self.uvs), ("color", self.colors)):
            if arr is not None and len(arr) != n:
                raise MalformedGeometry(f"Attribute '{name}' length {len(arr)} != {n}")
        if self.colors is not None and self.colors.size:
            if not np.all(np.isfinite(self.colors)) or self.colors.min() < 0.0 or self.colors.max() > 1.0:
                raise MalformedGeometry("Color channels must lie in [0, 1]")
        self.indices = _as_indices(self.indices, n)

    @property
    def vertex_count(self) -> int:
        return 0 if self.positions is None else len(self.positions)

    def get_attribute(self, name: str) -> Optional[AttributeView]:
        arr = {
            "position": self.positions,
            "normal": self.normals,
            "uv": self.uvs,
            "color": self.colors,
        }.get(name)
        return AttributeView(arr) if arr is not None else None

    def get_index(self) -> Optional[AttributeView]:
        return AttributeView(self.indices) if self.indices is not None else None

    def as_buffer(self) -> "BufferGeometry":
        return self


@dataclass
class LegacyGeometry:
    """Indexed-face geometry: shared vertices plus per-face corner data.

    ``vertex_normals`` and ``vertex_colors`` are per shared vertex (V,3);
    ``face_vertex_uvs`` is per face corner (F,3,2).
    """
    vertices: np.ndarray
    faces: np.ndarray
    vertex_normals: Optional[np.ndarray] = None
    vertex_colors: Optional[np.ndarray] = None
    face_vertex_uvs: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=np.float32).reshape(-1, 3)
        faces = np.asarray(self.faces).reshape(-1, 3)
        self.faces = _as_indices(faces, len(self.vertices)).reshape(-1, 3)
        for name in ("vertex_normals", "vertex_colors"):
            values = getattr(self, name)
            if values is None:
                continue
            arr = np.asarray(values, dtype=np.float32).reshape(-1, 3)
            if len(arr) != len(self.vertices):
                raise MalformedGeometry(f"'{name}' length {len(arr)} != {len(self.vertices)}")
            setattr(self, name, arr)
        if self.face_vertex_uvs is not None:
            uvs = np.asarray(self.face_vertex_uvs, dtype=np.float32)
            if uvs.shape != (len(self.faces), 3, 2):
                raise MalformedGeometry(
                    f"face_vertex_uvs must have shape ({len(self.faces)}, 3, 2), got {uvs.shape}"
                )
            self.face_vertex_uvs = uvs

    def as_buffer(self) -> BufferGeometry:
        """Expand to a non-indexed buffer: one vertex per face corner."""
        corners = self.faces.reshape(-1)
        normals = None
        if self.vertex_normals is not None:
            normals = self.vertex_normals[corners]
        colors = None
        if self.vertex_colors is not None:
            colors = self.vertex_colors[corners]
        uvs = None
        if self.face_vertex_uvs is not None:
            uvs = self.face_vertex_uvs.reshape(-1, 2)
        return BufferGeometry(
            positions=self.vertices[corners],
            normals=normals,
            uvs=uvs,
            colors=colors,
        )


Geometry = Union[BufferGeometry, LegacyGeometry]
