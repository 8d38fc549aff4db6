from __future__ import annotations
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import io
import pathlib

import numpy as np

from .geometry import BufferGeometry, Geometry, MalformedGeometry
from .scene import MeshNode, SceneNode
from .transform import apply_direction_transform, apply_point_transform, derive_normal_matrix
from .utils import format_number, get_logger

_log = get_logger()

EXCLUDABLE_PROPERTIES: FrozenSet[str] = frozenset({"normal", "uv", "color", "index"})


@dataclass(frozen=True)
class ExportOptions:
    binary: bool = False
    exclude_properties: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        excluded = frozenset(self.exclude_properties)
        unknown = excluded - EXCLUDABLE_PROPERTIES
        if unknown:
            raise ValueError(
                f"Unknown excluded properties {sorted(unknown)}; "
                f"expected a subset of {sorted(EXCLUDABLE_PROPERTIES)}"
            )
        object.__setattr__(self, "exclude_properties", excluded)

    @classmethod
    def from_iterable(cls, exclude: Optional[Iterable[str]] = None, binary: bool = False) -> "ExportOptions":
        return cls(binary=binary, exclude_properties=frozenset(exclude or ()))


@dataclass(frozen=True)
class AggregatedSchema:
    """Counts and attribute flags shared by the header and the body."""
    vertex_count: int
    face_count: int
    include_normals: bool
    include_colors: bool
    include_uvs: bool
    include_indices: bool
    index_byte_width: int
    binary: bool = False
    mesh_count: int = 0


def index_byte_width(vertex_count: int) -> int:
    if vertex_count <= 256:  # 2^8
        return 1
    if vertex_count <= 65536:  # 2^16
        return 2
    return 4


class GeometryCache:
    """Buffer form of each geometry, keyed by object identity.

    One instance per export call; the key objects are retained so their ids
    stay unique for the lifetime of the cache.
    """
    def __init__(self) -> None:
        self._entries: Dict[int, Tuple[Geometry, BufferGeometry]] = {}

    def resolve(self, geometry: Geometry) -> BufferGeometry:
        if isinstance(geometry, BufferGeometry):
            return geometry
        entry = self._entries.get(id(geometry))
        if entry is None:
            entry = (geometry, geometry.as_buffer())
            self._entries[id(geometry)] = entry
        return entry[1]

    def __len__(self) -> int:
        return len(self._entries)


def _mesh_geometry(node: SceneNode, cache: GeometryCache) -> Optional[BufferGeometry]:
    """Buffer geometry for mesh nodes that carry positions; None otherwise."""
    if not isinstance(node, MeshNode):
        return None
    geometry = cache.resolve(node.geometry)
    if geometry.positions is None:
        return None
    return geometry


class SchemaAggregator:
    """First pass: totals and attribute availability across all meshes."""

    def __init__(self, options: ExportOptions, cache: GeometryCache) -> None:
        self.options = options
        self.cache = cache
        self.vertex_count = 0
        self.face_count = Fraction(0)
        self.mesh_count = 0
        self.has_normals = False
        self.has_uvs = False
        self.has_colors = False
        self.ragged_meshes: List[str] = []

    def visit(self, node: SceneNode) -> None:
        geometry = _mesh_geometry(node, self.cache)
        if geometry is None:
            return
        n = geometry.vertex_count
        corners = len(geometry.indices) if geometry.indices is not None else n
        self.vertex_count += n
        self.face_count += Fraction(corners, 3)
        if corners % 3:
            self.ragged_meshes.append(node.name or f"mesh #{self.mesh_count}")
        self.mesh_count += 1

        self.has_normals = self.has_normals or geometry.normals is not None
        self.has_uvs = self.has_uvs or geometry.uvs is not None
        self.has_colors = self.has_colors or geometry.colors is not None

    def finish(self) -> AggregatedSchema:
        excluded = self.options.exclude_properties
        include_indices = "index" not in excluded
        if include_indices and (self.face_count.denominator != 1 or self.ragged_meshes):
            # Point-cloud style meshes have no index array and may not have a
            # vertex count divisible by 3.
            raise MalformedGeometry(
                "Cannot write triangle indices: the number of indices is not divisible by 3 "
                f"for {', '.join(self.ragged_meshes)}. Exclude 'index' to export a point cloud."
            )
        schema = AggregatedSchema(
            vertex_count=self.vertex_count,
            face_count=int(self.face_count),
            include_normals=self.has_normals and "normal" not in excluded,
            include_colors=self.has_colors and "color" not in excluded,
            include_uvs=self.has_uvs and "uv" not in excluded,
            include_indices=include_indices,
            index_byte_width=index_byte_width(self.vertex_count),
            binary=self.options.binary,
            mesh_count=self.mesh_count,
        )
        _log.debug(
            "Aggregated %d meshes: %d vertices, %d faces (normals=%s, uvs=%s, colors=%s)",
            schema.mesh_count, schema.vertex_count, schema.face_count,
            schema.include_normals, schema.include_uvs, schema.include_colors,
        )
        return schema


def aggregate_schema(root: SceneNode, options: ExportOptions, cache: Optional[GeometryCache] = None) -> AggregatedSchema:
    aggregator = SchemaAggregator(options, cache if cache is not None else GeometryCache())
    root.traverse(aggregator.visit)
    return aggregator.finish()


def format_header(schema: AggregatedSchema) -> str:
    lines = [
        "ply",
        f"format {'binary_big_endian' if schema.binary else 'ascii'} 1.0",
        f"element vertex {schema.vertex_count}",
        "property float x",
        "property float y",
        "property float z",
    ]
    if schema.include_normals:
        lines += ["property float nx", "property float ny", "property float nz"]
    if schema.include_uvs:
        lines += ["property float s", "property float t"]
    if schema.include_colors:
        lines += ["property uchar red", "property uchar green", "property uchar blue"]
    if schema.include_indices:
        lines += [
            f"element face {schema.face_count}",
            f"property list uchar uint{schema.index_byte_width * 8} vertex_index",
        ]
    lines.append("end_header")
    return "\n".join(lines) + "\n"


class TextSink:
    """Append-only text buffer finalised once."""

    def __init__(self) -> None:
        self._buf = io.StringIO()
        self._value: Optional[str] = None

    def write(self, text: str) -> None:
        if self._value is not None:
            raise RuntimeError("TextSink already finalised.")
        self._buf.write(text)

    def write_line(self, line: str) -> None:
        self.write(line)
        self._buf.write("\n")

    def finalize(self) -> str:
        if self._value is None:
            self._value = self._buf.getvalue()
            self._buf.close()
        return self._value


class BodyEmitter:
    """Second pass: world-space vertex records and offset face records."""

    def __init__(self, schema: AggregatedSchema, cache: GeometryCache) -> None:
        self.schema = schema
        self.cache = cache
        self.vertices = TextSink()
        self.faces = TextSink()
        self.written_vertices = 0

    def visit(self, node: SceneNode) -> None:
        geometry = _mesh_geometry(node, self.cache)
        if geometry is None:
            return
        self._emit_vertices(node, geometry)
        if self.schema.include_indices:
            self._emit_faces(geometry)
        self.written_vertices += geometry.vertex_count

    def _emit_vertices(self, node: SceneNode, geometry: BufferGeometry) -> None:
        n = geometry.vertex_count
        if n == 0:
            return
        world = node.world_matrix
        columns = [apply_point_transform(geometry.positions, world)]
        if self.schema.include_normals:
            if geometry.normals is not None:
                columns.append(apply_direction_transform(geometry.normals, derive_normal_matrix(world)))
            else:
                columns.append(np.zeros((n, 3), dtype=np.float64))
        if self.schema.include_uvs:
            if geometry.uvs is not None:
                columns.append(geometry.uvs.astype(np.float64))
            else:
                columns.append(np.zeros((n, 2), dtype=np.float64))
        floats = np.hstack(columns)

        colors: Optional[np.ndarray] = None
        if self.schema.include_colors:
            if geometry.colors is not None:
                colors = np.floor(geometry.colors.astype(np.float64) * 255.0).astype(np.int64)
            else:
                colors = np.full((n, 3), 255, dtype=np.int64)

        for i in range(n):
            fields = [format_number(v) for v in floats[i]]
            if colors is not None:
                fields.extend(str(int(c)) for c in colors[i])
            self.vertices.write_line(" ".join(fields))

    def _emit_faces(self, geometry: BufferGeometry) -> None:
        offset = self.written_vertices
        if geometry.indices is not None:
            tris = geometry.indices.reshape(-1, 3) + offset
        else:
            tris = np.arange(geometry.vertex_count, dtype=np.int64).reshape(-1, 3) + offset
        for a, b, c in tris:
            self.faces.write_line(f"3 {a} {b} {c}")


@dataclass(frozen=True)
class ExportResult:
    document: str
    schema: AggregatedSchema


class PlyExporter:
    """Merge every mesh under a scene node into one ASCII PLY document.

    Usage::

        exporter = PlyExporter()
        text = exporter.parse(root, ExportOptions(exclude_properties={"color"}))
    """

    def export(self, root: SceneNode, options: Optional[ExportOptions] = None) -> ExportResult:
        options = options or ExportOptions()
        if options.binary:
            raise NotImplementedError("Binary PLY bodies are not supported; export with binary=False.")

        cache = GeometryCache()
        schema = aggregate_schema(root, options, cache)
        emitter = BodyEmitter(schema, cache)
        root.traverse(emitter.visit)

        out = TextSink()
        out.write(format_header(schema))
        out.write(emitter.vertices.finalize())
        out.write("\n")
        if schema.include_indices:
            out.write(emitter.faces.finalize())
            out.write("\n")
        _log.info(
            "Exported %d meshes: %d vertices, %d faces",
            schema.mesh_count, schema.vertex_count, schema.face_count if schema.include_indices else 0,
        )
        return ExportResult(document=out.finalize(), schema=schema)

    def parse(self, root: SceneNode, options: Optional[ExportOptions] = None) -> str:
        return self.export(root, options).document


def export_ply(root: SceneNode, options: Optional[ExportOptions] = None) -> str:
    return PlyExporter().parse(root, options)


def write_ply(path: str | pathlib.Path, document: str) -> pathlib.Path:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="\n") as f:
        f.write(document)
    _log.info("Wrote %s", path.name)
    return path
