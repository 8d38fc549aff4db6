from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from sceneply.config import load_config
from sceneply.core.geometry import MalformedGeometry
from sceneply.core.loader import load_scene
from sceneply.sdk import export_from_config


def _write_test_mesh(path: Path) -> None:
    vertices = [
        (-1.0, -1.0, 0.0),
        (1.0, -1.0, 0.0),
        (1.0, 1.0, 0.0),
        (-1.0, 1.0, 0.0),
    ]
    faces = [
        (0, 1, 2),
        (0, 2, 3),
    ]
    with open(path, "w", encoding="utf-8") as f:
        f.write("ply\n")
        f.write("format ascii 1.0\n")
        f.write(f"element vertex {len(vertices)}\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        f.write(f"element face {len(faces)}\n")
        f.write("property list uchar int vertex_indices\n")
        f.write("end_header\n")
        for v in vertices:
            f.write(f"{v[0]} {v[1]} {v[2]}\n")
        for face in faces:
            f.write(f"3 {face[0]} {face[1]} {face[2]}\n")


def _write_config(path: Path, scene: dict, output_name: str, exclude: list[str] | None = None) -> None:
    config = {
        "scene": scene,
        "output": {"path": output_name},
        "exclude_properties": exclude or [],
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f)


def _read_header(path: Path) -> list[str]:
    with open(path, "r", encoding="utf-8") as f:
        lines = [line.rstrip("\n") for line in f.readlines()]
    return lines[: lines.index("end_header") + 1]


def test_load_config_resolves_relative_paths(tmp_path: Path) -> None:
    cfg_path = tmp_path / "export.yaml"
    _write_config(cfg_path, {"path": "plane.ply"}, "out/merged.ply", exclude=["uv", "color", "uv"])
    cfg = load_config(cfg_path)
    assert cfg.scene.path == (tmp_path / "plane.ply").resolve()
    assert cfg.output.path == (tmp_path / "out" / "merged.ply").resolve()
    assert cfg.exclude_properties == ["color", "uv"]


def test_config_requires_exactly_one_scene_source(tmp_path: Path) -> None:
    cfg_path = tmp_path / "export.yaml"
    _write_config(cfg_path, {"path": "plane.ply", "preset": "demo"}, "out.ply")
    with pytest.raises(ValidationError):
        load_config(cfg_path)
    _write_config(cfg_path, {"preset": "demo"}, "out.ply", exclude=["texture"])
    with pytest.raises(ValidationError):
        load_config(cfg_path)


def test_export_from_config_path(tmp_path: Path) -> None:
    mesh_path = tmp_path / "plane.ply"
    _write_test_mesh(mesh_path)
    cfg_path = tmp_path / "export.yaml"
    _write_config(cfg_path, {"path": mesh_path.name}, "merged.ply")

    result = export_from_config(cfg_path)

    assert result.output_path.exists()
    assert str(result.output_path).endswith("merged.ply")
    assert result.stats == {"meshes": 1, "vertices": 4, "faces": 2}
    header = _read_header(result.output_path)
    assert "element vertex 4" in header
    assert "element face 2" in header


def test_export_from_config_object_override(tmp_path: Path) -> None:
    cfg_path = tmp_path / "export.yaml"
    _write_config(cfg_path, {"preset": "plane", "size": 2.0}, "first.ply")
    cfg = load_config(cfg_path)

    override_path = tmp_path / "override.ply"
    result = export_from_config(cfg, output=override_path, exclude_properties=["normal", "color"])

    assert result.output_path == override_path.resolve()
    assert result.config.exclude_properties == ["color", "normal"]
    assert cfg.exclude_properties == []
    header = _read_header(result.output_path)
    assert "element vertex 81" in header
    assert "property float nx" not in header
    assert "property uchar red" not in header


def test_export_from_config_rejects_non_ply_output(tmp_path: Path) -> None:
    cfg_path = tmp_path / "export.yaml"
    _write_config(cfg_path, {"preset": "plane"}, "out.ply")
    with pytest.raises(ValueError):
        export_from_config(cfg_path, output=tmp_path / "out.obj")


def test_load_scene_from_ascii_ply(tmp_path: Path) -> None:
    mesh_path = tmp_path / "plane.ply"
    _write_test_mesh(mesh_path)

    root = load_scene(mesh_path)

    meshes = [node for node in root.iter_nodes() if node is not root]
    assert len(meshes) == 1
    geometry = meshes[0].geometry
    assert geometry.vertex_count == 4
    assert geometry.indices is not None and len(geometry.indices) == 6
    assert geometry.normals is not None


def test_malformed_scene_writes_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from sceneply.core.geometry import BufferGeometry
    from sceneply.core.scene import Group, MeshNode
    from sceneply.sdk import run as sdk_run

    def _point_scene(cfg):
        root = Group()
        root.add(MeshNode(BufferGeometry(positions=[[0, 0, 0], [1, 0, 0]]), name="points"))
        return root

    monkeypatch.setattr(sdk_run, "build_scene", _point_scene)
    cfg_path = tmp_path / "export.yaml"
    _write_config(cfg_path, {"preset": "plane"}, "points.ply")
    with pytest.raises(MalformedGeometry):
        export_from_config(cfg_path)
    assert not (tmp_path / "points.ply").exists()
