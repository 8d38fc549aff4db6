from __future__ import annotations
from typing import Sequence
import numpy as np

from .geometry import MalformedGeometry
from .utils import get_logger

_log = get_logger()


def compose_matrix(
    translation: Sequence[float] = (0.0, 0.0, 0.0),
    rpy_deg: Sequence[float] = (0.0, 0.0, 0.0),
    scale: Sequence[float] | float = 1.0,
) -> np.ndarray:
    """Local 4x4 matrix applying scale, then rotation (Rz @ Ry @ Rx), then translation."""
    rx, ry, rz = np.deg2rad(np.asarray(rpy_deg, dtype=np.float64))
    cx, sx = np.cos(rx), np.sin(rx)
    cy, sy = np.cos(ry), np.sin(ry)
    cz, sz = np.cos(rz), np.sin(rz)
    Rx = np.array([[1,0,0],[0,cx,-sx],[0,sx,cx]])
    Ry = np.array([[cy,0,sy],[0,1,0],[-sy,0,cy]])
    Rz = np.array([[cz,-sz,0],[sz,cz,0],[0,0,1]])
    R = Rz @ Ry @ Rx

    s = np.broadcast_to(np.asarray(scale, dtype=np.float64), (3,))
    m = np.eye(4, dtype=np.float64)
    m[:3, :3] = R @ np.diag(s)
    m[:3, 3] = np.asarray(translation, dtype=np.float64)
    return m


def apply_point_transform(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Apply a 4x4 transform to (N,3) points, dividing by the homogeneous w."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    m = np.asarray(matrix, dtype=np.float64)
    ones = np.ones((len(pts), 1), dtype=np.float64)
    out = np.hstack([pts, ones]) @ m.T
    w = out[:, 3:4]
    if np.any(w == 0.0):
        raise MalformedGeometry("Projective transform maps a vertex to infinity (w == 0).")
    if not np.all(w == 1.0):
        out[:, :3] = out[:, :3] / w
    if not np.all(np.isfinite(out[:, :3])):
        raise MalformedGeometry("Transformed positions are not finite.")
    return out[:, :3]


def derive_normal_matrix(matrix: np.ndarray) -> np.ndarray:
    """Inverse-transpose of the upper 3x3 block of a 4x4 world matrix."""
    upper = np.asarray(matrix, dtype=np.float64)[:3, :3]
    try:
        inv = np.linalg.inv(upper)
    except np.linalg.LinAlgError:
        _log.warning("World matrix is singular; writing normals untransformed.")
        return np.eye(3, dtype=np.float64)
    return inv.T


def apply_direction_transform(directions: np.ndarray, normal_matrix: np.ndarray) -> np.ndarray:
    """Apply a 3x3 matrix to (N,3) direction vectors (no renormalisation)."""
    dirs = np.asarray(directions, dtype=np.float64).reshape(-1, 3)
    return dirs @ np.asarray(normal_matrix, dtype=np.float64).T
