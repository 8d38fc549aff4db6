from __future__ import annotations
from typing import Callable, Iterator, List, Optional
import numpy as np

from .geometry import Geometry


class SceneNode:
    """Tree node with a local 4x4 transform.

    World matrices compose down the tree (parent world @ local). Nodes are
    read-only from the exporter's point of view.
    """
    def __init__(self, name: str = "", matrix: Optional[np.ndarray] = None) -> None:
        self.name = name
        self.matrix = np.eye(4, dtype=np.float64) if matrix is None else np.asarray(matrix, dtype=np.float64)
        if self.matrix.shape != (4, 4):
            raise ValueError(f"Node matrix must be 4x4, got {self.matrix.shape}")
        self.parent: Optional[SceneNode] = None
        self.children: List[SceneNode] = []

    def add(self, *children: "SceneNode") -> "SceneNode":
        for child in children:
            ancestor: Optional[SceneNode] = self
            while ancestor is not None:
                if ancestor is child:
                    raise ValueError("Adding this child would create a cycle.")
                ancestor = ancestor.parent
            if child.parent is not None:
                child.parent.remove(child)
            child.parent = self
            self.children.append(child)
        return self

    def remove(self, child: "SceneNode") -> None:
        self.children.remove(child)
        child.parent = None

    @property
    def world_matrix(self) -> np.ndarray:
        if self.parent is None:
            return self.matrix.copy()
        return self.parent.world_matrix @ self.matrix

    # -- traversal --
    def iter_nodes(self) -> Iterator["SceneNode"]:
        """Depth-first, parent before children, children in insertion order."""
        stack: List[SceneNode] = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def traverse(self, visit: Callable[["SceneNode"], None]) -> None:
        for node in self.iter_nodes():
            visit(node)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, children={len(self.children)})"


class Group(SceneNode):
    """Non-mesh container node."""


class MeshNode(SceneNode):
    """Leaf (or branch) carrying a geometry in buffer or legacy form."""
    def __init__(self, geometry: Geometry, name: str = "", matrix: Optional[np.ndarray] = None) -> None:
        super().__init__(name=name, matrix=matrix)
        self.geometry = geometry
