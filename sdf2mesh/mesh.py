"""Indexed triangle mesh value type."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ._math import _normalize


@dataclass(frozen=True, eq=False)
class Mesh:
    """Vertices and triangles referencing them by index.

    Attributes
    ----------
    vertices:
        ``(V, 3)`` float64 positions.
    triangles:
        ``(T, 3)`` int64 vertex indices, counter-clockwise seen from outside.
    """

    vertices: np.ndarray
    triangles: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "vertices", np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3))
        object.__setattr__(self, "triangles", np.asarray(self.triangles, dtype=np.int64).reshape(-1, 3))

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def triangle_count(self) -> int:
        return int(self.triangles.shape[0])

    def face_normals(self) -> np.ndarray:
        """``(T, 3)`` unit normals; degenerate triangles get zero vectors."""
        p = self.vertices[self.triangles]
        return _normalize(np.cross(p[:, 1] - p[:, 0], p[:, 2] - p[:, 0]))

    def compact(self) -> Mesh:
        """Drop vertices no triangle uses and renumber the rest in order."""
        used = np.unique(self.triangles)
        if used.size == self.vertex_count:
            return self
        remap = np.full(self.vertex_count, -1, dtype=np.int64)
        remap[used] = np.arange(used.size)
        return Mesh(self.vertices[used], remap[self.triangles])
