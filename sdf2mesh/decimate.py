"""Quadric-error mesh decimation.

Every vertex accumulates a symmetric 4x4 error quadric, stored as its ten
unique entries, from the planes of the triangles around it.  Edges are
collapsed in rounds under a rising error threshold until the triangle count
reaches the target.  A collapse is rejected when it would join a border
vertex to an interior one, or when it would flip or flatten a neighbouring
triangle.

The working state is a set of flat arrays indexed by vertex and triangle id;
deleted triangles are only flagged, and a final compaction drops them and
any vertex left unused.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

import numpy as np

from ._math import _normalize
from .errors import SurfacingCancelled
from .mesh import Mesh

_LOGGER = logging.getLogger(__name__)

_SINGULAR_DET = 1e-12


# ===========================================================================
# Quadric helpers
# ===========================================================================

def plane_quadric(a: float, b: float, c: float, d: float) -> np.ndarray:
    """Quadric of the plane ``ax + by + cz + d = 0`` as its ten unique entries."""
    return np.array(
        [a * a, a * b, a * c, a * d,
         b * b, b * c, b * d,
         c * c, c * d,
         d * d],
        dtype=np.float64,
    )


def quadric_error(q: np.ndarray, point) -> float:
    """Squared plane-distance error of *point* under quadric *q*."""
    x, y, z = (float(v) for v in point)
    return float(
        q[0] * x * x + 2 * q[1] * x * y + 2 * q[2] * x * z + 2 * q[3] * x
        + q[4] * y * y + 2 * q[5] * y * z + 2 * q[6] * y
        + q[7] * z * z + 2 * q[8] * z + q[9]
    )


def quadric_det(
    q: np.ndarray,
    a11: int, a12: int, a13: int,
    a21: int, a22: int, a23: int,
    a31: int, a32: int, a33: int,
) -> float:
    """Determinant of the 3x3 matrix picked out of *q* by the given entry ids."""
    return float(
        q[a11] * q[a22] * q[a33] + q[a13] * q[a21] * q[a32] + q[a12] * q[a23] * q[a31]
        - q[a13] * q[a22] * q[a31] - q[a11] * q[a23] * q[a32] - q[a12] * q[a21] * q[a33]
    )


# ===========================================================================
# Simplifier
# ===========================================================================

class _Simplifier:
    """Arena state for one :func:`simplify` call."""

    def __init__(self, mesh: Mesh, flip_threshold: float, colinear_threshold: float) -> None:
        self.positions = mesh.vertices.copy()
        self.triangles = mesh.triangles.copy()
        self.flip_threshold = flip_threshold
        self.colinear_threshold = colinear_threshold

        count = self.triangles.shape[0]
        self.deleted = np.zeros(count, dtype=bool)
        self.dirty = np.zeros(count, dtype=bool)
        self.errors = np.zeros((count, 4))
        self.deleted_count = 0

        p = self.positions[self.triangles]
        self.normals = _normalize(np.cross(p[:, 1] - p[:, 0], p[:, 2] - p[:, 0]))
        offsets = -np.sum(self.normals * p[:, 0], axis=-1)
        n = self.normals
        planes = np.stack(
            [n[:, 0] * n[:, 0], n[:, 0] * n[:, 1], n[:, 0] * n[:, 2], n[:, 0] * offsets,
             n[:, 1] * n[:, 1], n[:, 1] * n[:, 2], n[:, 1] * offsets,
             n[:, 2] * n[:, 2], n[:, 2] * offsets,
             offsets * offsets],
            axis=-1,
        )
        self.quadrics = np.zeros((self.positions.shape[0], 10))
        for corner in range(3):
            np.add.at(self.quadrics, self.triangles[:, corner], planes)

        self.references: List[List[Tuple[int, int]]] = []
        self.build_references()
        self.border = self.find_borders()
        for t in range(count):
            self.refresh_errors(t)

    # ------------------------------------------------------------------

    def build_references(self) -> None:
        """Per vertex, the ``(triangle, corner)`` pairs of live triangles using it."""
        references: List[List[Tuple[int, int]]] = [[] for _ in range(self.positions.shape[0])]
        for t in np.nonzero(~self.deleted)[0]:
            for corner, vertex in enumerate(self.triangles[t]):
                references[vertex].append((int(t), corner))
        self.references = references

    def find_borders(self) -> np.ndarray:
        """A neighbour seen in only one of a vertex's triangles lies on an open border."""
        border = np.zeros(self.positions.shape[0], dtype=bool)
        for refs in self.references:
            if not refs:
                continue
            ids = self.triangles[[t for t, _ in refs]].ravel()
            values, counts = np.unique(ids, return_counts=True)
            border[values[counts == 1]] = True
        return border

    def calculate_error(self, i0: int, i1: int) -> Tuple[np.ndarray, float]:
        """Best collapse point for edge ``(i0, i1)`` and its error."""
        q = self.quadrics[i0] + self.quadrics[i1]
        det = quadric_det(q, 0, 1, 2, 1, 4, 5, 2, 5, 7)
        if abs(det) > _SINGULAR_DET and not (self.border[i0] and self.border[i1]):
            point = np.array([
                -1.0 / det * quadric_det(q, 1, 2, 3, 4, 5, 6, 5, 7, 8),
                1.0 / det * quadric_det(q, 0, 2, 3, 1, 5, 6, 2, 7, 8),
                -1.0 / det * quadric_det(q, 0, 1, 3, 1, 4, 6, 2, 5, 8),
            ])
            return point, quadric_error(q, point)

        p1 = self.positions[i0]
        p2 = self.positions[i1]
        candidates = (p1, p2, (p1 + p2) / 2.0)
        errors = [quadric_error(q, p) for p in candidates]
        best = int(np.argmin(errors))
        return candidates[best].copy(), errors[best]

    def refresh_errors(self, t: int) -> None:
        tri = self.triangles[t]
        for j in range(3):
            self.errors[t, j] = self.calculate_error(int(tri[j]), int(tri[(j + 1) % 3]))[1]
        self.errors[t, 3] = self.errors[t, :3].min()

    def flipped(self, point: np.ndarray, vertex: int, other: int) -> Optional[np.ndarray]:
        """Triangles around *vertex* that the collapse would delete.

        Returns ``None`` when moving *vertex* to *point* would flip a
        surviving triangle or make it nearly degenerate.
        """
        refs = self.references[vertex]
        collapses = np.zeros(len(refs), dtype=bool)
        for k, (t, corner) in enumerate(refs):
            if self.deleted[t]:
                continue
            id1 = self.triangles[t, (corner + 1) % 3]
            id2 = self.triangles[t, (corner + 2) % 3]
            if id1 == other or id2 == other:
                collapses[k] = True
                continue
            d1 = _normalize(self.positions[id1] - point)
            d2 = _normalize(self.positions[id2] - point)
            if abs(float(np.dot(d1, d2))) > self.colinear_threshold:
                return None
            normal = _normalize(np.cross(d1, d2))
            if float(np.dot(normal, self.normals[t])) < self.flip_threshold:
                return None
        return collapses

    def update_triangles(self, i0: int, vertex: int, collapses: np.ndarray) -> None:
        for (t, corner), collapse in zip(self.references[vertex], collapses):
            if self.deleted[t]:
                continue
            if collapse:
                self.deleted[t] = True
                self.deleted_count += 1
                continue
            self.triangles[t, corner] = i0
            self.dirty[t] = True
            self.refresh_errors(t)

    def collapse(self, i0: int, i1: int) -> bool:
        point, _ = self.calculate_error(i0, i1)
        collapses0 = self.flipped(point, i0, i1)
        if collapses0 is None:
            return False
        collapses1 = self.flipped(point, i1, i0)
        if collapses1 is None:
            return False

        self.positions[i0] = point
        self.quadrics[i0] += self.quadrics[i1]
        self.update_triangles(i0, i0, collapses0)
        self.update_triangles(i0, i1, collapses1)
        merged = self.references[i0] + self.references[i1]
        self.references[i0] = [(t, c) for t, c in merged if not self.deleted[t]]
        self.references[i1] = []
        return True

    def result(self) -> Mesh:
        return Mesh(self.positions, self.triangles[~self.deleted]).compact()


def simplify(
    target_count: int,
    aggressiveness: float,
    mesh: Mesh,
    *,
    max_iterations: int = 100,
    flip_threshold: float = 0.2,
    colinear_threshold: float = 0.999,
    cancel: Optional[Callable[[], bool]] = None,
) -> Mesh:
    """Reduce *mesh* to at most *target_count* triangles where possible.

    Triangles are visited in index order.  Each one below the threshold tries
    its three edges cheapest first (by cached error, ties in edge order) and
    collapses the first that passes the border and flip checks.  The visit
    order fixes which collapses win, so equal inputs give equal outputs.

    Parameters
    ----------
    target_count:
        Triangle count to stop at.
    aggressiveness:
        Exponent of the per-iteration error threshold
        ``1e-9 * (iteration + 3) ** aggressiveness``; higher values accept
        costlier collapses sooner.  7 is a typical value.
    mesh:
        Input mesh; it is not modified.
    max_iterations:
        Cap on threshold rounds.
    flip_threshold:
        Minimum dot product between a triangle's original and new normals.
    colinear_threshold:
        ``|dot|`` of a triangle's two edge directions above which it counts
        as degenerate.
    cancel:
        Optional callable polled once per round; returning True raises
        :class:`~sdf2mesh.errors.SurfacingCancelled`.

    Returns
    -------
    Mesh
        Compacted mesh.  It may hold more than *target_count* triangles when
        every remaining collapse would cross a border or flip a triangle.
    """
    if target_count < 0:
        raise ValueError(f"target_count must be non-negative, got {target_count!r}")

    state = _Simplifier(mesh, flip_threshold, colinear_threshold)
    triangle_count = mesh.triangle_count
    collapses = 0
    iteration = 0

    for iteration in range(max_iterations):
        if triangle_count - state.deleted_count <= target_count:
            break
        if cancel is not None and cancel():
            raise SurfacingCancelled(f"Decimation cancelled at iteration {iteration}")

        state.build_references()
        state.dirty[:] = False
        threshold = 1e-9 * (iteration + 3) ** aggressiveness

        for t in range(triangle_count):
            if state.deleted[t] or state.dirty[t] or state.errors[t, 3] > threshold:
                continue
            for j in np.argsort(state.errors[t, :3], kind="stable"):
                if state.errors[t, j] >= threshold:
                    break
                i0 = int(state.triangles[t, j])
                i1 = int(state.triangles[t, (j + 1) % 3])
                if state.border[i0] != state.border[i1]:
                    continue
                if state.collapse(i0, i1):
                    collapses += 1
                    break
            if triangle_count - state.deleted_count <= target_count:
                break

        assert state.deleted_count <= triangle_count

    _LOGGER.debug(
        "Decimated %d triangles to %d with %d collapses in %d iterations",
        triangle_count, triangle_count - state.deleted_count, collapses, iteration + 1,
    )
    return state.result()
