"""Recovering polygon faces from a cleaned edge graph and triangulating them.

Around every vertex the incident edges are ordered counter-clockwise about
an outward normal taken from the distance field.  A face is then traced by
following directed edges, turning at each vertex onto the edge immediately
clockwise of the one arrived along.  Each directed edge belongs to exactly
one face, so faces come out counter-clockwise seen from outside.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from ._math import _DistanceFunction, _dot, _gradient_normals, _length, _normalize
from .edges import EdgeSet
from .mesh import Mesh

_LOGGER = logging.getLogger(__name__)


def _neighbours(edges: EdgeSet) -> List[np.ndarray]:
    result: List[list] = [[] for _ in range(edges.vertex_count)]
    for a, b in edges.edges:
        result[a].append(b)
        result[b].append(a)
    return [np.asarray(n, dtype=np.int64) for n in result]


def vertex_normals(distance: _DistanceFunction, edges: EdgeSet, neighbours: Sequence[np.ndarray]) -> np.ndarray:
    """Outward normal per vertex.

    The field gradient at a vertex sitting on a sharp corner is unreliable,
    so the gradients a quarter of the shortest incident edge along every
    incident edge are added in.
    """
    vertices = edges.vertices
    points = [vertices]
    owners = [np.arange(edges.vertex_count)]
    for v, nbrs in enumerate(neighbours):
        if not nbrs.size:
            continue
        offsets = vertices[nbrs] - vertices[v]
        radius = 0.25 * float(np.min(_length(offsets)))
        points.append(vertices[v] + _normalize(offsets) * radius)
        owners.append(np.full(nbrs.size, v))
    points = np.concatenate(points)
    owners = np.concatenate(owners)
    gradients = _gradient_normals(distance, points)
    summed = np.zeros_like(vertices)
    np.add.at(summed, owners, gradients)
    return _normalize(summed)


def sort_neighbours(position: np.ndarray, normal: np.ndarray, neighbours: np.ndarray, vertices: np.ndarray) -> np.ndarray:
    """*neighbours* ordered counter-clockwise about *normal*."""
    if neighbours.size < 2:
        return neighbours
    directions = _normalize(vertices[neighbours] - position)
    projected = directions - _dot(directions, normal)[:, None] * normal
    reference = projected[0]
    angles = np.arctan2(_dot(np.cross(reference, projected), normal), _dot(projected, reference))
    return neighbours[np.argsort(angles, kind="stable")]


def get_faces(distance: _DistanceFunction, edges: EdgeSet) -> List[np.ndarray]:
    """Polygon faces of a closed edge graph as arrays of vertex ids.

    Faces with fewer than three vertices are dropped.
    """
    neighbours = _neighbours(edges)
    normals = vertex_normals(distance, edges, neighbours)
    ordered = [
        sort_neighbours(edges.vertices[v], normals[v], nbrs, edges.vertices)
        for v, nbrs in enumerate(neighbours)
    ]
    position_in = [{int(n): i for i, n in enumerate(row)} for row in ordered]

    used = set()
    faces: List[np.ndarray] = []
    limit = 2 * len(edges)
    for a, b in edges.edges:
        for start in ((int(a), int(b)), (int(b), int(a))):
            if start in used:
                continue
            face = []
            u, v = start
            for _ in range(limit):
                if (u, v) in used:
                    break
                used.add((u, v))
                face.append(u)
                row = ordered[v]
                w = int(row[(position_in[v][u] - 1) % row.size])
                u, v = v, w
            if len(face) >= 3:
                faces.append(np.asarray(face, dtype=np.int64))
    _LOGGER.debug("Traced %d faces from %d edges", len(faces), len(edges))
    return faces


def triangulate_faces(vertices: np.ndarray, faces: Sequence[np.ndarray]) -> Mesh:
    """Fan-triangulate each face from its first vertex."""
    triangles = [
        (face[0], face[i], face[i + 1])
        for face in faces
        for i in range(1, len(face) - 1)
    ]
    return Mesh(vertices, np.asarray(triangles, dtype=np.int64).reshape(-1, 3))


def edges_to_mesh(distance: _DistanceFunction, edges: EdgeSet) -> Mesh:
    edges = edges.compact()
    return triangulate_faces(edges.vertices, get_faces(distance, edges)).compact()
