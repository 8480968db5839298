"""Topology cleanup of merged edge sets.

Every pass here runs to a fixpoint and can only shrink the edge set, so each
loop terminates.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ._math import _normalize
from .edges import EdgeSet

_LOGGER = logging.getLogger(__name__)


def _unordered_keys(edges: np.ndarray, vertex_count: int) -> np.ndarray:
    lo = np.minimum(edges[:, 0], edges[:, 1])
    hi = np.maximum(edges[:, 0], edges[:, 1])
    return lo * max(vertex_count, 1) + hi


def remove_duplicate_edges(edges: EdgeSet) -> EdgeSet:
    """Keep the first of every group of edges joining the same two points.

    Exactly coincident vertices are welded first, and edges that start and
    end at the same vertex are dropped.
    """
    if not len(edges):
        return EdgeSet.empty()
    vertices, inverse = np.unique(edges.vertices, axis=0, return_inverse=True)
    remapped = inverse.reshape(-1)[edges.edges]
    remapped = remapped[remapped[:, 0] != remapped[:, 1]]
    _, first = np.unique(_unordered_keys(remapped, vertices.shape[0]), return_index=True)
    result = EdgeSet(vertices, remapped[np.sort(first)]).compact()
    _LOGGER.debug("Removed %d duplicate edges", len(edges) - len(result))
    return result


def remove_dangling_edges(edges: EdgeSet) -> EdgeSet:
    """Repeatedly strip edges that touch a vertex of degree one.

    Afterwards every remaining vertex has degree two or more, or the set is
    empty.
    """
    current = edges.edges
    vertex_count = edges.vertex_count
    passes = 0
    while len(current):
        degree = np.bincount(current.ravel(), minlength=vertex_count)
        dangling = (degree[current[:, 0]] == 1) | (degree[current[:, 1]] == 1)
        if not np.any(dangling):
            break
        current = current[~dangling]
        passes += 1
    _LOGGER.debug(
        "Removed %d dangling edges in %d passes", len(edges) - len(current), passes
    )
    return edges.with_edges(current).compact()


def _unify_pass(vertices: np.ndarray, edges: np.ndarray, alignment: float) -> np.ndarray:
    degree = np.bincount(edges.ravel(), minlength=vertices.shape[0])
    consumed = np.zeros(len(edges), dtype=bool)
    existing = set(_unordered_keys(edges, vertices.shape[0]).tolist())
    added = []
    for vertex in np.nonzero(degree == 2)[0]:
        incident = np.nonzero(np.any(edges == vertex, axis=1))[0]
        i, j = int(incident[0]), int(incident[1])
        if consumed[i] or consumed[j]:
            continue
        a = edges[i, 1] if edges[i, 0] == vertex else edges[i, 0]
        b = edges[j, 1] if edges[j, 0] == vertex else edges[j, 0]
        if a == b:
            continue
        direction_a = _normalize(vertices[vertex] - vertices[a])
        direction_b = _normalize(vertices[b] - vertices[vertex])
        if abs(float(np.dot(direction_a, direction_b))) <= alignment:
            continue
        key = int(min(a, b)) * max(vertices.shape[0], 1) + int(max(a, b))
        if key in existing:
            continue
        existing.add(key)
        consumed[i] = consumed[j] = True
        added.append((a, b))
    if not added:
        return edges
    return np.concatenate([edges[~consumed], np.asarray(added, dtype=np.int64)])


def unify_linear_edges(edges: EdgeSet, alignment: float = 0.8) -> EdgeSet:
    """Dissolve degree-two vertices between edges running the same way.

    Each such vertex is removed and its two edges are replaced by one, until
    no collinear chain remains.
    """
    current = edges.edges
    while True:
        unified = _unify_pass(edges.vertices, current, alignment)
        if len(unified) == len(current):
            break
        current = unified
    _LOGGER.debug("Unified %d collinear edges", len(edges) - len(current))
    return edges.with_edges(current).compact()


def cleanup_edges(edges: EdgeSet, alignment: Optional[float] = None) -> EdgeSet:
    """Duplicate removal, then dangling removal, then optional linear unification."""
    result = remove_dangling_edges(remove_duplicate_edges(edges))
    if alignment is not None:
        result = unify_linear_edges(result, alignment)
    return result
