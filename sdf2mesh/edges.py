"""Edge types: a position-pair :class:`Edge` and the :class:`EdgeSet` arena.

An :class:`EdgeSet` stores every vertex once in a ``(V, 3)`` array and every
edge as an index pair, so vertex identity across merge passes is an integer
comparison rather than a float comparison.  Tolerance-based lookups go
through a k-d tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence

import numpy as np
from scipy import sparse
from scipy.sparse import csgraph
from scipy.spatial import cKDTree

from ._math import _length

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Edge:
    """A segment between two points."""

    first: np.ndarray
    second: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "first", np.asarray(self.first, dtype=np.float64))
        object.__setattr__(self, "second", np.asarray(self.second, dtype=np.float64))

    @property
    def length(self) -> float:
        return float(_length(self.second - self.first))

    def matches(self, other: Edge, tolerance: float = 0.0) -> bool:
        """True when both endpoints coincide with *other*'s, in either order."""

        def close(a, b):
            return float(_length(a - b)) <= tolerance

        return (close(self.first, other.first) and close(self.second, other.second)) or (
            close(self.first, other.second) and close(self.second, other.first)
        )


@dataclass(frozen=True, eq=False)
class EdgeSet:
    """Vertex arena plus index-pair edges.

    Attributes
    ----------
    vertices:
        ``(V, 3)`` float64 positions.  Vertices no edge references are
        allowed; :meth:`compact` drops them.
    edges:
        ``(E, 2)`` int64 vertex indices.
    """

    vertices: np.ndarray
    edges: np.ndarray

    def __post_init__(self) -> None:
        vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        edges = np.asarray(self.edges, dtype=np.int64).reshape(-1, 2)
        object.__setattr__(self, "vertices", vertices)
        object.__setattr__(self, "edges", edges)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls) -> EdgeSet:
        return cls(np.empty((0, 3)), np.empty((0, 2), dtype=np.int64))

    @classmethod
    def from_segments(cls, segments) -> EdgeSet:
        """Build from an ``(E, 2, 3)`` array of endpoint pairs.

        Exactly coincident endpoints are welded into one vertex.
        """
        seg = np.asarray(segments, dtype=np.float64).reshape(-1, 2, 3)
        if not seg.shape[0]:
            return cls.empty()
        points = seg.reshape(-1, 3)
        vertices, inverse = np.unique(points, axis=0, return_inverse=True)
        return cls(vertices, inverse.reshape(-1, 2))

    @classmethod
    def from_edges(cls, edges: Iterable[Edge]) -> EdgeSet:
        return cls.from_segments([(e.first, e.second) for e in edges])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return int(self.edges.shape[0])

    @property
    def vertex_count(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def segments(self) -> np.ndarray:
        """``(E, 2, 3)`` endpoint positions."""
        return self.vertices[self.edges]

    def degrees(self) -> np.ndarray:
        """``(V,)`` number of edges touching each vertex."""
        return np.bincount(self.edges.ravel(), minlength=self.vertex_count)

    def referenced(self) -> np.ndarray:
        """Sorted ids of vertices used by at least one edge."""
        return np.unique(self.edges)

    def to_edges(self) -> List[Edge]:
        return [Edge(a, b) for a, b in self.segments]

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def compact(self) -> EdgeSet:
        """Drop unreferenced vertices and renumber the rest in order."""
        used = self.referenced()
        if used.size == self.vertex_count:
            return self
        remap = np.full(self.vertex_count, -1, dtype=np.int64)
        remap[used] = np.arange(used.size)
        return EdgeSet(self.vertices[used], remap[self.edges])

    def concat(self, other: EdgeSet) -> EdgeSet:
        """Both arenas side by side; *other*'s ids shift by this vertex count."""
        return EdgeSet(
            np.concatenate([self.vertices, other.vertices]),
            np.concatenate([self.edges, other.edges + self.vertex_count]),
        )

    def with_edges(self, edges) -> EdgeSet:
        """Same vertex arena, different edges."""
        return EdgeSet(self.vertices, edges)


def concat_edge_sets(edge_sets: Sequence[EdgeSet]) -> EdgeSet:
    result = EdgeSet.empty()
    for edge_set in edge_sets:
        result = result.concat(edge_set)
    return result


def group_nearby_vertices(tolerance: float, vertices: np.ndarray) -> np.ndarray:
    """Label every vertex with the id of its proximity group.

    Two vertices closer than *tolerance* share a group, transitively.
    """
    count = vertices.shape[0]
    if count < 2:
        return np.arange(count)
    pairs = cKDTree(vertices).query_pairs(r=tolerance, output_type="ndarray")
    if not pairs.size:
        return np.arange(count)
    graph = sparse.coo_matrix(
        (np.ones(pairs.shape[0]), (pairs[:, 0], pairs[:, 1])), shape=(count, count)
    )
    _, labels = csgraph.connected_components(graph, directed=False, return_labels=True)
    return labels


def merge_nearby_edge_vertices(tolerance: float, edges: EdgeSet) -> EdgeSet:
    """Collapse each group of nearby vertices to its centroid.

    Edges that end up no longer than *tolerance* are dropped.
    """
    edges = edges.compact()
    if not len(edges):
        return edges
    labels = group_nearby_vertices(tolerance, edges.vertices)
    group_count = int(labels.max()) + 1
    sizes = np.bincount(labels, minlength=group_count).astype(np.float64)
    centroids = np.stack(
        [np.bincount(labels, weights=edges.vertices[:, i], minlength=group_count) for i in range(3)],
        axis=-1,
    ) / sizes[:, None]

    remapped = labels[edges.edges]
    lengths = _length(centroids[remapped[:, 0]] - centroids[remapped[:, 1]])
    keep = lengths > tolerance
    _LOGGER.debug(
        "Merged %d vertices into %d; dropped %d short edges",
        edges.vertex_count, group_count, int(np.count_nonzero(~keep)),
    )
    return EdgeSet(centroids, remapped[keep]).compact()
