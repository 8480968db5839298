"""Stitching per-cell edge sets into one edge set for a whole volume.

Cells are merged pairwise along X into rows, rows along Y into floors and
floors along Z into the volume.  At each shared boundary plane, vertices of
the second side that fall within ``distance_tolerance`` of a vertex of the
first side are clumped onto it.  The first side always keeps its vertex, so
the lower cell index owns every shared vertex and re-merging coincident
vertices changes nothing.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import List, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from ._math import _normalize
from .config import GridBounds, MergeConfig, SurfacingConfig
from .edges import EdgeSet

_LOGGER = logging.getLogger(__name__)


def get_clumps(distance_tolerance: float, first: np.ndarray, second: np.ndarray) -> np.ndarray:
    """Pair every *second* point with its nearest *first* point.

    Returns
    -------
    numpy.ndarray
        ``(M, 2)`` rows of ``(first index, second index)`` for the pairs
        strictly closer than *distance_tolerance*.
    """
    if not len(first) or not len(second):
        return np.empty((0, 2), dtype=np.int64)
    dist, nearest = cKDTree(first).query(second, distance_upper_bound=distance_tolerance)
    hit = np.isfinite(dist) & (dist < distance_tolerance)
    return np.stack([nearest[hit], np.nonzero(hit)[0]], axis=-1).astype(np.int64)


def _pair_keys(edges: np.ndarray, vertex_count: int) -> np.ndarray:
    lo = np.minimum(edges[:, 0], edges[:, 1])
    hi = np.maximum(edges[:, 0], edges[:, 1])
    return lo * vertex_count + hi


def without_duplicates(comparison: np.ndarray, pruning: np.ndarray, vertex_count: int) -> np.ndarray:
    """Rows of *pruning* that match no *comparison* edge in either order."""
    if not len(pruning) or not len(comparison):
        return pruning
    duplicate = np.isin(_pair_keys(pruning, vertex_count), _pair_keys(comparison, vertex_count))
    return pruning[~duplicate]


def merge_edges(
    vertices: np.ndarray,
    shared: np.ndarray,
    first: np.ndarray,
    second: np.ndarray,
    alignment: float = 0.8,
) -> np.ndarray:
    """Join *first* and *second* edges, unifying straight runs at shared vertices.

    A shared vertex touched by exactly one edge from each side, where the two
    edges run the same way, is dissolved and both edges are replaced by one
    edge between their far ends.
    """
    drop_first = np.zeros(len(first), dtype=bool)
    drop_second = np.zeros(len(second), dtype=bool)
    unified = []
    for vertex in shared:
        in_first = np.nonzero(np.any(first == vertex, axis=1))[0]
        in_second = np.nonzero(np.any(second == vertex, axis=1))[0]
        if in_first.size != 1 or in_second.size != 1:
            continue
        i, j = int(in_first[0]), int(in_second[0])
        if drop_first[i] or drop_second[j]:
            continue
        a, b = first[i], second[j]
        direction_a = _normalize(vertices[a[1]] - vertices[a[0]])
        direction_b = _normalize(vertices[b[1]] - vertices[b[0]])
        if abs(float(np.dot(direction_a, direction_b))) <= alignment:
            continue
        other_a = a[1] if a[0] == vertex else a[0]
        other_b = b[1] if b[0] == vertex else b[0]
        if other_a == other_b:
            continue
        drop_first[i] = True
        drop_second[j] = True
        unified.append((other_a, other_b))

    result = np.concatenate(
        [first[~drop_first], second[~drop_second], np.asarray(unified, dtype=np.int64).reshape(-1, 2)]
    )
    assert len(result) <= len(first) + len(second)
    return result


def merge_cells(
    config: MergeConfig,
    boundary: float,
    first: EdgeSet,
    second: EdgeSet,
    previous: np.ndarray,
) -> Tuple[EdgeSet, np.ndarray]:
    """Merge *second* into *first* across the plane ``axis == boundary``.

    Parameters
    ----------
    config:
        Clump tolerance, axis, boundary band width and unification alignment.
    boundary:
        Position of the shared plane along ``config.axis``.
    first:
        Accumulated edge set on the low side.
    second:
        Edge set of the next cell (or row, or floor).
    previous:
        Ids in *first* of the vertices belonging to the cell directly before
        *second*; only these are clump candidates.

    Returns
    -------
    tuple
        ``(merged, second_ids)`` where *second_ids* maps each vertex of
        *second* to its id in *merged*.
    """
    axis = config.axis
    offset = first.vertex_count
    second_ids = np.arange(second.vertex_count, dtype=np.int64) + offset

    first_candidates = np.intersect1d(np.asarray(previous, dtype=np.int64), first.referenced())
    first_candidates = first_candidates[
        first.vertices[first_candidates, axis] > boundary - config.boundary_range
    ]
    second_candidates = second.referenced()
    second_candidates = second_candidates[
        second.vertices[second_candidates, axis] < boundary + config.boundary_range
    ]

    clumps = get_clumps(
        config.distance_tolerance,
        first.vertices[first_candidates],
        second.vertices[second_candidates],
    )
    shared = np.unique(first_candidates[clumps[:, 0]])
    second_ids[second_candidates[clumps[:, 1]]] = first_candidates[clumps[:, 0]]

    vertices = np.concatenate([first.vertices, second.vertices])
    vertex_count = vertices.shape[0]
    second_edges = second_ids[second.edges]
    second_edges = second_edges[second_edges[:, 0] != second_edges[:, 1]]
    second_edges = without_duplicates(first.edges, second_edges, vertex_count)

    merged = merge_edges(vertices, shared, first.edges, second_edges, config.alignment)
    return EdgeSet(vertices, merged), second_ids


def accumulate_row(config: MergeConfig, cells: Sequence[EdgeSet], boundary: float) -> EdgeSet:
    """Merge *cells* in order; the first boundary lies at *boundary*."""
    if not cells:
        return EdgeSet.empty()
    accumulator = cells[0]
    previous = np.arange(accumulator.vertex_count, dtype=np.int64)
    for cell in cells[1:]:
        accumulator, previous = merge_cells(config, boundary, accumulator, cell, previous)
        boundary += config.cell_size
    return accumulator.compact()


def accumulate_rows(
    config: MergeConfig,
    bounds: GridBounds,
    groups: Sequence[EdgeSet],
    row_count: int,
) -> List[EdgeSet]:
    """Split *groups* into *row_count* consecutive rows along ``config.axis`` and merge each."""
    row_length = bounds.dimensions[config.axis]
    first_division = bounds.start[config.axis] * config.cell_size + config.cell_size
    rows = []
    for i in range(row_count):
        row = groups[i * row_length:(i + 1) * row_length]
        assert len(row) == row_length
        rows.append(accumulate_row(config, row, first_division))
    return rows


def aggregate_cells(config: SurfacingConfig, bounds: GridBounds, cells: Sequence[EdgeSet]) -> EdgeSet:
    """Merge per-cell edge sets, given in row-major order, into one edge set."""
    if bounds.cell_count == 0:
        return EdgeSet.empty()
    assert len(cells) == bounds.cell_count
    _, dy, dz = bounds.dimensions
    merge_config = MergeConfig.from_surfacing(config)

    rows = accumulate_rows(merge_config, bounds, cells, dy * dz)
    floors = accumulate_rows(dataclasses.replace(merge_config, axis=1), bounds, rows, dz)
    first_division = bounds.start[2] * config.cell_size + config.cell_size
    result = accumulate_row(dataclasses.replace(merge_config, axis=2), floors, first_division)
    _LOGGER.debug(
        "Merged %d cells into %d edges over %d vertices",
        len(cells), len(result), result.vertex_count,
    )
    return result
