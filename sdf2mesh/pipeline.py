"""End-to-end surfacing: distance function in, edge set or mesh out.

Each cell is traced on its own (sample, detect contours, aggregate lines,
convert to edges); the cells are then stitched together, cleaned, and
optionally turned into faces and triangles.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ._math import _DistanceFunction
from .config import GridBounds, SurfacingConfig
from .contours import Contours, isolate_contours, new_contour_grid, split_pivot_contours
from .edges import EdgeSet, merge_nearby_edge_vertices
from .errors import InsufficientSamples, SurfaceNotFound, SurfacingCancelled
from .faces import edges_to_mesh
from .lines import detect_edges, lines_to_edges
from .merging import aggregate_cells
from .mesh import Mesh
from .sampling import sample_cell_grids
from .topology import cleanup_edges

_LOGGER = logging.getLogger(__name__)

Cancel = Optional[Callable[[], bool]]


def trace_cell_contours(
    distance: _DistanceFunction,
    config: SurfacingConfig,
    bounds: GridBounds,
) -> Callable[[int], Contours]:
    """Return a function giving the significant contours of a cell by index."""
    sample_grid = sample_cell_grids(distance, config, bounds)

    def _trace(index: int) -> Contours:
        grid = sample_grid(index)
        if grid is None:
            return []
        return isolate_contours(config.tolerance, new_contour_grid(distance, config, grid))

    return _trace


def trace_cell_edges(
    distance: _DistanceFunction,
    config: SurfacingConfig,
    bounds: GridBounds,
) -> Callable[[int], EdgeSet]:
    """Return a function giving the edge set of a cell by index.

    A cell that fails with a recoverable error is logged and comes back
    empty.
    """
    trace_contours = trace_cell_contours(distance, config, bounds)

    def _trace(index: int) -> EdgeSet:
        try:
            contours = trace_contours(index)
            pivots: Contours = []
            if config.separate_pivots:
                contours, pivots = split_pivot_contours(
                    config.sub_step / 2.0, contours, config.calibration.pivot_alignment
                )
            lines = detect_edges(config, contours, pivots)
            edges = EdgeSet.from_edges(lines_to_edges(lines))
        except (InsufficientSamples, SurfaceNotFound) as exc:
            _LOGGER.warning("Skipping cell %d at %s: %s", index, bounds.cell_start(index), exc)
            return EdgeSet.empty()
        return merge_nearby_edge_vertices(config.distance_tolerance, edges)

    return _trace


def trace_all(
    distance: _DistanceFunction,
    config: SurfacingConfig,
    bounds: GridBounds,
    *,
    cancel: Cancel = None,
) -> EdgeSet:
    """Trace every cell of *bounds*, merge them and clean the result.

    Parameters
    ----------
    distance:
        Vectorised distance function, negative inside.
    config:
        Sampling resolution and tolerances.
    bounds:
        Cells to trace.
    cancel:
        Optional callable polled before each cell; returning True raises
        :class:`~sdf2mesh.errors.SurfacingCancelled`.

    Returns
    -------
    EdgeSet
        Feature edges of the surface with every vertex of degree two or more.
    """
    trace_cell = trace_cell_edges(distance, config, bounds)
    cells = []
    for index in range(bounds.cell_count):
        if cancel is not None and cancel():
            raise SurfacingCancelled(f"Surfacing cancelled at cell {index} of {bounds.cell_count}")
        cells.append(trace_cell(index))

    merged = aggregate_cells(config, bounds, cells)
    result = cleanup_edges(merged, config.calibration.merge_alignment)
    _LOGGER.debug(
        "Traced %d cells: %d edges after merging, %d after cleanup",
        bounds.cell_count, len(merged), len(result),
    )
    return result


def trace_mesh(
    distance: _DistanceFunction,
    config: SurfacingConfig,
    bounds: GridBounds,
    *,
    cancel: Cancel = None,
) -> Mesh:
    """:func:`trace_all` followed by face recovery and fan triangulation."""
    return edges_to_mesh(distance, trace_all(distance, config, bounds, cancel=cancel))
