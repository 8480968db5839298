"""
sdf2mesh: feature-preserving surfacing of signed distance fields
=================================================================

Turns a signed distance function into feature-edge sets and triangle meshes,
and reduces triangle meshes with quadric-error edge collapses.

Implemented features
--------------------
- Per-cell sub-grid sampling with surface snapping: :func:`sample_cell_grids`
- Sharp-feature contour detection: :func:`new_contour_grid`
- Line aggregation of aligned contours: :func:`detect_edges`
- Cross-cell stitching into one edge arena: :func:`aggregate_cells`
- Duplicate, dangling and collinear edge cleanup: :func:`cleanup_edges`
- Face recovery and triangulation: :func:`edges_to_mesh`
- Quadric-error decimation: :func:`simplify`
- Scene probes: :func:`get_scene_grid_bounds`, :func:`find_surfacing_start`

Quick start
-----------

Any callable mapping a ``(..., 3)`` array of points to a ``(...)`` array of
signed distances works as a distance function::

    import numpy as np
    from sdf2mesh import GridBounds, SurfacingConfig, trace_mesh, simplify

    def box(p):
        q = np.abs(p) - 1.0
        outside = np.linalg.norm(np.maximum(q, 0.0), axis=-1)
        return outside + np.minimum(np.max(q, axis=-1), 0.0)

    config = SurfacingConfig(cell_size=1.0, sub_cells=4)
    bounds = GridBounds(start=(-2, -2, -2), end=(2, 2, 2))
    mesh = trace_mesh(box, config, bounds)
    low = simplify(target_count=mesh.triangle_count // 2, aggressiveness=7.0, mesh=mesh)

The library logs through :mod:`logging` under the ``sdf2mesh`` namespace and
never installs handlers.
"""

from .config import Calibration, DecimalBounds, GridBounds, MergeConfig, SurfacingConfig
from .errors import InsufficientSamples, SurfaceNotFound, SurfacingCancelled, SurfacingError
from .sampling import (
    CellSample,
    SubSample,
    find_surfacing_start,
    get_scene_decimal_bounds,
    get_scene_grid_bounds,
    sample_cell_grid,
    sample_cell_grids,
)
from .contours import (
    Contour,
    diff_samples,
    isolate_contours,
    new_contour_grid,
    split_pivot_contours,
)
from .edges import Edge, EdgeSet, merge_nearby_edge_vertices
from .lines import detect_edges, incorporate_weak_lines, line_aggregate_to_edge, lines_to_edges
from .merging import aggregate_cells, merge_cells
from .topology import cleanup_edges, remove_dangling_edges, remove_duplicate_edges, unify_linear_edges
from .mesh import Mesh
from .faces import edges_to_mesh, get_faces, triangulate_faces
from .decimate import plane_quadric, quadric_det, quadric_error, simplify
from .pipeline import trace_all, trace_cell_contours, trace_cell_edges, trace_mesh

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "Calibration",
    "SurfacingConfig",
    "MergeConfig",
    "GridBounds",
    "DecimalBounds",

    # Errors
    "SurfacingError",
    "InsufficientSamples",
    "SurfaceNotFound",
    "SurfacingCancelled",

    # Sampling
    "SubSample",
    "CellSample",
    "sample_cell_grid",
    "sample_cell_grids",
    "get_scene_decimal_bounds",
    "get_scene_grid_bounds",
    "find_surfacing_start",

    # Contours and lines
    "Contour",
    "diff_samples",
    "new_contour_grid",
    "isolate_contours",
    "split_pivot_contours",
    "detect_edges",
    "incorporate_weak_lines",
    "line_aggregate_to_edge",
    "lines_to_edges",

    # Edges
    "Edge",
    "EdgeSet",
    "merge_nearby_edge_vertices",
    "merge_cells",
    "aggregate_cells",
    "remove_duplicate_edges",
    "remove_dangling_edges",
    "unify_linear_edges",
    "cleanup_edges",

    # Meshes
    "Mesh",
    "get_faces",
    "triangulate_faces",
    "edges_to_mesh",
    "plane_quadric",
    "quadric_error",
    "quadric_det",
    "simplify",

    # Pipeline
    "trace_cell_contours",
    "trace_cell_edges",
    "trace_all",
    "trace_mesh",
]
