"""Internal vector math shared by the surfacing and decimation stages.

All symbols here are private (underscore-prefixed).  Users should import
only from the public modules of :mod:`sdf2mesh`.

Conventions
-----------
A "point array" has shape ``(..., 3)``.  A distance function maps a point
array to a ``(...)`` array of signed distances, negative inside.  Every helper
here is vectorised over the leading batch dimensions so a whole cell's worth
of points costs one distance call per finite-difference offset.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
import numpy.typing as npt

# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------
_Array = npt.NDArray[np.floating]
_DistanceFunction = Callable[[_Array], _Array]

# Central-difference offsets: +x, -x, +y, -y, +z, -z
_AXES: np.ndarray = np.array(
    [[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0],
     [0.0, 1.0, 0.0], [0.0, -1.0, 0.0],
     [0.0, 0.0, 1.0], [0.0, 0.0, -1.0]],
    dtype=np.float64,
)


# ===========================================================================
# Vector helpers
# ===========================================================================

def _length(v: _Array) -> _Array:
    """Euclidean length along the last axis."""
    return np.linalg.norm(v, axis=-1)


def _dot(a: _Array, b: _Array) -> _Array:
    """Dot product along the last axis."""
    return np.sum(a * b, axis=-1)


def _normalize(v: _Array) -> _Array:
    """Unit vectors along the last axis; zero-length rows stay zero."""
    v = np.asarray(v, dtype=np.float64)
    norms = np.linalg.norm(v, axis=-1, keepdims=True)
    norms = np.where(norms == 0.0, 1.0, norms)
    return v / norms


def _variance(a: _Array, b: _Array) -> _Array:
    """Normal variance ``(1 - a.b) / 2``: 0 for equal normals, 1 for opposite."""
    return (1.0 - _dot(a, b)) / 2.0


# ===========================================================================
# Distance-field helpers
# ===========================================================================

def _distance_at(distance: _DistanceFunction, points: _Array) -> _Array:
    """Evaluate *distance* on *points* and return a float64 array of shape ``(...)``."""
    p = np.asarray(points, dtype=np.float64)
    return np.asarray(distance(p), dtype=np.float64).reshape(p.shape[:-1])


def _gradient_normals(distance: _DistanceFunction, points: _Array, eps: float = 1e-4) -> _Array:
    """Unit surface normals at *points* from central differences of *distance*.

    All six offsets are stacked into one ``(6, ..., 3)`` batch so the distance
    function is called exactly once.
    """
    p = np.asarray(points, dtype=np.float64)
    offsets = _AXES.reshape((6,) + (1,) * (p.ndim - 1) + (3,)) * eps
    samples = _distance_at(distance, p[None, ...] + offsets)
    grad = np.stack(
        [samples[0] - samples[1], samples[2] - samples[3], samples[4] - samples[5]],
        axis=-1,
    ) / (2.0 * eps)
    return _normalize(grad)


def _snap_to_surface(
    distance: _DistanceFunction,
    points: _Array,
    tolerance: float,
    max_steps: int,
    eps: float = 1e-4,
) -> _Array:
    """Project *points* onto the iso-surface by fixed-point iteration.

    Each step applies ``p <- p - normal(p) * distance(p)`` to the points whose
    ``|distance|`` is still above *tolerance*.  Stops after *max_steps*
    regardless, so the result is only as close as the field allows.
    """
    p = np.array(points, dtype=np.float64, copy=True)
    flat = p.reshape(-1, 3)
    for _ in range(max_steps):
        d = _distance_at(distance, flat)
        active = np.abs(d) > tolerance
        if not np.any(active):
            break
        normals = _gradient_normals(distance, flat[active], eps)
        flat[active] -= normals * d[active, None]
    return flat.reshape(p.shape)


# ===========================================================================
# Line tests
# ===========================================================================

def _line_distances(origin: _Array, direction: _Array, points: _Array) -> _Array:
    """Distance from each of *points* to the infinite line through *origin*.

    *direction* must be a unit vector.
    """
    offset = np.asarray(points, dtype=np.float64) - origin
    return _length(np.cross(offset, direction))


def _line_intersects_sphere(origin: _Array, direction: _Array, center: _Array, radius: float) -> bool:
    """True when the infinite line through *origin* along *direction* passes
    within *radius* of *center*."""
    return bool(_line_distances(origin, _normalize(direction), center) <= radius)


def _crease_points(pa: _Array, na: _Array, pb: _Array, nb: _Array, points: _Array) -> _Array:
    """Closest point to each of *points* on the crease of two tangent planes.

    Row ``i`` of the result lies on the plane through ``pa[i]`` with normal
    ``na[i]`` and on the plane through ``pb[i]`` with normal ``nb[i]``.
    Normals must be unit length and not parallel.
    """
    c = _dot(na, nb)
    det = 1.0 - c * c
    ra = _dot(na, pa - points)
    rb = _dot(nb, pb - points)
    alpha = (ra - c * rb) / det
    beta = (rb - c * ra) / det
    return points + na * alpha[..., None] + nb * beta[..., None]
