"""Contour detection: locating sharp surface features inside one cell.

A contour is emitted for every pair of neighbouring sub-samples whose normals
differ.  Pairs are taken along each grid axis and along six cell-corner
diagonals, which cover features sitting exactly on a cell corner that axis
differencing misses.

The per-pair work (midpoint snap, local normal, weighted blend, crease
projection, second snap) is done on whole batches of pairs at once, so the
distance function is called a handful of times per axis rather than once per
pair.  The crease projection places each feature point where the two
samples' tangent planes meet, so contours of one straight feature are
collinear rather than scattered over the faces either side of it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ._logging import log_once
from ._math import (
    _Array,
    _DistanceFunction,
    _crease_points,
    _dot,
    _gradient_normals,
    _length,
    _snap_to_surface,
    _variance,
)
from .config import SurfacingConfig
from .sampling import CellSample, SubSample

_LOGGER = logging.getLogger(__name__)

# Cell-corner diagonals, as the corner each one starts from.
_CORNER_BASES: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 0),
    (1, 1, 1),
    (0, 1, 1),
    (1, 0, 1),
    (1, 0, 0),
    (1, 1, 0),
)

_DEGENERATE_CROSS = 1e-12


@dataclass(frozen=True, eq=False)
class Contour:
    """A sharp-feature crossing between two neighbouring sub-samples.

    Attributes
    ----------
    strength:
        Normal variance ``(1 - nA.nB) / 2``; 0 for equal normals, 1 for
        opposite ones.
    direction:
        Unit ``nA x nB``, the direction the feature runs in.
    position:
        Feature point on the surface.
    normal:
        Surface normal at *position*.
    first_sample, second_sample:
        The two samples that were compared.
    """

    strength: float
    direction: np.ndarray
    position: np.ndarray
    normal: np.ndarray
    first_sample: SubSample
    second_sample: SubSample


Contours = List[Contour]


# ===========================================================================
# Pairwise differencing
# ===========================================================================

def _diff_arrays(
    distance: _DistanceFunction,
    config: SurfacingConfig,
    pa: _Array,
    na: _Array,
    pb: _Array,
    nb: _Array,
):
    """Vectorised core of :func:`diff_samples`.

    All inputs are ``(N, 3)``.  Returns ``(keep, strength, direction,
    position, normal)`` where *keep* is an ``(N,)`` mask and the remaining
    arrays only hold the kept rows.
    """
    calibration = config.calibration
    eps = calibration.normal_epsilon
    differ = np.any(na != nb, axis=-1)

    cross = np.cross(na, nb)
    cross_length = _length(cross)
    degenerate = differ & (cross_length <= _DEGENERATE_CROSS)
    if np.any(degenerate):
        log_once(
            _LOGGER, "contours.degenerate-cross", logging.WARNING,
            "Skipping sample pairs with opposite normals; their feature direction is undefined",
        )
    keep = differ & ~degenerate
    if not np.any(keep):
        empty = np.empty((0, 3))
        return keep, np.empty(0), empty, empty, empty

    na, nb, pa, pb = na[keep], nb[keep], pa[keep], pb[keep]
    direction = cross[keep] / cross_length[keep, None]
    strength = _variance(na, nb)

    middle = _snap_to_surface(
        distance, (pa + pb) / 2.0, config.snap_tolerance, calibration.snap_steps, eps
    )
    local = _gradient_normals(distance, middle, eps)
    strength_a = _variance(local, na)
    strength_b = _variance(local, nb)
    scale = strength_a + strength_b
    # zero scale: neither side diverges from the local normal, use the midpoint
    weight_a = np.where(scale > 0.0, strength_a / np.where(scale > 0.0, scale, 1.0), 0.5)
    blended = pa * weight_a[:, None] + pb * (1.0 - weight_a)[:, None]

    # pull onto the crease of the two tangent planes unless it lies too far off
    crease = _crease_points(pa, na, pb, nb, blended)
    near = _length(crease - blended) <= config.distance_tolerance
    blended = np.where(near[:, None], crease, blended)

    position = _snap_to_surface(
        distance, blended, config.snap_tolerance, calibration.snap_steps, eps
    )
    normal = _gradient_normals(distance, position, eps)
    return keep, strength, direction, position, normal


def diff_samples(
    distance: _DistanceFunction,
    config: SurfacingConfig,
    a: Optional[SubSample],
    b: Optional[SubSample],
) -> Optional[Contour]:
    """Compare two sub-samples and return the contour between them, if any.

    Returns ``None`` when either sample is missing or both normals are
    identical.
    """
    if a is None or b is None:
        return None
    keep, strength, direction, position, normal = _diff_arrays(
        distance,
        config,
        np.asarray(a.position, dtype=np.float64)[None],
        np.asarray(a.normal, dtype=np.float64)[None],
        np.asarray(b.position, dtype=np.float64)[None],
        np.asarray(b.normal, dtype=np.float64)[None],
    )
    if not keep[0]:
        return None
    return Contour(
        strength=float(strength[0]),
        direction=direction[0],
        position=position[0],
        normal=normal[0],
        first_sample=a,
        second_sample=b,
    )


def diff_sample_indices(
    distance: _DistanceFunction,
    config: SurfacingConfig,
    cell: CellSample,
    first: np.ndarray,
    second: np.ndarray,
) -> Contours:
    """Contours for every pair ``(first[i], second[i])`` of *cell* samples."""
    first = np.asarray(first, dtype=np.intp)
    second = np.asarray(second, dtype=np.intp)
    both = cell.present[first] & cell.present[second]
    first, second = first[both], second[both]
    if not first.size:
        return []

    keep, strength, direction, position, normal = _diff_arrays(
        distance,
        config,
        cell.positions[first],
        cell.normals[first],
        cell.positions[second],
        cell.normals[second],
    )
    first, second = first[keep], second[keep]
    return [
        Contour(
            strength=float(strength[i]),
            direction=direction[i],
            position=position[i],
            normal=normal[i],
            first_sample=cell[int(first[i])],
            second_sample=cell[int(second[i])],
        )
        for i in range(first.size)
    ]


# ===========================================================================
# Cell contour grids
# ===========================================================================

def axis_pair_indices(grid_length: int, axis: int) -> Tuple[np.ndarray, np.ndarray]:
    """Flat sample indices of every neighbouring pair along *axis*.

    Along the differencing axis the range covers the padding samples on both
    sides; across it only the cell's own samples are used, so each pair is
    owned by exactly one cell.
    """
    step = np.zeros(3, dtype=int)
    step[axis] = 1
    sub_lengths = (grid_length - 2) + step
    start = 1 - step
    ranges = [np.arange(start[i], start[i] + sub_lengths[i]) for i in range(3)]
    zs, ys, xs = np.meshgrid(ranges[2], ranges[1], ranges[0], indexing="ij")
    first = (xs + ys * grid_length + zs * grid_length * grid_length).ravel()
    offset = grid_length ** axis
    return first, first + offset


def corner_pair_indices(grid_length: int) -> Tuple[np.ndarray, np.ndarray]:
    """Flat sample indices of the six cell-corner diagonal pairs."""
    bases = np.array(_CORNER_BASES, dtype=int)
    a = bases * (grid_length - 3) + 1
    c = a + bases + bases - 1
    weights = np.array([1, grid_length, grid_length * grid_length])
    return a @ weights, c @ weights


def new_contour_grid(distance: _DistanceFunction, config: SurfacingConfig, cell: CellSample) -> Contours:
    """All contours of one cell: x, y and z pairs followed by the corner diagonals."""
    length = cell.grid_length
    contours: Contours = []
    for axis in range(3):
        first, second = axis_pair_indices(length, axis)
        contours.extend(diff_sample_indices(distance, config, cell, first, second))
    first, second = corner_pair_indices(length)
    contours.extend(diff_sample_indices(distance, config, cell, first, second))
    return contours


def isolate_contours(tolerance: float, contours: Sequence[Contour]) -> Contours:
    """Keep only contours stronger than *tolerance*."""
    return [c for c in contours if c.strength > tolerance]


# ===========================================================================
# Pivot separation
# ===========================================================================

def group_duplicate_contours(tolerance: float, contours: Sequence[Contour]) -> List[Contours]:
    """Group contours lying within *tolerance* of an earlier, ungrouped one.

    Each group starts with its seed; singleton contours form no group.
    """
    remaining = list(contours)
    groups: List[Contours] = []
    while remaining:
        seed = remaining[0]
        rest = remaining[1:]
        if rest:
            positions = np.array([c.position for c in rest])
            near = _length(positions - seed.position) < tolerance
        else:
            near = np.zeros(0, dtype=bool)
        matches = [c for c, hit in zip(rest, near) if hit]
        if matches:
            groups.append([seed] + matches)
        remaining = [c for c, hit in zip(rest, near) if not hit]
    return groups


def split_pivot_contours(
    tolerance: float,
    contours: Sequence[Contour],
    alignment: float = 0.82,
) -> Tuple[Contours, Contours]:
    """Separate coincident contours into pure duplicates and pivots.

    A group whose members all run along its first member's direction is a
    pure duplicate: only the first member is kept.  A group with mixed
    directions is where several feature lines cross; its direction is
    unreliable, so the whole group leaves the main list and its first
    member is returned as a pivot.

    Returns
    -------
    tuple
        ``(main, pivots)``.
    """
    removed = set()
    pivots: Contours = []
    for group in group_duplicate_contours(tolerance, contours):
        head = group[0]
        pure = all(abs(float(_dot(head.direction, other.direction))) > alignment for other in group[1:])
        if pure:
            removed.update(id(c) for c in group[1:])
        else:
            removed.update(id(c) for c in group)
            pivots.append(head)
    main = [c for c in contours if id(c) not in removed]
    return main, pivots
