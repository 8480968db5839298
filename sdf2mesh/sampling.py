"""Grid sampling of a distance field.

Each grid cell is covered by a ``grid_length**3`` lattice of sub-samples
placed at sub-cell centres, with one padding sample beyond each face of the
cell so features lying on a cell boundary are seen by both neighbours.
Sub-samples whose raw distance exceeds ``sub_cell_range`` are dropped; the
rest are projected onto the surface and carry the surface normal.

Also hosts the two probes that locate a surface before sampling:
:func:`get_scene_grid_bounds` and :func:`find_surfacing_start`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import ceil, floor
from typing import Callable, List, Optional, Sequence

import numpy as np

from ._math import (
    _Array,
    _DistanceFunction,
    _distance_at,
    _gradient_normals,
    _normalize,
    _snap_to_surface,
)
from .config import DecimalBounds, GridBounds, SurfacingConfig
from .errors import SurfaceNotFound

_LOGGER = logging.getLogger(__name__)

DistanceFunction = _DistanceFunction


# ===========================================================================
# Sample types
# ===========================================================================

@dataclass(frozen=True, eq=False)
class SubSample:
    """One sub-cell sample that straddles the surface.

    Attributes
    ----------
    position:
        ``(3,)`` point projected onto the surface.
    center:
        ``(3,)`` lattice point the sample was taken at.
    normal:
        ``(3,)`` unit gradient at *center*.
    distance:
        Raw signed distance at *center*.
    """

    position: np.ndarray
    center: np.ndarray
    normal: np.ndarray
    distance: float


@dataclass(frozen=True, eq=False)
class CellSample:
    """All sub-samples of one cell, stored as flat arrays.

    Index ``i`` of every array is the lattice point
    ``x + y * grid_length + z * grid_length**2``.  Entries where ``present``
    is False carry NaN positions and normals.
    """

    center: np.ndarray
    grid_length: int
    positions: np.ndarray
    centers: np.ndarray
    normals: np.ndarray
    distances: np.ndarray
    present: np.ndarray

    def __len__(self) -> int:
        return int(self.present.shape[0])

    def __getitem__(self, index: int) -> Optional[SubSample]:
        if not self.present[index]:
            return None
        return SubSample(
            position=self.positions[index],
            center=self.centers[index],
            normal=self.normals[index],
            distance=float(self.distances[index]),
        )

    @property
    def samples(self) -> List[Optional[SubSample]]:
        """The sparse sample array as a list of optional :class:`SubSample`."""
        return [self[i] for i in range(len(self))]

    @property
    def sample_count(self) -> int:
        return int(np.count_nonzero(self.present))


# ===========================================================================
# Sampling
# ===========================================================================

def _lattice(start: _Array, step: float, dimensions: Sequence[int]) -> _Array:
    """``(N, 3)`` lattice points, x fastest then y then z."""
    nx, ny, nz = dimensions
    zs, ys, xs = np.meshgrid(
        np.arange(nz, dtype=np.float64),
        np.arange(ny, dtype=np.float64),
        np.arange(nx, dtype=np.float64),
        indexing="ij",
    )
    offsets = np.stack([xs, ys, zs], axis=-1).reshape(-1, 3) * step
    return np.asarray(start, dtype=np.float64) + offsets


def sample_cell_grid(
    distance: DistanceFunction,
    config: SurfacingConfig,
    center: _Array,
    start: _Array,
    dimensions: Sequence[int],
    sub_cell_range: float,
) -> CellSample:
    """Sample *distance* on a lattice beginning at *start*.

    Parameters
    ----------
    distance:
        Vectorised distance function.
    config:
        Supplies the sub-cell step, snap tolerance and calibration.
    center:
        ``(3,)`` cell centre, kept for reference.
    start:
        ``(3,)`` first lattice point.
    dimensions:
        ``(nx, ny, nz)`` lattice points per axis.
    sub_cell_range:
        Samples farther than this from the surface are dropped.

    Returns
    -------
    CellSample
    """
    calibration = config.calibration
    centers = _lattice(start, config.sub_step, dimensions)
    distances = _distance_at(distance, centers)
    present = np.abs(distances) <= sub_cell_range

    positions = np.full_like(centers, np.nan)
    normals = np.full_like(centers, np.nan)
    if np.any(present):
        kept = centers[present]
        normals[present] = _gradient_normals(distance, kept, calibration.normal_epsilon)
        positions[present] = _snap_to_surface(
            distance,
            kept,
            config.snap_tolerance,
            calibration.snap_steps,
            calibration.normal_epsilon,
        )

    return CellSample(
        center=np.asarray(center, dtype=np.float64),
        grid_length=int(dimensions[0]),
        positions=positions,
        centers=centers,
        normals=normals,
        distances=distances,
        present=present,
    )


def get_active_cells(distance: DistanceFunction, config: SurfacingConfig, bounds: GridBounds) -> np.ndarray:
    """``(cell_count,)`` bool mask of cells whose centre is within half a
    cell diagonal of the surface."""
    half = config.cell_size / 2.0
    starts = np.array(
        [bounds.cell_start(i) for i in range(bounds.cell_count)], dtype=np.float64
    ).reshape(-1, 3)
    centers = starts * config.cell_size + half
    return np.abs(_distance_at(distance, centers)) <= config.max_cell_range


def sample_cell_grids(
    distance: DistanceFunction,
    config: SurfacingConfig,
    bounds: GridBounds,
) -> Callable[[int], Optional[CellSample]]:
    """Return a function sampling the cell at a row-major index of *bounds*.

    One coarse distance sample per cell is taken up front; cells whose centre
    is farther from the surface than half the cell diagonal return ``None``
    without generating sub-samples.
    """
    active = get_active_cells(distance, config, bounds)
    half = config.cell_size / 2.0
    step = config.sub_step
    length = config.grid_length
    _LOGGER.debug(
        "Sampling %d of %d cells (sub_cells=%d)",
        int(np.count_nonzero(active)), bounds.cell_count, config.sub_cells,
    )

    def _sample(index: int) -> Optional[CellSample]:
        if not active[index]:
            return None
        origin = np.asarray(bounds.cell_start(index), dtype=np.float64) * config.cell_size
        # first sub-cell centre sits half a step outside the cell
        start = origin - step / 2.0
        return sample_cell_grid(
            distance,
            config,
            center=origin + half,
            start=start,
            dimensions=(length, length, length),
            sub_cell_range=config.sub_cell_range,
        )

    return _sample


# ===========================================================================
# Surface probes
# ===========================================================================

_PROBE_DISTANCE = 100000.0


def get_scene_decimal_bounds(distance: DistanceFunction) -> DecimalBounds:
    """Estimate the axis-aligned extent of the solid from six far probes.

    The estimate can undershoot for shapes whose distance isn't exact along
    the probe axes (rounded or rotated solids); pad the grid bounds if so.
    """
    axes = np.eye(3)
    probes = np.concatenate([-axes, axes]) * _PROBE_DISTANCE
    d = _distance_at(distance, probes)
    extent = _PROBE_DISTANCE - d
    return DecimalBounds(
        start=tuple(float(v) for v in -extent[:3]),
        end=tuple(float(v) for v in extent[3:]),
    )


def get_scene_grid_bounds(distance: DistanceFunction, cell_size: float) -> GridBounds:
    """Grid bounds covering :func:`get_scene_decimal_bounds`, rounded outward."""
    decimal = get_scene_decimal_bounds(distance)
    return GridBounds(
        start=tuple(floor(v / cell_size) for v in decimal.start),
        end=tuple(ceil(v / cell_size) for v in decimal.end),
    )


def find_surfacing_start(
    distance: DistanceFunction,
    tolerance: float,
    origin: Sequence[float],
    direction: Sequence[float],
    *,
    max_distance: float = 1.0e4,
    max_steps: int = 256,
) -> np.ndarray:
    """Sphere-trace from *origin* along *direction* to the surface.

    Returns
    -------
    numpy.ndarray
        ``(3,)`` point with ``|distance| < tolerance``.

    Raises
    ------
    SurfaceNotFound
        If the march overshoots into the solid past ``-tolerance``, travels
        farther than *max_distance*, or runs out of steps.
    """
    o = np.asarray(origin, dtype=np.float64)
    dvec = _normalize(np.asarray(direction, dtype=np.float64))
    if not np.any(dvec):
        raise SurfaceNotFound("Ray direction has zero length", origin=o, direction=dvec)

    travelled = 0.0
    for _ in range(max_steps):
        position = o + dvec * travelled
        d = float(_distance_at(distance, position))
        if abs(d) < tolerance:
            return position
        if d < -tolerance:
            raise SurfaceNotFound(
                f"Ray started or ended inside the solid (distance {d:.6g})",
                origin=o, direction=dvec,
            )
        travelled += d
        if travelled > max_distance:
            break

    raise SurfaceNotFound(
        f"Ray did not reach the surface within {max_distance:g} units",
        origin=o, direction=dvec,
    )
