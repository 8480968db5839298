"""Configuration and grid-bounds value types for the surfacing pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from math import sqrt
from typing import Tuple

import numpy as np

_Vector3i = Tuple[int, int, int]


# ===========================================================================
# Calibration constants
# ===========================================================================

@dataclass(frozen=True)
class Calibration:
    """Empirically tuned thresholds used across the pipeline.

    Attributes
    ----------
    strong_alignment:
        ``|dot|`` of two contour directions above which they may share a line.
    merge_alignment:
        ``|dot|`` of two edge directions above which edges meeting at a
        vertex are unified into one.
    pivot_alignment:
        ``|dot|`` above which a group of coincident contours counts as pure
        duplicates rather than a pivot.
    strong_line_size:
        Lines with more members than this are strong; the rest are weak and
        get redistributed onto strong lines.
    snap_steps:
        Iteration cap for projecting points onto the surface.
    snap_tolerance_scale:
        Surface-snap tolerance as a fraction of the sub-cell step.
    distance_tolerance_scale:
        Contour/line proximity tolerance in sub-cell steps.
    merge_distance_scale:
        Cross-cell clump tolerance in sub-cell steps.
    boundary_range_scale:
        Width of the band either side of a cell boundary searched for clumps,
        in sub-cell steps.
    normal_epsilon:
        Central-difference step for gradient normals.
    """

    strong_alignment: float = 0.9
    merge_alignment: float = 0.8
    pivot_alignment: float = 0.82
    strong_line_size: int = 3
    snap_steps: int = 6
    snap_tolerance_scale: float = 0.09
    distance_tolerance_scale: float = 2.0
    merge_distance_scale: float = 2.5
    boundary_range_scale: float = 2.0
    normal_epsilon: float = 1e-4


# ===========================================================================
# Surfacing configuration
# ===========================================================================

@dataclass(frozen=True)
class SurfacingConfig:
    """Sampling resolution and tolerances for one surfacing run.

    Parameters
    ----------
    tolerance:
        Minimum contour strength (normal variance) kept as a feature.
    cell_size:
        Edge length of one grid cell.
    sub_cells:
        Sub-samples per axis per cell.
    separate_pivots:
        Split coincident contours into pure duplicates and pivots before
        line aggregation.
    calibration:
        Tuned thresholds; see :class:`Calibration`.
    """

    tolerance: float = 0.01
    cell_size: float = 1.0
    sub_cells: int = 4
    separate_pivots: bool = False
    calibration: Calibration = field(default_factory=Calibration)

    def __post_init__(self) -> None:
        if not self.cell_size > 0.0:
            raise ValueError(f"cell_size must be positive, got {self.cell_size!r}")
        if not isinstance(self.sub_cells, (int, np.integer)) or self.sub_cells < 2:
            raise ValueError(f"sub_cells must be an integer >= 2, got {self.sub_cells!r}")
        if self.tolerance < 0.0:
            raise ValueError(f"tolerance must be non-negative, got {self.tolerance!r}")

    @property
    def sub_step(self) -> float:
        return self.cell_size / self.sub_cells

    @property
    def grid_length(self) -> int:
        """Samples per axis in one cell grid, including one padding sample each side."""
        return self.sub_cells + 2

    @property
    def distance_tolerance(self) -> float:
        return self.sub_step * self.calibration.distance_tolerance_scale

    @property
    def snap_tolerance(self) -> float:
        return self.sub_step * self.calibration.snap_tolerance_scale

    @property
    def max_cell_range(self) -> float:
        """Half the cell diagonal; a cell farther than this from the surface is empty."""
        return sqrt(3.0) * self.cell_size / 2.0

    @property
    def sub_cell_range(self) -> float:
        return self.max_cell_range / (self.sub_cells / 2.0)


@dataclass(frozen=True)
class MergeConfig:
    """Parameters of one cell-merge pass along a single axis.

    ``alignment`` is the ``|dot|`` above which two edges meeting at a clumped
    vertex are unified into one.
    """

    distance_tolerance: float
    axis: int
    boundary_range: float
    cell_size: float
    alignment: float = 0.8

    @classmethod
    def from_surfacing(cls, config: SurfacingConfig, axis: int = 0) -> MergeConfig:
        calibration = config.calibration
        return cls(
            distance_tolerance=config.sub_step * calibration.merge_distance_scale,
            axis=axis,
            boundary_range=config.sub_step * calibration.boundary_range_scale,
            cell_size=config.cell_size,
            alignment=calibration.merge_alignment,
        )


# ===========================================================================
# Bounds
# ===========================================================================

@dataclass(frozen=True)
class DecimalBounds:
    """Axis-aligned box in world units."""

    start: Tuple[float, float, float]
    end: Tuple[float, float, float]

    def contains(self, position) -> bool:
        p = np.asarray(position, dtype=float)
        return bool(np.all(p >= self.start) and np.all(p < self.end))


@dataclass(frozen=True)
class GridBounds:
    """Integer cell range ``[start, end)`` on each axis.

    Cells are enumerated in row-major order with x varying fastest, then y,
    then z.
    """

    start: _Vector3i
    end: _Vector3i

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", tuple(int(v) for v in self.start))
        object.__setattr__(self, "end", tuple(int(v) for v in self.end))
        if any(e < s for s, e in zip(self.start, self.end)):
            raise ValueError(f"GridBounds end {self.end} is before start {self.start}")

    def pad(self, amount: int) -> GridBounds:
        """Grow both ends by *amount* cells on every axis."""
        return GridBounds(
            start=tuple(v - amount for v in self.start),
            end=tuple(v + amount for v in self.end),
        )

    @property
    def dimensions(self) -> _Vector3i:
        return tuple(e - s for s, e in zip(self.start, self.end))

    @property
    def cell_count(self) -> int:
        dx, dy, dz = self.dimensions
        return dx * dy * dz

    def cell_start(self, index: int) -> _Vector3i:
        """Integer grid coordinates of the cell at row-major *index*."""
        dx, dy, _ = self.dimensions
        slice_size = dx * dy
        z, remainder = divmod(index, slice_size)
        y, x = divmod(remainder, dx)
        return (self.start[0] + x, self.start[1] + y, self.start[2] + z)

    def to_decimal(self, cell_size: float) -> DecimalBounds:
        return DecimalBounds(
            start=tuple(v * cell_size for v in self.start),
            end=tuple(v * cell_size for v in self.end),
        )
