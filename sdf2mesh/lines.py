"""Line aggregation: grouping contours into straight feature lines.

Contours are consumed greedily.  The first unprocessed contour seeds a line
and collects every remaining contour that runs the same way and sits on the
infinite line through the seed, plus any pivot lying on that line.  A seed
that collects nothing becomes a pivot itself.  Short lines are too weak to
stand alone; each of their contours joins the strong line whose end is
nearest, where it can only lengthen that line.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ._math import _dot, _length, _line_distances, _line_intersects_sphere, _normalize
from .config import SurfacingConfig
from .contours import Contour, Contours
from .edges import Edge
from .errors import InsufficientSamples

_LOGGER = logging.getLogger(__name__)

LineAggregate = List[Contour]
LineAggregates = List[LineAggregate]


def contours_align(distance_tolerance: float, base: Contour, other: Contour) -> bool:
    """True when *other* lies within tolerance of the line through *base*."""
    return _line_intersects_sphere(base.position, base.direction, other.position, distance_tolerance)


def contours_align_strong(
    distance_tolerance: float,
    base: Contour,
    other: Contour,
    alignment: float = 0.9,
) -> bool:
    return (
        abs(float(_dot(base.direction, other.direction))) > alignment
        and contours_align(distance_tolerance, base, other)
    )


def _on_line(distance_tolerance: float, base: Contour, candidates: Sequence[Contour]) -> np.ndarray:
    if not candidates:
        return np.zeros(0, dtype=bool)
    positions = np.array([c.position for c in candidates])
    return _line_distances(base.position, base.direction, positions) <= distance_tolerance


def detect_lines(
    distance_tolerance: float,
    contours: Sequence[Contour],
    pivots: Sequence[Contour] = (),
    alignment: float = 0.9,
) -> LineAggregates:
    """Greedily group *contours* into lines.

    A contour consumed by one line never seeds or joins another.
    """
    remaining = list(contours)
    pivots = list(pivots)
    lines: LineAggregates = []

    while remaining:
        base = remaining.pop(0)
        on_line = _on_line(distance_tolerance, base, remaining)
        if remaining:
            directions = np.array([c.direction for c in remaining])
            aligned = np.abs(_dot(directions, base.direction)) > alignment
            strong = on_line & aligned
        else:
            strong = on_line
        matches = [c for c, hit in zip(remaining, strong) if hit]
        pivot_matches = [c for c, hit in zip(pivots, _on_line(distance_tolerance, base, pivots)) if hit]
        remaining = [c for c, hit in zip(remaining, strong) if not hit]

        if matches or pivot_matches:
            lines.append([base] + matches + pivot_matches)
        else:
            pivots.append(base)

    return lines


def _line_axis(line: Sequence[Contour], alignment: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Origin, unit direction and member positions of *line*.

    Only members running along the seed contour (``|dot| > alignment``)
    steer the axis; pivots and attached weak contours just extend it.
    """
    seed = line[0]
    directions = np.array([c.direction for c in line])
    positions = np.array([c.position for c in line])
    dots = _dot(directions, seed.direction)
    aligned = np.abs(dots) > alignment
    aligned[0] = True
    direction = _normalize((directions[aligned] * np.sign(dots[aligned])[:, None]).sum(axis=0))
    return positions[aligned].mean(axis=0), direction, positions


def line_endpoints(line: Sequence[Contour], alignment: float = 0.9) -> np.ndarray:
    """``(2, 3)`` ends of *line*: its members' extent along the line axis."""
    origin, direction, positions = _line_axis(line, alignment)
    t = _dot(positions - origin, direction)
    return np.stack([origin + direction * t.min(), origin + direction * t.max()])


def incorporate_weak_lines(weak: Sequence[Contour], strong: LineAggregates) -> LineAggregates:
    """Attach each weak contour to the strong line with the nearest endpoint.

    Ties go to the earlier line.  Endpoints are those of the strong lines
    before anything is attached, so the result does not depend on the order
    of *weak*.  With no strong lines the weak contours are dropped.
    """
    result = [list(line) for line in strong]
    if not result or not weak:
        return result
    ends = np.array([line_endpoints(line) for line in strong])
    for contour in weak:
        gaps = _length(ends - contour.position).min(axis=1)
        result[int(np.argmin(gaps))].append(contour)
    return result


def detect_edges(
    config: SurfacingConfig,
    contours: Sequence[Contour],
    pivots: Sequence[Contour] = (),
) -> LineAggregates:
    """Aggregate one cell's contours into strong lines.

    Lines with more than ``strong_line_size`` members are kept; the members
    of the rest are redistributed onto the kept lines.
    """
    calibration = config.calibration
    tolerance = config.distance_tolerance
    lines = detect_lines(tolerance, contours, pivots, calibration.strong_alignment)
    strong = [line for line in lines if len(line) > calibration.strong_line_size]
    weak = [c for line in lines if len(line) <= calibration.strong_line_size for c in line]
    _LOGGER.debug(
        "%d contours formed %d lines (%d strong)", len(contours), len(lines), len(strong)
    )
    return incorporate_weak_lines(weak, strong)


def line_aggregate_to_edge(line: Sequence[Contour], alignment: float = 0.9) -> Optional[Edge]:
    """Edge spanning *line* along its axis.

    The axis runs through the centroid of the members aligned with the seed
    contour, in their mean direction.  The edge covers every member's
    projection onto it, so members scattered either side of the feature
    don't tilt it.  Returns ``None`` when the extent is zero.

    Raises
    ------
    InsufficientSamples
        If *line* has fewer than two contours.
    """
    if len(line) < 2:
        raise InsufficientSamples(len(line))
    first, second = line_endpoints(line, alignment)
    if float(_length(second - first)) == 0.0:
        return None
    return Edge(first, second)


def lines_to_edges(lines: Sequence[Sequence[Contour]]) -> List[Edge]:
    """Convert every line to an edge, skipping lines that cannot form one."""
    edges: List[Edge] = []
    for line in lines:
        try:
            edge = line_aggregate_to_edge(line)
        except InsufficientSamples as exc:
            _LOGGER.warning("Skipping line: %s", exc)
            continue
        if edge is not None:
            edges.append(edge)
    return edges
