"""Exception types raised by :mod:`sdf2mesh`.

Precondition and unreachable-surface failures are recoverable: the per-cell
tracer logs them and treats the offending cell or line as empty.
Cancellation always propagates to the caller.
"""

from __future__ import annotations

from typing import Optional, Sequence


class SurfacingError(RuntimeError):
    """Base class for every error raised by the surfacing pipeline."""


class InsufficientSamples(SurfacingError):
    """A line aggregate had too few contours to be turned into an edge."""

    def __init__(self, count: int, required: int = 2) -> None:
        super().__init__(
            f"A line aggregate needs at least {required} contours to form an edge, got {count}"
        )
        self.count = count
        self.required = required


class SurfaceNotFound(SurfacingError):
    """A ray marched from *origin* along *direction* never reached the surface."""

    def __init__(
        self,
        message: str,
        *,
        origin: Optional[Sequence[float]] = None,
        direction: Optional[Sequence[float]] = None,
    ) -> None:
        super().__init__(message)
        self.origin = None if origin is None else tuple(float(v) for v in origin)
        self.direction = None if direction is None else tuple(float(v) for v in direction)


class SurfacingCancelled(SurfacingError):
    """The caller's ``cancel()`` callback asked the pipeline to stop."""
