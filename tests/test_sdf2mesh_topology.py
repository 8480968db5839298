"""Tests for sdf2mesh/topology.py: duplicate, dangling and collinear cleanup."""

import numpy as np
import numpy.testing as npt

from sdf2mesh import (
    EdgeSet,
    cleanup_edges,
    remove_dangling_edges,
    remove_duplicate_edges,
    unify_linear_edges,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _segment_set(edge_set):
    return {
        tuple(sorted((tuple(np.round(a, 9)), tuple(np.round(b, 9)))))
        for a, b in edge_set.segments
    }


def _loop(points):
    """Closed polygon through *points*."""
    return EdgeSet.from_segments(
        [(points[i], points[(i + 1) % len(points)]) for i in range(len(points))]
    )


SQUARE = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)]


# ===========================================================================
# Duplicates
# ===========================================================================

class TestRemoveDuplicateEdges:
    def test_concat_with_itself(self):
        square = _loop(SQUARE)
        cleaned = remove_duplicate_edges(square.concat(square))
        assert len(cleaned) == 4
        assert cleaned.vertex_count == 4
        assert _segment_set(cleaned) == _segment_set(square)

    def test_reversed_and_self_loops(self):
        edges = EdgeSet(
            vertices=[(0, 0, 0), (1, 0, 0), (1, 0, 0)],
            edges=[(0, 1), (1, 0), (2, 0), (1, 2)],
        )
        cleaned = remove_duplicate_edges(edges)
        assert len(cleaned) == 1
        assert cleaned.vertex_count == 2

    def test_keeps_distinct_edges(self):
        square = _loop(SQUARE)
        cleaned = remove_duplicate_edges(square)
        assert _segment_set(cleaned) == _segment_set(square)

    def test_empty(self):
        assert len(remove_duplicate_edges(EdgeSet.empty())) == 0


# ===========================================================================
# Dangling edges
# ===========================================================================

class TestRemoveDanglingEdges:
    def _square_with_tail(self):
        tail = EdgeSet.from_segments([
            [(1.0, 1.0, 0.0), (2.0, 2.0, 0.0)],
            [(2.0, 2.0, 0.0), (3.0, 2.0, 0.0)],
        ])
        return remove_duplicate_edges(_loop(SQUARE).concat(tail))

    def test_tail_is_stripped(self):
        cleaned = remove_dangling_edges(self._square_with_tail())
        assert len(cleaned) == 4
        assert np.all(cleaned.degrees() >= 2)
        assert _segment_set(cleaned) == _segment_set(_loop(SQUARE))

    def test_idempotent(self):
        once = remove_dangling_edges(self._square_with_tail())
        twice = remove_dangling_edges(once)
        npt.assert_array_equal(once.edges, twice.edges)
        npt.assert_array_equal(once.vertices, twice.vertices)

    def test_open_chain_vanishes(self):
        chain = EdgeSet.from_segments([
            [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)],
            [(1.0, 0.0, 0.0), (2.0, 1.0, 0.0)],
            [(2.0, 1.0, 0.0), (3.0, 1.0, 0.0)],
        ])
        cleaned = remove_dangling_edges(chain)
        assert len(cleaned) == 0
        assert cleaned.vertex_count == 0


# ===========================================================================
# Linear unification
# ===========================================================================

class TestUnifyLinearEdges:
    def test_square_midpoints_dissolve(self):
        points = [
            (0.0, 0.0, 0.0), (0.5, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 0.5, 0.0),
            (1.0, 1.0, 0.0), (0.5, 1.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.5, 0.0),
        ]
        unified = unify_linear_edges(_loop(points))
        assert len(unified) == 4
        assert unified.vertex_count == 4
        assert _segment_set(unified) == _segment_set(_loop(SQUARE))

    def test_existing_shortcut_blocks_unification(self):
        edges = EdgeSet.from_segments([
            [(0.0, 0.0, 0.0), (0.5, 0.0, 0.0)],
            [(0.5, 0.0, 0.0), (1.0, 0.0, 0.0)],
            [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0)],
        ])
        assert len(unify_linear_edges(edges)) == 3

    def test_corners_survive(self):
        square = _loop(SQUARE)
        assert _segment_set(unify_linear_edges(square)) == _segment_set(square)


class TestCleanupEdges:
    def test_full_cleanup(self):
        points = [
            (0.0, 0.0, 0.0), (0.5, 0.0, 0.0), (1.0, 0.0, 0.0),
            (1.0, 1.0, 0.0), (0.0, 1.0, 0.0),
        ]
        loop = _loop(points)
        tail = EdgeSet.from_segments([[(1.0, 1.0, 0.0), (2.0, 3.0, 0.0)]])
        messy = loop.concat(loop).concat(tail)

        without_unify = cleanup_edges(messy)
        assert len(without_unify) == 5

        cleaned = cleanup_edges(messy, alignment=0.8)
        assert _segment_set(cleaned) == _segment_set(_loop(SQUARE))
