"""Tests for sdf2mesh/edges.py: the edge arena and nearby-vertex merging."""

import numpy as np
import numpy.testing as npt

from sdf2mesh import Edge, EdgeSet, merge_nearby_edge_vertices
from sdf2mesh.edges import concat_edge_sets, group_nearby_vertices


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _segment_set(edge_set):
    """Edges as a set of unordered endpoint pairs, for order-free comparison."""
    return {
        tuple(sorted((tuple(np.round(a, 9)), tuple(np.round(b, 9)))))
        for a, b in edge_set.segments
    }


# ===========================================================================
# Edge
# ===========================================================================

class TestEdge:
    def test_matches_either_order(self):
        a = Edge((0, 0, 0), (1, 0, 0))
        assert a.matches(Edge((1, 0, 0), (0, 0, 0)))
        assert a.matches(Edge((0, 0, 0), (1, 0, 0)))
        assert not a.matches(Edge((0, 0, 0), (2, 0, 0)))

    def test_matches_within_tolerance(self):
        a = Edge((0, 0, 0), (1, 0, 0))
        near = Edge((1.01, 0, 0), (0, 0.01, 0))
        assert not a.matches(near)
        assert a.matches(near, tolerance=0.02)

    def test_length(self):
        assert Edge((0, 0, 0), (3, 4, 0)).length == 5.0


# ===========================================================================
# EdgeSet
# ===========================================================================

class TestEdgeSet:
    def test_empty(self):
        empty = EdgeSet.empty()
        assert len(empty) == 0
        assert empty.vertex_count == 0
        assert empty.vertices.shape == (0, 3)
        assert empty.edges.shape == (0, 2)

    def test_from_segments_welds_shared_endpoints(self):
        edges = EdgeSet.from_segments([
            [(0, 0, 0), (1, 0, 0)],
            [(1, 0, 0), (1, 1, 0)],
        ])
        assert len(edges) == 2
        assert edges.vertex_count == 3
        npt.assert_array_equal(np.sort(edges.degrees()), [1, 1, 2])

    def test_from_edges(self):
        edges = EdgeSet.from_edges([Edge((0, 0, 0), (1, 0, 0)), Edge((1, 0, 0), (2, 0, 0))])
        assert _segment_set(edges) == {
            ((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)),
            ((1.0, 0.0, 0.0), (2.0, 0.0, 0.0)),
        }

    def test_compact_drops_unused_vertices(self):
        edges = EdgeSet(
            vertices=[(0, 0, 0), (9, 9, 9), (1, 0, 0)],
            edges=[(0, 2)],
        ).compact()
        assert edges.vertex_count == 2
        npt.assert_array_equal(edges.edges, [[0, 1]])
        npt.assert_array_equal(edges.vertices[1], [1, 0, 0])

    def test_concat_offsets_ids(self):
        a = EdgeSet([(0, 0, 0), (1, 0, 0)], [(0, 1)])
        b = EdgeSet([(5, 0, 0), (6, 0, 0)], [(1, 0)])
        both = a.concat(b)
        npt.assert_array_equal(both.edges, [[0, 1], [3, 2]])
        assert both.vertex_count == 4
        assert len(concat_edge_sets([a, b, a])) == 3

    def test_to_edges_round_trip(self):
        original = [Edge((0, 0, 0), (1, 0, 0)), Edge((1, 0, 0), (1, 1, 0))]
        restored = EdgeSet.from_edges(original).to_edges()
        assert len(restored) == 2
        assert any(original[0].matches(e) for e in restored)
        assert any(original[1].matches(e) for e in restored)


# ===========================================================================
# Nearby vertex merging
# ===========================================================================

class TestMergeNearbyEdgeVertices:
    def test_groups_are_transitive(self):
        labels = group_nearby_vertices(0.1, np.array([[0.0, 0, 0], [0.08, 0, 0], [0.16, 0, 0], [1.0, 0, 0]]))
        assert labels[0] == labels[1] == labels[2]
        assert labels[3] != labels[0]

    def test_joins_endpoints_at_centroid(self):
        edges = EdgeSet.from_segments([
            [(0, 0, 0), (1, 0, 0)],
            [(1.05, 0, 0), (2, 0, 0)],
        ])
        merged = merge_nearby_edge_vertices(0.1, edges)
        assert len(merged) == 2
        assert merged.vertex_count == 3
        assert _segment_set(merged) == {
            ((0.0, 0.0, 0.0), (1.025, 0.0, 0.0)),
            ((1.025, 0.0, 0.0), (2.0, 0.0, 0.0)),
        }

    def test_drops_collapsed_edges(self):
        edges = EdgeSet.from_segments([
            [(0, 0, 0), (0.05, 0, 0)],
            [(5, 0, 0), (6, 0, 0)],
        ])
        merged = merge_nearby_edge_vertices(0.1, edges)
        assert len(merged) == 1
        assert merged.vertex_count == 2

    def test_already_merged_is_unchanged(self):
        edges = EdgeSet.from_segments([
            [(0, 0, 0), (1, 0, 0)],
            [(1, 0, 0), (1, 1, 0)],
        ])
        merged = merge_nearby_edge_vertices(0.1, edges)
        npt.assert_array_equal(merged.vertices, edges.vertices)
        npt.assert_array_equal(merged.edges, edges.edges)

    def test_empty(self):
        assert len(merge_nearby_edge_vertices(0.1, EdgeSet.empty())) == 0
