"""Tests for sdf2mesh/faces.py: face recovery and triangulation."""

import itertools

import numpy as np
import numpy.testing as npt

from sdf2mesh import EdgeSet, Mesh, edges_to_mesh, get_faces, triangulate_faces
from sdf2mesh.faces import sort_neighbours, vertex_normals, _neighbours


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _box(half):
    b = np.asarray(half, dtype=float)

    def sdf(p):
        q = np.abs(p) - b
        return np.linalg.norm(np.maximum(q, 0.0), axis=-1) + np.minimum(np.max(q, axis=-1), 0.0)
    return sdf


def _cube_edges():
    """The twelve edges of the cube with corners at +-1."""
    corners = [np.array(c, dtype=float) for c in itertools.product((-1.0, 1.0), repeat=3)]
    segments = [
        (a, b) for a, b in itertools.combinations(corners, 2)
        if np.count_nonzero(a != b) == 1
    ]
    return EdgeSet.from_segments(segments)


CUBE_SDF = _box((1.0, 1.0, 1.0))


# ===========================================================================
# Neighbour ordering
# ===========================================================================

class TestSortNeighbours:
    VERTICES = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [-1.0, -1.0, 0.0],
    ])

    def test_counter_clockwise(self):
        ordered = sort_neighbours(self.VERTICES[0], np.array([0.0, 0.0, 1.0]), np.array([2, 3, 1]), self.VERTICES)
        npt.assert_array_equal(ordered, [1, 2, 3])

    def test_flipped_normal_reverses(self):
        ordered = sort_neighbours(self.VERTICES[0], np.array([0.0, 0.0, -1.0]), np.array([2, 3, 1]), self.VERTICES)
        npt.assert_array_equal(ordered, [3, 2, 1])

    def test_single_neighbour(self):
        npt.assert_array_equal(
            sort_neighbours(self.VERTICES[0], np.array([0.0, 0.0, 1.0]), np.array([2]), self.VERTICES), [2]
        )


class TestVertexNormals:
    def test_cube_corners_point_outward(self):
        edges = _cube_edges()
        normals = vertex_normals(CUBE_SDF, edges, _neighbours(edges))
        expected = edges.vertices / np.sqrt(3.0)
        npt.assert_allclose(normals, expected, atol=1e-6)


# ===========================================================================
# Faces
# ===========================================================================

class TestGetFaces:
    def test_cube_has_six_quads(self):
        faces = get_faces(CUBE_SDF, _cube_edges())
        assert len(faces) == 6
        assert all(len(f) == 4 for f in faces)

    def test_each_face_is_planar(self):
        edges = _cube_edges()
        for face in get_faces(CUBE_SDF, edges):
            points = edges.vertices[face]
            assert np.any(np.all(points == points[0], axis=0))

    def test_every_directed_edge_used_once(self):
        edges = _cube_edges()
        directed = []
        for face in get_faces(CUBE_SDF, edges):
            directed.extend(zip(face.tolist(), np.roll(face, -1).tolist()))
        assert len(directed) == 2 * len(edges)
        assert len(set(directed)) == len(directed)


class TestTriangulate:
    def test_pentagon_fan(self):
        angles = np.linspace(0.0, 2.0 * np.pi, 5, endpoint=False)
        vertices = np.stack([np.cos(angles), np.sin(angles), np.zeros(5)], axis=-1)
        mesh = triangulate_faces(vertices, [np.arange(5)])
        npt.assert_array_equal(mesh.triangles, [[0, 1, 2], [0, 2, 3], [0, 3, 4]])

    def test_no_faces(self):
        mesh = triangulate_faces(np.zeros((3, 3)), [])
        assert mesh.triangle_count == 0


class TestEdgesToMesh:
    def test_cube(self):
        mesh = edges_to_mesh(CUBE_SDF, _cube_edges())
        assert isinstance(mesh, Mesh)
        assert mesh.vertex_count == 8
        assert mesh.triangle_count == 12

    def test_triangles_face_outward(self):
        mesh = edges_to_mesh(CUBE_SDF, _cube_edges())
        centroids = mesh.vertices[mesh.triangles].mean(axis=1)
        normals = mesh.face_normals()
        assert np.all(np.einsum("ij,ij->i", normals, centroids) > 0.0)

    def test_closed_surface(self):
        mesh = edges_to_mesh(CUBE_SDF, _cube_edges())
        # every undirected edge of a closed triangle mesh is shared by two triangles
        t = mesh.triangles
        pairs = np.sort(np.concatenate([t[:, [0, 1]], t[:, [1, 2]], t[:, [2, 0]]]), axis=1)
        _, counts = np.unique(pairs, axis=0, return_counts=True)
        assert np.all(counts == 2)
