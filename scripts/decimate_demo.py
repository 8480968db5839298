"""Decimate a dense marching-cubes mesh with :func:`sdf2mesh.simplify`.

Extracts the zero isosurface of a rounded box with scikit-image, reduces it
to a fraction of its triangles, and renders the two meshes side by side.

Usage::

    python scripts/decimate_demo.py                     # saves decimate_demo.png
    python scripts/decimate_demo.py --ratio 0.1 --res 64

Requirements: numpy, scipy, matplotlib, scikit-image
    pip install scikit-image
"""
from __future__ import annotations

import argparse
import os
import sys
import time

# Ensure the repo root (parent of scripts/) is importable regardless of cwd
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Poly3DCollection
from skimage import measure

from sdf2mesh import Mesh, simplify

_LO, _HI = -0.55, 0.55


def _round_box(p, half=(0.3, 0.2, 0.15), radius=0.08):
    q = np.abs(p) - np.asarray(half)
    outside = np.linalg.norm(np.maximum(q, 0.0), axis=-1)
    return outside + np.minimum(np.max(q, axis=-1), 0.0) - radius


# ---------------------------------------------------------------------------
# Evaluation + marching cubes
# ---------------------------------------------------------------------------

def marching_cubes_mesh(sdf_func, n: int) -> Mesh:
    """Zero isosurface of *sdf_func* on an ``n**3`` grid as an outward-facing mesh."""
    coords = np.linspace(_LO, _HI, n)
    X, Y, Z = np.meshgrid(coords, coords, coords, indexing="ij")
    vals = sdf_func(np.stack([X, Y, Z], axis=-1))
    verts, faces, _, _ = measure.marching_cubes(vals, level=0.0)
    verts = verts * (_HI - _LO) / (n - 1) + _LO
    tris = verts[faces]
    signed_volume = np.einsum("ij,ij->i", tris[:, 0], np.cross(tris[:, 1], tris[:, 2])).sum() / 6.0
    if signed_volume < 0.0:
        faces = faces[:, ::-1]
    return Mesh(verts, faces)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _draw(ax, mesh: Mesh, title: str) -> None:
    light = np.array([0.577, 0.577, 0.577])
    shade = 0.3 + 0.7 * np.clip(mesh.face_normals() @ light, 0.0, 1.0)
    ax.add_collection3d(Poly3DCollection(mesh.vertices[mesh.triangles],
                                         facecolors=np.outer(shade, [1.0, 0.82, 0.2]),
                                         edgecolors="#222222", linewidths=0.2))
    ax.set_facecolor("#111111")
    ax.set_axis_off()
    ax.set_title(title, color="white", fontsize=8)
    ax.set_xlim(_LO, _HI); ax.set_ylim(_LO, _HI); ax.set_zlim(_LO, _HI)
    ax.set_box_aspect([1, 1, 1])
    ax.view_init(elev=20, azim=35)


def main() -> None:
    parser = argparse.ArgumentParser(description="Decimate a marching-cubes mesh and render before/after.")
    parser.add_argument("--out", default="decimate_demo.png", help="Output PNG path")
    parser.add_argument("--res", type=int, default=40, help="Grid resolution per axis (default 40)")
    parser.add_argument("--ratio", type=float, default=0.25, help="Fraction of triangles to keep (default 0.25)")
    parser.add_argument("--aggressiveness", type=float, default=7.0, help="Threshold growth exponent (default 7)")
    args = parser.parse_args()

    print("=" * 60)
    print("DECIMATION: rounded box from marching cubes")
    print("=" * 60)

    dense = marching_cubes_mesh(_round_box, args.res)
    target = int(dense.triangle_count * args.ratio)

    t0 = time.perf_counter()
    reduced = simplify(target, args.aggressiveness, dense)
    elapsed = time.perf_counter() - t0

    print(f"\nInput   : {dense.triangle_count:6d} triangles  {dense.vertex_count:6d} vertices")
    print(f"Target  : {target:6d} triangles")
    print(f"Output  : {reduced.triangle_count:6d} triangles  {reduced.vertex_count:6d} vertices")
    print(f"Elapsed : {elapsed:.2f} s")

    fig = plt.figure(figsize=(8, 4), facecolor="#111111")
    _draw(fig.add_subplot(1, 2, 1, projection="3d"), dense, f"input ({dense.triangle_count} tris)")
    _draw(fig.add_subplot(1, 2, 2, projection="3d"), reduced, f"simplified ({reduced.triangle_count} tris)")
    plt.tight_layout(pad=0.3)
    fig.savefig(args.out, dpi=150, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
    print(f"Saved: {args.out}")


if __name__ == "__main__":
    main()
