"""Render the traced feature edges and meshes of a few analytic shapes.

Each shape is surfaced with :func:`sdf2mesh.trace_all`; the left panel of a
pair shows the feature edges, the right panel the triangulated faces.

Usage::

    python scripts/gallery_features.py                  # saves gallery_features.png
    python scripts/gallery_features.py --out my_file.png
    python scripts/gallery_features.py --sub-cells 6    # finer sampling

Requirements: numpy, scipy, matplotlib
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

# Ensure the repo root (parent of scripts/) is importable regardless of cwd
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Line3DCollection, Poly3DCollection

from sdf2mesh import EdgeSet, Mesh, SurfacingConfig, edges_to_mesh, get_scene_grid_bounds, trace_all


# ---------------------------------------------------------------------------
# Shape catalogue  (label, sdf_func)
# ---------------------------------------------------------------------------

def _box(p, half, offset=(0.0, 0.0, 0.0)):
    q = np.abs(p - np.asarray(offset)) - np.asarray(half)
    return np.linalg.norm(np.maximum(q, 0.0), axis=-1) + np.minimum(np.max(q, axis=-1), 0.0)


def _make_shapes() -> list[tuple[str, object]]:
    return [
        ("box",
         lambda p: _box(p, (1.0, 1.0, 1.0), (0.4, 0.3, 0.45))),
        ("slab",
         lambda p: _box(p, (1.6, 0.6, 1.0), (0.3, 0.2, 0.1))),
        ("box - sphere",
         lambda p: np.maximum(_box(p, (1.0, 1.0, 1.0), (0.4, 0.3, 0.45)),
                              -(np.linalg.norm(p - np.array([1.4, 1.3, 1.45]), axis=-1) - 0.9))),
        ("box | box",
         lambda p: np.minimum(_box(p, (1.0, 1.0, 1.0), (0.4, 0.3, 0.45)),
                              _box(p, (0.5, 0.5, 1.6), (0.4, 0.3, 0.45)))),
    ]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

_FACE_COLOR = np.array([1.0, 0.82, 0.2])   # warm gold
_LINE_COLOR = "#4fc3f7"
_VIEW_ELEV = 20
_VIEW_AZIM = 35


def _style(ax, label: str, lo: float, hi: float) -> None:
    ax.set_facecolor("#111111")
    ax.set_axis_off()
    ax.set_title(label, color="white", fontsize=8, pad=1)
    ax.set_xlim(lo, hi); ax.set_ylim(lo, hi); ax.set_zlim(lo, hi)
    ax.set_box_aspect([1, 1, 1])
    ax.view_init(elev=_VIEW_ELEV, azim=_VIEW_AZIM)


def _draw_edges(ax, edges: EdgeSet) -> None:
    ax.add_collection3d(Line3DCollection(edges.segments, colors=_LINE_COLOR, linewidths=1.2))


def _draw_mesh(ax, mesh: Mesh) -> None:
    if not mesh.triangle_count:
        ax.text2D(0.5, 0.5, "no faces", ha="center", va="center",
                  color="gray", transform=ax.transAxes, fontsize=7)
        return
    light = np.array([0.577, 0.577, 0.577])   # diagonal illumination
    shade = 0.3 + 0.7 * np.clip(mesh.face_normals() @ light, 0.0, 1.0)
    ax.add_collection3d(Poly3DCollection(mesh.vertices[mesh.triangles],
                                         facecolors=np.outer(shade, _FACE_COLOR),
                                         edgecolors="#222222", linewidths=0.3))


def render_gallery(shapes, out_path: str, config: SurfacingConfig) -> None:
    fig = plt.figure(figsize=(6.0, len(shapes) * 3.0), facecolor="#111111")

    for row, (label, sdf_func) in enumerate(shapes):
        bounds = get_scene_grid_bounds(sdf_func, config.cell_size).pad(1)
        edges = trace_all(sdf_func, config, bounds)
        mesh = edges_to_mesh(sdf_func, edges)
        print(f"  {label:<14s} {len(edges):4d} edges  {mesh.triangle_count:4d} triangles")

        decimal = bounds.to_decimal(config.cell_size)
        lo, hi = min(decimal.start), max(decimal.end)

        ax = fig.add_subplot(len(shapes), 2, 2 * row + 1, projection="3d")
        _style(ax, f"{label}: edges", lo, hi)
        _draw_edges(ax, edges)

        ax = fig.add_subplot(len(shapes), 2, 2 * row + 2, projection="3d")
        _style(ax, f"{label}: faces", lo, hi)
        _draw_mesh(ax, mesh)

    fig.suptitle("sdf2mesh: traced features", color="white", fontsize=12, y=1.002)
    plt.tight_layout(pad=0.3)
    fig.savefig(out_path, dpi=160, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
    print(f"Saved: {out_path}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Render the feature edges and faces traced from analytic SDFs."
    )
    parser.add_argument("--out", default="gallery_features.png", help="Output PNG path")
    parser.add_argument("--cell-size", type=float, default=1.0, help="Cell edge length (default 1.0)")
    parser.add_argument("--sub-cells", type=int, default=4, help="Sub-samples per cell axis (default 4)")
    parser.add_argument("--verbose", action="store_true", help="Log pipeline pass counts")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    config = SurfacingConfig(cell_size=args.cell_size, sub_cells=args.sub_cells)
    render_gallery(_make_shapes(), args.out, config)


if __name__ == "__main__":
    main()
