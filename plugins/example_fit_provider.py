"""Example ShapeEngine provider: least-squares primitive fitting.

Exposes the per-primitive fitter capability. Point it at a recognizer by
listing the file among the providers:

    providers:
      - plugins/example_fit_provider.py

Each fitter receives an (N, 2) float array and returns None when the stroke
does not look like its primitive.
"""

from __future__ import annotations

import numpy as np

MAX_CIRCLE_RESIDUAL = 0.12  # relative to radius
MAX_LINE_RESIDUAL = 4.0     # pixels
MIN_EXTENT = 15.0


def fit_ellipse(points: np.ndarray):
    """Algebraic (Kasa) circle fit. Returns {"center", "radius"} or None."""
    if len(points) < 20:
        return None
    x, y = points[:, 0], points[:, 1]
    a = np.column_stack([x, y, np.ones_like(x)])
    b = x ** 2 + y ** 2
    (c1, c2, c3), *_ = np.linalg.lstsq(a, b, rcond=None)
    cx, cy = c1 / 2.0, c2 / 2.0
    r_sq = c3 + cx ** 2 + cy ** 2
    if r_sq <= 0:
        return None
    r = float(np.sqrt(r_sq))
    if r < MIN_EXTENT / 2:
        return None
    residual = np.abs(np.hypot(x - cx, y - cy) - r).mean()
    if residual > r * MAX_CIRCLE_RESIDUAL:
        return None
    return {"center": (float(cx), float(cy)), "radius": r}


def fit_line(points: np.ndarray):
    """Total least-squares line. Returns the stroke's endpoints or None."""
    if len(points) < 5:
        return None
    centered = points - points.mean(axis=0)
    _, _, vt = np.linalg.svd(centered, full_matrices=False)
    direction = vt[0]
    normal = np.array([-direction[1], direction[0]])
    residual = np.abs(centered @ normal).mean()
    extent = np.ptp(centered @ direction)
    if residual > MAX_LINE_RESIDUAL or extent < MIN_EXTENT:
        return None
    return (tuple(points[0]), tuple(points[-1]))
