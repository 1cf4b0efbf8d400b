"""Geometric heuristics over a stroke's point sequence.

All functions are pure and accept anything `as_points` understands:
SamplePoints, (x, y) tuples, {"x": .., "y": ..} mappings or an (N, 2) array.

Usage:
    box = bounding_box(points)
    stats = radius_stats(points)
    hits = corner_hits(points, box)
    dev = line_deviation(points)
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned extent of a point set."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def aspect(self) -> float:
        """width / height, +inf for a perfectly flat box."""
        if self.height == 0:
            return math.inf
        return self.width / self.height


@dataclass(frozen=True)
class RadiusStats:
    """Distance-to-centroid statistics."""
    center_x: float
    center_y: float
    avg_radius: float
    radius_variance: float  # mean absolute deviation from avg_radius


def as_points(points: Iterable[Any]) -> np.ndarray:
    """Coerce a point sequence into a float64 array of shape (N, 2)."""
    if isinstance(points, np.ndarray):
        arr = points.astype(np.float64, copy=False)
        if arr.ndim != 2 or arr.shape[1] < 2:
            raise ValueError(f"Expected (N, 2) array, got shape {arr.shape}")
        return arr[:, :2]

    rows = []
    for p in points:
        if isinstance(p, Mapping):
            rows.append((float(p["x"]), float(p["y"])))
        elif hasattr(p, "x") and hasattr(p, "y"):
            rows.append((float(p.x), float(p.y)))
        else:
            rows.append((float(p[0]), float(p[1])))

    if not rows:
        return np.zeros((0, 2), dtype=np.float64)
    return np.array(rows, dtype=np.float64)


def bounding_box(points: Any) -> BoundingBox:
    pts = as_points(points)
    if len(pts) == 0:
        return BoundingBox(0.0, 0.0, 0.0, 0.0)
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    return BoundingBox(float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))


def centroid(points: Any) -> tuple[float, float]:
    """Arithmetic mean of all points."""
    pts = as_points(points)
    if len(pts) == 0:
        return 0.0, 0.0
    c = pts.mean(axis=0)
    return float(c[0]), float(c[1])


def radius_stats(points: Any) -> RadiusStats:
    """Centroid, mean distance to it, and mean absolute deviation of that distance."""
    pts = as_points(points)
    cx, cy = centroid(pts)
    if len(pts) == 0:
        return RadiusStats(cx, cy, 0.0, 0.0)

    dists = np.linalg.norm(pts - np.array([cx, cy]), axis=1)
    avg = float(dists.mean())
    variance = float(np.abs(dists - avg).mean())
    return RadiusStats(cx, cy, avg, variance)


def corner_threshold(box: BoundingBox) -> float:
    return max(8.0, min(box.width, box.height) * 0.25)


def corner_hits(points: Any, box: BoundingBox | None = None) -> int:
    """Count bounding-box corners (0-4) approached closely by some point.

    A corner is hit when a point is within the corner threshold of both the
    corner's x-extreme and its y-extreme.
    """
    pts = as_points(points)
    if len(pts) == 0:
        return 0
    box = box or bounding_box(pts)
    threshold = corner_threshold(box)

    near_left = np.abs(pts[:, 0] - box.min_x) < threshold
    near_right = np.abs(pts[:, 0] - box.max_x) < threshold
    near_top = np.abs(pts[:, 1] - box.min_y) < threshold
    near_bottom = np.abs(pts[:, 1] - box.max_y) < threshold

    corners = [
        near_left & near_top,
        near_right & near_top,
        near_left & near_bottom,
        near_right & near_bottom,
    ]
    return sum(1 for c in corners if bool(c.any()))


def chord_length(points: Any) -> float:
    """Distance between the first and last sample."""
    pts = as_points(points)
    if len(pts) < 2:
        return 0.0
    return float(np.linalg.norm(pts[-1] - pts[0]))


def line_deviation(points: Any) -> float:
    """Mean perpendicular distance of interior points to the start/end chord."""
    pts = as_points(points)
    if len(pts) < 3:
        return 0.0

    sx, sy = pts[0]
    dx, dy = pts[-1] - pts[0]
    length = max(math.hypot(dx, dy), 1.0)

    interior = pts[1:-1]
    dists = np.abs(dy * (interior[:, 0] - sx) - dx * (interior[:, 1] - sy)) / length
    return float(dists.mean())
