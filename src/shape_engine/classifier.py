"""Rule-based shape classification from a single stroke."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Optional

from shape_engine.geometry import (
    as_points,
    bounding_box,
    chord_length,
    corner_hits,
    line_deviation,
    radius_stats,
)


class ShapeType(str, Enum):
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    LINE = "line"


class UnknownShapeError(ValueError):
    """Raised when parameters are requested for a type outside ShapeType."""


@dataclass(frozen=True)
class RecognizedShape:
    """A classified stroke and the rectangle that parametrizes it.

    line: literal endpoints. rectangle: bounding box.
    circle: centroid +/- average radius on both axes.
    """
    type: ShapeType
    x1: float
    y1: float
    x2: float
    y2: float

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
        }


@dataclass
class ShapeThresholds:
    """Gating constants for the built-in heuristics."""
    min_points: int = 10

    # Aspect ratio bands
    elongated_low: float = 0.2
    elongated_high: float = 5.0
    square_low: float = 0.7
    square_high: float = 1.3

    circle_min_points: int = 20
    circle_min_size: float = 10.0
    circle_variance_factor: float = 0.5

    rectangle_min_points: int = 12
    rectangle_min_size: float = 15.0
    rectangle_min_corners: int = 3

    line_min_points: int = 5
    line_min_length: float = 15.0
    line_max_deviation: float = 7.0

    @classmethod
    def strict(cls) -> ShapeThresholds:
        """The earlier, tighter constant set."""
        return cls(
            min_points=20,
            circle_variance_factor=0.3,
            line_min_length=20.0,
            line_max_deviation=5.0,
        )

    @classmethod
    def from_dict(cls, data: dict) -> ShapeThresholds:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown threshold keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict:
        return asdict(self)


def coerce_shape_type(value: Any) -> Optional[ShapeType]:
    """Map a shape tag ("circle", "rect", ShapeType.LINE, ...) to ShapeType.

    Returns None for None. Raises UnknownShapeError for anything unrecognized.
    """
    if value is None:
        return None
    if isinstance(value, ShapeType):
        return value
    if isinstance(value, str):
        tag = value.strip().lower()
        aliases = {
            "circle": ShapeType.CIRCLE,
            "ellipse": ShapeType.CIRCLE,
            "rectangle": ShapeType.RECTANGLE,
            "rect": ShapeType.RECTANGLE,
            "line": ShapeType.LINE,
            "segment": ShapeType.LINE,
        }
        if tag in aliases:
            return aliases[tag]
    raise UnknownShapeError(f"Unknown shape type: {value!r}")


class ShapeClassifier:
    """Classifies a stroke as circle, rectangle or line.

    Decision order:
    1. Extremely elongated bounding box: line or nothing.
    2. Near-square bounding box: circle if the radius is steady.
    3. Rectangle if enough bounding-box corners were visited.
    4. Line if the stroke hugs its chord.
    """

    def __init__(self, thresholds: Optional[ShapeThresholds] = None):
        self.thresholds = thresholds or ShapeThresholds()

    def classify(self, points: Any) -> Optional[ShapeType]:
        pts = as_points(points)
        t = self.thresholds
        if len(pts) < t.min_points:
            return None

        aspect = bounding_box(pts).aspect

        if aspect > t.elongated_high or aspect < t.elongated_low:
            return ShapeType.LINE if self.is_line(pts) else None

        if t.square_low <= aspect <= t.square_high and self.is_circle(pts):
            return ShapeType.CIRCLE

        if self.is_rectangle(pts):
            return ShapeType.RECTANGLE

        if self.is_line(pts):
            return ShapeType.LINE

        return None

    def is_circle(self, points: Any) -> bool:
        pts = as_points(points)
        t = self.thresholds
        if len(pts) < t.circle_min_points:
            return False

        box = bounding_box(pts)
        if box.width < t.circle_min_size or box.height < t.circle_min_size:
            return False
        if not t.square_low <= box.aspect <= t.square_high:
            return False

        stats = radius_stats(pts)
        return stats.radius_variance < stats.avg_radius * t.circle_variance_factor

    def is_rectangle(self, points: Any) -> bool:
        pts = as_points(points)
        t = self.thresholds
        if len(pts) < t.rectangle_min_points:
            return False

        box = bounding_box(pts)
        if box.width < t.rectangle_min_size or box.height < t.rectangle_min_size:
            return False
        # Leave elongated strokes to the line test
        if not t.elongated_low <= box.aspect <= t.elongated_high:
            return False

        return corner_hits(pts, box) >= t.rectangle_min_corners

    def is_line(self, points: Any) -> bool:
        pts = as_points(points)
        t = self.thresholds
        if len(pts) < t.line_min_points:
            return False
        if chord_length(pts) < t.line_min_length:
            return False
        return line_deviation(pts) < t.line_max_deviation

    def get_params(self, shape_type: ShapeType, points: Any) -> RecognizedShape:
        """Build the parametrizing rectangle for an already-classified stroke."""
        pts = as_points(points)
        if len(pts) == 0:
            raise ValueError("Cannot extract shape parameters from an empty stroke")

        if shape_type == ShapeType.LINE:
            return RecognizedShape(
                ShapeType.LINE,
                float(pts[0, 0]), float(pts[0, 1]),
                float(pts[-1, 0]), float(pts[-1, 1]),
            )
        if shape_type == ShapeType.RECTANGLE:
            box = bounding_box(pts)
            return RecognizedShape(
                ShapeType.RECTANGLE, box.min_x, box.min_y, box.max_x, box.max_y
            )
        if shape_type == ShapeType.CIRCLE:
            stats = radius_stats(pts)
            r = stats.avg_radius
            return RecognizedShape(
                ShapeType.CIRCLE,
                stats.center_x - r, stats.center_y - r,
                stats.center_x + r, stats.center_y + r,
            )
        raise UnknownShapeError(f"Unknown shape type: {shape_type!r}")

    def recognize(self, points: Any) -> Optional[RecognizedShape]:
        """classify() and get_params() in one step."""
        pts = as_points(points)
        shape_type = self.classify(pts)
        if shape_type is None:
            return None
        return self.get_params(shape_type, pts)


def recognize_shape(points: Any, thresholds: Optional[ShapeThresholds] = None) -> Optional[str]:
    """Classify an explicit point list without any timer involved.

    Returns "circle", "rectangle", "line" or None. Fewer than 10 points
    always gives None.
    """
    pts = as_points(points)
    if len(pts) < 10:
        return None
    shape_type = ShapeClassifier(thresholds).classify(pts)
    return shape_type.value if shape_type else None
