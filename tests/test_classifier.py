"""Tests for the built-in shape classifier."""

import math

import numpy as np
import pytest

from shape_engine.classifier import (
    RecognizedShape,
    ShapeClassifier,
    ShapeThresholds,
    ShapeType,
    UnknownShapeError,
    coerce_shape_type,
    recognize_shape,
)


def make_line(n=25, start=(0.0, 0.0), end=(200.0, 2.0)) -> np.ndarray:
    t = np.linspace(0, 1, n)
    return np.column_stack([
        start[0] + (end[0] - start[0]) * t,
        start[1] + (end[1] - start[1]) * t,
    ])


def make_circle(n=40, cx=100.0, cy=100.0, r=50.0, jitter=3.0, seed=0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    angles = np.linspace(0, 2 * math.pi, n, endpoint=False)
    radii = r + rng.uniform(-jitter, jitter, n)
    return np.column_stack([cx + radii * np.cos(angles), cy + radii * np.sin(angles)])


def make_rectangle(x1=0.0, y1=0.0, x2=100.0, y2=60.0, per_side=10) -> np.ndarray:
    corners = [(x1, y1), (x2, y1), (x2, y2), (x1, y2), (x1, y1)]
    pts = []
    for (ax, ay), (bx, by) in zip(corners, corners[1:]):
        for t in np.linspace(0, 1, per_side, endpoint=False):
            pts.append((ax + (bx - ax) * t, ay + (by - ay) * t))
    return np.array(pts)


def make_zigzag(n=30, width=200.0, amplitude=30.0) -> np.ndarray:
    xs = np.linspace(0, width, n)
    ys = np.array([amplitude * (i % 2) for i in range(n)])
    return np.column_stack([xs, ys])


class TestClassify:
    def test_too_few_points(self):
        classifier = ShapeClassifier()
        for stroke in (make_line(9), make_circle(9), make_rectangle(per_side=2)):
            assert classifier.classify(stroke) is None

    def test_thin_line_gives_endpoints(self):
        shape = ShapeClassifier().recognize(make_line())
        assert shape == RecognizedShape(ShapeType.LINE, 0.0, 0.0, 200.0, 2.0)

    def test_circle_bounds(self):
        shape = ShapeClassifier().recognize(make_circle())
        assert shape.type == ShapeType.CIRCLE
        assert shape.x1 == pytest.approx(50, abs=5)
        assert shape.y1 == pytest.approx(50, abs=5)
        assert shape.x2 == pytest.approx(150, abs=5)
        assert shape.y2 == pytest.approx(150, abs=5)

    def test_rectangle_bounds(self):
        shape = ShapeClassifier().recognize(make_rectangle())
        assert shape == RecognizedShape(ShapeType.RECTANGLE, 0.0, 0.0, 100.0, 60.0)

    def test_slanted_line_through_fallback(self):
        # moderate aspect, only two corners visited: rectangle rejects it
        stroke = make_line(n=20, start=(0, 0), end=(100, 40))
        assert ShapeClassifier().classify(stroke) == ShapeType.LINE
        assert ShapeClassifier().recognize(stroke).x2 == pytest.approx(100.0)

    def test_elongated_wobble_is_rejected(self):
        assert ShapeClassifier().classify(make_zigzag()) is None

    def test_elongated_strokes_only_ever_lines(self):
        rng = np.random.default_rng(7)
        classifier = ShapeClassifier()
        for _ in range(50):
            stroke = np.column_stack([rng.uniform(0, 300, 30), rng.uniform(0, 20, 30)])
            stroke[0] = (0, 0)
            stroke[1] = (300, 20)
            assert classifier.classify(stroke) in (None, ShapeType.LINE)
            assert classifier.classify(stroke[:, ::-1]) in (None, ShapeType.LINE)

    def test_short_chord_is_not_a_line(self):
        stroke = make_line(n=20, start=(0, 0), end=(10, 0.5))
        assert ShapeClassifier().classify(stroke) is None


class TestSubTests:
    def test_circle_needs_twenty_points(self):
        classifier = ShapeClassifier()
        assert classifier.is_circle(make_circle(n=20, jitter=0))
        assert not classifier.is_circle(make_circle(n=19, jitter=0))

    def test_tiny_circle_rejected(self):
        assert not ShapeClassifier().is_circle(make_circle(r=4, jitter=0))

    def test_rectangle_needs_size(self):
        assert not ShapeClassifier().is_rectangle(make_rectangle(x2=10, y2=10))

    def test_line_deviation_limit(self):
        classifier = ShapeClassifier()
        assert classifier.is_line(make_zigzag(amplitude=4))
        assert not classifier.is_line(make_zigzag(amplitude=40))


class TestThresholds:
    def test_strict_raises_point_gate(self):
        stroke = make_line(n=15)
        assert ShapeClassifier().classify(stroke) == ShapeType.LINE
        assert ShapeClassifier(ShapeThresholds.strict()).classify(stroke) is None

    def test_strict_tightens_deviation(self):
        stroke = make_zigzag(amplitude=12)  # mean deviation around 6
        assert ShapeClassifier().is_line(stroke)
        assert not ShapeClassifier(ShapeThresholds.strict()).is_line(stroke)

    def test_from_dict_rejects_unknown(self):
        with pytest.raises(ValueError):
            ShapeThresholds.from_dict({"nope": 1})

    def test_dict_roundtrip(self):
        t = ShapeThresholds(line_max_deviation=3.0)
        assert ShapeThresholds.from_dict(t.to_dict()) == t


class TestParams:
    def test_unknown_type_raises(self):
        with pytest.raises(UnknownShapeError):
            ShapeClassifier().get_params("triangle", make_line())

    def test_empty_stroke_raises(self):
        with pytest.raises(ValueError):
            ShapeClassifier().get_params(ShapeType.LINE, [])

    def test_to_dict(self):
        shape = RecognizedShape(ShapeType.CIRCLE, 1, 2, 3, 4)
        assert shape.to_dict() == {"type": "circle", "x1": 1, "y1": 2, "x2": 3, "y2": 4}


class TestCoerceShapeType:
    @pytest.mark.parametrize("tag,expected", [
        ("circle", ShapeType.CIRCLE),
        ("Ellipse", ShapeType.CIRCLE),
        ("rect", ShapeType.RECTANGLE),
        ("RECTANGLE", ShapeType.RECTANGLE),
        ("segment", ShapeType.LINE),
        (ShapeType.LINE, ShapeType.LINE),
        (None, None),
    ])
    def test_aliases(self, tag, expected):
        assert coerce_shape_type(tag) == expected

    def test_unknown(self):
        with pytest.raises(UnknownShapeError):
            coerce_shape_type("triangle")
        with pytest.raises(UnknownShapeError):
            coerce_shape_type(3)


class TestRecognizeShape:
    def test_returns_tag(self):
        assert recognize_shape(make_line().tolist()) == "line"
        assert recognize_shape([{"x": x, "y": y} for x, y in make_rectangle()]) == "rectangle"

    def test_ten_point_gate(self):
        assert recognize_shape(make_line(n=9)) is None
        assert recognize_shape(make_line(n=10)) == "line"

    def test_no_match(self):
        assert recognize_shape(make_zigzag()) is None
