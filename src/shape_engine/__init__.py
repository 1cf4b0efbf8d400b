"""ShapeEngine - hold-to-recognize shape detection for drawing strokes."""

__version__ = "0.1.0"

from shape_engine.geometry import BoundingBox, RadiusStats
from shape_engine.classifier import (
    RecognizedShape,
    ShapeClassifier,
    ShapeThresholds,
    ShapeType,
    UnknownShapeError,
    recognize_shape,
)
from shape_engine.adapters import ClassifierResolver, DetectorAdapter, FitAdapter, ShapeAdapter
from shape_engine.stroke import HoldDebouncer, HoldState, ManualScheduler, SamplePoint, StrokeBuffer
from shape_engine.config import RecognizerConfig
from shape_engine.metrics import MetricsCollector
from shape_engine.recognizer import DrawEvent, ShapeRecognizer
