"""Shape recognition as a pass-through stage of a draw-event chain.

Every event handed to `process_event` comes back out unchanged (and goes to
the chain output, if one is set). When the pointer has been held quiet for the
hold threshold, the buffered stroke is classified in the background and the
callback receives the shape type.

Usage:
    recognizer = ShapeRecognizer(on_shape=lambda t: print("recognized", t))
    recognizer.set_chain_output(brush.process_event)

    # inside a running asyncio loop, once per pointer sample:
    recognizer.process_event({"type": "down", "x": 10, "y": 10})
    recognizer.process_event({"type": "move", "x": 12, "y": 11})
    ...
    shape = recognizer.get_recognized_shape()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from shape_engine.adapters import (
    ClassifierResolver,
    ShapeAdapter,
    coerce_bounds,
    maybe_await,
)
from shape_engine.classifier import (
    RecognizedShape,
    ShapeClassifier,
    ShapeType,
    coerce_shape_type,
)
from shape_engine.config import RecognizerConfig
from shape_engine.geometry import as_points
from shape_engine.metrics import MetricsCollector
from shape_engine.stroke import HoldDebouncer, HoldState, SamplePoint

_default_logger = logging.getLogger("shape_engine.recognizer")

EVENT_TYPES = ("down", "move", "up")


@dataclass
class DrawEvent:
    """A pointer sample in canvas coordinates."""
    type: str  # "down", "move", "up"
    x: float = 0.0
    y: float = 0.0
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> DrawEvent:
        extra = {k: v for k, v in data.items() if k not in ("type", "x", "y")}
        return cls(
            type=data["type"],
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            extra=extra,
        )

    def to_dict(self) -> dict:
        return {"type": self.type, "x": self.x, "y": self.y, **self.extra}


def _read_event(event: Any) -> tuple[Optional[str], Optional[float], Optional[float]]:
    if isinstance(event, Mapping):
        return event.get("type"), event.get("x"), event.get("y")
    return getattr(event, "type", None), getattr(event, "x", None), getattr(event, "y", None)


def _read_point(x: Any, y: Any) -> Optional[tuple[float, float]]:
    try:
        return float(x), float(y)
    except (TypeError, ValueError):
        return None


class ShapeRecognizer:
    """Hold-triggered shape recognition over a live draw-event stream.

    An external classifier is resolved at construction, as a background task
    when a loop is running (see adapters.ClassifierResolver). When present it
    is consulted first; when it is absent, returns nothing, or raises, the
    built-in classifier decides.

    Failed classifications leave the last recognized shape in place unless
    `config.keep_last_shape` is False.

    Constructed outside a running loop, the recognizer resolves providers
    synchronously before returning, so every candidate is imported (and .py
    provider files executed) inside `__init__`. Pass `resolve_providers=False`
    or a pre-built `resolver` to keep construction cheap. Without a loop the
    hold timer runs on a daemon thread and classification runs on that thread.
    """

    def __init__(
        self,
        on_shape: Optional[Callable[[ShapeType], Any]] = None,
        config: Optional[RecognizerConfig] = None,
        scheduler: Optional[Any] = None,
        resolver: Optional[ClassifierResolver] = None,
        classifier: Optional[ShapeClassifier] = None,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or RecognizerConfig()
        self.metrics = metrics or MetricsCollector()
        self._log = logger or _default_logger
        self._classifier = classifier or ShapeClassifier(self.config.shape_thresholds())
        if resolver is None:
            candidates = self.config.providers if self.config.resolve_providers else []
            resolver = ClassifierResolver(candidates)
        self._resolver = resolver

        self._on_shape = on_shape
        self._chain_out: Optional[Callable[[Any], Any]] = None
        self._shape: Optional[RecognizedShape] = None
        self._stroke_id = 0
        self._tasks: set[asyncio.Task] = set()
        self._resolve_task: Optional[asyncio.Task] = None

        self._debouncer = HoldDebouncer(
            on_hold=self._on_hold,
            threshold=self.config.hold_threshold,
            capacity=self.config.buffer_capacity,
            scheduler=scheduler,
        )
        self._start_resolution()

    # --- wiring ---

    def register_callback(self, callback: Optional[Callable[[ShapeType], Any]]):
        """Set the function notified with the ShapeType of each recognition."""
        self._on_shape = callback

    def set_chain_output(self, sink: Optional[Callable[[Any], Any]]):
        """Set the downstream consumer that receives every event unchanged."""
        self._chain_out = sink

    # --- event stream ---

    def process_event(self, event: Any) -> Any:
        """Drive the hold state machine with one event and pass it through."""
        etype, x, y = _read_event(event)
        self.metrics.record_event(etype if etype in EVENT_TYPES else "other")

        point = _read_point(x, y) if etype in ("down", "move") else None
        if etype in ("down", "move") and point is None:
            self._log.warning("Ignoring %s event without usable coordinates: x=%r y=%r", etype, x, y)
        elif etype == "down":
            self._stroke_id += 1
            if not self.config.keep_last_shape:
                self._shape = None
            self._debouncer.down(*point)
        elif etype == "move":
            self._debouncer.move(*point)
        elif etype == "up":
            self._debouncer.up()

        if self._chain_out is not None:
            self._chain_out(event)
        return event

    # --- results ---

    def get_recognized_shape(self) -> Optional[RecognizedShape]:
        return self._shape

    async def recognize_points(self, points: Any) -> Optional[RecognizedShape]:
        """Classify an explicit point list, no timer involved.

        Uses the same external-first procedure as a hold but leaves the stored
        shape and the callback alone.
        """
        pts = as_points(points)
        if len(pts) < self.config.min_points:
            return None
        await self.wait_ready()
        shape, _ = await self._run_classification(pts)
        return shape

    # --- state ---

    @property
    def state(self) -> HoldState:
        return self._debouncer.state

    @property
    def points(self) -> list[SamplePoint]:
        """Copy of the current stroke buffer."""
        return self._debouncer.buffer.snapshot()

    @property
    def timer_pending(self) -> bool:
        return self._debouncer.timer_pending

    @property
    def adapter(self) -> Optional[ShapeAdapter]:
        return self._resolver.adapter

    @property
    def adapter_name(self) -> Optional[str]:
        return self._resolver.provider

    @property
    def pending_classifications(self) -> int:
        return len(self._tasks)

    async def wait_ready(self):
        """Wait for background provider resolution to finish."""
        if self._resolve_task is not None and not self._resolve_task.done():
            await asyncio.shield(self._resolve_task)

    async def drain(self):
        """Wait for all in-flight classifications."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self):
        """Cancel the hold timer and any in-flight work."""
        self._debouncer.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._resolve_task is not None and not self._resolve_task.done():
            self._resolve_task.cancel()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # --- internals ---

    def _start_resolution(self):
        if self._resolver.resolved:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to run it on; resolve up front
            self._resolver.resolve()
            return
        self._resolve_task = loop.create_task(self._resolver.resolve_async())

    def _on_hold(self, points: list[SamplePoint]):
        self.metrics.record_hold()
        if len(points) < self.config.min_points:
            self._log.debug("Hold with %d points, not classifying", len(points))
            return

        coro = self._classify_held(points, self._stroke_id)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(coro)
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._log.error("Shape classification failed: %s", exc, exc_info=exc)

    async def _classify_held(self, points: list[SamplePoint], stroke_id: int) -> Optional[RecognizedShape]:
        started = time.perf_counter()
        shape, source = await self._run_classification(as_points(points))
        self.metrics.record_classification(
            source, shape.type.value if shape else None, time.perf_counter() - started
        )

        if stroke_id != self._stroke_id:
            self._log.debug("Result for stroke %d arrived during stroke %d", stroke_id, self._stroke_id)

        if shape is None:
            if not self.config.keep_last_shape:
                self._shape = None
            return None

        self._shape = shape
        self._log.debug("Recognized %s %s", shape.type.value, shape.to_dict())
        if self._on_shape is not None:
            try:
                self._on_shape(shape.type)
            except Exception as e:
                self._log.error("Shape callback error: %s", e)
        return shape

    async def _run_classification(self, pts) -> tuple[Optional[RecognizedShape], str]:
        adapter = self._resolver.adapter
        if adapter is not None:
            shape = await self._try_adapter(adapter, pts)
            if shape is not None:
                return shape, "adapter"
        return self._classifier.recognize(pts), "builtin"

    async def _try_adapter(self, adapter: ShapeAdapter, pts) -> Optional[RecognizedShape]:
        try:
            shape_type = coerce_shape_type(await maybe_await(adapter.recognize(pts)))
        except Exception as e:
            self._log.warning("Shape adapter %s failed, using built-in: %s", adapter.name, e)
            self.metrics.record_adapter_failure()
            return None
        if shape_type is None:
            return None

        bounds = None
        try:
            raw = await maybe_await(adapter.get_params(shape_type, pts))
            if raw is not None:
                bounds = coerce_bounds(raw)
        except Exception as e:
            self._log.warning("Shape adapter %s params failed, using built-in: %s", adapter.name, e)
            self.metrics.record_adapter_failure()

        if bounds is None:
            return self._classifier.get_params(shape_type, pts)
        return RecognizedShape(shape_type, *bounds)
