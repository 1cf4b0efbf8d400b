"""Stroke buffering and hold detection.

A stroke is one down -> move* -> up interaction. While the pointer keeps
moving the hold timer is re-armed; once it stays quiet for `threshold`
seconds the buffered points are handed to `on_hold` exactly once per stroke.

Usage:
    debouncer = HoldDebouncer(on_hold=lambda pts: print(len(pts)))
    debouncer.down(10, 10)
    debouncer.move(12, 11)
    ...
    debouncer.up()

Timers go through a scheduler exposing `call_later(delay, callback)` that
returns a handle with `cancel()`. The default uses the running asyncio loop,
or a timer thread when no loop is running. `ManualScheduler` runs on virtual
time for replays and tests.
"""

from __future__ import annotations

import asyncio
import functools
import heapq
import itertools
import logging
import threading
import time
from collections import deque
from enum import Enum
from typing import Any, Callable, Iterator, NamedTuple, Optional

logger = logging.getLogger("shape_engine.stroke")


class SamplePoint(NamedTuple):
    x: float
    y: float
    time: float


class HoldState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    HOLDING = "holding"


class StrokeBuffer:
    """FIFO-bounded, insertion-ordered point buffer for the current stroke."""

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._points: deque[SamplePoint] = deque(maxlen=capacity)

    def reset(self, point: SamplePoint):
        """Start a new stroke with a single point."""
        self._points.clear()
        self._points.append(point)

    def append(self, point: SamplePoint):
        """Add a point, evicting the oldest once at capacity."""
        self._points.append(point)

    def clear(self):
        self._points.clear()

    def snapshot(self) -> list[SamplePoint]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[SamplePoint]:
        return iter(list(self._points))


class _ManualHandle:
    def __init__(self, when: float, callback: Callable[[], Any]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler. Callbacks run only inside `advance()`.

    Usage:
        sched = ManualScheduler()
        sched.call_later(0.5, fire)
        sched.advance(0.5)  # fire() runs here
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[tuple[float, int, _ManualHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> _ManualHandle:
        handle = _ManualHandle(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running due callbacks in order. Returns count run."""
        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = when
            handle.callback()
            ran += 1
        self._now = target
        return ran

    def advance_to(self, when: float) -> int:
        return self.advance(max(0.0, when - self._now))

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)


class _DefaultScheduler:
    """Uses the running asyncio loop when there is one, a daemon timer thread otherwise."""

    def call_later(self, delay: float, callback: Callable[[], Any]):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(delay, callback)
            timer.daemon = True
            timer.start()
            return timer
        return loop.call_later(delay, callback)

    def now(self) -> float:
        return time.monotonic()


class HoldDebouncer:
    """Idle -> Armed -> Holding state machine around a single re-armable timer.

    - down: buffer reset to the press point, timer (re)started, ARMED.
    - move while ARMED: point appended, timer restarted.
    - timer fires: HOLDING, `on_hold(points)` called once.
    - move while HOLDING: point appended, timer left alone.
    - up: timer cancelled, buffer cleared, IDLE.

    Buffer, timer and state change together under one lock, since without a
    running loop the timer fires on its own thread.
    """

    def __init__(
        self,
        on_hold: Callable[[list[SamplePoint]], Any],
        threshold: float = 0.5,
        capacity: int = 100,
        scheduler: Optional[Any] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.on_hold = on_hold
        self.threshold = threshold
        self.buffer = StrokeBuffer(capacity)
        self._scheduler = scheduler or _DefaultScheduler()
        if clock is None:
            clock = getattr(self._scheduler, "now", time.monotonic)
        self._clock = clock
        self._lock = threading.RLock()
        self._timer = None
        self._generation = 0
        self._state = HoldState.IDLE
        self._holds = 0

    @property
    def state(self) -> HoldState:
        return self._state

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    @property
    def hold_count(self) -> int:
        """Number of holds fired since construction."""
        return self._holds

    def down(self, x: float, y: float):
        with self._lock:
            self.buffer.reset(SamplePoint(float(x), float(y), self._clock()))
            self._state = HoldState.ARMED
            self._arm()

    def move(self, x: float, y: float):
        with self._lock:
            if self._state == HoldState.IDLE:
                logger.debug("Ignoring move outside of a stroke")
                return
            self.buffer.append(SamplePoint(float(x), float(y), self._clock()))
            if self._state == HoldState.ARMED:
                self._arm()

    def up(self):
        with self._lock:
            self.cancel()
            self.buffer.clear()
            self._state = HoldState.IDLE

    def cancel(self):
        """Drop the pending timer, if any. Safe to call repeatedly."""
        with self._lock:
            # a timer thread already past cancel() sees a stale generation
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _arm(self):
        self.cancel()
        self._timer = self._scheduler.call_later(
            self.threshold, functools.partial(self._fire, self._generation)
        )

    def _fire(self, generation: int):
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            if self._state != HoldState.ARMED:
                return
            self._state = HoldState.HOLDING
            self._holds += 1
            points = self.buffer.snapshot()
        logger.debug("Hold fired with %d points", len(points))
        self.on_hold(points)
