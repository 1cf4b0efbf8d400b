"""Tests for the stroke buffer, hold debouncer and schedulers."""

import asyncio
import threading

import pytest

from shape_engine.stroke import (
    HoldDebouncer,
    HoldState,
    ManualScheduler,
    SamplePoint,
    StrokeBuffer,
)


def _debouncer(threshold=0.5, capacity=100):
    sched = ManualScheduler()
    holds = []
    deb = HoldDebouncer(on_hold=holds.append, threshold=threshold, capacity=capacity, scheduler=sched)
    return deb, sched, holds


class TestStrokeBuffer:
    def test_capacity_keeps_most_recent(self):
        buf = StrokeBuffer(capacity=5)
        buf.reset(SamplePoint(0, 0, 0))
        for i in range(1, 8):
            buf.append(SamplePoint(i, i, i))
        assert len(buf) == 5
        assert [p.x for p in buf] == [3, 4, 5, 6, 7]

    def test_reset_and_clear(self):
        buf = StrokeBuffer()
        buf.append(SamplePoint(1, 1, 0))
        buf.reset(SamplePoint(9, 9, 1))
        assert buf.snapshot() == [SamplePoint(9, 9, 1)]
        buf.clear()
        assert len(buf) == 0

    def test_snapshot_is_a_copy(self):
        buf = StrokeBuffer()
        buf.append(SamplePoint(1, 1, 0))
        snap = buf.snapshot()
        buf.append(SamplePoint(2, 2, 0))
        assert len(snap) == 1

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            StrokeBuffer(capacity=0)


class TestManualScheduler:
    def test_runs_in_time_order(self):
        sched = ManualScheduler()
        ran = []
        sched.call_later(0.3, lambda: ran.append("b"))
        sched.call_later(0.1, lambda: ran.append("a"))
        assert sched.advance(0.2) == 1
        assert ran == ["a"]
        sched.advance(0.2)
        assert ran == ["a", "b"]
        assert sched.now() == pytest.approx(0.4)

    def test_cancel(self):
        sched = ManualScheduler()
        ran = []
        handle = sched.call_later(0.1, lambda: ran.append(1))
        handle.cancel()
        handle.cancel()
        sched.advance(1.0)
        assert ran == []
        assert sched.pending == 0

    def test_clock_during_callback(self):
        sched = ManualScheduler()
        seen = []
        sched.call_later(0.25, lambda: seen.append(sched.now()))
        sched.advance_to(1.0)
        assert seen == [0.25]


class TestHoldDebouncer:
    def test_down_arms(self):
        deb, sched, holds = _debouncer()
        deb.down(1, 2)
        assert deb.state == HoldState.ARMED
        assert deb.timer_pending
        assert deb.buffer.snapshot() == [SamplePoint(1.0, 2.0, 0.0)]

    def test_fires_after_quiet_period(self):
        deb, sched, holds = _debouncer()
        deb.down(0, 0)
        sched.advance(0.49)
        assert holds == []
        sched.advance(0.02)
        assert len(holds) == 1
        assert deb.state == HoldState.HOLDING

    def test_move_rearms(self):
        deb, sched, holds = _debouncer()
        deb.down(0, 0)
        sched.advance(0.4)
        deb.move(1, 1)
        sched.advance(0.4)
        assert holds == []
        sched.advance(0.15)
        assert len(holds) == 1
        assert [p.x for p in holds[0]] == [0.0, 1.0]

    def test_points_are_timestamped(self):
        deb, sched, holds = _debouncer()
        deb.down(0, 0)
        sched.advance(0.1)
        deb.move(1, 1)
        assert [p.time for p in deb.buffer] == pytest.approx([0.0, 0.1])

    def test_single_pending_timer(self):
        deb, sched, holds = _debouncer()
        deb.down(0, 0)
        for i in range(50):
            deb.move(i, i)
        assert sched.pending == 1

    def test_hold_fires_once_per_stroke(self):
        deb, sched, holds = _debouncer()
        deb.down(0, 0)
        sched.advance(0.5)
        deb.move(5, 5)
        deb.move(6, 6)
        assert not deb.timer_pending
        sched.advance(2.0)
        assert len(holds) == 1
        assert len(deb.buffer) == 3
        assert deb.hold_count == 1

    @pytest.mark.parametrize("prior", ["idle", "armed", "holding"])
    def test_down_resets_from_any_state(self, prior):
        deb, sched, holds = _debouncer()
        if prior != "idle":
            deb.down(0, 0)
            for i in range(5):
                deb.move(i, i)
        if prior == "holding":
            sched.advance(0.5)
            assert deb.state == HoldState.HOLDING

        deb.down(50, 50)
        assert len(deb.buffer) == 1
        assert deb.state == HoldState.ARMED
        assert deb.timer_pending
        assert sched.pending == 1

    def test_up_cancels(self):
        deb, sched, holds = _debouncer()
        deb.down(0, 0)
        deb.move(1, 1)
        deb.up()
        assert deb.state == HoldState.IDLE
        assert len(deb.buffer) == 0
        sched.advance(1.0)
        assert holds == []

    def test_move_without_stroke_ignored(self):
        deb, sched, holds = _debouncer()
        deb.move(3, 3)
        assert len(deb.buffer) == 0
        assert not deb.timer_pending

    def test_capacity_during_long_stroke(self):
        deb, sched, holds = _debouncer(capacity=10)
        deb.down(0, 0)
        for i in range(1, 30):
            deb.move(i, 0)
            assert len(deb.buffer) <= 10
        sched.advance(0.5)
        assert [p.x for p in holds[0]] == [float(i) for i in range(20, 30)]

    def test_superseded_timer_callback_is_ignored(self):
        deb, sched, holds = _debouncer()
        deb.down(0, 0)
        stale = sched._queue[0][2].callback
        deb.move(1, 1)
        # an earlier timer that could not be cancelled in time
        stale()
        assert holds == []
        assert deb.state == HoldState.ARMED
        sched.advance(0.5)
        assert len(holds) == 1


class TestDefaultScheduler:
    def test_thread_timer_without_loop(self):
        done = threading.Event()
        holds = []

        def on_hold(points):
            holds.append(points)
            done.set()

        deb = HoldDebouncer(on_hold=on_hold, threshold=0.02)
        deb.down(0, 0)
        deb.move(1, 1)
        assert done.wait(2.0)
        assert [p.x for p in holds[0]] == [0.0, 1.0]
        assert deb.state == HoldState.HOLDING

    def test_loop_timer_when_running(self):
        async def scenario():
            holds = []
            deb = HoldDebouncer(on_hold=holds.append, threshold=0.02)
            deb.down(0, 0)
            await asyncio.sleep(0.1)
            return holds

        assert len(asyncio.run(scenario())) == 1
