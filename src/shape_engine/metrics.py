"""Prometheus-compatible metrics for ShapeEngine.

Generates the text exposition format directly, no client library needed.

Tracked metrics:
- shape_engine_events_total (counter, by event type)
- shape_engine_holds_total (counter)
- shape_engine_classifications_total (counter, by source and outcome)
- shape_engine_shapes_total (counter, by shape type)
- shape_engine_adapter_failures_total (counter)
- shape_engine_classification_latency_seconds (histogram)
- shape_engine_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Collects recognizer counters and renders them for /metrics."""

    def __init__(self):
        self._event_counts: Counter = Counter()
        self._classification_counts: Counter = Counter()  # (source, outcome)
        self._shape_counts: Counter = Counter()
        self._holds_total = 0
        self._adapter_failures = 0
        self._active_connections = 0
        self._lock = threading.Lock()

        # Latency buckets from 0.1ms to 100ms
        self._latency = _Histogram(
            [0.0001, 0.0005, 0.001, 0.002, 0.005, 0.010, 0.050, 0.100]
        )

        self._start_time = time.time()

    def record_event(self, event_type: str):
        with self._lock:
            self._event_counts[event_type] += 1

    def record_hold(self):
        with self._lock:
            self._holds_total += 1

    def record_classification(self, source: str, shape: str | None, latency_seconds: float):
        """source is "adapter" or "builtin"; shape None means no match."""
        with self._lock:
            self._classification_counts[(source, "match" if shape else "none")] += 1
            if shape:
                self._shape_counts[shape] += 1
        self._latency.observe(latency_seconds)

    def record_adapter_failure(self):
        with self._lock:
            self._adapter_failures += 1

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP shape_engine_uptime_seconds Time since collector start")
        lines.append("# TYPE shape_engine_uptime_seconds gauge")
        lines.append(f"shape_engine_uptime_seconds {uptime:.1f}")
        lines.append("")

        lines.append("# HELP shape_engine_events_total Draw events processed by type")
        lines.append("# TYPE shape_engine_events_total counter")
        with self._lock:
            for name, count in sorted(self._event_counts.items()):
                lines.append(f'shape_engine_events_total{{type="{name}"}} {count}')
        lines.append("")

        lines.append("# HELP shape_engine_holds_total Hold timers fired")
        lines.append("# TYPE shape_engine_holds_total counter")
        lines.append(f"shape_engine_holds_total {self._holds_total}")
        lines.append("")

        lines.append("# HELP shape_engine_classifications_total Classification attempts")
        lines.append("# TYPE shape_engine_classifications_total counter")
        with self._lock:
            for (source, outcome), count in sorted(self._classification_counts.items()):
                lines.append(
                    f'shape_engine_classifications_total{{source="{source}",outcome="{outcome}"}} {count}'
                )
        lines.append("")

        lines.append("# HELP shape_engine_shapes_total Recognized shapes by type")
        lines.append("# TYPE shape_engine_shapes_total counter")
        with self._lock:
            for name, count in sorted(self._shape_counts.items()):
                lines.append(f'shape_engine_shapes_total{{shape="{name}"}} {count}')
        lines.append("")

        lines.append("# HELP shape_engine_adapter_failures_total External classifier errors")
        lines.append("# TYPE shape_engine_adapter_failures_total counter")
        lines.append(f"shape_engine_adapter_failures_total {self._adapter_failures}")
        lines.append("")

        lines.append(self._latency.render(
            "shape_engine_classification_latency_seconds",
            "Time spent classifying a held stroke"
        ))
        lines.append("")

        lines.append("# HELP shape_engine_active_connections Current WebSocket connections")
        lines.append("# TYPE shape_engine_active_connections gauge")
        lines.append(f"shape_engine_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def shape_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._shape_counts)

    @property
    def event_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._event_counts)

    @property
    def adapter_failures(self) -> int:
        return self._adapter_failures

    @property
    def holds_total(self) -> int:
        return self._holds_total
