#!/usr/bin/env python3
"""ShapeEngine Benchmark: classification latency and hold-to-shape throughput.

Measures performance on the current hardware using synthetic strokes.
No input device required.

Usage:
    python examples/benchmark.py
    python examples/benchmark.py --iterations 5000 --points 100
"""

from __future__ import annotations

import argparse
import gc
import math
import time

import numpy as np

from shape_engine.classifier import ShapeClassifier
from shape_engine.config import RecognizerConfig
from shape_engine.recognizer import ShapeRecognizer
from shape_engine.stroke import ManualScheduler


def generate_strokes(n: int, points: int, seed: int = 0) -> list[np.ndarray]:
    """Noisy circles, rectangles, lines and scribbles in equal parts."""
    rng = np.random.default_rng(seed)
    strokes = []
    for i in range(n):
        kind = i % 4
        t = np.linspace(0, 1, points, endpoint=False)
        if kind == 0:
            r = rng.uniform(20, 120)
            angles = 2 * math.pi * t
            stroke = np.column_stack([r * np.cos(angles), r * np.sin(angles)])
        elif kind == 1:
            w, h = rng.uniform(30, 200, 2)
            corners = np.array([[0, 0], [w, 0], [w, h], [0, h], [0, 0]])
            seg = np.minimum((t * 4).astype(int), 3)
            frac = (t * 4 - seg)[:, None]
            stroke = corners[seg] + (corners[seg + 1] - corners[seg]) * frac
        elif kind == 2:
            end = rng.uniform(-200, 200, 2)
            stroke = np.outer(t, end)
        else:
            stroke = np.cumsum(rng.normal(0, 8, (points, 2)), axis=0)
        strokes.append(stroke + rng.normal(0, 1.5, stroke.shape))
    return strokes


def _summary(times: list[float]) -> dict:
    times_ms = np.array(times) * 1000
    return {
        "mean_ms": float(np.mean(times_ms)),
        "median_ms": float(np.median(times_ms)),
        "p95_ms": float(np.percentile(times_ms, 95)),
        "p99_ms": float(np.percentile(times_ms, 99)),
        "throughput": 1000.0 / float(np.mean(times_ms)),
    }


def benchmark_classification(classifier: ShapeClassifier, strokes: list[np.ndarray]) -> tuple[dict, dict]:
    """Time classify() + get_params() per stroke and count the outcomes."""
    for stroke in strokes[:10]:
        classifier.recognize(stroke)

    gc.collect()
    times = []
    outcomes: dict[str, int] = {}

    for stroke in strokes:
        t0 = time.perf_counter()
        shape = classifier.recognize(stroke)
        times.append(time.perf_counter() - t0)
        key = shape.type.value if shape else "none"
        outcomes[key] = outcomes.get(key, 0) + 1

    return _summary(times), outcomes


def benchmark_recognizer(strokes: list[np.ndarray]) -> dict:
    """Drive full down/move/hold cycles through a recognizer on virtual time."""
    scheduler = ManualScheduler()
    recognizer = ShapeRecognizer(
        config=RecognizerConfig(resolve_providers=False),
        scheduler=scheduler,
    )

    gc.collect()
    times = []

    for stroke in strokes:
        t0 = time.perf_counter()
        recognizer.process_event({"type": "down", "x": stroke[0, 0], "y": stroke[0, 1]})
        for x, y in stroke[1:]:
            recognizer.process_event({"type": "move", "x": x, "y": y})
        scheduler.advance(recognizer.config.hold_threshold)
        recognizer.process_event({"type": "up"})
        times.append(time.perf_counter() - t0)

    return _summary(times)


def print_table(title: str, rows: list[tuple[str, str]]):
    """Print a formatted table."""
    max_key = max(len(r[0]) for r in rows)
    max_val = max(len(r[1]) for r in rows)
    width = max_key + max_val + 7

    print()
    print(f"  ╭{'─' * width}╮")
    print(f"  │ {title:<{width-2}} │")
    print(f"  ├{'─' * width}┤")
    for key, val in rows:
        print(f"  │ {key:<{max_key}}   {val:>{max_val}} │")
    print(f"  ╰{'─' * width}╯")


def main():
    parser = argparse.ArgumentParser(description="ShapeEngine Benchmark")
    parser.add_argument("-n", "--iterations", type=int, default=2000, help="Number of strokes")
    parser.add_argument("--points", type=int, default=60, help="Points per stroke")
    args = parser.parse_args()

    print()
    print("  ┌─────────────────────────────────────┐")
    print("  │    ShapeEngine Benchmark Suite 🚀    │")
    print("  └─────────────────────────────────────┘")
    print()

    print(f"  Generating {args.iterations} synthetic strokes...")
    strokes = generate_strokes(args.iterations, args.points)

    print("  Running classification benchmark...")
    classify_results, outcomes = benchmark_classification(ShapeClassifier(), strokes)

    print("  Running hold-to-shape benchmark...")
    recognizer_results = benchmark_recognizer(strokes)

    print_table("Built-in Classification", [
        ("Mean latency", f"{classify_results['mean_ms']:.3f} ms"),
        ("Median latency", f"{classify_results['median_ms']:.3f} ms"),
        ("P95 latency", f"{classify_results['p95_ms']:.3f} ms"),
        ("P99 latency", f"{classify_results['p99_ms']:.3f} ms"),
        ("Throughput", f"{classify_results['throughput']:,.0f} strokes/s"),
    ])

    print_table("Outcomes", [(name, str(count)) for name, count in sorted(outcomes.items())])

    print_table(f"Full Stroke ({args.points} events + hold)", [
        ("Mean latency", f"{recognizer_results['mean_ms']:.3f} ms"),
        ("P95 latency", f"{recognizer_results['p95_ms']:.3f} ms"),
        ("Throughput", f"{recognizer_results['throughput']:,.0f} strokes/s"),
    ])
    print()


if __name__ == "__main__":
    main()
