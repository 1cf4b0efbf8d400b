"""Recognizer configuration.

Load from YAML:
    config = RecognizerConfig.from_yaml("shapes.yml")

Example file:
    hold_threshold: 0.5
    buffer_capacity: 100
    keep_last_shape: true
    strict: false
    providers:
      - shape_engine_contrib
      - plugins/example_fit_provider.py
    thresholds:
      line_max_deviation: 6.0
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from shape_engine.adapters import DEFAULT_CANDIDATES
from shape_engine.classifier import ShapeThresholds


@dataclass
class RecognizerConfig:
    hold_threshold: float = 0.5  # seconds
    buffer_capacity: int = 100
    min_points: int = 10
    keep_last_shape: bool = True
    strict: bool = False  # use the earlier, tighter threshold set
    resolve_providers: bool = True
    providers: list[str] = field(default_factory=lambda: list(DEFAULT_CANDIDATES))
    thresholds: dict = field(default_factory=dict)  # ShapeThresholds overrides

    def __post_init__(self):
        if self.hold_threshold <= 0:
            raise ValueError("hold_threshold must be positive")
        if self.buffer_capacity < self.min_points:
            raise ValueError("buffer_capacity must be at least min_points")
        # Fail early on bad override keys
        self.shape_thresholds()

    def shape_thresholds(self) -> ShapeThresholds:
        """The effective threshold set: base set plus overrides."""
        base = ShapeThresholds.strict() if self.strict else ShapeThresholds()
        merged = base.to_dict()
        merged.update(self.thresholds or {})
        return ShapeThresholds.from_dict(merged)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> RecognizerConfig:
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        # A bare YAML key ("providers:") means "use the default"
        return cls(**{k: v for k, v in data.items() if v is not None})

    def to_dict(self) -> dict:
        return {
            "hold_threshold": self.hold_threshold,
            "buffer_capacity": self.buffer_capacity,
            "min_points": self.min_points,
            "keep_last_shape": self.keep_last_shape,
            "strict": self.strict,
            "resolve_providers": self.resolve_providers,
            "providers": list(self.providers),
            "thresholds": dict(self.thresholds or {}),
        }

    @classmethod
    def from_yaml(cls, path: str | Path) -> RecognizerConfig:
        """Load config from a YAML file. An empty file gives the defaults."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
