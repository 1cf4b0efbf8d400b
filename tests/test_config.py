"""Tests for recognizer configuration."""

import pytest

from shape_engine.adapters import DEFAULT_CANDIDATES
from shape_engine.classifier import ShapeThresholds
from shape_engine.config import RecognizerConfig


class TestRecognizerConfig:
    def test_defaults(self):
        config = RecognizerConfig()
        assert config.hold_threshold == 0.5
        assert config.buffer_capacity == 100
        assert config.keep_last_shape
        assert config.providers == list(DEFAULT_CANDIDATES)
        assert config.shape_thresholds() == ShapeThresholds()

    def test_strict_set(self):
        config = RecognizerConfig(strict=True)
        assert config.shape_thresholds() == ShapeThresholds.strict()

    def test_threshold_overrides(self):
        config = RecognizerConfig(strict=True, thresholds={"line_max_deviation": 9.0})
        t = config.shape_thresholds()
        assert t.line_max_deviation == 9.0
        assert t.min_points == 20

    @pytest.mark.parametrize("kwargs", [
        {"hold_threshold": 0},
        {"hold_threshold": -1.0},
        {"buffer_capacity": 5},
        {"thresholds": {"bogus": 1}},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            RecognizerConfig(**kwargs)

    def test_from_dict(self):
        config = RecognizerConfig.from_dict({"hold_threshold": 0.25, "keep_last_shape": False})
        assert config.hold_threshold == 0.25
        assert not config.keep_last_shape

    def test_from_dict_none(self):
        assert RecognizerConfig.from_dict(None) == RecognizerConfig()

    def test_from_dict_unknown_key(self):
        with pytest.raises(ValueError):
            RecognizerConfig.from_dict({"hold_treshold": 0.3})

    def test_yaml_roundtrip(self, tmp_path):
        path = tmp_path / "shapes.yml"
        config = RecognizerConfig(
            hold_threshold=0.3,
            providers=["plugins/example_fit_provider.py"],
            thresholds={"circle_variance_factor": 0.4},
        )
        config.to_yaml(path)
        assert RecognizerConfig.from_yaml(path) == config

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "shapes.yml"
        path.write_text("hold_threshold: 0.75\nresolve_providers: false\n")
        config = RecognizerConfig.from_yaml(path)
        assert config.hold_threshold == 0.75
        assert not config.resolve_providers
        assert config.buffer_capacity == 100

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert RecognizerConfig.from_yaml(path) == RecognizerConfig()

    @pytest.mark.parametrize("text", ["thresholds:\n", "providers:\n", "hold_threshold:\nthresholds:\n"])
    def test_bare_yaml_keys_use_defaults(self, tmp_path, text):
        path = tmp_path / "bare.yml"
        path.write_text(text)
        config = RecognizerConfig.from_yaml(path)
        assert config == RecognizerConfig()
        assert config.shape_thresholds() == ShapeThresholds()
        assert config.to_dict()["providers"] == list(DEFAULT_CANDIDATES)
