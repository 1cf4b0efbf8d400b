"""Optional external shape classifiers.

A provider is any importable module (dotted name) or standalone .py file
(path) that exposes one of these capabilities, probed in order:

1. A direct detector:
       def detect_shape(points) -> "circle" | "rectangle" | "line" | None
       def get_shape_params(shape_type, points) -> (x1, y1, x2, y2)   # optional

2. Per-primitive fitters, each returning None when the stroke does not fit:
       def fit_ellipse(points) -> {"center": (cx, cy), "radius": r}
       def fit_rectangle(points) -> (x1, y1, x2, y2)
       def fit_line(points) -> ((x1, y1), (x2, y2))

3. Anything else whose public callables mention ellipse/circle, rect or
   line/segment in their name, wired as fitters.

Points reach provider code as an (N, 2) float numpy array. Any function may be
a coroutine function. The first candidate that yields a capability wins:

    resolver = ClassifierResolver(["my_shapes", "plugins/fit_provider.py"])
    await resolver.resolve_async()
    if resolver.adapter:
        shape = resolver.adapter.recognize(points)
"""

from __future__ import annotations

import asyncio
import importlib
import importlib.util
import inspect
import logging
import re
import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Iterable, Optional, Sequence

from shape_engine.classifier import RecognizedShape, ShapeType, coerce_shape_type

logger = logging.getLogger("shape_engine.adapters")

DEFAULT_CANDIDATES: tuple[str, ...] = (
    "shape_engine_contrib",
    "shape_recognizers",
)

DETECT_NAMES = ("detect_shape", "recognize_shape", "detectShape", "recognizeShape")
PARAMS_NAMES = ("get_shape_params", "shape_params", "getShapeParams")
FIT_NAMES: dict[ShapeType, tuple[str, ...]] = {
    ShapeType.CIRCLE: ("fit_ellipse", "fit_circle", "fitEllipse", "fitCircle"),
    ShapeType.RECTANGLE: ("fit_rectangle", "fit_rect", "fitRectangle", "fitRect"),
    ShapeType.LINE: ("fit_line", "fit_segment", "fitLine", "fitSegment"),
}
SCAN_TOKENS: dict[ShapeType, re.Pattern] = {
    ShapeType.CIRCLE: re.compile(r"ellipse|circle", re.IGNORECASE),
    ShapeType.RECTANGLE: re.compile(r"rect", re.IGNORECASE),
    ShapeType.LINE: re.compile(r"line|segment", re.IGNORECASE),
}


class AdapterError(Exception):
    """A provider returned something the adapter cannot interpret."""


def coerce_bounds(value: Any) -> tuple[float, float, float, float]:
    """Normalize provider output into (x1, y1, x2, y2).

    Accepts a RecognizedShape, a mapping with x1/y1/x2/y2, a flat 4-sequence
    or a pair of (x, y) pairs.
    """
    try:
        if isinstance(value, RecognizedShape):
            return value.x1, value.y1, value.x2, value.y2
        if isinstance(value, Mapping):
            return tuple(float(value[k]) for k in ("x1", "y1", "x2", "y2"))  # type: ignore[return-value]
        seq = list(value)
        if len(seq) == 2:
            (x1, y1), (x2, y2) = seq
            return float(x1), float(y1), float(x2), float(y2)
        if len(seq) == 4:
            x1, y1, x2, y2 = seq
            return float(x1), float(y1), float(x2), float(y2)
    except (KeyError, TypeError, ValueError) as e:
        raise AdapterError(f"Malformed bounds {value!r}: {e}") from e
    raise AdapterError(f"Malformed bounds {value!r}")


def ellipse_bounds(value: Any) -> tuple[float, float, float, float]:
    """Bounds of a fitted ellipse given as a mapping or (cx, cy, r[, ry])."""
    try:
        if isinstance(value, Mapping):
            cx, cy = value["center"]
            if "radii" in value:
                rx, ry = value["radii"]
            elif "axes" in value:
                ax, ay = value["axes"]
                rx, ry = ax / 2.0, ay / 2.0
            else:
                rx = ry = value["radius"]
        else:
            seq = list(value)
            if len(seq) == 3:
                cx, cy, rx = seq
                ry = rx
            elif len(seq) == 4:
                cx, cy, rx, ry = seq
            else:
                raise AdapterError(f"Malformed ellipse fit {value!r}")
        cx, cy, rx, ry = float(cx), float(cy), float(rx), float(ry)
    except (KeyError, TypeError, ValueError) as e:
        raise AdapterError(f"Malformed ellipse fit {value!r}: {e}") from e
    return cx - rx, cy - ry, cx + rx, cy + ry


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ShapeAdapter(ABC):
    """The classifier capability expected from an external provider."""

    name: str = "adapter"

    @abstractmethod
    def recognize(self, points: Any) -> Any:
        """Return a shape tag, None, or an awaitable resolving to either."""

    def get_params(self, shape_type: ShapeType, points: Any) -> Any:
        """Return bounds for `shape_type`, or None to use the built-in extractor."""
        return None

    @property
    def has_params(self) -> bool:
        return False


class DetectorAdapter(ShapeAdapter):
    """Wraps a provider's detect function and optional parameter extractor."""

    def __init__(
        self,
        detect: Callable[[Any], Any],
        params: Optional[Callable[[Any, Any], Any]] = None,
        name: str = "detector",
    ):
        self._detect = detect
        self._params = params
        self.name = name

    def recognize(self, points: Any) -> Any:
        return self._detect(points)

    def get_params(self, shape_type: ShapeType, points: Any) -> Any:
        if self._params is None:
            return None
        return self._params(shape_type.value, points)

    @property
    def has_params(self) -> bool:
        return self._params is not None


class FitAdapter(ShapeAdapter):
    """Infers the shape from whichever primitive fitter accepts the stroke.

    Fitters are tried in circle, rectangle, line order; the first non-None fit
    decides the type and its geometry gives the parameters.
    """

    ORDER = (ShapeType.CIRCLE, ShapeType.RECTANGLE, ShapeType.LINE)

    def __init__(self, fits: dict[ShapeType, Callable[[Any], Any]], name: str = "fit"):
        if not fits:
            raise ValueError("FitAdapter needs at least one fitter")
        self._fits = {t: fits[t] for t in self.ORDER if t in fits}
        self.name = name
        self._async = any(inspect.iscoroutinefunction(f) for f in self._fits.values())

    @property
    def shapes(self) -> list[ShapeType]:
        return list(self._fits)

    @property
    def has_params(self) -> bool:
        return True

    def recognize(self, points: Any) -> Any:
        if self._async:
            return self._recognize_async(points)
        for shape_type, fit in self._fits.items():
            if fit(points) is not None:
                return shape_type
        return None

    async def _recognize_async(self, points: Any) -> Optional[ShapeType]:
        for shape_type, fit in self._fits.items():
            if await maybe_await(fit(points)) is not None:
                return shape_type
        return None

    def get_params(self, shape_type: ShapeType, points: Any) -> Any:
        fit = self._fits.get(shape_type)
        if fit is None:
            return None
        if self._async:
            return self._params_async(shape_type, fit, points)
        return self._to_bounds(shape_type, fit(points))

    async def _params_async(self, shape_type: ShapeType, fit: Callable, points: Any):
        return self._to_bounds(shape_type, await maybe_await(fit(points)))

    @staticmethod
    def _to_bounds(shape_type: ShapeType, fitted: Any):
        if fitted is None:
            return None
        if shape_type == ShapeType.CIRCLE:
            return ellipse_bounds(fitted)
        return coerce_bounds(fitted)


def _find(module: ModuleType, names: Iterable[str]) -> Optional[Callable]:
    for name in names:
        fn = getattr(module, name, None)
        if callable(fn):
            return fn
    return None


def probe_module(module: ModuleType, name: Optional[str] = None) -> Optional[ShapeAdapter]:
    """Build an adapter from whatever capability `module` exports, or None."""
    name = name or module.__name__

    # Strategy 1: direct detector
    detect = _find(module, DETECT_NAMES)
    if detect is not None:
        return DetectorAdapter(detect, _find(module, PARAMS_NAMES), name=name)

    # Strategy 2: well-known fitter names
    fits = {}
    for shape_type, names in FIT_NAMES.items():
        fn = _find(module, names)
        if fn is not None:
            fits[shape_type] = fn
    if fits:
        return FitAdapter(fits, name=name)

    # Strategy 3: scan exported names
    exported = getattr(module, "__all__", None) or [n for n in dir(module) if not n.startswith("_")]
    for attr_name in sorted(exported):
        fn = getattr(module, attr_name, None)
        if not callable(fn) or isinstance(fn, type):
            continue
        for shape_type, pattern in SCAN_TOKENS.items():
            if shape_type not in fits and pattern.search(attr_name):
                fits[shape_type] = fn
                break
    if fits:
        logger.debug("Provider %s wired by name scan: %s", name, sorted(t.value for t in fits))
        return FitAdapter(fits, name=name)

    return None


def load_provider(identifier: str) -> ModuleType:
    """Import a provider by dotted module name or .py file path."""
    if identifier.endswith(".py"):
        path = Path(identifier)
        if not path.exists():
            raise ImportError(f"Provider file {path} does not exist")
        module_name = f"shape_provider_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load provider file {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(identifier)


class ClassifierResolver:
    """Finds the first usable external classifier among ranked candidates.

    Resolution happens once; the adapter found (or its absence) is fixed for
    the lifetime of the resolver.
    """

    def __init__(self, candidates: Optional[Sequence[str]] = None):
        self.candidates: list[str] = list(DEFAULT_CANDIDATES if candidates is None else candidates)
        self._adapter: Optional[ShapeAdapter] = None
        self._provider: Optional[str] = None
        self._resolved = False

    @classmethod
    def with_adapter(cls, adapter: ShapeAdapter) -> ClassifierResolver:
        """A resolver pinned to an already-built adapter."""
        resolver = cls(candidates=[])
        resolver._adapter = adapter
        resolver._provider = adapter.name
        resolver._resolved = True
        return resolver

    @property
    def adapter(self) -> Optional[ShapeAdapter]:
        return self._adapter

    @property
    def provider(self) -> Optional[str]:
        return self._provider

    @property
    def resolved(self) -> bool:
        return self._resolved

    def resolve(self) -> Optional[ShapeAdapter]:
        """Try candidates in order, blocking. Idempotent."""
        if self._resolved:
            return self._adapter
        for identifier in self.candidates:
            module = self._try_load(identifier)
            if module is not None and self._adopt(identifier, module):
                break
        self._finish()
        return self._adapter

    async def resolve_async(self) -> Optional[ShapeAdapter]:
        """Like resolve(), but imports run in worker threads."""
        if self._resolved:
            return self._adapter
        for identifier in self.candidates:
            module = await asyncio.to_thread(self._try_load, identifier)
            if self._resolved:
                # resolve() finished while we were loading
                return self._adapter
            if module is not None and self._adopt(identifier, module):
                break
        self._finish()
        return self._adapter

    def _try_load(self, identifier: str) -> Optional[ModuleType]:
        try:
            return load_provider(identifier)
        except Exception as e:
            logger.debug("Shape provider %s unavailable: %s", identifier, e)
            return None

    def _adopt(self, identifier: str, module: ModuleType) -> bool:
        try:
            adapter = probe_module(module, name=identifier)
        except Exception as e:
            logger.warning("Probing shape provider %s failed: %s", identifier, e)
            return False
        if adapter is None:
            logger.debug("Shape provider %s exposes no usable capability", identifier)
            return False
        self._adapter = adapter
        self._provider = identifier
        logger.info("Using external shape provider: %s (%s)", identifier, type(adapter).__name__)
        return True

    def _finish(self):
        if not self._resolved and self._adapter is None:
            logger.debug("No external shape provider found, using built-in classifier")
        self._resolved = True
