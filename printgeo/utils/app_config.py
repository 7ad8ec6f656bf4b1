"""Application configuration helpers."""

import math
import os
from dataclasses import dataclass, fields


DEFAULT_GRID_RESOLUTION = 100
DEFAULT_MAX_GRID_RESOLUTION = 400


TRUE_VALUES = {"1", "true", "yes", "y", "on"}
FALSE_VALUES = {"0", "false", "no", "n", "off"}


def parse_env_bool(value, default=False):
    """Parse a boolean-like environment value with a fallback default."""
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return default


def get_cors_origins():
    """
    Return CORS origins from env, or localhost-only defaults.

    `PRINTGEO_CORS_ORIGINS` supports a comma-separated list.
    """
    raw = os.getenv('PRINTGEO_CORS_ORIGINS', '')
    if raw.strip():
        return [origin.strip() for origin in raw.split(',') if origin.strip()]
    return [r"^http://localhost(:\d+)?$", r"^http://127\.0\.0\.1(:\d+)?$"]


def parse_env_int(name, default):
    """Parse an integer environment value with fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def get_max_resolution():
    """Largest grid resolution accepted from callers."""
    return max(2, parse_env_int("PRINTGEO_MAX_GRID_RESOLUTION", DEFAULT_MAX_GRID_RESOLUTION))


def get_default_resolution():
    resolution = parse_env_int("PRINTGEO_GRID_RESOLUTION", DEFAULT_GRID_RESOLUTION)
    return max(2, min(get_max_resolution(), resolution))


@dataclass
class GenerationOptions:
    """
    Scalar knobs for one generation run.

    All lengths are meters in the local planar frame. `max_height` of None
    (or infinity) leaves terrain height unbounded.
    """

    resolution: int = DEFAULT_GRID_RESOLUTION
    base_height: float = 2.0
    vertical_scale: float = 1.5
    max_height: float = None
    smoothing_iterations: int = 0
    flatten: bool = False
    water_depth: float = 2.0
    building_vertical_scale: float = None
    building_horizontal_scale: float = 1.0
    road_width_multiplier: float = 1.0
    gpx_tube_radius: float = 1.5
    gpx_vertical_offset: float = 0.0
    gpx_min_clearance: float = 5.0

    @property
    def effective_max_height(self):
        if self.max_height is None:
            return math.inf
        return self.max_height

    @property
    def effective_building_vertical_scale(self):
        if self.building_vertical_scale is None:
            return self.vertical_scale
        return self.building_vertical_scale

    @classmethod
    def from_dict(cls, options):
        """
        Build options from a request payload, rejecting out-of-range values.

        Unknown keys are ignored. Raises ValueError describing the first
        invalid field.
        """
        options = dict(options or {})
        options.setdefault('resolution', get_default_resolution())
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            if key in known:
                kwargs[key] = value

        if 'max_height' in kwargs and kwargs['max_height'] is not None:
            value = _as_float('max_height', kwargs['max_height'], allow_inf=True)
            kwargs['max_height'] = None if math.isinf(value) else value

        result = cls(**kwargs)
        result.validate()
        return result

    def validate(self):
        """Range-check every field. Raises ValueError."""
        if isinstance(self.resolution, bool) or not isinstance(self.resolution, int):
            if isinstance(self.resolution, float) and self.resolution.is_integer():
                self.resolution = int(self.resolution)
            else:
                raise ValueError(f"resolution must be an integer, got {self.resolution!r}")
        max_resolution = get_max_resolution()
        if not 2 <= self.resolution <= max_resolution:
            raise ValueError(f"resolution must be between 2 and {max_resolution}, got {self.resolution}")

        if isinstance(self.smoothing_iterations, bool) or not isinstance(self.smoothing_iterations, int):
            if isinstance(self.smoothing_iterations, float) and self.smoothing_iterations.is_integer():
                self.smoothing_iterations = int(self.smoothing_iterations)
            else:
                raise ValueError("smoothing_iterations must be an integer")
        if self.smoothing_iterations < 0:
            raise ValueError("smoothing_iterations must be >= 0")

        self.flatten = _as_bool('flatten', self.flatten)

        self.base_height = _as_float('base_height', self.base_height)
        if self.base_height < 0:
            raise ValueError("base_height must be >= 0")

        for name in ('vertical_scale', 'building_horizontal_scale',
                     'road_width_multiplier', 'gpx_tube_radius'):
            value = _as_float(name, getattr(self, name))
            if value <= 0:
                raise ValueError(f"{name} must be > 0")
            setattr(self, name, value)

        if self.building_vertical_scale is not None:
            self.building_vertical_scale = _as_float('building_vertical_scale', self.building_vertical_scale)
            if self.building_vertical_scale <= 0:
                raise ValueError("building_vertical_scale must be > 0")

        if self.max_height is not None:
            self.max_height = _as_float('max_height', self.max_height, allow_inf=True)
            if self.max_height <= 0:
                raise ValueError("max_height must be > 0 or unbounded")
            if math.isinf(self.max_height):
                self.max_height = None

        for name in ('water_depth', 'gpx_min_clearance'):
            value = _as_float(name, getattr(self, name))
            if value < 0:
                raise ValueError(f"{name} must be >= 0")
            setattr(self, name, value)

        self.gpx_vertical_offset = _as_float('gpx_vertical_offset', self.gpx_vertical_offset)
        return self


def _as_float(name, value, allow_inf=False):
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if math.isnan(result) or (math.isinf(result) and not allow_inf):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return result


def _as_bool(name, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_VALUES:
            return True
        if normalized in FALSE_VALUES:
            return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")
