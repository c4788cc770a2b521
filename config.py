"""
Terrain Configuration
Immutable parameter sets consumed by the noise field, the quadtree and the
chunk manager, plus helpers to load them from JSON.
"""

import json
import numbers
from dataclasses import dataclass, field, fields, replace


NOISE_TYPES = ("simplex", "perlin")


class ConfigurationError(ValueError):
    """Raised when a parameter set cannot produce valid terrain."""


def whole_number(value):
    """``value`` as an int when it is integral (3 or 3.0), else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _require_int(obj, name, description):
    # JSON often spells integers as 4.0; store them as real ints
    value = whole_number(getattr(obj, name))
    if value is None or value < 1:
        raise ConfigurationError(f"{description} must be a positive integer, got {getattr(obj, name)!r}")
    object.__setattr__(obj, name, value)


@dataclass(frozen=True)
class NoiseParameters:
    """Inputs of the fractal noise sum. Replace as a whole, never patch."""
    octaves: int = 6
    persistence: float = 0.707
    lacunarity: float = 1.8
    exponentiation: float = 4.5
    height: float = 300.0
    scale: float = 800.0
    noise_type: str = "simplex"
    seed: int = 1

    def __post_init__(self):
        # Range checks happen when a NoiseField is built; only normalize types here
        for name in ("octaves", "seed"):
            value = whole_number(getattr(self, name))
            if value is not None:
                object.__setattr__(self, name, value)

    def with_changes(self, **changes):
        return replace(self, **changes)


@dataclass(frozen=True)
class ChunkParameters:
    """Geometry of a single land chunk."""
    size: float = 500.0
    segments: int = 128
    opacity: float = 1.0

    def __post_init__(self):
        if self.size <= 0:
            raise ConfigurationError(f"chunk size must be positive, got {self.size}")
        _require_int(self, "segments", "chunk segments")
        if not 0.0 <= self.opacity <= 1.0:
            raise ConfigurationError(f"opacity must lie in [0, 1], got {self.opacity}")


@dataclass(frozen=True)
class SeaParameters:
    """Look of the sea plane."""
    color: int = 0x00DDFF
    opacity: float = 0.45
    segments: int = 1

    def __post_init__(self):
        if not 0 <= self.color <= 0xFFFFFF:
            raise ConfigurationError(f"sea color must be a 24-bit RGB value, got {self.color!r}")
        if not 0.0 <= self.opacity <= 1.0:
            raise ConfigurationError(f"opacity must lie in [0, 1], got {self.opacity}")
        _require_int(self, "segments", "sea segments")


@dataclass(frozen=True)
class TerrainConfig:
    """Everything the chunk manager needs to build its initial grid."""
    n: int = 5
    sea_level: float = 10.0
    reference_point: tuple = (0.0, 0.0)
    chunk: ChunkParameters = field(default_factory=ChunkParameters)
    sea: SeaParameters = field(default_factory=SeaParameters)
    noise: NoiseParameters = field(default_factory=NoiseParameters)

    def __post_init__(self):
        _require_int(self, "n", "grid side length")
        if len(self.reference_point) != 2:
            raise ConfigurationError("reference point must be an (x, z) pair")

    def with_changes(self, **changes):
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, payload):
        """Build a config from a plain mapping, e.g. parsed JSON.

        Nested ``chunk``, ``sea`` and ``noise`` objects are optional; any key
        not present keeps its default.
        """
        payload = dict(payload)
        nested = {
            "chunk": ChunkParameters,
            "sea": SeaParameters,
            "noise": NoiseParameters,
        }
        values = {}
        for name, kind in nested.items():
            if name in payload:
                values[name] = _build(kind, payload.pop(name))
        if "reference_point" in payload:
            payload["reference_point"] = tuple(float(v) for v in payload["reference_point"])
        values.update(payload)
        return _build(cls, values)


def _build(kind, values):
    known = {f.name for f in fields(kind)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"unknown {kind.__name__} keys: {', '.join(unknown)}")
    return kind(**values)


def load_config(path):
    """Load a TerrainConfig from a JSON file."""
    with open(path, "r", encoding="utf-8") as handle:
        try:
            payload = json.load(handle)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path}: invalid JSON ({e})") from e
    if not isinstance(payload, dict):
        raise ConfigurationError(f"{path}: top level must be an object")
    return TerrainConfig.from_dict(payload)
