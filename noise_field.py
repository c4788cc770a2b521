"""
Fractal Noise Field
Maps a world (x, z) coordinate to a terrain height by summing several octaves
of a base noise function (simplex or Perlin).
"""

import math

import numpy as np
from opensimplex import OpenSimplex

from config import NOISE_TYPES, ConfigurationError, whole_number


class PerlinNoise:
    """Deterministic Perlin noise implementation using NumPy."""
    def __init__(self, seed=None):
        # Private generator so seeding never touches numpy's global state
        rng = np.random.RandomState(seed)

        # Create permutation table for consistent noise
        perm = np.arange(256, dtype=np.int32)
        rng.shuffle(perm)
        self.perm = np.concatenate([perm, perm]).astype(np.int32)

    def _fade(self, t):
        """Quintic interpolation curve for smooth transitions."""
        return t * t * t * (t * (t * 6 - 15) + 10)

    def _lerp(self, a, b, t):
        """Linear interpolation between values."""
        return a * (1 - t) + b * t

    def _grad(self, hash_val, x, y):
        """Gradient vector selection based on hash value."""
        h = int(hash_val) & 15
        u = x if h < 8 else y
        v = y if h < 4 else (x if h == 12 or h == 14 else 0.0)
        return (u if (h & 1) == 0 else -u) + (v if (h & 2) == 0 else -v)

    def noise2(self, x, y):
        """Generate 2D noise at coordinates (x, y), roughly in [-1, 1]."""
        # Integer coordinates
        fx = math.floor(x)
        fy = math.floor(y)
        X = int(fx) & 255
        Y = int(fy) & 255

        # Fractional coordinates
        x -= fx
        y -= fy

        # Compute fade curves
        u = self._fade(x)
        v = self._fade(y)

        # Hash coordinates
        perm = self.perm
        A = perm[X] + Y
        AA = perm[A]
        AB = perm[A + 1]
        B = perm[X + 1] + Y
        BA = perm[B]
        BB = perm[B + 1]

        # Gradient values
        g1 = self._grad(perm[AA], x, y)
        g2 = self._grad(perm[BA], x - 1, y)
        g3 = self._grad(perm[AB], x, y - 1)
        g4 = self._grad(perm[BB], x - 1, y - 1)

        # Bilinear interpolation
        x1 = self._lerp(g1, g2, u)
        x2 = self._lerp(g3, g4, u)
        return self._lerp(x1, x2, v)


def _validate(params):
    if params.noise_type not in NOISE_TYPES:
        raise ConfigurationError(
            f"unknown noise type {params.noise_type!r}, expected one of {', '.join(NOISE_TYPES)}")
    if whole_number(params.octaves) != params.octaves or params.octaves < 1:
        raise ConfigurationError(f"octaves must be a positive integer, got {params.octaves}")
    if whole_number(params.seed) != params.seed:
        raise ConfigurationError(f"seed must be an integer, got {params.seed!r}")
    if params.scale <= 0:
        raise ConfigurationError(f"scale must be positive, got {params.scale}")
    if params.height <= 0:
        raise ConfigurationError(f"height must be positive, got {params.height}")
    if params.exponentiation <= 0:
        raise ConfigurationError(f"exponentiation must be positive, got {params.exponentiation}")
    if params.lacunarity < 1:
        raise ConfigurationError(f"lacunarity must be at least 1, got {params.lacunarity}")
    if not 0.0 <= params.persistence <= 1.0:
        raise ConfigurationError(f"persistence must lie in [0, 1], got {params.persistence}")


class NoiseField:
    """Height sampler built from one immutable NoiseParameters value.

    A parameter change means building a new NoiseField; instances are never
    modified after construction, so ``sample`` is safe to call from several
    threads at once.
    """

    def __init__(self, params):
        _validate(params)
        self.params = params
        if params.noise_type == "simplex":
            self._noise2 = OpenSimplex(seed=params.seed).noise2
        else:
            self._noise2 = PerlinNoise(seed=params.seed).noise2

    def base_noise01(self, x, y):
        """Base noise remapped from [-1, 1] to [0, 1]."""
        value = self._noise2(x, y) * 0.5 + 0.5
        return min(1.0, max(0.0, value))

    def sample(self, x, z):
        """Terrain height at world coordinates (x, z), in [0, height]."""
        p = self.params
        xs = x / p.scale
        zs = z / p.scale

        G = 2.0 ** (-p.persistence)
        amplitude = 1.0
        frequency = 1.0
        normalization = 0.0
        total = 0.0

        for _ in range(p.octaves):
            total += self.base_noise01(xs * frequency, zs * frequency) * amplitude
            normalization += amplitude
            amplitude *= G
            frequency *= p.lacunarity

        total /= normalization
        return total ** p.exponentiation * p.height

    def sample_grid(self, xs, zs):
        """Sample every (xs[i], zs[i]) pair; returns a float array shaped like xs."""
        xs = np.asarray(xs, dtype=np.float64)
        zs = np.asarray(zs, dtype=np.float64)
        if xs.shape != zs.shape:
            raise ValueError(f"coordinate arrays differ in shape: {xs.shape} vs {zs.shape}")
        out = np.empty(xs.shape, dtype=np.float64)
        flat_x = xs.ravel()
        flat_z = zs.ravel()
        flat_out = out.reshape(-1)
        for i in range(flat_x.size):
            flat_out[i] = self.sample(float(flat_x[i]), float(flat_z[i]))
        return out
