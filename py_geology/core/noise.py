"""
Gradient noise for plate-difficulty fields and terrain bootstrap.

Improved Perlin noise in three dimensions, evaluated with NumPy over
whole coordinate arrays. Grids are sampled on a cylinder so the field is
seamless across the horizontal wrap of the planet.
"""

import math

import numpy as np

from .alea_prng import AleaPRNG

PERMUTATION_SIZE = 256


def _fade(t: np.ndarray) -> np.ndarray:
    return t * t * t * (t * (t * 6 - 15) + 10)


def _lerp(a: np.ndarray, b: np.ndarray, t: np.ndarray) -> np.ndarray:
    return a + t * (b - a)


def _grad(hash_values: np.ndarray, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Dot product with one of the 12 cube-edge gradient vectors."""
    h = hash_values & 15
    u = np.where(h < 8, x, y)
    v = np.where(h < 4, y, np.where((h == 12) | (h == 14), x, z))
    return np.where(h & 1 == 0, u, -u) + np.where(h & 2 == 0, v, -v)


class PerlinNoise:
    """Seeded 3D Perlin noise."""

    def __init__(self, prng: AleaPRNG):
        p = list(range(PERMUTATION_SIZE))

        # Fisher-Yates shuffle
        for i in range(PERMUTATION_SIZE - 1, 0, -1):
            j = prng.randint(0, i)
            p[i], p[j] = p[j], p[i]

        self.permutation = np.array(p + p, dtype=np.int64)

    def noise3d(self, x, y, z) -> np.ndarray:
        """Raw noise in roughly [-1, 1] for array (or scalar) coordinates."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        perm = self.permutation

        xf_floor = np.floor(x)
        yf_floor = np.floor(y)
        zf_floor = np.floor(z)

        xi = xf_floor.astype(np.int64) & 255
        yi = yf_floor.astype(np.int64) & 255
        zi = zf_floor.astype(np.int64) & 255

        xf = x - xf_floor
        yf = y - yf_floor
        zf = z - zf_floor

        u = _fade(xf)
        v = _fade(yf)
        w = _fade(zf)

        a = perm[xi] + yi
        aa = perm[a] + zi
        ab = perm[a + 1] + zi
        b = perm[xi + 1] + yi
        ba = perm[b] + zi
        bb = perm[b + 1] + zi

        x1 = _lerp(_grad(perm[aa], xf, yf, zf), _grad(perm[ba], xf - 1, yf, zf), u)
        x2 = _lerp(_grad(perm[ab], xf, yf - 1, zf), _grad(perm[bb], xf - 1, yf - 1, zf), u)
        y1 = _lerp(x1, x2, v)

        x1 = _lerp(_grad(perm[aa + 1], xf, yf, zf - 1), _grad(perm[ba + 1], xf - 1, yf, zf - 1), u)
        x2 = _lerp(
            _grad(perm[ab + 1], xf, yf - 1, zf - 1),
            _grad(perm[bb + 1], xf - 1, yf - 1, zf - 1),
            u,
        )
        y2 = _lerp(x1, x2, v)

        return _lerp(y1, y2, w)

    def octave_noise3d(
        self,
        x,
        y,
        z,
        octaves: int = 4,
        persistence: float = 0.5,
        lacunarity: float = 2.0,
    ) -> np.ndarray:
        """Fractal sum of octaves, normalised by total amplitude."""
        total = np.zeros(np.broadcast(x, y, z).shape, dtype=np.float64)
        frequency = 1.0
        amplitude = 1.0
        max_value = 0.0

        for _ in range(octaves):
            total += self.noise3d(
                np.asarray(x) * frequency,
                np.asarray(y) * frequency,
                np.asarray(z) * frequency,
            ) * amplitude
            max_value += amplitude
            amplitude *= persistence
            frequency *= lacunarity

        return total / max_value

    def sample_cylindrical(
        self,
        width: int,
        height: int,
        scale: float,
        octaves: int = 4,
        persistence: float = 0.5,
        lacunarity: float = 2.0,
    ) -> np.ndarray:
        """
        Sample a (height, width) grid wrapped around a cylinder.

        x is mapped to an angle so column 0 and column width-1 are
        neighbours in noise space; y stays linear.

        Returns:
            Flat array of length width*height in row-major order.
        """
        circumference = width * scale
        radius = circumference / (2.0 * math.pi)

        xs = np.arange(width, dtype=np.float64)
        ys = np.arange(height, dtype=np.float64)
        grid_x, grid_y = np.meshgrid(xs, ys)

        angle = grid_x / width * 2.0 * math.pi
        nx = np.cos(angle) * radius
        nz = np.sin(angle) * radius
        ny = grid_y * scale

        values = self.octave_noise3d(nx, ny, nz, octaves, persistence, lacunarity)
        return values.reshape(-1)
