"""
Planet grid shared by the geology engine and its sibling simulators.

The grid owns the terrain and climate fields (elevation, temperature,
rainfall, ...) that the geology core reads and mutates. All per-cell data
are flat NumPy arrays in row-major order: ``index = y * width + x``.
X wraps around (cylinder), Y is clamped at the poles.
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .noise import PerlinNoise

logger = structlog.get_logger()

# Neighbour offsets, row above first, then the same row, then the row below.
NEIGHBOR_DX = (-1, 0, 1, -1, 1, -1, 0, 1)
NEIGHBOR_DY = (-1, -1, -1, 0, 0, 1, 1, 1)

MIN_CONTROL = 0.1
MAX_CONTROL = 3.0


class GridConfig(NamedTuple):
    """Configuration for grid generation."""
    width: int
    height: int
    land_ratio: float = 0.3
    mountain_level: float = 0.5
    water_level: float = 0.0
    octaves: int = 6
    persistence: float = 0.5
    lacunarity: float = 2.0
    noise_scale: float = 0.01


@dataclass
class GeologyControls:
    """Externally configured activity multipliers."""

    tectonic_activity: float = 1.0
    volcanic_activity: float = 1.0
    erosion_rate: float = 1.0

    @staticmethod
    def _clamp(value: float) -> float:
        if not np.isfinite(value):
            return 1.0
        return float(min(MAX_CONTROL, max(MIN_CONTROL, value)))

    def clamped(self) -> Tuple[float, float, float]:
        """Return (tectonic, volcanic, erosion) clamped to [0.1, 3.0]."""
        return (
            self._clamp(self.tectonic_activity),
            self._clamp(self.volcanic_activity),
            self._clamp(self.erosion_rate),
        )


@dataclass
class PlanetGrid:
    """Terrain and climate fields for a cylindrical cell grid."""

    width: int
    height: int

    elevation: np.ndarray
    temperature: np.ndarray
    rainfall: np.ndarray
    humidity: np.ndarray
    biomass: np.ndarray
    co2: np.ndarray
    is_ice: np.ndarray
    water_flow: np.ndarray
    flood_level: np.ndarray

    cell_neighbors: List[List[int]] = field(default_factory=list)
    neighbor_offsets: List[List[Tuple[int, int]]] = field(default_factory=list)

    solar_energy: float = 1.0
    controls: GeologyControls = field(default_factory=GeologyControls)

    @property
    def n_cells(self) -> int:
        return self.width * self.height

    def index(self, x: int, y: int) -> int:
        """Flat index of (x, y), wrapping x and clamping y."""
        x = x % self.width
        y = min(max(y, 0), self.height - 1)
        return y * self.width + x

    def coords(self, cell: int) -> Tuple[int, int]:
        return cell % self.width, cell // self.width

    def is_water(self, cell: int) -> bool:
        return self.elevation[cell] < 0

    def is_land(self, cell: int) -> bool:
        return self.elevation[cell] >= 0

    def touches_water(self, cell: int) -> bool:
        """True when the cell or any of its neighbours is water."""
        if self.elevation[cell] < 0:
            return True
        return any(self.elevation[n] < 0 for n in self.cell_neighbors[cell])

    def slope(self, cell: int) -> float:
        """Max absolute elevation difference to any neighbour."""
        h = self.elevation[cell]
        max_diff = 0.0
        for n in self.cell_neighbors[cell]:
            diff = abs(h - self.elevation[n])
            if diff > max_diff:
                max_diff = diff
        return float(max_diff)

    def lowest_neighbor(self, cell: int) -> Optional[int]:
        """Steepest-descent receiver, or None when the cell is a pit."""
        lowest = None
        lowest_height = self.elevation[cell]
        for n in self.cell_neighbors[cell]:
            if self.elevation[n] < lowest_height:
                lowest_height = self.elevation[n]
                lowest = n
        return lowest


def build_neighbors(width: int, height: int) -> Tuple[List[List[int]], List[List[Tuple[int, int]]]]:
    """
    Build the 8-connected neighbour lists.

    Returns:
        (cell_neighbors, neighbor_offsets) where offsets are the (dx, dy)
        direction from the cell to each neighbour.
    """
    cell_neighbors = []
    neighbor_offsets = []

    for y in range(height):
        for x in range(width):
            neighbors = []
            offsets = []
            seen = set()
            for dx, dy in zip(NEIGHBOR_DX, NEIGHBOR_DY):
                ny = y + dy
                if ny < 0 or ny >= height:
                    continue
                nx = (x + dx) % width
                n = ny * width + nx
                # Narrow grids can wrap onto the same cell twice
                if n in seen or n == y * width + x:
                    continue
                seen.add(n)
                neighbors.append(n)
                offsets.append((dx, dy))
            cell_neighbors.append(neighbors)
            neighbor_offsets.append(offsets)

    return cell_neighbors, neighbor_offsets


def create_planet_grid(width: int, height: int) -> PlanetGrid:
    """Create an all-zero grid (flat sea-level land) with neighbours built."""
    if width < 3 or height < 2:
        raise ValueError(f"Grid must be at least 3x2, got {width}x{height}")

    n_cells = width * height
    cell_neighbors, neighbor_offsets = build_neighbors(width, height)

    return PlanetGrid(
        width=width,
        height=height,
        elevation=np.zeros(n_cells, dtype=np.float64),
        temperature=np.zeros(n_cells, dtype=np.float64),
        rainfall=np.zeros(n_cells, dtype=np.float64),
        humidity=np.zeros(n_cells, dtype=np.float64),
        biomass=np.zeros(n_cells, dtype=np.float64),
        co2=np.zeros(n_cells, dtype=np.float64),
        is_ice=np.zeros(n_cells, dtype=bool),
        water_flow=np.zeros(n_cells, dtype=np.float64),
        flood_level=np.zeros(n_cells, dtype=np.float64),
        cell_neighbors=cell_neighbors,
        neighbor_offsets=neighbor_offsets,
    )


def generate_planet_grid(config: GridConfig, seed) -> PlanetGrid:
    """
    Generate terrain and a starting climate for a new world.

    Elevation comes from cylindrical octave noise with sea level placed at
    the land-ratio percentile; mountains are layered on high ground and
    the poles are lowered. Climate follows latitude bands with altitude
    and ocean corrections.

    Args:
        config: Grid configuration
        seed: World seed (a dedicated terrain sub-stream is derived from it)

    Returns:
        Populated PlanetGrid
    """
    grid = create_planet_grid(config.width, config.height)
    prng = AleaPRNG(f"{seed}:terrain")
    noise = PerlinNoise(prng)

    logger.info("Generating terrain", width=config.width, height=config.height, seed=str(seed))

    base = noise.sample_cylindrical(
        config.width,
        config.height,
        config.noise_scale * 4,
        octaves=config.octaves,
        persistence=config.persistence,
        lacunarity=config.lacunarity,
    )

    sea_level = float(np.quantile(base, 1.0 - config.land_ratio))
    elevation = (base - sea_level) * 4.0

    if config.mountain_level > 0.01:
        mountains = noise.sample_cylindrical(
            config.width,
            config.height,
            config.noise_scale * 10,
            octaves=4,
            persistence=0.65,
            lacunarity=2.2,
        )
        mountain_height = mountains * mountains * config.mountain_level * 1.5
        elevation = np.where(elevation > 0.1, elevation + mountain_height, elevation)

    elevation -= config.water_level
    elevation = np.clip(elevation, -1.0, 1.0)

    rows = np.repeat(np.arange(config.height), config.width)
    half = config.height / 2.0
    latitude = np.abs((rows + 0.5 - half) / half)

    polar = latitude > 0.7
    polar_factor = (latitude - 0.7) / 0.3
    elevation = np.where(polar, elevation - polar_factor * polar_factor * 0.3, elevation)
    grid.elevation[:] = elevation

    _initialize_climate(grid, latitude)

    logger.info(
        "Terrain generated",
        land_cells=int(np.sum(grid.elevation >= 0)),
        water_cells=int(np.sum(grid.elevation < 0)),
    )
    return grid


def _initialize_climate(grid: PlanetGrid, latitude: np.ndarray) -> None:
    """Latitude-band temperature and rainfall with terrain corrections."""
    water = grid.elevation < 0

    temperature = 30.0 - latitude * 40.0
    temperature -= np.where(grid.elevation > 0, grid.elevation * 15.0, 0.0)
    temperature += np.where(water, 5.0, 0.0)
    grid.temperature[:] = temperature

    grid.is_ice[:] = temperature < -10.0

    rainfall = 1.0 - latitude * 0.7
    rainfall += np.where(grid.elevation > 0.5, 0.3, 0.0)
    rainfall = np.where(water, 0.8, rainfall)
    grid.rainfall[:] = np.clip(rainfall, 0.0, 1.0)
    grid.humidity[:] = grid.rainfall

    growth = np.clip((temperature + 5.0) / 30.0, 0.0, 1.0)
    biomass = np.where(water, 0.2 * growth, grid.rainfall * growth * 0.8)
    grid.biomass[:] = np.where(grid.is_ice, 0.0, np.clip(biomass, 0.0, 1.0))

    grid.co2[:] = 2.5
