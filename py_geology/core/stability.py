"""
Numeric safety pass run after every tick.

Erosion, deposition, uplift, stress and volcanism feed back into each
other and can drift to NaN, infinity or out-of-range values over long
runs. The guard resets non-finite values to a safe default and re-applies
the hard bounds of every field it owns.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog

from .geology import (
    MAX_ELEVATION,
    MAX_SEDIMENT_LAYER,
    MAX_SEDIMENTARY_ROCK,
    MAX_TECTONIC_STRESS,
    MIN_ELEVATION,
    GeologyState,
)
from .planet_grid import PlanetGrid

logger = structlog.get_logger()

COMPOSITION_FIELDS = (
    "basalt", "granite", "limestone", "sandstone", "shale",
    "volcanic_rock", "crystalline_rock",
)


@dataclass
class StabilityOptions:
    max_erosion_rate: float = 1.0
    max_magma_pressure: float = 10.0
    max_carbonate_layer: float = 10.0
    max_temperature: float = 200.0
    min_temperature: float = -100.0
    max_co2: float = 100.0


def _sanitize(values: np.ndarray, default: float, low: float, high: float) -> int:
    """Reset non-finite entries to default and clip in place; returns repair count."""
    bad = ~np.isfinite(values)
    repaired = int(np.count_nonzero(bad))
    if repaired:
        values[bad] = default
    out_of_range = (values < low) | (values > high)
    repaired += int(np.count_nonzero(out_of_range))
    np.clip(values, low, high, out=values)
    return repaired


class StabilityGuard:
    """Clamps geology and the terrain fields the core mutates."""

    def __init__(self, grid: PlanetGrid, geology: GeologyState, options: Optional[StabilityOptions] = None):
        self.grid = grid
        self.geology = geology
        self.options = options or StabilityOptions()

    def apply(self) -> int:
        """
        Repair every owned field.

        Returns:
            Number of values that were non-finite or out of range
        """
        geo = self.geology
        grid = self.grid
        opts = self.options

        repaired = 0
        repaired += _sanitize(geo.sediment_layer, 0.0, 0.0, MAX_SEDIMENT_LAYER)
        repaired += _sanitize(geo.sedimentary_rock, 0.0, 0.0, MAX_SEDIMENTARY_ROCK)
        repaired += _sanitize(geo.tectonic_stress, 0.0, 0.0, MAX_TECTONIC_STRESS)
        repaired += _sanitize(geo.erosion_rate, 0.0, 0.0, opts.max_erosion_rate)
        repaired += _sanitize(grid.elevation, 0.0, MIN_ELEVATION, MAX_ELEVATION)

        # Secondary fields: clamped silently, not counted as drift
        for name in COMPOSITION_FIELDS:
            _sanitize(getattr(geo, name), 0.0, 0.0, 1.0)
        _sanitize(geo.volcanic_activity, 0.0, 0.0, 1.0)
        _sanitize(geo.magma_pressure, 0.0, 0.0, opts.max_magma_pressure)
        _sanitize(geo.carbonate_layer, 0.0, 0.0, opts.max_carbonate_layer)
        _sanitize(geo.subduction_rate, 0.0, 0.0, np.inf)
        _sanitize(grid.biomass, 0.0, 0.0, 1.0)
        _sanitize(grid.temperature, 15.0, opts.min_temperature, opts.max_temperature)
        _sanitize(grid.co2, 0.0, 0.0, opts.max_co2)

        if not np.isfinite(grid.solar_energy) or grid.solar_energy < 0:
            grid.solar_energy = 0.0

        if repaired:
            logger.warning("Stability guard repaired values", repaired=repaired)
        return repaired
