"""
Plate motion and per-cell boundary interactions.

Each plate carries a constant velocity and an oceanic/continental type.
Every tick, cells touching a differently-plated neighbour are classified
as convergent, divergent or transform from the relative velocity, and the
matching geology is applied: mountain building, trenches, island arcs,
rifts, stress build-up and earthquakes.

Stochastic triggers fire with probability ``base_rate * activity * dt``,
drawn once per qualifying cell per tick.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .events import EarthquakeEvent, GeologyEventLog
from .geology import MAX_TECTONIC_STRESS, BoundaryType, GeologyState
from .planet_grid import PlanetGrid
from .plate_field import PlateAssignment

logger = structlog.get_logger()


@dataclass
class Plate:
    """A rigid plate. Cells are indices into the flat grid."""
    id: int
    velocity_x: float
    velocity_y: float
    is_oceanic: bool
    density: float
    cells: Set[int] = field(default_factory=set)

    @property
    def velocity(self) -> Tuple[float, float]:
        return self.velocity_x, self.velocity_y


@dataclass
class KinematicsOptions:
    """Boundary interaction parameters (per-tick rates before activity and dt)."""
    max_speed: float = 0.25  # velocity components drawn from [-max, max)
    oceanic_probability: float = 0.6
    oceanic_density: float = 3.0
    continental_density: float = 2.7

    convergence_threshold: float = 0.1  # |convergence| below this is transform

    stress_rate: float = 0.02
    trench_rate: float = 0.001        # x relative speed
    subduction_uplift_rate: float = 0.003
    collision_uplift_rate: float = 0.005
    subduction_rate_factor: float = 0.01

    volcanic_arc_rate: float = 0.01
    crustal_melt_rate: float = 0.002
    crustal_melt_elevation: float = 0.6
    island_arc_rate: float = 0.005
    island_arc_uplift: float = 0.03
    ridge_volcanism_rate: float = 0.003
    ridge_uplift: float = 0.01
    rift_rate: float = 0.002
    rift_subsidence: float = 0.002

    earthquake_threshold: float = 1.0
    earthquake_rate: float = 0.01
    relief_threshold: float = 1.5
    relief_rate: float = 0.005
    relief_retained: float = 0.1  # relief quakes discharge 90% of stress


class PlateKinematics:
    """Creates plates and applies their boundary interactions each tick."""

    def __init__(
        self,
        grid: PlanetGrid,
        geology: GeologyState,
        events: GeologyEventLog,
        prng: AleaPRNG,
        options: Optional[KinematicsOptions] = None,
    ):
        self.grid = grid
        self.geology = geology
        self.events = events
        self.prng = prng
        self.options = options or KinematicsOptions()
        self.plates: List[Plate] = []

    def create_plates(self, assignment: PlateAssignment) -> List[Plate]:
        """
        Draw velocity, type and density for every plate and attach its cells.

        Density follows the drawn type: oceanic plates are the denser ones.
        """
        opts = self.options
        self.plates = []

        for plate_id, cells in enumerate(assignment.cells_by_plate):
            velocity_x = (self.prng.random() - 0.5) * 2 * opts.max_speed
            velocity_y = (self.prng.random() - 0.5) * 2 * opts.max_speed
            is_oceanic = self.prng.random() < opts.oceanic_probability
            self.plates.append(
                Plate(
                    id=plate_id,
                    velocity_x=velocity_x,
                    velocity_y=velocity_y,
                    is_oceanic=is_oceanic,
                    density=opts.oceanic_density if is_oceanic else opts.continental_density,
                    cells=set(cells),
                )
            )

        self.geology.plate_id[:] = assignment.plate_of_cell

        logger.info(
            "Plates created",
            plates=len(self.plates),
            oceanic=sum(1 for p in self.plates if p.is_oceanic),
        )
        return self.plates

    def update(self, delta_time: float, current_year: int) -> int:
        """
        Classify boundaries and apply plate interactions for one tick.

        Returns:
            Number of earthquakes recorded this tick
        """
        grid = self.grid
        geo = self.geology
        opts = self.options
        activity, _, _ = grid.controls.clamped()
        scale = activity * delta_time
        quakes = 0

        for cell in range(grid.n_cells):
            interaction = self._strongest_interaction(cell, scale)

            if interaction is None:
                geo.boundary_type[cell] = BoundaryType.NONE
                geo.subduction_rate[cell] = 0.0
            else:
                convergence, rel_speed, neighbor_plate = interaction
                if convergence > opts.convergence_threshold:
                    geo.boundary_type[cell] = BoundaryType.CONVERGENT
                    self._apply_convergent(cell, neighbor_plate, rel_speed, scale, current_year)
                elif convergence < -opts.convergence_threshold:
                    geo.boundary_type[cell] = BoundaryType.DIVERGENT
                    geo.subduction_rate[cell] = 0.0
                    self._apply_divergent(cell, scale, current_year)
                else:
                    geo.boundary_type[cell] = BoundaryType.TRANSFORM
                    geo.subduction_rate[cell] = 0.0
                    quakes += self._apply_transform(cell, scale, current_year)

            # Stress relief is independent of boundary type
            if geo.tectonic_stress[cell] > opts.relief_threshold and self.prng.chance(opts.relief_rate * scale):
                x, y = grid.coords(cell)
                self.events.record_earthquake(
                    EarthquakeEvent(x, y, float(geo.tectonic_stress[cell]), current_year, relief=True)
                )
                geo.tectonic_stress[cell] *= opts.relief_retained
                quakes += 1

        stress = geo.tectonic_stress
        stress[~np.isfinite(stress)] = 0.0
        np.clip(stress, 0.0, MAX_TECTONIC_STRESS, out=stress)

        if quakes:
            logger.debug("Earthquakes", count=quakes, year=current_year)
        return quakes

    def _strongest_interaction(self, cell: int, scale: float) -> Optional[Tuple[float, float, Plate]]:
        """
        (convergence, relative speed, neighbour plate) for the differently
        plated neighbour with the largest |convergence|, or None inside a plate.
        """
        geo = self.geology
        owner = self.plates[geo.plate_id[cell]]
        best = None
        best_magnitude = -1.0

        for neighbor, (dx, dy) in zip(self.grid.cell_neighbors[cell], self.grid.neighbor_offsets[cell]):
            other_id = geo.plate_id[neighbor]
            if other_id == owner.id:
                continue
            other = self.plates[other_id]
            rel_x = (owner.velocity_x - other.velocity_x) * scale
            rel_y = (owner.velocity_y - other.velocity_y) * scale
            convergence = -(rel_x * dx + rel_y * dy)
            if abs(convergence) > best_magnitude:
                best_magnitude = abs(convergence)
                best = (convergence, math.hypot(rel_x, rel_y), other)

        return best

    def _apply_convergent(self, cell: int, other: Plate, rel_speed: float, scale: float, year: int) -> None:
        grid = self.grid
        geo = self.geology
        opts = self.options
        owner = self.plates[geo.plate_id[cell]]

        if owner.is_oceanic != other.is_oceanic:
            # Subduction: the water side forms a trench, the land side rises
            if grid.is_water(cell):
                grid.elevation[cell] -= opts.trench_rate * rel_speed
            else:
                grid.elevation[cell] += opts.subduction_uplift_rate * rel_speed
            if self.prng.chance(opts.volcanic_arc_rate * scale):
                self._arm_volcano(cell, 0.6, 0.3, year)
            geo.subduction_rate[cell] = rel_speed * opts.subduction_rate_factor
        elif not owner.is_oceanic:
            # Continental collision belt
            grid.elevation[cell] += opts.collision_uplift_rate * rel_speed
            geo.subduction_rate[cell] = 0.0
            if grid.elevation[cell] > opts.crustal_melt_elevation and self.prng.chance(opts.crustal_melt_rate * scale):
                self._arm_volcano(cell, 0.3, 0.0, year)
        else:
            # Oceanic-oceanic island arc
            geo.subduction_rate[cell] = rel_speed * opts.subduction_rate_factor
            if self.prng.chance(opts.island_arc_rate * scale):
                grid.elevation[cell] += opts.island_arc_uplift
                self._arm_volcano(cell, 0.7, 0.4, year)

        geo.tectonic_stress[cell] += opts.stress_rate * scale

    def _apply_divergent(self, cell: int, scale: float, year: int) -> None:
        grid = self.grid
        geo = self.geology
        opts = self.options

        if grid.is_water(cell):
            # Mid-ocean ridge
            if self.prng.chance(opts.ridge_volcanism_rate * scale):
                self._arm_volcano(cell, 0.4, 0.2, year)
                grid.elevation[cell] += opts.ridge_uplift
        elif self.prng.chance(opts.rift_rate * scale):
            # Continental rift valley
            self._arm_volcano(cell, 0.5, 0.0, year)
            grid.elevation[cell] -= opts.rift_subsidence

    def _apply_transform(self, cell: int, scale: float, year: int) -> int:
        geo = self.geology
        opts = self.options

        geo.tectonic_stress[cell] += opts.stress_rate * scale
        if geo.tectonic_stress[cell] > opts.earthquake_threshold and self.prng.chance(opts.earthquake_rate * scale):
            x, y = self.grid.coords(cell)
            self.events.record_earthquake(EarthquakeEvent(x, y, float(geo.tectonic_stress[cell]), year))
            geo.tectonic_stress[cell] = 0.0
            return 1
        return 0

    def _arm_volcano(self, cell: int, activity: float, pressure: float, year: int) -> None:
        """Create a volcano, or feed an existing one without resetting its magma."""
        geo = self.geology
        if geo.is_volcano[cell]:
            geo.volcanic_activity[cell] = max(geo.volcanic_activity[cell], activity)
        else:
            geo.activate_volcano(cell, activity, pressure, year)
