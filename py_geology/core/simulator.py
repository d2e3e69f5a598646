"""
Geology simulator: world creation and the per-tick pipeline.

World creation runs the plate flood fill, creates the plates, initialises
cell geology and seeds hotspots. Each tick then runs, over the whole grid
and in this fixed order:

    PlateKinematics -> VolcanismEngine -> ErosionSedimentEngine
    -> StabilityGuard

Passes mutate the shared grid in place, row-major, with no double
buffering: a cell may see a neighbour already updated earlier in the same
pass. A coarse lock is held for the whole sequence so outside readers
never observe a grid mid-pass.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional

import numpy as np
import structlog

from .alea_prng import AleaPRNG, Seed
from .erosion import ErosionOptions, ErosionSedimentEngine
from .events import GeologyEventLog
from .geology import GeologyState, initialize_geology
from .planet_grid import PlanetGrid
from .plate_field import PlateAssignment, PlateField, PlateFieldOptions
from .plate_kinematics import KinematicsOptions, Plate, PlateKinematics
from .stability import StabilityGuard, StabilityOptions
from .volcanism import VolcanismEngine, VolcanismOptions

logger = structlog.get_logger()


@dataclass
class SimulatorOptions:
    """Options for every engine of the pipeline."""
    plate_field: PlateFieldOptions = None
    kinematics: KinematicsOptions = None
    volcanism: VolcanismOptions = None
    erosion: ErosionOptions = None
    stability: StabilityOptions = None

    def __post_init__(self):
        self.plate_field = self.plate_field or PlateFieldOptions()
        self.kinematics = self.kinematics or KinematicsOptions()
        self.volcanism = self.volcanism or VolcanismOptions()
        self.erosion = self.erosion or ErosionOptions()
        self.stability = self.stability or StabilityOptions()


@dataclass(frozen=True)
class PlateInfo:
    """Read-only view of a plate for renderers and overlays."""
    id: int
    velocity_x: float
    velocity_y: float
    is_oceanic: bool
    density: float
    cell_count: int


@dataclass(frozen=True)
class TickReport:
    year: int
    delta_time: float
    eruptions: int
    earthquakes: int
    repaired: int


class GeologySimulator:
    """Owns the geology of one world and advances it tick by tick."""

    def __init__(
        self,
        grid: PlanetGrid,
        seed: Seed,
        options: Optional[SimulatorOptions] = None,
        start_year: int = 0,
    ):
        """
        Create the world's plates and geology.

        Args:
            grid: Planet grid with terrain and climate populated
            seed: World seed; the same seed reproduces the same world
            options: Engine options
            start_year: Simulation year at creation
        """
        self.grid = grid
        self.seed = seed
        self.options = options or SimulatorOptions()
        self.current_year = start_year

        self.prng = AleaPRNG(seed)
        self.events = GeologyEventLog()
        self.geology = GeologyState(grid.n_cells)
        self._lock = threading.RLock()

        self.plate_field = PlateField(grid, self.options.plate_field)
        self.assignment: PlateAssignment = self.plate_field.assign(
            self.prng, noise_prng=AleaPRNG(f"{seed}:noise")
        )

        self.kinematics = PlateKinematics(grid, self.geology, self.events, self.prng, self.options.kinematics)
        self.kinematics.create_plates(self.assignment)

        initialize_geology(
            self.geology,
            grid,
            [plate.is_oceanic for plate in self.kinematics.plates],
            self.prng,
        )

        self.volcanism = VolcanismEngine(grid, self.geology, self.events, self.prng, self.options.volcanism)
        self.hotspots = self.volcanism.seed_hotspots(start_year)

        self.erosion = ErosionSedimentEngine(grid, self.geology, self.prng, self.options.erosion)
        self.guard = StabilityGuard(grid, self.geology, self.options.stability)

        logger.info(
            "Geology simulator ready",
            seed=str(seed),
            width=grid.width,
            height=grid.height,
            plates=len(self.kinematics.plates),
            hotspots=len(self.hotspots),
        )

    def tick(self, delta_time: float, current_year: Optional[int] = None) -> TickReport:
        """
        Run one full pipeline tick.

        Args:
            delta_time: Simulated time step
            current_year: Year of this tick; defaults to the previous year + 1

        Returns:
            TickReport with the tick's event counts
        """
        if delta_time < 0:
            raise ValueError(f"delta_time must be non-negative, got {delta_time}")
        if current_year is None:
            current_year = self.current_year + 1

        with self._lock:
            earthquakes = self.kinematics.update(delta_time, current_year)
            eruptions = self.volcanism.update(delta_time, current_year)
            self.erosion.update(delta_time)
            repaired = self.guard.apply()
            self.events.prune(current_year)
            self.current_year = current_year

        logger.debug(
            "Geology tick",
            year=current_year,
            eruptions=eruptions,
            earthquakes=earthquakes,
            repaired=repaired,
        )
        return TickReport(current_year, delta_time, eruptions, earthquakes, repaired)

    def run(self, ticks: int, delta_time: float = 1.0) -> List[TickReport]:
        """Advance several ticks, one year apart."""
        return [self.tick(delta_time) for _ in range(ticks)]

    @contextmanager
    def locked(self) -> Iterator["GeologySimulator"]:
        """Hold the pipeline lock while reading the grid between ticks."""
        with self._lock:
            yield self

    # ------------------------------------------------------------------
    # Read-only views for collaborators
    # ------------------------------------------------------------------

    @property
    def plates(self) -> List[PlateInfo]:
        return [
            PlateInfo(
                id=plate.id,
                velocity_x=plate.velocity_x,
                velocity_y=plate.velocity_y,
                is_oceanic=plate.is_oceanic,
                density=plate.density,
                cell_count=len(plate.cells),
            )
            for plate in self.kinematics.plates
        ]

    @property
    def plate_of_cell(self) -> np.ndarray:
        view = self.geology.plate_id.view()
        view.flags.writeable = False
        return view

    def plate(self, plate_id: int) -> Plate:
        return self.kinematics.plates[plate_id]

    def cells_of_plate(self, plate_id: int) -> FrozenSet[int]:
        return frozenset(self.kinematics.plates[plate_id].cells)

    def cell_geology(self, x: int, y: int) -> Dict[str, object]:
        """Geology snapshot of one cell plus the terrain values it depends on."""
        grid = self.grid
        cell = grid.index(x, y)
        with self._lock:
            snapshot = self.geology.cell_snapshot(cell)
            snapshot.update(
                x=x % grid.width,
                y=cell // grid.width,
                elevation=float(grid.elevation[cell]),
                temperature=float(grid.temperature[cell]),
                biomass=float(grid.biomass[cell]),
            )
        return snapshot
