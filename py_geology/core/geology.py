"""
Per-cell geology fields.

Each field is a flat NumPy array indexed like the planet grid, so
collaborators (renderers, save/load, sibling simulators) can read whole
layers at once. Stratigraphy is kept per cell in a bounded FIFO column.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .planet_grid import PlanetGrid

logger = structlog.get_logger()

SEDIMENT_COLUMN_CAPACITY = 100

# Hard bounds re-applied by the stability guard
MAX_TECTONIC_STRESS = 10.0
MAX_SEDIMENT_LAYER = 10.0
MAX_SEDIMENTARY_ROCK = 5.0
MIN_ELEVATION = -2.0
MAX_ELEVATION = 2.0


class CrustType(IntEnum):
    OCEANIC = 0
    CONTINENTAL = 1
    TRANSITIONAL = 2


class BoundaryType(IntEnum):
    NONE = 0
    CONVERGENT = 1
    DIVERGENT = 2
    TRANSFORM = 3


class EruptionType(IntEnum):
    EFFUSIVE = 0         # Lava flows (Hawaiian style)
    STROMBOLIAN = 1      # Mild explosive with lava fountains
    VULCANIAN = 2        # Moderate explosive with ash
    PLINIAN = 3          # Massive explosive eruption
    PHREATOMAGMATIC = 4  # Explosive interaction with water


class SedimentType(IntEnum):
    SAND = 0
    SILT = 1
    CLAY = 2
    GRAVEL = 3
    ORGANIC = 4
    VOLCANIC = 5
    LIMESTONE = 6


class SedimentColumn:
    """
    Append-only stratigraphic record, bottom layer first.

    Capacity is fixed; once full, each new layer evicts the oldest one.
    """

    __slots__ = ("_layers",)

    def __init__(self, layers: Iterable[SedimentType] = (), capacity: int = SEDIMENT_COLUMN_CAPACITY):
        self._layers = deque(layers, maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._layers.maxlen

    def append(self, layer: SedimentType) -> None:
        self._layers.append(SedimentType(layer))

    def extend(self, layers: Iterable[SedimentType]) -> None:
        for layer in layers:
            self.append(layer)

    def top(self) -> Optional[SedimentType]:
        return self._layers[-1] if self._layers else None

    def counts(self) -> Dict[SedimentType, int]:
        return dict(Counter(self._layers))

    def as_list(self) -> List[SedimentType]:
        return list(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[SedimentType]:
        return iter(self._layers)

    def __getitem__(self, index: int) -> SedimentType:
        return self._layers[index]

    def __repr__(self) -> str:
        return f"SedimentColumn({[layer.name for layer in self._layers]})"


@dataclass
class GeologyState:
    """Geology fields for every cell of a planet grid."""

    n_cells: int

    # Tectonics
    plate_id: np.ndarray = None
    crust_type: np.ndarray = None
    crust_thickness: np.ndarray = None  # km
    crust_age: np.ndarray = None        # million years
    boundary_type: np.ndarray = None
    tectonic_stress: np.ndarray = None
    subduction_rate: np.ndarray = None

    # Composition fractions
    basalt: np.ndarray = None
    granite: np.ndarray = None
    limestone: np.ndarray = None
    sandstone: np.ndarray = None
    shale: np.ndarray = None
    volcanic_rock: np.ndarray = None
    crystalline_rock: np.ndarray = None
    sedimentary_rock: np.ndarray = None

    # Volcanism
    is_volcano: np.ndarray = None
    is_hotspot: np.ndarray = None
    volcanic_activity: np.ndarray = None
    magma_pressure: np.ndarray = None
    last_eruption_year: np.ndarray = None
    last_eruption_type: np.ndarray = None
    eruption_intensity: np.ndarray = None

    # Erosion and sedimentation
    erosion_rate: np.ndarray = None
    sediment_layer: np.ndarray = None
    carbonate_layer: np.ndarray = None
    is_carbonate_platform: np.ndarray = None
    sediment_columns: List[SedimentColumn] = field(default_factory=list)

    def __post_init__(self):
        n = self.n_cells
        floats = (
            "crust_thickness", "crust_age", "tectonic_stress", "subduction_rate",
            "basalt", "granite", "limestone", "sandstone", "shale",
            "volcanic_rock", "crystalline_rock", "sedimentary_rock",
            "volcanic_activity", "magma_pressure",
            "erosion_rate", "sediment_layer", "carbonate_layer",
        )
        for name in floats:
            if getattr(self, name) is None:
                setattr(self, name, np.zeros(n, dtype=np.float64))

        if self.plate_id is None:
            self.plate_id = np.full(n, -1, dtype=np.int32)
        if self.crust_type is None:
            self.crust_type = np.full(n, CrustType.TRANSITIONAL, dtype=np.int8)
        if self.boundary_type is None:
            self.boundary_type = np.full(n, BoundaryType.NONE, dtype=np.int8)
        if self.is_volcano is None:
            self.is_volcano = np.zeros(n, dtype=bool)
        if self.is_hotspot is None:
            self.is_hotspot = np.zeros(n, dtype=bool)
        if self.is_carbonate_platform is None:
            self.is_carbonate_platform = np.zeros(n, dtype=bool)
        if self.last_eruption_year is None:
            self.last_eruption_year = np.zeros(n, dtype=np.int64)
        if self.last_eruption_type is None:
            self.last_eruption_type = np.full(n, EruptionType.EFFUSIVE, dtype=np.int8)
        if self.eruption_intensity is None:
            self.eruption_intensity = np.zeros(n, dtype=np.int8)
        if not self.sediment_columns:
            self.sediment_columns = [SedimentColumn() for _ in range(n)]

    def activate_volcano(self, cell: int, activity: float, pressure: float, year: int) -> None:
        """Turn a cell into an active volcano; its dormancy clock starts now."""
        self.is_volcano[cell] = True
        self.volcanic_activity[cell] = activity
        self.magma_pressure[cell] = pressure
        self.last_eruption_year[cell] = year

    def extinguish_volcano(self, cell: int) -> None:
        """Zero every volcano field. The hotspot marker is a mantle property and stays."""
        self.is_volcano[cell] = False
        self.volcanic_activity[cell] = 0.0
        self.magma_pressure[cell] = 0.0
        self.last_eruption_year[cell] = 0
        self.last_eruption_type[cell] = EruptionType.EFFUSIVE
        self.eruption_intensity[cell] = 0

    def cell_snapshot(self, cell: int) -> Dict[str, object]:
        """Plain-Python copy of one cell's geology."""
        return {
            "plate_id": int(self.plate_id[cell]),
            "crust_type": CrustType(int(self.crust_type[cell])).name,
            "crust_thickness": float(self.crust_thickness[cell]),
            "crust_age": float(self.crust_age[cell]),
            "boundary_type": BoundaryType(int(self.boundary_type[cell])).name,
            "tectonic_stress": float(self.tectonic_stress[cell]),
            "subduction_rate": float(self.subduction_rate[cell]),
            "basalt": float(self.basalt[cell]),
            "granite": float(self.granite[cell]),
            "limestone": float(self.limestone[cell]),
            "sandstone": float(self.sandstone[cell]),
            "shale": float(self.shale[cell]),
            "volcanic_rock": float(self.volcanic_rock[cell]),
            "crystalline_rock": float(self.crystalline_rock[cell]),
            "sedimentary_rock": float(self.sedimentary_rock[cell]),
            "is_volcano": bool(self.is_volcano[cell]),
            "is_hotspot": bool(self.is_hotspot[cell]),
            "volcanic_activity": float(self.volcanic_activity[cell]),
            "magma_pressure": float(self.magma_pressure[cell]),
            "last_eruption_year": int(self.last_eruption_year[cell]),
            "last_eruption_type": EruptionType(int(self.last_eruption_type[cell])).name,
            "eruption_intensity": int(self.eruption_intensity[cell]),
            "erosion_rate": float(self.erosion_rate[cell]),
            "sediment_layer": float(self.sediment_layer[cell]),
            "carbonate_layer": float(self.carbonate_layer[cell]),
            "is_carbonate_platform": bool(self.is_carbonate_platform[cell]),
            "sediment_column": [layer.name for layer in self.sediment_columns[cell]],
        }


# Initial stratigraphy tables: (cumulative probability, sediment) per environment
_ENVIRONMENT_LAYERS = {
    "delta": ((0.4, SedimentType.SILT), (0.7, SedimentType.SAND), (0.85, SedimentType.CLAY), (1.0, SedimentType.ORGANIC)),
    "deep_ocean": ((0.6, SedimentType.CLAY), (0.85, SedimentType.LIMESTONE), (1.0, SedimentType.ORGANIC)),
    "shallow_ocean": ((0.5, SedimentType.LIMESTONE), (0.75, SedimentType.SAND), (0.9, SedimentType.CLAY), (1.0, SedimentType.ORGANIC)),
    "coastal": ((0.6, SedimentType.SAND), (0.8, SedimentType.GRAVEL), (1.0, SedimentType.SILT)),
    "desert": ((0.7, SedimentType.SAND), (0.9, SedimentType.SILT), (1.0, SedimentType.GRAVEL)),
    "fluvial": ((0.35, SedimentType.SAND), (0.65, SedimentType.SILT), (0.85, SedimentType.CLAY), (1.0, SedimentType.GRAVEL)),
    "upland": ((0.5, SedimentType.GRAVEL), (0.75, SedimentType.SAND), (0.9, SedimentType.SILT), (1.0, SedimentType.VOLCANIC)),
    "glacial": ((0.5, SedimentType.GRAVEL), (0.8, SedimentType.SILT), (1.0, SedimentType.CLAY)),
    "alpine": ((0.6, SedimentType.GRAVEL), (0.8, SedimentType.SILT), (1.0, SedimentType.VOLCANIC)),
}

# Composition fractions per crust type:
# (basalt, granite, limestone, sandstone, shale, volcanic, crystalline, sedimentary)
_CRUST_COMPOSITION = {
    CrustType.OCEANIC: (0.7, 0.05, 0.05, 0.05, 0.15, 0.4, 0.3, 0.2),
    CrustType.CONTINENTAL: (0.1, 0.5, 0.1, 0.15, 0.15, 0.2, 0.5, 0.3),
    CrustType.TRANSITIONAL: (0.4, 0.25, 0.1, 0.1, 0.15, 0.3, 0.4, 0.25),
}

# (thickness range km, age range Myr) per crust type
_CRUST_DIMENSIONS = {
    CrustType.OCEANIC: ((5.0, 10.0), (0.0, 200.0)),
    CrustType.CONTINENTAL: ((30.0, 50.0), (200.0, 4000.0)),
    CrustType.TRANSITIONAL: ((15.0, 30.0), (50.0, 1000.0)),
}


def _classify_environment(grid: PlanetGrid, cell: int) -> str:
    elevation = grid.elevation[cell]
    temperature = grid.temperature[cell]

    coastal = 0 <= elevation < 0.15 and any(grid.elevation[n] < 0 for n in grid.cell_neighbors[cell])
    if coastal and grid.rainfall[cell] > 0.5 and elevation < 0.1:
        return "delta"
    if elevation < 0:
        return "deep_ocean" if elevation < -0.5 else "shallow_ocean"
    if coastal:
        return "coastal"
    if elevation < 0.2:
        if grid.rainfall[cell] < 0.2 and temperature > 20:
            return "desert"
        return "fluvial"
    if elevation < 0.6:
        return "upland"
    return "glacial" if temperature < 0 else "alpine"


def _draw_layer(table: Sequence, roll: float) -> SedimentType:
    for threshold, sediment in table:
        if roll < threshold:
            return sediment
    return table[-1][1]


def initialize_geology(
    state: GeologyState,
    grid: PlanetGrid,
    plate_is_oceanic: Sequence[bool],
    prng: AleaPRNG,
) -> None:
    """
    Crust typing, composition, carbonate seeding and initial stratigraphy.

    Args:
        state: Geology state with plate_id already assigned
        grid: Planet grid with terrain and climate populated
        plate_is_oceanic: Oceanic flag per plate id
        prng: Core random generator
    """
    platforms = 0

    for cell in range(grid.n_cells):
        elevation = grid.elevation[cell]
        oceanic_plate = plate_is_oceanic[state.plate_id[cell]]

        if oceanic_plate and elevation < 0:
            crust = CrustType.OCEANIC
        elif not oceanic_plate and elevation >= 0:
            crust = CrustType.CONTINENTAL
        else:
            crust = CrustType.TRANSITIONAL
        state.crust_type[cell] = crust

        (thick_lo, thick_hi), (age_lo, age_hi) = _CRUST_DIMENSIONS[crust]
        state.crust_thickness[cell] = prng.uniform(thick_lo, thick_hi)
        state.crust_age[cell] = prng.uniform(age_lo, age_hi)

        (
            state.basalt[cell],
            state.granite[cell],
            state.limestone[cell],
            state.sandstone[cell],
            state.shale[cell],
            state.volcanic_rock[cell],
            state.crystalline_rock[cell],
            state.sedimentary_rock[cell],
        ) = _CRUST_COMPOSITION[crust]

        if -0.3 < elevation < 0 and grid.temperature[cell] > 15:
            state.is_carbonate_platform[cell] = True
            platforms += 1

        table = _ENVIRONMENT_LAYERS[_classify_environment(grid, cell)]
        column = state.sediment_columns[cell]
        for _ in range(prng.randint(5, 14)):
            column.append(_draw_layer(table, prng.random()))

    logger.info(
        "Geology initialized",
        cells=grid.n_cells,
        oceanic_crust=int(np.sum(state.crust_type == CrustType.OCEANIC)),
        continental_crust=int(np.sum(state.crust_type == CrustType.CONTINENTAL)),
        carbonate_platforms=platforms,
    )
