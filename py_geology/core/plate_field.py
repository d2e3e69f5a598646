"""
Plate partitioning of the planet grid.

Plates grow from one seed cell each by a Dijkstra-style flood fill. The
cost of stepping into a cell is the geometric step length (1 orthogonal,
sqrt(2) diagonal) times a difficulty factor read from low-frequency noise,
which gives plates irregular, natural-looking outlines. The fill runs
once, at world creation.
"""

import heapq
import math
from dataclasses import dataclass, field
from typing import List, Optional, Set

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .noise import PerlinNoise
from .planet_grid import PlanetGrid

logger = structlog.get_logger()

# Difficulty factor may never reach zero or go negative: negative edge
# weights let a plate expand without bound.
MIN_DIFFICULTY = 0.1

UNASSIGNED = -1


@dataclass
class PlateFieldOptions:
    """Plate partitioning options."""
    num_plates: int = 8
    noise_scale: float = 0.04  # Low frequency keeps plate outlines broad
    noise_octaves: int = 3
    noise_persistence: float = 0.5
    difficulty_strength: float = 0.8  # Spread of the factor around 1.0
    max_seed_attempts: int = 1000


@dataclass
class PlateAssignment:
    """Result of the flood fill."""
    plate_of_cell: np.ndarray
    cells_by_plate: List[Set[int]]
    seeds: List[int]
    first_assigned: List[int]
    difficulty: np.ndarray = field(repr=False, default=None)


def difficulty_factor(noise_value: float, strength: float = 0.8) -> float:
    """
    Remap a noise sample to a traversal difficulty.

    Noise in [-1, 1] maps to [1 - strength, 1 + strength]; the result is
    floored at MIN_DIFFICULTY for any input, including non-finite noise.
    """
    if not math.isfinite(noise_value):
        noise_value = 0.0
    return max(MIN_DIFFICULTY, 1.0 + noise_value * strength)


class PlateField:
    """Partitions a planet grid into plates."""

    def __init__(self, grid: PlanetGrid, options: Optional[PlateFieldOptions] = None):
        """
        Initialize plate field.

        Args:
            grid: Planet grid with neighbours built
            options: Partitioning options
        """
        self.grid = grid
        self.options = options or PlateFieldOptions()

        if self.options.num_plates < 1:
            raise ValueError("num_plates must be at least 1")
        if self.options.num_plates > grid.n_cells:
            raise ValueError(
                f"Cannot place {self.options.num_plates} plates on {grid.n_cells} cells"
            )

    def build_difficulty(self, noise_prng: AleaPRNG) -> np.ndarray:
        """Difficulty factor for every cell, sampled from cylindrical noise."""
        noise = PerlinNoise(noise_prng)
        samples = noise.sample_cylindrical(
            self.grid.width,
            self.grid.height,
            self.options.noise_scale,
            octaves=self.options.noise_octaves,
            persistence=self.options.noise_persistence,
        )
        strength = self.options.difficulty_strength
        return np.array([difficulty_factor(float(s), strength) for s in samples], dtype=np.float64)

    def place_seeds(self, prng: AleaPRNG) -> List[int]:
        """Pick one distinct random cell per plate."""
        n_cells = self.grid.n_cells
        seeds: List[int] = []
        taken = set()

        for _ in range(self.options.num_plates):
            cell = prng.randint(0, n_cells - 1)
            attempts = 0
            while cell in taken and attempts < self.options.max_seed_attempts:
                cell = prng.randint(0, n_cells - 1)
                attempts += 1
            if cell in taken:
                # Crowded grid: take the first free cell scanning forward
                cell = next(c for c in range(n_cells) if c not in taken)
            seeds.append(cell)
            taken.add(cell)

        return seeds

    def assign(self, prng: AleaPRNG, noise_prng: Optional[AleaPRNG] = None) -> PlateAssignment:
        """
        Run the weighted flood fill.

        Args:
            prng: Core generator (seed placement)
            noise_prng: Generator for the difficulty noise; derived from
                prng when omitted

        Returns:
            PlateAssignment with a complete cell -> plate map
        """
        grid = self.grid
        n_cells = grid.n_cells
        num_plates = self.options.num_plates

        logger.info("Assigning cells to plates", plates=num_plates, cells=n_cells)

        difficulty = self.build_difficulty(noise_prng or prng.derive("noise"))
        seeds = self.place_seeds(prng)

        plate_of_cell = np.full(n_cells, UNASSIGNED, dtype=np.int32)
        best_cost = np.full(n_cells, np.inf, dtype=np.float64)
        first_assigned = [UNASSIGNED] * num_plates

        # Priority queue: (cost, push order, cell, plate); push order makes
        # equal costs pop first-in first-out
        pq = []
        order = 0
        for plate, cell in enumerate(seeds):
            best_cost[cell] = 0.0
            heapq.heappush(pq, (0.0, order, cell, plate))
            order += 1

        while pq:
            cost, _, cell, plate = heapq.heappop(pq)
            if plate_of_cell[cell] != UNASSIGNED:
                continue

            plate_of_cell[cell] = plate
            if first_assigned[plate] == UNASSIGNED:
                first_assigned[plate] = cell

            for neighbor, (dx, dy) in zip(grid.cell_neighbors[cell], grid.neighbor_offsets[cell]):
                if plate_of_cell[neighbor] != UNASSIGNED:
                    continue
                step = math.sqrt(2.0) if dx != 0 and dy != 0 else 1.0
                new_cost = cost + step * difficulty[neighbor]
                if new_cost < best_cost[neighbor]:
                    best_cost[neighbor] = new_cost
                    heapq.heappush(pq, (new_cost, order, neighbor, plate))
                    order += 1

        orphans = self._fill_orphans(plate_of_cell)

        cells_by_plate: List[Set[int]] = [set() for _ in range(num_plates)]
        for cell in range(n_cells):
            cells_by_plate[plate_of_cell[cell]].add(cell)

        logger.info(
            "Plates assigned",
            plates=num_plates,
            orphans=orphans,
            sizes=[len(c) for c in cells_by_plate],
        )

        return PlateAssignment(
            plate_of_cell=plate_of_cell,
            cells_by_plate=cells_by_plate,
            seeds=seeds,
            first_assigned=first_assigned,
            difficulty=difficulty,
        )

    def _fill_orphans(self, plate_of_cell: np.ndarray) -> int:
        """
        Give any cell the fill never reached the plate of its first assigned
        neighbour (fixed 8-neighbour scan order), or plate 0.
        """
        orphans = 0
        for cell in range(self.grid.n_cells):
            if plate_of_cell[cell] != UNASSIGNED:
                continue
            orphans += 1
            plate_of_cell[cell] = 0
            for neighbor in self.grid.cell_neighbors[cell]:
                if plate_of_cell[neighbor] != UNASSIGNED:
                    plate_of_cell[cell] = plate_of_cell[neighbor]
                    break
        return orphans
