"""
Volcano lifecycle, eruption typing and area effects.

Volcanoes build magma pressure while active, erupt once pressure passes a
threshold, cool down after long quiescence and finally go extinct.
Hotspots are seeded at world creation away from any plate logic and model
stationary mantle plumes.

Eruptions are typed by a priority-ordered decision (water contact first,
then high pressure, then a residual split) and each type is described by
an EruptionProfile record: source build-up, composition changes, heat and
CO2 release, and a VEI-scaled radius inside which effects fall off
linearly with distance.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import structlog

from .alea_prng import AleaPRNG
from .events import EruptionEvent, GeologyEventLog
from .geology import BoundaryType, EruptionType, GeologyState, SedimentType
from .planet_grid import PlanetGrid

logger = structlog.get_logger()

MAX_VEI = 8


@dataclass(frozen=True)
class EruptionProfile:
    """Effects of one eruption type."""
    eruption_type: EruptionType
    vei_range: Tuple[int, int]
    elevation_delta: float        # applied at the source cell
    underwater_multiplier: float  # islands build faster under water
    volcanic_rock_delta: float
    basalt_delta: float
    temperature_delta: float
    co2_delta: float
    base_radius: float
    radius_per_vei: float
    biomass_damage: float         # fraction of biomass destroyed at the centre
    deposits_ash: bool = True
    ash_thickness: float = 0.05

    def radius(self, vei: int) -> int:
        return max(1, int(self.base_radius + self.radius_per_vei * vei))


ERUPTION_PROFILES: Dict[EruptionType, EruptionProfile] = {
    EruptionType.EFFUSIVE: EruptionProfile(
        EruptionType.EFFUSIVE, (0, 1),
        elevation_delta=0.05, underwater_multiplier=2.0,
        volcanic_rock_delta=0.2, basalt_delta=0.15,
        temperature_delta=50.0, co2_delta=2.0,
        base_radius=1.0, radius_per_vei=0.5,
        biomass_damage=0.3, deposits_ash=False,
    ),
    EruptionType.STROMBOLIAN: EruptionProfile(
        EruptionType.STROMBOLIAN, (1, 2),
        elevation_delta=0.03, underwater_multiplier=1.5,
        volcanic_rock_delta=0.15, basalt_delta=0.1,
        temperature_delta=40.0, co2_delta=2.5,
        base_radius=1.0, radius_per_vei=0.5,
        biomass_damage=0.4, ash_thickness=0.03,
    ),
    EruptionType.VULCANIAN: EruptionProfile(
        EruptionType.VULCANIAN, (2, 3),
        elevation_delta=0.02, underwater_multiplier=1.5,
        volcanic_rock_delta=0.25, basalt_delta=0.05,
        temperature_delta=30.0, co2_delta=4.0,
        base_radius=1.0, radius_per_vei=0.75,
        biomass_damage=0.6, ash_thickness=0.06,
    ),
    EruptionType.PLINIAN: EruptionProfile(
        EruptionType.PLINIAN, (4, 6),
        elevation_delta=0.02, underwater_multiplier=1.0,
        volcanic_rock_delta=0.4, basalt_delta=0.02,
        temperature_delta=60.0, co2_delta=10.0,
        base_radius=2.0, radius_per_vei=1.0,
        biomass_damage=0.9, ash_thickness=0.1,
    ),
    EruptionType.PHREATOMAGMATIC: EruptionProfile(
        EruptionType.PHREATOMAGMATIC, (2, 4),
        elevation_delta=0.04, underwater_multiplier=2.5,
        volcanic_rock_delta=0.2, basalt_delta=0.1,
        temperature_delta=20.0, co2_delta=3.0,
        base_radius=1.0, radius_per_vei=0.5,
        biomass_damage=0.5, ash_thickness=0.05,
    ),
}


@dataclass
class VolcanismOptions:
    """Volcano lifecycle and eruption parameters."""
    # Hotspots
    hotspot_count: Tuple[int, int] = (4, 8)
    hotspot_activity: Tuple[float, float] = (0.4, 0.7)
    hotspot_pressure: Tuple[float, float] = (0.0, 0.3)
    max_hotspot_attempts: int = 1000

    # Lifecycle
    pressure_rate: float = 0.01            # x activity x scale x dt
    eruption_threshold: float = 1.0
    eruption_rate: float = 0.02            # x scale x dt
    max_eruption_probability: float = 0.5
    dormancy_years: int = 100
    dormancy_decay: float = 0.99
    min_activity: float = 0.001
    extinction_years: int = 400
    extinction_activity: float = 0.05
    extinction_pressure: float = 0.1

    # Spawning
    spawn_rate: float = 0.05
    spawn_attempts: int = 20
    spawn_elevation: float = 0.65
    spawn_water_rejection: float = 0.7
    spawn_activity: Tuple[float, float] = (0.3, 0.8)
    spawn_pressure: Tuple[float, float] = (0.0, 0.5)

    # Eruption typing (checked in this order)
    phreatomagmatic_chance: float = 0.6
    plinian_pressure: float = 1.5
    plinian_chance: float = 0.3
    vulcanian_pressure: float = 1.2
    vulcanian_chance: float = 0.5
    strombolian_chance: float = 0.4
    high_activity_vei_bonus: float = 0.8

    # Area effects
    area_rock_fraction: float = 0.25
    area_heat_fraction: float = 0.2
    area_co2_fraction: float = 0.25
    ash_strength_threshold: float = 0.2

    # Large Plinian eruptions
    caldera_vei: int = 6
    caldera_elevation_delta: float = -0.15
    sterilization_radius: int = 2
    volcanic_winter_decrement: float = 0.02


class VolcanismEngine:
    """Runs every volcano through its lifecycle once per tick."""

    def __init__(
        self,
        grid: PlanetGrid,
        geology: GeologyState,
        events: GeologyEventLog,
        prng: AleaPRNG,
        options: Optional[VolcanismOptions] = None,
    ):
        self.grid = grid
        self.geology = geology
        self.events = events
        self.prng = prng
        self.options = options or VolcanismOptions()
        self.profiles = ERUPTION_PROFILES

    def seed_hotspots(self, current_year: int = 0) -> List[int]:
        """
        Arm a handful of stationary mantle plumes as active volcanoes.

        Each hotspot takes its own cell; a grid smaller than the drawn
        count gets one hotspot per cell.

        Returns:
            Distinct cell indices of the hotspots
        """
        opts = self.options
        n_cells = self.grid.n_cells
        count = min(self.prng.randint(*opts.hotspot_count), n_cells)
        hotspots: List[int] = []
        taken = set()

        for _ in range(count):
            cell = self.prng.randint(0, n_cells - 1)
            attempts = 0
            while cell in taken and attempts < opts.max_hotspot_attempts:
                cell = self.prng.randint(0, n_cells - 1)
                attempts += 1
            if cell in taken:
                # Crowded grid: take the first free cell scanning forward
                cell = next(c for c in range(n_cells) if c not in taken)
            taken.add(cell)

            activity = self.prng.uniform(*opts.hotspot_activity)
            pressure = self.prng.uniform(*opts.hotspot_pressure)
            self.geology.activate_volcano(cell, activity, pressure, current_year)
            self.geology.is_hotspot[cell] = True
            hotspots.append(cell)

        logger.info("Hotspots seeded", count=len(hotspots))
        return hotspots

    def update(self, delta_time: float, current_year: int) -> int:
        """
        Advance every volcano one tick and maybe spawn a new one.

        Returns:
            Number of eruptions this tick
        """
        geo = self.geology
        opts = self.options
        _, volcanic_scale, _ = self.grid.controls.clamped()
        eruptions = 0

        for cell in range(self.grid.n_cells):
            if not geo.is_volcano[cell]:
                continue

            geo.magma_pressure[cell] += (
                geo.volcanic_activity[cell] * opts.pressure_rate * volcanic_scale * delta_time
            )

            # One evaluation, at most one eruption, per volcano per tick
            if geo.magma_pressure[cell] > opts.eruption_threshold:
                probability = min(
                    opts.max_eruption_probability,
                    opts.eruption_rate * volcanic_scale * delta_time,
                )
                if self.prng.chance(probability):
                    self.erupt(cell, current_year)
                    eruptions += 1

            quiet_years = current_year - geo.last_eruption_year[cell]
            if quiet_years > opts.dormancy_years:
                geo.volcanic_activity[cell] = max(
                    opts.min_activity, geo.volcanic_activity[cell] * opts.dormancy_decay
                )

            if (
                quiet_years > opts.extinction_years
                and geo.volcanic_activity[cell] < opts.extinction_activity
                and geo.magma_pressure[cell] < opts.extinction_pressure
            ):
                geo.extinguish_volcano(cell)
                logger.debug("Volcano extinct", cell=cell, year=current_year)

        if self.prng.chance(opts.spawn_rate * volcanic_scale * delta_time):
            self.spawn_volcano(current_year)

        return eruptions

    def spawn_volcano(self, current_year: int) -> Optional[int]:
        """
        Bounded random search for a site for a new volcano.

        Boundaries, hotspots and high ground qualify; water sites are
        mostly rejected.

        Returns:
            The new volcano's cell, or None if no site was accepted
        """
        geo = self.geology
        opts = self.options

        for _ in range(opts.spawn_attempts):
            cell = self.prng.randint(0, self.grid.n_cells - 1)
            if geo.is_volcano[cell]:
                continue

            favored = (
                geo.boundary_type[cell] in (BoundaryType.CONVERGENT, BoundaryType.DIVERGENT)
                or geo.is_hotspot[cell]
                or self.grid.elevation[cell] > opts.spawn_elevation
            )
            if not favored:
                continue
            if self.grid.is_water(cell) and self.prng.chance(opts.spawn_water_rejection):
                continue

            geo.activate_volcano(
                cell,
                self.prng.uniform(*opts.spawn_activity),
                self.prng.uniform(*opts.spawn_pressure),
                current_year,
            )
            logger.debug("Volcano spawned", cell=cell, year=current_year)
            return cell

        return None

    def classify_eruption(self, cell: int) -> EruptionType:
        """Pick the eruption type; the order of checks is fixed."""
        opts = self.options
        pressure = self.geology.magma_pressure[cell]

        if self.grid.touches_water(cell) and self.prng.chance(opts.phreatomagmatic_chance):
            return EruptionType.PHREATOMAGMATIC
        if pressure > opts.plinian_pressure and self.prng.chance(opts.plinian_chance):
            return EruptionType.PLINIAN
        if pressure > opts.vulcanian_pressure and self.prng.chance(opts.vulcanian_chance):
            return EruptionType.VULCANIAN
        if self.prng.chance(opts.strombolian_chance):
            return EruptionType.STROMBOLIAN
        return EruptionType.EFFUSIVE

    def calculate_vei(self, eruption_type: EruptionType, activity: float) -> int:
        """Volcanic Explosivity Index in [0, 8]."""
        low, high = self.profiles[eruption_type].vei_range
        vei = self.prng.randint(low, high)
        if activity > self.options.high_activity_vei_bonus:
            vei += 1
        return max(0, min(MAX_VEI, vei))

    def erupt(self, cell: int, current_year: int) -> EruptionEvent:
        """
        Execute an eruption at a volcano cell.

        Pressure is reset to 0 so the volcano cannot erupt again this tick.
        """
        geo = self.geology
        eruption_type = self.classify_eruption(cell)
        vei = self.calculate_vei(eruption_type, geo.volcanic_activity[cell])

        self.apply_eruption(cell, eruption_type, vei)

        geo.magma_pressure[cell] = 0.0
        geo.last_eruption_year[cell] = current_year
        geo.last_eruption_type[cell] = eruption_type
        geo.eruption_intensity[cell] = vei

        x, y = self.grid.coords(cell)
        event = EruptionEvent(x, y, current_year, eruption_type, vei)
        self.events.record_eruption(event)
        return event

    def apply_eruption(self, cell: int, eruption_type: EruptionType, vei: int) -> None:
        """Source-cell changes plus the radius-limited area effects."""
        grid = self.grid
        geo = self.geology
        opts = self.options
        profile = self.profiles[eruption_type]

        elevation_delta = profile.elevation_delta
        if grid.is_water(cell):
            elevation_delta *= profile.underwater_multiplier
        grid.elevation[cell] += elevation_delta

        geo.volcanic_rock[cell] += profile.volcanic_rock_delta
        geo.basalt[cell] += profile.basalt_delta
        grid.temperature[cell] += profile.temperature_delta
        grid.co2[cell] += profile.co2_delta

        radius = profile.radius(vei)
        for neighbor, distance in self._cells_within(cell, radius):
            strength = 1.0 - distance / (radius + 1)
            geo.volcanic_rock[neighbor] += profile.volcanic_rock_delta * opts.area_rock_fraction * strength
            grid.temperature[neighbor] += profile.temperature_delta * opts.area_heat_fraction * strength
            grid.co2[neighbor] += profile.co2_delta * opts.area_co2_fraction * strength
            grid.biomass[neighbor] *= 1.0 - profile.biomass_damage * strength

            if profile.deposits_ash and strength >= opts.ash_strength_threshold:
                geo.sediment_columns[neighbor].append(SedimentType.VOLCANIC)
                geo.sediment_layer[neighbor] += profile.ash_thickness * strength

        grid.biomass[cell] *= 1.0 - profile.biomass_damage

        if eruption_type == EruptionType.PLINIAN and vei >= opts.caldera_vei:
            self._apply_caldera(cell, vei)

    def _apply_caldera(self, cell: int, vei: int) -> None:
        """Caldera collapse, sterilised core and volcanic winter."""
        grid = self.grid
        opts = self.options

        # The collapse replaces the cone built by this eruption
        grid.elevation[cell] += opts.caldera_elevation_delta - self.profiles[EruptionType.PLINIAN].elevation_delta
        grid.biomass[cell] = 0.0
        for neighbor, _ in self._cells_within(cell, opts.sterilization_radius):
            grid.biomass[neighbor] = 0.0

        grid.solar_energy = max(0.0, grid.solar_energy - opts.volcanic_winter_decrement)

        x, y = grid.coords(cell)
        logger.info(
            "Caldera-forming eruption",
            x=x,
            y=y,
            vei=vei,
            solar_energy=grid.solar_energy,
        )

    def _cells_within(self, cell: int, radius: int) -> List[Tuple[int, float]]:
        """Cells at 0 < distance <= radius, wrapping x and clipping y."""
        grid = self.grid
        cx, cy = grid.coords(cell)
        found = []
        seen = {cell}

        for dy in range(-radius, radius + 1):
            y = cy + dy
            if y < 0 or y >= grid.height:
                continue
            for dx in range(-radius, radius + 1):
                distance = math.hypot(dx, dy)
                if distance > radius:
                    continue
                neighbor = y * grid.width + (cx + dx) % grid.width
                if neighbor in seen:
                    continue
                seen.add(neighbor)
                found.append((neighbor, distance))

        return found
