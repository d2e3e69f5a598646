"""
Erosion and sediment transport.

This module implements:
- Slope erosion on land (rainfall, chemical weathering, glacial boost)
- Single-receiver downhill sediment transport with sediment typing
- Compaction of thick sediment into sedimentary rock
- Deep-ocean sediment removal at trenches
- Turbidity currents depositing Bouma sequences
- Fining-upward sequences in rivers, deltas and floodplains
- Carbonate platform growth in shallow tropical seas

Sub-passes run over the whole grid in that order every tick.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from .alea_prng import AleaPRNG
from .geology import (
    MAX_SEDIMENTARY_ROCK,
    BoundaryType,
    GeologyState,
    SedimentType,
)
from .planet_grid import PlanetGrid

logger = structlog.get_logger()


@dataclass
class ErosionOptions:
    """Erosion and sedimentation parameters."""
    # Slope erosion
    base_coefficient: float = 0.1
    slope_coefficient: float = 2.0
    weathering_temperature: float = 20.0
    weathering_multiplier: float = 1.5
    glacial_multiplier: float = 2.0
    max_erosion_rate: float = 1.0
    erosion_step: float = 0.001     # applied = rate x dt x step
    max_erosion_per_tick: float = 0.01

    # Downhill transport
    transport_threshold: float = 0.01
    transport_coefficient: float = 0.1
    max_transport_fraction: float = 0.5
    deposition_current: float = 0.5   # current below this deposits a layer
    min_layer_thickness: float = 0.01
    gravel_current: float = 0.8
    sand_current: float = 0.5
    silt_current: float = 0.3
    volcanic_rock_threshold: float = 0.5
    organic_biomass: float = 0.5
    organic_current: float = 0.4
    lithification_fraction: float = 0.1
    lowland_elevation: float = 0.1
    deposition_uplift: float = 0.1

    # Compaction
    compaction_threshold: float = 2.0
    compaction_rate: float = 0.05
    rock_yield: float = 0.5

    # Deep-ocean removal
    deep_ocean_elevation: float = -0.5
    removal_sediment: float = 5.0
    removal_rate: float = 0.05

    # Turbidites
    slope_band_top: float = -0.1
    turbidite_min_slope: float = 0.1
    turbidite_min_sediment: float = 0.5
    turbidite_coefficient: float = 0.05
    turbidite_fraction: float = 0.3
    bouma_gravel: float = 0.3
    bouma_sand: float = 0.15
    bouma_silt: float = 0.05

    # Fining-upward sequences
    channel_flow: float = 0.5
    delta_elevation: float = 0.1
    delta_rainfall: float = 0.5
    floodplain_elevation: float = 0.2
    floodplain_rainfall: float = 0.4
    floodplain_flow: float = 0.2
    fining_min_sediment: float = 0.3
    fining_coefficient: float = 0.1
    fining_fraction: float = 0.4
    high_energy_flow: float = 0.8
    moderate_energy_flow: float = 0.4
    optional_layer_thickness: float = 0.2
    organic_cap_biomass: float = 0.4
    delta_progradation: float = 0.001
    composition_yield: float = 0.05

    # Carbonate platforms
    carbonate_depth: float = -0.3
    carbonate_min_temperature: float = 18.0
    carbonate_optimal_temperature: Tuple[float, float] = (20.0, 28.0)
    carbonate_growth: float = 0.01
    carbonate_optimal_boost: float = 1.5
    carbonate_threshold: float = 0.5
    carbonate_uplift: float = 0.0001
    carbonate_conversion: float = 0.1
    limestone_layer_chance: float = 0.05


class ErosionSedimentEngine:
    """Erosion, transport and deposition over the whole grid."""

    def __init__(
        self,
        grid: PlanetGrid,
        geology: GeologyState,
        prng: AleaPRNG,
        options: Optional[ErosionOptions] = None,
    ):
        self.grid = grid
        self.geology = geology
        self.prng = prng
        self.options = options or ErosionOptions()

    def update(self, delta_time: float) -> None:
        """Run every sub-pass in order for one tick."""
        _, _, erosion_scale = self.grid.controls.clamped()

        self.erode_and_transport(delta_time, erosion_scale)
        turbidites = self.generate_turbidites(delta_time)
        sequences = self.generate_fining_upward_sequences(delta_time)
        self.grow_carbonate_platforms(delta_time)

        if turbidites or sequences:
            logger.debug("Sedimentary events", turbidites=turbidites, fining_upward=sequences)

    # ------------------------------------------------------------------
    # Erosion, transport, compaction, deep-ocean removal
    # ------------------------------------------------------------------

    def erode_and_transport(self, delta_time: float, erosion_scale: float) -> None:
        grid = self.grid
        geo = self.geology

        for cell in range(grid.n_cells):
            if grid.is_land(cell):
                self._erode(cell, delta_time, erosion_scale)
                self._transport(cell, erosion_scale)
            else:
                geo.erosion_rate[cell] = 0.0
                self._remove_deep_ocean_sediment(cell, delta_time)

            self._compact(cell, delta_time)

    def _erode(self, cell: int, delta_time: float, erosion_scale: float) -> None:
        grid = self.grid
        geo = self.geology
        opts = self.options

        slope = grid.slope(cell)
        rate = grid.rainfall[cell] * opts.base_coefficient * (1.0 + slope * opts.slope_coefficient)
        if grid.temperature[cell] > opts.weathering_temperature:
            rate *= opts.weathering_multiplier
        if grid.is_ice[cell]:
            rate *= opts.glacial_multiplier
        rate = min(opts.max_erosion_rate, max(0.0, rate * erosion_scale))
        geo.erosion_rate[cell] = rate

        erosion = min(opts.max_erosion_per_tick, rate * delta_time * opts.erosion_step)
        grid.elevation[cell] -= erosion
        geo.sediment_layer[cell] += erosion

    def classify_sediment(self, cell: int, water_current: float) -> SedimentType:
        """Sediment carried out of a cell, by current strength with overrides."""
        opts = self.options

        if water_current > opts.gravel_current:
            sediment = SedimentType.GRAVEL
        elif water_current > opts.sand_current:
            sediment = SedimentType.SAND
        elif water_current > opts.silt_current:
            sediment = SedimentType.SILT
        else:
            sediment = SedimentType.CLAY

        if self.geology.volcanic_rock[cell] > opts.volcanic_rock_threshold:
            sediment = SedimentType.VOLCANIC
        if self.grid.biomass[cell] > opts.organic_biomass and water_current < opts.organic_current:
            sediment = SedimentType.ORGANIC
        return sediment

    def _transport(self, cell: int, erosion_scale: float) -> None:
        grid = self.grid
        geo = self.geology
        opts = self.options

        if geo.sediment_layer[cell] <= opts.transport_threshold:
            return
        target = grid.lowest_neighbor(cell)
        if target is None:
            return

        water_current = grid.rainfall[cell] + grid.flood_level[cell] + grid.water_flow[cell]
        fraction = min(
            opts.max_transport_fraction,
            opts.transport_coefficient * water_current * erosion_scale,
        )
        transport = geo.sediment_layer[cell] * fraction
        if transport <= 0:
            return

        sediment = self.classify_sediment(cell, water_current)
        geo.sediment_layer[cell] -= transport
        geo.sediment_layer[target] += transport

        # Only slack water lays down a new layer; fast water keeps it moving
        if water_current < opts.deposition_current and transport > opts.min_layer_thickness:
            geo.sediment_columns[target].append(sediment)
            geo.sedimentary_rock[target] += transport * opts.lithification_fraction
            if grid.is_water(target) or grid.elevation[target] < opts.lowland_elevation:
                grid.elevation[target] += transport * opts.deposition_uplift

    def _compact(self, cell: int, delta_time: float) -> None:
        geo = self.geology
        opts = self.options

        excess = geo.sediment_layer[cell] - opts.compaction_threshold
        if excess <= 0:
            return
        compacted = excess * opts.compaction_rate * delta_time
        geo.sediment_layer[cell] -= compacted
        geo.sedimentary_rock[cell] = min(
            MAX_SEDIMENTARY_ROCK, geo.sedimentary_rock[cell] + compacted * opts.rock_yield
        )

    def _remove_deep_ocean_sediment(self, cell: int, delta_time: float) -> None:
        geo = self.geology
        opts = self.options

        if self.grid.elevation[cell] >= opts.deep_ocean_elevation:
            return
        if (
            geo.boundary_type[cell] == BoundaryType.CONVERGENT
            or geo.sediment_layer[cell] > opts.removal_sediment
        ):
            geo.sediment_layer[cell] *= max(0.0, 1.0 - opts.removal_rate * delta_time)

    # ------------------------------------------------------------------
    # Turbidites
    # ------------------------------------------------------------------

    def generate_turbidites(self, delta_time: float) -> int:
        """Stochastic turbidity currents on steep submarine slopes."""
        grid = self.grid
        geo = self.geology
        opts = self.options
        events = 0

        for cell in range(grid.n_cells):
            # Continental-slope band and deep ocean alike lie below the shelf
            if grid.elevation[cell] >= opts.slope_band_top:
                continue
            sediment = geo.sediment_layer[cell]
            if sediment <= opts.turbidite_min_sediment:
                continue
            slope = grid.slope(cell)
            if slope <= opts.turbidite_min_slope:
                continue
            if not self.prng.chance(opts.turbidite_coefficient * slope * sediment * delta_time):
                continue

            target = grid.lowest_neighbor(cell)
            if target is None:
                continue

            moved = sediment * opts.turbidite_fraction
            geo.sediment_layer[cell] -= moved
            geo.sediment_layer[target] += moved
            if grid.is_water(target):
                geo.sediment_columns[target].extend(self.bouma_sequence(moved))
            events += 1

        return events

    def bouma_sequence(self, thickness: float) -> List[SedimentType]:
        """Coarse-to-fine layers of one turbidity current; clay always caps it."""
        opts = self.options
        layers = []
        if thickness > opts.bouma_gravel:
            layers.append(SedimentType.GRAVEL)
        if thickness > opts.bouma_sand:
            layers.append(SedimentType.SAND)
        if thickness > opts.bouma_silt:
            layers.append(SedimentType.SILT)
        layers.append(SedimentType.CLAY)
        return layers

    # ------------------------------------------------------------------
    # Fining-upward sequences
    # ------------------------------------------------------------------

    def is_delta(self, cell: int) -> bool:
        grid = self.grid
        opts = self.options
        return (
            0 <= grid.elevation[cell] < opts.delta_elevation
            and grid.rainfall[cell] > opts.delta_rainfall
            and grid.touches_water(cell)
        )

    def _is_fluvial(self, cell: int) -> bool:
        grid = self.grid
        opts = self.options
        if grid.water_flow[cell] > opts.channel_flow:
            return True
        if self.is_delta(cell):
            return True
        return (
            grid.elevation[cell] < opts.floodplain_elevation
            and grid.rainfall[cell] > opts.floodplain_rainfall
            and grid.water_flow[cell] > opts.floodplain_flow
        )

    def generate_fining_upward_sequences(self, delta_time: float) -> int:
        """Waning-flow deposits in river channels, deltas and floodplains."""
        grid = self.grid
        geo = self.geology
        opts = self.options
        events = 0

        for cell in range(grid.n_cells):
            if not grid.is_land(cell):
                continue
            sediment = geo.sediment_layer[cell]
            if sediment <= opts.fining_min_sediment or not self._is_fluvial(cell):
                continue
            water_flow = grid.water_flow[cell]
            if not self.prng.chance(opts.fining_coefficient * water_flow * sediment * delta_time):
                continue

            consumed = sediment * opts.fining_fraction
            delta = self.is_delta(cell)
            layers = self.fining_upward_sequence(water_flow, consumed, delta, grid.biomass[cell])

            geo.sediment_layer[cell] -= consumed
            geo.sediment_columns[cell].extend(layers)
            if water_flow > opts.moderate_energy_flow:
                geo.sandstone[cell] += consumed * opts.composition_yield
            else:
                geo.shale[cell] += consumed * opts.composition_yield
            if delta:
                grid.elevation[cell] += opts.delta_progradation
            events += 1

        return events

    def fining_upward_sequence(
        self, water_flow: float, thickness: float, delta: bool, biomass: float
    ) -> List[SedimentType]:
        """Grain-size sequence for a flow-energy band, coarse at the base."""
        opts = self.options

        if water_flow > opts.high_energy_flow:
            layers = [SedimentType.GRAVEL, SedimentType.SAND, SedimentType.SILT]
            if thickness > opts.optional_layer_thickness:
                layers.append(SedimentType.CLAY)
        elif water_flow > opts.moderate_energy_flow:
            layers = [SedimentType.SAND, SedimentType.SILT, SedimentType.CLAY]
            if delta:
                layers.append(SedimentType.ORGANIC)
        else:
            layers = [SedimentType.SILT, SedimentType.CLAY]
            if biomass > opts.organic_cap_biomass:
                layers.append(SedimentType.ORGANIC)
        return layers

    # ------------------------------------------------------------------
    # Carbonate platforms
    # ------------------------------------------------------------------

    def grow_carbonate_platforms(self, delta_time: float) -> None:
        grid = self.grid
        geo = self.geology
        opts = self.options
        optimal_low, optimal_high = opts.carbonate_optimal_temperature

        for cell in range(grid.n_cells):
            if not geo.is_carbonate_platform[cell]:
                continue
            elevation = grid.elevation[cell]
            temperature = grid.temperature[cell]
            if not (opts.carbonate_depth < elevation < 0) or temperature <= opts.carbonate_min_temperature:
                continue

            growth = grid.biomass[cell] * opts.carbonate_growth * delta_time
            if optimal_low <= temperature <= optimal_high:
                growth *= opts.carbonate_optimal_boost
            geo.carbonate_layer[cell] += growth

            if geo.carbonate_layer[cell] > opts.carbonate_threshold:
                grid.elevation[cell] += opts.carbonate_uplift * delta_time
                converted = (geo.carbonate_layer[cell] - opts.carbonate_threshold) * opts.carbonate_conversion
                geo.carbonate_layer[cell] -= converted
                geo.limestone[cell] = min(1.0, geo.limestone[cell] + converted)
                geo.sedimentary_rock[cell] = min(
                    MAX_SEDIMENTARY_ROCK, geo.sedimentary_rock[cell] + converted * opts.rock_yield
                )
                if self.prng.chance(opts.limestone_layer_chance):
                    geo.sediment_columns[cell].append(SedimentType.LIMESTONE)
