"""Tests for erosion, transport and sedimentation."""

import pytest
from py_geology.core.alea_prng import AleaPRNG
from py_geology.core.erosion import ErosionSedimentEngine
from py_geology.core.geology import BoundaryType, GeologyState, SedimentType
from py_geology.core.planet_grid import create_planet_grid


class FixedPRNG(AleaPRNG):
    """Generator that always returns the same draw."""

    def __init__(self, value: float):
        super().__init__("fixed")
        self.value = value

    def random(self) -> float:
        self.call_count += 1
        return self.value


def make_engine(width=5, height=5, prng=None):
    grid = create_planet_grid(width, height)
    geology = GeologyState(grid.n_cells)
    engine = ErosionSedimentEngine(grid, geology, prng or AleaPRNG("erosion"))
    return grid, geology, engine


class TestCompaction:
    """Thick sediment lithifies into sedimentary rock."""

    @pytest.mark.parametrize("delta_time", [1.0, 0.5, 2.0])
    def test_quiet_land_cell_compacts(self, delta_time):
        grid, geology, engine = make_engine(6, 4)
        cell = grid.index(2, 1)
        geology.sediment_layer[cell] = 3.0
        geology.sedimentary_rock[cell] = 1.0

        engine.update(delta_time)

        compacted = (3.0 - 2.0) * engine.options.compaction_rate * delta_time
        assert geology.sediment_layer[cell] == pytest.approx(3.0 - compacted)
        assert geology.sedimentary_rock[cell] == pytest.approx(1.0 + compacted / 2)

    def test_thin_sediment_does_not_compact(self):
        grid, geology, engine = make_engine()
        geology.sediment_layer[12] = 1.5
        engine.update(1.0)
        assert geology.sediment_layer[12] == pytest.approx(1.5)
        assert geology.sedimentary_rock[12] == 0.0

    def test_rock_capped(self):
        grid, geology, engine = make_engine()
        geology.sediment_layer[12] = 10.0
        geology.sedimentary_rock[12] = 4.99
        engine.update(10.0)
        assert geology.sedimentary_rock[12] == 5.0


class TestErosionAndTransport:
    """Slope erosion and downhill sediment movement."""

    def test_sediment_moves_to_lowest_neighbor(self):
        grid, geology, engine = make_engine()
        center, target = grid.index(2, 2), grid.index(3, 2)
        grid.elevation[center] = 0.2
        grid.elevation[target] = -0.1
        grid.rainfall[center] = 0.3
        geology.sediment_layer[center] = 1.0

        engine.update(1.0)

        assert geology.erosion_rate[center] > 0
        assert geology.sediment_layer[center] < 1.0
        assert geology.sediment_layer[target] > 0
        # Slack water: the load is laid down as a clay layer
        assert geology.sediment_columns[target].top() == SedimentType.CLAY
        assert grid.elevation[target] > -0.1

    def test_water_cells_do_not_erode(self):
        grid, geology, engine = make_engine()
        grid.elevation[:] = -0.2
        grid.rainfall[:] = 1.0
        engine.update(1.0)
        assert not geology.erosion_rate.any()

    def test_steeper_and_wetter_erodes_faster(self):
        grid, geology, engine = make_engine()
        grid.rainfall[:] = 0.5
        grid.elevation[grid.index(1, 1)] = 0.6
        engine.erode_and_transport(1.0, 1.0)
        assert geology.erosion_rate[grid.index(1, 1)] > geology.erosion_rate[grid.index(4, 4)]

    def test_erosion_multiplier(self):
        grid, geology, engine = make_engine()
        grid.elevation[:] = 0.5
        grid.rainfall[:] = 0.5
        engine.erode_and_transport(1.0, 1.0)
        base = geology.erosion_rate[0]
        grid.elevation[:] = 0.5
        engine.erode_and_transport(1.0, 2.0)
        assert geology.erosion_rate[0] == pytest.approx(2 * base)

    def test_deep_ocean_trench_removes_sediment(self):
        grid, geology, engine = make_engine()
        cell = grid.index(2, 2)
        grid.elevation[:] = -0.8
        geology.boundary_type[cell] = BoundaryType.CONVERGENT
        geology.sediment_layer[cell] = 1.0
        geology.sediment_layer[0] = 1.0

        engine.erode_and_transport(1.0, 1.0)

        assert geology.sediment_layer[cell] == pytest.approx(0.95)
        assert geology.sediment_layer[0] == pytest.approx(1.0)

    @pytest.mark.parametrize("current, expected", [
        (0.9, SedimentType.GRAVEL),
        (0.6, SedimentType.SAND),
        (0.4, SedimentType.SILT),
        (0.1, SedimentType.CLAY),
    ])
    def test_classify_by_current(self, current, expected):
        _, _, engine = make_engine()
        assert engine.classify_sediment(0, current) == expected

    def test_classify_overrides(self):
        grid, geology, engine = make_engine()
        geology.volcanic_rock[0] = 0.6
        assert engine.classify_sediment(0, 0.9) == SedimentType.VOLCANIC
        grid.biomass[0] = 0.8
        assert engine.classify_sediment(0, 0.1) == SedimentType.ORGANIC


class TestSedimentarySequences:
    """Turbidites, fining-upward sequences and carbonate platforms."""

    @pytest.mark.parametrize("thickness, expected", [
        (0.4, [SedimentType.GRAVEL, SedimentType.SAND, SedimentType.SILT, SedimentType.CLAY]),
        (0.2, [SedimentType.SAND, SedimentType.SILT, SedimentType.CLAY]),
        (0.1, [SedimentType.SILT, SedimentType.CLAY]),
        (0.01, [SedimentType.CLAY]),
    ])
    def test_bouma_sequence(self, thickness, expected):
        _, _, engine = make_engine()
        assert engine.bouma_sequence(thickness) == expected

    def test_fining_upward_bands(self):
        _, _, engine = make_engine()
        assert engine.fining_upward_sequence(0.9, 0.3, False, 0.0) == [
            SedimentType.GRAVEL, SedimentType.SAND, SedimentType.SILT, SedimentType.CLAY,
        ]
        assert engine.fining_upward_sequence(0.9, 0.1, False, 0.0) == [
            SedimentType.GRAVEL, SedimentType.SAND, SedimentType.SILT,
        ]
        assert engine.fining_upward_sequence(0.5, 0.1, True, 0.0) == [
            SedimentType.SAND, SedimentType.SILT, SedimentType.CLAY, SedimentType.ORGANIC,
        ]
        assert engine.fining_upward_sequence(0.3, 0.1, False, 0.5) == [
            SedimentType.SILT, SedimentType.CLAY, SedimentType.ORGANIC,
        ]

    def test_turbidite_deposits_bouma_downslope(self):
        grid, geology, engine = make_engine(prng=FixedPRNG(0.0))
        source, target = grid.index(2, 2), grid.index(3, 2)
        grid.elevation[:] = -0.5
        grid.elevation[target] = -0.8
        geology.sediment_layer[source] = 2.0

        events = engine.generate_turbidites(1.0)

        assert events == 1
        assert geology.sediment_layer[source] == pytest.approx(1.4)
        assert geology.sediment_layer[target] == pytest.approx(0.6)
        assert geology.sediment_columns[target].as_list() == engine.bouma_sequence(0.6)

    def test_river_channel_fining_upward(self):
        grid, geology, engine = make_engine(prng=FixedPRNG(0.0))
        cell = grid.index(2, 2)
        grid.elevation[cell] = 0.3
        grid.water_flow[cell] = 0.9
        geology.sediment_layer[cell] = 1.0

        events = engine.generate_fining_upward_sequences(1.0)

        assert events == 1
        assert geology.sediment_layer[cell] == pytest.approx(0.6)
        assert geology.sediment_columns[cell].as_list() == [
            SedimentType.GRAVEL, SedimentType.SAND, SedimentType.SILT, SedimentType.CLAY,
        ]
        assert geology.sandstone[cell] > 0

    def test_carbonate_platform_grows(self):
        grid, geology, engine = make_engine()
        cell = grid.index(2, 2)
        grid.elevation[cell] = -0.1
        grid.temperature[cell] = 25.0
        grid.biomass[cell] = 1.0
        geology.is_carbonate_platform[cell] = True

        engine.grow_carbonate_platforms(1.0)

        assert geology.carbonate_layer[cell] == pytest.approx(0.015)

    def test_cold_platform_dormant(self):
        grid, geology, engine = make_engine()
        cell = grid.index(2, 2)
        grid.elevation[cell] = -0.1
        grid.temperature[cell] = 10.0
        grid.biomass[cell] = 1.0
        geology.is_carbonate_platform[cell] = True
        engine.grow_carbonate_platforms(1.0)
        assert geology.carbonate_layer[cell] == 0.0

    def test_thick_platform_converts_to_limestone(self):
        grid, geology, engine = make_engine(prng=FixedPRNG(0.0))
        cell = grid.index(2, 2)
        grid.elevation[cell] = -0.1
        grid.temperature[cell] = 25.0
        geology.is_carbonate_platform[cell] = True
        geology.carbonate_layer[cell] = 1.5

        engine.grow_carbonate_platforms(1.0)

        assert geology.carbonate_layer[cell] == pytest.approx(1.4)
        assert geology.limestone[cell] == pytest.approx(0.1)
        assert grid.elevation[cell] > -0.1
        assert geology.sediment_columns[cell].top() == SedimentType.LIMESTONE
