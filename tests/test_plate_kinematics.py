"""Tests for plate motion and boundary interactions."""

import numpy as np
import pytest
from py_geology.core.alea_prng import AleaPRNG
from py_geology.core.events import GeologyEventLog
from py_geology.core.geology import MAX_TECTONIC_STRESS, BoundaryType, GeologyState
from py_geology.core.planet_grid import create_planet_grid
from py_geology.core.plate_field import PlateAssignment
from py_geology.core.plate_kinematics import PlateKinematics


class FixedPRNG(AleaPRNG):
    """Generator that always returns the same draw."""

    def __init__(self, value: float):
        super().__init__("fixed")
        self.value = value

    def random(self) -> float:
        self.call_count += 1
        return self.value


def split_assignment(grid):
    """Left half plate 0, right half plate 1."""
    plate_of_cell = np.zeros(grid.n_cells, dtype=np.int32)
    for cell in range(grid.n_cells):
        x, _ = grid.coords(cell)
        if x >= grid.width // 2:
            plate_of_cell[cell] = 1
    cells_by_plate = [set(np.flatnonzero(plate_of_cell == p).tolist()) for p in (0, 1)]
    return PlateAssignment(plate_of_cell, cells_by_plate, [0, grid.width // 2], [0, grid.width // 2])


class TestPlateKinematics:
    """Test boundary classification and effects."""

    @pytest.fixture
    def world(self):
        grid = create_planet_grid(8, 4)
        geology = GeologyState(grid.n_cells)
        events = GeologyEventLog()
        kinematics = PlateKinematics(grid, geology, events, AleaPRNG("kinematics"))
        kinematics.create_plates(split_assignment(grid))
        return grid, geology, events, kinematics

    def set_motion(self, kinematics, left, right, oceanic=(False, False)):
        for plate, velocity, is_oceanic in zip(kinematics.plates, (left, right), oceanic):
            plate.velocity_x, plate.velocity_y = velocity
            plate.is_oceanic = is_oceanic

    def test_create_plates(self, world):
        grid, geology, _, kinematics = world
        assert len(kinematics.plates) == 2
        for plate in kinematics.plates:
            assert -0.25 <= plate.velocity_x <= 0.25
            assert -0.25 <= plate.velocity_y <= 0.25
            assert plate.density == (3.0 if plate.is_oceanic else 2.7)
        assert geology.plate_id[0] == 0
        assert geology.plate_id[grid.width - 1] == 1

    def test_interior_cells_have_no_boundary(self, world):
        grid, geology, _, kinematics = world
        self.set_motion(kinematics, (0.2, 0.0), (-0.2, 0.0))
        kinematics.update(1.0, 1)
        assert geology.boundary_type[grid.index(1, 1)] == BoundaryType.NONE

    def test_positive_convergence_builds_mountains(self, world):
        """convergence = -dot(relative velocity, offset to neighbour) > 0.1."""
        grid, geology, _, kinematics = world
        self.set_motion(kinematics, (-0.2, 0.0), (0.2, 0.0))
        kinematics.update(1.0, 1)

        seam = grid.index(3, 1)
        assert geology.boundary_type[seam] == BoundaryType.CONVERGENT
        assert grid.elevation[seam] > 0
        assert geology.tectonic_stress[seam] > 0

    def test_negative_convergence_is_divergent(self, world):
        grid, geology, _, kinematics = world
        self.set_motion(kinematics, (0.2, 0.0), (-0.2, 0.0))
        kinematics.update(1.0, 1)
        assert geology.boundary_type[grid.index(3, 1)] == BoundaryType.DIVERGENT
        assert geology.boundary_type[grid.index(4, 1)] == BoundaryType.DIVERGENT

    def test_sliding_plates_are_transform(self, world):
        grid, geology, _, kinematics = world
        self.set_motion(kinematics, (0.0, 0.02), (0.0, -0.02))
        kinematics.update(1.0, 1)
        assert geology.boundary_type[grid.index(3, 1)] == BoundaryType.TRANSFORM
        assert geology.tectonic_stress[grid.index(3, 1)] > 0

    def test_subduction_water_side_sinks(self, world):
        grid, geology, _, kinematics = world
        self.set_motion(kinematics, (-0.2, 0.0), (0.2, 0.0), oceanic=(True, False))
        ocean = grid.index(3, 1)
        land = grid.index(4, 1)
        grid.elevation[ocean] = -0.3
        grid.elevation[land] = 0.2

        kinematics.update(1.0, 1)

        assert grid.elevation[ocean] < -0.3
        assert grid.elevation[land] > 0.2
        assert geology.subduction_rate[ocean] > 0

    def test_transform_earthquake_releases_stress(self, world):
        grid, geology, events, kinematics = world
        kinematics.prng = FixedPRNG(0.0)
        self.set_motion(kinematics, (0.0, 0.02), (0.0, -0.02))
        seam = grid.index(3, 1)
        geology.tectonic_stress[seam] = 1.2

        quakes = kinematics.update(1.0, 5)

        assert quakes >= 1
        assert geology.tectonic_stress[seam] == 0.0
        assert any(q.x == 3 and q.y == 1 and q.year == 5 for q in events.earthquakes)

    def test_stress_relief_quake(self, world):
        grid, geology, events, kinematics = world
        kinematics.prng = FixedPRNG(0.0)
        self.set_motion(kinematics, (0.0, 0.0), (0.0, 0.0))
        interior = grid.index(1, 2)
        geology.tectonic_stress[interior] = 2.0

        kinematics.update(1.0, 1)

        assert geology.tectonic_stress[interior] == pytest.approx(0.2)
        assert any(q.relief for q in events.earthquakes)

    def test_zero_delta_time_changes_nothing(self, world):
        grid, geology, events, kinematics = world
        self.set_motion(kinematics, (0.2, 0.0), (-0.2, 0.0))
        before = grid.elevation.copy()
        kinematics.update(0.0, 1)
        np.testing.assert_array_equal(grid.elevation, before)
        assert not events.earthquakes

    def test_stress_bounded(self, world):
        _, geology, _, kinematics = world
        self.set_motion(kinematics, (0.25, 0.25), (-0.25, -0.25))
        geology.tectonic_stress[:] = 9.999
        geology.tectonic_stress[5] = np.nan
        kinematics.update(1.0, 1)
        assert np.all(np.isfinite(geology.tectonic_stress))
        assert np.all(geology.tectonic_stress <= MAX_TECTONIC_STRESS)
        assert np.all(geology.tectonic_stress >= 0)


class TestBoundaryVolcanism:
    """Volcanoes armed at plate boundaries; a zero draw fires every trigger."""

    @pytest.fixture
    def world(self):
        grid = create_planet_grid(8, 4)
        geology = GeologyState(grid.n_cells)
        kinematics = PlateKinematics(grid, geology, GeologyEventLog(), AleaPRNG("kinematics"))
        kinematics.create_plates(split_assignment(grid))
        kinematics.prng = FixedPRNG(0.0)
        return grid, geology, kinematics

    def set_motion(self, kinematics, left, right, oceanic):
        for plate, velocity, is_oceanic in zip(kinematics.plates, (left, right), oceanic):
            plate.velocity_x, plate.velocity_y = velocity
            plate.is_oceanic = is_oceanic

    def converge(self, kinematics, oceanic):
        # Seam cells (3, y) and (4, y) see convergence 0.4, relative speed 0.4
        self.set_motion(kinematics, (-0.2, 0.0), (0.2, 0.0), oceanic)

    def diverge(self, kinematics, oceanic=(False, False)):
        self.set_motion(kinematics, (0.2, 0.0), (-0.2, 0.0), oceanic)

    def test_subduction_builds_volcanic_arc(self, world):
        grid, geology, kinematics = world
        self.converge(kinematics, oceanic=(True, False))
        ocean = grid.index(3, 1)
        land = grid.index(4, 1)
        grid.elevation[ocean] = -0.3
        grid.elevation[land] = 0.2

        kinematics.update(1.0, 7)

        for cell in (ocean, land):
            assert geology.is_volcano[cell]
            assert geology.volcanic_activity[cell] == pytest.approx(0.6)
            assert geology.magma_pressure[cell] == pytest.approx(0.3)
            assert geology.last_eruption_year[cell] == 7
            assert geology.subduction_rate[cell] == pytest.approx(0.004)
        assert grid.elevation[ocean] == pytest.approx(-0.3 - 0.001 * 0.4)
        assert grid.elevation[land] == pytest.approx(0.2 + 0.003 * 0.4)

    def test_collision_melts_high_crust(self, world):
        grid, geology, kinematics = world
        self.converge(kinematics, oceanic=(False, False))
        peak = grid.index(4, 1)
        foothill = grid.index(4, 2)
        grid.elevation[peak] = 0.7

        kinematics.update(1.0, 3)

        assert grid.elevation[peak] == pytest.approx(0.702)
        assert geology.is_volcano[peak]
        assert geology.volcanic_activity[peak] == pytest.approx(0.3)
        assert geology.magma_pressure[peak] == 0.0
        # Uplifted to 0.002 only, well under the melt elevation
        assert grid.elevation[foothill] == pytest.approx(0.002)
        assert not geology.is_volcano[foothill]

    def test_oceanic_collision_raises_island_arc(self, world):
        grid, geology, kinematics = world
        self.converge(kinematics, oceanic=(True, True))
        seam = grid.index(3, 1)
        grid.elevation[seam] = -0.2

        kinematics.update(1.0, 1)

        assert grid.elevation[seam] == pytest.approx(-0.17)
        assert geology.is_volcano[seam]
        assert geology.volcanic_activity[seam] == pytest.approx(0.7)
        assert geology.magma_pressure[seam] == pytest.approx(0.4)
        assert geology.subduction_rate[seam] == pytest.approx(0.004)

    def test_ridge_volcanism(self, world):
        grid, geology, kinematics = world
        self.diverge(kinematics, oceanic=(True, True))
        seam = grid.index(3, 1)
        grid.elevation[seam] = -0.2

        kinematics.update(1.0, 1)

        assert geology.boundary_type[seam] == BoundaryType.DIVERGENT
        assert grid.elevation[seam] == pytest.approx(-0.19)
        assert geology.is_volcano[seam]
        assert geology.volcanic_activity[seam] == pytest.approx(0.4)
        assert geology.magma_pressure[seam] == pytest.approx(0.2)

    def test_rift_valley_volcanism(self, world):
        grid, geology, kinematics = world
        self.diverge(kinematics)
        seam = grid.index(4, 1)
        grid.elevation[seam] = 0.3

        kinematics.update(1.0, 1)

        assert geology.boundary_type[seam] == BoundaryType.DIVERGENT
        assert grid.elevation[seam] == pytest.approx(0.298)
        assert geology.is_volcano[seam]
        assert geology.volcanic_activity[seam] == pytest.approx(0.5)
        assert geology.magma_pressure[seam] == 0.0

    def test_existing_volcano_keeps_its_magma(self, world):
        grid, geology, kinematics = world
        self.converge(kinematics, oceanic=(True, False))
        weak = grid.index(3, 1)
        strong = grid.index(3, 2)
        grid.elevation[weak] = -0.3
        grid.elevation[strong] = -0.3
        geology.activate_volcano(weak, activity=0.2, pressure=0.9, year=0)
        geology.activate_volcano(strong, activity=0.95, pressure=0.5, year=0)

        kinematics.update(1.0, 12)

        assert geology.volcanic_activity[weak] == pytest.approx(0.6)
        assert geology.magma_pressure[weak] == pytest.approx(0.9)
        assert geology.last_eruption_year[weak] == 0
        assert geology.volcanic_activity[strong] == pytest.approx(0.95)
        assert geology.magma_pressure[strong] == pytest.approx(0.5)
        assert geology.last_eruption_year[strong] == 0
