"""
Example running a few centuries of planetary geology.
"""

import numpy as np
from py_geology.config import configure_logging
from py_geology.core import (
    BoundaryType, GridConfig, generate_planet_grid,
    GeologySimulator, SimulatorOptions, PlateFieldOptions,
)


def main():
    # Configuration
    seed = "geology_demo"
    configure_logging("INFO", "console")

    # Create world
    grid = generate_planet_grid(GridConfig(width=96, height=48, land_ratio=0.35), seed=seed)
    options = SimulatorOptions(plate_field=PlateFieldOptions(num_plates=10))
    simulator = GeologySimulator(grid, seed, options)

    print("Plates:")
    for plate in simulator.plates:
        kind = "oceanic" if plate.is_oceanic else "continental"
        print(f"  {plate.id:2d} {kind:12s} v=({plate.velocity_x:+.3f}, {plate.velocity_y:+.3f}) cells={plate.cell_count}")

    # A restless planet
    grid.controls.tectonic_activity = 2.0
    grid.controls.volcanic_activity = 2.0

    print("\nSimulating 300 years...")
    eruptions = 0
    earthquakes = 0
    for report in simulator.run(300, delta_time=1.0):
        eruptions += report.eruptions
        earthquakes += report.earthquakes
        if report.year % 50 == 0:
            print(f"  year {report.year}: {eruptions} eruptions, {earthquakes} earthquakes so far")

    geo = simulator.geology
    with simulator.locked():
        boundaries = {b.name: int(np.sum(geo.boundary_type == b)) for b in BoundaryType}
        print("\nBoundary cells:", boundaries)
        print(f"Active volcanoes: {int(geo.is_volcano.sum())}")
        print(f"Mean sediment: {geo.sediment_layer.mean():.3f}")
        print(f"Max tectonic stress: {geo.tectonic_stress.max():.3f}")
        print(f"Elevation range: {grid.elevation.min():.3f} .. {grid.elevation.max():.3f}")
        print(f"Solar energy: {grid.solar_energy:.2f}")

    print("\nRecent eruptions:")
    for event in simulator.events.eruptions:
        print(f"  year {event.year} at ({event.x}, {event.y}): {event.eruption_type.name} VEI {event.vei}")

    # Stratigraphy of the busiest volcano
    volcanoes = np.flatnonzero(geo.is_volcano)
    if len(volcanoes):
        cell = int(volcanoes[np.argmax(geo.volcanic_activity[volcanoes])])
        x, y = grid.coords(cell)
        column = simulator.cell_geology(x, y)["sediment_column"]
        print(f"\nSediment column at ({x}, {y}), bottom first:")
        print("  " + " / ".join(column[-15:]))


if __name__ == "__main__":
    main()
