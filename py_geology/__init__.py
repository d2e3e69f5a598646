"""
py-geology: grid-based planetary geology simulation.

Plate tectonics, volcanism, erosion and sedimentation over a cylindrical
planet grid, advanced one deterministic tick at a time.
"""

from .core import (
    AleaPRNG,
    GeologySimulator,
    GridConfig,
    PlanetGrid,
    create_planet_grid,
    generate_planet_grid,
)

__version__ = "0.1.0"

__all__ = ['AleaPRNG', 'GeologySimulator', 'GridConfig', 'PlanetGrid',
           'create_planet_grid', 'generate_planet_grid']
