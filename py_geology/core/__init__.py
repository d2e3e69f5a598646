"""
Core planetary geology functionality.
"""

from .alea_prng import AleaPRNG
from .planet_grid import GridConfig, PlanetGrid, GeologyControls, create_planet_grid, generate_planet_grid
from .geology import BoundaryType, CrustType, EruptionType, SedimentType, SedimentColumn, GeologyState
from .plate_field import PlateField, PlateFieldOptions, difficulty_factor
from .plate_kinematics import Plate, PlateKinematics, KinematicsOptions
from .volcanism import VolcanismEngine, VolcanismOptions, ERUPTION_PROFILES
from .erosion import ErosionSedimentEngine, ErosionOptions
from .stability import StabilityGuard, StabilityOptions
from .events import EruptionEvent, EarthquakeEvent, GeologyEventLog
from .simulator import GeologySimulator, SimulatorOptions, PlateInfo, TickReport

__all__ = ['AleaPRNG',
           'GridConfig', 'PlanetGrid', 'GeologyControls', 'create_planet_grid', 'generate_planet_grid',
           'BoundaryType', 'CrustType', 'EruptionType', 'SedimentType', 'SedimentColumn', 'GeologyState',
           'PlateField', 'PlateFieldOptions', 'difficulty_factor',
           'Plate', 'PlateKinematics', 'KinematicsOptions',
           'VolcanismEngine', 'VolcanismOptions', 'ERUPTION_PROFILES',
           'ErosionSedimentEngine', 'ErosionOptions',
           'StabilityGuard', 'StabilityOptions',
           'EruptionEvent', 'EarthquakeEvent', 'GeologyEventLog',
           'GeologySimulator', 'SimulatorOptions', 'PlateInfo', 'TickReport']
