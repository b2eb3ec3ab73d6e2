"""
REACTMC: Reaction Monte Carlo with detector response

Monte Carlo simulation of two-body nuclear reactions in a thin target and
of the response of an array of rectangular detector elements to the
reaction products.

Modules:
    core: Vector algebra, detector geometry, polygons, particle species
    physics: Stopping power and range tables, target, kinematics,
             angular distributions, detector efficiency
    transport: Beam sampling, event loop, parallel runs, event records
    io: HDF5 output
    config: YAML run configuration
"""

__version__ = "0.1.0"
__author__ = "William Comaskey"

from reactmc.core.geometry import DetectorClass, Primitive
from reactmc.core.particle import Particle
from reactmc.physics.stopping_power import Material, RangeTable
from reactmc.physics.target import Target
from reactmc.physics.kinematics import ReactionKinematics
from reactmc.physics.angular_distribution import AngularDistribution
from reactmc.config import SimulationConfig, load_config
from reactmc.transport.engine import SimulationEngine

__all__ = [
    "DetectorClass",
    "Primitive",
    "Particle",
    "Material",
    "RangeTable",
    "Target",
    "ReactionKinematics",
    "AngularDistribution",
    "SimulationConfig",
    "load_config",
    "SimulationEngine",
]
