"""Physics module: Stopping power, target, kinematics, angular distributions, efficiency."""

from reactmc.physics.stopping_power import EnergyLoss, Material, RangeTable, OutOfTableError
from reactmc.physics.target import Target
from reactmc.physics.angular_distribution import AngularDistribution
from reactmc.physics.kinematics import ReactionKinematics
from reactmc.physics.efficiency import DetectorEfficiency, EfficiencyTable

__all__ = ["EnergyLoss", "Material", "RangeTable", "OutOfTableError", "Target",
           "AngularDistribution",
           "ReactionKinematics", "DetectorEfficiency", "EfficiencyTable"]
