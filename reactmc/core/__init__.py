"""Core module: Vector algebra, detector geometry and particle species."""

from reactmc.core.vector import Matrix3
from reactmc.core.geometry import DetectorClass, IntersectionResult, Primitive
from reactmc.core.polygon import Line, Ray, RegularPolygon
from reactmc.core.particle import Particle

__all__ = ["Matrix3", "DetectorClass", "IntersectionResult", "Primitive",
           "Line", "Ray", "RegularPolygon", "Particle"]
