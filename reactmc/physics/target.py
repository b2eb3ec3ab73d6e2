"""
Physical reaction target: a tilted slab of a Material.
"""

import numpy as np
from typing import NamedTuple, Optional, Sequence, Tuple

from reactmc.core.geometry import Primitive
from reactmc.physics.stopping_power import AVOGADRO, Material
from reactmc.physics.scattering import highland_angle, straggle_direction


class InteractionPoint(NamedTuple):
    """Where a beam ray enters the target and where it reacts."""
    depth: float              # path length from entry to reaction [m]
    intersect: np.ndarray     # entry point on the target surface
    interact: np.ndarray      # reaction point inside the slab


class Target(Material):
    """
    Target slab with areal thickness, tilt angle and physical footprint.

    The slab is a Primitive centered on the origin, rotated by the tilt
    angle about the vertical (y) axis, with depth equal to the real
    thickness.

    Example:
        target = Target([(6, 12, 1), (1, 2, 2)], density=1.06,
                        thickness=1.0, angle=0.0, Z=1, A=2)
        point = target.get_interaction_depth([0, 0, -1], [0, 0, 1], rng)
    """

    def __init__(self, elements: Sequence[Tuple[float, float, int]], density: float,
                 thickness: float, angle: float = 0.0, Z: float = 1, A: float = 1,
                 width: float = 0.05, height: float = 0.05, name: str = 'target'):
        """
        Parameters:
            elements: (Z, A, count per molecule) for each element
            density: Density [g/cm³]
            thickness: Areal thickness normal to the slab [mg/cm²]
            angle: Tilt about the y axis [rad]
            Z, A: Charge and mass number of the reacting nucleus
            width, height: Transverse footprint of the slab [m]
        """
        super().__init__(elements, density, name=name)
        if thickness <= 0.0:
            raise ValueError(f"Target thickness must be positive, got {thickness}")
        if abs(np.cos(angle)) < 1e-6:
            raise ValueError(f"Target angle {angle} rad puts the slab edge-on to the beam")

        self.Z = Z
        self.A = A
        self.thickness = float(thickness)
        self.angle = float(angle)
        self.physical = Primitive(rotation=(self.angle, 0.0, 0.0),
                                  size=(height, width, self.real_thickness),
                                  material=name, use_ejectile=False, role='target')

    @property
    def z_thickness(self) -> float:
        """Areal thickness seen along the beam (z) axis [mg/cm²]."""
        return self.thickness / np.cos(self.angle)

    @property
    def real_thickness(self) -> float:
        """Thickness of the slab [m]."""
        return self.mg_per_cm2_to_m(self.thickness)

    @property
    def real_z_thickness(self) -> float:
        """Length of slab traversed along the z axis [m]."""
        return self.mg_per_cm2_to_m(self.z_thickness)

    @property
    def molecule_density(self) -> float:
        """Molecules per cm² of target."""
        return self.thickness * 1e-3 * AVOGADRO / self.molar_mass

    def number_density(self) -> float:
        """Areal density of reacting nuclei [1/cm²], along the beam axis."""
        matches = self.element_Z == self.Z
        if not matches.any():
            raise ValueError(f"Reacting nucleus Z={self.Z} is not in the composition of "
                             f"target '{self.name}' (Z = {self.element_Z.astype(int).tolist()})")
        per_molecule = float(self.element_count[matches].sum())
        return self.molecule_density * per_molecule / np.cos(self.angle)

    def get_interaction_depth(self, origin, direction,
                              rng: np.random.Generator) -> Optional[InteractionPoint]:
        """
        Sample a reaction point uniformly along the path through the slab.

        Returns None if the ray misses the target.
        """
        origin = np.asarray(origin, dtype=np.float64)
        result = self.physical.intersect(origin, direction)
        if not result.hit:
            return None

        d1 = np.linalg.norm(result.p1 - origin)
        d2 = np.linalg.norm(result.p2 - origin)
        entry, exit_ = (result.p1, result.p2) if d1 <= d2 else (result.p2, result.p1)

        interact = entry + rng.random() * (exit_ - entry)
        return InteractionPoint(float(np.linalg.norm(interact - entry)), entry, interact)

    def angle_straggling(self, direction, energy: float, Z: float, mass: float,
                         depth: float, rng: np.random.Generator) -> np.ndarray:
        """
        Deflect a beam direction after traversing depth [m] of target.

        The RMS width is the Highland angle for the traversed areal density.
        """
        theta_rms = highland_angle(energy, Z, mass, self.m_to_mg_per_cm2(depth),
                                   self.radiation_length)
        return straggle_direction(direction, theta_rms, rng)

    def __repr__(self):
        return (f"Target('{self.name}', {self.thickness} mg/cm², "
                f"angle={np.degrees(self.angle):.1f} deg, ρ={self.density} g/cm³)")
