"""
Particle species: charge, mass and relativistic kinematics helpers.

A Particle optionally owns a RangeTable for the material it is slowed in.
"""

import numpy as np
from typing import Optional, Tuple

from reactmc.physics.stopping_power import (NEUTRON_RME, PROTON_RME,
                                            Material, RangeTable)

SPEED_OF_LIGHT = 299792458.0  # m/s

# Average binding energy per nucleon [MeV] for nuclei without a tabulated mass
BINDING_PER_NUCLEON = 7.5

# Tabulated rest masses [MeV] of light species
PARTICLE_MASSES = {
    (1, 0): NEUTRON_RME,
    (1, 1): PROTON_RME,
    (2, 1): 1875.612859,
    (3, 1): 2808.921005,
    (3, 2): 2808.391482,
    (4, 2): 3727.379240,
}

PARTICLE_NAMES = {
    'n': (1, 0),
    'neutron': (1, 0),
    'p': (1, 1),
    'proton': (1, 1),
    'H-1': (1, 1),
    'd': (2, 1),
    'deuteron': (2, 1),
    'H-2': (2, 1),
    't': (3, 1),
    'triton': (3, 1),
    'H-3': (3, 1),
    'He-3': (3, 2),
    'alpha': (4, 2),
    'He-4': (4, 2),
    'Li-7': (7, 3),
    'Be-9': (9, 4),
    'B-11': (11, 5),
    'C-12': (12, 6),
    'C-14': (14, 6),
    'N-14': (14, 7),
    'O-16': (16, 8),
}


def parse_particle_type(particle_type: str) -> Tuple[int, int]:
    """
    Parse a particle name to (A, Z).

    Examples:
        'proton' or 'p' → (1, 1)
        'C-12' → (12, 6)
    """
    if particle_type not in PARTICLE_NAMES:
        raise ValueError(f"Unknown particle '{particle_type}'. "
                         f"Available: {list(PARTICLE_NAMES.keys())}")
    return PARTICLE_NAMES[particle_type]


def nuclear_mass(A: int, Z: int) -> float:
    """Rest mass [MeV]: tabulated for light species, else Z m_p + N m_n - (B/A) A."""
    key = (int(round(A)), int(round(Z)))
    if key in PARTICLE_MASSES:
        return PARTICLE_MASSES[key]
    return Z * PROTON_RME + (A - Z) * NEUTRON_RME - BINDING_PER_NUCLEON * A


class Particle:
    """
    A particle species with an optional range table.

    Example:
        proton = Particle('proton', A=1, Z=1)
        proton.set_material(cd2, max_energy=30.0)
        proton.table.get_range(10.0)
    """

    def __init__(self, name: str, A: float, Z: float, mass: Optional[float] = None):
        self.name = name
        self.A = A
        self.Z = Z
        self.mass = nuclear_mass(A, Z) if mass is None else float(mass)
        self.table: Optional[RangeTable] = None

    @classmethod
    def from_name(cls, name: str) -> "Particle":
        A, Z = parse_particle_type(name)
        return cls(name, A, Z)

    @property
    def is_charged(self) -> bool:
        return self.Z > 0

    def set_material(self, material: Material, max_energy: float,
                     num_entries: int = 100, min_energy: float = 0.1):
        """Build the range table of this particle in a material."""
        if not self.is_charged:
            self.table = None
            return
        self.table = RangeTable(material, self.Z, self.mass, num_entries=num_entries,
                                stop_e=max_energy, start_e=min(min_energy, max_energy / 2.0))

    def gamma(self, energy: float) -> float:
        return 1.0 + energy / self.mass

    def beta(self, energy: float) -> float:
        return float(np.sqrt(1.0 - (self.mass / (energy + self.mass)) ** 2))

    def velocity(self, energy: float) -> float:
        """Speed [m/s] at kinetic energy [MeV]."""
        return self.beta(energy) * SPEED_OF_LIGHT

    def momentum(self, energy: float) -> float:
        """Momentum [MeV/c]."""
        return float(np.sqrt(energy ** 2 + 2.0 * energy * self.mass))

    def time_of_flight(self, energy: float, distance: float) -> float:
        """Flight time [s] over distance [m]."""
        return distance / self.velocity(energy)

    def __repr__(self):
        return (f"Particle({self.name}, A={self.A}, Z={self.Z}, "
                f"m={self.mass:.3f} MeV)")
