"""
Stopping power and range tables for charged particles in matter.

Proton electronic stopping is computed from the Bethe-Bloch formula with
shell and density-effect corrections and scaled to arbitrary ions with
the Barkas effective charge. Range tables integrate 1/S(E) once per
(particle, material) pair and are then interpolated in both directions.

Units: energies in MeV, path lengths in meters, stopping power in MeV/m,
densities in g/cm³, areal densities in mg/cm².

References:
    - PDG Review of Particle Physics (Passage of particles through matter)
    - W.R. Leo, Techniques for Nuclear and Particle Physics Experiments (shell correction)
    - Sternheimer & Peierls, Phys. Rev. B 3, 3681 (1971) (density effect)
    - Barkas, Nuclear Research Emulsions (1963) (effective charge)
"""

import numpy as np
import numba
from scipy.integrate import cumulative_trapezoid, trapezoid
from typing import NamedTuple, Sequence, Tuple

# Physical constants
PROTON_RME = 938.272046      # MeV
NEUTRON_RME = 939.565378     # MeV
ELECTRON_RME = 0.510998928   # MeV
AMU_MEV = 931.494061         # MeV
AVOGADRO = 6.02214129e23     # 1/mol
BETHE_K = 0.307075           # MeV cm²/mol

# Mean excitation energies of light elements [eV]
MEAN_EXCITATION_ENERGY = {
    1: 19.2,
    2: 41.8,
    3: 40.0,
    4: 63.7,
    5: 76.0,
    6: 78.0,
    7: 82.0,
    8: 95.0,
    9: 115.0,
    10: 137.0,
    11: 149.0,
    12: 156.0,
    13: 166.0,
}

# Common target compositions: (Z, A, count per molecule), density [g/cm³]
MATERIALS = {
    'CD2': {'elements': [(6, 12.0, 1), (1, 2.0, 2)], 'density': 1.06},
    'CH2': {'elements': [(6, 12.0, 1), (1, 1.0, 2)], 'density': 0.93},
    'carbon': {'elements': [(6, 12.0, 1)], 'density': 2.26},
    'aluminum': {'elements': [(13, 27.0, 1)], 'density': 2.70},
    'gold': {'elements': [(79, 197.0, 1)], 'density': 19.32},
    'vinyl_toluene': {'elements': [(6, 12.0, 9), (1, 1.0, 10)], 'density': 1.032},
}


class OutOfTableError(ValueError):
    """Query beyond the upper end of a range table."""


class EnergyLoss(NamedTuple):
    """Result of advancing a particle a given distance through a material."""
    energy: float
    distance: float
    stopped: bool


def mean_excitation_energy(Z: int) -> float:
    """Mean excitation energy [eV]; tabulated for Z <= 13, Bloch-type fit above."""
    if Z in MEAN_EXCITATION_ENERGY:
        return MEAN_EXCITATION_ENERGY[Z]
    return 9.76 * Z + 58.8 * Z ** -0.19


def radiation_length(Z: float, A: float) -> float:
    """Radiation length of a pure element [mg/cm²]."""
    return 7.164e5 * A / (Z * (Z + 1.0) * np.log(287.0 / np.sqrt(Z)))


# ============================================================================
# Numba kernels
# ============================================================================

@numba.njit(fastmath=True, cache=True)
def beta_squared(energy: float, mass: float) -> float:
    """β² of a particle with kinetic energy and rest mass in MeV."""
    return 1.0 - (mass / (energy + mass)) ** 2


@numba.njit(fastmath=True, cache=True)
def effective_charge(beta: float, Z: float) -> float:
    """
    Barkas effective charge.

        Z_eff = Z * (1 - exp(-125 β / Z^(2/3)))

    Accounts for electron pickup by slow ions.
    """
    return Z * (1.0 - np.exp(-125.0 * beta / Z ** (2.0 / 3.0)))


@numba.njit(fastmath=True, cache=True)
def shell_correction(eta: float, I_eV: float) -> float:
    """
    Total shell correction C(I, η), with η = βγ.

    Parameterization valid for η >= 0.1; smaller η is evaluated at 0.1.
    """
    if eta < 0.1:
        eta = 0.1
    e2 = eta ** -2
    e4 = eta ** -4
    e6 = eta ** -6
    return ((0.422377 * e2 + 0.0304043 * e4 - 0.00038106 * e6) * 1e-6 * I_eV ** 2
            + (3.858019 * e2 - 0.1667989 * e4 + 0.00157955 * e6) * 1e-9 * I_eV ** 3)


@numba.njit(fastmath=True, cache=True)
def density_correction(x: float, x0: float, x1: float, cbar: float,
                       a: float, m: float) -> float:
    """Sternheimer density-effect correction δ at x = log10(βγ)."""
    if x < x0:
        return 0.0
    delta = 4.6052 * x - cbar
    if x < x1:
        delta += a * (x1 - x) ** m
    return delta


@numba.njit(fastmath=True, cache=True)
def bethe_proton_stopping(energy: float, z_over_a: float, density: float,
                          I_eV: float, avg_Z: float, x0: float, x1: float,
                          cbar: float, a: float, m: float) -> float:
    """
    Bethe-Bloch proton stopping power [MeV/m].

        -dE/dx = K (Z/A) ρ / β² [ ½ ln(2 mₑc² β²γ² T_max / I²) - β² - δ/2 - C/Z ]

    Parameters:
        energy: Proton kinetic energy [MeV]
        z_over_a: Electron-weighted <Z/A> of the material
        density: Density [g/cm³]
        I_eV: Mean excitation energy [eV]
        avg_Z: Average atomic number (for the shell term)
        x0, x1, cbar, a, m: Sternheimer density-effect parameters
    """
    b2 = beta_squared(energy, PROTON_RME)
    gamma = 1.0 + energy / PROTON_RME
    bg2 = b2 * gamma * gamma
    mass_ratio = ELECTRON_RME / PROTON_RME
    t_max = 2.0 * ELECTRON_RME * bg2 / (1.0 + 2.0 * gamma * mass_ratio + mass_ratio ** 2)

    I_MeV = I_eV * 1e-6
    log_term = 0.5 * np.log(2.0 * ELECTRON_RME * bg2 * t_max / (I_MeV * I_MeV))
    delta = density_correction(0.5 * np.log10(bg2), x0, x1, cbar, a, m)
    shell = shell_correction(np.sqrt(bg2), I_eV)

    bracket = log_term - b2 - 0.5 * delta - shell / avg_Z
    # MeV cm²/g * g/cm³ = MeV/cm, then to MeV/m
    return BETHE_K * z_over_a * density / b2 * bracket * 100.0


@numba.njit(fastmath=True, cache=True)
def _linear_interpolate(x_array: np.ndarray, y_array: np.ndarray, x: float) -> float:
    """
    Binary search + linear interpolation on a strictly increasing x_array.

    Values outside the table return the end points; callers check bounds.
    """
    n = len(x_array)
    ir = np.searchsorted(x_array, x)

    if ir <= 0:
        return y_array[0]
    elif ir >= n:
        return y_array[-1]

    x1 = x_array[ir - 1]
    x2 = x_array[ir]
    return y_array[ir - 1] + (y_array[ir] - y_array[ir - 1]) * (x - x1) / (x2 - x1)


# ============================================================================
# Material
# ============================================================================

class Material:
    """
    Substance described by its elemental composition.

    Derived quantities (average Z and A, electron density, mean excitation
    energy, radiation length, density-effect parameters) are fixed at
    construction.

    Example:
        cd2 = Material([(6, 12, 1), (1, 2, 2)], density=1.06, name='CD2')
        cd2.stop_power(5.0, Z=1, mass=1875.6)   # deuteron, MeV/m
    """

    def __init__(self, elements: Sequence[Tuple[float, float, int]], density: float,
                 name: str = 'material'):
        """
        Parameters:
            elements: (Z, A, count per molecule) for each element
            density: Density [g/cm³]
            name: Label used in messages
        """
        if len(elements) == 0:
            raise ValueError(f"Material '{name}' has no elements")
        if density <= 0.0:
            raise ValueError(f"Material '{name}' density must be positive, got {density}")

        self.name = name
        self.density = float(density)
        self.element_Z = np.array([e[0] for e in elements], dtype=np.float64)
        self.element_A = np.array([e[1] for e in elements], dtype=np.float64)
        self.element_count = np.array([e[2] for e in elements], dtype=np.float64)
        if np.any(self.element_count <= 0) or np.any(self.element_Z <= 0):
            raise ValueError(f"Material '{name}' has an element with non-positive Z or count")

        n_atoms = self.element_count.sum()
        self.avg_Z = float(np.dot(self.element_count, self.element_Z) / n_atoms)
        self.avg_A = float(np.dot(self.element_count, self.element_A) / n_atoms)
        self.molar_mass = float(np.dot(self.element_count, self.element_A))  # g/mol
        self.total_elements = int(n_atoms)

        electrons = self.element_count * self.element_Z
        self.z_over_a = float(electrons.sum() / self.molar_mass)
        self.electron_density = self.z_over_a * AVOGADRO * self.density  # 1/cm³

        ln_I = np.array([np.log(mean_excitation_energy(int(z))) for z in self.element_Z])
        self.mean_excitation = float(np.exp(np.dot(electrons, ln_I) / electrons.sum()))

        mass_fraction = self.element_count * self.element_A / self.molar_mass
        inv_x0 = sum(w / radiation_length(z, a) for w, z, a in
                     zip(mass_fraction, self.element_Z, self.element_A))
        self.radiation_length = float(1.0 / inv_x0)  # mg/cm²

        self._init_density_effect()
        self._init_low_energy_branch()

    @classmethod
    def from_name(cls, name: str) -> "Material":
        if name not in MATERIALS:
            raise ValueError(f"Unknown material '{name}'. "
                             f"Available: {list(MATERIALS.keys())}")
        props = MATERIALS[name]
        return cls(props['elements'], props['density'], name=name)

    def _init_density_effect(self):
        """Sternheimer-Peierls general parameters from I and the plasma energy."""
        plasma_eV = 28.816 * np.sqrt(self.density * self.z_over_a)
        cbar = 2.0 * np.log(self.mean_excitation / plasma_eV) + 1.0
        self._dens_m = 3.0

        if self.density > 0.01:
            if self.mean_excitation < 100.0:
                x1 = 2.0
                x0 = 0.2 if cbar < 3.681 else 0.326 * cbar - 1.0
            else:
                x1 = 3.0
                x0 = 0.2 if cbar < 5.215 else 0.326 * cbar - 1.5
        else:
            gas_table = ((10.0, 1.6, 4.0), (10.5, 1.7, 4.0), (11.0, 1.8, 4.0),
                         (11.5, 1.9, 4.0), (12.25, 2.0, 4.0), (13.804, 2.0, 5.0))
            x0, x1 = 0.326 * cbar - 2.5, 5.0
            for limit, table_x0, table_x1 in gas_table:
                if cbar < limit:
                    x0, x1 = table_x0, table_x1
                    break

        self._dens_x0 = x0
        self._dens_x1 = x1
        self._dens_cbar = cbar
        self._dens_a = (cbar - 4.6052 * x0) / (x1 - x0) ** self._dens_m

    def _bethe(self, energy: float) -> float:
        return bethe_proton_stopping(energy, self.z_over_a, self.density,
                                     self.mean_excitation, self.avg_Z,
                                     self._dens_x0, self._dens_x1, self._dens_cbar,
                                     self._dens_a, self._dens_m)

    def _init_low_energy_branch(self):
        """
        Locate the stopping-power maximum of the Bethe curve.

        Below it the Bethe formula loses validity, and the stopping power is
        continued proportional to velocity (√E) down to zero.
        """
        grid = np.geomspace(1e-3, 50.0, 500)
        values = np.array([self._bethe(e) for e in grid])
        i_peak = int(np.argmax(values))
        if values[i_peak] <= 0.0:
            raise ValueError(f"Stopping power of '{self.name}' is not positive anywhere")
        self._peak_energy = float(grid[i_peak])
        self._peak_stopping = float(values[i_peak])

    def _pstop(self, energy: float) -> float:
        """Proton stopping power [MeV/m] at kinetic energy [MeV]."""
        if energy <= 0.0:
            return 0.0
        if energy < self._peak_energy:
            return self._peak_stopping * np.sqrt(energy / self._peak_energy)
        return self._bethe(energy)

    def stop_power(self, energy: float, Z: float, mass: float) -> float:
        """
        Electronic stopping power of an ion [MeV/m].

        The proton value at equal velocity is scaled by Z_eff².

        Parameters:
            energy: Kinetic energy of the ion [MeV]
            Z: Ion charge number
            mass: Ion rest mass [MeV]
        """
        if Z <= 0 or energy <= 0.0:
            return 0.0
        b2 = beta_squared(energy, mass)
        z_eff = effective_charge(np.sqrt(b2), Z)
        proton_energy = PROTON_RME * (1.0 / np.sqrt(1.0 - b2) - 1.0)
        return z_eff ** 2 * self._pstop(proton_energy)

    def range(self, energy: float, Z: float, mass: float, n_points: int = 200) -> float:
        """Range [m] by direct integration, without building a table."""
        if energy <= 0.0:
            return 0.0
        table = RangeTable(self, Z, mass, n_points, stop_e=energy, start_e=min(0.1, energy / 2.0))
        return table.get_range(energy)

    def birks(self, energy: float, Z: float, mass: float, L0: float = 1.0,
              kB: float = 0.0131, C: float = 0.0, n_points: int = 200) -> float:
        """
        Scintillation light output by Birks' law.

            L = ∫ L0 dE / (1 + kB dE/dx + C (dE/dx)²)

        Parameters:
            energy: Kinetic energy deposited [MeV]
            kB: Birks constant [g/(cm² MeV)]
            C: Second-order Chou coefficient [(g/(cm² MeV))²]
        """
        if energy <= 0.0:
            return 0.0
        grid = np.linspace(0.0, energy, n_points)
        # MeV/m to MeV cm²/g
        dedx = np.array([self.stop_power(e, Z, mass) for e in grid]) / (100.0 * self.density)
        light = L0 / (1.0 + kB * dedx + C * dedx ** 2)
        return float(trapezoid(light, grid))

    def mg_per_cm2_to_m(self, areal: float) -> float:
        return areal / (self.density * 1e5)

    def m_to_mg_per_cm2(self, length: float) -> float:
        return length * self.density * 1e5

    def __repr__(self):
        return (f"Material('{self.name}', <Z>={self.avg_Z:.3f}, <A>={self.avg_A:.3f}, "
                f"ρ={self.density} g/cm³, I={self.mean_excitation:.1f} eV)")


# ============================================================================
# Range table
# ============================================================================

class RangeTable:
    """
    Monotonic energy <-> range lookup for one particle in one material.

    The first entry is (0, 0). Energies above the last entry, or ranges
    beyond the last range, raise OutOfTableError.

    Example:
        table = RangeTable(cd2, Z=1, mass=938.27, num_entries=100, stop_e=30.0)
        table.get_new_e(10.0, 1e-4)   # EnergyLoss(energy=..., distance=1e-4, stopped=False)
    """

    def __init__(self, material: Material, Z: float, mass: float,
                 num_entries: int = 100, stop_e: float = 100.0, start_e: float = 0.1):
        """
        Parameters:
            material: Medium traversed
            Z: Particle charge number (> 0)
            mass: Particle rest mass [MeV]
            num_entries: Table length including the (0, 0) entry
            stop_e: Highest tabulated energy [MeV]
            start_e: Lowest non-zero tabulated energy [MeV]
        """
        if num_entries < 3:
            raise ValueError(f"Range table needs at least 3 entries, got {num_entries}")
        if not 0.0 < start_e < stop_e:
            raise ValueError(f"Range table energies must satisfy 0 < start < stop, "
                             f"got start={start_e}, stop={stop_e}")
        if Z <= 0:
            raise ValueError("Range tables are only defined for charged particles")

        self.material = material
        self.Z = Z
        self.mass = mass

        energies = np.geomspace(start_e, stop_e, num_entries - 1)
        stopping = np.array([material.stop_power(e, Z, mass) for e in energies])
        if np.any(stopping <= 0.0):
            raise ValueError(f"Non-positive stopping power in '{material.name}'")

        # S ∝ √E below the first sample gives R(E0) = 2 E0 / S(E0)
        first_range = 2.0 * start_e / stopping[0]
        ranges = first_range + cumulative_trapezoid(1.0 / stopping, energies, initial=0.0)

        self.energy = np.concatenate(([0.0], energies))
        self.range = np.concatenate(([0.0], ranges))

    @classmethod
    def from_arrays(cls, energy, range_) -> "RangeTable":
        """Wrap precomputed (energy, range) samples; both must strictly increase."""
        energy = np.asarray(energy, dtype=np.float64)
        range_ = np.asarray(range_, dtype=np.float64)
        if energy.shape != range_.shape or energy.size < 2:
            raise ValueError("Range table arrays must have equal length >= 2")
        if np.any(np.diff(energy) <= 0) or np.any(np.diff(range_) <= 0):
            raise ValueError("Range table energy and range must be strictly increasing")
        table = cls.__new__(cls)
        table.material = None
        table.Z = None
        table.mass = None
        table.energy = energy
        table.range = range_
        return table

    @property
    def max_energy(self) -> float:
        return float(self.energy[-1])

    @property
    def max_range(self) -> float:
        return float(self.range[-1])

    def get_range(self, energy: float) -> float:
        """Range [m] of a particle with the given kinetic energy [MeV]."""
        if energy <= self.energy[0]:
            return float(self.range[0])
        if energy > self.energy[-1]:
            raise OutOfTableError(f"Energy {energy:.4f} MeV above table maximum "
                                  f"{self.energy[-1]:.4f} MeV")
        return float(_linear_interpolate(self.energy, self.range, energy))

    def get_energy(self, range_: float) -> float:
        """Kinetic energy [MeV] of a particle with the given residual range [m]."""
        if range_ <= self.range[0]:
            return float(self.energy[0])
        if range_ > self.range[-1]:
            raise OutOfTableError(f"Range {range_:.4e} m above table maximum "
                                  f"{self.range[-1]:.4e} m")
        return float(_linear_interpolate(self.range, self.energy, range_))

    def get_new_e(self, energy: float, distance: float) -> EnergyLoss:
        """
        Advance a particle by distance [m].

        If the particle stops first, the returned energy is 0 and the
        distance is its residual range.
        """
        residual = self.get_range(energy)
        if distance >= residual:
            return EnergyLoss(0.0, residual, True)
        return EnergyLoss(self.get_energy(residual - distance), distance, False)

    def __len__(self):
        return len(self.energy)

    def __repr__(self):
        medium = self.material.name if self.material is not None else 'table'
        return (f"RangeTable({medium}, {len(self)} entries, "
                f"E_max={self.max_energy:.3f} MeV, R_max={self.max_range:.3e} m)")


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    cd2 = Material.from_name('CD2')
    print(cd2)

    table = RangeTable(cd2, Z=1, mass=PROTON_RME, num_entries=100, stop_e=30.0)
    for energy in [1.0, 5.0, 10.0, 20.0]:
        r = table.get_range(energy)
        print(f"  p @ {energy:5.1f} MeV: S = {cd2.stop_power(energy, 1, PROTON_RME):8.2f} MeV/m, "
              f"R = {r * 1e3:.4f} mm")

    print(f"\nEffective charge vs energy (Z = 6):")
    for E in [1.0, 10.0, 100.0]:
        beta = np.sqrt(beta_squared(E * 12, 12 * AMU_MEV))
        print(f"  {E:5.1f} MeV/u: Z_eff = {effective_charge(beta, 6.0):.3f}")
