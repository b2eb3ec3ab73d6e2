"""
Beam phase-space sampling: spot profile, divergence and energy spread.

The beam travels along +z toward a target centered at the origin.
With a non-zero divergence all rays originate from a focus point on the
axis upstream of the target, placed so the edge of the spot subtends the
divergence angle. With zero divergence the beam is parallel and starts
1 m upstream.
"""

import numpy as np
from typing import Tuple

# sigma / FWHM of a Gaussian
FWHM_TO_SIGMA = 0.424628450

BEAM_PROFILES = ('circle', 'gauss', 'halo')

# Start of a parallel beam [m]
PARALLEL_BEAM_OFFSET = 1.0


def random_gauss(fwhm: float, rng: np.random.Generator) -> float:
    """Zero-centered Gaussian deviate with the given FWHM."""
    if fwhm <= 0.0:
        return 0.0
    return rng.normal(0.0, fwhm * FWHM_TO_SIGMA)


def sample_spot(profile: str, spot_size: float, rng: np.random.Generator) -> Tuple[float, float]:
    """
    Transverse (x, y) position in the beam spot [m].

    Parameters:
        profile: 'circle' (uniform disk of diameter spot_size),
                 'gauss' (2-D Gaussian with FWHM spot_size),
                 'halo' (ring of diameter spot_size)
        spot_size: Spot diameter or FWHM [m]
    """
    if spot_size <= 0.0:
        return 0.0, 0.0

    phi = 2.0 * np.pi * rng.random()
    if profile == 'circle':
        r = np.sqrt(rng.random()) * spot_size / 2.0
    elif profile == 'gauss':
        return random_gauss(spot_size, rng), random_gauss(spot_size, rng)
    elif profile == 'halo':
        r = spot_size / 2.0
    else:
        raise ValueError(f"Unknown beam profile '{profile}'. Available: {list(BEAM_PROFILES)}")
    return r * np.cos(phi), r * np.sin(phi)


class BeamSampler:
    """
    Draws beam ray origins, directions and energies.

    Example:
        beam = BeamSampler(energy=60.0, energy_spread=0.5, spot_size=0.005,
                           divergence=np.radians(0.5), target_z_thickness=1e-5)
        origin, direction = beam.sample_ray(rng)
        energy = beam.sample_energy(rng)
    """

    def __init__(self, energy: float, energy_spread: float = 0.0, spot_size: float = 0.0,
                 divergence: float = 0.0, profile: str = 'circle',
                 target_z_thickness: float = 0.0):
        """
        Parameters:
            energy: Mean kinetic energy [MeV]
            energy_spread: Energy FWHM [MeV]
            spot_size: Spot diameter (FWHM for 'gauss') on the target [m]
            divergence: Half-angle divergence [rad]
            profile: Transverse profile name
            target_z_thickness: Target thickness along z [m], the spot is
                defined on its upstream surface
        """
        if profile not in BEAM_PROFILES:
            raise ValueError(f"Unknown beam profile '{profile}'. Available: {list(BEAM_PROFILES)}")
        if energy <= 0.0:
            raise ValueError(f"Beam energy must be positive, got {energy}")
        if not 0.0 <= divergence < np.pi / 2.0:
            raise ValueError(f"Beam divergence must be in [0, pi/2), got {divergence}")

        self.energy = energy
        self.energy_spread = energy_spread
        self.spot_size = spot_size
        self.divergence = divergence
        self.profile = profile
        self.surface_z = -target_z_thickness / 2.0

        if divergence > 0.0 and spot_size > 0.0:
            self.focus = np.array([0.0, 0.0,
                                   self.surface_z - (spot_size / 2.0) / np.tan(divergence)])
        else:
            self.focus = None

    @property
    def is_focused(self) -> bool:
        return self.focus is not None

    def sample_energy(self, rng: np.random.Generator) -> float:
        return self.energy + random_gauss(self.energy_spread, rng)

    def sample_ray(self, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
        """Origin and unit direction of one beam particle."""
        x, y = sample_spot(self.profile, self.spot_size, rng)
        if self.focus is None:
            origin = np.array([x, y, -PARALLEL_BEAM_OFFSET])
            return origin, np.array([0.0, 0.0, 1.0])

        direction = np.array([x, y, self.surface_z]) - self.focus
        return self.focus.copy(), direction / np.linalg.norm(direction)

    def max_energy(self) -> float:
        """Upper end of the energy distribution used to size range tables."""
        return self.energy + 2.0 * self.energy_spread
