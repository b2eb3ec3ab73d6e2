"""
Center-of-mass angular distributions for reaction sampling.

A tabulated differential cross section dσ/dΩ(θ) is integrated into a
cumulative cross section

    Σ(θ) = ∫ 2π sin(θ') dσ/dΩ(θ') dθ'

and angles are drawn by inverse-CDF sampling. Without a table the
distribution is isotropic.
"""

import numpy as np
from pathlib import Path
from scipy.integrate import cumulative_trapezoid
from typing import Optional, Sequence

# 1 mb = 1e-27 cm²
MILLIBARN_CM2 = 1e-27


class AngularDistribution:
    """
    Differential cross section of one final state.

    Usage:
        dist = AngularDistribution(angles_deg=[0, 90, 180], cross_sections=[10, 5, 10])
        dist.total_cross_section    # mb
        theta = dist.sample(rng)    # radians
    """

    def __init__(self, angles_deg: Optional[Sequence[float]] = None,
                 cross_sections: Optional[Sequence[float]] = None,
                 total_cross_section: float = 0.0,
                 beam_intensity: float = 0.0, number_density: float = 0.0):
        """
        Parameters:
            angles_deg: CoM angles [deg], strictly increasing, within [0, 180]
            cross_sections: dσ/dΩ at each angle [mb/sr]
            total_cross_section: Total cross section for the isotropic case [mb]
            beam_intensity: Beam rate [particles/s], for the reaction rate
            number_density: Target areal density of reacting nuclei [1/cm²]
        """
        self.beam_intensity = beam_intensity
        self.number_density = number_density

        if angles_deg is None and cross_sections is None:
            if total_cross_section < 0.0:
                raise ValueError("Total cross section must be non-negative")
            self.angles = None
            self.cross_sections = None
            self.integral = None
            self.total_cross_section = float(total_cross_section)
            return

        angles_deg = np.asarray(angles_deg, dtype=np.float64)
        cross_sections = np.asarray(cross_sections, dtype=np.float64)
        if angles_deg.ndim != 1 or angles_deg.shape != cross_sections.shape:
            raise ValueError("Angle and cross-section arrays must be 1-D and equal length")
        if angles_deg.size < 2:
            raise ValueError(f"Angular distribution needs at least 2 points, "
                             f"got {angles_deg.size}")
        if np.any(np.diff(angles_deg) <= 0.0):
            raise ValueError("Angular distribution angles must be strictly increasing")
        if angles_deg[0] < 0.0 or angles_deg[-1] > 180.0:
            raise ValueError("Angular distribution angles must lie within [0, 180] deg")
        if np.any(cross_sections < 0.0):
            raise ValueError("Differential cross sections must be non-negative")

        self.angles = np.radians(angles_deg)
        self.cross_sections = cross_sections
        self.integral = cumulative_trapezoid(
            2.0 * np.pi * cross_sections * np.sin(self.angles), self.angles, initial=0.0)
        self.total_cross_section = float(self.integral[-1])
        if self.total_cross_section <= 0.0:
            raise ValueError("Angular distribution integrates to zero cross section")

    @classmethod
    def from_file(cls, filename, beam_intensity: float = 0.0,
                  number_density: float = 0.0) -> "AngularDistribution":
        """
        Load a two-column table: CoM angle [deg], dσ/dΩ [mb/sr].

        Lines starting with '#' are ignored.
        """
        path = Path(filename)
        if not path.exists():
            raise FileNotFoundError(f"Angular distribution file not found: {path}")
        data = np.loadtxt(path, comments='#', usecols=(0, 1), ndmin=2)
        return cls(data[:, 0], data[:, 1], beam_intensity=beam_intensity,
                   number_density=number_density)

    @property
    def is_isotropic(self) -> bool:
        return self.angles is None

    @property
    def rate(self) -> float:
        """Expected reaction rate [1/s] for the configured beam and target."""
        return self.total_cross_section * MILLIBARN_CM2 * self.beam_intensity * self.number_density

    def dsigma_domega(self, angle: float) -> float:
        """Interpolated dσ/dΩ [mb/sr] at a CoM angle [rad]."""
        if self.is_isotropic:
            return self.total_cross_section / (4.0 * np.pi)
        return float(np.interp(angle, self.angles, self.cross_sections, left=0.0, right=0.0))

    def sample(self, rng: np.random.Generator) -> float:
        """Draw a CoM angle [rad]."""
        if self.is_isotropic:
            return rng.random() * np.pi

        target = rng.random() * self.total_cross_section
        i = int(np.searchsorted(self.integral, target))
        i = min(max(i, 1), len(self.integral) - 1)

        low, high = self.integral[i - 1], self.integral[i]
        if high <= low:
            return float(self.angles[i - 1])
        fraction = (target - low) / (high - low)
        return float(self.angles[i - 1] + fraction * (self.angles[i] - self.angles[i - 1]))

    def __repr__(self):
        if self.is_isotropic:
            return f"AngularDistribution(isotropic, σ={self.total_cross_section:.3f} mb)"
        return (f"AngularDistribution({len(self.angles)} points, "
                f"σ={self.total_cross_section:.3f} mb)")
