"""
Relativistic two-body reaction kinematics.

For a beam (m1, T1) incident on a target at rest (m2) producing an
ejectile (m3) and a recoil (m4*, possibly excited), the ejectile is
emitted at a sampled center-of-mass angle and both products are boosted
back to the laboratory frame.

All masses and energies in MeV. Angles in radians.

References:
    - PDG Review of Particle Physics (Kinematics)
    - Hagedorn, Relativistic Kinematics (1963)
"""

import numpy as np
from typing import List, NamedTuple, Optional, Sequence

from reactmc.physics.angular_distribution import AngularDistribution
from reactmc.physics.stopping_power import AMU_MEV


class ReactionProducts(NamedTuple):
    """Lab-frame outcome of one reaction, directions as (theta, phi) about the beam axis."""
    ejectile_energy: float
    recoil_energy: float
    ejectile_theta: float
    ejectile_phi: float
    recoil_theta: float
    recoil_phi: float
    com_angle: float
    state: int


class ReactionKinematics:
    """
    Two-body kinematics with a set of recoil excited states.

    Example:
        # d(14C, p)15C ground state and one excited state
        kin = ReactionKinematics(beam_A=14, target_A=2, ejectile_A=1, recoil_A=15,
                                 q_value=1.007, excited_states=[0.74])
        products = kin.fill_vars(60.0, rng)
    """

    def __init__(self, beam_A: float, target_A: float, ejectile_A: float,
                 recoil_A: float, q_value: float,
                 excited_states: Sequence[float] = (),
                 distributions: Optional[Sequence[AngularDistribution]] = None):
        """
        Parameters:
            beam_A, target_A, ejectile_A, recoil_A: Mass numbers [u]
            q_value: Ground-state Q-value [MeV]
            excited_states: Recoil excitation energies [MeV]
            distributions: One AngularDistribution per state (ground state
                first); isotropic for every state if None
        """
        self.beam_mass = beam_A * AMU_MEV
        self.target_mass = target_A * AMU_MEV
        self.ejectile_mass = ejectile_A * AMU_MEV
        self.q_value = float(q_value)
        self.excitations = np.concatenate(([0.0], np.asarray(excited_states, dtype=np.float64)))
        if np.any(self.excitations < 0.0):
            raise ValueError("Excitation energies must be non-negative")

        # The recoil mass absorbs the difference so the Q-value is exact
        self.recoil_mass = (self.beam_mass + self.target_mass - self.ejectile_mass
                            - self.q_value)

        self.distributions: List[AngularDistribution] = []
        self.set_distributions(distributions)

    @property
    def n_states(self) -> int:
        return len(self.excitations)

    def set_distributions(self, distributions: Optional[Sequence[AngularDistribution]]):
        if distributions is None:
            distributions = [AngularDistribution() for _ in range(self.n_states)]
        if len(distributions) != self.n_states:
            raise ValueError(f"Expected {self.n_states} angular distributions "
                             f"(ground state + excited), got {len(distributions)}")
        self.distributions = list(distributions)
        totals = np.array([d.total_cross_section for d in self.distributions])
        if totals.sum() > 0.0 and np.any(totals <= 0.0):
            missing = [int(i) for i in np.flatnonzero(totals <= 0.0)]
            raise ValueError(f"States {missing} have no cross section while other states "
                             f"do; they would never be populated. Give them a total "
                             f"cross section")
        if totals.sum() > 0.0:
            self._state_weights = np.cumsum(totals) / totals.sum()
        else:
            self._state_weights = np.arange(1, self.n_states + 1) / self.n_states

    @property
    def total_cross_section(self) -> float:
        return float(sum(d.total_cross_section for d in self.distributions))

    def recoil_mass_for(self, state: int) -> float:
        return self.recoil_mass + self.excitations[state]

    def threshold_energy(self, state: int = 0) -> float:
        """Lowest beam kinetic energy [MeV] at which the state is populated."""
        m_final = self.ejectile_mass + self.recoil_mass_for(state)
        m_initial = self.beam_mass + self.target_mass
        if m_final <= m_initial:
            return 0.0
        return (m_final ** 2 - m_initial ** 2) / (2.0 * self.target_mass)

    def sample_state(self, rng: np.random.Generator) -> int:
        """Pick a final state with probability proportional to its cross section."""
        index = int(np.searchsorted(self._state_weights, rng.random(), side='right'))
        return min(index, self.n_states - 1)

    def two_body(self, beam_energy: float, com_angle: float, phi: float = 0.0,
                 state: int = 0) -> Optional[ReactionProducts]:
        """
        Deterministic lab-frame kinematics at a given CoM angle.

        Returns None when the reaction is forbidden at this energy.
        """
        m1, m2, m3 = self.beam_mass, self.target_mass, self.ejectile_mass
        m4 = self.recoil_mass_for(state)

        s = (m1 + m2) ** 2 + 2.0 * m2 * beam_energy
        sqrt_s = np.sqrt(s)
        if sqrt_s < m3 + m4:
            return None

        e_total = beam_energy + m1 + m2
        p_beam = np.sqrt(beam_energy ** 2 + 2.0 * beam_energy * m1)
        beta_cm = p_beam / e_total
        gamma_cm = e_total / sqrt_s

        e3_cm = (s + m3 ** 2 - m4 ** 2) / (2.0 * sqrt_s)
        e4_cm = sqrt_s - e3_cm
        p_cm = np.sqrt(max(e3_cm ** 2 - m3 ** 2, 0.0))

        cos_cm = np.cos(com_angle)
        sin_cm = np.sin(com_angle)

        # Ejectile along the CoM direction, recoil opposite
        p3_par = gamma_cm * (p_cm * cos_cm + beta_cm * e3_cm)
        p3_perp = p_cm * sin_cm
        e3 = gamma_cm * (e3_cm + beta_cm * p_cm * cos_cm)

        p4_par = gamma_cm * (-p_cm * cos_cm + beta_cm * e4_cm)
        p4_perp = p_cm * sin_cm
        e4 = gamma_cm * (e4_cm - beta_cm * p_cm * cos_cm)

        return ReactionProducts(
            ejectile_energy=float(max(e3 - m3, 0.0)),
            recoil_energy=float(max(e4 - m4, 0.0)),
            ejectile_theta=float(np.arctan2(p3_perp, p3_par)),
            ejectile_phi=float(phi % (2.0 * np.pi)),
            recoil_theta=float(np.arctan2(p4_perp, p4_par)),
            recoil_phi=float((phi + np.pi) % (2.0 * np.pi)),
            com_angle=float(com_angle),
            state=state,
        )

    def fill_vars(self, beam_energy: float,
                  rng: np.random.Generator) -> Optional[ReactionProducts]:
        """
        Sample a final state, CoM angle and azimuth, and compute the products.

        Returns None if the sampled state is kinematically forbidden.
        """
        state = self.sample_state(rng)
        com_angle = self.distributions[state].sample(rng)
        phi = 2.0 * np.pi * rng.random()
        return self.two_body(beam_energy, com_angle, phi, state)

    def max_product_energy(self, beam_energy: float) -> float:
        """Upper bound on either product's kinetic energy [MeV]."""
        return beam_energy + max(self.q_value, 0.0)

    def __repr__(self):
        return (f"ReactionKinematics(Q={self.q_value:.3f} MeV, "
                f"{self.n_states} state(s), σ={self.total_cross_section:.3f} mb)")
