"""
Multiple Coulomb scattering (angular straggling) of the beam in the target.

Implements the Highland approximation of the Molière width and the
deflection of a direction vector by sampled polar/azimuthal angles.

References:
    - Highland, NIM 129, 497 (1975)
    - PDG Review of Particle Physics (Passage of particles through matter)
"""

import numpy as np
import numba


@numba.njit(fastmath=True, cache=True)
def highland_angle(energy: float, Z: float, mass: float,
                   thickness: float, radiation_length: float) -> float:
    """
    RMS plane scattering angle using the Highland approximation.

        θ₀ = (13.6 MeV / βcp) * Z * sqrt(x/X0) * [1 + 0.038 ln(x/X0)]

    Parameters:
        energy: Kinetic energy [MeV]
        Z: Charge number of the particle
        mass: Rest mass [MeV]
        thickness: Traversed areal density [mg/cm²]
        radiation_length: Radiation length of the medium [mg/cm²]

    Returns:
        RMS scattering angle [radians], 0 for negligible thickness
    """
    x_over_X0 = thickness / radiation_length
    if x_over_X0 <= 1e-10 or energy <= 0.0:
        return 0.0

    e_total = energy + mass
    momentum = np.sqrt(e_total ** 2 - mass ** 2)
    beta_p = momentum * momentum / e_total

    return (13.6 / beta_p) * abs(Z) * np.sqrt(x_over_X0) * \
        (1.0 + 0.038 * np.log(x_over_X0))


@numba.njit(fastmath=True, cache=True)
def rotate_direction(direction: np.ndarray, theta: float, phi: float) -> np.ndarray:
    """
    Deflect a unit vector by polar angle theta about an azimuth phi.

    Two unit vectors perpendicular to the direction span the scattering
    plane; phi selects the plane and theta tilts the direction in it.
    """
    ux, uy, uz = direction[0], direction[1], direction[2]

    if theta < 1e-12:
        return direction.copy()

    if abs(uz) > 0.99:
        # Perpendicular from the x-axis when nearly along z
        ax, ay, az = 0.0, uz, -uy
    else:
        ax, ay, az = -uy, ux, 0.0
    norm = np.sqrt(ax * ax + ay * ay + az * az)
    ax /= norm
    ay /= norm
    az /= norm

    # b = u x a
    bx = uy * az - uz * ay
    by = uz * ax - ux * az
    bz = ux * ay - uy * ax

    cos_t = np.cos(theta)
    sin_t = np.sin(theta)
    cos_p = np.cos(phi)
    sin_p = np.sin(phi)

    result = np.empty(3, dtype=np.float64)
    result[0] = ux * cos_t + sin_t * (cos_p * ax + sin_p * bx)
    result[1] = uy * cos_t + sin_t * (cos_p * ay + sin_p * by)
    result[2] = uz * cos_t + sin_t * (cos_p * az + sin_p * bz)

    norm = np.sqrt(result[0] ** 2 + result[1] ** 2 + result[2] ** 2)
    return result / norm


def straggle_direction(direction: np.ndarray, theta_rms: float,
                       rng: np.random.Generator) -> np.ndarray:
    """
    Apply a Gaussian small-angle deflection to a direction.

    The polar angle is |N(0, theta_rms)| and the azimuth is uniform.
    """
    if theta_rms <= 0.0:
        return np.array(direction, dtype=np.float64)
    theta = abs(rng.normal(0.0, theta_rms))
    phi = rng.uniform(0.0, 2.0 * np.pi)
    return rotate_direction(np.asarray(direction, dtype=np.float64), theta, phi)
