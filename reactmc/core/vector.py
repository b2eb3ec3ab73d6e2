"""
Vector and rotation-matrix algebra.

Vectors are plain NumPy float64 arrays of length 3. Unit length is a
caller contract; helpers that need a unit vector normalize explicitly.

Spherical coordinates follow the physics convention used throughout the
package: (r, theta, phi) with theta the polar angle from +z and phi the
azimuth from +x, both in radians.
"""

import numpy as np
from typing import Sequence, Tuple


def as_vector(values: Sequence[float]) -> np.ndarray:
    """Copy a 3-sequence into a float64 vector."""
    vec = np.array(values, dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"Expected 3 components, got shape {vec.shape}")
    return vec


def normalize(vec: np.ndarray) -> np.ndarray:
    """
    Return a unit vector parallel to vec.

    Raises:
        ValueError: if vec has zero length
    """
    norm = np.linalg.norm(vec)
    if norm == 0.0:
        raise ValueError("Cannot normalize a zero-length vector")
    return vec / norm


def sphere_to_cart(r: float, theta: float, phi: float) -> np.ndarray:
    """Convert spherical (r, theta, phi) to cartesian (x, y, z)."""
    sin_theta = np.sin(theta)
    return np.array([r * sin_theta * np.cos(phi),
                     r * sin_theta * np.sin(phi),
                     r * np.cos(theta)])


def cart_to_sphere(vec: np.ndarray) -> Tuple[float, float, float]:
    """
    Convert cartesian (x, y, z) to spherical (r, theta, phi).

    The azimuth is returned in [0, 2π). The origin maps to (0, 0, 0).
    """
    r = float(np.linalg.norm(vec))
    if r == 0.0:
        return 0.0, 0.0, 0.0
    theta = float(np.arccos(np.clip(vec[2] / r, -1.0, 1.0)))
    phi = float(np.arctan2(vec[1], vec[0]))
    if phi < 0.0:
        phi += 2.0 * np.pi
    return r, theta, phi


def unit_sphere_random(rng: np.random.Generator) -> np.ndarray:
    """Draw a direction uniformly distributed over the unit sphere."""
    cos_theta = 2.0 * rng.random() - 1.0
    phi = 2.0 * np.pi * rng.random()
    return sphere_to_cart(1.0, np.arccos(cos_theta), phi)


def rotate_about_axis(vec: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """
    Rotate vec by angle (radians) about an arbitrary axis.

    Rodrigues' formula:
        v_rot = v cos(a) + (k x v) sin(a) + k (k . v)(1 - cos(a))
    """
    k = normalize(np.asarray(axis, dtype=np.float64))
    cos_a = np.cos(angle)
    sin_a = np.sin(angle)
    return (vec * cos_a + np.cross(k, vec) * sin_a
            + k * np.dot(k, vec) * (1.0 - cos_a))


class Matrix3:
    """
    3x3 rotation matrix whose columns are the rotated x, y and z axes.

    Built either from pitch/roll/yaw angles or from three explicit unit
    vectors. `transform` maps a vector expressed in the rotated (local)
    frame into the fixed (global) frame; `inverse_transform` goes back.

    Example:
        rot = Matrix3.from_angles(theta=np.pi / 2, phi=0.0, psi=0.0)
        rot.transform([0, 0, 1])   # -> [1, 0, 0]
    """

    def __init__(self, matrix=None):
        if matrix is None:
            self.matrix = np.eye(3)
        else:
            self.matrix = np.array(matrix, dtype=np.float64).reshape(3, 3)

    @classmethod
    def from_angles(cls, theta: float, phi: float, psi: float) -> "Matrix3":
        """
        Pitch (theta, about y), yaw (phi, about z) and roll (psi, about x).

        Equivalent to Rz(phi) @ Ry(theta) @ Rx(psi). Each column is
        re-normalized to absorb rounding.
        """
        ct, st = np.cos(theta), np.sin(theta)
        cp, sp = np.cos(phi), np.sin(phi)
        cs, ss = np.cos(psi), np.sin(psi)

        unit_x = np.array([ct * cp, ct * sp, -st])
        unit_y = np.array([ss * st * cp - cs * sp, ss * st * sp + cs * cp, ct * ss])
        unit_z = np.array([cs * st * cp + ss * sp, cs * st * sp - ss * cp, ct * cs])
        return cls.from_unit_vectors(unit_x, unit_y, unit_z)

    @classmethod
    def from_unit_vectors(cls, unit_x, unit_y, unit_z) -> "Matrix3":
        columns = [normalize(as_vector(v)) for v in (unit_x, unit_y, unit_z)]
        return cls(np.column_stack(columns))

    @classmethod
    def from_direction(cls, direction) -> "Matrix3":
        """
        Rotation that carries +z onto the given direction.

        Used to express reaction products, sampled about the beam axis,
        in the laboratory frame of the actual beam trajectory.
        """
        _, theta, phi = cart_to_sphere(normalize(as_vector(direction)))
        return cls.from_angles(theta, phi, 0.0)

    def to_angles(self) -> Tuple[float, float, float]:
        """
        Decompose into (theta, phi, psi) such that from_angles rebuilds the frame.

        Theta is returned in [-π/2, π/2]. At theta = ±π/2 only phi ∓ psi is
        defined, so psi is set to zero.
        """
        m = self.matrix
        theta = float(np.arcsin(np.clip(-m[2, 0], -1.0, 1.0)))
        if np.cos(theta) < 1e-9:
            phi = float(np.arctan2(-m[0, 1], m[1, 1]))
            return theta, phi, 0.0
        phi = float(np.arctan2(m[1, 0], m[0, 0]))
        psi = float(np.arctan2(m[2, 1], m[2, 2]))
        return theta, phi, psi

    @property
    def unit_x(self) -> np.ndarray:
        return self.matrix[:, 0].copy()

    @property
    def unit_y(self) -> np.ndarray:
        return self.matrix[:, 1].copy()

    @property
    def unit_z(self) -> np.ndarray:
        return self.matrix[:, 2].copy()

    def transform(self, vec) -> np.ndarray:
        return self.matrix @ np.asarray(vec, dtype=np.float64)

    def inverse_transform(self, vec) -> np.ndarray:
        return self.matrix.T @ np.asarray(vec, dtype=np.float64)

    def __repr__(self) -> str:
        rows = ", ".join(np.array2string(row, precision=4) for row in self.matrix)
        return f"Matrix3({rows})"
