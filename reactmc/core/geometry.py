"""
Oriented rectangular detector volumes and ray intersection.

A Primitive is a box with its own orthonormal frame (detX, detY, detZ).
Width runs along local x, length along local y and depth along local z.
Faces are indexed in a fixed order:

    0 FRONT  (-depth/2 along detZ, outward normal +Z by convention)
    1 RIGHT  (+width/2 along detX)
    2 BACK   (+depth/2 along detZ)
    3 LEFT   (-width/2 along detX)
    4 TOP    (+length/2 along detY)
    5 BOTTOM (-length/2 along detY)

The face centers are cached and recomputed lazily after any change to
position, orientation or size.
"""

import numpy as np
from enum import Enum
from typing import NamedTuple, Optional, Tuple

from reactmc.core.vector import Matrix3, as_vector, sphere_to_cart

FRONT, RIGHT, BACK, LEFT, TOP, BOTTOM = range(6)
FACE_NAMES = ('front', 'right', 'back', 'left', 'top', 'bottom')
OPPOSITE_FACE = (BACK, LEFT, FRONT, RIGHT, BOTTOM, TOP)

# Denominators below this are treated as a ray parallel to the face plane
PARALLEL_TOLERANCE = 1e-12

# Hits closer than this [m] are one crossing (edge or corner of the box)
COINCIDENT_TOLERANCE = 1e-9


class DetectorClass(Enum):
    """Detector size classes, carrying (length, width, depth) in meters."""

    SMALL = (0.6, 0.03, 0.03)
    MEDIUM = (1.2, 0.05, 0.03)
    LARGE = (2.0, 0.05, 0.05)
    CUSTOM = None

    @property
    def size(self) -> Optional[Tuple[float, float, float]]:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> "DetectorClass":
        try:
            return cls[name.upper()]
        except KeyError:
            return cls.CUSTOM

    @classmethod
    def from_size(cls, length: float, width: float, depth: float) -> "DetectorClass":
        for member in (cls.SMALL, cls.MEDIUM, cls.LARGE):
            if np.allclose(member.value, (length, width, depth)):
                return member
        return cls.CUSTOM


class IntersectionResult(NamedTuple):
    """
    Outcome of a ray/box test.

    p1/p2 are the first and second accepted face hits in face order
    (p2 equals p1 when only one face is struck, e.g. from inside).
    `face` and `local` describe the primary hit, the one closest to the
    ray origin, and `normal` is that face's outward unit normal.
    """
    hit: bool
    p1: Optional[np.ndarray] = None
    p2: Optional[np.ndarray] = None
    face1: int = -1
    face2: int = -1
    face: int = -1
    local: Optional[np.ndarray] = None
    normal: Optional[np.ndarray] = None
    distance: float = np.inf


MISS = IntersectionResult(hit=False)


class Primitive:
    """
    Rectangular detector element with arbitrary position and rotation.

    Example:
        bar = Primitive(position=(0, 0, 1), detector_class=DetectorClass.SMALL)
        result = bar.intersect([0, 0, 0], [0, 0, 1])
        result.p1        # -> [0, 0, 0.985]
    """

    def __init__(self, position=(0.0, 0.0, 0.0), rotation=(0.0, 0.0, 0.0),
                 size: Optional[Tuple[float, float, float]] = None,
                 detector_class: DetectorClass = DetectorClass.CUSTOM,
                 material: str = '', use_ejectile: bool = True,
                 use_recoil: bool = False, role: str = 'vandle'):
        """
        Parameters:
            position: Center of the box in global coordinates [m]
            rotation: (theta, phi, psi) pitch/yaw/roll angles [rad]
            size: (length, width, depth) [m]; taken from the class preset if None
            detector_class: Size class used for presets and efficiency lookup
            material: Free-form material tag
            use_ejectile: Element is sensitive to the ejectile
            use_recoil: Element is sensitive to the recoil
            role: Type tag (vandle, eject, recoil, dual)
        """
        self.material = material
        self.use_ejectile = use_ejectile
        self.use_recoil = use_recoil
        self.role = role

        self._position = as_vector(position)
        self._rotation = Matrix3()
        self._angles = (0.0, 0.0, 0.0)
        self.front_face = FRONT
        self._face_centers = np.zeros((6, 3))
        self._needs_update = True

        if size is None:
            if detector_class.size is None:
                raise ValueError("A custom detector requires an explicit size")
            size = detector_class.size
        self.set_size(*size)
        if detector_class is not DetectorClass.CUSTOM:
            self.detector_class = detector_class
        self.set_rotation(*rotation)

    # ------------------------------------------------------------------
    # Mutators (each one invalidates the face cache)
    # ------------------------------------------------------------------

    def set_position(self, x: float, y: float, z: float):
        self._position = np.array([x, y, z], dtype=np.float64)
        self._needs_update = True

    def set_polar_position(self, r: float, theta: float, phi: float):
        """Place the center at spherical coordinates (r, theta, phi)."""
        self._position = sphere_to_cart(r, theta, phi)
        self._needs_update = True

    def set_rotation(self, theta: float, phi: float, psi: float):
        """Build the local frame from pitch (theta), yaw (phi), roll (psi)."""
        self._angles = (float(theta), float(phi), float(psi))
        self._rotation = Matrix3.from_angles(theta, phi, psi)
        self._needs_update = True

    def set_unit_vectors(self, unit_x, unit_y, unit_z):
        self._rotation = Matrix3.from_unit_vectors(unit_x, unit_y, unit_z)
        self._angles = self._rotation.to_angles()
        self._needs_update = True

    def set_size(self, length: float, width: float, depth: float):
        if min(length, width, depth) <= 0.0:
            raise ValueError(f"Detector dimensions must be positive, got "
                             f"({length}, {width}, {depth})")
        self.length = float(length)
        self.width = float(width)
        self.depth = float(depth)
        self.detector_class = DetectorClass.from_size(length, width, depth)
        self._needs_update = True

    def set_front_face(self, face: int):
        """Choose which physical face acts as the front; its opposite becomes the back."""
        if face not in range(6):
            raise ValueError(f"Invalid face index {face}")
        self.front_face = face

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def position(self) -> np.ndarray:
        return self._position.copy()

    @property
    def angles(self) -> Tuple[float, float, float]:
        return self._angles

    @property
    def rotation(self) -> Matrix3:
        return self._rotation

    @property
    def det_x(self) -> np.ndarray:
        return self._rotation.unit_x

    @property
    def det_y(self) -> np.ndarray:
        return self._rotation.unit_y

    @property
    def det_z(self) -> np.ndarray:
        return self._rotation.unit_z

    @property
    def back_face(self) -> int:
        return OPPOSITE_FACE[self.front_face]

    @property
    def face_centers(self) -> np.ndarray:
        """World-space center of each face, shape (6, 3)."""
        if self._needs_update:
            self._update_faces()
        return self._face_centers

    def _update_faces(self):
        pos = self._position
        det_x, det_y, det_z = self.det_x, self.det_y, self.det_z
        self._face_centers[FRONT] = pos - det_z * (self.depth / 2.0)
        self._face_centers[RIGHT] = pos + det_x * (self.width / 2.0)
        self._face_centers[BACK] = pos + det_z * (self.depth / 2.0)
        self._face_centers[LEFT] = pos - det_x * (self.width / 2.0)
        self._face_centers[TOP] = pos + det_y * (self.length / 2.0)
        self._face_centers[BOTTOM] = pos - det_y * (self.length / 2.0)
        self._needs_update = False

    def get_unit_vector(self, face: int) -> np.ndarray:
        """Unit vector associated with a face (front +Z, right +X, ...)."""
        if face == FRONT:
            return self.det_z
        elif face == RIGHT:
            return self.det_x
        elif face == BACK:
            return -self.det_z
        elif face == LEFT:
            return -self.det_x
        elif face == TOP:
            return self.det_y
        elif face == BOTTOM:
            return -self.det_y
        raise ValueError(f"Invalid face index {face}")

    def outward_normal(self, face: int) -> np.ndarray:
        center = self.face_centers[face]
        direction = center - self._position
        return direction / np.linalg.norm(direction)

    def get_local_coords(self, point) -> np.ndarray:
        """Express a global point in the box frame, relative to its center."""
        return self._rotation.inverse_transform(np.asarray(point) - self._position)

    def get_global_coords(self, local) -> np.ndarray:
        return self._position + self._rotation.transform(local)

    def get_random_point_inside(self, rng: np.random.Generator) -> np.ndarray:
        """Uniformly distributed point inside the volume, global coordinates."""
        local = (rng.random(3) - 0.5) * np.array([self.width, self.length, self.depth])
        return self.get_global_coords(local)

    # ------------------------------------------------------------------
    # Intersection
    # ------------------------------------------------------------------

    def check_bounds(self, face: int, local: np.ndarray) -> bool:
        """True if a local point on the given face plane lies within the face."""
        half_w = self.width / 2.0
        half_l = self.length / 2.0
        half_d = self.depth / 2.0
        if face in (FRONT, BACK):
            return abs(local[0]) <= half_w and abs(local[1]) <= half_l
        elif face in (RIGHT, LEFT):
            return abs(local[2]) <= half_d and abs(local[1]) <= half_l
        elif face in (TOP, BOTTOM):
            return abs(local[0]) <= half_w and abs(local[2]) <= half_d
        return False

    def plane_intersect(self, origin: np.ndarray, direction: np.ndarray,
                        face: int) -> Optional[np.ndarray]:
        """
        Intersect a ray with the infinite plane of one face.

        Returns the intersection point, or None when the ray is parallel
        to the plane or the plane lies behind the origin.
        """
        unit = self.get_unit_vector(face)
        denom = np.dot(direction, unit)
        if abs(denom) < PARALLEL_TOLERANCE:
            return None
        t = np.dot(self.face_centers[face] - origin, unit) / denom
        if t < 0.0:
            return None
        return origin + t * direction

    def _face_hit(self, origin, direction, face):
        point = self.plane_intersect(origin, direction, face)
        if point is None:
            return None
        local = self.get_local_coords(point)
        if not self.check_bounds(face, local):
            return None
        return point, local

    def intersect(self, origin, direction) -> IntersectionResult:
        """
        Test a ray against all six faces.

        At most two faces are recorded. A crossing through an edge or
        corner counts once, on the first face in face order. When two
        faces are found the primary hit (face, local coordinates, normal,
        distance) is the one closer to the ray origin.
        """
        origin = np.asarray(origin, dtype=np.float64)
        direction = np.asarray(direction, dtype=np.float64)

        hits = []
        for face in range(6):
            found = self._face_hit(origin, direction, face)
            if found is None:
                continue
            if any(np.linalg.norm(found[0] - point) < COINCIDENT_TOLERANCE
                   for _, point, _ in hits):
                continue
            hits.append((face, found[0], found[1]))
            if len(hits) == 2:
                break

        if not hits:
            return MISS

        face1, p1, local1 = hits[0]
        if len(hits) == 1:
            face2, p2 = face1, p1
            primary = hits[0]
        else:
            face2, p2, _ = hits[1]
            d1 = np.linalg.norm(p1 - origin)
            d2 = np.linalg.norm(p2 - origin)
            primary = hits[0] if d1 <= d2 else hits[1]

        face, point, local = primary
        return IntersectionResult(hit=True, p1=p1, p2=p2, face1=face1, face2=face2,
                                  face=face, local=local,
                                  normal=self.outward_normal(face),
                                  distance=float(np.linalg.norm(point - origin)))

    def get_apparent_thickness(self, origin, direction, face1: int, face2: int) -> float:
        """
        Path length between two named faces along a ray.

        Returns -1 if either face index is invalid or is not struck.
        """
        if face1 not in range(6) or face2 not in range(6):
            return -1.0
        origin = np.asarray(origin, dtype=np.float64)
        direction = np.asarray(direction, dtype=np.float64)
        first = self._face_hit(origin, direction, face1)
        second = self._face_hit(origin, direction, face2)
        if first is None or second is None:
            return -1.0
        return float(np.linalg.norm(second[0] - first[0]))

    def dump_det(self) -> str:
        """Detector line: X Y Z Theta Phi Psi Type Subtype Length Width Depth Material."""
        x, y, z = self._position
        theta, phi, psi = self._angles
        subtype = self.detector_class.name.lower()
        material = self.material or 'none'
        return (f"{x:.6f} {y:.6f} {z:.6f} {theta:.6f} {phi:.6f} {psi:.6f} "
                f"{self.role} {subtype} {self.length} {self.width} {self.depth} {material}")

    def __repr__(self):
        x, y, z = self._position
        return (f"Primitive(pos=({x:.3f}, {y:.3f}, {z:.3f}) m, "
                f"size=({self.length}, {self.width}, {self.depth}) m, "
                f"class={self.detector_class.name})")
