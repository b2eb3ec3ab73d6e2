"""
Two-dimensional rays, line segments and regular polygons.

Used for footprint containment tests, e.g. whether a beam spot point
falls inside a polygonal target or collimator cross-section.
"""

import numpy as np
from typing import List, Optional, Tuple

# Determinants below this mean the two directions are parallel
DETERMINANT_TOLERANCE = 1e-12


def _solve_parameters(p1: np.ndarray, d1: np.ndarray,
                      p2: np.ndarray, d2: np.ndarray) -> Optional[Tuple[float, float]]:
    """
    Solve p1 + t1*d1 = p2 + t2*d2 for (t1, t2).

    Returns None for parallel or degenerate directions.
    """
    det = d1[0] * (-d2[1]) - d1[1] * (-d2[0])
    if abs(det) < DETERMINANT_TOLERANCE:
        return None
    diff = p2 - p1
    t1 = (diff[0] * (-d2[1]) - diff[1] * (-d2[0])) / det
    t2 = (d1[0] * diff[1] - d1[1] * diff[0]) / det
    return t1, t2


class Ray:
    """Half-line from an origin along a direction (t >= 0)."""

    def __init__(self, origin, direction):
        self.origin = np.array(origin, dtype=np.float64)
        self.direction = np.array(direction, dtype=np.float64)

    def point(self, t: float) -> np.ndarray:
        return self.origin + t * self.direction

    def intersect(self, line: "Line") -> Optional[np.ndarray]:
        """Intersection with a bounded segment, or None."""
        params = _solve_parameters(self.origin, self.direction, line.p1, line.direction)
        if params is None:
            return None
        t_ray, t_line = params
        if t_ray < 0.0 or t_line < 0.0 or t_line > 1.0:
            return None
        return self.point(t_ray)


class Line:
    """Segment between two endpoints, parameterized p1 + t*(p2 - p1), t in [0, 1]."""

    def __init__(self, p1, p2):
        self.p1 = np.array(p1, dtype=np.float64)
        self.p2 = np.array(p2, dtype=np.float64)

    @property
    def direction(self) -> np.ndarray:
        return self.p2 - self.p1

    @property
    def length(self) -> float:
        return float(np.linalg.norm(self.direction))

    def intersect(self, other: "Line") -> Optional[np.ndarray]:
        params = _solve_parameters(self.p1, self.direction, other.p1, other.direction)
        if params is None:
            return None
        t1, t2 = params
        if not (0.0 <= t1 <= 1.0 and 0.0 <= t2 <= 1.0):
            return None
        return self.p1 + t1 * self.direction


class RegularPolygon:
    """
    Convex regular polygon centered at a point.

    The polygon is described by its inscribed radius (center to edge
    midpoint). The first edge is centered on the +x axis.

    Example:
        hexagon = RegularPolygon(n_sides=6, inner_radius=0.01)
        hexagon.is_inside([0.0, 0.0])   # True
    """

    def __init__(self, n_sides: int, inner_radius: float, center=(0.0, 0.0)):
        if n_sides < 3:
            raise ValueError(f"A polygon needs at least 3 sides, got {n_sides}")
        if inner_radius <= 0.0:
            raise ValueError(f"Polygon radius must be positive, got {inner_radius}")

        self.n_sides = n_sides
        self.inner_radius = float(inner_radius)
        self.center = np.array(center, dtype=np.float64)

        sector = 2.0 * np.pi / n_sides
        self.outer_radius = self.inner_radius / np.cos(sector / 2.0)

        angles = -sector / 2.0 + sector * np.arange(n_sides)
        self.vertices = self.center + self.outer_radius * np.column_stack(
            [np.cos(angles), np.sin(angles)])
        self.edges: List[Line] = [
            Line(self.vertices[i], self.vertices[(i + 1) % n_sides])
            for i in range(n_sides)
        ]

    def is_inside(self, point) -> bool:
        """
        Parity test with a ray cast from the point along +x.

        Edges are half-open in y so a ray through a shared vertex is
        counted once.
        """
        point = np.asarray(point, dtype=np.float64)
        ray = Ray(point, (1.0, 0.0))
        crossings = 0
        for edge in self.edges:
            if (edge.p1[1] > point[1]) == (edge.p2[1] > point[1]):
                continue
            if ray.intersect(edge) is not None:
                crossings += 1
        return crossings % 2 == 1

    def area(self) -> float:
        return self.n_sides * self.inner_radius ** 2 * np.tan(np.pi / self.n_sides)
