import warnings

import numpy as np
import numpy.testing as npt
import pytest

from reactmc.core.geometry import (BACK, BOTTOM, FRONT, LEFT, RIGHT, TOP, DetectorClass,
                                   Primitive)
from reactmc.core.vector import Matrix3

unit_box = Primitive(size=(1.0, 1.0, 1.0))


class TestDetectorClass:

    def test_presets(self):
        assert DetectorClass.SMALL.size == (0.6, 0.03, 0.03)
        assert DetectorClass.CUSTOM.size is None

    def test_from_name(self):
        assert DetectorClass.from_name('medium') is DetectorClass.MEDIUM
        assert DetectorClass.from_name('ion_chamber') is DetectorClass.CUSTOM

    def test_from_size(self):
        assert DetectorClass.from_size(2.0, 0.05, 0.05) is DetectorClass.LARGE
        assert DetectorClass.from_size(1.0, 1.0, 1.0) is DetectorClass.CUSTOM


class TestIntersect:

    def test_along_z(self):
        result = unit_box.intersect([0, 0, -5], [0, 0, 1])
        assert result.hit
        npt.assert_allclose(result.p1, [0, 0, -0.5])
        npt.assert_allclose(result.p2, [0, 0, 0.5])
        assert (result.face1, result.face2) == (FRONT, BACK)
        assert result.face == FRONT
        npt.assert_allclose(result.distance, 4.5)

    def test_primary_is_closest_face(self):
        # RIGHT comes first in face order but LEFT is struck first
        result = unit_box.intersect([-5, 0, 0], [1, 0, 0])
        assert (result.face1, result.face2) == (RIGHT, LEFT)
        assert result.face == LEFT
        npt.assert_allclose(result.distance, 4.5)
        npt.assert_allclose(result.normal, [-1.0, 0.0, 0.0])

    def test_along_y(self):
        result = unit_box.intersect([0, -5, 0], [0, 1, 0])
        assert (result.face1, result.face2) == (TOP, BOTTOM)
        assert result.face == BOTTOM
        npt.assert_allclose(result.p1, [0, 0.5, 0])

    def test_miss(self):
        assert not unit_box.intersect([2, 0, -5], [0, 0, 1]).hit

    def test_box_behind_origin(self):
        assert not unit_box.intersect([0, 0, 5], [0, 0, 1]).hit

    def test_from_inside_single_face(self):
        result = unit_box.intersect([0, 0, 0], [0, 0, 1])
        assert result.hit
        assert result.face1 == result.face2 == BACK
        npt.assert_allclose(result.p1, result.p2)

    def test_small_bar_on_axis(self):
        bar = Primitive(position=(0, 0, 1), detector_class=DetectorClass.SMALL)
        result = bar.intersect([0, 0, 0], [0, 0, 1])
        npt.assert_allclose(result.p1, [0, 0, 0.985])
        assert result.face == FRONT
        npt.assert_allclose(result.local, [0, 0, -0.015], atol=1e-12)

    def test_rotated_bar(self):
        bar = Primitive(position=(1, 0, 0), rotation=(np.pi / 2, 0, 0),
                        detector_class=DetectorClass.SMALL)
        result = bar.intersect([0, 0, 0], [1, 0, 0])
        assert result.face == FRONT
        npt.assert_allclose(result.p1, [0.985, 0, 0], atol=1e-12)

    def test_parallel_ray_misses_plane(self):
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            point = unit_box.plane_intersect(np.array([0.0, 0.0, -5.0]),
                                             np.array([1.0, 0.0, 0.0]), FRONT)
        assert point is None

    def test_ray_in_face_plane(self):
        # Runs along the RIGHT face plane, so only FRONT and BACK count
        with warnings.catch_warnings():
            warnings.simplefilter('error')
            result = unit_box.intersect([0.5, 0, -5], [0, 0, 1])
        assert (result.face1, result.face2) == (FRONT, BACK)
        npt.assert_allclose(result.p1, [0.5, 0, -0.5])
        npt.assert_allclose(result.p2, [0.5, 0, 0.5])

    def test_edge_entry_keeps_exit_face(self):
        origin, direction = [1.0, 0.0, -1.5], [-1.0, 0.0, 2.0]
        result = unit_box.intersect(origin, direction)
        assert (result.face1, result.face2) == (FRONT, BACK)
        npt.assert_allclose(result.p1, [0.5, 0.0, -0.5])
        npt.assert_allclose(result.p2, [0.0, 0.0, 0.5])
        npt.assert_allclose(unit_box.get_apparent_thickness(origin, direction, FRONT, BACK),
                            np.sqrt(1.25))


class TestPrimitive:

    def test_apparent_thickness(self):
        npt.assert_allclose(unit_box.get_apparent_thickness([0, 0, -5], [0, 0, 1],
                                                            FRONT, BACK), 1.0)

    def test_apparent_thickness_invalid(self):
        assert unit_box.get_apparent_thickness([0, 0, -5], [0, 0, 1], FRONT, 7) == -1
        assert unit_box.get_apparent_thickness([0, 0, -5], [0, 0, 1], RIGHT, LEFT) == -1

    def test_face_cache_invalidation(self):
        box = Primitive(size=(1.0, 1.0, 1.0))
        npt.assert_allclose(box.face_centers[FRONT], [0, 0, -0.5])
        box.set_position(1.0, 0.0, 0.0)
        npt.assert_allclose(box.face_centers[FRONT], [1, 0, -0.5])
        box.set_size(1.0, 1.0, 2.0)
        npt.assert_allclose(box.face_centers[BACK], [1, 0, 1.0])

    def test_set_polar_position(self):
        box = Primitive(size=(1.0, 1.0, 1.0))
        box.set_polar_position(2.0, np.pi / 2, 0.0)
        npt.assert_allclose(box.position, [2.0, 0.0, 0.0], atol=1e-12)

    def test_size_sets_class(self):
        box = Primitive(size=(1.0, 1.0, 1.0))
        box.set_size(1.2, 0.05, 0.03)
        assert box.detector_class is DetectorClass.MEDIUM

    def test_custom_needs_size(self):
        with pytest.raises(ValueError):
            Primitive()

    def test_non_positive_size(self):
        with pytest.raises(ValueError):
            Primitive(size=(1.0, 0.0, 1.0))

    def test_front_face(self):
        box = Primitive(size=(1.0, 1.0, 1.0))
        box.set_front_face(RIGHT)
        assert box.back_face == LEFT
        with pytest.raises(ValueError):
            box.set_front_face(6)

    def test_random_point_inside(self, rng):
        bar = Primitive(position=(0, 0, 1), rotation=(0.4, 0.2, 0.1),
                        detector_class=DetectorClass.MEDIUM)
        for _ in range(200):
            local = bar.get_local_coords(bar.get_random_point_inside(rng))
            assert abs(local[0]) <= bar.width / 2
            assert abs(local[1]) <= bar.length / 2
            assert abs(local[2]) <= bar.depth / 2

    def test_local_global_round_trip(self):
        bar = Primitive(position=(0.3, -0.2, 1.0), rotation=(0.5, 1.0, 0.2),
                        detector_class=DetectorClass.LARGE)
        point = np.array([0.1, 0.2, 0.3])
        npt.assert_allclose(bar.get_global_coords(bar.get_local_coords(point)), point)

    def test_dump_det(self):
        bar = Primitive(position=(0, 0, 1), detector_class=DetectorClass.SMALL)
        fields = bar.dump_det().split()
        assert len(fields) == 12
        assert fields[6:8] == ['vandle', 'small']
        assert fields[-1] == 'none'

    def test_unit_vectors_record_full_angles(self):
        frame = Matrix3.from_angles(0.4, -1.1, 0.7)
        box = Primitive(size=(1.0, 1.0, 1.0))
        box.set_unit_vectors(frame.unit_x, frame.unit_y, frame.unit_z)
        npt.assert_allclose(box.angles, (0.4, -1.1, 0.7))
        theta, phi, psi = (float(v) for v in box.dump_det().split()[3:6])
        npt.assert_allclose(Matrix3.from_angles(theta, phi, psi).matrix, frame.matrix,
                            atol=1e-5)
