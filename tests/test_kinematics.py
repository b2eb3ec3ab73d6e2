import numpy as np
import numpy.testing as npt
import pytest

from reactmc.core.geometry import DetectorClass
from reactmc.physics.angular_distribution import MILLIBARN_CM2, AngularDistribution
from reactmc.physics.efficiency import DetectorEfficiency, EfficiencyTable
from reactmc.physics.kinematics import ReactionKinematics

# d(d,p)t with the 2.0 MeV triton state used only as a test level
ddp = ReactionKinematics(beam_A=2, target_A=2, ejectile_A=1, recoil_A=3, q_value=4.033,
                         excited_states=[2.0])
# 12C(d,n)13N, endothermic
dn = ReactionKinematics(beam_A=12, target_A=2, ejectile_A=1, recoil_A=13, q_value=-0.281)


def lab_momentum(energy, mass):
    return np.sqrt(energy ** 2 + 2.0 * energy * mass)


class TestReactionKinematics:

    def test_energy_conservation(self):
        for angle in np.linspace(0.0, np.pi, 7):
            products = ddp.two_body(10.0, angle)
            npt.assert_allclose(products.ejectile_energy + products.recoil_energy,
                                10.0 + 4.033, rtol=1e-9)

    def test_excited_state_energy(self):
        products = ddp.two_body(10.0, 1.0, state=1)
        npt.assert_allclose(products.ejectile_energy + products.recoil_energy,
                            10.0 + 4.033 - 2.0, rtol=1e-9)

    def test_momentum_conservation(self):
        products = ddp.two_body(10.0, 0.8)
        p3 = lab_momentum(products.ejectile_energy, ddp.ejectile_mass)
        p4 = lab_momentum(products.recoil_energy, ddp.recoil_mass)
        npt.assert_allclose(p3 * np.sin(products.ejectile_theta),
                            p4 * np.sin(products.recoil_theta), rtol=1e-9)
        npt.assert_allclose(p3 * np.cos(products.ejectile_theta)
                            + p4 * np.cos(products.recoil_theta),
                            lab_momentum(10.0, ddp.beam_mass), rtol=1e-9)

    def test_azimuths_opposite(self):
        products = ddp.two_body(10.0, 0.8, phi=5.0)
        npt.assert_allclose((products.recoil_phi - products.ejectile_phi) % (2 * np.pi), np.pi)

    def test_forward_ejectile(self):
        assert ddp.two_body(10.0, 0.0).ejectile_theta == 0.0

    def test_threshold(self):
        threshold = dn.threshold_energy()
        # Inverse kinematics threshold is about (1 + m_beam/m_target) |Q|
        npt.assert_allclose(threshold, 0.281 * 7.0, rtol=0.01)
        assert dn.two_body(0.99 * threshold, 0.5) is None
        assert dn.two_body(1.01 * threshold, 0.5) is not None
        assert ddp.threshold_energy() == 0.0

    def test_recoil_mass_absorbs_q_value(self):
        npt.assert_allclose(ddp.beam_mass + ddp.target_mass - ddp.ejectile_mass
                            - ddp.recoil_mass, 4.033)
        npt.assert_allclose(ddp.recoil_mass_for(1) - ddp.recoil_mass, 2.0)

    def test_fill_vars(self, rng):
        for _ in range(100):
            products = ddp.fill_vars(10.0, rng)
            assert products.state in (0, 1)
            assert 0.0 <= products.com_angle <= np.pi
            assert 0.0 <= products.ejectile_phi < 2 * np.pi

    def test_state_weights(self, rng):
        kin = ReactionKinematics(2, 2, 1, 3, 4.033, excited_states=[2.0],
                                 distributions=[AngularDistribution(total_cross_section=1.0),
                                                AngularDistribution(total_cross_section=3.0)])
        states = [kin.sample_state(rng) for _ in range(10000)]
        npt.assert_allclose(np.mean(states), 0.75, atol=0.02)
        npt.assert_allclose(kin.total_cross_section, 4.0)

    def test_distribution_count(self):
        with pytest.raises(ValueError):
            ReactionKinematics(2, 2, 1, 3, 4.033, excited_states=[2.0],
                               distributions=[AngularDistribution()])

    def test_unweighted_state_rejected(self):
        tabulated = AngularDistribution([0.0, 90.0, 180.0], [1.0, 1.0, 1.0])
        with pytest.raises(ValueError, match="no cross section"):
            ReactionKinematics(2, 2, 1, 3, 4.033, excited_states=[1.0],
                               distributions=[tabulated, AngularDistribution()])

    def test_max_product_energy(self):
        npt.assert_allclose(ddp.max_product_energy(10.0), 14.033)
        assert dn.max_product_energy(60.0) == 60.0


class TestAngularDistribution:

    flat = AngularDistribution(np.linspace(0.0, 180.0, 181), np.ones(181))
    forward = AngularDistribution([0.0, 30.0, 60.0, 180.0], [10.0, 1.0, 0.0, 0.0])

    def test_total_cross_section(self):
        npt.assert_allclose(self.flat.total_cross_section, 4.0 * np.pi, rtol=1e-4)

    def test_flat_sampling(self, rng):
        angles = np.array([self.flat.sample(rng) for _ in range(20000)])
        assert np.all((angles >= 0.0) & (angles <= np.pi))
        # Isotropic in the solid angle: <cos θ> = 0
        npt.assert_allclose(np.mean(np.cos(angles)), 0.0, atol=0.02)

    def test_zero_region_never_sampled(self, rng):
        angles = np.array([self.forward.sample(rng) for _ in range(5000)])
        assert np.all(angles <= np.radians(60.0))

    def test_isotropic(self, rng):
        iso = AngularDistribution(total_cross_section=2.0)
        assert iso.is_isotropic
        npt.assert_allclose(iso.dsigma_domega(1.0), 2.0 / (4.0 * np.pi))
        for _ in range(100):
            assert 0.0 <= iso.sample(rng) <= np.pi

    def test_dsigma_domega(self):
        npt.assert_allclose(self.forward.dsigma_domega(np.radians(15.0)), 5.5)

    def test_rate(self):
        dist = AngularDistribution(total_cross_section=5.0, beam_intensity=1e6,
                                   number_density=1e19)
        npt.assert_allclose(dist.rate, 5.0 * MILLIBARN_CM2 * 1e6 * 1e19)

    def test_from_file(self, tmp_path):
        path = tmp_path / 'dist.dat'
        path.write_text("# theta  dsigma\n0 1.0\n90 1.0\n180 1.0\n")
        dist = AngularDistribution.from_file(path)
        assert len(dist.angles) == 3
        assert dist.total_cross_section > 0.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AngularDistribution.from_file(tmp_path / 'missing.dat')

    def test_invalid(self):
        with pytest.raises(ValueError):
            AngularDistribution([0.0], [1.0])
        with pytest.raises(ValueError):
            AngularDistribution([0.0, 90.0, 45.0], [1.0, 1.0, 1.0])
        with pytest.raises(ValueError):
            AngularDistribution([0.0, 200.0], [1.0, 1.0])
        with pytest.raises(ValueError):
            AngularDistribution([0.0, 90.0], [1.0, -1.0])
        with pytest.raises(ValueError):
            AngularDistribution([0.0, 90.0], [0.0, 0.0])


class TestEfficiency:

    table = EfficiencyTable([1.0, 2.0], [0.2, 0.4])

    def test_interpolation(self):
        npt.assert_allclose(self.table(1.5), 0.3)

    def test_clamped(self):
        assert self.table(0.0) == 0.2
        assert self.table(50.0) == 0.4

    def test_default_is_perfect(self, rng):
        eff = DetectorEfficiency({DetectorClass.SMALL: self.table})
        assert eff.get(DetectorClass.MEDIUM, 1.0) == 1.0
        assert eff.is_detected(DetectorClass.MEDIUM, 1.0, rng)

    def test_detection_fraction(self, rng):
        eff = DetectorEfficiency()
        eff.add_table(DetectorClass.SMALL, self.table)
        hits = [eff.is_detected(DetectorClass.SMALL, 2.0, rng) for _ in range(10000)]
        npt.assert_allclose(np.mean(hits), 0.4, atol=0.02)

    def test_invalid(self):
        with pytest.raises(ValueError):
            EfficiencyTable([2.0, 1.0], [0.5, 0.5])
        with pytest.raises(ValueError):
            EfficiencyTable([1.0, 2.0], [0.5, 1.5])
        with pytest.raises(ValueError):
            EfficiencyTable([], [])
