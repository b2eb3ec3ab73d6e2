import importlib.util
import numpy as np
import numpy.testing as npt
import pytest
from pathlib import Path

from reactmc.cli import build_parser, main
from reactmc.config import ConfigurationError, SimulationConfig, load_config
from reactmc.core.geometry import Primitive
from reactmc.io.hdf5 import read_events, write_events
from reactmc.physics.angular_distribution import MILLIBARN_CM2
from reactmc.transport.engine import SimulationEngine, estimate_geometric_efficiency
from reactmc.transport.records import (DetectorHit, EventRecord, RunStatistics,
                                       SimulationResult, records_to_arrays)

SCRIPTS = Path(__file__).parent.parent / 'scripts'


def make_engine(data):
    return SimulationEngine(SimulationConfig.from_dict(data), verbose=False)


def check_counters(stats):
    assert stats.n_simulated == stats.n_discarded + stats.n_reactions
    assert stats.n_detected <= stats.n_geometric <= stats.n_reactions


class TestSimulationEngine:

    def test_run(self, ddp_config_data):
        engine = make_engine(ddp_config_data)
        result = engine.run(20, max_trials=5000, seed=1)
        assert len(result.records) == 20
        assert result.stats.n_detected == 20
        assert result.stats.missed_target == 0
        assert result.stats.forbidden == 0
        check_counters(result.stats)

        for record in result.records:
            assert record.hits
            for hit in record.hits:
                assert hit.detector == 0
                assert hit.tof > 0.0
                assert 0.0 <= hit.deposit <= hit.energy
                assert 0.29 - 1e-9 <= hit.position[2] <= 0.31 + 1e-9
                assert hit.lab_theta < 90.0

    def test_reproducible(self, ddp_config_data):
        engine = make_engine(ddp_config_data)
        first = engine.run(10, seed=3)
        second = engine.run(10, seed=3)
        npt.assert_array_equal([r.com_angle for r in first.records],
                               [r.com_angle for r in second.records])
        assert first.stats == second.stats

    def test_max_trials(self, ddp_config_data):
        ddp_config_data['detectors'][0].update(position=[0.0, 5.0, 0.0],
                                               size=[0.01, 0.01, 0.01])
        engine = make_engine(ddp_config_data)
        result = engine.run(5, max_trials=50, seed=1)
        assert result.stats.n_simulated == 50
        assert len(result.records) == 0

    def test_coincidence(self, ddp_config_data):
        ddp_config_data['run']['require_coincidence'] = True
        engine = make_engine(ddp_config_data)
        result = engine.run(10, max_trials=5000, seed=2)
        assert len(result.records) == 10
        for record in result.records:
            assert record.ejectile_hits and record.recoil_hits
        assert result.stats.ejectile_hits == result.stats.recoil_hits == 10

    def test_zero_efficiency(self, ddp_config_data):
        ddp_config_data['detectors'] = [{'position': [0.0, 0.0, 0.3], 'role': 'dual',
                                         'subtype': 'small'}]
        ddp_config_data['efficiency'] = {'small': {'energy': [0.1, 100.0],
                                                   'efficiency': [0.0, 0.0]}}
        ddp_config_data['run']['perfect_detector'] = False
        engine = make_engine(ddp_config_data)
        result = engine.run(5, max_trials=1000, seed=4)
        assert len(result.records) == 0
        assert result.stats.n_geometric > 0
        check_counters(result.stats)

    def test_deposit_window(self, ddp_config_data):
        ddp_config_data['run']['deposit_window'] = [100.0, 200.0]
        engine = make_engine(ddp_config_data)
        result = engine.run(5, max_trials=200, seed=5)
        assert len(result.records) == 0
        assert result.stats.n_geometric > 0

    def test_target_energy_loss(self, ddp_config_data):
        ddp_config_data['run']['target_energy_loss'] = True
        engine = make_engine(ddp_config_data)
        assert engine.ejectile.table is not None
        assert engine.recoil.table is not None
        result = engine.run(10, max_trials=5000, seed=6)
        assert len(result.records) == 10
        for record in result.records:
            products = engine.kinematics.two_body(record.reaction_energy, record.com_angle,
                                                  state=record.state)
            assert record.ejectile_energy <= products.ejectile_energy
        check_counters(result.stats)

    def test_beam_energy_loss(self, ddp_config_data):
        engine = make_engine(ddp_config_data)
        result = engine.run(10, seed=7)
        energies = [r.reaction_energy for r in result.records]
        assert max(energies) < 10.0
        assert min(energies) > 9.9

    def test_reaction_rate(self, ddp_config_data):
        ddp_config_data['beam']['intensity'] = 1.0e6
        ddp_config_data['reaction']['distributions'] = [{'total': 5.0}]
        engine = make_engine(ddp_config_data)
        npt.assert_allclose(engine.reaction_rate,
                            5.0 * MILLIBARN_CM2 * 1.0e6 * engine.target.number_density())

    def test_tabulated_distribution(self, ddp_config_data):
        ddp_config_data['reaction']['distributions'] = [
            {'angles': [0.0, 30.0, 60.0, 180.0], 'cross_sections': [10.0, 1.0, 0.0, 0.0]}]
        engine = make_engine(ddp_config_data)
        result = engine.run(10, max_trials=5000, seed=8)
        assert len(result.records) == 10
        assert all(r.com_angle <= np.radians(60.0) for r in result.records)

    def test_missing_distribution_file(self, ddp_config_data):
        ddp_config_data['reaction']['distributions'] = ['missing.dat']
        with pytest.raises(FileNotFoundError):
            make_engine(ddp_config_data)

    def test_state_without_cross_section(self, ddp_config_data):
        ddp_config_data['reaction']['excited_states'] = [1.0]
        ddp_config_data['reaction']['distributions'] = [
            {'angles': [0.0, 90.0, 180.0], 'cross_sections': [1.0, 1.0, 1.0]}, None]
        with pytest.raises(ConfigurationError, match="no cross section"):
            make_engine(ddp_config_data)

    def test_invalid_setup(self, ddp_config_data):
        ddp_config_data['beam']['profile'] = 'square'
        with pytest.raises(ConfigurationError):
            make_engine(ddp_config_data)

    def test_example_configuration(self, example_config_path):
        engine = SimulationEngine(load_config(example_config_path), verbose=False)
        assert len(engine.detectors) == 7
        assert engine.ejectile.table is None
        result = engine.run(20, max_trials=20000, seed=9)
        assert len(result.records) == 20
        assert result.stats.n_simulated == (result.stats.n_discarded
                                            + result.stats.n_reactions)

    def test_run_parallel(self, ddp_config_data):
        engine = make_engine(ddp_config_data)
        result = engine.run_parallel(8, n_processes=2, seed=3)
        assert len(result.records) == 8
        assert result.stats.n_detected == 8
        check_counters(result.stats)


def test_geometric_efficiency_half_space(rng):
    wall = Primitive(position=(0, 0, 1), size=(200.0, 200.0, 0.01))
    n_hits, efficiency = estimate_geometric_efficiency([wall], 4000, rng)
    assert n_hits == round(efficiency * 4000)
    assert abs(efficiency - 0.5) < 0.04


class TestRecords:

    def make_record(self):
        hit = DetectorHit(detector=2, recoil=True, position=np.array([0.0, 0.0, 1.0]),
                          local=np.array([0.0, 0.0, -0.015]), face=0, lab_theta=1.0,
                          lab_phi=90.0, energy=50.0, deposit=20.0, tof=1e-8)
        return EventRecord(reaction_energy=59.9, interaction=np.zeros(3),
                           beam_direction=np.array([0.0, 0.0, 1.0]), state=1,
                           com_angle=0.3, ejectile_energy=5.0, recoil_energy=50.0,
                           recoil_hits=[hit])

    def test_records_to_arrays(self):
        events, hits = records_to_arrays([self.make_record(), self.make_record()])
        assert len(events) == 2
        assert len(hits) == 2
        npt.assert_array_equal(events['recoil_mult'], [1, 1])
        npt.assert_array_equal(events['ejectile_mult'], [0, 0])
        npt.assert_array_equal(hits['event'], [0, 1])
        assert hits['recoil'].all()
        npt.assert_allclose(hits['local'][0], [0.0, 0.0, -0.015])

    def test_statistics_add(self):
        a = RunStatistics(n_simulated=10, n_reactions=8, n_geometric=4, n_detected=2,
                          missed_target=2)
        b = RunStatistics(n_simulated=5, n_reactions=4, n_geometric=2, n_detected=2,
                          forbidden=1)
        total = sum([a, b], RunStatistics())
        assert total.n_simulated == 15
        assert total.n_discarded == 3
        npt.assert_allclose(total.geometric_efficiency, 0.5)
        npt.assert_allclose(total.detection_efficiency, 4 / 12)
        assert RunStatistics().detection_efficiency == 0.0


class TestHDF5:

    def test_round_trip(self, tmp_path, ddp_config_data):
        engine = make_engine(ddp_config_data)
        result = engine.run(10, seed=10)
        path = write_events(tmp_path / 'events.h5', result, engine.detectors)

        events, hits, stats = read_events(path)
        assert len(events) == 10
        assert len(hits) == sum(len(r.hits) for r in result.records)
        assert stats == result.stats
        npt.assert_allclose(events['reaction_energy'],
                            [r.reaction_energy for r in result.records])

    def test_empty_run(self, tmp_path):
        path = write_events(tmp_path / 'empty.h5', SimulationResult([], RunStatistics()))
        events, hits, stats = read_events(path)
        assert len(events) == 0
        assert len(hits) == 0
        assert stats == RunStatistics()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_events(tmp_path / 'missing.h5')


class TestCommandLine:

    def test_parser(self):
        args = build_parser().parse_args(['run.yaml', '-n', '100', '-p', '4', '--seed', '7'])
        assert args.config == 'run.yaml'
        assert args.events == 100
        assert args.processes == 4
        assert args.seed == 7
        assert args.output is None

    def test_geometric_test(self, example_config_path, capsys):
        assert main([str(example_config_path), '--geometric-test', '500', '-q',
                     '--seed', '1']) == 0
        assert 'Geometric efficiency' in capsys.readouterr().out

    def test_run_with_output(self, example_config_path, tmp_path):
        output = tmp_path / 'out.h5'
        assert main([str(example_config_path), '-n', '5', '--max-trials', '5000',
                     '--seed', '2', '-o', str(output), '-q']) == 0
        events, _, stats = read_events(output)
        assert len(events) == stats.n_detected


class TestConvertDetectorFile:

    @pytest.fixture
    def converter(self):
        spec = importlib.util.spec_from_file_location(
            'convert_detector_file', SCRIPTS / 'convert_detector_file.py')
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    def test_preset_line(self, converter):
        record = converter.parse_detector_line('0 0 1 0 0 0 vandle small')
        assert record == {'position': [0.0, 0.0, 1.0], 'rotation': [0.0, 0.0, 0.0],
                          'role': 'vandle', 'subtype': 'small'}

    def test_custom_line(self, converter):
        record = converter.parse_detector_line(
            '0 0 0.5 0 0 0 recoil ion_chamber 0.1 0.1 0.01 isobutane')
        assert record['size'] == [0.1, 0.1, 0.01]
        assert record['material'] == 'isobutane'

    def test_custom_needs_size(self, converter):
        with pytest.raises(ValueError):
            converter.parse_detector_line('0 0 0.5 0 0 0 recoil ion_chamber')

    def test_dump_round_trip(self, converter, tmp_path):
        bar = Primitive(position=(0.5, 0.0, 0.866), rotation=(0.5236, 0.0, 0.0),
                        size=(0.6, 0.03, 0.03))
        path = tmp_path / 'array.det'
        path.write_text(f"# one bar\n{bar.dump_det()}\n")
        records = converter.convert(path)
        assert len(records) == 1
        assert records[0]['subtype'] == 'small'
        npt.assert_allclose(records[0]['position'], [0.5, 0.0, 0.866])
        assert 'material' not in records[0]
