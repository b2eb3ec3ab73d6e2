"""
Event loop for reaction Monte Carlo with detector response.

Per event:
    beam ray → interaction depth in target → beam energy at the reaction
    (stop? discard) → angular straggling → two-body reaction (forbidden?
    discard) → products rotated into the lab frame → intersection with
    every detector → efficiency → coincidence policy → record

Events are independent, so runs parallelize over worker processes that
each own an engine, a random stream and their own statistics, merged at
the end.
"""

import time
import numpy as np
from tqdm import tqdm
from typing import List, Optional, Sequence, Tuple

from reactmc.config import ConfigurationError, DetectorRecord, SimulationConfig
from reactmc.core.geometry import DetectorClass, Primitive
from reactmc.core.particle import Particle
from reactmc.core.vector import Matrix3, cart_to_sphere, sphere_to_cart, unit_sphere_random
from reactmc.physics.angular_distribution import AngularDistribution
from reactmc.physics.efficiency import DetectorEfficiency, EfficiencyTable
from reactmc.physics.kinematics import ReactionKinematics
from reactmc.physics.stopping_power import OutOfTableError
from reactmc.physics.target import Target
from reactmc.transport.beam import BeamSampler, random_gauss
from reactmc.transport.records import (DetectorHit, EventRecord, RunStatistics,
                                       SimulationResult)


# Global engine instance for each worker process
_worker_engine = None


def _init_worker(config):
    """Build the engine (and its range tables) once per worker process."""
    global _worker_engine
    _worker_engine = SimulationEngine(config, verbose=False)


def _run_batch_worker(work_item):
    """
    Run one batch of events in a worker.

    Parameters:
        work_item: Dictionary with 'n_wanted', 'max_trials' and 'seed'
            (a numpy SeedSequence for this worker's random stream)

    Returns:
        SimulationResult of the batch
    """
    rng = np.random.default_rng(work_item['seed'])
    return _worker_engine.run(work_item['n_wanted'], max_trials=work_item['max_trials'],
                              rng=rng, progress=False)


def build_detector(record: DetectorRecord) -> Primitive:
    """Primitive for one detector record, sized from its class preset or explicit size."""
    return Primitive(position=record.position, rotation=record.rotation, size=record.size,
                     detector_class=record.detector_class, material=record.material,
                     use_ejectile=record.use_ejectile, use_recoil=record.use_recoil,
                     role=record.role)


def estimate_geometric_efficiency(detectors: Sequence[Primitive], n_trials: int,
                                  rng: np.random.Generator,
                                  origin=(0.0, 0.0, 0.0)) -> Tuple[int, float]:
    """
    Fraction of isotropic rays from a point that strike any detector.

    Returns:
        (n_hits, efficiency)
    """
    origin = np.asarray(origin, dtype=np.float64)
    n_hits = 0
    for _ in range(n_trials):
        direction = unit_sphere_random(rng)
        if any(det.intersect(origin, direction).hit for det in detectors):
            n_hits += 1
    return n_hits, n_hits / n_trials if n_trials else 0.0


class SimulationEngine:
    """
    Reaction simulation for one beam/target/reaction/detector setup.

    All tables are built at construction and are read-only afterwards.

    Example:
        config = load_config('examples/configs/dn_inverse.yaml')
        engine = SimulationEngine(config)
        result = engine.run(1000, rng=np.random.default_rng(1))
        result.stats.detection_efficiency
    """

    def __init__(self, config: SimulationConfig, verbose: bool = True):
        """
        Initialize the engine.

        Parameters:
            config: Validated run configuration
            verbose: Print setup information and run summaries

        Raises:
            ConfigurationError: if a table or geometry cannot be built
            FileNotFoundError: if a cross-section file is missing
        """
        self.config = config
        self.verbose = verbose

        try:
            self._setup()
        except ConfigurationError:
            raise
        except ValueError as err:
            raise ConfigurationError(f"Setup failed: {err}") from err

        if self.verbose:
            self.print_setup()

    def _setup(self):
        cfg = self.config
        tcfg = cfg.target
        rcfg = cfg.reaction

        self.target = Target(tcfg.elements, tcfg.density, tcfg.thickness,
                             angle=np.radians(tcfg.angle_deg), Z=tcfg.Z, A=tcfg.A,
                             width=tcfg.width, height=tcfg.height, name=tcfg.name)

        self.beam_sampler = BeamSampler(cfg.beam.energy, cfg.beam.energy_spread,
                                        cfg.beam.spot_size, np.radians(cfg.beam.divergence_deg),
                                        cfg.beam.profile, self.target.real_z_thickness)

        self.kinematics = ReactionKinematics(cfg.beam.A, tcfg.A, rcfg.ejectile_A, cfg.recoil_A,
                                             rcfg.q_value, rcfg.excited_states,
                                             distributions=self._load_distributions())

        kin = self.kinematics
        self.beam = Particle('beam', cfg.beam.A, cfg.beam.Z, mass=kin.beam_mass)
        self.ejectile = Particle('ejectile', rcfg.ejectile_A, rcfg.ejectile_Z,
                                 mass=kin.ejectile_mass)
        self.recoil = Particle('recoil', cfg.recoil_A, cfg.recoil_Z, mass=kin.recoil_mass)

        max_energy = self.beam_sampler.max_energy()
        self.beam.set_material(self.target, max_energy, cfg.table_entries)
        if cfg.target_energy_loss:
            product_max = kin.max_product_energy(max_energy)
            self.ejectile.set_material(self.target, product_max, cfg.table_entries)
            self.recoil.set_material(self.target, product_max, cfg.table_entries)

        self.detectors: List[Primitive] = [build_detector(r) for r in cfg.detectors]
        self.efficiency = self._load_efficiency()

    def _load_distributions(self) -> Optional[List[AngularDistribution]]:
        entries = self.config.reaction.distributions
        if entries is None:
            return None

        intensity = self.config.beam.intensity
        density = self.target.number_density()
        distributions = []
        for entry in entries:
            if entry is None:
                distributions.append(AngularDistribution(beam_intensity=intensity,
                                                         number_density=density))
            elif isinstance(entry, str):
                distributions.append(AngularDistribution.from_file(
                    self.config.resolve_path(entry), beam_intensity=intensity,
                    number_density=density))
            elif isinstance(entry, dict) and 'angles' in entry and 'cross_sections' in entry:
                distributions.append(AngularDistribution(entry['angles'],
                                                         entry['cross_sections'],
                                                         beam_intensity=intensity,
                                                         number_density=density))
            elif isinstance(entry, dict) and 'total' in entry:
                distributions.append(AngularDistribution(total_cross_section=entry['total'],
                                                         beam_intensity=intensity,
                                                         number_density=density))
            else:
                raise ConfigurationError(f"Invalid angular distribution entry: {entry!r}")
        return distributions

    def _load_efficiency(self) -> DetectorEfficiency:
        efficiency = DetectorEfficiency()
        for name, table in self.config.efficiency.items():
            if 'energy' not in table or 'efficiency' not in table:
                raise ConfigurationError(f"Efficiency table '{name}' needs 'energy' "
                                         f"and 'efficiency' lists")
            efficiency.add_table(DetectorClass.from_name(name),
                                 EfficiencyTable(table['energy'], table['efficiency']))
        return efficiency

    # ------------------------------------------------------------------
    # Single event
    # ------------------------------------------------------------------

    def simulate_event(self, rng: np.random.Generator,
                       stats: RunStatistics) -> Optional[EventRecord]:
        """
        Simulate one beam particle.

        Returns the record of an accepted event, or None if the event was
        discarded or failed the coincidence policy. Counters in stats are
        updated in place.

        Raises:
            OutOfTableError: if the sampled beam energy exceeds the range table
        """
        cfg = self.config
        stats.n_simulated += 1

        origin, direction = self.beam_sampler.sample_ray(rng)
        energy = self.beam_sampler.sample_energy(rng)

        point = self.target.get_interaction_depth(origin, direction, rng)
        if point is None:
            stats.missed_target += 1
            return None

        if self.beam.table is not None:
            loss = self.beam.table.get_new_e(energy, point.depth)
            if loss.stopped:
                stats.beam_stopped += 1
                if self.verbose and stats.beam_stopped == cfg.stopped_warning:
                    print(f" ATTENTION! {stats.beam_stopped} beam particles stopped in the "
                          f"target. Check the target thickness and beam energy.")
                return None
            reaction_energy = loss.energy
            direction = self.target.angle_straggling(direction, energy, self.beam.Z,
                                                     self.beam.mass, point.depth, rng)
        else:
            reaction_energy = energy

        products = self.kinematics.fill_vars(reaction_energy, rng)
        if products is None:
            stats.forbidden += 1
            return None
        stats.n_reactions += 1

        frame = Matrix3.from_direction(direction)
        ejectile_dir = frame.transform(sphere_to_cart(1.0, products.ejectile_theta,
                                                      products.ejectile_phi))
        recoil_dir = frame.transform(sphere_to_cart(1.0, products.recoil_theta,
                                                    products.recoil_phi))

        ejectile_energy = products.ejectile_energy
        recoil_energy = products.recoil_energy
        if cfg.target_energy_loss:
            ejectile_energy = self._exit_target(self.ejectile, point.interact,
                                                ejectile_dir, ejectile_energy)
            if ejectile_energy <= 0.0:
                stats.ejectile_stopped += 1
            recoil_energy = self._exit_target(self.recoil, point.interact,
                                              recoil_dir, recoil_energy)
            if recoil_energy <= 0.0:
                stats.recoil_stopped += 1

        record = EventRecord(reaction_energy=reaction_energy, interaction=point.interact,
                             beam_direction=direction, state=products.state,
                             com_angle=products.com_angle,
                             ejectile_energy=ejectile_energy, recoil_energy=recoil_energy)

        geometric = False
        for index, det in enumerate(self.detectors):
            if det.use_ejectile and ejectile_energy > 0.0:
                hit, struck = self._detect(index, det, self.ejectile, point.interact,
                                           ejectile_dir, ejectile_energy, False, rng)
                geometric |= struck
                if hit is not None:
                    record.ejectile_hits.append(hit)
            if det.use_recoil and recoil_energy > 0.0:
                hit, struck = self._detect(index, det, self.recoil, point.interact,
                                           recoil_dir, recoil_energy, True, rng)
                geometric |= struck
                if hit is not None:
                    record.recoil_hits.append(hit)

        if geometric:
            stats.n_geometric += 1

        if cfg.require_coincidence:
            accepted = bool(record.ejectile_hits) and bool(record.recoil_hits)
        else:
            accepted = bool(record.ejectile_hits) or bool(record.recoil_hits)
        if not accepted:
            return None

        stats.n_detected += 1
        stats.ejectile_hits += len(record.ejectile_hits)
        stats.recoil_hits += len(record.recoil_hits)
        return record

    def _exit_target(self, particle: Particle, start: np.ndarray,
                     direction: np.ndarray, energy: float) -> float:
        """Energy left after leaving the target from the reaction point (0 if stopped)."""
        if particle.table is None or energy <= 0.0:
            return energy
        result = self.target.physical.intersect(start, direction)
        if not result.hit:
            return energy
        path = max(np.linalg.norm(result.p1 - start), np.linalg.norm(result.p2 - start))
        loss = particle.table.get_new_e(energy, path)
        return 0.0 if loss.stopped else loss.energy

    def _detect(self, index: int, det: Primitive, particle: Particle, origin: np.ndarray,
                direction: np.ndarray, energy: float, is_recoil: bool,
                rng: np.random.Generator) -> Tuple[Optional[DetectorHit], bool]:
        """
        Test one product against one detector.

        Returns:
            (hit or None, whether the detector was geometrically struck)
        """
        cfg = self.config
        result = det.intersect(origin, direction)
        if not result.hit:
            return None, False

        near, far = result.p1, result.p2
        if np.linalg.norm(far - origin) < np.linalg.norm(near - origin):
            near, far = far, near
        position = near + rng.random() * (far - near)

        tof = particle.time_of_flight(energy, float(np.linalg.norm(position - origin)))
        deposit = energy * rng.random()

        if not cfg.perfect_detector:
            tof += random_gauss(cfg.time_resolution, rng)
            if not self.efficiency.is_detected(det.detector_class, energy, rng):
                return None, True

        if cfg.deposit_window is not None:
            low, high = cfg.deposit_window
            if not low <= deposit <= high:
                return None, True

        _, theta, phi = cart_to_sphere(direction)
        hit = DetectorHit(detector=index, recoil=is_recoil, position=position,
                          local=result.local, face=result.face,
                          lab_theta=float(np.degrees(theta)), lab_phi=float(np.degrees(phi)),
                          energy=energy, deposit=deposit, tof=tof)
        return hit, True

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def run(self, n_wanted: Optional[int] = None, max_trials: Optional[int] = None,
            rng: Optional[np.random.Generator] = None, seed: Optional[int] = None,
            progress: Optional[bool] = None) -> SimulationResult:
        """
        Simulate until n_wanted events are accepted or max_trials are used.

        Parameters:
            n_wanted: Accepted events to collect (default from the configuration)
            max_trials: Beam particles to simulate at most (None: no limit)
            rng: Random generator; created from seed (or the configured seed) if None
            seed: Seed used when rng is None
            progress: Show a progress bar (default: verbose)

        Returns:
            SimulationResult with the accepted records and run statistics
        """
        cfg = self.config
        n_wanted = cfg.n_wanted if n_wanted is None else n_wanted
        max_trials = cfg.max_trials if max_trials is None else max_trials
        if rng is None:
            rng = np.random.default_rng(cfg.seed if seed is None else seed)
        show_progress = self.verbose if progress is None else progress

        stats = RunStatistics()
        records: List[EventRecord] = []
        start_time = time.time()

        with tqdm(total=n_wanted, desc='Accepted', unit='evt',
                  disable=not show_progress) as bar:
            while len(records) < n_wanted:
                if max_trials is not None and stats.n_simulated >= max_trials:
                    break
                try:
                    record = self.simulate_event(rng, stats)
                except OutOfTableError:
                    stats.out_of_table += 1
                    continue
                if record is not None:
                    records.append(record)
                    bar.update(1)

        result = SimulationResult(records, stats, time.time() - start_time)
        if self.verbose and show_progress:
            self.print_summary(result)
        return result

    def run_parallel(self, n_wanted: Optional[int] = None, n_processes: Optional[int] = None,
                     seed: Optional[int] = None,
                     max_trials: Optional[int] = None) -> SimulationResult:
        """
        Split a run over worker processes.

        Each worker builds its own engine from the configuration and draws
        from an independent stream spawned from one SeedSequence, so the
        merged result is reproducible for a given seed and process count.

        Parameters:
            n_wanted: Total accepted events
            n_processes: Number of worker processes (default: cpu_count)
            seed: Root seed (default from the configuration)
            max_trials: Total number of trials, split evenly between workers
        """
        import multiprocessing as mp

        cfg = self.config
        n_wanted = cfg.n_wanted if n_wanted is None else n_wanted
        max_trials = cfg.max_trials if max_trials is None else max_trials
        if n_processes is None:
            n_processes = mp.cpu_count()
        n_processes = max(1, min(n_processes, n_wanted))

        seeds = np.random.SeedSequence(cfg.seed if seed is None else seed).spawn(n_processes)
        batch_sizes = [len(b) for b in np.array_split(np.arange(n_wanted), n_processes)]
        trials = None if max_trials is None else int(np.ceil(max_trials / n_processes))

        work_items = [{'n_wanted': size, 'max_trials': trials, 'seed': s}
                      for size, s in zip(batch_sizes, seeds)]

        if self.verbose:
            print(f"\nParallel run: {n_wanted} events on {n_processes} processes")

        start_time = time.time()
        with mp.Pool(n_processes, initializer=_init_worker,
                     initargs=(self.config,)) as pool:
            results = pool.map(_run_batch_worker, work_items)

        records = [record for r in results for record in r.records]
        stats = sum((r.stats for r in results), RunStatistics())
        result = SimulationResult(records, stats, time.time() - start_time)

        if self.verbose:
            self.print_summary(result)
        return result

    def geometric_efficiency(self, n_trials: int,
                             rng: np.random.Generator) -> Tuple[int, float]:
        """Isotropic point-source efficiency of the ejectile-sensitive detectors."""
        detectors = [det for det in self.detectors if det.use_ejectile]
        return estimate_geometric_efficiency(detectors, n_trials, rng)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @property
    def reaction_rate(self) -> float:
        """Expected reactions per second for the configured beam intensity."""
        return float(sum(d.rate for d in self.kinematics.distributions))

    def print_setup(self):
        cfg = self.config
        print(f"\n{'='*70}")
        print(f"Reaction simulation setup")
        print(f"{'='*70}")
        print(f"  Beam: Z={cfg.beam.Z} A={cfg.beam.A} @ {cfg.beam.energy} MeV "
              f"(FWHM {cfg.beam.energy_spread} MeV, {cfg.beam.profile} spot "
              f"{cfg.beam.spot_size * 1e3:.2f} mm)")
        print(f"  Target: {self.target}")
        print(f"  Reaction: {self.kinematics}")
        print(f"  Detectors: {len(self.detectors)} "
              f"({sum(d.use_ejectile for d in self.detectors)} ejectile, "
              f"{sum(d.use_recoil for d in self.detectors)} recoil)")
        if self.beam.table is not None:
            print(f"  Beam range table: {self.beam.table}")
        print(f"  Coincidence: {'required' if cfg.require_coincidence else 'not required'}")
        print(f"{'='*70}\n")

    def print_summary(self, result: SimulationResult):
        stats = result.stats
        print(f"\n{'='*70}")
        print(f"Run complete:")
        print(f"{'='*70}")
        print(f"  Time: {result.elapsed:.1f}s")
        print(f"  Simulated: {stats.n_simulated:,}")
        print(f"  Reactions: {stats.n_reactions:,}")
        print(f"  Geometric hits: {stats.n_geometric:,} "
              f"(efficiency {100.0 * stats.geometric_efficiency:.3f}%)")
        print(f"  Detected: {stats.n_detected:,} "
              f"(efficiency {100.0 * stats.detection_efficiency:.3f}%)")
        print(f"  Beam stopped in target: {stats.beam_stopped:,}")
        if stats.ejectile_stopped or stats.recoil_stopped:
            print(f"  Products stopped in target: ejectile {stats.ejectile_stopped:,}, "
                  f"recoil {stats.recoil_stopped:,}")
        print(f"  Discarded: {stats.n_discarded:,} (missed target {stats.missed_target:,}, "
              f"forbidden {stats.forbidden:,}, out of table {stats.out_of_table:,})")
        if self.config.beam.intensity > 0.0:
            beam_time = stats.n_simulated / self.config.beam.intensity
            print(f"  Beam time: {beam_time:.4e} s")
            if self.reaction_rate > 0.0:
                print(f"  Reaction rate: {self.reaction_rate:.4e} /s")
        print(f"{'='*70}\n")
