#!/usr/bin/env python3
"""
Compare serial and parallel event-loop throughput.
"""
import time
import cProfile
import pstats
import numpy as np
from io import StringIO
from pathlib import Path

from reactmc.config import load_config
from reactmc.transport.engine import SimulationEngine

CONFIG = Path(__file__).parent.parent / 'configs' / 'dn_inverse.yaml'


def profile_serial(n_events: int = 500):
    """Profile the serial event loop."""
    print("\n" + "="*70)
    print("PROFILING SERIAL EVENT LOOP")
    print("="*70)

    engine = SimulationEngine(load_config(CONFIG), verbose=False)

    profiler = cProfile.Profile()
    profiler.enable()
    start = time.time()
    result = engine.run(n_events, rng=np.random.default_rng(1))
    elapsed = time.time() - start
    profiler.disable()

    print(f"   Time: {elapsed:.3f}s for {result.stats.n_simulated} beam particles")

    print("\n   Top function calls:")
    s = StringIO()
    ps = pstats.Stats(profiler, stream=s).sort_stats('cumulative')
    ps.print_stats(20)
    print(s.getvalue())
    return elapsed


def compare_parallel(n_events: int = 4000, n_processes: int = 4):
    """Time serial against parallel runs of the same size."""
    print("\n" + "="*70)
    print("SERIAL VS PARALLEL")
    print("="*70)

    engine = SimulationEngine(load_config(CONFIG), verbose=False)

    start = time.time()
    serial = engine.run(n_events, seed=7)
    serial_time = time.time() - start
    print(f"\n1. Serial: {serial_time:.3f}s, "
          f"detection efficiency {100 * serial.stats.detection_efficiency:.3f}%")

    start = time.time()
    parallel = engine.run_parallel(n_events, n_processes=n_processes, seed=7)
    parallel_time = time.time() - start
    print(f"2. Parallel ({n_processes} processes): {parallel_time:.3f}s, "
          f"detection efficiency {100 * parallel.stats.detection_efficiency:.3f}%")
    print(f"   Speedup: {serial_time / parallel_time:.2f}x")


if __name__ == "__main__":
    profile_serial()
    compare_parallel()
