"""
Command line driver.

Usage:
    reactmc-run config.yaml -n 10000 --processes 4 --output events.h5
    reactmc-run config.yaml --geometric-test 100000
"""

import argparse
import numpy as np

from reactmc.config import load_config
from reactmc.io.hdf5 import write_events
from reactmc.transport.engine import SimulationEngine


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='reactmc-run',
        description='Simulate a two-body reaction and the response of a detector array.')
    parser.add_argument('config', help='YAML run configuration')
    parser.add_argument('-n', '--events', type=int, default=None,
                        help='accepted events to collect (default: from config)')
    parser.add_argument('-p', '--processes', type=int, default=1,
                        help='worker processes (default: 1)')
    parser.add_argument('--seed', type=int, default=None, help='random seed')
    parser.add_argument('--max-trials', type=int, default=None,
                        help='maximum number of beam particles to simulate')
    parser.add_argument('-o', '--output', default=None, help='HDF5 output file')
    parser.add_argument('--geometric-test', type=int, default=None, metavar='N',
                        help='only estimate the isotropic geometric efficiency with N rays')
    parser.add_argument('-q', '--quiet', action='store_true', help='suppress output')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    engine = SimulationEngine(config, verbose=not args.quiet)

    if args.geometric_test is not None:
        rng = np.random.default_rng(config.seed if args.seed is None else args.seed)
        n_hits, efficiency = engine.geometric_efficiency(args.geometric_test, rng)
        print(f"Geometric efficiency: {n_hits}/{args.geometric_test} = {100.0 * efficiency:.4f}%")
        return 0

    if args.processes > 1:
        result = engine.run_parallel(args.events, n_processes=args.processes,
                                     seed=args.seed, max_trials=args.max_trials)
    else:
        result = engine.run(args.events, max_trials=args.max_trials, seed=args.seed)

    if args.output is not None:
        path = write_events(args.output, result, engine.detectors)
        if not args.quiet:
            print(f"Wrote {len(result.records)} events to {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
