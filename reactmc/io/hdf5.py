"""
HDF5 output of accepted events.

Layout:
    /events    structured dataset, one row per accepted event (EVENT_DTYPE)
    /hits      structured dataset, one row per detector hit (HIT_DTYPE)
    /detectors (n, 9) float dataset: x y z theta phi psi length width depth
    root attributes: run statistics and efficiencies
"""

import h5py
import numpy as np
from pathlib import Path
from typing import Sequence, Tuple

from reactmc.core.geometry import Primitive
from reactmc.transport.records import RunStatistics, SimulationResult, records_to_arrays


def write_events(filename, result: SimulationResult,
                 detectors: Sequence[Primitive] = (), compression: str = 'gzip') -> Path:
    """
    Write a run to an HDF5 file, replacing any existing file.

    Returns:
        Path of the written file
    """
    path = Path(filename)
    events, hits = records_to_arrays(result.records)

    with h5py.File(path, 'w') as f:
        f.create_dataset('events', data=events, compression=compression if events.size else None)
        f.create_dataset('hits', data=hits, compression=compression if hits.size else None)

        geometry = np.array([[*det.position, *det.angles, det.length, det.width, det.depth]
                             for det in detectors], dtype=np.float64).reshape(-1, 9)
        f.create_dataset('detectors', data=geometry)

        for key, value in result.stats.as_dict().items():
            f.attrs[key] = value
        f.attrs['elapsed'] = result.elapsed

    return path


def read_events(filename) -> Tuple[np.ndarray, np.ndarray, RunStatistics]:
    """Read back (events, hits, statistics) written by write_events."""
    path = Path(filename)
    if not path.exists():
        raise FileNotFoundError(f"Event file not found: {path}")
    with h5py.File(path, 'r') as f:
        events = f['events'][...]
        hits = f['hits'][...]
        counters = {name: int(f.attrs[name]) for name in RunStatistics.__dataclass_fields__}
    return events, hits, RunStatistics(**counters)
