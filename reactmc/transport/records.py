"""
Event records and run statistics.

Accepted events are kept as EventRecord objects during a run and can be
flattened into NumPy structured arrays (one row per event, one row per
detector hit) for analysis or output.
"""

import numpy as np
from dataclasses import dataclass, field, fields
from typing import List, NamedTuple, Sequence, Tuple


EVENT_DTYPE = np.dtype([
    ('event', np.int64),
    ('reaction_energy', np.float64),      # beam energy at the reaction [MeV]
    ('interaction', np.float64, 3),       # reaction point [m]
    ('beam_direction', np.float64, 3),    # straggled beam direction
    ('state', np.int32),                  # recoil state index
    ('com_angle', np.float64),            # [rad]
    ('ejectile_energy', np.float64),      # [MeV]
    ('recoil_energy', np.float64),        # [MeV]
    ('ejectile_mult', np.int32),
    ('recoil_mult', np.int32),
])

HIT_DTYPE = np.dtype([
    ('event', np.int64),
    ('detector', np.int32),               # index into the detector list
    ('recoil', np.bool_),                 # hit by the recoil (else ejectile)
    ('position', np.float64, 3),          # sampled point inside the element [m]
    ('local', np.float64, 3),             # face hit in element coordinates [m]
    ('face', np.int8),
    ('lab_theta', np.float64),            # [deg]
    ('lab_phi', np.float64),              # [deg]
    ('energy', np.float64),               # particle energy [MeV]
    ('deposit', np.float64),              # QDC proxy [MeV]
    ('tof', np.float64),                  # [s]
])


class DetectorHit(NamedTuple):
    detector: int
    recoil: bool
    position: np.ndarray
    local: np.ndarray
    face: int
    lab_theta: float
    lab_phi: float
    energy: float
    deposit: float
    tof: float


@dataclass
class EventRecord:
    reaction_energy: float
    interaction: np.ndarray
    beam_direction: np.ndarray
    state: int
    com_angle: float
    ejectile_energy: float
    recoil_energy: float
    ejectile_hits: List[DetectorHit] = field(default_factory=list)
    recoil_hits: List[DetectorHit] = field(default_factory=list)

    @property
    def hits(self) -> List[DetectorHit]:
        return self.ejectile_hits + self.recoil_hits


@dataclass
class RunStatistics:
    """Counters accumulated by one event loop; workers merge theirs with +."""
    n_simulated: int = 0
    n_reactions: int = 0
    n_geometric: int = 0
    n_detected: int = 0
    ejectile_hits: int = 0
    recoil_hits: int = 0
    missed_target: int = 0
    beam_stopped: int = 0
    forbidden: int = 0
    out_of_table: int = 0
    ejectile_stopped: int = 0
    recoil_stopped: int = 0

    def __add__(self, other: "RunStatistics") -> "RunStatistics":
        return RunStatistics(**{f.name: getattr(self, f.name) + getattr(other, f.name)
                                for f in fields(self)})

    @property
    def n_discarded(self) -> int:
        return self.missed_target + self.beam_stopped + self.forbidden + self.out_of_table

    @property
    def geometric_efficiency(self) -> float:
        return self.n_geometric / self.n_reactions if self.n_reactions else 0.0

    @property
    def detection_efficiency(self) -> float:
        return self.n_detected / self.n_reactions if self.n_reactions else 0.0

    def as_dict(self) -> dict:
        summary = {f.name: getattr(self, f.name) for f in fields(self)}
        summary['geometric_efficiency'] = self.geometric_efficiency
        summary['detection_efficiency'] = self.detection_efficiency
        return summary


@dataclass
class SimulationResult:
    records: List[EventRecord]
    stats: RunStatistics
    elapsed: float = 0.0


def records_to_arrays(records: Sequence[EventRecord]) -> Tuple[np.ndarray, np.ndarray]:
    """Flatten records into (events, hits) structured arrays."""
    events = np.zeros(len(records), dtype=EVENT_DTYPE)
    n_hits = sum(len(record.hits) for record in records)
    hits = np.zeros(n_hits, dtype=HIT_DTYPE)

    row = 0
    for i, record in enumerate(records):
        events['event'][i] = i
        events['reaction_energy'][i] = record.reaction_energy
        events['interaction'][i] = record.interaction
        events['beam_direction'][i] = record.beam_direction
        events['state'][i] = record.state
        events['com_angle'][i] = record.com_angle
        events['ejectile_energy'][i] = record.ejectile_energy
        events['recoil_energy'][i] = record.recoil_energy
        events['ejectile_mult'][i] = len(record.ejectile_hits)
        events['recoil_mult'][i] = len(record.recoil_hits)

        for hit in record.hits:
            hits['event'][row] = i
            hits['detector'][row] = hit.detector
            hits['recoil'][row] = hit.recoil
            hits['position'][row] = hit.position
            hits['local'][row] = hit.local
            hits['face'][row] = hit.face
            hits['lab_theta'][row] = hit.lab_theta
            hits['lab_phi'][row] = hit.lab_phi
            hits['energy'][row] = hit.energy
            hits['deposit'][row] = hit.deposit
            hits['tof'][row] = hit.tof
            row += 1

    return events, hits
