"""
Intrinsic detection efficiency of detector classes.

Each detector size class may carry an (energy, efficiency) table.
Lookups interpolate linearly and clamp to the end values outside the
tabulated range. Classes without a table are treated as fully efficient.
"""

import numpy as np
from typing import Dict, Optional, Sequence

from reactmc.core.geometry import DetectorClass


class EfficiencyTable:
    """Monotonic-in-energy efficiency curve."""

    def __init__(self, energy: Sequence[float], efficiency: Sequence[float]):
        """
        Parameters:
            energy: Particle energies [MeV], strictly increasing
            efficiency: Detection probability at each energy, in [0, 1]
        """
        self.energy = np.asarray(energy, dtype=np.float64)
        self.efficiency = np.asarray(efficiency, dtype=np.float64)
        if self.energy.ndim != 1 or self.energy.shape != self.efficiency.shape:
            raise ValueError("Efficiency energy and value arrays must be 1-D and equal length")
        if self.energy.size == 0:
            raise ValueError("Efficiency table is empty")
        if np.any(np.diff(self.energy) <= 0.0):
            raise ValueError("Efficiency table energies must be strictly increasing")
        if np.any(self.efficiency < 0.0) or np.any(self.efficiency > 1.0):
            raise ValueError("Efficiencies must lie within [0, 1]")

    def __call__(self, energy: float) -> float:
        return float(np.interp(energy, self.energy, self.efficiency))

    def __len__(self):
        return self.energy.size


class DetectorEfficiency:
    """
    Efficiency tables keyed by detector class.

    Usage:
        eff = DetectorEfficiency({DetectorClass.SMALL: EfficiencyTable([0.1, 5], [0.2, 0.6])})
        eff.is_detected(DetectorClass.SMALL, 2.0, rng)
    """

    def __init__(self, tables: Optional[Dict[DetectorClass, EfficiencyTable]] = None):
        self.tables: Dict[DetectorClass, EfficiencyTable] = dict(tables or {})

    def add_table(self, detector_class: DetectorClass, table: EfficiencyTable):
        self.tables[detector_class] = table

    def get(self, detector_class: DetectorClass, energy: float) -> float:
        table = self.tables.get(detector_class)
        if table is None:
            return 1.0
        return table(energy)

    def is_detected(self, detector_class: DetectorClass, energy: float,
                    rng: np.random.Generator) -> bool:
        return rng.random() < self.get(detector_class, energy)
