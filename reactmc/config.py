"""
Run configuration.

A simulation is described by a YAML document with `beam`, `target`,
`reaction`, `detectors` and optional `efficiency` and `run` sections.
See examples/configs/dn_inverse.yaml for a complete example.

Angles that operators set by hand (beam divergence, target tilt) are
given in degrees; detector rotations are given in radians.
"""

import numpy as np
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from reactmc.core.geometry import DetectorClass

DETECTOR_ROLES = {
    # role: (use_ejectile, use_recoil)
    'vandle': (True, False),
    'eject': (True, False),
    'recoil': (False, True),
    'dual': (True, True),
}


class ConfigurationError(ValueError):
    """Invalid or incomplete run configuration."""


@dataclass
class BeamConfig:
    Z: int
    A: float
    energy: float                    # MeV
    energy_spread: float = 0.0       # FWHM, MeV
    spot_size: float = 0.0           # m
    divergence_deg: float = 0.0
    profile: str = 'circle'
    intensity: float = 0.0           # particles/s


@dataclass
class TargetConfig:
    Z: int                           # reacting nucleus
    A: float
    thickness: float                 # mg/cm²
    density: float                   # g/cm³
    elements: List[Tuple[float, float, int]]
    angle_deg: float = 0.0
    width: float = 0.05              # m
    height: float = 0.05             # m
    name: str = 'target'


@dataclass
class ReactionConfig:
    ejectile_Z: int
    ejectile_A: float
    q_value: float                   # MeV
    excited_states: List[float] = field(default_factory=list)
    # One entry per state (ground state first): a file path, a mapping with
    # 'angles' and 'cross_sections', or None for isotropic
    distributions: Optional[List[Union[str, dict, None]]] = None


@dataclass
class DetectorRecord:
    position: Tuple[float, float, float]
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    role: str = 'vandle'
    subtype: str = 'small'
    size: Optional[Tuple[float, float, float]] = None   # length, width, depth
    material: str = ''

    @property
    def detector_class(self) -> DetectorClass:
        return DetectorClass.from_name(self.subtype)

    @property
    def use_ejectile(self) -> bool:
        return DETECTOR_ROLES[self.role][0]

    @property
    def use_recoil(self) -> bool:
        return DETECTOR_ROLES[self.role][1]


@dataclass
class SimulationConfig:
    beam: BeamConfig
    target: TargetConfig
    reaction: ReactionConfig
    detectors: List[DetectorRecord]
    efficiency: Dict[str, Dict[str, List[float]]] = field(default_factory=dict)
    perfect_detector: bool = True
    require_coincidence: bool = False
    time_resolution: float = 3e-9            # FWHM, s
    deposit_window: Optional[Tuple[float, float]] = None   # MeV
    target_energy_loss: bool = False
    table_entries: int = 100
    n_wanted: int = 10000
    max_trials: Optional[int] = None
    seed: Optional[int] = None
    stopped_warning: int = 10000
    base_dir: Path = Path('.')

    @property
    def recoil_Z(self) -> int:
        return self.beam.Z + self.target.Z - self.reaction.ejectile_Z

    @property
    def recoil_A(self) -> float:
        return self.beam.A + self.target.A - self.reaction.ejectile_A

    @classmethod
    def from_dict(cls, data: dict, base_dir=None) -> "SimulationConfig":
        """Build and validate a configuration from parsed YAML."""
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")
        for section in ('beam', 'target', 'reaction', 'detectors'):
            if section not in data:
                raise ConfigurationError(f"Missing configuration section '{section}'")

        try:
            beam = BeamConfig(**data['beam'])
            target_data = dict(data['target'])
            target_data['elements'] = [tuple(e) for e in target_data.get('elements', [])]
            target = TargetConfig(**target_data)
            reaction = ReactionConfig(**data['reaction'])
            detectors = [_detector_from_dict(d) for d in data['detectors'] or []]
            run = dict(data.get('run') or {})
            if run.get('deposit_window') is not None:
                run['deposit_window'] = tuple(run['deposit_window'])
            config = cls(beam=beam, target=target, reaction=reaction, detectors=detectors,
                         efficiency=data.get('efficiency') or {}, **run)
        except TypeError as err:
            raise ConfigurationError(f"Invalid configuration entry: {err}") from err

        if base_dir is not None:
            config.base_dir = Path(base_dir)
        config.validate()
        return config

    def validate(self):
        if not self.detectors:
            raise ConfigurationError("No detectors defined")
        if not self.target.elements:
            raise ConfigurationError("Target has no elements")
        if self.beam.energy <= 0.0:
            raise ConfigurationError(f"Beam energy must be positive, got {self.beam.energy}")
        if self.recoil_A <= 0 or self.recoil_Z < 0:
            raise ConfigurationError(f"Reaction leaves no recoil (A={self.recoil_A}, "
                                     f"Z={self.recoil_Z})")
        n_states = 1 + len(self.reaction.excited_states)
        if (self.reaction.distributions is not None
                and len(self.reaction.distributions) != n_states):
            raise ConfigurationError(f"Expected {n_states} angular distributions, got "
                                     f"{len(self.reaction.distributions)}")
        if self.require_coincidence and not any(d.use_recoil for d in self.detectors):
            raise ConfigurationError("Coincidence requested but no recoil detectors defined")
        if not any(d.use_ejectile or d.use_recoil for d in self.detectors):
            raise ConfigurationError("No detector is sensitive to either reaction product")
        for name in self.efficiency:
            if DetectorClass.from_name(name) is DetectorClass.CUSTOM:
                raise ConfigurationError(f"Unknown efficiency detector class '{name}'. "
                                         f"Available: small, medium, large")
        if self.n_wanted <= 0:
            raise ConfigurationError(f"n_wanted must be positive, got {self.n_wanted}")

    def resolve_path(self, filename: str) -> Path:
        path = Path(filename)
        return path if path.is_absolute() else self.base_dir / path


def _detector_from_dict(data: dict) -> DetectorRecord:
    record = DetectorRecord(**data)
    record.position = tuple(float(v) for v in record.position)
    record.rotation = tuple(float(v) for v in record.rotation)
    if record.role not in DETECTOR_ROLES:
        raise ConfigurationError(f"Unknown detector type '{record.role}'. "
                                 f"Available: {list(DETECTOR_ROLES.keys())}")
    if record.size is None and record.detector_class is DetectorClass.CUSTOM:
        raise ConfigurationError(f"Detector at {record.position} has subtype "
                                 f"'{record.subtype}' and no explicit size")
    if record.size is not None:
        record.size = tuple(float(v) for v in record.size)
    return record


def load_config(filename) -> SimulationConfig:
    """
    Read a YAML run configuration.

    Raises:
        FileNotFoundError: if the file does not exist
        ConfigurationError: if the content is invalid
    """
    path = Path(filename)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with open(path, 'r') as f:
        data = yaml.safe_load(f)
    return SimulationConfig.from_dict(data, base_dir=path.parent)


def detector_records_from_array(rows: Sequence[Sequence[float]], role: str = 'vandle',
                                subtype: str = 'small') -> List[DetectorRecord]:
    """Build records from (x, y, z, theta, phi, psi) rows."""
    rows = np.atleast_2d(np.asarray(rows, dtype=np.float64))
    return [DetectorRecord(position=tuple(r[:3]), rotation=tuple(r[3:6]),
                           role=role, subtype=subtype) for r in rows]
