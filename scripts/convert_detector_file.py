"""
Convert a whitespace detector list into the YAML `detectors` section.

Input lines (one detector per line, '#' comments allowed):
    X Y Z Theta Phi Psi Type Subtype [Length Width Depth] [Material]

Positions in meters, angles in radians. Subtypes small/medium/large take
their preset sizes; any other subtype needs explicit dimensions.

Usage:
    python scripts/convert_detector_file.py detectors.det > detectors.yaml
"""

import sys
import yaml
from pathlib import Path

from reactmc.core.geometry import DetectorClass


def parse_detector_line(line: str) -> dict:
    fields = line.split()
    if len(fields) < 8:
        raise ValueError(f"Expected at least 8 fields, got {len(fields)}: {line!r}")

    record = {
        'position': [float(v) for v in fields[0:3]],
        'rotation': [float(v) for v in fields[3:6]],
        'role': fields[6],
        'subtype': fields[7],
    }
    rest = fields[8:]
    if DetectorClass.from_name(fields[7]) is DetectorClass.CUSTOM:
        if len(rest) < 3:
            raise ValueError(f"Subtype '{fields[7]}' needs length, width and depth: {line!r}")
        record['size'] = [float(v) for v in rest[:3]]
        rest = rest[3:]
    elif len(rest) >= 3:
        # Dump lines repeat the preset dimensions
        rest = rest[3:]
    if rest and rest[0] != 'none':
        record['material'] = rest[0]
    return record


def convert(filename) -> list:
    path = Path(filename)
    if not path.exists():
        raise FileNotFoundError(f"Detector file not found: {path}")

    detectors = []
    with open(path, 'r') as f:
        for line in f:
            line = line.split('#', 1)[0].strip()
            if line:
                detectors.append(parse_detector_line(line))

    if not detectors:
        raise ValueError(f"No detectors found in {path}")
    return detectors


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    detectors = convert(sys.argv[1])
    print(f"# {len(detectors)} detectors from {sys.argv[1]}", file=sys.stderr)
    yaml.safe_dump({'detectors': detectors}, sys.stdout, default_flow_style=None, sort_keys=False)
