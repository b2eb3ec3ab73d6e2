import copy
import numpy as np
import pytest
from pathlib import Path

EXAMPLE_CONFIG = Path(__file__).parent.parent / 'examples' / 'configs' / 'dn_inverse.yaml'

# d(d,p)t on a thin CD2 foil, one large dual-role wall 30 cm downstream
DDP_CONFIG = {
    'beam': {'Z': 1, 'A': 2, 'energy': 10.0},
    'target': {'Z': 1, 'A': 2, 'thickness': 1.0, 'density': 1.06, 'name': 'CD2',
               'elements': [[6, 12.0, 1], [1, 2.0, 2]]},
    'reaction': {'ejectile_Z': 1, 'ejectile_A': 1, 'q_value': 4.033},
    'detectors': [
        {'position': [0.0, 0.0, 0.3], 'role': 'dual', 'subtype': 'wall',
         'size': [1.0, 1.0, 0.02]},
    ],
    'run': {'n_wanted': 50, 'seed': 11},
}


@pytest.fixture
def ddp_config_data():
    return copy.deepcopy(DDP_CONFIG)


@pytest.fixture
def example_config_path():
    return EXAMPLE_CONFIG


@pytest.fixture
def rng():
    return np.random.default_rng(12345)
