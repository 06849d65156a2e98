# --- test import path bootstrap (flat layout) ---
import sys as _sys
from pathlib import Path as _Path

_ROOT = _Path(__file__).resolve().parents[1]
if str(_ROOT) not in _sys.path:
    _sys.path.insert(0, str(_ROOT))
# --- end bootstrap ---

import pytest

POWERMETRICS_OUTPUT = """Machine model: MacBookPro18,3
OS version: 23D60
Boot arguments:
Boot time: Thu Mar  6 09:12:01 2025



*** Sampled system activity (Thu Mar  6 12:36:47 2025 -0500) (1003.25ms elapsed) ***

**** GPU usage ****

GPU HW active frequency: 1350 MHz
GPU HW active residency:  42.50% (389 MHz:   0% 486 MHz:   0% 1296 MHz:  42%)
GPU SW requested state: (P1 :   0% P2 :   0% P3 : 100%)
GPU idle residency:  57.50%
GPU Power: 2500 mW

*** Sampled system activity (Thu Mar  6 12:36:48 2025 -0500) (1001.80ms elapsed) ***

**** GPU usage ****

GPU HW active frequency: 389 MHz
GPU HW active residency:   3.25% (389 MHz:   3% 486 MHz:   0%)
GPU idle residency:  96.75%
GPU Power: 31 mW
"""


@pytest.fixture
def powermetrics_output() -> str:
    return POWERMETRICS_OUTPUT
