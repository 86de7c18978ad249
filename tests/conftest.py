"""Global test configuration.

Seeds the RNGs once per session for deterministic trials.
"""

import os
import random

import numpy as np
import pytest

from microjet import rng


def pytest_sessionstart(session: pytest.Session) -> None:
    """Seed common RNGs to improve test determinism."""
    seed = int(os.environ.get("MICROJET_TEST_SEED", "12345"))
    random.seed(seed)
    np.random.seed(seed)
    rng.set_seed(seed)
