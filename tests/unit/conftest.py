"""Restore the precision settings after every unit test so float32 tests do not leak."""

import pytest

from microjet.config import PrecisionConfig


@pytest.fixture(autouse=True)
def _reset_precision():
    PrecisionConfig.reset()
    yield
    PrecisionConfig.reset()
