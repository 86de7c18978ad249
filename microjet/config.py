"""
Global precision configuration for microjet.

Controls the dtype of newly created tangent vectors and the default
tolerances used when comparing gradients. float64 is the default; set
MICROJET_PRECISION=float32 to start in single precision.
"""

import os
from enum import Enum

import numpy as np


class PrecisionMode(Enum):
    """Supported precision modes."""
    FLOAT32 = np.float32
    FLOAT64 = np.float64

    @property
    def numpy_dtype(self):
        return self.value

    @property
    def bits(self) -> int:
        return np.dtype(self.value).itemsize * 8


# (rtol, atol) used by check_gradient when none are given
_DEFAULT_TOLERANCES = {
    PrecisionMode.FLOAT32: (1e-4, 1e-5),
    PrecisionMode.FLOAT64: (1e-7, 1e-9),
}

_MODE_NAMES = {
    'float32': PrecisionMode.FLOAT32,
    'float64': PrecisionMode.FLOAT64,
}


def _mode_from_env():
    name = os.environ.get("MICROJET_PRECISION", "float64").strip().lower()
    if name not in _MODE_NAMES:
        raise ValueError(f"Unsupported MICROJET_PRECISION: {name}")
    return _MODE_NAMES[name]


class PrecisionConfig:
    """
    Process-wide numeric settings.

    Jets and tangent vectors read the dtype when they are created, so
    changing the precision does not affect existing instances.
    """

    _default_mode: PrecisionMode = _mode_from_env()
    _tolerances = None

    @classmethod
    def set_precision(cls, mode) -> None:
        """
        Set the default precision mode.

        Args:
            mode: PrecisionMode enum or string ('float32', 'float64')

        Raises:
            ValueError: If mode is not supported
        """
        if isinstance(mode, str):
            if mode not in _MODE_NAMES:
                raise ValueError(f"Unsupported precision mode: {mode}")
            mode = _MODE_NAMES[mode]

        if not isinstance(mode, PrecisionMode):
            raise ValueError(f"Invalid precision mode: {mode}")

        cls._default_mode = mode

    @classmethod
    def get_precision(cls) -> PrecisionMode:
        return cls._default_mode

    @classmethod
    def get_dtype(cls):
        """Get the numpy dtype for the current precision."""
        return cls._default_mode.numpy_dtype

    @classmethod
    def set_tolerances(cls, rtol: float, atol: float) -> None:
        """Override the gradient-check tolerances for every precision."""
        if rtol < 0 or atol < 0:
            raise ValueError(f"tolerances must be non-negative, got rtol={rtol}, atol={atol}")
        cls._tolerances = (float(rtol), float(atol))

    @classmethod
    def get_tolerances(cls):
        """Return (rtol, atol), falling back to the per-precision defaults."""
        if cls._tolerances is not None:
            return cls._tolerances
        return _DEFAULT_TOLERANCES[cls._default_mode]

    @classmethod
    def reset(cls) -> None:
        """Restore the settings read at import time."""
        cls._default_mode = _mode_from_env()
        cls._tolerances = None
