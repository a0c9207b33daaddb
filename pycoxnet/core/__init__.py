"""
Core infrastructure for pycoxnet.

This module provides shared abstractions and utilities used by the
penalized Cox engine.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing utilities
"""

from pycoxnet.core.result import Result
from pycoxnet.core.exceptions import (
    PyCoxnetError,
    ValidationError,
    DimensionError,
    DataError,
    ConfigError,
    NumericalError,
    DegenerateStepError,
    ConvergenceError,
    ConvergenceWarning,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "PyCoxnetError",
    "ValidationError",
    "DimensionError",
    "DataError",
    "ConfigError",
    "NumericalError",
    "DegenerateStepError",
    "ConvergenceError",
    "ConvergenceWarning",
]
