"""
Core infrastructure for pyglm.

Shared abstractions used by the GLM engine.

Key components:
    datasource: DataSource case-data container
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing, tolerances, generalized-inverse kernels
"""

from pyglm.core.datasource import DataSource
from pyglm.core.result import Result
from pyglm.core.exceptions import (
    PyGLMError,
    ValidationError,
    DimensionError,
    NumericalError,
    SingularMatrixError,
    EmptyDesignError,
    NoTermsError,
    SingularDesignError,
    NonEstimableTermError,
)

__all__ = [
    "DataSource",
    "Result",
    "PyGLMError",
    "ValidationError",
    "DimensionError",
    "NumericalError",
    "SingularMatrixError",
    "EmptyDesignError",
    "NoTermsError",
    "SingularDesignError",
    "NonEstimableTermError",
]
