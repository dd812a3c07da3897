"""
Shared compute infrastructure for pyglm.

Submodules:
    timing: Execution timing utilities
    tolerances: Rank and sum-of-squares tolerances
    linalg: Rank, generalized-inverse and estimability kernels
"""

from pyglm.core.compute.timing import Timer

__all__ = [
    "Timer",
]
