"""
Linear algebra kernels for pyglm.

All functions follow these conventions:
    - NumPy/SciPy (LAPACK under the hood)
    - Rank decisions use one relative tolerance (tolerances.RANK_RTOL)
    - Errors are raised immediately with clear messages

Submodules:
    ginverse: rank, generalized inverses, sweep operator, estimability
"""

from pyglm.core.compute.linalg.ginverse import (
    SweepResult,
    row_space_basis,
    matrix_rank,
    symmetric_rank,
    symmetric_ginverse,
    sweep,
    independent_rows,
    vanishing_subspace,
    estimable_part,
)

__all__ = [
    "SweepResult",
    "row_space_basis",
    "matrix_rank",
    "symmetric_rank",
    "symmetric_ginverse",
    "sweep",
    "independent_rows",
    "vanishing_subspace",
    "estimable_part",
]
