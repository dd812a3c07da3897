"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def full_rank_matrix(rng):
    """Well-conditioned symmetric positive definite 4x4 matrix."""
    X = rng.standard_normal((30, 4))
    return X.T @ X


@pytest.fixture
def rank_deficient_matrix(rng):
    """Cross product of a 3-column design whose third column is x1 + x2."""
    x1 = rng.standard_normal(25)
    x2 = rng.standard_normal(25)
    X = np.column_stack([x1, x2, x1 + x2])
    return X, X.T @ X
