"""
Shared fixtures for GLM tests.

Provides literal and seeded data sets for one-way, two-way (balanced,
unbalanced, empty cell), ANCOVA and regression scenarios, as column
mappings accepted directly by glm().
"""

import numpy as np
import pytest


# =====================================================================
# One-way fixtures
# =====================================================================


@pytest.fixture
def three_groups():
    """
    3 groups x 4 cases, group means 10, 12, 14.

    SS_between = 32, SS_within = 4.34, df = (2, 9).
    """
    return {
        'score': [9.2, 10.1, 10.8, 9.9,
                  11.3, 12.4, 12.9, 11.4,
                  13.1, 14.6, 14.2, 14.1],
        'group': [1, 1, 1, 1, 2, 2, 2, 2, 3, 3, 3, 3],
    }


@pytest.fixture
def oneway_balanced():
    """4 groups x 6 cases, seeded."""
    rng = np.random.default_rng(7)
    n_per = 6
    means = [20.0, 22.0, 25.0, 21.0]
    y = np.concatenate([rng.normal(m, 2.0, n_per) for m in means])
    group = np.repeat(['a', 'b', 'c', 'd'], n_per)
    return {'y': y, 'group': group}


# =====================================================================
# Two-way fixtures
# =====================================================================


def _twoway(cell_sizes, seed, effects=(0.0, 3.0, 2.0, 1.5)):
    """Build a 2 x 2 (or larger) data set from a {(a, b): n} mapping."""
    rng = np.random.default_rng(seed)
    mu, a_eff, b_eff, ab_eff = effects
    y, a, b = [], [], []
    for (ai, bi), n in cell_sizes.items():
        mean = mu + a_eff * (ai == 2) + b_eff * (bi == 2) + ab_eff * (ai == 2) * (bi == 2)
        y.extend(rng.normal(10.0 + mean, 1.0, n))
        a.extend([ai] * n)
        b.extend([bi] * n)
    return {'y': np.array(y), 'A': np.array(a), 'B': np.array(b)}


@pytest.fixture
def twoway_balanced():
    """2 x 2 balanced, 5 per cell."""
    return _twoway({(1, 1): 5, (1, 2): 5, (2, 1): 5, (2, 2): 5}, seed=11)


@pytest.fixture
def twoway_unbalanced():
    """2 x 2 unbalanced with A and B correlated (6, 2, 2, 6 per cell)."""
    return _twoway({(1, 1): 6, (1, 2): 2, (2, 1): 2, (2, 2): 6}, seed=12)


@pytest.fixture
def twoway_empty_cell():
    """2 x 3 with cell (A=2, B=3) empty, unbalanced elsewhere."""
    return _twoway(
        {(1, 1): 4, (1, 2): 3, (1, 3): 5, (2, 1): 3, (2, 2): 4},
        seed=13,
    )


# =====================================================================
# Covariate fixtures
# =====================================================================


@pytest.fixture
def ancova_data():
    """3 groups with a covariate, 8 cases per group."""
    rng = np.random.default_rng(21)
    n_per = 8
    group = np.repeat([1, 2, 3], n_per)
    x = rng.uniform(0.0, 10.0, 3 * n_per)
    y = 5.0 + 0.8 * x + np.array([0.0, 2.0, 4.0])[group - 1] + rng.normal(0, 1.0, 3 * n_per)
    return {'y': y, 'group': group, 'x': x}


@pytest.fixture
def replicated_regression():
    """x in {1, 2, 3, 4}, 3 replicates each, curved response."""
    x = np.repeat([1.0, 2.0, 3.0, 4.0], 3)
    y = np.array([2.1, 1.9, 2.3,
                  4.8, 5.2, 5.0,
                  9.9, 10.3, 10.1,
                  17.2, 16.8, 17.0])
    return {'y': y, 'x': x}
