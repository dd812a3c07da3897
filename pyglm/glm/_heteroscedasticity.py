"""
Tests of constant error variance.

Each test regresses the squared (weighted) residuals u = (sqrt(w) e)^2 on
an auxiliary design and judges how much of u it explains:

    White                 n R^2 on [1, Z, all products of Z columns]
    Breusch-Pagan         ESS / (2 (RSS/n)^2) on [1, y_hat]
    Koenker (modified BP) n R^2 on [1, y_hat]
    F test                (R^2 / df1) / ((1 - R^2) / df2) on [1, y_hat]

df1 is the rank of the auxiliary design minus one; df2 = n - rank. The
fitted-value regressor is dropped when the fitted values are constant.
"""

from typing import Any

import numpy as np
import scipy.linalg as sla
from numpy.typing import NDArray

from pyglm.core.compute.linalg import matrix_rank
from pyglm.glm._common import HeteroscedasticityResult, HeteroscedasticityTest
from pyglm.glm._crossproduct import GeneralizedInverseResult
from pyglm.glm._distributions import chi_square_significance, f_significance
from pyglm.glm.design import DesignMatrixInfo


def heteroscedasticity_tests(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
) -> HeteroscedasticityResult:
    """Run the White, Breusch-Pagan, Koenker and F tests on one fitted model."""
    n = design.n
    resid = np.sqrt(design.w) * (design.y - ginv.fitted)
    u = resid ** 2

    fitted = ginv.fitted
    if np.allclose(fitted, fitted[0]):
        aux = np.ones((n, 1))
    else:
        aux = np.column_stack([np.ones(n), fitted])
    ess, r2, rank = _auxiliary_fit(u, aux)
    df1 = rank - 1
    df2 = n - rank

    sigma2 = float(np.sum(u)) / n
    if df1 > 0 and sigma2 > 0.0:
        bp = ess / (2.0 * sigma2 ** 2)
    else:
        bp = float('nan')
    koenker = n * r2 if df1 > 0 else float('nan')
    if df1 > 0 and df2 > 0 and r2 < 1.0:
        f_val = (r2 / df1) / ((1.0 - r2) / df2)
    else:
        f_val = float('nan')

    _, white_r2, white_rank = _auxiliary_fit(u, _white_design(design))
    white_df = white_rank - 1
    white = n * white_r2 if white_df > 0 else float('nan')

    nan = float('nan')
    return HeteroscedasticityResult(
        white=HeteroscedasticityTest(
            'White', white, white_df, nan, chi_square_significance(white, white_df),
        ),
        breusch_pagan=HeteroscedasticityTest(
            'Breusch-Pagan', bp, df1, nan, chi_square_significance(bp, df1),
        ),
        modified_breusch_pagan=HeteroscedasticityTest(
            'Modified Breusch-Pagan', koenker, df1, nan,
            chi_square_significance(koenker, df1),
        ),
        f_test=HeteroscedasticityTest(
            'F', f_val, df1, float(df2), f_significance(f_val, df1, df2),
        ),
    )


def _white_design(design: DesignMatrixInfo) -> NDArray[np.floating[Any]]:
    """Constant, the non-intercept columns of Z and their pairwise products."""
    keep = [c for c, name in enumerate(design.parameter_names) if name != 'Intercept']
    X = design.Z[:, keep]
    k = X.shape[1]
    products = [X[:, i] * X[:, j] for i in range(k) for j in range(i, k)]
    return np.column_stack([np.ones(design.n), X] + products)


def _auxiliary_fit(
    u: NDArray[np.floating[Any]],
    X: NDArray[np.floating[Any]],
) -> tuple[float, float, int]:
    """Least-squares fit of u on X (X holds a constant): (ESS, R^2, rank)."""
    coef, _, _, _ = sla.lstsq(X, u)
    u_bar = float(np.mean(u))
    ess = float(np.sum((X @ coef - u_bar) ** 2))
    tss = float(np.sum((u - u_bar) ** 2))
    r2 = ess / tss if tss > 0.0 else float('nan')
    return ess, r2, matrix_rank(X)
