"""
Weighted cross products and the generalized inverse of Z'WZ.

Two generalized inverses are available:

    'pinv'   ordinary inverse when Z has full column rank, otherwise the
             Moore-Penrose inverse truncated at rank(Z)
    'sweep'  Gauss-Jordan sweep of [Z'WZ Z'WY; Y'WZ Y'WY] (AS 178): a
             symmetric g2-inverse with aliased parameters fixed at zero

Both satisfy A G A = A, so every estimable quantity (fitted values, RSS,
SS for estimable hypotheses) is the same under either.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import scipy.linalg as sla
from numpy.typing import NDArray

from pyglm.core.compute.linalg import sweep, symmetric_ginverse
from pyglm.core.compute.tolerances import ZERO_SS
from pyglm.core.exceptions import SingularDesignError, SingularMatrixError, ValidationError
from pyglm.glm.design import DesignMatrixInfo


GINVERSE_METHODS = ('pinv', 'sweep')


@dataclass(frozen=True)
class GeneralizedInverseResult:
    """
    Cross products, generalized inverse and parameter estimates.

    Attributes:
        A: Z'WZ (p, p)
        b: Z'WY (p,)
        yWy: Y'WY
        G: Symmetric generalized inverse of A
        beta: Parameter estimates G b
        fitted: Z beta
        rss: Residual (weighted) sum of squares
        rank: Numerical rank of Z
        df_error: n - rank
        singular: True when rank < p and a generalized inverse was used
        method: 'inverse', 'pinv' or 'sweep'
        aliased: (p,) parameters fixed at zero by the sweep (all False
            otherwise)
    """
    A: NDArray[np.floating[Any]]
    b: NDArray[np.floating[Any]]
    yWy: float
    G: NDArray[np.floating[Any]]
    beta: NDArray[np.floating[Any]]
    fitted: NDArray[np.floating[Any]]
    rss: float
    rank: int
    df_error: int
    singular: bool
    method: str
    aliased: NDArray[np.bool_]

    @property
    def ms_error(self) -> float:
        """RSS / df_error, NaN when there are no error degrees of freedom."""
        if self.df_error <= 0:
            return float('nan')
        return self.rss / self.df_error


def compute_cross_products(
    design: DesignMatrixInfo,
    ginverse: str = 'pinv',
) -> GeneralizedInverseResult:
    """
    Form Z'WZ and Z'WY and solve the normal equations.

    Rank deficiency from redundant dummy columns is expected and handled.

    Args:
        design: Design from build_design()
        ginverse: 'pinv' (default) or 'sweep'

    Returns:
        GeneralizedInverseResult

    Raises:
        ValidationError: Unknown ginverse method
        SingularDesignError: Cross products are not finite or the
            generalized inverse could not be formed
    """
    if ginverse not in GINVERSE_METHODS:
        raise ValidationError(
            f"ginverse: expected one of {GINVERSE_METHODS}, got {ginverse!r}"
        )

    Z, y, w = design.Z, design.y, design.w
    p = design.p
    Zw = Z * w[:, None]
    A = Z.T @ Zw
    A = (A + A.T) / 2.0
    b = Zw.T @ y
    yWy = float(y @ (w * y))

    if not (np.all(np.isfinite(A)) and np.all(np.isfinite(b)) and np.isfinite(yWy)):
        raise SingularDesignError(
            "Cross-product matrix Z'WZ has non-finite entries",
            matrix_name="Z'WZ",
            expected_rank=p,
        )

    aliased = np.zeros(p, dtype=bool)
    if ginverse == 'sweep':
        G, beta, aliased = _sweep_inverse(A, b, yWy)
        method = 'sweep'
    elif design.rank == p:
        try:
            G = sla.inv(A, check_finite=False)
            G = (G + G.T) / 2.0
            method = 'inverse'
        except (np.linalg.LinAlgError, ValueError):
            G = _pinv(A, design.rank)
            method = 'pinv'
        beta = G @ b
    else:
        G = _pinv(A, design.rank)
        method = 'pinv'
        beta = G @ b

    fitted = Z @ beta
    resid = y - fitted
    rss = max(float(resid @ (w * resid)), 0.0)
    if rss < ZERO_SS * max(yWy, 1.0):
        rss = 0.0

    return GeneralizedInverseResult(
        A=A,
        b=b,
        yWy=yWy,
        G=G,
        beta=beta,
        fitted=fitted,
        rss=rss,
        rank=design.rank,
        df_error=design.n - design.rank,
        singular=design.rank < p,
        method=method,
        aliased=aliased,
    )


def _pinv(A: NDArray[np.floating[Any]], rank: int) -> NDArray[np.floating[Any]]:
    try:
        return symmetric_ginverse(A, rank=rank)
    except SingularMatrixError as e:
        raise SingularDesignError(
            f"Generalized inverse of Z'WZ could not be formed: {e}",
            matrix_name="Z'WZ",
            rank=rank,
            expected_rank=A.shape[0],
        ) from e


def _sweep_inverse(
    A: NDArray[np.floating[Any]],
    b: NDArray[np.floating[Any]],
    yWy: float,
) -> tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]], NDArray[np.bool_]]:
    p = A.shape[0]
    C = np.empty((p + 1, p + 1))
    C[:p, :p] = A
    C[:p, p] = b
    C[p, :p] = b
    C[p, p] = yWy

    swept = sweep(C, range(p))
    aliased = swept.aliased[:p]
    G = -swept.matrix[:p, :p]
    G[aliased, :] = 0.0
    G[:, aliased] = 0.0
    beta = swept.matrix[:p, p].copy()
    beta[aliased] = 0.0
    return (G + G.T) / 2.0, beta, aliased
