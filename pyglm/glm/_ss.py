"""
Sum-of-squares computation for GLM hypothesis tests.

    SS = (L b)' (L G L')^- (L b),    df = rank(L G L')

The between-subjects table adds the model, error and total rows:

    Corrected Model  SS = sum w (fitted - ybar_w)^2,   df = rank - 1
    Error            SS = RSS,                         df = n - rank
    Total            SS = Y'WY,                        df = n
    Corrected Total  SS = sum w (y - ybar_w)^2,        df = n - 1

Without an intercept the model row is the uncorrected "Model" row
(SS = sum w fitted^2, df = rank) and there is no Corrected Total.
"""

from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyglm.core.compute.linalg import symmetric_ginverse, symmetric_rank
from pyglm.core.compute.tolerances import ZERO_SS
from pyglm.core.exceptions import DimensionError
from pyglm.core.validation import check_2d, check_array
from pyglm.glm._common import SumOfSquaresEntry
from pyglm.glm._crossproduct import GeneralizedInverseResult
from pyglm.glm._distributions import (
    f_noncentrality,
    f_significance,
    observed_power_f,
)
from pyglm.glm._hypothesis import HypothesisMatrix
from pyglm.glm.design import DesignMatrixInfo


NAN = float('nan')


def f_test_entry(
    source: str,
    ss: float,
    df: int,
    ms_error: float,
    df_error: int,
    ss_error: float,
    alpha: float,
    *,
    effect_size: bool = True,
    power: bool = True,
    error: str | None = None,
) -> SumOfSquaresEntry:
    """
    Assemble a table row with its F test.

    F is NaN when df = 0, df_error = 0 or MS_error = 0 (perfect fit).
    """
    if df <= 0:
        return SumOfSquaresEntry(
            source=source, ss=0.0, df=0, ms=NAN, f_value=NAN, p_value=NAN,
            partial_eta_squared=NAN, noncentrality=NAN, observed_power=NAN,
            error=error,
        )

    ms = ss / df
    if df_error > 0 and np.isfinite(ms_error) and ms_error > 0:
        f = ms / ms_error
    else:
        f = NAN
    denom = ss + ss_error
    eta = ss / denom if effect_size and denom > 0 else NAN
    return SumOfSquaresEntry(
        source=source,
        ss=ss,
        df=df,
        ms=ms,
        f_value=f,
        p_value=f_significance(f, df, df_error),
        partial_eta_squared=eta,
        noncentrality=f_noncentrality(f, df) if power else NAN,
        observed_power=observed_power_f(f, df, df_error, alpha) if power else NAN,
        error=error,
    )


def compute_sum_of_squares(
    L: HypothesisMatrix | NDArray[np.floating[Any]],
    ginv: GeneralizedInverseResult,
    df_error: int,
    ms_error: float,
    alpha: float,
    *,
    source: str | None = None,
    effect_size: bool = True,
    power: bool = True,
) -> SumOfSquaresEntry:
    """
    Evaluate the hypothesis L beta = 0.

    Args:
        L: HypothesisMatrix or (d, p) array of hypothesis rows
        ginv: Cross products and estimates
        df_error: Residual degrees of freedom
        ms_error: Residual mean square
        alpha: Significance level for observed power
        source: Row name (defaults to the HypothesisMatrix term)

    Returns:
        SumOfSquaresEntry; df = 0 with SS = 0 when L G L' has rank 0
    """
    if isinstance(L, HypothesisMatrix):
        source = source if source is not None else L.term
        L = L.L
    else:
        L = check_array(L, 'L')
        check_2d(L, 'L')
    source = source if source is not None else ''
    if L.shape[1] != ginv.beta.shape[0]:
        raise DimensionError(
            f"L: expected {ginv.beta.shape[0]} columns, got {L.shape[1]}"
        )

    ss_error = ms_error * df_error if df_error > 0 and np.isfinite(ms_error) else 0.0
    if L.shape[0] == 0:
        return f_test_entry(source, 0.0, 0, ms_error, df_error, ss_error, alpha)

    Lb = L @ ginv.beta
    LGL = L @ ginv.G @ L.T
    LGL = (LGL + LGL.T) / 2.0
    df = symmetric_rank(LGL)
    if df == 0:
        return f_test_entry(source, 0.0, 0, ms_error, df_error, ss_error, alpha)

    ss = float(Lb @ symmetric_ginverse(LGL, rank=df) @ Lb)
    if ss < ZERO_SS * max(ginv.yWy, 1.0):
        ss = 0.0
    return f_test_entry(
        source, ss, df, ms_error, df_error, ss_error, alpha,
        effect_size=effect_size, power=power,
    )


def model_rows(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
    terms: tuple[SumOfSquaresEntry, ...],
    alpha: float,
    *,
    effect_size: bool = True,
    power: bool = True,
) -> tuple[tuple[SumOfSquaresEntry, ...], SumOfSquaresEntry, float, float]:
    """
    Assemble the full between-subjects table.

    Returns:
        (table, error_row, r_squared, adjusted_r_squared)
    """
    w, y, fitted = design.w, design.y, ginv.fitted
    df_error = ginv.df_error
    ms_error = ginv.ms_error
    ss_error = ginv.rss

    if design.has_intercept:
        ybar = float(np.sum(w * y) / np.sum(w))
        ss_model = float(np.sum(w * (fitted - ybar) ** 2))
        df_model = ginv.rank - 1
        ss_ctotal = float(np.sum(w * (y - ybar) ** 2))
        df_ctotal = design.n - 1
        model_name = 'Corrected Model'
    else:
        ss_model = float(np.sum(w * fitted ** 2))
        df_model = ginv.rank
        ss_ctotal = ginv.yWy
        df_ctotal = design.n
        model_name = 'Model'

    model = f_test_entry(
        model_name, ss_model, df_model, ms_error, df_error, ss_error, alpha,
        effect_size=effect_size, power=power,
    )
    error = SumOfSquaresEntry(
        source='Error', ss=ss_error, df=df_error,
        ms=ms_error, f_value=NAN, p_value=NAN,
        partial_eta_squared=NAN, noncentrality=NAN, observed_power=NAN,
    )
    total = _plain_row('Total', ginv.yWy, design.n)

    rows = [model, *terms, error, total]
    if design.has_intercept:
        rows.append(_plain_row('Corrected Total', ss_ctotal, df_ctotal))

    if ss_ctotal > 0:
        r2 = ss_model / ss_ctotal
        adj = 1.0 - (1.0 - r2) * df_ctotal / df_error if df_error > 0 else NAN
    else:
        r2 = adj = NAN
    return tuple(rows), error, r2, adj


def _plain_row(source: str, ss: float, df: int) -> SumOfSquaresEntry:
    return SumOfSquaresEntry(
        source=source, ss=ss, df=df, ms=NAN, f_value=NAN, p_value=NAN,
        partial_eta_squared=NAN, noncentrality=NAN, observed_power=NAN,
    )
