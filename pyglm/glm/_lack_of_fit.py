"""
Lack-of-fit test.

Cases with identical rows of Z share a predictor pattern. Within-pattern
variation is pure error; the rest of the residual is lack of fit:

    SS_pe  = sum over patterns of sum w (y - ybar_pattern)^2,  df = n - g
    SS_lof = RSS - SS_pe (clamped at 0),                       df = g - rank
    F      = MS_lof / MS_pe
"""

import numpy as np

from pyglm.glm._common import LackOfFitResult, SumOfSquaresEntry
from pyglm.glm._crossproduct import GeneralizedInverseResult
from pyglm.glm._ss import f_test_entry
from pyglm.glm.design import DesignMatrixInfo


def lack_of_fit_test(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
    alpha: float = 0.05,
    *,
    effect_size: bool = True,
    power: bool = True,
) -> LackOfFitResult:
    """
    Split the residual into lack of fit and pure error.

    Never raises for designs without replication: the result is marked
    not computable and the F statistics are NaN.
    """
    _, inverse = np.unique(design.Z, axis=0, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    g = int(inverse.max()) + 1 if inverse.size else 0

    w, y = design.w, design.y
    sw = np.bincount(inverse, weights=w, minlength=g)
    swy = np.bincount(inverse, weights=w * y, minlength=g)
    means = swy / sw
    ss_pe = float(np.sum(w * (y - means[inverse]) ** 2))
    df_pe = design.n - g
    df_lof = g - ginv.rank
    ss_lof = max(ginv.rss - ss_pe, 0.0)

    computable = df_pe > 0 and df_lof > 0
    ms_pe = ss_pe / df_pe if df_pe > 0 else float('nan')

    if computable:
        lof = f_test_entry(
            'Lack of Fit', ss_lof, df_lof, ms_pe, df_pe, ss_pe, alpha,
            effect_size=effect_size, power=power,
        )
    else:
        lof = f_test_entry('Lack of Fit', 0.0, 0, ms_pe, df_pe, ss_pe, alpha)

    nan = float('nan')
    pure = SumOfSquaresEntry(
        source='Pure Error',
        ss=ss_pe if df_pe > 0 else 0.0,
        df=max(df_pe, 0),
        ms=ms_pe,
        f_value=nan, p_value=nan, partial_eta_squared=nan,
        noncentrality=nan, observed_power=nan,
    )
    return LackOfFitResult(
        lack_of_fit=lof,
        pure_error=pure,
        n_patterns=g,
        computable=computable,
    )
