"""
Estimated marginal means.

The marginal mean of a level combination of some factors is the linear
function l'beta that averages the model's cell predictions equally over
the levels of every other factor, with each covariate held at its
(weighted) mean. Per parameter column:

    intercept            1
    factor in the term   1 if the column's level matches, else 0
    other factor         1 / number of levels
    covariate            times the covariate mean

A mean whose l is not in the row space of Z is not estimable and is
reported as NaN. Standard errors use sqrt(l' G l * MS_error).
"""

from itertools import product
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyglm.core.compute.linalg import estimable_part
from pyglm.core.exceptions import ValidationError
from pyglm.glm._common import MarginalMean, MarginalMeans, PairwiseComparison
from pyglm.glm._crossproduct import GeneralizedInverseResult
from pyglm.glm._distributions import t_critical, t_significance
from pyglm.glm.design import DesignMatrixInfo
from pyglm.glm.specification import parse_term


OVERALL = 'OVERALL'
ADJUSTMENTS = ('lsd', 'bonferroni', 'sidak')


def marginal_means(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
    term: str,
    *,
    confidence_level: float = 0.95,
    adjustment: str = 'lsd',
) -> MarginalMeans:
    """
    Estimated marginal means of a factor term.

    Args:
        design: Model design
        ginv: Fitted model
        term: 'OVERALL' for the grand mean, or factor names joined by '*'
        confidence_level: Level of the confidence intervals
        adjustment: Multiple-comparison adjustment of the pairwise tests,
            one of 'lsd', 'bonferroni', 'sidak'

    Returns:
        MarginalMeans with one mean per level combination (first factor
        varying slowest) and, for a single factor, the pairwise comparisons

    Raises:
        ValidationError: If the term names a variable that is not a factor, or
            the adjustment is unknown
    """
    if adjustment not in ADJUSTMENTS:
        raise ValidationError(f"adjustment must be one of {ADJUSTMENTS}, got {adjustment!r}")

    if term.upper() == OVERALL:
        positions: list[int] = []
        label = OVERALL
    else:
        names = parse_term(term)
        unknown = [f for f in names if f not in design.factor_names]
        if unknown:
            raise ValidationError(f"Marginal means need factor terms; not factors: {unknown}")
        positions = sorted(design.factor_index(f) for f in names)
        label = '*'.join(design.factor_names[j] for j in positions)

    mse = ginv.ms_error
    alpha = 1.0 - confidence_level
    t_crit = t_critical(alpha, ginv.df_error)
    cov_means = _covariate_means(design)

    combos = list(product(*(range(len(design.factor_levels[j])) for j in positions)))
    rows = []
    means = []
    for combo in combos:
        l = _coefficients(design, dict(zip(positions, combo)), cov_means)
        rows.append(l)
        levels = tuple(
            (design.factor_names[j], design.factor_levels[j][c])
            for j, c in zip(positions, combo)
        )
        est, se, ok = _estimate(design, ginv, l, mse)
        means.append(MarginalMean(
            levels=levels,
            mean=est,
            std_error=se,
            ci_lower=est - t_crit * se,
            ci_upper=est + t_crit * se,
            estimable=ok,
        ))
    L = np.vstack(rows) if rows else np.zeros((0, design.p))

    comparisons = None
    if len(positions) == 1:
        levels = design.factor_levels[positions[0]]
        comparisons = _pairwise(design, ginv, L, levels, mse, alpha, adjustment)

    return MarginalMeans(
        term=label,
        means=tuple(means),
        L=L,
        comparisons=comparisons,
        adjustment=adjustment,
    )


def _covariate_means(design: DesignMatrixInfo) -> NDArray[np.floating[Any]]:
    if not design.covariate_names:
        return np.zeros(0)
    return np.average(design.covariate_values, axis=0, weights=design.w)


def _coefficients(
    design: DesignMatrixInfo,
    chosen: dict[int, int],
    cov_means: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    l = np.ones(design.p)
    for c in range(design.p):
        codes = design.column_codes[c]
        for j in np.flatnonzero(codes >= 0):
            if j in chosen:
                l[c] *= float(codes[j] == chosen[j])
            else:
                l[c] /= len(design.factor_levels[j])
        for name in design.terms[design.column_terms[c]].covariates:
            l[c] *= cov_means[design.covariate_names.index(name)]
    return l


def _is_estimable(design: DesignMatrixInfo, l: NDArray[np.floating[Any]]) -> bool:
    return estimable_part(l[None, :], design.row_space).shape[0] == 1


def _estimate(design, ginv, l, mse) -> tuple[float, float, bool]:
    if not _is_estimable(design, l):
        nan = float('nan')
        return nan, nan, False
    est = float(l @ ginv.beta)
    var = float(l @ ginv.G @ l) * mse
    return est, float(np.sqrt(max(var, 0.0))), True


def _pairwise(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
    L: NDArray[np.floating[Any]],
    levels: tuple[str, ...],
    mse: float,
    alpha: float,
    adjustment: str,
) -> tuple[PairwiseComparison, ...]:
    k = len(levels)
    m = k * (k - 1) // 2
    if m == 0:
        return ()

    if adjustment == 'bonferroni':
        ci_alpha = alpha / m
    elif adjustment == 'sidak':
        ci_alpha = 1.0 - (1.0 - alpha) ** (1.0 / m)
    else:
        ci_alpha = alpha
    t_crit = t_critical(ci_alpha, ginv.df_error)

    out = []
    for i in range(k):
        for j in range(i + 1, k):
            diff, se, ok = _estimate(design, ginv, L[i] - L[j], mse)
            p = t_significance(diff / se, ginv.df_error) if ok and se > 0 else float('nan')
            out.append(PairwiseComparison(
                level_i=levels[i],
                level_j=levels[j],
                difference=diff,
                std_error=se,
                p_value=_adjust(p, m, adjustment),
                ci_lower=diff - t_crit * se,
                ci_upper=diff + t_crit * se,
            ))
    return tuple(out)


def _adjust(p: float, m: int, adjustment: str) -> float:
    if np.isnan(p):
        return p
    if adjustment == 'bonferroni':
        return min(1.0, p * m)
    if adjustment == 'sidak':
        return 1.0 - (1.0 - p) ** m
    return p
