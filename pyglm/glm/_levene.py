"""
Levene's test for homogeneity of error variance.

Algorithm: group cases by the observed cells of every factor in the model,
transform y to |y_i - center(group_j)|, then run a one-way ANOVA on the
transformed values. Four centers are reported:

    mean                original Levene test
    median              Brown-Forsythe variant
    median_adjusted_df  Brown-Forsythe with a Satterthwaite-type df2
    trimmed_mean        5% trimmed mean on each side

With covariates in the model the test runs on the residuals instead of y,
and only the mean-centered variant is computed. Cells with a single case
are dropped when testing y. Case weights are not applied.
"""

from typing import Any, Callable

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pyglm.core.exceptions import ValidationError
from pyglm.glm._common import LeveneEntry, LeveneResult
from pyglm.glm._crossproduct import GeneralizedInverseResult
from pyglm.glm._distributions import f_significance
from pyglm.glm.design import DesignMatrixInfo


TRIM_PROPORTION = 0.05

_CENTERS: dict[str, Callable[[NDArray], float]] = {
    'mean': np.mean,
    'median': np.median,
    'trimmed_mean': lambda g: sp_stats.trim_mean(g, TRIM_PROPORTION),
}


def levene_test(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
) -> LeveneResult:
    """
    Compute Levene's test over the cells of the design.

    Args:
        design: Design with at least one factor
        ginv: Fitted model (residuals are used when there are covariates)

    Returns:
        LeveneResult with one entry per center

    Raises:
        ValidationError: If the design has no factor
    """
    if not design.factor_names:
        raise ValidationError("Levene's test needs at least one factor")

    on_residuals = bool(design.covariate_names)
    values = design.y - ginv.fitted if on_residuals else design.y

    cells, inverse = np.unique(design.factor_codes, axis=0, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    groups = [values[inverse == g] for g in range(cells.shape[0])]
    labels = [_cell_label(design, row) for row in cells]
    if not on_residuals:
        kept = [i for i, g in enumerate(groups) if g.size > 1]
        groups = [groups[i] for i in kept]
        labels = [labels[i] for i in kept]

    group_variances = {
        label: float(np.var(g, ddof=1)) if g.size > 1 else float('nan')
        for label, g in zip(labels, groups)
    }

    if on_residuals:
        entries = (_levene_entry(groups, 'mean'),)
    else:
        entries = (
            _levene_entry(groups, 'mean'),
            _levene_entry(groups, 'median'),
            _adjusted_df_entry(groups),
            _levene_entry(groups, 'trimmed_mean'),
        )

    return LeveneResult(
        entries=entries,
        n_groups=len(groups),
        on_residuals=on_residuals,
        group_variances=group_variances,
    )


def _cell_label(design: DesignMatrixInfo, codes: NDArray[np.intp]) -> str:
    return ', '.join(
        f"{name}={design.factor_levels[j][codes[j]]}"
        for j, name in enumerate(design.factor_names)
    )


def _deviations(groups: list[NDArray], center: str) -> list[NDArray[np.floating[Any]]]:
    center_fn = _CENTERS[center]
    return [np.abs(g - center_fn(g)) for g in groups]


def _oneway(z_groups: list[NDArray]) -> tuple[float, int, int, float]:
    """One-way ANOVA on the transformed values: (F, df1, df2, p)."""
    nan = float('nan')
    k = len(z_groups)
    n = sum(len(z) for z in z_groups)
    df_between = k - 1
    df_within = n - k
    if df_between <= 0 or df_within <= 0:
        return nan, max(df_between, 0), max(df_within, 0), nan

    z_grand_mean = np.mean(np.concatenate(z_groups))
    ss_between = 0.0
    ss_within = 0.0
    for z in z_groups:
        z_mean_j = np.mean(z)
        ss_between += len(z) * (z_mean_j - z_grand_mean) ** 2
        ss_within += np.sum((z - z_mean_j) ** 2)

    if ss_within == 0.0:
        if ss_between == 0.0:
            return 0.0, df_between, df_within, 1.0
        return float('inf'), df_between, df_within, 0.0

    f_val = (ss_between / df_between) / (ss_within / df_within)
    return float(f_val), df_between, df_within, f_significance(f_val, df_between, df_within)


def _levene_entry(groups: list[NDArray], center: str) -> LeveneEntry:
    f_val, df1, df2, p_val = _oneway(_deviations(groups, center))
    return LeveneEntry(center=center, statistic=f_val, df1=df1, df2=float(df2), p_value=p_val)


def _adjusted_df_entry(groups: list[NDArray]) -> LeveneEntry:
    """
    Median-centered test with df2 = (sum u_i)^2 / sum(u_i^2 / (m_i - 1)),
    u_i the within-group sum of squares of the deviations.
    """
    z_groups = _deviations(groups, 'median')
    f_val, df1, df2, p_val = _oneway(z_groups)

    u = np.array([np.sum((z - np.mean(z)) ** 2) for z in z_groups])
    v = np.array([len(z) - 1 for z in z_groups], dtype=np.float64)
    total = float(np.sum(u))
    if df1 > 0 and total > 0.0 and np.all(v > 0):
        df2_adj = total ** 2 / float(np.sum(u ** 2 / v))
        if np.isfinite(f_val):
            p_val = f_significance(f_val, df1, df2_adj)
    else:
        df2_adj = float(df2)

    return LeveneEntry(
        center='median_adjusted_df', statistic=f_val, df1=df1, df2=df2_adj, p_value=p_val,
    )
