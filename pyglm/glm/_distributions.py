"""
Distribution utilities shared by the sum-of-squares and lack-of-fit
calculators and the parameter estimates table.

All functions return NaN instead of raising for undefined inputs
(non-positive df, NaN statistic, alpha outside (0, 1)), so an undefined
test shows up as a NaN cell rather than an aborted analysis.

Noncentral distributions use scipy.stats.ncf and scipy.stats.nct directly.
"""

import math

from scipy import stats as sp_stats


def _bad(*values: float) -> bool:
    return any(v is None or math.isnan(v) for v in values)


def _bad_alpha(alpha: float) -> bool:
    return _bad(alpha) or not (0.0 < alpha < 1.0)


def f_significance(f: float, df1: float, df2: float) -> float:
    """Upper-tail probability P(F(df1, df2) > f)."""
    if _bad(f, df1, df2) or df1 <= 0 or df2 <= 0 or f < 0:
        return float('nan')
    return float(sp_stats.f.sf(f, df1, df2))


def chi_square_significance(chi2: float, df: float) -> float:
    """Upper-tail probability P(chi2(df) > chi2)."""
    if _bad(chi2, df) or df <= 0 or chi2 < 0:
        return float('nan')
    return float(sp_stats.chi2.sf(chi2, df))


def t_significance(t: float, df: float) -> float:
    """Two-sided probability P(|T(df)| > |t|)."""
    if _bad(t, df) or df <= 0:
        return float('nan')
    return float(2.0 * sp_stats.t.sf(abs(t), df))


def t_critical(alpha: float, df: float) -> float:
    """Two-sided critical value t(1 - alpha/2, df)."""
    if _bad_alpha(alpha) or _bad(df) or df <= 0:
        return float('nan')
    return float(sp_stats.t.ppf(1.0 - alpha / 2.0, df))


def f_critical(alpha: float, df1: float, df2: float) -> float:
    """Critical value F(1 - alpha; df1, df2)."""
    if _bad_alpha(alpha) or _bad(df1, df2) or df1 <= 0 or df2 <= 0:
        return float('nan')
    return float(sp_stats.f.ppf(1.0 - alpha, df1, df2))


def f_noncentrality(f: float, df1: float) -> float:
    """Observed noncentrality parameter df1 * F."""
    if _bad(f, df1) or df1 <= 0 or f < 0:
        return float('nan')
    return float(f * df1)


def noncentral_f_cdf(x: float, df1: float, df2: float, nc: float) -> float:
    """CDF of the noncentral F distribution."""
    if _bad(x, df1, df2, nc) or df1 <= 0 or df2 <= 0 or nc < 0:
        return float('nan')
    if x <= 0:
        return 0.0
    if nc == 0:
        return float(sp_stats.f.cdf(x, df1, df2))
    return float(sp_stats.ncf.cdf(x, df1, df2, nc))


def noncentral_t_cdf(x: float, df: float, nc: float) -> float:
    """CDF of the noncentral t distribution."""
    if _bad(x, df, nc) or df <= 0:
        return float('nan')
    if nc == 0:
        return float(sp_stats.t.cdf(x, df))
    return float(sp_stats.nct.cdf(x, df, nc))


def observed_power_f(f: float, df1: float, df2: float, alpha: float) -> float:
    """
    Observed power of an F test: 1 - ncF_cdf(F_crit; df1, df2, df1 * F).
    """
    nc = f_noncentrality(f, df1)
    crit = f_critical(alpha, df1, df2)
    if _bad(nc, crit):
        return float('nan')
    return min(max(1.0 - noncentral_f_cdf(crit, df1, df2, nc), 0.0), 1.0)


def observed_power_t(t: float, df: float, alpha: float) -> float:
    """
    Observed power of a two-sided t test with noncentrality |t|.
    """
    crit = t_critical(alpha, df)
    if _bad(t, crit):
        return float('nan')
    nc = abs(t)
    upper = 1.0 - noncentral_t_cdf(crit, df, nc)
    lower = noncentral_t_cdf(-crit, df, nc)
    return min(max(upper + lower, 0.0), 1.0)
