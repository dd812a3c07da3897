"""
Common data types for the GLM engine.

Contains the frozen parameter payloads that go inside Result[P] envelopes.
Each payload is a pure data container: no methods, no computation.
Statistics that are undefined for a row are NaN.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyglm.glm._hypothesis import HypothesisMatrix


@dataclass(frozen=True)
class SumOfSquaresEntry:
    """
    One row of the tests of between-subjects effects.

    Used for model terms and for the Corrected Model, Error, Total and
    Corrected Total rows (F and the statistics after it are NaN where they
    do not apply).
    """
    source: str
    ss: float
    df: int
    ms: float
    f_value: float
    p_value: float
    partial_eta_squared: float
    noncentrality: float
    observed_power: float
    error: str | None = None        # set when the term is non-estimable


@dataclass(frozen=True)
class ParameterEstimate:
    """One row of the parameter estimates table."""
    parameter: str
    b: float
    std_error: float
    t_value: float
    p_value: float
    ci_lower: float
    ci_upper: float
    partial_eta_squared: float
    noncentrality: float
    observed_power: float
    redundant: bool                 # aliased under the sweep inverse, B fixed at 0


@dataclass(frozen=True)
class LackOfFitResult:
    """
    Lack-of-fit / pure-error decomposition of the residual.

    computable is False when there are no replicated predictor patterns
    (df_pure_error = 0) or the model is saturated (df_lack_of_fit = 0).
    """
    lack_of_fit: SumOfSquaresEntry
    pure_error: SumOfSquaresEntry
    n_patterns: int
    computable: bool


@dataclass(frozen=True)
class LeveneEntry:
    """
    One variant of Levene's test.

    center is 'mean', 'median', 'median_adjusted_df' or 'trimmed_mean'.
    df2 is fractional for the adjusted-df variant.
    """
    center: str
    statistic: float
    df1: int
    df2: float
    p_value: float


@dataclass(frozen=True)
class LeveneResult:
    """
    Levene's test of equal error variance across the observed cells.

    With covariates in the model the test runs on the residuals and only
    the mean-centered variant is reported.
    """
    entries: tuple[LeveneEntry, ...]
    n_groups: int
    on_residuals: bool
    group_variances: dict[str, float]


@dataclass(frozen=True)
class MarginalMean:
    """
    One estimated marginal mean.

    levels is ((factor, level), ...) and empty for the grand mean.
    Non-estimable means have NaN statistics.
    """
    levels: tuple[tuple[str, str], ...]
    mean: float
    std_error: float
    ci_lower: float
    ci_upper: float
    estimable: bool


@dataclass(frozen=True)
class PairwiseComparison:
    """Difference between two marginal means of a main effect."""
    level_i: str
    level_j: str
    difference: float
    std_error: float
    p_value: float                  # adjusted for multiple comparisons
    ci_lower: float
    ci_upper: float


@dataclass(frozen=True)
class MarginalMeans:
    """
    Estimated marginal means of one factor term (or 'OVERALL').

    L holds one coefficient row per mean, over the model parameters.
    comparisons is set for single-factor terms only.
    """
    term: str
    means: tuple[MarginalMean, ...]
    L: NDArray[np.floating[Any]]
    comparisons: tuple[PairwiseComparison, ...] | None
    adjustment: str


@dataclass(frozen=True)
class HeteroscedasticityTest:
    """
    One test of constant error variance from an auxiliary regression of
    the squared residuals. df2 is NaN for the chi-square tests.
    """
    name: str
    statistic: float
    df1: int
    df2: float
    p_value: float


@dataclass(frozen=True)
class HeteroscedasticityResult:
    """White, Breusch-Pagan, Koenker (modified Breusch-Pagan) and F tests."""
    white: HeteroscedasticityTest
    breusch_pagan: HeteroscedasticityTest
    modified_breusch_pagan: HeteroscedasticityTest
    f_test: HeteroscedasticityTest


@dataclass(frozen=True)
class GLMParams:
    """
    Parameter payload for a univariate GLM.

    table holds the full between-subjects table in display order:
    Corrected Model (or Model), one row per term, Error, Total and
    Corrected Total. The assumption checks and marginal means are None
    (or empty) unless requested.
    """
    dependent: str
    table: tuple[SumOfSquaresEntry, ...]
    terms: tuple[SumOfSquaresEntry, ...]
    error: SumOfSquaresEntry
    r_squared: float
    adjusted_r_squared: float
    hypothesis_matrices: tuple[HypothesisMatrix | None, ...]
    parameter_estimates: tuple[ParameterEstimate, ...] | None
    lack_of_fit: LackOfFitResult | None
    n_obs: int
    n_excluded: int
    n_parameters: int
    rank: int
    levene: LeveneResult | None = None
    heteroscedasticity: HeteroscedasticityResult | None = None
    marginal_means: tuple[MarginalMeans, ...] = ()
