"""
User-facing GLM solution type.

Wraps a Result[GLMParams] and provides accessors and a plain-text summary
laid out like the tests of between-subjects effects table.
"""

from dataclasses import dataclass
from typing import Any

import numpy as np

from pyglm.core.result import Result
from pyglm.glm._common import (
    GLMParams,
    HeteroscedasticityResult,
    LackOfFitResult,
    LeveneResult,
    MarginalMeans,
    ParameterEstimate,
    SumOfSquaresEntry,
)
from pyglm.glm._hypothesis import HypothesisMatrix
from pyglm.glm.specification import SSType


# =====================================================================
# GLMSolution
# =====================================================================


@dataclass
class GLMSolution:
    """
    User-facing result for a univariate GLM.

    Produced by glm() and glm_univariate_tests().
    """
    _result: Result[GLMParams]

    @property
    def dependent(self) -> str:
        return self._result.params.dependent

    @property
    def table(self) -> tuple[SumOfSquaresEntry, ...]:
        """Full between-subjects table, model row through Corrected Total."""
        return self._result.params.table

    @property
    def terms(self) -> tuple[SumOfSquaresEntry, ...]:
        """One entry per model term, in model order."""
        return self._result.params.terms

    @property
    def error(self) -> SumOfSquaresEntry:
        return self._result.params.error

    def term(self, name: str) -> SumOfSquaresEntry:
        """
        Entry for one model term. 'B*A' finds the term 'A*B'.

        Raises:
            KeyError: Unknown term
        """
        return self.terms[self._term_position(name)]

    @property
    def r_squared(self) -> float:
        return self._result.params.r_squared

    @property
    def adjusted_r_squared(self) -> float:
        return self._result.params.adjusted_r_squared

    @property
    def parameter_estimates(self) -> tuple[ParameterEstimate, ...] | None:
        return self._result.params.parameter_estimates

    @property
    def lack_of_fit(self) -> LackOfFitResult | None:
        return self._result.params.lack_of_fit

    @property
    def levene(self) -> LeveneResult | None:
        return self._result.params.levene

    @property
    def heteroscedasticity(self) -> HeteroscedasticityResult | None:
        return self._result.params.heteroscedasticity

    @property
    def marginal_means(self) -> dict[str, MarginalMeans]:
        """Estimated marginal means per requested term, in request order."""
        return {mm.term: mm for mm in self._result.params.marginal_means}

    def emmeans(self, term: str) -> MarginalMeans:
        """
        Marginal means of one requested term. 'B*A' finds 'A*B'.

        Raises:
            KeyError: Term was not requested
        """
        means = self.marginal_means
        if term in means:
            return means[term]
        wanted = frozenset(p.strip() for p in term.replace(':', '*').split('*'))
        for name, mm in means.items():
            if frozenset(name.split('*')) == wanted:
                return mm
        raise KeyError(f"No marginal means for {term!r}. Available: {list(means)}")

    @property
    def hypothesis_matrices(self) -> dict[str, HypothesisMatrix | None]:
        """L-matrix per term; None for a non-estimable term."""
        return {
            entry.source: H
            for entry, H in zip(self.terms, self._result.params.hypothesis_matrices)
        }

    @property
    def ss_type(self) -> SSType:
        return SSType(self._result.info['ss_type'])

    @property
    def n_obs(self) -> int:
        return self._result.params.n_obs

    @property
    def n_excluded(self) -> int:
        return self._result.params.n_excluded

    @property
    def rank(self) -> int:
        return self._result.params.rank

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def method(self) -> str:
        return self._result.method

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def _term_position(self, name: str) -> int:
        sources = [e.source for e in self.terms]
        if name in sources:
            return sources.index(name)
        wanted = frozenset(p.strip() for p in name.replace(':', '*').split('*'))
        for i, source in enumerate(sources):
            if frozenset(source.split('*')) == wanted:
                return i
        raise KeyError(f"Unknown term {name!r}. Available: {sources}")

    def summary(self) -> str:
        """Generate the tests of between-subjects effects as text."""
        width = 100
        lines = [
            f"Tests of Between-Subjects Effects (Type {self.ss_type.label} SS)",
            "=" * width,
            f"Dependent Variable: {self.dependent}",
            f"Observations: {self.n_obs}"
            + (f" ({self.n_excluded} excluded)" if self.n_excluded else ""),
            "",
            f"{'Source':<22} {'Type ' + self.ss_type.label + ' SS':>14} {'df':>5} "
            f"{'Mean Square':>13} {'F':>10} {'Sig.':>10} {'Part. Eta Sq':>12} "
            f"{'Power':>7}",
            "-" * width,
        ]
        for row in self.table:
            lines.append(_format_row(row))
        lines.append("-" * width)
        lines.append(
            f"R Squared = {_num(self.r_squared, 3)} "
            f"(Adjusted R Squared = {_num(self.adjusted_r_squared, 3)})"
        )

        errors = [e for e in self.terms if e.error]
        if errors:
            lines.append("")
            for e in errors:
                lines.append(f"  {e.source}: not estimable ({e.error})")

        lof = self.lack_of_fit
        if lof is not None:
            lines.append("")
            lines.append("Lack of Fit Tests")
            lines.append("-" * width)
            lines.append(_format_row(lof.lack_of_fit))
            lines.append(_format_row(lof.pure_error))

        estimates = self.parameter_estimates
        if estimates is not None:
            lines.append("")
            lines.append("Parameter Estimates")
            lines.append("-" * width)
            lines.append(
                f"{'Parameter':<26} {'B':>11} {'Std. Error':>11} {'t':>9} "
                f"{'Sig.':>9} {'Lower':>11} {'Upper':>11}"
            )
            for est in estimates:
                if est.redundant:
                    lines.append(f"{est.parameter:<26} {0.0:>11.4f}  (redundant)")
                    continue
                lines.append(
                    f"{est.parameter:<26} {est.b:>11.4f} {_num(est.std_error, 4, 11)} "
                    f"{_num(est.t_value, 3, 9)} {_num(est.p_value, 3, 9)} "
                    f"{_num(est.ci_lower, 4, 11)} {_num(est.ci_upper, 4, 11)}"
                )

        levene = self.levene
        if levene is not None:
            lines.append("")
            lines.append("Levene's Test of Equality of Error Variances"
                         + (" (residuals)" if levene.on_residuals else ""))
            lines.append("-" * width)
            lines.append(f"{'Based on':<22} {'Statistic':>11} {'df1':>5} {'df2':>10} {'Sig.':>9}")
            for e in levene.entries:
                lines.append(
                    f"{e.center:<22} {_num(e.statistic, 3, 11)} {e.df1:>5} "
                    f"{_num(e.df2, 3, 10)} {_num(e.p_value, 3, 9)}"
                )

        hetero = self.heteroscedasticity
        if hetero is not None:
            lines.append("")
            lines.append("Heteroscedasticity Tests")
            lines.append("-" * width)
            for t in (hetero.white, hetero.breusch_pagan,
                      hetero.modified_breusch_pagan, hetero.f_test):
                lines.append(
                    f"{t.name:<22} {_num(t.statistic, 3, 11)} {t.df1:>5} "
                    f"{_num(t.df2, 0, 10)} {_num(t.p_value, 3, 9)}"
                )

        for mm in self.marginal_means.values():
            lines.append("")
            lines.append(f"Estimated Marginal Means: {mm.term}")
            lines.append("-" * width)
            for m in mm.means:
                label = ', '.join(f"{f}={lv}" for f, lv in m.levels) or 'Grand Mean'
                lines.append(
                    f"{label:<26} {_num(m.mean, 4, 11)} {_num(m.std_error, 4, 11)} "
                    f"{_num(m.ci_lower, 4, 11)} {_num(m.ci_upper, 4, 11)}"
                )
            for c in mm.comparisons or ():
                lines.append(
                    f"  {c.level_i} - {c.level_j:<18} {_num(c.difference, 4, 11)} "
                    f"{_num(c.std_error, 4, 11)} {_num(c.p_value, 3, 9)} ({mm.adjustment})"
                )

        if self.warnings:
            lines.append("")
            lines.append("Warnings:")
            for w in self.warnings:
                lines.append(f"  {w}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"GLMSolution(dependent={self.dependent!r}, "
            f"type={self.ss_type.label}, n={self.n_obs}, "
            f"terms={[e.source for e in self.terms]})"
        )


def _num(value: float, digits: int, width: int = 0) -> str:
    if value is None or np.isnan(value):
        return f"{'.':>{width}}"
    return f"{value:>{width}.{digits}f}"


def _format_row(row: SumOfSquaresEntry) -> str:
    sig = _significance_stars(row.p_value)
    return (
        f"{row.source:<22} {row.ss:>14.4f} {row.df:>5} {_num(row.ms, 4, 13)} "
        f"{_num(row.f_value, 3, 10)} {_num(row.p_value, 4, 10)} "
        f"{_num(row.partial_eta_squared, 3, 12)} {_num(row.observed_power, 3, 7)} {sig}"
    ).rstrip()


def _significance_stars(p: float | None) -> str:
    """Return significance stars for a p-value."""
    if p is None or np.isnan(p):
        return ""
    if p < 0.001:
        return "***"
    if p < 0.01:
        return "**"
    if p < 0.05:
        return "*"
    if p < 0.1:
        return "."
    return ""
