"""
GLM solver dispatch.

Public API:
    glm(data, spec, ...) -> GLMSolution
    glm_univariate_tests(data, spec, ...) -> dict[str, GLMSolution]

Pipeline per dependent variable:

    build_design -> compute_cross_products -> per term:
        build_hypothesis_matrix -> compute_sum_of_squares
    plus parameter estimates, lack of fit, Levene and heteroscedasticity
    tests and estimated marginal means when requested.

Per-term work reads only the frozen design and cross-product results, so
terms can run on a thread pool (n_jobs != 1) with identical results.
"""

import warnings
from typing import Any, Callable

from joblib import Parallel, delayed

from pyglm.core.compute.timing import Timer
from pyglm.core.exceptions import NonEstimableTermError
from pyglm.core.result import Result
from pyglm.core.validation import check_choice, check_positive_int
from pyglm.glm._common import GLMParams, MarginalMeans, SumOfSquaresEntry
from pyglm.glm._crossproduct import (
    GINVERSE_METHODS,
    GeneralizedInverseResult,
    compute_cross_products,
)
from pyglm.glm._emmeans import marginal_means
from pyglm.glm._estimates import parameter_estimates
from pyglm.glm._heteroscedasticity import heteroscedasticity_tests
from pyglm.glm._hypothesis import HypothesisMatrix, build_hypothesis_matrix
from pyglm.glm._lack_of_fit import lack_of_fit_test
from pyglm.glm._levene import levene_test
from pyglm.glm._ss import compute_sum_of_squares, f_test_entry, model_rows
from pyglm.glm.design import DesignMatrixInfo, build_design
from pyglm.glm.solution import GLMSolution
from pyglm.glm.specification import ModelSpecification


Hook = Callable[[str, dict[str, Any]], None]


def glm(
    data: Any,
    spec: ModelSpecification,
    *,
    ginverse: str = 'pinv',
    n_jobs: int = 1,
    hook: Hook | None = None,
    dependent: str | None = None,
) -> GLMSolution:
    """
    Univariate general linear model.

    Fits the over-parameterized model in spec and tests every term with the
    configured sum-of-squares convention.

    Args:
        data: DataSource, DataFrame, column mapping, record list or CSV path
        spec: Model from ModelSpecification.build()
        ginverse: 'pinv' (default) or 'sweep'
        n_jobs: Worker threads for per-term tests (1 = sequential,
            -1 = all cores)
        hook: Optional callable(event, payload) notified at the 'design',
            'cross_product', 'term', 'lack_of_fit' and 'done' stages
        dependent: Dependent variable to analyse (default: the first)

    Returns:
        GLMSolution

    Raises:
        ValidationError: Invalid options or data
        EmptyDesignError: No case survives listwise deletion
        SingularDesignError: Z'WZ could not be inverted at all

    Examples:
        >>> spec = ModelSpecification.build('y', factors=['A', 'B'],
        ...                                 interactions=['A*B'])
        >>> result = glm(df, spec)
        >>> result.term('A').p_value
        >>> print(result.summary())
    """
    check_choice(ginverse, GINVERSE_METHODS, 'ginverse')
    n_jobs = check_positive_int(n_jobs, 'n_jobs', allow_negative_one=True)

    timer = Timer()
    timer.start()
    with timer.section('design'):
        design = build_design(spec, data, dependent)
    _emit(hook, 'design', _design_payload(design, timer.elapsed('design')))

    return _analyse(design, spec, ginverse, n_jobs, hook, timer)


def glm_univariate_tests(
    data: Any,
    spec: ModelSpecification,
    *,
    ginverse: str = 'pinv',
    n_jobs: int = 1,
    hook: Hook | None = None,
) -> dict[str, GLMSolution]:
    """
    Univariate tests for every dependent variable of a model.

    All dependents share one design built on the cases that are complete
    for every dependent.

    Returns:
        {dependent name: GLMSolution}, in spec.dependents order
    """
    check_choice(ginverse, GINVERSE_METHODS, 'ginverse')
    n_jobs = check_positive_int(n_jobs, 'n_jobs', allow_negative_one=True)

    build_timer = Timer()
    build_timer.start()
    with build_timer.section('design'):
        design = build_design(spec, data)
    build_timer.stop()
    design_seconds = build_timer.elapsed('design')
    _emit(hook, 'design', _design_payload(design, design_seconds))

    results: dict[str, GLMSolution] = {}
    for name in spec.dependents:
        timer = Timer()
        timer.start()
        with timer.section('design'):
            current = design.for_dependent(name)
        results[name] = _analyse(
            current, spec, ginverse, n_jobs, hook, timer,
            extra_design_seconds=design_seconds,
        )
    return results


# =====================================================================
# Internals
# =====================================================================


def _analyse(
    design: DesignMatrixInfo,
    spec: ModelSpecification,
    ginverse: str,
    n_jobs: int,
    hook: Hook | None,
    timer: Timer,
    *,
    extra_design_seconds: float = 0.0,
) -> GLMSolution:
    notes: list[str] = []
    alpha = spec.significance_level

    if design.n_excluded:
        notes.append(
            f"{design.n_excluded} case(s) excluded for missing values or invalid weights"
        )

    with timer.section('cross_product'):
        ginv = compute_cross_products(design, ginverse)
    _emit(hook, 'cross_product', {
        'rank': ginv.rank,
        'p': design.p,
        'singular': ginv.singular,
        'method': ginv.method,
        'rss': ginv.rss,
        'df_error': ginv.df_error,
        'seconds': timer.elapsed('cross_product'),
    })

    if ginv.df_error <= 0:
        notes.append(
            f"No error degrees of freedom (n = {design.n}, rank = {ginv.rank}); "
            "F statistics are undefined"
        )
    elif ginv.rss == 0.0:
        notes.append("Residual sum of squares is zero (perfect fit); F statistics are undefined")

    with timer.section('hypothesis_tests'):
        outcomes = _run_terms(design, ginv, spec, n_jobs)

    entries: list[SumOfSquaresEntry] = []
    matrices: list[HypothesisMatrix | None] = []
    for term, (entry, H, message) in zip(design.terms, outcomes):
        entries.append(entry)
        matrices.append(H)
        if message is not None:
            notes.append(message)
        _emit(hook, 'term', {
            'term': term.name,
            'df': entry.df,
            'ss': entry.ss,
            'f': entry.f_value,
            'p': entry.p_value,
            'estimable': message is None,
        })

    table, error_row, r2, adj_r2 = model_rows(
        design, ginv, tuple(entries), alpha,
        effect_size=spec.estimate_effect_size, power=spec.observed_power,
    )

    estimates = None
    if spec.parameter_estimates:
        with timer.section('parameter_estimates'):
            estimates = parameter_estimates(
                design, ginv,
                alpha=alpha,
                confidence_level=spec.confidence_level,
                effect_size=spec.estimate_effect_size,
                power=spec.observed_power,
            )

    lof = None
    if spec.lack_of_fit:
        with timer.section('lack_of_fit'):
            lof = lack_of_fit_test(
                design, ginv, alpha,
                effect_size=spec.estimate_effect_size, power=spec.observed_power,
            )
        if not lof.computable:
            notes.append(
                "Lack-of-fit test not computable: no replicated predictor "
                "patterns or saturated model"
            )
        _emit(hook, 'lack_of_fit', {
            'computable': lof.computable,
            'n_patterns': lof.n_patterns,
            'f': lof.lack_of_fit.f_value,
            'p': lof.lack_of_fit.p_value,
            'seconds': timer.elapsed('lack_of_fit'),
        })

    levene = None
    if spec.levene:
        if not design.factor_names:
            notes.append("Levene's test requires at least one factor; not computed")
        else:
            with timer.section('levene'):
                levene = levene_test(design, ginv)
            if levene.n_groups < 2:
                notes.append(
                    "Levene's test not computable: fewer than two cells with "
                    "more than one case"
                )

    hetero = None
    if spec.heteroscedasticity:
        with timer.section('heteroscedasticity'):
            hetero = heteroscedasticity_tests(design, ginv)

    emmeans: list[MarginalMeans] = []
    if spec.emmeans:
        with timer.section('emmeans'):
            for term in spec.emmeans:
                mm = marginal_means(
                    design, ginv, term,
                    confidence_level=spec.confidence_level,
                    adjustment=spec.emmeans_adjustment,
                )
                emmeans.append(mm)
                missing = sum(not m.estimable for m in mm.means)
                if missing:
                    notes.append(
                        f"Marginal means of {mm.term!r}: {missing} of "
                        f"{len(mm.means)} not estimable"
                    )

    timer.stop()
    timing = timer.result()
    if extra_design_seconds:
        timing['design'] = timing.get('design', 0.0) + extra_design_seconds
        timing['total_seconds'] += extra_design_seconds

    for note in notes:
        warnings.warn(note, RuntimeWarning, stacklevel=3)

    params = GLMParams(
        dependent=design.dependent,
        table=table,
        terms=tuple(entries),
        error=error_row,
        r_squared=r2,
        adjusted_r_squared=adj_r2,
        hypothesis_matrices=tuple(matrices),
        parameter_estimates=estimates,
        lack_of_fit=lof,
        n_obs=design.n,
        n_excluded=design.n_excluded,
        n_parameters=design.p,
        rank=ginv.rank,
        levene=levene,
        heteroscedasticity=hetero,
        marginal_means=tuple(emmeans),
    )
    result = Result(
        params=params,
        info={
            'ss_type': int(spec.ss_type),
            'ginverse': ginv.method,
            'singular': ginv.singular,
            'intercept': design.has_intercept,
            'weighted': design.weighted,
            'significance_level': alpha,
            'confidence_level': spec.confidence_level,
            'parameter_names': design.parameter_names,
        },
        timing=timing,
        method='glm_univariate',
        warnings=tuple(notes),
    )
    _emit(hook, 'done', {
        'dependent': design.dependent,
        'n_warnings': len(notes),
        'seconds': timing['total_seconds'],
    })
    return GLMSolution(_result=result)


def _run_terms(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
    spec: ModelSpecification,
    n_jobs: int,
) -> list[tuple[SumOfSquaresEntry, HypothesisMatrix | None, str | None]]:
    """Test every term, in model order."""
    n_terms = len(design.terms)
    if n_jobs == 1 or n_terms < 2:
        return [_test_term(design, ginv, spec, t) for t in range(n_terms)]
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_test_term)(design, ginv, spec, t) for t in range(n_terms)
    )


def _test_term(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
    spec: ModelSpecification,
    t: int,
) -> tuple[SumOfSquaresEntry, HypothesisMatrix | None, str | None]:
    name = design.terms[t].name
    try:
        H = build_hypothesis_matrix(design, t, ginv, spec.ss_type)
    except NonEstimableTermError as e:
        entry = f_test_entry(
            name, 0.0, 0, ginv.ms_error, ginv.df_error, ginv.rss,
            spec.significance_level, error=str(e),
        )
        return entry, None, f"Term {name!r} is not estimable: {e}"

    entry = compute_sum_of_squares(
        H, ginv, ginv.df_error, ginv.ms_error, spec.significance_level,
        effect_size=spec.estimate_effect_size,
        power=spec.observed_power,
    )
    return entry, H, None


def _design_payload(design: DesignMatrixInfo, seconds: float) -> dict[str, Any]:
    return {
        'n': design.n,
        'p': design.p,
        'rank': design.rank,
        'n_excluded': design.n_excluded,
        'terms': design.term_names,
        'seconds': seconds,
    }


def _emit(hook: Hook | None, event: str, payload: dict[str, Any]) -> None:
    if hook is not None:
        hook(event, payload)
