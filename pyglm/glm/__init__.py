"""
General Linear Model estimation and hypothesis testing.

Public API:
    ModelSpecification.build(...) -> ModelSpecification
    glm(data, spec, ...) -> GLMSolution
    glm_univariate_tests(data, spec, ...) -> dict[str, GLMSolution]

Building blocks:
    build_design(spec, data) -> DesignMatrixInfo
    compute_cross_products(design, ginverse) -> GeneralizedInverseResult
    build_hypothesis_matrix(design, term, ginv, ss_type) -> HypothesisMatrix
    compute_sum_of_squares(L, ginv, df_error, ms_error, alpha) -> SumOfSquaresEntry
    lack_of_fit_test(design, ginv, alpha) -> LackOfFitResult
    levene_test(design, ginv) -> LeveneResult
    heteroscedasticity_tests(design, ginv) -> HeteroscedasticityResult
    marginal_means(design, ginv, term) -> MarginalMeans
"""

from pyglm.glm.specification import ModelSpecification, SSType, Term
from pyglm.glm.design import DesignMatrixInfo, build_design
from pyglm.glm._crossproduct import GeneralizedInverseResult, compute_cross_products
from pyglm.glm._hypothesis import HypothesisMatrix, build_hypothesis_matrix
from pyglm.glm._common import (
    HeteroscedasticityResult,
    HeteroscedasticityTest,
    LackOfFitResult,
    LeveneEntry,
    LeveneResult,
    MarginalMean,
    MarginalMeans,
    PairwiseComparison,
    ParameterEstimate,
    SumOfSquaresEntry,
)
from pyglm.glm._ss import compute_sum_of_squares
from pyglm.glm._lack_of_fit import lack_of_fit_test
from pyglm.glm._estimates import parameter_estimates
from pyglm.glm._levene import levene_test
from pyglm.glm._heteroscedasticity import heteroscedasticity_tests
from pyglm.glm._emmeans import marginal_means
from pyglm.glm.solvers import glm, glm_univariate_tests
from pyglm.glm.solution import GLMSolution

__all__ = [
    "ModelSpecification",
    "SSType",
    "Term",
    "DesignMatrixInfo",
    "build_design",
    "GeneralizedInverseResult",
    "compute_cross_products",
    "HypothesisMatrix",
    "build_hypothesis_matrix",
    "SumOfSquaresEntry",
    "ParameterEstimate",
    "LackOfFitResult",
    "LeveneEntry",
    "LeveneResult",
    "HeteroscedasticityTest",
    "HeteroscedasticityResult",
    "MarginalMean",
    "MarginalMeans",
    "PairwiseComparison",
    "compute_sum_of_squares",
    "lack_of_fit_test",
    "parameter_estimates",
    "levene_test",
    "heteroscedasticity_tests",
    "marginal_means",
    "glm",
    "glm_univariate_tests",
    "GLMSolution",
]
