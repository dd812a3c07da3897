"""
Exception hierarchy for pyglm.

All exceptions inherit from PyGLMError so callers can catch any
library-specific error. The GLM engine taxonomy sits on top of the
generic validation / numerical classes:

    EmptyDesignError, NoTermsError     fatal, no analysis possible
    SingularDesignError                generalized inverse could not be formed
    NonEstimableTermError              recoverable, scoped to one term

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class PyGLMError(Exception):
    """Base exception for all pyglm errors."""
    pass


class ValidationError(PyGLMError):
    """
    Input validation failed.

    Raised when user-provided inputs (model specification, case data,
    options) fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class NumericalError(PyGLMError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        condition_number: Estimated condition number, if available
        rank: Numerical rank, if computed
        expected_rank: Expected rank (typically the number of columns)
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        condition_number: float | None = None,
        rank: int | None = None,
        expected_rank: int | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.condition_number = condition_number
        self.rank = rank
        self.expected_rank = expected_rank


class EmptyDesignError(ValidationError):
    """
    No valid cases remain after listwise deletion.

    Attributes:
        n_excluded: Number of cases dropped for missing or invalid values
    """

    def __init__(self, message: str, n_excluded: int = 0):
        super().__init__(message)
        self.n_excluded = n_excluded


class NoTermsError(ValidationError):
    """The model has neither an intercept nor any term."""
    pass


class SingularDesignError(SingularMatrixError):
    """
    Z'WZ could not be inverted even with a pseudo-inverse.

    Rank deficiency from redundant dummy columns is the normal case and is
    handled by the generalized inverse. This error means the cross-product
    matrix itself is unusable (non-finite entries, LAPACK failure), which
    is a data-quality fault.
    """
    pass


class NonEstimableTermError(NumericalError):
    """
    No estimable hypothesis could be built for a model term.

    Recoverable: the term is reported with zero degrees of freedom and the
    remaining terms are still tested.

    Attributes:
        term: Model term name
        ss_type: Sum-of-squares convention in use (1-4)
        reason: Short machine-readable reason: 'collinear' (nothing left
            after adjusting for other terms), 'not_estimable' (no contrast
            survives the estimability check, e.g. empty cells) or
            'no_contrasts' (a factor with a single observed level)
    """

    def __init__(
        self,
        message: str,
        term: str | None = None,
        ss_type: int | None = None,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.term = term
        self.ss_type = ss_type
        self.reason = reason
