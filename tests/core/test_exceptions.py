"""
Tests for the pyglm exception hierarchy.

Validates:
    - Inheritance chain (all exceptions catchable via PyGLMError)
    - Diagnostic attributes on SingularMatrixError, EmptyDesignError,
      NonEstimableTermError
    - Default attribute values
"""

import pytest

from pyglm.core.exceptions import (
    DimensionError,
    EmptyDesignError,
    NoTermsError,
    NonEstimableTermError,
    NumericalError,
    PyGLMError,
    SingularDesignError,
    SingularMatrixError,
    ValidationError,
)


# ═══════════════════════════════════════════════════════════════════════
# Inheritance hierarchy
# ═══════════════════════════════════════════════════════════════════════


class TestInheritance:
    """Every exception is catchable via PyGLMError."""

    def test_validation_error_is_pyglm_error(self):
        with pytest.raises(PyGLMError):
            raise ValidationError("bad input")

    def test_dimension_error_is_validation_error(self):
        with pytest.raises(ValidationError):
            raise DimensionError("wrong shape")

    def test_singular_matrix_error_is_numerical_error(self):
        with pytest.raises(NumericalError):
            raise SingularMatrixError("singular")

    def test_empty_design_is_validation_error(self):
        with pytest.raises(ValidationError):
            raise EmptyDesignError("no cases", n_excluded=3)

    def test_no_terms_is_validation_error(self):
        with pytest.raises(ValidationError):
            raise NoTermsError("no terms")

    def test_singular_design_is_singular_matrix_error(self):
        with pytest.raises(SingularMatrixError):
            raise SingularDesignError("Z'WZ unusable", matrix_name="Z'WZ")

    def test_non_estimable_is_numerical_error(self):
        with pytest.raises(NumericalError):
            raise NonEstimableTermError("A*B", term="A*B")

    def test_non_estimable_is_not_validation_error(self):
        err = NonEstimableTermError("x")
        assert not isinstance(err, ValidationError)


# ═══════════════════════════════════════════════════════════════════════
# Diagnostic attributes
# ═══════════════════════════════════════════════════════════════════════


class TestSingularMatrixError:
    """SingularMatrixError carries matrix diagnostic attributes."""

    def test_all_attributes(self):
        err = SingularMatrixError(
            "Z'WZ is singular",
            matrix_name="Z'WZ",
            condition_number=1e18,
            rank=3,
            expected_rank=5,
        )
        assert str(err) == "Z'WZ is singular"
        assert err.matrix_name == "Z'WZ"
        assert err.condition_number == 1e18
        assert err.rank == 3
        assert err.expected_rank == 5

    def test_defaults_are_none(self):
        err = SingularMatrixError("singular")
        assert err.matrix_name is None
        assert err.condition_number is None
        assert err.rank is None
        assert err.expected_rank is None


class TestEngineErrors:

    def test_empty_design_n_excluded(self):
        err = EmptyDesignError("nothing left", n_excluded=12)
        assert err.n_excluded == 12

    def test_empty_design_default(self):
        assert EmptyDesignError("nothing left").n_excluded == 0

    def test_non_estimable_attributes(self):
        err = NonEstimableTermError(
            "no contrast", term="A", ss_type=3, reason='not_estimable'
        )
        assert err.term == "A"
        assert err.ss_type == 3
        assert err.reason == 'not_estimable'
        assert str(err) == "no contrast"

    def test_non_estimable_defaults(self):
        err = NonEstimableTermError("x")
        assert err.term is None
        assert err.ss_type is None
        assert err.reason is None
