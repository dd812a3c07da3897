"""
Tests for the over-parameterized design builder.

Validates:
    - Full dummy coding and parameter naming
    - Level ordering (numeric when possible)
    - Listwise deletion and invalid weights
    - Rank of rank-deficient designs
    - Equivalence of the accepted input forms
"""

import numpy as np
import pandas as pd
import pytest

from pyglm.core.datasource import DataSource
from pyglm.core.exceptions import EmptyDesignError, ValidationError
from pyglm.glm.design import build_design
from pyglm.glm.specification import ModelSpecification


# ═══════════════════════════════════════════════════════════════════════
# Coding and naming
# ═══════════════════════════════════════════════════════════════════════


class TestCoding:

    def test_oneway_columns(self, three_groups):
        spec = ModelSpecification.build('score', factors=['group'])
        design = build_design(spec, three_groups)
        assert design.parameter_names == (
            'Intercept', '[group=1]', '[group=2]', '[group=3]',
        )
        assert design.n == 12
        assert design.p == 4
        assert design.rank == 3
        # Indicator columns sum to the intercept
        np.testing.assert_array_equal(design.Z[:, 1:].sum(axis=1), design.Z[:, 0])

    def test_twoway_interaction_names(self, twoway_balanced):
        spec = ModelSpecification.build('y', factors=['A', 'B'], interactions=['A*B'])
        design = build_design(spec, twoway_balanced)
        assert design.parameter_names == (
            'Intercept', '[A=1]', '[A=2]', '[B=1]', '[B=2]',
            '[A=1]*[B=1]', '[A=1]*[B=2]', '[A=2]*[B=1]', '[A=2]*[B=2]',
        )
        assert design.rank == 4
        assert design.term_slices[3] == slice(5, 9)
        np.testing.assert_array_equal(design.column_terms, [0, 1, 1, 2, 2, 3, 3, 3, 3])

    def test_column_codes(self, twoway_balanced):
        spec = ModelSpecification.build('y', factors=['A', 'B'], interactions=['A*B'])
        design = build_design(spec, twoway_balanced)
        np.testing.assert_array_equal(design.column_codes[0], [-1, -1])
        np.testing.assert_array_equal(design.column_codes[2], [1, -1])
        np.testing.assert_array_equal(design.column_codes[6], [0, 1])

    def test_covariate_interaction(self, ancova_data):
        spec = ModelSpecification.build(
            'y', factors=['group'], covariates=['x'], interactions=['group*x'],
        )
        design = build_design(spec, ancova_data)
        assert design.parameter_names[-3:] == ('[group=1]*x', '[group=2]*x', '[group=3]*x')
        x = np.asarray(ancova_data['x'])
        np.testing.assert_allclose(design.Z[:, design.columns('group*x')].sum(axis=1), x)
        np.testing.assert_allclose(design.Z[:, design.columns('x')].ravel(), x)

    def test_term_lookup_is_order_free(self, twoway_balanced):
        spec = ModelSpecification.build('y', factors=['A', 'B'], interactions=['A*B'])
        design = build_design(spec, twoway_balanced)
        assert design.term_index('B*A') == design.term_index('A*B') == 3
        with pytest.raises(KeyError, match="Available"):
            design.term_index('C')

    def test_empty_cell_gives_zero_column(self, twoway_empty_cell):
        spec = ModelSpecification.build('y', factors=['A', 'B'], interactions=['A*B'])
        design = build_design(spec, twoway_empty_cell)
        j = design.parameter_names.index('[A=2]*[B=3]')
        assert not design.Z[:, j].any()
        # 1 + 1 + 2 + (5 observed cells - 1 - 2 - 1) = 5 observed cells
        assert design.rank == 5


class TestLevels:

    def test_numeric_levels_sort_numerically(self):
        data = {'y': [1.0, 2.0, 3.0, 4.0], 'g': [10, 2, 1, 2]}
        design = build_design(ModelSpecification.build('y', factors=['g']), data)
        assert design.factor_levels == (('1', '2', '10'),)
        np.testing.assert_array_equal(design.factor_codes[:, 0], [2, 1, 0, 1])

    def test_integral_floats_labelled_as_ints(self):
        data = {'y': [1.0, 2.0, 3.0], 'g': [1.0, 2.0, 1.0]}
        design = build_design(ModelSpecification.build('y', factors=['g']), data)
        assert design.parameter_names[1:] == ('[g=1]', '[g=2]')

    def test_numeric_strings_sort_numerically(self):
        data = {'y': [1.0, 2.0, 3.0], 'g': ['10', '9', '9']}
        design = build_design(ModelSpecification.build('y', factors=['g']), data)
        assert design.factor_levels == (('9', '10'),)

    def test_text_levels_sort_as_strings(self):
        data = {'y': [1.0, 2.0, 3.0], 'g': ['b', 'a', 'c']}
        design = build_design(ModelSpecification.build('y', factors=['g']), data)
        assert design.factor_levels == (('a', 'b', 'c'),)


# ═══════════════════════════════════════════════════════════════════════
# Case selection
# ═══════════════════════════════════════════════════════════════════════


class TestListwiseDeletion:

    def test_missing_values_excluded(self):
        data = DataSource.from_records([
            {'y': 1.0, 'g': 1, 'x': 0.5},
            {'y': None, 'g': 1, 'x': 0.7},
            {'y': 2.0, 'g': 2},
            {'y': 3.0, 'g': '', 'x': 0.1},
            {'y': 4.0, 'g': 2, 'x': 0.9},
            {'y': 5.0, 'g': 1, 'x': float('nan')},
        ])
        spec = ModelSpecification.build('y', factors=['g'], covariates=['x'])
        design = build_design(spec, data)
        assert design.n == 2
        assert design.n_excluded == 4
        np.testing.assert_array_equal(design.case_index, [0, 4])
        np.testing.assert_allclose(design.y, [1.0, 4.0])

    def test_missing_in_any_dependent_excluded(self):
        data = {'y1': [1.0, 2.0, np.nan, 4.0], 'y2': [1.0, np.nan, 3.0, 4.0], 'g': [1, 1, 2, 2]}
        spec = ModelSpecification.build(['y1', 'y2'], factors=['g'])
        design = build_design(spec, data)
        assert design.n == 2
        assert design.responses.shape == (2, 2)

    def test_invalid_weights_excluded(self):
        data = {
            'y': [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
            'g': [1, 1, 1, 2, 2, 2],
            'w': [1.0, 0.0, -1.0, np.nan, np.inf, 2.0],
        }
        spec = ModelSpecification.build('y', factors=['g'], weight='w')
        design = build_design(spec, data)
        assert design.n_excluded == 4
        assert design.weighted
        np.testing.assert_allclose(design.w, [1.0, 2.0])

    def test_unweighted_has_unit_weights(self, three_groups):
        design = build_design(ModelSpecification.build('score', factors=['group']), three_groups)
        assert not design.weighted
        np.testing.assert_array_equal(design.w, np.ones(12))

    def test_nothing_left(self):
        data = {'y': [np.nan, np.nan], 'g': [1, 2]}
        with pytest.raises(EmptyDesignError) as excinfo:
            build_design(ModelSpecification.build('y', factors=['g']), data)
        assert excinfo.value.n_excluded == 2

    def test_unknown_variable(self, three_groups):
        spec = ModelSpecification.build('score', factors=['treatment'])
        with pytest.raises(ValidationError, match="not found"):
            build_design(spec, three_groups)

    def test_non_numeric_covariate(self):
        data = {'y': [1.0, 2.0], 'x': ['low', 'high']}
        with pytest.raises(ValidationError, match="non-numeric"):
            build_design(ModelSpecification.build('y', covariates=['x']), data)


# ═══════════════════════════════════════════════════════════════════════
# Input forms and dependents
# ═══════════════════════════════════════════════════════════════════════


class TestInputForms:

    def test_mapping_dataframe_records_agree(self, three_groups):
        spec = ModelSpecification.build('score', factors=['group'])
        records = [
            {'score': s, 'group': g}
            for s, g in zip(three_groups['score'], three_groups['group'])
        ]
        designs = [
            build_design(spec, three_groups),
            build_design(spec, pd.DataFrame(three_groups)),
            build_design(spec, records),
        ]
        for other in designs[1:]:
            np.testing.assert_array_equal(other.Z, designs[0].Z)
            np.testing.assert_array_equal(other.y, designs[0].y)
            assert other.parameter_names == designs[0].parameter_names

    def test_for_dependent(self):
        data = {'y1': [1.0, 2.0, 3.0], 'y2': [4.0, 5.0, 6.0], 'g': [1, 2, 2]}
        spec = ModelSpecification.build(['y1', 'y2'], factors=['g'])
        design = build_design(spec, data)
        assert design.dependent == 'y1'
        other = design.for_dependent('y2')
        np.testing.assert_allclose(other.y, [4.0, 5.0, 6.0])
        assert other.Z is design.Z
        with pytest.raises(KeyError):
            design.for_dependent('y3')

    def test_explicit_dependent(self):
        data = {'y1': [1.0, 2.0, 3.0], 'y2': [4.0, 5.0, 6.0], 'g': [1, 2, 2]}
        spec = ModelSpecification.build(['y1', 'y2'], factors=['g'])
        assert build_design(spec, data, dependent='y2').dependent == 'y2'
        with pytest.raises(ValidationError):
            build_design(spec, data, dependent='g')
