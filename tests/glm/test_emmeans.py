"""
Tests for estimated marginal means.

Validates:
    - Means are unweighted averages of cell means
    - Standard errors and confidence intervals
    - Covariates held at their mean
    - Non-estimable means with an empty cell
    - Pairwise comparisons and their adjustments
"""

import numpy as np
import pytest
from scipy import stats as sp_stats

from pyglm.core.exceptions import ValidationError
from pyglm.glm._crossproduct import compute_cross_products
from pyglm.glm._emmeans import marginal_means
from pyglm.glm.design import build_design
from pyglm.glm.specification import ModelSpecification


def _fit(data, dependent='y', **kwargs):
    design = build_design(ModelSpecification.build(dependent, **kwargs), data)
    return design, compute_cross_products(design)


def _cell_stats(data):
    y, a, b = (np.asarray(data[k]) for k in ('y', 'A', 'B'))
    means, counts = {}, {}
    for ai in np.unique(a):
        for bi in np.unique(b):
            mask = (a == ai) & (b == bi)
            if mask.any():
                means[(ai, bi)] = y[mask].mean()
                counts[(ai, bi)] = mask.sum()
    return means, counts


class TestOneWay:

    def test_means_are_group_means(self, three_groups):
        design, ginv = _fit(three_groups, 'score', factors=['group'])
        mm = marginal_means(design, ginv, 'group')
        y = np.array(three_groups['score'])
        expected = [y[:4].mean(), y[4:8].mean(), y[8:].mean()]
        np.testing.assert_allclose([m.mean for m in mm.means], expected, rtol=1e-10)
        assert [m.levels for m in mm.means] == [
            (('group', '1'),), (('group', '2'),), (('group', '3'),),
        ]

    def test_std_error_and_interval(self, three_groups):
        design, ginv = _fit(three_groups, 'score', factors=['group'])
        mm = marginal_means(design, ginv, 'group', confidence_level=0.9)
        mse = ginv.rss / ginv.df_error
        se = np.sqrt(mse / 4)
        t = sp_stats.t.ppf(0.95, 9)
        m = mm.means[0]
        np.testing.assert_allclose(m.std_error, se, rtol=1e-10)
        np.testing.assert_allclose(m.ci_lower, m.mean - t * se, rtol=1e-10)
        np.testing.assert_allclose(m.ci_upper, m.mean + t * se, rtol=1e-10)

    def test_overall_is_mean_of_group_means(self, three_groups):
        design, ginv = _fit(three_groups, 'score', factors=['group'])
        mm = marginal_means(design, ginv, 'OVERALL')
        y = np.array(three_groups['score'])
        assert mm.term == 'OVERALL'
        assert mm.comparisons is None
        assert len(mm.means) == 1 and mm.means[0].levels == ()
        np.testing.assert_allclose(mm.means[0].mean, y.mean(), rtol=1e-10)

    def test_pairwise_lsd(self, three_groups):
        design, ginv = _fit(three_groups, 'score', factors=['group'])
        mm = marginal_means(design, ginv, 'group')
        assert [(c.level_i, c.level_j) for c in mm.comparisons] == [
            ('1', '2'), ('1', '3'), ('2', '3'),
        ]
        mse = ginv.rss / ginv.df_error
        c = mm.comparisons[0]
        se = np.sqrt(mse * (1 / 4 + 1 / 4))
        np.testing.assert_allclose(c.difference, mm.means[0].mean - mm.means[1].mean, rtol=1e-10)
        np.testing.assert_allclose(c.std_error, se, rtol=1e-10)
        np.testing.assert_allclose(
            c.p_value, 2 * sp_stats.t.sf(abs(c.difference) / se, 9), rtol=1e-8,
        )

    @pytest.mark.parametrize("adjustment", ['bonferroni', 'sidak'])
    def test_adjusted_p_values(self, oneway_balanced, adjustment):
        design, ginv = _fit(oneway_balanced, factors=['group'])
        lsd = marginal_means(design, ginv, 'group')
        adj = marginal_means(design, ginv, 'group', adjustment=adjustment)
        m = 6
        for raw, c in zip(lsd.comparisons, adj.comparisons):
            if adjustment == 'bonferroni':
                expected = min(1.0, raw.p_value * m)
            else:
                expected = 1.0 - (1.0 - raw.p_value) ** m
            np.testing.assert_allclose(c.p_value, expected, rtol=1e-10)
            assert c.ci_upper - c.ci_lower > raw.ci_upper - raw.ci_lower
        assert adj.adjustment == adjustment

    def test_bonferroni_interval_width(self, oneway_balanced):
        design, ginv = _fit(oneway_balanced, factors=['group'])
        c = marginal_means(design, ginv, 'group', adjustment='bonferroni').comparisons[0]
        t = sp_stats.t.ppf(1 - 0.05 / 6 / 2, ginv.df_error)
        np.testing.assert_allclose(c.ci_upper - c.difference, t * c.std_error, rtol=1e-8)

    def test_unknown_adjustment(self, three_groups):
        design, ginv = _fit(three_groups, 'score', factors=['group'])
        with pytest.raises(ValidationError, match="adjustment"):
            marginal_means(design, ginv, 'group', adjustment='tukey')


class TestTwoWay:

    def test_unweighted_average_of_cell_means(self, twoway_unbalanced):
        design, ginv = _fit(twoway_unbalanced, factors=['A', 'B'], interactions=['A*B'])
        mm = marginal_means(design, ginv, 'A')
        cm, n = _cell_stats(twoway_unbalanced)
        expected = (cm[(1, 1)] + cm[(1, 2)]) / 2
        np.testing.assert_allclose(mm.means[0].mean, expected, rtol=1e-10)

        mse = ginv.rss / ginv.df_error
        se = np.sqrt(mse * (1 / n[(1, 1)] + 1 / n[(1, 2)]) / 4)
        np.testing.assert_allclose(mm.means[0].std_error, se, rtol=1e-10)

    def test_interaction_means_are_cell_means(self, twoway_unbalanced):
        design, ginv = _fit(twoway_unbalanced, factors=['A', 'B'], interactions=['A*B'])
        mm = marginal_means(design, ginv, 'B*A')
        cm, _ = _cell_stats(twoway_unbalanced)
        assert mm.term == 'A*B'
        assert mm.comparisons is None
        assert mm.means[1].levels == (('A', '1'), ('B', '2'))
        np.testing.assert_allclose(
            [m.mean for m in mm.means],
            [cm[(1, 1)], cm[(1, 2)], cm[(2, 1)], cm[(2, 2)]],
            rtol=1e-10,
        )

    def test_empty_cell_means_not_estimable(self, twoway_empty_cell):
        design, ginv = _fit(twoway_empty_cell, factors=['A', 'B'], interactions=['A*B'])
        a = marginal_means(design, ginv, 'A')
        assert [m.estimable for m in a.means] == [True, False]
        assert np.isnan(a.means[1].mean)
        assert np.isnan(a.comparisons[0].difference)

        b = marginal_means(design, ginv, 'B')
        assert [m.estimable for m in b.means] == [True, True, False]
        cm, _ = _cell_stats(twoway_empty_cell)
        np.testing.assert_allclose(b.means[0].mean, (cm[(1, 1)] + cm[(2, 1)]) / 2, rtol=1e-10)
        assert not np.isnan(b.comparisons[0].p_value)
        assert np.isnan(b.comparisons[1].p_value)

    def test_main_effects_model_fills_empty_cell(self, twoway_empty_cell):
        design, ginv = _fit(twoway_empty_cell, factors=['A', 'B'])
        mm = marginal_means(design, ginv, 'A')
        assert all(m.estimable for m in mm.means)

    def test_covariate_term_rejected(self, ancova_data):
        design, ginv = _fit(ancova_data, factors=['group'], covariates=['x'])
        with pytest.raises(ValidationError, match="factor"):
            marginal_means(design, ginv, 'group*x')


class TestCovariates:

    def test_means_at_covariate_mean(self, ancova_data):
        design, ginv = _fit(ancova_data, factors=['group'], covariates=['x'])
        mm = marginal_means(design, ginv, 'group')

        g, x, y = ancova_data['group'], ancova_data['x'], ancova_data['y']
        X = np.column_stack([g == 1, g == 2, g == 3, x]).astype(float)
        coef, *_ = np.linalg.lstsq(X, y, rcond=None)
        expected = coef[:3] + coef[3] * x.mean()
        np.testing.assert_allclose([m.mean for m in mm.means], expected, rtol=1e-9)

    def test_differences_do_not_depend_on_covariate(self, ancova_data):
        design, ginv = _fit(ancova_data, factors=['group'], covariates=['x'])
        mm = marginal_means(design, ginv, 'group')
        g, x, y = ancova_data['group'], ancova_data['x'], ancova_data['y']
        X = np.column_stack([g == 1, g == 2, g == 3, x]).astype(float)
        coef, *_ = np.linalg.lstsq(X, y, rcond=None)
        np.testing.assert_allclose(mm.comparisons[0].difference, coef[0] - coef[1], rtol=1e-9)
