"""
Tests for the lack-of-fit / pure-error decomposition.
"""

import numpy as np
from scipy import stats as sp_stats

from pyglm.glm._crossproduct import compute_cross_products
from pyglm.glm._lack_of_fit import lack_of_fit_test
from pyglm.glm.design import build_design
from pyglm.glm.specification import ModelSpecification


def _fit(data, dependent='y', **kwargs):
    design = build_design(ModelSpecification.build(dependent, **kwargs), data)
    return design, compute_cross_products(design)


class TestLackOfFit:

    def test_straight_line_through_curve(self, replicated_regression):
        design, ginv = _fit(replicated_regression, covariates=['x'])
        result = lack_of_fit_test(design, ginv)

        x, y = replicated_regression['x'], replicated_regression['y']
        slope, intercept = np.polyfit(x, y, 1)
        rss = float(np.sum((y - (intercept + slope * x)) ** 2))
        ss_pe = 0.32

        assert result.computable
        assert result.n_patterns == 4
        assert result.pure_error.df == 8
        assert result.lack_of_fit.df == 2
        np.testing.assert_allclose(result.pure_error.ss, ss_pe, rtol=1e-10)
        np.testing.assert_allclose(result.lack_of_fit.ss, rss - ss_pe, rtol=1e-8)
        f = ((rss - ss_pe) / 2) / (ss_pe / 8)
        np.testing.assert_allclose(result.lack_of_fit.f_value, f, rtol=1e-8)
        np.testing.assert_allclose(
            result.lack_of_fit.p_value, sp_stats.f.sf(f, 2, 8), rtol=1e-6,
        )
        assert result.lack_of_fit.source == 'Lack of Fit'
        assert result.pure_error.source == 'Pure Error'

    def test_saturated_cell_means_model(self, three_groups):
        design, ginv = _fit(three_groups, 'score', factors=['group'])
        result = lack_of_fit_test(design, ginv)
        assert not result.computable
        assert result.n_patterns == 3
        assert result.lack_of_fit.df == 0
        assert np.isnan(result.lack_of_fit.f_value)
        # All residual variation is pure error
        np.testing.assert_allclose(result.pure_error.ss, 4.34, rtol=1e-10)

    def test_no_replication(self, rng):
        data = {'y': rng.standard_normal(8), 'x': np.arange(8.0)}
        design, ginv = _fit(data, covariates=['x'])
        result = lack_of_fit_test(design, ginv)
        assert not result.computable
        assert result.pure_error.df == 0
        assert result.pure_error.ss == 0.0
        assert np.isnan(result.lack_of_fit.p_value)

    def test_additive_model_on_full_grid(self, twoway_unbalanced):
        design, ginv = _fit(twoway_unbalanced, factors=['A', 'B'])
        result = lack_of_fit_test(design, ginv)
        # Lack of fit of the additive model is the interaction
        full = compute_cross_products(
            build_design(
                ModelSpecification.build('y', factors=['A', 'B'], interactions=['A*B']),
                twoway_unbalanced,
            )
        )
        assert result.computable
        assert result.lack_of_fit.df == 1
        np.testing.assert_allclose(result.pure_error.ss, full.rss, rtol=1e-10)
        np.testing.assert_allclose(result.lack_of_fit.ss, ginv.rss - full.rss, rtol=1e-8)

    def test_weighted_pure_error(self):
        data = {
            'y': [1.0, 3.0, 2.0, 6.0, 5.0],
            'x': [1.0, 1.0, 2.0, 3.0, 3.0],
            'w': [1.0, 3.0, 1.0, 2.0, 2.0],
        }
        design, ginv = _fit(data, covariates=['x'], weight='w')
        result = lack_of_fit_test(design, ginv)
        # x=1: weighted mean 2.5, SS = 1*1.5^2 + 3*0.5^2; x=3: mean 5.5, SS = 2*0.25*2
        np.testing.assert_allclose(result.pure_error.ss, 2.25 + 0.75 + 1.0, rtol=1e-10)
        assert result.pure_error.df == 2
        assert result.lack_of_fit.df == 1
