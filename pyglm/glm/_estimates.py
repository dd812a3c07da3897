"""
Parameter estimates table.

For column j: B = beta_j, SE = sqrt(G_jj * MS_error), t = B / SE, with a
two-sided t test on df_error and a confidence interval B +/- t_crit * SE.
Effect size is t^2 / (t^2 + df_error); observed power uses the noncentral
t distribution with noncentrality |t|.

Under the 'pinv' inverse individual parameters of a rank-deficient design
are not estimable; B is then the minimum-norm solution. The 'sweep'
inverse instead fixes redundant parameters at zero and flags them.
"""

import math

import numpy as np

from pyglm.glm._common import ParameterEstimate
from pyglm.glm._crossproduct import GeneralizedInverseResult
from pyglm.glm._distributions import observed_power_t, t_critical, t_significance
from pyglm.glm.design import DesignMatrixInfo


def parameter_estimates(
    design: DesignMatrixInfo,
    ginv: GeneralizedInverseResult,
    *,
    alpha: float = 0.05,
    confidence_level: float = 0.95,
    effect_size: bool = True,
    power: bool = True,
) -> tuple[ParameterEstimate, ...]:
    nan = float('nan')
    df = ginv.df_error
    ms_error = ginv.ms_error
    crit = t_critical(1.0 - confidence_level, df)

    rows = []
    for j, name in enumerate(design.parameter_names):
        if ginv.aliased[j]:
            rows.append(ParameterEstimate(
                parameter=name, b=0.0, std_error=nan, t_value=nan, p_value=nan,
                ci_lower=nan, ci_upper=nan, partial_eta_squared=nan,
                noncentrality=nan, observed_power=nan, redundant=True,
            ))
            continue

        b = float(ginv.beta[j])
        var = float(ginv.G[j, j]) * ms_error
        se = math.sqrt(var) if np.isfinite(var) and var >= 0 else nan
        t = b / se if np.isfinite(se) and se > 0 else nan
        t2 = t * t
        rows.append(ParameterEstimate(
            parameter=name,
            b=b,
            std_error=se,
            t_value=t,
            p_value=t_significance(t, df),
            ci_lower=b - crit * se,
            ci_upper=b + crit * se,
            partial_eta_squared=t2 / (t2 + df) if effect_size and df > 0 else nan,
            noncentrality=abs(t) if power else nan,
            observed_power=observed_power_t(t, df, alpha) if power else nan,
            redundant=False,
        ))
    return tuple(rows)
