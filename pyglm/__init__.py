"""
pyglm: general linear model estimation and hypothesis testing.

Over-parameterized GLM with Type I-IV sums of squares, parameter
estimates, lack-of-fit tests and observed power.

Submodules:
    glm: model specification, design, hypothesis tests, solvers
    core: data container, result envelope, exceptions, linear algebra
"""

__version__ = "0.1.0"

from pyglm.core.datasource import DataSource
from pyglm import glm

__all__ = [
    "__version__",
    "DataSource",
    "glm",
]
