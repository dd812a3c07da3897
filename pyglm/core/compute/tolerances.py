"""
Numerical tolerances.

One place for every cutoff the engine uses, so rank decisions agree
across the design builder, the generalized inverse, the L-matrix
constructors and the sum-of-squares calculator.

- RANK_RTOL: singular values below RANK_RTOL * largest singular value are
  treated as zero (rank, pseudo-inverse, row bases, estimability).
- SWEEP_TOL: a sweep pivot below SWEEP_TOL * its original diagonal marks
  the column as aliased (AS 178 collinearity test).
- ZERO_SS: sums of squares below this, relative to the total, are reported
  as exactly zero.
"""


RANK_RTOL = 1e-8

SWEEP_TOL = 1e-8

ZERO_SS = 1e-12
