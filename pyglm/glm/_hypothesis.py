"""
Hypothesis (L) matrices for Type I-IV sums of squares.

Each constructor returns the rows L such that L beta = 0 states "the term
has no effect" under its convention. All returned rows are estimable
(they lie in the row space of Z) and linearly independent, so the row
count is the df the term can claim.

    Type I    rows of Z'WZ for the term, adjusted for every earlier term
    Type II   rows of Z'WZ for the term, adjusted for every term that does
              not contain it
    Type III  equal-weight contrasts of cell means, over every cell of the
              factors in the terms that contain the term; with empty
              cells, the general form of estimable functions instead
    Type IV   pairwise cell-mean contrasts, each averaged only over the
              combinations of the other factors where every cell it
              touches was observed

Types I and II reduce to R(term | adjusting terms); Types III and IV are
structural and do not use the cross products.

The general form used for Type III with empty cells keeps the estimable
functions that vanish on every effect not containing the term, and makes
them orthogonal to those that also vanish on the term itself. On a fully
observed grid it spans the same rows as the cell-mean contrasts.

References:
    Searle, S. R. (1987). Linear Models for Unbalanced Data. Wiley.
    Goodnight, J. H. (1978). Tests of Hypotheses in Fixed-Effects Linear
        Models. SAS Technical Report R-101.
"""

from dataclasses import dataclass
from itertools import product
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyglm.core.compute.linalg import (
    estimable_part,
    independent_rows,
    matrix_rank,
    symmetric_ginverse,
    vanishing_subspace,
)
from pyglm.core.exceptions import NonEstimableTermError
from pyglm.glm._crossproduct import GeneralizedInverseResult
from pyglm.glm.design import DesignMatrixInfo
from pyglm.glm.specification import SSType, Term


@dataclass(frozen=True)
class HypothesisMatrix:
    """
    Labelled L-matrix for one term.

    Attributes:
        term: Term name
        ss_type: Convention the rows were built under
        L: (d, p) estimable, linearly independent hypothesis rows
        row_labels: 'L1', 'L2', ...
        column_labels: Parameter names
    """
    term: str
    ss_type: SSType
    L: NDArray[np.floating[Any]]
    row_labels: tuple[str, ...]
    column_labels: tuple[str, ...]

    @property
    def n_rows(self) -> int:
        return self.L.shape[0]

    def to_dict(self) -> dict[str, dict[str, float]]:
        """{row label: {parameter name: coefficient}}."""
        return {
            label: dict(zip(self.column_labels, (float(v) for v in row)))
            for label, row in zip(self.row_labels, self.L)
        }


def build_hypothesis_matrix(
    design: DesignMatrixInfo,
    term: str | int,
    ginv: GeneralizedInverseResult,
    ss_type: SSType | int | str,
) -> HypothesisMatrix:
    """
    Build the L-matrix of one term.

    Args:
        design: Design from build_design()
        term: Term name or index
        ginv: Cross products from compute_cross_products() (used by Types
            I and II)
        ss_type: Sum-of-squares convention

    Returns:
        HypothesisMatrix

    Raises:
        NonEstimableTermError: No estimable row could be built
        KeyError: Unknown term
    """
    ss_type = SSType.parse(ss_type)
    t = term if isinstance(term, int) else design.term_index(term)

    if ss_type is SSType.TYPE_I:
        L = _type1(design, t, ginv)
    elif ss_type is SSType.TYPE_II:
        L = _type2(design, t, ginv)
    elif ss_type is SSType.TYPE_III:
        L = _cell_mean_contrasts(design, t, observed_only=False)
    else:
        L = _cell_mean_contrasts(design, t, observed_only=True)

    return HypothesisMatrix(
        term=design.terms[t].name,
        ss_type=ss_type,
        L=L,
        row_labels=tuple(f"L{i + 1}" for i in range(L.shape[0])),
        column_labels=design.parameter_names,
    )


# =====================================================================
# Types I and II: adjusted rows of Z'WZ
# =====================================================================

def _adjusted_rows(
    design: DesignMatrixInfo,
    t: int,
    adjust: list[int],
    ginv: GeneralizedInverseResult,
    ss_type: SSType,
) -> NDArray[np.floating[Any]]:
    """A_k. - A_k0 A_00^- A_0. for term t adjusted for the terms in adjust."""
    A = ginv.A
    cur = np.arange(design.p)[design.term_slices[t]]
    prior = np.concatenate(
        [np.arange(design.p)[design.term_slices[i]] for i in adjust]
    ) if adjust else np.zeros(0, dtype=np.intp)

    rows = A[cur, :]
    scale = float(np.linalg.norm(rows, 2))
    name = design.terms[t].name
    if scale == 0.0:
        raise NonEstimableTermError(
            f"Term {name!r} has no non-zero columns",
            term=name, ss_type=int(ss_type), reason='collinear',
        )

    if prior.size:
        A00_inv = symmetric_ginverse(A[np.ix_(prior, prior)])
        rows = rows - A[np.ix_(cur, prior)] @ A00_inv @ A[prior, :]

    L = independent_rows(rows, scale=scale)
    if L.shape[0] == 0:
        raise NonEstimableTermError(
            f"Term {name!r} is collinear with the terms it is adjusted for",
            term=name, ss_type=int(ss_type), reason='collinear',
        )
    return L


def _type1(design: DesignMatrixInfo, t: int, ginv: GeneralizedInverseResult):
    return _adjusted_rows(design, t, list(range(t)), ginv, SSType.TYPE_I)


def _type2(design: DesignMatrixInfo, t: int, ginv: GeneralizedInverseResult):
    target = design.terms[t]
    adjust = [
        i for i, other in enumerate(design.terms)
        if i != t and not _contains(other, target)
    ]
    return _adjusted_rows(design, t, adjust, ginv, SSType.TYPE_II)


def _contains(outer: Term, inner: Term) -> bool:
    """Containment with the intercept contained in every other term."""
    if inner.is_intercept:
        return not outer.is_intercept
    return outer.contains(inner)


# =====================================================================
# Types III and IV: cell-mean contrasts
# =====================================================================

def _absorbs_intercept(design: DesignMatrixInfo, t: int) -> bool:
    """First single-factor main effect of a model without an intercept."""
    if design.has_intercept:
        return False
    for i, term in enumerate(design.terms):
        if len(term.factors) == 1 and not term.covariates:
            return i == t
    return False


def _contrast_rows(k: int, with_mean: bool, pairwise: bool = False) -> NDArray[np.floating[Any]]:
    """
    Level i vs last level (or every pair i < j), plus an optional
    equal-weight mean row.
    """
    pairs = (
        [(i, j) for i in range(k) for j in range(i + 1, k)] if pairwise
        else [(i, k - 1) for i in range(k - 1)]
    )
    C = np.zeros((len(pairs), k))
    for r, (i, j) in enumerate(pairs):
        C[r, i] = 1.0
        C[r, j] = -1.0
    if with_mean:
        C = np.vstack([C, np.full((1, k), 1.0 / k)])
    return C


def _cell_mean_contrasts(
    design: DesignMatrixInfo,
    t: int,
    observed_only: bool,
) -> NDArray[np.floating[Any]]:
    """
    Equal-weight contrasts of cell means for term t.

    The cell grid spans every factor of the terms that contain t and share
    its covariates. A cell mean (or, for covariate terms, a cell slope) is
    the sum of the parameters gated on that cell; contrasts are taken over
    t's factors and averaged over the remaining grid factors.
    """
    target = design.terms[t]
    ss_type = SSType.TYPE_IV if observed_only else SSType.TYPE_III
    levels = design.factor_levels
    cov_set = frozenset(target.covariates)
    own = [design.factor_index(f) for f in target.factors]

    # Grid factors: own factors first, then the other factors of containing terms
    others: list[int] = []
    for term in design.terms:
        if frozenset(term.covariates) != cov_set:
            continue
        if not frozenset(target.factors) <= frozenset(term.factors):
            continue
        for f in term.factors:
            j = design.factor_index(f)
            if j not in own and j not in others:
                others.append(j)
    grid_factors = own + others
    if grid_factors:
        cells = np.array(
            list(product(*[range(len(levels[j])) for j in grid_factors])),
            dtype=np.intp,
        )
    else:
        cells = np.zeros((1, 0), dtype=np.intp)
    n_cells = cells.shape[0]
    observed = _observed_cells(design, cells, grid_factors)

    absorb = _absorbs_intercept(design, t)
    if not observed_only and not absorb and not observed.all():
        return _general_form(design, t)

    # Contrast weights over own factors (Kronecker product across factors).
    # Type IV starts from every pairwise contrast so that contrasts avoiding
    # an empty cell are still available after the support filter.
    weights = np.ones((1, n_cells))
    for pos, j in enumerate(own):
        C = _contrast_rows(len(levels[j]), with_mean=absorb, pairwise=observed_only)
        Cc = C[:, cells[:, pos]]
        weights = (weights[:, None, :] * Cc[None, :, :]).reshape(-1, n_cells)

    if weights.shape[0] == 0:
        raise NonEstimableTermError(
            f"Term {target.name!r} has a factor with a single observed level",
            term=target.name, ss_type=int(ss_type), reason='no_contrasts',
        )

    other_pos = list(range(len(own), len(grid_factors)))
    if observed_only:
        weights = _observed_average(design, cells, grid_factors, observed, other_pos, weights)
    else:
        n_other = int(np.prod([len(levels[grid_factors[q]]) for q in other_pos]))
        weights = weights / n_other

    if weights.shape[0] == 0:
        raise NonEstimableTermError(
            f"Term {target.name!r}: no contrast is supported by observed cells",
            term=target.name, ss_type=int(ss_type), reason='not_estimable',
        )

    M = _cell_parameter_map(design, cells, grid_factors, cov_set)
    L = estimable_part(weights @ M, design.row_space)
    if L.shape[0] == 0:
        raise NonEstimableTermError(
            f"Term {target.name!r} has no estimable contrast",
            term=target.name, ss_type=int(ss_type), reason='not_estimable',
        )
    return L


def _general_form(design: DesignMatrixInfo, t: int) -> NDArray[np.floating[Any]]:
    """Type III rows from the general form of estimable functions."""
    target = design.terms[t]
    index = np.arange(design.p)
    outside = [
        index[design.term_slices[i]] for i, other in enumerate(design.terms)
        if i != t and not _contains(other, target)
    ]
    zero = np.concatenate(outside) if outside else np.zeros(0, dtype=np.intp)
    own = index[design.term_slices[t]]

    S = vanishing_subspace(design.row_space, zero)
    T = vanishing_subspace(design.row_space, np.concatenate([zero, own]))
    if T.shape[0]:
        S = S - (S @ T.T) @ T
    L = independent_rows(S, scale=1.0)
    if L.shape[0] == 0:
        raise NonEstimableTermError(
            f"Term {target.name!r} has no estimable contrast",
            term=target.name, ss_type=int(SSType.TYPE_III), reason='not_estimable',
        )
    return L


def _observed_cells(
    design: DesignMatrixInfo,
    cells: NDArray[np.intp],
    grid_factors: list[int],
) -> NDArray[np.bool_]:
    """Mask of grid cells with at least one case."""
    if not grid_factors:
        return np.ones(cells.shape[0], dtype=bool)
    dims = tuple(len(design.factor_levels[j]) for j in grid_factors)
    seen = np.unique(
        np.ravel_multi_index(design.factor_codes[:, grid_factors].T, dims)
    )
    return np.isin(np.ravel_multi_index(cells.T, dims), seen)


def _observed_average(
    design: DesignMatrixInfo,
    cells: NDArray[np.intp],
    grid_factors: list[int],
    observed: NDArray[np.bool_],
    other_pos: list[int],
    weights: NDArray[np.floating[Any]],
) -> NDArray[np.floating[Any]]:
    """
    Restrict each contrast row to the combinations of the averaged factors
    whose touched cells were all observed, with equal weight over them.
    Rows with no such combination are dropped.

    Rows are then kept greedily, best-supported first, only while their
    unrestricted contrasts stay linearly independent: rows averaged over
    different subsets would otherwise combine into interaction contrasts.
    """
    n_cells = cells.shape[0]
    if other_pos:
        other_dims = tuple(len(design.factor_levels[grid_factors[q]]) for q in other_pos)
        combo = np.ravel_multi_index(cells[:, other_pos].T, other_dims)
    else:
        combo = np.zeros(n_cells, dtype=np.intp)

    candidates = []
    for r, w in enumerate(weights):
        touched = w != 0.0
        bad = np.unique(combo[touched & ~observed])
        supported = np.setdiff1d(np.unique(combo[touched]), bad)
        if supported.size == 0:
            continue
        candidates.append((supported.size, r, w * np.isin(combo, supported) / supported.size))

    kept: list[tuple[int, NDArray[np.floating[Any]]]] = []
    sources: list[NDArray[np.floating[Any]]] = []
    for _, r, row in sorted(candidates, key=lambda c: (-c[0], c[1])):
        trial = np.vstack(sources + [weights[r]])
        if matrix_rank(trial) > len(sources):
            sources.append(weights[r])
            kept.append((r, row))
    if not kept:
        return np.zeros((0, n_cells))
    return np.vstack([row for _, row in sorted(kept, key=lambda k: k[0])])


def _cell_parameter_map(
    design: DesignMatrixInfo,
    cells: NDArray[np.intp],
    grid_factors: list[int],
    cov_set: frozenset[str],
) -> NDArray[np.floating[Any]]:
    """
    (n_cells, p) map from a cell to the parameters that make up its mean.

    Only terms with exactly the target's covariates take part. A term
    factor outside the grid is averaged over its levels.
    """
    M = np.zeros((cells.shape[0], design.p))
    grid_pos = {j: q for q, j in enumerate(grid_factors)}
    for t, term in enumerate(design.terms):
        if frozenset(term.covariates) != cov_set:
            continue
        fidx = [design.factor_index(f) for f in term.factors]
        inside = [j for j in fidx if j in grid_pos]
        outside = [j for j in fidx if j not in grid_pos]
        spread = 1.0 / float(np.prod([len(design.factor_levels[j]) for j in outside]))
        for col in range(design.p)[design.term_slices[t]]:
            match = np.ones(cells.shape[0], dtype=bool)
            for j in inside:
                match &= cells[:, grid_pos[j]] == design.column_codes[col, j]
            M[:, col] = match * spread
    return M
