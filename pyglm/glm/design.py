"""
GLM design object.

build_design() turns a ModelSpecification plus case data into a
DesignMatrixInfo: the over-parameterized design matrix Z, the response,
the case weights and the term metadata every later stage needs.

Coding is "full" (one indicator column per factor level, no reference
level dropped), so Z is rank deficient whenever an intercept or a factor
appears together with an interaction containing it. The redundancy is
resolved downstream by the generalized inverse.

Everything downstream addresses terms, factors and levels by integer
index: DesignMatrixInfo owns the index <-> name mappings.
"""

from dataclasses import dataclass, replace
from itertools import product
from numbers import Number
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyglm.core.compute.linalg import matrix_rank, row_space_basis
from pyglm.core.datasource import DataSource, missing_mask
from pyglm.core.exceptions import EmptyDesignError, ValidationError
from pyglm.glm.specification import ModelSpecification, Term


@dataclass(frozen=True)
class DesignMatrixInfo:
    """
    Read-only numeric design for one analysis.

    Attributes:
        Z: (n, p) design matrix
        y: (n,) response of the active dependent variable
        w: (n,) case weights (ones when unweighted)
        responses: (n, m) responses of every dependent, common case set
        dependents: Names of the columns of responses
        dependent: Name of the active dependent variable
        terms: Model terms in model order (intercept first when present)
        term_slices: Contiguous column range of each term, by term index
        parameter_names: Label of each column of Z
        column_terms: (p,) term index of each column
        factor_names: Factor names, by factor index
        factor_levels: Level labels of each factor, by factor index
        factor_codes: (n, n_factors) level index of each case
        column_codes: (p, n_factors) level index a column is gated on,
            -1 when the column does not involve the factor
        covariate_names: Covariate names, by covariate index
        covariate_values: (n, n_covariates) covariate values of each case
        rank: Numerical rank of Z
        row_space: (rank, p) orthonormal basis of the row space of Z
        has_intercept: Whether the model includes an intercept
        weighted: Whether a weight variable was used
        n_excluded: Cases dropped by listwise deletion
        case_index: (n,) positions of the retained cases in the input
    """
    Z: NDArray[np.floating[Any]]
    y: NDArray[np.floating[Any]]
    w: NDArray[np.floating[Any]]
    responses: NDArray[np.floating[Any]]
    dependents: tuple[str, ...]
    dependent: str
    terms: tuple[Term, ...]
    term_slices: tuple[slice, ...]
    parameter_names: tuple[str, ...]
    column_terms: NDArray[np.intp]
    factor_names: tuple[str, ...]
    factor_levels: tuple[tuple[str, ...], ...]
    factor_codes: NDArray[np.intp]
    column_codes: NDArray[np.intp]
    covariate_names: tuple[str, ...]
    covariate_values: NDArray[np.floating[Any]]
    rank: int
    row_space: NDArray[np.floating[Any]]
    has_intercept: bool
    weighted: bool
    n_excluded: int
    case_index: NDArray[np.intp]

    @property
    def n(self) -> int:
        return self.Z.shape[0]

    @property
    def p(self) -> int:
        return self.Z.shape[1]

    @property
    def term_names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self.terms)

    def term_index(self, name: str) -> int:
        """Index of a term by name; 'B*A' finds the term 'A*B'."""
        names = self.term_names
        if name in names:
            return names.index(name)
        wanted = frozenset(p.strip() for p in name.replace(':', '*').split('*'))
        for i, term in enumerate(self.terms):
            if not term.is_intercept and term.components == wanted:
                return i
        raise KeyError(f"Unknown term {name!r}. Available: {list(names)}")

    def columns(self, term: str | int) -> slice:
        """Column range of a term."""
        idx = term if isinstance(term, int) else self.term_index(term)
        return self.term_slices[idx]

    def factor_index(self, name: str) -> int:
        return self.factor_names.index(name)

    def for_dependent(self, name: str) -> 'DesignMatrixInfo':
        """Same design with another dependent variable as the response."""
        if name not in self.dependents:
            raise KeyError(f"Unknown dependent {name!r}. Available: {list(self.dependents)}")
        j = self.dependents.index(name)
        return replace(self, y=self.responses[:, j].copy(), dependent=name)


def _to_float(values: NDArray, name: str) -> NDArray[np.floating[Any]]:
    """Convert a column to float64 with NaN for missing entries."""
    arr = np.asarray(values)
    if np.issubdtype(arr.dtype, np.number) and not np.issubdtype(arr.dtype, np.complexfloating):
        return arr.astype(np.float64)
    missing = missing_mask(arr)
    out = np.full(arr.shape[0], np.nan, dtype=np.float64)
    for i, v in enumerate(arr):
        if missing[i]:
            continue
        if isinstance(v, bool):
            out[i] = float(v)
            continue
        try:
            out[i] = float(v)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"{name}: non-numeric value {v!r} in case {i}"
            ) from e
    return out


def _level_key(value: Any) -> Any:
    if isinstance(value, Number) and not isinstance(value, bool):
        f = float(value)
        return int(f) if f.is_integer() else f
    if isinstance(value, str):
        return value.strip()
    return value


def _level_label(key: Any) -> str:
    return str(key)


def _sorted_levels(keys: set[Any]) -> list[Any]:
    """Sort levels numerically when they are all numeric, otherwise as strings."""
    if all(isinstance(k, (int, float)) for k in keys):
        return sorted(keys)
    try:
        return sorted(keys, key=float)
    except (TypeError, ValueError):
        return sorted(keys, key=str)


def _encode_factor(
    values: NDArray,
) -> tuple[tuple[str, ...], NDArray[np.intp]]:
    keys = [_level_key(v) for v in values]
    levels = _sorted_levels(set(keys))
    lookup = {k: i for i, k in enumerate(levels)}
    codes = np.array([lookup[k] for k in keys], dtype=np.intp)
    return tuple(_level_label(k) for k in levels), codes


def build_design(
    spec: ModelSpecification,
    data: Any,
    dependent: str | None = None,
) -> DesignMatrixInfo:
    """
    Build the over-parameterized design for a model.

    Cases with a missing value in any model variable (every dependent,
    factor, covariate and the weight) are excluded, as are cases whose
    weight is not positive and finite.

    Args:
        spec: Validated model specification
        data: DataSource, DataFrame, column mapping, record list or CSV path
        dependent: Active dependent variable (default: the first one)

    Returns:
        DesignMatrixInfo

    Raises:
        ValidationError: Unknown variable, or non-numeric covariate,
            dependent or weight value
        EmptyDesignError: No case survives listwise deletion
    """
    ds = DataSource.build(data)
    variables = spec.variables()
    absent = [v for v in variables if v not in ds]
    if absent:
        raise ValidationError(
            f"Variables {absent} not found in data. Available: {sorted(ds.keys())}"
        )

    n_total = ds.n_observations
    keep = np.ones(n_total, dtype=bool)

    numeric: dict[str, NDArray[np.floating[Any]]] = {}
    for name in spec.dependents + spec.covariates:
        col = _to_float(ds[name], name)
        numeric[name] = col
        keep &= np.isfinite(col)
    for name in spec.factors:
        keep &= ~missing_mask(ds[name])

    weighted = spec.weight is not None
    if weighted:
        wcol = _to_float(ds[spec.weight], spec.weight)
        with np.errstate(invalid='ignore'):
            keep &= np.isfinite(wcol) & (wcol > 0)
    else:
        wcol = np.ones(n_total, dtype=np.float64)

    n_excluded = int(n_total - keep.sum())
    if not keep.any():
        raise EmptyDesignError(
            f"No valid cases remain after listwise deletion "
            f"({n_excluded} of {n_total} cases excluded)",
            n_excluded=n_excluded,
        )

    case_index = np.flatnonzero(keep)
    n = case_index.size

    factor_levels: list[tuple[str, ...]] = []
    factor_codes = np.zeros((n, len(spec.factors)), dtype=np.intp)
    for j, name in enumerate(spec.factors):
        raw = np.asarray(ds[name])[keep]
        labels, codes = _encode_factor(raw)
        factor_levels.append(labels)
        factor_codes[:, j] = codes

    covariate_values = {c: numeric[c][keep] for c in spec.covariates}
    factor_pos = {name: j for j, name in enumerate(spec.factors)}

    blocks: list[NDArray[np.floating[Any]]] = []
    names: list[str] = []
    code_rows: list[NDArray[np.intp]] = []
    slices: list[slice] = []
    column_terms: list[int] = []
    start = 0

    for t, term in enumerate(spec.model_terms):
        cols, labels, codes = _term_columns(
            term, factor_pos, factor_codes, factor_levels, covariate_values, n,
        )
        blocks.append(cols)
        names.extend(labels)
        code_rows.extend(codes)
        slices.append(slice(start, start + cols.shape[1]))
        column_terms.extend([t] * cols.shape[1])
        start += cols.shape[1]

    Z = np.hstack(blocks) if blocks else np.zeros((n, 0))
    column_codes = (
        np.vstack(code_rows) if code_rows
        else np.zeros((0, len(spec.factors)), dtype=np.intp)
    )

    responses = np.column_stack([numeric[d][keep] for d in spec.dependents])
    active = dependent if dependent is not None else spec.dependent
    if active not in spec.dependents:
        raise ValidationError(
            f"dependent: {active!r} is not one of {list(spec.dependents)}"
        )

    return DesignMatrixInfo(
        Z=Z,
        y=responses[:, spec.dependents.index(active)].copy(),
        w=wcol[keep].copy(),
        responses=responses,
        dependents=spec.dependents,
        dependent=active,
        terms=spec.model_terms,
        term_slices=tuple(slices),
        parameter_names=tuple(names),
        column_terms=np.asarray(column_terms, dtype=np.intp),
        factor_names=spec.factors,
        factor_levels=tuple(factor_levels),
        factor_codes=factor_codes,
        column_codes=column_codes.astype(np.intp),
        covariate_names=spec.covariates,
        covariate_values=(
            np.column_stack([covariate_values[c] for c in spec.covariates])
            if spec.covariates else np.zeros((n, 0))
        ),
        rank=matrix_rank(Z),
        row_space=row_space_basis(Z),
        has_intercept=spec.intercept,
        weighted=weighted,
        n_excluded=n_excluded,
        case_index=case_index,
    )


def _term_columns(
    term: Term,
    factor_pos: dict[str, int],
    factor_codes: NDArray[np.intp],
    factor_levels: list[tuple[str, ...]],
    covariate_values: dict[str, NDArray[np.floating[Any]]],
    n: int,
) -> tuple[NDArray[np.floating[Any]], list[str], list[NDArray[np.intp]]]:
    """
    Columns of one term: every level combination of its factors (first
    factor varying slowest) times the product of its covariates.
    """
    n_factors = factor_codes.shape[1]
    if term.is_intercept:
        return np.ones((n, 1)), ['Intercept'], [np.full(n_factors, -1, dtype=np.intp)]

    cov_product = np.ones(n)
    for c in term.covariates:
        cov_product = cov_product * covariate_values[c]
    cov_label = '*'.join(term.covariates)

    fidx = [factor_pos[f] for f in term.factors]
    ranges = [range(len(factor_levels[j])) for j in fidx]

    columns: list[NDArray[np.floating[Any]]] = []
    labels: list[str] = []
    codes: list[NDArray[np.intp]] = []
    for combo in product(*ranges):
        col = cov_product.copy()
        parts = []
        code = np.full(n_factors, -1, dtype=np.intp)
        for j, level in zip(fidx, combo):
            col = col * (factor_codes[:, j] == level)
            parts.append(f"[{term.factors[fidx.index(j)]}={factor_levels[j][level]}]")
            code[j] = level
        if cov_label:
            parts.append(cov_label)
        columns.append(col)
        labels.append('*'.join(parts))
        codes.append(code)

    return np.column_stack(columns), labels, codes
