"""
Generalized inverses and rank utilities.

Over-parameterized designs are rank deficient by construction, so every
kernel here treats singularity as the normal case. All rank decisions use
the relative singular-value cutoff RANK_RTOL.

Provided kernels:
    row_space_basis   orthonormal basis of the row space of a matrix
    matrix_rank       numerical rank with a relative tolerance
    symmetric_rank    rank of a symmetric PSD matrix from its eigenvalues
    symmetric_ginverse  truncated-eigen (Moore-Penrose) inverse of Z'WZ
    sweep             Gauss-Jordan sweep with collinearity detection (AS 178)
    independent_rows  keep a linearly independent subset of rows
    vanishing_subspace  estimable functions that vanish on given columns
    estimable_part    intersect a row space with the row space of Z
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import scipy.linalg as sla
from numpy.typing import NDArray

from pyglm.core.compute.tolerances import RANK_RTOL, SWEEP_TOL
from pyglm.core.exceptions import SingularMatrixError
from pyglm.core.validation import check_square


@dataclass(frozen=True)
class SweepResult:
    """
    Result of sweeping a symmetric matrix.

    Attributes:
        matrix: The swept matrix (swept block holds -G)
        aliased: Boolean mask of pivots skipped as collinear
    """
    matrix: NDArray[np.floating[Any]]
    aliased: NDArray[np.bool_]


def row_space_basis(
    M: NDArray[np.floating[Any]],
    rtol: float = RANK_RTOL,
) -> NDArray[np.floating[Any]]:
    """
    Orthonormal basis of the row space of M.

    Returns:
        (r, p) array whose rows are orthonormal, r = numerical rank of M
    """
    p = M.shape[1]
    if M.size == 0:
        return np.zeros((0, p), dtype=np.float64)
    _, s, Vt = sla.svd(M, full_matrices=False)
    if s.size == 0 or s[0] <= 0.0:
        return np.zeros((0, p), dtype=np.float64)
    r = int(np.sum(s > rtol * s[0]))
    return Vt[:r]


def matrix_rank(M: NDArray[np.floating[Any]], rtol: float = RANK_RTOL) -> int:
    """
    Numerical rank: singular values above rtol * largest singular value.

    Never compares against a hard zero, so near-collinear columns are not
    reported as full rank.
    """
    if M.size == 0:
        return 0
    s = sla.svdvals(M)
    if s.size == 0 or s[0] <= 0.0:
        return 0
    return int(np.sum(s > rtol * s[0]))


def symmetric_rank(S: NDArray[np.floating[Any]], rtol: float = RANK_RTOL) -> int:
    """
    Rank of a symmetric positive semi-definite matrix.

    Eigenvalues at or below rtol * largest eigenvalue count as zero. The
    cutoff is applied to the eigenvalues themselves: round-off in a cross
    product such as Z'WZ is of order eps * largest eigenvalue, far above
    the square of RANK_RTOL.
    """
    if S.size == 0:
        return 0
    evals = sla.eigvalsh(S)
    top = float(np.max(evals))
    if top <= 0.0:
        return 0
    return int(np.sum(evals > rtol * top))


def symmetric_ginverse(
    S: NDArray[np.floating[Any]],
    rank: int | None = None,
    rtol: float = RANK_RTOL,
) -> NDArray[np.floating[Any]]:
    """
    Moore-Penrose inverse of a symmetric PSD matrix via eigendecomposition.

    Args:
        S: Symmetric PSD matrix
        rank: If given, keep exactly the `rank` largest eigenpairs so the
            inverse agrees with a rank computed elsewhere (e.g. from Z).
            Otherwise the rank is determined with symmetric_rank's rule.
        rtol: Relative tolerance when rank is not given

    Returns:
        Symmetric generalized inverse G with S G S = S

    Raises:
        SingularMatrixError: If S contains non-finite values or the
            eigendecomposition fails
    """
    check_square(S, 'S')
    if not np.all(np.isfinite(S)):
        raise SingularMatrixError(
            "Cannot form generalized inverse: matrix has non-finite entries",
            matrix_name='S',
        )
    k = S.shape[0]
    if k == 0:
        return np.zeros((0, 0), dtype=np.float64)
    try:
        evals, evecs = sla.eigh(S)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise SingularMatrixError(
            f"Eigendecomposition failed while forming generalized inverse: {e}",
            matrix_name='S',
        ) from e

    # eigh returns ascending eigenvalues
    evals = evals[::-1]
    evecs = evecs[:, ::-1]
    if rank is None:
        top = float(evals[0])
        if top <= 0.0:
            return np.zeros_like(S)
        rank = int(np.sum(evals > rtol * top))
    if rank == 0:
        return np.zeros_like(S)

    V = evecs[:, :rank]
    lam = evals[:rank]
    if np.any(lam <= 0.0):
        raise SingularMatrixError(
            f"Requested rank {rank} exceeds the number of positive eigenvalues",
            matrix_name='S',
            rank=int(np.sum(evals > 0.0)),
            expected_rank=rank,
        )
    G = (V / lam) @ V.T
    return (G + G.T) / 2.0


def sweep(
    C: NDArray[np.floating[Any]],
    columns: list[int] | range,
    tol: float = SWEEP_TOL,
) -> SweepResult:
    """
    Gauss-Jordan sweep operator with collinearity detection.

    Sweeps the symmetric matrix C on the given pivots in order. A pivot
    whose current value has fallen below tol times its original diagonal
    is collinear with the pivots already swept; it is skipped and marked
    aliased (Clarke 1982, AS 178; Ridout & Cobby 1989, AS R78).

    After sweeping Z'WZ augmented with Z'WY on the first p pivots:

        [ X'WX  X'WY ]   sweep    [ -G     beta ]
        [ Y'WX  Y'WY ]  ------->  [ beta'  RSS  ]

    where G is a symmetric g2-inverse of X'WX with zero rows/columns for
    aliased parameters.

    Args:
        C: Symmetric matrix (not modified)
        columns: Pivot indices to sweep, in order
        tol: Relative pivot tolerance

    Returns:
        SweepResult with the swept matrix and aliased mask (length C.shape[0])
    """
    c = np.array(C, dtype=np.float64, copy=True)
    m = c.shape[0]
    original_diag = np.abs(np.diag(c)).copy()
    aliased = np.zeros(m, dtype=bool)

    for k in columns:
        pivot = c[k, k]
        if original_diag[k] == 0.0 or abs(pivot) <= tol * original_diag[k]:
            aliased[k] = True
            continue

        row_k = c[k, :].copy()
        col_k = c[:, k].copy()
        c -= np.outer(col_k, row_k) / pivot
        c[k, :] = row_k / pivot
        c[:, k] = col_k / pivot
        c[k, k] = -1.0 / pivot

    return SweepResult(matrix=c, aliased=aliased)


def independent_rows(
    L: NDArray[np.floating[Any]],
    rtol: float = RANK_RTOL,
    scale: float | None = None,
) -> NDArray[np.floating[Any]]:
    """
    Keep a maximal linearly independent subset of the rows of L.

    Uses QR with column pivoting on L' so the surviving rows are original
    rows (readable contrast coefficients), in their original order.

    Args:
        L: (r, p) rows
        rtol: Relative tolerance
        scale: Reference magnitude for the cutoff. Defaults to the largest
            pivot of L itself; pass the norm of the unadjusted rows when L
            may consist entirely of round-off.
    """
    r, p = L.shape
    if r == 0:
        return np.zeros((0, p), dtype=np.float64)
    _, R, piv = sla.qr(L.T, mode='economic', pivoting=True)
    diag = np.abs(np.diag(R))
    if diag.size == 0 or diag[0] <= 0.0:
        return np.zeros((0, p), dtype=np.float64)
    ref = diag[0] if scale is None else scale
    k = int(np.sum(diag > rtol * ref))
    keep = np.sort(piv[:k])
    return L[keep]


def vanishing_subspace(
    row_space: NDArray[np.floating[Any]],
    columns: NDArray[np.intp],
    rtol: float = RANK_RTOL,
) -> NDArray[np.floating[Any]]:
    """
    Estimable functions with zero coefficients on the given columns.

    Args:
        row_space: (k, p) orthonormal basis of the row space of Z
        columns: Parameter indices that must have zero coefficients

    Returns:
        (d, p) orthonormal basis of {l in row space : l[columns] = 0}
    """
    k, p = row_space.shape
    if k == 0 or len(columns) == 0:
        return row_space.copy()
    # row_space is orthonormal, so the cutoff on singular values is absolute
    U, s, _ = sla.svd(row_space[:, columns], full_matrices=True)
    d = int(np.sum(s > rtol))
    return U[:, d:].T @ row_space


def estimable_part(
    L: NDArray[np.floating[Any]],
    row_space: NDArray[np.floating[Any]],
    rtol: float = RANK_RTOL,
) -> NDArray[np.floating[Any]]:
    """
    Intersect the row space of L with the row space of the design.

    A linear function l'beta is estimable iff l lies in the row space of Z.
    Rows of L that already are estimable are returned unchanged; otherwise
    the largest estimable subspace spanned by L's rows is returned.

    Args:
        L: (r, p) candidate hypothesis rows
        row_space: (k, p) orthonormal basis of the row space of Z

    Returns:
        (d, p) matrix of linearly independent estimable rows, d <= rank(L)
    """
    r, p = L.shape
    if r == 0:
        return np.zeros((0, p), dtype=np.float64)

    scale = float(np.linalg.norm(L, 2))
    if scale == 0.0:
        return np.zeros((0, p), dtype=np.float64)

    # Component of each row outside the row space of Z
    residual = L - (L @ row_space.T) @ row_space
    if np.linalg.norm(residual, 2) <= rtol * scale:
        return independent_rows(L, rtol, scale)

    U, s, _ = sla.svd(residual, full_matrices=True)
    k = int(np.sum(s > rtol * scale))
    combos = U[:, k:]
    if combos.shape[1] == 0:
        return np.zeros((0, p), dtype=np.float64)
    # Combinations of dependent rows of L come out as round-off
    return independent_rows(combos.T @ L, rtol, scale)
