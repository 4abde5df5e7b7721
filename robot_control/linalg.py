"""Linear algebra primitives shared by the controllers and the particle filter.

Thin, shape-checked helpers over numpy (and scipy for block assembly):

- Construction: eye, zeros, ones, diag
- Block assembly: hstack, vstack, block, block_diag, kron
- Products: mat_vec
- Inversion: pseudo_inverse (tolerance-based, raises InverseFailedError)
- Comparison: max_abs_diff, frobenius_norm, frobenius_diff, approx_equal
- Structure checks: symmetrize, is_symmetric, is_positive_definite,
  is_positive_semidefinite, spectral_radius

Every function returns float64 arrays and raises ValueError on shape
mismatch.
"""

from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt
import scipy.linalg

from .errors import InverseFailedError

ArrayLike = Union[float, Sequence[float], Sequence[Sequence[float]], npt.NDArray[np.float64]]


def as_matrix(values: ArrayLike) -> np.ndarray:
    """Convert values to a 2-D float64 array.

    Scalars become 1×1 matrices and 1-D sequences become row vectors.

    Args:
        values: Scalar, sequence, nested sequence or ndarray

    Returns:
        2-D float64 array (a copy when the input was not already float64)

    Raises:
        ValueError: If values has more than two dimensions
    """
    mat = np.atleast_2d(np.asarray(values, dtype=np.float64))
    if mat.ndim != 2:
        raise ValueError(f"Expected at most 2 dimensions, got shape {mat.shape}")
    return mat


def as_column(values: ArrayLike) -> np.ndarray:
    """Convert a vector-like value to an (n, 1) column."""
    return np.asarray(values, dtype=np.float64).reshape(-1, 1)


def shape_of(values: ArrayLike) -> Tuple[int, int]:
    """Return the (rows, cols) shape of values viewed as a matrix."""
    return as_matrix(values).shape


# ============================================================================
# Construction
# ============================================================================


def eye(n: int, k: int = 0) -> np.ndarray:
    """Identity matrix, or ones on the k-th off diagonal.

    Args:
        n: Matrix size
        k: Diagonal offset. k > 0 selects a super-diagonal, k < 0 a
           sub-diagonal.

    Returns:
        n×n float64 array
    """
    if n <= 0:
        raise ValueError(f"Matrix size must be positive, got {n}")
    return np.eye(n, k=k, dtype=np.float64)


def zeros(rows: int, cols: Optional[int] = None) -> np.ndarray:
    """Zero matrix. With a single argument, a 1×rows row vector."""
    if cols is None:
        rows, cols = 1, rows
    return np.zeros((rows, cols), dtype=np.float64)


def ones(rows: int, cols: Optional[int] = None) -> np.ndarray:
    """Matrix of ones. With a single argument, a 1×rows row vector."""
    if cols is None:
        rows, cols = 1, rows
    return np.ones((rows, cols), dtype=np.float64)


def diag(*values: float) -> np.ndarray:
    """Square diagonal matrix from the given entries.

    Accepts either separate scalars (diag(0, 1, 1, 0)) or a single
    sequence (diag([0, 1, 1, 0])).
    """
    if len(values) == 1 and np.ndim(values[0]) == 1:
        values = tuple(values[0])
    if not values:
        raise ValueError("diag requires at least one entry")
    return np.diag(np.asarray(values, dtype=np.float64))


# ============================================================================
# Block Assembly
# ============================================================================


def hstack(*blocks: ArrayLike) -> np.ndarray:
    """Concatenate blocks left to right. Row counts must match."""
    mats = [as_matrix(b) for b in blocks]
    rows = {m.shape[0] for m in mats}
    if len(rows) != 1:
        raise ValueError(f"hstack row mismatch: {[m.shape for m in mats]}")
    return np.hstack(mats)


def vstack(*blocks: ArrayLike) -> np.ndarray:
    """Concatenate blocks top to bottom. Column counts must match."""
    mats = [as_matrix(b) for b in blocks]
    cols = {m.shape[1] for m in mats}
    if len(cols) != 1:
        raise ValueError(f"vstack column mismatch: {[m.shape for m in mats]}")
    return np.vstack(mats)


def block(rows: Iterable[Iterable[ArrayLike]]) -> np.ndarray:
    """Assemble a matrix from a nested list of blocks.

    Each inner iterable is one block row, joined with hstack; the rows are
    then joined with vstack.

    Example:
        >>> block([[eye(2), zeros(2, 1)], [zeros(1, 2), ones(1, 1)]]).shape
        (3, 3)
    """
    return vstack(*[hstack(*row) for row in rows])


def block_diag(*blocks: ArrayLike) -> np.ndarray:
    """Place blocks along the diagonal of an otherwise zero matrix."""
    if not blocks:
        raise ValueError("block_diag requires at least one block")
    return scipy.linalg.block_diag(*[as_matrix(b) for b in blocks])


def kron(a: ArrayLike, b: ArrayLike) -> np.ndarray:
    """Kronecker product of two matrices."""
    return np.kron(as_matrix(a), as_matrix(b))


# ============================================================================
# Products and Inversion
# ============================================================================


def mat_vec(mat: ArrayLike, vec: ArrayLike) -> np.ndarray:
    """Multiply a matrix by a vector, returning a flat vector.

    Args:
        mat: m×n matrix
        vec: Vector with n entries (flat, row or column)

    Returns:
        Flat float64 array with m entries
    """
    m = as_matrix(mat)
    v = np.asarray(vec, dtype=np.float64).ravel()
    if m.shape[1] != v.size:
        raise ValueError(f"mat_vec shape mismatch: {m.shape} @ ({v.size},)")
    return m @ v


def pseudo_inverse(matrix: ArrayLike, epsilon: float) -> np.ndarray:
    """Moore-Penrose pseudo-inverse with an absolute singular value cutoff.

    Singular values less than or equal to epsilon are treated as zero, which
    keeps near-singular matrices (e.g. R + BᵀPB with tiny R) from blowing up.

    Args:
        matrix: m×n matrix to invert
        epsilon: Non-negative singular value cutoff

    Returns:
        n×m pseudo-inverse

    Raises:
        InverseFailedError: If epsilon is negative, the matrix holds
            non-finite entries, the SVD does not converge, or no singular
            value survives the cutoff.
    """
    if epsilon < 0:
        raise InverseFailedError(f"Pseudo-inverse tolerance must be non-negative, got {epsilon}")

    mat = as_matrix(matrix)
    if not np.all(np.isfinite(mat)):
        raise InverseFailedError("Pseudo-inverse input contains non-finite entries")

    try:
        u, s, vt = np.linalg.svd(mat, full_matrices=False)
    except np.linalg.LinAlgError as e:
        raise InverseFailedError(f"SVD did not converge: {e}") from e

    keep = s > epsilon
    if not np.any(keep):
        raise InverseFailedError(
            f"Matrix is singular within tolerance {epsilon} "
            f"(largest singular value {s.max() if s.size else 0.0:.3e})"
        )

    s_inv = np.zeros_like(s)
    s_inv[keep] = 1.0 / s[keep]
    return (vt.T * s_inv) @ u.T


# ============================================================================
# Comparison
# ============================================================================


def _same_shape(a: ArrayLike, b: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    ma, mb = as_matrix(a), as_matrix(b)
    if ma.shape != mb.shape:
        raise ValueError(f"Shape mismatch: {ma.shape} vs {mb.shape}")
    return ma, mb


def max_abs_diff(a: ArrayLike, b: ArrayLike) -> float:
    """Largest absolute entry of a - b."""
    ma, mb = _same_shape(a, b)
    return float(np.max(np.abs(ma - mb)))


def frobenius_norm(a: ArrayLike) -> float:
    """Frobenius norm of a matrix."""
    return float(np.linalg.norm(as_matrix(a), ord="fro"))


def frobenius_diff(a: ArrayLike, b: ArrayLike) -> float:
    """Frobenius norm of a - b."""
    ma, mb = _same_shape(a, b)
    return frobenius_norm(ma - mb)


def approx_equal(a: ArrayLike, b: ArrayLike, tol: float = 1e-6) -> bool:
    """True when the Frobenius norm of a - b is at most tol."""
    return frobenius_diff(a, b) <= tol


# ============================================================================
# Structure Checks
# ============================================================================


def symmetrize(a: ArrayLike) -> np.ndarray:
    """Return 0.5 * (A + Aᵀ)."""
    m = as_matrix(a)
    if m.shape[0] != m.shape[1]:
        raise ValueError(f"Cannot symmetrize non-square matrix {m.shape}")
    return 0.5 * (m + m.T)


def is_symmetric(a: ArrayLike, tol: float = 1e-9) -> bool:
    m = as_matrix(a)
    return m.shape[0] == m.shape[1] and bool(np.allclose(m, m.T, atol=tol))


def is_positive_definite(a: ArrayLike) -> bool:
    """True for symmetric matrices with strictly positive eigenvalues."""
    if not is_symmetric(a):
        return False
    return bool(np.all(np.linalg.eigvalsh(as_matrix(a)) > 0.0))


def is_positive_semidefinite(a: ArrayLike, tol: float = 1e-12) -> bool:
    """True for symmetric matrices with eigenvalues >= -tol."""
    if not is_symmetric(a):
        return False
    return bool(np.all(np.linalg.eigvalsh(as_matrix(a)) >= -tol))


def spectral_radius(a: ArrayLike) -> float:
    """Largest eigenvalue magnitude of a square matrix."""
    m = as_matrix(a)
    if m.shape[0] != m.shape[1]:
        raise ValueError(f"Spectral radius needs a square matrix, got {m.shape}")
    return float(np.max(np.abs(np.linalg.eigvals(m))))
