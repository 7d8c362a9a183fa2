"""Dense linear solver for MNA systems.

Partial-pivoting Gaussian elimination with back substitution. MNA matrices
from this simulator are small (tens of unknowns), dense and unsymmetric, so a
plain row-reduction is both adequate and predictable: it never retries, and a
missing pivot is reported as a ``SingularMatrixError`` identifying the
offending unknown instead of silently producing inf/nan.

The routine is dtype-generic: the same code solves the real DC/transient
systems and the complex small-signal systems of the frequency sweep.
"""

import numpy as np
from jaxtyping import Shaped

from circuit_playground.config import MAX_MATRIX_SIZE, PIVOT_TOL
from circuit_playground.errors import SingularMatrixError


def solve_dense(
    A: Shaped[np.ndarray, "n n"],
    b: Shaped[np.ndarray, " n"],
    pivot_tol: float = PIVOT_TOL,
) -> Shaped[np.ndarray, " n"]:
    """Solve A @ x = b by partial-pivot Gaussian elimination.

    Args:
        A: Square system matrix (real or complex). Not modified.
        b: Right-hand side vector. Not modified.
        pivot_tol: Smallest pivot magnitude treated as non-zero

    Returns:
        Solution vector x with the common dtype of A and b

    Raises:
        SingularMatrixError: If a column has no pivot above pivot_tol
        ValueError: If shapes disagree or the system exceeds MAX_MATRIX_SIZE
    """
    dtype = np.result_type(A, b, np.float64)
    A = np.array(A, dtype=dtype, copy=True)
    b = np.array(b, dtype=dtype, copy=True)

    n = b.shape[0]
    if A.shape != (n, n):
        raise ValueError(f"Matrix shape {A.shape} does not match vector length {n}")
    if n > MAX_MATRIX_SIZE:
        raise ValueError(f"System size {n} exceeds MAX_MATRIX_SIZE={MAX_MATRIX_SIZE}")

    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(A[col:, col])))
        if abs(A[pivot_row, col]) < pivot_tol:
            raise SingularMatrixError(col)

        if pivot_row != col:
            A[[col, pivot_row]] = A[[pivot_row, col]]
            b[[col, pivot_row]] = b[[pivot_row, col]]

        # Eliminate everything below the pivot in one rank-1 update
        factors = A[col + 1 :, col] / A[col, col]
        A[col + 1 :, col:] -= np.outer(factors, A[col, col:])
        b[col + 1 :] -= factors * b[col]

    x = np.zeros(n, dtype=dtype)
    for row in range(n - 1, -1, -1):
        x[row] = (b[row] - A[row, row + 1 :] @ x[row + 1 :]) / A[row, row]
    return x
