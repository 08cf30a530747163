"""
Dense linear solver for the small systems behind homography fitting.
"""

from typing import Sequence

# Largest pivot below this is treated as a singular system
PIVOT_TOLERANCE = 1e-10


def solve_linear_system(
    a: Sequence[Sequence[float]],
    b: Sequence[float],
) -> list[float]:
    """
    Solve A·x = b by Gaussian elimination with partial pivoting.

    The inputs are copied, never modified. A numerically singular matrix
    does not raise: the caller receives an all-zero vector and decides
    what that means.

    Args:
        a: n×n coefficient matrix.
        b: Length-n right-hand side.

    Returns:
        Solution vector as a list of floats.
    """
    n = len(b)
    m = [[float(v) for v in row] for row in a]
    rhs = [float(v) for v in b]

    for i in range(n):
        # Pick the largest remaining entry in column i
        max_row = max(range(i, n), key=lambda k: abs(m[k][i]))
        if abs(m[max_row][i]) < PIVOT_TOLERANCE:
            return [0.0] * n

        if max_row != i:
            m[i], m[max_row] = m[max_row], m[i]
            rhs[i], rhs[max_row] = rhs[max_row], rhs[i]

        pivot = m[i][i]
        for k in range(i + 1, n):
            factor = -m[k][i] / pivot
            if factor == 0.0:
                continue
            row_k = m[k]
            row_i = m[i]
            row_k[i] = 0.0
            for j in range(i + 1, n):
                row_k[j] += factor * row_i[j]
            rhs[k] += factor * rhs[i]

    x = [0.0] * n
    for i in range(n - 1, -1, -1):
        acc = sum(m[i][j] * x[j] for j in range(i + 1, n))
        x[i] = (rhs[i] - acc) / m[i][i]
    return x
