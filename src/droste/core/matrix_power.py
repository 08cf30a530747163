"""
Real fractional powers of 2x2 linear maps.

Used to move a linear map continuously in time while keeping its
geometric character: pure stretch stays a stretch, a rotation+scale stays a
spiral. All three eigenvalue regimes return the identity at t=0 and the
original matrix at t=1.
"""

import math

Matrix2 = tuple[float, float, float, float]

EPSILON = 1e-9

_IDENTITY2: Matrix2 = (1.0, 0.0, 0.0, 1.0)


def _real_pow(base: float, t: float) -> float:
    """``base ** t`` restricted to real results (NaN where none exists)."""
    if base < 0.0 and not float(t).is_integer():
        return math.nan
    if base == 0.0 and t < 0.0:
        return math.inf
    return math.pow(base, t)


def matrix_power_2x2(a: float, b: float, c: float, d: float, t: float) -> Matrix2:
    """
    Compute ``M ** t`` for ``M = [[a, b], [c, d]]``.

    Args:
        a, b, c, d: Matrix entries, row-major.
        t: Real exponent.

    Returns:
        ``(a', b', c', d')`` of the power. Degenerate spirals and nilpotent
        matrices give the identity; negative real eigenvalues with a
        fractional ``t`` give NaN entries.
    """
    trace = a + d
    det = a * d - b * c
    delta = trace * trace - 4.0 * det

    if delta < -EPSILON:
        # Complex pair r·e^(±iθ): the spiral case
        r = math.sqrt(det)
        theta = math.acos(max(-1.0, min(1.0, trace / (2.0 * r))))
        sin_theta = math.sin(theta)
        if abs(sin_theta) < EPSILON:
            return _IDENTITY2

        rt = math.pow(r, t)
        c1 = math.sin((1.0 - t) * theta) / sin_theta
        c2 = math.sin(t * theta) / sin_theta
        f1 = rt * c1
        f2 = rt * c2 / r
        return (f1 + f2 * a, f2 * b, f2 * c, f1 + f2 * d)

    sqrt_delta = math.sqrt(max(delta, 0.0))
    l1 = (trace - sqrt_delta) / 2.0
    l2 = (trace + sqrt_delta) / 2.0

    if abs(l1 - l2) < EPSILON:
        # Repeated eigenvalue: Jordan-block interpolation
        if l1 == 0.0:
            return _IDENTITY2
        lt = _real_pow(l1, t)
        inv_l1 = 1.0 / l1
        ka = a * inv_l1 - 1.0
        kb = b * inv_l1
        kc = c * inv_l1
        kd = d * inv_l1 - 1.0
        return (
            lt * (1.0 + t * ka),
            lt * t * kb,
            lt * t * kc,
            lt * (1.0 + t * kd),
        )

    l1t = _real_pow(l1, t)
    l2t = _real_pow(l2, t)
    inv_diff = 1.0 / (l2 - l1)
    c1 = (l1t * l2 - l2t * l1) * inv_diff
    c2 = (l2t - l1t) * inv_diff
    return (c1 + c2 * a, c2 * b, c2 * c, c1 + c2 * d)
