"""
Projective geometry core: linear solver, homographies and matrix powers.
"""

from droste.core.geometry import Point, Quad, lerp_point, quad_area
from droste.core.homography import (
    IDENTITY,
    compute_homography,
    find_fixed_point,
    finite_or_identity,
    invert_matrix,
    multiply_matrix,
    transform_point,
    transform_point_safe,
)
from droste.core.linalg import solve_linear_system
from droste.core.matrix_power import matrix_power_2x2
