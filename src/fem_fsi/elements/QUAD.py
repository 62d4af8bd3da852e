"""Four-node bilinear quadrilateral.

Node ordering:

    3-------2
    |       |
    |       |
    0-------1

Natural coordinates: ξ, η ∈ [-1, 1]
"""

from typing import Tuple

import numpy as np

from fem_fsi.elements.elements import ElementType, ReferenceElement, register_element


@register_element
class QUAD4(ReferenceElement):
    """4-node bilinear quadrilateral."""

    element_type = ElementType.quad
    reference_dim = 2
    node_count = 4
    faces = ((0, 1), (1, 2), (2, 3), (3, 0))
    face_type = ElementType.line

    @property
    def integration_points(self) -> Tuple[np.ndarray, np.ndarray]:
        """Gauss quadrature points and weights

        2x2 integration for bilinear elements

        Returns
        -------
        points : np.ndarray
            Array of (xi, eta) coordinates (n_points x 2)
        weights : np.ndarray
            Integration weights (n_points,)
        """
        gp = 1 / np.sqrt(3)
        points = np.array([(-gp, -gp), (gp, -gp), (gp, gp), (-gp, gp)])
        weights = np.ones(4)
        return points, weights

    @property
    def reference_nodes(self) -> np.ndarray:
        return np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        """Bilinear shape functions

        N0 = 0.25(1 - xi)(1 - eta)
        N1 = 0.25(1 + xi)(1 - eta)
        N2 = 0.25(1 + xi)(1 + eta)
        N3 = 0.25(1 - xi)(1 + eta)
        """
        s, t = xi
        return 0.25 * np.array([
            (1 - s) * (1 - t),
            (1 + s) * (1 - t),
            (1 + s) * (1 + t),
            (1 - s) * (1 + t),
        ])

    def shape_function_derivatives(self, xi: np.ndarray) -> np.ndarray:
        """Columns hold derivatives with respect to xi and eta."""
        s, t = xi
        dN_dxi = 0.25 * np.array([-(1 - t), (1 - t), (1 + t), -(1 + t)])
        dN_deta = 0.25 * np.array([-(1 - s), -(1 + s), (1 + s), (1 - s)])
        return np.column_stack((dN_dxi, dN_deta))

    def inside(self, xi: np.ndarray, tol: float = 1e-10) -> bool:
        return bool(np.all(np.abs(xi) <= 1 + tol))
