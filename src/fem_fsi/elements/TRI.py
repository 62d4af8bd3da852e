"""Three-node linear triangle (constant strain triangle).

Node ordering:

    2
    |`.
    |  `.
    0----1

Natural coordinates: ξ, η ∈ [0, 1] with ξ + η ≤ 1
"""

from typing import Tuple

import numpy as np

from fem_fsi.elements.elements import ElementType, ReferenceElement, register_element


@register_element
class TRI3(ReferenceElement):
    """3-node linear triangle."""

    element_type = ElementType.triangle
    reference_dim = 2
    node_count = 3
    faces = ((0, 1), (1, 2), (2, 0))
    face_type = ElementType.line

    @property
    def integration_points(self) -> Tuple[np.ndarray, np.ndarray]:
        """3-point interior rule, exact for quadratics.

        Weights sum to 1/2, the area of the reference triangle.
        """
        points = np.array([(1 / 6, 1 / 6), (2 / 3, 1 / 6), (1 / 6, 2 / 3)])
        weights = np.full(3, 1 / 6)
        return points, weights

    @property
    def reference_nodes(self) -> np.ndarray:
        return np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        """Area coordinates: N0 = 1 - ξ - η, N1 = ξ, N2 = η."""
        return np.array([1 - xi[0] - xi[1], xi[0], xi[1]])

    def shape_function_derivatives(self, xi: np.ndarray) -> np.ndarray:
        return np.array([[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]])

    def inside(self, xi: np.ndarray, tol: float = 1e-10) -> bool:
        return bool(xi[0] >= -tol and xi[1] >= -tol and xi[0] + xi[1] <= 1 + tol)
