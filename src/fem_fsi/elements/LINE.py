"""Two-node line element, used as the face of planar cells.

Natural coordinate: ξ ∈ [-1, 1]

    0-------1
"""

from typing import Tuple

import numpy as np

from fem_fsi.elements.elements import ElementType, ReferenceElement, register_element


@register_element
class LINE2(ReferenceElement):
    """2-node linear line element."""

    element_type = ElementType.line
    reference_dim = 1
    node_count = 2

    @property
    def integration_points(self) -> Tuple[np.ndarray, np.ndarray]:
        """2-point Gauss rule."""
        gp = 1 / np.sqrt(3)
        return np.array([[-gp], [gp]]), np.ones(2)

    @property
    def reference_nodes(self) -> np.ndarray:
        return np.array([[-1.0], [1.0]])

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        s = xi[0]
        return 0.5 * np.array([1 - s, 1 + s])

    def shape_function_derivatives(self, xi: np.ndarray) -> np.ndarray:
        return np.array([[-0.5], [0.5]])

    def inside(self, xi: np.ndarray, tol: float = 1e-10) -> bool:
        return abs(xi[0]) <= 1 + tol
