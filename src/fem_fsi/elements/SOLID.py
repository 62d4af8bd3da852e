"""3D solid reference elements (TETRA4, HEXA8).

Faces are listed with their nodes in cyclic order so that they can be mapped
with TRI3 and QUAD4 respectively. Outward orientation is fixed when the facet
normal is evaluated.
"""

from typing import Tuple

import numpy as np

from fem_fsi.elements.elements import ElementType, ReferenceElement, register_element


@register_element
class TETRA4(ReferenceElement):
    """4-node linear tetrahedron.

    Node ordering:
            3
           /|\\
          / | \\
         /  |  \\
        /   2   \\
       /  .'  `. \\
      0---------1

    Natural coordinates: ξ, η, ζ ∈ [0, 1] with ξ + η + ζ ≤ 1
    """

    element_type = ElementType.tetra
    reference_dim = 3
    node_count = 4
    faces = ((0, 2, 1), (0, 1, 3), (1, 2, 3), (0, 3, 2))
    face_type = ElementType.triangle

    @property
    def integration_points(self) -> Tuple[np.ndarray, np.ndarray]:
        """4-point rule, exact for quadratics (weights sum to 1/6)."""
        a = 0.5854101966249685
        b = 0.1381966011250105
        points = np.array([(b, b, b), (a, b, b), (b, a, b), (b, b, a)])
        weights = np.full(4, 1 / 24)
        return points, weights

    @property
    def reference_nodes(self) -> np.ndarray:
        return np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        """Linear tetrahedral shape functions (volume coordinates)."""
        return np.array([1 - xi[0] - xi[1] - xi[2], xi[0], xi[1], xi[2]])

    def shape_function_derivatives(self, xi: np.ndarray) -> np.ndarray:
        """Constant derivatives for linear tetrahedron."""
        return np.array([
            [-1.0, -1.0, -1.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
        ])

    def inside(self, xi: np.ndarray, tol: float = 1e-10) -> bool:
        return bool(np.all(xi >= -tol) and np.sum(xi) <= 1 + tol)


@register_element
class HEXA8(ReferenceElement):
    """8-node linear hexahedron (brick) element.

    Node ordering:
            7-------6
           /|      /|
          / |     / |
         4-------5  |
         |  3----|--2
         | /     | /
         |/      |/
         0-------1

    Natural coordinates: ξ, η, ζ ∈ [-1, 1]
    """

    element_type = ElementType.hexahedron
    reference_dim = 3
    node_count = 8
    faces = (
        (0, 3, 2, 1),
        (4, 5, 6, 7),
        (0, 1, 5, 4),
        (2, 3, 7, 6),
        (0, 4, 7, 3),
        (1, 2, 6, 5),
    )
    face_type = ElementType.quad

    _SIGNS = np.array([
        (-1, -1, -1),
        (1, -1, -1),
        (1, 1, -1),
        (-1, 1, -1),
        (-1, -1, 1),
        (1, -1, 1),
        (1, 1, 1),
        (-1, 1, 1),
    ], dtype=float)

    @property
    def integration_points(self) -> Tuple[np.ndarray, np.ndarray]:
        """2×2×2 Gauss quadrature."""
        gp = 1 / np.sqrt(3)
        pts_1d = np.array([-gp, gp])

        points = []
        for k in pts_1d:
            for j in pts_1d:
                for i in pts_1d:
                    points.append([i, j, k])

        return np.array(points), np.ones(8)

    @property
    def reference_nodes(self) -> np.ndarray:
        return self._SIGNS.copy()

    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        """Trilinear shape functions N_i = (1 + ξ_i ξ)(1 + η_i η)(1 + ζ_i ζ) / 8."""
        return 0.125 * np.prod(1 + self._SIGNS * np.asarray(xi), axis=1)

    def shape_function_derivatives(self, xi: np.ndarray) -> np.ndarray:
        """Derivatives of trilinear shape functions."""
        factors = 1 + self._SIGNS * np.asarray(xi)
        dN = np.empty((8, 3))
        dN[:, 0] = 0.125 * self._SIGNS[:, 0] * factors[:, 1] * factors[:, 2]
        dN[:, 1] = 0.125 * self._SIGNS[:, 1] * factors[:, 0] * factors[:, 2]
        dN[:, 2] = 0.125 * self._SIGNS[:, 2] * factors[:, 0] * factors[:, 1]
        return dN

    def inside(self, xi: np.ndarray, tol: float = 1e-10) -> bool:
        return bool(np.all(np.abs(xi) <= 1 + tol))
