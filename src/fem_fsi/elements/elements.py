"""Reference elements and isoparametric mapping.

Every concrete element (LINE2, TRI3, QUAD4, TET4, HEX8) describes its shape
functions on a fixed reference cell, its Gauss rule and its local faces. The
free functions below map between reference and physical coordinates for a
given set of element node coordinates:

    x(ξ) = Σ N_i(ξ) x_i
    J(ξ) = ∂x/∂ξ = Σ x_i ⊗ ∇_ξ N_i(ξ)
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Dict, Optional, Tuple, Type

import numpy as np


class ElementType(IntEnum):
    """Supported cell types.

    Values correspond to VTK cell type constants, names to meshio cell types.
    """

    line = 3
    triangle = 5
    quad = 9
    tetra = 10
    hexahedron = 12


class ReferenceElement(ABC):
    """Base class for reference elements.

    Attributes
    ----------
    element_type : ElementType
        Cell type described by the element.
    reference_dim : int
        Dimension of the reference cell.
    node_count : int
        Number of nodes (all nodes are vertices for the supported elements).
    faces : tuple of tuple of int
        Local node indices of each face, in face-reference node order.
    face_type : ElementType or None
        Cell type of the faces.
    """

    element_type: ElementType
    reference_dim: int = 0
    node_count: int = 0
    faces: Tuple[Tuple[int, ...], ...] = ()
    face_type: Optional[ElementType] = None

    @property
    @abstractmethod
    def integration_points(self) -> Tuple[np.ndarray, np.ndarray]:
        """Gauss points (n_points x reference_dim) and weights (n_points,)."""

    @property
    @abstractmethod
    def reference_nodes(self) -> np.ndarray:
        """Node coordinates on the reference cell (node_count x reference_dim)."""

    @abstractmethod
    def shape_functions(self, xi: np.ndarray) -> np.ndarray:
        """Shape function values at ``xi`` (node_count,)."""

    @abstractmethod
    def shape_function_derivatives(self, xi: np.ndarray) -> np.ndarray:
        """Shape function derivatives at ``xi`` (node_count x reference_dim)."""

    @abstractmethod
    def inside(self, xi: np.ndarray, tol: float = 1e-10) -> bool:
        """Whether ``xi`` lies in the closed reference cell, up to ``tol``."""

    @property
    def reference_centroid(self) -> np.ndarray:
        return self.reference_nodes.mean(axis=0)

    @property
    def n_integration_points(self) -> int:
        return len(self.integration_points[1])

    def __repr__(self):
        return f"<{type(self).__name__} type={self.element_type.name}>"


_REGISTRY: Dict[ElementType, Type[ReferenceElement]] = {}
_INSTANCES: Dict[ElementType, ReferenceElement] = {}


def register_element(cls: Type[ReferenceElement]) -> Type[ReferenceElement]:
    """Class decorator adding an element to the type registry."""
    _REGISTRY[cls.element_type] = cls
    return cls


def get_reference_element(element_type: ElementType) -> ReferenceElement:
    """Return the (shared) reference element for a cell type.

    Raises
    ------
    KeyError
        If no element is registered for ``element_type``.
    """
    element_type = ElementType(element_type)
    if element_type not in _INSTANCES:
        try:
            _INSTANCES[element_type] = _REGISTRY[element_type]()
        except KeyError:
            raise KeyError(f"No reference element registered for '{element_type.name}'")
    return _INSTANCES[element_type]


# =============================================================================
# Isoparametric mapping
# =============================================================================


def map_to_physical(element: ReferenceElement, coords: np.ndarray, xi: np.ndarray) -> np.ndarray:
    """Physical coordinates of the reference point ``xi``."""
    return element.shape_functions(xi) @ coords


def jacobian(element: ReferenceElement, coords: np.ndarray, xi: np.ndarray) -> np.ndarray:
    """Jacobian ∂x/∂ξ (physical_dim x reference_dim)."""
    return coords.T @ element.shape_function_derivatives(xi)


def shape_function_gradients(
    element: ReferenceElement, coords: np.ndarray, xi: np.ndarray
) -> Tuple[np.ndarray, float]:
    """Physical shape function gradients and Jacobian determinant.

    Parameters
    ----------
    element : ReferenceElement
        Reference element of a cell whose reference and physical dimension agree.
    coords : np.ndarray
        Element node coordinates (node_count x dim).
    xi : np.ndarray
        Reference point.

    Returns
    -------
    dN_dx : np.ndarray
        Gradients (node_count x dim).
    det_J : float
        Jacobian determinant.

    Raises
    ------
    ValueError
        If the Jacobian is singular or inverted.
    """
    dN_dxi = element.shape_function_derivatives(xi)
    J = coords.T @ dN_dxi
    det_J = np.linalg.det(J)
    if det_J <= 1e-14:
        raise ValueError(f"Non-positive Jacobian ({det_J:.3e}) at {np.asarray(xi).tolist()}")
    dN_dx = dN_dxi @ np.linalg.inv(J)
    return dN_dx, det_J


def quadrature_points(element: ReferenceElement, coords: np.ndarray) -> np.ndarray:
    """Physical Gauss points of an element (n_points x dim)."""
    points, _ = element.integration_points
    return np.array([map_to_physical(element, coords, xi) for xi in points])


def inverse_map(
    element: ReferenceElement,
    coords: np.ndarray,
    point: np.ndarray,
    max_iterations: int = 25,
    tol: float = 1e-12,
) -> Optional[np.ndarray]:
    """Reference coordinates of a physical point, by Newton iteration.

    The iteration is exact after one step for affine (simplex) elements.

    Returns
    -------
    np.ndarray or None
        The reference point, or None if the map is singular or the iteration
        does not converge. The returned point may lie outside the reference
        cell; use :meth:`ReferenceElement.inside` to test containment.
    """
    point = np.asarray(point, dtype=float)
    xi = element.reference_centroid.copy()
    scale = max(float(np.ptp(coords, axis=0).max()), 1e-300)

    for _ in range(max_iterations):
        residual = point - map_to_physical(element, coords, xi)
        if np.linalg.norm(residual) <= tol * scale:
            return xi
        J = jacobian(element, coords, xi)
        try:
            delta = np.linalg.solve(J, residual)
        except np.linalg.LinAlgError:
            return None
        xi = xi + delta
        # Far outside the cell; the point cannot belong to it.
        if np.max(np.abs(xi)) > 1e3:
            return None
        if np.linalg.norm(delta) <= tol:
            return xi

    residual = point - map_to_physical(element, coords, xi)
    if np.linalg.norm(residual) <= 1e3 * tol * scale:
        return xi
    return None


def facet_quadrature(
    element: ReferenceElement, coords: np.ndarray, face: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Gauss points, outward unit normals and weights on an element face.

    Parameters
    ----------
    element : ReferenceElement
        Reference element of the cell.
    coords : np.ndarray
        Cell node coordinates (node_count x dim).
    face : int
        Local face index.

    Returns
    -------
    points : np.ndarray
        Physical face quadrature points (n_points x dim).
    normals : np.ndarray
        Outward unit normals at the points (n_points x dim).
    JxW : np.ndarray
        Surface Jacobian times weight (n_points,).
    """
    face_element = get_reference_element(element.face_type)
    face_coords = coords[list(element.faces[face])]
    dim = coords.shape[1]
    ref_points, weights = face_element.integration_points
    cell_center = coords.mean(axis=0)

    points = np.zeros((len(weights), dim))
    normals = np.zeros((len(weights), dim))
    JxW = np.zeros(len(weights))
    for q, (s, w) in enumerate(zip(ref_points, weights)):
        T = jacobian(face_element, face_coords, s)
        if dim == 2:
            n = np.array([T[1, 0], -T[0, 0]])
        else:
            n = np.cross(T[:, 0], T[:, 1])
        area = np.linalg.norm(n)
        if area <= 1e-300:
            raise ValueError(f"Degenerate face {face} of element")
        points[q] = map_to_physical(face_element, face_coords, s)
        n = n / area
        if np.dot(n, points[q] - cell_center) < 0:
            n = -n
        normals[q] = n
        JxW[q] = area * w
    return points, normals, JxW


# =============================================================================
# Vector field operators
# =============================================================================


def strain_displacement_matrix(dN_dx: np.ndarray) -> np.ndarray:
    """Strain-displacement matrix B for interleaved nodal DOFs.

    Strain components (Voigt, engineering shear):

        2D: [ε_xx, ε_yy, γ_xy]ᵀ = B u
        3D: [ε_xx, ε_yy, ε_zz, γ_xy, γ_yz, γ_zx]ᵀ = B u

    Parameters
    ----------
    dN_dx : np.ndarray
        Physical shape function gradients (node_count x dim).

    Returns
    -------
    np.ndarray
        B matrix (3 x 2n in 2D, 6 x 3n in 3D).
    """
    n, dim = dN_dx.shape
    if dim == 2:
        B = np.zeros((3, 2 * n))
        B[0, 0::2] = dN_dx[:, 0]  # ε_xx
        B[1, 1::2] = dN_dx[:, 1]  # ε_yy
        B[2, 0::2] = dN_dx[:, 1]  # γ_xy
        B[2, 1::2] = dN_dx[:, 0]
        return B

    B = np.zeros((6, 3 * n))
    B[0, 0::3] = dN_dx[:, 0]  # ε_xx
    B[1, 1::3] = dN_dx[:, 1]  # ε_yy
    B[2, 2::3] = dN_dx[:, 2]  # ε_zz
    B[3, 0::3] = dN_dx[:, 1]  # γ_xy
    B[3, 1::3] = dN_dx[:, 0]
    B[4, 1::3] = dN_dx[:, 2]  # γ_yz
    B[4, 2::3] = dN_dx[:, 1]
    B[5, 0::3] = dN_dx[:, 2]  # γ_zx
    B[5, 2::3] = dN_dx[:, 0]
    return B


def shape_function_matrix(N: np.ndarray, dim: int) -> np.ndarray:
    """Vector shape function matrix (dim x dim*n) for interleaved DOFs."""
    N_mat = np.zeros((dim, dim * len(N)))
    for i in range(dim):
        N_mat[i, i::dim] = N
    return N_mat


def voigt_to_tensor(voigt: np.ndarray) -> np.ndarray:
    """Symmetric tensor from Voigt stress components."""
    if len(voigt) == 3:
        sxx, syy, sxy = voigt
        return np.array([[sxx, sxy], [sxy, syy]])
    sxx, syy, szz, sxy, syz, szx = voigt
    return np.array([[sxx, sxy, szx], [sxy, syy, syz], [szx, syz, szz]])
