from .elements import (
    ElementType,
    ReferenceElement,
    facet_quadrature,
    get_reference_element,
    inverse_map,
    jacobian,
    map_to_physical,
    quadrature_points,
    shape_function_gradients,
    shape_function_matrix,
    strain_displacement_matrix,
    voigt_to_tensor,
)
from .LINE import LINE2
from .QUAD import QUAD4
from .SOLID import HEXA8, TETRA4
from .TRI import TRI3

__all__ = [
    "ElementType",
    "ReferenceElement",
    "facet_quadrature",
    "get_reference_element",
    "inverse_map",
    "jacobian",
    "map_to_physical",
    "quadrature_points",
    "shape_function_gradients",
    "shape_function_matrix",
    "strain_displacement_matrix",
    "voigt_to_tensor",
    "LINE2",
    "TRI3",
    "QUAD4",
    "TETRA4",
    "HEXA8",
]
