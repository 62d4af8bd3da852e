"""
Immersed element indicator.

A fluid element is immersed when *all* of its quadrature points lie inside the
current (displaced) shape of the solid. One point outside is enough to
exclude the element.
"""

import logging
import weakref
from typing import Optional

import numpy as np

from fem_fsi.core.exceptions import CouplingAssertionError
from fem_fsi.core.mesh import MeshModel, PointLocator
from fem_fsi.coupling.motion import displaced
from fem_fsi.elements import quadrature_points

logger = logging.getLogger(__name__)


def check_indicator(indicator: np.ndarray, n_elements: int) -> None:
    """Raise CouplingAssertionError unless ``indicator`` is a boolean array
    with one entry per element."""
    if not isinstance(indicator, np.ndarray) or indicator.dtype != np.bool_:
        raise CouplingAssertionError("Indicator must be a boolean numpy array")
    if indicator.shape != (n_elements,):
        raise CouplingAssertionError(
            f"Indicator has shape {indicator.shape}, expected ({n_elements},)"
        )


class IndicatorUpdater:
    """
    Recomputes the immersed element indicator of the fluid mesh.

    Quadrature points of the fluid mesh are computed once per mesh revision
    and reused between steps.
    """

    def __init__(self):
        self._points = None
        self._points_key = None
        self._mesh_ref = None

    def fluid_quadrature_points(self, fluid_mesh: MeshModel) -> np.ndarray:
        """Quadrature points of every fluid element (n_elements x n_q x dim)."""
        key = (fluid_mesh.revision, fluid_mesh.elements_count)
        cached_mesh = self._mesh_ref() if self._mesh_ref is not None else None
        if cached_mesh is not fluid_mesh or self._points_key != key:
            element = fluid_mesh.reference_element
            self._points = np.array([
                quadrature_points(element, fluid_mesh.element_coords(e))
                for e in range(fluid_mesh.elements_count)
            ])
            self._points_key = key
            self._mesh_ref = weakref.ref(fluid_mesh)
        return self._points

    def update(
        self,
        fluid_mesh: MeshModel,
        solid_mesh: MeshModel,
        displacement,
        indicator: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Flag the fluid elements covered by the displaced solid.

        Parameters
        ----------
        fluid_mesh : MeshModel
            Fluid mesh.
        solid_mesh : MeshModel
            Solid mesh in its reference configuration. It is displaced for the
            duration of the call and restored afterwards.
        displacement : NodalField or np.ndarray
            Solid nodal displacement.
        indicator : np.ndarray, optional
            Boolean array written in place.

        Returns
        -------
        np.ndarray
            The boolean indicator, one entry per fluid element.
        """
        n_elements = fluid_mesh.elements_count
        if indicator is None:
            indicator = np.zeros(n_elements, dtype=bool)
        check_indicator(indicator, n_elements)

        points = self.fluid_quadrature_points(fluid_mesh)
        with displaced(solid_mesh, displacement):
            locator = PointLocator(solid_mesh)
            lower, upper = solid_mesh.bounding_boxes()
            pad = locator.tol * max(float(np.ptp(solid_mesh.coords, axis=0).max()), 1.0)
            solid_lower, solid_upper = lower.min(axis=0) - pad, upper.max(axis=0) + pad
            for e in range(n_elements):
                element_points = points[e]
                # Whole element outside the solid bounding box
                if np.any(element_points < solid_lower) or np.any(element_points > solid_upper):
                    indicator[e] = False
                    continue
                indicator[e] = all(locator.contains(q) for q in element_points)

        logger.debug("%d of %d fluid elements immersed", int(indicator.sum()), n_elements)
        return indicator
