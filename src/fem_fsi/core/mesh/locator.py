"""
Point location in unstructured meshes.

A point belongs to the mesh when it lies in the closed region of at least one
element. Candidate elements are pruned with axis-aligned bounding boxes and
confirmed by inverting the isoparametric map of the element.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from fem_fsi.core.exceptions import GeometricQueryFailure
from fem_fsi.core.mesh.model import MeshModel
from fem_fsi.elements import inverse_map

logger = logging.getLogger(__name__)

#: Tolerance of the reference-cell containment test.
CONTAINMENT_TOLERANCE = 1e-10


class PointLocator:
    """
    Locates physical points in a mesh.

    Element bounding boxes are cached and rebuilt automatically when the mesh
    coordinates change (tracked through ``mesh.revision``). Elements are tried
    in index order, so the element returned for a point on a shared face is
    the lowest-indexed one containing it.

    Parameters
    ----------
    mesh : MeshModel
        Mesh to search.
    tol : float, optional
        Tolerance of the reference-cell test.
    """

    def __init__(self, mesh: MeshModel, tol: float = CONTAINMENT_TOLERANCE):
        self.mesh = mesh
        self.tol = tol
        self._revision: Optional[int] = None
        self._lower: Optional[np.ndarray] = None
        self._upper: Optional[np.ndarray] = None

    def _update_boxes(self) -> None:
        if self._revision == self.mesh.revision and self._lower is not None:
            return
        lower, upper = self.mesh.bounding_boxes()
        pad = self.tol * np.maximum(upper - lower, 1.0)
        self._lower = lower - pad
        self._upper = upper + pad
        self._revision = self.mesh.revision

    def candidates(self, point: np.ndarray) -> np.ndarray:
        """Indices of elements whose bounding box holds ``point``."""
        self._update_boxes()
        point = np.asarray(point, dtype=float)
        inside = np.all((self._lower <= point) & (point <= self._upper), axis=1)
        return np.flatnonzero(inside)

    def find(self, point: np.ndarray) -> Optional[Tuple[int, np.ndarray]]:
        """Element and reference coordinates of ``point``, or None."""
        mesh = self.mesh
        element = mesh.reference_element
        with mesh.geometry_access():
            for e in self.candidates(point):
                xi = inverse_map(element, mesh.element_coords(e), point)
                if xi is not None and element.inside(xi, self.tol):
                    return int(e), xi
        return None

    def locate(self, point: np.ndarray) -> Tuple[int, np.ndarray]:
        """Element and reference coordinates of ``point``.

        Raises
        ------
        GeometricQueryFailure
            If no element contains the point.
        """
        found = self.find(point)
        if found is None:
            raise GeometricQueryFailure(point, self.mesh.name)
        return found

    def contains(self, point: np.ndarray) -> bool:
        """Whether ``point`` lies in the closed region of some element."""
        return self.find(point) is not None


def contains(mesh: MeshModel, point: np.ndarray) -> bool:
    """Whether ``point`` lies in the closed region of some element of ``mesh``."""
    return PointLocator(mesh).contains(point)
