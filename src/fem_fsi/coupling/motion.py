"""
Solid mesh motion.

The solid mesh is stored in its reference configuration. Geometric queries
against the current (deformed) solid shape are made inside :func:`displaced`,
which moves every vertex by the nodal displacement and restores it on exit.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import numpy as np

from fem_fsi.core.exceptions import CouplingAssertionError
from fem_fsi.core.fields import NodalField
from fem_fsi.core.mesh import MeshModel

logger = logging.getLogger(__name__)


def _displacement_values(mesh: MeshModel, displacement) -> np.ndarray:
    values = displacement.values if isinstance(displacement, NodalField) else displacement
    values = np.asarray(values, dtype=float)
    if values.shape != mesh.coords.shape:
        raise ValueError(
            f"Displacement of shape {values.shape} does not match the "
            f"{mesh.coords.shape} vertices of {mesh.name}"
        )
    return values


def move_mesh(mesh: MeshModel, displacement, forward: bool = True) -> None:
    """
    Move the mesh vertices by a nodal displacement.

    Every vertex referenced by the connectivity is visited exactly once,
    however many elements share it.

    Parameters
    ----------
    mesh : MeshModel
        Mesh to move in place.
    displacement : NodalField or np.ndarray
        Displacement at every node (n_nodes x dim).
    forward : bool, optional
        Add the displacement when True, subtract it otherwise.

    Raises
    ------
    ValueError
        If the displacement is not defined at every node.
    """
    values = _displacement_values(mesh, displacement)
    vertices = mesh.vertices()
    coords = mesh.coords
    if forward:
        coords[vertices] += values[vertices]
    else:
        coords[vertices] -= values[vertices]
    mesh.touch()


@contextmanager
def displaced(mesh: MeshModel, displacement) -> Iterator[MeshModel]:
    """
    Temporarily move a mesh to its displaced configuration.

    The inverse move is applied on every exit path, including exceptions.
    The block holds the mesh geometry exclusively: other threads wait for it
    to finish, while nesting it in the same thread is an error.

    Raises
    ------
    CouplingAssertionError
        If the calling thread is already inside a ``displaced`` block for
        this mesh.
    """
    if mesh.geometry_owned_by_current_thread:
        raise CouplingAssertionError(f"Geometry of {mesh.name} is already displaced")
    values = _displacement_values(mesh, displacement).copy()

    mesh.acquire_geometry()
    try:
        move_mesh(mesh, values, forward=True)
        try:
            yield mesh
        finally:
            move_mesh(mesh, values, forward=False)
    finally:
        mesh.release_geometry()
