"""
Mesh I/O writers module.

This module contains functions for exporting meshes:
- meshio formats (VTK, VTU, XDMF, etc.), optionally with point and cell data
- HDF5 format, including boundary ids and boundary names
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

import meshio
import numpy as np

if TYPE_CHECKING:
    from fem_fsi.core.mesh.model import MeshModel

logger = logging.getLogger(__name__)

MESH_FORMAT_VERSION = "1.0"


def write_mesh(mesh: "MeshModel", filename: str, **kwargs) -> None:
    """
    Write the mesh to a file.

    Dispatches to the appropriate writer based on file extension.

    Parameters
    ----------
    mesh : MeshModel
        The mesh to write.
    filename : str
        The path to the output file. Format is inferred from extension.
    **kwargs
        Additional arguments passed to the underlying writer.
    """
    if mesh.elements_count == 0:
        raise ValueError("Mesh has no elements.")

    ext = Path(filename).suffix.lower()
    if ext in (".h5", ".hdf5"):
        write_hdf5(mesh, filename, **kwargs)
    else:
        write_meshio(mesh, filename, **kwargs)


# ============================================================================
# Meshio writer (VTK, VTU, XDMF, etc.)
# ============================================================================


def to_meshio(
    mesh: "MeshModel",
    point_data: Optional[Dict[str, np.ndarray]] = None,
    cell_data: Optional[Dict[str, np.ndarray]] = None,
) -> meshio.Mesh:
    """Build a :class:`meshio.Mesh` with optional nodal and per-cell data.

    Planar meshes are written with a zero z coordinate, as VTK expects.
    """
    points = mesh.coords
    if mesh.dim == 2:
        points = np.column_stack((points, np.zeros(len(points))))

    return meshio.Mesh(
        points=points,
        cells=[(mesh.element_type.name, mesh.cells)],
        point_data=dict(point_data or {}),
        cell_data={name: [np.asarray(values)] for name, values in (cell_data or {}).items()},
    )


def write_meshio(
    mesh: "MeshModel",
    filename: str,
    point_data: Optional[Dict[str, np.ndarray]] = None,
    cell_data: Optional[Dict[str, np.ndarray]] = None,
    **kwargs,
) -> None:
    """Write mesh using meshio library."""
    meshio.write(filename, to_meshio(mesh, point_data, cell_data), **kwargs)
    logger.debug("Mesh written to %s", filename)


# ============================================================================
# HDF5 writer
# ============================================================================


def write_hdf5(mesh: "MeshModel", filepath, compression: str = "gzip") -> None:
    """Write mesh to HDF5 format."""
    import h5py

    comp_opts = {"compression": compression} if compression else {}

    with h5py.File(filepath, "w") as f:
        # Metadata
        f.attrs["mesh_format_version"] = MESH_FORMAT_VERSION
        f.attrs["name"] = mesh.name
        f.attrs["element_type"] = int(mesh.element_type)
        f.attrs["node_count"] = mesh.node_count
        f.attrs["element_count"] = mesh.elements_count

        nodes_grp = f.create_group("nodes")
        nodes_grp.create_dataset("coords", data=mesh.coords, **comp_opts)

        elements_grp = f.create_group("elements")
        elements_grp.create_dataset("connectivity", data=mesh.cells, **comp_opts)

        # Boundary ids, only for tagged facets
        tags = {facet: tag for facet, tag in mesh.facet_tags.items() if tag != 0}
        facets_grp = f.create_group("facets")
        facets_grp.create_dataset(
            "facets", data=np.array(list(tags.keys()), dtype=np.int64).reshape(-1, 2)
        )
        facets_grp.create_dataset("tags", data=np.array(list(tags.values()), dtype=np.int64))

        names_grp = f.create_group("boundary_names")
        for name, boundary_id in mesh.boundary_names.items():
            names_grp.attrs[name] = int(boundary_id)

    logger.info("Mesh saved to %s (HDF5 format)", filepath)
