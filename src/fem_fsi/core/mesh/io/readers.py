"""
Mesh I/O readers module.

This module contains functions for loading meshes from:
- HDF5 files written by :func:`write_hdf5`
- any format meshio can read; gmsh physical tags on facet cells become
  boundary ids
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Tuple

import numpy as np

from fem_fsi.elements import ElementType, get_reference_element

if TYPE_CHECKING:
    from fem_fsi.core.mesh.model import MeshModel

logger = logging.getLogger(__name__)

MESHIO_TYPE_MAP = {
    "triangle": ElementType.triangle,
    "quad": ElementType.quad,
    "tetra": ElementType.tetra,
    "hexahedron": ElementType.hexahedron,
}


def load_mesh(filepath: str, format: str = "auto") -> "MeshModel":
    """
    Load a mesh from disk.

    Parameters
    ----------
    filepath : str
        Path to the mesh file.
    format : str, optional
        File format: "auto", "hdf5" or "meshio". Default is "auto".

    Returns
    -------
    MeshModel
        A new MeshModel instance.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If format is not recognized.
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Mesh file not found: {filepath}")

    if format == "auto":
        format = "hdf5" if path.suffix.lower() in (".h5", ".hdf5") else "meshio"

    if format == "hdf5":
        return load_hdf5(filepath)
    if format == "meshio":
        return load_meshio(filepath)
    raise ValueError(f"Unknown format '{format}'. Use 'hdf5' or 'meshio'.")


def load_meshio(filepath: str, name: str = "") -> "MeshModel":
    """
    Load a mesh using meshio library.

    The cell block of highest dimension is used as the element arena. Facet
    blocks carrying ``gmsh:physical`` data set the boundary ids.
    """
    import meshio

    from fem_fsi.core.mesh.model import MeshModel

    mio = meshio.read(filepath)

    blocks = [block for block in mio.cells if block.type in MESHIO_TYPE_MAP]
    if not blocks:
        raise ValueError(f"No supported cell type in {filepath}")
    element_type = max(
        (MESHIO_TYPE_MAP[block.type] for block in blocks),
        key=lambda t: get_reference_element(t).reference_dim,
    )
    dim = get_reference_element(element_type).reference_dim
    cells = np.vstack([b.data for b in blocks if MESHIO_TYPE_MAP[b.type] is element_type])

    skipped = [b.type for b in mio.cells if MESHIO_TYPE_MAP.get(b.type) is not element_type]
    if skipped:
        logger.debug("Ignoring cell blocks %s in %s", sorted(set(skipped)), filepath)

    points = np.asarray(mio.points, dtype=float)
    if points.shape[1] > dim:
        if not np.allclose(points[:, dim:], 0.0):
            raise ValueError(f"{element_type.name} mesh in {filepath} is not planar")
        points = points[:, :dim]

    mesh = MeshModel(points, cells, element_type, name=name or Path(filepath).stem)

    physical = _facet_physical_tags(mio)
    if physical:
        for element, face in mesh.boundary_facets:
            key = tuple(sorted(int(n) for n in mesh.facet_nodes(element, face)))
            if key in physical:
                mesh.set_boundary_id(element, face, physical[key])

    logger.info("Mesh loaded from %s (%s)", filepath, mesh)
    return mesh


def _facet_physical_tags(mio) -> Dict[Tuple[int, ...], int]:
    tags: Dict[Tuple[int, ...], int] = {}
    physical = mio.cell_data.get("gmsh:physical")
    if physical is None:
        return tags
    for block, values in zip(mio.cells, physical):
        if block.type not in ("line", "triangle", "quad"):
            continue
        for connectivity, value in zip(block.data, values):
            tags[tuple(sorted(int(n) for n in connectivity))] = int(value)
    return tags


def load_hdf5(filepath) -> "MeshModel":
    """Load mesh from HDF5 format."""
    import h5py

    # Import here to avoid circular imports
    from fem_fsi.core.mesh.model import MeshModel

    with h5py.File(filepath, "r") as f:
        coords = f["nodes"]["coords"][:]
        cells = f["elements"]["connectivity"][:]
        element_type = ElementType(int(f.attrs["element_type"]))
        name = f.attrs.get("name", Path(str(filepath)).stem)
        if isinstance(name, bytes):
            name = name.decode()

        facets = f["facets"]["facets"][:]
        tags = f["facets"]["tags"][:]
        facet_tags = {(int(e), int(k)): int(t) for (e, k), t in zip(facets, tags)}

        boundary_names = {key: int(value) for key, value in f["boundary_names"].attrs.items()}

    mesh = MeshModel(
        coords,
        cells,
        element_type,
        facet_tags=facet_tags,
        boundary_names=boundary_names,
        name=str(name),
    )
    logger.info("Mesh loaded from %s (HDF5 format)", filepath)
    return mesh
