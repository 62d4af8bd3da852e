"""
Mesh I/O subpackage.

This package provides functions for reading and writing meshes in meshio
formats (VTU, VTK, MSH, ...) and in the native HDF5 format.
"""

from fem_fsi.core.mesh.io.readers import load_hdf5, load_mesh, load_meshio
from fem_fsi.core.mesh.io.writers import to_meshio, write_hdf5, write_mesh, write_meshio

__all__ = [
    # Writers
    "to_meshio",
    "write_mesh",
    "write_meshio",
    "write_hdf5",
    # Readers
    "load_mesh",
    "load_meshio",
    "load_hdf5",
]
