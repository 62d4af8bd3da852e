"""
Mesh package for fem_fsi.

This package provides:
- Mesh model (MeshModel): element arena with boundary ids and refinement
- Mesh generators (SquareShapeMesh, DiskMesh, BoxMesh)
- Point location (PointLocator, contains)
- I/O functions for meshio formats and HDF5

Usage
-----
>>> from fem_fsi.core.mesh import SquareShapeMesh, DiskMesh, PointLocator

Creating a fluid box and an immersed disk:

>>> fluid = SquareShapeMesh.create_rectangle(width=1.0, height=1.0, nx=8, ny=8)
>>> solid = DiskMesh(center=(0.5, 0.5), radius=0.2).generate()
>>> PointLocator(solid).contains([0.5, 0.5])
True

Loading and saving meshes:

>>> fluid.save("fluid.h5")
>>> loaded = MeshModel.load("fluid.h5")
"""

from fem_fsi.core.mesh.generators import BoxMesh, DiskMesh, SquareShapeMesh
from fem_fsi.core.mesh.io import load_hdf5, load_mesh, load_meshio, write_hdf5, write_mesh, write_meshio
from fem_fsi.core.mesh.locator import PointLocator, contains
from fem_fsi.core.mesh.model import MeshModel
from fem_fsi.elements import ElementType

__all__ = [
    "ElementType",
    # Model
    "MeshModel",
    # Generators
    "SquareShapeMesh",
    "DiskMesh",
    "BoxMesh",
    # Location
    "PointLocator",
    "contains",
    # I/O
    "write_mesh",
    "write_meshio",
    "write_hdf5",
    "load_mesh",
    "load_meshio",
    "load_hdf5",
]
