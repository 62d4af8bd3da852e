"""
Mesh generators module.

Structured meshes built directly from numpy arrays:
- SquareShapeMesh: 2D rectangles of quadrilaterals or triangles
- DiskMesh: 2D disks of quadrilaterals (typical immersed solid)
- BoxMesh: 3D boxes of hexahedra

Boundary ids are assigned ("colorized") from facet positions.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from fem_fsi.core.mesh.model import MeshModel
from fem_fsi.elements import ElementType


class SquareShapeMesh:
    """
    Generates structured 2D rectangle meshes.

    Elements are numbered row by row from the lower-left corner: element
    ``j * nx + i`` covers column ``i`` and row ``j``. With ``triangular`` each
    quadrilateral is split in two along its (lower-left, upper-right) diagonal.

    Boundary ids: 0 left, 1 right, 2 bottom, 3 top.

    Attributes
    ----------
    width : float
        Domain width (x-direction)
    height : float
        Domain height (y-direction)
    nx : int
        Number of divisions in x-direction
    ny : int
        Number of divisions in y-direction
    origin : sequence of float
        Lower-left corner
    triangular : bool
        Use triangular elements
    """

    BOUNDARY_NAMES = {"left": 0, "right": 1, "bottom": 2, "top": 3}

    def __init__(
        self,
        width: float,
        height: float,
        nx: int,
        ny: int,
        origin: Sequence[float] = (0.0, 0.0),
        triangular: bool = False,
    ):
        if nx < 1 or ny < 1:
            raise ValueError(f"Number of divisions must be positive: nx={nx}, ny={ny}")
        if width <= 0 or height <= 0:
            raise ValueError(f"Dimensions must be positive: {width} x {height}")
        self.width = width
        self.height = height
        self.nx = nx
        self.ny = ny
        self.origin = tuple(float(x) for x in origin)
        self.triangular = triangular

    @classmethod
    def create_rectangle(cls, width: float, height: float, nx: int, ny: int, **kwargs) -> MeshModel:
        """Shortcut for ``SquareShapeMesh(...).generate()``."""
        return cls(width, height, nx, ny, **kwargs).generate()

    def generate(self, name: str = "rectangle") -> MeshModel:
        """Generates and returns a MeshModel with the structured mesh"""
        x0, y0 = self.origin
        xs = np.linspace(x0, x0 + self.width, self.nx + 1)
        ys = np.linspace(y0, y0 + self.height, self.ny + 1)
        X, Y = np.meshgrid(xs, ys)
        coords = np.column_stack((X.ravel(), Y.ravel()))

        def node(i, j):
            return j * (self.nx + 1) + i

        cells = []
        for j in range(self.ny):
            for i in range(self.nx):
                n0, n1 = node(i, j), node(i + 1, j)
                n2, n3 = node(i + 1, j + 1), node(i, j + 1)
                if self.triangular:
                    cells.append([n0, n1, n2])
                    cells.append([n0, n2, n3])
                else:
                    cells.append([n0, n1, n2, n3])

        element_type = ElementType.triangle if self.triangular else ElementType.quad
        mesh = MeshModel(
            coords, cells, element_type, boundary_names=self.BOUNDARY_NAMES, name=name
        )
        mesh.colorize(self._classify)
        return mesh

    def _classify(self, center: np.ndarray) -> int:
        x0, y0 = self.origin
        tol = 1e-10 * max(self.width, self.height)
        if abs(center[0] - x0) < tol:
            return 0
        if abs(center[0] - (x0 + self.width)) < tol:
            return 1
        if abs(center[1] - y0) < tol:
            return 2
        return 3


class DiskMesh:
    """
    Generates a structured quadrilateral mesh of a disk.

    A ``2n x 2n`` grid on the square ``[-1, 1]^2`` is mapped onto the disk by
    the elliptical square-to-disk map

        x = u sqrt(1 - v^2 / 2),  y = v sqrt(1 - u^2 / 2)

    which maps the square boundary onto the circle. All boundary facets get
    boundary id 0.

    Attributes
    ----------
    center : sequence of float
        Disk center
    radius : float
        Disk radius
    divisions : int
        Number of element layers from the center to the boundary
    """

    def __init__(self, center: Sequence[float], radius: float, divisions: int = 4):
        if radius <= 0:
            raise ValueError(f"Radius must be positive: {radius}")
        if divisions < 1:
            raise ValueError(f"Number of divisions must be positive: {divisions}")
        self.center = np.asarray(center, dtype=float)
        self.radius = float(radius)
        self.divisions = int(divisions)

    def generate(self, name: str = "disk") -> MeshModel:
        n = 2 * self.divisions
        square = SquareShapeMesh(2.0, 2.0, n, n, origin=(-1.0, -1.0)).generate(name)
        u, v = square.coords[:, 0], square.coords[:, 1]
        disk = np.column_stack((u * np.sqrt(1 - 0.5 * v**2), v * np.sqrt(1 - 0.5 * u**2)))
        coords = self.center + self.radius * disk
        return MeshModel(
            coords, square.cells, ElementType.quad, boundary_names={"boundary": 0}, name=name
        )


class BoxMesh:
    """
    Generates structured hexahedral meshes of an axis-aligned box.

    Boundary ids: 0 x-min, 1 x-max, 2 y-min, 3 y-max, 4 z-min, 5 z-max.
    """

    BOUNDARY_NAMES = {"left": 0, "right": 1, "front": 2, "back": 3, "bottom": 4, "top": 5}

    def __init__(
        self,
        lengths: Sequence[float],
        divisions: Sequence[int],
        origin: Sequence[float] = (0.0, 0.0, 0.0),
    ):
        self.lengths = np.asarray(lengths, dtype=float)
        self.divisions = tuple(int(n) for n in divisions)
        self.origin = np.asarray(origin, dtype=float)
        if self.lengths.shape != (3,) or len(self.divisions) != 3:
            raise ValueError("BoxMesh needs three lengths and three divisions")
        if np.any(self.lengths <= 0) or min(self.divisions) < 1:
            raise ValueError(f"Invalid box {self.lengths.tolist()} / {self.divisions}")

    def generate(self, name: str = "box") -> MeshModel:
        nx, ny, nz = self.divisions
        axes = [
            np.linspace(o, o + length, n + 1)
            for o, length, n in zip(self.origin, self.lengths, self.divisions)
        ]
        Z, Y, X = np.meshgrid(axes[2], axes[1], axes[0], indexing="ij")
        coords = np.column_stack((X.ravel(), Y.ravel(), Z.ravel()))

        def node(i, j, k):
            return (k * (ny + 1) + j) * (nx + 1) + i

        cells = []
        for k in range(nz):
            for j in range(ny):
                for i in range(nx):
                    cells.append([
                        node(i, j, k),
                        node(i + 1, j, k),
                        node(i + 1, j + 1, k),
                        node(i, j + 1, k),
                        node(i, j, k + 1),
                        node(i + 1, j, k + 1),
                        node(i + 1, j + 1, k + 1),
                        node(i, j + 1, k + 1),
                    ])

        mesh = MeshModel(
            coords, cells, ElementType.hexahedron, boundary_names=self.BOUNDARY_NAMES, name=name
        )
        mesh.colorize(self._classify)
        return mesh

    def _classify(self, center: np.ndarray) -> int:
        tol = 1e-10 * self.lengths.max()
        for axis in range(3):
            if abs(center[axis] - self.origin[axis]) < tol:
                return 2 * axis
            if abs(center[axis] - (self.origin[axis] + self.lengths[axis])) < tol:
                return 2 * axis + 1
        raise ValueError(f"Facet center {center} is not on the box boundary")
