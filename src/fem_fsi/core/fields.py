"""
Finite element fields over a MeshModel.

- NodalField: continuous, one value set per mesh node, interpolated with the
  element shape functions.
- CellField: piecewise constant per element (DG0); its gradient is zero.
- ComponentTensorField: dim x dim grid of scalar CellFields, one per tensor
  component, as used for recovered stresses.

Values are evaluated on the *current* mesh coordinates, so a field on a
displaced mesh is sampled in the displaced configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from fem_fsi.core.mesh.locator import PointLocator
from fem_fsi.core.mesh.model import MeshModel
from fem_fsi.elements import shape_function_gradients


class NodalField:
    """
    Continuous field with ``n_components`` values per node.

    Parameters
    ----------
    mesh : MeshModel
        Supporting mesh.
    n_components : int, optional
        Number of components (1 for scalars, ``mesh.dim`` for vectors).
    values : np.ndarray, optional
        Initial nodal values (n_nodes x n_components). Zero by default.
    name : str, optional
        Field name used for output.
    """

    def __init__(
        self,
        mesh: MeshModel,
        n_components: int = 1,
        values: Optional[np.ndarray] = None,
        name: str = "",
    ):
        self.mesh = mesh
        self.n_components = n_components
        self.name = name
        if values is None:
            self.values = np.zeros((mesh.node_count, n_components))
        else:
            self.values = np.array(values, dtype=float).reshape(mesh.node_count, n_components)

    def value(self, element: int, xi: np.ndarray) -> np.ndarray:
        """Field value at reference point ``xi`` of ``element`` (n_components,)."""
        N = self.mesh.reference_element.shape_functions(xi)
        return N @ self.values[self.mesh.cells[element]]

    def gradient(self, element: int, xi: np.ndarray) -> np.ndarray:
        """Physical gradient ``grad[i, j] = d(u_i)/d(x_j)`` (n_components x dim)."""
        mesh = self.mesh
        dN_dx, _ = shape_function_gradients(
            mesh.reference_element, mesh.element_coords(element), xi
        )
        return self.values[mesh.cells[element]].T @ dN_dx

    def value_at(self, point: np.ndarray, locator: Optional[PointLocator] = None) -> np.ndarray:
        """Field value at a physical point.

        Raises
        ------
        GeometricQueryFailure
            If the point is not in the mesh.
        """
        locator = locator or PointLocator(self.mesh)
        with self.mesh.geometry_access():
            element, xi = locator.locate(point)
            return self.value(element, xi)

    def gradient_at(self, point: np.ndarray, locator: Optional[PointLocator] = None) -> np.ndarray:
        locator = locator or PointLocator(self.mesh)
        with self.mesh.geometry_access():
            element, xi = locator.locate(point)
            return self.gradient(element, xi)

    @property
    def flat(self) -> np.ndarray:
        """Values as a degree-of-freedom vector, components interleaved per node."""
        return self.values.reshape(-1)

    def set_flat(self, vector: np.ndarray) -> None:
        self.values = np.asarray(vector, dtype=float).reshape(self.mesh.node_count, self.n_components)

    def zero(self) -> None:
        self.values[:] = 0.0

    def copy(self) -> "NodalField":
        return NodalField(self.mesh, self.n_components, self.values.copy(), self.name)

    def __repr__(self) -> str:
        return f"<NodalField '{self.name}' components={self.n_components} nodes={len(self.values)}>"


class CellField:
    """Piecewise constant (DG0) scalar field, one value per element."""

    def __init__(self, mesh: MeshModel, values: Optional[np.ndarray] = None, name: str = ""):
        self.mesh = mesh
        self.name = name
        if values is None:
            self.values = np.zeros(mesh.elements_count)
        else:
            self.values = np.array(values, dtype=float).reshape(mesh.elements_count)

    def value(self, element: int, xi: np.ndarray = None) -> float:
        return float(self.values[element])

    def gradient(self, element: int, xi: np.ndarray = None) -> np.ndarray:
        return np.zeros(self.mesh.dim)

    def value_at(self, point: np.ndarray, locator: Optional[PointLocator] = None) -> float:
        locator = locator or PointLocator(self.mesh)
        element, _ = locator.locate(point)
        return self.value(element)

    def zero(self) -> None:
        self.values[:] = 0.0

    def __repr__(self) -> str:
        return f"<CellField '{self.name}' elements={len(self.values)}>"


class ComponentTensorField:
    """
    Rank-2 tensor stored as ``dim x dim`` independent scalar CellFields.

    ``components[i][j]`` holds the (i, j) tensor component.
    """

    def __init__(self, mesh: MeshModel, name: str = ""):
        self.mesh = mesh
        self.name = name
        dim = mesh.dim
        self.components: List[List[CellField]] = [
            [CellField(mesh, name=f"{name}_{i}{j}") for j in range(dim)] for i in range(dim)
        ]

    @property
    def dim(self) -> int:
        return len(self.components)

    def value(self, element: int, xi: np.ndarray = None) -> np.ndarray:
        """Tensor value on ``element`` (dim x dim)."""
        return np.array([[c.value(element) for c in row] for row in self.components])

    def value_at(self, point: np.ndarray, locator: Optional[PointLocator] = None) -> np.ndarray:
        locator = locator or PointLocator(self.mesh)
        element, _ = locator.locate(point)
        return self.value(element)

    def as_array(self) -> np.ndarray:
        """All element tensors (n_elements x dim x dim)."""
        return np.stack(
            [np.stack([c.values for c in row], axis=-1) for row in self.components], axis=-2
        )

    def set_from_array(self, tensors: np.ndarray) -> None:
        tensors = np.asarray(tensors, dtype=float)
        for i, row in enumerate(self.components):
            for j, component in enumerate(row):
                component.values = tensors[:, i, j].copy()

    def zero(self) -> None:
        for row in self.components:
            for component in row:
                component.zero()


@dataclass
class FluidFields:
    """
    State owned by the fluid solver.

    Attributes
    ----------
    velocity : NodalField
        Current velocity (vector).
    pressure : CellField
        Current pressure.
    velocity_increment : NodalField
        Change of velocity over the last step.
    viscosity : np.ndarray
        Dynamic viscosity per element.
    indicator : np.ndarray
        Boolean immersion flag per element.
    """

    velocity: NodalField
    pressure: CellField
    velocity_increment: NodalField
    viscosity: np.ndarray
    indicator: np.ndarray

    @classmethod
    def zeros(cls, mesh: MeshModel, viscosity: float = 1.0) -> "FluidFields":
        return cls(
            velocity=NodalField(mesh, mesh.dim, name="velocity"),
            pressure=CellField(mesh, name="pressure"),
            velocity_increment=NodalField(mesh, mesh.dim, name="velocity_increment"),
            viscosity=np.full(mesh.elements_count, float(viscosity)),
            indicator=np.zeros(mesh.elements_count, dtype=bool),
        )

    @property
    def mesh(self) -> MeshModel:
        return self.velocity.mesh


@dataclass
class SolidFields:
    """
    State owned by the solid solver.

    Attributes
    ----------
    displacement, velocity, acceleration : NodalField
        Kinematic state (vectors).
    stress : ComponentTensorField
        Element-wise Cauchy stress.
    """

    displacement: NodalField
    velocity: NodalField
    acceleration: NodalField
    stress: ComponentTensorField

    @classmethod
    def zeros(cls, mesh: MeshModel) -> "SolidFields":
        return cls(
            displacement=NodalField(mesh, mesh.dim, name="displacement"),
            velocity=NodalField(mesh, mesh.dim, name="velocity"),
            acceleration=NodalField(mesh, mesh.dim, name="acceleration"),
            stress=ComponentTensorField(mesh, name="stress"),
        )

    @property
    def mesh(self) -> MeshModel:
        return self.displacement.mesh
