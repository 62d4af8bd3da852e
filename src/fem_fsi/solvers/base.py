"""
Solver contracts used by the coupling driver.

The driver only relies on the attributes and methods declared here, so any
fluid or solid solver implementing them can be coupled.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, FrozenSet, Optional

import numpy as np

from fem_fsi.core.fields import FluidFields, SolidFields
from fem_fsi.core.material import FluidMaterial
from fem_fsi.core.mesh import MeshModel

#: Boundary value function ``fn(point, component, time) -> value``.
BoundaryFunction = Callable[[np.ndarray, int, float], Optional[float]]


class FluidSolver(ABC):
    """
    Abstract base class for fluid solvers.

    Attributes
    ----------
    mesh : MeshModel
        Fluid mesh.
    fields : FluidFields
        Fluid state. Available after :meth:`setup_dofs`.
    fsi_stress : np.ndarray or None
        Stress discrepancy per immersed quadrature point (n x dim x dim),
        consumed by :meth:`step`.
    fsi_acceleration : np.ndarray or None
        Acceleration discrepancy per immersed quadrature point (n x dim).
    """

    def __init__(self, mesh: MeshModel):
        self.mesh = mesh
        self.fields: Optional[FluidFields] = None
        self.fsi_stress: Optional[np.ndarray] = None
        self.fsi_acceleration: Optional[np.ndarray] = None
        self.boundary_functions: Dict[int, BoundaryFunction] = {}

    def refine_global(self, levels: int) -> None:
        """Uniformly refine the fluid mesh. Must precede :meth:`setup_dofs`."""
        self.mesh.refine_global(levels)

    def add_hard_coded_boundary_condition(self, boundary_id: int, fn: BoundaryFunction) -> None:
        """Prescribe the velocity on a boundary.

        Parameters
        ----------
        boundary_id : int
            Fluid boundary id.
        fn : callable
            ``fn(point, component, time)`` returning the velocity component,
            or None to leave that component free.
        """
        self.boundary_functions[int(boundary_id)] = fn

    @abstractmethod
    def setup_dofs(self) -> None:
        """Number the unknowns and allocate the fields."""

    @abstractmethod
    def initialize_system(self) -> None:
        """Assemble the time-independent parts of the system."""

    @abstractmethod
    def step(self, first_step: bool) -> None:
        """Advance the fluid by one time step."""

    @abstractmethod
    def material(self, element: int) -> FluidMaterial:
        """Fluid properties of an element."""

    def current_solution(self) -> np.ndarray:
        """Copy of the velocity degrees of freedom."""
        return self.fields.velocity.flat.copy()


class SolidSolver(ABC):
    """
    Abstract base class for solid solvers.

    Attributes
    ----------
    mesh : MeshModel
        Solid mesh, in its reference configuration.
    fields : SolidFields
        Solid state. Available after :meth:`setup_dofs`.
    fluid_traction : np.ndarray or None
        Fluid traction per quadrature point of the non-clamped boundary
        facets (n x dim), consumed by :meth:`step`.
    """

    def __init__(self, mesh: MeshModel, dirichlet_boundary_ids=()):
        self.mesh = mesh
        self.fields: Optional[SolidFields] = None
        self.fluid_traction: Optional[np.ndarray] = None
        self._dirichlet_boundary_ids = frozenset(int(i) for i in dirichlet_boundary_ids)

    @property
    def dirichlet_boundary_ids(self) -> FrozenSet[int]:
        """Boundary ids of the clamped facets."""
        return self._dirichlet_boundary_ids

    @abstractmethod
    def setup_dofs(self) -> None:
        """Number the unknowns and allocate the fields."""

    @abstractmethod
    def initialize_system(self) -> None:
        """Assemble the time-independent parts of the system."""

    @abstractmethod
    def step(self, first_step: bool) -> None:
        """Advance the solid by one time step."""

    def current_solution(self) -> np.ndarray:
        """Copy of the displacement degrees of freedom."""
        return self.fields.displacement.flat.copy()
