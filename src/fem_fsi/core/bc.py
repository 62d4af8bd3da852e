"""
Dirichlet boundary conditions and system reduction for sparse FEM systems.
"""

from typing import Dict, Iterable, Tuple, Union

import numpy as np
import scipy.sparse as sp


class DirichletCondition:
    """Represents a Dirichlet boundary condition (fixed DOFs) in a FEM system.

    Parameters
    ----------
    dofs : Iterable[int]
        Global degree of freedom indices (0-based) where the condition is applied.
    value : float or array-like
        Prescribed value, either one for all DOFs or one per DOF (in the
        order given by ``dofs``).

    Examples
    --------
    >>> bc = DirichletCondition([0, 1], 0.0)  # Fix DOFs 0 and 1 at 0 displacement
    """

    def __init__(self, dofs: Iterable[int], value: Union[float, Iterable[float]] = 0.0):
        dofs = [int(d) for d in dofs]
        values = np.broadcast_to(np.asarray(value, dtype=float), (len(dofs),))
        # Later duplicates win, as in the order the caller listed them
        fixed = dict(zip(dofs, values))
        self.dofs = tuple(sorted(fixed))
        self.values = np.array([fixed[d] for d in self.dofs])


class BoundaryConditionManager:
    """Handles Dirichlet conditions and system reduction.

    Parameters
    ----------
    n_dof : int
        Total number of degrees of freedom.

    Attributes
    ----------
    free_dofs : np.ndarray
        Unconstrained degrees of freedom.
    fixed_dofs : Dict[int, float]
        Constrained DOFs with prescribed values.
    """

    def __init__(self, n_dof: int):
        self.n_dof = n_dof
        self._fixed_dofs: Dict[int, float] = {}
        self._free: np.ndarray = np.arange(n_dof)
        self._fixed: np.ndarray = np.zeros(0, dtype=np.int64)

    def apply_dirichlet(self, conditions: Iterable[DirichletCondition]) -> None:
        """Register Dirichlet conditions, replacing any previous ones.

        Raises
        ------
        IndexError
            If a DOF is outside the system.
        """
        fixed: Dict[int, float] = {}
        for condition in conditions:
            for dof, value in zip(condition.dofs, condition.values):
                if not 0 <= dof < self.n_dof:
                    raise IndexError(f"DOF {dof} out of range [0, {self.n_dof})")
                fixed[dof] = float(value)
        self._fixed_dofs = fixed
        self._fixed = np.array(sorted(fixed), dtype=np.int64)
        mask = np.ones(self.n_dof, dtype=bool)
        mask[self._fixed] = False
        self._free = np.flatnonzero(mask)

    def update_values(self, conditions: Iterable[DirichletCondition]) -> None:
        """Change prescribed values; the constrained DOF set must not change."""
        previous = set(self._fixed_dofs)
        self.apply_dirichlet(conditions)
        if set(self._fixed_dofs) != previous:
            raise ValueError("Constrained DOF set changed between updates")

    @property
    def free_dofs(self) -> np.ndarray:
        return self._free

    @property
    def fixed_dofs(self) -> Dict[int, float]:
        return dict(self._fixed_dofs)

    def fixed_values(self) -> np.ndarray:
        return np.array([self._fixed_dofs[d] for d in self._fixed])

    def reduce_matrix(self, matrix: sp.spmatrix) -> sp.csr_matrix:
        matrix = sp.csr_matrix(matrix)
        return matrix[self._free][:, self._free]

    def reduced_system(self, matrix: sp.spmatrix, load: np.ndarray) -> Tuple[sp.csr_matrix, np.ndarray]:
        """Free-DOF block and load, with prescribed values moved to the right-hand side."""
        matrix = sp.csr_matrix(matrix)
        A = matrix[self._free][:, self._free]
        F = np.asarray(load, dtype=float)[self._free]
        if len(self._fixed):
            F = F - matrix[self._free][:, self._fixed] @ self.fixed_values()
        return A, F

    def expand_solution(self, u_red: np.ndarray) -> np.ndarray:
        """Full DOF vector from the free-DOF solution and prescribed values."""
        u = np.zeros(self.n_dof)
        u[self._free] = u_red
        if len(self._fixed):
            u[self._fixed] = self.fixed_values()
        return u
