"""
Unsteady Stokes fluid solver with penalty pressure.

The pressure is eliminated through the penalty relation p = -λ div v, which
leaves a velocity-only system. Backward Euler in time:

    (M / dt + K_μ + K_λ) v_{n+1} = M v_n / dt + F_fsi

    M   = ∫ ρ φ·ψ dΩ
    K_μ = ∫ μ sym∇φ : sym∇ψ dΩ
    K_λ = ∫ λ div φ div ψ dΩ        (reduced, one-point integration)

On immersed elements the force transfer supplies the stress and acceleration
discrepancies σ_d and a_d at every quadrature point, which enter as

    F_fsi = ∫ (σ_d : ∇ψ - ρ a_d · ψ) dΩ

Velocity Dirichlet data comes from the boundary functions registered with
:meth:`add_hard_coded_boundary_condition`, evaluated at the new time.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
from scipy.sparse.linalg import spsolve

from fem_fsi.core.assembler import MeshAssembler
from fem_fsi.core.bc import BoundaryConditionManager, DirichletCondition
from fem_fsi.core.exceptions import SolverDivergence
from fem_fsi.core.fields import FluidFields
from fem_fsi.core.material import FluidMaterial
from fem_fsi.core.mesh import MeshModel
from fem_fsi.coupling.indicator import check_indicator
from fem_fsi.coupling.transfer import check_transfer_length
from fem_fsi.elements import (
    shape_function_gradients,
    shape_function_matrix,
    strain_displacement_matrix,
)
from fem_fsi.solvers.base import FluidSolver

logger = logging.getLogger(__name__)


def viscous_matrix(viscosity: float, dim: int) -> np.ndarray:
    """Voigt matrix of μ sym∇v : sym∇w with engineering shear strains."""
    if dim == 2:
        return viscosity * np.diag([1.0, 1.0, 0.5])
    return viscosity * np.diag([1.0, 1.0, 1.0, 0.5, 0.5, 0.5])


class StokesFluidSolver(FluidSolver):
    """Penalty Stokes fluid with immersed forcing.

    Parameters
    ----------
    mesh : MeshModel
        Fluid mesh.
    material : FluidMaterial
        Viscosity and density.
    time_step : float
        Time step size.
    penalty_factor : float, optional
        Penalty parameter λ of p = -λ div v.

    Attributes
    ----------
    time : float
        Time reached by the last step.
    """

    def __init__(
        self,
        mesh: MeshModel,
        material: FluidMaterial,
        time_step: float,
        penalty_factor: float = 1.0e4,
    ):
        super().__init__(mesh)
        if time_step <= 0:
            raise ValueError(f"Time step must be positive: {time_step}")
        self._material = material
        self.dt = float(time_step)
        self.penalty_factor = float(penalty_factor)
        self.time = 0.0
        self.domain: Optional[MeshAssembler] = None
        self.bc_manager: Optional[BoundaryConditionManager] = None
        self.M = None
        self.A = None
        self._divergence_rows: Optional[np.ndarray] = None

    def material(self, element: int) -> FluidMaterial:
        return self._material

    # =========================================================================
    # Setup
    # =========================================================================

    def setup_dofs(self) -> None:
        mesh = self.mesh
        self.domain = MeshAssembler(mesh, mesh.dim)
        self.fields = FluidFields.zeros(mesh, self._material.viscosity)
        self.fields.viscosity = np.array(
            [self.material(e).viscosity for e in range(mesh.elements_count)]
        )
        self.bc_manager = BoundaryConditionManager(self.domain.dofs_count)
        self.bc_manager.apply_dirichlet(self._dirichlet_conditions(0.0))
        logger.info(
            "Fluid: %d cells, %d DOFs (%d constrained)",
            mesh.elements_count,
            self.domain.dofs_count,
            len(self.bc_manager.fixed_dofs),
        )

    def _dirichlet_conditions(self, time: float) -> List[DirichletCondition]:
        """Boundary velocities from the registered functions at ``time``."""
        mesh = self.mesh
        values: Dict[int, float] = {}
        for boundary_id, fn in sorted(self.boundary_functions.items()):
            for node in mesh.boundary_nodes([boundary_id]):
                point = mesh.coords[node]
                for c in range(mesh.dim):
                    value = fn(point, c, time)
                    if value is not None:
                        values[int(node) * mesh.dim + c] = float(value)
        dofs = sorted(values)
        return [DirichletCondition(dofs, [values[d] for d in dofs])]

    def initialize_system(self) -> None:
        mesh = self.mesh
        element = mesh.reference_element
        points, weights = element.integration_points
        dim = mesh.dim
        n_edofs = element.node_count * dim
        centroid = element.reference_centroid
        reference_volume = weights.sum()

        me_array = np.zeros((mesh.elements_count, n_edofs, n_edofs))
        ke_array = np.zeros_like(me_array)
        self._divergence_rows = np.zeros((mesh.elements_count, n_edofs))
        for e in range(mesh.elements_count):
            coords = mesh.element_coords(e)
            material = self.material(e)
            D = viscous_matrix(material.viscosity, dim)
            for xi, w in zip(points, weights):
                dN_dx, det_J = shape_function_gradients(element, coords, xi)
                B = strain_displacement_matrix(dN_dx)
                N_mat = shape_function_matrix(element.shape_functions(xi), dim)
                ke_array[e] += (B.T @ D @ B) * det_J * w
                me_array[e] += material.density * (N_mat.T @ N_mat) * det_J * w

            # Reduced integration of the penalty term
            dN_dx, det_J = shape_function_gradients(element, coords, centroid)
            div = dN_dx.reshape(-1)
            self._divergence_rows[e] = div
            ke_array[e] += self.penalty_factor * np.outer(div, div) * det_J * reference_volume

        self.M = self.domain.assemble_matrix(me_array)
        self.A = self.M / self.dt + self.domain.assemble_matrix(ke_array)

    # =========================================================================
    # Loads
    # =========================================================================

    def fsi_points_count(self) -> int:
        """Number of discrepancy values :meth:`step` expects."""
        n_q = self.mesh.reference_element.n_integration_points
        return int(np.count_nonzero(self.fields.indicator)) * n_q

    def assemble_fsi_load(self) -> np.ndarray:
        """Immersed forcing from ``fsi_stress`` and ``fsi_acceleration``.

        Raises
        ------
        CouplingAssertionError
            If the indicator is not boolean or the discrepancy arrays do not
            match the immersed quadrature points.
        """
        mesh = self.mesh
        check_indicator(self.fields.indicator, mesh.elements_count)
        if self.fsi_stress is None and self.fsi_acceleration is None:
            return np.zeros(self.domain.dofs_count)

        expected = self.fsi_points_count()
        stress = np.asarray(self.fsi_stress, dtype=float)
        accel = np.asarray(self.fsi_acceleration, dtype=float)
        check_transfer_length(stress, expected, "fsi_stress")
        check_transfer_length(accel, expected, "fsi_acceleration")

        element = mesh.reference_element
        points, weights = element.integration_points
        dim = mesh.dim
        fe_array = np.zeros((mesh.elements_count, element.node_count * dim))
        index = 0
        for e in np.flatnonzero(self.fields.indicator):
            coords = mesh.element_coords(e)
            rho = self.material(e).density
            for xi, w in zip(points, weights):
                dN_dx, det_J = shape_function_gradients(element, coords, xi)
                N_mat = shape_function_matrix(element.shape_functions(xi), dim)
                # σ_d : ∇ψ for interleaved DOFs (node a, component i) -> σ_d[i, :] · ∇N_a
                stress_term = (dN_dx @ stress[index].T).reshape(-1)
                fe_array[e] += (stress_term - rho * N_mat.T @ accel[index]) * det_J * w
                index += 1
        return self.domain.assemble_vector(fe_array)

    # =========================================================================
    # Time stepping
    # =========================================================================

    def step(self, first_step: bool) -> None:
        """Advance one backward Euler step.

        Raises
        ------
        SolverDivergence
            If the linear solve produces non-finite values.
        """
        new_time = self.time + self.dt
        self.bc_manager.update_values(self._dirichlet_conditions(new_time))

        v_old = self.fields.velocity.flat.copy()
        F = self.M @ v_old / self.dt + self.assemble_fsi_load()

        A_red, F_red = self.bc_manager.reduced_system(self.A, F)
        v_red = np.atleast_1d(spsolve(A_red.tocsc(), F_red)) if len(F_red) else F_red
        v_new = self.bc_manager.expand_solution(v_red)
        if not np.all(np.isfinite(v_new)):
            raise SolverDivergence("Fluid velocity is not finite", time=self.time)

        self.fields.velocity.set_flat(v_new)
        self.fields.velocity_increment.set_flat(v_new - v_old)
        self.update_pressure()
        self.time = new_time
        logger.debug(
            "Fluid step t=%.6e: max |v| = %.3e", self.time, float(np.abs(v_new).max(initial=0.0))
        )

    def update_pressure(self) -> None:
        """Element pressure p = -λ div v at the element centroid."""
        v = self.fields.velocity.flat
        div_v = np.einsum("ij,ij->i", self._divergence_rows, v[self.domain.dofs_array])
        self.fields.pressure.values = -self.penalty_factor * div_v
