"""
Linear elastic solid solver with implicit Newmark-β time integration.

Small-strain elasticity (plane strain in 2D):

    M ü + K u = F_traction

Newmark-β with constants

    a0 = 1 / (β dt²),  a1_v = 1 / (β dt),  a3 = 1 / (2β) - 1

gives the effective system

    (K + a0 M) u_{n+1} = F_{n+1} + M (a0 u_n + a1_v v_n + a3 a_n)

after which acceleration and velocity are updated:

    a_{n+1} = a0 (u_{n+1} - u_n) - a1_v v_n - a3 a_n
    v_{n+1} = v_n + dt ((1 - γ) a_n + γ a_{n+1})

The Neumann load is the fluid traction provided by the coupling, one vector
per quadrature point of each boundary facet that is not clamped, traversed in
(element, face, quadrature point) order on the undeformed geometry.
"""

import logging
from typing import Iterable, Optional

import numpy as np
from scipy.sparse.linalg import spsolve

from fem_fsi.core.assembler import MeshAssembler
from fem_fsi.core.bc import BoundaryConditionManager, DirichletCondition
from fem_fsi.core.exceptions import SolverDivergence
from fem_fsi.core.fields import SolidFields
from fem_fsi.core.material import IsotropicMaterial
from fem_fsi.core.mesh import MeshModel
from fem_fsi.coupling.transfer import check_transfer_length
from fem_fsi.elements import (
    facet_quadrature,
    get_reference_element,
    shape_function_gradients,
    shape_function_matrix,
    strain_displacement_matrix,
    voigt_to_tensor,
)
from fem_fsi.solvers.base import SolidSolver

logger = logging.getLogger(__name__)


def elasticity_matrix(material: IsotropicMaterial, dim: int) -> np.ndarray:
    """Constitutive matrix in Voigt notation.

    Plane strain (3x3) in 2D, full isotropic (6x6) in 3D.
    """
    lambd, mu = material.lame_parameters
    if dim == 2:
        return np.array([
            [lambd + 2 * mu, lambd, 0],
            [lambd, lambd + 2 * mu, 0],
            [0, 0, mu],
        ])
    C = np.zeros((6, 6))
    C[:3, :3] = lambd
    C[np.arange(3), np.arange(3)] = lambd + 2 * mu
    C[np.arange(3, 6), np.arange(3, 6)] = mu
    return C


class LinearElasticSolver(SolidSolver):
    """Dynamic small-strain elastic solid.

    Parameters
    ----------
    mesh : MeshModel
        Solid mesh.
    material : IsotropicMaterial
        Elastic properties and density.
    time_step : float
        Time step size.
    dirichlet_boundary_ids : iterable of int, optional
        Boundary ids of clamped facets (zero displacement).
    beta, gamma : float, optional
        Newmark-β parameters (average acceleration by default).

    Attributes
    ----------
    time : float
        Time reached by the last step.
    K, M : scipy.sparse.csr_matrix
        Global stiffness and mass matrices, after :meth:`initialize_system`.
    """

    def __init__(
        self,
        mesh: MeshModel,
        material: IsotropicMaterial,
        time_step: float,
        dirichlet_boundary_ids: Iterable[int] = (),
        beta: float = 0.25,
        gamma: float = 0.5,
    ):
        super().__init__(mesh, dirichlet_boundary_ids)
        if time_step <= 0:
            raise ValueError(f"Time step must be positive: {time_step}")
        self.material = material
        self.dt = float(time_step)
        self.beta = beta
        self.gamma = gamma
        self.time = 0.0
        self.domain: Optional[MeshAssembler] = None
        self.bc_manager: Optional[BoundaryConditionManager] = None
        self.C = elasticity_matrix(material, mesh.dim)
        self.K = None
        self.M = None
        self._K_eff_red = None

    # =========================================================================
    # Setup
    # =========================================================================

    def setup_dofs(self) -> None:
        mesh = self.mesh
        self.domain = MeshAssembler(mesh, mesh.dim)
        self.fields = SolidFields.zeros(mesh)

        self.bc_manager = BoundaryConditionManager(self.domain.dofs_count)
        clamped = mesh.boundary_nodes(self.dirichlet_boundary_ids)
        self.bc_manager.apply_dirichlet([DirichletCondition(self.domain.node_dofs(clamped), 0.0)])
        logger.info(
            "Solid: %d cells, %d DOFs (%d clamped)",
            mesh.elements_count,
            self.domain.dofs_count,
            len(self.bc_manager.fixed_dofs),
        )

    def initialize_system(self) -> None:
        mesh = self.mesh
        element = mesh.reference_element
        points, weights = element.integration_points
        dim = mesh.dim
        n_edofs = element.node_count * dim

        ke_array = np.zeros((mesh.elements_count, n_edofs, n_edofs))
        me_array = np.zeros_like(ke_array)
        for e in range(mesh.elements_count):
            coords = mesh.element_coords(e)
            for xi, w in zip(points, weights):
                dN_dx, det_J = shape_function_gradients(element, coords, xi)
                B = strain_displacement_matrix(dN_dx)
                N_mat = shape_function_matrix(element.shape_functions(xi), dim)
                ke_array[e] += (B.T @ self.C @ B) * det_J * w
                me_array[e] += self.material.rho * (N_mat.T @ N_mat) * det_J * w

        self.K = self.domain.assemble_matrix(ke_array)
        self.M = self.domain.assemble_matrix(me_array)

        a0 = 1.0 / (self.beta * self.dt**2)
        K_eff = self.K + a0 * self.M
        self._K_eff_red = self.bc_manager.reduce_matrix(K_eff).tocsc()

    # =========================================================================
    # Loads
    # =========================================================================

    def traction_points_count(self) -> int:
        """Number of traction values :meth:`step` expects."""
        mesh = self.mesh
        face_element = get_reference_element(mesh.reference_element.face_type)
        n_facets = sum(
            1
            for facet in mesh.boundary_facets
            if mesh.boundary_id(*facet) not in self.dirichlet_boundary_ids
        )
        return n_facets * face_element.n_integration_points

    def assemble_traction_load(self) -> np.ndarray:
        """Nodal forces from ``fluid_traction``; zero when no traction is set.

        Raises
        ------
        CouplingAssertionError
            If the number of traction values does not match the facets
            traversed.
        """
        F = np.zeros(self.domain.dofs_count)
        if self.fluid_traction is None:
            return F

        mesh = self.mesh
        element = mesh.reference_element
        face_element = get_reference_element(element.face_type)
        face_points, _ = face_element.integration_points
        traction = np.asarray(self.fluid_traction, dtype=float)
        check_transfer_length(traction, self.traction_points_count(), "fluid_traction")

        index = 0
        for e, f in mesh.boundary_facets:
            if mesh.boundary_id(e, f) in self.dirichlet_boundary_ids:
                continue
            _, _, JxW = facet_quadrature(element, mesh.element_coords(e), f)
            dofs = self.domain.node_dofs(mesh.facet_nodes(e, f))
            for s, jxw in zip(face_points, JxW):
                N_mat = shape_function_matrix(face_element.shape_functions(s), mesh.dim)
                F[dofs] += N_mat.T @ traction[index] * jxw
                index += 1
        return F

    # =========================================================================
    # Time stepping
    # =========================================================================

    def step(self, first_step: bool) -> None:
        """Advance one Newmark step under the current fluid traction.

        Raises
        ------
        SolverDivergence
            If the linear solve produces non-finite values.
        """
        dt, beta, gamma = self.dt, self.beta, self.gamma
        a0 = 1.0 / (beta * dt**2)
        a1_v = 1.0 / (beta * dt)
        a3 = 1.0 / (2 * beta) - 1.0

        free = self.bc_manager.free_dofs
        F = self.assemble_traction_load()
        u = self.fields.displacement.flat.copy()
        v = self.fields.velocity.flat.copy()
        a = self.fields.acceleration.flat.copy()

        if first_step:
            # Consistent initial acceleration: M a = F - K u
            M_red = self.bc_manager.reduce_matrix(self.M).tocsc()
            rhs = (F - self.K @ u)[free]
            a = np.zeros_like(a)
            if len(free):
                a[free] = np.atleast_1d(spsolve(M_red, rhs))

        F_eff = F + self.M @ (a0 * u + a1_v * v + a3 * a)
        u_new = np.zeros_like(u)
        if len(free):
            u_new[free] = np.atleast_1d(spsolve(self._K_eff_red, F_eff[free]))
        if not np.all(np.isfinite(u_new)):
            raise SolverDivergence("Solid displacement is not finite", time=self.time)

        a_new = a0 * (u_new - u) - a1_v * v - a3 * a
        v_new = v + dt * ((1 - gamma) * a + gamma * a_new)

        self.fields.displacement.set_flat(u_new)
        self.fields.velocity.set_flat(v_new)
        self.fields.acceleration.set_flat(a_new)
        self.update_stress()
        self.time += dt
        logger.debug(
            "Solid step t=%.6e: max |u| = %.3e", self.time, float(np.abs(u_new).max(initial=0.0))
        )

    def update_stress(self) -> None:
        """Element-wise (DG0) Cauchy stress, evaluated at the element centroid."""
        mesh = self.mesh
        element = mesh.reference_element
        xi = element.reference_centroid
        u = self.fields.displacement.flat
        tensors = np.zeros((mesh.elements_count, mesh.dim, mesh.dim))
        for e in range(mesh.elements_count):
            dN_dx, _ = shape_function_gradients(element, mesh.element_coords(e), xi)
            B = strain_displacement_matrix(dN_dx)
            tensors[e] = voigt_to_tensor(self.C @ (B @ u[self.domain.dofs_array[e]]))
        self.fields.stress.set_from_array(tensors)
