"""Tests for the reference elastic solid and Stokes fluid solvers."""

import numpy as np
import pytest

from fem_fsi.core.assembler import MeshAssembler
from fem_fsi.core.exceptions import CouplingAssertionError, SolverDivergence
from fem_fsi.core.material import FluidMaterial, IsotropicMaterial
from fem_fsi.core.mesh import SquareShapeMesh
from fem_fsi.solvers import LinearElasticSolver, StokesFluidSolver, elasticity_matrix


@pytest.fixture
def material():
    return IsotropicMaterial(name="rubber", E=1.0e3, nu=0.3, rho=2.0)


@pytest.fixture
def elastic_solver(unit_square, material):
    solver = LinearElasticSolver(unit_square, material, time_step=0.01, dirichlet_boundary_ids=[2])
    solver.setup_dofs()
    solver.initialize_system()
    return solver


@pytest.fixture
def stokes_solver(unit_square):
    solver = StokesFluidSolver(unit_square, FluidMaterial(viscosity=1.0, density=1.0), time_step=0.01)
    for boundary_id in (0, 1, 2):
        solver.add_hard_coded_boundary_condition(boundary_id, lambda p, c, t: 0.0)
    solver.add_hard_coded_boundary_condition(3, lambda p, c, t: (1.0, 0.0)[c])
    solver.setup_dofs()
    solver.initialize_system()
    return solver


class TestMeshAssembler:
    def test_assemble_vector_sums_shared_nodes(self, unit_square):
        domain = MeshAssembler(unit_square, 2)
        F = domain.assemble_vector(np.ones((unit_square.elements_count, 8)))
        per_node = F.reshape(-1, 2)
        # Corner node 0 belongs to one element, interior node 6 to four
        assert np.allclose(per_node[0], 1.0)
        assert np.allclose(per_node[6], 4.0)
        assert F.sum() == pytest.approx(16 * 8)


class TestElasticityMatrix:
    def test_plane_strain(self, material):
        lambd, mu = material.lame_parameters
        C = elasticity_matrix(material, 2)
        assert C.shape == (3, 3)
        assert C[0, 0] == pytest.approx(lambd + 2 * mu)
        assert C[0, 1] == pytest.approx(lambd)
        assert C[2, 2] == pytest.approx(mu)

    def test_three_dimensional(self, material):
        C = elasticity_matrix(material, 3)
        assert C.shape == (6, 6)
        assert np.allclose(C, C.T)
        assert np.all(np.linalg.eigvalsh(C) > 0)


class TestLinearElasticSolver:
    def test_setup(self, elastic_solver):
        # 5 clamped bottom nodes, 2 DOFs each
        assert len(elastic_solver.bc_manager.fixed_dofs) == 10
        assert elastic_solver.K.shape == (50, 50)

    def test_total_mass(self, elastic_solver):
        # rho * area * dim
        assert elastic_solver.M.sum() == pytest.approx(2.0 * 1.0 * 2)

    def test_stiffness_symmetric(self, elastic_solver):
        K = elastic_solver.K.toarray()
        assert np.allclose(K, K.T)

    def test_no_load_stays_at_rest(self, elastic_solver):
        elastic_solver.step(first_step=True)
        assert np.allclose(elastic_solver.current_solution(), 0.0)
        assert elastic_solver.time == pytest.approx(0.01)

    def test_traction_count(self, elastic_solver):
        # Left, right and top facets, two Gauss points each
        assert elastic_solver.traction_points_count() == 12 * 2

    def test_traction_load(self, elastic_solver):
        n = elastic_solver.traction_points_count()
        elastic_solver.fluid_traction = np.tile([1.0, 0.0], (n, 1))
        F = elastic_solver.assemble_traction_load()
        # Total force equals traction times loaded boundary length
        assert F.reshape(-1, 2).sum(axis=0) == pytest.approx([3.0, 0.0])

        elastic_solver.step(first_step=True)
        u = elastic_solver.current_solution()
        assert F @ u > 0
        clamped = elastic_solver.mesh.boundary_nodes([2])
        assert np.allclose(elastic_solver.fields.displacement.values[clamped], 0.0)

    def test_traction_length_mismatch(self, elastic_solver):
        elastic_solver.fluid_traction = np.zeros((3, 2))
        with pytest.raises(CouplingAssertionError):
            elastic_solver.step(first_step=True)

    def test_divergence(self, elastic_solver):
        n = elastic_solver.traction_points_count()
        elastic_solver.fluid_traction = np.full((n, 2), np.nan)
        with pytest.raises(SolverDivergence):
            elastic_solver.step(first_step=True)

    def test_uniform_strain_stress(self, elastic_solver, material):
        strain = 1.0e-3
        mesh = elastic_solver.mesh
        elastic_solver.fields.displacement.values = np.column_stack(
            (strain * mesh.coords[:, 0], np.zeros(mesh.node_count))
        )
        elastic_solver.update_stress()
        lambd, mu = material.lame_parameters
        stress = elastic_solver.fields.stress.as_array()
        assert np.allclose(stress[:, 0, 0], (lambd + 2 * mu) * strain)
        assert np.allclose(stress[:, 1, 1], lambd * strain)
        assert np.allclose(stress[:, 0, 1], 0.0)

    def test_invalid_time_step(self, unit_square, material):
        with pytest.raises(ValueError):
            LinearElasticSolver(unit_square, material, time_step=0.0)

    def test_triangles(self, material):
        mesh = SquareShapeMesh.create_rectangle(1.0, 1.0, 2, 2, triangular=True)
        solver = LinearElasticSolver(mesh, material, time_step=0.01, dirichlet_boundary_ids=[2])
        solver.setup_dofs()
        solver.initialize_system()
        solver.fluid_traction = np.tile([0.0, -1.0], (solver.traction_points_count(), 1))
        solver.step(first_step=True)
        assert np.all(np.isfinite(solver.current_solution()))


class TestStokesFluidSolver:
    def test_setup(self, stokes_solver):
        # All 16 boundary nodes constrained in both components
        assert len(stokes_solver.bc_manager.fixed_dofs) == 32
        assert stokes_solver.fields.indicator.shape == (16,)
        assert stokes_solver.material(3) == FluidMaterial(viscosity=1.0, density=1.0)

    def test_free_component(self, unit_square):
        solver = StokesFluidSolver(unit_square, FluidMaterial(1.0, 1.0), time_step=0.01)
        solver.add_hard_coded_boundary_condition(0, lambda p, c, t: 0.0 if c == 0 else None)
        solver.setup_dofs()
        assert len(solver.bc_manager.fixed_dofs) == 5

    def test_lid_driven_step(self, stokes_solver):
        stokes_solver.step(first_step=True)
        mesh = stokes_solver.mesh
        velocity = stokes_solver.fields.velocity.values
        top = mesh.boundary_nodes([3])
        assert np.allclose(velocity[top], [1.0, 0.0])
        bottom = [n for n in mesh.boundary_nodes([2]) if n not in set(top)]
        assert np.allclose(velocity[bottom], 0.0)
        assert np.all(np.isfinite(velocity))
        # Fluid below the lid is dragged along
        interior = [n for n in range(mesh.node_count) if n not in set(mesh.boundary_nodes([0, 1, 2, 3]))]
        assert velocity[interior, 0].max() > 0
        assert np.allclose(stokes_solver.fields.velocity_increment.values, velocity)
        assert stokes_solver.fields.pressure.values.shape == (16,)
        assert stokes_solver.time == pytest.approx(0.01)

    def test_rest_without_boundary_motion(self, unit_square):
        solver = StokesFluidSolver(unit_square, FluidMaterial(1.0, 1.0), time_step=0.01)
        solver.setup_dofs()
        solver.initialize_system()
        solver.step(first_step=True)
        assert np.allclose(solver.current_solution(), 0.0)

    def test_fsi_load_net_force(self, stokes_solver):
        stokes_solver.fields.indicator[5] = True
        stokes_solver.fsi_stress = np.tile(np.eye(2), (4, 1, 1))
        stokes_solver.fsi_acceleration = np.tile([1.0, 0.0], (4, 1))
        F = stokes_solver.assemble_fsi_load()
        # A uniform stress has no net effect; the acceleration term gives -rho * a * area
        assert F.reshape(-1, 2).sum(axis=0) == pytest.approx([-1.0 / 16, 0.0])

    def test_fsi_length_mismatch(self, stokes_solver):
        stokes_solver.fields.indicator[5] = True
        stokes_solver.fsi_stress = np.zeros((3, 2, 2))
        stokes_solver.fsi_acceleration = np.zeros((3, 2))
        with pytest.raises(CouplingAssertionError):
            stokes_solver.step(first_step=True)

    def test_divergence(self, stokes_solver):
        stokes_solver.fields.indicator[5] = True
        stokes_solver.fsi_stress = np.zeros((4, 2, 2))
        stokes_solver.fsi_acceleration = np.full((4, 2), np.nan)
        with pytest.raises(SolverDivergence):
            stokes_solver.step(first_step=True)
