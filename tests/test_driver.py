import numpy as np
import pytest

from fem_fsi.core.exceptions import SolverDivergence
from fem_fsi.core.fields import FluidFields, SolidFields
from fem_fsi.core.material import FluidMaterial
from fem_fsi.core.time import TimeState
from fem_fsi.coupling import CouplingDriver, CouplingStage
from fem_fsi.solvers.base import FluidSolver, SolidSolver
from fem_fsi.solvers.runner import FSIRunner


class RecordingFluidSolver(FluidSolver):
    """Fluid solver that records its calls and keeps the fluid at rest."""

    def __init__(self, mesh, calls):
        super().__init__(mesh)
        self.calls = calls
        self.first_steps = []

    def setup_dofs(self):
        self.calls.append("fluid.setup_dofs")
        self.fields = FluidFields.zeros(self.mesh, viscosity=1.0)

    def initialize_system(self):
        self.calls.append("fluid.initialize_system")

    def step(self, first_step):
        self.calls.append("fluid.step")
        self.first_steps.append(first_step)

    def material(self, element):
        return FluidMaterial(viscosity=1.0, density=1.0)


class RecordingSolidSolver(SolidSolver):
    def __init__(self, mesh, calls, fail_at=None):
        super().__init__(mesh)
        self.calls = calls
        self.first_steps = []
        self.fail_at = fail_at

    def setup_dofs(self):
        self.calls.append("solid.setup_dofs")
        self.fields = SolidFields.zeros(self.mesh)

    def initialize_system(self):
        self.calls.append("solid.initialize_system")

    def step(self, first_step):
        self.calls.append("solid.step")
        self.first_steps.append(first_step)
        if self.fail_at is not None and len(self.first_steps) == self.fail_at:
            raise SolverDivergence("displacement blew up")


@pytest.fixture
def calls():
    return []


@pytest.fixture
def driver(unit_square, small_disk, parameters, calls):
    fluid = RecordingFluidSolver(unit_square, calls)
    solid = RecordingSolidSolver(small_disk, calls)
    return CouplingDriver(fluid, solid, parameters)


class TestCouplingDriver:
    def test_three_cycles_in_stage_order(self, driver):
        stages = []
        driver.add_observer(lambda stage, t: stages.append(stage))
        driver.run()

        cycle = [
            CouplingStage.TRACTION,
            CouplingStage.SOLID_STEP,
            CouplingStage.INDICATOR,
            CouplingStage.FORCE,
            CouplingStage.FLUID_STEP,
            CouplingStage.ADVANCE,
        ]
        assert stages == cycle * 3
        assert driver.time.state is TimeState.FINISHED
        assert driver.time.current() == pytest.approx(0.03, abs=1e-12)
        assert driver.time.get_timestep() == 3

    def test_first_step_flag(self, driver):
        driver.run()
        assert driver.solid_solver.first_steps == [True, False, False]
        assert driver.fluid_solver.first_steps == [True, False, False]

    def test_setup_happens_once_fluid_first(self, driver, calls):
        driver.run()
        assert calls[:4] == [
            "fluid.setup_dofs",
            "fluid.initialize_system",
            "solid.setup_dofs",
            "solid.initialize_system",
        ]
        assert calls.count("fluid.setup_dofs") == 1
        assert calls[4:] == ["solid.step", "fluid.step"] * 3

    def test_transfers_reach_the_solvers(self, driver):
        driver.step()
        solid, fluid = driver.solid_solver, driver.fluid_solver
        # Fluid at rest: zero traction on every boundary quadrature point
        assert solid.fluid_traction.shape == (len(solid.mesh.boundary_facets) * 2, 2)
        assert np.all(solid.fluid_traction == 0)
        # The disk covers element 5 only
        assert np.flatnonzero(fluid.fields.indicator).tolist() == [5]
        assert fluid.fsi_stress.shape == (4, 2, 2)
        assert fluid.fsi_acceleration.shape == (4, 2)

    def test_solid_geometry_restored_between_stages(self, driver):
        reference = driver.solid_solver.mesh.coords.copy()
        driver.initialize()
        driver.solid_solver.fields.displacement.values[:] = [0.25, 0.0]
        positions = []
        driver.add_observer(lambda stage, t: positions.append(driver.solid_solver.mesh.coords.copy()))
        driver.step()
        for coords in positions:
            assert np.allclose(coords, reference)
        # Displaced disk now sits in element 6
        assert np.flatnonzero(driver.fluid_solver.fields.indicator).tolist() == [6]

    def test_observer_sees_time(self, driver):
        times = []
        driver.add_observer(lambda stage, t: times.append((stage, t)))
        driver.step()
        assert times[0] == (CouplingStage.TRACTION, 0.0)
        assert times[-1][0] is CouplingStage.ADVANCE
        assert times[-1][1] == pytest.approx(0.01)

    def test_divergence_reports_last_completed_time(self, unit_square, small_disk, parameters, calls):
        solid = RecordingSolidSolver(small_disk, calls, fail_at=2)
        driver = CouplingDriver(RecordingFluidSolver(unit_square, calls), solid, parameters)
        with pytest.raises(SolverDivergence) as excinfo:
            driver.run()
        assert excinfo.value.time == pytest.approx(0.01)
        assert driver.time.get_timestep() == 1
        assert driver.stage is CouplingStage.TRACTION

    def test_zero_length_run(self, unit_square, small_disk, parameters_dict, calls):
        from fem_fsi.core.config import Parameters

        parameters_dict["simulation"]["end_time"] = 0.0
        driver = CouplingDriver(
            RecordingFluidSolver(unit_square, calls),
            RecordingSolidSolver(small_disk, calls),
            Parameters.from_dict(parameters_dict),
        )
        driver.run()
        assert "solid.step" not in calls
        assert driver.time.state is TimeState.FINISHED

    def test_global_refinement(self, unit_square, small_disk, parameters_dict, calls):
        from fem_fsi.core.config import Parameters

        parameters_dict["simulation"]["global_refinement"] = 1
        driver = CouplingDriver(
            RecordingFluidSolver(unit_square, calls),
            RecordingSolidSolver(small_disk, calls),
            Parameters.from_dict(parameters_dict),
        )
        driver.initialize()
        assert unit_square.elements_count == 64
        assert driver.fluid_solver.fields.indicator.shape == (64,)

    def test_output_files(self, unit_square, small_disk, parameters_dict, calls, tmp_path):
        from fem_fsi.core.config import Parameters

        parameters_dict["simulation"]["output_interval"] = 0.01
        driver = CouplingDriver(
            RecordingFluidSolver(unit_square, calls),
            RecordingSolidSolver(small_disk, calls),
            Parameters.from_dict(parameters_dict),
            output_folder=str(tmp_path),
        )
        driver.run()
        # Initial state plus one output per step
        assert sorted(p.name for p in tmp_path.glob("fluid_*.vtu")) == [
            f"fluid_{i:05d}.vtu" for i in range(4)
        ]
        assert len(list(tmp_path.glob("solid_*.vtu"))) == 4
        pvd = (tmp_path / "fluid.pvd").read_text()
        assert pvd.count("<DataSet") == 4
        assert 'file="fluid_00003.vtu"' in pvd


class TestCoupledRun:
    def test_cavity_with_immersed_disk(self, parameters, tmp_path):
        runner = FSIRunner(parameters, output_folder=str(tmp_path))
        driver = runner.run()

        assert driver.time.state is TimeState.FINISHED
        assert driver.time.get_timestep() == 3
        velocity = driver.fluid_solver.fields.velocity.values
        assert np.all(np.isfinite(velocity))
        top = runner.fluid_mesh.boundary_nodes([3])
        assert np.allclose(velocity[top], [1.0, 0.0])
        displacement = driver.solid_solver.fields.displacement.values
        assert np.all(np.isfinite(displacement))
        # Solid mesh is back in its reference configuration
        radii = np.linalg.norm(runner.solid_mesh.coords - [0.375, 0.375], axis=1)
        assert radii.max() == pytest.approx(0.2)
        assert (tmp_path / "fluid.pvd").exists()
        assert (tmp_path / "solid.pvd").exists()

    def test_dimension_mismatch(self, parameters_dict):
        from fem_fsi.core.config import Parameters
        from fem_fsi.core.exceptions import ConfigurationError

        parameters_dict["solid"]["mesh"] = {
            "generator": "BoxMesh",
            "lengths": [0.1, 0.1, 0.1],
            "divisions": [1, 1, 1],
        }
        runner = FSIRunner(Parameters.from_dict(parameters_dict))
        with pytest.raises(ConfigurationError):
            runner.setup()
