"""
Coupled FSI simulation runner.

Builds the meshes, the reference solvers and the coupling driver from a
parameter file, without requiring any Python code editing.

Example usage:
    from fem_fsi.solvers.runner import FSIRunner

    runner = FSIRunner("parameters.prm")
    runner.run()

Or from command line:
    fem-fsi parameters.prm
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from fem_fsi.core.config import Parameters
from fem_fsi.core.exceptions import ConfigurationError
from fem_fsi.core.material import FluidMaterial, IsotropicMaterial
from fem_fsi.core.mesh import MeshModel
from fem_fsi.coupling.driver import CouplingDriver
from fem_fsi.solvers.base import BoundaryFunction
from fem_fsi.solvers.elastic import LinearElasticSolver
from fem_fsi.solvers.stokes import StokesFluidSolver

logger = logging.getLogger(__name__)


def constant_velocity(value: List[Optional[float]]) -> BoundaryFunction:
    """Boundary function returning ``value[component]`` at every point and time."""
    values = list(value)

    def fn(point, component, time):
        return values[component]

    return fn


class FSIRunner:
    """
    Runs a coupled simulation described by a :class:`Parameters` object.

    Parameters
    ----------
    parameters : Parameters or str or Path
        Parameters or path to a ``.prm``/``.yaml`` file.
    output_folder : str, optional
        Overrides the configured output folder.

    Attributes
    ----------
    fluid_mesh, solid_mesh : MeshModel
        Meshes, built by :meth:`setup`.
    driver : CouplingDriver
        The coupling driver, built by :meth:`setup`.

    Examples
    --------
    >>> runner = FSIRunner("parameters.prm")
    >>> runner.run()
    """

    def __init__(
        self,
        parameters: Union[Parameters, str, Path],
        output_folder: Optional[str] = None,
    ):
        if isinstance(parameters, (str, Path)):
            self.parameters_path = Path(parameters)
            self.parameters = Parameters.load(parameters)
        else:
            self.parameters_path = None
            self.parameters = parameters

        self.output_folder = output_folder
        self.fluid_mesh: Optional[MeshModel] = None
        self.solid_mesh: Optional[MeshModel] = None
        self.fluid_solver: Optional[StokesFluidSolver] = None
        self.solid_solver: Optional[LinearElasticSolver] = None
        self.driver: Optional[CouplingDriver] = None

    def setup(self) -> CouplingDriver:
        """Build meshes, solvers and the driver.

        Raises
        ------
        ConfigurationError
            If a mesh cannot be built or does not match the configured dimension.
        """
        params = self.parameters
        self.fluid_mesh = params.fluid.mesh.create("fluid")
        self.solid_mesh = params.solid.mesh.create("solid")
        for mesh in (self.fluid_mesh, self.solid_mesh):
            if mesh.dim != params.dimension:
                raise ConfigurationError(
                    f"{mesh.name} mesh is {mesh.dim}D but dimension is {params.dimension}"
                )

        fluid_material = FluidMaterial(viscosity=params.fluid.viscosity, density=params.fluid.density)
        self.fluid_solver = StokesFluidSolver(
            self.fluid_mesh,
            fluid_material,
            params.time_step,
            penalty_factor=params.fluid.penalty_factor,
        )
        known_ids = set(self.fluid_mesh.boundary_ids())
        for bc in params.fluid.velocity_bcs:
            if bc.boundary_id not in known_ids:
                logger.warning(
                    "Fluid boundary id %d does not exist (ids: %s)", bc.boundary_id, sorted(known_ids)
                )
            self.fluid_solver.add_hard_coded_boundary_condition(
                bc.boundary_id, constant_velocity(bc.value)
            )

        solid_material = IsotropicMaterial(
            name="solid", E=params.solid.E, nu=params.solid.nu, rho=params.solid.rho
        )
        self.solid_solver = LinearElasticSolver(
            self.solid_mesh,
            solid_material,
            params.time_step,
            dirichlet_boundary_ids=params.solid_dirichlet_bcs,
            beta=params.solid.newmark.beta,
            gamma=params.solid.newmark.gamma,
        )

        self.driver = CouplingDriver(
            self.fluid_solver, self.solid_solver, params, output_folder=self.output_folder
        )
        return self.driver

    def run(self) -> CouplingDriver:
        """
        Execute the complete coupled simulation.

        Returns
        -------
        CouplingDriver
            The driver after running (for accessing solvers and time).
        """
        self._print_header()
        for warning in self.parameters.validate():
            logger.warning("Configuration warning: %s", warning)

        print("\n[1/3] Setting up meshes and solvers...", flush=True)
        driver = self.setup()
        print(f"      Fluid: {self.fluid_mesh}")
        print(f"      Solid: {self.solid_mesh}")

        print("\n[2/3] Running coupled time loop...", flush=True)
        time = driver.run()

        print("\n[3/3] Done.", flush=True)
        print(f"      Final time: {time.current():.6g} ({time.get_timestep()} steps)")
        if driver.writer is not None:
            print(f"      Results: {driver.writer.output_folder}")
        logger.info("Simulation completed successfully!")
        return driver

    def _print_header(self) -> None:
        params = self.parameters
        print("\n" + "=" * 70)
        print("  FEM-FSI IMMERSED COUPLING RUNNER")
        print("=" * 70)
        print(f"  Parameters: {self.parameters_path or 'Provided object'}")
        print(f"  Dimension: {params.dimension}")
        print(f"  End time: {params.end_time}, time step: {params.time_step}")
        print("=" * 70 + "\n")


def run_from_file(path: Union[str, Path], output_folder: Optional[str] = None) -> CouplingDriver:
    """Convenience wrapper: load ``path`` and run the coupled simulation."""
    return FSIRunner(path, output_folder).run()
