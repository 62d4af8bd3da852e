"""
Partitioned immersed FSI driver.

Each time step runs a fixed sequence of stages:

1. TRACTION    fluid traction on the solid boundary -> solid Neumann data
2. SOLID_STEP  solid solver step
3. INDICATOR   immersed fluid elements against the displaced solid
4. FORCE       stress/acceleration discrepancies -> fluid forcing
5. FLUID_STEP  fluid solver step
6. ADVANCE     time increment and optional output

The solid mesh geometry is only moved inside the displacement guard used by
stages 3 and 4, so it is back in its reference configuration between stages.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from fem_fsi.core.config import Parameters
from fem_fsi.core.exceptions import SolverDivergence
from fem_fsi.core.mesh import PointLocator
from fem_fsi.core.time import TimeController, TimeState
from fem_fsi.coupling.indicator import IndicatorUpdater
from fem_fsi.coupling.transfer import ForceTransfer, InterpolationFallback, TractionTransfer
from fem_fsi.postprocess.vtk import ResultWriter
from fem_fsi.solvers.base import FluidSolver, SolidSolver

logger = logging.getLogger(__name__)


class CouplingStage(str, Enum):
    """Stages of one coupling cycle, in execution order."""

    TRACTION = "traction"
    SOLID_STEP = "solid_step"
    INDICATOR = "indicator"
    FORCE = "force"
    FLUID_STEP = "fluid_step"
    ADVANCE = "advance"


#: Observer signature ``callback(stage, time)``.
StageObserver = Callable[[CouplingStage, float], None]


class CouplingDriver:
    """
    Explicit partitioned coupling of a fluid and a solid solver.

    Parameters
    ----------
    fluid_solver : FluidSolver
        Fluid solver over the background mesh.
    solid_solver : SolidSolver
        Solid solver over the immersed mesh.
    parameters : Parameters
        Time control, refinement, fluid viscosity, fallback policy and output
        folder.
    output_folder : str, optional
        Overrides ``parameters.output_folder``.

    Attributes
    ----------
    time : TimeController
        Simulation clock.
    stage : CouplingStage or None
        Last completed stage.
    """

    def __init__(
        self,
        fluid_solver: FluidSolver,
        solid_solver: SolidSolver,
        parameters: Parameters,
        output_folder: Optional[str] = None,
    ):
        self.fluid_solver = fluid_solver
        self.solid_solver = solid_solver
        self.parameters = parameters
        self.time = TimeController(
            parameters.end_time,
            parameters.time_step,
            parameters.output_interval,
            parameters.refinement_interval,
        )

        fallback = InterpolationFallback(parameters.interpolation_fallback)
        self.indicator_updater = IndicatorUpdater()
        self.force_transfer = ForceTransfer(fallback)
        self.traction_transfer = TractionTransfer(fallback)

        folder = output_folder if output_folder is not None else parameters.output_folder
        self.writer = ResultWriter(folder) if folder else None

        self.stage: Optional[CouplingStage] = None
        self._observers: List[StageObserver] = []
        self._fluid_locator: Optional[PointLocator] = None
        self._first_step = True
        self._initialized = False

        logger.info("Number of fluid active cells: %d", fluid_solver.mesh.n_active_cells)
        logger.info("Number of solid active cells: %d", solid_solver.mesh.n_active_cells)

    def add_observer(self, callback: StageObserver) -> None:
        """Call ``callback(stage, time)`` after every completed stage."""
        self._observers.append(callback)

    def _complete(self, stage: CouplingStage) -> None:
        self.stage = stage
        for callback in self._observers:
            callback(stage, self.time.current())

    # =========================================================================
    # Setup
    # =========================================================================

    def initialize(self) -> None:
        """Refine the fluid mesh and set up both solvers. Runs once."""
        if self._initialized:
            return
        levels = self.parameters.global_refinement
        if levels > 0:
            self.fluid_solver.refine_global(levels)
            logger.info(
                "Fluid mesh refined %d times: %d active cells",
                levels,
                self.fluid_solver.mesh.n_active_cells,
            )
        self.fluid_solver.setup_dofs()
        self.fluid_solver.initialize_system()
        self.solid_solver.setup_dofs()
        self.solid_solver.initialize_system()
        self._fluid_locator = PointLocator(self.fluid_solver.mesh)
        self._initialized = True

        if self.writer is not None:
            self.write_output()

    # =========================================================================
    # Time stepping
    # =========================================================================

    def step(self) -> None:
        """Run one full coupling cycle.

        Raises
        ------
        SolverDivergence
            If a solver fails; ``time`` holds the last completed time.
        """
        self.initialize()
        fluid, solid = self.fluid_solver, self.solid_solver
        last_time = self.time.current()
        first_step = self._first_step

        try:
            traction = self.traction_transfer.compute(
                solid.mesh,
                solid.dirichlet_boundary_ids,
                fluid.fields,
                self.parameters.viscosity,
                self._fluid_locator,
            )
            solid.fluid_traction = traction.flatten()
            self._complete(CouplingStage.TRACTION)

            solid.step(first_step)
            self._complete(CouplingStage.SOLID_STEP)

            self.indicator_updater.update(
                fluid.mesh, solid.mesh, solid.fields.displacement, fluid.fields.indicator
            )
            self._complete(CouplingStage.INDICATOR)

            # velocity_increment comes from a full fluid step
            stress, acceleration = self.force_transfer.compute(
                fluid.mesh, fluid.fields, solid.fields, self.time.get_delta_t()
            )
            fluid.fsi_stress = stress.flatten()
            fluid.fsi_acceleration = acceleration.flatten()
            self._complete(CouplingStage.FORCE)

            fluid.step(first_step)
            self._complete(CouplingStage.FLUID_STEP)
        except SolverDivergence as exc:
            exc.time = last_time
            logger.error("Solver diverged after t=%.6e: %s", last_time, exc)
            raise

        self._first_step = False
        self.time.increment()
        logger.info(
            "Step %d: t = %.6e, immersed fluid cells = %d",
            self.time.get_timestep(),
            self.time.current(),
            int(fluid.fields.indicator.sum()),
        )
        if self.writer is not None and self.time.time_to_output():
            self.write_output()
        self._complete(CouplingStage.ADVANCE)

    def run(self) -> TimeController:
        """Advance until the end time is reached.

        Returns
        -------
        TimeController
            The finished clock.
        """
        self.initialize()
        logger.info(
            "Coupled run: end time %.6g, time step %.6g",
            self.time.end(),
            self.time.get_delta_t(),
        )
        while self.time.state is TimeState.RUNNING:
            self.step()
        logger.info("Coupled run finished at t=%.6g after %d steps", self.time.current(), self.time.get_timestep())
        return self.time

    def write_output(self) -> None:
        """Write the current fluid and solid states."""
        self.writer.write(self.time.current(), self.fluid_solver.fields, self.solid_solver.fields)
