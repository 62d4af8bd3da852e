"""
Discrete time control for the coupled simulation.

The controller counts completed increments and derives the current time as
``min(n * dt, end)``, so the time never drifts past the end time through
accumulated round-off.
"""

import logging
from enum import Enum

from fem_fsi.core.exceptions import ConfigurationError, CouplingAssertionError

logger = logging.getLogger(__name__)

#: Remaining time below which the simulation is considered finished.
TIME_TOLERANCE = 1e-12


class TimeState(str, Enum):
    """Lifecycle of a :class:`TimeController`."""

    RUNNING = "running"
    FINISHED = "finished"


class TimeController:
    """
    Step counter from 0 to an end time.

    The last increment is clamped to ``end_time``. Solvers always advance by
    the full ``delta_t``, so coupled runs expect ``end_time`` to be a whole
    number of steps (:meth:`Parameters.validate` warns otherwise).

    Parameters
    ----------
    end_time : float
        Final simulation time.
    delta_t : float
        Nominal time step size.
    output_interval : float, optional
        Simulated time between two result outputs. 0 disables output.
    refinement_interval : float, optional
        Simulated time between two refinement checks. 0 disables them.

    Raises
    ------
    ConfigurationError
        If ``delta_t`` is not positive or ``end_time`` is negative.
    """

    def __init__(
        self,
        end_time: float,
        delta_t: float,
        output_interval: float = 0.0,
        refinement_interval: float = 0.0,
    ):
        if delta_t <= 0:
            raise ConfigurationError(f"Time step must be positive: {delta_t}")
        if end_time < 0:
            raise ConfigurationError(f"End time must be non-negative: {end_time}")
        if output_interval < 0 or refinement_interval < 0:
            raise ConfigurationError("Output and refinement intervals must be non-negative")

        self._end = float(end_time)
        self._delta_t = float(delta_t)
        self._output_interval = float(output_interval)
        self._refinement_interval = float(refinement_interval)
        self._timestep = 0
        self._current = 0.0

    def current(self) -> float:
        """Current simulation time."""
        return self._current

    def end(self) -> float:
        """Final simulation time."""
        return self._end

    def get_delta_t(self) -> float:
        """Nominal time step size."""
        return self._delta_t

    def get_timestep(self) -> int:
        """Number of completed increments."""
        return self._timestep

    @property
    def state(self) -> TimeState:
        if self._end - self._current <= TIME_TOLERANCE:
            return TimeState.FINISHED
        return TimeState.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.state is TimeState.FINISHED

    def increment(self) -> None:
        """Advance the current time by one step.

        Raises
        ------
        CouplingAssertionError
            If the controller has already reached the end time.
        """
        if self.is_finished:
            raise CouplingAssertionError(
                f"Cannot increment time past the end ({self._current} >= {self._end})"
            )
        self._timestep += 1
        self._current = min(self._timestep * self._delta_t, self._end)
        if self.is_finished:
            logger.debug("Time reached end t = %.6e after %d steps", self._end, self._timestep)

    def time_to_output(self) -> bool:
        """Whether the current step completes an output interval."""
        return self._on_interval(self._output_interval)

    def time_to_refine(self) -> bool:
        """Whether the current step completes a refinement interval."""
        return self._on_interval(self._refinement_interval)

    def _on_interval(self, interval: float) -> bool:
        if interval <= 0:
            return False
        steps = max(int(round(interval / self._delta_t)), 1)
        return self._timestep % steps == 0 or self.is_finished

    def __repr__(self) -> str:
        return (
            f"<TimeController t={self._current:.6e} end={self._end:.6e} "
            f"dt={self._delta_t:.3e} step={self._timestep} state={self.state.value}>"
        )
