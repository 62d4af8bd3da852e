"""
Error taxonomy for the coupling engine.

- ConfigurationError: malformed or missing parameters, raised before any step
- GeometricQueryFailure: a point could not be resolved by interpolation
- SolverDivergence: a fluid or solid step failed; carries the last completed time
- CouplingAssertionError: an internal invariant was broken
"""

from typing import Optional


class FSIError(Exception):
    """Base class for all fem-fsi errors."""


class ConfigurationError(FSIError, ValueError):
    """Invalid or incomplete simulation parameters."""


class GeometricQueryFailure(FSIError, LookupError):
    """A physical point could not be located in the target mesh.

    Parameters
    ----------
    point : array-like
        The point that could not be resolved.
    mesh_name : str, optional
        Label of the mesh that was queried, used in the message.
    """

    def __init__(self, point, mesh_name: str = "mesh"):
        self.point = tuple(float(x) for x in point)
        self.mesh_name = mesh_name
        super().__init__(f"Point {self.point} could not be located in {mesh_name}")


class SolverDivergence(FSIError, RuntimeError):
    """A solver step failed to produce a usable solution.

    Parameters
    ----------
    message : str
        Description of the failure.
    time : float, optional
        Last fully completed coupling time. Filled in by the driver when the
        solver does not know it.
    """

    def __init__(self, message: str, time: Optional[float] = None):
        super().__init__(message)
        self.time = time


class CouplingAssertionError(FSIError, AssertionError):
    """An invariant of the coupling protocol was violated."""
