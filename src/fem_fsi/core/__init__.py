"""
Core module for fem-fsi.

Provides configuration, time control, errors, materials, fields and meshes.
"""

from .config import Parameters
from .exceptions import (
    ConfigurationError,
    CouplingAssertionError,
    FSIError,
    GeometricQueryFailure,
    SolverDivergence,
)
from .material import FluidMaterial, IsotropicMaterial
from .time import TimeController, TimeState

__all__ = [
    "Parameters",
    "FSIError",
    "ConfigurationError",
    "GeometricQueryFailure",
    "SolverDivergence",
    "CouplingAssertionError",
    "FluidMaterial",
    "IsotropicMaterial",
    "TimeController",
    "TimeState",
]
