"""
Solver contracts and reference solvers.

The coupled run itself lives in :mod:`fem_fsi.solvers.runner`, which is not
imported here so that the coupling package can depend on the contracts.
"""

from .base import BoundaryFunction, FluidSolver, SolidSolver
from .elastic import LinearElasticSolver, elasticity_matrix
from .stokes import StokesFluidSolver, viscous_matrix

__all__ = [
    "BoundaryFunction",
    "FluidSolver",
    "SolidSolver",
    "LinearElasticSolver",
    "StokesFluidSolver",
    "elasticity_matrix",
    "viscous_matrix",
]
