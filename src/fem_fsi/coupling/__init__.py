"""
Immersed-boundary coupling between a fluid and a solid solver.

- motion: displacement of a mesh and the scoped displacement guard
- indicator: detection of the fluid elements covered by the solid
- transfer: stress/acceleration discrepancies and fluid tractions
- driver: the per-step stage sequence
"""

from fem_fsi.coupling.driver import CouplingDriver, CouplingStage
from fem_fsi.coupling.indicator import IndicatorUpdater, check_indicator
from fem_fsi.coupling.motion import displaced, move_mesh
from fem_fsi.coupling.transfer import (
    ForceTransfer,
    InterpolationFallback,
    TractionTransfer,
    TransferMap,
    check_transfer_length,
)

__all__ = [
    "CouplingDriver",
    "CouplingStage",
    "IndicatorUpdater",
    "check_indicator",
    "displaced",
    "move_mesh",
    "ForceTransfer",
    "TractionTransfer",
    "TransferMap",
    "InterpolationFallback",
    "check_transfer_length",
]
