"""
Field transfer across the non-matching fluid/solid interface.

- ForceTransfer: on every immersed fluid element, the discrepancy between the
  fluid and the solid stress and acceleration at each quadrature point. The
  fluid solver uses it as the immersed forcing term.
- TractionTransfer: the fluid traction at each quadrature point of the solid
  boundary facets that are not clamped. The solid solver uses it as Neumann
  data.

Both produce keyed :class:`TransferMap` objects, filled in a deterministic
traversal order, which are flattened to positional arrays only when handed to
a solver.
"""

import logging
from collections import OrderedDict
from typing import Hashable, Iterable, Optional, Tuple

import numpy as np

from fem_fsi.core.config import InterpolationFallback
from fem_fsi.core.exceptions import CouplingAssertionError, GeometricQueryFailure
from fem_fsi.core.fields import FluidFields, SolidFields
from fem_fsi.core.mesh import MeshModel, PointLocator
from fem_fsi.coupling.motion import displaced
from fem_fsi.elements import facet_quadrature, map_to_physical

logger = logging.getLogger(__name__)


class TransferMap:
    """
    Ordered mapping from transfer keys to fixed-shape values.

    Parameters
    ----------
    name : str
        Label used in error messages.
    value_shape : tuple of int
        Shape of every stored value.
    """

    def __init__(self, name: str, value_shape: Tuple[int, ...]):
        self.name = name
        self.value_shape = tuple(value_shape)
        self._data: "OrderedDict[Hashable, np.ndarray]" = OrderedDict()

    def append(self, key: Hashable, value) -> None:
        value = np.asarray(value, dtype=float)
        if value.shape != self.value_shape:
            raise CouplingAssertionError(
                f"{self.name}: value of shape {value.shape} for {key}, expected {self.value_shape}"
            )
        if key in self._data:
            raise CouplingAssertionError(f"{self.name}: duplicate entry {key}")
        self._data[key] = value

    def __getitem__(self, key: Hashable) -> np.ndarray:
        return self._data[key]

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self):
        return iter(self._data)

    def keys(self):
        return self._data.keys()

    def values(self):
        return self._data.values()

    def items(self):
        return self._data.items()

    def flatten(self) -> np.ndarray:
        """Values stacked in insertion order (n_entries, *value_shape)."""
        if not self._data:
            return np.zeros((0,) + self.value_shape)
        return np.stack(list(self._data.values()))

    def __repr__(self) -> str:
        return f"<TransferMap '{self.name}' entries={len(self)} shape={self.value_shape}>"


def check_transfer_length(values: np.ndarray, expected: int, name: str) -> None:
    """Raise CouplingAssertionError unless ``values`` has ``expected`` entries."""
    if values is None:
        raise CouplingAssertionError(f"{name} has not been provided")
    if len(values) != expected:
        raise CouplingAssertionError(
            f"{name} has {len(values)} entries but the consumer traverses {expected} points"
        )


def _symmetric(tensor: np.ndarray) -> np.ndarray:
    return 0.5 * (tensor + tensor.T)


class ForceTransfer:
    """
    Stress and acceleration discrepancies over the immersed fluid elements.

    For each quadrature point of an immersed element:

        fluid_stress = -p I + mu sym(grad v)
        fluid_accel  = dv / dt + (grad v) v

    and the solid stress and acceleration are interpolated at the same
    physical point on the displaced solid. The stored values are
    ``fluid - solid``.

    Parameters
    ----------
    fallback : InterpolationFallback, optional
        Policy for points the displaced solid mesh cannot resolve.
    """

    def __init__(self, fallback: InterpolationFallback = InterpolationFallback.ZERO):
        self.fallback = InterpolationFallback(fallback)
        self.fallback_count = 0

    def compute(
        self,
        fluid_mesh: MeshModel,
        fluid_fields: FluidFields,
        solid_fields: SolidFields,
        dt: float,
    ) -> Tuple[TransferMap, TransferMap]:
        """
        Compute the paired discrepancy maps.

        Parameters
        ----------
        fluid_mesh : MeshModel
            Fluid mesh.
        fluid_fields : FluidFields
            Fluid state, including the immersed element indicator.
        solid_fields : SolidFields
            Solid state; its displacement defines the current solid shape.
        dt : float
            Time step used to turn the velocity increment into an acceleration.

        Returns
        -------
        stress_map : TransferMap
            ``(element, quadrature index) -> dim x dim`` stress discrepancy.
        accel_map : TransferMap
            ``(element, quadrature index) -> dim`` acceleration discrepancy.
        """
        if dt <= 0:
            raise CouplingAssertionError(f"Time step must be positive: {dt}")
        dim = fluid_mesh.dim
        stress_map = TransferMap("fsi_stress", (dim, dim))
        accel_map = TransferMap("fsi_acceleration", (dim,))

        element = fluid_mesh.reference_element
        ref_points, _ = element.integration_points
        identity = np.eye(dim)
        indicator = fluid_fields.indicator
        solid_mesh = solid_fields.mesh
        self.fallback_count = 0

        with displaced(solid_mesh, solid_fields.displacement):
            locator = PointLocator(solid_mesh)
            for e in np.flatnonzero(indicator):
                e = int(e)
                coords = fluid_mesh.element_coords(e)
                mu = fluid_fields.viscosity[e]
                p = fluid_fields.pressure.value(e)
                for q, xi in enumerate(ref_points):
                    v = fluid_fields.velocity.value(e, xi)
                    grad_v = fluid_fields.velocity.gradient(e, xi)
                    dv = fluid_fields.velocity_increment.value(e, xi)

                    fluid_stress = -p * identity + mu * _symmetric(grad_v)
                    fluid_accel = dv / dt + grad_v @ v

                    point = map_to_physical(element, coords, xi)
                    found = locator.find(point)
                    if found is None:
                        self._fall_back(point, solid_mesh.name)
                        stress_map.append((e, q), np.zeros((dim, dim)))
                        accel_map.append((e, q), np.zeros(dim))
                        continue

                    se, sxi = found
                    solid_stress = solid_fields.stress.value(se, sxi)
                    solid_accel = solid_fields.acceleration.value(se, sxi)
                    stress_map.append((e, q), fluid_stress - solid_stress)
                    accel_map.append((e, q), fluid_accel - solid_accel)

        if self.fallback_count:
            logger.warning(
                "Force transfer: %d quadrature points not resolved in %s, zero discrepancy used",
                self.fallback_count,
                solid_mesh.name,
            )
        return stress_map, accel_map

    def _fall_back(self, point: np.ndarray, mesh_name: str) -> None:
        if self.fallback is InterpolationFallback.RAISE:
            raise GeometricQueryFailure(point, mesh_name)
        self.fallback_count += 1


class TractionTransfer:
    """
    Fluid traction on the solid boundary.

    Evaluated on the undeformed solid geometry with the undeformed outward
    facet normals:

        traction = (-p I + viscosity sym(grad v)) n

    Parameters
    ----------
    fallback : InterpolationFallback, optional
        Policy for facet points outside the fluid mesh.
    """

    def __init__(self, fallback: InterpolationFallback = InterpolationFallback.ZERO):
        self.fallback = InterpolationFallback(fallback)
        self.fallback_count = 0

    def compute(
        self,
        solid_mesh: MeshModel,
        dirichlet_boundary_ids: Iterable[int],
        fluid_fields: FluidFields,
        viscosity: float,
        fluid_locator: Optional[PointLocator] = None,
    ) -> TransferMap:
        """
        Compute the traction map.

        Parameters
        ----------
        solid_mesh : MeshModel
            Solid mesh in its reference configuration.
        dirichlet_boundary_ids : iterable of int
            Boundary ids of clamped facets, which are skipped.
        fluid_fields : FluidFields
            Fluid state.
        viscosity : float
            Fluid dynamic viscosity.
        fluid_locator : PointLocator, optional
            Locator over the fluid mesh, reused between calls.

        Returns
        -------
        TransferMap
            ``(element, face, quadrature index) -> dim`` traction vectors.
        """
        dirichlet = set(int(i) for i in dirichlet_boundary_ids)
        dim = solid_mesh.dim
        traction_map = TransferMap("fluid_traction", (dim,))
        identity = np.eye(dim)
        fluid_mesh = fluid_fields.mesh
        locator = fluid_locator or PointLocator(fluid_mesh)
        element = solid_mesh.reference_element
        self.fallback_count = 0

        for e, f in solid_mesh.boundary_facets:
            if solid_mesh.boundary_id(e, f) in dirichlet:
                continue
            points, normals, _ = facet_quadrature(element, solid_mesh.element_coords(e), f)
            for q, (point, normal) in enumerate(zip(points, normals)):
                found = locator.find(point)
                if found is None:
                    if self.fallback is InterpolationFallback.RAISE:
                        raise GeometricQueryFailure(point, fluid_mesh.name)
                    self.fallback_count += 1
                    traction_map.append((e, f, q), np.zeros(dim))
                    continue

                fe, fxi = found
                grad_v = fluid_fields.velocity.gradient(fe, fxi)
                p = fluid_fields.pressure.value(fe, fxi)
                fluid_stress = -p * identity + viscosity * _symmetric(grad_v)
                traction_map.append((e, f, q), fluid_stress @ normal)

        if self.fallback_count:
            logger.warning(
                "Traction transfer: %d facet points outside %s, zero traction used",
                self.fallback_count,
                fluid_mesh.name,
            )
        return traction_map
