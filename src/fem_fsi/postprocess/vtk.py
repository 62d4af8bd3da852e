"""
VTU/PVD output of coupled results.

Each output time produces one ``.vtu`` file per domain, and a ``.pvd``
collection per domain indexes them by time so ParaView can animate the run.
"""

import logging
import os
from typing import Dict, List, Optional, Tuple

import meshio
import numpy as np

from fem_fsi.core.fields import FluidFields, SolidFields
from fem_fsi.core.mesh.io import to_meshio

logger = logging.getLogger(__name__)


def _as_3d(values: np.ndarray) -> np.ndarray:
    """Pad planar vectors with a zero z component, as VTK expects."""
    if values.shape[1] == 2:
        return np.hstack([values, np.zeros((values.shape[0], 1))])
    return values


def fluid_output_data(fields: FluidFields) -> Tuple[Dict[str, np.ndarray], Dict[str, np.ndarray]]:
    """Point and cell data of the fluid state."""
    velocity = _as_3d(fields.velocity.values)
    point_data = {
        "velocity": velocity,
        "velocity_magnitude": np.linalg.norm(velocity, axis=1),
    }
    cell_data = {
        "pressure": np.asarray(fields.pressure.values, dtype=float),
        "indicator": fields.indicator.astype(np.int8),
        "viscosity": np.asarray(fields.viscosity, dtype=float),
    }
    return point_data, cell_data


def solid_output_data(fields: SolidFields) -> Tuple[Dict[str, np.ndarray], Dict[str, np.ndarray]]:
    """Point and cell data of the solid state, one cell array per stress component."""
    displacement = _as_3d(fields.displacement.values)
    point_data = {
        "displacement": displacement,
        "displacement_magnitude": np.linalg.norm(displacement, axis=1),
        "velocity": _as_3d(fields.velocity.values),
        "acceleration": _as_3d(fields.acceleration.values),
    }
    stress = fields.stress.as_array()
    axes = "xyz"
    cell_data = {}
    for i in range(fields.stress.dim):
        for j in range(fields.stress.dim):
            cell_data[f"stress_{axes[i]}{axes[j]}"] = stress[:, i, j]
    return point_data, cell_data


def write_pvd_file(pvd_path: str, times: List[float], vtk_files: List[str]) -> None:
    """Write a ParaView collection referencing ``vtk_files`` by time."""
    with open(pvd_path, "w") as f:
        f.write('<?xml version="1.0"?>\n')
        f.write('<VTKFile type="Collection" version="1.0">\n')
        f.write("  <Collection>\n")
        for t, vtk_file in zip(times, vtk_files):
            rel_path = os.path.basename(vtk_file)
            f.write(f'    <DataSet timestep="{t}" part="0" file="{rel_path}"/>\n')
        f.write("  </Collection>\n")
        f.write("</VTKFile>\n")


class ResultWriter:
    """
    Time series writer for the fluid and solid states.

    Parameters
    ----------
    output_folder : str
        Directory receiving the files. Created if missing.
    fluid_name, solid_name : str, optional
        File name prefixes.

    Examples
    --------
    >>> writer = ResultWriter("results")
    >>> writer.write(0.1, fluid_solver.fields, solid_solver.fields)
    """

    def __init__(self, output_folder: str, fluid_name: str = "fluid", solid_name: str = "solid"):
        self.output_folder = str(output_folder)
        self.fluid_name = fluid_name
        self.solid_name = solid_name
        self.times: List[float] = []
        self._files: Dict[str, List[str]] = {fluid_name: [], solid_name: []}

    def write(
        self,
        time: float,
        fluid_fields: Optional[FluidFields] = None,
        solid_fields: Optional[SolidFields] = None,
    ) -> List[str]:
        """Write the states at ``time`` and refresh the collection files.

        Returns
        -------
        list of str
            Paths of the ``.vtu`` files written.
        """
        os.makedirs(self.output_folder, exist_ok=True)
        index = len(self.times)
        self.times.append(float(time))
        written = []

        if fluid_fields is not None:
            point_data, cell_data = fluid_output_data(fluid_fields)
            written.append(self._write_domain(self.fluid_name, index, fluid_fields.mesh, point_data, cell_data))
        if solid_fields is not None:
            point_data, cell_data = solid_output_data(solid_fields)
            written.append(self._write_domain(self.solid_name, index, solid_fields.mesh, point_data, cell_data))

        for name, files in self._files.items():
            if files:
                times = self.times[-len(files):]
                write_pvd_file(os.path.join(self.output_folder, f"{name}.pvd"), times, files)
        logger.info("Results at t=%.6g written to %s", time, self.output_folder)
        return written

    def _write_domain(self, name, index, mesh, point_data, cell_data) -> str:
        path = os.path.join(self.output_folder, f"{name}_{index:05d}.vtu")
        meshio.write(path, to_meshio(mesh, point_data, cell_data))
        self._files[name].append(path)
        return path
