import numpy as np
import pytest

from fem_fsi.core.config import Parameters
from fem_fsi.core.fields import FluidFields, SolidFields
from fem_fsi.core.mesh import DiskMesh, SquareShapeMesh


@pytest.fixture
def unit_square():
    """4x4 quadrilateral mesh of the unit square."""
    return SquareShapeMesh.create_rectangle(width=1.0, height=1.0, nx=4, ny=4)


@pytest.fixture
def small_disk():
    """Disk of radius 0.2 centered in element 5 of ``unit_square``."""
    return DiskMesh(center=(0.375, 0.375), radius=0.2, divisions=4).generate("disk")


@pytest.fixture
def fluid_fields(unit_square):
    return FluidFields.zeros(unit_square, viscosity=1.0)


@pytest.fixture
def solid_fields(small_disk):
    return SolidFields.zeros(small_disk)


@pytest.fixture
def parameters_dict():
    """Small cavity problem as a YAML-like dictionary."""
    return {
        "simulation": {
            "dimension": 2,
            "end_time": 0.03,
            "time_step": 0.01,
        },
        "fluid": {
            "viscosity": 1.0,
            "density": 1.0,
            "mesh": {"generator": "SquareShapeMesh", "width": 1.0, "height": 1.0, "nx": 4, "ny": 4},
            "velocity_bcs": [
                {"boundary_id": 0, "value": [0.0, 0.0]},
                {"boundary_id": 1, "value": [0.0, 0.0]},
                {"boundary_id": 2, "value": [0.0, 0.0]},
                {"boundary_id": 3, "value": [1.0, 0.0]},
            ],
        },
        "solid": {
            "E": 1.0e3,
            "nu": 0.3,
            "rho": 1.0,
            "mesh": {"generator": "DiskMesh", "center": [0.375, 0.375], "radius": 0.2, "divisions": 2},
        },
    }


@pytest.fixture
def parameters(parameters_dict):
    return Parameters.from_dict(parameters_dict)


@pytest.fixture
def element_areas():
    """Function returning the measure of every element, by Gauss integration."""
    return _element_areas


def _element_areas(mesh):
    from fem_fsi.elements import shape_function_gradients

    element = mesh.reference_element
    points, weights = element.integration_points
    areas = np.zeros(mesh.elements_count)
    for e in range(mesh.elements_count):
        coords = mesh.element_coords(e)
        for xi, w in zip(points, weights):
            _, det_J = shape_function_gradients(element, coords, xi)
            areas[e] += det_J * w
    return areas
