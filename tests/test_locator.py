import numpy as np
import pytest

from fem_fsi.core.exceptions import GeometricQueryFailure
from fem_fsi.core.mesh import MeshModel, PointLocator, SquareShapeMesh, contains
from fem_fsi.elements import ElementType, map_to_physical


@pytest.fixture
def locator(unit_square):
    return PointLocator(unit_square)


class TestPointLocator:
    def test_interior_point(self, locator, unit_square):
        element, xi = locator.locate([0.3, 0.4])
        assert element == 5
        coords = unit_square.element_coords(element)
        assert np.allclose(map_to_physical(unit_square.reference_element, coords, xi), [0.3, 0.4])

    def test_shared_vertex_goes_to_lowest_index(self, locator):
        # (0.25, 0.25) is a corner of elements 0, 1, 4 and 5
        element, _ = locator.locate([0.25, 0.25])
        assert element == 0

    def test_closed_region(self, locator):
        assert locator.contains([0.0, 0.0])
        assert locator.contains([1.0, 0.5])
        assert locator.contains([1.0 + 1e-13, 0.5])

    def test_outside_point(self, locator):
        assert not locator.contains([1.1, 0.5])
        assert locator.find([-0.5, 0.5]) is None
        with pytest.raises(GeometricQueryFailure) as excinfo:
            locator.locate([1.1, 0.5])
        assert excinfo.value.point == (1.1, 0.5)

    def test_candidates_prune(self, locator):
        assert set(locator.candidates([0.1, 0.1])) == {0}

    def test_boxes_follow_mesh_motion(self, locator, unit_square):
        assert not locator.contains([1.5, 0.5])
        unit_square.coords = unit_square.coords + [1.0, 0.0]
        assert locator.contains([1.5, 0.5])
        assert not locator.contains([0.5, 0.5])

    def test_triangles(self):
        mesh = SquareShapeMesh.create_rectangle(1.0, 1.0, 2, 2, triangular=True)
        assert contains(mesh, [0.9, 0.1])
        assert not contains(mesh, [1.2, 0.1])

    def test_non_convex_domain(self):
        # L-shaped domain: three unit quads, the upper-right square is empty
        coords = np.array([
            [0, 0], [1, 0], [2, 0],
            [0, 1], [1, 1], [2, 1],
            [0, 2], [1, 2],
        ], dtype=float)
        cells = [[0, 1, 4, 3], [1, 2, 5, 4], [3, 4, 7, 6]]
        mesh = MeshModel(coords, cells, ElementType.quad)
        assert contains(mesh, [0.5, 1.5])
        assert not contains(mesh, [1.5, 1.5])

    def test_hexahedra(self):
        from fem_fsi.core.mesh import BoxMesh

        mesh = BoxMesh(lengths=(1.0, 1.0, 1.0), divisions=(2, 2, 2)).generate()
        element, _ = PointLocator(mesh).locate([0.75, 0.25, 0.75])
        assert element == 5
