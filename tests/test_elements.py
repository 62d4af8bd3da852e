"""Tests for reference elements and the isoparametric mapping."""

import numpy as np
import pytest

from fem_fsi.elements import (
    ElementType,
    facet_quadrature,
    get_reference_element,
    inverse_map,
    map_to_physical,
    quadrature_points,
    shape_function_gradients,
    strain_displacement_matrix,
    voigt_to_tensor,
)

REFERENCE_MEASURES = {
    ElementType.line: 2.0,
    ElementType.triangle: 0.5,
    ElementType.quad: 4.0,
    ElementType.tetra: 1.0 / 6.0,
    ElementType.hexahedron: 8.0,
}


@pytest.fixture
def quad_coords():
    """A distorted quadrilateral."""
    return np.array([[0.0, 0.0], [2.0, 0.1], [2.2, 1.5], [-0.1, 1.0]])


@pytest.mark.parametrize("element_type", list(REFERENCE_MEASURES))
class TestReferenceElements:
    def test_weights_sum_to_reference_measure(self, element_type):
        element = get_reference_element(element_type)
        _, weights = element.integration_points
        assert np.sum(weights) == pytest.approx(REFERENCE_MEASURES[element_type])

    def test_kronecker_property(self, element_type):
        element = get_reference_element(element_type)
        N = np.array([element.shape_functions(x) for x in element.reference_nodes])
        assert np.allclose(N, np.eye(element.node_count))

    def test_partition_of_unity(self, element_type):
        element = get_reference_element(element_type)
        points, _ = element.integration_points
        for xi in points:
            assert np.sum(element.shape_functions(xi)) == pytest.approx(1.0)
            assert np.allclose(element.shape_function_derivatives(xi).sum(axis=0), 0.0)

    def test_integration_points_inside(self, element_type):
        element = get_reference_element(element_type)
        points, _ = element.integration_points
        assert all(element.inside(xi) for xi in points)
        assert element.inside(element.reference_centroid)

    def test_shared_instance(self, element_type):
        assert get_reference_element(element_type) is get_reference_element(element_type)


class TestMapping:
    def test_inverse_map_recovers_reference_point(self, quad_coords):
        element = get_reference_element(ElementType.quad)
        xi = np.array([0.3, -0.6])
        point = map_to_physical(element, quad_coords, xi)
        assert np.allclose(inverse_map(element, quad_coords, point), xi)

    def test_inverse_map_outside_point(self, quad_coords):
        element = get_reference_element(ElementType.quad)
        xi = inverse_map(element, quad_coords, np.array([5.0, 5.0]))
        assert xi is None or not element.inside(xi)

    def test_simplex_inverse_is_exact(self):
        element = get_reference_element(ElementType.triangle)
        coords = np.array([[1.0, 1.0], [3.0, 1.5], [1.5, 4.0]])
        point = np.array([2.0, 2.0])
        xi = inverse_map(element, coords, point)
        assert np.allclose(map_to_physical(element, coords, xi), point)

    def test_gradients_reproduce_linear_field(self, quad_coords):
        element = get_reference_element(ElementType.quad)
        # u(x, y) = 2x - 3y + 1 is reproduced exactly by bilinear elements
        u = 2 * quad_coords[:, 0] - 3 * quad_coords[:, 1] + 1
        dN_dx, det_J = shape_function_gradients(element, quad_coords, np.array([0.2, 0.4]))
        assert det_J > 0
        assert np.allclose(u @ dN_dx, [2.0, -3.0])

    def test_inverted_element_raises(self):
        element = get_reference_element(ElementType.triangle)
        coords = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0]])
        with pytest.raises(ValueError):
            shape_function_gradients(element, coords, element.reference_centroid)

    def test_quadrature_points_of_unit_square(self):
        element = get_reference_element(ElementType.quad)
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
        points = quadrature_points(element, coords)
        g = 0.5 / np.sqrt(3.0)
        assert points.shape == (4, 2)
        assert np.allclose(np.sort(np.unique(np.round(points[:, 0], 12))), [0.5 - g, 0.5 + g])


class TestFacetQuadrature:
    def test_unit_square_bottom_face(self):
        element = get_reference_element(ElementType.quad)
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
        points, normals, JxW = facet_quadrature(element, coords, 0)
        assert np.allclose(points[:, 1], 0.0)
        assert np.allclose(normals, [[0.0, -1.0], [0.0, -1.0]])
        assert np.sum(JxW) == pytest.approx(1.0)

    def test_normals_point_outward_on_all_faces(self):
        element = get_reference_element(ElementType.triangle)
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        center = coords.mean(axis=0)
        for face in range(len(element.faces)):
            points, normals, _ = facet_quadrature(element, coords, face)
            for point, normal in zip(points, normals):
                assert np.dot(normal, point - center) > 0
                assert np.linalg.norm(normal) == pytest.approx(1.0)

    def test_hexahedron_face_area(self):
        element = get_reference_element(ElementType.hexahedron)
        coords = (element.reference_nodes + 1.0) * np.array([1.0, 2.0, 3.0]) / 2.0
        total = sum(np.sum(facet_quadrature(element, coords, f)[2]) for f in range(6))
        assert total == pytest.approx(2 * (1 * 2 + 2 * 3 + 1 * 3))


class TestVectorOperators:
    def test_rigid_translation_has_no_strain(self, quad_coords):
        element = get_reference_element(ElementType.quad)
        dN_dx, _ = shape_function_gradients(element, quad_coords, np.zeros(2))
        B = strain_displacement_matrix(dN_dx)
        u = np.tile([0.3, -0.7], element.node_count)
        assert np.allclose(B @ u, 0.0)

    def test_voigt_to_tensor_symmetry(self):
        tensor = voigt_to_tensor(np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]))
        assert np.allclose(tensor, tensor.T)
        assert tensor[0, 1] == 4.0 and tensor[1, 2] == 5.0 and tensor[0, 2] == 6.0
