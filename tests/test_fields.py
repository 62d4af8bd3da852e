import numpy as np
import pytest

from fem_fsi.core.exceptions import GeometricQueryFailure
from fem_fsi.core.fields import CellField, ComponentTensorField, FluidFields, NodalField, SolidFields


@pytest.fixture
def linear_velocity(unit_square):
    """v = (x + 2y, 3x - y), exactly representable on bilinear elements."""
    x, y = unit_square.coords[:, 0], unit_square.coords[:, 1]
    return NodalField(unit_square, 2, np.column_stack((x + 2 * y, 3 * x - y)), name="velocity")


class TestNodalField:
    def test_zero_initialization(self, unit_square):
        field = NodalField(unit_square, 2)
        assert field.values.shape == (25, 2)
        assert np.all(field.values == 0)

    def test_value_at(self, linear_velocity):
        assert np.allclose(linear_velocity.value_at([0.3, 0.7]), [0.3 + 1.4, 0.9 - 0.7])

    def test_gradient_layout(self, linear_velocity):
        # grad[i, j] = d(v_i) / d(x_j)
        assert np.allclose(linear_velocity.gradient_at([0.6, 0.2]), [[1.0, 2.0], [3.0, -1.0]])

    def test_value_outside_mesh(self, linear_velocity):
        with pytest.raises(GeometricQueryFailure):
            linear_velocity.value_at([2.0, 2.0])

    def test_flat_interleaves_components(self, linear_velocity):
        flat = linear_velocity.flat
        assert flat[0] == linear_velocity.values[0, 0]
        assert flat[1] == linear_velocity.values[0, 1]
        assert flat[2] == linear_velocity.values[1, 0]

    def test_set_flat(self, unit_square):
        field = NodalField(unit_square, 2)
        field.set_flat(np.arange(50.0))
        assert np.allclose(field.values[3], [6.0, 7.0])

    def test_copy_is_independent(self, linear_velocity):
        clone = linear_velocity.copy()
        clone.zero()
        assert np.any(linear_velocity.values != 0)


class TestCellFields:
    def test_cell_field(self, unit_square):
        field = CellField(unit_square, np.arange(16.0))
        assert field.value_at([0.3, 0.3]) == 5.0
        assert np.all(field.gradient(5) == 0)

    def test_component_tensor_field(self, unit_square):
        field = ComponentTensorField(unit_square, name="stress")
        tensors = np.zeros((16, 2, 2))
        tensors[:, 0, 1] = np.arange(16.0)
        tensors[:, 1, 0] = -1.0
        field.set_from_array(tensors)
        assert field.dim == 2
        assert field.components[0][1].values[7] == 7.0
        assert np.allclose(field.as_array(), tensors)
        assert np.allclose(field.value(3), [[0.0, 3.0], [-1.0, 0.0]])
        field.zero()
        assert np.all(field.as_array() == 0)


class TestStateContainers:
    def test_fluid_fields(self, unit_square):
        fields = FluidFields.zeros(unit_square, viscosity=0.5)
        assert fields.mesh is unit_square
        assert fields.indicator.dtype == np.bool_
        assert fields.indicator.shape == (16,)
        assert np.all(fields.viscosity == 0.5)
        assert fields.velocity.n_components == 2

    def test_solid_fields(self, small_disk):
        fields = SolidFields.zeros(small_disk)
        assert fields.mesh is small_disk
        assert fields.stress.as_array().shape == (small_disk.elements_count, 2, 2)
