import pytest
import yaml

from fem_fsi.core.config import InterpolationFallback, MeshConfig, Parameters, parse_prm, prm_to_dict
from fem_fsi.core.exceptions import ConfigurationError

CAVITY_PRM = """
# Disk in a lid-driven cavity
subsection Simulation
  set Dimension = 2
  set Global refinement = 1
  set End time = 0.05
  set Time step size = 0.01
  set Output interval = 0.01
  set Output folder = results
  set Interpolation fallback = raise
end

subsection Fluid
  set Dynamic viscosity = 0.5
  set Fluid density = 2.0
end

subsection Fluid mesh
  set Generator = SquareShapeMesh
  set Width = 1.0
  set Height = 1.0
  set Nx = 4
  set Ny = 4
end

subsection Fluid Dirichlet BCs
  set Boundary 2 = 0.0, 0.0
  set Boundary 3 = 1.0, free
end

subsection Solid
  set Young's modulus = 2.0e3
  set Poisson's ratio = 0.25
  set Solid density = 1.5
end

subsection Solid mesh
  set Generator = DiskMesh
  set Center = 0.5, 0.5
  set Radius = 0.2
end

subsection Solid Dirichlet BCs
  set Dirichlet boundary ids = 0
end
"""


class TestParameterFile:
    def test_parse_nested_sections(self):
        sections = parse_prm("subsection A\n  set x = 1 # comment\n  subsection B\n    set y = a b\n  end\nend\n")
        assert sections == {"A": {"x": "1", "B": {"y": "a b"}}}

    @pytest.mark.parametrize(
        "text",
        [
            "subsection A\n  set x = 1\n",
            "end\n",
            "subsection A\n  x = 1\nend\n",
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(ConfigurationError):
            parse_prm(text)

    def test_aliases(self):
        data = prm_to_dict(parse_prm(CAVITY_PRM))
        assert data["simulation"]["time_step"] == 0.01
        assert data["fluid"]["viscosity"] == 0.5
        assert data["fluid"]["density"] == 2.0
        assert data["solid"]["E"] == 2.0e3
        assert data["solid"]["nu"] == 0.25
        assert data["solid"]["rho"] == 1.5
        assert data["solid"]["dirichlet_boundary_ids"] == [0]

    def test_load_prm(self, tmp_path):
        path = tmp_path / "parameters.prm"
        path.write_text(CAVITY_PRM)
        params = Parameters.load(path)

        assert params.dimension == 2
        assert params.global_refinement == 1
        assert params.end_time == 0.05
        assert params.output_folder == "results"
        assert params.interpolation_fallback == "raise"
        assert InterpolationFallback(params.interpolation_fallback) is InterpolationFallback.RAISE
        assert params.viscosity == 0.5
        assert params.solid_dirichlet_bcs == [0]
        assert params.fluid.mesh.params == {"width": 1.0, "height": 1.0, "nx": 4, "ny": 4}
        assert params.solid.mesh.params["center"] == [0.5, 0.5]
        bcs = {bc.boundary_id: bc.value for bc in params.fluid.velocity_bcs}
        assert bcs == {2: [0.0, 0.0], 3: [1.0, None]}

    def test_unknown_boundary_entry(self):
        text = "subsection Fluid Dirichlet BCs\n  set Inlet = 1.0, 0.0\nend\n"
        with pytest.raises(ConfigurationError):
            prm_to_dict(parse_prm(text))


class TestParameters:
    def test_from_dict(self, parameters):
        assert parameters.time_step == 0.01
        assert parameters.output_interval == 0.0
        assert parameters.output_folder is None
        assert parameters.interpolation_fallback == "zero"
        assert parameters.solid.newmark.beta == 0.25
        assert len(parameters.fluid.velocity_bcs) == 4

    def test_missing_required(self, parameters_dict):
        del parameters_dict["simulation"]["time_step"]
        with pytest.raises(ConfigurationError, match="time_step"):
            Parameters.from_dict(parameters_dict)

    @pytest.mark.parametrize(
        "section, key, value",
        [
            ("simulation", "dimension", 4),
            ("simulation", "time_step", 0.0),
            ("simulation", "interpolation_fallback", "nearest"),
            ("fluid", "density", 0.0),
            ("solid", "nu", 0.5),
            ("solid", "E", "stiff"),
        ],
    )
    def test_invalid_values(self, parameters_dict, section, key, value):
        parameters_dict[section][key] = value
        with pytest.raises(ConfigurationError):
            Parameters.from_dict(parameters_dict)

    def test_velocity_component_count(self, parameters_dict):
        parameters_dict["fluid"]["velocity_bcs"][0]["value"] = [0.0, 0.0, 0.0]
        with pytest.raises(ConfigurationError):
            Parameters.from_dict(parameters_dict)

    def test_mesh_source(self):
        with pytest.raises(ConfigurationError):
            MeshConfig()
        with pytest.raises(ConfigurationError):
            MeshConfig(generator="Sphere")

    def test_invalid_generator_parameters(self):
        with pytest.raises(ConfigurationError):
            MeshConfig(generator="DiskMesh", params={"center": [0.0, 0.0], "radius": -1.0}).create("solid")

    def test_mesh_file_relative_to_parameters(self, tmp_path, unit_square, parameters_dict):
        unit_square.save(str(tmp_path / "fluid.h5"))
        parameters_dict["fluid"]["mesh"] = {"file": "fluid.h5"}
        path = tmp_path / "cavity.yaml"
        path.write_text(yaml.dump(parameters_dict))

        params = Parameters.load(path)
        mesh = params.fluid.mesh.create("fluid")
        assert mesh.name == "fluid"
        assert mesh.elements_count == 16

    def test_yaml_roundtrip(self, tmp_path, parameters):
        path = tmp_path / "saved.yaml"
        parameters.save_yaml(path)
        loaded = Parameters.load(path)
        assert loaded.to_dict() == parameters.to_dict()

    def test_unsupported_file(self, tmp_path):
        path = tmp_path / "parameters.json"
        path.write_text("{}")
        with pytest.raises(ConfigurationError):
            Parameters.load(path)
        with pytest.raises(ConfigurationError):
            Parameters.load(tmp_path / "missing.yaml")

    def test_yaml_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            Parameters.load(path)

    def test_template_is_valid(self):
        params = Parameters.from_dict(Parameters.template())
        assert params.validate() == []
        assert "FSI Simulation Parameters" in str(params)

    def test_validate_warnings(self, parameters_dict):
        parameters_dict["simulation"]["refinement_interval"] = 0.02
        parameters_dict["simulation"]["output_interval"] = 0.01
        warnings = Parameters.from_dict(parameters_dict).validate()
        assert len(warnings) == 2

    def test_fallback_policy_shared_with_transfers(self):
        from fem_fsi.coupling import InterpolationFallback as TransferFallback

        assert TransferFallback is InterpolationFallback
        assert [p.value for p in InterpolationFallback] == ["zero", "raise"]

    def test_end_time_not_multiple_of_step(self, parameters_dict):
        parameters_dict["simulation"]["end_time"] = 0.025
        warnings = Parameters.from_dict(parameters_dict).validate()
        assert len(warnings) == 1
        assert "not a multiple of time_step" in warnings[0]
