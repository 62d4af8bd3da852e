import yaml

from fem_fsi.cli.run_fsi import main


def test_template(capsys):
    assert main(["--template"]) == 0
    out = capsys.readouterr().out
    data = yaml.safe_load(out)
    assert data["simulation"]["dimension"] == 2
    assert data["fluid"]["mesh"]["generator"] == "SquareShapeMesh"


def test_missing_parameter_file(tmp_path, capsys):
    assert main([str(tmp_path / "missing.prm")]) == 1
    assert "not found" in capsys.readouterr().err


def test_validate(tmp_path, parameters_dict, capsys):
    path = tmp_path / "cavity.yaml"
    path.write_text(yaml.dump(parameters_dict))
    assert main([str(path), "--validate"]) == 0
    assert "Configuration is valid" in capsys.readouterr().out


def test_validate_with_warnings(tmp_path, parameters_dict):
    parameters_dict["simulation"]["refinement_interval"] = 0.01
    path = tmp_path / "cavity.yaml"
    path.write_text(yaml.dump(parameters_dict))
    assert main([str(path), "--validate"]) == 1


def test_validate_invalid(tmp_path, parameters_dict):
    parameters_dict["solid"]["nu"] = 0.7
    path = tmp_path / "cavity.yaml"
    path.write_text(yaml.dump(parameters_dict))
    assert main([str(path), "--validate"]) == 1


def test_run(tmp_path, parameters_dict, capsys):
    parameters_dict["simulation"]["end_time"] = 0.01
    parameters_dict["simulation"]["output_interval"] = 0.01
    parameters_dict["simulation"]["output_folder"] = str(tmp_path / "results")
    path = tmp_path / "cavity.yaml"
    path.write_text(yaml.dump(parameters_dict))

    assert main([str(path)]) == 0
    assert "[3/3] Done." in capsys.readouterr().out
    assert (tmp_path / "results" / "fluid_00001.vtu").exists()


def test_run_failure(tmp_path, parameters_dict, capsys):
    parameters_dict["solid"]["mesh"] = {"file": "missing.h5"}
    path = tmp_path / "cavity.yaml"
    path.write_text(yaml.dump(parameters_dict))
    assert main([str(path)]) == 1
    assert "Exception on processing" in capsys.readouterr().err
