import pytest

from intel_pipeline import cli
from intel_pipeline.config import ConfigLoader


def test_run_arguments():
    args = cli.build_parser().parse_args([
        "run", "Acme", "-d", "1", "--allow-duplicates", "--delay", "0",
        "--domains", "ONAPI", "SCJ", "--stream",
    ])

    assert args.func is cli.run_command
    assert args.query == "Acme"
    assert args.max_depth == 1
    assert args.allow_duplicates
    assert args.delay == 0.0
    assert args.domains == ["ONAPI", "SCJ"]
    assert args.stream


def test_config_create_and_validate(tmp_path, capsys):
    path = str(tmp_path / "config.yaml")

    cli.config_command(cli.build_parser().parse_args(["config", "--create-default", "-o", path]))
    cli.config_command(cli.build_parser().parse_args(["config", "--validate", path]))

    out = capsys.readouterr().out
    assert "Default configuration created" in out
    assert "Configuration is valid" in out
    assert ConfigLoader.load_from_yaml(path).pipeline.max_depth == 2


def test_config_validate_rejects_bad_file(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("pipeline:\n  max_depth: -3\n", encoding='utf-8')

    with pytest.raises(SystemExit) as excinfo:
        cli.config_command(cli.build_parser().parse_args(["config", "--validate", str(path)]))
    assert excinfo.value.code == 1


def test_show_unknown_run(tmp_path, capsys):
    config_path = tmp_path / "memory.yaml"
    config_path.write_text("storage:\n  storage_type: memory\n", encoding='utf-8')

    with pytest.raises(SystemExit):
        cli.show_command(cli.build_parser().parse_args(["show", "missing", "-c", str(config_path)]))
    assert "not found" in capsys.readouterr().out
