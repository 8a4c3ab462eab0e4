import json

from xec2.cli import run
from xec2.constants import REQUIRED_TAG_KEYS
from xec2.version import __version__

from conftest import build_valid_tags


def _write_config(tmp_path, instances):
  path = tmp_path / "instances.json"
  path.write_text(json.dumps({"instances": instances}))
  return str(path)


def test_version(capsys):
  assert run(["version"]) == 0
  assert json.loads(capsys.readouterr().out) == __version__


def test_version_raw(capsys):
  assert run(["-r", "version"]) == 0
  assert capsys.readouterr().out == f"{__version__}\n"


def test_bare_command_fails(capsys):
  assert run([]) == 1
  assert "command is required" in capsys.readouterr().err


def test_required_tags(capsys):
  assert run(["required-tags"]) == 0
  contract = json.loads(capsys.readouterr().out)
  assert sorted(contract["required_tags"]) == sorted(REQUIRED_TAG_KEYS)


def test_normalize_single_path(capsys):
  assert run(["-r", "normalize-path", "SSM:/path/"]) == 0
  assert capsys.readouterr().out == "/path\n"


def test_normalize_several_paths(capsys):
  assert run(["-c", "normalize-path", "path", "//a/b//"]) == 0
  assert json.loads(capsys.readouterr().out) == ["/path", "/a/b"]


def test_validate_ok(tmp_path, capsys):
  config_file = _write_config(tmp_path, [{"name": "web-1", "ami_id": "ami-1", "tags": build_valid_tags()}])

  assert run(["validate", config_file]) == 0
  assert json.loads(capsys.readouterr().out) == {"valid": True, "instances": ["web-1"]}


def test_validate_reports_violations(tmp_path, capsys):
  tags = build_valid_tags()
  tags["Environment"] = "Prod"
  config_file = _write_config(tmp_path, [{"name": "web-1", "tags": tags}])

  assert run(["-M", "validate", config_file]) == 1
  err = capsys.readouterr().err
  assert err.startswith("xec2: error: ")
  assert "Environment" in err
  assert "either ami_id or ssm_parameter_path must be provided" in err


def test_output_file(tmp_path):
  out = tmp_path / "out.json"

  assert run(["-o", str(out), "normalize-path", "a"]) == 0
  assert json.loads(out.read_text()) == "/a"


def test_unknown_command_exit_code(capsys):
  assert run(["no-such-command"]) == 2
