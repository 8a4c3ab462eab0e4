import json

import pytest

from xec2.config import (
  load_config_file,
  parse_config,
  parse_instance_spec,
  parse_instance_specs,
  parse_network_selector,
  parse_tags,
)
from xec2.constants import DEFAULT_INSTANCE_TYPE, DEFAULT_ROOT_VOLUME_SIZE_GB
from xec2.exceptions import ConfigurationError
from xec2.models import NetworkSelector, VolumeSpec

from conftest import build_valid_tags


YAML_CONFIG = """\
region: us-east-2
default_tags:
  Team: shop
network:
  vpc_tags:
    Tier: shared
  subnet_tags:
    Tier: private
  security_group_ids: [sg-1, sg-2]
  require_unique_match: true
instances:
  - name: web-1
    instance_type: t3.small
    ssm_parameter_path: "ssm:/aws/service/ami-amazon-linux-latest/al2023-ami-kernel-default-x86_64"
    root_volume:
      volume_size: 30
      encrypted: true
    ebs_volumes:
      - device_name: /dev/sdf
        volume_size: 100
        iops: 3000
    tags:
      Application: storefront
      Technical Owner: jane.doe@example.com
      Business Owner: sales-ops@example.com
      Environment: Dev
      Criticality: Minor
      Data Sensitivity: Low
      DeleteOn: 2030-12-31
      Schedule: office-hours
      CreationDate: 2026-10-19
"""


def test_load_yaml_file(tmp_path):
  path = tmp_path / "instances.yaml"
  path.write_text(YAML_CONFIG)

  cfg = load_config_file(str(path))

  assert cfg.region == "us-east-2"
  assert cfg.default_tags == {"Team": "shop"}
  assert cfg.network == NetworkSelector(
    vpc_tags={"Tier": "shared"},
    subnet_tags={"Tier": "private"},
    security_group_ids=("sg-1", "sg-2"),
    require_unique_match=True,
  )
  assert len(cfg.instances) == 1
  spec = cfg.instances[0]
  assert spec.name == "web-1"
  assert spec.instance_type == "t3.small"
  assert spec.ami_id is None
  assert spec.root_volume.volume_size == 30
  assert spec.root_volume.encrypted is True
  assert spec.ebs_volumes == (VolumeSpec(device_name="/dev/sdf", volume_size=100, iops=3000),)
  # unquoted YAML dates come back as the same literal text
  assert spec.tags["DeleteOn"] == "2030-12-31"
  assert spec.tags["CreationDate"] == "2026-10-19"
  assert spec.tags == build_valid_tags()


def test_load_json_file(tmp_path):
  path = tmp_path / "instances.json"
  path.write_text(json.dumps({"instances": {"db-1": {"ami_id": "ami-1", "tags": build_valid_tags()}}}))

  cfg = load_config_file(str(path))

  assert [x.name for x in cfg.instances] == ["db-1"]
  assert cfg.instances[0].ami_id == "ami-1"
  assert cfg.instances[0].instance_type == DEFAULT_INSTANCE_TYPE
  assert cfg.network == NetworkSelector()


def _load_instance_tags(tmp_path, **overrides):
  tags = build_valid_tags()
  tags.update(overrides)
  lines = ["instances:", "  - name: web-1", "    ami_id: ami-1", "    tags:"]
  # values are written unquoted, the way a configuration author would
  lines.extend(f"      {k}: {v}" for k, v in tags.items())
  path = tmp_path / "instances.yaml"
  path.write_text("\n".join(lines) + "\n")
  return load_config_file(str(path)).instances[0].tags


def test_unquoted_impossible_date_loads_as_written(tmp_path):
  tags = _load_instance_tags(tmp_path, DeleteOn="2030-02-31", CreationDate="2030-13-01")

  assert tags["DeleteOn"] == "2030-02-31"
  assert tags["CreationDate"] == "2030-13-01"


def test_unquoted_numeric_looking_tags_keep_their_text(tmp_path):
  tags = _load_instance_tags(tmp_path, Application="0123", Schedule="24:00", **{"Technical Owner": "1.50"})

  assert tags["Application"] == "0123"
  assert tags["Schedule"] == "24:00"
  assert tags["Technical Owner"] == "1.50"


def test_yaml_numeric_fields_still_parse(tmp_path):
  path = tmp_path / "instances.yaml"
  path.write_text(
    "instances:\n"
    "  - name: web-1\n"
    "    root_volume:\n"
    "      volume_size: 0040\n"
    "      iops: 3000\n"
  )

  spec = load_config_file(str(path)).instances[0]

  assert spec.root_volume.volume_size == 40
  assert spec.root_volume.iops == 3000


def test_missing_file(tmp_path):
  with pytest.raises(FileNotFoundError):
    load_config_file(str(tmp_path / "nope.yaml"))


def test_unparseable_file(tmp_path):
  path = tmp_path / "broken.json"
  path.write_text("{ not json")

  with pytest.raises(ConfigurationError):
    load_config_file(str(path))


def test_unknown_keys_rejected():
  with pytest.raises(ConfigurationError, match="instance_typo"):
    parse_instance_spec({"name": "web-1", "instance_typo": "t3.micro"})
  with pytest.raises(ConfigurationError, match="vpc_tag"):
    parse_network_selector({"vpc_tag": {"Tier": "shared"}})
  with pytest.raises(ConfigurationError, match="instance"):
    parse_config({"instance": []})


def test_instance_name_required():
  with pytest.raises(ConfigurationError, match="name"):
    parse_instance_spec({"ami_id": "ami-1"})


def test_name_keyed_mapping_overrides_name_key():
  specs = parse_instance_specs({"web-1": {"name": "ignored", "ami_id": "ami-1"}})

  assert specs[0].name == "web-1"


def test_defaults_applied():
  spec = parse_instance_spec({"name": "web-1"})

  assert spec.instance_type == DEFAULT_INSTANCE_TYPE
  assert spec.root_volume.volume_size == DEFAULT_ROOT_VOLUME_SIZE_GB
  assert spec.root_volume.delete_on_termination is True
  assert spec.associate_public_ip_address is False
  assert spec.ebs_volumes == ()
  assert spec.security_group_ids is None


def test_string_values_coerced():
  spec = parse_instance_spec({
    "name": "web-1",
    "associate_public_ip_address": "true",
    "root_volume": {"volume_size": "40"},
    "security_group_ids": "sg-1",
  })

  assert spec.associate_public_ip_address is True
  assert spec.root_volume.volume_size == 40
  assert spec.security_group_ids == ("sg-1",)


def test_ebs_volume_requires_device_and_size():
  with pytest.raises(ConfigurationError, match="device_name"):
    parse_instance_spec({"name": "web-1", "ebs_volumes": [{"volume_size": 10}]})
  with pytest.raises(ConfigurationError, match="volume_size"):
    parse_instance_spec({"name": "web-1", "ebs_volumes": [{"device_name": "/dev/sdf"}]})


def test_tag_values_stringified():
  assert parse_tags("tags", {"Count": 3, "Name": "x"}) == {"Count": "3", "Name": "x"}
  assert parse_tags("tags", None) == {}
  with pytest.raises(ConfigurationError):
    parse_tags("tags", {"Nested": {"a": "b"}})
  with pytest.raises(ConfigurationError):
    parse_tags("tags", {"Flag": True})


def test_wrong_types_rejected():
  with pytest.raises(ConfigurationError):
    parse_instance_specs("web-1")
  with pytest.raises(ConfigurationError):
    parse_instance_spec({"name": "web-1", "ami_id": 5})
  with pytest.raises(ConfigurationError):
    parse_network_selector({"require_unique_match": "maybe"})
