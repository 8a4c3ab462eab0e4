# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Parsing of instance lists and network selectors from JSON-compatible configuration.

The same document shape is accepted from Pulumi stack config (the "instances"
and "network" objects) and from a YAML or JSON file given to the command-line
tool:

  instances:
    - name: web-1
      instance_type: t3.small
      ssm_parameter_path: "ssm:/aws/service/ami-amazon-linux-latest/al2023-ami-kernel-default-x86_64"
      tags:
        Application: shop
        ...
  network:
    vpc_tags: { Tier: shared }
    subnet_tags: { Tier: private }
    security_group_tags: { Role: web }

"instances" may also be a mapping of instance name to instance object.
Unknown keys are rejected.

Every instance must carry these tags, or the whole configuration is rejected
(`xec2 required-tags` prints the same contract):

  Application, Technical Owner, Business Owner, Schedule   any value
  Environment        Training | Production | Dev | Test | UAT | Staging
  Criticality        Critical | Major | Moderate | Minor
  Data Sensitivity   High | Medium | Low
  DeleteOn           YYYY-MM-DD
  CreationDate       YYYY-MM-DD

and must give either "ami_id" or "ssm_parameter_path".
"""

from typing import Optional, List, Dict, Tuple, Mapping, Any, cast
from dataclasses import dataclass, field

import os
import json
import yaml

from .internal_types import Jsonable, JsonableDict
from .exceptions import ConfigurationError
from .models import InstanceSpec, RootVolumeSpec, VolumeSpec, NetworkSelector
from .constants import (
    DEFAULT_INSTANCE_TYPE,
    DEFAULT_ROOT_VOLUME_SIZE_GB,
    DEFAULT_VOLUME_TYPE,
  )

@dataclass
class Xec2Config:
  instances: List[InstanceSpec] = field(default_factory=list)
  network: NetworkSelector = field(default_factory=NetworkSelector)
  default_tags: Dict[str, str] = field(default_factory=dict)
  region: Optional[str] = None

def _check_keys(where: str, data: Mapping[str, Any], allowed: Tuple[str, ...]) -> None:
  unknown = sorted(k for k in data if not k in allowed)
  if len(unknown) > 0:
    raise ConfigurationError(f"{where}: unknown key(s) {', '.join(unknown)}")

def _get_dict(where: str, data: Jsonable) -> JsonableDict:
  if not isinstance(data, dict):
    raise ConfigurationError(f"{where}: expected an object, got {type(data).__name__}")
  return data

def _get_str(where: str, data: JsonableDict, key: str, default: Optional[str]=None) -> Optional[str]:
  value = data.get(key)
  if value is None:
    return default
  if not isinstance(value, str):
    raise ConfigurationError(f"{where}: \"{key}\" must be a string")
  return value

def _get_int(where: str, data: JsonableDict, key: str, default: Optional[int]=None) -> Optional[int]:
  value = data.get(key)
  if value is None:
    return default
  if isinstance(value, str) and value.strip().isdigit():
    value = int(value.strip())
  if isinstance(value, bool) or not isinstance(value, int):
    raise ConfigurationError(f"{where}: \"{key}\" must be an integer")
  return value

def _get_bool(where: str, data: JsonableDict, key: str, default: bool) -> bool:
  value = data.get(key)
  if value is None:
    return default
  if isinstance(value, str) and value.lower() in ( 'true', 'false' ):
    value = value.lower() == 'true'
  if not isinstance(value, bool):
    raise ConfigurationError(f"{where}: \"{key}\" must be a boolean")
  return value

def _get_str_list(where: str, data: JsonableDict, key: str) -> Optional[Tuple[str, ...]]:
  value = data.get(key)
  if value is None:
    return None
  if isinstance(value, str):
    value = [ value ]
  if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
    raise ConfigurationError(f"{where}: \"{key}\" must be a list of strings")
  return tuple(cast(List[str], value))

def parse_tags(where: str, data: Jsonable) -> Dict[str, str]:
  """Converts a tag mapping, stringifying scalar values"""
  if data is None:
    return {}
  data = _get_dict(where, data)
  result: Dict[str, str] = {}
  for k, v in data.items():
    if isinstance(v, bool) or not isinstance(v, (str, int, float)):
      raise ConfigurationError(f"{where}: tag \"{k}\" must have a string value")
    result[k] = str(v)
  return result

ROOT_VOLUME_KEYS = ( 'volume_size', 'volume_type', 'iops', 'encrypted', 'delete_on_termination' )
EBS_VOLUME_KEYS = ( 'device_name', ) + ROOT_VOLUME_KEYS

def parse_root_volume(where: str, data: Jsonable) -> RootVolumeSpec:
  if data is None:
    return RootVolumeSpec()
  data = _get_dict(where, data)
  _check_keys(where, data, ROOT_VOLUME_KEYS)
  return RootVolumeSpec(
      volume_size=cast(int, _get_int(where, data, 'volume_size', DEFAULT_ROOT_VOLUME_SIZE_GB)),
      volume_type=cast(str, _get_str(where, data, 'volume_type', DEFAULT_VOLUME_TYPE)),
      iops=_get_int(where, data, 'iops'),
      encrypted=_get_bool(where, data, 'encrypted', False),
      delete_on_termination=_get_bool(where, data, 'delete_on_termination', True),
    )

def parse_ebs_volume(where: str, data: Jsonable) -> VolumeSpec:
  data = _get_dict(where, data)
  _check_keys(where, data, EBS_VOLUME_KEYS)
  device_name = _get_str(where, data, 'device_name')
  if device_name is None or device_name == '':
    raise ConfigurationError(f"{where}: \"device_name\" is required")
  volume_size = _get_int(where, data, 'volume_size')
  if volume_size is None:
    raise ConfigurationError(f"{where}: \"volume_size\" is required")
  return VolumeSpec(
      device_name=device_name,
      volume_size=volume_size,
      volume_type=cast(str, _get_str(where, data, 'volume_type', DEFAULT_VOLUME_TYPE)),
      iops=_get_int(where, data, 'iops'),
      encrypted=_get_bool(where, data, 'encrypted', False),
      delete_on_termination=_get_bool(where, data, 'delete_on_termination', True),
    )

INSTANCE_KEYS = (
    'name',
    'instance_type',
    'ami_id',
    'ssm_parameter_path',
    'key_name',
    'iam_instance_profile',
    'associate_public_ip_address',
    'subnet_id',
    'security_group_ids',
    'root_volume',
    'ebs_volumes',
    'user_data',
    'tags',
  )

def parse_instance_spec(data: Jsonable, name: Optional[str]=None) -> InstanceSpec:
  """Builds an InstanceSpec from one configuration object.

  Args:
      data (Jsonable): The instance object
      name (Optional[str]): The instance name, when instances are given as a mapping
                            keyed by name. Overrides any "name" key. Default None.
  """
  where = "instance" if name is None else f"instance \"{name}\""
  data = _get_dict(where, data)
  _check_keys(where, data, INSTANCE_KEYS)
  if name is None:
    name = _get_str(where, data, 'name')
    if name is None or name == '':
      raise ConfigurationError(f"{where}: \"name\" is required")
    where = f"instance \"{name}\""

  ebs_data = data.get('ebs_volumes')
  if ebs_data is None:
    ebs_data = []
  if not isinstance(ebs_data, list):
    raise ConfigurationError(f"{where}: \"ebs_volumes\" must be a list")

  return InstanceSpec(
      name=name,
      instance_type=cast(str, _get_str(where, data, 'instance_type', DEFAULT_INSTANCE_TYPE)),
      ami_id=_get_str(where, data, 'ami_id'),
      ssm_parameter_path=_get_str(where, data, 'ssm_parameter_path'),
      key_name=_get_str(where, data, 'key_name'),
      iam_instance_profile=_get_str(where, data, 'iam_instance_profile'),
      associate_public_ip_address=_get_bool(where, data, 'associate_public_ip_address', False),
      subnet_id=_get_str(where, data, 'subnet_id'),
      security_group_ids=_get_str_list(where, data, 'security_group_ids'),
      root_volume=parse_root_volume(f"{where} root_volume", data.get('root_volume')),
      ebs_volumes=tuple(parse_ebs_volume(f"{where} ebs_volumes[{i}]", x) for i, x in enumerate(ebs_data)),
      user_data=_get_str(where, data, 'user_data'),
      tags=parse_tags(f"{where} tags", data.get('tags')),
    )

def parse_instance_specs(data: Jsonable) -> List[InstanceSpec]:
  """Builds the instance list from a list of instance objects or a name-keyed mapping"""
  if data is None:
    return []
  if isinstance(data, dict):
    return [ parse_instance_spec(v, name=k) for k, v in data.items() ]
  if isinstance(data, list):
    return [ parse_instance_spec(x) for x in data ]
  raise ConfigurationError(f"instances: expected a list or an object, got {type(data).__name__}")

NETWORK_KEYS = (
    'vpc_id',
    'subnet_id',
    'security_group_ids',
    'vpc_tags',
    'subnet_tags',
    'security_group_tags',
    'lambda_function_name',
    'lambda_payload',
    'require_unique_match',
  )

def parse_network_selector(data: Jsonable) -> NetworkSelector:
  where = "network"
  if data is None:
    return NetworkSelector()
  data = _get_dict(where, data)
  _check_keys(where, data, NETWORK_KEYS)
  lambda_payload = data.get('lambda_payload')
  if not lambda_payload is None:
    lambda_payload = _get_dict(f"{where} lambda_payload", lambda_payload)
  return NetworkSelector(
      vpc_id=_get_str(where, data, 'vpc_id'),
      subnet_id=_get_str(where, data, 'subnet_id'),
      security_group_ids=_get_str_list(where, data, 'security_group_ids'),
      vpc_tags=parse_tags(f"{where} vpc_tags", data.get('vpc_tags')),
      subnet_tags=parse_tags(f"{where} subnet_tags", data.get('subnet_tags')),
      security_group_tags=parse_tags(f"{where} security_group_tags", data.get('security_group_tags')),
      lambda_function_name=_get_str(where, data, 'lambda_function_name'),
      lambda_payload=lambda_payload,
      require_unique_match=_get_bool(where, data, 'require_unique_match', False),
    )

CONFIG_KEYS = ( 'instances', 'network', 'default_tags', 'region' )

def parse_config(data: Jsonable) -> Xec2Config:
  data = _get_dict("config", data)
  _check_keys("config", data, CONFIG_KEYS)
  return Xec2Config(
      instances=parse_instance_specs(data.get('instances')),
      network=parse_network_selector(data.get('network')),
      default_tags=parse_tags("default_tags", data.get('default_tags')),
      region=_get_str("config", data, 'region'),
    )

# Plain scalars that YAML 1.1 would turn into ints, floats or dates stay as the
# text that was written, so "DeleteOn: 2030-02-31", "Application: 0123" and
# "Schedule: 24:00" reach the tag checks unchanged. Numeric fields such as
# volume_size accept digit strings.
_TEXT_SCALAR_TAGS = (
    'tag:yaml.org,2002:int',
    'tag:yaml.org,2002:float',
    'tag:yaml.org,2002:timestamp',
  )

class ConfigLoader(yaml.SafeLoader):  # pylint: disable=too-many-ancestors
  pass

ConfigLoader.yaml_implicit_resolvers = dict(
    (k, [ x for x in v if not x[0] in _TEXT_SCALAR_TAGS ])
      for k, v in yaml.SafeLoader.yaml_implicit_resolvers.items()
  )

def load_config_file(pathname: str) -> Xec2Config:
  """Loads a YAML or JSON configuration file (JSON if the name ends in .json)"""
  pathname = os.path.abspath(os.path.expanduser(pathname))
  if not os.path.isfile(pathname):
    raise FileNotFoundError(f"xec2: Config file not found: '{pathname}'")
  with open(pathname, encoding='utf-8') as f:
    config_text = f.read()
  try:
    if pathname.endswith('.json'):
      data = json.loads(config_text)
    else:
      data = yaml.load(config_text, Loader=ConfigLoader)
  except (ValueError, yaml.YAMLError) as e:
    raise ConfigurationError(f"Unable to parse config file '{pathname}': {e}") from e
  return parse_config(data)
