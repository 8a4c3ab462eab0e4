# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Common runtime values: stack config, AWS providers and default tags"""
from typing import (
    Optional,
    Dict,
    Any,
    cast,
  )

from dataclasses import dataclass
import threading
import pulumi
from pulumi import InvokeOptions, Config as RawPulumiConfig
import pulumi_aws

from ..exceptions import Xec2Error, ConfigurationError
from ..constants import DEFAULT_AWS_REGION, XEC2_CONFIG_NAMESPACE
from ..config import parse_tags
from .util import default_val, enable_debugging

# If environment variable XEC2_DEBUGGER is defined, this
# will cause the program to stall waiting for vscode to
# connect to port 5678 for debugging.
enable_debugging()

@dataclass
class ConfigPropertyInfo:
  description: Optional[str] = None
  type_desc: Optional[str] = None
  is_secret: Optional[bool] = None

def config_property_info(**kwargs) -> ConfigPropertyInfo:
  base = cast(Optional[ConfigPropertyInfo], kwargs.pop('base', None))
  if not base is None:
    kwargs.update((k, v) for k,v in base.__dict__.items() if not v is None and not k in kwargs)
  result = ConfigPropertyInfo(**kwargs)
  return result

known_config_properties: Dict[str, ConfigPropertyInfo] = {}

def register_config_property(key: str, info: Optional[ConfigPropertyInfo]=None) -> None:
  if not key in known_config_properties:
    known_config_properties[key] = config_property_info(base=info)

class Config(RawPulumiConfig):
  """A pulumi.Config that remembers every property read, with its description.

  known_config_properties can then be used to document the stack's configuration.
  """

  def register_config_property(
        self,
        key: str,
        info: Optional[ConfigPropertyInfo]=None
      ) -> None:
    full_key = self.full_key(key)
    register_config_property(full_key, info)

  def get(self, key: str, info: Optional[ConfigPropertyInfo] = None) -> Optional[str]:   # type: ignore[override]
    self.register_config_property(key, config_property_info(base=info, type_desc='Optional[str]'))
    return super().get(key)

  def get_object(self, key: str, info: Optional[ConfigPropertyInfo] = None) -> Optional[Any]:   # type: ignore[override]
    self.register_config_property(key, config_property_info(base=info, type_desc='Optional[Json]'))
    return super().get_object(key)

  def require_object(self, key: str, info: Optional[ConfigPropertyInfo] = None) -> Any:   # type: ignore[override]
    self.register_config_property(key, config_property_info(base=info, type_desc='Json'))
    return super().require_object(key)

pconfig = Config(XEC2_CONFIG_NAMESPACE)

stack_name = pulumi.get_stack()
pulumi_project_name = pulumi.get_project()
long_stack = f"{pulumi_project_name}-{stack_name}"

_aws_default_region = cast(Optional[str], RawPulumiConfig('aws').get('region'))
aws_default_region: str = default_val(_aws_default_region, DEFAULT_AWS_REGION)

class AwsRegionData:
  aws_region: str
  aws_provider: pulumi_aws.Provider
  invoke_options: InvokeOptions

  def __init__(self, region: str):
    self.aws_region = region
    self.aws_provider = pulumi_aws.Provider(f'aws-{region}', region=region)
    self.invoke_options = InvokeOptions(provider=self.aws_provider)

_aws_regions: Dict[str, AwsRegionData] = {}
_aws_regions_lock = threading.Lock()
def get_aws_region_data(region: Optional[str]=None) -> AwsRegionData:
  if region is None:
    region = aws_default_region
  if region is None:
    raise Xec2Error("An AWS region must be specified")
  with _aws_regions_lock:
    result = _aws_regions.get(region, None)
    if result is None:
      result = AwsRegionData(region)
      _aws_regions[region] = result
  return result

def get_aws_provider(region: Optional[str]=None) -> pulumi_aws.Provider:
  return get_aws_region_data(region).aws_provider
def get_aws_invoke_options(region: Optional[str]=None) -> InvokeOptions:
  return get_aws_region_data(region).invoke_options

owner_tag: Optional[str] = pconfig.get(
    'owner',
    config_property_info(description="Value of the Owner tag applied to every resource, default=none"),
  )

_configured_default_tags = pconfig.get_object(
    'default_tags',
    config_property_info(description="Tags applied to every instance beneath its own tags, default={}"),
  )

default_tags: Dict[str, str] = dict(
    PulumiStack=long_stack,
  )
if not owner_tag is None:
  default_tags.update(Owner=owner_tag)
try:
  default_tags.update(parse_tags("default_tags", _configured_default_tags))
except ConfigurationError as e:
  raise ConfigurationError(f"Invalid stack config {XEC2_CONFIG_NAMESPACE}:default_tags: {e}") from e
