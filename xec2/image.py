# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""AMI resolution from a direct image id or an SSM parameter path"""

from typing import Optional, TYPE_CHECKING

import pulumi

from .constants import SSM_PATH_PREFIX
from .exceptions import ConfigurationError
from .models import (
    InstanceSpec,
    ResolvedImage,
    IMAGE_SOURCE_DIRECT,
    IMAGE_SOURCE_SSM,
  )

if TYPE_CHECKING:
  from .discovery import CloudDiscovery

def normalize_ssm_parameter_path(path: str) -> str:
  """Normalizes an SSM parameter path to a single leading '/' and no trailing '/'.

  A leading "ssm:" prefix (in any letter case) is removed first. Runs of '/'
  inside the path collapse to one, since SSM names cannot contain empty
  hierarchy levels. The transform is idempotent.

    >>> normalize_ssm_parameter_path("SSM:/path/")
    '/path'
    >>> normalize_ssm_parameter_path("//a//b/")
    '/a/b'

  Args:
      path (str): The path as written by the configuration author

  Returns:
      str: The normalized path
  """
  if path[:len(SSM_PATH_PREFIX)].lower() == SSM_PATH_PREFIX:
    path = path[len(SSM_PATH_PREFIX):]
  return '/' + '/'.join(x for x in path.split('/') if x != '')

def resolve_image(spec: InstanceSpec, discovery: Optional['CloudDiscovery']=None) -> ResolvedImage:
  """Resolves the final AMI id for one instance.

  A direct ami_id always wins and the parameter store is not consulted at all,
  so an unresolvable path does not matter when an id is present.

  Raises:
      ParameterLookupError: The normalized path could not be read.
      ConfigurationError: The instance declares no image source.
  """
  if spec.has_direct_image:
    assert not spec.ami_id is None
    pulumi.log.debug(f"Instance {spec.name}: using direct AMI id {spec.ami_id}")
    return ResolvedImage(ami_id=spec.ami_id, source=IMAGE_SOURCE_DIRECT)
  if not spec.has_parameter_path:
    raise ConfigurationError(f"instance \"{spec.name}\": either ami_id or ssm_parameter_path must be provided")
  if discovery is None:
    raise ConfigurationError(f"instance \"{spec.name}\": a discovery backend is required to read SSM parameters")
  assert not spec.ssm_parameter_path is None
  path = normalize_ssm_parameter_path(spec.ssm_parameter_path)
  ami_id = discovery.get_parameter(path)
  pulumi.log.info(f"Instance {spec.name}: AMI id {ami_id} from SSM parameter {path}")
  return ResolvedImage(ami_id=ami_id, source=IMAGE_SOURCE_SSM, parameter_path=path)
