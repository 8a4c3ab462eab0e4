# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Declared and resolved EC2 instance descriptions.

Everything here is immutable and recomputed on every resolution pass. An
InstanceSpec is what the configuration author declares; a ResolvedInstance is
the same declaration with its network context and image id filled in from
live discovery.
"""

from typing import Optional, Dict, Tuple, Any, cast
from dataclasses import dataclass, field, replace

from .internal_types import Jsonable, JsonableDict
from .constants import (
    DEFAULT_INSTANCE_TYPE,
    DEFAULT_ROOT_VOLUME_SIZE_GB,
    DEFAULT_VOLUME_TYPE,
  )

@dataclass(frozen=True)
class RootVolumeSpec:
  volume_size: int = DEFAULT_ROOT_VOLUME_SIZE_GB
  volume_type: str = DEFAULT_VOLUME_TYPE
  iops: Optional[int] = None
  encrypted: bool = False
  delete_on_termination: bool = True

  def to_block_device_args(self) -> JsonableDict:
    """Returns keyword arguments for an ec2.Instance root_block_device"""
    result: JsonableDict = dict(
        volume_size=self.volume_size,
        volume_type=self.volume_type,
        encrypted=self.encrypted,
        delete_on_termination=self.delete_on_termination,
      )
    if not self.iops is None:
      result['iops'] = self.iops
    return result

@dataclass(frozen=True)
class VolumeSpec:
  """An additional EBS volume created with, and attached at launch to, an instance."""
  device_name: str
  volume_size: int
  volume_type: str = DEFAULT_VOLUME_TYPE
  iops: Optional[int] = None
  encrypted: bool = False
  delete_on_termination: bool = True

  def to_block_device_args(self) -> JsonableDict:
    """Returns keyword arguments for an entry of ec2.Instance ebs_block_devices"""
    result: JsonableDict = dict(
        device_name=self.device_name,
        volume_size=self.volume_size,
        volume_type=self.volume_type,
        encrypted=self.encrypted,
        delete_on_termination=self.delete_on_termination,
      )
    if not self.iops is None:
      result['iops'] = self.iops
    return result

@dataclass(frozen=True)
class InstanceSpec:
  name: str
  instance_type: str = DEFAULT_INSTANCE_TYPE
  ami_id: Optional[str] = None
  ssm_parameter_path: Optional[str] = None
  key_name: Optional[str] = None
  iam_instance_profile: Optional[str] = None
  associate_public_ip_address: bool = False
  subnet_id: Optional[str] = None
  security_group_ids: Optional[Tuple[str, ...]] = None
  root_volume: RootVolumeSpec = field(default_factory=RootVolumeSpec)
  ebs_volumes: Tuple[VolumeSpec, ...] = ()
  user_data: Optional[str] = None
  tags: Dict[str, str] = field(default_factory=dict)

  @property
  def has_direct_image(self) -> bool:
    return not self.ami_id is None and self.ami_id != ''

  @property
  def has_parameter_path(self) -> bool:
    return not self.ssm_parameter_path is None and self.ssm_parameter_path != ''

  @property
  def has_subnet_override(self) -> bool:
    return not self.subnet_id is None and self.subnet_id != ''

  @property
  def has_security_group_override(self) -> bool:
    # An empty override list means "not supplied"
    return not self.security_group_ids is None and len(self.security_group_ids) > 0

@dataclass(frozen=True)
class NetworkSelector:
  """Shared network selection for all instances in a resolution pass.

  Explicit ids take precedence over values returned by the optional network
  Lambda, which take precedence over tag-filtered discovery. Tag filters
  combine with AND semantics; an empty filter mapping matches everything.
  """
  vpc_id: Optional[str] = None
  subnet_id: Optional[str] = None
  security_group_ids: Optional[Tuple[str, ...]] = None
  vpc_tags: Dict[str, str] = field(default_factory=dict)
  subnet_tags: Dict[str, str] = field(default_factory=dict)
  security_group_tags: Dict[str, str] = field(default_factory=dict)
  lambda_function_name: Optional[str] = None
  lambda_payload: Optional[JsonableDict] = None
  require_unique_match: bool = False

  @property
  def has_subnet_override(self) -> bool:
    return not self.subnet_id is None and self.subnet_id != ''

  @property
  def has_security_group_override(self) -> bool:
    return not self.security_group_ids is None and len(self.security_group_ids) > 0

  def with_fallback_values(
        self,
        vpc_id: Optional[str]=None,
        subnet_id: Optional[str]=None,
        security_group_ids: Optional[Tuple[str, ...]]=None,
      ) -> 'NetworkSelector':
    """Returns a copy with the given values filled in wherever this selector has no explicit value"""
    changes: Dict[str, Any] = {}
    if (self.vpc_id is None or self.vpc_id == '') and not vpc_id is None:
      changes['vpc_id'] = vpc_id
    if not self.has_subnet_override and not subnet_id is None:
      changes['subnet_id'] = subnet_id
    if not self.has_security_group_override and not security_group_ids is None:
      changes['security_group_ids'] = tuple(security_group_ids)
    return replace(self, **changes)

@dataclass(frozen=True)
class ResolvedNetwork:
  vpc_id: Optional[str] = None
  subnet_id: Optional[str] = None
  security_group_ids: Tuple[str, ...] = ()

  def as_jsonable(self) -> JsonableDict:
    return dict(
        vpc_id=self.vpc_id,
        subnet_id=self.subnet_id,
        security_group_ids=list(self.security_group_ids),
      )

IMAGE_SOURCE_DIRECT = 'direct'
IMAGE_SOURCE_SSM = 'ssm'

@dataclass(frozen=True)
class ResolvedImage:
  ami_id: str
  source: str
  parameter_path: Optional[str] = None

  def as_jsonable(self) -> JsonableDict:
    return dict(ami_id=self.ami_id, source=self.source, parameter_path=self.parameter_path)

@dataclass(frozen=True)
class ResolvedInstance:
  spec: InstanceSpec
  network: ResolvedNetwork
  image: ResolvedImage
  tags: Dict[str, str] = field(default_factory=dict)

  @property
  def name(self) -> str:
    return self.spec.name

  def as_jsonable(self) -> JsonableDict:
    spec = self.spec
    return dict(
        name=spec.name,
        instance_type=spec.instance_type,
        ami_id=self.image.ami_id,
        image=self.image.as_jsonable(),
        network=self.network.as_jsonable(),
        key_name=spec.key_name,
        iam_instance_profile=spec.iam_instance_profile,
        associate_public_ip_address=spec.associate_public_ip_address,
        root_volume=spec.root_volume.to_block_device_args(),
        ebs_volumes=cast(Jsonable, [ v.to_block_device_args() for v in spec.ebs_volumes ]),
        tags=cast(Jsonable, dict(self.tags)),
      )
