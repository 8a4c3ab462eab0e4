# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Declares EC2 instances from resolved instance descriptions"""

from typing import Optional, List, Dict, Any, cast

import pulumi
from pulumi import (
  ResourceOptions,
  Output,
)

from pulumi_aws import ec2

from ..internal_types import JsonableDict
from ..exceptions import Xec2Error
from ..models import ResolvedInstance
from ..network import check_network_guardrails
from .common import get_aws_provider
from .util import future_func

@future_func
def _instance_outputs(
      instance_id: str,
      private_ip: Optional[str],
      public_ip: Optional[str],
      availability_zone: Optional[str],
      instance_state: Optional[str],
      tags: Optional[Dict[str, str]],
    ) -> JsonableDict:
  return dict(
      id=instance_id,
      private_ip=private_ip,
      public_ip=public_ip,
      availability_zone=availability_zone,
      instance_state=instance_state,
      tags=cast(Any, {} if tags is None else dict(tags)),
    )

class Ec2Instance:
  """One declared EC2 instance.

  The network guardrails run before anything is declared: an instance whose
  VPC or subnet could not be resolved, or whose security group list is empty,
  raises DiscoveryEmptyError instead of being created in an unintended network.
  """
  resource_prefix: str = ''
  resolved: ResolvedInstance
  region: Optional[str] = None
  _ec2_instance: Optional[ec2.Instance] = None
  _committed: bool = False

  def __init__(
        self,
        resolved: ResolvedInstance,
        resource_prefix: Optional[str] = None,
        region: Optional[str] = None,
        commit: bool = True,
      ):
    if resource_prefix is None:
      resource_prefix = ''
    self.resource_prefix = resource_prefix
    self.resolved = resolved
    self.region = region
    if commit:
      self.commit()

  @property
  def name(self) -> str:
    return self.resolved.name

  @property
  def ec2_instance(self) -> ec2.Instance:
    if self._ec2_instance is None:
      raise Xec2Error(f"Ec2Instance {self.name} not yet committed")
    return self._ec2_instance

  def commit(self) -> None:
    if self._committed:
      return
    resolved = self.resolved
    spec = resolved.spec
    network = resolved.network
    check_network_guardrails(network, instance_name=spec.name)

    ebs_block_devices: List[JsonableDict] = [ v.to_block_device_args() for v in spec.ebs_volumes ]

    pulumi.log.info(
        f"Declaring instance {spec.name}: {spec.instance_type} {resolved.image.ami_id} "
        f"in {network.subnet_id} with {list(network.security_group_ids)}"
      )

    self._ec2_instance = ec2.Instance(
        f'{self.resource_prefix}{spec.name}',
        ami=resolved.image.ami_id,
        instance_type=spec.instance_type,
        key_name=spec.key_name,
        iam_instance_profile=spec.iam_instance_profile,
        associate_public_ip_address=spec.associate_public_ip_address,
        subnet_id=network.subnet_id,
        vpc_security_group_ids=list(network.security_group_ids),
        root_block_device=spec.root_volume.to_block_device_args(),
        ebs_block_devices=ebs_block_devices if len(ebs_block_devices) > 0 else None,
        user_data=spec.user_data,
        tags=dict(resolved.tags),
        volume_tags=dict(resolved.tags),
        opts=ResourceOptions(provider=get_aws_provider(self.region), delete_before_replace=True),
      )
    self._committed = True

  def get_outputs(self) -> Output[JsonableDict]:
    """The instance's id, private_ip, public_ip, availability_zone, instance_state and tags"""
    inst = self.ec2_instance
    return _instance_outputs(
        inst.id,
        inst.private_ip,
        inst.public_ip,
        inst.availability_zone,
        inst.instance_state,
        inst.tags,
      )

  def stack_export(self, export_prefix: Optional[str]=None) -> None:
    if export_prefix is None:
      export_prefix = ''

    pulumi.export(f'{export_prefix}instance_{self.name}', self.get_outputs())
