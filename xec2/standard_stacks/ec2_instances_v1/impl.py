# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from typing import Dict, Any

def load_stack(resource_prefix: str = '', cfg_prefix: str = '', export_prefix: str = '') -> Dict[str, Any]:
  import pulumi
  from xec2.config import parse_instance_specs, parse_network_selector
  from xec2.resolver import resolve_instances
  from xec2.runtime import (
      Ec2Instance,
      PulumiCloudDiscovery,
      pconfig,
      config_property_info,
      default_tags,
      aws_default_region,
    )

  instances_data = pconfig.require_object(
      f'{cfg_prefix}instances',
      config_property_info(description="List (or name-keyed object) of instances to create"),
    )
  network_data = pconfig.get_object(
      f'{cfg_prefix}network',
      config_property_info(description="Shared VPC/subnet/security group selector, default=match any VPC"),
    )

  specs = parse_instance_specs(instances_data)
  selector = parse_network_selector(network_data)

  # Fails the whole stack before any query if a single instance is invalid
  resolved = resolve_instances(
      specs,
      selector,
      PulumiCloudDiscovery(region=aws_default_region),
      default_tags=default_tags,
    )

  instances: Dict[str, Any] = {}
  for r in resolved:
    inst = Ec2Instance(r, resource_prefix=resource_prefix, region=aws_default_region)
    inst.stack_export(export_prefix=export_prefix)
    instances[r.name] = inst

  if len(resolved) > 0:
    pulumi.export(f'{export_prefix}vpc_id', resolved[0].network.vpc_id)
  return instances
