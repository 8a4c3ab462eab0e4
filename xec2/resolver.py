# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""A complete resolution pass over a declared instance list"""

from typing import Optional, List, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor

import pulumi

from .models import InstanceSpec, NetworkSelector, ResolvedInstance, ResolvedImage
from .discovery import CloudDiscovery
from .tags import validate_instances, merge_tags
from .image import resolve_image
from .network import (
    apply_network_lambda,
    discover_network_context,
    resolve_network,
    check_network_guardrails,
  )

DEFAULT_MAX_LOOKUP_WORKERS = 8

def resolve_images(
      specs: Sequence[InstanceSpec],
      discovery: CloudDiscovery,
      concurrent: bool=False,
      max_workers: int=DEFAULT_MAX_LOOKUP_WORKERS,
    ) -> List[ResolvedImage]:
  """Resolves the image of every instance, in declaration order"""
  # Only instances without a direct ami_id cause a parameter lookup
  n_lookups = sum(1 for x in specs if not x.has_direct_image)
  if not concurrent or n_lookups < 2:
    return [ resolve_image(x, discovery) for x in specs ]
  with ThreadPoolExecutor(max_workers=min(max_workers, n_lookups)) as executor:
    return list(executor.map(lambda x: resolve_image(x, discovery), specs))

def resolve_instances(
      specs: Sequence[InstanceSpec],
      selector: NetworkSelector,
      discovery: CloudDiscovery,
      default_tags: Optional[Mapping[str, str]]=None,
      concurrent: Optional[bool]=None,
      apply_guardrails: bool=False,
    ) -> List[ResolvedInstance]:
  """Validates the instance list, then resolves network context and image for each instance.

  Validation covers the whole list before any discovery query is issued. The
  VPC is resolved first, then subnet and security group candidates, then the
  per-instance parameter lookups.

  Args:
      specs (Sequence[InstanceSpec]): The declared instances
      selector (NetworkSelector): The shared network selector
      discovery (CloudDiscovery): The cloud query backend
      default_tags (Optional[Mapping[str, str]]): Tags applied under every instance's own tags
      concurrent (Optional[bool]): Allow independent queries to run in parallel.
                                   Default is discovery.supports_concurrency.
      apply_guardrails (bool): If True, run the materialization guardrails on
                               every resolved network before returning. Default False.

  Raises:
      ConfigurationError: The instance list is invalid
      ParameterLookupError: An image path could not be read
      DiscoveryEmptyError: apply_guardrails is set and a network element is missing

  Returns:
      List[ResolvedInstance]: One entry per declared instance, in declaration order
  """
  validate_instances(specs)
  if concurrent is None:
    concurrent = discovery.supports_concurrency

  selector = apply_network_lambda(selector, discovery)
  ctx = discover_network_context(specs, selector, discovery, concurrent=concurrent)
  images = resolve_images(specs, discovery, concurrent=concurrent)

  result: List[ResolvedInstance] = []
  for spec, image in zip(specs, images):
    network = resolve_network(spec, selector, ctx)
    if apply_guardrails:
      check_network_guardrails(network, instance_name=spec.name)
    result.append(
        ResolvedInstance(
            spec=spec,
            network=network,
            image=image,
            tags=merge_tags(spec.name, spec.tags, default_tags=default_tags),
          )
      )
  pulumi.log.debug(f"Resolved {len(result)} instance(s) in VPC {ctx.vpc_id}")
  return result
