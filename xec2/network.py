# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""VPC, subnet and security group resolution.

Every value is resolved with the same precedence:

  1. an explicit per-instance override (subnet and security groups only)
  2. an explicit value in the shared NetworkSelector (an explicit id, else a
     value returned by the network Lambda)
  3. the first match of a tag-filtered discovery query, in provider order

No round-robin or balancing is done here; callers wanting instances spread
across subnets pass explicit per-instance subnet ids.
"""

from typing import Optional, List, Tuple, Sequence, Callable, TypeVar
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import pulumi

from .exceptions import DiscoveryEmptyError, DiscoveryAmbiguousError, NetworkLambdaError
from .models import InstanceSpec, NetworkSelector, ResolvedNetwork
from .discovery import CloudDiscovery

T = TypeVar('T')

@dataclass(frozen=True)
class NetworkContext:
  """Discovery results shared by all instances of one resolution pass"""
  vpc_id: Optional[str] = None
  subnet_candidates: Tuple[str, ...] = ()
  security_group_candidates: Tuple[str, ...] = ()

def check_unique(resource_kind: str, candidates: Sequence[str], require_unique: bool) -> None:
  if len(candidates) > 1:
    if require_unique:
      raise DiscoveryAmbiguousError(resource_kind, list(candidates))
    pulumi.log.warn(
        f"Tag filters matched {len(candidates)} {resource_kind} candidates {list(candidates)}; "
        f"using the first one returned ({candidates[0]}). Set an explicit {resource_kind} id to make this deterministic."
      )

def apply_network_lambda(selector: NetworkSelector, discovery: CloudDiscovery) -> NetworkSelector:
  """Fills selector values not explicitly set from the network Lambda, if one is configured"""
  function_name = selector.lambda_function_name
  if function_name is None or function_name == '':
    return selector
  data = discovery.invoke_network_lambda(function_name, selector.lambda_payload)
  vpc_id = data.get('vpc_id')
  subnet_id = data.get('subnet_id')
  sg_ids = data.get('security_group_ids')
  if not (vpc_id is None or isinstance(vpc_id, str)) or not (subnet_id is None or isinstance(subnet_id, str)):
    raise NetworkLambdaError(function_name, "vpc_id and subnet_id must be strings")
  if not sg_ids is None and not isinstance(sg_ids, list):
    raise NetworkLambdaError(function_name, "security_group_ids must be a list")
  pulumi.log.info(f"Network Lambda {function_name} returned {data}")
  return selector.with_fallback_values(
      vpc_id=vpc_id,
      subnet_id=subnet_id,
      security_group_ids=None if sg_ids is None else tuple(str(x) for x in sg_ids),
    )

def resolve_vpc_id(selector: NetworkSelector, discovery: CloudDiscovery) -> Optional[str]:
  """The selector's vpc_id if given, else the first VPC matching the VPC tag filters"""
  if not selector.vpc_id is None and selector.vpc_id != '':
    return selector.vpc_id
  candidates = discovery.list_vpcs(selector.vpc_tags)
  pulumi.log.debug(f"VPC candidates for tags {selector.vpc_tags}: {candidates}")
  if len(candidates) == 0:
    return None
  check_unique('VPC', candidates, selector.require_unique_match)
  return candidates[0]

def resolve_subnet_id(spec: InstanceSpec, selector: NetworkSelector, candidates: Sequence[str]) -> Optional[str]:
  if spec.has_subnet_override:
    return spec.subnet_id
  if selector.has_subnet_override:
    return selector.subnet_id
  return candidates[0] if len(candidates) > 0 else None

def resolve_security_group_ids(
      spec: InstanceSpec,
      selector: NetworkSelector,
      candidates: Sequence[str]
    ) -> Tuple[str, ...]:
  # discovery results are passed through as-is; no dedup or reordering
  if spec.has_security_group_override:
    assert not spec.security_group_ids is None
    return tuple(spec.security_group_ids)
  if selector.has_security_group_override:
    assert not selector.security_group_ids is None
    return tuple(selector.security_group_ids)
  return tuple(candidates)

def _run_pair(
      first: Callable[[], T],
      second: Callable[[], T],
      concurrent: bool,
    ) -> Tuple[T, T]:
  if not concurrent:
    return first(), second()
  with ThreadPoolExecutor(max_workers=2) as executor:
    f1 = executor.submit(first)
    f2 = executor.submit(second)
    return f1.result(), f2.result()

def discover_network_context(
      specs: Sequence[InstanceSpec],
      selector: NetworkSelector,
      discovery: CloudDiscovery,
      concurrent: Optional[bool]=None,
    ) -> NetworkContext:
  """Issues the discovery queries shared by all instances.

  The VPC query runs first; the subnet and security group queries depend on it
  and may run concurrently. Queries whose results no instance would use are skipped.

  Args:
      specs: The declared instances
      selector: The shared selector, with any Lambda-provided values already applied
      discovery: The cloud query backend
      concurrent: Issue subnet and security group queries in parallel. Default is
                  discovery.supports_concurrency.
  """
  if concurrent is None:
    concurrent = discovery.supports_concurrency

  vpc_id = resolve_vpc_id(selector, discovery)
  need_subnets = not selector.has_subnet_override and any(not x.has_subnet_override for x in specs)
  need_sgs = not selector.has_security_group_override and any(not x.has_security_group_override for x in specs)

  if vpc_id is None:
    if need_subnets or need_sgs:
      pulumi.log.warn(f"No VPC matched tags {selector.vpc_tags}; subnet and security group discovery skipped")
    return NetworkContext()
  pulumi.log.info(f"Using VPC {vpc_id}")

  def get_subnets() -> List[str]:
    return discovery.list_subnets(vpc_id, selector.subnet_tags) if need_subnets else []

  def get_sgs() -> List[str]:
    return discovery.list_security_groups(vpc_id, selector.security_group_tags) if need_sgs else []

  subnets, sgs = _run_pair(get_subnets, get_sgs, concurrent and need_subnets and need_sgs)
  if need_subnets:
    pulumi.log.debug(f"Subnet candidates in {vpc_id} for tags {selector.subnet_tags}: {subnets}")
    check_unique('subnet', subnets, selector.require_unique_match)
  if need_sgs:
    pulumi.log.debug(f"Security group candidates in {vpc_id} for tags {selector.security_group_tags}: {sgs}")

  return NetworkContext(
      vpc_id=vpc_id,
      subnet_candidates=tuple(subnets),
      security_group_candidates=tuple(sgs),
    )

def resolve_network(spec: InstanceSpec, selector: NetworkSelector, ctx: NetworkContext) -> ResolvedNetwork:
  """Resolves one instance's network context. Guardrails are not applied here."""
  return ResolvedNetwork(
      vpc_id=ctx.vpc_id,
      subnet_id=resolve_subnet_id(spec, selector, ctx.subnet_candidates),
      security_group_ids=resolve_security_group_ids(spec, selector, ctx.security_group_candidates),
    )

def check_network_guardrails(network: ResolvedNetwork, instance_name: Optional[str]=None) -> None:
  """Hard precondition checked before an instance is created.

  Raises:
      DiscoveryEmptyError: The VPC or subnet is missing, or the security group list is empty
  """
  if network.vpc_id is None or network.vpc_id == '':
    raise DiscoveryEmptyError('VPC', instance_name=instance_name)
  if network.subnet_id is None or network.subnet_id == '':
    raise DiscoveryEmptyError('subnet', instance_name=instance_name)
  if len(network.security_group_ids) == 0:
    raise DiscoveryEmptyError('security group', instance_name=instance_name)
