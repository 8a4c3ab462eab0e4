import pytest

from xec2.exceptions import (
  ConfigurationError,
  DiscoveryAmbiguousError,
  DiscoveryEmptyError,
  NetworkLambdaError,
  ParameterLookupError,
  Xec2Error,
)
from xec2.models import NetworkSelector, IMAGE_SOURCE_DIRECT, IMAGE_SOURCE_SSM
from xec2.resolver import resolve_images, resolve_instances


def test_invalid_instance_rejected_before_any_query(make_spec, fake_discovery, valid_tags):
  discovery = fake_discovery(vpcs=["vpc-1"], subnets=["subnet-1"], security_groups=["sg-1"])
  bad_tags = dict(valid_tags)
  del bad_tags["Schedule"]
  specs = [make_spec("web-1"), make_spec("web-2", tags=bad_tags)]
  selector = NetworkSelector(lambda_function_name="pick-network")

  with pytest.raises(ConfigurationError):
    resolve_instances(specs, selector, discovery)
  assert discovery.calls == []


def test_full_pass_resolves_every_instance(make_spec, fake_discovery):
  discovery = fake_discovery(
    vpcs=["vpc-1"],
    subnets=["subnet-1", "subnet-2"],
    security_groups=["sg-1"],
    parameters={"/images/web": "ami-from-ssm"},
  )
  specs = [
    make_spec("web-1", ssm_parameter_path="ssm://images/web/"),
    make_spec("web-2", subnet_id="subnet-2", ami_id="ami-direct"),
  ]

  resolved = resolve_instances(specs, NetworkSelector(), discovery, default_tags={"Team": "shop"})

  assert [x.name for x in resolved] == ["web-1", "web-2"]
  first, second = resolved
  assert first.image.ami_id == "ami-from-ssm"
  assert first.image.source == IMAGE_SOURCE_SSM
  assert first.image.parameter_path == "/images/web"
  assert first.network.subnet_id == "subnet-1"
  assert second.image.source == IMAGE_SOURCE_DIRECT
  assert second.network.subnet_id == "subnet-2"
  assert first.tags["Team"] == "shop"
  assert first.tags["Name"] == "web-1"
  assert discovery.count("get_parameter") == 1


def test_direct_ami_wins_over_unresolvable_path(make_spec, fake_discovery):
  discovery = fake_discovery(vpcs=["vpc-1"], subnets=["subnet-1"], security_groups=["sg-1"])
  spec = make_spec(ami_id="ami-direct", ssm_parameter_path="/does/not/exist")

  resolved = resolve_instances([spec], NetworkSelector(), discovery)

  assert resolved[0].image.ami_id == "ami-direct"
  assert discovery.count("get_parameter") == 0


def test_unresolvable_path_fails_the_pass(make_spec, fake_discovery):
  discovery = fake_discovery(vpcs=["vpc-1"], subnets=["subnet-1"], security_groups=["sg-1"])
  spec = make_spec(ssm_parameter_path="ssm:/does/not/exist")

  with pytest.raises(ParameterLookupError) as excinfo:
    resolve_instances([spec], NetworkSelector(), discovery)
  assert excinfo.value.path == "/does/not/exist"


def test_guardrails_applied_on_request(make_spec, fake_discovery):
  discovery = fake_discovery(vpcs=["vpc-1"], subnets=["subnet-1"], security_groups=[])
  specs = [make_spec()]

  resolved = resolve_instances(specs, NetworkSelector(), discovery)
  assert resolved[0].network.security_group_ids == ()

  with pytest.raises(DiscoveryEmptyError) as excinfo:
    resolve_instances(specs, NetworkSelector(), discovery, apply_guardrails=True)
  assert excinfo.value.missing == "security group"


def test_lambda_supplies_network(make_spec, fake_discovery):
  discovery = fake_discovery(
    vpcs=["vpc-d"],
    subnets=["subnet-d"],
    security_groups=["sg-d"],
    lambda_result={"vpc_id": "vpc-l", "subnet_id": "subnet-l", "security_group_ids": ["sg-l"]},
  )
  selector = NetworkSelector(lambda_function_name="pick-network")

  resolved = resolve_instances([make_spec()], selector, discovery)

  assert resolved[0].network.vpc_id == "vpc-l"
  assert resolved[0].network.subnet_id == "subnet-l"
  assert resolved[0].network.security_group_ids == ("sg-l",)
  assert discovery.count("list_vpcs") == 0
  assert discovery.count("list_subnets") == 0
  assert discovery.count("list_security_groups") == 0


def test_empty_instance_list_resolves_to_nothing(fake_discovery):
  discovery = fake_discovery(vpcs=["vpc-1"])

  assert resolve_instances([], NetworkSelector(), discovery) == []


def test_concurrent_image_lookups_keep_declaration_order(make_spec, fake_discovery):
  parameters = {f"/images/app-{i}": f"ami-{i:04d}" for i in range(6)}
  discovery = fake_discovery(parameters=parameters)
  specs = [make_spec(f"app-{i}", ssm_parameter_path=f"images/app-{i}") for i in range(6)]

  serial = resolve_images(specs, discovery, concurrent=False)
  parallel = resolve_images(specs, discovery, concurrent=True, max_workers=3)

  assert serial == parallel
  assert [x.ami_id for x in parallel] == [f"ami-{i:04d}" for i in range(6)]


def test_package_errors_share_one_base():
  for error in (
    ConfigurationError("bad"),
    DiscoveryEmptyError("VPC"),
    DiscoveryAmbiguousError("VPC", ["vpc-1", "vpc-2"]),
    ParameterLookupError("/images/web"),
    NetworkLambdaError("pick-network", "timeout"),
  ):
    assert isinstance(error, Xec2Error)
  assert Xec2Error.__doc__.startswith("Base class")
