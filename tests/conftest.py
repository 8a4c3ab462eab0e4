import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

from xec2.discovery import CloudDiscovery
from xec2.exceptions import ParameterLookupError
from xec2.internal_types import JsonableDict
from xec2.models import InstanceSpec


class FakeDiscovery(CloudDiscovery):
  """In-memory CloudDiscovery that records every query."""

  def __init__(
    self,
    vpcs: Optional[List[str]] = None,
    subnets: Optional[List[str]] = None,
    security_groups: Optional[List[str]] = None,
    parameters: Optional[Dict[str, str]] = None,
    lambda_result: Optional[JsonableDict] = None,
  ):
    self.vpcs = [] if vpcs is None else vpcs
    self.subnets = [] if subnets is None else subnets
    self.security_groups = [] if security_groups is None else security_groups
    self.parameters = {} if parameters is None else parameters
    self.lambda_result = {} if lambda_result is None else lambda_result
    self.calls: List[Tuple[str, Any]] = []

  def count(self, method: str) -> int:
    return sum(1 for name, _ in self.calls if name == method)

  def list_vpcs(self, tag_filters: Optional[Mapping[str, str]] = None) -> List[str]:
    self.calls.append(("list_vpcs", dict(tag_filters or {})))
    return list(self.vpcs)

  def list_subnets(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]] = None) -> List[str]:
    self.calls.append(("list_subnets", (vpc_id, dict(tag_filters or {}))))
    return list(self.subnets)

  def list_security_groups(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]] = None) -> List[str]:
    self.calls.append(("list_security_groups", (vpc_id, dict(tag_filters or {}))))
    return list(self.security_groups)

  def get_parameter(self, path: str) -> str:
    self.calls.append(("get_parameter", path))
    if path not in self.parameters:
      raise ParameterLookupError(path, "ParameterNotFound")
    return self.parameters[path]

  def invoke_network_lambda(self, function_name: str, payload: Optional[JsonableDict] = None) -> JsonableDict:
    self.calls.append(("invoke_network_lambda", (function_name, payload)))
    return dict(self.lambda_result)


def build_valid_tags() -> Dict[str, str]:
  return {
    "Application": "storefront",
    "Technical Owner": "jane.doe@example.com",
    "Business Owner": "sales-ops@example.com",
    "Environment": "Dev",
    "Criticality": "Minor",
    "Data Sensitivity": "Low",
    "DeleteOn": "2030-12-31",
    "Schedule": "office-hours",
    "CreationDate": "2026-10-19",
  }


@pytest.fixture
def valid_tags() -> Dict[str, str]:
  return build_valid_tags()


@pytest.fixture
def make_spec():
  """Factory for InstanceSpecs that pass validation unless overridden."""

  def _make_spec(name: str = "web-1", **kwargs) -> InstanceSpec:
    kwargs.setdefault("tags", build_valid_tags())
    if "ami_id" not in kwargs and "ssm_parameter_path" not in kwargs:
      kwargs["ami_id"] = "ami-0123456789abcdef0"
    return InstanceSpec(name=name, **kwargs)

  return _make_spec


@pytest.fixture
def fake_discovery():
  """Factory for FakeDiscovery instances."""
  return FakeDiscovery


@pytest.fixture
def aws_credentials():
  """Mocked AWS Credentials for moto."""
  os.environ["AWS_ACCESS_KEY_ID"] = "testing"
  os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
  os.environ["AWS_SECURITY_TOKEN"] = "testing"
  os.environ["AWS_SESSION_TOKEN"] = "testing"
  os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
