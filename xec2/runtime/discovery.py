# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Cloud discovery through pulumi_aws invokes, for use inside a Pulumi program"""

from typing import Optional, List, Mapping, Any

import json

from pulumi import InvokeOptions
import pulumi_aws as aws
from pulumi_aws import ec2, ssm

from ..internal_types import JsonableDict
from ..exceptions import ParameterLookupError, NetworkLambdaError
from ..discovery import CloudDiscovery, parse_network_lambda_result
from .common import get_aws_invoke_options

def tag_filter_args(
      filter_type: Any,
      tag_filters: Optional[Mapping[str, str]]=None,
      vpc_id: Optional[str]=None,
    ) -> Optional[List[Any]]:
  """Converts tag filters to a list of pulumi_aws Get*FilterArgs, or None if there are none"""
  result: List[Any] = []
  if not vpc_id is None:
    result.append(filter_type(name='vpc-id', values=[ vpc_id ]))
  if not tag_filters is None:
    for k, v in tag_filters.items():
      result.append(filter_type(name=f'tag:{k}', values=[ v ]))
  return result if len(result) > 0 else None

class PulumiCloudDiscovery(CloudDiscovery):
  # Invokes are issued serially from the Pulumi program
  supports_concurrency = False

  region: Optional[str] = None
  _invoke_options: Optional[InvokeOptions] = None

  def __init__(self, region: Optional[str]=None, invoke_options: Optional[InvokeOptions]=None):
    self.region = region
    self._invoke_options = invoke_options

  @property
  def invoke_options(self) -> InvokeOptions:
    if self._invoke_options is None:
      self._invoke_options = get_aws_invoke_options(self.region)
    return self._invoke_options

  def list_vpcs(self, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    result = ec2.get_vpcs(
        filters=tag_filter_args(ec2.GetVpcsFilterArgs, tag_filters),
        opts=self.invoke_options,
      )
    return list(result.ids or [])

  def list_subnets(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    result = ec2.get_subnets(
        filters=tag_filter_args(ec2.GetSubnetsFilterArgs, tag_filters, vpc_id=vpc_id),
        opts=self.invoke_options,
      )
    return list(result.ids or [])

  def list_security_groups(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    result = ec2.get_security_groups(
        filters=tag_filter_args(ec2.GetSecurityGroupsFilterArgs, tag_filters, vpc_id=vpc_id),
        opts=self.invoke_options,
      )
    return list(result.ids or [])

  def get_parameter(self, path: str) -> str:
    try:
      result = ssm.get_parameter(name=path, opts=self.invoke_options)
    except Exception as e:
      # invoke failures surface as plain Exceptions
      raise ParameterLookupError(path, str(e)) from e
    value = result.value
    if value is None or value == '':
      raise ParameterLookupError(path, "parameter has no value")
    return value

  def invoke_network_lambda(self, function_name: str, payload: Optional[JsonableDict]=None) -> JsonableDict:
    try:
      result = aws.lambda_.get_invocation(
          function_name=function_name,
          input=json.dumps({} if payload is None else payload, sort_keys=True),
          opts=self.invoke_options,
        )
    except Exception as e:
      raise NetworkLambdaError(function_name, str(e)) from e
    return parse_network_lambda_result(function_name, result.result)
