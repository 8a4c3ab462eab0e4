# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Read-only cloud queries used to resolve the network context and image ids.

CloudDiscovery is the interface the resolvers depend on. Boto3CloudDiscovery
queries AWS directly and is used by the command-line tool; the Pulumi invoke
based implementation lives in xec2.runtime.discovery.
"""

from typing import Optional, List, Mapping, Dict, cast

import json
import threading

import boto3.session
import botocore.client
import botocore.exceptions
from mypy_boto3_ec2.type_defs import FilterTypeDef

from .internal_types import Jsonable, JsonableDict
from .exceptions import ParameterLookupError, NetworkLambdaError

def tag_filters_to_ec2_filters(
      tag_filters: Optional[Mapping[str, str]]=None,
      vpc_id: Optional[str]=None,
    ) -> List[FilterTypeDef]:
  """Converts a tag key/value mapping into EC2 Describe* filters (AND semantics)"""
  filters: List[FilterTypeDef] = []
  if not vpc_id is None:
    filters.append(dict(Name='vpc-id', Values=[ vpc_id ]))
  if not tag_filters is None:
    for k, v in tag_filters.items():
      filters.append(dict(Name=f'tag:{k}', Values=[ v ]))
  return filters

def parse_network_lambda_result(function_name: str, raw: str) -> JsonableDict:
  """Parses the JSON document returned by a network selection Lambda.

  The document may contain "vpc_id", "subnet_id" and "security_group_ids";
  anything else is ignored.
  """
  try:
    data = json.loads(raw)
  except ValueError as e:
    raise NetworkLambdaError(function_name, f"result is not JSON: {e}") from e
  if not isinstance(data, dict):
    raise NetworkLambdaError(function_name, f"expected a JSON object, got {type(data).__name__}")
  result: JsonableDict = {}
  for key in ( 'vpc_id', 'subnet_id' ):
    value = data.get(key)
    if not value is None:
      if not isinstance(value, str):
        raise NetworkLambdaError(function_name, f"\"{key}\" must be a string")
      result[key] = value
  sg_ids = data.get('security_group_ids')
  if not sg_ids is None:
    if isinstance(sg_ids, str):
      sg_ids = [ sg_ids ]
    if not isinstance(sg_ids, list) or not all(isinstance(x, str) for x in sg_ids):
      raise NetworkLambdaError(function_name, "\"security_group_ids\" must be a list of strings")
    result['security_group_ids'] = cast(Jsonable, sg_ids)
  return result

class CloudDiscovery:
  """The queries the resolvers issue against the cloud provider.

  All methods are read-only and idempotent. Results are returned in the
  provider's natural order.
  """

  supports_concurrency: bool = False
  """True if queries may be issued from multiple threads at once"""

  def list_vpcs(self, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    raise NotImplementedError()

  def list_subnets(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    raise NotImplementedError()

  def list_security_groups(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    raise NotImplementedError()

  def get_parameter(self, path: str) -> str:
    """Returns the value of an SSM parameter.

    Raises:
        ParameterLookupError: The parameter does not exist or cannot be read
    """
    raise NotImplementedError()

  def invoke_network_lambda(self, function_name: str, payload: Optional[JsonableDict]=None) -> JsonableDict:
    """Invokes a Lambda that selects network ids; returns its parsed result"""
    raise NotImplementedError()

class Boto3CloudDiscovery(CloudDiscovery):
  supports_concurrency = True

  _sess: boto3.session.Session
  _lock: threading.Lock
  _clients: Dict[str, botocore.client.BaseClient]

  def __init__(
        self,
        sess: Optional[boto3.session.Session]=None,
        region_name: Optional[str]=None,
      ):
    if sess is None:
      sess = boto3.session.Session(region_name=region_name)
    self._sess = sess
    self._lock = threading.Lock()
    self._clients = {}

  @property
  def region_name(self) -> Optional[str]:
    return self._sess.region_name

  def get_client(self, service_name: str) -> botocore.client.BaseClient:
    # boto3 sessions are not thread-safe; clients are
    with self._lock:
      client = self._clients.get(service_name)
      if client is None:
        client = self._sess.client(service_name)
        self._clients[service_name] = client
    return client

  def list_vpcs(self, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    ec2 = self.get_client('ec2')
    result: List[str] = []
    paginator = ec2.get_paginator('describe_vpcs')
    for page in paginator.paginate(Filters=tag_filters_to_ec2_filters(tag_filters)):
      result.extend(x['VpcId'] for x in page['Vpcs'])
    return result

  def list_subnets(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    ec2 = self.get_client('ec2')
    result: List[str] = []
    paginator = ec2.get_paginator('describe_subnets')
    for page in paginator.paginate(Filters=tag_filters_to_ec2_filters(tag_filters, vpc_id=vpc_id)):
      result.extend(x['SubnetId'] for x in page['Subnets'])
    return result

  def list_security_groups(self, vpc_id: str, tag_filters: Optional[Mapping[str, str]]=None) -> List[str]:
    ec2 = self.get_client('ec2')
    result: List[str] = []
    paginator = ec2.get_paginator('describe_security_groups')
    for page in paginator.paginate(Filters=tag_filters_to_ec2_filters(tag_filters, vpc_id=vpc_id)):
      result.extend(x['GroupId'] for x in page['SecurityGroups'])
    return result

  def get_parameter(self, path: str) -> str:
    ssm = self.get_client('ssm')
    try:
      resp = ssm.get_parameter(Name=path)
    except botocore.exceptions.ClientError as e:
      raise ParameterLookupError(path, str(e)) from e
    value = resp['Parameter'].get('Value')
    if value is None or value == '':
      raise ParameterLookupError(path, "parameter has no value")
    return value

  def invoke_network_lambda(self, function_name: str, payload: Optional[JsonableDict]=None) -> JsonableDict:
    lam = self.get_client('lambda')
    try:
      resp = lam.invoke(
          FunctionName=function_name,
          InvocationType='RequestResponse',
          Payload=json.dumps({} if payload is None else payload, sort_keys=True).encode('utf-8'),
        )
    except botocore.exceptions.ClientError as e:
      raise NetworkLambdaError(function_name, str(e)) from e
    raw = resp['Payload'].read().decode('utf-8')
    if 'FunctionError' in resp:
      raise NetworkLambdaError(function_name, f"{resp['FunctionError']}: {raw}")
    return parse_network_lambda_result(function_name, raw)
