#
# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from typing import Optional, List

class Xec2Error(Exception):
  """Base class for all error exceptions defined by this package."""

class ConfigurationError(Xec2Error):
  """The declared instance list or network selector is invalid.

  Raised before any discovery query is issued. A single invalid instance
  rejects the whole configuration.
  """
  violations: List[str]

  def __init__(self, message: str, violations: Optional[List[str]]=None):
    super().__init__(message)
    self.violations = [] if violations is None else list(violations)

class DiscoveryEmptyError(Xec2Error):
  """A resolved VPC, subnet or security group list was empty at materialization time."""
  instance_name: Optional[str]
  missing: str

  def __init__(self, missing: str, instance_name: Optional[str]=None, message: Optional[str]=None):
    if message is None:
      if instance_name is None:
        message = f"No {missing} could be resolved"
      else:
        message = f"No {missing} could be resolved for instance \"{instance_name}\""
    super().__init__(message)
    self.missing = missing
    self.instance_name = instance_name

class DiscoveryAmbiguousError(Xec2Error):
  """Tag-filtered discovery matched more than one candidate and a unique match was required."""
  resource_kind: str
  candidates: List[str]

  def __init__(self, resource_kind: str, candidates: List[str]):
    super().__init__(
        f"Tag filters matched {len(candidates)} {resource_kind} candidates {candidates}; "
        f"supply an explicit {resource_kind} id"
      )
    self.resource_kind = resource_kind
    self.candidates = list(candidates)

class ParameterLookupError(Xec2Error, LookupError):
  """A parameter-store path could not be resolved to an image id."""
  path: str

  def __init__(self, path: str, reason: Optional[str]=None):
    message = f"Unable to resolve SSM parameter \"{path}\""
    if not reason is None:
      message += f": {reason}"
    super().__init__(message)
    self.path = path

class NetworkLambdaError(Xec2Error):
  """The network selection Lambda failed or returned an unusable document."""
  function_name: str

  def __init__(self, function_name: str, reason: str):
    super().__init__(f"Network selection Lambda \"{function_name}\" failed: {reason}")
    self.function_name = function_name
