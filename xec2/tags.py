# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Tag validation and merging for declared instances"""

from typing import Optional, List, Dict, Mapping, Iterable, Set, cast

import re

from .internal_types import Jsonable, JsonableDict
from .exceptions import ConfigurationError
from .models import InstanceSpec
from .constants import (
    REQUIRED_TAG_KEYS,
    ALLOWED_TAG_VALUES,
    DATE_TAG_KEYS,
    DATE_TAG_PATTERN,
    DATE_TAG_FORMAT_DESC,
  )

_date_re = re.compile(DATE_TAG_PATTERN)

def is_valid_date_tag(value: str) -> bool:
  """True if value is literally YYYY-MM-DD (digits only; the date itself is not checked)"""
  return _date_re.fullmatch(value) is not None

def get_tag_violations(spec: InstanceSpec) -> List[str]:
  """Returns a description of each rule the instance's tags and image source violate.

  An empty list means the instance is acceptable.
  """
  violations: List[str] = []
  prefix = f"instance \"{spec.name}\""
  tags = spec.tags
  for key in REQUIRED_TAG_KEYS:
    if not key in tags:
      violations.append(f"{prefix}: missing required tag \"{key}\"")
  for key, allowed in ALLOWED_TAG_VALUES.items():
    value = tags.get(key)
    if not value is None and not value in allowed:
      violations.append(
          f"{prefix}: tag \"{key}\" value \"{value}\" is not one of {', '.join(allowed)}"
        )
  for key in DATE_TAG_KEYS:
    value = tags.get(key)
    if not value is None and not is_valid_date_tag(value):
      violations.append(
          f"{prefix}: tag \"{key}\" value \"{value}\" does not match {DATE_TAG_FORMAT_DESC}"
        )
  if not spec.has_direct_image and not spec.has_parameter_path:
    violations.append(f"{prefix}: either ami_id or ssm_parameter_path must be provided")
  return violations

def get_violations(specs: Iterable[InstanceSpec]) -> List[str]:
  violations: List[str] = []
  seen: Set[str] = set()
  for spec in specs:
    if spec.name == '':
      violations.append("an instance has an empty name")
    elif spec.name in seen:
      violations.append(f"instance name \"{spec.name}\" is declared more than once")
    seen.add(spec.name)
    violations.extend(get_tag_violations(spec))
  return violations

def validate_instances(specs: Iterable[InstanceSpec]) -> None:
  """Rejects the whole instance list if any single instance is invalid.

  Raises:
      ConfigurationError: One or more instances violate the tagging contract or
                          declare no image source. The message lists every violation.
  """
  violations = get_violations(specs)
  if len(violations) > 0:
    raise ConfigurationError(
        "Invalid instance configuration:\n  " + "\n  ".join(violations),
        violations=violations
      )

def merge_tags(
      instance_name: str,
      tags: Optional[Mapping[str, str]]=None,
      default_tags: Optional[Mapping[str, str]]=None,
    ) -> Dict[str, str]:
  """Final tag mapping for an instance: default tags, then Name, then the instance's own tags"""
  result: Dict[str, str] = {}
  if not default_tags is None:
    result.update(default_tags)
  result['Name'] = instance_name
  if not tags is None:
    result.update(tags)
  return result

def describe_tag_contract() -> JsonableDict:
  return dict(
      required_tags=cast(Jsonable, list(REQUIRED_TAG_KEYS)),
      allowed_values=cast(Jsonable, dict((k, list(v)) for k, v in ALLOWED_TAG_VALUES.items())),
      date_tags=cast(Jsonable, list(DATE_TAG_KEYS)),
      date_format=DATE_TAG_FORMAT_DESC,
    )
