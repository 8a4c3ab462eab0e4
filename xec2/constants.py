# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants that make up the public configuration contract"""

from typing import Dict, List, Tuple

REQUIRED_TAG_KEYS: Tuple[str, ...] = (
    "Application",
    "Technical Owner",
    "Business Owner",
    "Environment",
    "Criticality",
    "Data Sensitivity",
    "DeleteOn",
    "Schedule",
    "CreationDate",
  )

ALLOWED_TAG_VALUES: Dict[str, List[str]] = {
    "Environment": [ "Training", "Production", "Dev", "Test", "UAT", "Staging" ],
    "Criticality": [ "Critical", "Major", "Moderate", "Minor" ],
    "Data Sensitivity": [ "High", "Medium", "Low" ],
  }

DATE_TAG_KEYS: Tuple[str, ...] = ( "DeleteOn", "CreationDate" )

# Literal YYYY-MM-DD; ASCII digits only, no calendar check
DATE_TAG_PATTERN = r'[0-9]{4}-[0-9]{2}-[0-9]{2}'
DATE_TAG_FORMAT_DESC = "YYYY-MM-DD"

SSM_PATH_PREFIX = "ssm:"

DEFAULT_AWS_REGION = "us-west-2"
DEFAULT_INSTANCE_TYPE = "t3.micro"
DEFAULT_ROOT_VOLUME_SIZE_GB = 20
DEFAULT_VOLUME_TYPE = "gp3"

XEC2_CONFIG_NAMESPACE = "xec2"
XEC2_DEBUGGER_ENV_VAR = "XEC2_DEBUGGER"
