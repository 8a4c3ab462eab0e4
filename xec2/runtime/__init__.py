# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Runtime utilities directly usable from within pulumi project __main__.py code"""

from .util import (
    future_func,
    default_val,
    enable_debugging,
  )
from .common import (
    pconfig,
    Config,
    ConfigPropertyInfo,
    config_property_info,
    known_config_properties,
    aws_default_region,
    get_aws_region_data,
    get_aws_provider,
    get_aws_invoke_options,
    default_tags,
    long_stack,
  )
from .discovery import PulumiCloudDiscovery
from .ec2_instance import Ec2Instance
