# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Package xec2 resolves and validates declarative EC2 instance lists for Pulumi
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, JsonableList

from .exceptions import (
    Xec2Error,
    ConfigurationError,
    DiscoveryEmptyError,
    DiscoveryAmbiguousError,
    ParameterLookupError,
    NetworkLambdaError,
  )

from .constants import (
    REQUIRED_TAG_KEYS,
    ALLOWED_TAG_VALUES,
    DATE_TAG_KEYS,
  )

from .models import (
    InstanceSpec,
    RootVolumeSpec,
    VolumeSpec,
    NetworkSelector,
    ResolvedNetwork,
    ResolvedImage,
    ResolvedInstance,
  )

from .tags import validate_instances, merge_tags, describe_tag_contract
from .image import normalize_ssm_parameter_path, resolve_image
from .network import check_network_guardrails
from .discovery import CloudDiscovery, Boto3CloudDiscovery
from .resolver import resolve_instances
from .config import Xec2Config, load_config_file, parse_config
