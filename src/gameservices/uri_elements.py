"""
Resource paths, headers and platform tables for the Game Services endpoint.

Every path is relative to ``{endpoint}/{subscription_id}``. Lookup tables are
built once at import time and exposed read-only.
"""

from enum import Enum
from types import MappingProxyType
from typing import Mapping
from urllib.parse import quote

from core.errors import UnknownPlatformError

# Media types
APPLICATION_JSON = "application/json"
APPLICATION_XML = "application/xml"

# Headers
XBL_CORRELATION_HEADER = "X-XblCorrelationId"
CMDLET_VERSION_HEADER = "X-GameServicesCmdletVersion"
API_VERSION_HEADER = "x-ms-version"
REQUEST_ID_HEADER = "x-ms-request-id"

API_VERSION = "2013-11-01"
CMDLETS_VERSION = "2015_01_v1"

# Azure service management XML namespace
AZURE_NAMESPACE = "http://schemas.microsoft.com/windowsazure"

# Cloud service / container naming
DEFAULT_SERVICE_NAME = "gameservices"
NAMESPACE_NAME = "gameservices"
DEFAULT_CONTAINER_NAME = "container"
CONTAINER_RESOURCE_TYPE = "gameservicescontainer"
DEFAULT_GEO_REGION = "West US"
SCHEMA_VERSION = "1.0"

# Resource types
XBOX_ONE_COMPUTE_RESOURCE_TYPE = "xboxlivecompute"
XBOX_360_COMPUTE_RESOURCE_TYPE = "xboxlivecomputethreesixty"
PC_COMPUTE_RESOURCE_TYPE = "gameservicescomputepc"

_RESOURCES = "/cloudservices/gameservices/resources/gameservices"
_GAME = _RESOURCES + "/~/{platform}/{name}"
_CONTAINER = _RESOURCES + f"/~/{CONTAINER_RESOURCE_TYPE}/{DEFAULT_CONTAINER_NAME}"

# Cloud service and registration
REGISTER_SERVICE_PATH = "/services?service=gameservices.{resource_type}&action=register"
CLOUD_SERVICE_RESOURCE_PATH = "/cloudservices/gameservices"
GET_CLOUD_SERVICES_RESOURCE_PATH = "/cloudservices/gameservices?detailLevel=full"
CHECK_CONTAINER_NAME_AVAILABILITY_PATH = (
    _RESOURCES + f"/{CONTAINER_RESOURCE_TYPE}/?op=checknameavailability&resourceName={{name}}"
)
CONTAINER_RESOURCE_PATH = _RESOURCES + f"/{CONTAINER_RESOURCE_TYPE}/{DEFAULT_CONTAINER_NAME}"
RESOURCE_PROPERTIES_PATH = "/resourceproviders/gameservices/Properties"
OPERATION_STATUS_PATH = "/operations/{request_id}"

# Cloud games
CLOUD_GAME_RESOURCE_PATH = _RESOURCES + "/{platform}/{name}"
DEPLOY_CLOUD_GAME_PATH = _GAME + "?operation=publish&sandboxes={sandboxes}&geoRegion={geo_regions}"
STOP_CLOUD_GAME_PATH = _GAME + "?operation=unpublish"
CONFIGURE_CLOUD_GAME_PATH = _GAME + "?operation=configure"

# Per-game sub-resources
VM_PACKAGES_RESOURCE_PATH = _GAME + "/images"
VM_PACKAGE_RESOURCE_PATH = _GAME + "/images/{vm_package_id}"
DEPLOYMENTS_REPORT_PATH = _GAME + "/poolunits/reports/deployments"
ENUMERATE_CLUSTERS_PATH = _GAME + "/clusters/?geoRegion={geo_region}&status={status}"
MONITORING_COUNTERS_PATH = _GAME + "/monitoring/counters"
DASHBOARD_SUMMARY_PATH = _GAME + "/monitoring?Details=DashboardSummary"
SERVICE_POOLS_REPORT_PATH = _GAME + "/poolunits/reports/servicepools"
GAME_PACKAGES_RESOURCE_PATH = _GAME + "/images/{vm_package_id}/CodeFiles"
GAME_PACKAGE_RESOURCE_PATH = _GAME + "/images/{vm_package_id}/CodeFiles/{game_package_id}"

# Container sub-resources
ASSETS_RESOURCE_PATH = _CONTAINER + "/assets"
ASSETS_FOR_GAME_RESOURCE_PATH = _CONTAINER + "/assets?gsiSetId={cloud_game_id}"
ASSET_RESOURCE_PATH = _CONTAINER + "/assets/{asset_id}"
CERTIFICATES_RESOURCE_PATH = _CONTAINER + "/certificates"
CERTIFICATES_FOR_GAME_RESOURCE_PATH = _CONTAINER + "/certificates?gsiSetId={cloud_game_id}"
CERTIFICATE_RESOURCE_PATH = _CONTAINER + "/certificates/{certificate_id}"
GAME_MODE_SCHEMAS_RESOURCE_PATH = _CONTAINER + "/variantschemas"
GAME_MODE_SCHEMAS_GET_RESOURCE_PATH = _CONTAINER + "/variantschemas?details={details}"
GAME_MODE_SCHEMA_RESOURCE_PATH = _CONTAINER + "/variantschemas/{schema_id}"
GAME_MODES_RESOURCE_PATH = _CONTAINER + "/variantschemas/{schema_id}/variants"
GAME_MODE_RESOURCE_PATH = _CONTAINER + "/variantschemas/{schema_id}/variants/{game_mode_id}"


class CloudGamePlatform(str, Enum):
    XBOX_ONE = "XboxOne"
    XBOX_360 = "Xbox360"
    PC = "PC"


PLATFORM_RESOURCE_TYPES: Mapping[CloudGamePlatform, str] = MappingProxyType(
    {
        CloudGamePlatform.XBOX_ONE: XBOX_ONE_COMPUTE_RESOURCE_TYPE,
        CloudGamePlatform.XBOX_360: XBOX_360_COMPUTE_RESOURCE_TYPE,
        CloudGamePlatform.PC: PC_COMPUTE_RESOURCE_TYPE,
    }
)

RESOURCE_TYPE_PLATFORMS: Mapping[str, CloudGamePlatform] = MappingProxyType(
    {resource_type: platform for platform, resource_type in PLATFORM_RESOURCE_TYPES.items()}
)

CLOUD_GAME_RESOURCE_TYPES: frozenset[str] = frozenset(PLATFORM_RESOURCE_TYPES.values())


def platform_resource_type(platform: CloudGamePlatform | str) -> str:
    """Resource type string for a platform (``XboxOne`` -> ``xboxlivecompute``)."""
    try:
        return PLATFORM_RESOURCE_TYPES[CloudGamePlatform(platform)]
    except ValueError as e:
        raise UnknownPlatformError(str(platform)) from e


def platform_from_resource_type(resource_type: str) -> CloudGamePlatform:
    """Platform for a resource type string, compared case-insensitively."""
    platform = RESOURCE_TYPE_PLATFORMS.get(resource_type.lower())
    if platform is None:
        raise UnknownPlatformError(resource_type.lower())
    return platform


def build_path(template: str, **params: object) -> str:
    """Fill a path template, percent-encoding each value."""
    return template.format(**{key: quote(str(value), safe="") for key, value in params.items()})


def join_values(values: list[str] | tuple[str, ...] | str | None) -> str:
    """Join multi-valued query parameters the way the service expects them."""
    if values is None:
        return ""
    if isinstance(values, str):
        return values
    return ",".join(values)
