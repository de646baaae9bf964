"""
Async client for the Azure Game Services (Xbox Live Compute) management API.

Modules:
    client: CloudGameClient facade
    transport: aiohttp sender, request logging and fixed-delay retries
    responses: typed decoding and error extraction
    envelope: XML resource envelope codec
    operations: long-running operation poller
    models: pydantic records
    config: YAML / environment configuration
    uri_elements: resource paths, headers and platform tables
    uploads: writes to pre-authorized blob URLs
"""

from gameservices.client import CloudGameClient
from gameservices.config import GameServicesConfig, load_config
from gameservices.models import CloudGame, OperationStatus, OperationStatusResponse
from gameservices.operations import OperationPoller, PollOutcome, PollResult, poll_operation_status
from gameservices.transport import FormPart, HttpRequest, HttpResponse, RetryingTransport
from gameservices.uri_elements import CloudGamePlatform

__all__ = [
    "CloudGameClient",
    "GameServicesConfig",
    "load_config",
    "CloudGame",
    "CloudGamePlatform",
    "OperationStatus",
    "OperationStatusResponse",
    "OperationPoller",
    "PollOutcome",
    "PollResult",
    "poll_operation_status",
    "FormPart",
    "HttpRequest",
    "HttpResponse",
    "RetryingTransport",
]
