"""
Game Services client.

Each public method is one logical operation: build the request, send it
through the retrying transport, decode the reply, and drive it through the
operation poller when the service accepts it asynchronously.

Example:
    >>> config = load_config(Path("gameservices.yaml"))
    >>> async with CloudGameClient(config) as client:
    ...     games = await client.get_cloud_games()
"""

import asyncio
import functools
import logging
import uuid
from collections.abc import Callable
from http import HTTPStatus
from typing import Any, Optional, TypeVar

from pydantic import ValidationError

from core.auth import ManagementCredential, credential_from_config
from core.errors import ResourceStateError, ResponseDecodeError
from core.logging import log_operation, log_with_context
from gameservices.config import GameServicesConfig
from gameservices.envelope import (
    decode_collection,
    encode_cloud_service,
    encode_resource,
    join_cleanup,
    parse_cloud_service,
    parse_name_availability,
    parse_provider_properties,
)
from gameservices.models import (
    AssetCollection,
    AssetPostResponse,
    CertificateCollection,
    CertificateRequest,
    CloudGame,
    CloudGameRequest,
    CloudService,
    ClusterCollection,
    CreatedItem,
    DeploymentData,
    FileRequest,
    GameModeCollection,
    GameModeSchema,
    GameModeSchemaCollection,
    GameModeSchemaRequest,
    GamePackageCollection,
    GamePackagePostResponse,
    GamePackageRequest,
    GameServicesProperties,
    MetadataPart,
    OperationStatus,
    Resource,
    VmPackageCollection,
    VmPackagePostResponse,
    VmPackageRequest,
)
from gameservices.operations import Clock, OperationPoller, Sleep, poll_operation_status, utc_now
from gameservices.responses import (
    decode_boolean,
    decode_boolean_allow_conflict,
    decode_created,
    decode_json,
    decode_json_value,
    decode_xml,
    ensure_success,
)
from gameservices.transport import (
    AiohttpSender,
    FormPart,
    HttpRequest,
    HttpResponse,
    LoggingSender,
    LogSink,
    RetryingTransport,
    Sender,
)
from gameservices.uploads import Uploader, upload_to_preauthorized_url
from gameservices.uri_elements import (
    API_VERSION,
    API_VERSION_HEADER,
    APPLICATION_JSON,
    APPLICATION_XML,
    ASSET_RESOURCE_PATH,
    ASSETS_FOR_GAME_RESOURCE_PATH,
    ASSETS_RESOURCE_PATH,
    CERTIFICATE_RESOURCE_PATH,
    CERTIFICATES_FOR_GAME_RESOURCE_PATH,
    CERTIFICATES_RESOURCE_PATH,
    CHECK_CONTAINER_NAME_AVAILABILITY_PATH,
    CLOUD_GAME_RESOURCE_PATH,
    CLOUD_GAME_RESOURCE_TYPES,
    CLOUD_SERVICE_RESOURCE_PATH,
    CMDLET_VERSION_HEADER,
    CMDLETS_VERSION,
    CONFIGURE_CLOUD_GAME_PATH,
    CONTAINER_RESOURCE_PATH,
    CONTAINER_RESOURCE_TYPE,
    DASHBOARD_SUMMARY_PATH,
    DEFAULT_CONTAINER_NAME,
    DEFAULT_GEO_REGION,
    DEFAULT_SERVICE_NAME,
    DEPLOY_CLOUD_GAME_PATH,
    DEPLOYMENTS_REPORT_PATH,
    ENUMERATE_CLUSTERS_PATH,
    GAME_MODE_RESOURCE_PATH,
    GAME_MODE_SCHEMA_RESOURCE_PATH,
    GAME_MODE_SCHEMAS_GET_RESOURCE_PATH,
    GAME_MODE_SCHEMAS_RESOURCE_PATH,
    GAME_MODES_RESOURCE_PATH,
    GAME_PACKAGE_RESOURCE_PATH,
    GAME_PACKAGES_RESOURCE_PATH,
    GET_CLOUD_SERVICES_RESOURCE_PATH,
    MONITORING_COUNTERS_PATH,
    NAMESPACE_NAME,
    REGISTER_SERVICE_PATH,
    RESOURCE_PROPERTIES_PATH,
    SCHEMA_VERSION,
    SERVICE_POOLS_REPORT_PATH,
    STOP_CLOUD_GAME_PATH,
    VM_PACKAGE_RESOURCE_PATH,
    VM_PACKAGES_RESOURCE_PATH,
    XBL_CORRELATION_HEADER,
    CloudGamePlatform,
    build_path,
    join_values,
    platform_from_resource_type,
    platform_resource_type,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

PUBLISHER_INFO_KEY = "publisherInfo"


def _as_bytes(content: str | bytes) -> bytes:
    return content.encode("utf-8") if isinstance(content, str) else content


def _file(part_name: str, file_name: str, content: str | bytes) -> FormPart:
    return FormPart(part_name, _as_bytes(content), filename=file_name)


def _guid_or_none(value: Optional[str]) -> Optional[str]:
    # Anything that is not a GUID means "no asset"
    if not value:
        return None
    try:
        uuid.UUID(value)
    except ValueError:
        return None
    return value


def client_operation(func: F) -> F:
    """
    Run a client method as one logged operation under the client deadline.

    The deadline is ``config.operation_timeout_seconds``; None means no
    deadline. Cancellation lands on whichever send or sleep is pending.
    """

    @functools.wraps(func)
    async def wrapper(self: "CloudGameClient", *args: Any, **kwargs: Any) -> Any:
        with log_operation(logger, func.__name__):
            async with asyncio.timeout(self.config.operation_timeout_seconds):
                return await func(self, *args, **kwargs)

    return wrapper  # type: ignore


class CloudGameClient:
    """
    Async client for cloud games and their sub-resources.

    Args:
        config: Validated client configuration
        credential: Management credential; resolved from ``config`` if None
        log: Caller log sink receiving request, retry and polling lines
        sender: Replaces the aiohttp sender (tests, custom sessions)
        clock: UTC wall clock used for polling deadlines
        sleep: Awaitable sleep used between polls
        uploader: Writes file content to a pre-authorized blob URL
    """

    def __init__(
        self,
        config: GameServicesConfig,
        credential: Optional[ManagementCredential] = None,
        log: Optional[LogSink] = None,
        sender: Optional[Sender] = None,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
        uploader: Uploader = upload_to_preauthorized_url,
    ):
        config.validate()
        self.config = config
        self.credential = credential or credential_from_config(config)
        self._log = log
        self._upload = uploader
        self.correlation_id = str(uuid.uuid4())
        self.base_url = config.base_url

        # Sent with every request; Accept is added per call
        self._static_headers = {
            XBL_CORRELATION_HEADER: self.correlation_id,
            CMDLET_VERSION_HEADER: CMDLETS_VERSION,
            API_VERSION_HEADER: API_VERSION,
        }

        self._sender = sender or AiohttpSender(
            self.credential,
            timeout_seconds=config.client_timeout_seconds,
            max_connections=config.max_connections,
        )
        self.transport = RetryingTransport(
            LoggingSender(self._sender, log), retry=config.retry, log=log
        )
        self.poller = OperationPoller(
            self.transport,
            self.base_url,
            headers=self._headers(APPLICATION_XML),
            request_id_header=config.request_id_header,
            poll_interval_seconds=config.poll_interval_seconds,
            timeout_seconds=config.poll_timeout_seconds,
            clock=clock,
            sleep=sleep,
            log=log,
        )

        logger.info(
            "CloudGameClient initialized",
            extra={
                "subscription_id": config.subscription_id,
                "correlation_id": self.correlation_id,
                "credential": self.credential.kind,
                "max_attempts": config.retry.max_tries,
            },
        )

    async def __aenter__(self) -> "CloudGameClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        close = getattr(self._sender, "close", None)
        if close is not None:
            await close()

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _headers(self, media_type: str) -> dict[str, str]:
        return {**self._static_headers, "Accept": media_type}

    async def _send(
        self,
        method: str,
        path: str,
        media_type: str = APPLICATION_JSON,
        body: Optional[str] = None,
    ) -> HttpResponse:
        request = HttpRequest(
            method=method,
            url=self.base_url + path,
            headers=self._headers(media_type),
            body=body,
            content_type=media_type if body is not None else None,
        )
        return await self.transport.send(request)

    async def _send_form(
        self,
        method: str,
        path: str,
        metadata: MetadataPart,
        file_part: Optional[FormPart] = None,
    ) -> HttpResponse:
        """Send ``metadata`` as the JSON "metadata" part, plus an optional file part."""
        parts = [FormPart("metadata", metadata.to_json(), content_type=APPLICATION_JSON)]
        if file_part is not None:
            parts.append(file_part)
        request = HttpRequest(
            method=method,
            url=self.base_url + path,
            headers=self._headers(APPLICATION_JSON),
            form=parts,
        )
        return await self.transport.send(request)

    async def _upload_file(self, url: str, content: str | bytes, **context: Any) -> None:
        await self._upload(url, _as_bytes(content))
        log_with_context(logger, logging.INFO, "Uploaded file content", **context)

    async def _complete(self, response: HttpResponse) -> bool:
        """
        Finish a mutation.

        A 202 is polled to completion; True means it succeeded, False that
        polling gave up while it was still running. Anything else must be 2xx.
        """
        if response.status == HTTPStatus.ACCEPTED:
            status = await poll_operation_status(response, self.poller)
            return status.status is OperationStatus.SUCCEEDED
        ensure_success(response)
        return True

    # =========================================================================
    # Registration
    # =========================================================================

    async def _create_cloud_service(self) -> None:
        """Create the cloud service holding all game resources, unless it exists."""
        response = await self._send("GET", CLOUD_SERVICE_RESOURCE_PATH, APPLICATION_XML)
        existing: Optional[CloudService] = None
        if response.status != HTTPStatus.NOT_FOUND:
            existing = decode_xml(response, parse_cloud_service)

        if existing is not None and existing.name == DEFAULT_SERVICE_NAME:
            return

        body = encode_cloud_service(
            name=DEFAULT_SERVICE_NAME,
            description=DEFAULT_SERVICE_NAME,
            geo_region=DEFAULT_GEO_REGION,
            label=DEFAULT_SERVICE_NAME,
        )
        response = await self._send("PUT", CLOUD_SERVICE_RESOURCE_PATH, APPLICATION_XML, body)
        await self._complete(response)
        log_with_context(logger, logging.INFO, "Created cloud service", resource_name=DEFAULT_SERVICE_NAME)

    async def _register(self, resource_type: str) -> bool:
        path = build_path(REGISTER_SERVICE_PATH, resource_type=resource_type)
        return decode_boolean_allow_conflict(await self._send("PUT", path))

    @client_operation
    async def register_cloud_service(self, resource_type: str) -> bool:
        """Register a resource type with the subscription and make sure the cloud service exists."""
        await self._register(resource_type)
        await self._create_cloud_service()
        return True

    @client_operation
    async def register_container_if_needed(self) -> bool:
        """
        Register the container resource type and create the container.

        Returns:
            True if the container was created, False if it already existed
        """
        await self._register(CONTAINER_RESOURCE_TYPE)

        path = build_path(CHECK_CONTAINER_NAME_AVAILABILITY_PATH, name=DEFAULT_CONTAINER_NAME)
        response = await self._send("GET", path, APPLICATION_XML)
        if response.status == HTTPStatus.NOT_FOUND:
            available = True
        else:
            available = decode_xml(response, parse_name_availability).is_available

        if not available:
            return False

        await self._create_cloud_service()

        container = Resource(
            name=DEFAULT_CONTAINER_NAME,
            etag=str(uuid.uuid4()),
            plan="",
            resource_provider_namespace=NAMESPACE_NAME,
            type=CONTAINER_RESOURCE_TYPE,
            schema_version=SCHEMA_VERSION,
        )
        response = await self._send(
            "PUT", CONTAINER_RESOURCE_PATH, APPLICATION_XML, encode_resource(container)
        )
        # 400 here means another caller created the container first
        if response.status == HTTPStatus.BAD_REQUEST:
            return False
        return await self._complete(response)

    # =========================================================================
    # Cloud games
    # =========================================================================

    async def _fetch_for_resource(self, name: str, resource_type: str) -> Optional[CloudGame]:
        return await self.get_cloud_game(name, platform_from_resource_type(resource_type))

    async def _remove_orphan(self, name: str, resource_type: str) -> bool:
        return await self.remove_cloud_game(
            name, platform_from_resource_type(resource_type), check_state_first=False
        )

    @client_operation
    async def get_cloud_games(self) -> list[CloudGame]:
        """
        All cloud games in the subscription.

        Resources without inline settings are looked up individually; those
        the service no longer knows are deleted before this returns.
        """
        response = await self._send("GET", GET_CLOUD_SERVICES_RESOURCE_PATH, APPLICATION_XML)
        ensure_success(response)
        games, cleanup = await decode_collection(
            response.text(),
            CLOUD_GAME_RESOURCE_TYPES,
            self._fetch_for_resource,
            self._remove_orphan,
        )
        await join_cleanup(cleanup)
        return games

    @client_operation
    async def get_cloud_game(
        self, name: str, platform: CloudGamePlatform | str
    ) -> Optional[CloudGame]:
        path = build_path(
            CLOUD_GAME_RESOURCE_PATH, platform=platform_resource_type(platform), name=name
        )
        return decode_json(await self._send("GET", path), CloudGame)

    @client_operation
    async def new_cloud_game(
        self,
        platform: CloudGamePlatform | str,
        title_id: str,
        selection_order: int,
        sandboxes: str | list[str],
        resource_set_ids: str | list[str],
        name: str,
        schema_id: Optional[str] = None,
        schema_name: Optional[str] = None,
        schema_file_name: Optional[str] = None,
        schema_content: Optional[str | bytes] = None,
    ) -> bool:
        """
        Create a cloud game.

        Either ``schema_id`` names an existing game mode schema, or
        ``schema_name``, ``schema_file_name`` and ``schema_content`` describe
        a new one uploaded with the game.

        Returns:
            True once the game exists, False if creation was still running
            when polling gave up
        """
        game_mode_schema: Optional[GameModeSchemaRequest] = None
        if schema_id is None:
            if not schema_name or not schema_file_name or schema_content is None:
                raise ValueError("Invalid Game Mode Schema values provided.")
            if isinstance(schema_content, bytes):
                schema_content = schema_content.decode("utf-8")
            game_mode_schema = GameModeSchemaRequest(
                metadata=GameModeSchema(name=schema_name, file_name=schema_file_name, title_id=title_id),
                content=schema_content,
            )

        resource_type = platform_resource_type(platform)
        await self.register_cloud_service(resource_type)

        game = CloudGame(
            name=name,
            resource_sets=join_values(resource_set_ids),
            sandboxes=join_values(sandboxes),
            schema_name=schema_name,
            schema_id=schema_id,
            title_id=title_id,
            selection_order=selection_order,
        )
        request_body = CloudGameRequest(cloud_game=game, game_mode_schema=game_mode_schema)
        resource = Resource(
            name=name,
            etag=str(uuid.uuid4()),
            plan="",
            resource_provider_namespace=NAMESPACE_NAME,
            type=resource_type,
            schema_version=SCHEMA_VERSION,
            intrinsic_settings=request_body.to_json(),
        )

        path = build_path(CLOUD_GAME_RESOURCE_PATH, platform=resource_type, name=name)
        response = await self._send("PUT", path, APPLICATION_XML, encode_resource(resource))
        return await self._complete(response)

    @client_operation
    async def remove_cloud_game(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        check_state_first: bool = True,
    ) -> bool:
        """
        Delete a cloud game.

        Raises:
            ResourceStateError: ``check_state_first`` is set and the game
                still has active retail deployments
        """
        if check_state_first:
            report = await self.get_compute_deployments_report(name, platform)
            if report is not None and report.is_deployed_to_retail():
                raise ResourceStateError(
                    f"Cloud game {name} is deployed to RETAIL; stop it before removing it",
                    context={"resource_name": name},
                )

        path = build_path(
            CLOUD_GAME_RESOURCE_PATH, platform=platform_resource_type(platform), name=name
        )
        response = await self._send("DELETE", path)
        return await self._complete(response)

    @client_operation
    async def deploy_cloud_game(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        sandboxes: str | list[str] | None = None,
        geo_regions: str | list[str] | None = None,
    ) -> bool:
        path = build_path(
            DEPLOY_CLOUD_GAME_PATH,
            platform=platform_resource_type(platform),
            name=name,
            sandboxes=join_values(sandboxes),
            geo_regions=join_values(geo_regions),
        )
        return await self._complete(await self._send("PUT", path))

    @client_operation
    async def stop_cloud_game(self, name: str, platform: CloudGamePlatform | str) -> bool:
        path = build_path(STOP_CLOUD_GAME_PATH, platform=platform_resource_type(platform), name=name)
        return await self._complete(await self._send("PUT", path))

    @client_operation
    async def configure_cloud_game(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        resource_sets: str | list[str],
        sandboxes: str | list[str],
    ) -> bool:
        path = build_path(
            CONFIGURE_CLOUD_GAME_PATH, platform=platform_resource_type(platform), name=name
        )
        body = CloudGame(
            name=name,
            resource_sets=join_values(resource_sets),
            sandboxes=join_values(sandboxes),
        ).model_dump_json(by_alias=True, include={"name", "resource_sets", "sandboxes"})
        return await self._complete(await self._send("PUT", path, APPLICATION_JSON, body))

    # =========================================================================
    # Per-game sub-resources
    # =========================================================================

    @client_operation
    async def get_vm_packages(
        self, name: str, platform: CloudGamePlatform | str
    ) -> Optional[VmPackageCollection]:
        path = build_path(
            VM_PACKAGES_RESOURCE_PATH, platform=platform_resource_type(platform), name=name
        )
        return decode_json(await self._send("GET", path), VmPackageCollection)

    @client_operation
    async def remove_vm_package(
        self, name: str, platform: CloudGamePlatform | str, vm_package_id: str
    ) -> bool:
        path = build_path(
            VM_PACKAGE_RESOURCE_PATH,
            platform=platform_resource_type(platform),
            name=name,
            vm_package_id=vm_package_id,
        )
        return await self._complete(await self._send("DELETE", path))

    @client_operation
    async def new_vm_package(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        package_name: str,
        max_players: int,
        asset_id: Optional[str],
        cspkg_file_name: str,
        cspkg_content: str | bytes,
        cscfg_file_name: str,
        cscfg_content: str | bytes,
    ) -> str:
        """
        Upload a VM package for a cloud game.

        The metadata and cscfg are posted together; the cspkg archive goes
        to the blob URL the service hands back, and the metadata is then
        written to the new package to finish it.

        Returns:
            The new VM package id
        """
        resource_type = platform_resource_type(platform)
        metadata = VmPackageRequest(
            name=package_name,
            max_allowed_players=max_players,
            asset_id=_guid_or_none(asset_id),
            cspkg_file_name=cspkg_file_name,
            cscfg_file_name=cscfg_file_name,
        )

        path = build_path(VM_PACKAGES_RESOURCE_PATH, platform=resource_type, name=name)
        response = await self._send_form(
            "POST", path, metadata, _file("packageconfig", cscfg_file_name, cscfg_content)
        )
        created = decode_created(response, VmPackagePostResponse)

        await self._upload_file(
            created.cspkg_url, cspkg_content, resource_name=name, vm_package_id=created.vm_package_id
        )

        path = build_path(
            VM_PACKAGE_RESOURCE_PATH,
            platform=resource_type,
            name=name,
            vm_package_id=created.vm_package_id,
        )
        await self._complete(await self._send_form("PUT", path, metadata))
        return created.vm_package_id

    @client_operation
    async def get_game_packages(
        self, name: str, platform: CloudGamePlatform | str, vm_package_id: str
    ) -> Optional[GamePackageCollection]:
        path = build_path(
            GAME_PACKAGES_RESOURCE_PATH,
            platform=platform_resource_type(platform),
            name=name,
            vm_package_id=vm_package_id,
        )
        return decode_json(await self._send("GET", path), GamePackageCollection)

    @client_operation
    async def new_game_package(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        vm_package_id: str,
        package_name: str,
        file_name: str,
        active: bool,
        content: str | bytes,
    ) -> str:
        """Upload a game package into a VM package; returns the game package id."""
        resource_type = platform_resource_type(platform)
        metadata = GamePackageRequest(name=package_name, file_name=file_name, active=active)

        path = build_path(
            GAME_PACKAGES_RESOURCE_PATH, platform=resource_type, name=name, vm_package_id=vm_package_id
        )
        response = await self._send_form("POST", path, metadata)
        created = decode_created(response, GamePackagePostResponse)

        await self._upload_file(
            created.game_package_url,
            content,
            resource_name=name,
            game_package_id=created.game_package_id,
        )

        path = build_path(
            GAME_PACKAGE_RESOURCE_PATH,
            platform=resource_type,
            name=name,
            vm_package_id=vm_package_id,
            game_package_id=created.game_package_id,
        )
        await self._complete(await self._send_form("PUT", path, metadata))
        return created.game_package_id

    @client_operation
    async def set_game_package(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        vm_package_id: str,
        game_package_id: str,
        package_name: str,
        file_name: str,
        active: bool,
    ) -> bool:
        """Rewrite a game package's metadata; this is how a package is activated."""
        path = build_path(
            GAME_PACKAGE_RESOURCE_PATH,
            platform=platform_resource_type(platform),
            name=name,
            vm_package_id=vm_package_id,
            game_package_id=game_package_id,
        )
        metadata = GamePackageRequest(name=package_name, file_name=file_name, active=active)
        return await self._complete(await self._send_form("PUT", path, metadata))

    @client_operation
    async def remove_game_package(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        vm_package_id: str,
        game_package_id: str,
    ) -> bool:
        path = build_path(
            GAME_PACKAGE_RESOURCE_PATH,
            platform=platform_resource_type(platform),
            name=name,
            vm_package_id=vm_package_id,
            game_package_id=game_package_id,
        )
        return await self._complete(await self._send("DELETE", path))

    async def _get_report(
        self, template: str, name: str, platform: CloudGamePlatform | str
    ) -> Optional[dict[str, Any]]:
        path = build_path(template, platform=platform_resource_type(platform), name=name)
        response = await self._send("GET", path)
        value = decode_json_value(response)
        if value is not None and not isinstance(value, dict):
            raise ResponseDecodeError("Expected a JSON object report", status_code=response.status)
        return value

    @client_operation
    async def get_compute_summary_report(
        self, name: str, platform: CloudGamePlatform | str
    ) -> Optional[dict[str, Any]]:
        """Dashboard summary for a cloud game, or None if it has none."""
        return await self._get_report(DASHBOARD_SUMMARY_PATH, name, platform)

    @client_operation
    async def get_compute_pools_report(
        self, name: str, platform: CloudGamePlatform | str
    ) -> Optional[dict[str, Any]]:
        return await self._get_report(SERVICE_POOLS_REPORT_PATH, name, platform)

    @client_operation
    async def get_compute_deployments_report(
        self, name: str, platform: CloudGamePlatform | str
    ) -> Optional[DeploymentData]:
        path = build_path(
            DEPLOYMENTS_REPORT_PATH, platform=platform_resource_type(platform), name=name
        )
        return decode_json(await self._send("GET", path), DeploymentData)

    @client_operation
    async def get_clusters(
        self,
        name: str,
        platform: CloudGamePlatform | str,
        geo_region: str,
        status: str,
        cluster_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> Optional[ClusterCollection]:
        path = build_path(
            ENUMERATE_CLUSTERS_PATH,
            platform=platform_resource_type(platform),
            name=name,
            geo_region=geo_region,
            status=status,
        )
        if cluster_id:
            path += build_path("&clusterId={cluster_id}", cluster_id=cluster_id)
        if agent_id:
            path += build_path("&agentId={agent_id}", agent_id=agent_id)
        return decode_json(await self._send("GET", path), ClusterCollection)

    @client_operation
    async def get_compute_monitoring_counters(
        self, name: str, platform: CloudGamePlatform | str
    ) -> list[str]:
        path = build_path(
            MONITORING_COUNTERS_PATH, platform=platform_resource_type(platform), name=name
        )
        value = decode_json_value(await self._send("GET", path))
        if value is None:
            return []
        if not isinstance(value, list):
            raise ResponseDecodeError("Expected a list of counter names", status_code=200)
        return [str(counter) for counter in value]

    # =========================================================================
    # Container sub-resources
    # =========================================================================

    @client_operation
    async def get_certificates(
        self, cloud_game_id: Optional[str] = None
    ) -> Optional[CertificateCollection]:
        if cloud_game_id:
            path = build_path(CERTIFICATES_FOR_GAME_RESOURCE_PATH, cloud_game_id=cloud_game_id)
        else:
            path = CERTIFICATES_RESOURCE_PATH
        return decode_json(await self._send("GET", path), CertificateCollection)

    @client_operation
    async def new_certificate(
        self,
        certificate_name: str,
        file_name: str,
        password: Optional[str],
        content: str | bytes,
    ) -> str:
        """Upload a certificate into the container; returns its id."""
        await self.register_container_if_needed()
        metadata = CertificateRequest(name=certificate_name, file_name=file_name, password=password)
        response = await self._send_form(
            "POST", CERTIFICATES_RESOURCE_PATH, metadata, _file("certificate", file_name, content)
        )
        return decode_created(response, CreatedItem).id

    @client_operation
    async def remove_certificate(self, certificate_id: str) -> bool:
        path = build_path(CERTIFICATE_RESOURCE_PATH, certificate_id=certificate_id)
        return decode_boolean(await self._send("DELETE", path))

    @client_operation
    async def get_assets(self, cloud_game_id: Optional[str] = None) -> Optional[AssetCollection]:
        if cloud_game_id:
            path = build_path(ASSETS_FOR_GAME_RESOURCE_PATH, cloud_game_id=cloud_game_id)
        else:
            path = ASSETS_RESOURCE_PATH
        return decode_json(await self._send("GET", path), AssetCollection)

    @client_operation
    async def new_asset(self, asset_name: str, file_name: str, content: str | bytes) -> str:
        """
        Upload an asset into the container.

        Only the metadata is posted; the service answers with an asset id
        and a blob URL that receives the file itself.

        Returns:
            The new asset id
        """
        await self.register_container_if_needed()
        metadata = FileRequest(name=asset_name, file_name=file_name)
        created = decode_created(
            await self._send_form("POST", ASSETS_RESOURCE_PATH, metadata), AssetPostResponse
        )

        await self._upload_file(created.asset_url, content, asset_id=created.asset_id)

        path = build_path(ASSET_RESOURCE_PATH, asset_id=created.asset_id)
        await self._complete(await self._send_form("PUT", path, metadata))
        return created.asset_id

    @client_operation
    async def remove_asset(self, asset_id: str) -> bool:
        path = build_path(ASSET_RESOURCE_PATH, asset_id=asset_id)
        return decode_boolean(await self._send("DELETE", path))

    @client_operation
    async def get_game_mode_schemas(
        self, get_details: bool = False
    ) -> Optional[GameModeSchemaCollection]:
        path = build_path(GAME_MODE_SCHEMAS_GET_RESOURCE_PATH, details=str(get_details).lower())
        return decode_json(await self._send("GET", path), GameModeSchemaCollection)

    @client_operation
    async def new_game_mode_schema(
        self, schema_name: str, file_name: str, content: str | bytes
    ) -> str:
        await self.register_container_if_needed()
        metadata = FileRequest(name=schema_name, file_name=file_name)
        response = await self._send_form(
            "POST",
            GAME_MODE_SCHEMAS_RESOURCE_PATH,
            metadata,
            _file("variantSchema", file_name, content),
        )
        return decode_created(response, CreatedItem).id

    @client_operation
    async def remove_game_mode_schema(self, schema_id: str) -> bool:
        path = build_path(GAME_MODE_SCHEMA_RESOURCE_PATH, schema_id=schema_id)
        return decode_boolean(await self._send("DELETE", path))

    @client_operation
    async def get_game_modes(self, schema_id: str) -> Optional[GameModeCollection]:
        path = build_path(GAME_MODES_RESOURCE_PATH, schema_id=schema_id)
        return decode_json(await self._send("GET", path), GameModeCollection)

    @client_operation
    async def new_game_mode(
        self, schema_id: str, game_mode_name: str, file_name: str, content: str | bytes
    ) -> str:
        """Add a game mode to an existing schema; returns the game mode id."""
        path = build_path(GAME_MODES_RESOURCE_PATH, schema_id=schema_id)
        metadata = FileRequest(name=game_mode_name, file_name=file_name)
        response = await self._send_form("POST", path, metadata, _file("variant", file_name, content))
        return decode_created(response, CreatedItem).id

    @client_operation
    async def remove_game_mode(self, schema_id: str, game_mode_id: str) -> bool:
        path = build_path(GAME_MODE_RESOURCE_PATH, schema_id=schema_id, game_mode_id=game_mode_id)
        return decode_boolean(await self._send("DELETE", path))

    # =========================================================================
    # Subscription
    # =========================================================================

    @client_operation
    async def get_game_services_properties(self) -> Optional[GameServicesProperties]:
        """Publisher information for the subscription, or None if none is stored."""
        response = await self._send("GET", RESOURCE_PROPERTIES_PATH, APPLICATION_XML)
        properties = decode_xml(response, parse_provider_properties)

        publisher_info = next((p for p in properties if p.key == PUBLISHER_INFO_KEY), None)
        if publisher_info is None or not publisher_info.value:
            return None
        try:
            return GameServicesProperties.model_validate_json(publisher_info.value)
        except ValidationError as e:
            raise ResponseDecodeError(
                "Invalid publisher information", status_code=response.status, cause=e
            ) from e


__all__ = ["CloudGameClient", "client_operation", "PUBLISHER_INFO_KEY"]
