"""
Tests for CloudGameClient.

Every scenario runs the full stack (retrying transport, response processing,
envelope codec and operation poller) against a routing fake sender.
"""

import asyncio
import json

import pytest

from core.auth import AccessTokenCredential
from core.errors import (
    MissingRequestIdError,
    OperationFailedError,
    ResourceStateError,
    ResponseDecodeError,
    ServiceResponseError,
    TransportError,
    UnknownPlatformError,
)
from gameservices.client import CloudGameClient
from gameservices.config import GameServicesConfig
from gameservices.envelope import parse_cloud_service, parse_document, parse_resource
from gameservices.models import CloudGame
from gameservices.uri_elements import (
    API_VERSION_HEADER,
    ASSET_RESOURCE_PATH,
    ASSETS_RESOURCE_PATH,
    AZURE_NAMESPACE,
    CERTIFICATES_RESOURCE_PATH,
    CHECK_CONTAINER_NAME_AVAILABILITY_PATH,
    CLOUD_GAME_RESOURCE_PATH,
    CLOUD_SERVICE_RESOURCE_PATH,
    CMDLET_VERSION_HEADER,
    CONFIGURE_CLOUD_GAME_PATH,
    CONTAINER_RESOURCE_PATH,
    DASHBOARD_SUMMARY_PATH,
    DEPLOY_CLOUD_GAME_PATH,
    DEPLOYMENTS_REPORT_PATH,
    ENUMERATE_CLUSTERS_PATH,
    GAME_MODE_RESOURCE_PATH,
    GAME_MODE_SCHEMAS_GET_RESOURCE_PATH,
    GAME_MODE_SCHEMAS_RESOURCE_PATH,
    GAME_MODES_RESOURCE_PATH,
    GAME_PACKAGE_RESOURCE_PATH,
    GAME_PACKAGES_RESOURCE_PATH,
    GET_CLOUD_SERVICES_RESOURCE_PATH,
    MONITORING_COUNTERS_PATH,
    REGISTER_SERVICE_PATH,
    RESOURCE_PROPERTIES_PATH,
    SERVICE_POOLS_REPORT_PATH,
    STOP_CLOUD_GAME_PATH,
    VM_PACKAGE_RESOURCE_PATH,
    VM_PACKAGES_RESOURCE_PATH,
    XBL_CORRELATION_HEADER,
    CloudGamePlatform,
    build_path,
)

STATUS_PATH = "/operations/req-1"
XBOX_ONE = "xboxlivecompute"
PC = "gameservicescomputepc"


def game_path(name, resource_type=XBOX_ONE):
    return build_path(CLOUD_GAME_RESOURCE_PATH, platform=resource_type, name=name)


def resource_xml(name, resource_type, settings=None):
    inner = (
        f"<Type>{resource_type}</Type><Name>{name}</Name>"
        "<ResourceProviderNamespace>gameservices</ResourceProviderNamespace>"
    )
    if settings is not None:
        inner += f"<IntrinsicSettings><![CDATA[{json.dumps(settings)}]]></IntrinsicSettings>"
    return f"<Resource>{inner}</Resource>"


def cloud_service_xml(*resources, name="gameservices"):
    return (
        f'<CloudService xmlns="{AZURE_NAMESPACE}"><Name>{name}</Name>'
        f"<Resources>{''.join(resources)}</Resources></CloudService>"
    )


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    def test_requires_subscription(self, sender):
        with pytest.raises(ValueError):
            CloudGameClient(GameServicesConfig(access_token="t"), sender=sender)

    def test_credential_resolved_from_config(self, config, sender):
        client = CloudGameClient(config, sender=sender)
        assert isinstance(client.credential, AccessTokenCredential)

    @pytest.mark.asyncio
    async def test_static_headers_on_every_request(self, client, sender, reply):
        sender.on("GET", game_path("g1"), reply.json(200, {"name": "g1"}))

        await client.get_cloud_game("g1", CloudGamePlatform.XBOX_ONE)

        headers = sender.requests[0].headers
        assert headers[XBL_CORRELATION_HEADER] == client.correlation_id
        assert headers[CMDLET_VERSION_HEADER] == "2015_01_v1"
        assert headers[API_VERSION_HEADER] == "2013-11-01"
        assert headers["Accept"] == "application/json"

    def test_correlation_id_is_per_client(self, config, sender):
        first = CloudGameClient(config, sender=sender)
        second = CloudGameClient(config, sender=sender)
        assert first.correlation_id != second.correlation_id

    @pytest.mark.asyncio
    async def test_async_context_manager(self, config, sender):
        async with CloudGameClient(config, sender=sender) as client:
            assert client.base_url == "https://management.core.windows.net/sub-1"

    @pytest.mark.asyncio
    async def test_log_sink_sees_requests(self, client, sender, reply, log_lines):
        sender.on("GET", game_path("g1"), reply.json(200, {"name": "g1"}))

        await client.get_cloud_game("g1", "XboxOne")

        assert log_lines[0] == f"Request: GET {client.base_url}{game_path('g1')}"
        assert any(line.startswith("Response: 200 GET") for line in log_lines)


# =============================================================================
# Cloud games
# =============================================================================


class TestGetCloudGames:
    @pytest.mark.asyncio
    async def test_resolves_missing_settings_and_removes_orphans(self, client, sender, reply):
        document = cloud_service_xml(
            resource_xml("g1", XBOX_ONE, {"name": "g1", "gsiSetId": "set-1", "platform": "XboxOne"}),
            resource_xml("g2", PC.upper()),
            resource_xml("ghost", XBOX_ONE),
            resource_xml("container", "gameservicescontainer", {"name": "container"}),
        )
        sender.on("GET", GET_CLOUD_SERVICES_RESOURCE_PATH, reply.xml(200, document))
        sender.on("GET", game_path("g2", PC), reply.json(200, {"name": "g2", "gsiSetId": "set-2"}))
        sender.on("GET", game_path("ghost"), reply.json(404, {"message": "not found"}))
        sender.on("DELETE", game_path("ghost"), reply.empty(200))

        games = await client.get_cloud_games()

        assert [g.name for g in games] == ["g1", "g2"]
        assert games[0].platform == "xboxone"
        assert games[1].id == "set-2"
        assert len(sender.sent("DELETE", game_path("ghost"))) == 1
        # Orphan removal skips the deployment check
        assert sender.sent("GET", build_path(DEPLOYMENTS_REPORT_PATH, platform=XBOX_ONE, name="ghost")) == []

    @pytest.mark.asyncio
    async def test_empty_service(self, client, sender, reply):
        sender.on("GET", GET_CLOUD_SERVICES_RESOURCE_PATH, reply.xml(200, cloud_service_xml()))
        assert await client.get_cloud_games() == []

    @pytest.mark.asyncio
    async def test_failed_orphan_cleanup_does_not_fail_listing(self, client, sender, reply):
        document = cloud_service_xml(resource_xml("ghost", XBOX_ONE))
        sender.on("GET", GET_CLOUD_SERVICES_RESOURCE_PATH, reply.xml(200, document))
        sender.on("GET", game_path("ghost"), reply.empty(404))
        sender.on("DELETE", game_path("ghost"), reply.json(400, {"message": "cannot delete"}))

        assert await client.get_cloud_games() == []

    @pytest.mark.asyncio
    async def test_listing_error(self, client, sender, reply):
        sender.on("GET", GET_CLOUD_SERVICES_RESOURCE_PATH, reply.json(403, {"Message": "denied"}))

        with pytest.raises(ServiceResponseError) as exc_info:
            await client.get_cloud_games()
        assert exc_info.value.status_code == 403
        assert exc_info.value.error_message == "denied"


class TestGetCloudGame:
    @pytest.mark.asyncio
    async def test_found(self, client, sender, reply):
        sender.on("GET", game_path("g1"), reply.json(200, {"name": "g1", "canDeploy": True}))
        game = await client.get_cloud_game("g1", CloudGamePlatform.XBOX_ONE)
        assert game.can_deploy is True

    @pytest.mark.asyncio
    async def test_missing_is_none(self, client, sender, reply):
        sender.on("GET", game_path("g1"), reply.empty(404))
        assert await client.get_cloud_game("g1", "XboxOne") is None

    @pytest.mark.asyncio
    async def test_server_error_after_retries(self, client, sender, reply):
        sender.on("GET", game_path("g1"), reply.empty(500))

        with pytest.raises(ServiceResponseError) as exc_info:
            await client.get_cloud_game("g1", "XboxOne")

        assert exc_info.value.status_code == 500
        assert len(sender.requests) == 3

    @pytest.mark.asyncio
    async def test_unknown_platform(self, client):
        with pytest.raises(UnknownPlatformError):
            await client.get_cloud_game("g1", "Switch")

    @pytest.mark.asyncio
    async def test_names_are_percent_encoded(self, client, sender, reply):
        sender.on("GET", game_path("my game/1"), reply.json(200, {"name": "my game/1"}))
        await client.get_cloud_game("my game/1", "XboxOne")
        assert sender.requests[0].url.endswith("/xboxlivecompute/my%20game%2F1")


class TestNewCloudGame:
    def _register(self, sender, reply, resource_type=XBOX_ONE):
        sender.on("PUT", build_path(REGISTER_SERVICE_PATH, resource_type=resource_type), reply.text(409, "exists"))
        sender.on("GET", CLOUD_SERVICE_RESOURCE_PATH, reply.xml(200, cloud_service_xml()))

    @pytest.mark.asyncio
    async def test_with_existing_schema(self, client, sender, reply):
        self._register(sender, reply)
        sender.on("PUT", game_path("g1"), reply.accepted())
        sender.on("GET", STATUS_PATH, reply.operation("InProgress"), reply.operation("Succeeded"))

        created = await client.new_cloud_game(
            CloudGamePlatform.XBOX_ONE,
            title_id="1234",
            selection_order=1,
            sandboxes=["RETAIL", "XDKS.1"],
            resource_set_ids=["rs-1"],
            name="g1",
            schema_id="schema-1",
        )

        assert created is True
        put = sender.sent("PUT", game_path("g1"))[0]
        resource = parse_resource(parse_document(put.body))
        assert resource.type == XBOX_ONE
        assert resource.resource_provider_namespace == "gameservices"
        assert resource.schema_version == "1.0"
        assert resource.plan == ""
        assert resource.etag

        body = json.loads(resource.intrinsic_settings)
        assert body["cloudGame"]["name"] == "g1"
        assert body["cloudGame"]["schemaId"] == "schema-1"
        assert body["cloudGame"]["sandboxes"] == "RETAIL,XDKS.1"
        assert body["cloudGame"]["resourceSets"] == "rs-1"
        assert body["cloudGame"]["selectionOrder"] == 1
        assert "gameModeSchema" not in body

    @pytest.mark.asyncio
    async def test_with_new_schema(self, client, sender, reply):
        self._register(sender, reply, PC)
        sender.on("PUT", game_path("g1", PC), reply.empty(201))

        created = await client.new_cloud_game(
            "PC",
            title_id="1234",
            selection_order=0,
            sandboxes="RETAIL",
            resource_set_ids="rs-1",
            name="g1",
            schema_name="modes",
            schema_file_name="modes.xml",
            schema_content=b"<modes />",
        )

        assert created is True
        put = sender.sent("PUT", game_path("g1", PC))[0]
        body = json.loads(parse_resource(parse_document(put.body)).intrinsic_settings)
        assert body["gameModeSchema"] == {
            "metadata": {"name": "modes", "fileName": "modes.xml", "titleId": "1234"},
            "content": "<modes />",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "schema",
        [
            {},
            {"schema_name": "modes"},
            {"schema_name": "modes", "schema_file_name": "modes.xml"},
            {"schema_file_name": "modes.xml", "schema_content": "x"},
        ],
    )
    async def test_incomplete_schema_rejected_before_any_request(self, client, sender, schema):
        with pytest.raises(ValueError, match="Invalid Game Mode Schema values provided."):
            await client.new_cloud_game(
                "XboxOne", "1234", 0, "RETAIL", "rs-1", "g1", **schema
            )
        assert sender.requests == []

    @pytest.mark.asyncio
    async def test_creates_cloud_service_when_missing(self, client, sender, reply):
        sender.on("PUT", build_path(REGISTER_SERVICE_PATH, resource_type=XBOX_ONE), reply.empty(200))
        sender.on("GET", CLOUD_SERVICE_RESOURCE_PATH, reply.empty(404))
        sender.on("PUT", CLOUD_SERVICE_RESOURCE_PATH, reply.empty(201))
        sender.on("PUT", game_path("g1"), reply.empty(200))

        await client.new_cloud_game("XboxOne", "1234", 0, "RETAIL", "rs-1", "g1", schema_id="s")

        put = sender.sent("PUT", CLOUD_SERVICE_RESOURCE_PATH)[0]
        service = parse_cloud_service(parse_document(put.body))
        assert service.name == "gameservices"
        assert service.geo_region == "West US"
        assert put.content_type == "application/xml"

    @pytest.mark.asyncio
    async def test_failed_creation_raises(self, client, sender, reply):
        self._register(sender, reply)
        sender.on("PUT", game_path("g1"), reply.accepted())
        sender.on(
            "GET", STATUS_PATH, reply.operation("Failed", "BadRequest", "InvalidTitle", "bad title")
        )

        with pytest.raises(OperationFailedError) as exc_info:
            await client.new_cloud_game("XboxOne", "1234", 0, "RETAIL", "rs-1", "g1", schema_id="s")
        assert exc_info.value.code == "InvalidTitle"
        assert exc_info.value.http_status_code == 400


class TestRemoveCloudGame:
    def _report(self, sender, reply, deployments):
        sender.on(
            "GET",
            build_path(DEPLOYMENTS_REPORT_PATH, platform=XBOX_ONE, name="g1"),
            reply.json(200, {"deployments": deployments}),
        )

    @pytest.mark.asyncio
    async def test_refuses_when_deployed_to_retail(self, client, sender, reply):
        self._report(sender, reply, [{"sandbox": "retail", "totalActive": 3}])

        with pytest.raises(ResourceStateError):
            await client.remove_cloud_game("g1", "XboxOne")
        assert sender.sent("DELETE", game_path("g1")) == []

    @pytest.mark.asyncio
    async def test_removes_when_only_test_sandboxes(self, client, sender, reply):
        self._report(
            sender,
            reply,
            [{"sandbox": "XDKS.1", "totalActive": 3}, {"sandbox": "RETAIL", "totalActive": 0}],
        )
        sender.on("DELETE", game_path("g1"), reply.accepted())
        sender.on("GET", STATUS_PATH, reply.operation("Succeeded"))

        assert await client.remove_cloud_game("g1", "XboxOne") is True

    @pytest.mark.asyncio
    async def test_skip_check(self, client, sender, reply):
        sender.on("DELETE", game_path("g1"), reply.empty(200))
        assert await client.remove_cloud_game("g1", "XboxOne", check_state_first=False) is True
        assert len(sender.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_report_allows_removal(self, client, sender, reply):
        sender.on("GET", build_path(DEPLOYMENTS_REPORT_PATH, platform=XBOX_ONE, name="g1"), reply.empty(404))
        sender.on("DELETE", game_path("g1"), reply.empty(200))
        assert await client.remove_cloud_game("g1", "XboxOne") is True

    @pytest.mark.asyncio
    async def test_polling_timeout_is_false(self, client, sender, reply):
        sender.on("DELETE", game_path("g1"), reply.accepted())
        sender.on("GET", STATUS_PATH, reply.operation("InProgress"))

        assert await client.remove_cloud_game("g1", "XboxOne", check_state_first=False) is False

    @pytest.mark.asyncio
    async def test_accepted_without_request_id(self, client, sender, reply):
        sender.on("DELETE", game_path("g1"), reply.empty(202))

        with pytest.raises(MissingRequestIdError):
            await client.remove_cloud_game("g1", "XboxOne", check_state_first=False)
        assert sender.sent("GET", STATUS_PATH) == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_deploy(self, client, sender, reply):
        path = build_path(
            DEPLOY_CLOUD_GAME_PATH,
            platform=XBOX_ONE,
            name="g1",
            sandboxes="RETAIL,XDKS.1",
            geo_regions="West US",
        )
        sender.on("PUT", path, reply.accepted())
        sender.on("GET", STATUS_PATH, reply.operation("Succeeded"))

        assert await client.deploy_cloud_game("g1", "XboxOne", ["RETAIL", "XDKS.1"], ["West US"]) is True

    @pytest.mark.asyncio
    async def test_stop(self, client, sender, reply):
        sender.on("PUT", build_path(STOP_CLOUD_GAME_PATH, platform=XBOX_ONE, name="g1"), reply.empty(200))
        assert await client.stop_cloud_game("g1", "XboxOne") is True

    @pytest.mark.asyncio
    async def test_configure_sends_json_body(self, client, sender, reply):
        path = build_path(CONFIGURE_CLOUD_GAME_PATH, platform=XBOX_ONE, name="g1")
        sender.on("PUT", path, reply.empty(200))

        await client.configure_cloud_game("g1", "XboxOne", ["rs-1", "rs-2"], "RETAIL")

        request = sender.requests[0]
        assert request.content_type == "application/json"
        assert json.loads(request.body) == {
            "name": "g1",
            "resourceSets": "rs-1,rs-2",
            "sandboxes": "RETAIL",
        }


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    def _availability(self, available):
        return (
            "<ResourceNameAvailabilityResponse>"
            f"<IsAvailable>{str(available).lower()}</IsAvailable>"
            "</ResourceNameAvailabilityResponse>"
        )

    def _register(self, sender, reply):
        sender.on(
            "PUT",
            build_path(REGISTER_SERVICE_PATH, resource_type="gameservicescontainer"),
            reply.empty(200),
        )

    @pytest.mark.asyncio
    async def test_container_exists(self, client, sender, reply):
        self._register(sender, reply)
        sender.on(
            "GET",
            build_path(CHECK_CONTAINER_NAME_AVAILABILITY_PATH, name="container"),
            reply.xml(200, self._availability(False)),
        )

        assert await client.register_container_if_needed() is False
        assert sender.sent("PUT", CONTAINER_RESOURCE_PATH) == []

    @pytest.mark.asyncio
    async def test_container_created(self, client, sender, reply):
        self._register(sender, reply)
        sender.on(
            "GET",
            build_path(CHECK_CONTAINER_NAME_AVAILABILITY_PATH, name="container"),
            reply.xml(200, self._availability(True)),
        )
        sender.on("GET", CLOUD_SERVICE_RESOURCE_PATH, reply.xml(200, cloud_service_xml()))
        sender.on("PUT", CONTAINER_RESOURCE_PATH, reply.accepted())
        sender.on("GET", STATUS_PATH, reply.operation("Succeeded"))

        assert await client.register_container_if_needed() is True
        put = sender.sent("PUT", CONTAINER_RESOURCE_PATH)[0]
        resource = parse_resource(parse_document(put.body))
        assert resource.name == "container"
        assert resource.type == "gameservicescontainer"
        assert resource.intrinsic_settings is None

    @pytest.mark.asyncio
    async def test_container_race_lost(self, client, sender, reply):
        self._register(sender, reply)
        sender.on(
            "GET",
            build_path(CHECK_CONTAINER_NAME_AVAILABILITY_PATH, name="container"),
            reply.empty(404),
        )
        sender.on("GET", CLOUD_SERVICE_RESOURCE_PATH, reply.xml(200, cloud_service_xml()))
        sender.on("PUT", CONTAINER_RESOURCE_PATH, reply.empty(400))

        assert await client.register_container_if_needed() is False

    @pytest.mark.asyncio
    async def test_register_failure(self, client, sender, reply):
        sender.on(
            "PUT",
            build_path(REGISTER_SERVICE_PATH, resource_type=XBOX_ONE),
            reply.json(401, {"Message": "unauthorized"}),
        )

        with pytest.raises(ServiceResponseError) as exc_info:
            await client.register_cloud_service(XBOX_ONE)
        assert exc_info.value.status_code == 401


# =============================================================================
# Sub-resources
# =============================================================================


class TestSubResources:
    @pytest.mark.asyncio
    async def test_vm_packages(self, client, sender, reply):
        sender.on(
            "GET",
            build_path(VM_PACKAGES_RESOURCE_PATH, platform=XBOX_ONE, name="g1"),
            reply.json(200, {"gameServerImages": [{"id": "p1", "name": "pkg", "maxAllowedPlayers": 8}]}),
        )
        packages = await client.get_vm_packages("g1", "XboxOne")
        assert packages.vm_packages[0].max_allowed_players == 8

    @pytest.mark.asyncio
    async def test_clusters_optional_filters(self, client, sender, reply):
        base = build_path(
            ENUMERATE_CLUSTERS_PATH, platform=XBOX_ONE, name="g1", geo_region="West US", status="Active"
        )
        sender.on("GET", base + "&clusterId=c1&agentId=a1", reply.json(200, {"clusters": [{"id": "c1"}]}))

        clusters = await client.get_clusters("g1", "XboxOne", "West US", "Active", cluster_id="c1", agent_id="a1")

        assert clusters.clusters == [{"id": "c1"}]

    @pytest.mark.asyncio
    async def test_monitoring_counters(self, client, sender, reply):
        path = build_path(MONITORING_COUNTERS_PATH, platform=XBOX_ONE, name="g1")
        sender.on("GET", path, reply.json(200, ["cpu", "memory"]))
        assert await client.get_compute_monitoring_counters("g1", "XboxOne") == ["cpu", "memory"]

    @pytest.mark.asyncio
    async def test_monitoring_counters_wrong_shape(self, client, sender, reply):
        path = build_path(MONITORING_COUNTERS_PATH, platform=XBOX_ONE, name="g1")
        sender.on("GET", path, reply.json(200, {"cpu": 1}))
        with pytest.raises(ResponseDecodeError):
            await client.get_compute_monitoring_counters("g1", "XboxOne")

    @pytest.mark.asyncio
    async def test_certificates_for_game(self, client, sender, reply):
        sender.on(
            "GET",
            "/cloudservices/gameservices/resources/gameservices/~/gameservicescontainer/container"
            "/certificates?gsiSetId=set-1",
            reply.json(200, {"certificates": [{"id": "c1", "gsiSetIds": ["set-1"]}]}),
        )
        certificates = await client.get_certificates("set-1")
        assert certificates.certificates[0].cloud_game_references == ["set-1"]

    @pytest.mark.asyncio
    async def test_game_mode_schemas_details_flag(self, client, sender, reply):
        sender.on(
            "GET",
            build_path(GAME_MODE_SCHEMAS_GET_RESOURCE_PATH, details="true"),
            reply.json(200, {"cloudGameVariantSchemas": [{"id": "s1", "variants": [{"id": "m1"}]}]}),
        )
        schemas = await client.get_game_mode_schemas(get_details=True)
        assert schemas.game_mode_schemas[0].game_modes[0].id == "m1"

    @pytest.mark.asyncio
    async def test_remove_game_mode(self, client, sender, reply):
        path = build_path(GAME_MODE_RESOURCE_PATH, schema_id="s1", game_mode_id="m1")
        sender.on("DELETE", path, reply.empty(200))
        assert await client.remove_game_mode("s1", "m1") is True

    @pytest.mark.asyncio
    async def test_remove_asset_conflict_is_error(self, client, sender, reply):
        path = "/cloudservices/gameservices/resources/gameservices/~/gameservicescontainer/container/assets/a1"
        sender.on("DELETE", path, reply.json(409, {"ExtendedCode": "Asset is in use"}))

        with pytest.raises(ServiceResponseError) as exc_info:
            await client.remove_asset("a1")
        assert exc_info.value.error_message == "Asset is in use"


class TestGameServicesProperties:
    def _properties(self, value):
        entry = "<ResourceProviderProperty><Key>other</Key><Value>x</Value></ResourceProviderProperty>"
        if value is not None:
            entry += (
                "<ResourceProviderProperty><Key>publisherInfo</Key>"
                f"<Value>{value}</Value></ResourceProviderProperty>"
            )
        return f'<ResourceProviderProperties xmlns="{AZURE_NAMESPACE}">{entry}</ResourceProviderProperties>'

    @pytest.mark.asyncio
    async def test_publisher_info(self, client, sender, reply):
        info = json.dumps(
            {
                "cloudGames": [{"name": "g1", "gsiSetId": "set-1", "titleId": "1234"}],
                "sandboxes": ["RETAIL"],
                "platform": "XboxOne",
                "partialResults": False,
            }
        )
        sender.on("GET", RESOURCE_PROPERTIES_PATH, reply.xml(200, self._properties(info)))

        properties = await client.get_game_services_properties()

        assert properties.cloud_games[0].cloud_game_id == "set-1"
        assert properties.platform == "xboxone"
        assert sender.requests[0].headers["Accept"] == "application/xml"

    @pytest.mark.asyncio
    async def test_no_publisher_info(self, client, sender, reply):
        sender.on("GET", RESOURCE_PROPERTIES_PATH, reply.xml(200, self._properties(None)))
        assert await client.get_game_services_properties() is None

    @pytest.mark.asyncio
    async def test_invalid_publisher_info(self, client, sender, reply):
        sender.on("GET", RESOURCE_PROPERTIES_PATH, reply.xml(200, self._properties("{nope")))
        with pytest.raises(ResponseDecodeError):
            await client.get_game_services_properties()


class TestOperationDeadline:
    @pytest.mark.asyncio
    async def test_whole_operation_deadline(self, config):
        class SlowSender:
            async def send(self, request):
                await asyncio.sleep(10)

        config.operation_timeout_seconds = 0.01
        client = CloudGameClient(config, sender=SlowSender())

        with pytest.raises(TimeoutError):
            await client.get_cloud_game("g1", "XboxOne")


def test_cloud_game_model_is_exported():
    import gameservices

    assert gameservices.CloudGame is CloudGame
    assert gameservices.CloudGameClient is CloudGameClient


# =============================================================================
# Uploads
# =============================================================================

ASSET_GUID = "0f8fad5b-d9cb-469f-a165-70867728950e"


class RecordingUploader:
    def __init__(self, error=None):
        self.uploads = []
        self.error = error

    async def __call__(self, url, content):
        if self.error is not None:
            raise self.error
        self.uploads.append((url, content))


@pytest.fixture
def uploader():
    return RecordingUploader()


@pytest.fixture
def upload_client(config, sender, clock, uploader):
    return CloudGameClient(
        config,
        credential=AccessTokenCredential("token"),
        sender=sender,
        clock=clock,
        sleep=clock.sleep,
        uploader=uploader,
    )


def form_parts(request):
    return {part.name: part for part in request.form}


def metadata_of(request):
    part = form_parts(request)["metadata"]
    assert part.content_type == "application/json"
    return json.loads(part.value)


def container_exists(sender, reply):
    sender.on(
        "PUT",
        build_path(REGISTER_SERVICE_PATH, resource_type="gameservicescontainer"),
        reply.empty(200),
    )
    sender.on(
        "GET",
        build_path(CHECK_CONTAINER_NAME_AVAILABILITY_PATH, name="container"),
        reply.xml(
            200,
            "<ResourceNameAvailabilityResponse><IsAvailable>false</IsAvailable>"
            "</ResourceNameAvailabilityResponse>",
        ),
    )


class TestNewVmPackage:
    def _routes(self, sender, reply, put=None):
        sender.on(
            "POST",
            build_path(VM_PACKAGES_RESOURCE_PATH, platform=XBOX_ONE, name="g1"),
            reply.json(200, {"vmPackageId": "p1", "cspkgPreAuthUrl": "https://blob/p1.cspkg?sig=x"}),
        )
        sender.on(
            "PUT",
            build_path(VM_PACKAGE_RESOURCE_PATH, platform=XBOX_ONE, name="g1", vm_package_id="p1"),
            put or reply.empty(200),
        )

    async def _create(self, client, asset_id=ASSET_GUID):
        return await client.new_vm_package(
            "g1", "XboxOne", "pkg", 8, asset_id, "game.cspkg", b"cspkg-bytes", "game.cscfg", "<cscfg />"
        )

    @pytest.mark.asyncio
    async def test_posts_uploads_then_puts(self, upload_client, sender, reply, uploader):
        self._routes(sender, reply)

        assert await self._create(upload_client) == "p1"

        post = sender.sent("POST", build_path(VM_PACKAGES_RESOURCE_PATH, platform=XBOX_ONE, name="g1"))[0]
        assert sorted(form_parts(post)) == ["metadata", "packageconfig"]
        assert metadata_of(post) == {
            "name": "pkg",
            "maxAllowedPlayers": 8,
            "minRequiredPlayers": 1,
            "assetId": ASSET_GUID,
            "cspkgFileName": "game.cspkg",
            "cscfgFileName": "game.cscfg",
        }
        config_part = form_parts(post)["packageconfig"]
        assert config_part.filename == "game.cscfg"
        assert config_part.value == b"<cscfg />"

        assert uploader.uploads == [("https://blob/p1.cspkg?sig=x", b"cspkg-bytes")]

        put = sender.sent(
            "PUT", build_path(VM_PACKAGE_RESOURCE_PATH, platform=XBOX_ONE, name="g1", vm_package_id="p1")
        )[0]
        assert list(form_parts(put)) == ["metadata"]
        assert metadata_of(put) == metadata_of(post)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("asset_id", [None, "", "not-a-guid"])
    async def test_non_guid_asset_is_dropped(self, upload_client, sender, reply, asset_id):
        self._routes(sender, reply)

        await self._create(upload_client, asset_id=asset_id)

        assert "assetId" not in metadata_of(sender.requests[0])

    @pytest.mark.asyncio
    async def test_accepted_put_is_polled(self, upload_client, sender, reply):
        self._routes(sender, reply, put=reply.accepted())
        sender.on("GET", STATUS_PATH, reply.operation("Succeeded"))

        assert await self._create(upload_client) == "p1"
        assert len(sender.sent("GET", STATUS_PATH)) == 1

    @pytest.mark.asyncio
    async def test_upload_failure_stops_before_put(self, config, sender, clock, reply):
        client = CloudGameClient(
            config,
            credential=AccessTokenCredential("token"),
            sender=sender,
            clock=clock,
            sleep=clock.sleep,
            uploader=RecordingUploader(error=TransportError("blob storage unreachable")),
        )
        self._routes(sender, reply)

        with pytest.raises(TransportError):
            await self._create(client)
        assert [r.method for r in sender.requests] == ["POST"]

    @pytest.mark.asyncio
    async def test_rejected_post_uploads_nothing(self, upload_client, sender, reply, uploader):
        sender.on(
            "POST",
            build_path(VM_PACKAGES_RESOURCE_PATH, platform=XBOX_ONE, name="g1"),
            reply.json(400, {"ExtendedCode": "Invalid cscfg"}),
        )

        with pytest.raises(ServiceResponseError) as exc_info:
            await self._create(upload_client)
        assert exc_info.value.error_message == "Invalid cscfg"
        assert uploader.uploads == []


class TestContainerUploads:
    @pytest.mark.asyncio
    async def test_new_certificate(self, upload_client, sender, reply):
        container_exists(sender, reply)
        sender.on("POST", CERTIFICATES_RESOURCE_PATH, reply.json(200, {"id": "c1"}))

        certificate_id = await upload_client.new_certificate("cert", "cert.pfx", "secret", b"\x30\x82")

        assert certificate_id == "c1"
        post = sender.sent("POST", CERTIFICATES_RESOURCE_PATH)[0]
        assert metadata_of(post) == {"name": "cert", "fileName": "cert.pfx", "password": "secret"}
        assert form_parts(post)["certificate"].value == b"\x30\x82"
        assert form_parts(post)["certificate"].filename == "cert.pfx"

    @pytest.mark.asyncio
    async def test_new_certificate_registers_container_first(self, upload_client, sender, reply):
        container_exists(sender, reply)
        sender.on("POST", CERTIFICATES_RESOURCE_PATH, reply.json(200, {"id": "c1"}))

        await upload_client.new_certificate("cert", "cert.pfx", None, b"")

        assert [r.method for r in sender.requests] == ["PUT", "GET", "POST"]
        assert "password" not in metadata_of(sender.requests[-1])

    @pytest.mark.asyncio
    async def test_new_asset(self, upload_client, sender, reply, uploader):
        container_exists(sender, reply)
        sender.on(
            "POST",
            ASSETS_RESOURCE_PATH,
            reply.json(200, {"gameAssetId": "a1", "gameAssetUrl": "https://blob/a1?sig=x"}),
        )
        sender.on("PUT", build_path(ASSET_RESOURCE_PATH, asset_id="a1"), reply.empty(200))

        assert await upload_client.new_asset("maps", "maps.zip", b"zip") == "a1"

        post = sender.sent("POST", ASSETS_RESOURCE_PATH)[0]
        assert list(form_parts(post)) == ["metadata"]
        assert metadata_of(post) == {"name": "maps", "fileName": "maps.zip"}
        assert uploader.uploads == [("https://blob/a1?sig=x", b"zip")]
        assert sender.sent("PUT", build_path(ASSET_RESOURCE_PATH, asset_id="a1"))

    @pytest.mark.asyncio
    async def test_new_asset_reply_missing_url(self, upload_client, sender, reply, uploader):
        container_exists(sender, reply)
        sender.on("POST", ASSETS_RESOURCE_PATH, reply.json(200, {"gameAssetId": "a1"}))

        with pytest.raises(ResponseDecodeError):
            await upload_client.new_asset("maps", "maps.zip", b"zip")
        assert uploader.uploads == []

    @pytest.mark.asyncio
    async def test_new_game_mode_schema(self, upload_client, sender, reply):
        container_exists(sender, reply)
        sender.on("POST", GAME_MODE_SCHEMAS_RESOURCE_PATH, reply.json(200, {"id": "s1"}))

        schema_id = await upload_client.new_game_mode_schema("modes", "modes.json", '{"modes": []}')

        assert schema_id == "s1"
        part = form_parts(sender.sent("POST", GAME_MODE_SCHEMAS_RESOURCE_PATH)[0])["variantSchema"]
        assert part.filename == "modes.json"
        assert part.value == b'{"modes": []}'

    @pytest.mark.asyncio
    async def test_new_game_mode(self, upload_client, sender, reply):
        path = build_path(GAME_MODES_RESOURCE_PATH, schema_id="s1")
        sender.on("POST", path, reply.json(200, {"id": "m1"}))

        assert await upload_client.new_game_mode("s1", "deathmatch", "dm.json", b"{}") == "m1"

        # No container registration for game modes
        assert [r.method for r in sender.requests] == ["POST"]
        post = sender.requests[0]
        assert metadata_of(post) == {"name": "deathmatch", "fileName": "dm.json"}
        assert form_parts(post)["variant"].value == b"{}"

    @pytest.mark.asyncio
    async def test_create_reply_404_is_an_error(self, upload_client, sender, reply):
        sender.on("POST", build_path(GAME_MODES_RESOURCE_PATH, schema_id="s1"), reply.empty(404))

        with pytest.raises(ServiceResponseError) as exc_info:
            await upload_client.new_game_mode("s1", "deathmatch", "dm.json", b"{}")
        assert exc_info.value.status_code == 404


class TestGamePackages:
    def _collection_path(self):
        return build_path(GAME_PACKAGES_RESOURCE_PATH, platform=XBOX_ONE, name="g1", vm_package_id="p1")

    def _item_path(self, game_package_id="gp1"):
        return build_path(
            GAME_PACKAGE_RESOURCE_PATH,
            platform=XBOX_ONE,
            name="g1",
            vm_package_id="p1",
            game_package_id=game_package_id,
        )

    @pytest.mark.asyncio
    async def test_get_game_packages(self, upload_client, sender, reply):
        sender.on(
            "GET",
            self._collection_path(),
            reply.json(200, {"codeFiles": [{"codeFileId": "gp1", "name": "build", "active": True}]}),
        )

        packages = await upload_client.get_game_packages("g1", "XboxOne", "p1")

        assert packages.game_packages[0].id == "gp1"
        assert packages.game_packages[0].active is True

    @pytest.mark.asyncio
    async def test_new_game_package(self, upload_client, sender, reply, uploader):
        sender.on(
            "POST",
            self._collection_path(),
            reply.json(200, {"gamePackageId": "gp1", "gamePackageUrl": "https://blob/gp1?sig=x"}),
        )
        sender.on("PUT", self._item_path(), reply.empty(200))

        game_package_id = await upload_client.new_game_package(
            "g1", "XboxOne", "p1", "build", "build.zip", True, b"zip"
        )

        assert game_package_id == "gp1"
        assert uploader.uploads == [("https://blob/gp1?sig=x", b"zip")]
        assert metadata_of(sender.sent("PUT", self._item_path())[0]) == {
            "name": "build",
            "fileName": "build.zip",
            "active": True,
        }

    @pytest.mark.asyncio
    async def test_set_game_package(self, upload_client, sender, reply):
        sender.on("PUT", self._item_path(), reply.empty(200))

        assert await upload_client.set_game_package(
            "g1", "XboxOne", "p1", "gp1", "build", "build.zip", False
        ) is True
        assert metadata_of(sender.requests[0])["active"] is False

    @pytest.mark.asyncio
    async def test_remove_game_package(self, upload_client, sender, reply):
        sender.on("DELETE", self._item_path(), reply.accepted())
        sender.on("GET", STATUS_PATH, reply.operation("Succeeded"))

        assert await upload_client.remove_game_package("g1", "XboxOne", "p1", "gp1") is True


class TestReports:
    @pytest.mark.asyncio
    async def test_summary_report(self, client, sender, reply):
        path = build_path(DASHBOARD_SUMMARY_PATH, platform=XBOX_ONE, name="g1")
        sender.on("GET", path, reply.json(200, {"totalPlayers": 12}))

        assert await client.get_compute_summary_report("g1", "XboxOne") == {"totalPlayers": 12}

    @pytest.mark.asyncio
    async def test_pools_report_not_found(self, client, sender, reply):
        path = build_path(SERVICE_POOLS_REPORT_PATH, platform=XBOX_ONE, name="g1")
        sender.on("GET", path, reply.empty(404))

        assert await client.get_compute_pools_report("g1", "XboxOne") is None

    @pytest.mark.asyncio
    async def test_report_must_be_an_object(self, client, sender, reply):
        path = build_path(SERVICE_POOLS_REPORT_PATH, platform=XBOX_ONE, name="g1")
        sender.on("GET", path, reply.json(200, [1, 2]))

        with pytest.raises(ResponseDecodeError):
            await client.get_compute_pools_report("g1", "XboxOne")
