"""
Records exchanged with the Game Services endpoint.

Contains Pydantic models for:
    - the XML resource envelope (CloudService, Resource, OperationStatus)
    - the cloud game domain object carried as JSON inside the envelope
    - long-running operation status documents
    - JSON sub-resource collections (VM packages, game packages, certificates,
      assets, game mode schemas, game modes, clusters, deployment reports)
    - metadata parts for multipart uploads and the replies to them

JSON field names follow the service's camelCase; Python attributes are
snake_case and models accept either on input.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


class WireModel(BaseModel):
    """Base for JSON payloads: camelCase on the wire, unknown keys ignored."""

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


# =============================================================================
# Resource envelope (XML)
# =============================================================================


class ResourceError(BaseModel):
    """Error recorded on a resource by the last operation that touched it."""

    code: str | None = None
    message: str | None = None
    http_code: str | None = None


class ResourceOperationStatus(BaseModel):
    type: str | None = None
    result: str | None = None
    error: ResourceError | None = None


class Resource(BaseModel):
    """One entry in a cloud service's resource list."""

    name: str
    type: str
    etag: str | None = None
    schema_version: str | None = None
    resource_provider_namespace: str | None = None
    plan: str | None = None
    state: str | None = None
    # Raw JSON text from the first IntrinsicSettings entry, if any
    intrinsic_settings: str | None = None
    operation_status: ResourceOperationStatus | None = None

    @property
    def has_intrinsic_settings(self) -> bool:
        return bool(self.intrinsic_settings and self.intrinsic_settings.strip())


class CloudService(BaseModel):
    name: str
    description: str | None = None
    geo_region: str | None = None
    label: str | None = None
    resources: list[Resource] = Field(default_factory=list)


class ResourceNameAvailability(BaseModel):
    is_available: bool
    reason: str | None = None
    message: str | None = None


class ResourceProviderProperty(BaseModel):
    key: str
    value: str | None = None


# =============================================================================
# Cloud games (JSON inside the envelope)
# =============================================================================


class CloudGame(WireModel):
    """A cloud game instance as reported by the game services resource manager."""

    name: str
    status: str | None = None
    game_mode_ids: list[str] | None = Field(default=None, alias="variants")
    vm_package_ids: list[str] | None = Field(default=None, alias="gsiIds")
    can_deploy: bool = Field(default=False, alias="canDeploy")
    subscription_id: str | None = Field(default=None, alias="subscriptionId")
    resource_sets: str | None = Field(default=None, alias="resourceSets")
    sandboxes: str | None = None
    schema_id: str | None = Field(default=None, alias="schemaId")
    schema_name: str | None = Field(default=None, alias="schemaName")
    cloud_game_id: str | None = Field(default=None, alias="gsiSetId")
    title_id: str | None = Field(default=None, alias="titleId")
    publisher_id: str | None = Field(default=None, alias="publisherId")
    selection_order: int = Field(default=0, alias="selectionOrder")
    platform: str | None = None
    type: str | None = None

    # Copied from the enclosing resource's operation status, never sent
    error: ResourceError | None = Field(default=None, exclude=True)

    @field_validator("platform")
    @classmethod
    def lower_platform(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else None

    @property
    def id(self) -> str | None:
        return self.cloud_game_id

    @property
    def in_error_state(self) -> bool:
        return self.error is not None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class GameModeSchema(WireModel):
    name: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    title_id: str | None = Field(default=None, alias="titleId")


class GameModeSchemaRequest(WireModel):
    metadata: GameModeSchema
    content: str


class CloudGameRequest(WireModel):
    """Body stored in the IntrinsicSettings of a new cloud game resource."""

    cloud_game: CloudGame = Field(alias="cloudGame")
    game_mode_schema: GameModeSchemaRequest | None = Field(default=None, alias="gameModeSchema")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# =============================================================================
# Long-running operations
# =============================================================================


class OperationStatus(str, Enum):
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @classmethod
    def parse(cls, value: str) -> "OperationStatus":
        """Case-insensitive lookup by wire name."""
        wanted = value.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        raise ValueError(f"Unknown operation status: {value!r}")

    @property
    def is_terminal(self) -> bool:
        return self is not OperationStatus.IN_PROGRESS


class OperationError(BaseModel):
    code: str | None = None
    message: str | None = None


class OperationStatusResponse(BaseModel):
    """One reading of an asynchronous operation's status document."""

    id: str | None = None
    status: OperationStatus | None = None
    # Status the operation itself reported, from the document
    http_status_code: int | None = None
    # Status of the poll response carrying the document
    status_code: int | None = None
    request_id: str | None = None
    error: OperationError | None = None


# =============================================================================
# Sub-resources (JSON)
# =============================================================================


class VmPackage(WireModel):
    id: str | None = None
    name: str | None = None
    status: str | None = None
    max_allowed_players: int | None = Field(default=None, alias="maxAllowedPlayers")
    min_required_players: int | None = Field(default=None, alias="minRequiredPlayers")
    asset_id: str | None = Field(default=None, alias="assetId")


class VmPackageCollection(WireModel):
    vm_packages: list[VmPackage] = Field(default_factory=list, alias="gameServerImages")


class Certificate(WireModel):
    id: str | None = None
    name: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    thumbprint: str | None = None
    expiration: str | None = None
    cloud_game_references: list[str] | None = Field(default=None, alias="gsiSetIds")


class CertificateCollection(WireModel):
    certificates: list[Certificate] = Field(default_factory=list)


class Asset(WireModel):
    id: str | None = None
    name: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    status: str | None = None


class AssetCollection(WireModel):
    assets: list[Asset] = Field(default_factory=list, alias="gameAssets")


class GameMode(WireModel):
    id: str | None = None
    name: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    status: str | None = None
    type: str | None = None


class GameModeCollection(WireModel):
    game_modes: list[GameMode] = Field(default_factory=list, alias="variants")


class GameModeSchemaDetails(WireModel):
    id: str | None = None
    name: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    game_modes: list[GameMode] | None = Field(default=None, alias="variants")


class GameModeSchemaCollection(WireModel):
    game_mode_schemas: list[GameModeSchemaDetails] = Field(
        default_factory=list, alias="cloudGameVariantSchemas"
    )


class VmPackageDeploymentInfo(WireModel):
    vm_package_name: str | None = Field(default=None, alias="gameServerImageName")
    vm_package_id: str | None = Field(default=None, alias="gameServerImageId")
    sandbox: str | None = None
    total_progress: int = Field(default=0, alias="totalProgress")
    total_usage: int = Field(default=0, alias="totalUsage")
    total_standing_by: int = Field(default=0, alias="totalStandingBy")
    total_active: int = Field(default=0, alias="totalActive")
    total_quarantined: int = Field(default=0, alias="totalQuarantined")
    geo_region_infos: list[dict[str, Any]] | None = Field(default=None, alias="geoRegionInfos")


class DeploymentData(WireModel):
    total_usage: int = Field(default=0, alias="totalUsage")
    total_active: int = Field(default=0, alias="totalActive")
    total_quarantined: int = Field(default=0, alias="totalQuarantined")
    deployments: list[VmPackageDeploymentInfo] | None = None

    def is_deployed_to_retail(self) -> bool:
        """True if some deployment in the RETAIL sandbox has active instances."""
        return any(
            (info.sandbox or "").upper() == "RETAIL" and info.total_active > 0
            for info in self.deployments or []
        )


class ClusterCollection(WireModel):
    clusters: list[dict[str, Any]] = Field(default_factory=list)


class GameServicesProperty(WireModel):
    name: str | None = None
    cloud_game_id: str | None = Field(default=None, alias="gsiSetId")
    title_id: str | None = Field(default=None, alias="titleId")


class GameServicesProperties(WireModel):
    """Publisher information stored in the resource provider property list."""

    cloud_games: list[GameServicesProperty] | None = Field(default=None, alias="cloudGames")
    sandboxes: list[str] | None = None
    platform: str | None = None
    partial_results: bool = Field(default=False, alias="partialResults")
    management_service: str | None = Field(default=None, alias="managementService")

    @field_validator("platform")
    @classmethod
    def lower_platform(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else None


class GamePackage(WireModel):
    id: str | None = Field(default=None, alias="codeFileId")
    name: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")
    active: bool = False
    type: str | None = None


class GamePackageCollection(WireModel):
    game_packages: list[GamePackage] = Field(default_factory=list, alias="codeFiles")


# =============================================================================
# Uploads: JSON "metadata" parts and the replies to them
# =============================================================================


class MetadataPart(WireModel):
    """Metadata sent as the JSON part of a multipart upload."""

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class VmPackageRequest(MetadataPart):
    name: str
    max_allowed_players: int = Field(alias="maxAllowedPlayers")
    min_required_players: int = Field(default=1, alias="minRequiredPlayers")
    asset_id: str | None = Field(default=None, alias="assetId")
    cspkg_file_name: str = Field(alias="cspkgFileName")
    cscfg_file_name: str = Field(alias="cscfgFileName")


class CertificateRequest(MetadataPart):
    name: str
    file_name: str = Field(alias="fileName")
    password: str | None = None


class FileRequest(MetadataPart):
    """Name and original file name; used for assets, game modes and schemas."""

    name: str
    file_name: str = Field(alias="fileName")


class GamePackageRequest(MetadataPart):
    name: str
    file_name: str = Field(alias="fileName")
    active: bool = False


class CreatedItem(WireModel):
    id: str


class VmPackagePostResponse(WireModel):
    vm_package_id: str = Field(alias="vmPackageId")
    cspkg_url: str = Field(alias="cspkgPreAuthUrl")


class AssetPostResponse(WireModel):
    asset_id: str = Field(alias="gameAssetId")
    asset_url: str = Field(alias="gameAssetUrl")


class GamePackagePostResponse(WireModel):
    game_package_id: str = Field(alias="gamePackageId")
    game_package_url: str = Field(alias="gamePackageUrl")


class ErrorResponse(WireModel):
    """Flat JSON error body returned by the game services resource manager."""

    extended_code: str | None = Field(
        default=None, validation_alias=AliasChoices("ExtendedCode", "extendedCode")
    )
    message: str | None = Field(default=None, validation_alias=AliasChoices("Message", "message"))
    code: str | None = Field(default=None, validation_alias=AliasChoices("Code", "code"))

    @field_validator("extended_code", "message", "code", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> str | None:
        # Only non-empty strings carry a usable message
        return v if isinstance(v, str) and v else None

    @property
    def best_message(self) -> str | None:
        return self.extended_code or self.message
