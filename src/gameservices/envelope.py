"""
Resource envelope codec.

The service wraps every cloud game in an XML ``Resource`` element of the
Azure ``CloudService`` document, with the game's own JSON carried as CDATA
inside ``IntrinsicSettings``. This module reads that document into
``CloudService`` / ``Resource`` records, turns qualifying resources into
``CloudGame`` objects, and writes the XML bodies the client sends.

Resources that come back without settings are resolved through a fallback
fetcher; those the fallback cannot find are orphans and get a best-effort
deletion.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from typing import Optional
from xml.etree.ElementTree import Element
from xml.sax import saxutils

from defusedxml import DefusedXmlException, ElementTree
from pydantic import ValidationError

from core.errors import GameServicesError, ResponseDecodeError
from core.logging import log_exception, log_phase, log_with_context
from gameservices.models import (
    CloudGame,
    CloudService,
    Resource,
    ResourceError,
    ResourceNameAvailability,
    ResourceOperationStatus,
    ResourceProviderProperty,
)
from gameservices.uri_elements import AZURE_NAMESPACE

logger = logging.getLogger(__name__)

# (name, resource_type) -> game, or None when the service no longer has it
FallbackFetcher = Callable[[str, str], Awaitable[Optional[CloudGame]]]
# (name, resource_type) -> awaitable deletion
OrphanRemover = Callable[[str, str], Awaitable[object]]

_XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")


# =============================================================================
# XML helpers
# =============================================================================


def local_name(tag: str) -> str:
    """Tag without its ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]


def parse_document(text: str) -> Element:
    """
    Parse an XML document that has already been decoded to text.

    The declaration is dropped first: it may name the wire encoding, which no
    longer applies once the bytes are a str.
    """
    return ElementTree.fromstring(_XML_DECLARATION.sub("", text, count=1))


def find_child(element: Element, name: str) -> Optional[Element]:
    """First direct child named ``name``, with or without a namespace."""
    for child in element:
        if local_name(child.tag) == name:
            return child
    return None


def find_children(element: Element, name: str) -> list[Element]:
    return [child for child in element if local_name(child.tag) == name]


def child_text(element: Element, name: str) -> Optional[str]:
    child = find_child(element, name)
    if child is None:
        return None
    return child.text if child.text is not None else ""


def inner_text(element: Element) -> str:
    return "".join(element.itertext())


# =============================================================================
# Decoding
# =============================================================================


def _parse_resource_error(element: Optional[Element]) -> Optional[ResourceError]:
    if element is None:
        return None
    return ResourceError(
        code=child_text(element, "Code"),
        message=child_text(element, "Message"),
        http_code=child_text(element, "HttpCode"),
    )


def _parse_operation_status(element: Optional[Element]) -> Optional[ResourceOperationStatus]:
    if element is None:
        return None
    return ResourceOperationStatus(
        type=child_text(element, "Type"),
        result=child_text(element, "Result"),
        error=_parse_resource_error(find_child(element, "Error")),
    )


def parse_resource(element: Element) -> Resource:
    settings = find_child(element, "IntrinsicSettings")
    intrinsic: Optional[str] = None
    if settings is not None:
        # CDATA and plain text both surface as text; nested markup is not expected
        intrinsic = inner_text(settings).strip() or None

    return Resource(
        name=child_text(element, "Name") or "",
        type=child_text(element, "Type") or "",
        etag=child_text(element, "ETag"),
        schema_version=child_text(element, "SchemaVersion"),
        resource_provider_namespace=child_text(element, "ResourceProviderNamespace"),
        plan=child_text(element, "Plan"),
        state=child_text(element, "State"),
        intrinsic_settings=intrinsic,
        operation_status=_parse_operation_status(find_child(element, "OperationStatus")),
    )


def parse_cloud_service(root: Element) -> CloudService:
    resources_element = find_child(root, "Resources")
    resources = (
        [parse_resource(r) for r in find_children(resources_element, "Resource")]
        if resources_element is not None
        else []
    )
    return CloudService(
        name=child_text(root, "Name") or "",
        description=child_text(root, "Description"),
        geo_region=child_text(root, "GeoRegion"),
        label=child_text(root, "Label"),
        resources=resources,
    )


def parse_name_availability(root: Element) -> ResourceNameAvailability:
    available = (child_text(root, "IsAvailable") or "").strip().lower() == "true"
    return ResourceNameAvailability(
        is_available=available,
        reason=child_text(root, "Reason"),
        message=child_text(root, "Message"),
    )


def parse_provider_properties(root: Element) -> list[ResourceProviderProperty]:
    properties = []
    for element in root:
        key = child_text(element, "Key")
        if key is None:
            continue
        properties.append(ResourceProviderProperty(key=key, value=child_text(element, "Value")))
    return properties


def decode_cloud_game(resource: Resource) -> CloudGame:
    """Decode the settings JSON of one resource and attach its error state."""
    try:
        game = CloudGame.model_validate_json(resource.intrinsic_settings or "")
    except ValidationError as e:
        raise ResponseDecodeError(
            f"Invalid cloud game settings on resource {resource.name}",
            status_code=200,
            cause=e,
        ) from e
    if resource.operation_status is not None:
        game.error = resource.operation_status.error
    return game


async def decode_collection(
    raw_xml: str,
    type_filter: Iterable[str],
    fallback_fetcher: FallbackFetcher,
    remover: OrphanRemover,
) -> tuple[list[CloudGame], list["asyncio.Task[object]"]]:
    """
    Turn a ``CloudService`` document into cloud games.

    Args:
        raw_xml: Document text, already decoded with the response charset
        type_filter: Resource types to keep (compared case-insensitively)
        fallback_fetcher: Looks up a game whose resource carries no settings
        remover: Deletes a resource the fallback could not find

    Returns:
        The games in document order, and the deletion tasks scheduled for
        orphans. Callers join the tasks themselves; see ``join_cleanup``.
    """
    try:
        service = parse_cloud_service(parse_document(raw_xml))
    except (ElementTree.ParseError, DefusedXmlException) as e:
        raise ResponseDecodeError("Invalid cloud service document", status_code=200, cause=e) from e

    wanted = {t.lower() for t in type_filter}
    qualifying = [r for r in service.resources if r.type.lower() in wanted]

    slots: list[Optional[CloudGame]] = []
    pending: list[tuple[int, Resource]] = []
    for resource in qualifying:
        if resource.has_intrinsic_settings:
            slots.append(decode_cloud_game(resource))
        else:
            pending.append((len(slots), resource))
            slots.append(None)

    tasks: list[asyncio.Task[object]] = []
    if pending:
        with log_phase(logger, "resolve_missing_settings", items_count=len(pending)):
            fetched = await asyncio.gather(
                *(fallback_fetcher(resource.name, resource.type) for _, resource in pending),
                return_exceptions=True,
            )
        # Every lookup has settled, so the first failure can be raised safely
        for result in fetched:
            if isinstance(result, BaseException):
                raise result
        for (index, resource), game in zip(pending, fetched):
            if game is not None:
                slots[index] = game
                continue
            log_with_context(
                logger,
                logging.INFO,
                "Removing orphaned resource",
                resource_name=resource.name,
                resource_type=resource.type,
            )
            tasks.append(asyncio.ensure_future(remover(resource.name, resource.type)))

    games = [game for game in slots if game is not None]
    log_with_context(
        logger,
        logging.DEBUG,
        "Decoded resource collection",
        items_count=len(games),
        orphans_count=len(tasks),
    )
    return games, tasks


async def join_cleanup(tasks: list["asyncio.Task[object]"]) -> None:
    """Wait for orphan deletions; their failures are logged and dropped."""
    if not tasks:
        return
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for result in results:
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, Exception):
            log_exception(
                logger,
                result,
                "Orphaned resource cleanup failed",
                level=logging.WARNING,
                include_traceback=not isinstance(result, GameServicesError),
            )


# =============================================================================
# Encoding
# =============================================================================


def _escape(text: str) -> str:
    return saxutils.escape(text, {'"': "&quot;"})


def _cdata(text: str) -> str:
    # "]]>" cannot appear inside one section, so split it across two
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _element(name: str, value: Optional[str]) -> str:
    if value is None:
        return ""
    if value == "":
        return f"<{name} />"
    return f"<{name}>{_escape(value)}</{name}>"


def encode_resource(resource: Resource) -> str:
    """Write a ``Resource`` element; settings JSON goes out as CDATA."""
    parts = [
        f'<Resource xmlns="{AZURE_NAMESPACE}">',
        _element("ResourceProviderNamespace", resource.resource_provider_namespace),
        _element("Type", resource.type),
        _element("Name", resource.name),
        _element("Plan", resource.plan),
        _element("SchemaVersion", resource.schema_version),
        _element("ETag", resource.etag),
        _element("State", resource.state),
    ]
    if resource.intrinsic_settings is not None:
        parts.append(f"<IntrinsicSettings>{_cdata(resource.intrinsic_settings)}</IntrinsicSettings>")
    parts.append("</Resource>")
    return '<?xml version="1.0" encoding="utf-8"?>' + "".join(parts)


def encode_cloud_service(
    name: str,
    description: str,
    geo_region: str,
    label: str,
) -> str:
    """Body that creates the cloud service holding every game resource."""
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<CloudService xmlns="{AZURE_NAMESPACE}">'
        f"{_element('Name', name)}"
        f"{_element('Description', description)}"
        f"{_element('GeoRegion', geo_region)}"
        f"{_element('Label', label)}"
        "</CloudService>"
    )


__all__ = [
    "FallbackFetcher",
    "OrphanRemover",
    "local_name",
    "parse_document",
    "find_child",
    "find_children",
    "child_text",
    "inner_text",
    "parse_resource",
    "parse_cloud_service",
    "parse_name_availability",
    "parse_provider_properties",
    "decode_cloud_game",
    "decode_collection",
    "join_cleanup",
    "encode_resource",
    "encode_cloud_service",
]
