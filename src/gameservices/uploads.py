"""
Uploads to pre-authorized blob URLs.

Large files (VM package archives, assets, game packages) do not travel
through the management endpoint. The service answers the metadata POST with
a SAS URL and the file is written straight to blob storage.
"""

import logging
from collections.abc import Awaitable, Callable
from urllib.parse import urlsplit

from azure.core.exceptions import AzureError, HttpResponseError
from azure.storage.blob.aio import BlobClient

from core.errors import ServiceResponseError, TransportError
from core.logging import log_with_context

logger = logging.getLogger(__name__)

Uploader = Callable[[str, bytes], Awaitable[None]]


def _redact(url: str) -> str:
    # The query string is the SAS token
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


async def upload_to_preauthorized_url(url: str, content: bytes) -> None:
    """
    Write ``content`` to the blob behind a SAS URL, replacing what is there.

    Raises:
        ServiceResponseError: Blob storage rejected the upload
        TransportError: The upload never got a response
    """
    target = _redact(url)
    try:
        async with BlobClient.from_blob_url(url) as blob:
            await blob.upload_blob(content, overwrite=True)
    except HttpResponseError as e:
        raise ServiceResponseError(
            e.status_code,
            error_message=f"Failed to upload to {target}: {e.message}",
            error_code=getattr(e, "error_code", None),
            context={"url": target},
        ) from e
    except AzureError as e:
        raise TransportError(
            f"Failed to upload to {target}", cause=e, context={"url": target}
        ) from e

    log_with_context(logger, logging.DEBUG, "Uploaded blob", url=target, size=len(content))


__all__ = ["Uploader", "upload_to_preauthorized_url"]
