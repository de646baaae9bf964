"""
Management credentials for the classic Service Management endpoint.

A credential is resolved once when the client is built and then applied to
every outgoing request. Three kinds are supported:

    - Certificate: a management certificate presented during the TLS handshake
    - Access token: a bearer token supplied by the caller
    - Azure identity: a bearer token fetched through azure-identity
      (service principal secret, or the DefaultAzureCredential chain)

Example:
    >>> credential = CertificateCredential("/secrets/management.pem")
    >>> connector = aiohttp.TCPConnector(ssl=credential.ssl_context)

    >>> credential = AzureIdentityCredential()
    >>> await credential.apply_to(request)  # sets the Authorization header
"""

import asyncio
import logging
import ssl
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Protocol

from azure.core.credentials import TokenCredential
from azure.identity import ClientSecretCredential, DefaultAzureCredential

from core.auth.token_cache import TokenCache
from core.errors.exceptions import CredentialError
from core.types import TokenProvider

logger = logging.getLogger(__name__)

# Classic Service Management resource
MANAGEMENT_RESOURCE = "https://management.core.windows.net/"
MANAGEMENT_SCOPE = "https://management.core.windows.net/.default"

AUTHORIZATION_HEADER = "Authorization"


class SupportsHeaders(Protocol):
    headers: dict[str, str]


class ManagementCredential(ABC):
    """Something that can authenticate a request to the management endpoint."""

    @property
    def ssl_context(self) -> Optional[ssl.SSLContext]:
        """TLS context carrying a client certificate, if this credential uses one."""
        return None

    @abstractmethod
    async def apply_to(self, request: SupportsHeaders) -> None:
        """Attach whatever this credential needs to ``request``."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class CertificateCredential(ManagementCredential):
    """
    Management certificate authentication.

    The certificate is loaded into an SSL context that the HTTP session
    presents to the server; requests themselves carry no extra header.

    Args:
        certificate_path: PEM file holding the certificate (and key, unless
            ``key_path`` is given)
        key_path: Separate PEM private key file
        password: Password protecting the private key
    """

    def __init__(
        self,
        certificate_path: str | Path,
        key_path: str | Path | None = None,
        password: str | None = None,
    ):
        self.certificate_path = Path(certificate_path)
        self.key_path = Path(key_path) if key_path else None
        self._password = password
        self._ssl_context: Optional[ssl.SSLContext] = None

    @property
    def ssl_context(self) -> ssl.SSLContext:
        if self._ssl_context is None:
            self._ssl_context = self._load()
        return self._ssl_context

    def _load(self) -> ssl.SSLContext:
        if not self.certificate_path.exists():
            raise CredentialError(
                f"Management certificate not found: {self.certificate_path}",
                context={"certificate_path": str(self.certificate_path)},
            )

        context = ssl.create_default_context()
        try:
            context.load_cert_chain(
                certfile=str(self.certificate_path),
                keyfile=str(self.key_path) if self.key_path else None,
                password=self._password,
            )
        except (ssl.SSLError, OSError) as e:
            raise CredentialError(
                f"Failed to load management certificate: {self.certificate_path}",
                cause=e,
                context={"certificate_path": str(self.certificate_path)},
            ) from e

        logger.debug(
            "Loaded management certificate",
            extra={"operation": "load_certificate"},
        )
        return context

    async def apply_to(self, request: SupportsHeaders) -> None:
        # The certificate rides on the TLS handshake, not on the request
        return None


class AccessTokenCredential(ManagementCredential):
    """
    Bearer token supplied by the caller.

    Either a fixed token string, or a ``TokenProvider`` asked for a token on
    every request (it is expected to do its own caching).
    """

    def __init__(self, token: str | TokenProvider):
        if not token:
            raise CredentialError("Missing access token")
        self._token = token

    async def apply_to(self, request: SupportsHeaders) -> None:
        if isinstance(self._token, str):
            token = self._token
        else:
            token = await self._token.get_token()
        request.headers[AUTHORIZATION_HEADER] = f"Bearer {token}"


class AzureIdentityCredential(ManagementCredential):
    """
    Bearer token fetched through an azure-identity ``TokenCredential``.

    Tokens are cached per scope in a ``TokenCache`` and refreshed shortly
    before they expire. The synchronous azure-identity call runs in a worker
    thread so the event loop keeps serving other operations.

    Args:
        credential: azure-identity credential (DefaultAzureCredential if None)
        scope: Token scope (classic Service Management by default)
        cache: Optional shared TokenCache
    """

    def __init__(
        self,
        credential: Optional[TokenCredential] = None,
        scope: str = MANAGEMENT_SCOPE,
        cache: Optional[TokenCache] = None,
    ):
        self._credential = credential or DefaultAzureCredential()
        self.scope = scope
        self._cache = cache or TokenCache()

    async def get_token(self, scopes: str | None = None) -> str:
        scope = scopes or self.scope
        cached = self._cache.get(scope)
        if cached:
            return cached

        try:
            access_token = await asyncio.to_thread(self._credential.get_token, scope)
        except Exception as e:
            raise CredentialError(
                f"Failed to acquire token for {scope}",
                cause=e,
                context={"scope": scope},
            ) from e

        self._cache.set(scope, access_token.token, expires_on=access_token.expires_on)
        logger.debug(
            "Acquired management token",
            extra={"operation": "acquire_token"},
        )
        return access_token.token

    async def apply_to(self, request: SupportsHeaders) -> None:
        token = await self.get_token()
        request.headers[AUTHORIZATION_HEADER] = f"Bearer {token}"

    def clear_cache(self) -> None:
        self._cache.clear(self.scope)


def credential_from_config(config: Any) -> ManagementCredential:
    """
    Pick a credential from configuration attributes.

    Precedence: certificate, then static access token, then a service
    principal secret, then the DefaultAzureCredential chain when
    ``use_azure_identity`` is set.

    Raises:
        CredentialError: Nothing usable is configured
    """
    certificate_path = getattr(config, "certificate_path", None)
    if certificate_path:
        return CertificateCredential(
            certificate_path,
            key_path=getattr(config, "certificate_key_path", None),
            password=getattr(config, "certificate_password", None),
        )

    access_token = getattr(config, "access_token", None)
    if access_token:
        return AccessTokenCredential(access_token)

    tenant_id = getattr(config, "tenant_id", None)
    client_id = getattr(config, "client_id", None)
    client_secret = getattr(config, "client_secret", None)
    if tenant_id and client_id and client_secret:
        logger.debug("Using client secret Service Principal authentication")
        return AzureIdentityCredential(
            ClientSecretCredential(
                tenant_id=tenant_id,
                client_id=client_id,
                client_secret=client_secret,
            )
        )

    if getattr(config, "use_azure_identity", False):
        logger.info("Using DefaultAzureCredential (managed identity, env vars, etc.)")
        return AzureIdentityCredential()

    raise CredentialError(
        "No management credential configured. "
        "Set one of: certificate_path, access_token, a service principal, "
        "or use_azure_identity"
    )


__all__ = [
    "ManagementCredential",
    "CertificateCredential",
    "AccessTokenCredential",
    "AzureIdentityCredential",
    "credential_from_config",
    "MANAGEMENT_RESOURCE",
    "MANAGEMENT_SCOPE",
    "AUTHORIZATION_HEADER",
]
