"""
HTTP transport for the management endpoint.

Three layers wrap each other:

    RetryingTransport  -> fixed-delay retries on 5xx and transient failures
      LoggingSender    -> request/response lines at DEBUG and to the log sink
        AiohttpSender  -> one aiohttp request, body fully buffered

Responses are buffered before the aiohttp context exits, so a discarded
attempt holds no connection and callers can decode bodies at leisure.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Protocol

import aiohttp

from core.auth import ManagementCredential
from core.logging import emit
from core.resilience import RetryConfig, send_with_retry

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]

# Body text written to the log is cut here
_MAX_LOGGED_BODY = 4000


@dataclass(frozen=True)
class FormPart:
    """One part of a multipart/form-data upload."""

    name: str
    value: str | bytes
    filename: Optional[str] = None
    content_type: Optional[str] = None

    def describe(self) -> str:
        size = len(self.value.encode("utf-8") if isinstance(self.value, str) else self.value)
        label = f"{self.name}={self.filename}" if self.filename else self.name
        return f"{label} ({size} bytes)"


@dataclass
class HttpRequest:
    """
    One request to send.

    A request carries either a text ``body`` of ``content_type`` or a list
    of multipart ``form`` parts, never both.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    content_type: Optional[str] = None
    form: Optional[list[FormPart]] = None

    def __post_init__(self) -> None:
        if self.body is not None and self.form is not None:
            raise ValueError("A request cannot carry both a body and form parts")


@dataclass
class HttpResponse:
    """A fully-read HTTP response."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    charset: Optional[str] = None
    url: str = ""
    released: bool = False

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def text(self) -> str:
        return self.body.decode(self.charset or "utf-8", errors="replace")

    def release(self) -> None:
        self.released = True


class Sender(Protocol):
    async def send(self, request: HttpRequest) -> HttpResponse: ...


class AiohttpSender:
    """
    Issues single requests on a shared aiohttp session.

    The session is created lazily; a certificate credential's SSL context is
    handed to the connector so the client certificate rides on every TLS
    handshake.
    """

    def __init__(
        self,
        credential: ManagementCredential,
        default_headers: Optional[dict[str, str]] = None,
        timeout_seconds: float = 100.0,
        max_connections: int = 20,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._credential = credential
        self._default_headers = dict(default_headers or {})
        self.timeout_seconds = timeout_seconds
        self.max_connections = max_connections
        self._session = session
        self._owns_session = session is None
        self._closed = False

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("AiohttpSender is closed, cannot create new session")
        if self._session is None or self._session.closed:
            ssl_context = self._credential.ssl_context
            connector = aiohttp.TCPConnector(
                limit=self.max_connections,
                limit_per_host=self.max_connections,
                ssl=ssl_context if ssl_context is not None else True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=self._default_headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
            self._owns_session = True
        return self._session

    async def send(self, request: HttpRequest) -> HttpResponse:
        session = await self._ensure_session()
        await self._credential.apply_to(request)

        headers = dict(request.headers)
        data: bytes | aiohttp.FormData | None = None
        if request.form is not None:
            # aiohttp writes the multipart Content-Type with its boundary
            data = _form_data(request.form)
        elif request.body is not None:
            data = request.body.encode("utf-8")
            if request.content_type:
                headers["Content-Type"] = f"{request.content_type}; charset=utf-8"

        async with session.request(
            request.method, request.url, headers=headers, data=data
        ) as response:
            body = await response.read()
            return HttpResponse(
                status=response.status,
                headers={k: v for k, v in response.headers.items()},
                body=body,
                charset=response.charset,
                url=str(response.url),
            )

    async def close(self) -> None:
        self._closed = True
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            # Let the connector finish closing transports
            await asyncio.sleep(0)
        self._session = None


def _form_data(parts: list[FormPart]) -> aiohttp.FormData:
    # FormData is consumed when sent, so every attempt builds its own
    form = aiohttp.FormData()
    for part in parts:
        form.add_field(
            part.name,
            part.value,
            filename=part.filename,
            content_type=part.content_type or "application/octet-stream",
        )
    return form


def _truncate(text: str) -> str:
    if len(text) > _MAX_LOGGED_BODY:
        return text[:_MAX_LOGGED_BODY] + "..."
    return text


class LoggingSender:
    """Writes every request and response to the logger and the caller's sink."""

    def __init__(self, inner: Sender, log: Optional[LogSink] = None):
        self._inner = inner
        self._log = log

    async def send(self, request: HttpRequest) -> HttpResponse:
        emit(
            logger,
            logging.DEBUG,
            f"Request: {request.method} {request.url}",
            self._log,
            http_method=request.method,
            http_url=request.url,
        )
        if request.body:
            emit(logger, logging.DEBUG, _truncate(request.body), self._log)
        for part in request.form or []:
            emit(logger, logging.DEBUG, f"Form part: {part.describe()}", self._log)

        loop = asyncio.get_running_loop()
        start = loop.time()
        response = await self._inner.send(request)
        duration_ms = round((loop.time() - start) * 1000, 2)

        emit(
            logger,
            logging.DEBUG,
            f"Response: {response.status} {request.method} {request.url}",
            self._log,
            http_method=request.method,
            http_url=request.url,
            status_code=response.status,
            duration_ms=duration_ms,
            body_length=len(response.body),
        )
        if response.body:
            emit(logger, logging.DEBUG, _truncate(response.text()), self._log)
        return response


class RetryingTransport:
    """
    Sends requests with fixed-delay retries on server errors.

    Any status below 500 comes back on the first attempt. A 5xx is released
    and retried until ``max_tries`` attempts have been made, after which the
    last response is returned as-is for the caller to turn into an error.
    """

    def __init__(
        self,
        sender: Sender,
        retry: Optional[RetryConfig] = None,
        log: Optional[LogSink] = None,
    ):
        self._sender = sender
        self.retry = retry or RetryConfig()
        self._log = log

    async def send(
        self,
        request: HttpRequest,
        max_tries: Optional[int] = None,
        delay_ms: Optional[int] = None,
    ) -> HttpResponse:
        config = self.retry
        if max_tries is not None or delay_ms is not None:
            config = RetryConfig(
                max_tries=max_tries if max_tries is not None else config.max_tries,
                delay_ms=delay_ms if delay_ms is not None else config.delay_ms,
                strategy=config.strategy,
            )

        async def attempt() -> HttpResponse:
            # Credentials may mutate headers, so each attempt gets its own copy
            return await self._sender.send(replace(request, headers=dict(request.headers)))

        return await send_with_retry(
            attempt,
            config,
            status_of=lambda r: r.status,
            release=lambda r: r.release(),
            operation=f"{request.method} {request.url}",
            log=self._log,
        )


__all__ = [
    "FormPart",
    "HttpRequest",
    "HttpResponse",
    "Sender",
    "AiohttpSender",
    "LoggingSender",
    "RetryingTransport",
    "LogSink",
]
