"""
Long-running operation polling.

A mutation the service runs asynchronously answers 202 Accepted with a
request id header. The operation's progress is then read from
``/operations/{request_id}`` until it reports Succeeded or Failed, or until
the polling deadline passes.

The outcome is a ``PollResult``. Giving up at the deadline is an outcome,
not an error: callers check ``PollResult.outcome`` (or the returned status)
to tell a timeout from a success.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from http import HTTPStatus
from typing import Optional
from xml.etree.ElementTree import Element

from core.errors import (
    MissingRequestIdError,
    OperationFailedError,
    ResponseDecodeError,
    UnexpectedStatusError,
)
from core.logging import emit, log_with_context
from gameservices.envelope import child_text, find_child, local_name
from gameservices.models import OperationError, OperationStatus, OperationStatusResponse
from gameservices.responses import decode_xml
from gameservices.transport import HttpRequest, HttpResponse, LogSink, RetryingTransport
from gameservices.uri_elements import OPERATION_STATUS_PATH, REQUEST_ID_HEADER, build_path

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]

# "InternalServerError" / "OK" -> status, keyed without separators or case
_STATUS_BY_NAME = {status.name.replace("_", "").lower(): status for status in HTTPStatus}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PollOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    response: OperationStatusResponse
    polls: int

    @property
    def succeeded(self) -> bool:
        return self.outcome is PollOutcome.SUCCEEDED

    @property
    def timed_out(self) -> bool:
        return self.outcome is PollOutcome.TIMED_OUT


def parse_http_status(value: str) -> int:
    """Status from a number (``409``) or an enum name (``Conflict``)."""
    text = value.strip()
    if text.isdigit():
        return int(text)
    status = _STATUS_BY_NAME.get(text.replace("_", "").lower())
    if status is None:
        raise ValueError(f"Unknown HTTP status code: {value!r}")
    return int(status)


def parse_operation_status(root: Element) -> OperationStatusResponse:
    """Read an ``Operation`` status document."""
    if local_name(root.tag) != "Operation":
        raise ValueError(f"Expected an Operation document, got {local_name(root.tag)}")

    status_text = child_text(root, "Status")
    http_status_text = child_text(root, "HttpStatusCode")
    error_element = find_child(root, "Error")

    return OperationStatusResponse(
        id=child_text(root, "ID"),
        status=OperationStatus.parse(status_text) if status_text else None,
        http_status_code=parse_http_status(http_status_text) if http_status_text else None,
        error=(
            OperationError(
                code=child_text(error_element, "Code"),
                message=child_text(error_element, "Message"),
            )
            if error_element is not None
            else None
        ),
    )


def _decode_status(response: HttpResponse) -> OperationStatusResponse:
    try:
        return decode_xml(response, parse_operation_status)
    except ValueError as e:
        # Unknown status strings surface as ValueError from the parser
        raise ResponseDecodeError(
            f"Invalid operation status document: {e}",
            status_code=response.status,
            cause=e,
        ) from e


class OperationPoller:
    """
    Drives one accepted operation to a terminal state.

    Args:
        transport: Retrying transport used for each status GET
        base_url: ``{endpoint}/{subscription_id}``
        headers: Extra per-request headers sent with each poll
        request_id_header: Header on the 202 response naming the operation
        poll_interval_seconds: Pause after each InProgress reading
        timeout_seconds: Give up once this long has passed since the start
        clock: UTC wall clock, replaceable in tests
        sleep: Awaitable sleep, replaceable in tests
        log: Caller log sink
    """

    def __init__(
        self,
        transport: RetryingTransport,
        base_url: str,
        headers: Optional[dict[str, str]] = None,
        request_id_header: str = REQUEST_ID_HEADER,
        poll_interval_seconds: float = 5.0,
        timeout_seconds: float = 300.0,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
        log: Optional[LogSink] = None,
    ):
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._headers = dict(headers or {})
        self.request_id_header = request_id_header
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._sleep = sleep
        self._log = log

    def _request_id(self, initial: HttpResponse) -> str:
        if initial.status != HTTPStatus.ACCEPTED:
            raise UnexpectedStatusError(initial.status)
        request_id = initial.header(self.request_id_header)
        if not request_id:
            raise MissingRequestIdError(self.request_id_header)
        return request_id

    async def run(self, initial: HttpResponse) -> PollResult:
        """
        Poll until Succeeded, Failed or the deadline.

        Raises:
            UnexpectedStatusError: ``initial`` is not 202 Accepted
            MissingRequestIdError: ``initial`` has no request id header
            ServiceResponseError: A status poll came back non-2xx
        """
        try:
            request_id = self._request_id(initial)
        finally:
            initial.release()

        url = self._base_url + build_path(OPERATION_STATUS_PATH, request_id=request_id)
        # Interval goes to the sleep in whole milliseconds
        interval = round(self.poll_interval_seconds * 1000) / 1000.0
        deadline = self._clock() + timedelta(seconds=self.timeout_seconds)

        log_with_context(
            logger,
            logging.DEBUG,
            "Polling operation status",
            request_id=request_id,
            poll_interval_seconds=self.poll_interval_seconds,
            timeout_seconds=self.timeout_seconds,
        )

        polls = 0
        while True:
            response = await self._transport.send(
                HttpRequest(method="GET", url=url, headers=dict(self._headers))
            )
            polls += 1
            try:
                status = _decode_status(response)
            finally:
                response.release()

            status.status_code = response.status
            status.request_id = response.header(self.request_id_header)

            log_with_context(
                logger,
                logging.DEBUG,
                "Operation status",
                request_id=request_id,
                operation_status=status.status.value if status.status else None,
                poll_count=polls,
            )

            if status.status is OperationStatus.SUCCEEDED:
                return PollResult(PollOutcome.SUCCEEDED, status, polls)

            if status.status is OperationStatus.FAILED:
                return PollResult(PollOutcome.FAILED, status, polls)

            await self._sleep(interval)

            if self._clock() > deadline:
                emit(
                    logger,
                    logging.WARNING,
                    f"Operation status polling timed out after {self.timeout_seconds:g} seconds",
                    self._log,
                    request_id=request_id,
                    poll_count=polls,
                    timeout_seconds=self.timeout_seconds,
                )
                return PollResult(PollOutcome.TIMED_OUT, status, polls)


async def poll_operation_status(
    initial: HttpResponse,
    poller: OperationPoller,
) -> OperationStatusResponse:
    """
    Poll and return the last status document.

    Succeeded and timed-out operations both return normally; the status on
    the returned document tells them apart.

    Raises:
        OperationFailedError: The operation reported Failed
    """
    result = await poller.run(initial)
    if result.outcome is PollOutcome.FAILED:
        error = result.response.error or OperationError()
        raise OperationFailedError(
            error.code,
            error.message,
            http_status_code=result.response.http_status_code,
            request_id=result.response.request_id,
        )
    return result.response


__all__ = [
    "PollOutcome",
    "PollResult",
    "OperationPoller",
    "poll_operation_status",
    "parse_operation_status",
    "parse_http_status",
    "utc_now",
]
