"""Shared fakes for the client tests: a routing sender, canned replies and a clock."""

import dataclasses
import json
from datetime import datetime, timedelta, timezone

import pytest

from core.auth import AccessTokenCredential
from gameservices.client import CloudGameClient
from gameservices.config import GameServicesConfig
from gameservices.transport import HttpRequest, HttpResponse
from gameservices.uri_elements import AZURE_NAMESPACE, REQUEST_ID_HEADER

ENDPOINT = "https://management.core.windows.net/"
SUBSCRIPTION_ID = "sub-1"
BASE_URL = "https://management.core.windows.net/sub-1"


class FakeSender:
    """
    Answers requests from a routing table keyed by method and URL.

    Each route holds a queue of responses; the last one repeats once the
    others are used up. Unrouted requests fail the test.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.requests: list[HttpRequest] = []
        self._routes: dict[tuple[str, str], list[HttpResponse]] = {}

    def on(self, method: str, path: str, *responses: HttpResponse) -> None:
        self._routes[(method, self.base_url + path)] = list(responses)

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url))
        if not queue:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        return dataclasses.replace(response, url=request.url, released=False)

    def sent(self, method: str, path: str) -> list[HttpRequest]:
        url = self.base_url + path
        return [r for r in self.requests if r.method == method and r.url == url]


class FakeClock:
    """UTC clock that only moves when the poller sleeps."""

    def __init__(self):
        self.now = datetime(2015, 1, 1, tzinfo=timezone.utc)
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


class Replies:
    """Canned service responses."""

    @staticmethod
    def empty(status: int, headers: dict | None = None) -> HttpResponse:
        return HttpResponse(status=status, headers=dict(headers or {}))

    @staticmethod
    def text(status: int, body: str, headers: dict | None = None) -> HttpResponse:
        return HttpResponse(status=status, headers=dict(headers or {}), body=body.encode("utf-8"))

    @staticmethod
    def json(status: int, payload, headers: dict | None = None) -> HttpResponse:
        headers = {"Content-Type": "application/json", **(headers or {})}
        return HttpResponse(
            status=status, headers=headers, body=json.dumps(payload).encode("utf-8"), charset="utf-8"
        )

    @staticmethod
    def xml(status: int, body: str, headers: dict | None = None) -> HttpResponse:
        headers = {"Content-Type": "application/xml", **(headers or {})}
        return HttpResponse(status=status, headers=headers, body=body.encode("utf-8"), charset="utf-8")

    @staticmethod
    def accepted(request_id: str = "req-1") -> HttpResponse:
        return HttpResponse(status=202, headers={REQUEST_ID_HEADER: request_id})

    @staticmethod
    def operation(
        status: str,
        http_status: str | None = None,
        code: str | None = None,
        message: str | None = None,
        request_id: str = "req-1",
    ) -> HttpResponse:
        parts = [f'<Operation xmlns="{AZURE_NAMESPACE}">', f"<ID>{request_id}</ID>", f"<Status>{status}</Status>"]
        if http_status is not None:
            parts.append(f"<HttpStatusCode>{http_status}</HttpStatusCode>")
        if code is not None or message is not None:
            parts.append(f"<Error><Code>{code or ''}</Code><Message>{message or ''}</Message></Error>")
        parts.append("</Operation>")
        return Replies.xml(200, "".join(parts), headers={REQUEST_ID_HEADER: f"poll-{request_id}"})


@pytest.fixture
def reply():
    return Replies


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return GameServicesConfig(
        subscription_id=SUBSCRIPTION_ID,
        endpoint=ENDPOINT,
        access_token="token",
        retry_delay_ms=0,
        poll_interval_seconds=5.0,
        poll_timeout_seconds=30.0,
    )


@pytest.fixture
def log_lines():
    return []


@pytest.fixture
def client(config, sender, clock, log_lines):
    return CloudGameClient(
        config,
        credential=AccessTokenCredential("token"),
        log=log_lines.append,
        sender=sender,
        clock=clock,
        sleep=clock.sleep,
    )
