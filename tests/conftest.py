"""
Pytest configuration and shared fixtures.

Every test gets its own SQLite file and an SMS dispatcher wired to an
in-process fake gateway, so nothing leaves the machine.
"""

import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import Settings, get_settings
from app.main import create_app
from app.sms import RouteSmsProvider, SmsDispatcher

# Make sure nothing cached from the environment leaks between runs
get_settings.cache_clear()

SUCCESS_BODY = "1701|919876543210|3f6a9c1e-0b6b-4b9e-9d7e-1c2d3e4f5a6b"


class FakeGateway:
    """Records outbound SMS requests and replies with a canned body."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.body = SUCCESS_BODY
        self.status_code = 200
        self.error = None
        # When set, replies wait for this event (or hold_timeout) first
        self.release: asyncio.Event | None = None
        self.hold_timeout = 5.0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.release is not None:
            try:
                await asyncio.wait_for(self.release.wait(), timeout=self.hold_timeout)
            except asyncio.TimeoutError:
                pass
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last_params(self) -> dict:
        return dict(self.requests[-1].url.params)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        LOG_LEVEL="DEBUG",
        SMS_PROVIDER="routesms",
        SMS_API_URL="http://sms.test/bulksms/bulksms",
        SMS_USERNAME="rbg",
        SMS_PASSWORD="secret",
        SMS_SENDER="RBGMEM",
        SMS_TEMPLATE_ID="1007160000000000001",
        SMS_ENTITY_ID="1001160000000000001",
        SMS_MESSAGE_TEMPLATE="Dear {name}, thank you for registering for RBG Membership.",
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def dispatcher(settings, gateway) -> SmsDispatcher:
    return SmsDispatcher(RouteSmsProvider(settings), transport=gateway.transport)


@pytest.fixture
def app(settings, dispatcher):
    return create_app(settings, dispatcher=dispatcher)


@pytest.fixture
def client(app):
    """Test client with a fresh database; the lifespan creates the tables."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def drain(client, app):
    """Wait for detached SMS notifications to finish."""
    def _drain():
        client.portal.call(app.state.notifier.drain)
    return _drain


def submit(client, **overrides):
    """POST a valid registration, with optional field overrides."""
    body = {
        "name": "Ravi Kumar",
        "phone": "9876543210",
        "businessTitle": "Kumar Textiles",
        "address": {"area": "Ameerpet", "town": "Hyderabad"},
        "rating": 4,
    }
    body.update(overrides)
    return client.post("/api/submit", json=body)
