"""
Tests for the SMS dispatcher and provider strategies.

Tests cover:
- Request construction per provider
- Success classification from the reply body
- Transport failures folded into the result
"""

import asyncio

import httpx
import pytest

from app.config import Settings
from app.sms import (
    DEFAULT_TIMEOUT_SECONDS,
    RouteSmsProvider,
    SendResult,
    SmsDispatcher,
    SmsLoginProvider,
    build_provider,
)


def send(dispatcher, to="09876543210", message="Dear Ravi, welcome."):
    return asyncio.run(dispatcher.send(to, message))


class TestRouteSmsProvider:

    def test_request_parameters(self, dispatcher, gateway, settings):
        send(dispatcher)

        request = gateway.requests[-1]
        assert request.method == "GET"
        assert str(request.url).startswith(settings.SMS_API_URL)
        assert gateway.last_params == {
            "username": "rbg",
            "password": "secret",
            "type": "0",
            "dlr": "1",
            "destination": "919876543210",
            "source": "RBGMEM",
            "message": "Dear Ravi, welcome.",
            "entityid": settings.SMS_ENTITY_ID,
            "tempid": settings.SMS_TEMPLATE_ID,
        }

    def test_url_built_from_host_and_port(self):
        provider = RouteSmsProvider(Settings(SMS_HOST="sms.example.com", SMS_PORT="8080"))
        assert provider.url == "http://sms.example.com:8080/bulksms/bulksms"

    def test_explicit_url_wins(self):
        provider = RouteSmsProvider(Settings(SMS_API_URL="https://gw.test/send", SMS_HOST="ignored"))
        assert provider.url == "https://gw.test/send"

    def test_url_empty_when_unconfigured(self):
        assert RouteSmsProvider(Settings(SMS_API_URL="", SMS_HOST="")).url == ""

    @pytest.mark.parametrize("body", [
        "1701|919876543210|abc-123",
        "1701",
        "Message submitted successfully",
    ])
    def test_success_bodies(self, body):
        assert RouteSmsProvider(Settings()).is_success(body)

    @pytest.mark.parametrize("body", [
        "1702|invalid url",
        "1703|invalid username or password",
        "1706|919876543210",
        "",
        "success",
    ])
    def test_failure_bodies(self, body):
        assert not RouteSmsProvider(Settings()).is_success(body)


class TestSmsLoginProvider:

    def test_request_parameters(self, gateway):
        settings = Settings(
            SMS_PROVIDER="smslogin",
            SMS_USERNAME="rbg",
            SMS_PASSWORD="key-123",
            SMS_SENDER="RBGMEM",
            SMS_TEMPLATE_ID="1007",
        )
        dispatcher = SmsDispatcher(build_provider(settings), transport=gateway.transport)
        send(dispatcher, to="+91 98765 43210")

        assert str(gateway.requests[-1].url).startswith(SmsLoginProvider.default_url)
        assert gateway.last_params == {
            "username": "rbg",
            "apikey": "key-123",
            "senderid": "RBGMEM",
            "mobile": "919876543210",
            "message": "Dear Ravi, welcome.",
            "templateid": "1007",
        }

    @pytest.mark.parametrize("body,expected", [
        ("MessageID: 12345", True),
        ("success", True),
        ("1701|919876543210", False),
        ("Invalid API key", False),
    ])
    def test_classification(self, body, expected):
        assert SmsLoginProvider(Settings()).is_success(body) is expected


class TestBuildProvider:

    @pytest.mark.parametrize("name,cls", [
        ("routesms", RouteSmsProvider),
        ("smslogin", SmsLoginProvider),
        (" SMSLogin ", SmsLoginProvider),
    ])
    def test_known_providers(self, name, cls):
        assert isinstance(build_provider(Settings(SMS_PROVIDER=name)), cls)

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValueError, match="Unknown SMS_PROVIDER"):
            build_provider(Settings(SMS_PROVIDER="carrier-pigeon"))


class TestDispatcher:

    def test_default_timeout(self, settings):
        assert SmsDispatcher(RouteSmsProvider(settings)).timeout == DEFAULT_TIMEOUT_SECONDS == 10.0

    def test_success_keeps_body(self, dispatcher, gateway):
        result = send(dispatcher)
        assert result == SendResult(ok=True, provider_response=gateway.body)

    def test_unrecognized_body_is_failure(self, dispatcher, gateway):
        gateway.body = "1702|Invalid URL"
        result = send(dispatcher)
        assert result.ok is False
        assert result.provider_response == "1702|Invalid URL"
        assert result.error is None
        assert result.response == "1702|Invalid URL"

    def test_http_error_status_does_not_raise(self, dispatcher, gateway):
        gateway.status_code = 500
        gateway.body = "Internal Server Error"
        result = send(dispatcher)
        assert result.ok is False
        assert result.provider_response == "Internal Server Error"

    def test_http_error_status_classified_by_body(self, dispatcher, gateway):
        gateway.status_code = 502
        gateway.body = "1701|919876543210|late"
        assert send(dispatcher).ok is True

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("Connection refused"),
        httpx.ConnectTimeout("timed out"),
        httpx.ReadTimeout("read timed out"),
    ])
    def test_transport_errors_captured(self, dispatcher, gateway, error):
        gateway.error = error
        result = send(dispatcher)
        assert result.ok is False
        assert result.provider_response is None
        assert result.error == str(error)
        assert result.response == str(error)

    def test_destination_normalized(self, dispatcher, gateway):
        send(dispatcher, to="+91 98765 43210")
        assert gateway.last_params["destination"] == "919876543210"

    def test_already_normalized_destination_unchanged(self, dispatcher, gateway):
        send(dispatcher, to="919876543210")
        assert gateway.last_params["destination"] == "919876543210"
