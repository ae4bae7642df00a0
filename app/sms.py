"""
Outbound SMS notifications.

SmsDispatcher performs one HTTP GET against the configured gateway and
never raises: transport failures and unrecognised responses both come
back as a SendResult with ok=False. How a gateway is addressed and how its
free-text reply is judged lives in an SmsProvider, so providers can be
swapped through configuration.

USAGE:
    dispatcher = SmsDispatcher(build_provider(settings))
    result = await dispatcher.send("98765 43210", "Dear Ravi, ...")
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config import Settings
from app.errors import DispatchError
from app.phone import normalize_phone_number

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass
class SendResult:
    """Outcome of a single dispatch."""

    ok: bool
    provider_response: Optional[Any] = None
    error: Optional[str] = None

    @property
    def response(self) -> Any:
        """What gets recorded on the submission: the body, or the error text."""
        return self.provider_response if self.provider_response is not None else self.error


class SmsProvider(ABC):
    """
    Abstract base class for SMS gateways.
    Implement this interface to add a new provider.
    """

    name: str
    success_tokens: tuple[str, ...] = ()

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    @abstractmethod
    def url(self) -> str:
        """Endpoint the GET request is sent to."""
        ...

    @abstractmethod
    def build_params(self, to: str, message: str) -> dict[str, str]:
        """Query parameters for one message."""
        ...

    def is_success(self, body: str) -> bool:
        """Judge the provider's free-text reply."""
        return any(token in body for token in self.success_tokens)


class RouteSmsProvider(SmsProvider):
    """
    RouteSMS-style bulk HTTP API.

    Replies look like "1701|919876543210|<message id>" on success; other
    codes (1702, 1703, ...) are failures.
    """

    name = "routesms"
    success_tokens = ("submitted",)
    success_code = "1701"

    @property
    def url(self) -> str:
        if self.settings.SMS_API_URL:
            return self.settings.SMS_API_URL
        host = self.settings.SMS_HOST.rstrip("/")
        if not host:
            return ""
        if "://" not in host:
            host = f"http://{host}"
        if self.settings.SMS_PORT:
            host = f"{host}:{self.settings.SMS_PORT}"
        return f"{host}/bulksms/bulksms"

    def build_params(self, to: str, message: str) -> dict[str, str]:
        return {
            "username": self.settings.SMS_USERNAME,
            "password": self.settings.SMS_PASSWORD,
            "type": "0",
            "dlr": "1",
            "destination": to,
            "source": self.settings.SMS_SENDER,
            "message": message,
            "entityid": self.settings.SMS_ENTITY_ID,
            "tempid": self.settings.SMS_TEMPLATE_ID,
        }

    def is_success(self, body: str) -> bool:
        return body.startswith(self.success_code) or super().is_success(body)


class SmsLoginProvider(SmsProvider):
    """smslogin.co v3 API; replies carry a MessageID or the word success."""

    name = "smslogin"
    success_tokens = ("MessageID", "success")
    default_url = "https://smslogin.co/v3/api.php"

    @property
    def url(self) -> str:
        return self.settings.SMS_API_URL or self.default_url

    def build_params(self, to: str, message: str) -> dict[str, str]:
        return {
            "username": self.settings.SMS_USERNAME,
            "apikey": self.settings.SMS_PASSWORD,
            "senderid": self.settings.SMS_SENDER,
            "mobile": to,
            "message": message,
            "templateid": self.settings.SMS_TEMPLATE_ID,
        }


PROVIDERS: dict[str, type[SmsProvider]] = {
    RouteSmsProvider.name: RouteSmsProvider,
    SmsLoginProvider.name: SmsLoginProvider,
}


def build_provider(settings: Settings) -> SmsProvider:
    """Instantiate the provider named by SMS_PROVIDER."""
    name = settings.SMS_PROVIDER.strip().lower()
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown SMS_PROVIDER {settings.SMS_PROVIDER!r}, expected one of {sorted(PROVIDERS)}"
        ) from None
    return provider_cls(settings)


class SmsDispatcher:
    """Sends one SMS through an SmsProvider and classifies the reply."""

    def __init__(
        self,
        provider: SmsProvider,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider = provider
        self.timeout = timeout
        self._transport = transport

    async def _get(self, params: dict[str, str]) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.get(self.provider.url, params=params)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DispatchError(str(e) or e.__class__.__name__) from e

    async def send(self, to: str, message: str) -> SendResult:
        """
        Send one message.

        Args:
            to: Destination in any format normalize_phone_number() accepts
            message: Text matching the provider-approved template

        Returns:
            SendResult; ok is True only if the provider reply matches one
            of its success markers
        """
        destination = normalize_phone_number(to)
        logger.info(f"Sending SMS via {self.provider.name} to {destination}")

        try:
            response = await self._get(self.provider.build_params(destination, message))
        except DispatchError as e:
            logger.warning(f"SMS transport failure for {destination}: {e}")
            return SendResult(ok=False, error=str(e))

        body = response.text
        ok = self.provider.is_success(body)
        logger.debug(f"SMS provider replied status={response.status_code} body={body[:200]!r}")

        if ok:
            logger.info(f"SMS accepted by {self.provider.name} for {destination}")
        else:
            logger.warning(f"SMS rejected by {self.provider.name} for {destination}: {body[:200]!r}")

        return SendResult(ok=ok, provider_response=body)
