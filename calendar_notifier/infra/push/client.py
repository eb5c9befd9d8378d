"""Push gateway clients.

``HttpPushSender`` posts a JSON payload to an external push gateway (APNs/FCM
fan-out lives behind it). ``ConsolePushSender`` only logs and is the default
for local development.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from calendar_notifier.infra.logging import get_lazy_logger, get_logger

if TYPE_CHECKING:
    from calendar_notifier.core.settings import ChannelSettings

logger = get_logger(__name__, channel="push")
lazy_logger = get_lazy_logger(__name__, channel="push")


@dataclass
class PushDeliveryResult:
    """Result of a push delivery attempt."""

    success: bool
    status_code: int | None = None
    response_time_ms: int | None = None
    error_message: str | None = None


class PushSender(Protocol):
    async def send_push(
        self,
        user_id: str,
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> PushDeliveryResult: ...


class ConsolePushSender:
    """Logs push notifications instead of sending them. Always succeeds."""

    async def send_push(
        self,
        user_id: str,
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> PushDeliveryResult:
        logger.info(
            "Push notification (console)",
            extra={"user_id": user_id, "title": title, "body": body, "data": data},
        )
        return PushDeliveryResult(success=True, response_time_ms=0)


class HttpPushSender:
    """Delivers push notifications through an HTTP gateway.

    Any 2xx response counts as delivered. Timeouts and transport errors are
    returned as failed results; the caller decides what to do with them.
    """

    def __init__(
        self,
        gateway_url: str,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.gateway_url = gateway_url
        self.timeout_seconds = timeout_seconds
        self._token = token
        self._client = client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "calendar-notifier/push",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def send_push(
        self,
        user_id: str,
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> PushDeliveryResult:
        start_time = time.time()
        payload = {"user_id": user_id, "title": title, "body": body, "data": data}

        lazy_logger.debug(lambda: f"push.send: user_id={user_id}, url={self.gateway_url}")

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.gateway_url,
                    json=payload,
                    headers=self._headers(),
                    timeout=self.timeout_seconds,
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.gateway_url,
                        json=payload,
                        headers=self._headers(),
                        timeout=self.timeout_seconds,
                    )
        except httpx.TimeoutException:
            logger.warning(
                "Push gateway timeout",
                extra={"user_id": user_id, "timeout_seconds": self.timeout_seconds},
            )
            return PushDeliveryResult(
                success=False,
                response_time_ms=int((time.time() - start_time) * 1000),
                error_message=f"Request timeout after {self.timeout_seconds}s",
            )
        except httpx.HTTPError as e:
            logger.warning(
                "Push gateway request failed",
                extra={"user_id": user_id, "error": str(e)},
            )
            return PushDeliveryResult(
                success=False,
                response_time_ms=int((time.time() - start_time) * 1000),
                error_message=f"Request error: {e}",
            )

        response_time_ms = int((time.time() - start_time) * 1000)
        success = 200 <= response.status_code < 300
        if not success:
            logger.warning(
                "Push gateway returned non-2xx status",
                extra={
                    "user_id": user_id,
                    "status_code": response.status_code,
                    "response_time_ms": response_time_ms,
                },
            )
        return PushDeliveryResult(
            success=success,
            status_code=response.status_code,
            response_time_ms=response_time_ms,
            error_message=None if success else f"HTTP {response.status_code}",
        )


def build_push_sender(settings: ChannelSettings, timeout_seconds: float = 10.0) -> PushSender:
    """Instantiate the configured push transport."""
    if settings.push_provider == "http" and settings.push_gateway_url:
        token = settings.push_gateway_token.get_secret_value() if settings.push_gateway_token else None
        return HttpPushSender(settings.push_gateway_url, token=token, timeout_seconds=timeout_seconds)
    return ConsolePushSender()
