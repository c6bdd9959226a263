from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Literal, Protocol

import aiohttp

from quonitor.core.clients.http import get_http_client
from quonitor.core.config.settings import get_settings
from quonitor.core.errors import NetworkError

logger = logging.getLogger(__name__)

Urgency = Literal["critical", "normal", "low"]


@dataclass(frozen=True, slots=True)
class Notification:
    account_id: str
    account_name: str
    tier: int
    title: str
    body: str
    urgency: Urgency
    usage_percent: float


class NotificationSink(Protocol):
    async def send(self, notification: Notification) -> None: ...


class LoggingNotificationSink:
    async def send(self, notification: Notification) -> None:
        level = logging.WARNING if notification.urgency == "critical" else logging.INFO
        logger.log(
            level,
            "%s: %s account_id=%s tier=%s",
            notification.title,
            notification.body,
            notification.account_id,
            notification.tier,
        )


class WebhookNotificationSink:
    """POSTs each notification as JSON to a fixed URL."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds or get_settings().notification_timeout_seconds)
        self._session = session

    async def send(self, notification: Notification) -> None:
        session = self._session or get_http_client().session
        async with session.post(self._url, json=asdict(notification), timeout=self._timeout) as resp:
            if resp.status >= 400:
                text = await resp.text()
                raise NetworkError(f"Notification webhook responded {resp.status}: {text[:200]}")


def build_notification_sink() -> NotificationSink:
    url = get_settings().notification_webhook_url
    if url:
        return WebhookNotificationSink(url)
    return LoggingNotificationSink()
