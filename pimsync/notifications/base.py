from __future__ import annotations

import logging
from typing import Protocol

import httpx

from pimsync.core.config import Settings
from pimsync.services.http_client import PimHttpClient


log = logging.getLogger(__name__)


class Notifier(Protocol):
    async def success(self, title: str, subject: str, message: str) -> None:
        ...

    async def error(self, title: str, subject: str, message: str) -> None:
        ...


class LogNotifier:
    async def success(self, title: str, subject: str, message: str) -> None:
        log.info("[%s] %s: %s", title, subject, message)

    async def error(self, title: str, subject: str, message: str) -> None:
        log.error("[%s] %s: %s", title, subject, message)


class WebhookNotifier:
    """
    Posts {level, title, subject, message} to an alerting webhook (Slack/Teams relay etc.).
    Delivery is best effort: failures are logged and never raised.
    """

    def __init__(self, url: str, *, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self._http = PimHttpClient(timeout_seconds=10.0, transport=transport)

    async def _send(self, level: str, title: str, subject: str, message: str) -> None:
        result = await self._http.post_json(
            url=self.url,
            json_body={"level": level, "title": title, "subject": subject, "message": message},
        )
        if not result.ok:
            log.warning("notification delivery failed (%s): %s", level, result.error_message)

    async def success(self, title: str, subject: str, message: str) -> None:
        await self._send("success", title, subject, message)

    async def error(self, title: str, subject: str, message: str) -> None:
        await self._send("error", title, subject, message)

    async def aclose(self) -> None:
        await self._http.aclose()


def build_notifier(settings: Settings) -> Notifier:
    if settings.notify_webhook_url:
        return WebhookNotifier(settings.notify_webhook_url)
    return LogNotifier()
