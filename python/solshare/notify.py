"""
Location: python/solshare/notify.py

Summary:
    Fire-and-forget notification of wallet lifecycle events (session
    created, payment confirmed). Delivery is best effort: sinks log and
    swallow every failure so a broken webhook can never stall a payment.

Example:
    from solshare.notify import HttpNotificationSink

    sink = HttpNotificationSink("https://hooks.example.com/solshare")
    await sink.notify(event)
"""

import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from .types import ShareEvent


logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Protocol for one-way event delivery. notify() must never raise."""

    async def notify(self, event: ShareEvent) -> None:
        ...


class HttpNotificationSink:
    """
    Posts events as JSON (camelCase) to a webhook URL.

    Attributes:
        url: Webhook endpoint
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        headers: Optional[dict[str, str]] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._http = httpx.AsyncClient(timeout=timeout, headers=headers or {})

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HttpNotificationSink":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def notify(self, event: ShareEvent) -> None:
        body = event.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            response = await self._http.request("POST", self.url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(
                "Notification %s for session %s failed: %s",
                event.kind, event.session_id, exc,
            )


class LoggingNotificationSink:
    """Writes events to the log. Useful when no webhook is configured."""

    async def notify(self, event: ShareEvent) -> None:
        logger.info(
            "%s: session=%s method=%s address=%s...",
            event.kind, event.session_id, event.method.value, event.pay_address[:8],
        )
