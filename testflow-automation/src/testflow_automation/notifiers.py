"""Notifier implementations for automation runs.

Each automation run sends a short status line to its notifier. The default
notifier writes the line to the log; the webhook notifier posts it as
``{"text": line}`` to a chat-style incoming webhook.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from testflow_core.interfaces.notifier import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Writes notifications to a logger.

    Args:
        level: Log level for notification lines.
        name: Logger name. Defaults to this module's logger.
    """

    def __init__(self, level: int = logging.INFO, name: str | None = None) -> None:
        self._level = level
        self._logger = logging.getLogger(name) if name else logger

    async def notify(self, message: str) -> None:
        """Log a notification line."""
        self._logger.log(self._level, "%s", message)

    async def aclose(self) -> None:
        """Nothing to release."""


class WebhookNotifier:
    """Posts notifications to an HTTP webhook.

    Delivery problems are logged and never raised to the caller.

    Example:
        >>> async with WebhookNotifier("https://hooks.example.com/T000/B000") as notifier:
        ...     await notifier.notify("Deployment approved - all tests passed")

    Args:
        url: Webhook URL.
        timeout: Request timeout in seconds.
        client: Optional httpx client (for testing).
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def url(self) -> str:
        """Return the webhook URL."""
        return self._url

    async def __aenter__(self) -> "WebhookNotifier":
        """Async context manager entry."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this notifier created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def notify(self, message: str) -> None:
        """Post a notification line to the webhook."""
        try:
            response = await self._get_client().post(self._url, json={"text": message})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Webhook notification to %s failed: %s", self._url, e)


class CompositeNotifier:
    """Fans each notification out to several notifiers in order.

    Args:
        notifiers: Notifiers to deliver to.
    """

    def __init__(self, notifiers: Iterable[Notifier]) -> None:
        self._notifiers = list(notifiers)

    @property
    def notifiers(self) -> list[Notifier]:
        """Return the wrapped notifiers."""
        return list(self._notifiers)

    async def notify(self, message: str) -> None:
        """Deliver a notification line to every wrapped notifier."""
        for notifier in self._notifiers:
            await notifier.notify(message)

    async def aclose(self) -> None:
        """Close every wrapped notifier that holds resources."""
        for notifier in self._notifiers:
            close = getattr(notifier, "aclose", None)
            if close is not None:
                await close()


def build_notifier(webhook_url: str | None = None) -> Notifier:
    """Return the logging notifier, plus a webhook notifier if a URL is given.

    Args:
        webhook_url: Optional webhook URL.

    Returns:
        A notifier.
    """
    if webhook_url is None:
        return LoggingNotifier()
    return CompositeNotifier([LoggingNotifier(), WebhookNotifier(webhook_url)])
