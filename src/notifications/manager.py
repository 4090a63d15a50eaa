# src/notifications/manager.py

"""Routes messages to the providers each subscriber has opted into."""

import logging
from dataclasses import dataclass, field
from typing import Any

from src.models.tracking import Subscriber
from src.notifications.providers import (
    EmailNotificationProvider,
    LineNotificationProvider,
    NotificationProvider,
    SendResult,
)

logger = logging.getLogger("refurb_tracker.notify")


@dataclass
class BroadcastResult:
    total: int = 0
    success: int = 0
    failed: int = 0
    results: list[SendResult] = field(default_factory=lambda: list[SendResult]())


def resolve_address(subscriber: Subscriber, provider_name: str) -> str | None:
    """Subscriber address for one provider, ``None`` when unknown."""
    if provider_name == "line":
        return subscriber.id or None
    if provider_name == "email":
        return subscriber.email or None
    return None


class NotificationManager:
    def __init__(
        self, providers: list[NotificationProvider] | None = None,
    ) -> None:
        self.providers: dict[str, NotificationProvider] = {}
        self.active: list[NotificationProvider] = []
        for provider in providers or [
            LineNotificationProvider(),
            EmailNotificationProvider(),
        ]:
            self.register_provider(provider)

    def register_provider(self, provider: NotificationProvider) -> None:
        self.providers[provider.name] = provider

    def get_provider(self, name: str) -> NotificationProvider | None:
        return self.providers.get(name)

    def initialize(self, config: dict[str, Any]) -> list[str]:
        """Activate every provider whose section is enabled and valid."""
        self.active = []
        for name, provider in self.providers.items():
            provider_config = config.get(name)
            if not provider_config or provider_config.get("enabled") is False:
                continue
            if provider.initialize(provider_config):
                self.active.append(provider)
        names = self.active_provider_names()
        logger.info(
            "Notification providers active: %s", ", ".join(names) or "none"
        )
        return names

    def active_provider_names(self) -> list[str]:
        return [p.name for p in self.active]

    def is_provider_active(self, name: str) -> bool:
        return name in self.active_provider_names()

    async def send(self, subscriber: Subscriber, message: str) -> list[SendResult]:
        """Send through every active provider the subscriber has not disabled."""
        preferences = subscriber.notification_preferences or {"line": True}
        results: list[SendResult] = []
        for provider in self.active:
            if preferences.get(provider.name) is False:
                continue
            address = resolve_address(subscriber, provider.name)
            if not address:
                logger.warning(
                    "Subscriber %s has no %s address",
                    subscriber.id,
                    provider.name,
                )
                continue
            try:
                results.append(await provider.send(address, message))
            except Exception as exc:
                logger.error(
                    "%s delivery to %s raised: %s",
                    provider.name,
                    subscriber.id,
                    exc,
                )
                results.append(
                    SendResult(
                        success=False,
                        provider_id=provider.name,
                        address=address,
                        error=str(exc),
                    )
                )
        return results

    async def reply(
        self, reply_token: str, message: str, provider_name: str = "line",
    ) -> SendResult:
        provider = self.get_provider(provider_name)
        if provider is None or not provider.enabled:
            return SendResult(
                success=False,
                provider_id=provider_name,
                error="provider not active",
            )
        return await provider.reply(reply_token, message)

    async def send_to_all(
        self, subscribers: list[Subscriber], message: str,
    ) -> BroadcastResult:
        summary = BroadcastResult()
        for subscriber in subscribers:
            summary.results.extend(await self.send(subscriber, message))
        summary.total = len(summary.results)
        summary.success = sum(1 for r in summary.results if r.success)
        summary.failed = summary.total - summary.success
        return summary
