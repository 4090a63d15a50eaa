# src/notifications/batcher.py

"""Turn a subscriber's matched products into paced message batches."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

from src.config.settings import Settings
from src.models.product import Product
from src.models.snapshot import NotificationRecord
from src.models.tracking import Subscriber
from src.notifications.manager import NotificationManager
from src.notifications.url_shortener import UrlShortener
from src.storage.tracker_store import TrackerStore

logger = logging.getLogger("refurb_tracker.notify")

_REFURB_PREFIX_RE = re.compile(r"^\s*(整修品|refurbished)\s*", re.IGNORECASE)
_REFURB_SUFFIX_RE = re.compile(r"(整修品|refurbished).*$", re.IGNORECASE)
_BRAND_RE = re.compile(r"apple\s*", re.IGNORECASE)


def short_name(name: str) -> str:
    """Drop the refurbished marker (and what trails it) and the brand."""
    stripped = _REFURB_SUFFIX_RE.sub("", _REFURB_PREFIX_RE.sub("", name))
    return _BRAND_RE.sub("", stripped).strip()


@dataclass
class NotificationBatch:
    index: int
    total: int
    text: str
    product_ids: list[str] = field(default_factory=lambda: list[str]())

    @property
    def marker(self) -> str:
        return f"{self.index}/{self.total}"


@dataclass
class DeliveryResult:
    sent_batches: int = 0
    failed_batches: int = 0
    audit_failures: int = 0

    @property
    def delivered(self) -> bool:
        return self.sent_batches > 0


class NotificationBatcher:
    def __init__(
        self,
        manager: NotificationManager,
        store: TrackerStore,
        shortener: UrlShortener | None = None,
        batch_size: int = Settings.BATCH_SIZE,
        batch_delay: float = Settings.BATCH_DELAY,
        rule_separator: str = Settings.RULE_SEPARATOR,
    ) -> None:
        self.manager = manager
        self.store = store
        self.shortener = shortener or UrlShortener()
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.rule_separator = rule_separator

    async def _product_lines(self, index: int, product: Product) -> list[str]:
        lines = [f"{index}. {short_name(product.name)}"]
        lines.append(f"💰 {product.price_text or product.price_value}")
        if product.matching_rule_names:
            lines.append(
                "📋 Matching rules: "
                + self.rule_separator.join(product.matching_rule_names)
            )
        if product.url:
            lines.append(f"🔗 {await self.shortener.shorten(product.url)}")
        return lines

    async def build_batches(
        self, products: list[Product],
    ) -> list[NotificationBatch]:
        """Split *products* into numbered batches of ``batch_size``.

        The first batch opens with the total count; every batch carries
        an ``i/total`` marker once there is more than one.
        """
        if not products:
            return []
        size = self.batch_size
        total = (len(products) + size - 1) // size
        batches: list[NotificationBatch] = []

        for start in range(0, len(products), size):
            chunk = products[start:start + size]
            number = start // size + 1
            if number == 1:
                lines = [f"🆕 Found {len(products)} new refurbished products!"]
                if total > 1:
                    lines.append(f"📄 Batch {number}/{total}")
            else:
                lines = [f"📄 Batch {number}/{total}"]
            lines.append("")

            for offset, product in enumerate(chunk, start=start + 1):
                lines.extend(await self._product_lines(offset, product))
                lines.append("")

            batches.append(
                NotificationBatch(
                    index=number,
                    total=total,
                    text="\n".join(lines).strip(),
                    product_ids=[p.identity_key for p in chunk],
                )
            )
        return batches

    async def deliver(
        self, subscriber: Subscriber, batches: list[NotificationBatch],
    ) -> DeliveryResult:
        """Send batches in order; a failed batch does not stop the rest.

        An audit record is written for each batch that at least one
        provider accepted.
        """
        result = DeliveryResult()
        for position, batch in enumerate(batches):
            if position:
                await asyncio.sleep(self.batch_delay)
            try:
                sends = await self.manager.send(subscriber, batch.text)
            except Exception as exc:
                logger.error(
                    "Batch %s for %s raised: %s",
                    batch.marker,
                    subscriber.id,
                    exc,
                )
                result.failed_batches += 1
                continue

            if not any(s.success for s in sends):
                logger.warning(
                    "Batch %s for %s was not delivered", batch.marker, subscriber.id
                )
                result.failed_batches += 1
                continue

            result.sent_batches += 1
            try:
                self.store.save_notification(
                    NotificationRecord(
                        subscriber_id=subscriber.id,
                        message=batch.text,
                        product_ids=batch.product_ids,
                        sent_at=datetime.now(),
                    )
                )
            except Exception as exc:
                result.audit_failures += 1
                logger.error(
                    "Could not record notification for %s: %s",
                    subscriber.id,
                    exc,
                )
        return result
