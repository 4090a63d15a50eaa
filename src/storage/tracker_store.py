# src/storage/tracker_store.py

"""Typed access to the tracker's persisted state.

Logical layout inside the document store::

    history/<identity key>         last observation of a listing
    snapshots/<YYYY-MM-DD>         one full catalog per calendar day
    subscribers/<subscriber id>    subscriber profile and preferences
    rules:<subscriber id>/<rule>   tracking rules nested per subscriber
    notifications/<uuid>           append-only audit log
    system/tracking_state          tracking on/off flag for restarts
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Any

from src.config.settings import Settings
from src.models.product import Product
from src.models.snapshot import DailySnapshot, HistoryEntry, NotificationRecord
from src.models.tracking import Subscriber, TrackingRule
from src.storage.document_store import DocumentStore

logger = logging.getLogger("refurb_tracker.store")

HISTORY = "history"
SNAPSHOTS = "snapshots"
SUBSCRIBERS = "subscribers"
NOTIFICATIONS = "notifications"
SYSTEM = "system"
TRACKING_STATE_KEY = "tracking_state"


def rules_collection(subscriber_id: str) -> str:
    return f"rules:{subscriber_id}"


def format_date(day: date | datetime) -> str:
    """ISO ``YYYY-MM-DD`` string used as snapshot key."""
    return day.strftime("%Y-%m-%d")


def _chunks(
    items: list[tuple[str, dict[str, Any]]], size: int,
) -> Iterable[list[tuple[str, dict[str, Any]]]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class TrackerStore:
    """Facade over a :class:`DocumentStore` for tracker entities."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    @property
    def durable(self) -> bool:
        return self.store.durable

    def close(self) -> None:
        self.store.close()

    # ── History ──────────────────────────────────────────

    def load_history(self) -> dict[str, HistoryEntry]:
        """Load the full identity-key → last observation mapping."""
        history: dict[str, HistoryEntry] = {}
        for key, doc in self.store.list(HISTORY).items():
            product = doc.get("product")
            if not isinstance(product, dict):
                continue
            last_seen = datetime.fromisoformat(str(doc["last_seen"]))
            first_seen_raw = doc.get("first_seen")
            history[key] = HistoryEntry(
                product=Product.from_dict(product),
                last_seen=last_seen,
                first_seen=(
                    datetime.fromisoformat(str(first_seen_raw))
                    if first_seen_raw
                    else last_seen
                ),
            )
        return history

    def history_keys(self) -> set[str]:
        return set(self.store.list(HISTORY))

    def upsert_history(
        self,
        products: Iterable[Product],
        seen_at: datetime,
        known_keys: set[str] | None = None,
        batch_size: int = Settings.HISTORY_BATCH_SIZE,
    ) -> int:
        """Merge every product into history; first-seen is set only once."""
        known = known_keys if known_keys is not None else self.history_keys()
        stamp = seen_at.isoformat()
        items: list[tuple[str, dict[str, Any]]] = []
        for product in products:
            key = product.identity_key
            doc: dict[str, Any] = {
                "identity_key": key,
                "product": product.to_dict(),
                "last_seen": stamp,
            }
            if key not in known:
                doc["first_seen"] = stamp
            items.append((key, doc))

        written = 0
        for chunk in _chunks(items, max(1, batch_size)):
            written += self.store.set_many(HISTORY, chunk, merge=True)
        return written

    # ── Subscribers & rules ──────────────────────────────

    def get_subscriber(self, subscriber_id: str) -> Subscriber | None:
        doc = self.store.get(SUBSCRIBERS, subscriber_id)
        return Subscriber.from_dict(doc) if doc is not None else None

    def save_subscriber(self, subscriber: Subscriber) -> None:
        self.store.set(SUBSCRIBERS, subscriber.id, subscriber.to_dict())

    def get_or_create_subscriber(self, subscriber_id: str) -> Subscriber:
        existing = self.get_subscriber(subscriber_id)
        if existing is not None:
            return existing
        subscriber = Subscriber(id=subscriber_id)
        self.save_subscriber(subscriber)
        logger.info("Registered subscriber %s", subscriber_id)
        return subscriber

    def get_active_subscribers(self) -> list[Subscriber]:
        subscribers = [
            Subscriber.from_dict(doc)
            for doc in self.store.list(SUBSCRIBERS).values()
        ]
        return [s for s in subscribers if s.is_active]

    def update_last_summary_date(
        self, subscriber_id: str, day: str,
    ) -> None:
        self.store.set(
            SUBSCRIBERS,
            subscriber_id,
            {"last_summary_date": day},
            merge=True,
        )

    def update_notification_preferences(
        self, subscriber_id: str, preferences: dict[str, bool],
    ) -> None:
        self.store.set(
            SUBSCRIBERS,
            subscriber_id,
            {"notification_preferences": dict(preferences)},
            merge=True,
        )

    def get_tracking_rules(
        self, subscriber_id: str, enabled_only: bool = False,
    ) -> list[TrackingRule]:
        rules = [
            TrackingRule.from_dict(doc)
            for doc in self.store.list(
                rules_collection(subscriber_id)
            ).values()
        ]
        if enabled_only:
            rules = [r for r in rules if r.enabled]
        return rules

    def add_tracking_rule(
        self, subscriber_id: str, rule: TrackingRule,
    ) -> TrackingRule:
        """Store a rule, assigning an id when it has none."""
        if not rule.id:
            rule.id = uuid.uuid4().hex[:12]
        self.store.set(
            rules_collection(subscriber_id), rule.id, rule.to_dict()
        )
        return rule

    def update_tracking_rule(
        self, subscriber_id: str, rule_id: str, updates: dict[str, Any],
    ) -> TrackingRule | None:
        collection = rules_collection(subscriber_id)
        doc = self.store.get(collection, rule_id)
        if doc is None:
            return None
        doc.update(updates)
        rule = TrackingRule.from_dict(doc)
        self.store.set(collection, rule_id, rule.to_dict())
        return rule

    def delete_tracking_rule(self, subscriber_id: str, rule_id: str) -> bool:
        return self.store.delete(rules_collection(subscriber_id), rule_id)

    # ── Snapshots ────────────────────────────────────────

    def get_snapshot(self, day: str) -> DailySnapshot | None:
        doc = self.store.get(SNAPSHOTS, day)
        return DailySnapshot.from_dict(doc) if doc is not None else None

    def save_snapshot(self, day: str, products: list[Product]) -> None:
        """Create or overwrite the snapshot for *day*."""
        snapshot = DailySnapshot(
            date=day, products=list(products), total_count=len(products)
        )
        self.store.set(SNAPSHOTS, day, snapshot.to_dict())

    def get_latest_snapshot(
        self, before: str | None = None,
    ) -> DailySnapshot | None:
        """Most recent snapshot, optionally strictly older than *before*."""
        keys = sorted(
            k
            for k in self.store.list(SNAPSHOTS)
            if before is None or k < before
        )
        if not keys:
            return None
        return self.get_snapshot(keys[-1])

    def cleanup_old_snapshots(
        self,
        today: date,
        keep_days: int = Settings.SNAPSHOT_RETENTION_DAYS,
    ) -> int:
        """Delete snapshots dated before ``today - keep_days``."""
        cutoff = format_date(today - timedelta(days=keep_days))
        removed = 0
        for key in list(self.store.list(SNAPSHOTS)):
            if key < cutoff and self.store.delete(SNAPSHOTS, key):
                removed += 1
        if removed:
            logger.info(
                "Removed %d snapshots older than %s", removed, cutoff
            )
        return removed

    # ── Notifications ────────────────────────────────────

    def save_notification(self, record: NotificationRecord) -> str:
        key = uuid.uuid4().hex
        self.store.set(NOTIFICATIONS, key, record.to_dict())
        return key

    def list_notifications(
        self, subscriber_id: str | None = None,
    ) -> list[NotificationRecord]:
        records = [
            NotificationRecord.from_dict(doc)
            for doc in self.store.list(NOTIFICATIONS).values()
        ]
        if subscriber_id is not None:
            records = [r for r in records if r.subscriber_id == subscriber_id]
        return sorted(records, key=lambda r: r.sent_at)

    # ── System state ─────────────────────────────────────

    def get_tracking_state(self) -> bool:
        doc = self.store.get(SYSTEM, TRACKING_STATE_KEY)
        return bool(doc and doc.get("is_tracking"))

    def save_tracking_state(self, is_tracking: bool) -> None:
        """Persist the tracking flag; errors propagate to the caller."""
        self.store.set(
            SYSTEM,
            TRACKING_STATE_KEY,
            {
                "is_tracking": is_tracking,
                "updated_at": datetime.now().isoformat(),
            },
        )
