# src/filters/change_detector.py

"""New-listing detection against the persisted history."""

import logging
from collections.abc import Iterable
from datetime import datetime

from src.models.product import Product
from src.storage.tracker_store import TrackerStore

logger = logging.getLogger("refurb_tracker.filters")


class ChangeDetector:
    """Diff a fresh scrape against history, keyed on the identity key.

    History is loaded once per call (no per-product store round-trip)
    and is never pruned here, so a listing that disappears and comes
    back is not reported as new again.
    """

    def __init__(self, store: TrackerStore) -> None:
        self.store = store
        self._known_keys: set[str] | None = None

    def detect_new(self, products: Iterable[Product]) -> list[Product]:
        """Return products whose identity key is absent from history.

        Repeats of one key within the same scrape are reported once.
        """
        items = list(products)
        history = self.store.load_history()
        self._known_keys = set(history)

        new_products: list[Product] = []
        seen: set[str] = set()
        for product in items:
            key = product.identity_key
            if key in history or key in seen:
                continue
            seen.add(key)
            new_products.append(product)

        logger.info(
            "Change detection: %d new of %d scraped (history size %d)",
            len(new_products),
            len(items),
            len(history),
        )
        return new_products

    def record_seen(
        self, products: Iterable[Product], seen_at: datetime | None = None,
    ) -> int:
        """Upsert every scraped product into history (merge, keep first-seen)."""
        count = self.store.upsert_history(
            products,
            seen_at or datetime.now(),
            known_keys=self._known_keys,
        )
        self._known_keys = None
        logger.info("History updated with %d products", count)
        return count
