# src/services/snapshot_differ.py

"""Daily catalog snapshots and the day-over-day summary built from them."""

import logging
from collections.abc import Awaitable, Callable
from datetime import date, timedelta

from src.models.product import Product
from src.models.snapshot import SummaryReport
from src.storage.tracker_store import TrackerStore, format_date

logger = logging.getLogger("refurb_tracker.summary")

ScrapeFn = Callable[[], Awaitable[list[Product]]]

SUMMARY_CATEGORIES: list[tuple[str, str]] = [
    ("MacBook", "macbook"),
    ("iPad", "ipad"),
    ("AirPods", "airpods"),
    ("HomePod", "homepod"),
]
OTHER_CATEGORY = "Other"


def categorize(products: list[Product]) -> dict[str, int]:
    """Count products per summary bucket; empty buckets are omitted."""
    counts = {label: 0 for label, _ in SUMMARY_CATEGORIES}
    counts[OTHER_CATEGORY] = 0
    for product in products:
        name = product.name.lower()
        product_type = (product.spec.product_type or "").lower()
        for label, needle in SUMMARY_CATEGORIES:
            if needle in name or needle in product_type:
                counts[label] += 1
                break
        else:
            counts[OTHER_CATEGORY] += 1
    return {label: n for label, n in counts.items() if n > 0}


class SnapshotDiffer:
    def __init__(
        self,
        store: TrackerStore,
        scrape_fn: ScrapeFn,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.scrape_fn = scrape_fn
        self.clock = clock

    def ensure_daily_snapshot(self, day: str, products: list[Product]) -> bool:
        """Write *products* as the snapshot of *day*.

        An existing snapshot for the same day is overwritten.  Returns
        True when the day was new, in which case old snapshots are
        pruned.
        """
        created = self.store.get_snapshot(day) is None
        self.store.save_snapshot(day, products)
        if created:
            logger.info("Created snapshot for %s (%d products)", day, len(products))
            self.store.cleanup_old_snapshots(self.clock())
        else:
            logger.debug("Updated snapshot for %s (%d products)", day, len(products))
        return created

    async def _current_products(self, day: str) -> list[Product]:
        snapshot = self.store.get_snapshot(day)
        if snapshot is not None:
            return snapshot.products
        logger.info("No snapshot for %s; scraping a fresh one", day)
        products = await self.scrape_fn()
        if products:
            self.ensure_daily_snapshot(format_date(self.clock()), products)
        else:
            logger.warning("Fresh scrape returned nothing; snapshot left as is")
        return products

    def _baseline_products(self, day: date) -> list[Product]:
        previous = self.store.get_snapshot(format_date(day - timedelta(days=1)))
        if previous is None:
            previous = self.store.get_latest_snapshot(before=format_date(day))
            if previous is not None:
                logger.info("Using %s as summary baseline", previous.date)
        return previous.products if previous is not None else []

    async def diff_against_previous_day(self, day: date) -> SummaryReport:
        current = await self._current_products(format_date(day))
        baseline = self._baseline_products(day)

        baseline_keys = {p.identity_key for p in baseline}
        new_products = [
            p for p in current if p.identity_key not in baseline_keys
        ]
        report = SummaryReport(
            date=format_date(day),
            new_count=len(new_products),
            categories=categorize(new_products),
            total_change=len(current) - len(baseline),
            total_count=len(current),
        )
        logger.info(
            "Summary for %s: %d new, total %d (%+d)",
            report.date,
            report.new_count,
            report.total_count,
            report.total_change,
        )
        return report
