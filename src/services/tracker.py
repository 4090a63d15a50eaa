# src/services/tracker.py

"""Tracking service: owns the hourly cycle and the summary loop.

Lifecycle is ``init()`` → tracking loop / summary loop → ``shutdown()``.
All mutable run state lives on :class:`ServiceContext`.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from src.config.settings import Settings, load_app_config
from src.filters.change_detector import ChangeDetector
from src.filters.rule_matcher import RuleMatcher
from src.models.product import Product
from src.models.snapshot import CycleResult
from src.models.tracking import Subscriber
from src.notifications.batcher import NotificationBatcher
from src.notifications.manager import NotificationManager
from src.notifications.url_shortener import UrlShortener
from src.services.renderer import PageRenderer, get_renderer
from src.services.scraper_manager import ScraperManager
from src.services.snapshot_differ import SnapshotDiffer
from src.services.summary_scheduler import SummaryScheduler
from src.storage.document_store import open_store
from src.storage.tracker_store import TrackerStore, format_date

logger = logging.getLogger("refurb_tracker.tracker")


@dataclass
class ServiceContext:
    is_tracking: bool = False
    cycle_running: bool = False
    initialized: bool = False
    tracking_task: asyncio.Task[None] | None = None
    summary_task: asyncio.Task[None] | None = None
    last_result: CycleResult | None = None
    last_run_at: datetime | None = None


class TrackerService:
    def __init__(
        self,
        config: dict[str, Any] | None = None,
        store: TrackerStore | None = None,
        scraper_manager: ScraperManager | None = None,
        notifier: NotificationManager | None = None,
        renderer: PageRenderer | None = None,
        shortener: UrlShortener | None = None,
        clock: Callable[[], date] = date.today,
        tracking_interval: float = Settings.TRACKING_INTERVAL,
        batch_delay: float = Settings.BATCH_DELAY,
    ) -> None:
        self.config = config if config is not None else load_app_config()
        self.renderer = renderer or get_renderer()
        self.store = store or TrackerStore(open_store())
        self.scraper_manager = scraper_manager or ScraperManager(
            self.config.get("scrapers", {}), renderer=self.renderer
        )
        self.notifier = notifier or NotificationManager()
        self.clock = clock
        self.tracking_interval = tracking_interval

        self.detector = ChangeDetector(self.store)
        self.matcher = RuleMatcher()
        self.batcher = NotificationBatcher(
            self.notifier,
            self.store,
            shortener=shortener,
            batch_delay=batch_delay,
        )
        self.differ = SnapshotDiffer(
            self.store, self.scraper_manager.scrape_all, clock=clock
        )
        self.scheduler = SummaryScheduler(self.store, self.differ, self.notifier)

        self.ctx = ServiceContext()
        self._init_lock = asyncio.Lock()

    # ── Lifecycle ────────────────────────────────────────

    async def init(self, start_loops: bool = True) -> None:
        """Initialise once; concurrent callers wait for the same run.

        With *start_loops* false (one-shot CLI commands) neither the
        persisted tracking state nor the summary scheduler is resumed.
        """
        async with self._init_lock:
            if self.ctx.initialized:
                return
            if not self.store.durable:
                logger.warning("Running without durable storage")
            self.notifier.initialize(self.config)
            self.scraper_manager.validate_config()
            self.ctx.initialized = True

            if not start_loops:
                return
            if self.store.get_tracking_state():
                logger.info("Resuming tracking from persisted state")
                await self.start_tracking()
            if self.ctx.summary_task is None:
                self.ctx.summary_task = asyncio.create_task(
                    self.scheduler.run_forever()
                )

    async def shutdown(self) -> None:
        """Cancel loops and release scrapers, renderer and store."""
        tasks = [
            t
            for t in (self.ctx.tracking_task, self.ctx.summary_task)
            if t is not None
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.ctx.tracking_task = None
        self.ctx.summary_task = None
        self.ctx.is_tracking = False

        await self.scraper_manager.close()
        await self.renderer.close_session()
        self.store.close()
        logger.info("Tracker service shut down")

    # ── Tracking on/off ──────────────────────────────────

    async def start_tracking(self) -> bool:
        """Start the hourly loop; False when tracking is already active."""
        if self.ctx.is_tracking or self.ctx.cycle_running:
            logger.info("Already tracking; start request ignored")
            return False
        self.store.save_tracking_state(True)
        self.ctx.is_tracking = True
        self.ctx.tracking_task = asyncio.create_task(self._tracking_loop())
        logger.info(
            "Tracking started (every %.0f s)", self.tracking_interval
        )
        return True

    async def stop_tracking(self) -> bool:
        if not self.ctx.is_tracking:
            return False
        self.store.save_tracking_state(False)
        self.ctx.is_tracking = False
        task = self.ctx.tracking_task
        self.ctx.tracking_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        logger.info("Tracking stopped")
        return True

    async def _tracking_loop(self) -> None:
        while self.ctx.is_tracking:
            await self.run_cycle()
            await asyncio.sleep(self.tracking_interval)

    def status(self) -> dict[str, Any]:
        last = self.ctx.last_result
        return {
            "is_tracking": self.ctx.is_tracking,
            "cycle_running": self.ctx.cycle_running,
            "durable_store": self.store.durable,
            "last_run_at": (
                self.ctx.last_run_at.isoformat() if self.ctx.last_run_at else None
            ),
            "last_result": last,
            "notification_providers": self.notifier.active_provider_names(),
            "scrapers": self.scraper_manager.get_stats(),
        }

    # ── Cycle ────────────────────────────────────────────

    async def run_cycle(self) -> CycleResult:
        """Scrape, detect, notify, then persist.  Never raises."""
        if self.ctx.cycle_running:
            logger.info("Cycle already running; skipping")
            return CycleResult(skipped=True)

        self.ctx.cycle_running = True
        result = CycleResult()
        try:
            await self._run_cycle(result)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Tracking cycle failed: %s", exc, exc_info=True)
            result.degraded = True
        finally:
            self.ctx.cycle_running = False
            self.ctx.last_result = result
            self.ctx.last_run_at = datetime.now()

        logger.info(
            "Cycle done: %d products, %d new, %d matches, %d notified%s",
            result.total_products,
            result.new_products,
            result.total_new_matches,
            result.notified_subscribers,
            " (degraded)" if result.degraded else "",
        )
        return result

    async def _run_cycle(self, result: CycleResult) -> None:
        products = await self.scraper_manager.scrape_all()
        result.total_products = len(products)

        try:
            new_products = self.detector.detect_new(products)
        except Exception as exc:
            logger.error("Change detection failed: %s", exc, exc_info=True)
            result.degraded = True
            # Unnotified listings must stay out of history.
            self._persist(products, result, record_history=False)
            return
        result.new_products = len(new_products)

        if new_products:
            await self._notify_subscribers(new_products, result)

        self._persist(products, result)

    async def _notify_subscribers(
        self, new_products: list[Product], result: CycleResult,
    ) -> None:
        try:
            subscribers = self.store.get_active_subscribers()
        except Exception as exc:
            logger.error("Could not load subscribers: %s", exc, exc_info=True)
            result.degraded = True
            return

        for subscriber in subscribers:
            try:
                await self._notify_subscriber(subscriber, new_products, result)
            except Exception as exc:
                logger.error(
                    "Notification for %s failed: %s",
                    subscriber.id,
                    exc,
                    exc_info=True,
                )
                result.degraded = True

    async def _notify_subscriber(
        self,
        subscriber: Subscriber,
        new_products: list[Product],
        result: CycleResult,
    ) -> None:
        rules = self.store.get_tracking_rules(subscriber.id, enabled_only=True)
        if not rules:
            return
        matches = self.matcher.match(new_products, rules)
        if not matches:
            return
        result.total_new_matches += len(matches)

        batches = await self.batcher.build_batches(matches)
        delivery = await self.batcher.deliver(subscriber, batches)
        if delivery.delivered:
            result.notified_subscribers += 1
        if delivery.audit_failures:
            result.degraded = True
        logger.info(
            "Subscriber %s: %d matches, %d/%d batches sent",
            subscriber.id,
            len(matches),
            delivery.sent_batches,
            len(batches),
        )

    def _persist(
        self,
        products: list[Product],
        result: CycleResult,
        record_history: bool = True,
    ) -> None:
        if not products:
            logger.warning("No products scraped; history and snapshot left as is")
            return
        if record_history:
            try:
                self.detector.record_seen(products)
            except Exception as exc:
                logger.error("History update failed: %s", exc, exc_info=True)
                result.degraded = True
        try:
            self.differ.ensure_daily_snapshot(format_date(self.clock()), products)
        except Exception as exc:
            logger.error("Snapshot save failed: %s", exc, exc_info=True)
            result.degraded = True
