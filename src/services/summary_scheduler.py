# src/services/summary_scheduler.py

"""Polling scheduler for the per-subscriber daily summary."""

import asyncio
import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from src.config.settings import Settings
from src.models.snapshot import SummaryReport
from src.models.tracking import Subscriber
from src.notifications.manager import NotificationManager
from src.services.snapshot_differ import SnapshotDiffer
from src.storage.tracker_store import TrackerStore, format_date

logger = logging.getLogger("refurb_tracker.summary")


class SummaryScheduler:
    """Sends each subscriber at most one summary per local calendar day.

    The summary covers the previous day.  A subscriber becomes due once
    the local clock reaches their configured ``HH:MM``; with
    ``catchup_minutes`` set, a check that lands later than that window
    skips the day instead of sending a stale summary.
    """

    def __init__(
        self,
        store: TrackerStore,
        differ: SnapshotDiffer,
        notifier: NotificationManager,
        timezone: str = Settings.SUMMARY_TIMEZONE,
        catchup_minutes: int | None = Settings.SUMMARY_CATCHUP_MINUTES,
        poll_interval: float = Settings.SUMMARY_POLL_INTERVAL,
        initial_delay: float = Settings.SUMMARY_INITIAL_DELAY,
    ) -> None:
        self.store = store
        self.differ = differ
        self.notifier = notifier
        self.tz = ZoneInfo(timezone)
        self.catchup_minutes = catchup_minutes
        self.poll_interval = poll_interval
        self.initial_delay = initial_delay

    def local_now(self, now: datetime | None = None) -> datetime:
        if now is None:
            return datetime.now(self.tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def is_due(self, subscriber: Subscriber, now: datetime | None = None) -> bool:
        settings = subscriber.summary_settings
        if not settings.enabled:
            return False
        local = self.local_now(now)
        if subscriber.last_summary_date == format_date(local):
            return False
        scheduled = settings.scheduled_minutes()
        if scheduled is None:
            logger.warning(
                "Subscriber %s has malformed summary time %r",
                subscriber.id,
                settings.time,
            )
            return False
        elapsed = local.hour * 60 + local.minute - scheduled
        if elapsed < 0:
            return False
        if self.catchup_minutes is not None and elapsed > self.catchup_minutes:
            return False
        return True

    def summary_day(self, now: datetime | None = None) -> date:
        return self.local_now(now).date() - timedelta(days=1)

    async def build_report(self, now: datetime | None = None) -> SummaryReport:
        return await self.differ.diff_against_previous_day(self.summary_day(now))

    async def _send(
        self, subscriber: Subscriber, report: SummaryReport, now: datetime | None,
    ) -> bool:
        results = await self.notifier.send(subscriber, report.format())
        delivered = any(r.success for r in results)
        if not delivered:
            logger.warning("Summary for %s was not delivered", subscriber.id)
        self.store.update_last_summary_date(
            subscriber.id, format_date(self.local_now(now))
        )
        return delivered

    async def send_due_summaries(self, now: datetime | None = None) -> int:
        """Send the summary to every due subscriber; returns deliveries."""
        due = [s for s in self.store.get_active_subscribers() if self.is_due(s, now)]
        if not due:
            return 0

        report = await self.build_report(now)
        sent = 0
        for subscriber in due:
            try:
                if await self._send(subscriber, report, now):
                    sent += 1
                    logger.info("Summary sent to %s", subscriber.id)
            except Exception as exc:
                logger.error(
                    "Summary for %s failed: %s", subscriber.id, exc, exc_info=True
                )
        return sent

    async def preview(self, subscriber_id: str) -> str:
        """Render the summary a subscriber would get, ignoring the clock."""
        subscriber = self.store.get_subscriber(subscriber_id)
        if subscriber is None:
            return f"❌ Unknown subscriber {subscriber_id}"
        settings = subscriber.summary_settings
        report = await self.build_report()
        lines = [
            "🧪 Summary preview",
            "",
            f"Enabled: {'yes' if settings.enabled else 'no'}",
            f"⏰ Scheduled time: {settings.time}",
            f"📅 Last sent: {subscriber.last_summary_date or 'never'}",
            "",
            report.format(),
        ]
        return "\n".join(lines)

    async def force_send(self, subscriber_id: str) -> bool:
        """Send the summary now, regardless of schedule and last date."""
        subscriber = self.store.get_subscriber(subscriber_id)
        if subscriber is None:
            logger.warning("force_send: unknown subscriber %s", subscriber_id)
            return False
        report = await self.build_report()
        return await self._send(subscriber, report, None)

    async def run_forever(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            try:
                await self.send_due_summaries()
            except Exception as exc:
                logger.error("Summary check failed: %s", exc, exc_info=True)
            await asyncio.sleep(self.poll_interval)
