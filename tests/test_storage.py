# tests/test_storage.py

"""Tests for the document stores and the TrackerStore facade."""

import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path
from unittest.mock import patch

from src.models.product import Product
from src.models.snapshot import NotificationRecord
from src.models.tracking import RuleFilters, Subscriber, TrackingRule
from src.storage.document_store import (
    DocumentStore,
    MemoryStore,
    SqliteStore,
    open_store,
)
from src.storage.tracker_store import HISTORY, TrackerStore


class _StoreContract:
    """Behaviour shared by every DocumentStore backend."""

    store: DocumentStore

    def test_get_missing_returns_none(self) -> None:
        self.assertIsNone(self.store.get("c", "missing"))

    def test_set_and_get(self) -> None:
        self.store.set("c", "k", {"a": 1})
        self.assertEqual(self.store.get("c", "k"), {"a": 1})

    def test_set_overwrites_without_merge(self) -> None:
        self.store.set("c", "k", {"a": 1, "b": 2})
        self.store.set("c", "k", {"a": 3})
        self.assertEqual(self.store.get("c", "k"), {"a": 3})

    def test_merge_keeps_other_fields(self) -> None:
        self.store.set("c", "k", {"a": 1, "b": 2})
        self.store.set("c", "k", {"a": 3}, merge=True)
        self.assertEqual(self.store.get("c", "k"), {"a": 3, "b": 2})

    def test_delete(self) -> None:
        self.store.set("c", "k", {"a": 1})
        self.assertTrue(self.store.delete("c", "k"))
        self.assertFalse(self.store.delete("c", "k"))

    def test_list_is_scoped_to_collection(self) -> None:
        self.store.set("c1", "a", {"v": 1})
        self.store.set("c2", "b", {"v": 2})
        self.assertEqual(list(self.store.list("c1")), ["a"])

    def test_set_many(self) -> None:
        count = self.store.set_many("c", [("a", {"v": 1}), ("b", {"v": 2})])
        self.assertEqual(count, 2)
        self.assertEqual(len(self.store.list("c")), 2)

    def test_returned_documents_are_copies(self) -> None:
        self.store.set("c", "k", {"items": [1]})
        doc = self.store.get("c", "k")
        assert doc is not None
        doc["items"].append(2)
        self.assertEqual(self.store.get("c", "k"), {"items": [1]})


class TestMemoryStore(_StoreContract, unittest.TestCase):

    def setUp(self) -> None:
        self.store = MemoryStore()

    def test_not_durable(self) -> None:
        self.assertFalse(self.store.durable)


class TestSqliteStore(_StoreContract, unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "db" / "tracker.db"
        self.store = SqliteStore(self.path)

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()

    def test_data_survives_reopen(self) -> None:
        self.store.set("c", "k", {"name": "整修品"})
        self.store.close()
        self.store = SqliteStore(self.path)
        self.assertEqual(self.store.get("c", "k"), {"name": "整修品"})


class TestOpenStore(unittest.TestCase):

    def test_falls_back_to_memory(self) -> None:
        with patch(
            "src.storage.document_store.SqliteStore",
            side_effect=OSError("read-only"),
        ):
            with self.assertLogs("refurb_tracker.store", level="WARNING"):
                store = open_store(Path("/nonexistent/tracker.db"))
        self.assertIsInstance(store, MemoryStore)


def _product(key: str, price: int = 100) -> Product:
    return Product(
        name=f"MacBook {key}",
        url=f"https://example.test/{key}",
        price_value=price,
        source_id="apple",
    )


class TestTrackerStoreHistory(unittest.TestCase):

    def setUp(self) -> None:
        self.store = TrackerStore(MemoryStore())

    def test_upsert_then_load(self) -> None:
        seen = datetime(2026, 1, 1, 10, 0)
        self.store.upsert_history([_product("a")], seen)
        history = self.store.load_history()
        self.assertEqual(list(history), ["https://example.test/a"])
        self.assertEqual(history["https://example.test/a"].first_seen, seen)

    def test_first_seen_is_preserved(self) -> None:
        first = datetime(2026, 1, 1, 10, 0)
        later = datetime(2026, 1, 2, 10, 0)
        self.store.upsert_history([_product("a", 100)], first)
        self.store.upsert_history([_product("a", 90)], later)
        entry = self.store.load_history()["https://example.test/a"]
        self.assertEqual(entry.first_seen, first)
        self.assertEqual(entry.last_seen, later)
        self.assertEqual(entry.product.price_value, 90)

    def test_upsert_is_chunked(self) -> None:
        products = [_product(str(i)) for i in range(7)]
        with patch.object(
            self.store.store, "set_many", wraps=self.store.store.set_many
        ) as spy:
            written = self.store.upsert_history(
                products, datetime(2026, 1, 1), batch_size=3
            )
        self.assertEqual(written, 7)
        self.assertEqual(spy.call_count, 3)
        self.assertEqual(len(self.store.store.list(HISTORY)), 7)


class TestTrackerStoreEntities(unittest.TestCase):

    def setUp(self) -> None:
        self.store = TrackerStore(MemoryStore())

    def test_active_subscribers(self) -> None:
        self.store.save_subscriber(Subscriber(id="U1"))
        self.store.save_subscriber(Subscriber(id="U2", is_active=False))
        active = self.store.get_active_subscribers()
        self.assertEqual([s.id for s in active], ["U1"])

    def test_get_or_create_subscriber(self) -> None:
        created = self.store.get_or_create_subscriber("U1")
        self.assertEqual(created.id, "U1")
        self.assertIsNotNone(self.store.get_subscriber("U1"))

    def test_update_last_summary_date_merges(self) -> None:
        self.store.save_subscriber(Subscriber(id="U1", email="a@b.c"))
        self.store.update_last_summary_date("U1", "2026-01-02")
        subscriber = self.store.get_subscriber("U1")
        assert subscriber is not None
        self.assertEqual(subscriber.last_summary_date, "2026-01-02")
        self.assertEqual(subscriber.email, "a@b.c")

    def test_update_notification_preferences_merges(self) -> None:
        self.store.save_subscriber(Subscriber(id="U1", email="a@b.c"))
        self.store.update_notification_preferences(
            "U1", {"line": True, "email": False}
        )
        subscriber = self.store.get_subscriber("U1")
        assert subscriber is not None
        self.assertEqual(
            subscriber.notification_preferences, {"line": True, "email": False}
        )
        self.assertEqual(subscriber.email, "a@b.c")

    def test_rules_are_nested_per_subscriber(self) -> None:
        rule = self.store.add_tracking_rule(
            "U1", TrackingRule(id="", name="Air", filters=RuleFilters(chip="M2"))
        )
        self.assertTrue(rule.id)
        self.assertEqual(len(self.store.get_tracking_rules("U1")), 1)
        self.assertEqual(self.store.get_tracking_rules("U2"), [])

    def test_enabled_only_rules(self) -> None:
        self.store.add_tracking_rule("U1", TrackingRule(id="r1", name="A"))
        self.store.add_tracking_rule(
            "U1", TrackingRule(id="r2", name="B", enabled=False)
        )
        names = [r.name for r in self.store.get_tracking_rules("U1", enabled_only=True)]
        self.assertEqual(names, ["A"])

    def test_update_and_delete_rule(self) -> None:
        self.store.add_tracking_rule("U1", TrackingRule(id="r1", name="A"))
        updated = self.store.update_tracking_rule("U1", "r1", {"name": "B"})
        assert updated is not None
        self.assertEqual(updated.name, "B")
        self.assertIsNone(self.store.update_tracking_rule("U1", "nope", {}))
        self.assertTrue(self.store.delete_tracking_rule("U1", "r1"))

    def test_latest_snapshot_before(self) -> None:
        for day in ("2026-01-01", "2026-01-03", "2026-01-05"):
            self.store.save_snapshot(day, [_product(day)])
        latest = self.store.get_latest_snapshot(before="2026-01-05")
        assert latest is not None
        self.assertEqual(latest.date, "2026-01-03")
        self.assertIsNone(self.store.get_latest_snapshot(before="2026-01-01"))

    def test_cleanup_old_snapshots(self) -> None:
        for day in ("2025-11-01", "2025-12-20", "2026-01-05"):
            self.store.save_snapshot(day, [])
        removed = self.store.cleanup_old_snapshots(date(2026, 1, 5), keep_days=30)
        self.assertEqual(removed, 1)
        self.assertIsNone(self.store.get_snapshot("2025-11-01"))
        self.assertIsNotNone(self.store.get_snapshot("2025-12-20"))

    def test_notifications_filtered_by_subscriber(self) -> None:
        for sid in ("U1", "U2", "U1"):
            self.store.save_notification(
                NotificationRecord(sid, "msg", ["u"], datetime(2026, 1, 1))
            )
        self.assertEqual(len(self.store.list_notifications("U1")), 2)
        self.assertEqual(len(self.store.list_notifications()), 3)

    def test_tracking_state(self) -> None:
        self.assertFalse(self.store.get_tracking_state())
        self.store.save_tracking_state(True)
        self.assertTrue(self.store.get_tracking_state())

    def test_tracking_state_errors_propagate(self) -> None:
        with patch.object(
            self.store.store, "set", side_effect=RuntimeError("down")
        ):
            with self.assertRaises(RuntimeError):
                self.store.save_tracking_state(True)


if __name__ == "__main__":
    unittest.main()
