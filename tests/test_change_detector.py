# tests/test_change_detector.py

"""Tests for new-listing detection and rule matching."""

import unittest
from unittest.mock import patch

from src.filters.change_detector import ChangeDetector
from src.filters.rule_matcher import RuleMatcher
from src.models.product import Product, ProductSpec
from src.models.tracking import RuleFilters, TrackingRule
from src.storage.document_store import MemoryStore
from src.storage.tracker_store import TrackerStore


def _p(key: str, query: str = "", chip: str = "M2", memory: str = "16GB") -> Product:
    url = f"https://www.apple.com/tw/shop/product/{key}"
    if query:
        url = f"{url}?{query}"
    return Product(
        name=f"MacBook Air {key}",
        url=url,
        price_value=30000,
        source_id="apple",
        spec=ProductSpec(product_type="MacBook Air", chip=chip, memory=memory),
    )


class TestChangeDetector(unittest.TestCase):

    def setUp(self) -> None:
        self.store = TrackerStore(MemoryStore())
        self.detector = ChangeDetector(self.store)

    def test_everything_is_new_on_empty_history(self) -> None:
        new = self.detector.detect_new([_p("A"), _p("B")])
        self.assertEqual(len(new), 2)

    def test_second_run_is_idempotent(self) -> None:
        products = [_p("A"), _p("B"), _p("C")]
        self.assertEqual(len(self.detector.detect_new(products)), 3)
        self.detector.record_seen(products)
        self.assertEqual(self.detector.detect_new(products), [])

    def test_query_string_does_not_make_product_new(self) -> None:
        self.detector.detect_new([_p("A", "fnode=1")])
        self.detector.record_seen([_p("A", "fnode=1")])
        self.assertEqual(self.detector.detect_new([_p("A", "fnode=2")]), [])

    def test_duplicate_within_scrape_reported_once(self) -> None:
        new = self.detector.detect_new([_p("A", "x=1"), _p("A", "x=2")])
        self.assertEqual(len(new), 1)

    def test_history_loaded_once_per_call(self) -> None:
        with patch.object(
            self.store, "load_history", wraps=self.store.load_history
        ) as spy:
            self.detector.detect_new([_p(str(i)) for i in range(20)])
        self.assertEqual(spy.call_count, 1)

    def test_reappearing_listing_is_not_new(self) -> None:
        """History is never pruned by detection."""
        self.detector.detect_new([_p("A")])
        self.detector.record_seen([_p("A")])
        self.detector.detect_new([_p("B")])
        self.detector.record_seen([_p("B")])
        self.assertEqual(self.detector.detect_new([_p("A")]), [])


class TestRuleMatcher(unittest.TestCase):

    def setUp(self) -> None:
        self.matcher = RuleMatcher()

    def test_rule_union_lists_each_product_once(self) -> None:
        products = [_p("A", chip="M2", memory="16GB"), _p("B", chip="M3", memory="8GB")]
        rules = [
            TrackingRule(id="1", name="R1", filters=RuleFilters(chip="M2")),
            TrackingRule(id="2", name="R2", filters=RuleFilters(min_memory=16)),
        ]
        matched = self.matcher.match(products, rules)
        self.assertEqual(len(matched), 1)
        self.assertEqual(matched[0].matching_rule_names, ["R1", "R2"])

    def test_rule_names_are_not_duplicated(self) -> None:
        rules = [
            TrackingRule(id="1", name="R1", filters=RuleFilters(chip="M2")),
            TrackingRule(id="2", name="R1", filters=RuleFilters()),
        ]
        matched = self.matcher.match([_p("A")], rules)
        self.assertEqual(matched[0].matching_rule_names, ["R1"])

    def test_disabled_rules_are_ignored(self) -> None:
        rules = [
            TrackingRule(id="1", name="R1", filters=RuleFilters(), enabled=False),
        ]
        self.assertEqual(self.matcher.match([_p("A")], rules), [])

    def test_identity_key_merges_query_variants(self) -> None:
        products = [_p("A", "fnode=1"), _p("A", "fnode=2")]
        rules = [TrackingRule(id="1", name="R1", filters=RuleFilters())]
        self.assertEqual(len(self.matcher.match(products, rules)), 1)

    def test_original_products_are_not_mutated(self) -> None:
        product = _p("A")
        rules = [TrackingRule(id="1", name="R1", filters=RuleFilters())]
        self.matcher.match([product], rules)
        self.assertEqual(product.matching_rule_names, [])

    def test_no_rules_no_matches(self) -> None:
        self.assertEqual(self.matcher.match([_p("A")], []), [])


if __name__ == "__main__":
    unittest.main()
