# src/filters/rule_matcher.py

"""Match a subscriber's tracking rules against newly detected products."""

import logging
from collections.abc import Callable, Iterable

from src.filters.product_filter import ProductFilter
from src.models.product import Product
from src.models.tracking import RuleFilters, TrackingRule

logger = logging.getLogger("refurb_tracker.filters")

FilterFn = Callable[[list[Product], RuleFilters], list[Product]]


class RuleMatcher:
    """Union of per-rule matches, one entry per identity key."""

    def __init__(self, filter_fn: FilterFn | None = None) -> None:
        self._filter: FilterFn = filter_fn or ProductFilter.filter_products

    def match(
        self,
        products: Iterable[Product],
        rules: Iterable[TrackingRule],
    ) -> list[Product]:
        """Return matched products annotated with ``matching_rule_names``.

        Disabled rules are skipped.  A product hit by several rules
        appears once, with each distinct rule name in first-seen order.
        """
        candidates = list(products)
        matched: dict[str, tuple[Product, list[str]]] = {}

        for rule in rules:
            if not rule.enabled:
                continue
            for product in self._filter(candidates, rule.filters):
                key = product.identity_key
                if key not in matched:
                    matched[key] = (product, [])
                names = matched[key][1]
                if rule.name not in names:
                    names.append(rule.name)

        results = [
            product.with_rules(names) for product, names in matched.values()
        ]
        logger.debug(
            "Rule matching: %d of %d products matched",
            len(results),
            len(candidates),
        )
        return results
