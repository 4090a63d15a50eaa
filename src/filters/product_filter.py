# src/filters/product_filter.py

"""Basic filter predicate shared by per-source filtering and rule matching."""

import logging
import re
from collections.abc import Iterable

from src.models.product import Product
from src.models.tracking import RuleFilters

logger = logging.getLogger("refurb_tracker.filters")

_LEADING_NUMBER_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)")


def _leading_number(text: str | None) -> float | None:
    if not text:
        return None
    match = _LEADING_NUMBER_RE.match(text)
    return float(match.group(1)) if match else None


def parse_memory_gb(memory: str | None) -> int | None:
    """Parse ``"16GB"`` to 16; unparsable values (``"—"``) give None."""
    value = _leading_number(memory)
    return int(value) if value is not None else None


def parse_storage_gb(storage: str | None) -> int | None:
    """Parse ``"512GB"`` / ``"1TB"`` to gigabytes (TB counts as 1024 GB)."""
    value = _leading_number(storage)
    if value is None or storage is None:
        return None
    upper = storage.upper()
    if "TB" in upper:
        return int(value * 1024)
    if "GB" in upper:
        return int(value)
    return None


def matches_filters(product: Product, filters: RuleFilters) -> bool:
    """Return True if *product* satisfies every filter field that is set.

    Exact match for product type, chip and colour; ``>=`` for memory and
    storage; ``<=`` for price.  A product whose numeric field cannot be
    parsed fails any numeric filter on that field.
    """
    spec = product.spec

    if filters.product_type and spec.product_type != filters.product_type:
        return False
    if filters.chip and spec.chip != filters.chip:
        return False
    if filters.color and spec.color != filters.color:
        return False

    if filters.min_memory is not None:
        memory = parse_memory_gb(spec.memory)
        if memory is None or memory < filters.min_memory:
            return False

    if filters.max_price is not None:
        if product.price_value > filters.max_price:
            return False

    if filters.min_storage is not None:
        storage = parse_storage_gb(spec.storage)
        if storage is None or storage < filters.min_storage:
            return False

    return True


class ProductFilter:
    """Filter product lists with a :class:`RuleFilters` predicate."""

    @staticmethod
    def filter_products(
        products: Iterable[Product],
        filters: RuleFilters | None,
    ) -> list[Product]:
        """Keep the products that satisfy *filters* (all, if None)."""
        items = list(products)
        if filters is None:
            return items
        kept = [p for p in items if matches_filters(p, filters)]
        excluded = len(items) - len(kept)
        if excluded:
            logger.debug(
                "Filter excluded %d of %d products", excluded, len(items)
            )
        return kept
