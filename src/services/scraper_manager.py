# src/services/scraper_manager.py

"""Runs every enabled source concurrently and merges their products."""

import asyncio
import importlib
import logging
from collections.abc import Iterable
from typing import Any

from src.config.settings import Settings
from src.models.product import Product
from src.models.tracking import RuleFilters
from src.scrapers.base_scraper import BaseScraper
from src.services.renderer import PageRenderer
from src.services.retry import RetryPolicy, with_retry

logger = logging.getLogger("refurb_tracker.manager")

COMMON_FILTERS: list[str] = [
    "max_price",
    "min_memory",
    "min_storage",
    "color",
]


def _load_scraper_class(dotted_path: str) -> type[Any]:
    """Dynamically import a scraper class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


class ScraperManager:
    """Owns the source table and the enabled set.

    Every registered source is instantiated; ``config[source]["enabled"]``
    decides whether it starts out enabled.
    """

    def __init__(
        self,
        config: dict[str, dict[str, Any]] | None = None,
        renderer: PageRenderer | None = None,
        sources: list[dict[str, str]] | None = None,
    ) -> None:
        self.config: dict[str, dict[str, Any]] = config or {}
        self.scrapers: dict[str, BaseScraper] = {}
        self.policies: dict[str, RetryPolicy] = {}
        self._enabled: list[str] = []

        for source in sources or Settings.AVAILABLE_SOURCES:
            source_id = source["id"]
            source_config = self.config.get(source_id, {})
            try:
                scraper_cls = _load_scraper_class(source["scraper"])
                scraper: BaseScraper = scraper_cls(
                    renderer=renderer, config=source_config
                )
            except Exception as exc:
                logger.error(
                    "Failed to load scraper '%s': %s",
                    source_id,
                    exc,
                    exc_info=True,
                )
                continue
            self.scrapers[source_id] = scraper
            self.policies[source_id] = RetryPolicy.from_config(
                source_config
            )
            if source_config.get("enabled", False):
                self._enabled.append(source_id)

        logger.info(
            "ScraperManager ready: %d available, %d enabled (%s)",
            len(self.scrapers),
            len(self._enabled),
            ", ".join(self._enabled) or "none",
        )

    # ── Registry ─────────────────────────────────────────

    def enable_scraper(self, source_id: str) -> bool:
        """Enable a known source; returns False for unknown ids."""
        if source_id not in self.scrapers:
            logger.warning("Unknown scraper '%s'", source_id)
            return False
        if source_id not in self._enabled:
            self._enabled.append(source_id)
            logger.info("Scraper '%s' enabled", source_id)
        return True

    def disable_scraper(self, source_id: str) -> None:
        if source_id in self._enabled:
            self._enabled.remove(source_id)
            logger.info("Scraper '%s' disabled", source_id)

    def get_scraper(self, source_id: str) -> BaseScraper | None:
        return self.scrapers.get(source_id)

    def enabled_scrapers(self) -> list[str]:
        return list(self._enabled)

    def available_scrapers(self) -> list[str]:
        return list(self.scrapers)

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_scrapers": len(self.scrapers),
            "enabled_scrapers": len(self._enabled),
            "available_platforms": self.available_scrapers(),
            "enabled_platforms": self.enabled_scrapers(),
        }

    def validate_config(self) -> bool:
        if not self._enabled:
            logger.error("No scrapers are enabled")
            return False
        return True

    def get_supported_filters(self) -> dict[str, dict[str, list[str]]]:
        """Per-source filterable values plus the common filter set."""
        return {
            source_id: {
                "product_types": scraper.supported_product_types(),
                "chips": scraper.supported_chips(),
                "categories": scraper.supported_categories(),
                "common": list(COMMON_FILTERS),
            }
            for source_id, scraper in self.scrapers.items()
        }

    # ── Scraping ─────────────────────────────────────────

    async def _scrape_source(self, source_id: str) -> list[Product]:
        scraper = self.scrapers[source_id]
        policy = self.policies.get(source_id, RetryPolicy())
        return await with_retry(
            scraper.scrape_products, policy, label=source_id
        )

    async def scrape_all(self) -> list[Product]:
        """Scrape all enabled sources concurrently; never raises.

        A source that fails every retry contributes zero products.
        """
        source_ids = [s for s in self._enabled if s in self.scrapers]
        logger.info("Scraping %d sources", len(source_ids))

        results = await asyncio.gather(
            *(self._scrape_source(s) for s in source_ids),
            return_exceptions=True,
        )

        products: list[Product] = []
        for source_id, result in zip(source_ids, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(
                    "Source '%s' failed after retries: %s",
                    source_id,
                    result,
                    exc_info=result,
                )
                continue
            products.extend(result)
            logger.info(
                "Source '%s' returned %d products",
                source_id,
                len(result),
            )

        logger.info("Scrape complete: %d products total", len(products))
        return products

    # ── Filtering ────────────────────────────────────────

    def filter_products_by_platform(
        self,
        products: Iterable[Product],
        filters_by_source: dict[str, RuleFilters],
    ) -> list[Product]:
        """Group by source and delegate filtering to each source's scraper.

        Products from unknown sources, or sources without filters, pass
        through unfiltered.
        """
        grouped: dict[str, list[Product]] = {}
        for product in products:
            grouped.setdefault(product.source_id, []).append(product)

        filtered: list[Product] = []
        for source_id, items in grouped.items():
            scraper = self.scrapers.get(source_id)
            filters = filters_by_source.get(source_id)
            if scraper is None or filters is None:
                filtered.extend(items)
                continue
            filtered.extend(scraper.filter_products(items, filters))
        return filtered

    # ── Lifecycle ────────────────────────────────────────

    async def close(self) -> None:
        """Close every scraper, logging (not raising) individual failures."""
        scrapers = list(self.scrapers.items())
        results = await asyncio.gather(
            *(scraper.close() for _, scraper in scrapers),
            return_exceptions=True,
        )
        for (source_id, _), result in zip(scrapers, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to close scraper '%s': %s", source_id, result
                )
        logger.info("All scrapers closed")
