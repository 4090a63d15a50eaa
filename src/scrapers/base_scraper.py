# src/scrapers/base_scraper.py

"""Abstract base class for all refurbished-listing scrapers."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from bs4 import BeautifulSoup

from src.config.settings import Settings
from src.filters.product_filter import ProductFilter
from src.filters.product_validator import ProductValidator, has_required_fields
from src.models.product import Product
from src.models.tracking import RuleFilters
from src.parsers.base_parser import BaseParser
from src.services.renderer import Page, PageRenderer, get_renderer

RawRecord = dict[str, str]


class ScrapeError(RuntimeError):
    """No target URL of a source could be fetched in one attempt."""


class BaseScraper(ABC):
    """Abstract base class for all source scrapers.

    Subclasses declare their parser, known categories and default
    category list, and implement :meth:`target_urls` and
    :meth:`extract_records`.
    """

    parser: type[BaseParser]
    KNOWN_CATEGORIES: frozenset[str] = frozenset()
    DEFAULT_CATEGORIES: list[str] = []

    def __init__(
        self,
        source_id: str,
        renderer: PageRenderer | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        self.source_id = source_id
        self.logger = logging.getLogger(f"refurb_tracker.{source_id}")
        self.settings = Settings()
        self.config: dict[str, Any] = dict(config or {})
        self.renderer: PageRenderer = renderer or get_renderer()
        self.categories: list[str] = list(
            self.config.get("categories") or self.DEFAULT_CATEGORIES
        )
        self.page_timeout: float = float(
            self.config.get("page_timeout", self.settings.PAGE_TIMEOUT)
        )
        self.settle_delay: float = float(
            self.config.get("settle_delay", self.settings.PAGE_SETTLE_DELAY)
        )
        self._open_pages: set[Page] = set()

    # ── Source-specific hooks ────────────────────────────

    @abstractmethod
    def target_urls(self) -> list[str]:
        """Return the pages to scrape, derived from the configured categories."""
        ...

    @abstractmethod
    def extract_records(
        self, soup: BeautifulSoup, page_url: str,
    ) -> list[RawRecord]:
        """Pull raw ``{name, price, url, image, description, category}`` dicts."""
        ...

    def supported_product_types(self) -> list[str]:
        return []

    def supported_chips(self) -> list[str]:
        return []

    def supported_categories(self) -> list[str]:
        return sorted(self.KNOWN_CATEGORIES)

    # ── Scraping ─────────────────────────────────────────

    async def scrape_products(self) -> list[Product]:
        """Fetch every target URL in order and return validated products.

        A failing URL is logged and skipped.  If every URL fails the
        attempt raises :class:`ScrapeError` so the caller can retry
        the source as a whole.
        """
        urls = self.target_urls()
        self.logger.info(
            "[%s] Scraping %d target pages", self.source_id, len(urls)
        )
        raw_records: list[RawRecord] = []
        fetched = 0

        async with self.renderer.open_page() as page:
            self._open_pages.add(page)
            try:
                for url in urls:
                    try:
                        soup = await page.fetch_page(url, self.page_timeout)
                    except Exception as exc:
                        self.logger.warning(
                            "[%s] Failed to fetch %s: %s",
                            self.source_id,
                            url,
                            exc,
                        )
                        continue
                    fetched += 1
                    if self.settle_delay > 0:
                        await asyncio.sleep(self.settle_delay)
                    records = page.extract(
                        soup, lambda s, u=url: self.extract_records(s, u)
                    )
                    self.logger.info(
                        "[%s] %d raw records from %s",
                        self.source_id,
                        len(records),
                        url,
                    )
                    raw_records.extend(records)
            finally:
                self._open_pages.discard(page)

        if urls and fetched == 0:
            raise ScrapeError(
                f"[{self.source_id}] all {len(urls)} target pages failed"
            )

        products = [self.build_product(raw) for raw in raw_records]
        valid, _dropped = ProductValidator.validate(
            products, self.validate_product
        )
        self.logger.info(
            "[%s] Scrape finished: %d valid products",
            self.source_id,
            len(valid),
        )
        return valid

    def build_product(self, raw: RawRecord) -> Product:
        """Parse specs for a raw record and standardise it."""
        name = raw.get("name", "")
        description = raw.get("description") or name
        spec = self.parser.parse_specs(
            name, description, raw.get("category")
        )
        return self.standardize_product(raw, spec)

    def standardize_product(self, raw: RawRecord, spec: Any) -> Product:
        """Map a raw record onto the common Product shape."""
        name = raw.get("name", "").strip()
        price_text = raw.get("price", "").strip()
        return Product(
            name=name,
            url=raw.get("url", "").strip(),
            price_text=price_text,
            price_value=self.parse_price(price_text),
            image_url=raw.get("image", ""),
            source_id=self.source_id,
            category=raw.get("category") or "Other",
            spec=spec,
            description=raw.get("description") or name,
        )

    @staticmethod
    def parse_price(text: str | None) -> int:
        """Digits-only integer price, e.g. ``'NT$32,900'`` → 32900 (0 if none)."""
        if not text:
            return 0
        digits = re.sub(r"\D", "", str(text))
        return int(digits) if digits else 0

    def validate_product(self, product: Product) -> bool:
        """Required fields, a known category and plausible specs."""
        if not has_required_fields(product):
            return False
        if self.KNOWN_CATEGORIES and (
            product.category not in self.KNOWN_CATEGORIES
        ):
            self.logger.debug(
                "[%s] Unknown category '%s' for %s",
                self.source_id,
                product.category,
                product.name,
            )
            return False
        if not self.parser.validate_specs(product.spec):
            self.logger.debug(
                "[%s] Implausible specs for %s",
                self.source_id,
                product.name,
            )
            return False
        return True

    def filter_products(
        self,
        products: Iterable[Product],
        filters: RuleFilters | None = None,
    ) -> list[Product]:
        """Apply the basic filter predicate to this source's products."""
        return ProductFilter.filter_products(products, filters)

    async def close(self) -> None:
        """Close any page this scraper still holds open."""
        for page in list(self._open_pages):
            await page.close()
        self._open_pages.clear()
        self.logger.info("[%s] Scraper closed", self.source_id)
