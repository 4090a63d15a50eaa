# tests/test_scrapers.py

"""Tests for BaseScraper orchestration and the source extractors."""

import unittest
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from bs4 import BeautifulSoup

from src.models.tracking import RuleFilters
from src.scrapers.apple_scraper import AppleScraper
from src.scrapers.base_scraper import ScrapeError
from src.scrapers.pchome_scraper import PChomeScraper
from src.services.renderer import PageFetchError

APPLE_HTML = """
<html><body>
<ul class="rf-refurb-category-grid">
  <li>
    <img src="https://img.test/air.png">
    <h3><a href="/tw/shop/product/FGN63TA/A/refurbished-13-inch-macbook-air?fnode=abc">
      整修品 13 吋 MacBook Air Apple M2 晶片配備 8 核心 CPU - 午夜色
    </a></h3>
    <div class="price"><span>NT$30,900</span></div>
  </li>
  <li>
    <h3><a href="/tw/shop/product/FGN93TA/A/refurbished-14-inch-macbook-pro">
      整修品 14 吋 MacBook Pro Apple M3 Pro 晶片 - 太空黑色
    </a></h3>
    <div class="price">NT$59,900</div>
  </li>
  <li>
    <a href="/tw/shop/product/MX2D3TA/A/magic-keyboard">巧控鍵盤</a>
  </li>
</ul>
</body></html>
"""

PCHOME_HTML = """
<html><body>
<div class="prod_item">
  <a href="/prod/DYAJ1A-MACBOOK">link</a>
  <h3>Apple MacBook Air 13吋 M2晶片 8GB/256GB SSD 午夜色</h3>
  <span class="price">$29,900</span>
</div>
<div class="prod_item">
  <a href="/prod/OTHER">link</a>
  <h3>Samsung Galaxy Tab S9</h3>
  <span class="price">$19,900</span>
</div>
<div class="prod_item">
  <h3>iPad Air 11吋 M2 晶片 128GB 儲存</h3>
  <span class="price">$18,900</span>
</div>
</body></html>
"""


class FakePage:
    """Page double: serves canned HTML per URL, raising for unknown URLs."""

    def __init__(self, pages: dict[str, str], calls: list[str]) -> None:
        self._pages = pages
        self._calls = calls

    async def fetch_page(self, url: str, timeout: float | None = None) -> BeautifulSoup:
        self._calls.append(url)
        if url not in self._pages:
            raise PageFetchError(f"HTTP 503 fetching {url}")
        return BeautifulSoup(self._pages[url], "lxml")

    @staticmethod
    def extract(handle: BeautifulSoup, extractor: Callable[[BeautifulSoup], list[Any]]) -> list[Any]:
        return extractor(handle)

    async def close(self) -> None:
        return None


class FakeRenderer:
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages
        self.calls: list[str] = []
        self.opened = 0

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[FakePage]:
        self.opened += 1
        yield FakePage(self.pages, self.calls)


def _apple(pages: dict[str, str], categories: list[str]) -> AppleScraper:
    return AppleScraper(
        renderer=FakeRenderer(pages),  # type: ignore[arg-type]
        config={"categories": categories, "settle_delay": 0},
    )


class TestAppleScraper(unittest.IsolatedAsyncioTestCase):

    MAC_URL = f"{AppleScraper.BASE_URL}/mac"
    IPAD_URL = f"{AppleScraper.BASE_URL}/ipad"

    def test_target_urls_follow_categories(self) -> None:
        scraper = _apple({}, ["mac", "ipad"])
        self.assertEqual(scraper.target_urls(), [self.MAC_URL, self.IPAD_URL])

    def test_extract_records(self) -> None:
        scraper = _apple({}, ["mac"])
        soup = BeautifulSoup(APPLE_HTML, "lxml")
        records = scraper.extract_records(soup, self.MAC_URL)

        self.assertEqual(len(records), 2)
        first = records[0]
        self.assertTrue(first["url"].startswith("https://www.apple.com/tw/shop/product/"))
        self.assertEqual(first["price"], "NT$30,900")
        self.assertEqual(first["category"], "Mac")
        self.assertEqual(first["image"], "https://img.test/air.png")
        self.assertEqual(records[1]["image"], "")

    async def test_scrape_products_parses_specs(self) -> None:
        scraper = _apple({self.MAC_URL: APPLE_HTML}, ["mac"])
        products = await scraper.scrape_products()

        self.assertEqual(len(products), 2)
        air = products[0]
        self.assertEqual(air.source_id, "apple")
        self.assertEqual(air.price_value, 30900)
        self.assertEqual(air.spec.product_type, "MacBook Air")
        self.assertEqual(air.spec.chip, "M2")
        self.assertEqual(products[1].spec.chip, "M3 Pro")

    async def test_failing_url_is_skipped(self) -> None:
        scraper = _apple({self.MAC_URL: APPLE_HTML}, ["ipad", "mac"])
        products = await scraper.scrape_products()
        renderer = scraper.renderer
        self.assertEqual(len(products), 2)
        self.assertEqual(renderer.calls, [self.IPAD_URL, self.MAC_URL])  # type: ignore[attr-defined]

    async def test_all_urls_failing_raises(self) -> None:
        scraper = _apple({}, ["mac", "ipad"])
        with self.assertRaises(ScrapeError):
            await scraper.scrape_products()

    async def test_one_page_per_scrape(self) -> None:
        scraper = _apple({self.MAC_URL: APPLE_HTML}, ["mac", "ipad"])
        await scraper.scrape_products()
        self.assertEqual(scraper.renderer.opened, 1)  # type: ignore[attr-defined]

    def test_parse_price(self) -> None:
        self.assertEqual(AppleScraper.parse_price("NT$32,900"), 32900)
        self.assertEqual(AppleScraper.parse_price(""), 0)
        self.assertEqual(AppleScraper.parse_price(None), 0)

    async def test_filter_products(self) -> None:
        scraper = _apple({self.MAC_URL: APPLE_HTML}, ["mac"])
        products = await scraper.scrape_products()
        kept = scraper.filter_products(products, RuleFilters(max_price=40000))
        self.assertEqual([p.price_value for p in kept], [30900])

    def test_supported_categories(self) -> None:
        self.assertEqual(
            _apple({}, ["mac"]).supported_categories(), ["Apple TV", "Mac", "iPad"]
        )


class TestPChomeScraper(unittest.IsolatedAsyncioTestCase):

    def _scraper(self, pages: dict[str, str]) -> PChomeScraper:
        return PChomeScraper(
            renderer=FakeRenderer(pages),  # type: ignore[arg-type]
            config={"categories": ["mac"], "settle_delay": 0},
        )

    def test_target_urls_are_search_pages(self) -> None:
        urls = self._scraper({}).target_urls()
        self.assertEqual(len(urls), len(PChomeScraper.SEARCH_TERMS["mac"]))
        self.assertTrue(all("/search/v3.3/?q=" in u for u in urls))

    def test_extract_keeps_apple_listings_with_links(self) -> None:
        soup = BeautifulSoup(PCHOME_HTML, "lxml")
        records = self._scraper({}).extract_records(soup, "https://24h.pchome.com.tw/search/")
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["category"], "Mac")
        self.assertEqual(records[0]["url"], "https://24h.pchome.com.tw/prod/DYAJ1A-MACBOOK")

    async def test_scrape_products(self) -> None:
        first_url = self._scraper({}).target_urls()[0]
        products = await self._scraper({first_url: PCHOME_HTML}).scrape_products()
        self.assertEqual(len(products), 1)
        self.assertEqual(products[0].price_value, 29900)
        self.assertEqual(products[0].spec.storage, "256GB")

    def test_categorize_product(self) -> None:
        self.assertEqual(PChomeScraper.categorize_product("Apple iMac 24"), "Mac")
        self.assertEqual(PChomeScraper.categorize_product("iPad mini"), "iPad")
        self.assertEqual(PChomeScraper.categorize_product("AirPods"), "Other")


if __name__ == "__main__":
    unittest.main()
