# src/scrapers/apple_scraper.py

"""Scraper for Apple's Taiwan refurbished store (apple.com/tw)."""

import re
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from src.parsers.apple_parser import AppleParser
from src.scrapers.base_scraper import BaseScraper
from src.services.renderer import PageRenderer


class AppleScraper(BaseScraper):
    """Scraper for the apple.com/tw refurbished catalogue.

    Category pages are server-rendered lists of product links under
    ``/shop/product/``; the price sits a few ancestors above each link.
    """

    BASE_URL = "https://www.apple.com/tw/shop/refurbished"
    DEFAULT_CATEGORIES = ["mac", "ipad", "appletv"]
    KNOWN_CATEGORIES = frozenset({"Mac", "iPad", "Apple TV"})
    parser = AppleParser

    _PRICE_RE = re.compile(r"NT\$[\d,]+")
    _MAX_PRICE_DEPTH = 6
    _REFURB_MARKERS = ("整修品", "整修", "refurbished")

    def __init__(
        self,
        renderer: PageRenderer | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__("apple", renderer, config)

    def target_urls(self) -> list[str]:
        return [f"{self.BASE_URL}/{c}" for c in self.categories]

    @staticmethod
    def category_for_page(page_url: str) -> str:
        if "/mac" in page_url:
            return "Mac"
        if "/ipad" in page_url:
            return "iPad"
        if "/appletv" in page_url:
            return "Apple TV"
        return "Other"

    def _find_price(self, link: Tag) -> str:
        """Walk up from the link until an ``NT$`` price appears."""
        node = link.parent
        depth = 0
        while isinstance(node, Tag) and depth < self._MAX_PRICE_DEPTH:
            match = self._PRICE_RE.search(node.get_text(" "))
            if match:
                return match.group(0)
            node = node.parent
            depth += 1
        return ""

    @staticmethod
    def _find_image(link: Tag) -> str:
        container = link.find_parent("li") or link.find_parent("div")
        if not isinstance(container, Tag):
            return ""
        img = container.find("img")
        if not isinstance(img, Tag):
            return ""
        return str(img.get("src") or img.get("data-src") or "")

    def extract_records(
        self, soup: BeautifulSoup, page_url: str,
    ) -> list[dict[str, str]]:
        category = self.category_for_page(page_url)
        records: list[dict[str, str]] = []

        for link in soup.select('a[href*="/shop/product/"]'):
            name = " ".join(link.get_text(" ").split())
            href = urljoin(page_url, str(link.get("href", "")))
            lowered = f"{href.lower()} {name.lower()}"
            if not name or not any(
                marker in lowered for marker in self._REFURB_MARKERS
            ):
                continue
            records.append({
                "name": name,
                "price": self._find_price(link),
                "image": self._find_image(link),
                "description": name,
                "url": href,
                "category": category,
            })
        return records

    def supported_product_types(self) -> list[str]:
        return [
            "MacBook Air",
            "MacBook Pro",
            "Mac Studio",
            "Mac mini",
            "iMac",
            "iPad Pro",
            "iPad Air",
            "iPad mini",
            "iPad",
            "Apple TV",
        ]

    def supported_chips(self) -> list[str]:
        return [
            "M1", "M1 Pro", "M1 Max", "M1 Ultra",
            "M2", "M2 Pro", "M2 Max", "M2 Ultra",
            "M3", "M3 Pro", "M3 Max",
            "M4", "M4 Pro", "M4 Max",
        ]
