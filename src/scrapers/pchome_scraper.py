# src/scrapers/pchome_scraper.py

"""Scraper for PChome 24h search results (Apple products only)."""

from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from src.parsers.pchome_parser import PChomeParser
from src.scrapers.base_scraper import BaseScraper
from src.services.renderer import PageRenderer


class PChomeScraper(BaseScraper):
    """Scraper for 24h.pchome.com.tw keyword searches.

    One search page per term; result cards are matched loosely because
    the markup differs between search layouts.
    """

    BASE_URL = "https://24h.pchome.com.tw"
    DEFAULT_CATEGORIES = ["mac", "ipad"]
    KNOWN_CATEGORIES = frozenset({"Mac", "iPad"})
    parser = PChomeParser

    SEARCH_TERMS: dict[str, list[str]] = {
        "mac": ["MacBook", "Mac+mini", "Mac+Studio", "iMac"],
        "ipad": ["iPad", "iPad+Pro", "iPad+Air", "iPad+mini"],
    }

    _ITEM_SELECTOR = '.prod_item, .item, [data-gtm*="product"]'
    _NAME_SELECTOR = ".prod_name, .name, h3, h4"
    _PRICE_SELECTOR = '.price, .prod_price, [class*="price"]'

    def __init__(
        self,
        renderer: PageRenderer | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        super().__init__("pchome", renderer, config)

    def target_urls(self) -> list[str]:
        urls: list[str] = []
        for category in self.categories:
            for term in self.SEARCH_TERMS.get(category, []):
                urls.append(
                    f"{self.BASE_URL}/search/v3.3/?q={term}&scope=all"
                )
        return urls

    @staticmethod
    def categorize_product(name: str) -> str:
        lowered = name.lower()
        if any(
            key in lowered
            for key in ("macbook", "mac mini", "mac studio", "imac")
        ):
            return "Mac"
        if "ipad" in lowered:
            return "iPad"
        return "Other"

    @staticmethod
    def _text(item: Tag, selector: str) -> str:
        found = item.select_one(selector)
        return " ".join(found.get_text(" ").split()) if found else ""

    def extract_records(
        self, soup: BeautifulSoup, page_url: str,
    ) -> list[dict[str, str]]:
        records: list[dict[str, str]] = []
        for item in soup.select(self._ITEM_SELECTOR):
            name = self._text(item, self._NAME_SELECTOR)
            price = self._text(item, self._PRICE_SELECTOR)
            link = item.select_one("a[href]")
            url = urljoin(page_url, str(link.get("href", ""))) if link else ""
            img = item.select_one("img")
            image = (
                str(img.get("src") or img.get("data-src") or "")
                if img
                else ""
            )

            lowered = name.lower()
            is_apple = any(k in lowered for k in ("mac", "ipad", "apple"))
            if not (name and price and url and is_apple):
                continue
            records.append({
                "name": name,
                "price": price,
                "url": url,
                "image": image,
                "description": name,
                "category": self.categorize_product(name),
            })
        return records

    def supported_product_types(self) -> list[str]:
        return [
            "MacBook Air",
            "MacBook Pro",
            "Mac mini",
            "iMac",
            "iPad Pro",
            "iPad Air",
            "iPad mini",
            "iPad",
        ]

    def supported_chips(self) -> list[str]:
        return [
            "M1", "M1 Pro", "M1 Max",
            "M2", "M2 Pro", "M2 Max",
            "M3", "M3 Pro", "M3 Max",
            "M4", "M4 Pro", "M4 Max",
        ]
