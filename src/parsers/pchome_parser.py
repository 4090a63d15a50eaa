# src/parsers/pchome_parser.py

"""Specification parser for PChome 24h marketplace listings."""

import re

from src.models.product import ProductSpec
from src.parsers.base_parser import BaseParser

_CHIP = r"(M\d+(?:\s+(?:Pro|Max|Ultra))?)"


class PChomeParser(BaseParser):
    """Parse PChome listings, which mix Chinese and English wording.

    Unlike the Apple store, name and description are searched together
    because sellers put specs in either.
    """

    # Tried only after the basic product-type table fails.
    MARKETPLACE_PRODUCT_TYPES: list[tuple[re.Pattern[str], str]] = [
        (re.compile(r"Apple\s+MacBook\s+Air", re.I), "MacBook Air"),
        (re.compile(r"Apple\s+MacBook\s+Pro", re.I), "MacBook Pro"),
        (re.compile(r"Apple\s+iPad\s+Pro", re.I), "iPad Pro"),
        (re.compile(r"Apple\s+iPad\s+Air", re.I), "iPad Air"),
        (re.compile(r"Apple\s+iPad\s+mini", re.I), "iPad mini"),
        (re.compile(r"Apple\s+iPad", re.I), "iPad"),
        (re.compile(r"蘋果.*MacBook.*Air", re.I), "MacBook Air"),
        (re.compile(r"蘋果.*MacBook.*Pro", re.I), "MacBook Pro"),
        (re.compile(r"蘋果.*iPad.*Pro", re.I), "iPad Pro"),
        (re.compile(r"蘋果.*iPad.*Air", re.I), "iPad Air"),
        (re.compile(r"蘋果.*iPad", re.I), "iPad"),
    ]

    SCREEN_PATTERNS: list[re.Pattern[str]] = [
        re.compile(r"(\d+(?:\.\d+)?)\s*吋"),
        re.compile(r"(\d+(?:\.\d+)?)\s*inch", re.I),
        re.compile(r'(\d+(?:\.\d+)?)\s*"'),
        re.compile(r"(\d+(?:\.\d+)?)\s*寸"),
    ]

    CHIP_PATTERNS: list[re.Pattern[str]] = [
        re.compile(rf"Apple\s+{_CHIP}\s*晶片", re.I),
        re.compile(rf"{_CHIP}\s*晶片", re.I),
        re.compile(rf"{_CHIP}\s*芯片", re.I),
        re.compile(rf"Apple\s+{_CHIP}\s*chip", re.I),
        re.compile(rf"{_CHIP}\s*chip", re.I),
        re.compile(_CHIP, re.I),
    ]

    MEMORY_PATTERNS: list[re.Pattern[str]] = [
        re.compile(r"(\d+)GB\s*統一記憶體", re.I),
        re.compile(r"(\d+)GB\s*記憶體", re.I),
        re.compile(r"(\d+)GB\s*內存", re.I),
        re.compile(r"記憶體.*?(\d+)GB", re.I),
        re.compile(r"內存.*?(\d+)GB", re.I),
        re.compile(r"(\d+)GB\s*unified\s*memory", re.I),
        re.compile(r"(\d+)GB\s*memory", re.I),
        re.compile(r"(\d+)GB\s*RAM", re.I),
        # Bare "<n>GB" not followed by a storage word
        re.compile(r"(\d+)\s*GB(?!\s*(?:SSD|儲存|storage|硬碟))", re.I),
    ]

    # (pattern, unit)
    STORAGE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
        (re.compile(r"(\d+(?:\.\d+)?)TB", re.I), "TB"),
        (
            re.compile(
                r"(\d+(?:\.\d+)?)\s*TB\s*(?:SSD|儲存|storage|硬碟)", re.I
            ),
            "TB",
        ),
        (re.compile(r"(\d+)GB\s*(?:SSD|儲存|storage|硬碟)", re.I), "GB"),
        (re.compile(r"(\d+)GB\s*儲存", re.I), "GB"),
        (re.compile(r"儲存.*?(\d+)GB", re.I), "GB"),
        (re.compile(r"硬碟.*?(\d+)GB", re.I), "GB"),
    ]

    COLORS: list[str] = [
        "銀色", "太空灰色", "太空黑色", "星光色", "午夜色",
        "天藍色", "玫瑰金色", "金色", "紫色", "綠色",
        "藍色", "紅色", "黑色", "白色", "粉色", "橘色",
        "Silver", "Space Gray", "Space Grey", "Space Black",
        "Starlight", "Midnight", "Sky Blue", "Rose Gold",
        "Gold", "Purple", "Green", "Blue", "Red", "Black",
        "White", "Pink", "Orange",
        "太空灰", "玫瑰金", "深空灰",
    ]

    URL_CATEGORIES: dict[str, str] = {
        "macbook": "Mac",
        "imac": "Mac",
        "mac-mini": "Mac",
        "mac-studio": "Mac",
        "ipad": "iPad",
        "apple-tv": "Apple TV",
        "airpods": "AirPods",
        "watch": "Apple Watch",
    }

    @classmethod
    def parse_specs(
        cls, name: str, description: str, category: str | None,
    ) -> ProductSpec:
        norm_name = cls.normalize_text(name)
        combined = f"{norm_name} {cls.normalize_text(description)}".strip()

        spec = cls.create_spec(category)
        spec.product_type = cls.parse_product_type(norm_name)
        spec.screen_size = cls.parse_screen_size(combined)
        spec.chip = cls.parse_chip(combined)
        spec.memory = cls.parse_memory(combined)
        spec.storage = cls.parse_storage(combined)
        spec.color = cls.find_color(norm_name, cls.COLORS)
        return spec

    @classmethod
    def parse_product_type(cls, name: str) -> str | None:
        basic = cls.parse_basic_product_type(name)
        if basic:
            return basic
        for pattern, product_type in cls.MARKETPLACE_PRODUCT_TYPES:
            if pattern.search(name):
                return product_type
        return None

    @classmethod
    def parse_screen_size(cls, text: str) -> str | None:
        match = cls.find_first_match(text, cls.SCREEN_PATTERNS)
        return f"{match}吋" if match else None

    @classmethod
    def parse_chip(cls, text: str) -> str | None:
        match = cls.find_first_match(text, cls.CHIP_PATTERNS)
        if not match:
            return None
        chip = re.sub(r"Apple\s+", "", match, flags=re.I)
        return re.sub(r"[晶芯]片|chip", "", chip, flags=re.I).strip()

    @classmethod
    def parse_memory(cls, text: str) -> str | None:
        match = cls.find_first_match(text, cls.MEMORY_PATTERNS)
        if not match:
            return None
        digits = re.sub(r"\D", "", match)
        return f"{digits}GB" if digits else None

    @classmethod
    def parse_storage(cls, text: str) -> str | None:
        for pattern, unit in cls.STORAGE_PATTERNS:
            match = pattern.search(text)
            if match:
                return f"{match.group(1)}{unit}"
        return None

    @classmethod
    def validate_specs(cls, spec: ProductSpec) -> bool:
        """Marketplace listings need at least one identifying field."""
        return any(
            value is not None
            for value in (
                spec.product_type, spec.chip, spec.memory, spec.storage,
            )
        )

    @classmethod
    def format_specs(cls, spec: ProductSpec) -> str:
        return super().format_specs(spec) or f"{spec.category} product"

    @classmethod
    def category_from_url(cls, url: str) -> str:
        """Guess a category from keywords in a product URL."""
        if not url:
            return "Other"
        lowered = url.lower()
        for keyword, category in cls.URL_CATEGORIES.items():
            if keyword in lowered:
                return category
        return "Other"
