# src/parsers/apple_parser.py

"""Specification parser for Apple's Taiwan refurbished store."""

import re

from src.models.product import ProductSpec
from src.parsers.base_parser import BaseParser


class AppleParser(BaseParser):
    """Parse apple.com/tw refurbished listing names.

    Apple titles look like ``整修品 13 吋 MacBook Air Apple M2 晶片配備
    8 核心 CPU … - 午夜色``; the description usually repeats the name.
    """

    CHIP_PATTERNS: list[re.Pattern[str]] = [
        re.compile(r"Apple (M\d+(?:\s+(?:Pro|Max|Ultra))?)", re.I),
        re.compile(r"(M\d+(?:\s+(?:Pro|Max|Ultra))?)\s*晶片", re.I),
        re.compile(r"(M\d+(?:\s+(?:Pro|Max|Ultra))?)", re.I),
    ]

    MEMORY_PATTERNS: list[re.Pattern[str]] = [
        re.compile(r"(\d+)GB\s*統一記憶體", re.I),
        re.compile(r"(\d+)GB\s*記憶體", re.I),
    ]

    # (pattern, unit)
    STORAGE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
        (re.compile(r"(\d+(?:\.\d+)?)TB", re.I), "TB"),
        (re.compile(r"(\d+)GB\s*SSD", re.I), "GB"),
        (re.compile(r"(\d+)GB\s*儲存", re.I), "GB"),
    ]

    COLORS: list[str] = [
        "銀色",
        "太空灰色",
        "太空黑色",
        "星光色",
        "午夜色",
        "天藍色",
        "玫瑰金色",
        "金色",
        "紫色",
        "綠色",
        "藍色",
        "紅色",
        "黑色",
        "白色",
    ]

    @classmethod
    def parse_specs(
        cls, name: str, description: str, category: str | None,
    ) -> ProductSpec:
        norm_name = cls.normalize_text(name)
        norm_desc = cls.normalize_text(description)

        spec = cls.create_spec(category)
        spec.product_type = cls.parse_basic_product_type(norm_name)
        spec.screen_size = cls.parse_number_with_unit(norm_name, "吋")
        spec.chip = cls.parse_chip(norm_name, norm_desc)
        spec.memory = cls.parse_memory(norm_name, norm_desc)
        spec.storage = cls.parse_storage(norm_name, norm_desc)
        spec.color = cls.find_color(norm_name, cls.COLORS)
        return spec

    @classmethod
    def parse_chip(cls, name: str, description: str) -> str | None:
        for pattern in cls.CHIP_PATTERNS:
            match = pattern.search(name) or pattern.search(description)
            if match:
                chip = re.sub(r"Apple\s+", "", match.group(1), flags=re.I)
                return chip.replace("晶片", "").strip()
        return None

    @classmethod
    def parse_memory(cls, name: str, description: str) -> str | None:
        for pattern in cls.MEMORY_PATTERNS:
            match = pattern.search(description) or pattern.search(name)
            if match:
                return f"{match.group(1)}GB"
        return None

    @classmethod
    def parse_storage(cls, name: str, description: str) -> str | None:
        for pattern, unit in cls.STORAGE_PATTERNS:
            match = pattern.search(description) or pattern.search(name)
            if match:
                return f"{match.group(1)}{unit}"
        return None

    @classmethod
    def validate_specs(cls, spec: ProductSpec) -> bool:
        """Apple listings must at least resolve a product type."""
        return spec.product_type is not None
