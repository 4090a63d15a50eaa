# src/parsers/base_parser.py

"""Shared helpers and contract for per-source specification parsers.

A parser maps the raw ``(name, description, category)`` text of a
listing to a :class:`ProductSpec`.  Parsers never perform I/O and never
raise: a field that cannot be resolved stays ``None``.

Pattern tables are ordered; the first pattern that matches wins, so a
specific pattern (``iPad Pro``) must precede a generic one (``iPad``).
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from src.models.product import ProductSpec

_NBSP_RE = re.compile("\u00a0")
_WHITESPACE_RE = re.compile(r"\s+")


class BaseParser(ABC):
    """Abstract base for source parsers (all methods are classmethods)."""

    # (pattern, product type) in precedence order
    BASIC_PRODUCT_TYPES: list[tuple[re.Pattern[str], str]] = [
        (re.compile(r"MacBook\s*Air", re.I), "MacBook Air"),
        (re.compile(r"MacBook\s*Pro", re.I), "MacBook Pro"),
        (re.compile(r"Mac\s*Studio", re.I), "Mac Studio"),
        (re.compile(r"Mac\s*mini", re.I), "Mac mini"),
        (re.compile(r"iMac", re.I), "iMac"),
        (re.compile(r"iPad\s*Pro", re.I), "iPad Pro"),
        (re.compile(r"iPad\s*Air", re.I), "iPad Air"),
        (re.compile(r"iPad\s*mini", re.I), "iPad mini"),
        (re.compile(r"iPad", re.I), "iPad"),
        (re.compile(r"Apple\s*TV", re.I), "Apple TV"),
    ]

    # ── Contract ─────────────────────────────────────────

    @classmethod
    @abstractmethod
    def parse_specs(
        cls, name: str, description: str, category: str | None,
    ) -> ProductSpec:
        """Parse raw listing text into a ProductSpec."""
        ...

    @classmethod
    @abstractmethod
    def validate_specs(cls, spec: ProductSpec) -> bool:
        """Return True if the spec is plausible for this source."""
        ...

    @classmethod
    def format_specs(cls, spec: ProductSpec) -> str:
        """Join present fields in a fixed order, skipping unresolved ones."""
        parts = [
            value
            for value in (
                spec.product_type,
                spec.screen_size,
                spec.chip,
                spec.memory,
                spec.storage,
                spec.color,
            )
            if value
        ]
        return " ".join(parts)

    # ── Helpers ──────────────────────────────────────────

    @staticmethod
    def create_spec(category: str | None = None, **fields: Any) -> ProductSpec:
        """Build an empty spec carrying the listing's category."""
        return ProductSpec(category=category or "Other", **fields)

    @staticmethod
    def normalize_text(text: Any) -> str:
        """Collapse non-breaking spaces and whitespace runs, then trim."""
        if not text or not isinstance(text, str):
            return ""
        text = _NBSP_RE.sub(" ", text)
        return _WHITESPACE_RE.sub(" ", text).strip()

    @staticmethod
    def find_first_match(
        text: str, patterns: Iterable[re.Pattern[str]],
    ) -> str | None:
        """Return the first capture group (or whole match) of the first hit."""
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                if match.groups() and match.group(1):
                    return match.group(1)
                return match.group(0)
        return None

    @staticmethod
    def parse_number_with_unit(
        text: str,
        unit: str,
        exclude_words: Iterable[str] = (),
    ) -> str | None:
        """Parse ``<number><unit>`` such as ``13吋`` or ``8GB``.

        A match followed anywhere by one of *exclude_words* is rejected.
        """
        words = [re.escape(w) for w in exclude_words]
        exclude = f"(?!.*(?:{'|'.join(words)}))" if words else ""
        pattern = re.compile(
            rf"(\d+(?:\.\d+)?)\s*{re.escape(unit)}{exclude}", re.I
        )
        match = pattern.search(text)
        return f"{match.group(1)}{unit}" if match else None

    @staticmethod
    def find_color(text: str, colors: Iterable[str]) -> str | None:
        """Return the first colour in *colors* that occurs in *text*."""
        for color in colors:
            if color in text:
                return color
        return None

    @classmethod
    def parse_basic_product_type(cls, name: str) -> str | None:
        for pattern, product_type in cls.BASIC_PRODUCT_TYPES:
            if pattern.search(name):
                return product_type
        return None
