# src/models/product.py

"""Product data model for inter-module data flow."""

from dataclasses import dataclass, field, replace
from typing import Any


def identity_key(url: str) -> str:
    """Return the dedup key for a listing URL: everything before the first '?'."""
    return url.split("?", 1)[0]


@dataclass
class ProductSpec:
    """Normalised specification parsed from a listing's text.

    ``None`` means the field could not be determined, not that it
    does not apply to the product.
    """

    product_type: str | None = None
    screen_size: str | None = None
    chip: str | None = None
    memory: str | None = None
    storage: str | None = None
    color: str | None = None
    category: str = "Other"

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_type": self.product_type,
            "screen_size": self.screen_size,
            "chip": self.chip,
            "memory": self.memory,
            "storage": self.storage,
            "color": self.color,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ProductSpec":
        data = data or {}
        return cls(
            product_type=data.get("product_type"),
            screen_size=data.get("screen_size"),
            chip=data.get("chip"),
            memory=data.get("memory"),
            storage=data.get("storage"),
            color=data.get("color"),
            category=str(data.get("category") or "Other"),
        )


@dataclass
class Product:
    """Represents a single refurbished listing from any source."""

    name: str
    url: str
    price_text: str = ""
    price_value: int = 0
    image_url: str = ""
    source_id: str = ""
    category: str = "Other"
    spec: ProductSpec = field(default_factory=ProductSpec)
    description: str = ""
    # Attached during rule matching only; never persisted.
    matching_rule_names: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @property
    def identity_key(self) -> str:
        return identity_key(self.url)

    def with_rules(self, rule_names: list[str]) -> "Product":
        """Return a copy annotated with the names of the rules it matched."""
        return replace(self, matching_rule_names=list(rule_names))

    def to_dict(self) -> dict[str, Any]:
        """Serialise for the store (rule annotations are dropped)."""
        return {
            "name": self.name,
            "url": self.url,
            "price_text": self.price_text,
            "price_value": self.price_value,
            "image_url": self.image_url,
            "source_id": self.source_id,
            "category": self.category,
            "spec": self.spec.to_dict(),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        return cls(
            name=str(data.get("name", "")),
            url=str(data.get("url", "")),
            price_text=str(data.get("price_text", "")),
            price_value=int(data.get("price_value") or 0),
            image_url=str(data.get("image_url", "")),
            source_id=str(data.get("source_id", "")),
            category=str(data.get("category") or "Other"),
            spec=ProductSpec.from_dict(data.get("spec")),
            description=str(data.get("description", "")),
        )
