# src/models/snapshot.py

"""Point-in-time records: history entries, daily snapshots, audit log."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.models.product import Product


@dataclass
class HistoryEntry:
    """Most recent observation of one identity key."""

    product: Product
    last_seen: datetime
    first_seen: datetime


@dataclass
class DailySnapshot:
    """Full catalog capture for one calendar date (``YYYY-MM-DD``)."""

    date: str
    products: list[Product] = field(
        default_factory=lambda: list[Product]()
    )
    total_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "products": [p.to_dict() for p in self.products],
            "total_count": self.total_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailySnapshot":
        products = [
            Product.from_dict(p)
            for p in data.get("products", [])
            if isinstance(p, dict)
        ]
        return cls(
            date=str(data.get("date", "")),
            products=products,
            total_count=int(data.get("total_count", len(products))),
        )


@dataclass
class NotificationRecord:
    """Append-only audit entry for a delivered message."""

    subscriber_id: str
    message: str
    product_ids: list[str]
    sent_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscriber_id": self.subscriber_id,
            "message": self.message,
            "product_ids": list(self.product_ids),
            "sent_at": self.sent_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationRecord":
        return cls(
            subscriber_id=str(data.get("subscriber_id", "")),
            message=str(data.get("message", "")),
            product_ids=[str(p) for p in data.get("product_ids", [])],
            sent_at=datetime.fromisoformat(str(data["sent_at"])),
        )


@dataclass
class CycleResult:
    """Outcome of one scrape → detect → notify → persist cycle."""

    total_products: int = 0
    new_products: int = 0
    total_new_matches: int = 0
    notified_subscribers: int = 0
    degraded: bool = False
    skipped: bool = False


@dataclass
class SummaryReport:
    """Day-over-day delta between two snapshots."""

    date: str
    new_count: int = 0
    categories: dict[str, int] = field(
        default_factory=lambda: dict[str, int]()
    )
    total_change: int = 0
    total_count: int = 0

    @property
    def has_news(self) -> bool:
        return self.new_count > 0 or self.total_change > 0

    def format(self) -> str:
        """Render the summary text sent to subscribers."""
        header = f"📊 Daily summary ({self.date})\n\n"
        if not self.has_news:
            return (
                f"{header}No new refurbished listings yesterday.\n"
                f"📱 Current total: {self.total_count}"
            )

        lines = [header.rstrip("\n"), ""]
        if self.new_count > 0:
            lines.append(f"🆕 New listings: {self.new_count}")
            lines.append("📱 By category:")
            for category, count in self.categories.items():
                lines.append(f"• {category}: {count}")
            lines.append("")

        total = f"📱 Current total: {self.total_count}"
        if self.total_change != 0:
            total += f" ({self.total_change:+d} vs previous day)"
        lines.append(total)
        return "\n".join(lines)
