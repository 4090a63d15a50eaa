# src/models/tracking.py

"""Subscriber and tracking-rule models."""

from dataclasses import dataclass, field
from typing import Any


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class RuleFilters:
    """Filter set of a tracking rule; ``None`` fields impose no constraint."""

    product_type: str | None = None
    chip: str | None = None
    color: str | None = None
    min_memory: int | None = None
    max_price: int | None = None
    min_storage: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_type": self.product_type,
            "chip": self.chip,
            "color": self.color,
            "min_memory": self.min_memory,
            "max_price": self.max_price,
            "min_storage": self.min_storage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RuleFilters":
        data = data or {}
        return cls(
            product_type=_optional_str(data.get("product_type")),
            chip=_optional_str(data.get("chip")),
            color=_optional_str(data.get("color")),
            min_memory=_optional_int(data.get("min_memory")),
            max_price=_optional_int(data.get("max_price")),
            min_storage=_optional_int(data.get("min_storage")),
        )


@dataclass
class TrackingRule:
    """A named filter owned by exactly one subscriber."""

    id: str
    name: str
    filters: RuleFilters = field(default_factory=RuleFilters)
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "filters": self.filters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackingRule":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            filters=RuleFilters.from_dict(data.get("filters")),
            enabled=bool(data.get("enabled", True)),
        )


@dataclass
class SummarySettings:
    """Daily summary preference: enabled flag and local "HH:MM" time."""

    enabled: bool = False
    time: str = "09:00"

    def scheduled_minutes(self) -> int | None:
        """Minutes after midnight for ``time``, or None when malformed."""
        try:
            hour, minute = self.time.split(":", 1)
            total = int(hour) * 60 + int(minute)
        except (AttributeError, ValueError):
            return None
        if not 0 <= total < 24 * 60:
            return None
        return total


@dataclass
class Subscriber:
    """A notification recipient (the id doubles as the LINE user id)."""

    id: str
    is_active: bool = True
    notification_preferences: dict[str, bool] = field(
        default_factory=lambda: {"line": True}
    )
    summary_settings: SummarySettings = field(
        default_factory=SummarySettings
    )
    last_summary_date: str | None = None
    email: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "is_active": self.is_active,
            "notification_preferences": dict(
                self.notification_preferences
            ),
            "summary_settings": {
                "enabled": self.summary_settings.enabled,
                "time": self.summary_settings.time,
            },
            "last_summary_date": self.last_summary_date,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subscriber":
        summary = data.get("summary_settings") or {}
        prefs = data.get("notification_preferences")
        return cls(
            id=str(data.get("id", "")),
            is_active=bool(data.get("is_active", True)),
            notification_preferences=(
                dict(prefs) if isinstance(prefs, dict) else {"line": True}
            ),
            summary_settings=SummarySettings(
                enabled=bool(summary.get("enabled", False)),
                time=str(summary.get("time", "09:00")),
            ),
            last_summary_date=data.get("last_summary_date"),
            email=str(data.get("email", "") or ""),
        )
