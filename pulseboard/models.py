"""
Value types passed between providers, the analytics core and the routes.

Everything here is immutable and rebuilt per request.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

UP = "up"
DOWN = "down"
NEUTRAL = "neutral"

POSITIVE = "positive"
NEGATIVE = "negative"
POLARITIES = (POSITIVE, NEGATIVE, NEUTRAL)


@dataclass(frozen=True)
class DayRecord:
    date: dt.date
    active_seconds: int = 0

    @property
    def is_active(self) -> bool:
        return self.active_seconds > 0

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "active_seconds": int(self.active_seconds)}


@dataclass(frozen=True)
class SeriesPoint:
    date: str  # YYYY-MM-DD
    value: float = 0.0


@dataclass(frozen=True)
class AlignedPoint:
    """
    One date of an aligned multi-series; `values` holds one number per source series.
    """

    date: str
    label: str
    values: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "label": self.label, **self.values}


@dataclass(frozen=True)
class StreakResult:
    current: int = 0
    longest: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class TrendResult:
    percent: int = 0
    direction: str = NEUTRAL

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Insight:
    text: str
    polarity: str = NEUTRAL

    def __post_init__(self) -> None:
        if self.polarity not in POLARITIES:
            raise ValueError(f"Unknown insight polarity: {self.polarity!r}")

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class WeeklySummary:
    total_seconds: int
    active_days: int
    time_trend: TrendResult
    days_trend: TrendResult
    insight: str
    total_formatted: str
    daily_average_formatted: str
    previous_week_seconds: Optional[int] = None
    previous_week_active_days: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_seconds": self.total_seconds,
            "active_days": self.active_days,
            "previous_week_seconds": self.previous_week_seconds,
            "previous_week_active_days": self.previous_week_active_days,
            "total_formatted": self.total_formatted,
            "daily_average_formatted": self.daily_average_formatted,
            "time_trend": self.time_trend.to_dict(),
            "days_trend": self.days_trend.to_dict(),
            "insight": self.insight,
        }
