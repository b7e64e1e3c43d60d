"""
Period labels (7D / 30D / 90D / all) and what each one means upstream.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

DEFAULT_PERIOD = "7D"

# label -> (WakaTime range name, averaging/lookback days, GA4 relative start date)
PERIODS: Dict[str, Dict[str, Any]] = {
    "7D": {"wakatime_range": "last_7_days", "days": 7, "ga4_start": "7daysAgo"},
    "30D": {"wakatime_range": "last_30_days", "days": 30, "ga4_start": "30daysAgo"},
    "90D": {"wakatime_range": "last_6_months", "days": 180, "ga4_start": "90daysAgo"},
    "all": {"wakatime_range": "all_time", "days": 365, "ga4_start": "365daysAgo"},
}


def parse_period(value: Optional[str]) -> str:
    v = (value or "").strip()
    if v in PERIODS:
        return v
    # Accept "7d", "ALL" etc.
    for label in PERIODS:
        if label.lower() == v.lower():
            return label
    return DEFAULT_PERIOD


def period_days(label: Optional[str]) -> int:
    return int(PERIODS[parse_period(label)]["days"])


def wakatime_range(label: Optional[str]) -> str:
    return str(PERIODS[parse_period(label)]["wakatime_range"])


def ga4_start_date(label: Optional[str]) -> str:
    return str(PERIODS[parse_period(label)]["ga4_start"])
