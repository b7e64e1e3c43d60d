"""
Activity analytics: pure transformations between fetched provider data and the dashboard.

What lives here:
- Time-series alignment (pageviews / sessions / coding minutes joined by date)
- Current + longest coding streaks
- Period-over-period trend (percent change + direction)
- Rule-based insights for the dashboard header
- Weekly summary with a single narrative message
- Small derivations the cards need (best day, top languages, weekday totals, repo language shares)

Nothing in this module raises on malformed input. Bad records are dropped,
missing values count as zero, and missing comparisons come back "neutral".
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pulseboard.models import (
    DOWN,
    NEUTRAL,
    POSITIVE,
    UP,
    AlignedPoint,
    DayRecord,
    Insight,
    SeriesPoint,
    StreakResult,
    TrendResult,
    WeeklySummary,
)
from pulseboard.periods import period_days

logger = logging.getLogger(__name__)

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


# -----------------------------
# Utility helpers
# -----------------------------
def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _to_number(v: Any) -> float:
    if v is None or isinstance(v, bool):
        return 0.0
    try:
        n = float(v)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(n):
        return 0.0
    return n


def _clean_value(v: Any) -> float:
    n = max(0.0, _to_number(v))
    return int(n) if n.is_integer() else n


def _parse_date(v: Any) -> Optional[dt.date]:
    """
    Accepts date/datetime objects or strings starting with YYYY-MM-DD (time part ignored).
    """
    if isinstance(v, dt.datetime):
        return v.date()
    if isinstance(v, dt.date):
        return v
    if not isinstance(v, str) or len(v) < 10:
        return None
    try:
        return dt.date.fromisoformat(v[:10])
    except ValueError:
        return None


def _dig(obj: Any, *keys: str) -> Any:
    for k in keys:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(k)
    return obj


def _format_number(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else f"{n:g}"


def short_date_label(value: str) -> str:
    d = _parse_date(value)
    if d is None:
        return value
    return f"{d.day:02d} {MONTHS[d.month - 1]}"


def _month_day(d: dt.date) -> str:
    return f"{MONTHS[d.month - 1]} {d.day}"


# -----------------------------
# Time-series normalizer
# -----------------------------
def coerce_series_points(raw: Any) -> List[SeriesPoint]:
    """
    Accepts SeriesPoint objects, Umami {"x", "y"} points or {"date", "value"} points.
    """
    if not isinstance(raw, (list, tuple)):
        return []

    points: List[SeriesPoint] = []
    for item in raw:
        if isinstance(item, SeriesPoint):
            date_value, value = item.date, item.value
        elif isinstance(item, Mapping):
            date_value = item.get("x", item.get("date"))
            value = item.get("y", item.get("value"))
        else:
            continue
        day = _parse_date(date_value)
        if day is None:
            logger.debug("Dropping series point with bad date: %r", date_value)
            continue
        points.append(SeriesPoint(date=day.isoformat(), value=_clean_value(value)))
    return points


def align_series(series: Mapping[str, Any]) -> List[AlignedPoint]:
    """
    Join N named series on their (truncated) dates, ascending; absent values become 0.
    """
    if not isinstance(series, Mapping):
        return []

    columns: Dict[str, Dict[str, float]] = {}
    for name, raw in series.items():
        col: Dict[str, float] = {}
        for p in coerce_series_points(raw):
            col[p.date] = col.get(p.date, 0) + p.value
        columns[name] = col

    dates = sorted(set().union(*(c.keys() for c in columns.values())))
    return [
        AlignedPoint(
            date=d,
            label=short_date_label(d),
            values={name: col.get(d, 0) for name, col in columns.items()},
        )
        for d in dates
    ]


def normalize_traffic(pageviews: Any, sessions: Any) -> List[AlignedPoint]:
    return align_series({"pageviews": pageviews, "sessions": sessions})


def series_total(raw: Any) -> float:
    return sum(p.value for p in coerce_series_points(raw))


# -----------------------------
# Day records + streaks
# -----------------------------
def coerce_day_records(raw: Any) -> List[DayRecord]:
    """
    Build one DayRecord per date, ascending. Accepts DayRecord objects, WakaTime
    summary days ({"range": {"date"}, "grand_total": {"total_seconds"}}) or flat
    {"date", "active_seconds"} mappings. Same-date records are summed.
    """
    if not isinstance(raw, (list, tuple)):
        return []

    totals: Dict[dt.date, int] = {}
    for item in raw:
        if isinstance(item, DayRecord):
            day, seconds = item.date, item.active_seconds
        elif isinstance(item, Mapping):
            if "range" in item or "grand_total" in item:
                day = _parse_date(_dig(item, "range", "date"))
                seconds = _dig(item, "grand_total", "total_seconds")
            else:
                day = _parse_date(item.get("date"))
                seconds = item.get("active_seconds", item.get("total_seconds"))
        else:
            continue

        if day is None or seconds is None:
            logger.debug("Dropping day record without date/activity: %r", item)
            continue
        totals[day] = totals.get(day, 0) + _round_half_up(max(0.0, _to_number(seconds)))

    return [DayRecord(date=d, active_seconds=s) for d, s in sorted(totals.items())]


def calculate_streaks(records: Any) -> StreakResult:
    """
    Current streak: run of consecutive active days ending at the most recent record.
    Longest streak: best run anywhere, where a consecutive idle day resets it to 0
    and a date gap restarts it.
    """
    days = sorted(coerce_day_records(records), key=lambda r: r.date, reverse=True)
    if not days:
        return StreakResult()

    first = days[0]
    current = 1 if first.is_active else 0
    running = current
    longest = running
    counting = first.is_active
    prev = first.date

    for rec in days[1:]:
        consecutive = (prev - rec.date).days == 1
        if consecutive and rec.is_active:
            running += 1
            if counting:
                current += 1
        elif consecutive:
            running = 0
            counting = False
        else:
            running = 1 if rec.is_active else 0
            counting = False
        longest = max(longest, running)
        prev = rec.date

    return StreakResult(current=current, longest=max(longest, current))


def streak_message(current: int) -> str:
    if current >= 7:
        return "Amazing! You hit a weekly streak!"
    if current >= 5:
        return "Excellent consistency!"
    if current >= 3:
        return "Great momentum, keep it up!"
    if current >= 1:
        return "Good start!"
    return "Start coding to build a streak!"


def count_active_days(records: Any) -> int:
    return sum(1 for r in coerce_day_records(records) if r.is_active)


# -----------------------------
# Trend / change
# -----------------------------
def calculate_trend(current: Any, previous: Any = None) -> TrendResult:
    prev = _to_number(previous)
    if prev == 0:
        return TrendResult(percent=0, direction=NEUTRAL)

    raw = ((_to_number(current) - prev) / prev) * 100
    if not math.isfinite(raw):
        return TrendResult(percent=0, direction=NEUTRAL)

    change = _round_half_up(raw)
    if change > 0:
        return TrendResult(percent=change, direction=UP)
    if change < 0:
        return TrendResult(percent=abs(change), direction=DOWN)
    return TrendResult(percent=0, direction=NEUTRAL)


def daily_activity_change(today_seconds: Any, average_seconds: Any) -> TrendResult:
    return calculate_trend(today_seconds, average_seconds)


# -----------------------------
# Insights
# -----------------------------
InsightRule = Callable[[Dict[str, Any]], Optional[Insight]]


def _productivity_insight(ctx: Dict[str, Any]) -> Optional[Insight]:
    denominator = 7 if ctx["period_label"] == "7D" else 30
    avg_hours = ctx["total_coding_seconds"] / 3600 / denominator
    if avg_hours <= 2:
        return None
    return Insight(
        text=f"Highly productive {ctx['period_label']} with an average of {avg_hours:.1f}h daily coding.",
        polarity=POSITIVE,
    )


def _traffic_peak_insight(ctx: Dict[str, Any]) -> Optional[Insight]:
    if ctx["total_pageviews"] <= 0:
        return None
    # max() keeps the first of equal values
    peak = max(ctx["pageviews"], key=lambda p: p.value)
    return Insight(
        text=f"Traffic peaked on {_month_day(dt.date.fromisoformat(peak.date))} with {_format_number(peak.value)} views.",
        polarity=NEUTRAL,
    )


def _correlation_insight(ctx: Dict[str, Any]) -> Optional[Insight]:
    if ctx["active_coding_days"] > 5 and ctx["total_pageviews"] > 100:
        return Insight(
            text="Consistency in coding correlates with increased portfolio visibility.",
            polarity=POSITIVE,
        )
    return None


INSIGHT_RULES: List[Tuple[str, InsightRule]] = [
    ("productivity", _productivity_insight),
    ("traffic_peak", _traffic_peak_insight),
    ("correlation", _correlation_insight),
]


def generate_insights(
    pageviews: Any = None,
    sessions: Any = None,
    active_coding_days: Any = 0,
    total_coding_seconds: Any = 0,
    period_label: str = "7D",
) -> List[Insight]:
    """
    Evaluate every rule in INSIGHT_RULES in order; each firing rule adds one insight.
    """
    pv = coerce_series_points(pageviews)
    ctx: Dict[str, Any] = {
        "pageviews": pv,
        "sessions": coerce_series_points(sessions),
        "total_pageviews": sum(p.value for p in pv),
        "active_coding_days": int(_to_number(active_coding_days)),
        "total_coding_seconds": max(0.0, _to_number(total_coding_seconds)),
        "period_label": period_label,
    }

    insights: List[Insight] = []
    for name, rule in INSIGHT_RULES:
        found = rule(ctx)
        if found is not None:
            logger.debug("Insight rule %s fired", name)
            insights.append(found)
    return insights


# -----------------------------
# Weekly summary
# -----------------------------
def format_hours(seconds: Any) -> str:
    s = _to_number(seconds)
    if s <= 0:
        return "0h"
    if s < 3600:
        return f"{_round_half_up(s / 60)}m"
    hours = s / 3600
    if hours < 10:
        text = f"{hours:.1f}"
        if text.endswith(".0"):
            text = text[:-2]
    else:
        text = str(_round_half_up(hours))
    return f"{text}h"


def format_duration(seconds: Any) -> str:
    s = _to_number(seconds)
    if s <= 0:
        return "0 mins"
    h = int(s // 3600)
    m = _round_half_up((s % 3600) / 60)
    if h > 0:
        return f"{h} hr {m} mins"
    return f"{m} mins"


# (predicate(hours, active_days, time_trend), message(hours, active_days, time_trend))
WeeklyRule = Tuple[Callable[[float, int, TrendResult], bool], Callable[[float, int, TrendResult], str]]

WEEKLY_RULES: List[WeeklyRule] = [
    (
        lambda h, d, t: t.direction == UP and t.percent >= 20,
        lambda h, d, t: f"Productivity is up {t.percent}% this week! Keep the momentum going.",
    ),
    (
        lambda h, d, t: t.direction == DOWN and t.percent >= 20,
        lambda h, d, t: f"Coding time is down {t.percent}% from last week. Keep at it!",
    ),
    (
        lambda h, d, t: d >= 6,
        lambda h, d, t: "Outstanding consistency! You coded almost every day this week.",
    ),
    (
        lambda h, d, t: h >= 20,
        lambda h, d, t: "A productive week with more than 20 hours of coding!",
    ),
    (
        lambda h, d, t: d >= 4,
        lambda h, d, t: f"Good consistency with {d} active coding days.",
    ),
    (
        lambda h, d, t: h >= 10,
        lambda h, d, t: "Solid progress this week. Keep pushing!",
    ),
]

FALLBACK_WEEKLY_MESSAGE = "Keep tracking your coding progress for more insights."


def weekly_insight(total_seconds: Any, active_days: Any, time_trend: TrendResult) -> str:
    hours = max(0.0, _to_number(total_seconds)) / 3600
    days = int(_to_number(active_days))
    for matches, message in WEEKLY_RULES:
        if matches(hours, days, time_trend):
            return message(hours, days, time_trend)
    return FALLBACK_WEEKLY_MESSAGE


def _optional_count(v: Any) -> Optional[int]:
    if v is None:
        return None
    return int(max(0.0, _to_number(v)))


def summarize_week(
    total_seconds: Any,
    active_days: Any,
    previous_week_seconds: Any = None,
    previous_week_active_days: Any = None,
) -> WeeklySummary:
    total = int(max(0.0, _to_number(total_seconds)))
    days = int(max(0.0, _to_number(active_days)))
    prev_total = _optional_count(previous_week_seconds)
    prev_days = _optional_count(previous_week_active_days)

    time_trend = calculate_trend(total, prev_total)
    days_trend = calculate_trend(days, prev_days)

    return WeeklySummary(
        total_seconds=total,
        active_days=days,
        previous_week_seconds=prev_total,
        previous_week_active_days=prev_days,
        time_trend=time_trend,
        days_trend=days_trend,
        insight=weekly_insight(total, days, time_trend),
        total_formatted=format_hours(total),
        daily_average_formatted=format_hours(_round_half_up(total / 7)),
    )


def split_weeks(records: Any, end_date: dt.date) -> Dict[str, Any]:
    """
    Totals for the 7 days ending at end_date and for the 7 days before that.
    Previous-week values are None when that window has no records at all.
    """
    days = coerce_day_records(records)
    current_start = end_date - dt.timedelta(days=6)
    previous_end = end_date - dt.timedelta(days=7)
    previous_start = end_date - dt.timedelta(days=13)

    current = [r for r in days if current_start <= r.date <= end_date]
    previous = [r for r in days if previous_start <= r.date <= previous_end]

    return {
        "total_seconds": sum(r.active_seconds for r in current),
        "active_days": sum(1 for r in current if r.is_active),
        "previous_week_seconds": sum(r.active_seconds for r in previous) if previous else None,
        "previous_week_active_days": sum(1 for r in previous if r.is_active) if previous else None,
    }


# -----------------------------
# Card derivations
# -----------------------------
def summarize_coding_days(days: Any, period_label: Optional[str] = None) -> Dict[str, Any]:
    records = coerce_day_records(days)
    total = sum(r.active_seconds for r in records)

    best: Optional[DayRecord] = None
    for r in records:
        if r.is_active and (best is None or r.active_seconds > best.active_seconds):
            best = r

    return {
        "range": {
            "start_date": records[0].date.isoformat() if records else None,
            "end_date": records[-1].date.isoformat() if records else None,
        },
        "total_seconds": total,
        "average_daily_seconds": _round_half_up(total / period_days(period_label)),
        "active_days": sum(1 for r in records if r.is_active),
        "best_day": (
            {
                "date": best.date.isoformat(),
                "seconds": best.active_seconds,
                "formatted": format_duration(best.active_seconds),
            }
            if best
            else None
        ),
    }


def top_languages(summary_days: Any, limit: int = 6) -> List[Dict[str, Any]]:
    if not isinstance(summary_days, (list, tuple)):
        return []

    seconds_by_lang: Dict[str, float] = {}
    for day in summary_days:
        langs = day.get("languages") if isinstance(day, Mapping) else None
        if not isinstance(langs, list):
            continue
        for lang in langs:
            name = lang.get("name") if isinstance(lang, Mapping) else None
            if not name:
                continue
            seconds_by_lang[name] = seconds_by_lang.get(name, 0.0) + max(0.0, _to_number(lang.get("total_seconds")))

    total = sum(seconds_by_lang.values())
    ranked = sorted(seconds_by_lang.items(), key=lambda kv: kv[1], reverse=True)[: max(0, int(limit))]
    return [{"name": name, "percent": round((secs / total) * 100, 2) if total else 0.0} for name, secs in ranked]


def weekday_breakdown(records: Any) -> List[Dict[str, Any]]:
    totals = [0] * 7
    for r in coerce_day_records(records):
        totals[r.date.weekday()] += r.active_seconds
    return [{"name": name, "seconds": secs, "hours": round(secs / 3600, 1)} for name, secs in zip(WEEKDAYS, totals)]


def language_breakdown(byte_counts: Any) -> List[Dict[str, Any]]:
    """
    GitHub repo languages ({name: bytes}) as [{name, bytes, percent}], largest first.
    """
    if not isinstance(byte_counts, Mapping):
        return []

    sizes = {str(name): int(max(0.0, _to_number(n))) for name, n in byte_counts.items() if name}
    total = sum(sizes.values())
    ranked = sorted(sizes.items(), key=lambda kv: kv[1], reverse=True)
    return [
        {"name": name, "bytes": size, "percent": round((size / total) * 100, 1) if total else 0.0}
        for name, size in ranked
    ]
