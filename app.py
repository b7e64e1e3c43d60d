"""
pulseboard: personal analytics dashboard API (Flask)

What it does:
- Proxies WakaTime (coding time), GitHub (contributions, repo languages), Umami and GA4 (site traffic)
- Normalizes their payloads into chart-ready series
- Derives coding streaks, weekly summary, trends and dashboard insights
- Caches upstream-backed responses in memory for CACHE_TTL_SECONDS

Setup:
  pip install -e .

Run:
  export WAKATIME_API_KEY="waka_..."
  export GITHUB_TOKEN="github_pat_..." GITHUB_USERNAME="octocat"
  export UMAMI_API_KEY="..." UMAMI_WEBSITE_ID="..."
  python app.py
  open http://localhost:5000

Endpoints (all GET, `range` is one of 7D / 30D / 90D / all, default 7D):
  /api/wakatime/daily?range=     -> per-day coding seconds, streaks, weekday totals
  /api/wakatime/summary?range=   -> total, daily average, best day, top languages
  /api/wakatime/editors?range=   -> editor usage
  /api/wakatime/projects         -> project list
  /api/github/contributions      -> 365-day contribution calendar + streaks
  /api/github/top-languages      -> language byte shares of GITHUB_LANGUAGES_REPO
  /api/umami?range=              -> pageviews/sessions joined by date
  /api/ga4/summary?range=        -> GA4 users, sessions, pageviews, avg session duration
  /api/ga4/timeseries?range=     -> GA4 daily users + sessions
  /api/ga4/top-pages?range=      -> GA4 pages by views
  /api/active-days               -> active days in the 7 days before today (WakaTime, GitHub fallback)
  /api/consistency?range=        -> current/longest streak + message (default 30D)
  /api/weekly-summary            -> this week vs last week
  /api/insights?range=           -> rule-based insights across providers
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Dict

from flask import Flask, jsonify, request

from pulseboard import analytics, config, providers
from pulseboard.cache import ResponseCache
from pulseboard.periods import parse_period
from pulseboard.providers import MissingCredentialsError, ProviderError

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("pulseboard.app")

# -----------------------------
# Flask app
# -----------------------------
app = Flask(__name__)

_CACHE = ResponseCache(config.CACHE_TTL_SECONDS)


# -----------------------------
# Helpers
# -----------------------------
def _today_utc() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


def _period_arg(default: str = "7D") -> str:
    return parse_period(request.args.get("range") or default)


def _cached_json(endpoint: str, period: str, build: Callable[[], Dict[str, Any]]):
    key = (endpoint, period)
    cached = _CACHE.get(key)
    if cached is not None:
        return jsonify({"cached": True, **cached})

    payload = build()
    _CACHE.set(key, payload)
    return jsonify({"cached": False, **payload})


@app.errorhandler(ProviderError)
def handle_provider_error(e: ProviderError):
    msg = str(e)
    if isinstance(e, MissingCredentialsError):
        status = 500
    elif e.status == 404 or "not found" in msg.lower():
        status = 404
    else:
        status = 502
    logger.warning("Provider error on %s: %s", request.path, msg)
    body: Dict[str, Any] = {"error": msg}
    if e.status is not None:
        body["status"] = e.status
    return jsonify(body), status


@app.errorhandler(500)
def handle_server_error(e):
    original = getattr(e, "original_exception", None) or e
    logger.error("Unexpected error on %s", request.path, exc_info=original)
    return jsonify({"error": f"Unexpected server error: {original}"}), 500


# -----------------------------
# Flask routes
# -----------------------------
@app.route("/", methods=["GET"])
def home():
    return (
        """
        <!doctype html>
        <html>
        <head><meta charset="utf-8"><title>pulseboard</title></head>
        <body style="font-family: system-ui, -apple-system, Segoe UI, Roboto, sans-serif; padding: 24px;">
          <h2>pulseboard API is running</h2>
          <p>Try: <code>/api/weekly-summary</code> or <code>/api/insights?range=30D</code></p>
        </body>
        </html>
        """,
        200,
        {"Content-Type": "text/html; charset=utf-8"},
    )


@app.route("/healthz", methods=["GET"])
def healthz():
    return jsonify(
        {
            "ok": True,
            "providers_configured": {
                "wakatime": bool(config.WAKATIME_API_KEY),
                "github": bool(config.GITHUB_TOKEN and config.GITHUB_USERNAME),
                "umami": bool(config.UMAMI_API_KEY and config.UMAMI_WEBSITE_ID),
                "ga4": bool(config.GOOGLE_GA4_PROPERTY_ID and config.GOOGLE_CLIENT_EMAIL and config.GOOGLE_PRIVATE_KEY),
            },
            "cache_ttl_seconds": config.CACHE_TTL_SECONDS,
        }
    )


@app.route("/api/wakatime/daily", methods=["GET"])
def api_wakatime_daily():
    period = _period_arg()

    def build() -> Dict[str, Any]:
        records = analytics.coerce_day_records(providers.fetch_wakatime_summaries(period))
        return {
            "range": period,
            "days": [r.to_dict() for r in records],
            "active_days": analytics.count_active_days(records),
            "streak": analytics.calculate_streaks(records).to_dict(),
            "weekdays": analytics.weekday_breakdown(records),
        }

    return _cached_json("wakatime-daily", period, build)


@app.route("/api/wakatime/summary", methods=["GET"])
def api_wakatime_summary():
    period = _period_arg()

    def build() -> Dict[str, Any]:
        days = providers.fetch_wakatime_summaries(period)
        summary = analytics.summarize_coding_days(days, period)
        today = _today_utc()
        today_seconds = sum(r.active_seconds for r in analytics.coerce_day_records(days) if r.date == today)
        summary["today"] = {
            "seconds": today_seconds,
            "vs_average": analytics.daily_activity_change(today_seconds, summary["average_daily_seconds"]).to_dict(),
        }
        summary["top_languages"] = analytics.top_languages(days)
        return {"period": period, **summary}

    return _cached_json("wakatime-summary", period, build)


@app.route("/api/wakatime/editors", methods=["GET"])
def api_wakatime_editors():
    period = _period_arg()
    return _cached_json(
        "wakatime-editors",
        period,
        lambda: providers.extract_editors(providers.fetch_wakatime_stats(period)),
    )


@app.route("/api/wakatime/projects", methods=["GET"])
def api_wakatime_projects():
    return _cached_json("wakatime-projects", "all", lambda: {"data": providers.fetch_wakatime_projects()})


@app.route("/api/github/contributions", methods=["GET"])
def api_github_contributions():
    def build() -> Dict[str, Any]:
        cal = providers.fetch_github_calendar(days=365)
        records = providers.flatten_calendar(cal)
        return {
            "total_contributions": int(cal.get("totalContributions") or 0),
            "days": providers.calendar_days(cal),
            "active_days": analytics.count_active_days(records),
            "streak": analytics.calculate_streaks(records).to_dict(),
        }

    return _cached_json("github-contributions", "365d", build)


@app.route("/api/github/top-languages", methods=["GET"])
def api_github_top_languages():
    def build() -> Dict[str, Any]:
        return {
            "repo": config.GITHUB_LANGUAGES_REPO,
            "languages": analytics.language_breakdown(providers.fetch_repo_languages()),
        }

    return _cached_json("github-top-languages", "all", build)


@app.route("/api/umami", methods=["GET"])
def api_umami():
    period = _period_arg()

    def build() -> Dict[str, Any]:
        raw = providers.fetch_umami_pageviews(period)
        return {
            "range": period,
            "series": [p.to_dict() for p in analytics.normalize_traffic(raw["pageviews"], raw["sessions"])],
            "totals": {
                "pageviews": analytics.series_total(raw["pageviews"]),
                "sessions": analytics.series_total(raw["sessions"]),
            },
        }

    return _cached_json("umami", period, build)


@app.route("/api/ga4/summary", methods=["GET"])
def api_ga4_summary():
    period = _period_arg()
    return _cached_json("ga4-summary", period, lambda: {"range": period, "data": providers.fetch_ga4_summary(period)})


@app.route("/api/ga4/timeseries", methods=["GET"])
def api_ga4_timeseries():
    period = _period_arg()
    return _cached_json(
        "ga4-timeseries", period, lambda: {"range": period, "data": providers.fetch_ga4_timeseries(period)}
    )


@app.route("/api/ga4/top-pages", methods=["GET"])
def api_ga4_top_pages():
    period = _period_arg()
    return _cached_json(
        "ga4-top-pages", period, lambda: {"range": period, "data": providers.fetch_ga4_top_pages(period)}
    )


@app.route("/api/active-days", methods=["GET"])
def api_active_days():
    # The 7 days before today, so a partially tracked today never counts.
    today = _today_utc()
    start = today - dt.timedelta(days=7)
    end = today - dt.timedelta(days=1)
    window = {"start": start.isoformat(), "end": end.isoformat()}

    try:
        active = analytics.count_active_days(providers.fetch_wakatime_summaries(start=start, end=end))
        if active == 0:
            raise ProviderError("WakaTime returned 0 active days, falling back to GitHub")
        return jsonify({"source": "wakatime", "range": window, "activeDays": active})
    except ProviderError as e1:
        logger.info("Active days via WakaTime unavailable: %s", e1)
        try:
            cal = providers.fetch_github_calendar(
                start=dt.datetime.combine(start, dt.time.min, tzinfo=dt.timezone.utc),
                end=dt.datetime.combine(end, dt.time.min, tzinfo=dt.timezone.utc),
            )
            active = analytics.count_active_days(providers.flatten_calendar(cal))
            return jsonify({"source": "github", "range": window, "activeDays": active})
        except ProviderError as e2:
            logger.warning("Active days via GitHub unavailable: %s", e2)
            return jsonify(
                {
                    "source": "none",
                    "range": window,
                    "activeDays": 0,
                    "debug": {"wakatimeError": str(e1), "githubError": str(e2)},
                }
            )


@app.route("/api/consistency", methods=["GET"])
def api_consistency():
    period = _period_arg(default="30D")

    def build() -> Dict[str, Any]:
        streak = analytics.calculate_streaks(providers.fetch_wakatime_summaries(period))
        return {
            "range": period,
            "streak": streak.to_dict(),
            "message": analytics.streak_message(streak.current),
        }

    return _cached_json("consistency", period, build)


@app.route("/api/weekly-summary", methods=["GET"])
def api_weekly_summary():
    def build() -> Dict[str, Any]:
        today = _today_utc()
        start = today - dt.timedelta(days=13)
        days = providers.fetch_wakatime_summaries(start=start, end=today)
        weeks = analytics.split_weeks(days, today)
        summary = analytics.summarize_week(**weeks)
        return {"range": {"start": start.isoformat(), "end": today.isoformat()}, **summary.to_dict()}

    return _cached_json("weekly-summary", "7D", build)


@app.route("/api/insights", methods=["GET"])
def api_insights():
    period = _period_arg()

    def build() -> Dict[str, Any]:
        sources: Dict[str, Any] = {}

        try:
            traffic = providers.fetch_umami_pageviews(period)
            sources["umami"] = "ok"
        except ProviderError as e:
            logger.warning("Insights without traffic data: %s", e)
            traffic = {"pageviews": [], "sessions": []}
            sources["umami"] = str(e)

        try:
            days = providers.fetch_wakatime_summaries(period)
            sources["wakatime"] = "ok"
        except ProviderError as e:
            logger.warning("Insights without coding data: %s", e)
            days = []
            sources["wakatime"] = str(e)

        records = analytics.coerce_day_records(days)
        insights = analytics.generate_insights(
            pageviews=traffic["pageviews"],
            sessions=traffic["sessions"],
            active_coding_days=analytics.count_active_days(records),
            total_coding_seconds=sum(r.active_seconds for r in records),
            period_label=period,
        )
        return {"range": period, "insights": [i.to_dict() for i in insights], "sources": sources}

    return _cached_json("insights", period, build)


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.PORT, debug=True)
