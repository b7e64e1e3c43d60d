"""
Thin clients for the upstream providers.

- WakaTime: daily summaries, stats (editors), projects
- GitHub GraphQL: contribution calendar
- GitHub REST: repository language byte counts
- Umami: daily pageviews + sessions
- Google Analytics 4 (Data API client): summary, daily series, top pages

Each call is a single request with a timeout; failures surface as ProviderError.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import requests
from google.analytics.data_v1beta import BetaAnalyticsDataClient
from google.analytics.data_v1beta.types import DateRange, Dimension, Metric, RunReportRequest
from google.api_core import exceptions as google_exceptions

from pulseboard import config
from pulseboard.models import DayRecord
from pulseboard.periods import ga4_start_date, period_days, wakatime_range

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MissingCredentialsError(ProviderError):
    pass


# -----------------------------
# HTTP helpers
# -----------------------------
def _request_json(
    method: str,
    url: str,
    *,
    provider: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[dict] = None,
    json: Optional[dict] = None,
    auth: Optional[Tuple[str, str]] = None,
) -> Any:
    try:
        resp = requests.request(
            method,
            url,
            headers=headers,
            params=params,
            json=json,
            auth=auth,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning("%s request failed: %s", provider, e)
        raise ProviderError(f"{provider} request failed: {e}") from e

    if resp.status_code >= 400:
        logger.warning("%s returned %s for %s", provider, resp.status_code, url)
        raise ProviderError(f"{provider} API error {resp.status_code}: {(resp.text or '')[:600]}", status=resp.status_code)

    try:
        return resp.json()
    except ValueError as e:
        raise ProviderError(f"{provider} returned a non-JSON response", status=resp.status_code) from e


# -----------------------------
# WakaTime
# -----------------------------
def _wakatime_auth() -> Tuple[str, str]:
    if not config.WAKATIME_API_KEY:
        raise MissingCredentialsError("Missing WAKATIME_API_KEY")
    # Personal keys go in as the Basic-auth username with an empty password.
    return (config.WAKATIME_API_KEY, "")


def fetch_wakatime_summaries(
    period_label: Optional[str] = None,
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
) -> List[Dict[str, Any]]:
    """
    Per-day summaries, either for an explicit start/end date window or for a period label.
    """
    auth = _wakatime_auth()
    if start and end:
        params = {"start": start.isoformat(), "end": end.isoformat()}
    else:
        params = {"range": wakatime_range(period_label)}

    data = _request_json(
        "GET",
        f"{config.WAKATIME_API_BASE}/users/current/summaries",
        provider="WakaTime",
        params=params,
        auth=auth,
    )
    days = data.get("data") if isinstance(data, dict) else None
    return days if isinstance(days, list) else []


def fetch_wakatime_stats(period_label: Optional[str]) -> Dict[str, Any]:
    auth = _wakatime_auth()
    data = _request_json(
        "GET",
        f"{config.WAKATIME_API_BASE}/users/current/stats/{wakatime_range(period_label)}",
        provider="WakaTime",
        auth=auth,
    )
    stats = data.get("data") if isinstance(data, dict) else None
    return stats if isinstance(stats, dict) else {}


def extract_editors(stats: Dict[str, Any]) -> Dict[str, Any]:
    editors = []
    for ed in stats.get("editors") or []:
        if not isinstance(ed, dict):
            continue
        editors.append(
            {
                "name": ed.get("name"),
                "total_seconds": ed.get("total_seconds") or 0,
                "percent": ed.get("percent") or 0,
                "digital": ed.get("digital"),
                "text": ed.get("text"),
            }
        )
    return {"data": editors, "total_seconds": stats.get("total_seconds") or 0}


def fetch_wakatime_projects() -> List[Dict[str, Any]]:
    auth = _wakatime_auth()
    data = _request_json(
        "GET",
        f"{config.WAKATIME_API_BASE}/users/current/projects",
        provider="WakaTime",
        auth=auth,
    )
    projects = data.get("data") if isinstance(data, dict) else None
    return projects if isinstance(projects, list) else []


# -----------------------------
# GitHub GraphQL
# -----------------------------
CALENDAR_QUERY = """
query($login:String!, $from:DateTime!, $to:DateTime!) {
  user(login:$login) {
    contributionsCollection(from:$from, to:$to) {
      contributionCalendar {
        totalContributions
        weeks {
          contributionDays {
            date
            contributionCount
            color
          }
        }
      }
    }
  }
}
"""


def _github_headers() -> Dict[str, str]:
    h = {
        "Accept": "application/vnd.github+json",
        "User-Agent": "pulseboard",
        "X-GitHub-Api-Version": config.GITHUB_API_VERSION,
    }
    if config.GITHUB_TOKEN:
        h["Authorization"] = f"Bearer {config.GITHUB_TOKEN}"
    return h


def _graphql(query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
    if not config.GITHUB_TOKEN:
        raise MissingCredentialsError("Missing GITHUB_TOKEN")
    data = _request_json(
        "POST",
        config.GITHUB_GRAPHQL,
        provider="GitHub",
        headers=_github_headers(),
        json={"query": query, "variables": variables},
    )
    if not isinstance(data, dict):
        raise ProviderError("GitHub GraphQL returned an unexpected payload")
    if data.get("errors"):
        # Keep the message short
        raise ProviderError(f"GitHub GraphQL errors: {data['errors'][:3]}")
    return data.get("data") or {}


def fetch_github_calendar(
    days: int = 365,
    start: Optional[dt.datetime] = None,
    end: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """
    contributionCalendar for GITHUB_USERNAME over [start, end] (default: the last `days` days).
    """
    if not config.GITHUB_USERNAME:
        raise MissingCredentialsError("Missing GITHUB_USERNAME")

    to = end or dt.datetime.now(dt.timezone.utc)
    from_ = start or (to - dt.timedelta(days=int(days)))
    data = _graphql(
        CALENDAR_QUERY,
        {"login": config.GITHUB_USERNAME, "from": from_.isoformat(), "to": to.isoformat()},
    )
    user = data.get("user")
    if not user:
        raise ProviderError("GitHub user not found.", status=404)
    return ((user.get("contributionsCollection") or {}).get("contributionCalendar")) or {}


def calendar_days(calendar: Dict[str, Any]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for w in calendar.get("weeks") or []:
        for d in w.get("contributionDays") or []:
            if not d.get("date"):
                continue
            out.append(
                {
                    "date": d["date"],
                    "count": int(d.get("contributionCount") or 0),
                    "color": d.get("color"),
                }
            )
    return out


def flatten_calendar(calendar: Dict[str, Any]) -> List[DayRecord]:
    """
    One DayRecord per calendar day; the contribution count stands in for activity.
    """
    out: List[DayRecord] = []
    for d in calendar_days(calendar):
        try:
            day = dt.date.fromisoformat(d["date"][:10])
        except ValueError:
            continue
        out.append(DayRecord(date=day, active_seconds=d["count"]))
    return out


def fetch_repo_languages(repo: Optional[str] = None) -> Dict[str, int]:
    """
    {language: bytes} for owner/name (default GITHUB_LANGUAGES_REPO). Works without a token.
    """
    repo = (repo or config.GITHUB_LANGUAGES_REPO).strip("/")
    if not repo:
        raise MissingCredentialsError("Missing GITHUB_LANGUAGES_REPO")
    data = _request_json(
        "GET",
        f"{config.GITHUB_API_BASE}/repos/{repo}/languages",
        provider="GitHub",
        headers=_github_headers(),
    )
    return data if isinstance(data, dict) else {}


# -----------------------------
# Umami
# -----------------------------
def fetch_umami_pageviews(period_label: Optional[str] = None, now: Optional[dt.datetime] = None) -> Dict[str, List[Any]]:
    if not config.UMAMI_API_KEY:
        raise MissingCredentialsError("Missing UMAMI_API_KEY")
    if not config.UMAMI_WEBSITE_ID:
        raise MissingCredentialsError("Missing UMAMI_WEBSITE_ID")

    end = now or dt.datetime.now(dt.timezone.utc)
    start = end - dt.timedelta(days=period_days(period_label))
    data = _request_json(
        "GET",
        f"{config.UMAMI_API_BASE}/websites/{config.UMAMI_WEBSITE_ID}/pageviews",
        provider="Umami",
        headers={"x-umami-api-key": config.UMAMI_API_KEY, "Accept": "application/json"},
        params={
            "startAt": int(start.timestamp() * 1000),
            "endAt": int(end.timestamp() * 1000),
            "unit": "day",
            "timezone": config.UMAMI_TIMEZONE,
        },
    )
    if not isinstance(data, dict):
        return {"pageviews": [], "sessions": []}
    pageviews = data.get("pageviews")
    sessions = data.get("sessions")
    return {
        "pageviews": pageviews if isinstance(pageviews, list) else [],
        "sessions": sessions if isinstance(sessions, list) else [],
    }


# -----------------------------
# Google Analytics 4
# -----------------------------
GA4_SUMMARY_METRICS = ["activeUsers", "sessions", "screenPageViews", "averageSessionDuration"]
GA4_TIMESERIES_METRICS = ["activeUsers", "sessions"]
GA4_TOP_PAGES_METRICS = ["screenPageViews", "activeUsers"]


def _ga4_client() -> BetaAnalyticsDataClient:
    missing = [
        name
        for name, value in (
            ("GOOGLE_GA4_PROPERTY_ID", config.GOOGLE_GA4_PROPERTY_ID),
            ("GOOGLE_CLIENT_EMAIL", config.GOOGLE_CLIENT_EMAIL),
            ("GOOGLE_PRIVATE_KEY", config.GOOGLE_PRIVATE_KEY),
        )
        if not value
    ]
    if missing:
        raise MissingCredentialsError(f"GA4 credentials missing: {', '.join(missing)}")

    try:
        return BetaAnalyticsDataClient.from_service_account_info(
            {
                "client_email": config.GOOGLE_CLIENT_EMAIL,
                "private_key": config.GOOGLE_PRIVATE_KEY,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
    except ValueError as e:
        raise ProviderError(f"GA4 credentials rejected: {e}") from e


def run_ga4_report(period_label: Optional[str], metrics: List[str], dimensions: Optional[List[str]] = None) -> Any:
    client = _ga4_client()
    req = RunReportRequest(
        property=f"properties/{config.GOOGLE_GA4_PROPERTY_ID}",
        date_ranges=[DateRange(start_date=ga4_start_date(period_label), end_date="today")],
        dimensions=[Dimension(name=d) for d in dimensions or []],
        metrics=[Metric(name=m) for m in metrics],
    )
    try:
        return client.run_report(request=req, timeout=config.HTTP_TIMEOUT_SECONDS)
    except google_exceptions.GoogleAPICallError as e:
        logger.warning("GA4 report failed: %s", e)
        status = e.code if isinstance(e.code, int) else None
        raise ProviderError(f"GA4 API error: {e.message}", status=status) from e


def _ga4_metric(value: str) -> Any:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return value
    if not math.isfinite(n):
        return value
    return int(n) if n.is_integer() else n


def ga4_rows(response: Any) -> List[Dict[str, Any]]:
    """
    Flatten a RunReportResponse into one dict per row, keyed by dimension/metric name.
    Dimension values stay strings; metric values become numbers where they parse.
    """
    dims = [h.name for h in response.dimension_headers]
    mets = [h.name for h in response.metric_headers]
    out: List[Dict[str, Any]] = []
    for row in response.rows:
        item: Dict[str, Any] = {name: v.value for name, v in zip(dims, row.dimension_values)}
        item.update({name: _ga4_metric(v.value) for name, v in zip(mets, row.metric_values)})
        out.append(item)
    return out


def _ga4_number(v: Any) -> float:
    return float(v) if isinstance(v, (int, float)) else 0.0


def fetch_ga4_summary(period_label: Optional[str] = None) -> Dict[str, Any]:
    rows = ga4_rows(run_ga4_report(period_label, GA4_SUMMARY_METRICS))
    return rows[0] if rows else {}


def fetch_ga4_timeseries(period_label: Optional[str] = None) -> List[Dict[str, Any]]:
    rows = ga4_rows(run_ga4_report(period_label, GA4_TIMESERIES_METRICS, dimensions=["date"]))
    return sorted(rows, key=lambda r: str(r.get("date", "")))


def fetch_ga4_top_pages(period_label: Optional[str] = None) -> List[Dict[str, Any]]:
    rows = ga4_rows(run_ga4_report(period_label, GA4_TOP_PAGES_METRICS, dimensions=["pagePath", "pageTitle"]))
    return sorted(rows, key=lambda r: _ga4_number(r.get("screenPageViews")), reverse=True)
