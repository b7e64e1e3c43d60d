import datetime as dt
from types import SimpleNamespace

import pytest
import requests
from google.api_core import exceptions as google_exceptions

from pulseboard import config, providers
from pulseboard.models import DayRecord
from pulseboard.providers import MissingCredentialsError, ProviderError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def calls(monkeypatch):
    recorded = []
    responses = []

    def fake_request(method, url, **kwargs):
        recorded.append({"method": method, "url": url, **kwargs})
        resp = responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    monkeypatch.setattr(providers.requests, "request", fake_request)
    return recorded, responses


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setattr(config, "WAKATIME_API_KEY", "waka_key")
    monkeypatch.setattr(config, "GITHUB_TOKEN", "gh_token")
    monkeypatch.setattr(config, "GITHUB_USERNAME", "octocat")
    monkeypatch.setattr(config, "UMAMI_API_KEY", "umami_key")
    monkeypatch.setattr(config, "UMAMI_WEBSITE_ID", "site-1")


# -----------------------------
# WakaTime
# -----------------------------
def test_wakatime_summaries_by_period(calls, credentials):
    recorded, responses = calls
    responses.append(FakeResponse(payload={"data": [{"range": {"date": "2026-01-27"}}]}))

    days = providers.fetch_wakatime_summaries("30D")

    assert days == [{"range": {"date": "2026-01-27"}}]
    req = recorded[0]
    assert req["method"] == "GET"
    assert req["url"].endswith("/users/current/summaries")
    assert req["params"] == {"range": "last_30_days"}
    assert req["auth"] == ("waka_key", "")
    assert req["timeout"] == config.HTTP_TIMEOUT_SECONDS


def test_wakatime_summaries_by_window(calls, credentials):
    recorded, responses = calls
    responses.append(FakeResponse(payload={"data": []}))

    providers.fetch_wakatime_summaries(start=dt.date(2026, 1, 20), end=dt.date(2026, 1, 26))

    assert recorded[0]["params"] == {"start": "2026-01-20", "end": "2026-01-26"}


def test_wakatime_requires_key(calls, monkeypatch):
    monkeypatch.setattr(config, "WAKATIME_API_KEY", "")

    with pytest.raises(MissingCredentialsError):
        providers.fetch_wakatime_summaries("7D")


def test_http_error_becomes_provider_error(calls, credentials):
    _, responses = calls
    responses.append(FakeResponse(status_code=401, text="unauthorized"))

    with pytest.raises(ProviderError) as exc:
        providers.fetch_wakatime_projects()

    assert exc.value.status == 401
    assert "401" in str(exc.value)


def test_network_failure_becomes_provider_error(calls, credentials):
    _, responses = calls
    responses.append(requests.ConnectionError("boom"))

    with pytest.raises(ProviderError):
        providers.fetch_wakatime_stats("7D")


def test_non_json_body_becomes_provider_error(calls, credentials):
    _, responses = calls
    responses.append(FakeResponse(payload=ValueError("no json")))

    with pytest.raises(ProviderError):
        providers.fetch_wakatime_summaries("7D")


def test_unexpected_shapes_degrade_to_empty(calls, credentials):
    _, responses = calls
    responses.extend([FakeResponse(payload={"data": "nope"}), FakeResponse(payload=[])])

    assert providers.fetch_wakatime_summaries("7D") == []
    assert providers.fetch_wakatime_projects() == []


def test_extract_editors():
    stats = {
        "total_seconds": 5000,
        "editors": [
            {"name": "VS Code", "total_seconds": 4000, "percent": 80, "digital": "1:06", "text": "1 hr 6 mins", "extra": 1},
            "junk",
        ],
    }

    assert providers.extract_editors(stats) == {
        "data": [{"name": "VS Code", "total_seconds": 4000, "percent": 80, "digital": "1:06", "text": "1 hr 6 mins"}],
        "total_seconds": 5000,
    }
    assert providers.extract_editors({}) == {"data": [], "total_seconds": 0}


# -----------------------------
# GitHub
# -----------------------------
CALENDAR = {
    "totalContributions": 5,
    "weeks": [
        {
            "contributionDays": [
                {"date": "2026-01-25", "contributionCount": 0, "color": "#ebedf0"},
                {"date": "2026-01-26", "contributionCount": 2, "color": "#9be9a8"},
            ]
        },
        {"contributionDays": [{"date": "2026-01-27", "contributionCount": 3, "color": "#40c463"}, {"date": None}]},
    ],
}


def test_github_calendar(calls, credentials):
    recorded, responses = calls
    responses.append(
        FakeResponse(payload={"data": {"user": {"contributionsCollection": {"contributionCalendar": CALENDAR}}}})
    )
    end = dt.datetime(2026, 1, 27, tzinfo=dt.timezone.utc)

    cal = providers.fetch_github_calendar(days=10, end=end)

    assert cal == CALENDAR
    req = recorded[0]
    assert req["method"] == "POST"
    assert req["headers"]["Authorization"] == "Bearer gh_token"
    assert req["json"]["variables"] == {
        "login": "octocat",
        "from": "2026-01-17T00:00:00+00:00",
        "to": "2026-01-27T00:00:00+00:00",
    }


def test_github_graphql_errors(calls, credentials):
    _, responses = calls
    responses.append(FakeResponse(payload={"errors": [{"message": "bad credentials"}]}))

    with pytest.raises(ProviderError, match="GraphQL errors"):
        providers.fetch_github_calendar()


def test_github_missing_user(calls, credentials):
    _, responses = calls
    responses.append(FakeResponse(payload={"data": {"user": None}}))

    with pytest.raises(ProviderError) as exc:
        providers.fetch_github_calendar()

    assert exc.value.status == 404


def test_github_requires_token_and_username(calls, credentials, monkeypatch):
    monkeypatch.setattr(config, "GITHUB_TOKEN", "")
    with pytest.raises(MissingCredentialsError):
        providers.fetch_github_calendar()

    monkeypatch.setattr(config, "GITHUB_TOKEN", "gh_token")
    monkeypatch.setattr(config, "GITHUB_USERNAME", "")
    with pytest.raises(MissingCredentialsError):
        providers.fetch_github_calendar()


def test_flatten_calendar():
    assert providers.calendar_days(CALENDAR)[1] == {"date": "2026-01-26", "count": 2, "color": "#9be9a8"}
    assert providers.flatten_calendar(CALENDAR) == [
        DayRecord(dt.date(2026, 1, 25), 0),
        DayRecord(dt.date(2026, 1, 26), 2),
        DayRecord(dt.date(2026, 1, 27), 3),
    ]
    assert providers.flatten_calendar({}) == []


def test_repo_languages(calls, credentials, monkeypatch):
    recorded, responses = calls
    monkeypatch.setattr(config, "GITHUB_LANGUAGES_REPO", "octocat/pulseboard")
    responses.append(FakeResponse(payload={"Python": 3000, "HTML": 120}))

    langs = providers.fetch_repo_languages()

    assert langs == {"Python": 3000, "HTML": 120}
    assert recorded[0]["url"] == "https://api.github.com/repos/octocat/pulseboard/languages"
    assert recorded[0]["headers"]["Authorization"] == "Bearer gh_token"


def test_repo_languages_needs_a_repo(calls, monkeypatch):
    monkeypatch.setattr(config, "GITHUB_LANGUAGES_REPO", "")

    with pytest.raises(MissingCredentialsError, match="GITHUB_LANGUAGES_REPO"):
        providers.fetch_repo_languages()


def test_repo_languages_not_found(calls, credentials):
    _, responses = calls
    responses.append(FakeResponse(status_code=404, text="Not Found"))

    with pytest.raises(ProviderError) as err:
        providers.fetch_repo_languages("octocat/missing")

    assert err.value.status == 404


# -----------------------------
# Umami
# -----------------------------
def test_umami_pageviews(calls, credentials):
    recorded, responses = calls
    responses.append(
        FakeResponse(payload={"pageviews": [{"x": "2026-01-27 00:00:00", "y": 12}], "sessions": None})
    )
    now = dt.datetime(2026, 1, 27, 12, tzinfo=dt.timezone.utc)

    data = providers.fetch_umami_pageviews("7D", now=now)

    assert data == {"pageviews": [{"x": "2026-01-27 00:00:00", "y": 12}], "sessions": []}
    req = recorded[0]
    assert req["url"].endswith("/websites/site-1/pageviews")
    assert req["headers"]["x-umami-api-key"] == "umami_key"
    assert req["params"]["unit"] == "day"
    assert req["params"]["endAt"] - req["params"]["startAt"] == 7 * 24 * 60 * 60 * 1000


def test_umami_requires_website_id(calls, credentials, monkeypatch):
    monkeypatch.setattr(config, "UMAMI_WEBSITE_ID", "")

    with pytest.raises(MissingCredentialsError, match="UMAMI_WEBSITE_ID"):
        providers.fetch_umami_pageviews("7D")


# -----------------------------
# Google Analytics 4
# -----------------------------
def ga4_response(dimensions, metrics, rows):
    return SimpleNamespace(
        dimension_headers=[SimpleNamespace(name=n) for n in dimensions],
        metric_headers=[SimpleNamespace(name=n) for n in metrics],
        rows=[
            SimpleNamespace(
                dimension_values=[SimpleNamespace(value=v) for v in dims],
                metric_values=[SimpleNamespace(value=v) for v in mets],
            )
            for dims, mets in rows
        ],
    )


class FakeGa4Client:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def run_report(self, request, timeout=None):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def ga4(monkeypatch):
    monkeypatch.setattr(config, "GOOGLE_GA4_PROPERTY_ID", "123456")
    client = FakeGa4Client()
    monkeypatch.setattr(providers, "_ga4_client", lambda: client)
    return client


def test_ga4_summary(ga4):
    ga4.response = ga4_response(
        [],
        ["activeUsers", "sessions", "screenPageViews", "averageSessionDuration"],
        [([], ["12", "15", "40", "63.5"])],
    )

    summary = providers.fetch_ga4_summary("30D")

    assert summary == {"activeUsers": 12, "sessions": 15, "screenPageViews": 40, "averageSessionDuration": 63.5}
    req = ga4.requests[0]
    assert req.property == "properties/123456"
    assert req.date_ranges[0].start_date == "30daysAgo"
    assert req.date_ranges[0].end_date == "today"
    assert [m.name for m in req.metrics] == providers.GA4_SUMMARY_METRICS


def test_ga4_summary_without_rows(ga4):
    ga4.response = ga4_response([], ["activeUsers"], [])

    assert providers.fetch_ga4_summary() == {}


def test_ga4_timeseries_is_sorted_by_date(ga4):
    ga4.response = ga4_response(
        ["date"],
        ["activeUsers", "sessions"],
        [(["20260127"], ["3", "4"]), (["20260125"], ["1", "1"]), (["20260126"], ["2", "NaN"])],
    )

    rows = providers.fetch_ga4_timeseries("7D")

    assert [r["date"] for r in rows] == ["20260125", "20260126", "20260127"]
    assert rows[1]["sessions"] == "NaN"
    assert [d.name for d in ga4.requests[0].dimensions] == ["date"]


def test_ga4_top_pages_ranked_by_views(ga4):
    ga4.response = ga4_response(
        ["pagePath", "pageTitle"],
        ["screenPageViews", "activeUsers"],
        [(["/about", "About"], ["5", "2"]), (["/", "Home"], ["50", "20"])],
    )

    pages = providers.fetch_ga4_top_pages("90D")

    assert pages[0] == {"pagePath": "/", "pageTitle": "Home", "screenPageViews": 50, "activeUsers": 20}
    assert [p["pagePath"] for p in pages] == ["/", "/about"]


def test_ga4_api_error_becomes_provider_error(ga4):
    ga4.error = google_exceptions.PermissionDenied("User does not have sufficient permissions")

    with pytest.raises(ProviderError, match="sufficient permissions") as err:
        providers.fetch_ga4_summary()

    assert err.value.status == 403


def test_ga4_lists_missing_credentials(monkeypatch):
    monkeypatch.setattr(config, "GOOGLE_GA4_PROPERTY_ID", "123456")
    monkeypatch.setattr(config, "GOOGLE_CLIENT_EMAIL", "")
    monkeypatch.setattr(config, "GOOGLE_PRIVATE_KEY", "")

    with pytest.raises(MissingCredentialsError) as err:
        providers.fetch_ga4_summary()

    assert str(err.value) == "GA4 credentials missing: GOOGLE_CLIENT_EMAIL, GOOGLE_PRIVATE_KEY"
