"""
Environment-driven settings. Read once at import; callers use `config.NAME`.
"""

import os

# -----------------------------
# WakaTime
# -----------------------------
WAKATIME_API_KEY = os.getenv("WAKATIME_API_KEY", "").strip()
WAKATIME_API_BASE = os.getenv("WAKATIME_API_BASE", "https://wakatime.com/api/v1").rstrip("/")

# -----------------------------
# GitHub
# -----------------------------
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "").strip()
GITHUB_USERNAME = os.getenv("GITHUB_USERNAME", "").strip()
GITHUB_GRAPHQL = "https://api.github.com/graphql"
GITHUB_API_VERSION = os.getenv("GITHUB_API_VERSION", "2022-11-28")
GITHUB_API_BASE = os.getenv("GITHUB_API_BASE", "https://api.github.com").rstrip("/")
# owner/name whose language byte counts back /api/github/top-languages
GITHUB_LANGUAGES_REPO = os.getenv("GITHUB_LANGUAGES_REPO", "").strip()

# -----------------------------
# Umami
# -----------------------------
UMAMI_API_KEY = os.getenv("UMAMI_API_KEY", "").strip()
UMAMI_WEBSITE_ID = os.getenv("UMAMI_WEBSITE_ID", "").strip()
UMAMI_API_BASE = os.getenv("UMAMI_API_BASE", "https://api.umami.is/v1").rstrip("/")
UMAMI_TIMEZONE = os.getenv("UMAMI_TIMEZONE", "UTC")

# -----------------------------
# Google Analytics 4 (service account)
# -----------------------------
GOOGLE_GA4_PROPERTY_ID = os.getenv("GOOGLE_GA4_PROPERTY_ID", "").strip()
GOOGLE_CLIENT_EMAIL = os.getenv("GOOGLE_CLIENT_EMAIL", "").strip()
# .env files usually carry the PEM key with escaped newlines
GOOGLE_PRIVATE_KEY = os.getenv("GOOGLE_PRIVATE_KEY", "").replace("\\n", "\n")

# -----------------------------
# Server
# -----------------------------
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "600"))
HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "5000"))
