#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: const.py

from ._internal import absp

LOG_DIR = absp("log/")
DEFAULT_CONFIG_INI = absp("config.ini")

DEFAULT_FRONTEND_URL = "https://cloud-v3.edusoft-ltd.workers.dev"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

MODE_FAST = "fast"
MODE_HEADLESS = "headless"
MODE_HYBRID = "hybrid"
MODES = (MODE_FAST, MODE_HEADLESS, MODE_HYBRID)

DEFAULT_MAX_ATTEMPTS = 5000

# keyword families the frontend bundles use for backend routes
ROUTE_KEYWORDS = ("auth", "users", "courses", "command", "management", "student")
API_HINT_KEYWORDS = ("api", "execute", "gateway", "backend", "server")
IGNORED_HOST_MARKERS = ("edusoft-ltd", "googleapis", "cloudflare", "sentry", "cdn")
STATIC_EXTENSIONS = (".js", ".css", ".png", ".jpg", ".jpeg", ".svg", ".gif", ".ico",
                     ".woff", ".woff2", ".ttf", ".map", ".json", ".webp")
EXCLUDED_ROUTE_MARKERS = ("console/", ".js", ".css")

TOKEN_KEYS = ("token", "jwt", "access_token", "accessToken", "id_token")
TOKEN_MIN_LENGTH = 21

COURSE_CODE_KEYS = ("course_code", "courseCode", "code")
FORMAL_CODE_KEYS = ("formal_code", "formalCode", "display_code", "displayCode")
SECTION_NAME_KEYS = ("section_name", "sectionName", "name", "section")
SECTION_ID_KEYS = ("section_id", "sectionId", "id", "_id")

COUNTDOWN_MS_KEYS = ("countdown_ms", "countdownMs", "timer_ms", "timerMs",
                     "remaining_ms", "remainingMs", "opens_in_ms", "opensInMs")
COUNTDOWN_SECONDS_KEYS = ("countdown", "countdown_seconds", "seconds_to_open",
                          "opens_in", "remaining_seconds", "timer")
