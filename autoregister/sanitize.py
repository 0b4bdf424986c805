#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Redaction helpers for anything that may end up in a log line: response
previews, request urls and relay debug output.
"""

from __future__ import annotations

import json
import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


_RE_BEARER = re.compile(r"(?i)(bearer\s+)([A-Za-z0-9\-_.=]+)")
_RE_JWT = re.compile(r"\beyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\b")
_RE_SECRET_FIELD = re.compile(
    r"""(?i)(["']?(?:password|secret|token|jwt|access_token|accessToken|id_token|refresh_token)["']?\s*[:=]\s*["']?)([^"'&,\s}]+)"""
)

_SENSITIVE_QUERY_KEYS = {"token", "password", "secret", "jwt", "access_token", "student_id", "user_id"}


def sanitize_text(text: str, student_id: str | None = None) -> str:
    if text is None:
        return ""
    s = str(text)

    if student_id:
        s = s.replace(student_id, "STUDENT_ID")

    s = _RE_BEARER.sub(r"\1TOKEN", s)
    s = _RE_JWT.sub("TOKEN", s)
    s = _RE_SECRET_FIELD.sub(r"\1REDACTED", s)
    return s


def redact_url(url: str, student_id: str | None = None) -> str:
    if not url:
        return ""
    try:
        parts = urlsplit(url)
        new_qs = []
        for k, v in parse_qsl(parts.query, keep_blank_values=True):
            if (k or "").lower() in _SENSITIVE_QUERY_KEYS:
                new_qs.append((k, "REDACTED"))
                continue
            new_qs.append((k, sanitize_text(v, student_id=student_id)))
        query = urlencode(new_qs, doseq=True)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))
    except ValueError:
        return sanitize_text(url, student_id=student_id)


def preview(data, limit=300, student_id: str | None = None) -> str:
    """
    Short, redacted rendering of a decoded response body.
    """
    if isinstance(data, (dict, list)):
        try:
            s = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError):
            s = repr(data)
    else:
        s = "" if data is None else str(data)
    s = sanitize_text(s, student_id=student_id)
    if len(s) > limit:
        s = s[:limit] + "..."
    return s
