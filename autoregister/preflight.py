#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .const import MODE_FAST, MODES


@dataclass(frozen=True)
class PreflightIssue:
    level: str  # "ERROR" | "WARN"
    code: str
    message: str
    key_path: Optional[str] = None


def _is_http_url(s) -> bool:
    if s is None:
        return False
    p = urlparse(str(s).strip())
    return p.scheme in ("http", "https") and bool(p.netloc)


def run_preflight(config) -> list[PreflightIssue]:
    """
    Run static config validation. This MUST NOT perform any network request.
    """
    issues: list[PreflightIssue] = []

    def _add(level: str, code: str, message: str, key_path: str | None = None):
        issues.append(PreflightIssue(level=level, code=code, message=message, key_path=key_path))

    # [engine]
    try:
        url = config.frontend_url
        if not _is_http_url(url):
            _add("ERROR", "frontend_url_invalid", f"engine.frontend_url must be an http(s) url, got {url!r}", "engine.frontend_url")
    except Exception as e:
        _add("ERROR", "frontend_url_read_failed", f"Unable to read engine.frontend_url: {e}", "engine.frontend_url")

    try:
        override = config.api_base_url
        if override is not None and not _is_http_url(override):
            _add("ERROR", "api_base_url_invalid", f"engine.api_base_url must be an http(s) url, got {override!r}", "engine.api_base_url")
    except Exception as e:
        _add("ERROR", "api_base_url_read_failed", f"Unable to read engine.api_base_url: {e}", "engine.api_base_url")

    try:
        attempts = config.max_attempts
        if attempts <= 0:
            _add("ERROR", "max_attempts_invalid", f"engine.max_attempts must be > 0, got {attempts!r}", "engine.max_attempts")
    except Exception as e:
        _add("ERROR", "max_attempts_read_failed", f"Unable to read engine.max_attempts: {e}", "engine.max_attempts")

    # [pace]
    for key in ("default_interval", "idle_interval", "warmup_interval", "max_rate_interval"):
        kp = "pace.%s" % key
        try:
            v = getattr(config, "pace_%s" % key)
            if v <= 0:
                _add("ERROR", "pace_interval_invalid", f"{kp} must be > 0, got {v!r}", kp)
        except Exception as e:
            _add("ERROR", "pace_interval_read_failed", f"Unable to read {kp}: {e}", kp)

    try:
        idle = config.pace_idle_threshold_ms
        warmup = config.pace_warmup_threshold_ms
        if warmup <= 0 or idle <= warmup:
            _add(
                "ERROR",
                "pace_threshold_invalid",
                f"pace thresholds must satisfy 0 < warmup_threshold_ms ({warmup}) < idle_threshold_ms ({idle})",
                "pace.idle_threshold_ms",
            )
    except Exception as e:
        _add("ERROR", "pace_threshold_read_failed", f"Unable to read pace thresholds: {e}", "pace.idle_threshold_ms")

    # [relay]
    try:
        endpoint = config.relay_endpoint
        if endpoint is not None and not _is_http_url(endpoint):
            _add("ERROR", "relay_endpoint_invalid", f"relay.endpoint must be an http(s) url, got {endpoint!r}", "relay.endpoint")
        if endpoint is None and not config.relay_allowed_hosts:
            _add("WARN", "relay_allowed_hosts_empty", "relay.allowed_hosts is empty, direct calls may reach any host.", "relay.allowed_hosts")
    except Exception as e:
        _add("ERROR", "relay_read_failed", f"Unable to read [relay]: {e}", "relay.endpoint")

    # accounts / targets / modes
    try:
        headless = config.headless_endpoint
    except Exception as e:
        headless = None
        _add("ERROR", "headless_read_failed", f"Unable to read headless.endpoint: {e}", "headless.endpoint")

    try:
        accounts = config.accounts
        targets = config.targets
    except Exception as e:
        _add("ERROR", "accounts_read_failed", f"Unable to read accounts/targets: {e}", "account")
        return issues

    if not accounts:
        _add("ERROR", "accounts_missing", "No [account:<id>] section is defined.", "account")

    try:
        default_mode = config.mode
    except Exception as e:
        default_mode = MODE_FAST
        _add("ERROR", "mode_read_failed", f"Unable to read engine.mode: {e}", "engine.mode")

    for account_id, a in accounts.items():
        mode = a.get("mode") or default_mode
        kp = "account:%s.mode" % account_id
        if mode not in MODES:
            _add("ERROR", "mode_unknown", f"Unknown mode {mode!r} for account {account_id!r}. Allowed: {'/'.join(MODES)}", kp)
        elif mode != MODE_FAST and headless is None:
            _add("ERROR", "headless_endpoint_missing", f"Mode {mode!r} of account {account_id!r} needs headless.endpoint", "headless.endpoint")
        if not targets.get(account_id):
            _add("WARN", "account_without_targets", f"Account {account_id!r} has no target and will be skipped.", "account:%s" % account_id)

    return issues
