#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: pace.py

"""
Countdown-driven polling interval.

Far from the opening the poller idles, right before it warms up and once the
countdown reaches zero it polls at the maximum rate. Between the idle and the
warmup thresholds the previous tier is held, so a countdown that was seen far
away keeps relaxing until it gets close.
"""

import re
from .const import COUNTDOWN_MS_KEYS, COUNTDOWN_SECONDS_KEYS
from .utils import find_value

TIER_DEFAULT = "default"
TIER_IDLE = "idle"
TIER_WARMUP = "warmup"
TIER_MAX_RATE = "max-rate"

_reClock = re.compile(r'^\s*(\d{1,3}):(\d{1,2})(?::(\d{1,2}))?\s*$')


class PacePolicy(object):

    def __init__(self, default_interval=1.0, idle_interval=5.0, warmup_interval=0.25,
                 max_rate_interval=0.1, idle_threshold_ms=10000, warmup_threshold_ms=2000):
        self.default_interval = default_interval
        self.idle_interval = idle_interval
        self.warmup_interval = warmup_interval
        self.max_rate_interval = max_rate_interval
        self.idle_threshold_ms = idle_threshold_ms
        self.warmup_threshold_ms = warmup_threshold_ms

    @classmethod
    def from_config(cls, config):
        return cls(
            default_interval=config.pace_default_interval,
            idle_interval=config.pace_idle_interval,
            warmup_interval=config.pace_warmup_interval,
            max_rate_interval=config.pace_max_rate_interval,
            idle_threshold_ms=config.pace_idle_threshold_ms,
            warmup_threshold_ms=config.pace_warmup_threshold_ms,
        )

    def interval_of(self, tier):
        return {
            TIER_DEFAULT: self.default_interval,
            TIER_IDLE: self.idle_interval,
            TIER_WARMUP: self.warmup_interval,
            TIER_MAX_RATE: self.max_rate_interval,
        }[tier]

    def tier_for(self, countdown_ms, previous=None):
        if countdown_ms is None:
            return TIER_DEFAULT
        if countdown_ms <= 0:
            return TIER_MAX_RATE
        if countdown_ms <= self.warmup_threshold_ms:
            return TIER_WARMUP
        if countdown_ms >= self.idle_threshold_ms:
            return TIER_IDLE
        return previous or TIER_DEFAULT


DEFAULT_POLICY = PacePolicy()


def compute_interval(countdown_ms, previous=None, policy=None):
    """ ``(interval_seconds, tier)`` for one countdown, given the previous tier. """
    policy = policy or DEFAULT_POLICY
    tier = policy.tier_for(countdown_ms, previous)
    return policy.interval_of(tier), tier


class PaceController(object):

    def __init__(self, policy=None):
        self._policy = policy or DEFAULT_POLICY
        self._tier = None

    @property
    def tier(self):
        return self._tier or TIER_DEFAULT

    def next_interval(self, countdown_ms):
        interval, self._tier = compute_interval(countdown_ms, self._tier, self._policy)
        return interval


def compute_intervals(countdowns_ms, policy=None):
    """ Interval (seconds) chosen for each countdown of a sequence. """
    ctrl = PaceController(policy)
    return [ctrl.next_interval(c) for c in countdowns_ms]


def _parse_countdown(value, unit_ms):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        v = float(value)
    elif isinstance(value, str):
        mat = _reClock.match(value)
        if mat:
            parts = [int(p) for p in mat.groups() if p is not None]
            if len(parts) == 3:
                return (parts[0] * 3600 + parts[1] * 60 + parts[2]) * 1000.0
            return (parts[0] * 60 + parts[1]) * 1000.0
        try:
            v = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return v if unit_ms else v * 1000.0


def extract_countdown_ms(data):
    """
    Countdown-to-open signal carried by a sections response, in milliseconds,
    or None when the backend reports none.
    """
    if data is None:
        return None
    for key in COUNTDOWN_MS_KEYS:
        v = find_value(data, key, accept=lambda x: _parse_countdown(x, True) is not None)
        if v is not None:
            return _parse_countdown(v, True)
    for key in COUNTDOWN_SECONDS_KEYS:
        v = find_value(data, key, accept=lambda x: _parse_countdown(x, False) is not None)
        if v is not None:
            return _parse_countdown(v, False)
    return None
