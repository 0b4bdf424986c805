#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: models.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .const import MODE_FAST, MODES
from .exceptions import IllegalTransitionError, UserInputException


class JobStatus(object):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"

    TERMINAL = (DONE, ERROR, CANCELLED)


class RaceState(object):
    POLLING = "polling"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"

    TERMINAL = (COMPLETED, EXHAUSTED, CANCELLED)


@dataclass(frozen=True)
class Target:
    course_code: str
    target_section: str

    def __str__(self):
        return "%s [%s]" % (self.course_code, self.target_section)

    @classmethod
    def from_dict(cls, d):
        code = (d.get("courseCode") or d.get("course_code") or "").strip()
        section = str(d.get("targetSection") or d.get("target_section") or "").strip()
        if not code or not section:
            raise UserInputException("Incomplete target: %r" % (d,))
        return cls(code, section)


@dataclass(frozen=True)
class Session:
    account_id: str
    token: str
    issued_for_account: str

    @property
    def bearer(self):
        return "Bearer %s" % self.token


@dataclass(frozen=True)
class TargetOutcome:
    course: str
    success: bool
    reason: str = ""

    def to_dict(self):
        return {"course": self.course, "success": self.success, "reason": self.reason}


@dataclass(frozen=True)
class RaceResult:
    per_target: Tuple[TargetOutcome, ...] = ()

    @property
    def success(self):
        return len(self.per_target) > 0 and all(o.success for o in self.per_target)

    def to_dict(self):
        return {
            "success": self.success,
            "results": [o.to_dict() for o in self.per_target],
        }

    @classmethod
    def from_dict(cls, d):
        # the remote executor nests outcomes under "results"; tolerate a bare list
        items = d.get("results", d.get("perTarget", [])) if isinstance(d, dict) else d
        outcomes = []
        for it in items or []:
            if not isinstance(it, dict):
                continue
            outcomes.append(TargetOutcome(
                course=str(it.get("course", "")),
                success=bool(it.get("success", False)),
                reason=str(it.get("reason") or ""),
            ))
        return cls(tuple(outcomes))


@dataclass(frozen=True)
class LaunchRequest:
    student_id: str
    secret: str = field(repr=False)
    targets: Tuple[Target, ...]
    mode: str = MODE_FAST
    api_base_url_override: Optional[str] = None

    def __post_init__(self):
        if not self.student_id or not self.secret:
            raise UserInputException("Missing student id or secret")
        if self.mode not in MODES:
            raise UserInputException("Unknown mode %r, expected one of %s" % (self.mode, "/".join(MODES)))

    @classmethod
    def from_dict(cls, d):
        targets = tuple(Target.from_dict(t) for t in d.get("targets") or [])
        return cls(
            student_id=str(d.get("studentId") or "").strip(),
            secret=str(d.get("secret") or d.get("password") or ""),
            targets=targets,
            mode=(d.get("mode") or MODE_FAST).strip().lower(),
            api_base_url_override=(d.get("apiBaseUrlOverride") or None),
        )

    def selected_courses(self):
        """ { "<courseCode>": "<section>" } as the remote executor expects it """
        return {t.course_code: t.target_section for t in self.targets}


class CourseRaceState(object):
    """
    Transient per-Target state owned by one poller.
    """

    __slots__ = ['_target', '_state', 'attempts', 'failures', 'last_error', 'countdown_ms']

    def __init__(self, target):
        self._target = target
        self._state = RaceState.POLLING
        self.attempts = 0
        self.failures = 0
        self.last_error = None
        self.countdown_ms = None

    @property
    def target(self):
        return self._target

    @property
    def state(self):
        return self._state

    @property
    def completed(self):
        return self._state == RaceState.COMPLETED

    @property
    def is_terminal(self):
        return self._state in RaceState.TERMINAL

    def finish(self, state, reason=None):
        if state not in RaceState.TERMINAL:
            raise IllegalTransitionError("%s is not a terminal state" % state)
        if self._state != RaceState.POLLING:
            raise IllegalTransitionError(
                "%s: %s -> %s is not allowed" % (self._target, self._state, state)
            )
        self._state = state
        if reason is not None:
            self.last_error = reason

    def to_outcome(self):
        if self._state == RaceState.COMPLETED:
            return TargetOutcome(self._target.course_code, True, "Registered")
        if self._state == RaceState.CANCELLED:
            reason = "Cancelled"
        elif self._state == RaceState.EXHAUSTED:
            reason = "Exhausted"
        else:
            reason = "Still polling"
        if self.last_error:
            reason = "%s (last error: %s)" % (reason, self.last_error)
        return TargetOutcome(self._target.course_code, False, reason)

    def __repr__(self):
        return "CourseRaceState(%s, %s, attempts=%d, failures=%d)" % (
            self._target, self._state, self.attempts, self.failures)


class CompletionBoard(object):
    """
    Per-job record of Targets that have been registered. ``claim`` is the single
    point where a success gets recorded, so a repeated select for a Target that
    is already done can never be counted twice.
    """

    def __init__(self):
        self._done = set()
        self._lock = threading.Lock()

    def is_completed(self, target):
        with self._lock:
            return target in self._done

    def claim(self, target):
        with self._lock:
            if target in self._done:
                return False
            self._done.add(target)
            return True

    def __len__(self):
        with self._lock:
            return len(self._done)
