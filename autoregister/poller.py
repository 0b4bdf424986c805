#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: poller.py

import threading
from .const import DEFAULT_MAX_ATTEMPTS
from .logger import ConsoleLogger
from .models import CourseRaceState, RaceState
from .pace import PaceController, TIER_IDLE, TIER_WARMUP, TIER_MAX_RATE, extract_countdown_ms
from .resolver import extract_sections, section_id_of, section_name_of, sections_path, select_path

cout = ConsoleLogger("poller")

_CALL_CANCEL_CHECK = 0.05


def _response_message(r, default):
    if isinstance(r.data, dict):
        msg = r.data.get("message") or r.data.get("error")
        if isinstance(msg, str) and msg:
            return msg
    if r.message:
        return r.message
    if r.status is not None:
        return "%s (HTTP %s)" % (default, r.status)
    return default


class CoursePoller(object):
    """
    Races one Target: polls the sections list of its course and fires the
    select call as soon as the wanted section shows up. Iterations are strictly
    sequential; the interval between them follows the countdown reported by
    the backend.
    """

    def __init__(self, target, course_id, backend, sections_template, board, cancel_event,
                 log=None, pace_policy=None, max_attempts=DEFAULT_MAX_ATTEMPTS):
        self._target = target
        self._course_id = course_id
        self._backend = backend
        self._sessions = backend.sessions
        self._sections_path = sections_path(sections_template, course_id)
        self._select_path = select_path(sections_template, course_id)
        self._board = board
        self._cancel_event = cancel_event
        self._emit = log or cout.info
        self._pace = PaceController(pace_policy)
        self._max_attempts = max_attempts
        self.state = CourseRaceState(target)

    @property
    def target(self):
        return self._target

    def _log(self, msg):
        self._emit("[%s] %s" % (self._target.course_code, msg))

    def run(self):
        state = self.state
        target = self._target

        if self._board.is_completed(target):
            self._log("Already completed! Stopping.")
            state.finish(RaceState.COMPLETED)
            return state

        self._log("Polling for section %s..." % target.target_section)

        while True:
            if self._cancel_event.is_set():
                self._log("Cancelled after %d attempts." % state.attempts)
                state.finish(RaceState.CANCELLED)
                break
            if state.attempts >= self._max_attempts:
                self._log("Timeout reached after %d attempts. Giving up." % state.attempts)
                state.finish(RaceState.EXHAUSTED)
                break
            if self._board.is_completed(target):
                self._log("Sibling succeeded! Stopping.")
                state.finish(RaceState.COMPLETED)
                break

            state.attempts += 1
            if self._attempt():
                state.finish(RaceState.COMPLETED)
                break

            # the freshest countdown decides how long to back off
            interval = self._pace.next_interval(state.countdown_ms)
            self._log_pace()
            self._cancel_event.wait(interval)

        return state

    def _log_pace(self):
        n = self.state.attempts
        tier = self._pace.tier
        countdown = self.state.countdown_ms
        if tier == TIER_IDLE:
            if n % 2 == 0:
                self._log("Timer: %ds. Idling..." % round(countdown / 1000.0))
        elif tier == TIER_WARMUP:
            if n % 4 == 0:
                self._log("WARMUP! %dms left..." % countdown)
        elif tier == TIER_MAX_RATE:
            if n % 10 == 0:
                self._log("Registration is open, polling at max rate!")
        elif n == 1 or n % 5 == 0:
            self._log("Polling sections... (attempt %d)" % n)

    def _failure(self, reason, always_log=False):
        state = self.state
        state.failures += 1
        state.last_error = reason
        if always_log or state.attempts == 1 or state.attempts % 5 == 0:
            self._log("%s. Retrying..." % reason)

    def _reauthenticate(self, stale_token):
        self._log("Session expired. Re-authenticating...")
        if self._sessions.reauthenticate(stale_token):
            self._log("Re-login OK!")
        else:
            self._log("Re-login failed, will retry after backoff")

    def _call(self, fn, *args):
        """
        Runs one backend call on a helper thread and waits for it while
        watching the cancel signal, so a cancel does not sit out the relay
        timeout. Returns None once cancelled; the abandoned call finishes on
        its own.
        """
        box = []
        done = threading.Event()

        def _work():
            try:
                box.append((fn(*args), None))
            except Exception as e:
                box.append((None, e))
            finally:
                done.set()

        th = threading.Thread(target=_work, name="Call-%s" % self._target.course_code)
        th.daemon = True
        th.start()

        while not done.wait(_CALL_CANCEL_CHECK):
            if self._cancel_event.is_set():
                cout.debug("%s: abandoned an in-flight call" % self._target.course_code)
                return None

        result, error = box[0]
        if error is not None:
            raise error
        return result

    def _attempt(self):
        """
        One poll-and-strike iteration. Returns True once the Target is registered.
        """
        target = self._target
        token = self._sessions.token

        r = self._call(self._backend.get, self._sections_path, token)
        if r is None:
            return False  # cancelled mid-call
        if r.status == 401:
            self._reauthenticate(token)
            return False
        if not r.ok:
            self._failure("Sections fetch failed: %s" % _response_message(r, "HTTP error"))
            return False

        countdown = extract_countdown_ms(r.data)
        if countdown is not None:
            self.state.countdown_ms = countdown

        sections = extract_sections(r.data)
        matched = next((s for s in sections if section_name_of(s) == target.target_section), None)
        if matched is None:
            return False  # not open yet

        if self._board.is_completed(target):
            return True

        section_id = section_id_of(matched)
        self._log("Section %s found (id %s)! Striking..." % (target.target_section, section_id))
        body = {
            "section_id": section_id,
            "action": "select",
            "parent_course_code": self._course_id,
        }
        sr = self._call(self._backend.post, self._select_path, body, token)
        if sr is None:
            return False
        if sr.status == 401:
            self._reauthenticate(token)
            return False
        if sr.ok:
            if self._board.claim(target):
                self._log("SUCCESS! Section %s registered!" % target.target_section)
            return True

        self._failure("Seat full or rejected => %s" % _response_message(sr, "Rejected"), always_log=True)
        return False
