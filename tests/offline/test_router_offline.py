#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
import threading
import unittest
from unittest import mock

from requests import Response
from requests.hooks import dispatch_hook

from autoregister.exceptions import (
    AuthenticationError,
    JobCancelledError,
    RemoteExecutorError,
    UserInputException,
)
from autoregister.models import LaunchRequest, RaceResult, Target, TargetOutcome
from autoregister.router import HeadlessExecutor, ModeRouter
from autoregister.streaming import encode_sse, error_event, log_event, result_event

RESULT = RaceResult((TargetOutcome("CS101", True, "Registered"),))


def _request(mode):
    return LaunchRequest("2021000000", "pw", (Target("CS101", "01"),), mode=mode)


class ImmediateEngine(object):

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.cancel_event = None

    def execute(self, request, log, cancel_event, account_id=None):
        self.cancel_event = cancel_event
        log("working")
        if self.error is not None:
            raise self.error
        return self.result


class BlockingEngine(object):
    """ Runs until cancelled. """

    def __init__(self):
        self.cancel_event = None
        self.started = threading.Event()

    def execute(self, request, log, cancel_event, account_id=None):
        self.cancel_event = cancel_event
        self.started.set()
        cancel_event.wait(10)
        raise JobCancelledError(msg="Cancelled")


class DelayedEngine(object):
    """ Returns its result after ``delay`` seconds unless cancelled first. """

    def __init__(self, result, delay):
        self.result = result
        self.delay = delay
        self.cancel_event = None

    def execute(self, request, log, cancel_event, account_id=None):
        self.cancel_event = cancel_event
        if cancel_event.wait(self.delay):
            raise JobCancelledError(msg="Cancelled")
        log("registered")
        return self.result


NOT_FOUND = RaceResult((TargetOutcome("CS101", False, "Course ID not found"),))


class ModeRouterOfflineTest(unittest.TestCase):
    def test_fast_mode(self):
        fast = ImmediateEngine(RESULT)
        self.assertIs(ModeRouter(fast).execute(_request("fast"), lambda m: None, threading.Event(), "a"), RESULT)

    def test_headless_without_executor(self):
        with self.assertRaises(UserInputException):
            ModeRouter(ImmediateEngine(RESULT)).execute(_request("hybrid"), lambda m: None, threading.Event(), "a")

    def test_hybrid_first_result_wins_and_cancels_other(self):
        lines = []
        fast = ImmediateEngine(RESULT)
        headless = BlockingEngine()
        res = ModeRouter(fast, headless).execute(_request("hybrid"), lines.append, threading.Event(), "a")
        self.assertIs(res, RESULT)
        self.assertTrue(headless.cancel_event.is_set())
        self.assertIn("[Native] working", lines)

    def test_hybrid_ignores_one_failure(self):
        lines = []
        fast = ImmediateEngine(error=AuthenticationError(msg="bad password"))
        headless = ImmediateEngine(RESULT)
        res = ModeRouter(fast, headless).execute(_request("hybrid"), lines.append, threading.Event(), "a")
        self.assertIs(res, RESULT)
        self.assertIn("[Headless] working", lines)

    def test_hybrid_failed_result_waits_for_other_side(self):
        lines = []
        fast = ImmediateEngine(NOT_FOUND)
        headless = DelayedEngine(RESULT, 0.3)
        res = ModeRouter(fast, headless).execute(_request("hybrid"), lines.append, threading.Event(), "a")
        self.assertTrue(res.success)
        self.assertIs(res, RESULT)
        self.assertFalse(headless.cancel_event.is_set())
        self.assertIn("[Headless] registered", lines)

    def test_hybrid_both_results_failed(self):
        fast = ImmediateEngine(NOT_FOUND)
        headless = DelayedEngine(RaceResult((TargetOutcome("CS101", False, "Exhausted"),)), 0.1)
        res = ModeRouter(fast, headless).execute(_request("hybrid"), lambda m: None, threading.Event(), "a")
        self.assertIs(res, NOT_FOUND)

    def test_hybrid_failed_result_beats_an_error(self):
        fast = ImmediateEngine(NOT_FOUND)
        headless = ImmediateEngine(error=RemoteExecutorError(msg="browser crashed"))
        res = ModeRouter(fast, headless).execute(_request("hybrid"), lambda m: None, threading.Event(), "a")
        self.assertIs(res, NOT_FOUND)

    def test_hybrid_both_fail(self):
        fast = ImmediateEngine(error=AuthenticationError(msg="bad password"))
        headless = ImmediateEngine(error=RemoteExecutorError(msg="browser crashed"))
        with self.assertRaises((AuthenticationError, RemoteExecutorError)):
            ModeRouter(fast, headless).execute(_request("hybrid"), lambda m: None, threading.Event(), "a")

    def test_hybrid_job_cancel_reaches_both(self):
        fast = BlockingEngine()
        headless = BlockingEngine()
        cancel = threading.Event()
        router = ModeRouter(fast, headless)
        t = threading.Timer(0.2, cancel.set)
        t.start()
        with self.assertRaises(JobCancelledError):
            router.execute(_request("hybrid"), lambda m: None, cancel, "a")
        self.assertTrue(fast.cancel_event.is_set())
        self.assertTrue(headless.cancel_event.is_set())


def _make_response(prep, status_code=200, content=b"", headers=None):
    resp = Response()
    resp.status_code = status_code
    resp.url = prep.url
    resp.request = prep
    resp._content = content
    resp._content_consumed = True
    resp.headers = headers or {}
    resp.encoding = "utf-8"
    resp.history = []
    return resp


def _sse_send(body, status_code=200, sink=None):
    def _send(self, prep, **kwargs):
        if sink is not None:
            sink.append(json.loads(prep.body))
        resp = _make_response(prep, status_code=status_code, content=body.encode("utf-8"),
                              headers={"Content-Type": "text/event-stream"})
        return dispatch_hook("response", prep.hooks, resp, **kwargs)
    return _send


class HeadlessExecutorOfflineTest(unittest.TestCase):
    ENDPOINT = "https://executor.example.com/api/auto-register-hybrid"

    def test_stream_with_result(self):
        body = (
            ": keep-alive\n\n"
            + encode_sse(log_event("Launching browser"))
            + encode_sse(result_event(RESULT))
        )
        sent, lines = [], []
        with mock.patch("requests.sessions.Session.send", new=_sse_send(body, sink=sent)):
            res = HeadlessExecutor(self.ENDPOINT).execute(_request("headless"), lines.append, threading.Event())
        self.assertEqual(res, RESULT)
        self.assertEqual(lines, ["Launching browser"])
        self.assertEqual(sent[0]["mode"], "puppeteer-only")
        self.assertEqual(sent[0]["selectedCourses"], {"CS101": "01"})
        self.assertEqual(sent[0]["studentId"], "2021000000")

    def test_stream_with_error(self):
        body = encode_sse(error_event("Login failed"))
        with mock.patch("requests.sessions.Session.send", new=_sse_send(body)):
            with self.assertRaises(RemoteExecutorError) as ctx:
                HeadlessExecutor(self.ENDPOINT).execute(_request("headless"), lambda m: None, threading.Event())
        self.assertEqual(ctx.exception.msg, "Login failed")

    def test_stream_without_terminal_event(self):
        body = encode_sse(log_event("half way"))
        with mock.patch("requests.sessions.Session.send", new=_sse_send(body)):
            with self.assertRaises(RemoteExecutorError):
                HeadlessExecutor(self.ENDPOINT).execute(_request("headless"), lambda m: None, threading.Event())

    def test_http_error(self):
        with mock.patch("requests.sessions.Session.send", new=_sse_send("", status_code=502)):
            with self.assertRaises(RemoteExecutorError):
                HeadlessExecutor(self.ENDPOINT).execute(_request("headless"), lambda m: None, threading.Event())

    def test_cancelled_before_start(self):
        ev = threading.Event()
        ev.set()
        with self.assertRaises(JobCancelledError):
            HeadlessExecutor(self.ENDPOINT).execute(_request("headless"), lambda m: None, ev)


if __name__ == "__main__":
    unittest.main()
