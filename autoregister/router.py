#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: router.py

import threading
from queue import Queue, Empty
import requests
from requests.exceptions import RequestException
from .const import MODE_FAST, MODE_HEADLESS, MODE_HYBRID
from .exceptions import (
    JobCancelledError,
    RaceEngineException,
    RemoteExecutorError,
    UserInputException,
    describe_error,
)
from .logger import ConsoleLogger, FileLogger
from .models import RaceResult
from .streaming import EVENT_ERROR, EVENT_LOG, EVENT_RESULT, iter_sse_events

cout = ConsoleLogger("router")
ferr = FileLogger("router.error")

_CANCEL_POLL_INTERVAL = 0.1


class HeadlessExecutor(object):
    """
    Delegates a whole account run to a remote executor that drives a real
    browser, observed only through its server-sent event stream.
    """

    def __init__(self, endpoint, timeout=None):
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = requests.Session()

    @property
    def endpoint(self):
        return self._endpoint

    def _payload(self, request):
        return {
            "studentId": request.student_id,
            "password": request.secret,
            "selectedCourses": request.selected_courses(),
            "mode": "puppeteer-only",
            "apiBaseUrl": request.api_base_url_override or "",
        }

    def execute(self, request, log, cancel_event, account_id=None):
        if cancel_event.is_set():
            raise JobCancelledError(msg="Cancelled before the headless run started")
        try:
            r = self._session.post(self._endpoint, json=self._payload(request), stream=True,
                                   timeout=self._timeout,
                                   headers={"Accept": "text/event-stream"})
        except RequestException as e:
            raise RemoteExecutorError(msg="Headless executor unreachable: %s" % e)
        cout.debug("Streaming headless run from %s" % self._endpoint)

        finished = threading.Event()

        def _close_on_cancel():
            while not finished.is_set():
                if cancel_event.wait(_CANCEL_POLL_INTERVAL):
                    r.close()
                    return

        watcher = threading.Thread(target=_close_on_cancel, name="HeadlessCancelWatcher")
        watcher.daemon = True
        watcher.start()

        try:
            if r.status_code != 200:
                raise RemoteExecutorError(msg="Headless executor returned HTTP %s" % r.status_code)
            for event in iter_sse_events(r.iter_lines(decode_unicode=True)):
                if cancel_event.is_set():
                    break
                kind = event.get("type")
                if kind == EVENT_LOG:
                    log(str(event.get("message", "")))
                elif kind == EVENT_RESULT:
                    return RaceResult.from_dict(event.get("data") or {})
                elif kind == EVENT_ERROR:
                    raise RemoteExecutorError(msg=event.get("message") or "Remote executor error")
        except RemoteExecutorError:
            raise
        except Exception as e:
            # closing the stream from the watcher surfaces as arbitrary read errors
            if cancel_event.is_set():
                raise JobCancelledError(msg="Cancelled") from e
            if isinstance(e, RequestException):
                raise RemoteExecutorError(msg="Headless stream broken: %s" % e) from e
            raise
        finally:
            finished.set()
            r.close()

        if cancel_event.is_set():
            raise JobCancelledError(msg="Cancelled")
        raise RemoteExecutorError(msg="Headless stream ended without a result")


def _prefixed(log, prefix):
    return lambda msg: log("%s %s" % (prefix, msg))


class ModeRouter(object):
    """
    fast     - the in-process engine
    headless - the remote browser executor
    hybrid   - both at once; the first successful RaceResult wins and the other
               is cancelled, a failed result only counts once both have finished
    """

    def __init__(self, fast_engine, headless_executor=None):
        self._fast = fast_engine
        self._headless = headless_executor

    def execute(self, request, log, cancel_event, account_id):
        mode = request.mode
        if mode == MODE_FAST:
            return self._fast.execute(request, log, cancel_event, account_id)
        if self._headless is None:
            raise UserInputException("Mode %r needs [headless] endpoint to be configured" % mode)
        if mode == MODE_HEADLESS:
            return self._headless.execute(request, log, cancel_event, account_id)
        if mode == MODE_HYBRID:
            return self._execute_hybrid(request, log, cancel_event, account_id)
        raise UserInputException("Unknown mode %r" % mode)

    def _execute_hybrid(self, request, log, cancel_event, account_id):
        log("[Hybrid] Deploying native and headless engines...")
        outcomes = Queue()
        children = []

        for name, engine, prefix in (
            ("native", self._fast, "[Native]"),
            ("headless", self._headless, "[Headless]"),
        ):
            child_cancel = threading.Event()

            def _run(name=name, engine=engine, prefix=prefix, child_cancel=child_cancel):
                try:
                    res = engine.execute(request, _prefixed(log, prefix), child_cancel, account_id)
                except Exception as e:
                    if not isinstance(e, (RaceEngineException, UserInputException)):
                        ferr.exception(e)
                    outcomes.put((name, None, e))
                else:
                    outcomes.put((name, res, None))

            t = threading.Thread(target=_run, name="Hybrid-%s" % name)
            t.daemon = True
            children.append((name, t, child_cancel))
            t.start()

        pending = len(children)
        winner = None
        fallback = None
        last_error = None
        while pending > 0:
            if cancel_event.is_set():
                for _, _, ev in children:
                    ev.set()
            try:
                name, res, err = outcomes.get(timeout=_CANCEL_POLL_INTERVAL)
            except Empty:
                continue
            pending -= 1
            if err is not None:
                last_error = err
                log("[Hybrid] %s engine failed: %s" % (name, describe_error(err)))
                continue
            if not res.success:
                # the other side may still claim what this one missed
                if fallback is None:
                    fallback = res
                log("[Hybrid] %s engine finished without full success" % name)
                continue
            winner = res
            log("[Hybrid] %s engine succeeded first" % name)
            for other, _, ev in children:
                if other != name:
                    ev.set()
            break

        # the loser must be quiet before the terminal event goes out
        for _, t, _ in children:
            t.join()

        if winner is not None:
            return winner
        if fallback is not None:
            return fallback
        if cancel_event.is_set():
            raise JobCancelledError(msg="Cancelled")
        raise last_error
