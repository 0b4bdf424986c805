#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: orchestrator.py

import time
import threading
from queue import Queue
from collections import OrderedDict
from .auth import Authenticator, SessionHolder
from .backend import BackendClient
from .const import DEFAULT_FRONTEND_URL, DEFAULT_MAX_ATTEMPTS
from .discovery import ApiDiscoverer, apply_base_override
from .exceptions import (
    JobAlreadyRunningError,
    JobCancelledError,
    RaceEngineException,
    ResolutionError,
    UserInputException,
    classify_error,
    describe_error,
)
from .logger import ConsoleLogger, FileLogger
from .models import CompletionBoard, JobStatus, RaceResult, RaceState, TargetOutcome
from .pace import PacePolicy
from .poller import CoursePoller
from .relay import make_relay
from .resolver import IdentifierResolver, lookup_course_id
from .router import HeadlessExecutor, ModeRouter
from .streaming import EVENT_LOG, EVENT_RESULT, error_event, is_terminal, log_event, result_event

cout = ConsoleLogger("orchestrator")
ferr = FileLogger("orchestrator.error")

_SURFACE_LOCK_POLL = 0.1


def _check_cancel(cancel_event, where):
    if cancel_event is not None and cancel_event.is_set():
        raise JobCancelledError(msg="Cancelled %s" % where)


def _run_poller(poller):
    try:
        poller.run()
    except Exception as e:
        ferr.exception(e)
        if not poller.state.is_terminal:
            poller.state.finish(RaceState.EXHAUSTED, reason=describe_error(e))


class FastEngine(object):
    """
    The in-process race: discover -> login -> resolve -> one poller thread per
    Target, all sharing the account's session and completion board.
    """

    def __init__(self, relay, surface_provider, pace_policy=None,
                 max_attempts=DEFAULT_MAX_ATTEMPTS, origin=None):
        self._relay = relay
        self._surface_provider = surface_provider
        self._pace_policy = pace_policy
        self._max_attempts = max_attempts
        self._origin = origin

    def execute(self, request, log, cancel_event, account_id=None):
        account_id = account_id or request.student_id
        if not request.targets:
            log("No target selected, nothing to do.")
            return RaceResult(())

        surface = self._surface_provider(log, cancel_event)
        surface = apply_base_override(surface, self._relay, request.api_base_url_override, log)
        _check_cancel(cancel_event, "before login")

        authenticator = Authenticator(self._relay, surface, origin=self._origin, log=log)
        sessions = SessionHolder(account_id, request.student_id, request.secret, authenticator.login, log=log)
        sessions.establish()
        _check_cancel(cancel_event, "after login")

        backend = BackendClient(self._relay, surface, sessions)
        resolver = IdentifierResolver(backend, log=log, cancel_event=cancel_event)
        id_map = resolver.resolve_courses()

        course_ids = [lookup_course_id(id_map, t.course_code) for t in request.targets]
        for t, cid in zip(request.targets, course_ids):
            if cid is None:
                log("[%s] Course ID not found" % t.course_code)
            else:
                cout.debug("%s -> %s" % (t.course_code, cid))

        first = next((cid for cid in course_ids if cid is not None), None)
        if first is None:
            raise ResolutionError(msg="None of the targeted courses could be mapped to a course ID")
        template = resolver.resolve_sections_path(first)

        board = CompletionBoard()
        pollers = []
        threads = []
        for t, cid in zip(request.targets, course_ids):
            if cid is None:
                pollers.append(None)
                continue
            poller = CoursePoller(t, cid, backend, template, board, cancel_event,
                                  log=log, pace_policy=self._pace_policy,
                                  max_attempts=self._max_attempts)
            pollers.append(poller)
            th = threading.Thread(target=_run_poller, args=(poller,),
                                  name="Poller-%s" % t.course_code)
            th.daemon = True
            threads.append(th)

        log("Launching %d poller(s)..." % len(threads))
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        outcomes = []
        for t, poller in zip(request.targets, pollers):
            if poller is None:
                outcomes.append(TargetOutcome(t.course_code, False, "Course ID not found"))
            else:
                outcomes.append(poller.state.to_outcome())

        log("All operations completed.")
        return RaceResult(tuple(outcomes))


class AccountJob(object):
    """
    One launch for one account. Producers (the runner and the pollers it
    spawns) only put events on the job queue; a single pump thread consumes
    them, owns ``logs`` and settles the status on the terminal event.
    """

    def __init__(self, account_id, request, listener=None):
        self.account_id = account_id
        self.request = request
        self.status = JobStatus.IDLE
        self.logs = []
        self.outcome = None
        self.error = None
        self.error_kind = None
        self.cancel_event = threading.Event()
        self._queue = Queue()
        self._done = threading.Event()
        self._listener = listener

    def __repr__(self):
        return "AccountJob(%s, %s)" % (self.account_id, self.status)

    @property
    def is_running(self):
        return self.status == JobStatus.RUNNING

    @property
    def is_finished(self):
        return self.status in JobStatus.TERMINAL

    def emit_log(self, message):
        self._queue.put(log_event(message))

    def cancel(self):
        self.cancel_event.set()

    def wait(self, timeout=None):
        return self._done.wait(timeout)

    def start(self, engine):
        self.status = JobStatus.RUNNING

        pump = threading.Thread(target=self._pump, name="Pump-%s" % self.account_id)
        pump.daemon = True
        pump.start()

        runner = threading.Thread(target=self._run, args=(engine,), name="Job-%s" % self.account_id)
        runner.daemon = True
        runner.start()

    def _run(self, engine):
        try:
            result = engine.execute(self.request, self.emit_log, self.cancel_event, self.account_id)
        except JobCancelledError as e:
            self.emit_log("Cancelled.")
            event = error_event("Cancelled", kind=classify_error(e))
        except (RaceEngineException, UserInputException) as e:
            self.emit_log("Fatal: %s" % describe_error(e))
            event = error_event(describe_error(e), kind=classify_error(e))
        except Exception as e:
            ferr.exception(e)
            event = error_event(describe_error(e), kind=classify_error(e))
        else:
            event = result_event(result)
        self._queue.put(event)

    def _notify(self, event):
        if self._listener is None:
            return
        try:
            self._listener(self, event)
        except Exception as e:
            ferr.exception(e)

    def _pump(self):
        while True:
            event = self._queue.get()
            kind = event.get("type")
            if kind == EVENT_LOG:
                self.logs.append(event.get("message", ""))
                self._notify(event)
                continue
            if not is_terminal(event):
                continue

            cancelled = self.cancel_event.is_set()
            if kind == EVENT_RESULT:
                self.outcome = RaceResult.from_dict(event.get("data") or {})
                self.status = JobStatus.CANCELLED if cancelled else JobStatus.DONE
            else:
                self.error = event.get("message")
                self.error_kind = event.get("kind")
                if cancelled or self.error_kind == JobCancelledError.kind:
                    self.status = JobStatus.CANCELLED
                else:
                    self.status = JobStatus.ERROR
            self._notify(event)
            self._done.set()
            return


class RaceOrchestrator(object):
    """
    Runs account jobs concurrently, at most one per account, and shares a
    single discovered API surface between them.
    """

    def __init__(self, relay, entry_url=DEFAULT_FRONTEND_URL, pace_policy=None,
                 max_attempts=DEFAULT_MAX_ATTEMPTS, headless_executor=None, listener=None):
        self._relay = relay
        self._entry_url = entry_url
        self._listener = listener
        self._surface = None
        self._surface_lock = threading.Lock()
        self._jobs = OrderedDict()
        self._jobs_lock = threading.Lock()
        self._engine = FastEngine(relay, self.get_surface, pace_policy=pace_policy,
                                  max_attempts=max_attempts, origin=entry_url)
        self._router = ModeRouter(self._engine, headless_executor)

    @classmethod
    def from_config(cls, config, listener=None):
        headless = None
        if config.headless_endpoint:
            headless = HeadlessExecutor(config.headless_endpoint, timeout=config.headless_timeout)
        return cls(
            make_relay(config),
            entry_url=config.frontend_url,
            pace_policy=PacePolicy.from_config(config),
            max_attempts=config.max_attempts,
            headless_executor=headless,
            listener=listener,
        )

    @property
    def router(self):
        return self._router

    @property
    def surface(self):
        return self._surface

    @property
    def jobs(self):
        with self._jobs_lock:
            return OrderedDict(self._jobs)

    @property
    def is_any_running(self):
        return any(job.is_running for job in self.jobs.values())

    def get_surface(self, log=None, cancel_event=None):
        log = log or cout.info
        # another job may be discovering; wait for it but stay cancellable
        while not self._surface_lock.acquire(timeout=_SURFACE_LOCK_POLL):
            _check_cancel(cancel_event, "while waiting for API discovery")
        try:
            if self._surface is None:
                self._surface = ApiDiscoverer(self._relay, self._entry_url, log=log).discover(cancel_event)
            else:
                log("Using discovered API at %s" % self._surface)
            return self._surface
        finally:
            self._surface_lock.release()

    def launch(self, request, account_id=None):
        account_id = account_id or request.student_id
        with self._jobs_lock:
            job = self._jobs.get(account_id)
            if job is not None and job.is_running:
                raise JobAlreadyRunningError("Account %s already has a running job" % account_id)
            job = AccountJob(account_id, request, listener=self._listener)
            self._jobs[account_id] = job
            job.start(self._router)
        cout.info("Launched job for account %s (%s mode, %d targets)"
                  % (account_id, request.mode, len(request.targets)))
        return job

    def run(self, requests, timeout=None):
        """ Launch ``[(account_id, request)]`` and wait for every job to finish. """
        jobs = [self.launch(request, account_id) for account_id, request in requests]
        self.wait(timeout)
        return jobs

    def cancel(self, account_id):
        job = self.jobs.get(account_id)
        if job is None:
            return False
        job.cancel()
        return True

    def cancel_all(self):
        for job in self.jobs.values():
            job.cancel()

    def wait(self, timeout=None):
        deadline = None if timeout is None else time.time() + timeout
        for job in self.jobs.values():
            remaining = None if deadline is None else max(0.0, deadline - time.time())
            if not job.wait(remaining):
                return False
        return True

    def clear(self, account_id):
        with self._jobs_lock:
            job = self._jobs.get(account_id)
            if job is None:
                return False
            if job.is_running:
                raise JobAlreadyRunningError("Account %s is still running" % account_id)
            del self._jobs[account_id]
            return True
