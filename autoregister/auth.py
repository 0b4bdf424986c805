#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: auth.py

import threading
from .const import TOKEN_KEYS, TOKEN_MIN_LENGTH
from .exceptions import AuthenticationError
from .logger import ConsoleLogger
from .models import Session
from .sanitize import preview
from .utils import find_value

cout = ConsoleLogger("auth")


def _looks_like_token(value):
    return isinstance(value, str) and len(value) >= TOKEN_MIN_LENGTH


def extract_token(data):
    """
    Look for a bearer token under any of ``TOKEN_KEYS`` at any (bounded) depth
    of a login response. Key order decides, not position in the payload.
    """
    if data is None:
        return None
    for key in TOKEN_KEYS:
        v = find_value(data, key, accept=_looks_like_token)
        if v is not None:
            return v
    return None


def login(relay, base_url, version, login_route, student_id, secret, origin=None, log=None):
    """
    POST the credentials to the discovered login route and return the session
    token, or None when no token could be obtained.
    """
    log = log or cout.info
    url = "%s/%s%s" % (base_url.rstrip("/"), version, login_route)
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if origin:
        headers["Origin"] = origin
        headers["Referer"] = origin.rstrip("/") + "/"
    body = {
        "user_id": student_id,
        "password": secret,
        "logout_other_sessions": False,
    }
    r = relay.relay(url, "POST", headers, body)
    if not r.success:
        log("Login failed: %s" % (r.message or "Unknown"))
        return None
    if r.data is None:
        log("Login failed: HTTP %s without a JSON body" % r.status)
        return None

    token = extract_token(r.data)
    if token is None:
        keys = ", ".join(r.data.keys()) if isinstance(r.data, dict) else type(r.data).__name__
        log("Login response but no token. Keys: %s. Preview: %s"
            % (keys, preview(r.data, student_id=student_id)))
    return token


class Authenticator(object):

    def __init__(self, relay, surface, origin=None, log=None):
        self._relay = relay
        self._surface = surface
        self._origin = origin
        self._log = log or cout.info

    @property
    def login_route(self):
        return self._surface.login_route

    def login(self, student_id, secret):
        if not self._surface.login_route:
            self._log("No login route was discovered")
            return None
        return login(
            self._relay,
            self._surface.base_url,
            self._surface.api_version,
            self._surface.login_route,
            student_id,
            secret,
            origin=self._origin,
            log=self._log,
        )


class SessionHolder(object):
    """
    The single Session of one account job. Re-authentication swaps the whole
    Session under a lock, so sibling pollers that hit the same expiry only
    trigger one login.
    """

    def __init__(self, account_id, student_id, secret, login_fn, log=None):
        self._account_id = account_id
        self._student_id = student_id
        self._secret = secret
        self._login_fn = login_fn
        self._log = log or cout.info
        self._session = None
        self._lock = threading.Lock()
        self.login_count = 0

    @property
    def session(self):
        return self._session

    @property
    def token(self):
        s = self._session
        return s.token if s is not None else None

    def _login(self):
        self.login_count += 1
        token = self._login_fn(self._student_id, self._secret)
        if not token:
            return None
        return Session(self._account_id, token, self._account_id)

    def establish(self):
        with self._lock:
            self._log("Authenticating...")
            session = self._login()
            if session is None:
                raise AuthenticationError(msg="Could not acquire session token")
            self._session = session
            self._log("Session token acquired")
            return session

    def reauthenticate(self, stale_token=None):
        with self._lock:
            current = self._session
            if current is not None and stale_token is not None and current.token != stale_token:
                return True
            session = self._login()
            if session is None:
                return False
            self._session = session
            return True
