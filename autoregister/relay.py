#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: relay.py

import socket
from urllib.parse import urlparse
import requests
from requests.compat import json
from requests.exceptions import RequestException, Timeout, ConnectionError, SSLError
from .const import USER_AGENT
from .logger import ConsoleLogger
from .sanitize import redact_url

cout = ConsoleLogger("relay")

_DEFAULT_TIMEOUT = 10.0


class RelayResponse(object):
    """
    Outcome of one relayed call. Callers check ``success``/``ok``; transport
    failures never surface as exceptions.
    """

    __slots__ = ['success', 'status', 'data', 'text', 'headers', 'message']

    def __init__(self, success, status=None, data=None, text=None, headers=None, message=None):
        self.success = bool(success)
        self.status = status
        self.data = data
        self.text = text
        self.headers = headers or {}
        self.message = message

    @property
    def ok(self):
        return self.success and self.status is not None and 200 <= self.status < 300

    @property
    def is_html(self):
        ct = (self.headers.get("Content-Type") or self.headers.get("content-type") or "").lower()
        if "text/html" in ct:
            return True
        head = (self.text or "").lstrip()[:512].lower()
        return head.startswith("<!doctype html") or "<html" in head

    @classmethod
    def failure(cls, message, status=None):
        return cls(False, status=status, message=message)

    def __repr__(self):
        return "RelayResponse(success=%s, status=%s, message=%r)" % (self.success, self.status, self.message)


def _iter_exc_chain(exc):
    seen = set()
    cur = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        yield cur
        cur = cur.__cause__ or cur.__context__


def classify_network_error(exc):
    for e in _iter_exc_chain(exc):
        if isinstance(e, Timeout):
            return "timeout"
        if isinstance(e, SSLError):
            return "tls"
        if isinstance(e, socket.gaierror):
            return "dns"
    msg = str(exc).lower()
    if "name or service not known" in msg or "nodename nor servname" in msg \
            or "temporary failure in name resolution" in msg:
        return "dns"
    if isinstance(exc, ConnectionError):
        return "conn"
    return "network"


def _encode_body(body, headers):
    if body is None:
        return None
    if isinstance(body, (dict, list)):
        if not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = "application/json"
        return json.dumps(body)
    return body


def _decode_response(r):
    headers = dict(r.headers or {})
    content_type = (r.headers.get("Content-Type") or "").lower()
    if "application/json" in content_type:
        try:
            return RelayResponse(True, r.status_code, data=r.json(), headers=headers)
        except ValueError:
            pass
    return RelayResponse(True, r.status_code, text=r.text, headers=headers)


class BaseRelay(object):

    def __init__(self, timeout=None, debug_print_request=False):
        if self.__class__ is __class__:
            raise NotImplementedError
        self._timeout = _DEFAULT_TIMEOUT if timeout is None else timeout
        self._debug = debug_print_request
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    def relay(self, url, method="GET", headers=None, body=None):
        raise NotImplementedError

    def close(self):
        self._session.close()

    def _debug_print(self, method, url, resp):
        if self._debug:
            cout.debug("> %s %s -> %s" % (method, redact_url(url), resp))


class DirectRelay(BaseRelay):
    """
    Performs the outbound call itself.
    """

    def __init__(self, timeout=None, allowed_hosts=None, debug_print_request=False):
        super().__init__(timeout=timeout, debug_print_request=debug_print_request)
        self._allowed_hosts = tuple(h.strip().lower() for h in (allowed_hosts or []) if h and h.strip())

    def _is_allowed(self, url):
        if not self._allowed_hosts:
            return True
        host = (urlparse(url).hostname or "").lower()
        return any(h in host for h in self._allowed_hosts)

    def relay(self, url, method="GET", headers=None, body=None):
        method = (method or "GET").upper()
        if not url or not isinstance(url, str):
            return RelayResponse.failure("Missing 'url'")
        if not self._is_allowed(url):
            return RelayResponse.failure("Domain not allowed")
        headers = dict(headers or {})
        data = _encode_body(body, headers) if method != "GET" else None
        try:
            r = self._session.request(method, url, headers=headers, data=data, timeout=self._timeout)
        except RequestException as e:
            resp = RelayResponse.failure("network error (%s): %s" % (classify_network_error(e), e))
        else:
            resp = _decode_response(r)
        self._debug_print(method, url, resp)
        return resp


class RemoteRelay(BaseRelay):
    """
    Hands every call to a relay endpoint that accepts
    ``{url, method, headers, body}`` and answers ``{success, status, data|text}``.
    """

    def __init__(self, endpoint, timeout=None, debug_print_request=False):
        super().__init__(timeout=timeout, debug_print_request=debug_print_request)
        self._endpoint = endpoint

    @property
    def endpoint(self):
        return self._endpoint

    def relay(self, url, method="GET", headers=None, body=None):
        method = (method or "GET").upper()
        payload = {"url": url, "method": method, "headers": dict(headers or {})}
        if body is not None and method != "GET":
            payload["body"] = body
        try:
            r = self._session.post(self._endpoint, json=payload, timeout=self._timeout)
        except RequestException as e:
            resp = RelayResponse.failure("relay error (%s): %s" % (classify_network_error(e), e))
            self._debug_print(method, url, resp)
            return resp
        try:
            envelope = r.json()
        except ValueError:
            resp = RelayResponse.failure("relay returned a non-JSON envelope", status=r.status_code)
        else:
            if not isinstance(envelope, dict):
                resp = RelayResponse.failure("relay returned an unexpected envelope", status=r.status_code)
            elif not envelope.get("success"):
                resp = RelayResponse.failure(envelope.get("message") or "Relay error",
                                             status=envelope.get("status", r.status_code))
            else:
                resp = RelayResponse(
                    True,
                    status=envelope.get("status"),
                    data=envelope.get("data"),
                    text=envelope.get("text"),
                    headers=envelope.get("headers") or {},
                )
        self._debug_print(method, url, resp)
        return resp


def make_relay(config):
    endpoint = config.relay_endpoint
    if endpoint:
        return RemoteRelay(endpoint, timeout=config.relay_timeout,
                           debug_print_request=config.is_debug_print_request)
    return DirectRelay(timeout=config.relay_timeout,
                       allowed_hosts=config.relay_allowed_hosts,
                       debug_print_request=config.is_debug_print_request)
