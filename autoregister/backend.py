#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: backend.py


class BackendClient(object):
    """
    Authenticated calls against the discovered API surface, all through the relay.
    """

    def __init__(self, relay, surface, sessions):
        self._relay = relay
        self._surface = surface
        self._sessions = sessions

    @property
    def surface(self):
        return self._surface

    @property
    def sessions(self):
        return self._sessions

    def _headers(self, token, extra=None):
        headers = {"Authorization": "Bearer %s" % token, "Accept": "application/json"}
        if extra:
            headers.update(extra)
        return headers

    def get(self, path, token=None):
        token = token or self._sessions.token
        return self._relay.relay(self._surface.api_url(path), "GET", self._headers(token))

    def post(self, path, body, token=None):
        token = token or self._sessions.token
        headers = self._headers(token, {"Content-Type": "application/json"})
        return self._relay.relay(self._surface.api_url(path), "POST", headers, body)
