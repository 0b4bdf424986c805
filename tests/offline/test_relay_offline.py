#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
import socket
import unittest
from unittest import mock

from requests import Response
from requests.exceptions import ConnectTimeout, ConnectionError, SSLError, Timeout
from requests.hooks import dispatch_hook

from autoregister.relay import DirectRelay, RemoteRelay, classify_network_error


def _make_response(prep, status_code=200, content=b"", headers=None):
    resp = Response()
    resp.status_code = status_code
    resp.url = prep.url
    resp.request = prep
    resp._content = content
    resp.headers = headers or {}
    resp.encoding = "utf-8"
    resp.history = []
    return resp


SENT = []


def _fake_send(self, prep, **kwargs):
    SENT.append(prep)
    url = prep.url
    if "timeout" in url:
        raise ConnectTimeout("connect timed out")
    if "relay.example.com" in url:
        envelope = json.loads(prep.body)
        if "down.example.com" in envelope["url"]:
            payload = {"success": False, "message": "fetch failed", "status": 502}
        else:
            payload = {"success": True, "status": 200, "data": {"echo": envelope["method"]}}
        resp = _make_response(prep, content=json.dumps(payload).encode("utf-8"),
                              headers={"Content-Type": "application/json"})
    elif url.endswith("/json"):
        resp = _make_response(prep, content=b'{"ok": true}',
                              headers={"Content-Type": "application/json; charset=utf-8"})
    elif url.endswith("/broken-json"):
        resp = _make_response(prep, content=b"{oops", headers={"Content-Type": "application/json"})
    else:
        resp = _make_response(prep, content=b"<!DOCTYPE html><html></html>",
                              headers={"Content-Type": "text/html"})
    return dispatch_hook("response", prep.hooks, resp, **kwargs)


@mock.patch("requests.sessions.Session.send", new=_fake_send)
class DirectRelayOfflineTest(unittest.TestCase):
    def setUp(self):
        del SENT[:]

    def test_json_response(self):
        r = DirectRelay().relay("https://api.example.com/json")
        self.assertTrue(r.ok)
        self.assertEqual(r.data, {"ok": True})

    def test_html_response(self):
        r = DirectRelay().relay("https://api.example.com/")
        self.assertTrue(r.success)
        self.assertTrue(r.is_html)
        self.assertIsNone(r.data)

    def test_broken_json_kept_as_text(self):
        r = DirectRelay().relay("https://api.example.com/broken-json")
        self.assertIsNone(r.data)
        self.assertEqual(r.text, "{oops")

    def test_post_body_is_json_encoded(self):
        DirectRelay().relay("https://api.example.com/json", "post", {"X-A": "1"}, {"user_id": "u"})
        prep = SENT[-1]
        self.assertEqual(prep.method, "POST")
        self.assertEqual(json.loads(prep.body), {"user_id": "u"})
        self.assertEqual(prep.headers["Content-Type"], "application/json")
        self.assertEqual(prep.headers["X-A"], "1")

    def test_domain_allow_list(self):
        relay = DirectRelay(allowed_hosts=["example.com"])
        self.assertTrue(relay.relay("https://api.example.com/json").success)
        r = relay.relay("https://evil.test/json")
        self.assertFalse(r.success)
        self.assertEqual(r.message, "Domain not allowed")
        self.assertEqual(len(SENT), 1)

    def test_missing_url(self):
        r = DirectRelay().relay("")
        self.assertFalse(r.success)
        self.assertEqual(r.message, "Missing 'url'")

    def test_network_error_is_a_failed_response(self):
        r = DirectRelay().relay("https://timeout.example.com/json")
        self.assertFalse(r.success)
        self.assertIn("timeout", r.message)


@mock.patch("requests.sessions.Session.send", new=_fake_send)
class RemoteRelayOfflineTest(unittest.TestCase):
    ENDPOINT = "https://relay.example.com/api/bot-proxy"

    def test_envelope(self):
        r = RemoteRelay(self.ENDPOINT).relay("https://api.example.com/x", "POST", {}, {"a": 1})
        self.assertTrue(r.ok)
        self.assertEqual(r.data, {"echo": "POST"})
        self.assertEqual(r.status, 200)

    def test_failed_envelope(self):
        r = RemoteRelay(self.ENDPOINT).relay("https://down.example.com/x")
        self.assertFalse(r.success)
        self.assertEqual(r.status, 502)
        self.assertEqual(r.message, "fetch failed")


class NetworkErrorClassificationTest(unittest.TestCase):
    def test_timeout(self):
        self.assertEqual(classify_network_error(Timeout("timeout")), "timeout")

    def test_tls(self):
        self.assertEqual(classify_network_error(SSLError("SSL handshake failed")), "tls")

    def test_dns(self):
        self.assertEqual(classify_network_error(ConnectionError("Name or service not known")), "dns")

    def test_conn(self):
        self.assertEqual(classify_network_error(ConnectionError("connection reset")), "conn")

    def test_dns_gaierror(self):
        e = socket.gaierror(8, "nodename nor servname provided")
        self.assertEqual(classify_network_error(e), "dns")


if __name__ == "__main__":
    unittest.main()
