#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import threading
import unittest

from autoregister.discovery import (
    ApiDiscoverer,
    ApiSurface,
    apply_base_override,
    classify_routes,
    extract_script_urls,
    find_base_and_version,
    find_routes,
)
from autoregister.exceptions import DiscoveryError, JobCancelledError
from autoregister.relay import RelayResponse

ENTRY = "https://portal.example.com"

PAGE = (
    "<!DOCTYPE html><html><head>"
    "<link rel='stylesheet' href='/assets/app.css'>"
    "<script src='/assets/app.js'></script>"
    "</head><body><div id='root'></div></body></html>"
)

SCRIPT = (
    'const a="https://api.example.com/v3/auth/login";'
    'function me(){return fetch("/users/me")}'
    'function pre(){return fetch("/users/me/preadvice-courses")}'
)


class ScriptedRelay(object):

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def relay(self, url, method="GET", headers=None, body=None):
        self.calls.append((method, url))
        resp = self.routes.get(url)
        if resp is None:
            return RelayResponse(True, 404, text="not found")
        return resp


def _frontend_relay(script=SCRIPT):
    return ScriptedRelay({
        ENTRY: RelayResponse(True, 200, text=PAGE, headers={"Content-Type": "text/html"}),
        ENTRY + "/assets/app.js": RelayResponse(True, 200, text=script),
    })


class DiscoveryOfflineTest(unittest.TestCase):
    def test_fixture_page_and_script(self):
        surface = ApiDiscoverer(_frontend_relay(), ENTRY, log=lambda m: None).discover()
        self.assertEqual(surface.base_url, "https://api.example.com")
        self.assertEqual(surface.api_version, "v3")
        self.assertEqual(surface.login_route, "/auth/login")
        self.assertIn("/users/me", surface.routes)
        self.assertEqual(surface.preadvised_routes, ("/users/me/preadvice-courses",))

    def test_script_urls_are_resolved_and_deduplicated(self):
        urls = extract_script_urls(PAGE, ENTRY)
        self.assertEqual(urls, [ENTRY + "/assets/app.js"])

    def test_script_urls_without_parsable_html(self):
        self.assertEqual(extract_script_urls("", ENTRY), [])

    def test_base_from_api_hint_and_bare_version(self):
        js = 'var s="https://gateway.example.org";var p="/v2/courses/list";'
        self.assertEqual(find_base_and_version(js), ("https://gateway.example.org", "v2"))

    def test_own_host_and_static_urls_are_ignored(self):
        js = '"https://portal.example.com/api" "https://x.example.org/logo.png"'
        self.assertEqual(find_base_and_version(js, own_host="portal.example.com"), (None, None))

    def test_routes_exclude_assets(self):
        js = '"/courses/list" "/users/console/x" "/auth/app.js"'
        self.assertEqual(find_routes(js), ["/courses/list"])

    def test_classify_routes(self):
        login, pre = classify_routes(["/auth/logout", "/auth/login", "/users/me/preadvice-courses"])
        self.assertEqual(login, "/auth/login")
        self.assertEqual(pre, ("/users/me/preadvice-courses",))

    def test_missing_version_fails(self):
        relay = _frontend_relay(script='fetch("/users/me")')
        with self.assertRaises(DiscoveryError):
            ApiDiscoverer(relay, ENTRY, log=lambda m: None).discover()

    def test_unreachable_entry_page_fails(self):
        relay = ScriptedRelay({ENTRY: RelayResponse.failure("network error (dns): boom")})
        with self.assertRaises(DiscoveryError):
            ApiDiscoverer(relay, ENTRY, log=lambda m: None).discover()

    def test_cancelled_discovery(self):
        ev = threading.Event()
        ev.set()
        with self.assertRaises(JobCancelledError):
            ApiDiscoverer(_frontend_relay(), ENTRY, log=lambda m: None).discover(ev)


class BaseOverrideOfflineTest(unittest.TestCase):
    SURFACE = ApiSurface("https://api.example.com", "v3", ("/users/me",), "/auth/login")

    def test_override_accepted_for_json(self):
        relay = ScriptedRelay({"https://alt.example.com": RelayResponse(True, 200, data={"ok": True})})
        s = apply_base_override(self.SURFACE, relay, "https://alt.example.com/", log=lambda m: None)
        self.assertEqual(s.base_url, "https://alt.example.com")
        self.assertEqual(s.login_route, "/auth/login")
        self.assertEqual(self.SURFACE.base_url, "https://api.example.com")

    def test_override_rejected_for_html(self):
        relay = ScriptedRelay({
            "https://alt.example.com": RelayResponse(True, 200, text="<html><body>hi</body></html>"),
        })
        s = apply_base_override(self.SURFACE, relay, "https://alt.example.com", log=lambda m: None)
        self.assertIs(s, self.SURFACE)

    def test_blank_override_is_ignored(self):
        relay = ScriptedRelay({})
        self.assertIs(apply_base_override(self.SURFACE, relay, "  ", log=lambda m: None), self.SURFACE)
        self.assertEqual(relay.calls, [])

    def test_api_url(self):
        self.assertEqual(self.SURFACE.api_url("courses/sections/1"),
                         "https://api.example.com/v3/courses/sections/1")


if __name__ == "__main__":
    unittest.main()
