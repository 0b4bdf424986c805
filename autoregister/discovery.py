#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: discovery.py

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple
from urllib.parse import urljoin, urlparse
from lxml import etree
from .const import (
    API_HINT_KEYWORDS,
    EXCLUDED_ROUTE_MARKERS,
    IGNORED_HOST_MARKERS,
    ROUTE_KEYWORDS,
    STATIC_EXTENSIONS,
)
from .exceptions import DiscoveryError, JobCancelledError
from .logger import ConsoleLogger

cout = ConsoleLogger("discovery")

_reScriptAttr = re.compile(r'(?:src|href)="([^"]+\.js[^"]*)"')
_reJsHref = re.compile(r'\.js(?:$|[?#])')
_reVersionedUrl = re.compile(r'["\'`](https://[^"\'`\s]{5,80}?)/(v\d+)/(?:auth|users|courses|command)')
_reAbsoluteUrl = re.compile(r'["\'`](https://[A-Za-z0-9._-]+\.[A-Za-z]{2,}(?:/[^"\'`\s]*)?)["\'`]')
_reUrlVersion = re.compile(r'^(https://[^/]+)/(v\d+)(?:/|$)')
_reBareVersion = re.compile(r'["\'`/](v\d+)/(?:auth|courses|users)')
_reRoute = re.compile(r'["\'](/(?:%s)[^"\']{2,80})["\']' % "|".join(ROUTE_KEYWORDS))
_reVersionedPath = re.compile(
    r'["\'`]https://[^"\'`\s/]+/v\d+(/(?:%s)[^"\'`\s]{0,80})["\'`]' % "|".join(ROUTE_KEYWORDS)
)
_reApiHint = re.compile("|".join(API_HINT_KEYWORDS), re.I)


@dataclass(frozen=True)
class ApiSurface:
    base_url: str
    api_version: str
    routes: Tuple[str, ...] = ()
    login_route: Optional[str] = None
    preadvised_routes: Tuple[str, ...] = ()

    def api_url(self, path):
        if not path.startswith("/"):
            path = "/" + path
        return "%s/%s%s" % (self.base_url.rstrip("/"), self.api_version, path)

    def __str__(self):
        return "%s/%s" % (self.base_url, self.api_version)


def extract_script_urls(html, entry_url):
    """
    Every script referenced by the entry page, resolved against ``entry_url``.
    """
    found = []
    try:
        tree = etree.HTML(html) if html and html.strip() else None
    except (ValueError, etree.ParserError):
        tree = None  # the regex pass below still runs
    if tree is not None:
        for v in tree.xpath('//script/@src | //link/@href'):
            if _reJsHref.search(v):
                found.append(v)
    found.extend(_reScriptAttr.findall(html or ""))

    urls = []
    for s in found:
        url = urljoin(entry_url if entry_url.endswith("/") else entry_url + "/", s.strip())
        if url not in urls:
            urls.append(url)
    return urls


def _is_ignored_url(url, own_host=None):
    low = url.lower()
    host = (urlparse(low).hostname or "")
    if own_host and host == own_host:
        return True
    if any(m in host for m in IGNORED_HOST_MARKERS):
        return True
    path = urlparse(low).path
    return path.endswith(STATIC_EXTENSIONS)


def find_base_and_version(js, own_host=None):
    """
    Return ``(base_url, api_version)`` found in one script; either may be None.
    """
    mat = _reVersionedUrl.search(js)
    if mat:
        return mat.group(1), mat.group(2)

    base, version = None, None
    for mat in _reAbsoluteUrl.finditer(js):
        candidate = mat.group(1).rstrip("/")
        if _is_ignored_url(candidate, own_host):
            continue
        vm = _reUrlVersion.match(candidate)
        if vm:
            base, version = vm.group(1), vm.group(2)
            break
        if _reApiHint.search(candidate):
            base = re.sub(r'/v\d+$', "", candidate)
            break

    if version is None:
        mat = _reBareVersion.search(js)
        if mat:
            version = mat.group(1)
    return base, version


def find_routes(js):
    routes = []
    for p in _reRoute.findall(js):
        routes.append(p)
    for p in _reVersionedPath.findall(js):
        routes.append(p)
    return [p for p in routes if not any(m in p for m in EXCLUDED_ROUTE_MARKERS)]


def is_login_route(path):
    return "auth/login" in path and "logout" not in path


def is_preadvised_route(path):
    return "preadvice" in path or "pre-advis" in path


def classify_routes(routes):
    login = None
    preadvised = []
    for p in routes:
        if login is None and is_login_route(p):
            login = p
        if is_preadvised_route(p) and p not in preadvised:
            preadvised.append(p)
    return login, tuple(preadvised)


class ApiDiscoverer(object):
    """
    Scrapes the public frontend for the backend base url, api version and
    route literals.
    """

    def __init__(self, relay, entry_url, log=None):
        self._relay = relay
        self._entry_url = entry_url.rstrip("/")
        self._log = log or cout.info

    def _check_cancel(self, cancel_event):
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelledError(msg="Cancelled during API discovery")

    def discover(self, cancel_event=None):
        log = self._log
        log("Scraping frontend JS bundles for API architecture...")

        r = self._relay.relay(self._entry_url)
        if not r.success:
            raise DiscoveryError(msg="Unable to fetch entry page %s: %s" % (self._entry_url, r.message))
        scripts = extract_script_urls(r.text or "", self._entry_url)
        cout.debug("Found %d script bundles" % len(scripts))

        own_host = urlparse(self._entry_url).hostname
        base_url, version = None, None
        routes = []

        for url in scripts:
            self._check_cancel(cancel_event)
            sr = self._relay.relay(url)
            if not sr.success:
                cout.warning("Unable to fetch script %s: %s" % (url, sr.message))
                continue
            js = sr.text or ""

            if base_url is None or version is None:
                b, v = find_base_and_version(js, own_host=own_host)
                base_url = base_url or b
                version = version or v

            for p in find_routes(js):
                if p not in routes:
                    routes.append(p)

        if not base_url or not version:
            raise DiscoveryError(msg="Could not discover API base url or version from %d scripts" % len(scripts))

        login, preadvised = classify_routes(routes)
        surface = ApiSurface(
            base_url=base_url.rstrip("/"),
            api_version=version,
            routes=tuple(routes),
            login_route=login,
            preadvised_routes=preadvised,
        )
        log("Discovered: %s" % surface)
        log("Found %d API routes" % len(routes))
        if login:
            log("Login route: %s" % login)
        if preadvised:
            log("Pre-advised route: %s" % preadvised[0])
        return surface


def apply_base_override(surface, relay, override, log=None):
    """
    Return a surface that uses ``override`` as base url when a probe of it does
    not come back as an HTML document. The shared surface is never modified.
    """
    log = log or cout.info
    if not override or not override.strip():
        return surface
    clean = override.strip().rstrip("/")
    r = relay.relay(clean)
    if not r.success:
        log("Custom base URL %s is unreachable (%s), keeping %s" % (clean, r.message, surface.base_url))
        return surface
    if r.is_html:
        log("Custom base URL %s serves HTML, keeping %s" % (clean, surface.base_url))
        return surface
    log("Using custom base URL: %s" % clean)
    return replace(surface, base_url=clean)
