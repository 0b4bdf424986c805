#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: resolver.py

from collections import OrderedDict
from .const import COURSE_CODE_KEYS, FORMAL_CODE_KEYS, SECTION_ID_KEYS, SECTION_NAME_KEYS
from .exceptions import JobCancelledError, ResolutionError
from .logger import ConsoleLogger
from .utils import find_list, first_present

cout = ConsoleLogger("resolver")

COURSE_ID_PLACEHOLDER = "{course_id}"


def course_code_of(c):
    return first_present(c, COURSE_CODE_KEYS)


def formal_code_of(c):
    return first_present(c, FORMAL_CODE_KEYS)


def section_name_of(s):
    v = first_present(s, SECTION_NAME_KEYS, "")
    return str(v).strip()


def section_id_of(s):
    return first_present(s, SECTION_ID_KEYS)


def _is_course(item):
    return isinstance(item, dict) and course_code_of(item) is not None


def _is_section(item):
    return isinstance(item, dict) and first_present(item, SECTION_NAME_KEYS) is not None


def extract_courses(data):
    return find_list(data, _is_course) or []


def extract_sections(data):
    return find_list(data, _is_section) or []


def build_course_map(courses):
    """ { course_code|formal_code: internal course code } """
    id_map = OrderedDict()
    for c in courses:
        cc = course_code_of(c)
        if cc is None:
            continue
        cc = str(cc)
        id_map[cc] = cc
        fc = formal_code_of(c)
        if fc:
            id_map[str(fc)] = cc
    return id_map


def lookup_course_id(id_map, course_code):
    code = (course_code or "").strip()
    if not code:
        return None
    if code in id_map:
        return id_map[code]
    low = code.lower()
    for k, v in id_map.items():
        if k.lower() == low:
            return v
    for k, v in id_map.items():
        if low in k.lower():
            return v
    return None


def _is_course_route(p):
    return "course" in p and "command" not in p and "management" not in p


def preadvised_candidates(surface):
    candidates = OrderedDict()
    for p in surface.preadvised_routes:
        candidates[p] = None
    routes = list(surface.routes)
    if "/users/me" in routes:
        for frag in routes:
            keyword = next((s for s in frag.split("/") if "preadvice" in s), None)
            if keyword:
                candidates["/users/me/%s" % keyword] = None
        candidates["/users/me/preadvice-courses"] = None
    for p in routes:
        if _is_course_route(p):
            candidates[p] = None
    return list(candidates)


def sections_candidates(surface, course_id):
    candidates = OrderedDict()
    routes = list(surface.routes)
    for p in routes:
        clean = p.rstrip("/")
        if "section" in p:
            candidates["%s/%s" % (clean, course_id)] = None
        if _is_course_route(p):
            candidates["%s/sections/%s" % (clean, course_id)] = None
    if any("course" in p for p in routes):
        candidates["/courses/sections/%s" % course_id] = None
    return list(candidates)


def _looks_like_sections_payload(data):
    if not isinstance(data, dict):
        return False
    inner = data.get("data")
    if isinstance(inner, dict):
        sections = inner.get("sections")
        if isinstance(sections, list):
            return True
        if inner.get("course_code") is not None:
            return True
    return isinstance(inner, list)


def sections_path(template, course_id):
    return template.replace(COURSE_ID_PLACEHOLDER, str(course_id))


def select_path(template, course_id):
    return sections_path(template, course_id).rstrip("/") + "/select"


class IdentifierResolver(object):

    def __init__(self, backend, log=None, cancel_event=None):
        self._backend = backend
        self._log = log or cout.info
        self._cancel_event = cancel_event

    def _check_cancel(self):
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise JobCancelledError(msg="Cancelled while resolving identifiers")

    def resolve_courses(self):
        """
        Probe pre-advised course routes until one yields course objects.
        Returns the identifier map; raises ResolutionError if none does.
        """
        self._log("Fetching pre-advised courses...")
        for path in preadvised_candidates(self._backend.surface):
            self._check_cancel()
            cout.debug("Probing: %s" % path)
            r = self._backend.get(path)
            if not r.ok or r.data is None:
                continue
            id_map = build_course_map(extract_courses(r.data))
            if id_map:
                self._log("Mapped %d course entries via %s" % (len(id_map), path))
                return id_map
        raise ResolutionError(msg="Could not fetch pre-advised courses mapping")

    def resolve_sections_path(self, course_id):
        """
        Probe candidate sections routes with one known course id; return a
        path template holding the course id position open.
        """
        self._log("Discovering sections endpoint...")
        course_id = str(course_id)
        for path in sections_candidates(self._backend.surface, course_id):
            self._check_cancel()
            cout.debug("Probing sections: %s" % path)
            r = self._backend.get(path)
            if not r.ok or not _looks_like_sections_payload(r.data):
                continue
            template = path.replace(course_id, COURSE_ID_PLACEHOLDER)
            self._log("Sections path: %s" % template)
            return template
        raise ResolutionError(msg="No sections path found")
