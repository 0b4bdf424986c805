#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: streaming.py

"""
Progress events of an account job: any number of ``log`` events followed by
exactly one terminal ``result`` or ``error`` event. The same dicts travel
in-process and over a server-sent event stream.
"""

from requests.compat import json

EVENT_LOG = "log"
EVENT_RESULT = "result"
EVENT_ERROR = "error"

TERMINAL_EVENTS = (EVENT_RESULT, EVENT_ERROR)


def log_event(message):
    return {"type": EVENT_LOG, "message": message}


def result_event(result):
    return {"type": EVENT_RESULT, "data": result.to_dict()}


def error_event(message, kind=None):
    event = {"type": EVENT_ERROR, "message": message}
    if kind:
        event["kind"] = kind
    return event


def is_terminal(event):
    return isinstance(event, dict) and event.get("type") in TERMINAL_EVENTS


def encode_sse(event):
    return "data: %s\n\n" % json.dumps(event, ensure_ascii=False)


def iter_sse_events(lines):
    """
    Decode an iterable of SSE text lines into event dicts. Multi-line ``data``
    fields are joined, comments and undecodable payloads are skipped.
    """
    buf = []
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.rstrip("\r\n")
        if line == "":
            event = _decode(buf)
            buf = []
            if event is not None:
                yield event
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            value = line[5:]
            if value.startswith(" "):
                value = value[1:]
            buf.append(value)
    event = _decode(buf)
    if event is not None:
        yield event


def _decode(buf):
    if not buf:
        return None
    try:
        event = json.loads("\n".join(buf))
    except ValueError:
        return None
    return event if isinstance(event, dict) else None
