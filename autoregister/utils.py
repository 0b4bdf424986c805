#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: utils.py

DEFAULT_SEARCH_DEPTH = 8


class Singleton(type):
    """
    Singleton Metaclass
    @link https://github.com/jhao104/proxy_pool/blob/428359c8dada998481f038dbdc8d3923e5850c0e/Util/utilClass.py
    """
    _inst = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._inst:
            cls._inst[cls] = super(Singleton, cls).__call__(*args, **kwargs)
        return cls._inst[cls]


def deep_search(obj, predicate, max_depth=DEFAULT_SEARCH_DEPTH):
    """
    Depth-first search over a decoded JSON payload.

    ``predicate(key, value)`` is called for every node, where ``key`` is the
    dict key or list index the value was reached by (``None`` for the root).
    The first value accepted by the predicate is returned, otherwise ``None``.
    Nodes deeper than ``max_depth`` levels are never visited, so cyclic or
    pathologically nested payloads terminate.
    """
    return _deep_search(None, obj, predicate, max_depth)


def _deep_search(key, value, predicate, depth):
    if depth <= 0 or value is None:
        return None
    if predicate(key, value):
        return value
    if isinstance(value, dict):
        children = value.items()
    elif isinstance(value, (list, tuple)):
        children = enumerate(value)
    else:
        return None
    for k, v in children:
        found = _deep_search(k, v, predicate, depth - 1)
        if found is not None:
            return found
    return None


def find_value(obj, key_name, accept=None, max_depth=DEFAULT_SEARCH_DEPTH):
    def _match(key, value):
        if key != key_name:
            return False
        return accept is None or accept(value)

    return deep_search(obj, _match, max_depth=max_depth)


def find_list(obj, item_predicate, max_depth=DEFAULT_SEARCH_DEPTH):
    """Find the first non-empty list in which any item satisfies ``item_predicate``."""

    def _match(key, value):
        return isinstance(value, list) and any(item_predicate(it) for it in value)

    return deep_search(obj, _match, max_depth=max_depth)


def first_present(d, keys, default=None):
    if not isinstance(d, dict):
        return default
    for k in keys:
        v = d.get(k)
        if v is not None and v != "":
            return v
    return default
