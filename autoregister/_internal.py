#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: _internal.py

import os

_abspath = lambda *path: os.path.normpath(os.path.abspath(os.path.join(*path)))

BASE_DIR = _abspath(os.path.dirname(__file__), "../")


def absp(*path):
    return _abspath(BASE_DIR, *path)


def mkdir(path):
    if not os.path.exists(path):
        os.makedirs(path, exist_ok=True)
