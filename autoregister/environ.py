#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: environ.py

from .utils import Singleton


class Environ(object, metaclass=Singleton):

    def __init__(self):
        self.config_ini = None
        self.mode = None
        self.discover_only = False
