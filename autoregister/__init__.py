#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: __init__.py

__version__ = "1.0.0"
__date__ = "2026.10.18"
