#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Read-only API discovery.

Scrapes the public frontend for the backend base url, api version and route
literals, then prints them (or dumps them as JSON). Never logs in.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from autoregister.const import DEFAULT_FRONTEND_URL
from autoregister.discovery import ApiDiscoverer
from autoregister.exceptions import RaceEngineException
from autoregister.relay import DirectRelay


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Discover the backend API behind the registration frontend.")
    parser.add_argument("--url", default=DEFAULT_FRONTEND_URL, help="Frontend entry url.")
    parser.add_argument("--timeout", type=float, default=15.0, help="Per request timeout (seconds).")
    parser.add_argument("--json", action="store_true", help="Print the surface as JSON.")
    args = parser.parse_args(argv)

    relay = DirectRelay(timeout=args.timeout)
    try:
        surface = ApiDiscoverer(relay, args.url, log=lambda m: print("[discover]", m)).discover()
    except RaceEngineException as e:
        print("[ERROR]", e.msg)
        return 2
    finally:
        relay.close()

    if args.json:
        print(json.dumps({
            "base_url": surface.base_url,
            "api_version": surface.api_version,
            "login_route": surface.login_route,
            "preadvised_routes": list(surface.preadvised_routes),
            "routes": list(surface.routes),
        }, indent=2, ensure_ascii=False))
        return 0

    print("")
    print("base_url:", surface.base_url)
    print("api_version:", surface.api_version)
    print("login_route:", surface.login_route or "(none)")
    print("preadvised_routes:", ", ".join(surface.preadvised_routes) or "(none)")
    print("routes (%d):" % len(surface.routes))
    for p in surface.routes:
        print(" -", p)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
