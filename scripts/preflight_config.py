#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Prints what a launch with the given config would do, account by account,
followed by the static preflight issues. Never touches the network.

    python scripts/preflight_config.py -c config.ini [-m hybrid] [--strict]
"""

import os
import sys
from configparser import Error as ConfigParserError
from optparse import OptionParser

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from autoregister.const import MODE_FAST
from autoregister.environ import Environ
from autoregister.exceptions import AutoRegisterException
from autoregister.preflight import run_preflight
from autoregister.sanitize import redact_url


def _mask(student_id):
    s = str(student_id or "")
    return s[:2] + "*" * max(0, len(s) - 4) + s[-2:] if len(s) > 4 else "*" * len(s)


def _relay_line(config):
    if config.relay_endpoint:
        return "remote %s (timeout %ss)" % (redact_url(config.relay_endpoint), config.relay_timeout)
    hosts = config.relay_allowed_hosts
    return "direct, %s (timeout %ss)" % (
        "hosts " + ", ".join(hosts) if hosts else "any host", config.relay_timeout,
    )


def _account_lines(config, mode_override):
    accounts = config.accounts
    targets = config.targets
    for account_id, a in accounts.items():
        mode = mode_override or a["mode"] or config.mode
        base = a["api_base_url"] or config.api_base_url or "(discovered)"
        yield "[%s] student %s, %s mode, api %s" % (account_id, _mask(a["student_id"]), mode, base)
        if mode != MODE_FAST and not config.headless_endpoint:
            yield "    ! no headless endpoint for %s mode" % mode
        for t in targets.get(account_id) or []:
            yield "    %s -> section %s" % (t.course_code, t.target_section)
        if not targets.get(account_id):
            yield "    (no target, skipped)"


def main(argv=None):
    parser = OptionParser(usage="%prog -c FILE [-m MODE] [--strict]",
                          description="Static launch report, no network.")
    parser.add_option("-c", "--config", dest="config_ini", metavar="FILE", help="config file to inspect")
    parser.add_option("-m", "--mode", dest="mode", metavar="MODE", help="mode override, as the CLI takes it")
    parser.add_option("--strict", dest="strict", action="store_true", default=False,
                      help="exit 1 when there are warnings")
    options, _ = parser.parse_args(argv)

    if not options.config_ini:
        parser.error("-c/--config is required")
    path = os.path.abspath(os.path.expanduser(options.config_ini))
    if not os.path.isfile(path):
        print("config not found: %s" % path)
        return 2

    environ = Environ()
    environ.config_ini = path
    environ.mode = options.mode.strip().lower() if options.mode else None

    # config reads environ on construction
    from autoregister.config import AutoRegisterConfig
    try:
        config = AutoRegisterConfig()
    except (AutoRegisterException, ConfigParserError, OSError) as e:
        print("unable to load %s: %s" % (path, e))
        return 2

    issues = run_preflight(config)

    print("config   %s" % config.file)
    try:
        print("frontend %s" % config.frontend_url)
        print("relay    %s" % _relay_line(config))
        print("headless %s" % (redact_url(config.headless_endpoint) if config.headless_endpoint else "-"))
        print("")
        for line in _account_lines(config, environ.mode):
            print(line)
    except (AutoRegisterException, ConfigParserError) as e:
        # the same problem is listed again below as a preflight issue
        print("report stopped: %s" % e)
    print("")

    for level in ("ERROR", "WARN"):
        picked = [i for i in issues if i.level == level]
        print("%s x%d" % (level, len(picked)))
        for i in picked:
            print("  %s [%s] %s" % (i.code, i.key_path or "-", i.message))

    if any(i.level == "ERROR" for i in issues):
        return 2
    if options.strict and issues:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
