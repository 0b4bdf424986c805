#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: cli.py

from optparse import OptionParser
from . import __version__, __date__


def create_default_parser():

    parser = OptionParser(
        description='Course Registration Race Engine v%s (%s)' % (__version__, __date__),
        version=__version__,
    )

    ## custom input files

    parser.add_option(
        '-c',
        '--config',
        dest='config_ini',
        metavar="FILE",
        help='custom config file encoded with utf8',
    )

    ## overrides

    parser.add_option(
        '-m',
        '--mode',
        dest='mode',
        metavar="MODE",
        help='execution mode for every account: fast, headless or hybrid',
    )

    ## boolean (flag) options

    parser.add_option(
        '--discover-only',
        dest='discover_only',
        action='store_true',
        default=False,
        help='only discover the backend API and exit',
    )

    return parser


def setup_default_environ(options, args, environ):

    environ.config_ini = options.config_ini
    environ.mode = options.mode.strip().lower() if options.mode else None
    environ.discover_only = options.discover_only


def _print_event(cout, job, event):
    kind = event.get("type")
    if kind == "log":
        cout.info("[%s] %s" % (job.account_id, event.get("message", "")))
    elif kind == "result":
        for o in (event.get("data") or {}).get("results", []):
            mark = "OK" if o.get("success") else "FAIL"
            cout.info("[%s] %s %s: %s" % (job.account_id, mark, o.get("course"), o.get("reason")))
    elif kind == "error":
        cout.error("[%s] %s" % (job.account_id, event.get("message", "")))


def run():

    from .environ import Environ
    from .logger import ConsoleLogger

    environ = Environ()
    cout = ConsoleLogger("cli")

    parser = create_default_parser()
    options, args = parser.parse_args()

    setup_default_environ(options, args, environ)

    # import here to ensure the singleton `config` will be init later than parse_args()
    from .config import AutoRegisterConfig
    from .exceptions import AutoRegisterException, describe_error
    from .orchestrator import RaceOrchestrator
    from .preflight import run_preflight

    config = AutoRegisterConfig()
    if environ.mode is not None:
        config.check_mode(environ.mode)

    orchestrator = RaceOrchestrator.from_config(
        config, listener=lambda job, event: _print_event(cout, job, event),
    )

    if environ.discover_only:
        try:
            surface = orchestrator.get_surface()
        except AutoRegisterException as e:
            cout.error(describe_error(e))
            return 1
        cout.info("base_url: %s" % surface.base_url)
        cout.info("api_version: %s" % surface.api_version)
        cout.info("login_route: %s" % surface.login_route)
        for p in surface.routes:
            cout.info("route: %s" % p)
        return 0

    errors = [i for i in run_preflight(config) if i.level == "ERROR"]
    for i in errors:
        cout.error("%s [%s] %s" % (i.code, i.key_path or "-", i.message))
    if errors:
        return 2

    requests = config.launch_requests()
    if not requests:
        cout.warning("No account has any target, nothing to do")
        return 0

    for account_id, request in requests:
        orchestrator.launch(request, account_id)

    try:
        while not orchestrator.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        cout.warning("Interrupted, cancelling all jobs...")
        orchestrator.cancel_all()
        orchestrator.wait()

    jobs = orchestrator.jobs.values()
    return 0 if all(j.outcome is not None and j.outcome.success for j in jobs) else 1
