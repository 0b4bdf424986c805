#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: config.py

import os
import re
from configparser import RawConfigParser, DuplicateSectionError
from collections import OrderedDict
from .environ import Environ
from .models import LaunchRequest, Target
from .utils import Singleton
from .const import DEFAULT_CONFIG_INI, DEFAULT_FRONTEND_URL, DEFAULT_MAX_ATTEMPTS, MODE_FAST, MODES
from .exceptions import UserInputException

_reNamespacedSection = re.compile(r'^\s*(?P<ns>[^:]+?)\s*:\s*(?P<id>[^,]+?)\s*$')
_reCommaSep = re.compile(r'\s*,\s*')

environ = Environ()


class BaseConfig(object):

    def __init__(self, config_file=None):
        if self.__class__ is __class__:
            raise NotImplementedError
        file = os.path.normpath(os.path.abspath(config_file))
        if not os.path.exists(file):
            raise FileNotFoundError("Config file was not found: %s" % file)
        self._file = file
        self._config = RawConfigParser()
        self._config.read(file, encoding="utf-8-sig")

    @property
    def file(self):
        return self._file

    def get(self, section, key):
        return self._config.get(section, key)

    def getint(self, section, key):
        return self._config.getint(section, key)

    def getfloat(self, section, key):
        return self._config.getfloat(section, key)

    def getboolean(self, section, key):
        return self._config.getboolean(section, key)

    def get_optional(self, section, key, default=None):
        if self._config.has_option(section, key):
            return self._config.get(section, key)
        return default

    def get_optional_bool(self, section, key, default=False):
        if not self._config.has_option(section, key):
            return default
        try:
            return self._config.getboolean(section, key)
        except ValueError:
            raise UserInputException("Invalid boolean for %s.%s" % (section, key))

    def get_optional_float(self, section, key, default=None):
        v = self.get_optional(section, key)
        if v is None or v.strip() == "":
            return default
        try:
            return float(v)
        except ValueError:
            raise UserInputException("Invalid number for %s.%s: %r" % (section, key, v))

    def get_optional_int(self, section, key, default=None):
        v = self.get_optional(section, key)
        if v is None or v.strip() == "":
            return default
        try:
            return int(v)
        except ValueError:
            raise UserInputException("Invalid integer for %s.%s: %r" % (section, key, v))

    def get_optional_list(self, section, key, default=None):
        if not self._config.has_option(section, key):
            return default if default is not None else []
        v = self._config.get(section, key)
        if v is None or v.strip() == "":
            return []
        return _reCommaSep.split(v.strip())

    def getdict(self, section, options):
        assert isinstance(options, (list, tuple, set))
        d = dict(self._config.items(section))
        if not all(k in d and d[k].strip() for k in options):
            raise UserInputException("Incomplete section %r, %s must all exist." % (section, options))
        return d

    def ns_sections(self, ns):
        ns = ns.strip()
        ns_sects = OrderedDict()  # { id: str(section) }
        for s in self._config.sections():
            mat = _reNamespacedSection.match(s)
            if mat is None:
                continue
            if mat.group('ns') != ns:
                continue
            id_ = mat.group('id')
            if id_ in ns_sects:
                raise DuplicateSectionError("%s:%s" % (ns, id_))
            ns_sects[id_] = s
        return [(id_, s) for id_, s in ns_sects.items()]  # [ (id, str(section)) ]


class AutoRegisterConfig(BaseConfig, metaclass=Singleton):

    def __init__(self):
        super().__init__(
            environ.config_ini
            or os.environ.get("AUTOREGISTER_CONFIG_INI")
            or DEFAULT_CONFIG_INI
        )

    ## Model

    # [engine]

    @property
    def frontend_url(self):
        return (self.get_optional("engine", "frontend_url") or DEFAULT_FRONTEND_URL).strip()

    @property
    def mode(self):
        v = environ.mode or self.get_optional("engine", "mode") or MODE_FAST
        return v.strip().lower()

    @property
    def api_base_url(self):
        v = self.get_optional("engine", "api_base_url")
        return v.strip() if v and v.strip() else None

    @property
    def max_attempts(self):
        return self.get_optional_int("engine", "max_attempts", DEFAULT_MAX_ATTEMPTS)

    # [pace]

    @property
    def pace_default_interval(self):
        return self.get_optional_float("pace", "default_interval", 1.0)

    @property
    def pace_idle_interval(self):
        return self.get_optional_float("pace", "idle_interval", 5.0)

    @property
    def pace_warmup_interval(self):
        return self.get_optional_float("pace", "warmup_interval", 0.25)

    @property
    def pace_max_rate_interval(self):
        return self.get_optional_float("pace", "max_rate_interval", 0.1)

    @property
    def pace_idle_threshold_ms(self):
        return self.get_optional_float("pace", "idle_threshold_ms", 10000)

    @property
    def pace_warmup_threshold_ms(self):
        return self.get_optional_float("pace", "warmup_threshold_ms", 2000)

    # [relay]

    @property
    def relay_endpoint(self):
        v = self.get_optional("relay", "endpoint")
        return v.strip() if v and v.strip() else None

    @property
    def relay_timeout(self):
        return self.get_optional_float("relay", "timeout", 15.0)

    @property
    def relay_allowed_hosts(self):
        return self.get_optional_list("relay", "allowed_hosts")

    @property
    def is_debug_print_request(self):
        return self.get_optional_bool("relay", "debug_print_request", False)

    # [headless]

    @property
    def headless_endpoint(self):
        v = self.get_optional("headless", "endpoint")
        return v.strip() if v and v.strip() else None

    @property
    def headless_timeout(self):
        return self.get_optional_float("headless", "timeout", 600.0)

    # [account:<id>] / [target:<id>]

    @property
    def accounts(self):
        accounts = OrderedDict()  # { account_id: {student_id, password, mode, api_base_url} }
        for id_, s in self.ns_sections("account"):
            d = self.getdict(s, ("student_id", "password"))
            accounts[id_] = {
                "student_id": d["student_id"].strip(),
                "password": d["password"],
                "mode": (d.get("mode") or "").strip().lower() or None,
                "api_base_url": (d.get("api_base_url") or "").strip() or None,
            }
        return accounts

    @property
    def targets(self):
        accounts = self.accounts
        targets = OrderedDict()  # { account_id: [Target] }
        for account_id in accounts:
            targets[account_id] = []
        for id_, s in self.ns_sections("target"):
            d = self.getdict(s, ("account", "course_code", "section"))
            account_id = d["account"].strip()
            if account_id not in accounts:
                raise UserInputException("Target %r refers to an undefined account %r" % (id_, account_id))
            targets[account_id].append(Target(d["course_code"].strip(), d["section"].strip()))
        return targets

    def launch_requests(self):
        """ [(account_id, LaunchRequest)] for every account holding at least one target """
        accounts = self.accounts
        requests = []
        for account_id, targets in self.targets.items():
            if not targets:
                continue
            a = accounts[account_id]
            mode = environ.mode or a["mode"] or self.mode
            requests.append((account_id, LaunchRequest(
                student_id=a["student_id"],
                secret=a["password"],
                targets=tuple(targets),
                mode=mode,
                api_base_url_override=a["api_base_url"] or self.api_base_url,
            )))
        return requests

    ## Method

    def check_mode(self, mode):
        if mode not in MODES:
            raise UserInputException("Unsupported mode %r, please choose from %s" % (mode, MODES))
