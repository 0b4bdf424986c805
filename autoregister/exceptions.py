#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: exceptions.py

from requests.exceptions import RequestException

__all__ = [

    "AutoRegisterException",
        "UserInputException",
        "JobAlreadyRunningError",
        "IllegalTransitionError",

        "RaceEngineException",
            "DiscoveryError",
            "AuthenticationError",
            "ResolutionError",
            "RemoteExecutorError",
            "JobCancelledError",

    "classify_error",
    "describe_error",
]


class AutoRegisterException(Exception):
    pass


class UserInputException(AutoRegisterException, ValueError):
    pass


class JobAlreadyRunningError(AutoRegisterException):
    pass


class IllegalTransitionError(AutoRegisterException, RuntimeError):
    pass


class RaceEngineException(AutoRegisterException):

    code = -1
    desc = "RaceEngineException"
    kind = "unknown"

    def __init__(self, *args, **kwargs):
        self.response = kwargs.pop("response", None)
        msg = kwargs.pop("msg", self.__class__.desc)
        self.msg = msg
        super().__init__("[%d] %s" % (self.__class__.code, msg), *args, **kwargs)


class DiscoveryError(RaceEngineException):
    code = 101
    desc = "API discovery failed"
    kind = "discovery"


class AuthenticationError(RaceEngineException):
    code = 102
    desc = "Could not acquire session token"
    kind = "auth"


class ResolutionError(RaceEngineException):
    code = 103
    desc = "Course or section identifiers could not be resolved"
    kind = "resolution"


class RemoteExecutorError(RaceEngineException):
    code = 104
    desc = "Remote executor failed"
    kind = "remote"


class JobCancelledError(RaceEngineException):
    code = 105
    desc = "Cancelled"
    kind = "cancelled"


def classify_error(exc):
    """
    Map an exception raised out of an account job onto the error taxonomy.
    Returns one of: discovery / auth / resolution / remote / cancelled /
    input / network / unknown.
    """
    if isinstance(exc, RaceEngineException):
        return exc.__class__.kind
    if isinstance(exc, UserInputException):
        return "input"
    if isinstance(exc, RequestException):
        return "network"
    return "unknown"


def describe_error(exc):
    """Human readable message for a terminal error event."""
    if isinstance(exc, RaceEngineException):
        return exc.msg
    return str(exc) or exc.__class__.__name__
