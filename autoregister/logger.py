#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# filename: logger.py

import os
import logging
from logging.handlers import TimedRotatingFileHandler
from .const import LOG_DIR
from ._internal import mkdir

mkdir(LOG_DIR)

_FORMATTER = logging.Formatter("[%(levelname)s] %(name)s, %(asctime)s, %(message)s", "%H:%M:%S")
_FILE_FORMATTER = logging.Formatter("[%(levelname)s] %(name)s, %(asctime)s, %(message)s", "%Y-%m-%d %H:%M:%S")


class BaseLogger(object):

    default_level = logging.DEBUG

    def __init__(self, name, level=None):
        if self.__class__ is __class__:
            raise NotImplementedError
        self._name = name
        self._level = level if level is not None else self.__class__.default_level
        self._logger = logging.getLogger(self._name)
        self._logger.setLevel(self._level)
        if not any(getattr(h, "_autoregister_kind", None) == self.__class__.__name__
                   for h in self._logger.handlers):
            handler = self._get_handler()
            handler._autoregister_kind = self.__class__.__name__
            self._logger.addHandler(handler)

    @property
    def handlers(self):
        return self._logger.handlers

    def _get_handler(self):
        raise NotImplementedError

    def log(self, level, msg, *args, **kwargs):
        return self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        return self._logger.debug(msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        return self._logger.info(msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        return self._logger.warning(msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        return self._logger.error(msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        return self._logger.critical(msg, *args, **kwargs)

    def exception(self, msg, *args, exc_info=True, **kwargs):
        return self._logger.exception(msg, *args, exc_info=exc_info, **kwargs)


class ConsoleLogger(BaseLogger):
    """ 控制台日志输出类 """

    default_level = logging.DEBUG

    def _get_handler(self):
        handler = logging.StreamHandler()
        handler.setLevel(self._level)
        handler.setFormatter(_FORMATTER)
        return handler


class FileLogger(BaseLogger):
    """ 文件日志输出类，按天切分 """

    default_level = logging.WARNING

    def _get_handler(self):
        file = os.path.join(LOG_DIR, "%s.log" % self._name)
        handler = TimedRotatingFileHandler(file, when="d", encoding="utf-8", delay=True)
        handler.setLevel(self._level)
        handler.setFormatter(_FILE_FORMATTER)
        return handler
