"""Logging setup: a compact formatter writing to stdout and a log file."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime

from termcolor import colored as _colored

from frdocker import config

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOGGER_NAME = "frdocker"

_LEVEL_NAMES = {
    TRACE: "trace",
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}

_LEVEL_COLORS = {
    TRACE: config.LOG_TRACE_COLOR,
    logging.DEBUG: config.LOG_DEBUG_COLOR,
    logging.INFO: config.LOG_INFO_COLOR,
    logging.WARNING: config.LOG_WARN_COLOR,
    logging.ERROR: config.LOG_ERROR_COLOR,
    logging.CRITICAL: config.LOG_FATAL_COLOR,
}


class LogFormatter(logging.Formatter):
    """Formats records as ``[time][LEVL] message``, optionally coloured."""

    def __init__(self, colored: bool = False, report_caller: bool = config.LOG_CALLER_ENABLED):
        super().__init__()
        self.colored = colored
        self.report_caller = report_caller

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        stamp = f"{stamp}.{int(record.msecs):03d}"
        name = _LEVEL_NAMES.get(record.levelno, record.levelname.lower())
        level = name.upper()[:4]
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        if self.report_caller:
            line = f"[{stamp}][{level}][{record.pathname}:{record.lineno}] {message}"
        else:
            line = f"[{stamp}][{level}] {message}"
        if self.colored:
            color = _LEVEL_COLORS.get(record.levelno)
            if color is not None:
                line = _colored(line, color, force_color=True)
        return line


def new_logger(
    log_file: str = config.LOG_FILE,
    colored: bool = False,
    root_path: str = config.LOG_FILE_ROOT_PATH,
) -> logging.Logger:
    """Create the application logger writing to stdout and ``root_path/log_file``."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(TRACE)
    logger.propagate = False
    formatter = LogFormatter(colored)

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    try:
        os.makedirs(root_path, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(root_path, log_file), mode="a")
    except OSError:
        return logger
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    return logger