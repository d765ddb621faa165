#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

import logging
import pathlib
import sys
from typing import TextIO

# Just for reference, the predefined logging levels:
#
# Python         added here
# -------------------------
# CRITICAL 50
# ERROR    40
# WARNING  30
# INFO     20
#                VERBOSE  15
# DEBUG    10
#
# VERBOSE is used for the per poll bookkeeping of the change watcher, which is
# too chatty for INFO but still interesting without the full DEBUG output.
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("vsphere-client")
logger.addHandler(logging.NullHandler())


def get_formatter(
    format_str: str = "%(asctime)s [%(levelno)s] [%(name)s %(process)d] %(message)s",
) -> logging.Formatter:
    return logging.Formatter(format_str)


def configure_logger(path: pathlib.Path) -> None:
    handler = logging.FileHandler(path, encoding="UTF-8")
    handler.setFormatter(get_formatter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def setup_console_logging(stream: TextIO = sys.stderr) -> None:
    """Write all log messages to the given stream

    Previously configured stream handlers are replaced. This is what the command
    line tools use, only the message and the logger name are shown.
    """
    handler = logging.StreamHandler(stream=stream)
    handler.setFormatter(get_formatter("%(levelname)s [%(name)s] %(message)s"))

    del logger.handlers[:]
    logger.addHandler(handler)


def verbosity_to_log_level(verbosity: int) -> int:
    """Values for "verbosity":

      0: enables WARNING and above
      1: enables VERBOSE and above
      2: enables DEBUG and above (ALL messages)

    >>> verbosity_to_log_level(1)
    15
    """
    if verbosity == 0:
        return logging.WARNING
    if verbosity == 1:
        return VERBOSE
    if verbosity >= 2:
        return logging.DEBUG
    raise ValueError(verbosity)
