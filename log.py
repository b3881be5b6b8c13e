# -*- coding: utf-8 -*-
# -----------------------------------------------------------------------------
# log.py - Shared logging for the MegaRoof driver.  Adapted from Alpyca's
# log.py
#
# Python Compatibility: Requires Python 3.7 or later
# GitHub: https://github.com/ASCOMInitiative/AlpycaDevice
#
# -----------------------------------------------------------------------------
# MIT License
#
# Copyright (c) 2022-2024 Bob Denny
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
# -----------------------------------------------------------------------------

import logging
import logging.handlers
import sys
import time

LOGGER_NAME = 'megaroof'
LOG_FORMAT = '%(asctime)s.%(msecs)03d %(levelname)s %(threadName)s %(message)s'
DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

logger: logging.Logger = None  # Set by init_logging(), shared throughout


def init_logging(config) -> logging.Logger:
    """Create the shared driver logger from configuration

    Time stamps are UTC with milliseconds. The log file rotates at
    ``config.max_size_mb`` and keeps ``config.num_keep_logs`` backups; it is
    rolled over at each start so every session begins a fresh file. With
    ``config.trace_enabled`` false only warnings and errors are recorded.

    Args:
        config: MegaRoofConfig (or any object with the logging properties)

    Returns:
        The configured logger
    """
    global logger

    level = config.log_level if config.trace_enabled else logging.WARNING

    new_logger = logging.getLogger(LOGGER_NAME)
    new_logger.setLevel(level)
    new_logger.propagate = False

    for hnd in new_logger.handlers[:]:
        hnd.close()
        new_logger.removeHandler(hnd)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    formatter.converter = time.gmtime

    handler = logging.handlers.RotatingFileHandler(
        config.log_file,
        mode='w',
        delay=True,
        maxBytes=config.max_size_mb * 1000000,
        backupCount=config.num_keep_logs,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.doRollover()
    new_logger.addHandler(handler)

    if config.log_to_stdout:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(formatter)
        new_logger.addHandler(console)

    logger = new_logger
    return new_logger
