#!/usr/bin/env python3
# GCode Host (serial printer controller)
# Copyright (C) 2026 Bob Kolbasowski
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# Optional (not required by the license): If you make improvements, please consider
# contributing them back upstream (e.g., via a pull request) so others can benefit.
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Logging setup for GCode Host.

Log files live in a ``logs`` directory next to the settings file in use,
so ``--config`` moves both together. Traffic on the printer link goes to
its own file through the ``gcode_host.serial`` logger.
"""

from __future__ import annotations

import logging
import logging.handlers
import tempfile
from pathlib import Path
from typing import NamedTuple

from .config import get_settings_path

APP_LOGGER_NAME = "gcode_host"
SERIAL_LOGGER_NAME = f"{APP_LOGGER_NAME}.serial"
LOG_DIRNAME = "logs"

_CONSOLE_HANDLER = "gcode_host_console"


class _LogFile(NamedTuple):
    handler_name: str
    filename: str
    level: int
    max_bytes: int
    backups: int
    fmt: str


# (logger name, file) pairs attached by setup_logging()
_LOG_FILES = (
    (APP_LOGGER_NAME, _LogFile(
        "gcode_host_app_file", "gcode_host.log", logging.DEBUG, 10_000_000, 5,
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )),
    (APP_LOGGER_NAME, _LogFile(
        "gcode_host_error_file", "errors.log", logging.WARNING, 2_000_000, 5,
        "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d\n%(message)s\n",
    )),
    (SERIAL_LOGGER_NAME, _LogFile(
        "gcode_host_serial_file", "serial.log", logging.DEBUG, 5_000_000, 3,
        "%(asctime)s.%(msecs)03d %(message)s",
    )),
)


def _find_handler(logger: logging.Logger, name: str) -> logging.Handler | None:
    for handler in logger.handlers:
        if handler.get_name() == name:
            return handler
    return None


def get_log_dir(settings_path: str | None = None) -> Path:
    """Resolve the log directory for a settings file (creates it if needed).

    Args:
        settings_path: Settings file in use (default: the standard location)

    Returns:
        ``<settings dir>/logs``, or a temp directory if that is not writable
    """
    log_dir = Path(settings_path or get_settings_path()).parent / LOG_DIRNAME
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir
    except OSError:
        fallback = Path(tempfile.gettempdir()) / "gcode_host_logs"
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def setup_logging(
    console_level: int = logging.INFO,
    log_dir: Path | None = None,
) -> logging.Logger:
    """Attach console and rotating file handlers to the package loggers.

    Calling again only adjusts the console level; file handlers are
    attached once per process.

    Args:
        console_level: Level for messages printed to stderr
        log_dir: Directory for log files (default: ``get_log_dir()``)

    Returns:
        The ``gcode_host`` logger
    """
    root = logging.getLogger(APP_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    root.propagate = False

    console = _find_handler(root, _CONSOLE_HANDLER)
    if console is None:
        console = logging.StreamHandler()
        console.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
        )
        console.set_name(_CONSOLE_HANDLER)
        root.addHandler(console)
    console.setLevel(console_level)

    if log_dir is None:
        log_dir = get_log_dir()
    log_dir = Path(log_dir)

    for logger_name, spec in _LOG_FILES:
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.DEBUG)
        if _find_handler(logger, spec.handler_name) is not None:
            continue
        handler = logging.handlers.RotatingFileHandler(
            log_dir / spec.filename,
            maxBytes=spec.max_bytes,
            backupCount=spec.backups,
            encoding="utf-8",
        )
        handler.setLevel(spec.level)
        handler.setFormatter(logging.Formatter(spec.fmt, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.set_name(spec.handler_name)
        logger.addHandler(handler)

    return root
