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

"""Periodic temperature/position queries fed through the command queue.

The poller does not run a thread of its own. The owner of the controller
ticks it from its event loop, so queries go through ``enqueue`` on the
controller's thread like any other command.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Sequence

from .utils.constants import (
    POLL_INTERVAL_DEFAULT,
    POLL_INTERVAL_MIN,
    POSITION_QUERY,
    TEMPERATURE_QUERY,
)
from .utils.validation import validate_command, validate_interval

if TYPE_CHECKING:
    from .controller import PrinterController

logger = logging.getLogger(__name__)


class StatusPoller:
    def __init__(
        self,
        interval: float = POLL_INTERVAL_DEFAULT,
        commands: Sequence[str] = (TEMPERATURE_QUERY, POSITION_QUERY),
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._interval = validate_interval(interval, min_val=POLL_INTERVAL_MIN)
        self.commands = tuple(c for c in (validate_command(c) for c in commands) if c)
        self.enabled = True
        self._clock = clock
        self._next_due: float | None = None

    @property
    def interval(self) -> float:
        return self._interval

    def set_interval(self, interval: float) -> None:
        """Change the polling interval; takes effect after the next poll."""
        self._interval = validate_interval(interval, min_val=POLL_INTERVAL_MIN)
        logger.debug(f"Status poll interval set to {self._interval}s")

    def tick(self, printer: "PrinterController", now: float | None = None) -> list[str]:
        """Enqueue the status queries if they are due.

        A query is skipped while an identical one is still waiting in the
        queue, so a busy printer does not accumulate polls. The first poll
        of a session fires right after connecting.

        Returns:
            The commands that were enqueued
        """
        if now is None:
            now = self._clock()

        if not self.enabled or not printer.is_connected():
            self._next_due = None
            return []

        if self._next_due is not None and now < self._next_due:
            return []

        self._next_due = now + self._interval
        pending = printer.pending_commands
        issued = []
        for command in self.commands:
            if command in pending:
                continue
            printer.enqueue(command)
            issued.append(command)
        return issued
