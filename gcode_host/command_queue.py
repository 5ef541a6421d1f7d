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

"""Pending command FIFO and the acknowledgment latch."""

from __future__ import annotations

from collections import deque

from .types import AckState


class CommandQueue:
    """Unbounded FIFO of outgoing command strings."""

    def __init__(self) -> None:
        self._items: deque[str] = deque()

    def append(self, command: str) -> None:
        self._items.append(command)

    def popleft(self) -> str:
        return self._items.popleft()

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self._items)

    def __contains__(self, command: object) -> bool:
        return command in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)


class AckGate:
    """Flow-control latch: armed while a dispatched command awaits ``ok``."""

    def __init__(self) -> None:
        self.state = AckState.IDLE

    @property
    def awaiting(self) -> bool:
        return self.state is AckState.AWAITING_ACK

    def arm(self) -> None:
        self.state = AckState.AWAITING_ACK

    def clear(self) -> None:
        self.state = AckState.IDLE
