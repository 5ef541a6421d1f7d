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

from __future__ import annotations

import queue
from enum import Enum
from typing import Literal, TypeAlias


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED_IDLE = "connected_idle"
    CONNECTED_AWAITING_ACK = "connected_awaiting_ack"


class AckState(Enum):
    IDLE = "idle"
    AWAITING_ACK = "awaiting_ack"


class ReportKind(Enum):
    TEMPERATURE = "temperature"
    POSITION = "position"


# controller -> worker
WorkerCommand: TypeAlias = (
    tuple[Literal["send"], str]
    | tuple[Literal["disconnect"]]
)

# worker -> controller
WorkerEvent: TypeAlias = (
    tuple[Literal["line"], str]
    | tuple[Literal["connection_lost"], str]
)

WorkerCommandQueue: TypeAlias = queue.Queue[WorkerCommand]
WorkerEventQueue: TypeAlias = queue.Queue[WorkerEvent]

ReportValues: TypeAlias = dict[str, float]

# controller -> presentation
UiEvent = (
    tuple[Literal["conn"], bool, str | None]
    | tuple[Literal["conn_lost"], str]
    | tuple[Literal["log"], str]
    | tuple[Literal["log_tx"], str]
    | tuple[Literal["log_rx"], str]
    | tuple[Literal["report"], ReportKind, str, ReportValues]
)
