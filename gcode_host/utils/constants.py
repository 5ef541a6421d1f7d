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

"""Constants and configuration values for GCode Host.

This module centralizes all magic numbers, default values, and fixed
protocol parameters used throughout the application.
"""

from typing import Dict, Tuple

# ============================================================================
# SERIAL COMMUNICATION CONSTANTS
# ============================================================================

BAUD_RATE = 250000
"""Fixed baud rate of the printer link (not configurable at runtime)."""

SERIAL_BYTESIZE = 8
"""Data bits per character."""

SERIAL_PARITY = "N"
"""No parity."""

SERIAL_STOPBITS = 1
"""Stop bits per character."""

SERIAL_READ_TIMEOUT = 0.01
"""Bounded read timeout (seconds); also bounds shutdown latency."""

READ_CHUNK_SIZE = 512
"""Maximum number of bytes requested per read."""

LINE_TERMINATOR = b"\n"
"""Byte that terminates every line in both directions."""

# ============================================================================
# PROTOCOL CONSTANTS
# ============================================================================

ACK_PREFIX = "ok"
"""Two-character prefix of an acknowledgment line."""

TEMPERATURE_QUERY = "M105"
"""Report current temperatures."""

POSITION_QUERY = "M114"
"""Report current position."""

# ============================================================================
# TIMING CONSTANTS
# ============================================================================

THREAD_JOIN_TIMEOUT = 1.0
"""Timeout when joining the serial worker thread (seconds)."""

CONSOLE_POLL_INTERVAL = 0.01
"""Console main loop tick (seconds)."""

POLL_INTERVAL_DEFAULT = 2.0
"""Default interval between temperature/position queries (seconds)."""

POLL_INTERVAL_MIN = 0.1
"""Minimum allowed poll interval (seconds)."""

# ============================================================================
# MANUAL CONTROL CONSTANTS
# ============================================================================

MOTION_AXES: Tuple[str, ...] = ("X", "Y", "Z")
"""Axes that can be jogged and homed."""

EXTRUDER_TOOLS: Dict[str, int] = {
    "E1": 0,
    "E2": 1,
}
"""Extruder names mapped to their tool index."""

JOG_FEED_DEFAULT = 3000.0
"""Default jog feed rate (mm/min)."""

JOG_STEP_DEFAULT = 10.0
"""Default jog distance (mm)."""

EXTRUDE_FEED_DEFAULT = 300.0
"""Default extrusion feed rate (mm/min)."""

MAX_JOG_DISTANCE = 1000.0
"""Largest single jog move accepted (mm)."""

# ============================================================================
# SETTINGS CONSTANTS
# ============================================================================

SETTINGS_DIRNAME = "GCodeHost"
"""Directory name for application settings."""

SETTINGS_FILENAME = "settings.json"
"""Filename for application settings."""

SETTINGS_BACKUP_SUFFIX = ".backup"
"""Suffix for settings backup file."""

SETTINGS_TEMP_SUFFIX = ".tmp"
"""Suffix for temporary settings file during write."""

# ============================================================================
# ERROR MESSAGES
# ============================================================================

ERROR_NOT_CONNECTED = "Not connected to printer"

ERROR_PORT_OPEN = "Failed to open {}: {}"
