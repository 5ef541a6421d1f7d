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

"""Line framing for the printer's serial byte stream.

Raw bytes are filtered down to printable ASCII (alphanumerics,
punctuation and whitespace) and split into lines on ``0x0A``. Anything
else the device emits, such as line noise or stray high-bit bytes, is
dropped without complaint.
"""

from __future__ import annotations

import string

from .utils.constants import LINE_TERMINATOR

_TERMINATOR = LINE_TERMINATOR[0]

ALLOWED_BYTES = frozenset(
    (string.ascii_letters + string.digits + string.punctuation + " \t\n\r\x0c").encode("ascii")
)


def is_allowed_byte(value: int) -> bool:
    """Return True if ``value`` is ASCII alphanumeric, punctuation or whitespace."""
    return value in ALLOWED_BYTES


class LineFramer:
    """Accumulates filtered bytes and yields complete lines.

    The partial line survives between calls, so a line split across two
    reads is reassembled.
    """

    def __init__(self) -> None:
        self._buf: list[str] = []

    @property
    def pending(self) -> str:
        return "".join(self._buf)

    def reset(self) -> None:
        self._buf.clear()

    def feed(self, data: bytes) -> list[str]:
        lines: list[str] = []
        for value in data:
            if value == _TERMINATOR:
                lines.append("".join(self._buf))
                self._buf.clear()
            elif value in ALLOWED_BYTES:
                self._buf.append(chr(value))
        return lines
