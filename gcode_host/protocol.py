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

"""Acknowledgment matching and report routing for printer responses.

A response whose first two characters are ``ok`` acknowledges the
outstanding command. Text after the prefix is a status payload; its first
character picks the report it belongs to through ``REPORT_ROUTES``.
Routing never influences flow control.
"""

from __future__ import annotations

import re
from typing import Dict

from .types import ReportKind, ReportValues
from .utils.constants import ACK_PREFIX

REPORT_ROUTES: Dict[str, ReportKind] = {
    "T": ReportKind.TEMPERATURE,
    "X": ReportKind.POSITION,
}

# "T:210.0 /215.0", "B:60.5", "X:-1.25"
_REPORT_FIELD_PAT = re.compile(
    r"([A-Za-z][A-Za-z0-9]*@?|@):\s*([-+]?\d+(?:\.\d*)?|[-+]?\.\d+)"
    r"(?:\s*/\s*([-+]?\d+(?:\.\d*)?|[-+]?\.\d+))?"
)


def is_ack(line: str) -> bool:
    return line[:2] == ACK_PREFIX


def ack_payload(line: str) -> str:
    """Return whatever follows the ``ok`` prefix (may be empty)."""
    return line[len(ACK_PREFIX):]


def route_report(payload: str) -> ReportKind | None:
    """Look up the report destination for an acknowledgment payload.

    Only the character right after ``ok`` counts: ``okT:21.0`` is a
    temperature report, ``ok T:21.0`` is not routed.
    """
    return REPORT_ROUTES.get(payload[:1])


def _parse_fields(payload: str, with_targets: bool) -> ReportValues:
    values: ReportValues = {}
    for match in _REPORT_FIELD_PAT.finditer(payload):
        key, current, target = match.groups()
        values[key] = float(current)
        if with_targets and target is not None:
            values[f"{key}_target"] = float(target)
    return values


def parse_temperature_report(payload: str) -> ReportValues:
    """Parse ``T:210.0 /210.0 B:60.0 /60.0`` style payloads.

    Targets after a slash are stored under ``<key>_target``.
    """
    return _parse_fields(payload, with_targets=True)


def parse_position_report(payload: str) -> ReportValues:
    """Parse ``X:1.00 Y:2.00 Z:0.30 E:0.00`` style payloads.

    Stepper counts that some firmware appends after ``Count`` are ignored.
    """
    head, _, _ = payload.partition("Count")
    return _parse_fields(head, with_targets=False)


REPORT_PARSERS = {
    ReportKind.TEMPERATURE: parse_temperature_report,
    ReportKind.POSITION: parse_position_report,
}


def parse_report(kind: ReportKind, payload: str) -> ReportValues:
    return REPORT_PARSERS[kind](payload)
