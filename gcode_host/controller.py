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

"""Printer controller: connection lifecycle and acknowledged command dispatch.

The controller is single-threaded and event-driven. Whoever owns it calls
``enqueue``, ``connect`` and ``disconnect`` and periodically pumps
``process_events`` to consume what the serial worker reported. At most one
command is ever outstanding: the queue head is written only when the
previous command was acknowledged with ``ok``.
"""

from __future__ import annotations

import logging
import queue
from typing import Callable, List

import serial

from .command_queue import AckGate, CommandQueue
from .gcode_commands import build_extrude, build_home, build_jog
from .protocol import ack_payload, is_ack, parse_report, route_report
from .serial_worker import SerialFactory, SerialLinkWorker
from .types import (
    AckState,
    ConnectionState,
    ReportKind,
    ReportValues,
    UiEvent,
    WorkerEventQueue,
)
from .utils.constants import (
    EXTRUDE_FEED_DEFAULT,
    JOG_FEED_DEFAULT,
    POSITION_QUERY,
    TEMPERATURE_QUERY,
)
from .utils.exceptions import PortOpenError
from .utils.validation import validate_command, validate_port_name

logger = logging.getLogger(__name__)

ReportListener = Callable[[ReportKind, ReportValues], None]


class PrinterController:
    """Owns the serial worker, the command queue and the ack gate.
    
    Events for the presentation layer are put on ``ui_q`` as tuples:
    ``("conn", connected, port)``, ``("conn_lost", reason)``,
    ``("log", text)``, ``("log_tx", command)``, ``("log_rx", line)`` and
    ``("report", kind, payload, values)``.
    
    Example:
        with PrinterController() as printer:
            printer.connect("/dev/ttyACM0")
            printer.enqueue("G28")
            while printer.pending_commands or printer.ack_state is AckState.AWAITING_ACK:
                printer.process_events(timeout=0.05)
    """
    
    def __init__(
        self,
        ui_event_q: "queue.Queue[UiEvent] | None" = None,
        *,
        serial_factory: SerialFactory = serial.Serial,
    ):
        """Initialize the controller in the Disconnected state.
        
        Args:
            ui_event_q: Queue for events to the presentation layer
                (a private queue is created when omitted)
            serial_factory: Callable opening the serial handle
        """
        self.ui_q: queue.Queue[UiEvent] = ui_event_q if ui_event_q is not None else queue.Queue()
        self._serial_factory = serial_factory
        self._worker: SerialLinkWorker | None = None
        self._events: WorkerEventQueue = queue.Queue()
        self._port: str | None = None
        self._queue = CommandQueue()
        self._ack = AckGate()
        self._last_reports: dict[ReportKind, ReportValues] = {}
        self._report_listeners: List[ReportListener] = []
    
    # ========================================================================
    # CONTEXT MANAGER SUPPORT
    # ========================================================================
    
    def __enter__(self) -> "PrinterController":
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensures the port is closed."""
        self.disconnect()
        return False
    
    # ========================================================================
    # STATE
    # ========================================================================
    
    @property
    def state(self) -> ConnectionState:
        if self._worker is None:
            return ConnectionState.DISCONNECTED
        if self._ack.awaiting:
            return ConnectionState.CONNECTED_AWAITING_ACK
        return ConnectionState.CONNECTED_IDLE
    
    @property
    def ack_state(self) -> AckState:
        return self._ack.state
    
    def is_connected(self) -> bool:
        return self._worker is not None
    
    @property
    def port(self) -> str | None:
        return self._port
    
    @property
    def pending_commands(self) -> tuple[str, ...]:
        """Commands queued but not yet written, head first."""
        return self._queue.snapshot()
    
    def last_report(self, kind: ReportKind) -> ReportValues | None:
        """Most recent parsed report of ``kind`` in this session, if any."""
        values = self._last_reports.get(kind)
        return dict(values) if values is not None else None
    
    def add_report_listener(self, listener: ReportListener) -> None:
        self._report_listeners.append(listener)
    
    def remove_report_listener(self, listener: ReportListener) -> None:
        if listener in self._report_listeners:
            self._report_listeners.remove(listener)
    
    # ========================================================================
    # CONNECTION MANAGEMENT
    # ========================================================================
    
    def connect(self, port: str) -> None:
        """Open ``port`` and start a serial worker for it.
        
        An existing connection is closed first, so there is never more
        than one worker.
        
        Args:
            port: Serial port name (e.g., '/dev/ttyACM0' or 'COM3')
            
        Raises:
            PortOpenError: If the port cannot be opened
            InvalidParameterError: If the port name is invalid
        """
        port = validate_port_name(port)
        
        if self._worker is not None:
            self.disconnect()
        
        self._reset_flow()
        events: WorkerEventQueue = queue.Queue()
        worker = SerialLinkWorker(port, events, serial_factory=self._serial_factory)
        try:
            worker.start()
        except PortOpenError as e:
            logger.error(str(e))
            self.ui_q.put(("log", f"[connect failed] {e}"))
            raise
        
        self._events = events
        self._worker = worker
        self._port = port
        self.ui_q.put(("conn", True, port))
        logger.info(f"Connected to {port}")
    
    def disconnect(self) -> None:
        """Close the connection and wait for the worker to exit.
        
        Clears pending commands and the ack gate. Idempotent.
        """
        worker = self._worker
        if worker is None:
            self._reset_flow()
            return
        
        self._worker = None
        worker.request_stop()
        self._wait_for_worker(worker)
        self._reset_flow()
        port, self._port = self._port, None
        self.ui_q.put(("conn", False, None))
        logger.info(f"Disconnected from {port}")
    
    def handle_connection_lost(self, reason: str) -> None:
        """React to the worker reporting a fatal I/O error."""
        worker = self._worker
        if worker is None:
            logger.debug(f"Ignoring stale connection loss: {reason}")
            return
        
        self._worker = None
        self._wait_for_worker(worker)
        self._reset_flow()
        port, self._port = self._port, None
        logger.warning(f"Connection to {port} lost: {reason}")
        self.ui_q.put(("conn_lost", reason))
        self.ui_q.put(("log", f"[disconnect] {reason}"))
        self.ui_q.put(("conn", False, None))
    
    # ========================================================================
    # COMMAND DISPATCH
    # ========================================================================
    
    def enqueue(self, command: str) -> None:
        """Queue a command for sending.
        
        Discarded without error while disconnected. Sent right away when
        no acknowledgment is outstanding.
        
        Args:
            command: Single-line command without terminator
            
        Raises:
            InvalidParameterError: If the command spans more than one line
        """
        command = validate_command(command)
        if not command:
            return
        
        if self._worker is None:
            logger.debug(f"Discarding '{command}' - not connected")
            return
        
        self._queue.append(command)
        self.dispatch()
    
    def dispatch(self) -> bool:
        """Send the queue head if connected and no ack is outstanding.
        
        Returns:
            True if a command was handed to the worker
        """
        if self._worker is None or self._ack.awaiting or not self._queue:
            return False
        
        command = self._queue.popleft()
        self._worker.send_line(command)
        self._ack.arm()
        self.ui_q.put(("log_tx", command))
        return True
    
    def process_events(self, max_events: int | None = None, timeout: float = 0.0) -> int:
        """Consume events reported by the serial worker.
        
        Args:
            max_events: Stop after this many events (default: drain all)
            timeout: Seconds to wait for the first event
            
        Returns:
            Number of events handled
        """
        handled = 0
        while max_events is None or handled < max_events:
            try:
                if handled == 0 and timeout > 0:
                    evt = self._events.get(timeout=timeout)
                else:
                    evt = self._events.get_nowait()
            except queue.Empty:
                break
            
            handled += 1
            match evt:
                case ("line", line):
                    self.handle_line(line)
                case ("connection_lost", reason):
                    self.handle_connection_lost(reason)
                case _:
                    logger.warning(f"Unknown worker event: {evt!r}")
        return handled
    
    def handle_line(self, line: str) -> None:
        """Evaluate one received line for acknowledgment."""
        self.ui_q.put(("log_rx", line))
        
        if not self._ack.awaiting or not is_ack(line):
            return
        
        self._ack.clear()
        self._route_report(ack_payload(line))
        self.dispatch()
    
    # ========================================================================
    # MANUAL CONTROL
    # ========================================================================
    
    def query_temperature(self) -> None:
        self.enqueue(TEMPERATURE_QUERY)
    
    def query_position(self) -> None:
        self.enqueue(POSITION_QUERY)
    
    def home(self, axes: str = "") -> None:
        """Home the given axes (all axes when empty)."""
        self.enqueue(build_home(axes))
    
    def jog(self, axis: str, distance: float, feed: float = JOG_FEED_DEFAULT) -> None:
        """Move one axis by a relative distance.
        
        Raises:
            InvalidParameterError: If axis, distance or feed is invalid
        """
        for command in build_jog(axis, distance, feed):
            self.enqueue(command)
    
    def extrude(self, extruder: str, distance: float, feed: float = EXTRUDE_FEED_DEFAULT) -> None:
        """Extrude (or retract, if negative) on extruder "E1" or "E2"."""
        for command in build_extrude(extruder, distance, feed):
            self.enqueue(command)
    
    # ========================================================================
    # INTERNAL HELPERS
    # ========================================================================
    
    def _wait_for_worker(self, worker: SerialLinkWorker) -> None:
        """Block until the worker thread has closed its port and exited."""
        while not worker.join():
            logger.warning(f"Still waiting for serial worker on {worker.port} to exit")
    
    def _reset_flow(self) -> None:
        """Drop pending commands and forget any outstanding acknowledgment."""
        self._queue.clear()
        self._ack.clear()
        self._last_reports.clear()
    
    def _route_report(self, payload: str) -> None:
        kind = route_report(payload)
        if kind is None:
            return
        
        payload = payload.strip()
        values = parse_report(kind, payload)
        self._last_reports[kind] = values
        self.ui_q.put(("report", kind, payload, values))
        
        for listener in list(self._report_listeners):
            try:
                listener(kind, dict(values))
            except Exception as exc:
                logger.exception("Report listener failed: %s", exc)
