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

"""Serial link worker.

The worker owns the serial handle for one connection. It opens the port
on the caller's thread, then hands the handle to a dedicated thread that
alternates between draining the command channel and one bounded read.
Received bytes are framed into lines and reported on the event channel.

Exactly one ``connection_lost`` event is emitted, after the loop has
exited, if the session ends because of an I/O failure. A requested
disconnect ends the loop silently.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable

import serial

from .framing import LineFramer
from .types import WorkerCommandQueue, WorkerEventQueue
from .utils.constants import (
    BAUD_RATE,
    ERROR_PORT_OPEN,
    LINE_TERMINATOR,
    READ_CHUNK_SIZE,
    SERIAL_BYTESIZE,
    SERIAL_PARITY,
    SERIAL_READ_TIMEOUT,
    SERIAL_STOPBITS,
    THREAD_JOIN_TIMEOUT,
)
from .utils.exceptions import PortOpenError, SerialIoError
from .utils.logging_config import SERIAL_LOGGER_NAME

logger = logging.getLogger(__name__)
serial_log = logging.getLogger(SERIAL_LOGGER_NAME)

SerialFactory = Callable[..., Any]


def open_port(port: str, serial_factory: SerialFactory = serial.Serial) -> Any:
    """Open ``port`` with the fixed link settings (250000 8N1, no flow control).

    Raises:
        PortOpenError: If the port cannot be opened
    """
    try:
        return serial_factory(
            port=port,
            baudrate=BAUD_RATE,
            bytesize=SERIAL_BYTESIZE,
            parity=SERIAL_PARITY,
            stopbits=SERIAL_STOPBITS,
            timeout=SERIAL_READ_TIMEOUT,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
    except (serial.SerialException, OSError, ValueError) as e:
        raise PortOpenError(ERROR_PORT_OPEN.format(port, e), port=port) from e


class SerialLinkWorker:
    """Background reader/writer for a single serial connection.

    Example:
        events = queue.Queue()
        worker = SerialLinkWorker("/dev/ttyACM0", events)
        worker.start()
        worker.send_line("M105")
        ...
        worker.request_stop()
        worker.join()
    """

    def __init__(
        self,
        port: str,
        event_q: WorkerEventQueue,
        *,
        serial_factory: SerialFactory = serial.Serial,
    ):
        """Initialize the worker.

        Args:
            port: Device path (e.g., '/dev/ttyUSB0' or 'COM3')
            event_q: Channel receiving ``line`` and ``connection_lost`` events
            serial_factory: Callable returning an open serial handle
        """
        self.port = port
        self.event_q = event_q
        self._serial_factory = serial_factory
        self._cmd_q: WorkerCommandQueue = queue.Queue()
        self._thread: threading.Thread | None = None

    # ========================================================================
    # CONTROLLER SIDE
    # ========================================================================

    def start(self) -> None:
        """Open the port and spawn the worker thread.

        Raises:
            PortOpenError: If the port cannot be opened (no thread is started)
            RuntimeError: If the worker was already started
        """
        if self._thread is not None:
            raise RuntimeError("Serial worker already started")

        ser = open_port(self.port, self._serial_factory)
        self._thread = threading.Thread(
            target=self._run,
            args=(ser,),
            daemon=True,
            name="Serial-Link",
        )
        self._thread.start()
        logger.info(f"Opened {self.port} at {BAUD_RATE} baud")

    def send_line(self, text: str) -> None:
        """Queue one command line for writing; the terminator is added by the worker."""
        self._cmd_q.put(("send", text))

    def request_stop(self) -> None:
        """Ask the worker loop to close the port and exit."""
        self._cmd_q.put(("disconnect",))

    def join(self, timeout: float | None = THREAD_JOIN_TIMEOUT) -> bool:
        """Wait for the worker thread to finish.

        Returns:
            True if the thread has terminated (or was never started)
        """
        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning(f"Thread {thread.name} did not terminate")
            return False
        return True

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ========================================================================
    # WORKER THREAD
    # ========================================================================

    def _run(self, ser: Any) -> None:
        logger.debug("Serial thread started")
        framer = LineFramer()
        lost_reason: str | None = None

        try:
            while True:
                try:
                    if self._drain_commands(ser):
                        break
                    chunk = self._read_chunk(ser)
                except SerialIoError as e:
                    lost_reason = str(e)
                    break

                if not chunk:
                    continue

                for line in framer.feed(chunk):
                    serial_log.debug(f"<< {line}")
                    self.event_q.put(("line", line))

        except Exception as e:
            logger.error(f"Serial thread error: {e}", exc_info=True)
            lost_reason = f"Serial thread error: {e}"

        finally:
            try:
                ser.close()
                logger.info("Serial port closed")
            except (serial.SerialException, OSError) as e:
                logger.error(f"Error closing serial port: {e}")
            if lost_reason is not None:
                logger.error(f"Connection lost: {lost_reason}")
                self.event_q.put(("connection_lost", lost_reason))
            logger.debug("Serial thread stopped")

    def _drain_commands(self, ser: Any) -> bool:
        """Handle every pending command.

        Returns:
            True if a disconnect was requested

        Raises:
            SerialIoError: If a write fails
        """
        while True:
            try:
                cmd = self._cmd_q.get_nowait()
            except queue.Empty:
                return False

            match cmd:
                case ("disconnect",):
                    return True
                case ("send", text):
                    self._write_line(ser, text)
                case _:
                    logger.warning(f"Ignoring unknown worker command: {cmd!r}")

    def _write_line(self, ser: Any, text: str) -> None:
        payload = text.encode("ascii") + LINE_TERMINATOR
        try:
            ser.write(payload)
        except (serial.SerialException, OSError) as e:
            raise SerialIoError(f"Serial write error: {e}") from e
        serial_log.debug(f">> {text}")

    def _read_chunk(self, ser: Any) -> bytes:
        """One bounded read; a timeout yields ``b""``."""
        try:
            return ser.read(READ_CHUNK_SIZE)
        except serial.SerialTimeoutException:
            return b""
        except (serial.SerialException, OSError) as e:
            raise SerialIoError(f"Serial read error: {e}") from e
